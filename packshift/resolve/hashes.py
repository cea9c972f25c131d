# packshift/resolve/hashes.py
from __future__ import annotations
import logging
from dataclasses import dataclass, field
from typing import Any, Iterable, Protocol

import httpx

from packshift.core.errors import PartialResolutionFailure, RegistryError
from packshift.http.client import HTTPError

logger = logging.getLogger(__name__)

__all__ = ["HashLookup", "HashResolution", "resolveHashes"]



class HashLookup(Protocol):
    async def versionsFromHashes(self, hashes: Iterable[str], *, algorithm: str = "sha1") -> dict[str, Any]:
        ...



@dataclass(slots=True)
class HashResolution:
    """hash -> registry version record, plus the hashes nobody claimed."""
    versions: dict[str, dict[str, Any]] = field(default_factory=dict)
    unresolved: list[str] = field(default_factory=list)
    failure: PartialResolutionFailure | None = None



async def resolveHashes(registry: HashLookup, hashes: Iterable[str], *, algorithm: str = "sha1") -> HashResolution:
    """
    Map content hashes to version identities with one batched lookup.

    Duplicates are dropped (first occurrence keeps its place). Hashes absent
    from the answer, or answered without an owning project, are unresolved.
    A failed batch call leaves every hash unresolved and sets `failure`.
    """
    unique = list(dict.fromkeys(h for h in hashes if h))
    if not unique:
        return HashResolution()

    try:
        answer = await registry.versionsFromHashes(unique, algorithm=algorithm)
    except (RegistryError, HTTPError, httpx.HTTPError) as err:
        failure = PartialResolutionFailure(f"Hash lookup for {len(unique)} hash(es) failed: {err}")
        logger.error("%s", failure)
        return HashResolution(unresolved=unique, failure=failure)

    result = HashResolution()
    for sha in unique:
        version = answer.get(sha)
        if isinstance(version, dict) and version.get("project_id"):
            result.versions[sha] = version
        else:
            result.unresolved.append(sha)

    logger.info("Resolved %d of %d hash(es)", len(result.versions), len(unique))
    if result.unresolved:
        logger.debug("Unresolved hashes: %s", ", ".join(result.unresolved))
    return result
