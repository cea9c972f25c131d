# packshift/registry/loader_meta.py
from __future__ import annotations
import logging
from dataclasses import dataclass
from typing import Any, Mapping
from urllib.parse import quote

import httpx

from packshift.app.settings import settings
from packshift.core.errors import DependencyPinLookupFailure, RegistryError
from packshift.http.client import HTTPError
from packshift.registry.common import callJson

logger = logging.getLogger(__name__)

__all__ = ["LoaderPinSource", "LoaderMetaClient", "pickLoaderVersion"]



@dataclass(frozen=True, slots=True)
class LoaderPinSource:
    """Where the pinned version of one loader comes from."""
    loader: str
    dependency: str
    urlTemplate: str

    @classmethod
    def fromSettings(cls, loader: str) -> "LoaderPinSource | None":
        cfg = settings(f"loaderMeta.{loader}")
        if not isinstance(cfg, Mapping):
            return None
        dependency = cfg.get("dependency")
        url = cfg.get("url")
        if not isinstance(dependency, str) or not isinstance(url, str):
            logger.warning("loaderMeta.%s needs string 'dependency' and 'url' keys", loader)
            return None
        return cls(loader, dependency, url)



def pickLoaderVersion(entries: Any) -> str | None:
    """First entry whose loader is flagged stable, else the first entry."""
    if not isinstance(entries, list) or not entries:
        return None
    pick = None
    for entry in entries:
        loader = entry.get("loader") if isinstance(entry, Mapping) else None
        if isinstance(loader, Mapping) and loader.get("stable"):
            pick = entry
            break
    if pick is None:
        pick = entries[0]
    loader = pick.get("loader") if isinstance(pick, Mapping) else None
    version = loader.get("version") if isinstance(loader, Mapping) else None
    return version if isinstance(version, str) and version else None



class LoaderMetaClient:
    async def recommendedVersion(self, source: LoaderPinSource, gameVersion: str) -> str:
        """
        Look up the loader version to pin for `gameVersion`.

        Raises DependencyPinLookupFailure on any failure.
        """
        url = source.urlTemplate.format(gameVersion=quote(gameVersion, safe=""))
        try:
            entries = await callJson("GET", url, what=f"{source.loader} meta lookup")
        except (RegistryError, HTTPError, httpx.HTTPError) as err:
            raise DependencyPinLookupFailure(f"{source.loader} meta lookup failed: {err}") from err
        version = pickLoaderVersion(entries)
        if version is None:
            raise DependencyPinLookupFailure(f"{source.loader} meta lists no loader for {gameVersion}")
        return version
