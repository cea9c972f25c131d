# packshift/registry/modrinth.py
from __future__ import annotations
import json
import logging
from typing import Any, Iterable

from packshift.app.settings import settings
from packshift.core.errors import RegistryError
from packshift.registry.common import callJson
from packshift.semver.semver import isReleaseVersion, sortNewestFirst

logger = logging.getLogger(__name__)

__all__ = ["RegistryClient"]



class RegistryClient:
    """
    Thin async client for the Modrinth v2 API.

    Methods return decoded JSON and raise RegistryError for non-2xx answers
    or unexpected payload shapes.
    """

    def __init__(self, *, apiBase: str | None = None, userAgent: str | None = None) -> None:
        self.apiBase = (apiBase or settings("registry.apiBase", "https://api.modrinth.com")).rstrip("/")
        self.userAgent = userAgent or settings("registry.userAgent", "packshift")

    def _headers(self) -> dict[str, str]:
        return {"User-Agent": self.userAgent, "Accept": "application/json"}

    # ----- Hash resolution -----

    async def versionsFromHashes(self, hashes: Iterable[str], *, algorithm: str = "sha1") -> dict[str, Any]:
        hashList = list(hashes)
        if not hashList:
            return {}
        data = await callJson(
            "POST",
            f"{self.apiBase}/v2/version_files",
            what="Hash lookup",
            headers=self._headers(),
            json={"hashes": hashList, "algorithm": algorithm},
        )
        if not isinstance(data, dict):
            raise RegistryError(f"Hash lookup returned {type(data).__name__}, expected an object")
        return data

    # ----- Projects -----

    async def getProjects(self, projectIds: Iterable[str]) -> list[dict[str, Any]]:
        ids = list(projectIds)
        if not ids:
            return []
        data = await callJson(
            "GET",
            f"{self.apiBase}/v2/projects",
            what="Project metadata lookup",
            headers=self._headers(),
            params={"ids": json.dumps(ids)},
        )
        if not isinstance(data, list):
            raise RegistryError(f"Project metadata lookup returned {type(data).__name__}, expected a list")
        return [p for p in data if isinstance(p, dict)]

    async def searchProjects(self, query: str, *, limit: int = 10) -> list[dict[str, Any]]:
        data = await callJson(
            "GET",
            f"{self.apiBase}/v2/search",
            what="Project search",
            headers=self._headers(),
            params={"query": query, "limit": str(limit)},
        )
        hits = data.get("hits") if isinstance(data, dict) else None
        return [h for h in hits if isinstance(h, dict)] if isinstance(hits, list) else []

    # ----- Versions -----

    async def listProjectVersions(
        self,
        projectId: str,
        *,
        gameVersion: str,
        loader: str,
        limit: int | None = None,
    ) -> list[dict[str, Any]]:
        params = {
            "game_versions": json.dumps([gameVersion]),
            "loaders": json.dumps([loader]),
        }
        if limit is not None:
            params["limit"] = str(limit)
        data = await callJson(
            "GET",
            f"{self.apiBase}/v2/project/{projectId}/version",
            what=f"Version listing for {projectId}",
            headers=self._headers(),
            params=params,
        )
        if not isinstance(data, list):
            raise RegistryError(
                f"Version listing for {projectId} returned {type(data).__name__}, expected a list",
                projectId=projectId,
            )
        logger.debug("Found %d version(s) for %s (%s/%s)", len(data), projectId, gameVersion, loader)
        return [v for v in data if isinstance(v, dict)]

    async def listGameVersions(self) -> list[str]:
        """Release game versions, newest first."""
        data = await callJson(
            "GET",
            f"{self.apiBase}/v2/tag/game_version",
            what="Game version listing",
            headers=self._headers(),
        )
        if not isinstance(data, list):
            raise RegistryError("Game version listing did not return a list")
        raw: list[str] = []
        for tag in data:
            value = tag.get("version") if isinstance(tag, dict) else tag
            if isinstance(value, str) and isReleaseVersion(value):
                raw.append(value)
        return sortNewestFirst(dict.fromkeys(raw))
