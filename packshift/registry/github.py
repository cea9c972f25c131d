# packshift/registry/github.py
from __future__ import annotations
import logging
from typing import Any

from packshift.app.settings import settings
from packshift.core.errors import RegistryError
from packshift.registry.common import callJson

logger = logging.getLogger(__name__)

__all__ = ["GitHubReleasesClient"]



class GitHubReleasesClient:
    """Reads the release feed of one repository, newest release first."""

    def __init__(self, *, apiBase: str = "https://api.github.com", token: str | None = None) -> None:
        self.apiBase = apiBase.rstrip("/")
        self.token = token if token is not None else settings("fallback.githubToken")

    def _headers(self) -> dict[str, str]:
        headers = {
            "Accept": "application/vnd.github+json",
            "User-Agent": settings("registry.userAgent", "packshift"),
        }
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    async def listReleases(self, repo: str) -> list[dict[str, Any]]:
        data = await callJson(
            "GET",
            f"{self.apiBase}/repos/{repo}/releases",
            what=f"Release feed for {repo}",
            headers=self._headers(),
        )
        if not isinstance(data, list):
            raise RegistryError(f"Release feed for {repo} did not return a list")
        return [r for r in data if isinstance(r, dict)]
