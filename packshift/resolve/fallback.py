# packshift/resolve/fallback.py
from __future__ import annotations
import logging
import re
from dataclasses import dataclass, field, replace
from typing import Any, Mapping, Protocol

import httpx

from packshift.app.settings import settings
from packshift.core.errors import FallbackUnavailable, RegistryError
from packshift.http.client import HTTPError
from packshift.registry.github import GitHubReleasesClient
from packshift.resolve.types import Artifact, CandidateOrigin, VersionCandidate, parseTimestamp

logger = logging.getLogger(__name__)

__all__ = [
    "FallbackSource",
    "FallbackStrategy",
    "GitHubReleaseStrategy",
    "FallbackArbiter",
    "gameVersionPattern",
    "findReleaseAsset",
]



@dataclass(frozen=True, slots=True)
class FallbackSource:
    """One allow-listed identity and how to look it up elsewhere."""
    projectId: str
    strategy: str
    slug: str | None = None
    options: Mapping[str, Any] = field(default_factory=dict)

    @classmethod
    def fromConfig(cls, projectId: str, raw: Mapping[str, Any]) -> "FallbackSource":
        strategy = raw.get("strategy")
        if not isinstance(strategy, str) or not strategy:
            raise ValueError(f"Fallback source '{projectId}' has no strategy")
        slug = raw.get("slug") if isinstance(raw.get("slug"), str) else None
        options = {k: v for k, v in raw.items() if k not in ("strategy", "slug")}
        return cls(projectId=projectId, strategy=strategy, slug=slug, options=options)



class FallbackStrategy(Protocol):
    kind: str
    sourceTag: str

    async def find(self, source: FallbackSource, targetGameVersion: str) -> VersionCandidate:
        """Return a fallback candidate or raise FallbackUnavailable."""
        ...



# ------------------------------------------------------------------ #
# GitHub release feed
# ------------------------------------------------------------------ #

def gameVersionPattern(targetGameVersion: str) -> re.Pattern[str]:
    """Target version bounded by start / word boundary / '-' on both sides."""
    return re.compile(rf"(?:^|\b|-){re.escape(targetGameVersion)}(?:\b|-)")



def findReleaseAsset(
    release: Mapping[str, Any],
    *,
    targetGameVersion: str,
    assetPattern: re.Pattern[str],
) -> Mapping[str, Any] | None:
    versionRe = gameVersionPattern(targetGameVersion)
    assets = release.get("assets")
    if not isinstance(assets, list):
        return None
    for asset in assets:
        if not isinstance(asset, Mapping):
            continue
        name = asset.get("name")
        if not isinstance(name, str):
            continue
        if name.lower().endswith(".jar") and assetPattern.search(name) and versionRe.search(name):
            return asset
    return None



class GitHubReleaseStrategy:
    kind = "githubReleases"
    sourceTag = "github-fallback"

    def __init__(self, client: GitHubReleasesClient | None = None) -> None:
        self._client = client

    @property
    def client(self) -> GitHubReleasesClient:
        if self._client is None:
            self._client = GitHubReleasesClient()
        return self._client

    async def find(self, source: FallbackSource, targetGameVersion: str) -> VersionCandidate:
        repo = source.options.get("repo")
        if not isinstance(repo, str) or not repo:
            raise FallbackUnavailable(f"Fallback source '{source.projectId}' has no repo", projectId=source.projectId)
        pattern = source.options.get("assetPattern") or ".*"
        assetPattern = re.compile(str(pattern), re.IGNORECASE)
        includePrereleases = bool(source.options.get("includePrereleases", False))

        try:
            releases = await self.client.listReleases(repo)
        except (RegistryError, HTTPError, httpx.HTTPError) as err:
            raise FallbackUnavailable(f"Release feed for {repo} failed: {err}", projectId=source.projectId) from err

        # Feed order is release-descending; the first match wins.
        for release in releases:
            if release.get("draft"):
                continue
            if release.get("prerelease") and not includePrereleases:
                continue
            asset = findReleaseAsset(release, targetGameVersion=targetGameVersion, assetPattern=assetPattern)
            if asset is None:
                continue
            size = asset.get("size")
            return VersionCandidate(
                projectId=source.projectId,
                versionNumber=str(release.get("tag_name") or asset.get("name")),
                versionType="prerelease" if release.get("prerelease") else "release",
                publishedAt=parseTimestamp(release.get("published_at") or release.get("created_at")),
                artifacts=(
                    Artifact(
                        url=asset.get("browser_download_url"),
                        filename=asset.get("name"),
                        size=size if isinstance(size, int) else None,
                        primary=True,
                    ),
                ),
                origin=CandidateOrigin.FALLBACK,
                name=release.get("name") if isinstance(release.get("name"), str) else None,
            )

        raise FallbackUnavailable(
            f"No {repo} release has an asset for {targetGameVersion}",
            projectId=source.projectId,
        )



# ------------------------------------------------------------------ #
# Arbiter
# ------------------------------------------------------------------ #

class FallbackArbiter:
    """
    Decides whether an identity may use a secondary source and runs it.

    Only identities in the configured table are eligible; everything else
    is never looked up anywhere but the primary registry.
    """

    def __init__(
        self,
        sources: Mapping[str, FallbackSource] | None = None,
        strategies: list[FallbackStrategy] | None = None,
    ) -> None:
        self._sources: dict[str, FallbackSource] = dict(sources or {})
        self._strategies: dict[str, FallbackStrategy] = {}
        for strategy in strategies if strategies is not None else [GitHubReleaseStrategy()]:
            self.registerStrategy(strategy)

    @classmethod
    def fromSettings(cls, strategies: list[FallbackStrategy] | None = None) -> "FallbackArbiter":
        raw = settings("fallback.sources", {}) or {}
        sources: dict[str, FallbackSource] = {}
        if isinstance(raw, Mapping):
            for projectId, cfg in raw.items():
                if not isinstance(cfg, Mapping):
                    continue
                try:
                    sources[str(projectId)] = FallbackSource.fromConfig(str(projectId), cfg)
                except ValueError as err:
                    logger.warning("Ignoring fallback source: %s", err)
        return cls(sources, strategies)

    # ----- Strategy registry -----

    def registerStrategy(self, strategy: FallbackStrategy) -> None:
        self._strategies[strategy.kind] = strategy

    def strategyFor(self, kind: str) -> FallbackStrategy:
        if kind not in self._strategies:
            raise KeyError(f"No fallback strategy registered for kind '{kind}'")
        return self._strategies[kind]

    # ----- Eligibility -----

    def sourceFor(self, projectId: str, slug: str | None = None) -> FallbackSource | None:
        source = self._sources.get(projectId)
        if source is not None:
            return source
        if slug:
            for candidate in self._sources.values():
                if candidate.slug == slug:
                    return candidate
        return None

    def isEligible(self, projectId: str, slug: str | None = None) -> bool:
        return self.sourceFor(projectId, slug) is not None

    def sourceTag(self, projectId: str, slug: str | None = None) -> str:
        """Row source tag for a fallback hit, e.g. "github-fallback"."""
        source = self.sourceFor(projectId, slug)
        strategy = self._strategies.get(source.strategy) if source is not None else None
        return strategy.sourceTag if strategy is not None else "fallback"

    # ----- Lookup -----

    async def lookup(self, projectId: str, targetGameVersion: str, *, slug: str | None = None) -> VersionCandidate:
        """
        Run the configured strategy for an allow-listed identity.

        Raises FallbackUnavailable when the identity is not allow-listed, its
        strategy is unknown, or the secondary source has nothing usable.
        """
        source = self.sourceFor(projectId, slug)
        if source is None:
            raise FallbackUnavailable(f"Project '{projectId}' is not allow-listed for fallback", projectId=projectId)
        try:
            strategy = self.strategyFor(source.strategy)
        except KeyError as err:
            raise FallbackUnavailable(str(err), projectId=projectId) from err
        candidate = await strategy.find(source, targetGameVersion)
        if candidate.origin is not CandidateOrigin.FALLBACK:
            # Anything from a secondary source is fallback-origin, whatever the strategy says
            candidate = replace(candidate, origin=CandidateOrigin.FALLBACK)
        logger.info("Fallback %s found %s for %s", source.strategy, candidate.versionNumber, projectId)
        return candidate
