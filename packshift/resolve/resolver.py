# packshift/resolve/resolver.py
from __future__ import annotations
import asyncio
import logging
import warnings
from dataclasses import dataclass, field
from typing import Any, Callable, Iterable, Protocol, Sequence

import httpx

from packshift.app.settings import settings
from packshift.core.errors import (
    EmptyInputWarning,
    FallbackUnavailable,
    PartialResolutionFailure,
    RegistryError,
)
from packshift.core.ids import uuidv7
from packshift.core.logging import clearLogContext, setLogContext
from packshift.http.client import HTTPError
from packshift.manifest.loader import LoadedPack
from packshift.manifest.models import ManifestEntry
from packshift.resolve.aggregate import CategoryRoot, aggregateProjects
from packshift.resolve.fallback import FallbackArbiter
from packshift.resolve.hashes import resolveHashes
from packshift.resolve.scheduler import mapLimitProgress
from packshift.resolve.selection import selectBestCandidate
from packshift.resolve.types import (
    CandidateOrigin,
    CanonicalProject,
    ProjectCategory,
    ProjectMetadata,
    ResolutionRow,
    VersionCandidate,
)

logger = logging.getLogger(__name__)

__all__ = [
    "Registry",
    "AnalysisResult",
    "PackResolver",
    "loaderForProject",
    "projectUrlFor",
]

ProgressCallback = Callable[[int, int], None]
PhaseCallback = Callable[[str], None]

SOURCE_PRIMARY = "modrinth"
SOURCE_NONE = "none"



class Registry(Protocol):
    """The registry calls the resolver needs; RegistryClient satisfies it."""

    async def versionsFromHashes(self, hashes: Iterable[str], *, algorithm: str = "sha1") -> dict[str, Any]:
        ...

    async def getProjects(self, projectIds: Iterable[str]) -> list[dict[str, Any]]:
        ...

    async def listProjectVersions(
        self, projectId: str, *, gameVersion: str, loader: str, limit: int | None = None,
    ) -> list[dict[str, Any]]:
        ...



@dataclass(slots=True)
class AnalysisResult:
    """Plain-data outcome of one resolution run."""
    packName: str
    currentGameVersion: str
    targetGameVersion: str
    packLoader: str
    rows: list[ResolutionRow] = field(default_factory=list)
    # projectId -> the manifest entry the pack originally pinned for it
    projectEntries: dict[str, ManifestEntry] = field(default_factory=dict)
    unresolvedHashes: list[str] = field(default_factory=list)
    notes: list[str] = field(default_factory=list)
    runId: str | None = None

    @property
    def availableRows(self) -> list[ResolutionRow]:
        return [row for row in self.rows if row.available]

    @property
    def missingRows(self) -> list[ResolutionRow]:
        return [row for row in self.rows if not row.available]

    def summary(self) -> dict[str, int]:
        total = len(self.rows)
        available = len(self.availableRows)
        return {"total": total, "available": available, "missing": total - available}



# ------------------------------------------------------------------ #
# Row helpers
# ------------------------------------------------------------------ #

def loaderForProject(metadata: ProjectMetadata | None, category: ProjectCategory, packLoader: str) -> str:
    """
    Mods follow the pack loader. Resource and shader packs use the project's
    first declared loader, or "minecraft" when metadata is unavailable.
    """
    if category is ProjectCategory.MOD:
        return packLoader
    if metadata is not None and metadata.loaders:
        return metadata.loaders[0]
    return "minecraft"



def projectUrlFor(projectId: str, metadata: ProjectMetadata | None, category: ProjectCategory) -> str:
    projectType = metadata.projectType if metadata is not None else None
    if projectType == "mod" or category is ProjectCategory.MOD:
        typePath = "mod"
    elif projectType == "resourcepack" or category is ProjectCategory.RESOURCE_PACK:
        typePath = "resourcepack"
    elif projectType == "shader" or category is ProjectCategory.SHADER_PACK:
        typePath = "shader"
    else:
        typePath = "project"
    if metadata is not None and metadata.slug:
        return f"https://modrinth.com/{typePath}/{metadata.slug}"
    return f"https://modrinth.com/project/{projectId}"



# ------------------------------------------------------------------ #
# Resolver
# ------------------------------------------------------------------ #

class PackResolver:
    """
    Runs the resolution pipeline for one loaded pack:
    hashes -> versions -> projects -> one bounded task per project -> rows.

    Only the output list is shared between tasks; each task writes its own
    slot through mapLimitProgress.
    """

    def __init__(
        self,
        registry: Registry,
        fallback: FallbackArbiter | None = None,
        *,
        maxConcurrency: int | None = None,
        categoryRoots: Sequence[CategoryRoot] | None = None,
    ) -> None:
        self.registry = registry
        self.fallback = fallback if fallback is not None else FallbackArbiter.fromSettings()
        self.maxConcurrency = int(maxConcurrency or settings("resolve.maxConcurrency", 6))
        self.categoryRoots = categoryRoots

    async def analyze(
        self,
        pack: LoadedPack,
        targetGameVersion: str,
        packLoader: str,
        *,
        onProgress: ProgressCallback | None = None,
        onPhase: PhaseCallback | None = None,
    ) -> AnalysisResult:
        runId = uuidv7(prefix="run-")
        setLogContext(runId=runId)
        try:
            return await self._analyze(
                pack, targetGameVersion, packLoader, runId, onProgress=onProgress, onPhase=onPhase,
            )
        finally:
            clearLogContext()

    async def _analyze(
        self,
        pack: LoadedPack,
        targetGameVersion: str,
        packLoader: str,
        runId: str,
        *,
        onProgress: ProgressCallback | None,
        onPhase: PhaseCallback | None,
    ) -> AnalysisResult:
        result = AnalysisResult(
            packName=pack.name,
            currentGameVersion=pack.currentGameVersion,
            targetGameVersion=targetGameVersion,
            packLoader=packLoader,
            runId=runId,
        )

        def phase(text: str) -> None:
            logger.info("%s", text)
            if onPhase is not None:
                onPhase(text)

        if not pack.hashes:
            message = f"Pack '{pack.name}' declares no file hashes; nothing to resolve"
            warnings.warn(message, EmptyInputWarning, stacklevel=3)
            result.notes.append(message)
            return result

        phase(f"Resolving {len(pack.hashes)} hash(es) to versions")
        resolution = await resolveHashes(self.registry, pack.hashes)
        result.unresolvedHashes = list(resolution.unresolved)
        if resolution.failure is not None:
            result.notes.append(str(resolution.failure))
        if resolution.unresolved:
            result.notes.append(f"{len(resolution.unresolved)} file(s) are not known to the registry")

        phase("Collapsing to projects")
        projects = aggregateProjects(
            resolution.versions,
            pack.hashIndex,
            hashOrder=pack.hashes,
            categoryRoots=self.categoryRoots,
        )
        if not projects:
            result.notes.append("No projects resolved")
            return result
        result.projectEntries = {p.projectId: p.representativeEntry for p in projects}

        phase(f"Checking {len(projects)} project(s) for {targetGameVersion} / {packLoader}")
        result.rows = await self.resolveProjects(
            projects,
            targetGameVersion=targetGameVersion,
            packLoader=packLoader,
            currentGameVersion=pack.currentGameVersion,
            onProgress=onProgress,
        )
        summary = result.summary()
        phase(f"Done. {summary['available']}/{summary['total']} have a {targetGameVersion} build")
        return result

    async def resolveProjects(
        self,
        projects: Sequence[CanonicalProject],
        *,
        targetGameVersion: str,
        packLoader: str,
        currentGameVersion: str = "-",
        onProgress: ProgressCallback | None = None,
    ) -> list[ResolutionRow]:
        """One bounded task per project; rows come back in `projects` order."""
        if not projects:
            return []
        metadataTask = asyncio.ensure_future(self._fetchMetadata([p.projectId for p in projects]))

        def errorRow(project: CanonicalProject, metadata: ProjectMetadata | None, err: Exception) -> ResolutionRow:
            return self._row(
                project,
                metadata,
                targetGameVersion=targetGameVersion,
                currentGameVersion=currentGameVersion,
                loader=loaderForProject(metadata, project.category, packLoader),
                chosen=None,
                source=SOURCE_NONE,
                failure=f"{type(err).__name__}: {err}",
            )

        async def resolveOne(project: CanonicalProject) -> ResolutionRow:
            try:
                return await self._resolveOne(
                    project,
                    metadataTask,
                    targetGameVersion=targetGameVersion,
                    packLoader=packLoader,
                    currentGameVersion=currentGameVersion,
                )
            except Exception as err:
                logger.error("Resolving %s failed unexpectedly: %s", project.projectId, err, exc_info=err)
                # the batch metadata is still good for naming the row
                metadata = (await asyncio.shield(metadataTask)).get(project.projectId)
                return errorRow(project, metadata, err)

        def onError(project: CanonicalProject, _index: int, err: Exception) -> ResolutionRow:
            logger.error("Resolving %s failed unexpectedly: %s", project.projectId, err, exc_info=err)
            return errorRow(project, None, err)

        try:
            rows = await mapLimitProgress(
                projects,
                self.maxConcurrency,
                resolveOne,
                onTick=onProgress,
                onError=onError,
            )
        finally:
            if not metadataTask.done():
                metadataTask.cancel()
        return [row for row in rows if row is not None]

    # ----- Per-project body -----

    async def _resolveOne(
        self,
        project: CanonicalProject,
        metadataTask: asyncio.Future[dict[str, ProjectMetadata]],
        *,
        targetGameVersion: str,
        packLoader: str,
        currentGameVersion: str,
    ) -> ResolutionRow:
        projectId = project.projectId
        setLogContext(projectId=projectId)
        failure: str | None = None
        best: VersionCandidate | None = None

        async def metadataFor() -> ProjectMetadata | None:
            return (await asyncio.shield(metadataTask)).get(projectId)

        async def primary(loader: str) -> VersionCandidate | None:
            nonlocal failure
            try:
                return await self._bestPrimary(projectId, targetGameVersion, loader)
            except PartialResolutionFailure as err:
                failure = str(err)
                logger.warning("%s", err)
                return None

        if project.category is ProjectCategory.MOD:
            # The loader is known up front, so metadata and versions run together.
            loader = packLoader
            metadata, best = await asyncio.gather(metadataFor(), primary(loader))
        else:
            metadata = await metadataFor()
            loader = loaderForProject(metadata, project.category, packLoader)
            best = await primary(loader)

        source = SOURCE_PRIMARY if best is not None else SOURCE_NONE
        slug = metadata.slug if metadata is not None else None
        if best is None and self.fallback.isEligible(projectId, slug):
            try:
                best = await self.fallback.lookup(projectId, targetGameVersion, slug=slug)
                source = self.fallback.sourceTag(projectId, slug)
            except FallbackUnavailable as err:
                logger.warning("Fallback for %s unavailable: %s", projectId, err)
                failure = f"{failure}; {err}" if failure else str(err)

        return self._row(
            project,
            metadata,
            targetGameVersion=targetGameVersion,
            currentGameVersion=currentGameVersion,
            loader=loader,
            chosen=best,
            source=source,
            failure=failure if best is None else None,
        )

    async def _bestPrimary(self, projectId: str, targetGameVersion: str, loader: str) -> VersionCandidate | None:
        try:
            raw = await self.registry.listProjectVersions(projectId, gameVersion=targetGameVersion, loader=loader)
        except (RegistryError, HTTPError, httpx.HTTPError) as err:
            raise PartialResolutionFailure(
                f"Version lookup for {projectId} ({targetGameVersion}/{loader}) failed: {err}",
                projectId=projectId,
            ) from err
        candidates = [VersionCandidate.fromModrinth(v) for v in raw]
        return selectBestCandidate(c for c in candidates if c.origin is CandidateOrigin.PRIMARY)

    async def _fetchMetadata(self, projectIds: list[str]) -> dict[str, ProjectMetadata]:
        try:
            raw = await self.registry.getProjects(projectIds)
        except (RegistryError, HTTPError, httpx.HTTPError) as err:
            logger.warning("Project metadata lookup failed; names fall back to version data: %s", err)
            return {}
        out: dict[str, ProjectMetadata] = {}
        for entry in raw:
            metadata = ProjectMetadata.fromModrinth(entry)
            if metadata.projectId:
                out[metadata.projectId] = metadata
        return out

    def _row(
        self,
        project: CanonicalProject,
        metadata: ProjectMetadata | None,
        *,
        targetGameVersion: str,
        currentGameVersion: str,
        loader: str,
        chosen: VersionCandidate | None,
        source: str,
        failure: str | None,
    ) -> ResolutionRow:
        if metadata is not None and project.metadata is None:
            project = project.withMetadata(metadata)
        return ResolutionRow(
            projectId=project.projectId,
            projectUrl=projectUrlFor(project.projectId, project.metadata, project.category),
            category=project.category,
            name=project.displayName,
            slug=project.metadata.slug if project.metadata is not None else None,
            currentVersionNumber=project.currentVersionNumber,
            currentGameVersion=currentGameVersion,
            targetLoader=loader,
            targetGameVersion=targetGameVersion,
            available=chosen is not None,
            chosen=chosen,
            source=source,
            failure=failure,
        )
