# packshift/rebuild/rebuilder.py
from __future__ import annotations
import io
import json
import logging
import re
import warnings
import zipfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Mapping, Protocol, Sequence

from packshift.core.errors import BuildIncompleteWarning, DependencyPinLookupFailure
from packshift.manifest.loader import LoadedPack
from packshift.manifest.models import INDEX_FILE_NAME, FileEnv, FileHashes, ManifestEntry, PackIndex
from packshift.registry.loader_meta import LoaderMetaClient, LoaderPinSource
from packshift.resolve.types import CandidateOrigin, ProjectCategory, ResolutionRow

logger = logging.getLogger(__name__)

__all__ = [
    "ExcludedItem",
    "RebuiltManifest",
    "PinLookup",
    "exclusionReason",
    "synthesizePath",
    "rebuildManifest",
    "indexJson",
    "packageArchive",
    "writeArchive",
    "archiveFileName",
    "slugify",
]

REASON_NON_PRIMARY = "non-primary source"
REASON_INCOMPLETE = "incomplete artifact metadata"
REASON_DUPLICATE_PATH = "duplicate path"

# category -> (directory, extension) for entries with no original path
_SYNTH_LAYOUT: dict[ProjectCategory, tuple[str, str]] = {
    ProjectCategory.MOD: ("mods", "jar"),
    ProjectCategory.RESOURCE_PACK: ("resourcepacks", "zip"),
    ProjectCategory.SHADER_PACK: ("shaderpacks", "zip"),
}

_SLUG_STRIP_RE = re.compile(r"[^a-z0-9]+")
SLUG_MAX_LEN = 80



class PinLookup(Protocol):
    async def recommendedVersion(self, source: LoaderPinSource, gameVersion: str) -> str:
        ...



@dataclass(frozen=True, slots=True)
class ExcludedItem:
    projectId: str
    name: str
    reason: str



@dataclass(slots=True)
class RebuiltManifest:
    """
    The new index plus everything needed to package it.

    `overrides` are the original pack's override assets, carried over as-is.
    `excluded` lists available rows that did not make it into `index.files`.
    """
    index: PackIndex
    overrides: dict[str, bytes] = field(default_factory=dict)
    includedProjects: list[str] = field(default_factory=list)
    excluded: list[ExcludedItem] = field(default_factory=list)
    notes: list[str] = field(default_factory=list)

    @property
    def fileName(self) -> str:
        return archiveFileName(self.index.name)



# ------------------------------------------------------------------ #
# Helpers
# ------------------------------------------------------------------ #

def slugify(text: str) -> str:
    """Lowercase, runs of non-alphanumerics become '-', trimmed, capped."""
    slug = _SLUG_STRIP_RE.sub("-", str(text).lower()).strip("-")
    return slug[:SLUG_MAX_LEN]



def archiveFileName(name: str) -> str:
    return f"{slugify(name) or 'pack'}.mrpack"



def synthesizePath(row: ResolutionRow) -> str:
    directory, ext = _SYNTH_LAYOUT.get(row.category, ("mods", "jar"))
    stem = row.slug or row.projectId or "mod"
    return f"{directory}/{stem}.{ext}"



def exclusionReason(row: ResolutionRow) -> str | None:
    """Why an available row cannot be packaged, or None when it can."""
    if row.chosen is None:
        return REASON_INCOMPLETE
    if row.chosen.origin is not CandidateOrigin.PRIMARY:
        return REASON_NON_PRIMARY
    artifact = row.chosenArtifact
    if artifact is None or not artifact.isComplete:
        return REASON_INCOMPLETE
    return None



def _entryFor(row: ResolutionRow, original: ManifestEntry | None) -> ManifestEntry:
    artifact = row.chosenArtifact
    if artifact is None or not artifact.isComplete:
        raise ValueError(f"Row {row.projectId} has no complete artifact to package")
    return ManifestEntry(
        path=original.path if original is not None else synthesizePath(row),
        hashes=FileHashes(sha1=artifact.sha1, sha512=artifact.sha512),
        env=original.env if original is not None and original.env is not None else FileEnv(),
        downloads=(artifact.url,),
        fileSize=artifact.size,
    )



# ------------------------------------------------------------------ #
# Rebuild
# ------------------------------------------------------------------ #

async def _pinLoader(
    dependencies: dict[str, str],
    loader: str,
    targetGameVersion: str,
    pinLookup: PinLookup,
) -> str | None:
    """Update the loader pin in place; returns a note for the report."""
    source = LoaderPinSource.fromSettings(loader)
    if source is None:
        logger.debug("No loader meta configured for '%s'; dependencies untouched", loader)
        return None
    try:
        version = await pinLookup.recommendedVersion(source, targetGameVersion)
    except DependencyPinLookupFailure as err:
        logger.warning("%s", err)
        previous = dependencies.get(source.dependency)
        if previous:
            return f"Kept existing {source.dependency} {previous} (meta lookup failed)."
        return f"{source.dependency} not set (meta lookup failed)."
    dependencies[source.dependency] = version
    return f"{source.dependency} set to {version}."



async def rebuildManifest(
    pack: LoadedPack,
    rows: Sequence[ResolutionRow],
    targetGameVersion: str,
    loader: str,
    pinLookup: PinLookup | None = None,
    *,
    projectEntries: Mapping[str, ManifestEntry] | None = None,
) -> RebuiltManifest:
    """
    Build the new index from resolved rows.

    Only packageable rows become files: primary origin, both digests, a
    positive size and a download URL. `projectEntries` maps each identity to
    the entry the pack originally pinned for it; that entry's path and env
    are reused, otherwise a path is synthesized from category and slug.
    Every other available row lands in `excluded` with its reason.
    """
    entries = projectEntries or {}
    files: list[ManifestEntry] = []
    included: list[str] = []
    excluded: list[ExcludedItem] = []
    notes: list[str] = []
    seenPaths: set[str] = set()

    for row in rows:
        if not row.available:
            continue
        reason = exclusionReason(row)
        if reason is None:
            entry = _entryFor(row, entries.get(row.projectId))
            if entry.path in seenPaths:
                reason = REASON_DUPLICATE_PATH
            else:
                seenPaths.add(entry.path)
                files.append(entry)
                included.append(row.projectId)
                continue
        excluded.append(ExcludedItem(projectId=row.projectId, name=row.name, reason=reason))

    dependencies = dict(pack.index.dependencies)
    dependencies["minecraft"] = targetGameVersion
    pinNote = await _pinLoader(dependencies, loader, targetGameVersion, pinLookup or LoaderMetaClient())
    if pinNote:
        notes.append(pinNote)

    name = f"{(pack.index.name or 'Pack').rstrip()} (for {targetGameVersion})"
    index = pack.index.model_copy(update={"name": name, "dependencies": dependencies, "files": files})

    if excluded:
        message = f"{len(excluded)} available item(s) were not packaged"
        warnings.warn(message, BuildIncompleteWarning, stacklevel=2)
        notes.append(message)

    logger.info("Rebuilt '%s': %d file(s), %d excluded", name, len(files), len(excluded))
    return RebuiltManifest(
        index=index,
        overrides=dict(pack.overrides),
        includedProjects=included,
        excluded=excluded,
        notes=notes,
    )



# ------------------------------------------------------------------ #
# Packaging
# ------------------------------------------------------------------ #

def indexJson(index: PackIndex) -> str:
    return json.dumps(index.model_dump(mode="json", exclude_none=True), indent=2, ensure_ascii=False)



def packageArchive(rebuilt: RebuiltManifest) -> bytes:
    """Zip the carried-over override assets together with the new index."""
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w", compression=zipfile.ZIP_DEFLATED) as archive:
        for name, content in rebuilt.overrides.items():
            archive.writestr(name, content)
        archive.writestr(INDEX_FILE_NAME, indexJson(rebuilt.index))
    return buffer.getvalue()



def writeArchive(rebuilt: RebuiltManifest, destination: str | Path) -> Path:
    """
    Write the packaged archive. A directory destination gets the
    slugified archive name inside it.
    """
    target = Path(destination)
    if target.is_dir():
        target = target / rebuilt.fileName
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_bytes(packageArchive(rebuilt))
    logger.info("Wrote %s", target)
    return target
