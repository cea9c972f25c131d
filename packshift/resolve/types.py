# packshift/resolve/types.py
from __future__ import annotations
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Mapping

from packshift.manifest.models import ManifestEntry

__all__ = [
    "ProjectCategory",
    "CandidateOrigin",
    "Artifact",
    "VersionCandidate",
    "ProjectMetadata",
    "CanonicalProject",
    "ResolutionRow",
    "stabilityTier",
    "parseTimestamp",
]

EPOCH = datetime.min.replace(tzinfo=timezone.utc)



class ProjectCategory(str, Enum):
    MOD = "mod"
    RESOURCE_PACK = "resourcepack"
    SHADER_PACK = "shaderpack"



class CandidateOrigin(str, Enum):
    PRIMARY = "primary"
    FALLBACK = "fallback"



def stabilityTier(versionType: str | None) -> int:
    """release=3 > beta=2 > anything else=1"""
    if versionType == "release":
        return 3
    if versionType == "beta":
        return 2
    return 1



def parseTimestamp(value: Any) -> datetime:
    """Parse an ISO-8601 timestamp into an aware datetime; unknown -> EPOCH."""
    if not isinstance(value, str) or not value.strip():
        return EPOCH
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return EPOCH
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed



@dataclass(frozen=True, slots=True)
class Artifact:
    url: str | None
    filename: str | None = None
    sha1: str | None = None
    sha512: str | None = None
    size: int | None = None
    primary: bool = False

    @property
    def isComplete(self) -> bool:
        """Both digests, a positive size and a download URL."""
        return bool(self.sha1 and self.sha512 and self.url and isinstance(self.size, int) and self.size > 0)

    @classmethod
    def fromModrinth(cls, raw: Mapping[str, Any]) -> "Artifact":
        hashes = raw.get("hashes") if isinstance(raw.get("hashes"), Mapping) else {}
        size = raw.get("size")
        return cls(
            url=raw.get("url") if isinstance(raw.get("url"), str) else None,
            filename=raw.get("filename") if isinstance(raw.get("filename"), str) else None,
            sha1=hashes.get("sha1") or None,
            sha512=hashes.get("sha512") or None,
            size=size if isinstance(size, int) and not isinstance(size, bool) else None,
            primary=bool(raw.get("primary")),
        )



@dataclass(frozen=True, slots=True)
class VersionCandidate:
    """One published, downloadable artifact set for a project."""
    projectId: str
    versionNumber: str
    versionType: str = "release"
    publishedAt: datetime = EPOCH
    artifacts: tuple[Artifact, ...] = ()
    origin: CandidateOrigin = CandidateOrigin.PRIMARY
    versionId: str | None = None
    name: str | None = None

    @property
    def stabilityTier(self) -> int:
        return stabilityTier(self.versionType)

    @property
    def primaryArtifact(self) -> Artifact | None:
        """The artifact flagged primary, else the first one listed."""
        for artifact in self.artifacts:
            if artifact.primary:
                return artifact
        return self.artifacts[0] if self.artifacts else None

    @classmethod
    def fromModrinth(cls, raw: Mapping[str, Any]) -> "VersionCandidate":
        files = raw.get("files")
        artifacts: tuple[Artifact, ...] = ()
        if isinstance(files, list):
            artifacts = tuple(Artifact.fromModrinth(f) for f in files if isinstance(f, Mapping))
        return cls(
            projectId=str(raw.get("project_id") or ""),
            versionNumber=str(raw.get("version_number") or "-"),
            versionType=str(raw.get("version_type") or ""),
            publishedAt=parseTimestamp(raw.get("date_published")),
            artifacts=artifacts,
            origin=CandidateOrigin.PRIMARY,
            versionId=raw.get("id") if isinstance(raw.get("id"), str) else None,
            name=raw.get("name") if isinstance(raw.get("name"), str) else None,
        )



@dataclass(frozen=True, slots=True)
class ProjectMetadata:
    """The parts of a registry project record the engine reads."""
    projectId: str
    title: str | None = None
    slug: str | None = None
    projectType: str | None = None
    loaders: tuple[str, ...] = ()

    @classmethod
    def fromModrinth(cls, raw: Mapping[str, Any]) -> "ProjectMetadata":
        loaders = raw.get("loaders")
        return cls(
            projectId=str(raw.get("id") or ""),
            title=raw.get("title") if isinstance(raw.get("title"), str) else None,
            slug=raw.get("slug") if isinstance(raw.get("slug"), str) else None,
            projectType=raw.get("project_type") if isinstance(raw.get("project_type"), str) else None,
            loaders=tuple(x for x in loaders if isinstance(x, str)) if isinstance(loaders, list) else (),
        )



@dataclass(frozen=True, slots=True)
class CanonicalProject:
    """
    The owning project behind one or more hashes of the pack.

    `representativeEntry` is the first manifest entry mapped to the project
    and `representativeVersion` the registry version it pins. Metadata is
    backfilled at most once via withMetadata().
    """
    projectId: str
    category: ProjectCategory
    representativeEntry: ManifestEntry
    representativeHash: str
    representativeVersion: Mapping[str, Any] = field(default_factory=dict)
    metadata: ProjectMetadata | None = None

    @property
    def currentVersionNumber(self) -> str:
        return str(self.representativeVersion.get("version_number") or "-")

    @property
    def displayName(self) -> str:
        if self.metadata is not None and self.metadata.title:
            return self.metadata.title
        name = self.representativeVersion.get("name")
        if isinstance(name, str) and name:
            return name
        return "(unknown)"

    def withMetadata(self, metadata: ProjectMetadata | None) -> "CanonicalProject":
        if self.metadata is not None:
            raise ValueError(f"Metadata for project '{self.projectId}' was already backfilled")
        return replace(self, metadata=metadata)



@dataclass(frozen=True, slots=True)
class ResolutionRow:
    """Final, read-only outcome for one CanonicalProject."""
    projectId: str
    projectUrl: str
    category: ProjectCategory
    name: str
    slug: str | None
    currentVersionNumber: str
    currentGameVersion: str
    targetLoader: str
    targetGameVersion: str
    available: bool
    chosen: VersionCandidate | None
    source: str
    failure: str | None = None

    @property
    def chosenArtifact(self) -> Artifact | None:
        if self.chosen is None:
            return None
        return self.chosen.primaryArtifact

    @property
    def targetVersionNumber(self) -> str:
        return self.chosen.versionNumber if self.chosen is not None else "-"

    @property
    def downloadUrl(self) -> str | None:
        artifact = self.chosenArtifact
        return artifact.url if artifact is not None else None

    @property
    def isPackageable(self) -> bool:
        """Primary origin with complete artifact metadata."""
        if not self.available or self.chosen is None:
            return False
        if self.chosen.origin is not CandidateOrigin.PRIMARY:
            return False
        artifact = self.chosenArtifact
        return artifact is not None and artifact.isComplete
