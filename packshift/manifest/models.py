# packshift/manifest/models.py
from __future__ import annotations
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

__all__ = [
    "EnvRequirement",
    "FileHashes",
    "FileEnv",
    "ManifestEntry",
    "PackIndex",
    "INDEX_FILE_NAME",
    "OVERRIDE_ROOTS",
]

INDEX_FILE_NAME = "modrinth.index.json"
OVERRIDE_ROOTS: tuple[str, ...] = ("overrides/", "client-overrides/", "server-overrides/")

EnvRequirement = Literal["required", "optional", "unsupported"]



class FileHashes(BaseModel):
    """Content digests for one pinned file. Other algorithms are tolerated and dropped."""
    model_config = ConfigDict(frozen=True, extra="ignore")

    sha1: str | None = None
    sha512: str | None = None

    @field_validator("sha1", "sha512")
    @classmethod
    def _lowercase(cls, value: str | None) -> str | None:
        if value is None:
            return None
        value = value.strip().lower()
        return value or None



class FileEnv(BaseModel):
    """Per-side requirement of a file."""
    model_config = ConfigDict(frozen=True, extra="forbid")

    client: EnvRequirement = "required"
    server: EnvRequirement = "required"



class ManifestEntry(BaseModel):
    """One pinned, content-addressed file of a pack. Immutable once loaded."""
    model_config = ConfigDict(frozen=True, extra="ignore")

    path: str
    hashes: FileHashes
    env: FileEnv | None = None
    downloads: tuple[str, ...] = ()
    fileSize: int = 0

    @field_validator("path")
    @classmethod
    def _pathMustBeRelative(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("File path cannot be empty")
        if value.startswith("/") or ".." in value.split("/"):
            raise ValueError(f"File path {value!r} escapes the pack root")
        return value



class PackIndex(BaseModel):
    """
    The whole `modrinth.index.json` document.

    Unknown top-level keys are kept so a rebuilt index round-trips them.
    """
    model_config = ConfigDict(extra="allow")

    formatVersion: int = 1
    game: str = "minecraft"
    versionId: str = "0.0.0"
    name: str = ""
    summary: str | None = None
    dependencies: dict[str, str] = Field(default_factory=dict)
    files: list[ManifestEntry] = Field(default_factory=list)
