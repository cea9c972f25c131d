# packshift/manifest/loader.py
from __future__ import annotations
import io
import json
import logging
import warnings
import zipfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Mapping

from pydantic import ValidationError

from packshift.core.errors import EmptyInputWarning, MissingManifestError, ParseError
from packshift.manifest.models import INDEX_FILE_NAME, OVERRIDE_ROOTS, ManifestEntry, PackIndex

logger = logging.getLogger(__name__)

__all__ = ["LoadedPack", "loadPackArchive", "parsePackIndex"]



@dataclass(slots=True)
class LoadedPack:
    """
    A parsed pack archive.

    `hashIndex` maps sha1 -> the first ManifestEntry declaring it, and
    `hashes` lists those sha1 digests in manifest order without duplicates.
    `overrides` holds every non-directory archive member under an override
    root, keyed by its archive name.
    """
    index: PackIndex
    hashIndex: dict[str, ManifestEntry] = field(default_factory=dict)
    hashes: list[str] = field(default_factory=list)
    overrides: dict[str, bytes] = field(default_factory=dict)
    sourceName: str | None = None

    @property
    def name(self) -> str:
        return self.index.name or "Updated Pack"

    @property
    def currentGameVersion(self) -> str:
        return self.index.dependencies.get("minecraft") or "-"

    def entryForHash(self, sha1: str) -> ManifestEntry | None:
        return self.hashIndex.get(sha1)



def parsePackIndex(raw: str | bytes) -> PackIndex:
    """Parse index JSON text into a PackIndex, raising ParseError on any defect."""
    try:
        data = json.loads(raw)
    except (ValueError, UnicodeDecodeError) as err:
        raise ParseError(f"{INDEX_FILE_NAME} is not valid JSON: {err}") from err
    if not isinstance(data, Mapping):
        raise ParseError(f"{INDEX_FILE_NAME} must contain an object, got {type(data).__name__}")
    try:
        return PackIndex.model_validate(data)
    except ValidationError as err:
        raise ParseError(f"{INDEX_FILE_NAME} does not match the pack format: {err}") from err



def _buildHashIndex(index: PackIndex) -> tuple[dict[str, ManifestEntry], list[str]]:
    hashIndex: dict[str, ManifestEntry] = {}
    hashes: list[str] = []
    for entry in index.files:
        sha1 = entry.hashes.sha1
        if not sha1:
            logger.debug("Entry '%s' has no sha1 digest; it cannot be resolved", entry.path)
            continue
        if sha1 in hashIndex:
            logger.debug("Entry '%s' repeats sha1 %s of '%s'", entry.path, sha1, hashIndex[sha1].path)
            continue
        hashIndex[sha1] = entry
        hashes.append(sha1)
    return hashIndex, hashes



def loadPackArchive(source: str | Path | bytes) -> LoadedPack:
    """
    Open an .mrpack archive (path or raw bytes) and parse its index.

    Raises:
        ParseError: the archive or its index cannot be read.
        MissingManifestError: the archive has no modrinth.index.json.

    An index without hashed files is valid; it issues EmptyInputWarning.
    """
    sourceName: str | None = None
    if isinstance(source, (bytes, bytearray)):
        stream: io.BytesIO | Path = io.BytesIO(bytes(source))
    else:
        stream = Path(source)
        sourceName = stream.name

    try:
        with zipfile.ZipFile(stream) as archive:
            try:
                rawIndex = archive.read(INDEX_FILE_NAME)
            except KeyError as err:
                raise MissingManifestError(f"No {INDEX_FILE_NAME} in archive") from err

            overrides: dict[str, bytes] = {}
            for info in archive.infolist():
                if info.is_dir():
                    continue
                if info.filename.startswith(OVERRIDE_ROOTS):
                    overrides[info.filename] = archive.read(info)
    except (zipfile.BadZipFile, zipfile.LargeZipFile, OSError, EOFError) as err:
        raise ParseError(f"Unreadable pack archive: {err}") from err

    index = parsePackIndex(rawIndex)
    hashIndex, hashes = _buildHashIndex(index)
    if not hashes:
        warnings.warn(f"Pack '{index.name}' declares no file hashes", EmptyInputWarning, stacklevel=2)
        logger.warning("Pack '%s' declares no file hashes; nothing to resolve", index.name)

    logger.info(
        "Loaded pack '%s': %d file(s), %d unique hash(es), %d override asset(s)",
        index.name, len(index.files), len(hashes), len(overrides),
    )
    return LoadedPack(
        index=index,
        hashIndex=hashIndex,
        hashes=hashes,
        overrides=overrides,
        sourceName=sourceName,
    )
