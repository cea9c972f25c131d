# packshift/semver/semver.py
from __future__ import annotations

import re
from dataclasses import dataclass
from functools import total_ordering
from typing import Iterable

__all__ = ["SemVer", "parseSemVer", "isReleaseVersion", "sortNewestFirst"]



SEMVER_PATTERN_RE = re.compile(
    r"^(?P<major>0|[1-9]\d*)"
    r"\.(?P<minor>0|[1-9]\d*)"
    r"\.(?P<patch>0|[1-9]\d*)"
    r"(?:-(?P<prerelease>[0-9A-Za-z-]+(?:\.[0-9A-Za-z-]+)*))?"
    r"(?:\+(?P<build>[0-9A-Za-z-]+(?:\.[0-9A-Za-z-]+)*))?$"
)

# Plain release game versions: "1.20", "1.20.1". Snapshots and pre-releases never match.
RELEASE_VERSION_RE = re.compile(r"^\d+\.\d+(\.\d+)?$")



@total_ordering
@dataclass(frozen=True)
class SemVer:
    major: int
    minor: int
    patch: int
    prerelease: tuple[str, ...] = ()

    def __str__(self) -> str:
        base = f"{self.major}.{self.minor}.{self.patch}"
        return f"{base}-{'.'.join(self.prerelease)}" if self.prerelease else base

    def _prereleaseCmpKey(self) -> tuple:
        # Numeric identifiers sort below alphanumeric ones.
        parts: list[tuple[int, int | str]] = []
        for ident in self.prerelease:
            if ident.isdigit():
                parts.append((0, int(ident)))
            else:
                parts.append((1, ident))
        return tuple(parts)

    def _cmpKey(self) -> tuple:
        # A release outranks any prerelease of the same core
        releaseFlag = 1 if not self.prerelease else 0
        return (self.major, self.minor, self.patch, releaseFlag, self._prereleaseCmpKey())

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, SemVer):
            return NotImplemented
        return self._cmpKey() == other._cmpKey()

    def __hash__(self) -> int:
        return hash(self._cmpKey())

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, SemVer):
            return NotImplemented
        return self._cmpKey() < other._cmpKey()



def parseSemVer(raw: str) -> SemVer:
    """
    Parse a version string, padding missing components with zeroes.

        "1"          -> 1.0.0
        "1.20"       -> 1.20.0
        "1.20.1"     -> 1.20.1
        "v1.2.3-rc1" -> 1.2.3-rc1

    Rejected: "", ".1", "1.", "1..3", "1.2.3.4", "01.2.3".
    """
    if not isinstance(raw, str):
        raise TypeError(f"Version string must be a string type, got {type(raw).__name__}")

    raw = raw.strip()
    if not raw:
        raise ValueError("Version string cannot be empty or whitespace only")

    if raw.startswith("v") and len(raw) > 1 and raw[1].isdigit():
        raw = raw[1:]

    sepIndex = len(raw)
    for ch in ("-", "+"):
        idx = raw.find(ch)
        if idx != -1 and idx < sepIndex:
            sepIndex = idx

    core = raw[:sepIndex]
    suffix = raw[sepIndex:]

    coreParts = core.split(".")
    if not 1 <= len(coreParts) <= 3:
        raise ValueError(f"Invalid version core {core!r} in {raw!r}")
    numericParts: list[int] = []
    for part in coreParts:
        if not re.fullmatch(r"0|[1-9]\d*", part):
            raise ValueError(f"Invalid numeric component {part!r} in version {raw!r}")
        numericParts.append(int(part))
    while len(numericParts) < 3:
        numericParts.append(0)

    major, minor, patch = numericParts
    mtch = SEMVER_PATTERN_RE.match(f"{major}.{minor}.{patch}{suffix}")
    if not mtch:
        raise ValueError(f"Invalid semantic version {raw!r}")

    prereleaseGroup = mtch.group("prerelease")
    prerelease = tuple(prereleaseGroup.split(".")) if prereleaseGroup else ()
    return SemVer(major=major, minor=minor, patch=patch, prerelease=prerelease)



def isReleaseVersion(raw: str) -> bool:
    return isinstance(raw, str) and RELEASE_VERSION_RE.match(raw) is not None



def sortNewestFirst(versions: Iterable[str]) -> list[str]:
    """Sort version strings newest first; unparsable entries are dropped."""
    parsed: list[tuple[SemVer, str]] = []
    for raw in versions:
        try:
            parsed.append((parseSemVer(raw), raw))
        except (TypeError, ValueError):
            continue
    parsed.sort(key=lambda pair: pair[0], reverse=True)
    return [raw for _version, raw in parsed]
