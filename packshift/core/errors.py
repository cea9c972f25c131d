# packshift/core/errors.py
from __future__ import annotations

__all__ = [
    "PackshiftError",
    "ParseError",
    "MissingManifestError",
    "RegistryError",
    "PartialResolutionFailure",
    "FallbackUnavailable",
    "DependencyPinLookupFailure",
    "EmptyInputWarning",
    "BuildIncompleteWarning",
]



# ------------------------------------------------------------------ #
# Errors
# ------------------------------------------------------------------ #

class PackshiftError(RuntimeError):
    """Base class for every error raised by packshift."""

    def __init__(self, message: str, *, projectId: str | None = None) -> None:
        super().__init__(message)
        self.projectId: str | None = projectId



class ParseError(PackshiftError):
    """Raised when the uploaded archive or its index cannot be read. Fatal."""



class MissingManifestError(PackshiftError):
    """Raised when the archive has no modrinth.index.json. Fatal."""



class RegistryError(PackshiftError):
    """A registry/meta/release service answered with an unusable response."""

    def __init__(self, message: str, *, status: int | None = None, projectId: str | None = None) -> None:
        super().__init__(message, projectId=projectId)
        self.status: int | None = status



class PartialResolutionFailure(PackshiftError):
    """One identity (or one batch) could not be resolved; the run continues."""



class FallbackUnavailable(PackshiftError):
    """The secondary source errored or had no matching release."""



class DependencyPinLookupFailure(PackshiftError):
    """The loader version lookup failed; the previous pin is kept."""



# ------------------------------------------------------------------ #
# Warnings
# ------------------------------------------------------------------ #

class EmptyInputWarning(UserWarning):
    """The pack declares no hashed files, so there is nothing to resolve."""



class BuildIncompleteWarning(UserWarning):
    """Some available rows were left out of the rebuilt manifest."""
