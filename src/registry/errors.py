"""Error kinds raised by the registry query engine.

Fatal kinds abort the query they occur in and carry the package name, the
requested specifier and the underlying cause. ``RefreshFailed`` and
``IssueLookupFailed`` are non-fatal: they are swallowed where they occur.
"""
from __future__ import annotations

from typing import Optional


class RegistryQueryError(Exception):
    """Base class for all query failures."""

    kind = "QueryError"
    fatal = True

    def __init__(
        self,
        message: str,
        *,
        package: Optional[str] = None,
        specifier: Optional[str] = None,
        cause: Optional[BaseException] = None,
    ):
        super().__init__(message)
        self.package = package
        self.specifier = specifier
        self.cause = cause

    def with_context(self, package: Optional[str], specifier: Optional[str]) -> "RegistryQueryError":
        """Fill in package/specifier when the raising component did not know them."""
        if self.package is None:
            self.package = package
        if self.specifier is None:
            self.specifier = specifier
        return self


class RegistryConfigError(RegistryQueryError):
    """The active registry cannot be resolved to a usable configuration."""

    kind = "RegistryConfigError"


class MirrorUnavailable(RegistryQueryError):
    """Cloning the local mirror failed."""

    kind = "MirrorUnavailable"


class PackageNotFound(RegistryQueryError):
    """The package has no manifest at the mirror tip."""

    kind = "PackageNotFound"


class ManifestUnreadable(RegistryQueryError):
    """The manifest (or its history) could not be read from the mirror."""

    kind = "ManifestUnreadable"


class NoVersionsFound(RegistryQueryError):
    """The manifest holds no version sections."""

    kind = "NoVersionsFound"


class VersionNotFound(RegistryQueryError):
    """The specifier matches nothing, or the introducing commit cannot be found."""

    kind = "VersionNotFound"


class RefreshFailed(RegistryQueryError):
    """Fetching upstream changes failed; the existing mirror is used as-is."""

    kind = "RefreshFailed"
    fatal = False


class IssueLookupFailed(RegistryQueryError):
    """The issue tracker could not be queried; treated as no records."""

    kind = "IssueLookupFailed"
    fatal = False
