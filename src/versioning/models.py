"""Data models for versioning and package queries."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional

from constants import Constants


class ResolutionMode(Enum):
    """Resolution strategy derived from the requested specifier."""
    LATEST = "latest"
    EXACT = "exact"
    PARTIAL = "partial"


@dataclass(frozen=True)
class VersionEntry:
    """One section of a package's version manifest."""
    version: str
    yanked: bool = False


@dataclass
class PackageRequest:
    """A single package lookup parsed from user input."""
    package: str
    specifier: Optional[str]  # None means "latest"
    mode: ResolutionMode
    raw_token: Optional[str] = None


@dataclass
class QueryResult:
    """Outcome of a registration-time query for one package version."""
    package: str
    version: str
    timestamp: datetime  # always timezone-aware UTC
    yanked: bool
    requested_spec: Optional[str] = None
    registry: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "package": self.package,
            "version": self.version,
            "registered": self.timestamp.strftime(Constants.DISPLAY_TIME_FORMAT),
            "registeredEpoch": int(self.timestamp.timestamp()),
            "yanked": self.yanked,
            "requested_spec": self.requested_spec,
            "registry": self.registry,
        }


@dataclass
class BatchEntry:
    """Per-package slot in a batch query: exactly one of result/error is set."""
    request: PackageRequest
    result: Optional[QueryResult] = None
    error: Optional[Exception] = None

    @property
    def ok(self) -> bool:
        return self.error is None and self.result is not None

    def to_dict(self) -> Dict[str, Any]:
        if self.ok:
            return self.result.to_dict()  # type: ignore[union-attr]
        return {
            "package": self.request.package,
            "requested_spec": self.request.specifier,
            "error": {
                "kind": getattr(self.error, "kind", type(self.error).__name__),
                "message": str(self.error),
            },
        }
