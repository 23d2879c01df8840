"""Query orchestration: from a package name and specifier to a registration time.

Each query runs linearly through the stages of :class:`QueryStage`. All reads
inside one query are pinned to the mirror tip captured right after the
freshness check, so an interleaved refresh cannot mix two views of history.
"""
from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime
from enum import Enum
from typing import List, Optional, Sequence, Tuple, Union

from config import load_settings, resolve_registry_config
from constants import Constants
from common.logging_utils import Timer, extra_context, is_debug_enabled
from registry.errors import ManifestUnreadable, PackageNotFound, RegistryQueryError
from registry.history import find_introduction_time
from registry.manifest import is_version_yanked, locate_package, parse_versions, read_manifest_text
from registry.mirror import MirrorManager
from versioning.models import BatchEntry, PackageRequest, QueryResult
from versioning.parser import parse_package_token
from versioning.resolver import resolve_version

logger = logging.getLogger(__name__)


class QueryStage(Enum):
    """Per-query progress, logged at DEBUG level."""
    IDLE = "Idle"
    MIRROR_ENSURING = "MirrorEnsuring"
    LOCATING_PACKAGE = "LocatingPackage"
    READING_MANIFEST = "ReadingManifest"
    RESOLVING = "Resolving"
    LOCATING_HISTORY = "LocatingHistory"
    DONE = "Done"
    FAILED = "Failed"


class RegistryQueryService:
    """Answer "when was this version registered" for one registry configuration."""

    def __init__(self, config, mirror: Optional[MirrorManager] = None):
        self.config = config
        self.mirror = mirror or MirrorManager(config)

    def _trace(self, package: str, stage: QueryStage, **fields) -> None:
        if is_debug_enabled(logger):
            logger.debug(
                "Query stage",
                extra=extra_context(
                    event="query_stage",
                    component="service",
                    registry=self.config.name,
                    package=package,
                    stage=stage.value,
                    **fields,
                ),
            )

    def _read_manifest(self, path: str, package: str, rev: str) -> Tuple[str, str]:
        rel = locate_package(path, package, rev)
        if rel is None:
            raise PackageNotFound(f"Package '{package}' not found in registry {self.config.name}")
        self._trace(package, QueryStage.READING_MANIFEST, target=rel)
        try:
            return rel, read_manifest_text(path, rel, rev)
        except ManifestUnreadable:
            # the manifest vanished between the existence check and the read
            if locate_package(path, package, rev) is None:
                raise PackageNotFound(
                    f"Package '{package}' not found in registry {self.config.name}"
                ) from None
            raise

    def query(self, package: str, spec: Optional[str] = None) -> QueryResult:
        """Resolve ``spec`` for ``package`` and find when that version was registered.

        Args:
            package: Package name as written in the registry.
            spec: Exact or partial version; None (or blank) means latest.

        Returns:
            QueryResult with the resolved version, UTC timestamp and yanked flag.

        Raises:
            RegistryQueryError: Any fatal kind, with package and specifier attached.
        """
        if spec is not None and not spec.strip():
            spec = None
        stage = QueryStage.IDLE
        with Timer() as t:
            try:
                stage = QueryStage.MIRROR_ENSURING
                self._trace(package, stage)
                path = self.mirror.ensure_fresh()
                rev = self.mirror.tip_commit(path)

                stage = QueryStage.LOCATING_PACKAGE
                self._trace(package, stage, commit=rev)
                rel, text = self._read_manifest(path, package, rev)

                stage = QueryStage.RESOLVING
                self._trace(package, stage, spec=spec)
                entries = parse_versions(text, include_yanked=True)
                version = resolve_version(entries, spec, package=package)
                yanked = is_version_yanked(text, version)

                stage = QueryStage.LOCATING_HISTORY
                self._trace(package, stage, version=version)
                timestamp = find_introduction_time(path, rel, version, rev)
            except RegistryQueryError as exc:
                exc.with_context(package, spec)
                self._trace(package, QueryStage.FAILED, failed_stage=stage.value, kind=exc.kind)
                raise

        self._trace(package, QueryStage.DONE, version=version, duration_ms=t.duration_ms())
        return QueryResult(
            package=package,
            version=version,
            timestamp=timestamp,
            yanked=yanked,
            requested_spec=spec,
            registry=self.config.name,
        )

    def latest_version(self, package: str) -> str:
        """Last version listed in the package's manifest at the mirror tip."""
        return self.query(package, None).version

    def _run_one(self, request: PackageRequest) -> BatchEntry:
        try:
            return BatchEntry(request=request, result=self.query(request.package, request.specifier))
        except RegistryQueryError as exc:
            logger.debug("Query for %s failed: %s", request.package, exc)
            return BatchEntry(request=request, error=exc)

    def query_many(
        self,
        requests: Sequence[Union[PackageRequest, str]],
        max_workers: int = Constants.DEFAULT_MAX_WORKERS,
    ) -> List[BatchEntry]:
        """Run several queries concurrently; results keep input order.

        A failing package yields a BatchEntry carrying its error and never
        aborts its siblings. String tokens are parsed with
        :func:`versioning.parser.parse_package_token`.
        """
        parsed = [r if isinstance(r, PackageRequest) else parse_package_token(r) for r in requests]
        if not parsed:
            return []
        # clone once up front so workers do not all queue on the clone lock
        try:
            self.mirror.ensure()
        except RegistryQueryError as exc:
            return [BatchEntry(request=r, error=exc) for r in parsed]

        workers = max(1, min(max_workers, len(parsed)))
        with ThreadPoolExecutor(max_workers=workers) as executor:
            return list(executor.map(self._run_one, parsed))


def when(package_spec: str, config=None) -> datetime:
    """Registration time of ``Name`` or ``Name@version`` in the given registry.

    Uses the configured default registry when ``config`` is None.
    """
    if config is None:
        config = resolve_registry_config(load_settings())
    request = parse_package_token(package_spec)
    return RegistryQueryService(config).query(request.package, request.specifier).timestamp
