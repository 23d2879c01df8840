"""Find when a version entry first appeared in a manifest's history.

Uses git's pickaxe (``log -S``) on the literal section header. Headers are
unique per version within a manifest, so the oldest commit that changed the
number of occurrences of ``["<version>"]`` is the one that introduced it.
"""
from __future__ import annotations

import logging
from datetime import datetime

from common.git import GitCommandError, epoch_to_utc, run_git
from common.logging_utils import Timer, extra_context, is_debug_enabled
from registry.errors import ManifestUnreadable, VersionNotFound

logger = logging.getLogger(__name__)


def section_header(version: str) -> str:
    return f'["{version}"]'


def find_introduction_time(
    mirror_path: str, rel_path: str, version: str, rev: str = "HEAD"
) -> datetime:
    """Return the UTC commit time of the oldest commit touching ``version``'s header.

    Args:
        mirror_path: Bare mirror directory.
        rel_path: Manifest path relative to the repository root.
        version: Concrete version string.
        rev: Revision to walk history back from.

    Raises:
        VersionNotFound: If no commit in the history matches.
        ManifestUnreadable: If git cannot search the history.
    """
    args = [
        "log", "-S", section_header(version),
        "--format=%ct", "--reverse", rev, "--", rel_path,
    ]
    with Timer() as t:
        try:
            output = run_git(args, repo=mirror_path)
        except GitCommandError as exc:
            raise ManifestUnreadable(
                f"History search for version {version} in {rel_path} failed", cause=exc
            ) from exc

    if is_debug_enabled(logger):
        logger.debug(
            "Pickaxe search finished",
            extra=extra_context(
                event="history_search",
                component="history",
                target=rel_path,
                version=version,
                duration_ms=t.duration_ms(),
            ),
        )

    lines = [line for line in output.splitlines() if line.strip()]
    if not lines:
        raise VersionNotFound(f"Version {version} not found in history of {rel_path}")
    try:
        return epoch_to_utc(lines[0])
    except ValueError as exc:
        raise ManifestUnreadable(f"Unexpected git log output: {lines[0]!r}", cause=exc) from exc
