"""Human-readable rendering of query results and JSON export."""

import json
import logging
from datetime import datetime, timezone
from typing import List, Optional, Sequence

import semantic_version

from constants import Constants

logger = logging.getLogger(__name__)

_UNITS = (
    # (unit, seconds per unit, upper bound in that unit before moving on)
    ("second", 1, 60),
    ("minute", 60, 60),
    ("hour", 3600, 24),
    ("day", 86400, 7),
    ("week", 7 * 86400, 4),
    ("month", 30.44 * 86400, 12),
)
_YEAR = 365.25 * 86400


def _plural(n: int, unit: str) -> str:
    return f"{n} {unit}" if n == 1 else f"{n} {unit}s"


def format_relative_time(dt: datetime, now: Optional[datetime] = None) -> str:
    """Format a UTC datetime relative to ``now``, e.g. ``"3 days ago"``."""
    now = now or datetime.now(timezone.utc)
    seconds = max(0.0, (now - dt).total_seconds())
    for unit, size, limit in _UNITS:
        if seconds / size < limit:
            return f"{_plural(round(seconds / size), unit)} ago"
    return f"{_plural(round(seconds / _YEAR), 'year')} ago"


def format_timestamp(dt: datetime) -> str:
    return dt.astimezone(timezone.utc).strftime(Constants.DISPLAY_TIME_FORMAT)


def format_when_output(result, now: Optional[datetime] = None) -> str:
    """One-line summary: ``Pkg@1.2.3 registered 3 days ago (2024-01-01 10:00:00 UTC)``."""
    line = (
        f"{result.package}@{result.version} registered "
        f"{format_relative_time(result.timestamp, now)} ({format_timestamp(result.timestamp)} UTC)"
    )
    if result.yanked:
        line += " [YANKED]"
    return line


def format_pending_proposal(proposal, now: Optional[datetime] = None) -> str:
    opened = format_relative_time(proposal.created_at, now) if proposal.created_at else "at an unknown time"
    marker = " [AutoMerge]" if proposal.automerge else ""
    return f"  PR #{proposal.number}: {proposal.title}\n    by @{proposal.author}, opened {opened}{marker}"


def _coerce(version: str) -> Optional[semantic_version.Version]:
    try:
        return semantic_version.Version.coerce(version)
    except ValueError:
        return None


def local_registry_note(local_version: Optional[str], mirror_version: str) -> Optional[str]:
    """Note shown when the package manager's registry disagrees with the mirror.

    Returns None when the versions match or cannot be compared.
    """
    if not local_version or local_version == mirror_version:
        return None
    local, mirror = _coerce(local_version), _coerce(mirror_version)
    if local is None or mirror is None:
        return None
    if local < mirror:
        return (
            f"Note: your local registry lists {local_version} as latest; "
            f"update it to see {mirror_version}"
        )
    if local > mirror:
        return f"Note: your local registry lists {local_version}, newer than the mirror ({mirror_version})"
    return None


def batch_to_json(entries: Sequence) -> List[dict]:
    return [entry.to_dict() for entry in entries]


def export_json(entries: Sequence, path: str) -> None:
    """Write batch results to ``path`` as JSON.

    Raises:
        OSError: If the file cannot be written.
    """
    with open(path, "w", encoding="utf-8") as file:
        json.dump(batch_to_json(entries), file, ensure_ascii=False, indent=4)
    logger.info("JSON file has been successfully exported at: %s", path)
