"""Locate, read and parse per-package version manifests inside the mirror.

The mirror is bare, so every read goes through git at an explicit revision
(the tip commit pinned by the caller) rather than through a working tree.

Manifest format::

    ["1.0.0"]
    git-tree-sha1 = "..."

    ["1.0.1"]
    git-tree-sha1 = "..."
    yanked = true
"""
from __future__ import annotations

import logging
import re
from typing import List, Optional

from constants import Constants
from common.git import GitCommandError, run_git
from registry.errors import ManifestUnreadable, NoVersionsFound
from versioning.models import VersionEntry

logger = logging.getLogger(__name__)

HEADER_RE = re.compile(r'^\["(.+?)"\]$')
YANKED_RE = re.compile(r"^yanked\s*=\s*true")


def manifest_path(package_name: str) -> Optional[str]:
    """Repository-relative manifest path for a package, or None for unusable names.

    Packages live under the uppercase first character of their name; git
    always expects ``/`` separators.
    """
    name = package_name.strip() if package_name else ""
    if not name or "/" in name or "\\" in name or name in (".", ".."):
        return None
    return f"{name[0].upper()}/{name}/{Constants.VERSIONS_FILE}"


def locate_package(mirror_path: str, package_name: str, rev: str = "HEAD") -> Optional[str]:
    """Return the manifest path if the package exists at ``rev``, else None."""
    rel = manifest_path(package_name)
    if rel is None:
        return None
    try:
        output = run_git(["ls-tree", rev, "--", rel], repo=mirror_path)
    except GitCommandError as exc:
        logger.debug("ls-tree failed for %s: %s", rel, exc)
        return None
    return rel if output.strip() else None


def read_manifest_text(mirror_path: str, rel_path: str, rev: str = "HEAD") -> str:
    """Read a manifest's content at ``rev``.

    Raises:
        ManifestUnreadable: If the path does not exist at ``rev`` or git fails.
    """
    try:
        return run_git(["show", f"{rev}:{rel_path}"], repo=mirror_path)
    except GitCommandError as exc:
        raise ManifestUnreadable(f"Cannot read {rel_path} at {rev}", cause=exc) from exc


def _iter_sections(text: str):
    """Yield (version, yanked) pairs in file order."""
    current: Optional[str] = None
    yanked = False
    for line in text.splitlines():
        line = line.rstrip()
        m = HEADER_RE.match(line)
        if m:
            if current is not None:
                yield current, yanked
            current = m.group(1)
            yanked = False
        elif current is not None and YANKED_RE.match(line):
            yanked = True
    if current is not None:
        yield current, yanked


def parse_versions(text: str, include_yanked: bool = True) -> List[VersionEntry]:
    """Parse manifest text into entries, preserving file order.

    Yanked sections are dropped when ``include_yanked`` is False but still end
    the previous section.

    Raises:
        NoVersionsFound: If the text has no version sections at all.
    """
    sections = list(_iter_sections(text))
    if not sections:
        raise NoVersionsFound("No versions found in manifest")
    return [
        VersionEntry(version=v, yanked=y)
        for v, y in sections
        if include_yanked or not y
    ]


def is_version_yanked(text: str, version: str) -> bool:
    """Direct section lookup: True if ``version``'s section carries the yanked marker."""
    for v, yanked in _iter_sections(text):
        if v == version:
            return yanked
    return False
