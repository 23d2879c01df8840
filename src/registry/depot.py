"""Reference registry snapshots kept by the package manager's depots.

The package manager stores each registry either as an unpacked git checkout
(``<depot>/registries/<name>/``, older layout) or as a compressed archive with
a small TOML descriptor next to it (``<depot>/registries/<name>.tar.gz`` and
``<name>.toml``, newer layout). This module only ever reads them: they serve
as a freshness oracle for the mirror, as the source of registry URLs, and as
the "what does my local registry know" comparison point.
"""
from __future__ import annotations

import logging
import os
import tarfile
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence

try:
    import tomllib as toml  # type: ignore
except ImportError:
    import tomli as toml  # type: ignore

from constants import Constants
from common.git import head_commit_time
from registry.errors import NoVersionsFound
from registry.manifest import manifest_path, parse_versions

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RegistryInfo:
    """A registry reachable through one of the depots."""
    name: str
    url: Optional[str]
    uuid: Optional[str]
    path: str  # directory or tarball holding the registry


def default_depot_paths() -> List[str]:
    """Depots from ``JULIA_DEPOT_PATH``; empty entries expand to the user depot."""
    user_depot = os.path.join(os.path.expanduser("~"), Constants.DEFAULT_DEPOT_DIR)
    raw = os.environ.get(Constants.ENV_DEPOT_PATH)
    if not raw:
        return [user_depot]
    depots: List[str] = []
    for entry in raw.split(os.pathsep):
        path = entry if entry else user_depot
        if path not in depots:
            depots.append(path)
    return depots


def registry_directory(name: str, depots: Sequence[str]) -> Optional[str]:
    """Return the first unpacked ``registries/<name>`` directory, if any."""
    for depot in depots:
        path = os.path.join(depot, Constants.REGISTRIES_DIR, name)
        if os.path.isdir(path):
            return path
    return None


def registry_tarball(name: str, depots: Sequence[str]) -> Optional[str]:
    """Return the first ``registries/<name>.tar.gz`` archive, if any."""
    for depot in depots:
        path = os.path.join(depot, Constants.REGISTRIES_DIR, name + Constants.TARBALL_SUFFIX)
        if os.path.isfile(path):
            return path
    return None


def tarball_last_update(path: str) -> Optional[datetime]:
    """Modification time of an archive as UTC, or None."""
    try:
        mtime = os.stat(path).st_mtime
    except OSError as exc:
        logger.debug("Failed to stat registry tarball %s: %s", path, exc)
        return None
    return datetime.fromtimestamp(round(mtime), tz=timezone.utc)


def reference_last_update(name: str, depots: Sequence[str]) -> Optional[datetime]:
    """Most recent update time of the reference snapshot across both layouts."""
    newest: Optional[datetime] = None

    tarball = registry_tarball(name, depots)
    if tarball is not None:
        newest = tarball_last_update(tarball)

    directory = registry_directory(name, depots)
    if directory is not None:
        dir_time = head_commit_time(directory)
        if dir_time is not None and (newest is None or dir_time > newest):
            newest = dir_time

    return newest


def _normalize_member(name: str) -> str:
    return name[2:] if name.startswith("./") else name


def _read_tar_member(tar_path: str, member_path: str) -> Optional[bytes]:
    """Read one file out of a registry archive; None when absent or unreadable."""
    try:
        with tarfile.open(tar_path, "r:gz") as tar:
            for member in tar:
                if member.isfile() and _normalize_member(member.name) == member_path:
                    handle = tar.extractfile(member)
                    return handle.read() if handle is not None else None
    except (OSError, tarfile.TarError) as exc:
        logger.debug("Failed to read %s from %s: %s", member_path, tar_path, exc)
    return None


def _parse_registry_toml(data: bytes) -> Dict[str, Any]:
    try:
        parsed = toml.loads(data.decode("utf-8"))
    except (UnicodeDecodeError, ValueError) as exc:
        logger.debug("Invalid %s: %s", Constants.REGISTRY_FILE, exc)
        return {}
    return parsed if isinstance(parsed, dict) else {}


def _info_from_directory(path: str) -> Optional[RegistryInfo]:
    registry_file = os.path.join(path, Constants.REGISTRY_FILE)
    try:
        with open(registry_file, "rb") as fh:
            meta = _parse_registry_toml(fh.read())
    except OSError:
        return None
    name = meta.get("name") or os.path.basename(path)
    return RegistryInfo(name=name, url=meta.get("repo"), uuid=meta.get("uuid"), path=path)


def _info_from_descriptor(descriptor: str) -> Optional[RegistryInfo]:
    try:
        with open(descriptor, "rb") as fh:
            desc = _parse_registry_toml(fh.read())
    except OSError:
        return None
    rel = desc.get("path")
    if not isinstance(rel, str) or not rel.endswith(Constants.TARBALL_SUFFIX):
        return None
    tar_path = os.path.join(os.path.dirname(descriptor), rel)
    if not os.path.isfile(tar_path):
        return None
    data = _read_tar_member(tar_path, Constants.REGISTRY_FILE)
    meta = _parse_registry_toml(data) if data else {}
    name = meta.get("name") or os.path.basename(descriptor)[: -len(".toml")]
    return RegistryInfo(name=name, url=meta.get("repo"), uuid=meta.get("uuid") or desc.get("uuid"), path=tar_path)


def list_registries(depots: Sequence[str]) -> List[RegistryInfo]:
    """List registries reachable in ``depots``; the first depot wins on name clashes."""
    found: Dict[str, RegistryInfo] = {}
    for depot in depots:
        root = os.path.join(depot, Constants.REGISTRIES_DIR)
        try:
            entries = sorted(os.listdir(root))
        except OSError:
            continue
        for entry in entries:
            full = os.path.join(root, entry)
            info = None
            if os.path.isdir(full):
                info = _info_from_directory(full)
            elif entry.endswith(".toml"):
                info = _info_from_descriptor(full)
            if info is not None and info.name not in found:
                found[info.name] = info
    return list(found.values())


def find_registry(name: str, depots: Sequence[str]) -> Optional[RegistryInfo]:
    """Return the reachable registry called ``name``, if any."""
    for info in list_registries(depots):
        if info.name == name:
            return info
    return None


def local_latest_version(name: str, package: str, depots: Sequence[str]) -> Optional[str]:
    """Last version listed for ``package`` in the reference snapshot, or None.

    Never raises: any failure means "unknown".
    """
    rel = manifest_path(package)
    if rel is None:
        return None

    text: Optional[str] = None
    directory = registry_directory(name, depots)
    if directory is not None:
        try:
            with open(os.path.join(directory, *rel.split("/")), encoding="utf-8") as fh:
                text = fh.read()
        except OSError:
            text = None
    if text is None:
        tarball = registry_tarball(name, depots)
        if tarball is not None:
            data = _read_tar_member(tarball, rel)
            text = data.decode("utf-8", errors="replace") if data is not None else None
    if text is None:
        return None

    try:
        return parse_versions(text)[-1].version
    except NoVersionsFound:
        return None
