"""Runtime configuration: settings file, cache/depot locations and the active registry.

The active registry is an explicit ``RegistryConfig`` value handed to the
query service; nothing here keeps process-wide mutable state. Settings are
read from YAML and never break the CLI: a missing or malformed file simply
yields defaults.
"""

from __future__ import annotations

import logging
import os
import re
from dataclasses import dataclass
from typing import Any, Dict, Optional, Sequence, Tuple

import yaml

from constants import Constants
from registry.depot import RegistryInfo, default_depot_paths, find_registry, list_registries
from registry.errors import RegistryConfigError

logger = logging.getLogger(__name__)

_GITHUB_URL_RE = re.compile(r"github\.com[:/]+([^/]+)/([^/]+?)(?:\.git)?/?$")


@dataclass(frozen=True)
class RegistryConfig:
    """Everything needed to query one registry."""

    name: str
    url: str
    cache_root: str
    depot_paths: Tuple[str, ...]
    primary_branch: str = Constants.PRIMARY_BRANCH
    issue_repo: Optional[str] = None

    @property
    def mirror_path(self) -> str:
        """Conventional mirror location, keyed by registry name."""
        safe_name = re.sub(r"[^A-Za-z0-9_.-]", "_", self.name)
        return os.path.join(self.cache_root, Constants.REGISTRIES_DIR, safe_name)


def issue_repo_from_url(url: Optional[str]) -> Optional[str]:
    """Derive ``owner/repo`` for the issue tracker from a GitHub remote URL."""
    if not url:
        return None
    m = _GITHUB_URL_RE.search(url)
    if not m:
        return None
    return f"{m.group(1)}/{m.group(2)}"


def default_config_path() -> str:
    """Settings file location honoring ``PKGWHEN_CONFIG`` and ``XDG_CONFIG_HOME``."""
    env_path = os.environ.get(Constants.ENV_CONFIG)
    if env_path:
        return env_path
    base = os.environ.get("XDG_CONFIG_HOME") or os.path.join(os.path.expanduser("~"), ".config")
    return os.path.join(base, Constants.CONFIG_DIR_NAME, Constants.CONFIG_FILE_NAME)


def default_cache_root(settings: Optional[Dict[str, Any]] = None) -> str:
    env_dir = os.environ.get(Constants.ENV_CACHE_DIR)
    if env_dir:
        return env_dir
    configured = (settings or {}).get("cache_dir")
    if isinstance(configured, str) and configured.strip():
        return os.path.expanduser(configured.strip())
    base = os.environ.get("XDG_CACHE_HOME") or os.path.join(os.path.expanduser("~"), ".cache")
    return os.path.join(base, Constants.CONFIG_DIR_NAME)


def load_settings(path: Optional[str] = None) -> Dict[str, Any]:
    """Load settings from YAML.

    Args:
        path: Explicit settings file; defaults to :func:`default_config_path`.

    Returns:
        Settings dict (empty when the file is absent or invalid).
    """
    config_path = path or default_config_path()
    if not os.path.isfile(config_path):
        if path:
            logger.warning("Config file not found: %s", config_path)
        return {}
    try:
        with open(config_path, "r", encoding="utf-8") as fh:
            data = yaml.safe_load(fh)
    except (OSError, yaml.YAMLError) as e:
        logger.error("Failed to load config %s: %s", config_path, e)
        return {}
    if not isinstance(data, dict):
        logger.warning("Ignoring config %s: top level is not a mapping", config_path)
        return {}
    return data


def save_settings(settings: Dict[str, Any], path: Optional[str] = None) -> str:
    """Write settings back as YAML, creating parent directories. Returns the path."""
    config_path = path or default_config_path()
    parent = os.path.dirname(config_path)
    if parent:
        os.makedirs(parent, exist_ok=True)
    with open(config_path, "w", encoding="utf-8") as fh:
        yaml.safe_dump(settings, fh, default_flow_style=False, sort_keys=True)
    return config_path


def _registry_section(settings: Dict[str, Any]) -> Dict[str, Any]:
    section = settings.get("registry")
    return section if isinstance(section, dict) else {}


def configured_registry_name(settings: Dict[str, Any]) -> Optional[str]:
    name = _registry_section(settings).get("name")
    return name if isinstance(name, str) and name else None


def max_workers(settings: Dict[str, Any]) -> int:
    try:
        value = int(settings.get("max_workers", Constants.DEFAULT_MAX_WORKERS))
    except (TypeError, ValueError):
        return Constants.DEFAULT_MAX_WORKERS
    return max(1, value)


def resolve_registry_config(
    settings: Optional[Dict[str, Any]] = None,
    name: Optional[str] = None,
    depots: Optional[Sequence[str]] = None,
) -> RegistryConfig:
    """Build the configuration for the active registry.

    Name precedence: explicit ``name`` > settings ``registry.name`` > General.
    URL precedence: settings ``registry.url`` (for that same registry) > the
    depot's ``Registry.toml`` > the built-in General URL.

    Raises:
        RegistryConfigError: If no URL can be determined.
    """
    settings = settings or {}
    section = _registry_section(settings)
    depot_paths = tuple(depots) if depots is not None else tuple(default_depot_paths())

    configured_name = configured_registry_name(settings)
    active = name or configured_name or Constants.DEFAULT_REGISTRY_NAME
    same_registry = configured_name in (None, active)

    url = section.get("url") if same_registry else None
    if not url:
        info = find_registry(active, depot_paths)
        url = info.url if info is not None else None
    if not url and active == Constants.DEFAULT_REGISTRY_NAME:
        url = Constants.DEFAULT_REGISTRY_URL
    if not url:
        raise RegistryConfigError(
            f"Registry '{active}' has no known URL; add it to the package manager "
            f"or set registry.url in {default_config_path()}"
        )

    branch = section.get("branch") if same_registry else None
    issue_repo = settings.get("issue_repo") if same_registry else None
    if active == Constants.DEFAULT_REGISTRY_NAME and not issue_repo:
        issue_repo = Constants.DEFAULT_ISSUE_REPO

    return RegistryConfig(
        name=active,
        url=url,
        cache_root=default_cache_root(settings),
        depot_paths=depot_paths,
        primary_branch=branch or Constants.PRIMARY_BRANCH,
        issue_repo=issue_repo or issue_repo_from_url(url),
    )


def set_active_registry(
    name: str,
    depots: Sequence[str],
    path: Optional[str] = None,
) -> RegistryInfo:
    """Persist ``name`` as the active registry after checking it is reachable.

    Raises:
        RegistryConfigError: If no depot provides a registry with that name.
    """
    info = find_registry(name, depots)
    if info is None:
        available = ", ".join(r.name for r in list_registries(depots)) or "none"
        raise RegistryConfigError(f"Registry '{name}' not found. Available registries: {available}")

    settings = load_settings(path)
    section = dict(_registry_section(settings))
    if section.get("name") != name:
        section.pop("url", None)
        section.pop("branch", None)
        settings.pop("issue_repo", None)
    section["name"] = name
    settings["registry"] = section
    saved = save_settings(settings, path)
    logger.info("Registry set to %s (%s)", name, saved)
    return info
