"""CLI Registry utilities: show, list, select and refresh registries."""

import logging
import sys

from constants import ExitCodes
from config import set_active_registry
from formatting import format_relative_time, format_timestamp
from registry.depot import list_registries, reference_last_update
from registry.errors import MirrorUnavailable, RegistryConfigError
from registry.mirror import MirrorManager

logger = logging.getLogger(__name__)


def _describe_time(dt):
    if dt is None:
        return "unknown"
    return f"{format_timestamp(dt)} UTC ({format_relative_time(dt)})"


def show_registry(config, out=None):
    """Print the active registry, its mirror and freshness information."""
    out = out or sys.stdout
    mirror = MirrorManager(config)
    path = mirror.mirror_path()
    print(f"Registry: {config.name}", file=out)
    print(f"URL: {config.url}", file=out)
    if MirrorManager.is_valid(path):
        print(f"Mirror: {path}", file=out)
        print(f"Mirror updated: {_describe_time(MirrorManager.last_update_time(path))}", file=out)
    else:
        print(f"Mirror: {path} (not cloned yet)", file=out)
    print(f"Local registry updated: {_describe_time(reference_last_update(config.name, config.depot_paths))}",
          file=out)
    return ExitCodes.SUCCESS.value


def list_available(depots, active=None, out=None):
    """Print registries reachable in ``depots``; the active one is starred."""
    out = out or sys.stdout
    registries = list_registries(depots)
    if not registries:
        logger.warning("No registries found in %s", ", ".join(depots) or "any depot")
        return ExitCodes.SUCCESS.value
    for info in registries:
        marker = "*" if info.name == active else " "
        print(f"{marker} {info.name}  {info.url or '(no url)'}", file=out)
    return ExitCodes.SUCCESS.value


def use_registry(name, depots, config_path=None):
    """Validate and persist the active registry."""
    try:
        info = set_active_registry(name, depots, config_path)
    except RegistryConfigError as e:
        logger.error("%s", e)
        return ExitCodes.CONFIG_ERROR.value
    except OSError as e:
        logger.error("Config file couldn't be written to disk: %s", e)
        return ExitCodes.FILE_ERROR.value
    logger.info("Active registry is now %s (%s)", info.name, info.url or "no url")
    return ExitCodes.SUCCESS.value


def refresh_registry(config, out=None):
    """Clone the mirror if needed and fetch upstream unconditionally."""
    out = out or sys.stdout
    mirror = MirrorManager(config)
    try:
        refreshed = mirror.force_refresh()
    except MirrorUnavailable as e:
        logger.error("%s: %s", e, e.cause or "unknown cause")
        return ExitCodes.CONNECTION_ERROR.value
    if not refreshed:
        return ExitCodes.CONNECTION_ERROR.value
    path = mirror.mirror_path()
    print(f"{config.name} mirror updated: {_describe_time(MirrorManager.last_update_time(path))}", file=out)
    return ExitCodes.SUCCESS.value
