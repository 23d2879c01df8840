"""pkgwhen - find out when package versions were registered

Answers "when was version X of package P registered?" by searching the git
history of a local mirror of the registry.

    Returns:
        int: Exit code
"""
import logging
import sys

from args import parse_args
from cli_registry import list_available, refresh_registry, show_registry, use_registry
from cli_shell import ShellSession
from cli_when import run_when
from common.logging_utils import configure_logging, extra_context, is_debug_enabled
from config import configured_registry_name, load_settings, resolve_registry_config
from constants import ExitCodes
from registry.depot import default_depot_paths
from registry.errors import RegistryConfigError


def main(argv=None):
    """Main function of the program."""
    logger = logging.getLogger(__name__)

    args = parse_args(argv)
    configure_logging("ERROR" if args.QUIET else args.LOG_LEVEL, args.LOG_FILE)

    if is_debug_enabled(logger):
        logger.debug(
            "CLI start",
            extra=extra_context(event="function_entry", component="cli", action=args.COMMAND)
        )

    settings = load_settings(args.CONFIG)

    # list/use must work even when the configured registry is broken
    if args.COMMAND == "registry" and args.REGISTRY_ACTION in ("list", "use"):
        depots = default_depot_paths()
        if args.REGISTRY_ACTION == "use":
            return use_registry(args.NAME, depots, args.CONFIG)
        active = args.REGISTRY or configured_registry_name(settings)
        return list_available(depots, active=active)

    try:
        config = resolve_registry_config(settings, name=args.REGISTRY)
    except RegistryConfigError as e:
        logger.error("%s", e)
        return ExitCodes.CONFIG_ERROR.value

    if args.COMMAND == "when":
        code = run_when(args, config, settings)
    elif args.COMMAND == "shell":
        code = ShellSession(config, settings).run()
    elif args.REGISTRY_ACTION == "show":
        code = show_registry(config)
    else:
        code = refresh_registry(config)

    if is_debug_enabled(logger):
        logger.debug(
            "CLI finished",
            extra=extra_context(event="function_exit", component="cli", action=args.COMMAND, outcome=code)
        )
    return code


if __name__ == "__main__":
    sys.exit(main())
