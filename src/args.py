"""Argument parsing functionality for pkgwhen."""

import argparse
from constants import Constants

LOG_LEVELS = ['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']


def _add_global_options(parser):
    parser.add_argument("--registry",
                        dest="REGISTRY",
                        help="Registry to query (default: configured registry, else General)",
                        action="store",
                        type=str)
    parser.add_argument("-c", "--config",
                        dest="CONFIG",
                        help="Path to configuration file (YAML)",
                        action="store",
                        type=str)
    parser.add_argument("--loglevel",
                        dest="LOG_LEVEL",
                        help="Set the logging level",
                        action="store",
                        type=str.upper,
                        choices=LOG_LEVELS)
    parser.add_argument("--logfile",
                        dest="LOG_FILE",
                        help="Log output file",
                        action="store",
                        type=str)
    parser.add_argument("-q", "--quiet",
                        dest="QUIET",
                        help="Only log errors.",
                        action="store_true")


def build_parser():
    """Build the top-level parser with its subcommands."""
    parser = argparse.ArgumentParser(
        prog="pkgwhen",
        description="Find out when package versions were registered",
        add_help=True,
    )
    _add_global_options(parser)
    sub = parser.add_subparsers(dest="COMMAND", metavar="COMMAND")
    sub.required = True

    when = sub.add_parser("when", help="Show when package versions were registered")
    when.add_argument("PACKAGES",
                      nargs="+",
                      metavar="PKG[@VERSION]",
                      help="Package name, optionally with an exact or partial version")
    when.add_argument("--json",
                      dest="JSON",
                      help="Print results as JSON",
                      action="store_true")
    when.add_argument("-o", "--output",
                      dest="OUTPUT",
                      help="Write results as JSON to this file",
                      action="store",
                      type=str)
    when.add_argument("--no-pending",
                      dest="NO_PENDING",
                      help="Skip the lookup of open registration pull requests",
                      action="store_true")
    when.add_argument("--workers",
                      dest="WORKERS",
                      help=f"Concurrent queries for several packages (default: {Constants.DEFAULT_MAX_WORKERS})",
                      action="store",
                      type=int)

    registry = sub.add_parser("registry", help="Show, list, select or refresh registries")
    registry_sub = registry.add_subparsers(dest="REGISTRY_ACTION", metavar="ACTION")
    registry_sub.required = True
    registry_sub.add_parser("show", help="Show the active registry")
    registry_sub.add_parser("list", help="List registries known to the package manager")
    use = registry_sub.add_parser("use", help="Select the active registry")
    use.add_argument("NAME", help="Registry name")
    registry_sub.add_parser("refresh", help="Fetch the latest registry state into the mirror")

    sub.add_parser("shell", help="Start an interactive session")
    return parser


def parse_args(argv=None):
    """Parses the arguments passed to the program."""
    return build_parser().parse_args(argv)
