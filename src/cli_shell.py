"""Interactive shell: run ``when`` and ``registry`` commands in one session.

The session owns its registry configuration; ``registry use`` inside the
shell switches that value for the session only and never touches the
settings file.
"""

from __future__ import annotations

import logging
import shlex
import sys
from typing import List, Optional, Tuple

from cli_registry import list_available, refresh_registry, show_registry
from cli_when import run_when_queries
from config import max_workers, resolve_registry_config
from constants import ExitCodes
from registry.depot import find_registry
from registry.errors import RegistryConfigError

logger = logging.getLogger(__name__)

PROMPT = "pkgwhen> "

HELP_TEXT = """\
Commands:
  when PKG[@VERSION] ...       show when package versions were registered
  registry show                show the active registry
  registry list                list registries known to the package manager
  registry use NAME            switch the registry for this session
  registry refresh             fetch the latest registry state
  help, ?                      show this help
  exit, quit                   leave the shell"""


def parse_shell_command(line: str) -> Optional[Tuple[str, List[str]]]:
    """Split a shell line into (command, arguments); None for blank lines.

    Raises:
        ValueError: On unbalanced quotes.
    """
    parts = shlex.split(line)
    if not parts:
        return None
    return parts[0].lower(), parts[1:]


class ShellSession:
    """State for one interactive session."""

    def __init__(self, config, settings, out=None):
        self.config = config
        self.settings = settings
        self.out = out or sys.stdout

    def _print(self, text: str) -> None:
        print(text, file=self.out)

    def do_when(self, args: List[str]) -> int:
        if not args:
            logger.error("Usage: when PKG[@VERSION] ...")
            return ExitCodes.QUERY_ERROR.value
        return run_when_queries(args, self.config, workers=max_workers(self.settings), out=self.out)

    def do_registry(self, args: List[str]) -> int:
        action = args[0].lower() if args else "show"
        if action == "show":
            return show_registry(self.config, out=self.out)
        if action == "list":
            return list_available(self.config.depot_paths, active=self.config.name, out=self.out)
        if action == "refresh":
            return refresh_registry(self.config, out=self.out)
        if action == "use":
            if len(args) != 2:
                logger.error("Usage: registry use NAME")
                return ExitCodes.CONFIG_ERROR.value
            return self.switch_registry(args[1])
        logger.error("Unknown registry action '%s'; expected show, list, use or refresh", action)
        return ExitCodes.CONFIG_ERROR.value

    def switch_registry(self, name: str) -> int:
        if find_registry(name, self.config.depot_paths) is None:
            logger.error("Registry '%s' not found; see 'registry list'", name)
            return ExitCodes.CONFIG_ERROR.value
        try:
            self.config = resolve_registry_config(self.settings, name=name, depots=self.config.depot_paths)
        except RegistryConfigError as e:
            logger.error("%s", e)
            return ExitCodes.CONFIG_ERROR.value
        self._print(f"Registry set to {name} for this session")
        return ExitCodes.SUCCESS.value

    def handle(self, line: str) -> Optional[int]:
        """Run one line. Returns an exit code, or None to end the session."""
        try:
            parsed = parse_shell_command(line)
        except ValueError as e:
            logger.error("Cannot parse command: %s", e)
            return ExitCodes.QUERY_ERROR.value
        if parsed is None:
            return ExitCodes.SUCCESS.value
        command, args = parsed
        if command in ("exit", "quit"):
            return None
        if command in ("help", "?"):
            self._print(HELP_TEXT)
            return ExitCodes.SUCCESS.value
        if command == "when":
            return self.do_when(args)
        if command == "registry":
            return self.do_registry(args)
        logger.error("Unknown command '%s'. Type 'help' for available commands.", command)
        return ExitCodes.QUERY_ERROR.value

    def run(self, input_func=input) -> int:
        self._print(f"pkgwhen shell, registry {self.config.name}. Type 'help' for commands.")
        while True:
            try:
                line = input_func(PROMPT)
            except (EOFError, KeyboardInterrupt):
                self._print("")
                break
            if self.handle(line) is None:
                break
        return ExitCodes.SUCCESS.value
