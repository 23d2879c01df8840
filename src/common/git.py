"""Thin wrapper around the ``git`` command line.

All repository access goes through :func:`run_git` so that error handling,
environment and DEBUG traces are uniform. Commands never prompt for
credentials; a remote asking for authentication fails instead of blocking.
"""
from __future__ import annotations

import logging
import os
import subprocess
from datetime import datetime, timezone
from typing import Dict, List, Optional, Sequence

from common.logging_utils import Timer, extra_context, is_debug_enabled

logger = logging.getLogger(__name__)

GIT_EXECUTABLE = "git"


class GitCommandError(Exception):
    """A git invocation failed or git is not installed."""

    def __init__(self, args: Sequence[str], returncode: Optional[int], stderr: str = ""):
        self.command = list(args)
        self.returncode = returncode
        self.stderr = (stderr or "").strip()
        detail = self.stderr or "no output"
        if returncode is None:
            message = f"git could not be executed: {detail}"
        else:
            message = f"git {' '.join(self.command)} exited with {returncode}: {detail}"
        super().__init__(message)

    @property
    def is_authentication_failure(self) -> bool:
        text = self.stderr.lower()
        return "authentication" in text or "could not read username" in text


def _git_env() -> Dict[str, str]:
    env = dict(os.environ)
    env["GIT_TERMINAL_PROMPT"] = "0"
    env["LC_ALL"] = "C"
    return env


def run_git(args: List[str], *, repo: Optional[str] = None) -> str:
    """Run a git command and return its stdout.

    Args:
        args: Arguments after ``git`` (and after ``-C <repo>`` when given).
        repo: Repository directory passed as ``-C``.

    Returns:
        Decoded standard output.

    Raises:
        GitCommandError: On a non-zero exit or when git is missing.
    """
    cmd = [GIT_EXECUTABLE]
    if repo is not None:
        cmd += ["-C", repo]
    cmd += args

    with Timer() as t:
        try:
            result = subprocess.run(  # noqa: S603
                cmd,
                capture_output=True,
                text=True,
                encoding="utf-8",
                errors="replace",
                env=_git_env(),
                check=False,
            )
        except OSError as exc:
            raise GitCommandError(args, None, str(exc)) from exc

    if is_debug_enabled(logger):
        logger.debug(
            "git command finished",
            extra=extra_context(
                event="git_command",
                component="git",
                action=args[0] if args else None,
                outcome="success" if result.returncode == 0 else "failure",
                returncode=result.returncode,
                duration_ms=t.duration_ms(),
                repo=repo,
            ),
        )

    if result.returncode != 0:
        raise GitCommandError(args, result.returncode, result.stderr)
    return result.stdout


def epoch_to_utc(value: str) -> datetime:
    """Convert a raw epoch-seconds string from ``--format=%ct`` to an aware UTC datetime."""
    return datetime.fromtimestamp(int(value.strip()), tz=timezone.utc)


def head_commit_time(repo: str, rev: str = "HEAD") -> Optional[datetime]:
    """Return the commit time of ``rev`` in ``repo`` as UTC, or None.

    Soft-fails on anything that is not a repository with at least one commit;
    callers use this for freshness comparisons only.
    """
    try:
        output = run_git(["log", "-1", "--format=%ct", rev], repo=repo)
        return epoch_to_utc(output)
    except (GitCommandError, ValueError) as exc:
        logger.debug("Failed to read commit time of %s in %s: %s", rev, repo, exc)
        return None
