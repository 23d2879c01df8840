"""Local bare mirror of the registry repository.

The mirror lives under the cache root and is created on first use. It is
refreshed only when the package manager's own snapshot of the registry is
newer than the mirror tip, so repeated queries never touch the network.
"""
from __future__ import annotations

import logging
import os
import shutil
import threading
from datetime import datetime
from typing import Dict, Optional

from constants import Constants
from common.git import GitCommandError, head_commit_time, run_git
from common.logging_utils import Timer, extra_context, is_debug_enabled, safe_url
from registry.depot import reference_last_update
from registry.errors import MirrorUnavailable, RefreshFailed

logger = logging.getLogger(__name__)

_locks_guard = threading.Lock()
_locks: Dict[str, threading.Lock] = {}


def _lock_for(path: str) -> threading.Lock:
    """One lock per mirror directory, shared by every manager in the process."""
    key = os.path.abspath(path)
    with _locks_guard:
        lock = _locks.get(key)
        if lock is None:
            lock = threading.Lock()
            _locks[key] = lock
        return lock


class MirrorManager:
    """Create, validate and refresh the mirror for one registry configuration."""

    def __init__(self, config):
        self.config = config

    def mirror_path(self) -> str:
        return self.config.mirror_path

    @staticmethod
    def is_valid(path: str) -> bool:
        """A bare clone is usable once its ``config`` file exists."""
        return os.path.isfile(os.path.join(path, Constants.MIRROR_VALIDITY_FILE))

    def ensure(self) -> str:
        """Return the mirror path, cloning it first when missing or incomplete.

        Raises:
            MirrorUnavailable: If the clone fails.
        """
        path = self.mirror_path()
        with _lock_for(path):
            if not self.is_valid(path):
                self._clone(path)
        return path

    def _clone(self, path: str) -> None:
        tmp_path = path + ".tmp"
        logger.info("Cloning %s registry from %s (first use, this can take a while)",
                    self.config.name, safe_url(self.config.url))
        with Timer() as t:
            try:
                if os.path.exists(path):
                    logger.warning("Removing incomplete mirror at %s", path)
                    shutil.rmtree(path)
                shutil.rmtree(tmp_path, ignore_errors=True)
                os.makedirs(os.path.dirname(path), exist_ok=True)
                run_git(["clone", "--bare", "--quiet", self.config.url, tmp_path])
                os.replace(tmp_path, path)
            except (GitCommandError, OSError) as exc:
                shutil.rmtree(tmp_path, ignore_errors=True)
                shutil.rmtree(path, ignore_errors=True)
                raise MirrorUnavailable(
                    f"Failed to clone registry {self.config.name} from {safe_url(self.config.url)}",
                    cause=exc,
                ) from exc
        logger.info("Mirror ready at %s", path)
        if is_debug_enabled(logger):
            logger.debug(
                "Mirror cloned",
                extra=extra_context(
                    event="mirror_clone",
                    component="mirror",
                    registry=self.config.name,
                    duration_ms=t.duration_ms(),
                ),
            )

    @staticmethod
    def last_update_time(path: str) -> Optional[datetime]:
        """Commit time of the mirror tip as UTC, or None when unavailable."""
        return head_commit_time(path)

    def reference_time(self) -> Optional[datetime]:
        return reference_last_update(self.config.name, self.config.depot_paths)

    def is_stale(self, path: str) -> bool:
        """True when the reference snapshot is newer than the mirror tip.

        An unreadable mirror tip counts as stale; a missing reference snapshot
        never does.
        """
        mirror_time = self.last_update_time(path)
        if mirror_time is None:
            return True
        reference_time = self.reference_time()
        if reference_time is None:
            return False
        return reference_time > mirror_time

    def refresh(self, path: str) -> bool:
        """Fetch the primary branch and move the mirror tip to it.

        Failures are reported as a warning and the existing mirror stays in
        use. Returns True when the fetch succeeded.
        """
        branch = self.config.primary_branch
        remote_ref = f"refs/remotes/origin/{branch}"
        logger.info("Updating %s registry mirror", self.config.name)
        try:
            with Timer() as t:
                run_git(["fetch", "--quiet", "origin", f"+refs/heads/{branch}:{remote_ref}"], repo=path)
                commit = run_git(["rev-parse", remote_ref], repo=path).strip()
                run_git(["update-ref", f"refs/heads/{branch}", commit], repo=path)
                run_git(["symbolic-ref", "HEAD", f"refs/heads/{branch}"], repo=path)
        except GitCommandError as exc:
            failure = RefreshFailed(f"Failed to update {self.config.name} registry mirror", cause=exc)
            if exc.is_authentication_failure:
                logger.warning("%s: authentication required by %s; using existing mirror",
                               failure, safe_url(self.config.url))
            else:
                logger.warning("%s: %s; using existing mirror", failure, exc)
            return False
        if is_debug_enabled(logger):
            logger.debug(
                "Mirror refreshed",
                extra=extra_context(
                    event="mirror_refresh",
                    component="mirror",
                    registry=self.config.name,
                    commit=commit,
                    duration_ms=t.duration_ms(),
                ),
            )
        return True

    def ensure_fresh(self, force: bool = False) -> str:
        """Ensure the mirror exists and refresh it when stale (or when ``force``)."""
        path = self.ensure()
        with _lock_for(path):
            if force or self.is_stale(path):
                self.refresh(path)
        return path

    def force_refresh(self) -> bool:
        """Clone if needed, then fetch unconditionally. Returns the refresh outcome."""
        path = self.ensure()
        with _lock_for(path):
            return self.refresh(path)

    @staticmethod
    def tip_commit(path: str) -> str:
        """Commit id of the mirror tip; reads for one query are pinned to it.

        Raises:
            MirrorUnavailable: If the mirror has no resolvable HEAD.
        """
        try:
            return run_git(["rev-parse", "--verify", "HEAD^{commit}"], repo=path).strip()
        except GitCommandError as exc:
            raise MirrorUnavailable(f"Mirror at {path} has no usable HEAD", cause=exc) from exc
