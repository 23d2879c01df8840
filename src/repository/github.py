"""GitHub lookup of pending registration proposals.

Registrations land in the registry as pull requests. Open ones are found with
the GitHub CLI (``gh``) when it is installed, otherwise through the REST
search API. Every failure degrades to "no proposals": pending proposals are
informational and must never fail a query.
"""
from __future__ import annotations

import json
import logging
import os
import shutil
import subprocess
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional
from urllib.parse import quote

from constants import Constants
from common.http_client import get_json
from common.logging_utils import extra_context, is_debug_enabled, redact, safe_url
from registry.errors import IssueLookupFailed

logger = logging.getLogger(__name__)


@dataclass
class PendingProposal:
    """An open pull request mentioning a package."""
    number: int
    title: str
    author: str
    created_at: Optional[datetime]
    labels: List[str] = field(default_factory=list)

    @property
    def automerge(self) -> bool:
        return Constants.AUTOMERGE_LABEL in self.labels


def _parse_timestamp(value: Any) -> Optional[datetime]:
    if not isinstance(value, str) or len(value) < 19:
        return None
    try:
        return datetime.strptime(value[:19], "%Y-%m-%dT%H:%M:%S").replace(tzinfo=timezone.utc)
    except ValueError:
        return None


def proposal_from_record(record: Dict[str, Any]) -> Optional[PendingProposal]:
    """Build a proposal from either a ``gh --json`` record or a REST search item."""
    number = record.get("number")
    if not isinstance(number, int):
        return None
    author = record.get("author") or record.get("user") or {}
    labels = [
        label.get("name") for label in (record.get("labels") or [])
        if isinstance(label, dict) and label.get("name")
    ]
    return PendingProposal(
        number=number,
        title=str(record.get("title") or ""),
        author=str(author.get("login") or "unknown") if isinstance(author, dict) else "unknown",
        created_at=_parse_timestamp(record.get("createdAt") or record.get("created_at")),
        labels=labels,
    )


def search_query(package: str, repo: str) -> str:
    return f'repo:{repo} is:pr is:open "{package}"'


class GitHubProposalClient:
    """Find open pull requests for a package in the registry's GitHub repository.

    Supports optional authentication via the GITHUB_TOKEN environment variable
    for the REST fallback.
    """

    def __init__(self, repo: str, base_url: Optional[str] = None, token: Optional[str] = None):
        self.repo = repo
        self.base_url = base_url or Constants.GITHUB_API_BASE
        self.token = token or os.environ.get(Constants.ENV_GITHUB_TOKEN)

    def _get_headers(self) -> Dict[str, str]:
        headers = {"Accept": "application/vnd.github+json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    def _records_from_cli(self, package: str) -> List[Dict[str, Any]]:
        cmd = [
            Constants.GH_COMMAND, "pr", "list",
            "--repo", self.repo,
            "--search", search_query(package, self.repo),
            "--json", "number,title,createdAt,labels,author",
        ]
        try:
            result = subprocess.run(  # noqa: S603
                cmd,
                capture_output=True,
                text=True,
                timeout=Constants.GH_TIMEOUT_SEC,
                check=False,
            )
        except (OSError, subprocess.TimeoutExpired) as exc:
            raise IssueLookupFailed(f"{Constants.GH_COMMAND} could not be run", cause=exc) from exc
        if result.returncode != 0:
            raise IssueLookupFailed(
                f"{Constants.GH_COMMAND} pr list exited with {result.returncode}: {result.stderr.strip()}"
            )
        output = result.stdout.strip()
        if not output:
            return []
        try:
            data = json.loads(output)
        except json.JSONDecodeError as exc:
            raise IssueLookupFailed("Unparseable gh output", cause=exc) from exc
        return data if isinstance(data, list) else []

    def _records_from_api(self, package: str) -> List[Dict[str, Any]]:
        url = f"{self.base_url}/search/issues?q={quote(search_query(package, self.repo))}"
        if is_debug_enabled(logger):
            logger.debug(
                "Searching pull requests via REST",
                extra=extra_context(component="github", target=safe_url(url), token=redact(self.token)),
            )
        status, _, data = get_json(url, headers=self._get_headers())
        if status != 200 or not isinstance(data, dict):
            raise IssueLookupFailed(f"GitHub search returned status {status}")
        items = data.get("items")
        return items if isinstance(items, list) else []

    def find_pending(self, package: str) -> List[PendingProposal]:
        """Open proposals mentioning ``package``; empty on any failure."""
        try:
            if shutil.which(Constants.GH_COMMAND):
                records = self._records_from_cli(package)
                source = "gh"
            else:
                records = self._records_from_api(package)
                source = "api"
        except IssueLookupFailed as exc:
            logger.debug("Pending proposal lookup for %s skipped: %s", package, exc)
            return []

        proposals = [p for p in (proposal_from_record(r) for r in records if isinstance(r, dict)) if p]
        if is_debug_enabled(logger):
            logger.debug(
                "Pending proposals fetched",
                extra=extra_context(
                    event="pending_lookup",
                    component="github",
                    source=source,
                    package=package,
                    count=len(proposals),
                ),
            )
        return proposals


def find_pending_proposals(package: str, repo: Optional[str]) -> List[PendingProposal]:
    """Convenience wrapper; no issue repository means no proposals."""
    if not repo:
        return []
    return GitHubProposalClient(repo).find_pending(package)
