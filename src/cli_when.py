"""The ``when`` command: registration times for one or more packages."""

from __future__ import annotations

import json
import logging
import sys
from typing import List, Optional, Sequence

from config import max_workers
from constants import ExitCodes
from formatting import (
    batch_to_json,
    export_json,
    format_pending_proposal,
    format_when_output,
    local_registry_note,
)
from registry.depot import local_latest_version
from registry.errors import MirrorUnavailable
from registry.service import RegistryQueryService
from repository.github import find_pending_proposals
from versioning.models import BatchEntry, PackageRequest
from versioning.parser import parse_package_token

logger = logging.getLogger(__name__)


def parse_tokens(tokens: Sequence[str]) -> Optional[List[PackageRequest]]:
    """Parse all tokens up front; None (after logging) if any is malformed."""
    requests: List[PackageRequest] = []
    for token in tokens:
        try:
            requests.append(parse_package_token(token))
        except ValueError as e:
            logger.error("%s", e)
            return None
    return requests


def exit_code_for(entries: Sequence[BatchEntry]) -> int:
    errors = [e.error for e in entries if not e.ok]
    if any(isinstance(err, MirrorUnavailable) for err in errors):
        return ExitCodes.CONNECTION_ERROR.value
    if errors:
        return ExitCodes.QUERY_ERROR.value
    return ExitCodes.SUCCESS.value


def _print_extras(entry: BatchEntry, config, pending: bool, out) -> None:
    """Local-registry note and open proposals, only for latest-version queries."""
    if entry.request.specifier is not None:
        return
    local = local_latest_version(config.name, entry.request.package, config.depot_paths)
    note = local_registry_note(local, entry.result.version)
    if note:
        print(note, file=out)
    if not pending:
        return
    proposals = find_pending_proposals(entry.request.package, config.issue_repo)
    if proposals:
        print("Pending registrations:", file=out)
        for proposal in proposals:
            print(format_pending_proposal(proposal), file=out)


def run_when_queries(
    tokens: Sequence[str],
    config,
    *,
    workers: int,
    as_json: bool = False,
    output: Optional[str] = None,
    pending: bool = True,
    out=None,
    service: Optional[RegistryQueryService] = None,
) -> int:
    """Query every token and report results in input order. Returns an exit code."""
    out = out or sys.stdout
    requests = parse_tokens(tokens)
    if requests is None:
        return ExitCodes.QUERY_ERROR.value

    service = service or RegistryQueryService(config)
    entries = service.query_many(requests, max_workers=workers)

    if output:
        try:
            export_json(entries, output)
        except OSError as e:
            logger.error("JSON file couldn't be written to disk: %s", e)
            return ExitCodes.FILE_ERROR.value
    if as_json:
        print(json.dumps(batch_to_json(entries), ensure_ascii=False, indent=2), file=out)

    if not as_json:
        for entry in entries:
            if entry.ok:
                print(format_when_output(entry.result), file=out)
                _print_extras(entry, config, pending, out)
            else:
                logger.error("%s: %s", getattr(entry.error, "kind", "Error"), entry.error)

    return exit_code_for(entries)


def run_when(args, config, settings, out=None) -> int:
    """Entry point for ``pkgwhen when``."""
    workers = args.WORKERS if getattr(args, "WORKERS", None) else max_workers(settings)
    return run_when_queries(
        args.PACKAGES,
        config,
        workers=max(1, workers),
        as_json=getattr(args, "JSON", False),
        output=getattr(args, "OUTPUT", None),
        pending=not getattr(args, "NO_PENDING", False),
        out=out,
    )
