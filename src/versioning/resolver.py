"""Manifest-order version resolver.

Versions are never re-sorted: the order in which the registry's publishing
tooling wrote the manifest sections is the ascending-version order.

- No specifier: the last section in the manifest, yanked or not.
- Exact specifier: returned unchanged when any section (yanked included) has it.
- Partial specifier: the first non-yanked version starting with ``spec + "."``,
  falling back to a plain ``startswith(spec)`` match.
"""

from typing import List, Optional, Sequence, Tuple

from registry.errors import NoVersionsFound, VersionNotFound

from .models import VersionEntry


class ManifestVersionResolver:
    """Pick a concrete version from parsed manifest entries."""

    def pick(
        self, entries: Sequence[VersionEntry], spec: Optional[str]
    ) -> Tuple[Optional[str], int, Optional[str]]:
        """Select a version.

        Args:
            entries: All manifest entries in file order, yanked ones included.
            spec: Requested specifier, or None for latest.

        Returns:
            Tuple of (resolved_version, candidate_count, error_message)
        """
        if not entries:
            return None, 0, "No versions available"
        if spec is None:
            return self._pick_latest(entries)

        exact = self._pick_exact(spec, entries)
        if exact[0] is not None:
            return exact
        return self._pick_partial(spec, entries)

    def _pick_latest(self, entries: Sequence[VersionEntry]) -> Tuple[Optional[str], int, Optional[str]]:
        return entries[-1].version, len(entries), None

    def _pick_exact(self, spec: str, entries: Sequence[VersionEntry]) -> Tuple[Optional[str], int, Optional[str]]:
        for entry in entries:
            if entry.version == spec:
                return entry.version, len(entries), None
        return None, len(entries), f"Version {spec} not found"

    def _pick_partial(self, spec: str, entries: Sequence[VersionEntry]) -> Tuple[Optional[str], int, Optional[str]]:
        candidates = [e.version for e in entries if not e.yanked]

        # "1.9" must match "1.9.0" but never "1.90.0"
        prefix = spec + "."
        matches: List[str] = [v for v in candidates if v.startswith(prefix)]
        if not matches:
            matches = [v for v in candidates if v.startswith(spec)]
        if not matches:
            return None, len(candidates), (
                f"Version {spec} not found (or all matching versions are yanked)"
            )
        return matches[0], len(candidates), None


def resolve_version(
    entries: Sequence[VersionEntry],
    spec: Optional[str],
    *,
    package: Optional[str] = None,
) -> str:
    """Resolve ``spec`` against ``entries`` or raise.

    Raises:
        NoVersionsFound: If ``entries`` is empty.
        VersionNotFound: If no exact or partial match exists.
    """
    if spec is not None and not spec.strip():
        spec = None
    if not entries:
        raise NoVersionsFound("No versions available", package=package, specifier=spec)

    version, _, error = ManifestVersionResolver().pick(entries, spec)
    if version is None:
        where = f" for package '{package}'" if package else ""
        raise VersionNotFound(f"{error}{where}", package=package, specifier=spec)
    return version

