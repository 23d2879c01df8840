"""Token parsing utilities for package queries."""

from typing import Optional, Tuple

import semantic_version

from .models import PackageRequest, ResolutionMode


def tokenize_at(s: str) -> Tuple[str, Optional[str]]:
    """Return (package, spec or None) split on a single ``@``.

    Raises:
        ValueError: If the token holds more than one ``@`` or an empty half.
    """
    s = s.strip()
    if s.count("@") > 1:
        raise ValueError(f"Invalid package specification '{s}': more than one '@'")
    if "@" not in s:
        name, spec = s, None
    else:
        name, spec = (part.strip() for part in s.split("@", 1))
        if not spec:
            raise ValueError(f"Invalid package specification '{s}': missing version after '@'")
    if not name:
        raise ValueError(f"Invalid package specification '{s}': missing package name")
    return name, spec


def determine_resolution_mode(spec: Optional[str]) -> ResolutionMode:
    """Classify a specifier as latest, a complete version, or a partial prefix."""
    if spec is None:
        return ResolutionMode.LATEST
    if semantic_version.validate(spec):
        return ResolutionMode.EXACT
    return ResolutionMode.PARTIAL


def parse_package_token(token: str) -> PackageRequest:
    """Parse a CLI/shell token such as ``Example``, ``Example@1.9`` or ``Example@latest``.

    Raises:
        ValueError: On a malformed token or a partial version carrying a
            pre-release/build suffix (``Example@1.9-rc``).
    """
    name, spec = tokenize_at(token)
    if spec is not None and spec.lower() == "latest":
        spec = None
    mode = determine_resolution_mode(spec)
    if mode is ResolutionMode.PARTIAL and any(c in spec for c in "-+"):
        # a partial only completes leading components; suffixes need the full version
        raise ValueError(
            f"Invalid version '{spec}' for {name}: a pre-release or build suffix "
            "requires the full version, e.g. 1.2.3-rc1"
        )
    return PackageRequest(
        package=name,
        specifier=spec,
        mode=mode,
        raw_token=token,
    )
