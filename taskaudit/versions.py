"""
Version equivalence for task versions and version specs.

Task versions in pipelines are usually bare majors ("3"), while approved
states may be written with more precision ("3.0" or "3.0.0"). Values are
padded to three components and compared as semantic versions; anything
that still does not parse is compared literally.
"""

import re
from typing import Optional, Tuple

from packaging.version import InvalidVersion, Version

# MAJOR.MINOR.PATCH[-PRERELEASE][+BUILD], without leading zeros
_SEMVER = re.compile(
    r'^(0|[1-9]\d*)\.(0|[1-9]\d*)\.(0|[1-9]\d*)'
    r'(?:-([0-9A-Za-z-]+(?:\.[0-9A-Za-z-]+)*))?'
    r'(?:\+([0-9A-Za-z-]+(?:\.[0-9A-Za-z-]+)*))?$'
)

ParsedVersion = Tuple[int, int, int, str, str]


def normalize(version: str) -> str:
    """Pad a version to three components: "1" -> "1.0.0", "1.2" -> "1.2.0"."""
    if version.isdigit() and version.isascii():
        return f"{version}.0.0"
    if version.count('.') == 1:
        return f"{version}.0"
    return version


def parse(version: str) -> Optional[ParsedVersion]:
    """Parse a normalized version, or return None when it is not a semantic version."""
    match = _SEMVER.match(normalize(version))
    if not match:
        return None
    major, minor, patch, pre, build = match.groups()
    return int(major), int(minor), int(patch), pre or "", build or ""


def equivalent(a: str, b: str) -> bool:
    """
    Check whether two version strings denote the same version.

    "1", "1.0" and "1.0.0" are all equivalent. If either side is not a
    semantic version after padding (e.g. "v1" or "latest"), the original
    strings are compared as-is.
    """
    parsed_a = parse(a)
    parsed_b = parse(b)
    if parsed_a is not None and parsed_b is not None:
        return parsed_a == parsed_b
    return a == b


def sort_key(version: str):
    """Ordering key for presenting versions; unparsable values go last."""
    try:
        return (0, Version(version), version)
    except InvalidVersion:
        return (1, Version("0"), version)
