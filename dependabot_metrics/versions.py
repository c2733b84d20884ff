"""Version bump classification (major/minor/patch)."""

from __future__ import annotations

import re

from packaging.version import InvalidVersion, Version

from .models import UpdateSeverity

# Dot-separated segments starting with a number, optional -prerelease suffix
VERSION_PATTERN = re.compile(r"^\d+(?:\.[0-9A-Za-z]+)*(?:-[0-9A-Za-z-]+(?:\.[0-9A-Za-z-]+)*)?$")

SEVERITY_BY_INDEX = [UpdateSeverity.MAJOR, UpdateSeverity.MINOR]


def parse_version(value: str) -> Version | None:
    """Parse a strictly formed version string, returning None if malformed."""
    if not value or not VERSION_PATTERN.match(value.strip()):
        return None
    try:
        return Version(value.strip())
    except InvalidVersion:
        return None


def classify(from_version: str, to_version: str) -> UpdateSeverity:
    """Classify a version change by the first release segment that differs.

    Segments are compared over the shorter of the two releases, so `1.2`
    vs `1.2.0.1` has no differing segment and falls through to patch.
    """
    old = parse_version(from_version)
    new = parse_version(to_version)
    if old is None or new is None:
        return UpdateSeverity.UNKNOWN

    for index, (a, b) in enumerate(zip(new.release, old.release)):
        if a != b:
            if index < len(SEVERITY_BY_INDEX):
                return SEVERITY_BY_INDEX[index]
            return UpdateSeverity.PATCH

    return UpdateSeverity.PATCH
