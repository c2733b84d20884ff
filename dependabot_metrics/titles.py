"""Dependency update extraction from bot PR titles.

Patterns are tried in order, first match wins:
- `Bump rack from 2.2.0 to 2.2.1` (also `Bump actions/checkout from 3 to 4`)
- `[Security] Bump rack from ...` and `build(deps-dev): bump rack from ...`
- `Update rack requirement from = 2.2.0 to = 2.2.1` (or `~>`)
- `Update rack requirement from >= 1.0, < 3.0 to >= 1.0, < 4.0`
- `Update rack requirement from ~> 1.0 to >= 1.0, < 3.0`

Titles bumping several dependencies at once ("Bump json5, core and
loader-utils") are not parsed.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Callable
from dataclasses import dataclass

from .models import ParsedUpdate

logger = logging.getLogger(__name__)

_VERSION = r"[\w.]+(?:-[\w.]+)?"

# "in /docs" names the manifest directory and is never part of a version
_DIRECTORY_SUFFIX = re.compile(r"\s+in\s+/\S*$")


def _first(match: re.Match, *groups: str) -> str | None:
    for group in groups:
        value = match.groupdict().get(group)
        if value:
            return value.strip()
    return None


def _extract_pair(match: re.Match) -> tuple[str | None, str | None]:
    return _first(match, "from_version"), _first(match, "to_version")


def _extract_range_bounds(match: re.Match) -> tuple[str | None, str | None]:
    # Upper bounds of the old and new ranges; the lower bound rarely moves
    return (
        _first(match, "from_version_2", "from_version"),
        _first(match, "to_version_2", "to_version"),
    )


@dataclass
class TitlePattern:
    """A title regex and how to read the versions out of its match."""

    name: str
    pattern: str
    extract: Callable[[re.Match], tuple[str | None, str | None]] = _extract_pair

    def __post_init__(self):
        self._regex = re.compile(self.pattern)

    def match(self, title: str) -> ParsedUpdate | None:
        m = self._regex.search(_DIRECTORY_SUFFIX.sub("", title))
        if m is None:
            return None

        dependency = m.group("dependency").strip()
        from_version, to_version = self.extract(m)
        if not dependency or not from_version or not to_version:
            return None

        return ParsedUpdate(
            dependency=dependency,
            from_version=from_version,
            to_version=to_version,
        )


TITLE_PATTERNS = [
    TitlePattern(
        "bump",
        rf"Bump (?P<dependency>[\w-]+(?:/[\w-]+)?) from (?P<from_version>{_VERSION}) to (?P<to_version>{_VERSION})",
    ),
    TitlePattern(
        "prefixed-bump",
        r"^(?:(?:\[Security\] )?Bump|build\(deps.*\): bump) (?P<dependency>.+) from (?P<from_version>\S+) to (?P<to_version>\S+)",
    ),
    TitlePattern(
        "requirement",
        r"^Update (?P<dependency>.+) requirement from (?:=|~>) (?P<from_version>.+) to (?:=|~>)(?P<to_version>.+)",
    ),
    TitlePattern(
        "requirement-range",
        r"^Update (?P<dependency>.+) requirement from (?:>=\s)?(?P<from_version>.+),\s<\s(?P<from_version_2>.+)"
        r" to (?:>=\s)?(?P<to_version>.+),\s<\s(?P<to_version_2>.+)",
        _extract_range_bounds,
    ),
    TitlePattern(
        "requirement-widen",
        r"^Update (?P<dependency>.+) requirement from (?:~> )?(?P<from_version>.+) to (?:>= )?(?P<to_version>.+), < (?P<to_version_2>.+)",
        _extract_range_bounds,
    ),
]


def is_multi_dependency(dependency: str) -> bool:
    """Check if a captured dependency segment names more than one package."""
    return "," in dependency or " and " in dependency


def parse_title(title: str, patterns: list[TitlePattern] | None = None) -> ParsedUpdate | None:
    """Extract dependency and versions from a PR title.

    Returns None for titles outside the known vocabulary, including
    multi-dependency bumps.
    """
    if not title:
        return None

    for pattern in patterns or TITLE_PATTERNS:
        parsed = pattern.match(title)
        if parsed is None:
            continue
        if is_multi_dependency(parsed.dependency):
            logger.debug(f"Skipping multi-dependency title: {title}")
            return None
        return parsed

    return None
