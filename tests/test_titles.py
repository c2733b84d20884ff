"""Tests for PR title parsing."""

import pytest

from dependabot_metrics.models import ParsedUpdate, UpdateSeverity
from dependabot_metrics.titles import TITLE_PATTERNS, TitlePattern, is_multi_dependency, parse_title
from dependabot_metrics.versions import classify


class TestParseTitle:
    """Tests for the ordered title patterns."""

    @pytest.mark.parametrize(
        "title,expected",
        [
            ("Bump rack from 2.2.0 to 2.2.1", ("rack", "2.2.0", "2.2.1")),
            ("Bump actions/checkout from 3 to 4", ("actions/checkout", "3", "4")),
            ("Bump rails from 7.0.4 to 7.0.4.3 in /app", ("rails", "7.0.4", "7.0.4.3")),
            ("[Security] Bump nokogiri from 1.13.9 to 1.13.10", ("nokogiri", "1.13.9", "1.13.10")),
            ("build(deps-dev): bump rubocop from 1.40.0 to 1.41.0", ("rubocop", "1.40.0", "1.41.0")),
            ("Bump @babel/core from 7.20.5 to 7.20.12", ("@babel/core", "7.20.5", "7.20.12")),
            ("Update rack requirement from = 2.2.0 to = 2.2.1", ("rack", "2.2.0", "2.2.1")),
            ("Update puma requirement from ~> 5.6 to ~> 6.0", ("puma", "5.6", "6.0")),
            ("Update rack requirement from >= 1.0, < 3.0 to >= 1.0, < 4.0", ("rack", "3.0", "4.0")),
            ("Update sass requirement from ~> 1.0 to >= 1.0, < 3.0", ("sass", "1.0", "3.0")),
            ("Update rubocop requirement from ~> 1.40 to ~> 1.41 in /docs", ("rubocop", "1.40", "1.41")),
            ("Update rack requirement from = 2.2.0 to = 2.2.1 in /", ("rack", "2.2.0", "2.2.1")),
            ("Update rails requirement from >= 6.0, < 7.0 to >= 6.0, < 8.0 in /app", ("rails", "7.0", "8.0")),
            ("Update sass requirement from ~> 1.0 to >= 1.0, < 3.0 in /docs", ("sass", "1.0", "3.0")),
        ],
    )
    def test_known_titles(self, title, expected):
        dependency, from_version, to_version = expected
        assert parse_title(title) == ParsedUpdate(
            dependency=dependency, from_version=from_version, to_version=to_version
        )

    def test_directory_suffix_keeps_severity(self):
        parsed = parse_title("Update rubocop requirement from ~> 1.40 to ~> 1.41 in /docs")
        assert classify(parsed.from_version, parsed.to_version) == UpdateSeverity.MINOR

    def test_prerelease_versions(self):
        parsed = parse_title("Bump webpack from 5.0.0-beta.1 to 5.0.0-rc.1")
        assert parsed.from_version == "5.0.0-beta.1"
        assert parsed.to_version == "5.0.0-rc.1"

    @pytest.mark.parametrize(
        "title",
        [
            "",
            "Fix typo in README",
            "Bump json5, core and loader-utils",
            "Bump rack and rails from 1.0 to 2.0",
            "Bump the npm group with 3 updates",
        ],
    )
    def test_unrecognised_titles(self, title):
        assert parse_title(title) is None

    def test_first_match_wins(self):
        first = TitlePattern("first", r"^Bump (?P<dependency>\w+) from (?P<from_version>\S+) to (?P<to_version>\S+)")
        second = TitlePattern("second", r"^Bump (?P<dependency>\w+)")
        parsed = parse_title("Bump rack from 1 to 2", patterns=[first, second])
        assert parsed.to_version == "2"

    def test_pattern_without_versions_does_not_match(self):
        no_versions = TitlePattern("partial", r"^Bump (?P<dependency>\w+)")
        assert no_versions.match("Bump rack") is None

    def test_pattern_order(self):
        assert [p.name for p in TITLE_PATTERNS] == [
            "bump",
            "prefixed-bump",
            "requirement",
            "requirement-range",
            "requirement-widen",
        ]


class TestIsMultiDependency:
    @pytest.mark.parametrize(
        "dependency,expected",
        [
            ("rack", False),
            ("@babel/core", False),
            ("json5, core", True),
            ("rack and rails", True),
        ],
    )
    def test_detection(self, dependency, expected):
        assert is_multi_dependency(dependency) is expected
