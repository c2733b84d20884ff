"""YAML configuration for metrics runs.

Example `dependabot-metrics.yaml`:

    repos:
      - alphagov/whitehall
      - alphagov/publisher
    repos_url: https://docs.publishing.service.gov.uk/repos.json
    repos_owner: alphagov
    outdated_limit: 20
    auto_merge_actor: govuk-ci
    label: dependencies
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from pathlib import Path
from typing import Any

import yaml

from .accumulator import Granularity, ReportingWindow
from .errors import ConfigurationError

CONFIG_FILENAMES = ["dependabot-metrics.yaml", ".dependabot-metrics.yaml", "dependabot-metrics.yml"]

OUTPUT_FORMATS = ("terminal", "json", "csv", "prometheus")


@dataclass
class MetricsConfig:
    """Settings read from the YAML config file."""

    repos: list[str] = field(default_factory=list)
    repos_url: str | None = None
    repos_owner: str | None = None
    outdated_limit: int | None = None
    auto_merge_actor: str | None = None
    label: str | None = None

    @classmethod
    def load(cls, path: Path | str | None = None) -> MetricsConfig:
        """Load config from YAML file or return defaults."""
        if path is None:
            for candidate in CONFIG_FILENAMES:
                if Path(candidate).exists():
                    path = candidate
                    break

        if path is None:
            return cls()
        if not Path(path).exists():
            raise ConfigurationError(f"Config file not found: {path}")

        with open(path) as f:
            try:
                data = yaml.safe_load(f)
            except yaml.YAMLError as e:
                raise ConfigurationError(f"Invalid YAML in {path}: {e}") from e

        if data is None:
            return cls()
        if not isinstance(data, dict):
            raise ConfigurationError(f"Config file {path} must contain a mapping of settings")

        return cls.from_dict(data)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> MetricsConfig:
        repos = data.get("repos") or []
        if not isinstance(repos, list):
            raise ConfigurationError("'repos' must be a list of owner/name strings")

        return cls(
            repos=[str(r) for r in repos],
            repos_url=data.get("repos_url"),
            repos_owner=data.get("repos_owner"),
            outdated_limit=data.get("outdated_limit"),
            auto_merge_actor=data.get("auto_merge_actor"),
            label=data.get("label"),
        )

    def to_yaml(self) -> str:
        data: dict[str, Any] = {"repos": self.repos}
        for key in ("repos_url", "repos_owner", "outdated_limit", "auto_merge_actor", "label"):
            value = getattr(self, key)
            if value is not None:
                data[key] = value
        return yaml.dump(data, default_flow_style=False, sort_keys=False)


def parse_date(value: str | date, name: str) -> date:
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(value)
    except (TypeError, ValueError) as e:
        raise ConfigurationError(f"--{name} must be a date in YYYY-MM-DD format, got {value!r}") from e


@dataclass
class RunConfig:
    """Validated settings for one run. Built before any fetching starts."""

    window: ReportingWindow
    outdated_limit: int
    output_format: str = "terminal"
    repos: list[str] = field(default_factory=list)
    repos_url: str | None = None
    repos_owner: str | None = None
    auto_merge_actor: str | None = None
    label: str | None = None
    output: Path | None = None

    @classmethod
    def build(
        cls,
        *,
        from_date: str | date,
        to_date: str | date,
        outdated_limit: int | None = None,
        daily: bool = False,
        output_format: str = "terminal",
        repos: list[str] | None = None,
        auto_merge_actor: str | None = None,
        output: Path | None = None,
        file_config: MetricsConfig | None = None,
    ) -> RunConfig:
        """Combine CLI values with the config file; CLI values win.

        Raises ConfigurationError on anything invalid.
        """
        file_config = file_config or MetricsConfig()

        start = parse_date(from_date, "from")
        end = parse_date(to_date, "to")
        if start > end:
            raise ConfigurationError(f"--from ({start}) must not be after --to ({end})")

        if output_format not in OUTPUT_FORMATS:
            raise ConfigurationError(
                f"Unknown output format {output_format!r}. Choose one of: {', '.join(OUTPUT_FORMATS)}"
            )

        limit = outdated_limit if outdated_limit is not None else file_config.outdated_limit
        if limit is None:
            raise ConfigurationError("An outdated limit is required (--outdated-limit or outdated_limit in config)")
        try:
            limit = int(limit)
        except (TypeError, ValueError) as e:
            raise ConfigurationError(f"Outdated limit must be a whole number of days, got {limit!r}") from e
        if limit < 0:
            raise ConfigurationError("Outdated limit must not be negative")

        granularity = Granularity.DAILY if daily else Granularity.SNAPSHOT

        return cls(
            window=ReportingWindow(start=start, end=end, granularity=granularity),
            outdated_limit=limit,
            output_format=output_format,
            repos=list(repos or file_config.repos),
            repos_url=file_config.repos_url,
            repos_owner=file_config.repos_owner,
            auto_merge_actor=auto_merge_actor or file_config.auto_merge_actor,
            label=file_config.label,
            output=output,
        )
