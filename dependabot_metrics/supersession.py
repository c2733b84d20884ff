"""Supersession origin resolution over per-dependency PR histories.

The bot opens a fresh PR for a dependency when a newer target version comes
out before the previous PR for the same starting version was merged. Durations
are therefore measured from the earliest PR that proposed upgrading from that
starting version (its origin), not from the PR being measured.

Histories are scoped to a single (repo, dependency) pair.
"""

from __future__ import annotations

import bisect
import logging
from dataclasses import dataclass, field
from datetime import datetime

from .models import ParsedUpdate, PullRequestEvent
from .titles import parse_title

logger = logging.getLogger(__name__)


@dataclass
class DependencyHistory:
    """All PRs ever seen for one dependency in one repository, oldest first."""

    repo: str
    dependency: str
    entries: list[tuple[PullRequestEvent, ParsedUpdate]] = field(default_factory=list)

    def add(self, event: PullRequestEvent, update: ParsedUpdate) -> None:
        if event.repo != self.repo or update.dependency != self.dependency:
            raise ValueError(
                f"PR {event.repo}#{event.number} ({update.dependency}) does not belong "
                f"to history {self.repo}/{self.dependency}"
            )
        keys = [e.created_at for e, _ in self.entries]
        self.entries.insert(bisect.bisect_right(keys, event.created_at), (event, update))

    def __len__(self) -> int:
        return len(self.entries)

    def from_versions(self) -> set[str]:
        return {update.from_version for _, update in self.entries}


def earliest_origin(history: DependencyHistory, from_version: str) -> datetime:
    """Earliest creation time among PRs in the history sharing `from_version`.

    Raises KeyError if no PR in the history starts from that version.
    """
    created = [event.created_at for event, update in history.entries if update.from_version == from_version]
    if not created:
        raise KeyError(f"{history.repo}/{history.dependency}: no PR from version {from_version}")
    return min(created)


@dataclass
class RepositoryHistory:
    """PR history of one repository, grouped per dependency.

    Built incrementally as PR pages arrive; origins are only meaningful once
    the repository's full history has been added.
    """

    repo: str
    dependencies: dict[str, DependencyHistory] = field(default_factory=dict)
    parsed: list[tuple[PullRequestEvent, ParsedUpdate | None]] = field(default_factory=list)

    def add(self, event: PullRequestEvent) -> ParsedUpdate | None:
        """Parse and record one PR, returning its parsed update (or None)."""
        update = parse_title(event.title)
        self.parsed.append((event, update))

        if update is None:
            logger.info(f"Title did not match any pattern: {event.repo}#{event.number} {event.title!r}")
            return None

        history = self.dependencies.get(update.dependency)
        if history is None:
            history = DependencyHistory(repo=self.repo, dependency=update.dependency)
            self.dependencies[update.dependency] = history
        history.add(event, update)
        return update

    def origin(self, update: ParsedUpdate) -> datetime:
        return earliest_origin(self.dependencies[update.dependency], update.from_version)

    @property
    def unparsed_count(self) -> int:
        return sum(1 for _, update in self.parsed if update is None)
