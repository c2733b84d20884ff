"""Per-repository PR classification: title, severity, state and origin."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import datetime

from .models import (
    ParsedUpdate,
    PullRequestEvent,
    PullRequestStatus,
    SecurityAlert,
    UpdateSeverity,
)
from .supersession import RepositoryHistory
from .versions import classify


@dataclass
class ClassifiedPullRequest:
    """A PR ready for accumulation."""

    event: PullRequestEvent
    update: ParsedUpdate | None
    severity: UpdateSeverity
    origin: datetime
    failing_checks: bool = False
    auto_merged: bool | None = None  # None when the merger is unknown

    @property
    def status(self) -> PullRequestStatus:
        return self.event.status

    @property
    def parsed(self) -> bool:
        return self.update is not None


@dataclass
class RepositoryResult:
    """Everything one repository contributes to the buckets."""

    repo: str
    pull_requests: list[ClassifiedPullRequest] = field(default_factory=list)
    alerts: list[SecurityAlert] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)

    @property
    def unparsed_count(self) -> int:
        return sum(1 for pr in self.pull_requests if not pr.parsed)


def classify_history(history: RepositoryHistory) -> list[ClassifiedPullRequest]:
    """Classify every PR in a complete repository history, in arrival order."""
    classified = []
    for event, update in history.parsed:
        if update is None:
            classified.append(
                ClassifiedPullRequest(
                    event=event,
                    update=None,
                    severity=UpdateSeverity.UNKNOWN,
                    origin=event.created_at,
                )
            )
            continue

        classified.append(
            ClassifiedPullRequest(
                event=event,
                update=update,
                severity=classify(update.from_version, update.to_version),
                origin=history.origin(update),
            )
        )
    return classified


def classify_repository(repo: str, events: Iterable[PullRequestEvent]) -> list[ClassifiedPullRequest]:
    """Build the repository's history from `events` and classify each PR."""
    history = RepositoryHistory(repo=repo)
    for event in events:
        history.add(event)
    return classify_history(history)
