"""Time-bucketed accumulation of classified PRs and security alerts.

A run reports over an inclusive date range, either as one snapshot bucket or
as one bucket per calendar day. Each PR counts toward the bucket of its
creation date; merges and closes count toward the bucket of the merge/close
date. PRs created outside the range only feed supersession histories.
"""

from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass, field
from datetime import UTC, date, datetime, timedelta
from enum import Enum

from .engine import ClassifiedPullRequest, RepositoryResult
from .models import (
    MergeTime,
    OpenPullRequest,
    PullRequestStatus,
    SecurityAlert,
    StaleDependency,
    UnparsedPullRequest,
    UpdateSeverity,
)

logger = logging.getLogger(__name__)


class Granularity(str, Enum):
    SNAPSHOT = "snapshot"
    DAILY = "daily"


@dataclass(frozen=True)
class ReportingWindow:
    """Inclusive date range and how it is split into buckets."""

    start: date
    end: date
    granularity: Granularity = Granularity.SNAPSHOT

    def __post_init__(self):
        if self.start > self.end:
            raise ValueError(f"Window start {self.start} is after end {self.end}")

    def contains(self, day: date) -> bool:
        return self.start <= day <= self.end

    def bucket_key(self, day: date) -> date | None:
        """Bucket a date falls in, or None if outside the window."""
        if not self.contains(day):
            return None
        if self.granularity == Granularity.SNAPSHOT:
            return self.start
        return day

    def bucket_keys(self) -> list[date]:
        if self.granularity == Granularity.SNAPSHOT:
            return [self.start]
        days = (self.end - self.start).days
        return [self.start + timedelta(days=i) for i in range(days + 1)]

    @property
    def since(self) -> datetime:
        """Start of the window as a UTC timestamp (for API `since` filters)."""
        return datetime(self.start.year, self.start.month, self.start.day, tzinfo=UTC)


def _severity_counter() -> Counter[UpdateSeverity]:
    return Counter({severity: 0 for severity in UpdateSeverity})


@dataclass
class MetricsBucket:
    """Raw counts for one bucket. Append-only until sealed by finalization."""

    key: date

    total_prs_seen: int = 0  # parsed and unparsed
    total_new_prs: int = 0  # parsed only
    total_unparsed_prs: int = 0
    total_merged_prs: int = 0
    total_closed_prs: int = 0
    total_open_prs: int = 0
    total_security_alerts: int = 0
    auto_merged_prs: int = 0
    merged_by_user_prs: int = 0

    prs_by_update_type: Counter[UpdateSeverity] = field(default_factory=_severity_counter)
    prs_per_dependency: Counter[str] = field(default_factory=Counter)
    prs_per_dependency_by_update_type: dict[str, Counter[UpdateSeverity]] = field(default_factory=dict)
    open_prs_per_dependency: Counter[str] = field(default_factory=Counter)
    frequently_updated_repos: Counter[str] = field(default_factory=Counter)
    security_alerts_per_repo: Counter[str] = field(default_factory=Counter)
    security_alerts_per_dependency: Counter[str] = field(default_factory=Counter)

    merge_times: list[MergeTime] = field(default_factory=list)
    open_prs: list[OpenPullRequest] = field(default_factory=list)
    open_failing_prs: list[OpenPullRequest] = field(default_factory=list)
    outdated_dependencies: list[StaleDependency] = field(default_factory=list)
    long_merge_dependencies: list[StaleDependency] = field(default_factory=list)
    unparsed_prs: list[UnparsedPullRequest] = field(default_factory=list)

    sealed: bool = False

    def check_writable(self) -> None:
        if self.sealed:
            raise RuntimeError(f"Bucket {self.key} has been finalized and can no longer change")


class MetricsAccumulator:
    """Owns every bucket for a run and folds events into them."""

    def __init__(self, window: ReportingWindow, outdated_limit: int, now: datetime | None = None):
        if outdated_limit is None or outdated_limit < 0:
            raise ValueError("outdated_limit must be a non-negative number of days")

        self.window = window
        self.outdated_limit = outdated_limit
        self.now = now or datetime.now(UTC)
        self.buckets: dict[date, MetricsBucket] = {key: MetricsBucket(key=key) for key in window.bucket_keys()}

    def _bucket_for(self, moment: datetime | None) -> MetricsBucket | None:
        if moment is None:
            return None
        key = self.window.bucket_key(moment.date())
        if key is None:
            return None
        bucket = self.buckets[key]
        bucket.check_writable()
        return bucket

    def record_pull_request(self, pr: ClassifiedPullRequest) -> None:
        event = pr.event
        bucket = self._bucket_for(event.created_at)
        if bucket is None:
            return

        bucket.total_prs_seen += 1

        if pr.update is None:
            bucket.total_unparsed_prs += 1
            bucket.unparsed_prs.append(
                UnparsedPullRequest(repo=event.repo, pr_number=event.number, title=event.title)
            )
            return

        dependency = pr.update.dependency
        bucket.total_new_prs += 1
        bucket.prs_by_update_type[pr.severity] += 1
        bucket.prs_per_dependency[dependency] += 1
        per_type = bucket.prs_per_dependency_by_update_type.setdefault(dependency, _severity_counter())
        per_type[pr.severity] += 1
        bucket.frequently_updated_repos[event.repo] += 1

        if pr.status == PullRequestStatus.OPEN:
            self._record_open(bucket, pr)
        elif pr.status == PullRequestStatus.MERGED:
            self._record_merged(pr)
        else:
            closed = self._bucket_for(event.closed_at)
            if closed is not None:
                closed.total_closed_prs += 1

    def _record_open(self, bucket: MetricsBucket, pr: ClassifiedPullRequest) -> None:
        event, update = pr.event, pr.update
        days_open = (self.now.date() - pr.origin.date()).days

        bucket.total_open_prs += 1
        bucket.open_prs_per_dependency[update.dependency] += 1

        entry = OpenPullRequest(
            repo=event.repo,
            pr_number=event.number,
            title=event.title,
            dependency=update.dependency,
            created_at=event.created_at,
            origin=pr.origin,
            days_open=days_open,
        )
        bucket.open_prs.append(entry)
        if pr.failing_checks:
            bucket.open_failing_prs.append(entry)

        if days_open >= self.outdated_limit:
            bucket.outdated_dependencies.append(
                StaleDependency(
                    repo=event.repo,
                    pr_number=event.number,
                    dependency=update.dependency,
                    from_version=update.from_version,
                    to_version=update.to_version,
                    days=days_open,
                )
            )

    def _record_merged(self, pr: ClassifiedPullRequest) -> None:
        event, update = pr.event, pr.update
        bucket = self._bucket_for(event.merged_at)
        if bucket is None:
            return

        days_to_merge = (event.merged_at.date() - pr.origin.date()).days

        bucket.total_merged_prs += 1
        bucket.merge_times.append(MergeTime(repo=event.repo, pr_number=event.number, days=days_to_merge))

        if days_to_merge >= self.outdated_limit:
            bucket.long_merge_dependencies.append(
                StaleDependency(
                    repo=event.repo,
                    pr_number=event.number,
                    dependency=update.dependency,
                    from_version=update.from_version,
                    to_version=update.to_version,
                    days=days_to_merge,
                )
            )

        if pr.auto_merged is True:
            bucket.auto_merged_prs += 1
        elif pr.auto_merged is False:
            bucket.merged_by_user_prs += 1

    def record_security_alert(self, alert: SecurityAlert) -> None:
        bucket = self._bucket_for(alert.created_at)
        if bucket is None:
            return
        bucket.total_security_alerts += 1
        bucket.security_alerts_per_repo[alert.repo] += 1
        bucket.security_alerts_per_dependency[alert.dependency_name] += 1

    def fold(self, result: RepositoryResult) -> None:
        """Fold one repository's results into the buckets.

        Must not await: under trio this keeps concurrent repositories from
        interleaving inside a bucket update.
        """
        for pr in result.pull_requests:
            self.record_pull_request(pr)
        for alert in result.alerts:
            self.record_security_alert(alert)
        logger.debug(
            f"Folded {result.repo}: {len(result.pull_requests)} PRs, {len(result.alerts)} alerts"
        )

    def snapshots(self):
        """Finalize every bucket in key order and seal them."""
        from .finalize import finalize

        snapshots = []
        for key in sorted(self.buckets):
            bucket = self.buckets[key]
            snapshots.append(finalize(bucket, self.window))
            bucket.sealed = True
        return snapshots
