"""Snapshot derivation from accumulated bucket state."""

from __future__ import annotations

import statistics
from collections import Counter
from datetime import date
from typing import TYPE_CHECKING

from pydantic import BaseModel, ConfigDict

from .models import (
    MergeTime,
    OpenPullRequest,
    StaleDependency,
    UnparsedPullRequest,
    UpdateSeverity,
)

if TYPE_CHECKING:
    from .accumulator import MetricsBucket, ReportingWindow


class Snapshot(BaseModel):
    """Finalized, read-only metrics for one bucket. The only input exporters take."""

    model_config = ConfigDict(frozen=True)

    key: date
    window_start: date
    window_end: date
    granularity: str

    total_prs_seen: int
    total_new_prs: int
    total_unparsed_prs: int
    total_merged_prs: int
    total_closed_prs: int
    total_open_prs: int
    total_security_alerts: int
    auto_merged_prs: int
    merged_by_user_prs: int

    prs_by_update_type: dict[str, int]
    major_update_percentage: float
    minor_update_percentage: float
    patch_update_percentage: float
    pr_success_rate: float

    average_merge_time: float
    median_merge_time: float
    average_time_since_open: float
    time_to_merge: list[int]
    time_since_open: list[int]
    time_to_merge_distribution: dict[int, int]

    frequently_updated_repos: dict[str, int]
    prs_per_dependency: dict[str, int]
    prs_per_dependency_by_update_type: dict[str, dict[str, int]]
    open_prs_per_dependency: dict[str, int]
    security_alerts_per_repo: dict[str, int]
    security_alerts_per_dependency: dict[str, int]

    merge_times: list[MergeTime]
    open_prs: list[OpenPullRequest]
    open_failing_prs: list[OpenPullRequest]
    outdated_dependencies: list[StaleDependency]
    long_merge_dependencies: list[StaleDependency]
    unparsed_prs: list[UnparsedPullRequest]

    @property
    def total_opened_prs(self) -> int:
        return self.total_new_prs

    @property
    def is_daily(self) -> bool:
        return self.granularity == "daily"


def mean(values: list[int]) -> float:
    """Arithmetic mean, 0.0 for an empty list."""
    if not values:
        return 0.0
    return sum(values) / len(values)


def median(values: list[int]) -> float:
    if not values:
        return 0.0
    return float(statistics.median(values))


def percentage(part: int, whole: int) -> float:
    """Percentage rounded to 2 decimals, 0.0 when `whole` is zero."""
    if not whole:
        return 0.0
    return round(part / whole * 100, 2)


def sorted_breakdown(counts: Counter) -> dict[str, int]:
    """Positive counts only, highest first; ties keep insertion order."""
    positive = [(str(key), count) for key, count in counts.items() if count > 0]
    return dict(sorted(positive, key=lambda item: -item[1]))


def finalize(bucket: MetricsBucket, window: ReportingWindow) -> Snapshot:
    """Derive a Snapshot from a bucket. Reads the bucket, never writes it."""
    merge_days = [m.days for m in bucket.merge_times]
    open_days = [p.days_open for p in bucket.open_prs]

    by_type = bucket.prs_by_update_type
    classified = sum(count for severity, count in by_type.items() if severity != UpdateSeverity.UNKNOWN)

    return Snapshot(
        key=bucket.key,
        window_start=window.start,
        window_end=window.end,
        granularity=window.granularity.value,
        total_prs_seen=bucket.total_prs_seen,
        total_new_prs=bucket.total_new_prs,
        total_unparsed_prs=bucket.total_unparsed_prs,
        total_merged_prs=bucket.total_merged_prs,
        total_closed_prs=bucket.total_closed_prs,
        total_open_prs=bucket.total_open_prs,
        total_security_alerts=bucket.total_security_alerts,
        auto_merged_prs=bucket.auto_merged_prs,
        merged_by_user_prs=bucket.merged_by_user_prs,
        prs_by_update_type={severity.value: by_type[severity] for severity in UpdateSeverity},
        major_update_percentage=percentage(by_type[UpdateSeverity.MAJOR], classified),
        minor_update_percentage=percentage(by_type[UpdateSeverity.MINOR], classified),
        patch_update_percentage=percentage(by_type[UpdateSeverity.PATCH], classified),
        pr_success_rate=percentage(bucket.total_merged_prs + bucket.total_closed_prs, bucket.total_new_prs),
        average_merge_time=mean(merge_days),
        median_merge_time=median(merge_days),
        average_time_since_open=mean(open_days),
        time_to_merge=merge_days,
        time_since_open=open_days,
        time_to_merge_distribution=dict(sorted(Counter(merge_days).items())),
        frequently_updated_repos=sorted_breakdown(bucket.frequently_updated_repos),
        prs_per_dependency=sorted_breakdown(bucket.prs_per_dependency),
        prs_per_dependency_by_update_type={
            dependency: {severity.value: count for severity, count in counts.items() if count > 0}
            for dependency, counts in bucket.prs_per_dependency_by_update_type.items()
        },
        open_prs_per_dependency=sorted_breakdown(bucket.open_prs_per_dependency),
        security_alerts_per_repo=sorted_breakdown(bucket.security_alerts_per_repo),
        security_alerts_per_dependency=sorted_breakdown(bucket.security_alerts_per_dependency),
        merge_times=list(bucket.merge_times),
        open_prs=list(bucket.open_prs),
        open_failing_prs=list(bucket.open_failing_prs),
        outdated_dependencies=list(bucket.outdated_dependencies),
        long_merge_dependencies=list(bucket.long_merge_dependencies),
        unparsed_prs=list(bucket.unparsed_prs),
    )
