"""Tests for per-repository classification and the end-to-end fixture."""

from datetime import date

from conftest import make_event, utc
from dependabot_metrics.accumulator import Granularity, MetricsAccumulator, ReportingWindow
from dependabot_metrics.engine import RepositoryResult, classify_repository
from dependabot_metrics.models import PullRequestStatus, UpdateSeverity


class TestClassifyRepository:
    def test_severity_and_origin(self, fixture_events):
        classified = {pr.event.number: pr for pr in classify_repository("alphagov/test_api", fixture_events)}

        merged = classified[5]
        assert merged.status == PullRequestStatus.MERGED
        assert merged.severity == UpdateSeverity.PATCH
        assert merged.origin == utc(2023, 2, 26)

        assert classified[4].origin == utc(2023, 3, 9)
        assert classified[1].status == PullRequestStatus.OPEN

    def test_keeps_arrival_order(self, fixture_events):
        classified = classify_repository("alphagov/test_api", fixture_events)
        assert [pr.event.number for pr in classified] == [1, 2, 3, 4, 5, 6, 7]

    def test_unparsed_title(self):
        event = make_event(9, "Bump the bundler group across 2 directories", utc(2023, 3, 2))
        [pr] = classify_repository("alphagov/test_api", [event])

        assert pr.parsed is False
        assert pr.update is None
        assert pr.severity == UpdateSeverity.UNKNOWN
        assert pr.origin == event.created_at

    def test_range_title_classified_by_upper_bounds(self):
        event = make_event(1, "Update rack requirement from >= 1.0, < 3.0 to >= 1.0, < 4.0", utc(2023, 3, 2))
        [pr] = classify_repository("alphagov/test_api", [event])
        assert pr.severity == UpdateSeverity.MAJOR

    def test_superseded_merge_measured_from_first_pr(self):
        """PRs from the same version on days 0, 6 and 14; the last merges on day 16."""
        events = [
            make_event(1, "Bump rack from 2.0.0 to 2.0.1", utc(2023, 3, 1), closed_at=utc(2023, 3, 7)),
            make_event(2, "Bump rack from 2.0.0 to 2.0.2", utc(2023, 3, 7), closed_at=utc(2023, 3, 15)),
            make_event(3, "Bump rack from 2.0.0 to 2.0.3", utc(2023, 3, 15), merged_at=utc(2023, 3, 17)),
        ]
        window = ReportingWindow(start=date(2023, 3, 1), end=date(2023, 3, 31))
        accumulator = MetricsAccumulator(window, outdated_limit=30, now=utc(2023, 4, 1))
        accumulator.fold(
            RepositoryResult(repo="alphagov/test_api", pull_requests=classify_repository("alphagov/test_api", events))
        )

        [snapshot] = accumulator.snapshots()
        assert snapshot.time_to_merge == [16]
        assert snapshot.total_merged_prs == 1
        assert snapshot.total_closed_prs == 2


class TestEndToEndFixture:
    """foo/bar history reported over 2023-03-01..2023-03-16 at 2023-03-10."""

    def build(self, fixture_events, granularity=Granularity.SNAPSHOT):
        window = ReportingWindow(start=date(2023, 3, 1), end=date(2023, 3, 16), granularity=granularity)
        accumulator = MetricsAccumulator(window, outdated_limit=10, now=utc(2023, 3, 10))
        result = RepositoryResult(
            repo="alphagov/test_api",
            pull_requests=classify_repository("alphagov/test_api", fixture_events),
        )
        accumulator.fold(result)
        return accumulator.snapshots()

    def test_snapshot_totals(self, fixture_events):
        [snapshot] = self.build(fixture_events)

        assert snapshot.total_opened_prs == 5
        assert snapshot.time_since_open == [11, 1]
        assert snapshot.time_to_merge == [10]

    def test_snapshot_breakdowns(self, fixture_events):
        [snapshot] = self.build(fixture_events)

        assert snapshot.total_merged_prs == 1
        assert snapshot.total_closed_prs == 2
        assert snapshot.total_open_prs == 2
        assert snapshot.pr_success_rate == 60.0
        assert snapshot.prs_by_update_type["patch"] == 5
        assert snapshot.prs_per_dependency == {"bar": 3, "foo": 2}
        assert snapshot.frequently_updated_repos == {"alphagov/test_api": 5}

    def test_outdated_and_long_merges(self, fixture_events):
        [snapshot] = self.build(fixture_events)

        assert [(s.dependency, s.days) for s in snapshot.outdated_dependencies] == [("foo", 11)]
        assert [(s.dependency, s.days) for s in snapshot.long_merge_dependencies] == [("bar", 10)]

    def test_daily_buckets_sum_to_snapshot(self, fixture_events):
        daily = self.build(fixture_events, Granularity.DAILY)

        assert len(daily) == 16
        assert sum(s.total_new_prs for s in daily) == 5
        assert sum(s.total_merged_prs for s in daily) == 1
        by_day = {s.key: s for s in daily}
        assert by_day[date(2023, 3, 8)].time_to_merge == [10]
        assert by_day[date(2023, 3, 7)].total_closed_prs == 2
