"""Shared test fixtures."""

from datetime import UTC, datetime

import pytest

from dependabot_metrics.models import PullRequestEvent


def utc(year: int, month: int, day: int, hour: int = 12) -> datetime:
    return datetime(year, month, day, hour, tzinfo=UTC)


def make_event(
    number: int,
    title: str,
    created_at: datetime,
    *,
    repo: str = "alphagov/test_api",
    closed_at: datetime | None = None,
    merged_at: datetime | None = None,
    head_sha: str | None = None,
) -> PullRequestEvent:
    """PR event factory. A merged PR is also closed at its merge time."""
    if merged_at is not None and closed_at is None:
        closed_at = merged_at
    return PullRequestEvent(
        repo=repo,
        number=number,
        title=title,
        state="closed" if closed_at else "open",
        created_at=created_at,
        closed_at=closed_at,
        merged_at=merged_at,
        head_sha=head_sha,
    )


def make_issue(
    number: int,
    title: str,
    created_at: str,
    *,
    state: str = "open",
    closed_at: str | None = None,
    merged_at: str | None = None,
) -> dict:
    """Issues-endpoint payload factory for a PR."""
    return {
        "number": number,
        "title": title,
        "state": state,
        "created_at": created_at,
        "closed_at": closed_at,
        "pull_request": {"url": f"https://api.github.com/pulls/{number}", "merged_at": merged_at},
    }


@pytest.fixture
def github_client_uninit():
    """Create an uninitialized GitHubClient with a fake PAT token.

    Use this for sync tests that don't need the async context manager.
    """
    from dependabot_metrics.github_client import GitHubClient

    return GitHubClient(token="fake-token")


@pytest.fixture
def fixture_events() -> list[PullRequestEvent]:
    """foo/bar history on alphagov/test_api around March 2023.

    Reporting over 2023-03-01..2023-03-16 with now = 2023-03-10, five PRs fall
    in the window; the open ones have waited 11 and 1 days and the merged one
    took 10 days from its first superseded PR.
    """
    return [
        make_event(1, "Bump foo from 1.0.0 to 1.0.3", utc(2023, 3, 7)),
        make_event(2, "Bump foo from 1.0.0 to 1.0.2", utc(2023, 3, 1), closed_at=utc(2023, 3, 7)),
        make_event(3, "Bump foo from 1.0.0 to 1.0.1", utc(2023, 2, 27), closed_at=utc(2023, 3, 1)),
        make_event(4, "Bump bar from 1.0.2 to 1.0.3", utc(2023, 3, 9)),
        make_event(5, "Bump bar from 1.0.1 to 1.0.4", utc(2023, 3, 7), merged_at=utc(2023, 3, 8)),
        make_event(6, "Bump bar from 1.0.1 to 1.0.3", utc(2023, 3, 1), closed_at=utc(2023, 3, 7)),
        make_event(7, "Bump bar from 1.0.1 to 1.0.2", utc(2023, 2, 26), closed_at=utc(2023, 3, 1)),
    ]
