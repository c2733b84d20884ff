"""Dependency PR extractor (issues endpoint payloads)."""

from datetime import datetime

from ..models import PullRequestEvent


def parse_datetime(dt_str: str | None) -> datetime | None:
    """Parse ISO datetime string, returns None if input is empty."""
    if not dt_str:
        return None
    return datetime.fromisoformat(dt_str.replace("Z", "+00:00"))


def parse_datetime_required(dt_str: str) -> datetime:
    """Parse ISO datetime string, raises if input is empty."""
    if not dt_str:
        raise ValueError("datetime string is required")
    return datetime.fromisoformat(dt_str.replace("Z", "+00:00"))


def extract_pull_request_event(repo: str, issue_data: dict) -> PullRequestEvent:
    """Extract a PR record from an issues-endpoint payload.

    Issue payloads carry the merge time under `pull_request.merged_at`;
    full PR payloads carry it at the top level. Both are accepted.
    """
    pull_request = issue_data.get("pull_request") or {}
    merged_at = pull_request.get("merged_at") or issue_data.get("merged_at")
    head = issue_data.get("head") or {}

    return PullRequestEvent(
        repo=repo,
        number=issue_data["number"],
        title=issue_data.get("title") or "",
        state=issue_data["state"],
        created_at=parse_datetime_required(issue_data["created_at"]),
        closed_at=parse_datetime(issue_data.get("closed_at")),
        merged_at=parse_datetime(merged_at),
        head_sha=head.get("sha"),
    )
