"""Pydantic models for fetched records and metric rows."""

from datetime import datetime
from enum import Enum
from typing import Literal

from pydantic import BaseModel, ConfigDict


class UpdateSeverity(str, Enum):
    """Size of a version bump."""

    MAJOR = "major"
    MINOR = "minor"
    PATCH = "patch"
    UNKNOWN = "unknown"


class PullRequestStatus(str, Enum):
    """Terminal or current state of a PR for accumulation purposes."""

    OPEN = "open"
    MERGED = "merged"
    CLOSED = "closed"  # closed without merging


class PullRequestEvent(BaseModel):
    """Dependency-update pull request as fetched for one run."""

    model_config = ConfigDict(frozen=True)

    repo: str
    number: int
    title: str
    state: Literal["open", "closed"]
    created_at: datetime
    closed_at: datetime | None = None
    merged_at: datetime | None = None
    head_sha: str | None = None
    merged_by: str | None = None

    @property
    def status(self) -> PullRequestStatus:
        if self.state == "open":
            return PullRequestStatus.OPEN
        if self.merged_at is not None:
            return PullRequestStatus.MERGED
        return PullRequestStatus.CLOSED


class SecurityAlert(BaseModel):
    """Open security alert on a repository."""

    model_config = ConfigDict(frozen=True)

    repo: str
    dependency_name: str
    created_at: datetime
    number: int | None = None
    severity: str | None = None


class ParsedUpdate(BaseModel):
    """Dependency and versions named in a PR title."""

    model_config = ConfigDict(frozen=True)

    dependency: str
    from_version: str
    to_version: str


class MergeTime(BaseModel):
    """Days from supersession origin to merge for one PR."""

    repo: str
    pr_number: int
    days: int


class OpenPullRequest(BaseModel):
    """Still-open PR with its age measured from its origin."""

    repo: str
    pr_number: int
    title: str
    dependency: str
    created_at: datetime
    origin: datetime
    days_open: int


class StaleDependency(BaseModel):
    """Dependency whose upgrade has been waiting (or took) at least the outdated limit."""

    repo: str
    pr_number: int
    dependency: str
    from_version: str
    to_version: str
    days: int


class UnparsedPullRequest(BaseModel):
    """PR whose title matched none of the known patterns."""

    repo: str
    pr_number: int
    title: str
