"""Concurrent per-repository collection with a live dashboard.

Uses trio: a producer queues repositories, CONCURRENT_REPOS workers fetch,
classify and fold each one into the shared accumulator.
"""

import json
import logging
import os
import signal
import traceback
from dataclasses import asdict, dataclass
from datetime import UTC, datetime
from enum import Enum
from pathlib import Path

import httpx
import trio
from rich.console import Console
from rich.live import Live
from rich.table import Table

from . import config
from .accumulator import MetricsAccumulator
from .engine import ClassifiedPullRequest, RepositoryResult, classify_history
from .errors import CollaboratorUnavailable
from .extractors.alerts import extract_security_alert
from .extractors.prs import extract_pull_request_event
from .extractors.timeline import extract_merge_actor
from .finalize import Snapshot
from .github_client import GitHubClient
from .models import PullRequestStatus
from .repo import RepoInfo, get_error_log_file, get_log_file
from .supersession import RepositoryHistory

REPO_QUEUE_SIZE = 50
LOOKUP_LIMIT = 8  # concurrent check-run/timeline lookups per collector

logger = logging.getLogger(__name__)


def setup_logging(log_file: Path | None = None, level: int = logging.INFO) -> logging.Logger:
    """Setup file logging for debugging."""
    log_file = log_file or get_log_file()
    os.makedirs(log_file.parent, exist_ok=True)

    logging.basicConfig(
        level=level,
        format="%(asctime)s | %(levelname)s | %(message)s",
        handlers=[logging.FileHandler(log_file, mode="a")],
    )
    return logging.getLogger(__name__)


class CollectionState(Enum):
    RUNNING = "running"
    PAUSED = "paused"
    COMPLETED = "completed"


@dataclass
class ErrorRecord:
    """Record of a repository that contributed nothing."""

    repo: str
    error_type: str
    error_message: str
    timestamp: str


@dataclass
class CollectionStats:
    """Live collection statistics."""

    total_repos: int = 0
    processed_repos: int = 0
    failed_repos: int = 0

    prs_seen: int = 0
    unparsed_prs: int = 0
    security_alerts: int = 0
    check_lookups: int = 0

    api_requests: int = 0
    rate_limit_remaining: int = 0
    auth_type: str = "pat"

    last_repo: str = ""
    last_error: str = ""
    state: CollectionState = CollectionState.RUNNING


class MetricsCollector:
    """Fetches every repository and folds its PRs and alerts into the buckets."""

    def __init__(
        self,
        client: GitHubClient,
        accumulator: MetricsAccumulator,
        console: Console,
        auto_merge_actor: str | None = None,
        label: str | None = None,
        concurrency: int | None = None,
    ):
        self.client = client
        self.accumulator = accumulator
        self.console = console
        self.auto_merge_actor = auto_merge_actor
        self.label = label
        self.concurrency = concurrency or config.CONCURRENT_REPOS

        self.failed_repos: dict[str, ErrorRecord] = {}
        self.stats = CollectionStats()
        self._stop_requested = False
        self._lookup_limiter: trio.CapacityLimiter | None = None  # created inside the trio run

    async def _signal_watcher(self, nursery: trio.Nursery) -> None:
        """Cancel the nursery on SIGINT/SIGTERM; folded repos are still reported."""
        with trio.open_signal_receiver(signal.SIGINT, signal.SIGTERM) as signal_aiter:
            async for sig in signal_aiter:
                self._stop_requested = True
                self.stats.state = CollectionState.PAUSED
                logger.info(f"Signal {sig} received, stopping gracefully...")
                nursery.cancel_scope.cancel()
                break

    async def fetch_history(self, repo: str) -> RepositoryHistory:
        """Page through a repository's dependency PRs into its history.

        Raises CollaboratorUnavailable if the listing fails.
        """
        history = RepositoryHistory(repo=repo)
        try:
            async for issue in self.client.list_dependency_prs(
                repo, since=self.accumulator.window.since, label=self.label
            ):
                history.add(extract_pull_request_event(repo, issue))
        except httpx.HTTPError as e:
            raise CollaboratorUnavailable(repo, f"listing PRs failed: {e}") from e
        return history

    async def fetch_alerts(self, repo: str, result: RepositoryResult) -> None:
        try:
            for alert_data in await self.client.get_security_alerts(repo):
                result.alerts.append(extract_security_alert(repo, alert_data))
        except httpx.HTTPError as e:
            logger.warning(f"{repo}: security alerts unavailable: {e}")
            result.errors.append(f"alerts: {e}")

    def _needs_check_status(self, pr: ClassifiedPullRequest) -> bool:
        window = self.accumulator.window
        return pr.parsed and pr.status == PullRequestStatus.OPEN and window.contains(pr.event.created_at.date())

    def _needs_merge_actor(self, pr: ClassifiedPullRequest) -> bool:
        window = self.accumulator.window
        return (
            self.auto_merge_actor is not None
            and pr.parsed
            and pr.status == PullRequestStatus.MERGED
            and window.contains(pr.event.created_at.date())
            and window.contains(pr.event.merged_at.date())
        )

    async def resolve_check_status(self, pr: ClassifiedPullRequest, result: RepositoryResult) -> None:
        event = pr.event
        try:
            async with self._lookup_limiter:
                head_sha = event.head_sha
                if head_sha is None:
                    pr_data = await self.client.get_pull_request(event.repo, event.number)
                    head_sha = (pr_data.get("head") or {}).get("sha")
                if head_sha:
                    pr.failing_checks = await self.client.has_failing_checks(event.repo, head_sha)
                    self.stats.check_lookups += 1
        except httpx.HTTPError as e:
            logger.warning(f"{event.repo}#{event.number}: check status unavailable: {e}")
            result.errors.append(f"checks #{event.number}: {e}")

    async def resolve_merge_actor(self, pr: ClassifiedPullRequest, result: RepositoryResult) -> None:
        event = pr.event
        try:
            async with self._lookup_limiter:
                timeline = await self.client.get_issue_timeline(event.repo, event.number)
            actor = extract_merge_actor(timeline)
        except httpx.HTTPError as e:
            logger.warning(f"{event.repo}#{event.number}: timeline unavailable: {e}")
            result.errors.append(f"timeline #{event.number}: {e}")
            return
        if actor is not None:
            pr.event = event.model_copy(update={"merged_by": actor})
            pr.auto_merged = actor == self.auto_merge_actor

    async def collect_repository(self, repo: str) -> RepositoryResult:
        """Fetch and classify one repository without touching the buckets."""
        if self._lookup_limiter is None:
            self._lookup_limiter = trio.CapacityLimiter(LOOKUP_LIMIT)

        result = RepositoryResult(repo=repo)
        history = await self.fetch_history(repo)
        result.pull_requests = classify_history(history)

        async with trio.open_nursery() as nursery:
            nursery.start_soon(self.fetch_alerts, repo, result)
            for pr in result.pull_requests:
                if self._needs_check_status(pr):
                    nursery.start_soon(self.resolve_check_status, pr, result)
                if self._needs_merge_actor(pr):
                    nursery.start_soon(self.resolve_merge_actor, pr, result)

        return result

    def merge_result(self, result: RepositoryResult) -> None:
        """Fold a repository's results and update stats."""
        self.accumulator.fold(result)

        self.stats.processed_repos += 1
        self.stats.prs_seen += len(result.pull_requests)
        self.stats.unparsed_prs += result.unparsed_count
        self.stats.security_alerts += len(result.alerts)
        self.stats.last_repo = result.repo
        self.stats.api_requests = self.client.request_count
        self.stats.rate_limit_remaining = self.client.rate_limit_remaining

        if result.errors:
            self.stats.last_error = f"{result.repo}: {'; '.join(result.errors)}"

    async def _process_single_repo(self, repo: str) -> None:
        if self._stop_requested:
            return

        try:
            result = await self.collect_repository(repo)
            self.merge_result(result)
            logger.info(
                f"{repo}: {len(result.pull_requests)} PRs ({result.unparsed_count} unparsed), "
                f"{len(result.alerts)} alerts"
            )
        except Exception as e:
            self.stats.failed_repos += 1
            self.failed_repos[repo] = ErrorRecord(
                repo=repo,
                error_type=type(e).__name__,
                error_message=str(e)[:500],
                timestamp=datetime.now(UTC).isoformat(),
            )
            self.stats.last_error = f"{repo}: {type(e).__name__}: {str(e)[:100]}"
            logger.error(f"{repo} failed: {type(e).__name__}: {e}")
            logger.debug(traceback.format_exc())

    async def _repo_producer(self, send_channel: trio.MemorySendChannel, repos: list[str]) -> None:
        async with send_channel:
            for repo in repos:
                if self._stop_requested:
                    break
                await send_channel.send(repo)

    async def _repo_worker(self, receive_channel: trio.MemoryReceiveChannel) -> None:
        async with receive_channel:
            async for repo in receive_channel:
                if self._stop_requested:
                    break
                await self._process_single_repo(repo)

    async def _dashboard_task(self, live: Live) -> None:
        while True:
            await trio.sleep(0.5)
            live.update(self.build_dashboard())

    def build_dashboard(self) -> Table:
        """Build the live dashboard display."""
        table = Table(title="Dependency PR Metrics", expand=True)
        table.add_column("Metric", style="cyan")
        table.add_column("Value", style="green")
        table.add_column("Metric", style="cyan")
        table.add_column("Value", style="green")

        state_color = {
            CollectionState.RUNNING: "green",
            CollectionState.PAUSED: "yellow",
            CollectionState.COMPLETED: "blue",
        }
        state_str = f"[{state_color[self.stats.state]}]{self.stats.state.value}[/]"

        table.add_row("State", state_str, "Auth", self.stats.auth_type.upper())
        table.add_row(
            "Repos", f"{self.stats.processed_repos}/{self.stats.total_repos}",
            "Failed", f"[red]{self.stats.failed_repos}[/]" if self.stats.failed_repos else "0",
        )
        table.add_row(
            "PRs", str(self.stats.prs_seen),
            "Unparsed titles", str(self.stats.unparsed_prs),
        )
        table.add_row(
            "Security alerts", str(self.stats.security_alerts),
            "Check lookups", str(self.stats.check_lookups),
        )
        table.add_row(
            "API requests", str(self.stats.api_requests),
            "Rate limit", f"{self.stats.rate_limit_remaining} remaining",
        )
        table.add_row("Last repo", self.stats.last_repo or "-", "", "")

        if self.stats.last_error:
            error = self.stats.last_error
            table.add_row("[red]Last error[/]", f"[red]{error[:80]}[/]", "", "")

        return table

    def save_error_log(self, path: Path | None = None) -> Path | None:
        """Write failed repositories to a JSON error log."""
        if not self.failed_repos:
            return None

        path = path or get_error_log_file()
        os.makedirs(path.parent, exist_ok=True)
        with open(path, "w") as f:
            json.dump(
                {
                    "timestamp": datetime.now(UTC).isoformat(),
                    "total_errors": len(self.failed_repos),
                    "errors": [asdict(e) for e in self.failed_repos.values()],
                },
                f,
                indent=2,
            )
        return path

    async def run(self, repos: list[RepoInfo], show_dashboard: bool = True) -> list[Snapshot]:
        """Collect every repository, then finalize all buckets."""
        names = [repo.full_name for repo in repos]
        window = self.accumulator.window

        self.stats.total_repos = len(names)
        self.stats.auth_type = self.client.auth_type
        logger.info("=" * 60)
        logger.info(f"Collecting {len(names)} repos: {window.start} to {window.end} ({window.granularity.value})")

        send_channel, receive_channel = trio.open_memory_channel[str](REPO_QUEUE_SIZE)

        async def pipeline(live: Live | None) -> None:
            async with trio.open_nursery() as nursery:
                nursery.start_soon(self._signal_watcher, nursery)
                if live is not None:
                    nursery.start_soon(self._dashboard_task, live)

                async with trio.open_nursery() as workers:
                    workers.start_soon(self._repo_producer, send_channel, names)
                    for _ in range(self.concurrency):
                        workers.start_soon(self._repo_worker, receive_channel.clone())
                    await receive_channel.aclose()

                # Workers finished; stop the watcher and dashboard
                nursery.cancel_scope.cancel()

        if show_dashboard:
            with Live(self.build_dashboard(), console=self.console, refresh_per_second=2) as live:
                await pipeline(live)
                live.update(self.build_dashboard())
        else:
            await pipeline(None)

        was_interrupted = self._stop_requested
        self.stats.state = CollectionState.PAUSED if was_interrupted else CollectionState.COMPLETED
        error_log = self.save_error_log()

        logger.info(
            f"Collection {'interrupted' if was_interrupted else 'complete'}: "
            f"{self.stats.processed_repos} repos, {self.stats.failed_repos} failed, "
            f"{self.stats.unparsed_prs} unparsed titles, {self.client.request_count} API requests"
        )

        if was_interrupted:
            self.console.print("[bold yellow]Collection stopped - reporting repositories folded so far[/]")
        if error_log:
            self.console.print(f"[yellow]{self.stats.failed_repos} repos failed, see {error_log}[/]")
        if self.stats.unparsed_prs:
            self.console.print(f"[dim]{self.stats.unparsed_prs} PR titles matched no pattern (see log)[/]")

        return self.accumulator.snapshots()
