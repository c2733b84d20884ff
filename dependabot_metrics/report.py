"""Exporters for finalized snapshots: terminal, JSON, CSV and Prometheus.

Every exporter takes a list of Snapshot objects and nothing else, so the
collection pipeline is the same whatever the output format.
"""

from __future__ import annotations

import csv
import json
import logging
from dataclasses import dataclass
from datetime import date
from pathlib import Path

from prometheus_client import CollectorRegistry, Gauge, generate_latest, push_to_gateway
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from . import config
from .finalize import Snapshot

logger = logging.getLogger(__name__)

CSV_FIELDS = [
    "key",
    "total_prs_seen",
    "total_new_prs",
    "total_unparsed_prs",
    "total_merged_prs",
    "total_closed_prs",
    "total_open_prs",
    "total_security_alerts",
    "auto_merged_prs",
    "merged_by_user_prs",
    "major_update_percentage",
    "minor_update_percentage",
    "patch_update_percentage",
    "pr_success_rate",
    "average_merge_time",
    "median_merge_time",
    "average_time_since_open",
]

TOP_N = 10


@dataclass
class ReportSection:
    """A section of the report with headline and details."""

    headline: str
    summary: str
    details: list[str] | None = None
    table: list[dict] | None = None


def format_pct(value: float | None) -> str:
    """Format percentage with two decimals."""
    if value is None:
        return "N/A"
    return f"{value:.2f}%"


def format_days(value: float | None) -> str:
    if value is None:
        return "N/A"
    if value == 1:
        return "1 day"
    return f"{value:.1f} days" if value != int(value) else f"{int(value)} days"


def snapshot_label(snapshot: Snapshot) -> str:
    if snapshot.is_daily:
        return snapshot.key.isoformat()
    if snapshot.window_start == snapshot.window_end:
        return snapshot.window_start.isoformat()
    return f"{snapshot.window_start} to {snapshot.window_end}"


def print_section(console: Console, section: ReportSection) -> None:
    """Print a report section."""
    console.print(f"\n[bold]## {section.headline}[/]")
    console.print(section.summary)

    if section.details:
        for detail in section.details:
            console.print(f"  - {escape(detail)}")

    if section.table:
        headers = list(section.table[0].keys())
        table = Table(show_header=True, header_style="cyan")
        for header in headers:
            table.add_column(str(header))
        for row in section.table:
            table.add_row(*(str(row.get(h, "")) for h in headers))
        console.print(table)


def _top(counts: dict[str, int], key_name: str, n: int = TOP_N) -> list[dict]:
    return [{key_name: key, "count": count} for key, count in list(counts.items())[:n]]


def volume_section(snapshot: Snapshot) -> ReportSection:
    """How many dependency PRs arrived and what happened to them?"""
    by_type = snapshot.prs_by_update_type
    summary = (
        f"{snapshot.total_new_prs:,} new dependency PRs ({snapshot.total_unparsed_prs:,} more with "
        f"unrecognised titles). {snapshot.total_merged_prs:,} merged, {snapshot.total_closed_prs:,} "
        f"closed without merging and {snapshot.total_open_prs:,} still open. "
        f"Success rate {format_pct(snapshot.pr_success_rate)}."
    )
    details = [
        f"Major: {by_type.get('major', 0)} ({format_pct(snapshot.major_update_percentage)})",
        f"Minor: {by_type.get('minor', 0)} ({format_pct(snapshot.minor_update_percentage)})",
        f"Patch: {by_type.get('patch', 0)} ({format_pct(snapshot.patch_update_percentage)})",
    ]
    if by_type.get("unknown"):
        details.append(f"Unknown: {by_type['unknown']}")
    if snapshot.auto_merged_prs or snapshot.merged_by_user_prs:
        details.append(f"Auto-merged: {snapshot.auto_merged_prs}, merged by a person: {snapshot.merged_by_user_prs}")

    return ReportSection(headline=f"Dependency PRs: {snapshot_label(snapshot)}", summary=summary, details=details)


def timing_section(snapshot: Snapshot) -> ReportSection:
    if not snapshot.time_to_merge and not snapshot.time_since_open:
        return ReportSection(headline="Timing", summary="No merged or open PRs in this period.")

    summary = (
        f"Median time to merge {format_days(snapshot.median_merge_time)} "
        f"(average {format_days(snapshot.average_merge_time)}) across {len(snapshot.time_to_merge)} merges. "
        f"Open PRs have waited {format_days(snapshot.average_time_since_open)} on average."
    )
    table = [{"days to merge": days, "PRs": count} for days, count in snapshot.time_to_merge_distribution.items()]
    return ReportSection(headline="Timing", summary=summary, table=table or None)


def staleness_section(snapshot: Snapshot) -> ReportSection | None:
    rows = [
        {
            "repo": stale.repo,
            "PR": stale.pr_number,
            "dependency": stale.dependency,
            "from": stale.from_version,
            "to": stale.to_version,
            "days": stale.days,
        }
        for stale in snapshot.outdated_dependencies + snapshot.long_merge_dependencies
    ]
    if not rows and not snapshot.open_failing_prs:
        return None

    details = [f"{pr.repo}#{pr.pr_number} {pr.title} has failing checks" for pr in snapshot.open_failing_prs]
    return ReportSection(
        headline="Stale updates",
        summary=(
            f"{len(snapshot.outdated_dependencies)} open and {len(snapshot.long_merge_dependencies)} merged "
            f"updates crossed the outdated limit. {len(snapshot.open_failing_prs)} open PRs are failing checks."
        ),
        details=details or None,
        table=rows or None,
    )


def breakdown_sections(snapshot: Snapshot) -> list[ReportSection]:
    sections = []
    if snapshot.prs_per_dependency:
        sections.append(
            ReportSection(
                headline="Most updated dependencies",
                summary=f"{len(snapshot.prs_per_dependency)} dependencies received PRs.",
                table=_top(snapshot.prs_per_dependency, "dependency"),
            )
        )
    if snapshot.frequently_updated_repos:
        sections.append(
            ReportSection(
                headline="Busiest repositories",
                summary=f"{len(snapshot.frequently_updated_repos)} repositories received PRs.",
                table=_top(snapshot.frequently_updated_repos, "repo"),
            )
        )
    if snapshot.total_security_alerts:
        sections.append(
            ReportSection(
                headline="Security alerts",
                summary=f"{snapshot.total_security_alerts} open alerts raised in this period.",
                table=_top(snapshot.security_alerts_per_dependency, "dependency"),
            )
        )
    return sections


def render_terminal(snapshots: list[Snapshot], console: Console) -> None:
    """Print every snapshot as a narrative report."""
    for snapshot in snapshots:
        console.rule(f"[bold]DEPENDENCY UPDATES: {snapshot_label(snapshot)}[/]")

        sections = [volume_section(snapshot), timing_section(snapshot)]
        stale = staleness_section(snapshot)
        if stale:
            sections.append(stale)
        sections.extend(breakdown_sections(snapshot))

        for section in sections:
            print_section(console, section)

        if snapshot.unparsed_prs:
            console.print(f"\n[dim]{len(snapshot.unparsed_prs)} PRs with unrecognised titles:[/]")
            for pr in snapshot.unparsed_prs[:TOP_N]:
                console.print(f"[dim]  {pr.repo}#{pr.pr_number} {escape(pr.title)}[/]")
        console.print()


def to_json(snapshots: list[Snapshot]) -> str:
    return json.dumps([snapshot.model_dump(mode="json") for snapshot in snapshots], indent=2)


def csv_filename(start: date, end: date) -> str:
    """`dependabot_metrics-<from>-<to>.csv`, or `-<date>.csv` for a single day."""
    if start == end:
        return f"dependabot_metrics-{end}.csv"
    return f"dependabot_metrics-{start}-{end}.csv"


def write_csv(snapshots: list[Snapshot], path: Path | None = None) -> Path:
    """Write one row of headline figures per snapshot.

    Without `path`, the file is named after the window in the current directory.
    """
    if path is None:
        first = snapshots[0]
        path = Path(csv_filename(first.window_start, first.window_end))

    with open(path, "w", newline="") as f:
        writer = csv.DictWriter(f, fieldnames=CSV_FIELDS)
        writer.writeheader()
        for snapshot in snapshots:
            row = snapshot.model_dump(mode="json", include=set(CSV_FIELDS))
            writer.writerow(row)

    logger.info(f"Metrics saved in {path}")
    return path


SCALAR_GAUGES = {
    "total_new_prs": "Total number of new dependency PRs created",
    "total_unparsed_prs": "Dependency PRs whose title matched no pattern",
    "total_merged_prs": "Total number of merged PRs",
    "total_closed_prs": "Total number of PRs closed without merging",
    "total_open_prs": "Total number of open PRs",
    "total_security_alerts": "Total number of open security alerts",
    "auto_merged_prs": "PRs merged by the auto-merge actor",
    "merged_by_user_prs": "PRs merged by anyone else",
    "pr_success_rate": "Percentage of new PRs merged or closed",
    "average_merge_time": "Average days from first update to merge",
    "median_merge_time": "Median days from first update to merge",
    "average_time_since_open": "Average days open PRs have been waiting",
}


def build_registry(snapshots: list[Snapshot]) -> CollectorRegistry:
    """Gauges for every snapshot. Daily snapshots carry a `date` label."""
    registry = CollectorRegistry()
    daily = any(snapshot.is_daily for snapshot in snapshots)
    base = ["date"] if daily else []

    def gauge(name: str, documentation: str, labels: list[str] | None = None) -> Gauge:
        return Gauge(name, documentation, base + (labels or []), registry=registry)

    scalars = {name: gauge(name, doc) for name, doc in SCALAR_GAUGES.items()}
    by_type = gauge("prs_by_update_type", "Number of PRs by update type", ["update_type"])
    per_dependency = gauge(
        "prs_per_dependency", "Number of PRs per dependency and update type", ["dependency", "update_type"]
    )
    open_per_dependency = gauge("open_prs_per_dependency", "Still open PRs per dependency", ["dependency"])
    per_repo = gauge("frequently_updated_repos", "Number of PRs per repository", ["repo"])
    merge_times = gauge("merge_times", "Merge time in days for each PR", ["repo", "pr_number"])
    open_failing = gauge("open_failing_prs", "Open PRs that currently have failing checks", ["repo", "pr_number"])
    alerts_per_repo = gauge("security_alerts_per_repo", "Open security alerts per repository", ["repo"])
    alerts_per_dependency = gauge("security_alerts_per_dependency", "Open security alerts per dependency", ["dependency"])

    for snapshot in snapshots:
        date_label = [snapshot.key.isoformat()] if daily else []

        def labelled(metric: Gauge, *values) -> Gauge:
            return metric.labels(*date_label, *values) if date_label or values else metric

        for name, metric in scalars.items():
            labelled(metric).set(getattr(snapshot, name))
        for update_type, count in snapshot.prs_by_update_type.items():
            labelled(by_type, update_type).set(count)
        for dependency, counts in snapshot.prs_per_dependency_by_update_type.items():
            for update_type, count in counts.items():
                labelled(per_dependency, dependency, update_type).set(count)
        for dependency, count in snapshot.open_prs_per_dependency.items():
            labelled(open_per_dependency, dependency).set(count)
        for repo, count in snapshot.frequently_updated_repos.items():
            labelled(per_repo, repo).set(count)
        for merge in snapshot.merge_times:
            labelled(merge_times, merge.repo, str(merge.pr_number)).set(merge.days)
        for pr in snapshot.open_failing_prs:
            labelled(open_failing, pr.repo, str(pr.pr_number)).set(1)
        for repo, count in snapshot.security_alerts_per_repo.items():
            labelled(alerts_per_repo, repo).set(count)
        for dependency, count in snapshot.security_alerts_per_dependency.items():
            labelled(alerts_per_dependency, dependency).set(count)

    return registry


def export_prometheus(snapshots: list[Snapshot], gateway: str | None = None) -> str | None:
    """Push to the pushgateway if one is configured, else return the text exposition."""
    registry = build_registry(snapshots)
    gateway = gateway or config.PROMETHEUS_PUSHGATEWAY_URL
    if gateway:
        push_to_gateway(gateway, job=config.PROMETHEUS_JOB, registry=registry)
        logger.info(f"Pushed metrics to {gateway} as job {config.PROMETHEUS_JOB}")
        return None
    return generate_latest(registry).decode()


def render(snapshots: list[Snapshot], output_format: str, console: Console, output: Path | None = None) -> None:
    """Send snapshots to the chosen exporter."""
    if output_format == "terminal":
        render_terminal(snapshots, console)

    elif output_format == "json":
        text = to_json(snapshots)
        if output:
            output.write_text(text + "\n")
            console.print(f"[green]Metrics saved in {output}[/]")
        else:
            console.print_json(text)

    elif output_format == "csv":
        path = write_csv(snapshots, output)
        console.print(f"[green]Metrics saved in {path}[/]")

    elif output_format == "prometheus":
        exposition = export_prometheus(snapshots)
        if exposition is None:
            console.print("[green]Metrics pushed to the Prometheus pushgateway[/]")
        elif output:
            output.write_text(exposition)
            console.print(f"[green]Metrics saved in {output}[/]")
        else:
            console.print(exposition, markup=False, highlight=False, end="")

    else:
        raise ValueError(f"Unknown output format: {output_format}")
