"""Main CLI entry point for dependabot-metrics."""

import argparse
import sys
from pathlib import Path

from rich.console import Console
from rich.markup import escape

from ..errors import ConfigurationError
from ..metrics_config import OUTPUT_FORMATS, MetricsConfig, RunConfig
from .init_config import init_config

CONFIG_ERROR_EXIT = 2


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="dependabot-metrics",
        description="Dependency-update PR health metrics for GitHub repositories",
        epilog="Run 'dependabot-metrics <command> --help' for more information on a command.",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # collect command - fetch, classify and report
    collect_parser = subparsers.add_parser(
        "collect",
        help="Collect metrics for a date range",
        description="Fetch dependency PRs and security alerts, then report metrics for the date range.",
    )
    collect_parser.add_argument("--from", dest="from_date", required=True, help="First day (YYYY-MM-DD)")
    collect_parser.add_argument("--to", dest="to_date", required=True, help="Last day, inclusive (YYYY-MM-DD)")
    collect_parser.add_argument(
        "--outdated-limit",
        "-l",
        type=int,
        default=None,
        help="Days after which an update counts as outdated (or outdated_limit in config)",
    )
    collect_parser.add_argument(
        "--daily",
        action="store_true",
        help="One snapshot per day instead of one for the whole range",
    )
    collect_parser.add_argument(
        "--format",
        "-f",
        dest="output_format",
        choices=OUTPUT_FORMATS,
        default="terminal",
        help="Output format (default: terminal)",
    )
    collect_parser.add_argument(
        "--repo",
        "-r",
        dest="repos",
        action="append",
        default=None,
        help="Repository as owner/name (repeatable, overrides config)",
    )
    collect_parser.add_argument("--config", "-c", type=Path, default=None, help="Config file path")
    collect_parser.add_argument(
        "--output",
        "-o",
        type=Path,
        default=None,
        help="Output file path (default: stdout, or dependabot_metrics-<from>-<to>.csv for CSV)",
    )
    collect_parser.add_argument(
        "--auto-merge-actor",
        default=None,
        help="Login whose merges count as auto-merged",
    )
    collect_parser.add_argument(
        "--no-dashboard",
        action="store_true",
        help="Disable the live progress dashboard",
    )

    # parse command - check title coverage
    parse_parser = subparsers.add_parser(
        "parse",
        help="Parse PR titles and show the update they describe",
        description="Check which titles the title patterns understand, and how each update is classified.",
    )
    parse_parser.add_argument("titles", nargs="+", help="PR titles to parse")

    # init command - generate config
    init_parser = subparsers.add_parser(
        "init",
        help="Generate dependabot-metrics.yaml",
        description="Write a starter config, seeded from the git remote of the current directory.",
    )
    init_parser.add_argument(
        "--output",
        "-o",
        type=Path,
        default=None,
        help="Output file path (default: dependabot-metrics.yaml)",
    )
    init_parser.add_argument("--force", action="store_true", help="Overwrite an existing file")

    return parser


def run_collect(args: argparse.Namespace) -> None:
    # Import here to avoid slow startup for parse/init
    import trio

    from ..accumulator import MetricsAccumulator
    from ..collector import MetricsCollector, setup_logging
    from ..github_client import GitHubClient
    from ..repo import get_log_file, resolve_repos
    from ..report import render

    run = RunConfig.build(
        from_date=args.from_date,
        to_date=args.to_date,
        outdated_limit=args.outdated_limit,
        daily=args.daily,
        output_format=args.output_format,
        repos=args.repos,
        auto_merge_actor=args.auto_merge_actor,
        output=args.output,
        file_config=MetricsConfig.load(args.config),
    )

    setup_logging()
    console = Console()
    # Progress goes to stderr so JSON/Prometheus output on stdout stays clean
    progress_console = Console(stderr=True)

    async def collect():
        async with GitHubClient() as client:
            repos = await resolve_repos(run.repos, client, run.repos_url, run.repos_owner)
            accumulator = MetricsAccumulator(run.window, run.outdated_limit)
            collector = MetricsCollector(
                client,
                accumulator,
                progress_console,
                auto_merge_actor=run.auto_merge_actor,
                label=run.label,
            )
            return await collector.run(repos, show_dashboard=not args.no_dashboard)

    snapshots = trio.run(collect)
    render(snapshots, run.output_format, console, run.output)
    progress_console.print(f"[dim]Log: {get_log_file()}[/]")


def run_parse(titles: list[str]) -> None:
    from ..titles import parse_title
    from ..versions import classify

    console = Console()
    for title in titles:
        update = parse_title(title)
        if update is None:
            console.print(f"[red]no match[/]  {escape(title)}", highlight=False)
            continue
        severity = classify(update.from_version, update.to_version)
        console.print(
            f"[green]{severity.value:<7}[/] {escape(update.dependency)} {update.from_version} -> {update.to_version}",
            highlight=False,
        )


def main(argv: list[str] | None = None):
    """Main CLI entry point for dependabot-metrics."""
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        if args.command == "collect":
            run_collect(args)

        elif args.command == "parse":
            run_parse(args.titles)

        elif args.command == "init":
            try:
                init_config(args.output, force=args.force)
            except FileExistsError as e:
                print(f"Error: {e}", file=sys.stderr)
                sys.exit(1)

        elif args.command is None:
            parser.print_help()
            sys.exit(0)

        else:
            print(f"Unknown command: {args.command}")
            parser.print_help()
            sys.exit(1)

    except ConfigurationError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(CONFIG_ERROR_EXIT)


if __name__ == "__main__":
    main()
