"""Generate a starter dependabot-metrics.yaml.

Seeds `repos` with the repository the current directory's git remote points
at, if any.
"""

from __future__ import annotations

from pathlib import Path

from ..metrics_config import MetricsConfig
from ..repo import detect_repo_from_git

DEFAULT_OUTDATED_LIMIT = 20

HEADER = """# dependabot-metrics.yaml - settings for dependency PR metrics
# Generated by: dependabot-metrics init
#
# repos: owner/name entries to report on (or set repos_url + repos_owner
#        to read an inventory of {app_name: ...} entries instead)
# outdated_limit: days after which an open or merged update counts as stale
# auto_merge_actor: login whose merges count as auto-merged

"""


def generate_config() -> MetricsConfig:
    repo = detect_repo_from_git()
    return MetricsConfig(
        repos=[repo.full_name] if repo else [],
        repos_owner=repo.owner if repo else None,
        outdated_limit=DEFAULT_OUTDATED_LIMIT,
    )


def init_config(output: Path | None = None, force: bool = False) -> str:
    """Write a starter config file.

    Args:
        output: Output file path (defaults to dependabot-metrics.yaml)
        force: Overwrite an existing file

    Returns:
        YAML config string
    """
    if output is None:
        output = Path.cwd() / "dependabot-metrics.yaml"

    if output.exists() and not force:
        raise FileExistsError(f"{output} already exists (use --force to overwrite)")

    config = generate_config()
    if config.repos:
        print(f"Detected repository {config.repos[0]} from git remote")
    else:
        print("No git remote found; add repositories under 'repos' by hand.")

    full_content = HEADER + config.to_yaml()

    print(f"Writing config to {output}")
    with open(output, "w") as f:
        f.write(full_content)

    return full_content
