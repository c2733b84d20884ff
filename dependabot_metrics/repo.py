"""Repository naming, inventory resolution and cache paths."""

from __future__ import annotations

import logging
import os
import re
import subprocess
from dataclasses import dataclass
from pathlib import Path

from . import config
from .errors import ConfigurationError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RepoInfo:
    """Repository information."""

    owner: str
    name: str

    @property
    def full_name(self) -> str:
        return f"{self.owner}/{self.name}"

    def __str__(self) -> str:
        return self.full_name


def get_cache_dir() -> Path:
    """Directory for logs and error reports."""
    xdg_cache = os.environ.get("XDG_CACHE_HOME")
    if xdg_cache:
        return Path(xdg_cache) / "dependabot-metrics"
    return Path.home() / ".cache" / "dependabot-metrics"


def get_log_file() -> Path:
    return get_cache_dir() / "collection.log"


def get_error_log_file() -> Path:
    return get_cache_dir() / "collection_errors.json"


def parse_git_remote_url(url: str) -> RepoInfo | None:
    """Parse owner/repo from git remote URL.

    Supports:
    - git@github.com:owner/repo.git
    - https://github.com/owner/repo(.git)
    - ssh://git@github.com/owner/repo.git
    """
    ssh_match = re.match(r"git@[\w.-]+:([^/]+)/([^/]+?)(?:\.git)?$", url)
    if ssh_match:
        return RepoInfo(owner=ssh_match.group(1), name=ssh_match.group(2))

    https_match = re.match(r"https?://[\w.-]+/([^/]+)/([^/]+?)(?:\.git)?$", url)
    if https_match:
        return RepoInfo(owner=https_match.group(1), name=https_match.group(2))

    ssh_url_match = re.match(r"ssh://git@[\w.-]+/([^/]+)/([^/]+?)(?:\.git)?$", url)
    if ssh_url_match:
        return RepoInfo(owner=ssh_url_match.group(1), name=ssh_url_match.group(2))

    return None


def parse_repo(value: str, default_owner: str | None = None) -> RepoInfo:
    """Parse `owner/name`, a bare name (with `default_owner`) or a git URL.

    Raises ConfigurationError if the value names no repository.
    """
    value = value.strip()

    from_url = parse_git_remote_url(value)
    if from_url:
        return from_url

    parts = value.split("/")
    if len(parts) == 2 and all(parts):
        return RepoInfo(owner=parts[0], name=parts[1])
    if len(parts) == 1 and parts[0] and default_owner:
        return RepoInfo(owner=default_owner, name=parts[0])

    raise ConfigurationError(f"Not a repository (expected owner/name): {value!r}")


def get_git_remote_url(remote: str = "origin") -> str | None:
    try:
        result = subprocess.run(
            ["git", "remote", "get-url", remote],
            capture_output=True,
            text=True,
            check=True,
        )
        return result.stdout.strip()
    except (subprocess.CalledProcessError, FileNotFoundError):
        return None


def detect_repo_from_git() -> RepoInfo | None:
    """Detect repo from git remote in current directory."""
    url = get_git_remote_url("origin")
    if url:
        return parse_git_remote_url(url)
    return None


def repos_from_inventory(entries: list[dict], owner: str) -> list[RepoInfo]:
    """Map inventory entries (`{"app_name": ...}`) to repositories under `owner`."""
    repos = []
    for entry in entries:
        name = entry.get("repo_name") or entry.get("app_name")
        if name:
            repos.append(RepoInfo(owner=owner, name=name))
    return repos


async def resolve_repos(
    names: list[str],
    client=None,
    repos_url: str | None = None,
    repos_owner: str | None = None,
) -> list[RepoInfo]:
    """Resolve the repositories to report on.

    Priority:
    1. Explicit names (CLI --repo or `repos` in the config file)
    2. Inventory document at `repos_url` (or REPOS_URL)

    Duplicates are dropped, order preserved. Raises ConfigurationError if
    nothing resolves.
    """
    owner = repos_owner or config.REPOS_OWNER
    repos = [parse_repo(name, owner) for name in names]

    url = repos_url or config.REPOS_URL
    if not repos and url and client is not None:
        if not owner:
            raise ConfigurationError("An owner is required with a repo inventory URL (repos_owner or REPOS_OWNER)")
        logger.info(f"Fetching repo inventory from {url}")
        repos = repos_from_inventory(await client.get_repo_list(url), owner)

    if not repos:
        raise ConfigurationError(
            "No repositories to report on. Either:\n"
            "  1. Pass --repo owner/name (repeatable), or\n"
            "  2. List repos in dependabot-metrics.yaml, or\n"
            "  3. Set REPOS_URL and REPOS_OWNER to an inventory of {app_name} entries"
        )

    return list(dict.fromkeys(repos))
