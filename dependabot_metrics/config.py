"""Configuration for dependency PR metrics collection."""

import os

from dotenv import load_dotenv

load_dotenv()

# Auth: PAT (simple) or GitHub App (higher rate limits)
GITHUB_TOKEN = os.environ.get("GITHUB_TOKEN")

# GitHub App auth (optional, takes precedence over PAT if all are set)
GITHUB_APP_ID = os.environ.get("GITHUB_APP_ID")
GITHUB_APP_PRIVATE_KEY_PATH = os.environ.get("GITHUB_APP_PRIVATE_KEY_PATH")
GITHUB_APP_INSTALLATION_ID = os.environ.get("GITHUB_APP_INSTALLATION_ID")

# Repo inventory: JSON list of {"app_name": ...} entries, mapped to REPOS_OWNER/app_name
REPOS_URL = os.environ.get("REPOS_URL")
REPOS_OWNER = os.environ.get("REPOS_OWNER")

# Prometheus pushgateway (prometheus output prints the exposition text if unset)
PROMETHEUS_PUSHGATEWAY_URL = os.environ.get("PROMETHEUS_PUSHGATEWAY_URL")
PROMETHEUS_JOB = os.environ.get("PROMETHEUS_JOB", "dependabot_metrics")

# Label the update bot puts on its PRs
DEPENDENCY_LABEL = os.environ.get("DEPENDENCY_LABEL", "dependencies")

# Extraction settings
PER_PAGE = 100  # Max items per API page
CONCURRENT_REPOS = int(os.environ.get("CONCURRENT_REPOS", "4"))
