"""GitHub API client for dependency PRs, check runs and security alerts.

Uses httpx.AsyncClient with trio. Handles primary/secondary rate limits,
retries server errors and supports PAT or GitHub App authentication.
"""

import logging
import time
from collections.abc import AsyncGenerator
from datetime import UTC, datetime, timedelta
from typing import Any

import httpx
import jwt
import trio

from . import config
from .errors import ConfigurationError

logger = logging.getLogger(__name__)

API_VERSION = "2022-11-28"
PASSING_CONCLUSIONS = {"success", "neutral", "skipped"}


class RetriesExhausted(httpx.HTTPError):
    """Rate limiting or server errors persisted through every retry."""


class GitHubAppAuth:
    """Installation token provider for GitHub App auth, refreshed before expiry."""

    def __init__(self, app_id: str, private_key_path: str, installation_id: str):
        self.app_id = app_id
        self.installation_id = installation_id

        with open(private_key_path) as f:
            self.private_key = f.read()

        self._token: str | None = None
        self._token_expires_at: datetime | None = None
        self._refresh_lock: trio.Lock | None = None  # created inside the trio run

    def _generate_jwt(self) -> str:
        now = datetime.now(UTC)
        payload = {
            "iat": int(now.timestamp()) - 60,  # clock skew
            "exp": int((now + timedelta(minutes=10)).timestamp()),
            "iss": self.app_id,
        }
        return jwt.encode(payload, self.private_key, algorithm="RS256")

    def _token_valid(self) -> bool:
        return (
            self._token is not None
            and self._token_expires_at is not None
            and self._token_expires_at > datetime.now(UTC) + timedelta(minutes=5)
        )

    async def _fetch_installation_token(self) -> tuple[str, datetime]:
        async with httpx.AsyncClient() as client:
            response = await client.post(
                f"https://api.github.com/app/installations/{self.installation_id}/access_tokens",
                headers={
                    "Authorization": f"Bearer {self._generate_jwt()}",
                    "Accept": "application/vnd.github+json",
                    "X-GitHub-Api-Version": API_VERSION,
                },
                timeout=30.0,
            )
            response.raise_for_status()

        data = response.json()
        return data["token"], datetime.fromisoformat(data["expires_at"].replace("Z", "+00:00"))

    async def get_token(self) -> str:
        if self._refresh_lock is None:
            self._refresh_lock = trio.Lock()

        if self._token_valid():
            return self._token

        async with self._refresh_lock:
            # Another task may have refreshed while we waited
            if not self._token_valid():
                self._token, self._token_expires_at = await self._fetch_installation_token()
            return self._token


class GitHubClient:
    """Async GitHub REST client scoped to no particular repository.

    Every repository-level call takes the `owner/name` it applies to, so one
    client serves a whole fleet of repositories.
    """

    BASE_URL = "https://api.github.com"

    def __init__(
        self,
        token: str | None = None,
        app_auth: GitHubAppAuth | None = None,
    ):
        """Initialize the client.

        Args:
            token: Personal access token (PAT)
            app_auth: GitHubAppAuth instance for App authentication

        Without either, falls back to GITHUB_APP_* then GITHUB_TOKEN from the
        environment.
        """
        self.app_auth = app_auth
        self.pat_token = token

        if self.app_auth is None and self.pat_token is None:
            if config.GITHUB_APP_ID and config.GITHUB_APP_PRIVATE_KEY_PATH and config.GITHUB_APP_INSTALLATION_ID:
                self.app_auth = GitHubAppAuth(
                    config.GITHUB_APP_ID,
                    config.GITHUB_APP_PRIVATE_KEY_PATH,
                    config.GITHUB_APP_INSTALLATION_ID,
                )
            elif config.GITHUB_TOKEN:
                self.pat_token = config.GITHUB_TOKEN
            else:
                raise ConfigurationError(
                    "GitHub auth required. Set GITHUB_TOKEN or "
                    "GITHUB_APP_ID + GITHUB_APP_PRIVATE_KEY_PATH + GITHUB_APP_INSTALLATION_ID"
                )

        self._auth_type = "app" if self.app_auth else "pat"
        self.client: httpx.AsyncClient | None = None
        self._request_count = 0
        self.rate_limit_remaining = 5000
        self.rate_limit_reset = 0

    async def __aenter__(self):
        self.client = httpx.AsyncClient(
            base_url=self.BASE_URL,
            headers={
                "Accept": "application/vnd.github+json",
                "X-GitHub-Api-Version": API_VERSION,
            },
            timeout=30.0,
            http2=True,
        )
        return self

    async def __aexit__(self, *args):
        if self.client:
            await self.client.aclose()

    @property
    def auth_type(self) -> str:
        return self._auth_type

    @property
    def request_count(self) -> int:
        return self._request_count

    async def _get_auth_header(self) -> str:
        if self.app_auth:
            return f"Bearer {await self.app_auth.get_token()}"
        return f"Bearer {self.pat_token}"

    def _track_rate_limit(self, response: httpx.Response) -> None:
        remaining = response.headers.get("X-RateLimit-Remaining")
        reset = response.headers.get("X-RateLimit-Reset")
        if remaining is not None:
            self.rate_limit_remaining = int(remaining)
        if reset is not None:
            self.rate_limit_reset = int(reset)

    async def _handle_rate_limit(self, response: httpx.Response) -> bool:
        """Sleep through a rate limit. Returns True if the request should be retried."""
        if response.status_code in (403, 429) and "Retry-After" in response.headers:
            retry_after = int(response.headers["Retry-After"])
            logger.warning(f"Rate limited (secondary). Waiting {retry_after}s...")
            await trio.sleep(retry_after)
            return True

        if response.status_code == 403 and int(response.headers.get("X-RateLimit-Remaining", 1)) == 0:
            reset_time = int(response.headers.get("X-RateLimit-Reset", 0))
            wait_seconds = max(reset_time - time.time(), 60)
            logger.warning(f"Rate limited (primary). Waiting {wait_seconds:.0f}s until reset...")
            await trio.sleep(wait_seconds + 1)
            return True

        if response.status_code == 429:
            logger.warning("Rate limited (secondary). Waiting 60s...")
            await trio.sleep(60)
            return True

        return False

    async def _request(
        self,
        method: str,
        path: str,
        params: dict | None = None,
        headers: dict | None = None,
        max_retries: int = 3,
    ) -> httpx.Response:
        if not self.client:
            raise RuntimeError("Client not initialized. Use async context manager.")

        request_headers = {"Authorization": await self._get_auth_header()}
        if headers:
            request_headers.update(headers)

        for attempt in range(max_retries):
            response = await self.client.request(method, path, params=params, headers=request_headers)
            self._request_count += 1
            self._track_rate_limit(response)

            if await self._handle_rate_limit(response):
                continue

            if response.status_code >= 500:
                wait = 2**attempt
                logger.warning(f"Server error {response.status_code} on {path}. Retrying in {wait}s...")
                await trio.sleep(wait)
                continue

            response.raise_for_status()
            return response

        raise RetriesExhausted(f"Max retries exceeded for {path}")

    async def get(self, path: str, params: dict | None = None, headers: dict | None = None) -> Any:
        response = await self._request("GET", path, params=params, headers=headers)
        return response.json()

    async def paginate(
        self,
        path: str,
        params: dict | None = None,
        headers: dict | None = None,
    ) -> AsyncGenerator[Any]:
        """Yield items page by page until the API returns an empty page."""
        params = params.copy() if params else {}
        params["per_page"] = config.PER_PAGE
        page = 1

        while True:
            params["page"] = page
            items = await self.get(path, params=params, headers=headers)

            if not items:
                break

            for item in items:
                yield item

            page += 1

    async def paginate_all(self, path: str, params: dict | None = None, headers: dict | None = None) -> list[dict]:
        return [item async for item in self.paginate(path, params, headers)]

    async def list_dependency_prs(
        self,
        repo: str,
        since: datetime | None = None,
        label: str | None = None,
    ) -> AsyncGenerator[dict]:
        """Yield dependency-labelled PRs (as issue payloads) for a repository.

        The issues endpoint is the only list endpoint filtering by both label
        and `since`; it also returns plain issues, which are skipped.
        """
        params = {"state": "all", "labels": label or config.DEPENDENCY_LABEL}
        if since:
            params["since"] = since.strftime("%Y-%m-%dT%H:%M:%SZ")

        async for issue in self.paginate(f"/repos/{repo}/issues", params):
            if issue.get("pull_request"):
                yield issue

    async def get_pull_request(self, repo: str, number: int) -> dict:
        return await self.get(f"/repos/{repo}/pulls/{number}")

    async def get_check_runs(self, repo: str, ref: str) -> list[dict]:
        response = await self.get(f"/repos/{repo}/commits/{ref}/check-runs")
        return response.get("check_runs", [])

    async def get_check_conclusions(self, repo: str, ref: str) -> list[str | None]:
        return [run.get("conclusion") for run in await self.get_check_runs(repo, ref)]

    async def has_failing_checks(self, repo: str, ref: str) -> bool:
        """True if any check run on `ref` concluded outside success/neutral/skipped."""
        conclusions = await self.get_check_conclusions(repo, ref)
        return any(conclusion not in PASSING_CONCLUSIONS for conclusion in conclusions)

    async def get_security_alerts(self, repo: str) -> list[dict]:
        """Open Dependabot alerts for a repository."""
        return await self.paginate_all(f"/repos/{repo}/dependabot/alerts", {"state": "open"})

    async def get_issue_timeline(self, repo: str, number: int) -> list[dict]:
        return await self.paginate_all(f"/repos/{repo}/issues/{number}/timeline")

    async def get_repo_list(self, url: str) -> list[dict]:
        """Fetch a repo inventory document (absolute URL, no GitHub auth)."""
        async with httpx.AsyncClient(timeout=30.0) as client:
            response = await client.get(url)
            response.raise_for_status()
        return response.json()
