"""
GitHub REST API client.

Lists repositories, issues, pull requests and pull request files for the
sync, and posts evaluation comments. List endpoints follow the
``Link: rel="next"`` header until exhausted.
"""

import os
import uuid
from datetime import datetime
from typing import Any, Dict, List, Optional

import httpx

from prscore.core.config import Settings, settings as default_settings
from prscore.core.exceptions import ConfigurationError
from prscore.core.logging import get_logger

logger = get_logger(__name__)


def resolve_github_token(
    org_id: uuid.UUID,
    slug: Optional[str] = None,
    app_settings: Optional[Settings] = None,
) -> str:
    """
    Resolve the GitHub token of an organization.

    Lookup order: ``GITHUB_TOKEN_<ORG_ID>``, ``GITHUB_TOKEN_<SLUG>`` (upper
    case), then the global ``GITHUB_TOKEN`` setting. Tokens are never stored
    in the database.

    Raises:
        ConfigurationError: if no token is configured.
    """
    app_settings = app_settings or default_settings
    token = os.environ.get(f"GITHUB_TOKEN_{org_id}")
    if not token and slug:
        token = os.environ.get(f"GITHUB_TOKEN_{slug.upper()}")
    if not token:
        token = app_settings.GITHUB_TOKEN
    if not token:
        raise ConfigurationError(
            f"Missing GitHub token. Set GITHUB_TOKEN_{org_id} or GITHUB_TOKEN in environment."
        )
    return token


def parse_github_timestamp(value: Optional[str]) -> Optional[datetime]:
    """GitHub ISO-8601 timestamp (trailing Z) as an aware datetime."""
    if not value:
        return None
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


class GitHubClient:
    """Client for interacting with GitHub REST API."""

    def __init__(
        self,
        token: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize GitHub client.

        Args:
            token: GitHub Personal Access Token or GitHub App token
            base_url: API root, defaults to the configured GITHUB_API_URL
            timeout: Request timeout in seconds
            transport: Optional httpx transport (tests use httpx.MockTransport)
        """
        self.token = token
        self.base_url = (base_url or default_settings.GITHUB_API_URL).rstrip("/")
        self.timeout = timeout or default_settings.GITHUB_TIMEOUT_SECONDS
        self.transport = transport
        self.headers = {
            "Accept": "application/vnd.github+json",
            "User-Agent": "PR-Score/1.0",
        }
        if token:
            self.headers["Authorization"] = f"Bearer {token}"

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            headers=self.headers, timeout=self.timeout, transport=self.transport
        )

    async def _get_paginated(
        self, path: str, params: Optional[Dict[str, Any]] = None
    ) -> List[Dict[str, Any]]:
        """GET a list endpoint and every following page."""
        items: List[Dict[str, Any]] = []
        url: Optional[str] = f"{self.base_url}{path}"

        async with self._client() as client:
            while url:
                response = await client.get(url, params=params)
                response.raise_for_status()
                items.extend(response.json())
                url = response.links.get("next", {}).get("url")
                # The next link already carries the query string
                params = None

        return items

    async def list_repos(self, org: str) -> List[Dict[str, Any]]:
        """
        List repositories of an organization.

        Args:
            org: Organization login

        Returns:
            Repository objects with id, name, full_name, default_branch, etc.
        """
        return await self._get_paginated(
            f"/orgs/{org}/repos", {"per_page": 100, "sort": "updated"}
        )

    async def list_issues(
        self, owner: str, repo: str, since: Optional[datetime] = None
    ) -> List[Dict[str, Any]]:
        """
        List issues of a repository updated since a timestamp.

        The result includes pull request pseudo-issues (they carry a
        ``pull_request`` key); callers filter them out.
        """
        params: Dict[str, Any] = {"state": "all", "per_page": 50, "sort": "updated"}
        if since is not None:
            params["since"] = since.isoformat()
        return await self._get_paginated(f"/repos/{owner}/{repo}/issues", params)

    async def list_pulls(
        self, owner: str, repo: str, since: Optional[datetime] = None
    ) -> List[Dict[str, Any]]:
        """
        List closed pull requests, most recently updated first.

        The pulls endpoint has no ``since`` filter, so pull requests updated
        before ``since`` are dropped here.
        """
        pulls = await self._get_paginated(
            f"/repos/{owner}/{repo}/pulls",
            {"state": "closed", "sort": "updated", "direction": "desc", "per_page": 50},
        )
        if since is None:
            return pulls

        recent = []
        for pr in pulls:
            updated_at = parse_github_timestamp(pr.get("updated_at"))
            if updated_at is not None and updated_at < since:
                continue
            recent.append(pr)
        return recent

    async def list_pull_files(
        self, owner: str, repo: str, pr_number: int
    ) -> List[Dict[str, Any]]:
        """
        Get list of files changed in a pull request.

        Returns:
            List of file change objects with filename, additions, deletions, etc.
        """
        return await self._get_paginated(
            f"/repos/{owner}/{repo}/pulls/{pr_number}/files", {"per_page": 100}
        )

    async def post_pr_comment(
        self, owner: str, repo: str, pr_number: int, body: str
    ) -> Dict[str, Any]:
        """
        Post a comment on a pull request.

        Returns:
            The created comment object.
        """
        url = f"{self.base_url}/repos/{owner}/{repo}/issues/{pr_number}/comments"

        async with self._client() as client:
            response = await client.post(url, json={"body": body})
            response.raise_for_status()
            return response.json()
