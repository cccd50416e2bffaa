import asyncio
import json
import uuid
from datetime import datetime, timezone

import httpx
import pytest
from sqlmodel import select

from prscore.core.config import Settings
from prscore.core.exceptions import ConfigurationError
from prscore.db.models import ChangedFile, Change, Issue, IssueLink, Repository
from prscore.integrations.github import GitHubClient, parse_github_timestamp, resolve_github_token
from prscore.services.sync import GitHubSyncService, parse_linked_issues

BASE_URL = "https://api.github.test"

REPO = {"id": 11, "name": "widgets", "full_name": "acme/widgets", "default_branch": "main"}

ISSUES = [
    {"id": 101, "number": 1, "title": "Login broken", "body": "Steps...", "state": "closed",
     "labels": [{"name": "bug"}], "html_url": "https://github.com/acme/widgets/issues/1"},
    {"id": 102, "number": 2, "title": "Crash on save", "body": None, "state": "open",
     "labels": [], "html_url": "https://github.com/acme/widgets/issues/2"},
    {"id": 103, "number": 3, "title": "A pull request", "state": "closed", "labels": [],
     "pull_request": {"url": "https://api.github.test/repos/acme/widgets/pulls/3"}},
]

PULLS = [
    {"id": 201, "number": 3, "title": "Fix login", "body": "Fixes #1, closes #1 and resolves #2",
     "state": "closed", "merged_at": "2026-10-10T09:00:00Z", "updated_at": "2026-10-10T09:00:00Z",
     "html_url": "https://github.com/acme/widgets/pull/3", "user": {"id": 4242, "login": "octocat"},
     "head": {"sha": "abc"}, "base": {"sha": "def"}, "additions": 45, "deletions": 3, "changed_files": 2},
    {"id": 202, "number": 4, "title": "Abandoned", "body": "", "state": "closed", "merged_at": None,
     "updated_at": "2026-10-09T09:00:00Z", "user": {"id": 7, "login": "someone"},
     "head": {"sha": "x"}, "base": {"sha": "y"}},
]

FILES = [
    {"filename": "src/auth/login.py", "status": "modified", "additions": 40, "deletions": 5, "changes": 45},
    {"filename": "src/ui/button.tsx", "status": "modified", "additions": 2, "deletions": 1, "changes": 3},
]


def _github_transport(requests=None) -> httpx.MockTransport:
    routes = {
        "/orgs/acme/repos": [REPO],
        "/repos/acme/widgets/issues": ISSUES,
        "/repos/acme/widgets/pulls": PULLS,
        "/repos/acme/widgets/pulls/3/files": FILES,
    }

    async def handler(request: httpx.Request) -> httpx.Response:
        if requests is not None:
            requests.append(request)
        body = routes.get(request.url.path)
        if body is None:
            return httpx.Response(404, json={"message": "Not Found"})
        return httpx.Response(200, json=body)

    return httpx.MockTransport(handler)


def test_parse_linked_issues_dedupes_in_first_seen_order() -> None:
    body = "Fixes #12, closes #3 and FIXES #12; Resolves   #7. fixes#5 mentions #9"

    assert parse_linked_issues(body) == [12, 3, 7]
    assert parse_linked_issues(None) == []


def test_github_timestamps_are_utc_aware() -> None:
    assert parse_github_timestamp("2024-05-01T12:30:00Z") == datetime(
        2024, 5, 1, 12, 30, tzinfo=timezone.utc
    )
    assert parse_github_timestamp(None) is None
    assert parse_github_timestamp("") is None


def test_pagination_follows_link_header() -> None:
    seen = []

    async def handler(request: httpx.Request) -> httpx.Response:
        seen.append(str(request.url))
        if request.url.params.get("page") == "2":
            return httpx.Response(200, json=[{"id": 2}])
        next_url = f"{BASE_URL}/orgs/acme/repos?per_page=100&page=2"
        return httpx.Response(200, json=[{"id": 1}], headers={"Link": f'<{next_url}>; rel="next"'})

    client = GitHubClient("token", base_url=BASE_URL, transport=httpx.MockTransport(handler))
    repos = asyncio.run(client.list_repos("acme"))

    assert [r["id"] for r in repos] == [1, 2]
    assert len(seen) == 2
    assert "sort=updated" in seen[0]


def test_list_pulls_drops_pulls_updated_before_since() -> None:
    client = GitHubClient("token", base_url=BASE_URL, transport=_github_transport())
    since = datetime(2026, 10, 9, 12, 0, tzinfo=timezone.utc)

    pulls = asyncio.run(client.list_pulls("acme", "widgets", since))

    assert [p["number"] for p in pulls] == [3]


def test_errors_are_raised() -> None:
    client = GitHubClient("token", base_url=BASE_URL, transport=_github_transport())

    with pytest.raises(httpx.HTTPStatusError):
        asyncio.run(client.list_pull_files("acme", "missing", 1))


def test_post_pr_comment_sends_body_and_auth() -> None:
    requests = []

    async def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return httpx.Response(201, json={"id": 99})

    client = GitHubClient("secret", base_url=BASE_URL, transport=httpx.MockTransport(handler))
    comment = asyncio.run(client.post_pr_comment("acme", "widgets", 3, "hello"))

    assert comment["id"] == 99
    assert requests[0].url.path == "/repos/acme/widgets/issues/3/comments"
    assert requests[0].headers["Authorization"] == "Bearer secret"
    assert json.loads(requests[0].content) == {"body": "hello"}


def test_token_resolution_order(monkeypatch) -> None:
    org_id = uuid.uuid4()
    app_settings = Settings(GITHUB_TOKEN="global-token")
    monkeypatch.delenv("GITHUB_TOKEN_ACME", raising=False)

    assert resolve_github_token(org_id, "acme", app_settings) == "global-token"

    monkeypatch.setenv("GITHUB_TOKEN_ACME", "slug-token")
    assert resolve_github_token(org_id, "acme", app_settings) == "slug-token"

    monkeypatch.setenv(f"GITHUB_TOKEN_{org_id}", "org-token")
    assert resolve_github_token(org_id, "acme", app_settings) == "org-token"


def test_missing_token_is_a_configuration_error() -> None:
    with pytest.raises(ConfigurationError):
        resolve_github_token(uuid.uuid4(), None, Settings(GITHUB_TOKEN=None))


def test_sync_organization_mirrors_repo_issues_and_merged_pulls(run_db) -> None:
    org_id = uuid.uuid4()

    async def counts(session_factory):
        async with session_factory() as session:
            result = {}
            for model in (Repository, Issue, Change, ChangedFile, IssueLink):
                result[model.__tablename__] = len(
                    (await session.execute(select(model))).scalars().all()
                )
            return result

    async def scenario(session_factory):
        client = GitHubClient("token", base_url=BASE_URL, transport=_github_transport())
        service = GitHubSyncService(session_factory, client)

        first = await service.sync_organization(org_id, "acme")
        after_first = await counts(session_factory)
        second = await service.sync_organization(org_id, "acme")
        after_second = await counts(session_factory)

        async with session_factory() as session:
            change = (await session.execute(select(Change))).scalar_one()
            issue = (
                await session.execute(select(Issue).where(Issue.number == 1))
            ).scalar_one()
            repo = (await session.execute(select(Repository))).scalar_one()
        return first, second, after_first, after_second, change, issue, repo

    first, second, after_first, after_second, change, issue, repo = run_db(scenario)

    assert first == {"repositories": 1, "issues": 2, "changes": 1}
    assert after_first == {
        "repositories": 1,
        "issues": 2,
        "changes": 1,
        "changed_files": 2,
        "issue_links": 2,
    }
    # Second pass only sees pulls updated since the last sync
    assert second["changes"] == 0
    assert after_second == after_first

    assert change.number == 3
    assert change.is_merged
    assert change.author_github_id == 4242
    assert change.author_login == "octocat"
    assert issue.labels == ["bug"]
    assert repo.last_synced_at is not None
