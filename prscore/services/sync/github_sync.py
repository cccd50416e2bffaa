"""
GitHub sync service.

Upserts repositories, issues and merged pull requests of an organization,
replaces each pull request's file list wholesale, and links pull requests to
the issues their description closes.
"""

import re
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence

from sqlalchemy import delete
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlmodel import select

from prscore.core.logging import get_logger
from prscore.db.models import ChangedFile, Change, Issue, IssueLink, Repository
from prscore.db.models.base import utcnow
from prscore.db.upsert import insert_for
from prscore.integrations.github import GitHubClient, parse_github_timestamp

logger = get_logger(__name__)

LINKED_ISSUE_PATTERN = re.compile(r"(?:fixes|closes|resolves)\s+#(\d+)", re.IGNORECASE)


def parse_linked_issues(body: Optional[str]) -> List[int]:
    """Issue numbers closed by a PR description, deduplicated in first-seen order."""
    numbers: List[int] = []
    for match in LINKED_ISSUE_PATTERN.finditer(body or ""):
        number = int(match.group(1))
        if number not in numbers:
            numbers.append(number)
    return numbers


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class GitHubSyncService:
    """Mirrors one organization's GitHub data. One transaction per repository."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        client: GitHubClient,
    ):
        self.session_factory = session_factory
        self.client = client

    async def sync_organization(self, org_id: uuid.UUID, org_login: str) -> Dict[str, int]:
        """
        Sync every repository of a GitHub organization.

        Returns:
            Counts of repositories, issues and changes written.
        """
        summary = {"repositories": 0, "issues": 0, "changes": 0}
        repos = await self.client.list_repos(org_login)
        logger.info("Syncing %d repositories of %s", len(repos), org_login)

        for repo in repos:
            async with self.session_factory() as session:
                async with session.begin():
                    repository = await self._upsert_repository(session, org_id, repo)
                    since = _as_utc(repository.last_synced_at)
                    owner, _, name = repo["full_name"].partition("/")

                    summary["issues"] += await self._sync_issues(
                        session, repository, owner, name, since
                    )
                    summary["changes"] += await self._sync_pulls(
                        session, repository, owner, name, since
                    )
                    repository.last_synced_at = utcnow()
                    session.add(repository)
            summary["repositories"] += 1

        logger.info(
            "Synced %s: %d repositories, %d issues, %d changes",
            org_login,
            summary["repositories"],
            summary["issues"],
            summary["changes"],
        )
        return summary

    async def _upsert_repository(
        self, session: AsyncSession, org_id: uuid.UUID, repo: Dict[str, Any]
    ) -> Repository:
        values = {
            "id": uuid.uuid4(),
            "org_id": org_id,
            "github_repo_id": repo["id"],
            "name": repo["name"],
            "full_name": repo["full_name"],
            "default_branch": repo.get("default_branch"),
            "is_active": True,
        }
        stmt = insert_for(session, Repository).values(**values)
        stmt = stmt.on_conflict_do_update(
            index_elements=["org_id", "github_repo_id"],
            set_={
                "name": stmt.excluded["name"],
                "full_name": stmt.excluded["full_name"],
                "default_branch": stmt.excluded["default_branch"],
                "is_active": True,
            },
        )
        await session.execute(stmt)

        result = await session.execute(
            select(Repository)
            .where(
                Repository.org_id == org_id,
                Repository.github_repo_id == repo["id"],
            )
            .execution_options(populate_existing=True)
        )
        return result.scalar_one()

    async def _sync_issues(
        self,
        session: AsyncSession,
        repository: Repository,
        owner: str,
        name: str,
        since: Optional[datetime],
    ) -> int:
        count = 0
        for issue in await self.client.list_issues(owner, name, since):
            # Pull requests are listed as issues too
            if issue.get("pull_request"):
                continue
            values = {
                "id": uuid.uuid4(),
                "org_id": repository.org_id,
                "repo_id": repository.id,
                "github_issue_id": issue["id"],
                "number": issue["number"],
                "title": issue.get("title") or "",
                "body": issue.get("body"),
                "state": issue.get("state"),
                "labels": [label["name"] for label in issue.get("labels") or []],
                "url": issue.get("html_url"),
            }
            stmt = insert_for(session, Issue).values(**values)
            stmt = stmt.on_conflict_do_update(
                index_elements=["org_id", "github_issue_id"],
                set_={key: stmt.excluded[key] for key in values if key != "id"},
            )
            await session.execute(stmt)
            count += 1
        return count

    async def _sync_pulls(
        self,
        session: AsyncSession,
        repository: Repository,
        owner: str,
        name: str,
        since: Optional[datetime],
    ) -> int:
        count = 0
        for pr in await self.client.list_pulls(owner, name, since):
            if not pr.get("merged_at"):
                continue
            change = await self._upsert_change(session, repository, pr)

            files = await self.client.list_pull_files(owner, name, pr["number"])
            await self._replace_files(session, change.id, files)
            await self._replace_issue_links(
                session, repository, change.id, parse_linked_issues(pr.get("body"))
            )
            count += 1
        return count

    async def _upsert_change(
        self, session: AsyncSession, repository: Repository, pr: Dict[str, Any]
    ) -> Change:
        user = pr.get("user") or {}
        values = {
            "id": uuid.uuid4(),
            "org_id": repository.org_id,
            "repo_id": repository.id,
            "github_pr_id": pr["id"],
            "number": pr["number"],
            "title": pr.get("title") or "",
            "body": pr.get("body"),
            "state": pr.get("state"),
            "url": pr.get("html_url"),
            "author_github_id": user.get("id"),
            "author_login": user.get("login"),
            "is_merged": bool(pr.get("merged_at")),
            "merged_at": parse_github_timestamp(pr.get("merged_at")),
            "head_sha": (pr.get("head") or {}).get("sha"),
            "base_sha": (pr.get("base") or {}).get("sha"),
            "additions": pr.get("additions") or 0,
            "deletions": pr.get("deletions") or 0,
            "changed_files_count": pr.get("changed_files") or 0,
            "updated_at": utcnow(),
        }
        stmt = insert_for(session, Change).values(**values)
        stmt = stmt.on_conflict_do_update(
            index_elements=["org_id", "github_pr_id"],
            set_={key: stmt.excluded[key] for key in values if key != "id"},
        )
        await session.execute(stmt)

        result = await session.execute(
            select(Change)
            .where(Change.org_id == repository.org_id, Change.github_pr_id == pr["id"])
            .execution_options(populate_existing=True)
        )
        return result.scalar_one()

    async def _replace_files(
        self, session: AsyncSession, change_id: uuid.UUID, files: Sequence[Dict[str, Any]]
    ) -> None:
        await session.execute(delete(ChangedFile).where(ChangedFile.change_id == change_id))
        for file in files:
            session.add(
                ChangedFile(
                    change_id=change_id,
                    path=file["filename"],
                    status=file.get("status"),
                    additions=file.get("additions") or 0,
                    deletions=file.get("deletions") or 0,
                    changes=file.get("changes") or 0,
                    patch=file.get("patch"),
                )
            )
        await session.flush()

    async def _replace_issue_links(
        self,
        session: AsyncSession,
        repository: Repository,
        change_id: uuid.UUID,
        numbers: Sequence[int],
    ) -> None:
        await session.execute(delete(IssueLink).where(IssueLink.change_id == change_id))
        if not numbers:
            return

        issues = (
            await session.execute(
                select(Issue).where(
                    Issue.org_id == repository.org_id,
                    Issue.repo_id == repository.id,
                    Issue.number.in_(list(numbers)),
                )
            )
        ).scalars().all()
        by_number = {issue.number: issue for issue in issues}

        for number in numbers:
            issue = by_number.get(number)
            if issue is None:
                logger.debug("Linked issue #%d not synced yet, skipping", number)
                continue
            session.add(
                IssueLink(
                    org_id=repository.org_id,
                    change_id=change_id,
                    issue_id=issue.id,
                    link_type="referenced",
                )
            )
        await session.flush()
