"""
Change Source models.

Synced copies of GitHub data the pipeline evaluates:
- Repository: key (org_id, github_repo_id)
- Issue: key (org_id, github_issue_id)
- Change: a pull request, key (org_id, github_pr_id)
- ChangedFile: replaced wholesale on every sync of its Change
- IssueLink: closing-keyword reference from a Change body to an Issue
- ChangeComponent: classifier output, replaced on every classification
"""

import uuid
from datetime import datetime
from typing import List, Optional

from sqlalchemy import BigInteger, Column, DateTime, Text, UniqueConstraint
from sqlmodel import Field, SQLModel

from prscore.db.models.base import JSONType, utcnow


class Repository(SQLModel, table=True):
    """Repository table."""

    __tablename__ = "repositories"

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    org_id: uuid.UUID = Field(index=True)
    github_repo_id: int = Field(sa_column=Column(BigInteger, nullable=False))
    name: str
    full_name: str = Field(description="owner/name")
    default_branch: Optional[str] = Field(default=None)
    is_active: bool = Field(default=True)
    last_synced_at: Optional[datetime] = Field(
        default=None, sa_column=Column(DateTime(timezone=True), nullable=True)
    )

    __table_args__ = (
        UniqueConstraint("org_id", "github_repo_id", name="uq_repository_identity"),
    )


class Issue(SQLModel, table=True):
    """Issue table."""

    __tablename__ = "issues"

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    org_id: uuid.UUID = Field(index=True)
    repo_id: uuid.UUID = Field(foreign_key="repositories.id", index=True)
    github_issue_id: int = Field(sa_column=Column(BigInteger, nullable=False))
    number: int = Field(index=True)
    title: str
    body: Optional[str] = Field(default=None, sa_column=Column(Text, nullable=True))
    state: Optional[str] = Field(default=None)
    labels: List[str] = Field(
        default_factory=list, sa_column=Column(JSONType, nullable=False)
    )
    url: Optional[str] = Field(default=None)

    __table_args__ = (
        UniqueConstraint("org_id", "github_issue_id", name="uq_issue_identity"),
    )


class Change(SQLModel, table=True):
    """
    Change (merged pull request) table.

    Immutable once merged except for metadata refreshed by sync.
    """

    __tablename__ = "changes"

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    org_id: uuid.UUID = Field(index=True)
    repo_id: Optional[uuid.UUID] = Field(
        default=None, foreign_key="repositories.id", index=True
    )
    github_pr_id: int = Field(sa_column=Column(BigInteger, nullable=False))
    number: int
    title: str = Field(default="")
    body: Optional[str] = Field(default=None, sa_column=Column(Text, nullable=True))
    state: Optional[str] = Field(default=None)
    url: Optional[str] = Field(default=None)
    author_github_id: Optional[int] = Field(
        default=None,
        sa_column=Column(BigInteger, nullable=True, index=True),
        description="Developer identity used for daily aggregates",
    )
    author_login: Optional[str] = Field(default=None)
    is_merged: bool = Field(default=False)
    merged_at: Optional[datetime] = Field(
        default=None, sa_column=Column(DateTime(timezone=True), nullable=True)
    )
    head_sha: Optional[str] = Field(default=None)
    base_sha: Optional[str] = Field(default=None)
    additions: int = Field(default=0)
    deletions: int = Field(default=0)
    changed_files_count: int = Field(default=0)
    updated_at: datetime = Field(
        default_factory=utcnow,
        sa_column=Column(DateTime(timezone=True), nullable=False),
    )

    __table_args__ = (
        UniqueConstraint("org_id", "github_pr_id", name="uq_change_identity"),
    )


class ChangedFile(SQLModel, table=True):
    """Changed file table (delete-then-insert per sync)."""

    __tablename__ = "changed_files"

    id: Optional[int] = Field(default=None, primary_key=True)
    change_id: uuid.UUID = Field(foreign_key="changes.id", index=True)
    path: str
    status: Optional[str] = Field(
        default=None, description="added, modified, removed, renamed"
    )
    additions: Optional[int] = Field(default=0)
    deletions: Optional[int] = Field(default=0)
    changes: Optional[int] = Field(default=0)
    patch: Optional[str] = Field(default=None, sa_column=Column(Text, nullable=True))


class IssueLink(SQLModel, table=True):
    """Change -> Issue link table."""

    __tablename__ = "issue_links"

    id: Optional[int] = Field(default=None, primary_key=True)
    org_id: uuid.UUID = Field(index=True)
    change_id: uuid.UUID = Field(foreign_key="changes.id", index=True)
    issue_id: uuid.UUID = Field(foreign_key="issues.id", index=True)
    link_type: str = Field(default="referenced")

    __table_args__ = (
        UniqueConstraint("change_id", "issue_id", name="uq_issue_link"),
    )


class ChangeComponent(SQLModel, table=True):
    """Component association produced by the classifier."""

    __tablename__ = "change_components"

    id: Optional[int] = Field(default=None, primary_key=True)
    change_id: uuid.UUID = Field(foreign_key="changes.id", index=True)
    component_id: uuid.UUID = Field(foreign_key="components.id", index=True)
    lines_changed: int = Field(default=0)
    is_primary: bool = Field(default=False)

    __table_args__ = (
        UniqueConstraint("change_id", "component_id", name="uq_change_component"),
    )
