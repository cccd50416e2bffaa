"""
Scoring catalog models.

Organization-owned configuration read by the pipeline:
- ProductComponent: logical area of a codebase with a score multiplier
- ComponentRule: path pattern that maps files to a component
- SeverityLevel: impact tier with base points
- ScoringRuleSet: versioned scoring configuration (model, activity window)
- PromptTemplate: evaluation prompt with named placeholders
"""

import uuid
from datetime import datetime
from enum import Enum
from typing import Optional

from sqlalchemy import CheckConstraint, Column, DateTime, String, Text, UniqueConstraint
from sqlmodel import Field, SQLModel

from prscore.db.models.base import utcnow

OTHER_COMPONENT_KEY = "OTHER"


class MatchType(str, Enum):
    """How a rule pattern is tested against a file path."""

    PREFIX = "prefix"
    SUFFIX = "suffix"
    REGEX = "regex"
    GLOB = "glob"


class ProductComponent(SQLModel, table=True):
    """
    Product component table.

    Unique key: (org_id, key)
    """

    __tablename__ = "components"

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    org_id: uuid.UUID = Field(index=True, description="Owning organization")
    key: str = Field(description="Stable short code, e.g. AUTH or OTHER")
    name: str = Field(description="Human readable component name")
    description: Optional[str] = Field(default=None)
    multiplier: float = Field(default=1.0, gt=0, description="Score weight")
    is_active: bool = Field(default=True)
    sort_order: int = Field(default=0)

    __table_args__ = (
        UniqueConstraint("org_id", "key", name="uq_component_key"),
        CheckConstraint("multiplier > 0", name="ck_component_multiplier_positive"),
    )


class ComponentRule(SQLModel, table=True):
    """
    Path rule table. Used only during classification.
    """

    __tablename__ = "rules"

    id: Optional[int] = Field(default=None, primary_key=True)
    component_id: uuid.UUID = Field(foreign_key="components.id", index=True)
    match_type: MatchType = Field(
        default=MatchType.PREFIX, sa_column=Column(String, nullable=False)
    )
    pattern: str = Field(description="Pattern interpreted according to match_type")
    priority: int = Field(default=0, description="Higher wins when picking primary")


class SeverityLevel(SQLModel, table=True):
    """
    Severity tier table.

    Unique key: (org_id, key)
    """

    __tablename__ = "severities"

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    org_id: uuid.UUID = Field(index=True)
    key: str = Field(description="Severity code, e.g. P0")
    name: str
    description: Optional[str] = Field(default=None)
    base_points: int = Field(default=0, ge=0)
    sort_order: int = Field(default=0)

    __table_args__ = (
        UniqueConstraint("org_id", "key", name="uq_severity_key"),
        CheckConstraint("base_points >= 0", name="ck_severity_base_points_non_negative"),
    )


class ScoringRuleSet(SQLModel, table=True):
    """
    Scoring rule set table.

    Evaluations are unique per (change, rule set).
    """

    __tablename__ = "rule_sets"

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    org_id: uuid.UUID = Field(index=True)
    name: str
    description: Optional[str] = Field(default=None)
    is_default: bool = Field(default=False)
    model_name: Optional[str] = Field(
        default=None, description="Model used for judgments under this rule set"
    )
    active_from: datetime = Field(
        default_factory=utcnow,
        sa_column=Column(DateTime(timezone=True), nullable=False),
    )
    active_to: Optional[datetime] = Field(
        default=None, sa_column=Column(DateTime(timezone=True), nullable=True)
    )


class PromptTemplate(SQLModel, table=True):
    """
    Prompt template table. The highest version per rule set is used.
    """

    __tablename__ = "prompt_templates"

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    org_id: uuid.UUID = Field(index=True)
    rule_set_id: uuid.UUID = Field(foreign_key="rule_sets.id", index=True)
    name: str = Field(default="PR evaluation")
    template: str = Field(sa_column=Column(Text, nullable=False))
    version: int = Field(default=1)
