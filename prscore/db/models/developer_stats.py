"""
Developer Daily Stat Model

Running per-developer, per-day aggregate folded from evaluations.
Key: (org_id, github_user_id, stat_date)
"""

import uuid
from datetime import date, datetime
from typing import Dict, Optional

from sqlalchemy import BigInteger, Column, Date, DateTime, Float, UniqueConstraint
from sqlmodel import Field, SQLModel

from prscore.db.models.base import JSONType, utcnow

# Severity keys that have a dedicated counter column
SEVERITY_COUNTERS = {
    "P0": "p0_count",
    "P1": "p1_count",
    "P2": "p2_count",
    "P3": "p3_count",
}


class DeveloperDailyStat(SQLModel, table=True):
    """
    Developer Daily Stat table.

    Mutated incrementally by the aggregate fold, never recomputed in the
    hot path. Composite unique key: (org_id, github_user_id, stat_date)
    """

    __tablename__ = "developer_daily_stats"

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    org_id: uuid.UUID = Field(index=True)
    github_user_id: int = Field(sa_column=Column(BigInteger, nullable=False))
    stat_date: date = Field(sa_column=Column(Date, nullable=False))

    total_score: float = Field(default=0.0, sa_column=Column(Float, nullable=False))
    pr_count: int = Field(default=0)
    p0_count: int = Field(default=0)
    p1_count: int = Field(default=0)
    p2_count: int = Field(default=0)
    p3_count: int = Field(default=0)
    component_scores: Dict[str, float] = Field(
        default_factory=dict,
        sa_column=Column(JSONType, nullable=False),
        description="Running score per judged primary component key",
    )

    updated_at: Optional[datetime] = Field(
        default_factory=utcnow,
        sa_column=Column(DateTime(timezone=True), nullable=True),
    )

    __table_args__ = (
        UniqueConstraint("org_id", "github_user_id", "stat_date", name="uq_developer_daily_stat"),
    )
