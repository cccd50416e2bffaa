"""
Evaluation Batch and Evaluation models.

- EvaluationBatch: one per orchestrator run, owns the run state machine
- Evaluation: the pipeline's scored output, key (change_id, rule_set_id)
"""

import uuid
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional

from sqlalchemy import Column, DateTime, Float, String, Text, UniqueConstraint
from sqlmodel import Field, SQLModel

from prscore.core.exceptions import InvalidTransitionError
from prscore.db.models.base import JSONType, utcnow


class BatchStatus(str, Enum):
    """Evaluation batch status enum."""

    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


class RunType(str, Enum):
    MANUAL = "manual"
    SCHEDULED = "scheduled"


TERMINAL_STATUSES = frozenset({BatchStatus.COMPLETED, BatchStatus.FAILED})

ALLOWED_TRANSITIONS = {
    BatchStatus.PENDING: {BatchStatus.RUNNING, BatchStatus.FAILED},
    BatchStatus.RUNNING: {BatchStatus.COMPLETED, BatchStatus.FAILED},
    BatchStatus.COMPLETED: set(),
    BatchStatus.FAILED: set(),
}


# -----------------------------------------------------------------------------
# Base
# -----------------------------------------------------------------------------
class EvaluationBatchBase(SQLModel):
    """Shared fields for EvaluationBatch."""

    org_id: uuid.UUID = Field(index=True)
    rule_set_id: Optional[uuid.UUID] = Field(
        default=None, foreign_key="rule_sets.id", index=True
    )
    run_type: str = Field(default=RunType.MANUAL.value)
    status: str = Field(
        default=BatchStatus.PENDING.value,
        sa_column=Column(String, nullable=False, default=BatchStatus.PENDING.value),
        description="pending -> running -> completed | failed",
    )
    error_message: Optional[str] = Field(
        default=None, sa_column=Column(Text, nullable=True)
    )
    items_processed: int = Field(default=0)


# -----------------------------------------------------------------------------
# ORM Model (Database layer)
# -----------------------------------------------------------------------------
class EvaluationBatch(EvaluationBatchBase, table=True):
    """
    Evaluation Batch table.
    """

    __tablename__ = "evaluation_batches"

    id: uuid.UUID = Field(
        default_factory=uuid.uuid4,
        primary_key=True,
        index=True,
        nullable=False,
    )
    created_at: datetime = Field(
        default_factory=utcnow,
        sa_column=Column(DateTime(timezone=True), nullable=False),
    )
    started_at: Optional[datetime] = Field(
        default=None, sa_column=Column(DateTime(timezone=True), nullable=True)
    )
    completed_at: Optional[datetime] = Field(
        default=None, sa_column=Column(DateTime(timezone=True), nullable=True)
    )

    @property
    def is_terminal(self) -> bool:
        return BatchStatus(self.status) in TERMINAL_STATUSES

    def transition_to(
        self, status: BatchStatus, error_message: Optional[str] = None
    ) -> None:
        """
        Move the batch to a new status, stamping start/completion times.

        Raises:
            InvalidTransitionError: if the move is not allowed, in particular
                any move out of completed or failed.
        """
        current = BatchStatus(self.status)
        status = BatchStatus(status)
        if status not in ALLOWED_TRANSITIONS[current]:
            raise InvalidTransitionError(
                f"Batch {self.id} cannot move from {current.value} to {status.value}"
            )

        self.status = status.value
        if status == BatchStatus.RUNNING:
            self.started_at = utcnow()
        else:
            self.completed_at = utcnow()
        if status == BatchStatus.FAILED:
            self.error_message = error_message

    def to_public(self) -> "EvaluationBatchPublic":
        """Convert to render-safe public DTO."""
        return EvaluationBatchPublic(
            id=self.id,
            org_id=self.org_id,
            rule_set_id=self.rule_set_id,
            run_type=self.run_type,
            status=self.status,
            error_message=self.error_message,
            items_processed=self.items_processed,
            created_at=self.created_at,
            started_at=self.started_at,
            completed_at=self.completed_at,
        )


# -----------------------------------------------------------------------------
# Public (Response/Read layer)
# -----------------------------------------------------------------------------
class EvaluationBatchPublic(EvaluationBatchBase):
    """
    Public DTO for EvaluationBatch responses.
    """

    id: uuid.UUID
    created_at: datetime
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None


class Evaluation(SQLModel, table=True):
    """
    Evaluation table.

    Unique key: (change_id, rule_set_id). A second evaluation of the same
    change under the same rule set replaces the whole row.
    """

    __tablename__ = "evaluations"

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    org_id: uuid.UUID = Field(index=True)
    change_id: uuid.UUID = Field(foreign_key="changes.id", index=True)
    rule_set_id: uuid.UUID = Field(foreign_key="rule_sets.id", index=True)
    batch_id: Optional[uuid.UUID] = Field(
        default=None, foreign_key="evaluation_batches.id", index=True
    )
    model_name: Optional[str] = Field(default=None)
    evaluation_source: str = Field(default="auto")

    # Resolved catalog references
    primary_component_id: Optional[uuid.UUID] = Field(
        default=None, foreign_key="components.id"
    )
    severity_id: Optional[uuid.UUID] = Field(default=None, foreign_key="severities.id")

    # Keys exactly as judged, used by the daily aggregate fold
    judged_component_key: str
    judged_severity_key: str

    # Score
    base_points: int = Field(default=0)
    multiplier: float = Field(default=1.0, sa_column=Column(Float, nullable=False))
    final_score: float = Field(default=0.0, sa_column=Column(Float, nullable=False))

    # Eligibility
    eligibility_issue: bool = Field(default=False)
    eligibility_fix_implementation: bool = Field(default=False)
    eligibility_pr_linked: bool = Field(default=False)
    eligibility_tests: bool = Field(default=False)
    is_eligible: bool = Field(default=False)

    # Justification
    justification_component: Optional[str] = Field(
        default=None, sa_column=Column(Text, nullable=True)
    )
    justification_severity: Optional[str] = Field(
        default=None, sa_column=Column(Text, nullable=True)
    )
    impact_summary: Optional[str] = Field(
        default=None, sa_column=Column(Text, nullable=True)
    )
    eligibility_notes: Optional[str] = Field(
        default=None, sa_column=Column(Text, nullable=True)
    )
    review_notes: Optional[str] = Field(
        default=None, sa_column=Column(Text, nullable=True)
    )
    raw_response: Dict[str, Any] = Field(
        default_factory=dict,
        sa_column=Column(JSONType, nullable=False),
        description="Validated judgment payload kept for audit/replay",
    )

    # Set once the row has been folded into developer_daily_stats
    folded_at: Optional[datetime] = Field(
        default=None, sa_column=Column(DateTime(timezone=True), nullable=True)
    )
    created_at: datetime = Field(
        default_factory=utcnow,
        sa_column=Column(DateTime(timezone=True), nullable=False),
    )

    __table_args__ = (
        UniqueConstraint("change_id", "rule_set_id", name="uq_evaluation_change_rule_set"),
    )
