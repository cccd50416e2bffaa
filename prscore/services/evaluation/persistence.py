"""
Evaluation persistence and the developer daily aggregate fold.

All functions here run inside a transaction owned by the caller, so that an
Evaluation and its fold commit together or not at all.
"""

import uuid
from datetime import date, timezone
from typing import Any, Dict, Optional

from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from prscore.core.logging import get_logger
from prscore.db.models import (
    SEVERITY_COUNTERS,
    Change,
    DeveloperDailyStat,
    Evaluation,
)
from prscore.db.models.base import utcnow
from prscore.db.upsert import insert_for
from prscore.services.evaluation.judgment import Judgment
from prscore.services.evaluation.scoring import ScoreResult

logger = get_logger(__name__)


def stat_date_for(change: Change) -> date:
    """Merge date in UTC. Naive timestamps are taken as UTC."""
    merged_at = change.merged_at
    if merged_at is None:
        return utcnow().date()
    if merged_at.tzinfo is None:
        merged_at = merged_at.replace(tzinfo=timezone.utc)
    return merged_at.astimezone(timezone.utc).date()


async def _get_evaluation(
    session: AsyncSession,
    change_id: uuid.UUID,
    rule_set_id: uuid.UUID,
    for_update: bool = False,
) -> Optional[Evaluation]:
    statement = select(Evaluation).where(
        Evaluation.change_id == change_id,
        Evaluation.rule_set_id == rule_set_id,
    )
    if for_update:
        statement = statement.with_for_update()
    result = await session.execute(
        statement.execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def _lock_stat_row(
    session: AsyncSession, org_id: uuid.UUID, github_user_id: int, stat_date: date
) -> DeveloperDailyStat:
    """Create the aggregate row if needed, then lock it for this transaction."""
    stmt = (
        insert_for(session, DeveloperDailyStat)
        .values(
            id=uuid.uuid4(),
            org_id=org_id,
            github_user_id=github_user_id,
            stat_date=stat_date,
            total_score=0.0,
            pr_count=0,
            p0_count=0,
            p1_count=0,
            p2_count=0,
            p3_count=0,
            component_scores={},
            updated_at=utcnow(),
        )
        .on_conflict_do_nothing(
            index_elements=["org_id", "github_user_id", "stat_date"]
        )
    )
    await session.execute(stmt)

    result = await session.execute(
        select(DeveloperDailyStat)
        .where(
            DeveloperDailyStat.org_id == org_id,
            DeveloperDailyStat.github_user_id == github_user_id,
            DeveloperDailyStat.stat_date == stat_date,
        )
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    return result.scalar_one()


def _apply(stat: DeveloperDailyStat, evaluation: Evaluation, sign: int) -> None:
    stat.pr_count += sign
    if evaluation.is_eligible:
        score = sign * evaluation.final_score
        stat.total_score += score

        counter = SEVERITY_COUNTERS.get(evaluation.judged_severity_key)
        if counter:
            setattr(stat, counter, getattr(stat, counter) + sign)

        # Reassign so the JSON column is marked dirty
        scores = dict(stat.component_scores or {})
        key = evaluation.judged_component_key
        scores[key] = scores.get(key, 0.0) + score
        stat.component_scores = scores
    stat.updated_at = utcnow()


async def fold_evaluation(
    session: AsyncSession, evaluation: Evaluation, change: Change
) -> bool:
    """
    Fold an Evaluation into its author's daily aggregate.

    Returns:
        True if the aggregate changed. An Evaluation already folded, or one
        whose change has no author, is left alone.
    """
    if evaluation.folded_at is not None:
        logger.debug("Evaluation %s already folded, skipping", evaluation.id)
        return False
    if change.author_github_id is None:
        logger.info("Change %s has no author, skipping fold", change.id)
        return False

    stat = await _lock_stat_row(
        session, evaluation.org_id, change.author_github_id, stat_date_for(change)
    )
    _apply(stat, evaluation, 1)
    evaluation.folded_at = utcnow()
    session.add(stat)
    session.add(evaluation)
    await session.flush()
    return True


async def unfold_evaluation(
    session: AsyncSession, evaluation: Evaluation, change: Change
) -> bool:
    """Reverse the contribution of a previously folded Evaluation."""
    if evaluation.folded_at is None or change.author_github_id is None:
        return False

    stat = await _lock_stat_row(
        session, evaluation.org_id, change.author_github_id, stat_date_for(change)
    )
    _apply(stat, evaluation, -1)
    evaluation.folded_at = None
    session.add(stat)
    session.add(evaluation)
    await session.flush()
    logger.info("Unfolded previous evaluation %s of change %s", evaluation.id, change.id)
    return True


def evaluation_values(
    *,
    change: Change,
    rule_set_id: uuid.UUID,
    batch_id: Optional[uuid.UUID],
    model_name: Optional[str],
    judgment: Judgment,
    score: ScoreResult,
) -> Dict[str, Any]:
    """Column values of the Evaluation row for one judged change."""
    eligibility = judgment.eligibility
    now = utcnow()
    return {
        "id": uuid.uuid4(),
        "org_id": change.org_id,
        "change_id": change.id,
        "rule_set_id": rule_set_id,
        "batch_id": batch_id,
        "model_name": model_name,
        "evaluation_source": "auto",
        "primary_component_id": score.component.id if score.component else None,
        "severity_id": score.severity.id if score.severity else None,
        "judged_component_key": judgment.primary_component_key,
        "judged_severity_key": judgment.severity_key,
        "base_points": score.base_points,
        "multiplier": score.multiplier,
        "final_score": score.final_score,
        "eligibility_issue": eligibility.issue,
        "eligibility_fix_implementation": eligibility.fix_implementation,
        "eligibility_pr_linked": eligibility.pr_linked,
        "eligibility_tests": eligibility.tests,
        "is_eligible": score.is_eligible,
        "justification_component": judgment.justification_component,
        "justification_severity": judgment.justification_severity,
        "impact_summary": judgment.impact_summary,
        "eligibility_notes": judgment.eligibility_notes,
        "review_notes": judgment.review_notes,
        "raw_response": judgment.model_dump(mode="json"),
        "folded_at": None,
        "created_at": now,
    }


async def persist_evaluation(
    session: AsyncSession,
    *,
    change: Change,
    rule_set_id: uuid.UUID,
    batch_id: Optional[uuid.UUID],
    model_name: Optional[str],
    judgment: Judgment,
    score: ScoreResult,
) -> Evaluation:
    """
    Write the Evaluation for (change, rule set) and fold it.

    A previous Evaluation of the same key is locked and, if it was folded,
    unfolded before being overwritten, so the aggregate counts every change
    at most once per rule set.
    """
    previous = await _get_evaluation(session, change.id, rule_set_id, for_update=True)
    if previous is not None:
        await unfold_evaluation(session, previous, change)

    values = evaluation_values(
        change=change,
        rule_set_id=rule_set_id,
        batch_id=batch_id,
        model_name=model_name,
        judgment=judgment,
        score=score,
    )
    stmt = insert_for(session, Evaluation).values(**values)
    stmt = stmt.on_conflict_do_update(
        index_elements=["change_id", "rule_set_id"],
        set_={key: stmt.excluded[key] for key in values if key != "id"},
    )
    await session.execute(stmt)

    evaluation = await _get_evaluation(session, change.id, rule_set_id)
    await fold_evaluation(session, evaluation, change)

    logger.info(
        "Persisted evaluation of change %s: component=%s severity=%s score=%.2f eligible=%s",
        change.id,
        evaluation.judged_component_key,
        evaluation.judged_severity_key,
        evaluation.final_score,
        evaluation.is_eligible,
    )
    return evaluation
