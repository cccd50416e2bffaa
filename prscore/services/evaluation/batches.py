"""
Batch orchestrator.

Runs the evaluation pipeline over every recently merged change of an
organization that has no evaluation under the active rule set yet, tracking
progress in an EvaluationBatch row.
"""

import asyncio
import uuid
from datetime import timedelta
from typing import List, Optional

from sqlalchemy import desc
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlmodel import Field, SQLModel, select

from prscore.core.config import Settings, settings as default_settings
from prscore.core.logging import get_logger
from prscore.db.models import (
    BatchStatus,
    Change,
    Evaluation,
    EvaluationBatch,
    Repository,
    RunType,
)
from prscore.db.models.base import utcnow
from prscore.integrations.github import GitHubClient
from prscore.services.evaluation.catalog import load_catalog, load_evaluation_config
from prscore.services.evaluation.context import Ctx
from prscore.services.evaluation.graph import evaluation_graph
from prscore.services.evaluation.judgment import JudgmentClient
from prscore.services.evaluation.persistence import persist_evaluation
from prscore.services.evaluation.scoring import score_judgment

logger = get_logger(__name__)


class BatchRunOptions(SQLModel):
    """Parameters of one batch run."""

    org_id: uuid.UUID
    rule_set_id: Optional[uuid.UUID] = None
    lookback_days: int = Field(
        default_factory=lambda: default_settings.DEFAULT_LOOKBACK_DAYS, ge=0
    )
    run_type: RunType = RunType.MANUAL
    post_comments: bool = False


def format_evaluation_comment(evaluation: Evaluation) -> str:
    """Markdown summary posted on the pull request."""
    verdict = "eligible" if evaluation.is_eligible else "not eligible"
    lines = [
        "### PR Score",
        f"- Component: `{evaluation.judged_component_key}`",
        f"- Severity: `{evaluation.judged_severity_key}`",
        f"- Score: **{evaluation.final_score:g}** ({verdict})",
    ]
    if evaluation.impact_summary:
        lines.extend(["", evaluation.impact_summary])
    return "\n".join(lines)


async def list_batches(
    session_factory: async_sessionmaker[AsyncSession],
    org_id: Optional[uuid.UUID] = None,
    skip: int = 0,
    limit: int = 20,
) -> List[EvaluationBatch]:
    """
    Fetch batches, most recent first.

    Needs only a session factory, so batch history stays readable on
    deployments without judgment credentials.
    """
    statement = select(EvaluationBatch)
    if org_id is not None:
        statement = statement.where(EvaluationBatch.org_id == org_id)
    statement = (
        statement.order_by(desc(EvaluationBatch.created_at)).offset(skip).limit(limit)
    )
    async with session_factory() as session:
        result = await session.execute(statement)
        return list(result.scalars().all())


class BatchService:
    """
    Runs evaluation batches.

    Every step uses its own short transaction from the session factory, so
    items already evaluated stay persisted when a later item fails.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        judgment_client: JudgmentClient,
        github_client: Optional[GitHubClient] = None,
        app_settings: Optional[Settings] = None,
    ):
        self.session_factory = session_factory
        self.judgment_client = judgment_client
        self.github_client = github_client
        self.settings = app_settings or default_settings

    # ------------------------------------------------------------------
    # Batch runs
    # ------------------------------------------------------------------
    async def run_batch(
        self,
        options: BatchRunOptions,
        stop_event: Optional[asyncio.Event] = None,
    ) -> EvaluationBatch:
        """
        Run one evaluation batch.

        Flow:
        1. Resolve rule set and prompt template (ConfigurationError before any write)
        2. Create the batch (pending) and load the catalog once
        3. Select unevaluated merged changes within the lookback window
        4. Evaluate them one by one (running)
        5. Mark the batch completed

        On error: the batch is marked failed with the error message and the
        exception is re-raised. Items evaluated before the failure are kept.

        Returns:
            The finished batch. A batch stopped through ``stop_event`` is
            returned in the failed state.
        """
        async with self.session_factory() as session:
            rule_set, prompt = await load_evaluation_config(
                session, options.org_id, options.rule_set_id
            )
            catalog = await load_catalog(session, options.org_id)

            batch = EvaluationBatch(
                org_id=options.org_id,
                rule_set_id=rule_set.id,
                run_type=RunType(options.run_type).value,
            )
            session.add(batch)
            await session.commit()

        model_name = rule_set.model_name or self.settings.DEFAULT_MODEL_NAME
        ctx = Ctx(
            db=self.session_factory,
            judgment_client=self.judgment_client,
            catalog=catalog,
        )
        logger.info(
            "Batch %s created for org %s (rule set %s, model %s)",
            batch.id,
            options.org_id,
            rule_set.id,
            model_name,
        )

        try:
            async with self.session_factory() as session:
                change_ids = await self.select_changes_to_evaluate(
                    session, options.org_id, rule_set.id, options.lookback_days
                )
            batch = await self._transition(batch.id, BatchStatus.RUNNING)
            logger.info("Batch %s: %d change(s) to evaluate", batch.id, len(change_ids))

            for change_id in change_ids:
                if stop_event is not None and stop_event.is_set():
                    logger.warning("Batch %s stopped by request", batch.id)
                    return await self._transition(
                        batch.id,
                        BatchStatus.FAILED,
                        f"Batch stopped by request after {batch.items_processed} item(s)",
                    )

                evaluation = await self._evaluate(
                    change_id,
                    rule_set_id=rule_set.id,
                    model_name=model_name,
                    template=prompt.template,
                    ctx=ctx,
                    batch_id=batch.id,
                )
                batch = await self._increment_processed(batch.id)

                if options.post_comments:
                    await self._post_comment(evaluation)

            batch = await self._transition(batch.id, BatchStatus.COMPLETED)
            logger.info(
                "Batch %s completed: %d item(s) processed", batch.id, batch.items_processed
            )
            return batch

        except asyncio.CancelledError:
            await self._fail(batch.id, "Batch stopped: task was cancelled")
            raise
        except Exception as e:
            logger.error("Batch %s failed: %s", batch.id, e, exc_info=True)
            await self._fail(batch.id, str(e) or type(e).__name__)
            raise

    async def select_changes_to_evaluate(
        self,
        session: AsyncSession,
        org_id: uuid.UUID,
        rule_set_id: uuid.UUID,
        lookback_days: int,
        limit: Optional[int] = None,
    ) -> List[uuid.UUID]:
        """
        Merged changes within the lookback window that have no evaluation
        under the rule set, newest merge first.
        """
        cutoff = utcnow() - timedelta(days=lookback_days)
        evaluated = select(Evaluation.change_id).where(
            Evaluation.rule_set_id == rule_set_id
        )
        statement = (
            select(Change.id)
            .where(
                Change.org_id == org_id,
                Change.is_merged.is_(True),
                Change.merged_at >= cutoff,
                Change.id.not_in(evaluated),
            )
            .order_by(desc(Change.merged_at))
            .limit(limit or self.settings.MAX_BATCH_SIZE)
        )
        result = await session.execute(statement)
        return list(result.scalars().all())

    async def list_batches(
        self, org_id: Optional[uuid.UUID] = None, skip: int = 0, limit: int = 20
    ) -> List[EvaluationBatch]:
        return await list_batches(self.session_factory, org_id, skip, limit)

    # ------------------------------------------------------------------
    # Single change
    # ------------------------------------------------------------------
    async def evaluate_change(
        self,
        org_id: uuid.UUID,
        change_id: uuid.UUID,
        rule_set_id: Optional[uuid.UUID] = None,
    ) -> Evaluation:
        """
        Evaluate (or re-evaluate) one change outside of a batch.

        Classification is re-run, the Evaluation for (change, rule set) is
        overwritten and the daily aggregate is corrected.

        Raises:
            ConfigurationError: rule set or template missing or invalid.
            JudgmentError: the judgment could not be obtained.
        """
        async with self.session_factory() as session:
            rule_set, prompt = await load_evaluation_config(session, org_id, rule_set_id)
            catalog = await load_catalog(session, org_id)

        ctx = Ctx(
            db=self.session_factory,
            judgment_client=self.judgment_client,
            catalog=catalog,
        )
        return await self._evaluate(
            change_id,
            rule_set_id=rule_set.id,
            model_name=rule_set.model_name or self.settings.DEFAULT_MODEL_NAME,
            template=prompt.template,
            ctx=ctx,
        )

    async def _evaluate(
        self,
        change_id: uuid.UUID,
        *,
        rule_set_id: uuid.UUID,
        model_name: str,
        template: str,
        ctx: Ctx,
        batch_id: Optional[uuid.UUID] = None,
    ) -> Evaluation:
        # 1. Pipeline: classify -> build context -> judge
        result = await evaluation_graph.ainvoke(
            {"change_id": change_id, "model_name": model_name, "template": template},
            context=ctx,
        )
        judgment = result["judgment"]

        # 2. Score
        score = score_judgment(judgment, ctx.catalog)

        # 3. Persist + fold in one transaction
        async with self.session_factory() as session:
            async with session.begin():
                change = (
                    await session.execute(select(Change).where(Change.id == change_id))
                ).scalar_one()
                return await persist_evaluation(
                    session,
                    change=change,
                    rule_set_id=rule_set_id,
                    batch_id=batch_id,
                    model_name=model_name,
                    judgment=judgment,
                    score=score,
                )

    # ------------------------------------------------------------------
    # Batch state
    # ------------------------------------------------------------------
    async def _load_batch(self, session: AsyncSession, batch_id: uuid.UUID) -> EvaluationBatch:
        result = await session.execute(
            select(EvaluationBatch)
            .where(EvaluationBatch.id == batch_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        return result.scalar_one()

    async def _transition(
        self,
        batch_id: uuid.UUID,
        status: BatchStatus,
        error_message: Optional[str] = None,
    ) -> EvaluationBatch:
        async with self.session_factory() as session:
            async with session.begin():
                batch = await self._load_batch(session, batch_id)
                batch.transition_to(status, error_message)
                session.add(batch)
            return batch

    async def _increment_processed(self, batch_id: uuid.UUID) -> EvaluationBatch:
        async with self.session_factory() as session:
            async with session.begin():
                batch = await self._load_batch(session, batch_id)
                batch.items_processed += 1
                session.add(batch)
            return batch

    async def _fail(self, batch_id: uuid.UUID, error_message: str) -> None:
        """Mark the batch failed unless it already reached a terminal state."""
        async with self.session_factory() as session:
            async with session.begin():
                batch = await self._load_batch(session, batch_id)
                if batch.is_terminal:
                    logger.warning(
                        "Batch %s already %s, not marking failed", batch_id, batch.status
                    )
                    return
                batch.transition_to(BatchStatus.FAILED, error_message)
                session.add(batch)

    # ------------------------------------------------------------------
    # PR comments
    # ------------------------------------------------------------------
    async def _post_comment(self, evaluation: Evaluation) -> None:
        """Post the evaluation on its pull request. Failures are logged only."""
        if self.github_client is None:
            logger.debug("No GitHub client configured, skipping PR comment")
            return

        async with self.session_factory() as session:
            row = (
                await session.execute(
                    select(Change.number, Repository.full_name)
                    .join(Repository, Repository.id == Change.repo_id)
                    .where(Change.id == evaluation.change_id)
                )
            ).first()
        if row is None:
            logger.warning("Change %s has no repository, skipping PR comment", evaluation.change_id)
            return

        number, full_name = row
        owner, _, repo = full_name.partition("/")
        try:
            await self.github_client.post_pr_comment(
                owner, repo, number, format_evaluation_comment(evaluation)
            )
            logger.info("Commented on %s#%d", full_name, number)
        except Exception as e:
            logger.error("Failed to comment on %s#%d: %s", full_name, number, e)
