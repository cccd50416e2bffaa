"""
Nodes of the per-change evaluation pipeline.

classify -> build_context -> judge. Persistence and the aggregate fold run
after the graph, in the caller's transaction.
"""

from langgraph.runtime import Runtime
from sqlmodel import select

from prscore.core.logging import get_logger
from prscore.db.models import ChangedFile, Change, Issue, IssueLink, Repository
from prscore.services.evaluation.classifier import (
    classify_files,
    replace_change_components,
)
from prscore.services.evaluation.context import Ctx
from prscore.services.evaluation.prompts import render_prompt
from prscore.services.evaluation.state import EvaluationState

logger = get_logger(__name__)


async def classify(state: EvaluationState, runtime: Runtime[Ctx]) -> dict:
    """
    Classify the change's files and replace its component associations.
    """
    ctx = runtime.context
    catalog = ctx.catalog

    async with ctx.db() as session:
        async with session.begin():
            files = (
                await session.execute(
                    select(ChangedFile)
                    .where(ChangedFile.change_id == state.change_id)
                    .order_by(ChangedFile.path, ChangedFile.id)
                )
            ).scalars().all()

            classification = classify_files(
                files, catalog.components, catalog.rules, catalog.other
            )
            await replace_change_components(session, state.change_id, classification)

    primary = classification.primary
    logger.info(
        "Classified change %s: %d component(s), primary=%s",
        state.change_id,
        len(classification.matches),
        primary.component_key if primary else None,
    )
    return {"classification": classification}


async def build_context(state: EvaluationState, runtime: Runtime[Ctx]) -> dict:
    """
    Render the evaluation prompt from the change, its files, linked issues and the catalog.
    """
    ctx = runtime.context

    async with ctx.db() as session:
        change = (
            await session.execute(select(Change).where(Change.id == state.change_id))
        ).scalar_one()

        repo_name = None
        if change.repo_id is not None:
            repo_name = (
                await session.execute(
                    select(Repository.full_name).where(Repository.id == change.repo_id)
                )
            ).scalar_one_or_none()

        files = (
            await session.execute(
                select(ChangedFile)
                .where(ChangedFile.change_id == change.id)
                .order_by(ChangedFile.path, ChangedFile.id)
            )
        ).scalars().all()

        issues = (
            await session.execute(
                select(Issue)
                .join(IssueLink, IssueLink.issue_id == Issue.id)
                .where(IssueLink.change_id == change.id)
                .order_by(IssueLink.id)
            )
        ).scalars().all()

    prompt = render_prompt(
        state.template,
        change,
        repo_name=repo_name,
        files=files,
        issues=issues,
        components=ctx.catalog.components,
        severities=ctx.catalog.severities,
    )
    return {"prompt": prompt}


async def judge(state: EvaluationState, runtime: Runtime[Ctx]) -> dict:
    """
    Obtain a validated judgment. JudgmentError propagates to the caller.
    """
    judgment = await runtime.context.judgment_client.judge(
        state.model_name, state.prompt or ""
    )
    return {"judgment": judgment}
