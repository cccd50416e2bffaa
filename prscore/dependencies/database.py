"""
PR Score Dependencies
"""

from functools import lru_cache
from typing import Annotated, AsyncGenerator

from fastapi import Depends, HTTPException
from sqlalchemy.ext.asyncio import async_sessionmaker
from sqlmodel.ext.asyncio.session import AsyncSession

from prscore.core.config import settings
from prscore.core.exceptions import ConfigurationError
from prscore.core.llm import OpenAIJudgmentService
from prscore.db.session import AsyncSessionLocal
from prscore.integrations.github import GitHubClient
from prscore.services.evaluation.batches import BatchService
from prscore.services.evaluation.judgment import JudgmentClient


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Get database session"""
    async with AsyncSessionLocal() as session:
        yield session


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """Get the session factory the pipeline opens its transactions from."""
    return AsyncSessionLocal


@lru_cache
def get_judgment_service() -> OpenAIJudgmentService:
    return OpenAIJudgmentService(settings)


def get_batch_service(
    session_factory: Annotated[
        async_sessionmaker[AsyncSession], Depends(get_session_factory)
    ],
) -> BatchService:
    """Get batch service (Dependency Injection)."""
    try:
        service = get_judgment_service()
    except ConfigurationError as e:
        raise HTTPException(status_code=422, detail=str(e)) from e

    github_client = None
    if settings.GITHUB_TOKEN:
        github_client = GitHubClient(settings.GITHUB_TOKEN)

    return BatchService(
        session_factory,
        JudgmentClient(service, timeout=settings.JUDGMENT_TIMEOUT_SECONDS),
        github_client=github_client,
    )
