"""
LangGraph Runtime Context for the evaluation pipeline.

Defines the context schema for dependency injection into LangGraph nodes.
"""

from dataclasses import dataclass

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from prscore.services.evaluation.catalog import ScoringCatalog
from prscore.services.evaluation.judgment import JudgmentClient


@dataclass
class Ctx:
    """Runtime context for LangGraph nodes.

    Attributes:
        db: Async session factory for database operations.
        judgment_client: Client for the structured-completion service.
        catalog: Scoring catalog loaded once for the batch.
    """

    db: async_sessionmaker[AsyncSession]
    judgment_client: JudgmentClient
    catalog: ScoringCatalog
