import asyncio

import pytest
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel

from prscore.db import models  # noqa: F401
from prscore.db.session import build_session_factory


def _run_db(scenario):
    """Run ``scenario(session_factory)`` against a fresh in-memory database."""

    async def main():
        engine = create_async_engine(
            "sqlite+aiosqlite://",
            poolclass=StaticPool,
            connect_args={"check_same_thread": False},
        )
        async with engine.begin() as conn:
            await conn.run_sync(SQLModel.metadata.create_all)
        try:
            return await scenario(build_session_factory(engine))
        finally:
            await engine.dispose()

    return asyncio.run(main())


@pytest.fixture
def run_db():
    return _run_db
