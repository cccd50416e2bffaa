"""
Dialect-aware INSERT .. ON CONFLICT.

PostgreSQL runs in production and SQLite in tests; both dialects expose the
same on_conflict_do_update / on_conflict_do_nothing API.
"""

from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncSession


def insert_for(session: AsyncSession, model):
    """Return an ``insert(model)`` that supports ON CONFLICT for the session's dialect."""
    if session.bind is not None and session.bind.dialect.name == "sqlite":
        return sqlite.insert(model)
    return postgresql.insert(model)
