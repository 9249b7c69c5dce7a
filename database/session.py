"""
Async database session management for the Alba conciergerie service.

Owns the process-wide engine and session factory. The pipeline store
opens one short transaction per operation through session_scope().
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from .models import Base

logger = logging.getLogger(__name__)

_engine: Optional[AsyncEngine] = None
_session_factory: Optional[async_sessionmaker[AsyncSession]] = None

ASYNC_DRIVERS = {
    "postgresql://": "postgresql+asyncpg://",
    "postgres://": "postgresql+asyncpg://",
    "sqlite://": "sqlite+aiosqlite://",
}


def async_database_url(database_url: str) -> str:
    """Rewrite a plain PostgreSQL/SQLite URL to its async driver."""
    for prefix, replacement in ASYNC_DRIVERS.items():
        if database_url.startswith(prefix):
            return replacement + database_url[len(prefix):]
    return database_url


async def init_db(database_url: str, pool_size: int = 5, max_overflow: int = 10):
    """
    Create the engine and session factory, then create missing tables.

    Args:
        database_url: PostgreSQL or SQLite connection string
        pool_size: Connection pool size (PostgreSQL only)
        max_overflow: Max overflow connections (PostgreSQL only)
    """
    global _engine, _session_factory

    url = async_database_url(database_url)
    engine_kwargs = {"echo": False}
    if url.startswith("postgresql"):
        engine_kwargs.update(pool_size=pool_size, max_overflow=max_overflow, pool_pre_ping=True)

    _engine = create_async_engine(url, **engine_kwargs)
    _session_factory = async_sessionmaker(bind=_engine, class_=AsyncSession, expire_on_commit=False)

    async with _engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    logger.info(f"Database initialized ({url.split('://', 1)[0]})")


async def close_db():
    """Dispose of the engine."""
    global _engine, _session_factory
    if _engine:
        await _engine.dispose()
        _engine = None
        _session_factory = None
        logger.info("Database connection closed")


def get_session_factory() -> Optional[async_sessionmaker[AsyncSession]]:
    """Return the session factory, or None when the database is not initialized."""
    return _session_factory


@asynccontextmanager
async def session_scope(session_factory: async_sessionmaker[AsyncSession]) -> AsyncIterator[AsyncSession]:
    """One session and transaction; commits on exit, rolls back on error."""
    async with session_factory() as session:
        async with session.begin():
            yield session
