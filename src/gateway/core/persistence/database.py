"""Async database engine and session management for the audit ledger.

Provides:
- init_database: Initialize async SQLAlchemy engine and create tables
- create_session_factory: Create async session factory
- session_scope: Async context manager for database sessions
- shutdown: Clean shutdown of database connections
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from .models import Base


async def init_database(db_url: str = "sqlite+aiosqlite:///gateway_audit.db") -> AsyncEngine:
    """Initialize async database engine and create all tables.

    Args:
        db_url: SQLAlchemy database URL (default: SQLite in current directory)

    Returns:
        AsyncEngine instance

    Example:
        >>> engine = await init_database("sqlite+aiosqlite:///:memory:")
    """
    engine = create_async_engine(db_url, echo=False, future=True)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    return engine


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Create async session factory from engine.

    expire_on_commit=False is required for async usage: it keeps attributes
    loaded after commit so they can be read outside the session.

    Args:
        engine: AsyncEngine instance from init_database()

    Returns:
        async_sessionmaker configured for async usage
    """
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
        autocommit=False,
    )


@asynccontextmanager
async def session_scope(
    factory: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[AsyncSession, None]:
    """Session context manager: commit on success, rollback on exception.

    Example:
        >>> async with session_scope(factory) as session:
        ...     await append_audit_log(session, "proposal_resolved", ...)
    """
    async with factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def shutdown(engine: AsyncEngine) -> None:
    """Close all connections and dispose of the connection pool."""
    await engine.dispose()
