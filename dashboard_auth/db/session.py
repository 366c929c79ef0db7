"""Async SQLAlchemy engine, session factory, and request-scoped sessions."""

from __future__ import annotations

from collections.abc import AsyncGenerator
from functools import lru_cache

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from dashboard_auth.config import get_settings


@lru_cache
def get_engine() -> AsyncEngine:
    """Build and cache the async engine for the dashboard database."""
    database = get_settings().database
    return create_async_engine(
        database.url,
        pool_pre_ping=True,
        pool_size=database.pool_size,
        echo=database.echo,
    )


@lru_cache
def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """Build and cache the session factory shared by routers, stores and the CLI."""
    return async_sessionmaker(bind=get_engine(), autoflush=False, expire_on_commit=False)


async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    """Yield one session per request; it is closed when the request ends."""
    async with get_session_factory()() as session:
        yield session


async def dispose_engine() -> None:
    """Close pooled connections, e.g. on shutdown or between test event loops."""
    await get_engine().dispose()
