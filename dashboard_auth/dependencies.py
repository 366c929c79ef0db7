"""Shared FastAPI dependency helpers."""

from collections.abc import AsyncGenerator

from sqlalchemy.ext.asyncio import AsyncSession

from dashboard_auth.db.session import get_db_session
from dashboard_auth.services.user_service import UserService


async def get_database_session() -> AsyncGenerator[AsyncSession, None]:
    """Expose the request-scoped async database session dependency."""
    async for session in get_db_session():
        yield session


def get_user_service() -> UserService:
    """Provide the user service dependency."""
    return UserService()
