"""Shared integration-test fixtures using a Postgres testcontainer."""

from __future__ import annotations

import os
from collections.abc import Callable, Iterator
from typing import Any

import pytest
from alembic import command
from alembic.config import Config
from sqlalchemy import delete
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from testcontainers.postgres import PostgresContainer

from docker.errors import DockerException


def _clear_dependency_caches() -> None:
    """Clear all relevant singleton/lru-cache dependencies between test phases."""
    from dashboard_auth.config import get_settings
    from dashboard_auth.core.sessions import get_session_service
    from dashboard_auth.db.session import get_engine, get_session_factory

    get_settings.cache_clear()
    get_engine.cache_clear()
    get_session_factory.cache_clear()
    get_session_service.cache_clear()


async def _dispose_async_singletons() -> None:
    """Dispose loop-bound async resources before changing event loops."""
    from dashboard_auth.db.session import dispose_engine, get_engine

    if get_engine.cache_info().currsize:
        await dispose_engine()


def _postgres_async_url(postgres: PostgresContainer) -> str:
    """Return a postgresql+asyncpg URL across testcontainers versions."""
    try:
        postgres_url = postgres.get_connection_url(driver=None)
    except TypeError:
        postgres_url = postgres.get_connection_url()

    if postgres_url.startswith("postgresql+"):
        postgres_url = "postgresql://" + postgres_url.split("://", 1)[1]

    return postgres_url.replace("postgresql://", "postgresql+asyncpg://", 1)


def _set_env_values(env_values: dict[str, str]) -> Callable[[], None]:
    """Apply env vars and return a restore callback."""
    original = {key: os.environ.get(key) for key in env_values}
    os.environ.update(env_values)

    def _restore() -> None:
        for key, value in original.items():
            if value is None:
                os.environ.pop(key, None)
            else:
                os.environ[key] = value

    return _restore


@pytest.fixture(scope="session")
def integration_env() -> Iterator[dict[str, str]]:
    """Start a Postgres container, migrate it, and point app settings at it."""
    try:
        postgres = PostgresContainer("postgres:16")
        postgres.start()
    except DockerException as exc:
        if os.environ.get("CI", "").lower() in {"1", "true", "yes"}:
            pytest.fail(
                f"Docker daemon unavailable in CI for testcontainers-backed integration tests: {exc}"
            )
        pytest.skip(f"Docker daemon unavailable for testcontainers-backed integration tests: {exc}")

    database_url = _postgres_async_url(postgres)
    restore_env = _set_env_values(
        {
            "APP__ENVIRONMENT": "development",
            "APP__SERVICE": "dashboard-auth",
            "APP__LOG_LEVEL": "INFO",
            "DATABASE__URL": database_url,
            "SESSION__ACCESS_TOKEN_TTL_SECONDS": "900",
            "SESSION__REFRESH_TOKEN_TTL_SECONDS": "604800",
        }
    )
    _clear_dependency_caches()

    alembic_cfg = Config("alembic.ini")
    alembic_cfg.set_main_option("sqlalchemy.url", database_url)
    command.upgrade(alembic_cfg, "head")

    try:
        yield {"database_url": database_url}
    finally:
        try:
            _clear_dependency_caches()
        finally:
            restore_env()
            postgres.stop()


@pytest.fixture(scope="function")
async def reset_state(integration_env: dict[str, str]) -> Iterator[None]:
    """Clear tables and isolate async singletons per event loop."""
    del integration_env
    from dashboard_auth.db.session import get_session_factory
    from dashboard_auth.models.session import Session
    from dashboard_auth.models.user import User

    await _dispose_async_singletons()
    _clear_dependency_caches()

    session_factory = get_session_factory()
    async with session_factory() as session:
        await session.execute(delete(Session))
        await session.execute(delete(User))
        await session.commit()

    try:
        yield
    finally:
        await _dispose_async_singletons()
        _clear_dependency_caches()


@pytest.fixture(scope="function")
async def db_session_factory(reset_state: None) -> async_sessionmaker[AsyncSession]:
    """Expose async session factory bound to integration Postgres."""
    del reset_state
    from dashboard_auth.db.session import get_session_factory

    return get_session_factory()


@pytest.fixture(scope="function")
async def db_session(
    db_session_factory: async_sessionmaker[AsyncSession],
) -> Iterator[AsyncSession]:
    """Yield a write-capable async DB session for test seeding and assertions."""
    async with db_session_factory() as session:
        yield session


@pytest.fixture(scope="function")
def app_factory(reset_state: None) -> Callable[[], Any]:
    """Build isolated FastAPI app instances for integration tests."""
    del reset_state
    from dashboard_auth.main import create_app

    def _factory() -> Any:
        return create_app()

    return _factory


@pytest.fixture(scope="function")
async def user_factory(db_session: AsyncSession) -> Callable[..., Any]:
    """Create user rows with hashed bcrypt passwords."""
    from dashboard_auth.models.user import User
    from dashboard_auth.services.user_service import UserService

    user_service = UserService()

    async def _create(username: str, password: str, email: str | None = None) -> User:
        user = User(
            name=username.title(),
            username=username,
            email=email,
            password=user_service.hash_password(password),
        )
        db_session.add(user)
        await db_session.commit()
        await db_session.refresh(user)
        return user

    return _create
