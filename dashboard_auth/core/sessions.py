"""Opaque-token session lifecycle: creation, lookup, rotation, and revocation."""

from __future__ import annotations

import secrets
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from enum import StrEnum
from functools import lru_cache
from typing import Protocol

import structlog
from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from dashboard_auth.config import get_settings
from dashboard_auth.db.session import get_session_factory
from dashboard_auth.models.session import Session

TOKEN_BYTES = 32

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class SessionRecord:
    """Detached view of one session row."""

    id: str
    user_id: int
    expires_at: datetime
    refresh_token: str
    refresh_expires_at: datetime
    created_at: datetime


class SessionState(StrEnum):
    """Time-derived state of a stored session; a deleted row has no state."""

    ACTIVE = "active"
    ACCESS_EXPIRED = "access_expired"
    FULLY_EXPIRED = "fully_expired"


class SessionStore(Protocol):
    """Persistence operations the session service depends on."""

    async def insert(self, record: SessionRecord) -> None:
        """Persist a new session; duplicate ids or refresh tokens must fail."""

    async def get_by_id(self, session_id: str) -> SessionRecord | None:
        """Return the session with this id, if any."""

    async def get_by_refresh_token(self, refresh_token: str) -> SessionRecord | None:
        """Return the session holding this refresh token, if any."""

    async def delete_by_id(self, session_id: str) -> None:
        """Delete the session with this id; missing rows are ignored."""

    async def delete_by_refresh_token(self, refresh_token: str) -> None:
        """Delete the session holding this refresh token; missing rows are ignored."""

    async def delete_expired(self, now: datetime) -> int:
        """Delete sessions whose refresh expiry is at or before now."""


def _utcnow() -> datetime:
    return datetime.now(UTC)


def generate_token() -> str:
    """Return a 256-bit random token, hex encoded."""
    return secrets.token_hex(TOKEN_BYTES)


class SqlAlchemySessionStore:
    """Session store backed by the `sessions` table, one short transaction per call."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def insert(self, record: SessionRecord) -> None:
        async with self._session_factory() as db_session:
            db_session.add(
                Session(
                    id=record.id,
                    user_id=record.user_id,
                    expires_at=record.expires_at,
                    refresh_token=record.refresh_token,
                    refresh_expires_at=record.refresh_expires_at,
                    created_at=record.created_at,
                )
            )
            await db_session.commit()

    async def get_by_id(self, session_id: str) -> SessionRecord | None:
        return await self._fetch_one(Session.id == session_id)

    async def get_by_refresh_token(self, refresh_token: str) -> SessionRecord | None:
        return await self._fetch_one(Session.refresh_token == refresh_token)

    async def delete_by_id(self, session_id: str) -> None:
        await self._execute_delete(delete(Session).where(Session.id == session_id))

    async def delete_by_refresh_token(self, refresh_token: str) -> None:
        await self._execute_delete(delete(Session).where(Session.refresh_token == refresh_token))

    async def delete_expired(self, now: datetime) -> int:
        return await self._execute_delete(
            delete(Session).where(Session.refresh_expires_at <= now)
        )

    async def _fetch_one(self, condition) -> SessionRecord | None:
        """Run a single-row lookup and detach the result."""
        async with self._session_factory() as db_session:
            result = await db_session.execute(select(Session).where(condition).limit(1))
            row = result.scalar_one_or_none()
            return _to_record(row) if row is not None else None

    async def _execute_delete(self, statement) -> int:
        """Run a delete statement and return the affected row count."""
        async with self._session_factory() as db_session:
            result = await db_session.execute(statement)
            await db_session.commit()
            return int(result.rowcount or 0)


def _to_record(row: Session) -> SessionRecord:
    return SessionRecord(
        id=row.id,
        user_id=int(row.user_id),
        expires_at=_as_aware(row.expires_at),
        refresh_token=row.refresh_token,
        refresh_expires_at=_as_aware(row.refresh_expires_at),
        created_at=_as_aware(row.created_at),
    )


def _as_aware(value: datetime) -> datetime:
    """Treat naive database timestamps as UTC."""
    return value if value.tzinfo is not None else value.replace(tzinfo=UTC)


class SessionService:
    """Issue, validate, rotate, and revoke opaque-token sessions.

    Not-found and expired are ordinary return values here. Only persistence
    failures raise, and they are left for the HTTP layer to translate.
    Expiry is never checked on rotation: callers must reject a session whose
    refresh token ``is_expired`` before calling :meth:`rotate_session`.
    """

    def __init__(
        self,
        store: SessionStore,
        access_token_ttl_seconds: int = 900,
        refresh_token_ttl_seconds: int = 604800,
        clock: Callable[[], datetime] = _utcnow,
        token_factory: Callable[[], str] = generate_token,
    ) -> None:
        self._store = store
        self._access_ttl = timedelta(seconds=access_token_ttl_seconds)
        self._refresh_ttl = timedelta(seconds=refresh_token_ttl_seconds)
        self._clock = clock
        self._token_factory = token_factory

    def now(self) -> datetime:
        """Return the service clock's current time."""
        return self._clock()

    async def create_session(
        self,
        user_id: int,
        access_ttl: timedelta | None = None,
        refresh_ttl: timedelta | None = None,
    ) -> SessionRecord:
        """Persist a new session for the user and return it."""
        now = self._clock()
        access_ttl = self._access_ttl if access_ttl is None else access_ttl
        refresh_ttl = self._refresh_ttl if refresh_ttl is None else refresh_ttl
        record = SessionRecord(
            id=self._token_factory(),
            user_id=user_id,
            expires_at=now + access_ttl,
            refresh_token=self._token_factory(),
            refresh_expires_at=now + refresh_ttl,
            created_at=now,
        )
        await self._store.insert(record)
        logger.info(
            "session.created",
            user_id=user_id,
            expires_at=record.expires_at.isoformat(),
            refresh_expires_at=record.refresh_expires_at.isoformat(),
        )
        return record

    async def get_session_by_id(self, session_id: str) -> SessionRecord | None:
        """Look up a session by access token."""
        return await self._store.get_by_id(session_id)

    async def get_session_by_refresh_token(self, refresh_token: str) -> SessionRecord | None:
        """Look up a session by refresh token."""
        return await self._store.get_by_refresh_token(refresh_token)

    def is_expired(self, timestamp: datetime) -> bool:
        """Return True when timestamp is at or before now."""
        return timestamp <= self._clock()

    def session_state(self, record: SessionRecord) -> SessionState:
        """Derive the lifecycle state of a stored session from its expiries."""
        if self.is_expired(record.refresh_expires_at):
            return SessionState.FULLY_EXPIRED
        if self.is_expired(record.expires_at):
            return SessionState.ACCESS_EXPIRED
        return SessionState.ACTIVE

    async def rotate_session(
        self,
        old_refresh_token: str,
        access_ttl: timedelta | None = None,
        refresh_ttl: timedelta | None = None,
    ) -> SessionRecord | None:
        """Replace the session holding old_refresh_token with a fresh one.

        Returns None when no session holds the token. The old row is deleted
        before the new one is inserted, outside a transaction; a failure in
        between leaves the user logged out.
        """
        current = await self._store.get_by_refresh_token(old_refresh_token)
        if current is None:
            return None

        await self._store.delete_by_id(current.id)
        rotated = await self.create_session(
            current.user_id, access_ttl=access_ttl, refresh_ttl=refresh_ttl
        )
        logger.info("session.rotated", user_id=current.user_id)
        return rotated

    async def delete_session(self, session_id: str) -> None:
        """Revoke a session by access token."""
        await self._store.delete_by_id(session_id)
        logger.info("session.revoked", by="access_token")

    async def delete_session_by_refresh(self, refresh_token: str) -> None:
        """Revoke a session by refresh token."""
        await self._store.delete_by_refresh_token(refresh_token)
        logger.info("session.revoked", by="refresh_token")

    async def purge_expired_sessions(self) -> int:
        """Delete every session whose refresh token has expired."""
        purged = await self._store.delete_expired(self._clock())
        logger.info("session.purged", count=purged)
        return purged


@lru_cache
def get_session_service() -> SessionService:
    """Create and cache the session service."""
    settings = get_settings()
    return SessionService(
        store=SqlAlchemySessionStore(get_session_factory()),
        access_token_ttl_seconds=settings.session.access_token_ttl_seconds,
        refresh_token_ttl_seconds=settings.session.refresh_token_ttl_seconds,
    )
