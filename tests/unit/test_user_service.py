"""Unit tests for user registration and password authentication."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime

import pytest
from sqlalchemy.exc import IntegrityError

from dashboard_auth.models.user import User
from dashboard_auth.services.user_service import UserService, UserServiceError


@dataclass
class _FakeResult:
    """Simple scalar result stub for async session tests."""

    user: User | None

    def scalar_one_or_none(self) -> User | None:
        """Return the configured scalar value."""
        return self.user


class _FakeSession:
    """Minimal async session stub returning queued lookup results."""

    def __init__(self, *users: User | None, fail_flush: bool = False) -> None:
        self._results = list(users)
        self.added: list[User] = []
        self.fail_flush = fail_flush
        self.commit_count = 0
        self.rollback_count = 0

    async def execute(self, _statement: object) -> _FakeResult:
        """Mimic AsyncSession.execute, returning the next queued user."""
        return _FakeResult(user=self._results.pop(0) if self._results else None)

    def add(self, instance: User) -> None:
        """Capture added model."""
        self.added.append(instance)

    async def flush(self) -> None:
        """Assign an id like the database would, or fail on a unique violation."""
        if self.fail_flush:
            raise IntegrityError("INSERT INTO users", {}, Exception("duplicate key"))
        for index, instance in enumerate(self.added, start=1):
            instance.id = index

    async def commit(self) -> None:
        """Count commits."""
        self.commit_count += 1

    async def rollback(self) -> None:
        """Count rollbacks."""
        self.rollback_count += 1


def _build_user(password_hash: str | None, username: str = "alice") -> User:
    """Create a lightweight user model for service tests."""
    return User(
        id=1,
        name="Alice Example",
        username=username,
        email="alice@example.com",
        password=password_hash,
        created_at=datetime.now(UTC),
    )


async def test_authenticate_user_success() -> None:
    """Returns the user when password is valid."""
    service = UserService()
    user = _build_user(password_hash=service.hash_password("my-secure-password"))

    authenticated = await service.authenticate_user(
        db_session=_FakeSession(user),  # type: ignore[arg-type]
        identifier="alice",
        password="my-secure-password",
    )

    assert authenticated is not None
    assert authenticated.id == user.id


async def test_authenticate_user_wrong_password_returns_none() -> None:
    """Returns None when password does not match."""
    service = UserService()
    user = _build_user(password_hash=service.hash_password("my-secure-password"))

    authenticated = await service.authenticate_user(
        db_session=_FakeSession(user),  # type: ignore[arg-type]
        identifier="alice@example.com",
        password="wrong-password",
    )

    assert authenticated is None


async def test_authenticate_user_missing_user_returns_none() -> None:
    """Returns None when no user matches the identifier."""
    service = UserService()

    authenticated = await service.authenticate_user(
        db_session=_FakeSession(None),  # type: ignore[arg-type]
        identifier="missing",
        password="irrelevant-password",
    )

    assert authenticated is None


async def test_authenticate_user_without_password_hash_returns_none() -> None:
    """Externally provisioned users without a password never authenticate."""
    service = UserService()

    authenticated = await service.authenticate_user(
        db_session=_FakeSession(_build_user(password_hash=None)),  # type: ignore[arg-type]
        identifier="alice",
        password="any-password",
    )

    assert authenticated is None


async def test_register_user_hashes_password_and_commits() -> None:
    """A new username and email create one user with a bcrypt hash."""
    service = UserService()
    db_session = _FakeSession(None, None)

    user = await service.register_user(
        db_session=db_session,  # type: ignore[arg-type]
        name="Alice Example",
        username="alice",
        email="alice@example.com",
        password="secret-pw",
    )

    assert db_session.added == [user]
    assert user.id == 1
    assert user.password != "secret-pw"
    assert service.verify_password("secret-pw", user.password) is True
    assert db_session.commit_count == 1


async def test_register_user_rejects_taken_username_without_insert() -> None:
    """Registering the same username twice yields a conflict and no extra row."""
    service = UserService()
    db_session = _FakeSession(_build_user(password_hash=None))

    with pytest.raises(UserServiceError) as exc_info:
        await service.register_user(
            db_session=db_session,  # type: ignore[arg-type]
            name="Alice Again",
            username="alice",
            email=None,
            password="secret-pw",
        )

    assert exc_info.value.status_code == 409
    assert exc_info.value.code == "username_taken"
    assert db_session.added == []
    assert db_session.commit_count == 0


async def test_register_user_rejects_taken_email() -> None:
    """An email already in use is a conflict even with a new username."""
    service = UserService()
    db_session = _FakeSession(None, _build_user(password_hash=None))

    with pytest.raises(UserServiceError) as exc_info:
        await service.register_user(
            db_session=db_session,  # type: ignore[arg-type]
            name="Other",
            username="other",
            email="alice@example.com",
            password="secret-pw",
        )

    assert exc_info.value.status_code == 409
    assert exc_info.value.code == "email_taken"
    assert db_session.added == []


async def test_register_user_maps_unique_violation_to_conflict() -> None:
    """A concurrent insert that trips the unique constraint becomes a 409 after rollback."""
    service = UserService()
    db_session = _FakeSession(None, None, fail_flush=True)

    with pytest.raises(UserServiceError) as exc_info:
        await service.register_user(
            db_session=db_session,  # type: ignore[arg-type]
            name="Alice",
            username="alice",
            email="alice@example.com",
            password="secret-pw",
        )

    assert exc_info.value.status_code == 409
    assert db_session.rollback_count == 1
    assert db_session.commit_count == 0


def test_hash_password_and_verify_round_trip() -> None:
    """Hashed password is not plaintext and verifies correctly."""
    service = UserService()
    password_hash = service.hash_password("my-secure-password")

    assert password_hash != "my-secure-password"
    assert service.verify_password(password="my-secure-password", password_hash=password_hash)
    assert not service.verify_password(password="not-the-password", password_hash=password_hash)
    assert not service.verify_password(password="anything", password_hash=None)
