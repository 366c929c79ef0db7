"""User lookup, registration, and password validation services."""

from __future__ import annotations

import structlog
from passlib.context import CryptContext
from sqlalchemy import or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from dashboard_auth.models.user import User

logger = structlog.get_logger(__name__)


class UserServiceError(Exception):
    """Raised when user management operations fail validation."""

    def __init__(self, detail: str, code: str, status_code: int) -> None:
        super().__init__(detail)
        self.detail = detail
        self.code = code
        self.status_code = status_code


class UserService:
    """Service responsible for user retrieval, registration and password checks."""

    def __init__(self) -> None:
        self._password_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

    async def get_user_by_id(self, db_session: AsyncSession, user_id: int) -> User | None:
        """Fetch a user by primary key."""
        return await self._fetch_one(db_session, User.id == user_id)

    async def get_user_by_username(self, db_session: AsyncSession, username: str) -> User | None:
        """Fetch a user by exact username."""
        return await self._fetch_one(db_session, User.username == username)

    async def get_user_by_email(self, db_session: AsyncSession, email: str) -> User | None:
        """Fetch a user by exact email."""
        return await self._fetch_one(db_session, User.email == email)

    async def get_user_by_identifier(
        self, db_session: AsyncSession, identifier: str
    ) -> User | None:
        """Fetch a user whose username or email equals the identifier."""
        return await self._fetch_one(
            db_session, or_(User.username == identifier, User.email == identifier)
        )

    async def register_user(
        self,
        db_session: AsyncSession,
        name: str,
        username: str,
        email: str | None,
        password: str,
    ) -> User:
        """Create a password user, rejecting a taken username or email with 409."""
        if await self.get_user_by_username(db_session, username) is not None:
            raise UserServiceError("Username already taken.", "username_taken", 409)
        if email and await self.get_user_by_email(db_session, email) is not None:
            raise UserServiceError("Email already taken.", "email_taken", 409)

        user = User(
            name=name,
            username=username,
            email=email or None,
            password=self.hash_password(password),
        )
        db_session.add(user)
        try:
            await db_session.flush()
        except IntegrityError as exc:
            # Lost a race with a concurrent registration for the same username/email.
            await db_session.rollback()
            raise UserServiceError(
                "Username or email already taken.", "user_exists", 409
            ) from exc
        await db_session.commit()
        logger.info("user.registered", user_id=user.id)
        return user

    async def authenticate_user(
        self,
        db_session: AsyncSession,
        identifier: str,
        password: str,
    ) -> User | None:
        """Authenticate username/email and password credentials."""
        user = await self.get_user_by_identifier(db_session=db_session, identifier=identifier)
        if user is None or user.password is None:
            self._password_context.dummy_verify()
            return None
        if not self.verify_password(password=password, password_hash=user.password):
            return None
        return user

    def hash_password(self, password: str) -> str:
        """Generate a bcrypt hash for the provided password."""
        return str(self._password_context.hash(password))

    def verify_password(self, password: str, password_hash: str | None) -> bool:
        """Verify a plaintext password against the stored bcrypt hash."""
        if not password_hash:
            return False
        return bool(self._password_context.verify(password, password_hash))

    async def _fetch_one(self, db_session: AsyncSession, condition) -> User | None:
        statement = select(User).where(condition).limit(1)
        result = await db_session.execute(statement)
        return result.scalar_one_or_none()
