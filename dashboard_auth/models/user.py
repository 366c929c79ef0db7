"""Dashboard user ORM model."""

from __future__ import annotations

from typing import TYPE_CHECKING

from sqlalchemy import Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from dashboard_auth.db.base import Base, CreatedAtMixin

if TYPE_CHECKING:
    from dashboard_auth.models.session import Session


class User(Base, CreatedAtMixin):
    """Dashboard account that can log in with username or email."""

    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(191), nullable=False)
    username: Mapped[str] = mapped_column(String(191), nullable=False, unique=True)
    email: Mapped[str | None] = mapped_column(String(191), nullable=True, unique=True)
    # Null for externally provisioned accounts; such users cannot log in with a password.
    password: Mapped[str | None] = mapped_column(String(255), nullable=True)

    sessions: Mapped[list[Session]] = relationship(
        back_populates="user", cascade="all, delete-orphan", passive_deletes=True
    )
