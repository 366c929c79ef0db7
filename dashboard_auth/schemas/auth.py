"""Auth request and response schemas."""

from __future__ import annotations

from datetime import datetime
from typing import Generic, TypeVar

from pydantic import BaseModel, ConfigDict, Field

DataT = TypeVar("DataT")


class RegisterRequest(BaseModel):
    """Registration request payload."""

    name: str = Field(min_length=1, max_length=191)
    username: str = Field(min_length=3, max_length=191, pattern=r"^[a-zA-Z0-9_.-]+$")
    email: str | None = Field(
        default=None, max_length=191, pattern=r"^[^@\s]+@[^@\s]+\.[^@\s]+$"
    )
    password: str = Field(min_length=6, max_length=255)


class LoginRequest(BaseModel):
    """Login with username or email."""

    identifier: str = Field(min_length=1, max_length=191)
    password: str = Field(min_length=6, max_length=255)


class RefreshRequest(BaseModel):
    """Optional refresh token body; the cookie or bearer header is used when absent."""

    refresh_token: str | None = Field(default=None, min_length=1, max_length=1024)


class UserOut(BaseModel):
    """Public user fields."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    username: str
    email: str | None


class TokenPayload(BaseModel):
    """Session token pair with absolute expiries."""

    access_token: str
    access_expires_at: datetime
    refresh_token: str
    refresh_expires_at: datetime


class AuthPayload(TokenPayload):
    """Login/registration payload."""

    user: UserOut


class ApiResponse(BaseModel, Generic[DataT]):
    """Standard response envelope."""

    success: bool
    message: str
    data: DataT | None = None
