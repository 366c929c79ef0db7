"""Session token transport: cookie/bearer extraction and auth cookie handling."""

from __future__ import annotations

import math
from datetime import datetime

from fastapi import Request, Response

ACCESS_COOKIE = "access_token"
REFRESH_COOKIE = "refresh_token"


def extract_bearer_token(request: Request) -> str | None:
    """Extract the token from an ``Authorization: Bearer <token>`` header."""
    authorization = request.headers.get("authorization", "").strip()
    if not authorization:
        return None
    parts = authorization.split(" ")
    if len(parts) != 2 or parts[0] != "Bearer":
        return None
    return parts[1] or None


def extract_access_token(request: Request) -> str | None:
    """Return the access token, preferring the cookie over the bearer header."""
    return request.cookies.get(ACCESS_COOKIE) or extract_bearer_token(request)


def extract_refresh_token(request: Request, body_token: str | None = None) -> str | None:
    """Return the refresh token from the body, the cookie, then the bearer header."""
    return body_token or request.cookies.get(REFRESH_COOKIE) or extract_bearer_token(request)


def cookie_max_age(expires_at: datetime, now: datetime, fallback_seconds: int) -> int:
    """Seconds until expires_at, floored at 0; zero falls back to fallback_seconds."""
    remaining = max(0, math.floor((expires_at - now).total_seconds()))
    return remaining or fallback_seconds


def set_auth_cookies(
    response: Response,
    *,
    access_token: str,
    access_expires_at: datetime,
    refresh_token: str,
    refresh_expires_at: datetime,
    now: datetime,
    access_fallback_seconds: int,
    refresh_fallback_seconds: int,
    secure: bool,
) -> None:
    """Attach httpOnly lax cookies for both session tokens."""
    response.set_cookie(
        ACCESS_COOKIE,
        access_token,
        max_age=cookie_max_age(access_expires_at, now, access_fallback_seconds),
        path="/",
        secure=secure,
        httponly=True,
        samesite="lax",
    )
    response.set_cookie(
        REFRESH_COOKIE,
        refresh_token,
        max_age=cookie_max_age(refresh_expires_at, now, refresh_fallback_seconds),
        path="/",
        secure=secure,
        httponly=True,
        samesite="lax",
    )


def clear_auth_cookies(response: Response) -> None:
    """Expire both session cookies."""
    response.delete_cookie(ACCESS_COOKIE, path="/")
    response.delete_cookie(REFRESH_COOKIE, path="/")
