"""Authentication routes: register, login, profile, refresh rotation, logout."""

from __future__ import annotations

from typing import Annotated

import structlog
from fastapi import APIRouter, Depends, Request, Response
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from dashboard_auth.config import Settings, get_settings
from dashboard_auth.cookies import (
    clear_auth_cookies,
    extract_access_token,
    extract_refresh_token,
    set_auth_cookies,
)
from dashboard_auth.core.sessions import SessionRecord, SessionService, get_session_service
from dashboard_auth.dependencies import get_database_session, get_user_service
from dashboard_auth.models.user import User
from dashboard_auth.schemas.auth import (
    ApiResponse,
    AuthPayload,
    LoginRequest,
    RefreshRequest,
    RegisterRequest,
    TokenPayload,
    UserOut,
)
from dashboard_auth.services.user_service import UserService, UserServiceError

router = APIRouter(prefix="/api/auth", tags=["auth"])

logger = structlog.get_logger(__name__)


def _error_response(status_code: int, message: str) -> JSONResponse:
    """Build the standard failure envelope."""
    return JSONResponse(status_code=status_code, content={"success": False, "message": message})


def _token_payload(session: SessionRecord) -> TokenPayload:
    return TokenPayload(
        access_token=session.id,
        access_expires_at=session.expires_at,
        refresh_token=session.refresh_token,
        refresh_expires_at=session.refresh_expires_at,
    )


def _auth_payload(user: User, session: SessionRecord) -> AuthPayload:
    return AuthPayload(
        user=UserOut.model_validate(user),
        **_token_payload(session).model_dump(),
    )


def _issue_cookies(
    response: Response,
    session: SessionRecord,
    session_service: SessionService,
    settings: Settings,
) -> None:
    """Set both auth cookies from the session's absolute expiries."""
    set_auth_cookies(
        response,
        access_token=session.id,
        access_expires_at=session.expires_at,
        refresh_token=session.refresh_token,
        refresh_expires_at=session.refresh_expires_at,
        now=session_service.now(),
        access_fallback_seconds=settings.session.access_cookie_fallback_seconds,
        refresh_fallback_seconds=settings.session.refresh_cookie_fallback_seconds,
        secure=settings.app.environment == "production",
    )


@router.post("/register", status_code=201, response_model=ApiResponse[AuthPayload])
async def register(
    payload: RegisterRequest,
    response: Response,
    db_session: Annotated[AsyncSession, Depends(get_database_session)],
    user_service: Annotated[UserService, Depends(get_user_service)],
    session_service: Annotated[SessionService, Depends(get_session_service)],
    settings: Annotated[Settings, Depends(get_settings)],
) -> ApiResponse[AuthPayload] | JSONResponse:
    """Create a password user and start a session for it."""
    try:
        user = await user_service.register_user(
            db_session=db_session,
            name=payload.name,
            username=payload.username,
            email=payload.email,
            password=payload.password,
        )
    except UserServiceError as exc:
        logger.info("user.register.conflict", code=exc.code)
        return _error_response(status_code=exc.status_code, message=exc.detail)

    session = await session_service.create_session(user.id)
    _issue_cookies(response, session, session_service, settings)
    return ApiResponse[AuthPayload](
        success=True,
        message="Registration successful.",
        data=_auth_payload(user, session),
    )


@router.post("/login", response_model=ApiResponse[AuthPayload])
async def login(
    payload: LoginRequest,
    response: Response,
    db_session: Annotated[AsyncSession, Depends(get_database_session)],
    user_service: Annotated[UserService, Depends(get_user_service)],
    session_service: Annotated[SessionService, Depends(get_session_service)],
    settings: Annotated[Settings, Depends(get_settings)],
) -> ApiResponse[AuthPayload] | JSONResponse:
    """Authenticate username/email and password and start a session."""
    user = await user_service.authenticate_user(
        db_session=db_session,
        identifier=payload.identifier,
        password=payload.password,
    )
    if user is None:
        logger.warning("user.login.failure", reason="invalid_credentials")
        return _error_response(status_code=401, message="Invalid username/email or password.")

    session = await session_service.create_session(user.id)
    _issue_cookies(response, session, session_service, settings)
    return ApiResponse[AuthPayload](
        success=True,
        message="Login successful.",
        data=_auth_payload(user, session),
    )


@router.get("/me", response_model=ApiResponse[UserOut])
async def me(
    request: Request,
    db_session: Annotated[AsyncSession, Depends(get_database_session)],
    user_service: Annotated[UserService, Depends(get_user_service)],
    session_service: Annotated[SessionService, Depends(get_session_service)],
) -> ApiResponse[UserOut] | JSONResponse:
    """Return the user behind the presented access token."""
    access_token = extract_access_token(request)
    if access_token is None:
        return _error_response(status_code=401, message="Unauthorized.")

    session = await session_service.get_session_by_id(access_token)
    if session is None or session_service.is_expired(session.expires_at):
        return _error_response(status_code=401, message="Access token expired or invalid.")

    user = await user_service.get_user_by_id(db_session=db_session, user_id=session.user_id)
    if user is None:
        return _error_response(status_code=404, message="User not found.")

    return ApiResponse[UserOut](success=True, message="OK", data=UserOut.model_validate(user))


@router.post("/refresh", response_model=ApiResponse[TokenPayload])
async def refresh(
    request: Request,
    response: Response,
    session_service: Annotated[SessionService, Depends(get_session_service)],
    settings: Annotated[Settings, Depends(get_settings)],
    payload: RefreshRequest | None = None,
) -> ApiResponse[TokenPayload] | JSONResponse:
    """Rotate a refresh token into a brand-new session."""
    refresh_token = extract_refresh_token(
        request, body_token=payload.refresh_token if payload is not None else None
    )
    if refresh_token is None:
        return _error_response(status_code=401, message="Refresh token missing.")

    current = await session_service.get_session_by_refresh_token(refresh_token)
    if current is None or session_service.is_expired(current.refresh_expires_at):
        logger.warning(
            "session.rotation_rejected",
            reason="unknown_token" if current is None else "refresh_expired",
        )
        return _error_response(status_code=401, message="Refresh token invalid or expired.")

    rotated = await session_service.rotate_session(refresh_token)
    if rotated is None:
        # A concurrent refresh consumed the token between lookup and rotation.
        logger.warning("session.rotation_rejected", reason="rotation_race")
        return _error_response(status_code=401, message="Refresh token invalid or expired.")

    _issue_cookies(response, rotated, session_service, settings)
    return ApiResponse[TokenPayload](
        success=True,
        message="Token refreshed.",
        data=_token_payload(rotated),
    )


@router.post("/logout", response_model=ApiResponse[None])
async def logout(
    request: Request,
    response: Response,
    session_service: Annotated[SessionService, Depends(get_session_service)],
) -> ApiResponse[None]:
    """Revoke the presented session, if any, and clear auth cookies."""
    access_token = extract_access_token(request)
    if access_token is not None:
        await session_service.delete_session(access_token)
    clear_auth_cookies(response)
    return ApiResponse[None](success=True, message="Logout successful.")
