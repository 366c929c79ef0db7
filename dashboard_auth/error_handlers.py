"""Global exception handlers enforcing the API failure envelope."""

from __future__ import annotations

from typing import Any

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = structlog.get_logger(__name__)


def _error_response(
    status_code: int, message: str, errors: dict[str, list[str]] | None = None
) -> JSONResponse:
    """Build the standard failure envelope."""
    content: dict[str, Any] = {"success": False, "message": message}
    if errors:
        content["errors"] = errors
    return JSONResponse(status_code=status_code, content=content)


def _extract_message(detail: Any) -> str:
    """Normalize exception detail payload into a message."""
    if isinstance(detail, dict):
        return str(detail.get("message") or detail.get("detail") or "Request failed.")
    if isinstance(detail, str):
        return detail
    return "Request failed."


def _sanitize_message(message: str, status_code: int, environment: str) -> str:
    """Hide internal failure details outside development."""
    if environment != "development" and status_code >= 500:
        return "Internal server error."
    return message


def _field_errors(exc: RequestValidationError) -> dict[str, list[str]]:
    """Group validation messages by dotted field path, skipping the body/query prefix."""
    grouped: dict[str, list[str]] = {}
    for error in exc.errors():
        location = [str(part) for part in error.get("loc", ())[1:]] or ["__root__"]
        grouped.setdefault(".".join(location), []).append(str(error.get("msg", "invalid")))
    return grouped


def _correlation_id(request: Request) -> str:
    return getattr(
        request.state,
        "correlation_id",
        request.headers.get("x-correlation-id", "unknown"),
    )


def register_exception_handlers(app: FastAPI, environment: str) -> None:
    """Register global exception handlers enforcing error shape contract."""

    @app.exception_handler(StarletteHTTPException)
    async def handle_http_exception(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        """Normalize framework HTTP exceptions to the failure envelope."""
        return _error_response(
            status_code=exc.status_code, message=_extract_message(exc.detail)
        )

    @app.exception_handler(RequestValidationError)
    async def handle_validation_exception(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        """Map request validation errors to 422 with per-field messages."""
        return _error_response(
            status_code=422, message="Validation failed.", errors=_field_errors(exc)
        )

    @app.exception_handler(Exception)
    async def handle_unexpected_exception(request: Request, exc: Exception) -> JSONResponse:
        """Log infrastructure failures in full and mask them in the response."""
        logger.error(
            "unhandled_exception",
            correlation_id=_correlation_id(request),
            path=request.url.path,
            method=request.method,
            error=str(exc),
            exc_info=exc,
        )
        message = _sanitize_message(str(exc), 500, environment)
        return _error_response(status_code=500, message=message)
