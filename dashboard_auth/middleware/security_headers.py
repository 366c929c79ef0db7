"""Security headers middleware."""

from __future__ import annotations

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response

AUTH_PATH_PREFIX = "/api/auth"


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Add browser hardening headers; auth responses carry tokens and are never cached."""

    _HEADERS: dict[str, str] = {
        "X-Frame-Options": "DENY",
        "X-Content-Type-Options": "nosniff",
        "Referrer-Policy": "same-origin",
        "Strict-Transport-Security": "max-age=63072000; includeSubDomains",
    }

    async def dispatch(self, request: Request, call_next) -> Response:
        """Append security headers to all application responses."""
        response = await call_next(request)
        for header_name, header_value in self._HEADERS.items():
            response.headers[header_name] = header_value
        if request.url.path.startswith(AUTH_PATH_PREFIX):
            response.headers["Cache-Control"] = "no-store"
        return response
