"""Integration tests for the production middleware stack."""

from __future__ import annotations

from fastapi import FastAPI, HTTPException
from httpx import ASGITransport, AsyncClient

from dashboard_auth.error_handlers import register_exception_handlers
from dashboard_auth.middleware.correlation_id import CorrelationIdMiddleware
from dashboard_auth.middleware.logging import LoggingMiddleware
from dashboard_auth.middleware.security_headers import SecurityHeadersMiddleware

_SECURITY_HEADERS = {
    "x-frame-options": "DENY",
    "x-content-type-options": "nosniff",
    "referrer-policy": "same-origin",
    "strict-transport-security": "max-age=63072000; includeSubDomains",
}


def _build_test_app() -> FastAPI:
    """Build test app with middleware stack wired in production order."""
    app = FastAPI()
    app.add_middleware(LoggingMiddleware)
    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(CorrelationIdMiddleware)
    register_exception_handlers(app, environment="production")

    @app.get("/ok")
    async def ok() -> dict[str, bool]:
        return {"ok": True}

    @app.get("/api/auth/me")
    async def client_error() -> None:
        raise HTTPException(status_code=401, detail="Unauthorized.")

    @app.get("/server-error")
    async def server_error() -> None:
        raise HTTPException(status_code=500, detail="server-error")

    return app


def _assert_security_headers(headers: dict[str, str]) -> None:
    """Assert required security headers are set on response."""
    for header_name, expected_value in _SECURITY_HEADERS.items():
        assert headers.get(header_name) == expected_value


async def test_headers_present_on_success_and_error_responses() -> None:
    """Correlation ID and security headers are present on 2xx/4xx/5xx."""
    async with AsyncClient(
        transport=ASGITransport(app=_build_test_app()), base_url="http://testserver"
    ) as client:
        ok_response = await client.get("/ok", headers={"x-correlation-id": "cid-test"})
        client_error = await client.get("/api/auth/me")
        server_error = await client.get("/server-error")

    assert ok_response.status_code == 200
    assert ok_response.headers["x-correlation-id"] == "cid-test"
    _assert_security_headers(dict(ok_response.headers))

    assert client_error.status_code == 401
    assert client_error.headers.get("x-correlation-id")
    _assert_security_headers(dict(client_error.headers))

    assert server_error.status_code == 500
    assert server_error.headers.get("x-correlation-id")
    _assert_security_headers(dict(server_error.headers))


async def test_malformed_correlation_id_is_replaced() -> None:
    """Inbound correlation IDs with unsafe characters are not echoed."""
    async with AsyncClient(
        transport=ASGITransport(app=_build_test_app()), base_url="http://testserver"
    ) as client:
        response = await client.get("/ok", headers={"x-correlation-id": "bad id with spaces!"})

    assert response.headers["x-correlation-id"] != "bad id with spaces!"
    assert len(response.headers["x-correlation-id"]) == 36


async def test_auth_responses_are_not_cacheable() -> None:
    """Responses under the auth prefix carry Cache-Control: no-store."""
    async with AsyncClient(
        transport=ASGITransport(app=_build_test_app()), base_url="http://testserver"
    ) as client:
        auth_response = await client.get("/api/auth/me")
        other_response = await client.get("/ok")

    assert auth_response.headers["cache-control"] == "no-store"
    assert "cache-control" not in other_response.headers
