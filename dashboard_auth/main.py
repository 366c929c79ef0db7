"""FastAPI application factory."""

from fastapi import FastAPI

from dashboard_auth.config import configure_structlog, get_settings
from dashboard_auth.error_handlers import register_exception_handlers
from dashboard_auth.middleware.correlation_id import CorrelationIdMiddleware
from dashboard_auth.middleware.logging import LoggingMiddleware
from dashboard_auth.middleware.security_headers import SecurityHeadersMiddleware
from dashboard_auth.routers import auth, health


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()
    configure_structlog(settings)

    app = FastAPI(title=settings.app.service)
    app.add_middleware(LoggingMiddleware)
    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(CorrelationIdMiddleware)
    register_exception_handlers(app, environment=settings.app.environment)

    app.include_router(auth.router)
    app.include_router(health.router)
    return app


app = create_app()
