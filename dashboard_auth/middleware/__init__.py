"""Middleware package exports."""

from dashboard_auth.middleware.correlation_id import CorrelationIdMiddleware
from dashboard_auth.middleware.logging import LoggingMiddleware
from dashboard_auth.middleware.security_headers import SecurityHeadersMiddleware

__all__ = [
    "CorrelationIdMiddleware",
    "LoggingMiddleware",
    "SecurityHeadersMiddleware",
]
