"""Database package exports."""

from dashboard_auth.db.base import Base
from dashboard_auth.db.session import (
    dispose_engine,
    get_db_session,
    get_engine,
    get_session_factory,
)

__all__ = ["Base", "dispose_engine", "get_db_session", "get_engine", "get_session_factory"]
