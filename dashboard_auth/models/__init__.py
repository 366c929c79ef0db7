"""ORM model exports."""

from dashboard_auth.models.session import Session
from dashboard_auth.models.user import User

__all__ = ["Session", "User"]
