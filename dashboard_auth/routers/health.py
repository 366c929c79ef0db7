"""Health check router endpoints."""

from __future__ import annotations

from typing import Annotated

import structlog
from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError

from dashboard_auth.db.session import get_engine

router = APIRouter(prefix="/health", tags=["health"])

logger = structlog.get_logger(__name__)


async def check_database_ready() -> bool:
    """Return True when the database accepts a lightweight query."""
    try:
        async with get_engine().connect() as connection:
            await connection.execute(select(1))
        return True
    except (SQLAlchemyError, OSError) as exc:
        logger.warning("database_not_ready", error=str(exc))
        return False


@router.get("/live")
async def live() -> dict[str, str]:
    """Liveness probe endpoint."""
    return {"status": "live"}


@router.get("/ready", response_model=None)
async def ready(
    database_ready: Annotated[bool, Depends(check_database_ready)],
) -> dict[str, str] | JSONResponse:
    """Readiness probe requiring the database."""
    if not database_ready:
        return JSONResponse(
            status_code=503,
            content={"success": False, "message": "Service not ready."},
        )
    return {"status": "ready"}
