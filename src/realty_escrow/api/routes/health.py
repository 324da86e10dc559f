"""Health check endpoint.

Verifies connectivity to the database and Redis and reports whether the
sweep scheduler is running. Redis is optional: without it the service still
works, minus idempotent replays.
"""

from __future__ import annotations

from fastapi import APIRouter, Request
from sqlalchemy import text

from realty_escrow.infrastructure.database.engine import get_engine
from realty_escrow.infrastructure.redis_client import get_redis
from realty_escrow.logging_config import get_logger
from realty_escrow.schemas import HealthResponse

router = APIRouter(tags=["Health"])
logger = get_logger(__name__)


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Health check",
    description="Returns the health status of the application and its dependencies.",
)
async def health_check(request: Request) -> HealthResponse:
    db_status = "unknown"
    redis_status = "unknown"

    try:
        async with get_engine().connect() as conn:
            await conn.execute(text("SELECT 1"))
        db_status = "healthy"
    except Exception as exc:
        db_status = f"unhealthy: {exc}"
        logger.error("health.db_check_failed", error=str(exc))

    try:
        await get_redis().ping()
        redis_status = "healthy"
    except Exception as exc:
        redis_status = f"unavailable: {exc}"
        logger.warning("health.redis_check_failed", error=str(exc))

    scheduler = getattr(request.app.state, "scheduler", None)
    overall = "ok" if db_status == "healthy" else "degraded"

    return HealthResponse(
        status=overall,
        version="0.1.0",
        database=db_status,
        redis=redis_status,
        scheduler="running" if scheduler is not None and scheduler.running else "stopped",
    )
