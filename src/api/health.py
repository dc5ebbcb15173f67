"""Health check endpoint for infrastructure verification."""

from datetime import datetime

from fastapi import APIRouter, Request
from pydantic import BaseModel
from sqlalchemy import text

from src.api.deps import DbSession, get_redis
from src.core.logging import get_logger
from src.core.redis import check_redis_health
from src.models.base import utcnow

logger = get_logger(__name__)

router = APIRouter(prefix="/api", tags=["health"])


class HealthResponse(BaseModel):
    """Health check response model."""

    status: str
    timestamp: datetime
    db: str
    redis: str


@router.get("/health", response_model=HealthResponse)
async def health_check(request: Request, db: DbSession) -> HealthResponse:
    """Liveness probe with database and Redis connectivity.

    A failing dependency degrades the status but never fails the probe.
    """
    try:
        await db.execute(text("SELECT 1"))
        db_status = "connected"
    except Exception as e:
        logger.exception("database_health_check_failed", error=str(e))
        db_status = "disconnected"

    redis_pool = await get_redis(request)
    redis_healthy = await check_redis_health(redis_pool)
    redis_status = "connected" if redis_healthy else "disconnected"

    return HealthResponse(
        status="ok"
        if db_status == "connected" and redis_status == "connected"
        else "degraded",
        timestamp=utcnow(),
        db=db_status,
        redis=redis_status,
    )
