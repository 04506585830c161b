"""Health check endpoints."""

from datetime import datetime, timezone

import redis.asyncio as redis
from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.dependencies import get_db, get_redis
from app.config import get_settings
from app.services.matchups.store import MatchupStore
from app.services.prewarm.orchestrator import JOB_NAME

router = APIRouter(tags=["health"])


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    timestamp: datetime


class ReadyCheck(BaseModel):
    """Individual readiness check."""

    status: str
    message: str | None = None


class ReadyResponse(BaseModel):
    """Readiness check response."""

    ready: bool
    checks: dict[str, ReadyCheck]


@router.get("/health", response_model=HealthResponse)
async def health():
    """
    Basic health check.

    Returns healthy if the service is running.
    """
    return HealthResponse(
        status="healthy",
        timestamp=datetime.now(timezone.utc),
    )


@router.get("/ready", response_model=ReadyResponse)
async def ready(
    db: AsyncSession = Depends(get_db),
    redis_client: redis.Redis = Depends(get_redis),
):
    """
    Readiness check for all dependencies.

    Checks:
    - Database connectivity
    - Redis connectivity
    - Hydration service configured
    - Last prewarm run
    """
    checks = {}
    all_ready = True

    # Check database
    try:
        await db.execute(text("SELECT 1"))
        checks["db"] = ReadyCheck(status="ok")
    except Exception as e:
        checks["db"] = ReadyCheck(status="error", message=str(e))
        all_ready = False

    # Check Redis
    try:
        await redis_client.ping()
        checks["redis"] = ReadyCheck(status="ok")
    except Exception as e:
        checks["redis"] = ReadyCheck(status="error", message=str(e))
        all_ready = False

    # Prewarm still runs without it; every hydration just fails
    settings = get_settings()
    if settings.hydration_configured:
        checks["hydration"] = ReadyCheck(status="ok", message="Service URL configured")
    else:
        checks["hydration"] = ReadyCheck(
            status="warning", message="Service URL not configured"
        )

    # Last prewarm pass, informational only
    if checks["db"].status == "ok":
        runs = await MatchupStore(db).list_job_runs(JOB_NAME, limit=1)
        if not runs:
            checks["prewarm"] = ReadyCheck(status="warning", message="No prewarm run recorded")
        else:
            last = runs[0]
            checks["prewarm"] = ReadyCheck(
                status="ok" if last.status in ("success", "partial") else "warning",
                message=f"Last run {last.status} at {last.started_at.isoformat()}",
            )

    return ReadyResponse(ready=all_ready, checks=checks)
