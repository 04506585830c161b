"""FastAPI dependencies for TotalsRadar."""

from collections.abc import AsyncGenerator

import redis.asyncio as redis
from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import get_settings
from app.models.base import get_db
from app.services.matchups.store import MatchupStore


async def get_redis() -> AsyncGenerator[redis.Redis, None]:
    """Get Redis client dependency."""
    settings = get_settings()
    client = redis.from_url(settings.redis_url)
    try:
        yield client
    finally:
        await client.aclose()


async def get_store(db: AsyncSession = Depends(get_db)) -> MatchupStore:
    """Get a matchup store bound to the request session."""
    return MatchupStore(db, slate_timezone=get_settings().prewarm_timezone)


__all__ = ["get_db", "get_redis", "get_store"]
