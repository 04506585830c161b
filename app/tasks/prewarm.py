"""Slate prewarm task.

Makes sure every matchup on today's slate has enough head-to-head history
before users open it, hydrating the pairs that fall short.
"""

import asyncio
from datetime import date

import structlog

from app.config import get_settings
from app.models.base import get_task_session
from app.services.hydration import HydrationClient
from app.services.matchups.store import MatchupStore
from app.services.prewarm import PrewarmOrchestrator
from app.services.prewarm.orchestrator import slate_date
from app.tasks import celery_app

logger = structlog.get_logger(__name__)


@celery_app.task(bind=True, soft_time_limit=1740, time_limit=1800)
def prewarm_slate(self, target_date: str | None = None, sports: list[str] | None = None):
    """
    Scheduled: Daily at 10:00 UTC
    Timeout: 30 minutes

    For each configured sport:
    1. List today's matchups
    2. Skip pairs missing a franchise id or already holding 5+ games
    3. Hydrate the rest, 3 at a time with a pause between calls
    4. Record the pass in job_runs
    """
    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)
    try:
        return loop.run_until_complete(_prewarm_slate_async(self, target_date, sports))
    finally:
        loop.close()


async def _prewarm_slate_async(task, target_date: str | None, sports: list[str] | None):
    """Async implementation of the slate prewarm."""
    settings = get_settings()
    run_date = date.fromisoformat(target_date) if target_date else slate_date(
        settings.prewarm_timezone
    )
    run_sports = sports or list(settings.prewarm_sports)

    async with get_task_session() as session:
        store = MatchupStore(session, slate_timezone=settings.prewarm_timezone)
        async with HydrationClient() as hydrator:
            orchestrator = PrewarmOrchestrator.from_settings(store, hydrator, settings)
            result = await orchestrator.run(run_date, run_sports)

    if not result.ok:
        logger.error("prewarm_task_failed", error=result.error, job_run_id=result.job_run_id)

    return result.to_dict()
