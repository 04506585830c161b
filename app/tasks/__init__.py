"""Celery tasks for TotalsRadar.

This module configures Celery and registers all periodic tasks.
"""

from celery import Celery
from celery.schedules import crontab

from app.config import get_settings
from app.config.log_config import configure_logging

settings = get_settings()
configure_logging(settings.log_level)

# Create Celery application
celery_app = Celery(
    "totalsradar",
    broker=settings.redis_url,
    backend=settings.redis_url,
    include=[
        "app.tasks.prewarm",
    ],
)

# Celery configuration
celery_app.conf.update(
    # Serialization
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    # Timezone
    timezone="UTC",
    enable_utc=True,
    # Task behavior
    task_track_started=True,
    task_time_limit=1800,  # 30 minute hard limit
    task_soft_time_limit=1740,
    # Result expiration
    result_expires=86400,  # 1 day
    # Worker settings
    worker_prefetch_multiplier=1,
    worker_concurrency=2,
)

# Beat schedule for periodic tasks
celery_app.conf.beat_schedule = {
    # Slate prewarm - daily at 10:00 UTC, ahead of the day's games
    "prewarm-slate": {
        "task": "app.tasks.prewarm.prewarm_slate",
        "schedule": crontab(hour=10, minute=0),
        "options": {"expires": 3600},
    },
}
