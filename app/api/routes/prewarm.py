"""Prewarm endpoints.

Run a prewarm pass on demand, queue one on the worker, or inspect the
job history.
"""

from datetime import date, datetime
from typing import Any

import structlog
from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field, field_validator

from app.api.dependencies import get_store
from app.config import get_settings
from app.services.hydration import HydrationClient
from app.services.matchups.store import MatchupStore
from app.services.prewarm import PrewarmOrchestrator
from app.services.prewarm.orchestrator import JOB_NAME, slate_date

router = APIRouter(prefix="/api/prewarm", tags=["prewarm"])
logger = structlog.get_logger(__name__)

PREWARM_TASK = "app.tasks.prewarm.prewarm_slate"


class PrewarmRequest(BaseModel):
    """On-demand prewarm input; defaults to today's slate for every sport."""

    target_date: date | None = None
    sport: str | None = Field(None, min_length=1)

    @field_validator("sport")
    @classmethod
    def normalize_sport(cls, v: str | None) -> str | None:
        return v.strip().lower() if v else v


class PrewarmResponse(BaseModel):
    """Outcome of a prewarm pass."""

    status: str
    target_date: date
    sports: list[str]
    counters: dict[str, Any]
    job_run_id: int | None = None
    error: str | None = None


class TaskQueuedResponse(BaseModel):
    """Response from queueing the prewarm task."""

    task_name: str
    task_id: str
    status: str


class JobRunItem(BaseModel):
    """One prewarm job run."""

    id: int
    job_name: str
    status: str
    started_at: datetime
    finished_at: datetime | None = None
    error_message: str | None = None
    details: dict[str, Any] | None = None

    class Config:
        from_attributes = True


class JobRunListResponse(BaseModel):
    """Recent prewarm job runs."""

    items: list[JobRunItem]
    total: int


def _resolve(request: PrewarmRequest) -> tuple[date, list[str]]:
    settings = get_settings()
    target_date = request.target_date or slate_date(settings.prewarm_timezone)
    sports = [request.sport] if request.sport else list(settings.prewarm_sports)
    return target_date, sports


@router.post("/run", response_model=PrewarmResponse)
async def run_prewarm(
    request: PrewarmRequest | None = None,
    store: MatchupStore = Depends(get_store),
) -> PrewarmResponse:
    """
    Run a prewarm pass in the request.

    Returns the counters. A failed run (audit record could not be
    written, or an error outside the per-sport boundary) is a 500.
    """
    target_date, sports = _resolve(request or PrewarmRequest())

    async with HydrationClient() as hydrator:
        orchestrator = PrewarmOrchestrator.from_settings(store, hydrator)
        result = await orchestrator.run(target_date, sports)

    if not result.ok:
        raise HTTPException(status_code=500, detail=result.error or "Prewarm failed")

    return PrewarmResponse(**result.to_dict())


@router.post("/dispatch", response_model=TaskQueuedResponse)
async def dispatch_prewarm(request: PrewarmRequest | None = None) -> TaskQueuedResponse:
    """Queue a prewarm pass on the Celery worker."""
    request = request or PrewarmRequest()
    kwargs: dict[str, Any] = {}
    if request.target_date:
        kwargs["target_date"] = request.target_date.isoformat()
    if request.sport:
        kwargs["sports"] = [request.sport]

    try:
        from app.tasks import celery_app

        result = celery_app.send_task(PREWARM_TASK, kwargs=kwargs)
    except Exception as e:
        logger.error("prewarm_dispatch_failed", error=str(e))
        raise HTTPException(status_code=500, detail=f"Failed to queue prewarm: {e}")

    logger.info("prewarm_dispatched", task_id=result.id, **kwargs)
    return TaskQueuedResponse(task_name=PREWARM_TASK, task_id=result.id, status="queued")


@router.get("/runs", response_model=JobRunListResponse)
async def list_runs(
    limit: int = Query(20, ge=1, le=100),
    store: MatchupStore = Depends(get_store),
) -> JobRunListResponse:
    """Recent prewarm job runs, newest first."""
    runs = await store.list_job_runs(JOB_NAME, limit=limit)
    items = [JobRunItem.model_validate(run) for run in runs]
    return JobRunListResponse(items=items, total=len(items))
