"""Slate prewarm module for TotalsRadar."""

from app.services.prewarm.orchestrator import (
    JobStatus,
    PrewarmCounters,
    PrewarmOrchestrator,
    PrewarmResult,
    ScheduledMatchup,
)

__all__ = [
    "JobStatus",
    "PrewarmCounters",
    "PrewarmOrchestrator",
    "PrewarmResult",
    "ScheduledMatchup",
]
