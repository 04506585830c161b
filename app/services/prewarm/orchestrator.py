"""Slate prewarm orchestration.

For every matchup scheduled on a date, make sure enough head-to-head
history is stored before users ask for it. Matchups that fall short are
hydrated from the upstream provider through a small worker pool: at most
`concurrency` calls in flight, each worker pausing between calls as a
courtesy rate limit.

The audit record lifecycle is explicit: start_job_run() returns a handle
that is passed to finish_job_run(); nothing is held in module state.
"""

import asyncio
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import asdict, dataclass, field
from datetime import date, datetime, timezone
from enum import Enum
from typing import Any, Protocol
from zoneinfo import ZoneInfo

import structlog

from app.config import Settings, get_settings
from app.services.hydration.client import HydrationResult
from app.services.matchups.keys import TeamPair, canonical_pair

logger = structlog.get_logger(__name__)

JOB_NAME = "prewarm-slate"
MIN_SUFFICIENT_GAMES = 5


class JobStatus(str, Enum):
    """Audit record status."""

    RUNNING = "running"
    SUCCESS = "success"
    PARTIAL = "partial"
    FAILED = "failed"


@dataclass(frozen=True)
class ScheduledMatchup:
    """A game on the slate, as listed by the schedule store."""

    game_id: str
    home_team_id: str
    away_team_id: str
    home_franchise_id: str | None = None
    away_franchise_id: str | None = None

    def franchise_pair(self) -> TeamPair | None:
        if not self.home_franchise_id or not self.away_franchise_id:
            return None
        return canonical_pair(self.home_franchise_id, self.away_franchise_id)


@dataclass(frozen=True)
class JobRunHandle:
    """Returned when a job run is recorded; required to finish it."""

    id: int
    job_name: str
    started_at: datetime


@dataclass
class PrewarmCounters:
    """Counters aggregated across all sports in one pass."""

    total_matchups: int = 0
    already_sufficient: int = 0
    missing_franchise: int = 0
    hydration_queued: int = 0
    hydration_success: int = 0
    hydration_failed: int = 0
    games_inserted: int = 0
    errors: int = 0
    sport_errors: dict[str, str] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class PrewarmResult:
    """Outcome of one orchestration pass."""

    status: JobStatus
    target_date: date
    sports: list[str]
    counters: PrewarmCounters
    job_run_id: int | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.status is not JobStatus.FAILED

    def to_dict(self) -> dict[str, Any]:
        return {
            "status": self.status.value,
            "target_date": self.target_date.isoformat(),
            "sports": list(self.sports),
            "counters": self.counters.to_dict(),
            "job_run_id": self.job_run_id,
            "error": self.error,
        }


class PrewarmStore(Protocol):
    """Data access the orchestrator needs."""

    async def list_scheduled_matchups(
        self, sport_id: str, target_date: date
    ) -> list[ScheduledMatchup]: ...

    async def has_sufficient_history(
        self, sport_id: str, pair: TeamPair, min_games: int
    ) -> bool: ...

    async def start_job_run(
        self, job_name: str, details: dict[str, Any]
    ) -> JobRunHandle: ...

    async def finish_job_run(
        self,
        handle: JobRunHandle,
        status: str,
        details: dict[str, Any],
        error_message: str | None = None,
    ) -> None: ...


class Hydrator(Protocol):
    """The external, idempotent hydrate operation."""

    async def hydrate(
        self,
        sport_id: str,
        home_team_id: str,
        away_team_id: str,
        horizon_years: int,
    ) -> HydrationResult: ...


def slate_date(tz_name: str, now: datetime | None = None) -> date:
    """Today's calendar date in the slate's timezone."""
    now = now or datetime.now(timezone.utc)
    return now.astimezone(ZoneInfo(tz_name)).date()


class PrewarmOrchestrator:
    """
    Ensure scheduled matchups have sufficient history.

    Per sport:
    1. List the matchups scheduled for the date
    2. Skip (and count) matchups missing a franchise id on either side
    3. Skip matchups whose canonical franchise pair already has enough games
    4. Queue the rest and drain the queue through the worker pool

    One sport failing never stops the others; the run ends 'partial'.
    """

    def __init__(
        self,
        store: PrewarmStore,
        hydrator: Hydrator,
        concurrency: int = 3,
        batch_delay_seconds: float = 0.5,
        hydration_timeout: float | None = 30.0,
        horizon_years: int = 10,
        min_games: int = MIN_SUFFICIENT_GAMES,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        """
        Initialize the orchestrator.

        Args:
            store: Schedule, history and audit-record access
            hydrator: Hydrate operation
            concurrency: Max hydration calls in flight
            batch_delay_seconds: Pause a worker takes before its next call
            hydration_timeout: Per-call timeout; expiry counts as a failure
            horizon_years: Years of history requested per hydration
            min_games: Games that make a pair sufficient
            sleep: Awaitable delay, injectable for tests
        """
        if concurrency < 1:
            raise ValueError("concurrency must be at least 1")
        self.store = store
        self.hydrator = hydrator
        self.concurrency = concurrency
        self.batch_delay_seconds = batch_delay_seconds
        self.hydration_timeout = hydration_timeout
        self.horizon_years = horizon_years
        self.min_games = min_games
        self._sleep = sleep

    @classmethod
    def from_settings(
        cls,
        store: PrewarmStore,
        hydrator: Hydrator,
        settings: Settings | None = None,
    ) -> "PrewarmOrchestrator":
        """Build an orchestrator from application settings."""
        settings = settings or get_settings()
        return cls(
            store=store,
            hydrator=hydrator,
            concurrency=settings.prewarm_concurrency,
            batch_delay_seconds=settings.prewarm_batch_delay_ms / 1000,
            hydration_timeout=settings.hydration_timeout_seconds,
            horizon_years=settings.hydration_horizon_years,
        )

    async def run(self, target_date: date, sports: Sequence[str]) -> PrewarmResult:
        """
        Run one prewarm pass and record it as a job run.

        Returns a result rather than raising: status 'failed' with an error
        message when the audit record cannot be written or something breaks
        outside the per-sport boundary.
        """
        sports = list(sports)
        counters = PrewarmCounters()
        base_details = {"date": target_date.isoformat(), "sports": sports}

        logger.info("prewarm_started", date=target_date.isoformat(), sports=sports)

        try:
            handle = await self.store.start_job_run(JOB_NAME, dict(base_details))
        except Exception as e:
            logger.error("prewarm_job_record_failed", error=str(e))
            return PrewarmResult(
                status=JobStatus.FAILED,
                target_date=target_date,
                sports=sports,
                counters=counters,
                error=f"Could not create job run: {e}",
            )

        status = JobStatus.SUCCESS
        error: str | None = None
        try:
            for sport_id in sports:
                try:
                    await self.prewarm_sport(target_date, sport_id, counters)
                except Exception as e:
                    counters.errors += 1
                    counters.sport_errors[sport_id] = str(e)
                    logger.error("prewarm_sport_failed", sport_id=sport_id, error=str(e))
            status = JobStatus.PARTIAL if counters.errors else JobStatus.SUCCESS
        except asyncio.CancelledError:
            # Record the counters so far, then propagate
            await self._finish(handle, JobStatus.FAILED, base_details, counters, "cancelled")
            raise
        except Exception as e:
            status = JobStatus.FAILED
            error = str(e)
            logger.error("prewarm_failed", error=error)

        if not await self._finish(handle, status, base_details, counters, error):
            status = JobStatus.FAILED
            error = error or "Could not update job run"

        logger.info(
            "prewarm_complete",
            status=status.value,
            job_run_id=handle.id,
            duration_seconds=(datetime.now(timezone.utc) - handle.started_at).total_seconds(),
            **{k: v for k, v in counters.to_dict().items() if k != "sport_errors"},
        )

        return PrewarmResult(
            status=status,
            target_date=target_date,
            sports=sports,
            counters=counters,
            job_run_id=handle.id,
            error=error,
        )

    async def _finish(
        self,
        handle: JobRunHandle,
        status: JobStatus,
        base_details: dict[str, Any],
        counters: PrewarmCounters,
        error: str | None,
    ) -> bool:
        details = {**base_details, "counters": counters.to_dict()}
        try:
            await self.store.finish_job_run(handle, status.value, details, error)
            return True
        except Exception as e:
            logger.error("prewarm_job_update_failed", job_run_id=handle.id, error=str(e))
            return False

    async def prewarm_sport(
        self,
        target_date: date,
        sport_id: str,
        counters: PrewarmCounters,
    ) -> None:
        """Check every matchup of one sport and hydrate the insufficient ones."""
        matchups = await self.store.list_scheduled_matchups(sport_id, target_date)
        logger.info("prewarm_sport_started", sport_id=sport_id, games=len(matchups))

        queue: list[ScheduledMatchup] = []
        for matchup in matchups:
            counters.total_matchups += 1

            pair = matchup.franchise_pair()
            if pair is None:
                counters.missing_franchise += 1
                logger.info("prewarm_missing_franchise", sport_id=sport_id, game_id=matchup.game_id)
                continue

            if await self.store.has_sufficient_history(sport_id, pair, self.min_games):
                counters.already_sufficient += 1
                continue

            queue.append(matchup)
            counters.hydration_queued += 1

        if queue:
            logger.info("prewarm_hydrating", sport_id=sport_id, queued=len(queue))
            await self.drain(sport_id, queue, counters)

    async def drain(
        self,
        sport_id: str,
        matchups: Sequence[ScheduledMatchup],
        counters: PrewarmCounters,
    ) -> None:
        """
        Hydrate queued matchups with a fixed-size worker pool.

        Each call succeeds or fails on its own; a failure never affects the
        other calls in flight.
        """
        queue: asyncio.Queue[ScheduledMatchup] = asyncio.Queue()
        for matchup in matchups:
            queue.put_nowait(matchup)

        async def worker() -> None:
            while True:
                try:
                    matchup = queue.get_nowait()
                except asyncio.QueueEmpty:
                    return
                result = await self._hydrate_one(sport_id, matchup)
                if result is None:
                    counters.hydration_failed += 1
                else:
                    counters.hydration_success += 1
                    counters.games_inserted += result.games_inserted
                if not queue.empty() and self.batch_delay_seconds > 0:
                    await self._sleep(self.batch_delay_seconds)

        workers = min(self.concurrency, len(matchups))
        await asyncio.gather(*(worker() for _ in range(workers)))

    async def _hydrate_one(
        self, sport_id: str, matchup: ScheduledMatchup
    ) -> HydrationResult | None:
        call = self.hydrator.hydrate(
            sport_id, matchup.home_team_id, matchup.away_team_id, self.horizon_years
        )
        try:
            if self.hydration_timeout is None:
                return await call
            return await asyncio.wait_for(call, timeout=self.hydration_timeout)
        except asyncio.TimeoutError:
            logger.warning(
                "hydration_timeout",
                sport_id=sport_id,
                game_id=matchup.game_id,
                timeout=self.hydration_timeout,
            )
        except Exception as e:
            logger.warning(
                "hydration_failed",
                sport_id=sport_id,
                game_id=matchup.game_id,
                error=str(e),
            )
        return None
