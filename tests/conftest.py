"""Pytest configuration and fixtures for TotalsRadar tests."""

import asyncio
from datetime import datetime, timedelta, timezone

import pytest

AS_OF = datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc)
TEN_TOTALS = [70, 75, 80, 85, 90, 95, 100, 105, 110, 115]


class FakePrewarmStore:
    """In-memory schedule, history and job-run store."""

    def __init__(self, schedule=None, history=None, failing_sports=(),
                 fail_start=False, fail_finish=False):
        self.schedule = schedule or {}
        # (sport_id, TeamPair) -> set of game ids
        self.history = history if history is not None else {}
        self.failing_sports = set(failing_sports)
        self.fail_start = fail_start
        self.fail_finish = fail_finish
        self.job_runs = []

    async def list_scheduled_matchups(self, sport_id, target_date):
        if sport_id in self.failing_sports:
            raise RuntimeError(f"schedule unavailable for {sport_id}")
        return list(self.schedule.get(sport_id, []))

    async def has_sufficient_history(self, sport_id, pair, min_games):
        return len(self.history.get((sport_id, pair), set())) >= min_games

    async def start_job_run(self, job_name, details):
        from app.services.prewarm.orchestrator import JobRunHandle

        if self.fail_start:
            raise RuntimeError("database unavailable")
        started_at = datetime.now(timezone.utc)
        self.job_runs.append({
            "id": len(self.job_runs) + 1,
            "job_name": job_name,
            "status": "running",
            "started_at": started_at,
            "finished_at": None,
            "details": details,
            "error_message": None,
        })
        return JobRunHandle(id=len(self.job_runs), job_name=job_name, started_at=started_at)

    async def finish_job_run(self, handle, status, details, error_message=None):
        if self.fail_finish:
            raise RuntimeError("database unavailable")
        run = self.job_runs[handle.id - 1]
        run.update(
            status=status,
            details=details,
            error_message=error_message,
            finished_at=datetime.now(timezone.utc),
        )


class FakeHydrator:
    """
    Hydrator double that inserts games into a FakePrewarmStore.

    Inserts are a set-union keyed by game id, so repeated hydration of a
    pair never adds duplicates. Tracks the peak number of calls in flight.
    """

    def __init__(self, store, games_per_call=6, fail_for=(), hang_for=(), latency=0.01):
        self.store = store
        self.games_per_call = games_per_call
        self.fail_for = set(fail_for)
        self.hang_for = set(hang_for)
        self.latency = latency
        self.calls = []
        self.in_flight = 0
        self.max_in_flight = 0

    async def hydrate(self, sport_id, home_team_id, away_team_id, horizon_years):
        from app.services.hydration.client import (
            HydrationError,
            HydrationErrorType,
            HydrationResult,
        )
        from app.services.matchups.keys import canonical_pair

        self.calls.append((sport_id, home_team_id, away_team_id, horizon_years))
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(self.latency)
            if home_team_id in self.hang_for:
                await asyncio.sleep(3600)
            if home_team_id in self.fail_for:
                raise HydrationError(
                    "upstream unavailable",
                    HydrationErrorType.SERVICE_UNAVAILABLE,
                    retryable=True,
                )

            pair = canonical_pair(home_team_id, away_team_id)
            existing = self.store.history.setdefault((sport_id, pair), set())
            before = len(existing)
            existing.update(
                f"{pair.as_key()}-{i}" for i in range(self.games_per_call)
            )
            return HydrationResult(games_inserted=len(existing) - before)
        finally:
            self.in_flight -= 1


class RecordingSleep:
    """Injected sleep: records requested delays without waiting."""

    def __init__(self):
        self.delays = []

    async def __call__(self, seconds):
        self.delays.append(seconds)


@pytest.fixture
def as_of():
    """Reference time for rolling windows."""
    return AS_OF


@pytest.fixture
def make_games():
    """Build HistoricalGames from totals, one per `spacing_days`, newest first."""
    from app.services.segments.definitions import HistoricalGame

    def _make(totals, spacing_days=30, start=AS_OF, prefix="g"):
        return [
            HistoricalGame(
                played_at=start - timedelta(days=spacing_days * (i + 1)),
                total=float(total),
                game_id=f"{prefix}{i}",
            )
            for i, total in enumerate(totals)
        ]

    return _make


@pytest.fixture
def ten_game_stats(make_games):
    """SegmentStats for the ten-game reference distribution."""
    from app.services.segments.definitions import Segment
    from app.services.stats.percentiles import StatsComputer

    return StatsComputer().compute(Segment.H2H_ALL, make_games(TEN_TOTALS), [], AS_OF)


@pytest.fixture
def make_matchup():
    """Scheduled matchup whose franchise ids mirror the team ids."""
    from app.services.prewarm.orchestrator import ScheduledMatchup

    def _make(home, away, game_id=None, home_franchise=True, away_franchise=True):
        return ScheduledMatchup(
            game_id=game_id or f"{away}@{home}",
            home_team_id=home,
            away_team_id=away,
            home_franchise_id=home if home_franchise else None,
            away_franchise_id=away if away_franchise else None,
        )

    return _make


@pytest.fixture
def fake_store_cls():
    return FakePrewarmStore


@pytest.fixture
def fake_hydrator_cls():
    return FakeHydrator


@pytest.fixture
def recording_sleep():
    return RecordingSleep()
