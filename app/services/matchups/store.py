"""Persistence for matchup history, cached stats and job runs.

All reads and writes are keyed by canonical TeamPair. A pair built from
franchise ids is matched against the franchise columns, otherwise the
team columns.
"""

from collections.abc import Sequence
from datetime import date, datetime, time, timedelta, timezone
from decimal import Decimal
from typing import Any
from zoneinfo import ZoneInfo

import structlog
from sqlalchemy import and_, func, or_, select
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.domain import Game, JobRun, MatchupGame, MatchupStats
from app.services.matchups.keys import TeamPair
from app.services.prewarm.orchestrator import JobRunHandle, ScheduledMatchup
from app.services.segments.definitions import HistoricalGame
from app.services.stats.percentiles import SegmentStats

logger = structlog.get_logger(__name__)


def _to_float(value: Decimal | float | None) -> float | None:
    return float(value) if value is not None else None


def _to_decimal(value: float | None) -> Decimal | None:
    return Decimal(str(round(value, 2))) if value is not None else None


def _key_kind(uses_franchise: bool) -> str:
    return "franchise" if uses_franchise else "team"


def day_bounds_utc(target_date: date, tz_name: str) -> tuple[datetime, datetime]:
    """UTC start (inclusive) and end (exclusive) of a local calendar day."""
    tz = ZoneInfo(tz_name)
    start = datetime.combine(target_date, time.min, tzinfo=tz)
    end = datetime.combine(target_date + timedelta(days=1), time.min, tzinfo=tz)
    return start.astimezone(timezone.utc), end.astimezone(timezone.utc)


class MatchupStore:
    """Database access for the analytics engine and the prewarm pass."""

    def __init__(self, session: AsyncSession, slate_timezone: str = "America/New_York"):
        self.session = session
        self.slate_timezone = slate_timezone

    def _pair_columns(self, uses_franchise: bool):
        if uses_franchise:
            return MatchupGame.franchise_low_id, MatchupGame.franchise_high_id
        return MatchupGame.team_low_id, MatchupGame.team_high_id

    async def load_head_to_head(
        self,
        sport_id: str,
        pair: TeamPair,
        uses_franchise: bool = False,
    ) -> list[HistoricalGame]:
        """All recorded meetings of a pair, oldest first."""
        low_col, high_col = self._pair_columns(uses_franchise)
        result = await self.session.execute(
            select(MatchupGame)
            .where(
                MatchupGame.sport_id == sport_id,
                low_col == pair.low,
                high_col == pair.high,
            )
            .order_by(MatchupGame.played_at_utc)
        )
        return [
            HistoricalGame(played_at=row.played_at_utc, total=float(row.total), game_id=row.game_id)
            for row in result.scalars().all()
        ]

    async def load_recent_form(
        self,
        sport_id: str,
        pair: TeamPair,
        uses_franchise: bool = False,
        games_per_side: int = 10,
    ) -> list[HistoricalGame]:
        """
        Each side's most recent games against any opponent.

        Meetings between the two sides appear in both lists; the hybrid
        form segment dedupes them by game id.
        """
        low_col, high_col = self._pair_columns(uses_franchise)
        games: list[HistoricalGame] = []
        for side in (pair.low, pair.high):
            result = await self.session.execute(
                select(MatchupGame)
                .where(
                    MatchupGame.sport_id == sport_id,
                    or_(low_col == side, high_col == side),
                )
                .order_by(MatchupGame.played_at_utc.desc())
                .limit(games_per_side)
            )
            games.extend(
                HistoricalGame(
                    played_at=row.played_at_utc, total=float(row.total), game_id=row.game_id
                )
                for row in result.scalars().all()
            )
        return games

    async def count_head_to_head(
        self,
        sport_id: str,
        pair: TeamPair,
        uses_franchise: bool = False,
    ) -> int:
        low_col, high_col = self._pair_columns(uses_franchise)
        result = await self.session.execute(
            select(func.count(MatchupGame.id)).where(
                MatchupGame.sport_id == sport_id,
                low_col == pair.low,
                high_col == pair.high,
            )
        )
        return int(result.scalar_one())

    async def has_sufficient_history(
        self, sport_id: str, pair: TeamPair, min_games: int
    ) -> bool:
        """Prewarm check; prewarm always keys by franchise pair."""
        return await self.count_head_to_head(sport_id, pair, uses_franchise=True) >= min_games

    async def save_segment_stats(
        self,
        sport_id: str,
        pair: TeamPair,
        stats: Sequence[SegmentStats],
        uses_franchise: bool = False,
    ) -> None:
        """Upsert computed segment stats into matchup_stats, tagged by key kind."""
        now = datetime.now(timezone.utc)
        for s in stats:
            values = {
                "n_games": s.n_games,
                "p05": _to_decimal(s.p05),
                "p95": _to_decimal(s.p95),
                "median": _to_decimal(s.median),
                "min_total": _to_decimal(s.min_total),
                "max_total": _to_decimal(s.max_total),
                "updated_at": now,
            }
            stmt = insert(MatchupStats).values(
                sport_id=sport_id,
                key_kind=_key_kind(uses_franchise),
                team_low_id=pair.low,
                team_high_id=pair.high,
                segment_key=s.segment.value,
                **values,
            )
            stmt = stmt.on_conflict_do_update(
                constraint="uq_matchup_stats_pair_segment",
                set_=values,
            )
            await self.session.execute(stmt)
        await self.session.commit()
        logger.debug("segment_stats_cached", sport_id=sport_id, pair=pair.as_key(), segments=len(stats))

    async def load_cached_stats(
        self, sport_id: str, pair: TeamPair, uses_franchise: bool = False
    ) -> list[dict[str, Any]]:
        result = await self.session.execute(
            select(MatchupStats).where(
                and_(
                    MatchupStats.sport_id == sport_id,
                    MatchupStats.key_kind == _key_kind(uses_franchise),
                    MatchupStats.team_low_id == pair.low,
                    MatchupStats.team_high_id == pair.high,
                )
            )
        )
        return [
            {
                "segment_key": row.segment_key,
                "n_games": row.n_games,
                "p05": _to_float(row.p05),
                "p95": _to_float(row.p95),
                "median": _to_float(row.median),
                "min_total": _to_float(row.min_total),
                "max_total": _to_float(row.max_total),
                "updated_at": row.updated_at.isoformat(),
            }
            for row in result.scalars().all()
        ]

    async def list_scheduled_matchups(
        self, sport_id: str, target_date: date
    ) -> list[ScheduledMatchup]:
        """Games of one sport starting on the slate's local calendar day."""
        start, end = day_bounds_utc(target_date, self.slate_timezone)
        result = await self.session.execute(
            select(Game)
            .where(
                Game.sport_id == sport_id,
                Game.start_time_utc >= start,
                Game.start_time_utc < end,
            )
            .order_by(Game.start_time_utc)
        )
        return [
            ScheduledMatchup(
                game_id=g.id,
                home_team_id=g.home_team_id,
                away_team_id=g.away_team_id,
                home_franchise_id=g.home_franchise_id,
                away_franchise_id=g.away_franchise_id,
            )
            for g in result.scalars().all()
        ]

    async def start_job_run(self, job_name: str, details: dict[str, Any]) -> JobRunHandle:
        job_run = JobRun(
            job_name=job_name,
            started_at=datetime.now(timezone.utc),
            status="running",
            details=details,
        )
        self.session.add(job_run)
        await self.session.commit()
        return JobRunHandle(id=job_run.id, job_name=job_name, started_at=job_run.started_at)

    async def finish_job_run(
        self,
        handle: JobRunHandle,
        status: str,
        details: dict[str, Any],
        error_message: str | None = None,
    ) -> None:
        job_run = await self.session.get(JobRun, handle.id)
        if job_run is None:
            raise LookupError(f"JobRun {handle.id} not found")
        job_run.status = status
        job_run.finished_at = datetime.now(timezone.utc)
        job_run.details = details
        job_run.error_message = error_message
        await self.session.commit()

    async def list_job_runs(self, job_name: str, limit: int = 20) -> list[JobRun]:
        result = await self.session.execute(
            select(JobRun)
            .where(JobRun.job_name == job_name)
            .order_by(JobRun.started_at.desc())
            .limit(limit)
        )
        return list(result.scalars().all())
