"""Domain models for TotalsRadar.

This module defines the database models for the head-to-head totals engine.
Team pairs are ALWAYS stored in canonical (low, high) order so a pairing has
exactly one key regardless of which side was at home.
"""

from datetime import datetime
from decimal import Decimal
from typing import Any

from sqlalchemy import (
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.models.base import Base, TimestampMixin


class Team(Base, TimestampMixin):
    """
    A team as listed by the schedule provider.

    franchise_id ties teams that relocated or rebranded to one long-run
    identity; it is nullable until the franchise mapping has been curated.
    """

    __tablename__ = "teams"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    sport_id: Mapped[str] = mapped_column(String(10), nullable=False)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    abbrev: Mapped[str | None] = mapped_column(String(10), nullable=True)
    franchise_id: Mapped[str | None] = mapped_column(String(64), nullable=True)

    __table_args__ = (Index("idx_teams_sport", "sport_id"),)

    def __repr__(self) -> str:
        return f"<Team {self.name} ({self.sport_id})>"


class Game(Base, TimestampMixin):
    """
    Scheduled or completed game on the slate.

    The prewarm pass reads today's rows from here to decide which
    matchups need history hydrated.
    """

    __tablename__ = "games"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    sport_id: Mapped[str] = mapped_column(String(10), nullable=False)
    start_time_utc: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False
    )
    home_team_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("teams.id"), nullable=False
    )
    away_team_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("teams.id"), nullable=False
    )
    home_franchise_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    away_franchise_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    status: Mapped[str] = mapped_column(
        String(20), default="scheduled", doc="'scheduled', 'live', 'final'"
    )

    home_team: Mapped["Team"] = relationship("Team", foreign_keys=[home_team_id])
    away_team: Mapped["Team"] = relationship("Team", foreign_keys=[away_team_id])

    __table_args__ = (Index("idx_games_sport_start", "sport_id", "start_time_utc"),)

    def __repr__(self) -> str:
        return f"<Game {self.away_team_id} @ {self.home_team_id} ({self.start_time_utc})>"


class MatchupGame(Base):
    """
    One completed head-to-head occurrence (immutable once recorded).

    The unique constraint on (sport, pair, game) makes hydration a set-union:
    re-inserting an already-present game is a no-op, never a duplicate.
    """

    __tablename__ = "matchup_games"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    sport_id: Mapped[str] = mapped_column(String(10), nullable=False)
    team_low_id: Mapped[str] = mapped_column(String(64), nullable=False)
    team_high_id: Mapped[str] = mapped_column(String(64), nullable=False)
    franchise_low_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    franchise_high_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    game_id: Mapped[str] = mapped_column(String(64), nullable=False)
    played_at_utc: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False
    )
    total: Mapped[Decimal] = mapped_column(Numeric(8, 2), nullable=False)

    __table_args__ = (
        UniqueConstraint(
            "sport_id", "team_low_id", "team_high_id", "game_id",
            name="uq_matchup_games_pair_game",
        ),
        Index("idx_matchup_games_teams", "sport_id", "team_low_id", "team_high_id"),
        Index(
            "idx_matchup_games_franchises",
            "sport_id", "franchise_low_id", "franchise_high_id",
        ),
    )

    def __repr__(self) -> str:
        return f"<MatchupGame {self.team_low_id}-{self.team_high_id} total={self.total}>"


class MatchupStats(Base):
    """
    Cached segment statistics for a canonical pair.

    Derived data: safe to drop and recompute from matchup_games at any time.
    """

    __tablename__ = "matchup_stats"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    sport_id: Mapped[str] = mapped_column(String(10), nullable=False)
    team_low_id: Mapped[str] = mapped_column(String(64), nullable=False)
    team_high_id: Mapped[str] = mapped_column(String(64), nullable=False)
    key_kind: Mapped[str] = mapped_column(
        String(10), nullable=False, default="team", doc="'team' or 'franchise' pair ids"
    )
    segment_key: Mapped[str] = mapped_column(String(30), nullable=False)
    n_games: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    p05: Mapped[Decimal | None] = mapped_column(Numeric(8, 2), nullable=True)
    p95: Mapped[Decimal | None] = mapped_column(Numeric(8, 2), nullable=True)
    median: Mapped[Decimal | None] = mapped_column(Numeric(8, 2), nullable=True)
    min_total: Mapped[Decimal | None] = mapped_column(Numeric(8, 2), nullable=True)
    max_total: Mapped[Decimal | None] = mapped_column(Numeric(8, 2), nullable=True)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False
    )

    __table_args__ = (
        UniqueConstraint(
            "sport_id", "key_kind", "team_low_id", "team_high_id", "segment_key",
            name="uq_matchup_stats_pair_segment",
        ),
    )

    def __repr__(self) -> str:
        return f"<MatchupStats {self.segment_key} n={self.n_games}>"


class JobRun(Base):
    """
    Task execution audit log.

    Inserted with status 'running' when a job starts and updated exactly
    once when it finishes ('success', 'partial' or 'failed').
    """

    __tablename__ = "job_runs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    job_name: Mapped[str] = mapped_column(String(100), nullable=False)
    started_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False
    )
    finished_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, doc="'running', 'success', 'partial', 'failed'"
    )
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)
    details: Mapped[dict[str, Any] | None] = mapped_column(JSONB, nullable=True)

    __table_args__ = (Index("idx_job_runs_name_time", "job_name", "started_at"),)

    def __repr__(self) -> str:
        return f"<JobRun {self.job_name} status={self.status}>"
