"""Database models for TotalsRadar."""

from app.models.base import Base, async_session_factory, engine, get_db
from app.models.domain import (
    Game,
    JobRun,
    MatchupGame,
    MatchupStats,
    Team,
)

__all__ = [
    # Base
    "Base",
    "engine",
    "async_session_factory",
    "get_db",
    # Domain models
    "Team",
    "Game",
    "MatchupGame",
    "MatchupStats",
    "JobRun",
]
