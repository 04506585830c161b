"""Historical window definitions.

Segment is a closed set. Each member owns its window rule; callers never
branch on segment name strings.
"""

from collections.abc import Sequence
from dataclasses import dataclass
from datetime import datetime
from enum import Enum


@dataclass(frozen=True)
class HistoricalGame:
    """One completed game and its combined scoring total."""

    played_at: datetime
    total: float
    game_id: str | None = None


@dataclass(frozen=True)
class WindowPolicy:
    """Tunable sizes for the window rules."""

    years: dict[str, int]
    recency_window_games: int = 10
    form_games_per_team: int = 10


def years_before(as_of: datetime, years: int) -> datetime:
    """Same calendar day `years` earlier (Feb 29 falls back to Feb 28)."""
    try:
        return as_of.replace(year=as_of.year - years)
    except ValueError:
        return as_of.replace(year=as_of.year - years, day=28)


def most_recent(games: Sequence[HistoricalGame], limit: int) -> list[HistoricalGame]:
    return sorted(games, key=lambda g: g.played_at, reverse=True)[:limit]


class Segment(str, Enum):
    """Named windows over a pairing's history, in recommendation priority order."""

    H2H_ALL = "h2h_all"
    H2H_10Y = "h2h_10y"
    H2H_5Y = "h2h_5y"
    RECENCY_WEIGHTED = "recency_weighted"
    HYBRID_FORM = "hybrid_form"

    @property
    def label(self) -> str:
        return _LABELS[self]

    @property
    def is_form_based(self) -> bool:
        """Form segments are time-proximate by construction."""
        return self in (Segment.RECENCY_WEIGHTED, Segment.HYBRID_FORM)

    def select(
        self,
        h2h_games: Sequence[HistoricalGame],
        form_games: Sequence[HistoricalGame],
        as_of: datetime,
        policy: WindowPolicy,
    ) -> list[HistoricalGame]:
        """Return the games this window covers."""
        if self is Segment.H2H_ALL:
            return list(h2h_games)
        if self is Segment.H2H_10Y or self is Segment.H2H_5Y:
            cutoff = years_before(as_of, policy.years[self.value])
            return [g for g in h2h_games if g.played_at >= cutoff]
        if self is Segment.RECENCY_WEIGHTED:
            return most_recent(h2h_games, policy.recency_window_games)
        if self is Segment.HYBRID_FORM:
            return _dedupe(form_games)
        raise ValueError(f"Unhandled segment: {self!r}")


_LABELS = {
    Segment.H2H_ALL: "All Time",
    Segment.H2H_10Y: "Last 10 Years",
    Segment.H2H_5Y: "Last 5 Years",
    Segment.RECENCY_WEIGHTED: "Recent Form (H2H)",
    Segment.HYBRID_FORM: "Hybrid Form",
}

# Recommendation priority: first qualifying segment wins.
SEGMENT_PRIORITY: tuple[Segment, ...] = tuple(Segment)


def _dedupe(games: Sequence[HistoricalGame]) -> list[HistoricalGame]:
    # Both sides' form lists contain any game they played against each other.
    seen: set[str] = set()
    unique = []
    for game in games:
        if game.game_id is not None:
            if game.game_id in seen:
                continue
            seen.add(game.game_id)
        unique.append(game)
    return unique
