"""Canonical team-pair keys.

Every lookup into matchup_games and matchup_stats goes through
canonical_pair() so that home/away order never produces a second key.
"""

from dataclasses import dataclass


@dataclass(frozen=True)
class TeamPair:
    """Unordered pairing stored as (low, high) by identifier comparison."""

    low: str
    high: str

    def __post_init__(self):
        if self.low > self.high:
            raise ValueError(f"TeamPair not canonical: {self.low!r} > {self.high!r}")

    def as_key(self) -> str:
        return f"{self.low}:{self.high}"


def canonical_pair(first_id: str, second_id: str) -> TeamPair:
    """Order two identifiers lexicographically into a TeamPair."""
    if first_id <= second_id:
        return TeamPair(first_id, second_id)
    return TeamPair(second_id, first_id)


def history_key(
    home_team_id: str,
    away_team_id: str,
    home_franchise_id: str | None = None,
    away_franchise_id: str | None = None,
) -> tuple[TeamPair, bool]:
    """
    Resolve the pair history is keyed by.

    Franchise ids win when both sides have one, so relocated teams keep
    their history. Returns the pair and whether it is a franchise pair.
    """
    if home_franchise_id and away_franchise_id:
        return canonical_pair(home_franchise_id, away_franchise_id), True
    return canonical_pair(home_team_id, away_team_id), False
