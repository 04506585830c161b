"""Matchup keys, persistence and analysis."""

from app.services.matchups.keys import TeamPair, canonical_pair, history_key

__all__ = ["TeamPair", "canonical_pair", "history_key"]
