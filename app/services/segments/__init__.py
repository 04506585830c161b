"""Segment definitions and recommendation policy."""

from app.services.segments.definitions import (
    SEGMENT_PRIORITY,
    HistoricalGame,
    Segment,
)

__all__ = ["HistoricalGame", "SEGMENT_PRIORITY", "Segment"]
