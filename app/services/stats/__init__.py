"""Segment statistics module for TotalsRadar."""

from app.services.stats.percentiles import SegmentStats, StatsComputer

__all__ = ["SegmentStats", "StatsComputer"]
