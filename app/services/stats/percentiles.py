"""Segment statistics.

Summarises the combined-total distribution of one historical window:
5th/95th percentiles, median, extremes and spread, plus the recency weight
that later feeds confidence scoring.

Percentiles use linear interpolation between order statistics
(h = (n - 1) * q), the same definition as numpy's default method.
"""

import math
from collections import Counter
from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any

import structlog
import yaml

from app.services.segments.definitions import (
    HistoricalGame,
    Segment,
    WindowPolicy,
)

logger = structlog.get_logger(__name__)

SECONDS_PER_YEAR = 365.25 * 24 * 3600


def percentile(sorted_values: Sequence[float], q: float) -> float | None:
    """
    Linear-interpolation percentile of an already sorted sequence.

    Args:
        sorted_values: Values in ascending order
        q: Quantile in [0, 1]

    Returns:
        Interpolated value, the single value when n == 1, None when empty
    """
    n = len(sorted_values)
    if n == 0:
        return None
    if n == 1:
        return float(sorted_values[0])

    h = (n - 1) * q
    lower = math.floor(h)
    upper = min(lower + 1, n - 1)
    fraction = h - lower
    return float(
        sorted_values[lower] + (sorted_values[upper] - sorted_values[lower]) * fraction
    )


def median(sorted_values: Sequence[float]) -> float | None:
    """Order-statistic median (mean of the two middle values for even n)."""
    n = len(sorted_values)
    if n == 0:
        return None
    mid = n // 2
    if n % 2 == 1:
        return float(sorted_values[mid])
    return (sorted_values[mid - 1] + sorted_values[mid]) / 2


def line_percentile(sorted_values: Sequence[float], line: float) -> float | None:
    """Share of totals at or below `line`, as a 0-100 percentage."""
    if not sorted_values:
        return None
    at_or_below = sum(1 for v in sorted_values if v <= line)
    return at_or_below / len(sorted_values) * 100


@dataclass
class SegmentStats:
    """Distribution statistics for one segment of one pairing."""

    segment: Segment
    n_games: int
    p05: float | None = None
    p95: float | None = None
    median: float | None = None
    min_total: float | None = None
    max_total: float | None = None
    range: float | None = None
    recency_weight: float = 0.0

    # Filled in by the catalog once confidence has been scored
    confidence: int = 0
    confidence_label: str = "No Data"
    is_recommended: bool = False

    games_by_year: dict[int, int] = field(default_factory=dict)
    totals: tuple[float, ...] = field(default=(), repr=False)

    @property
    def label(self) -> str:
        return self.segment.label

    @classmethod
    def empty(cls, segment: Segment) -> "SegmentStats":
        return cls(segment=segment, n_games=0)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for API responses and caching."""
        return {
            "segment_key": self.segment.value,
            "label": self.label,
            "n_games": self.n_games,
            "p05": self.p05,
            "p95": self.p95,
            "median": self.median,
            "min_total": self.min_total,
            "max_total": self.max_total,
            "range": self.range,
            "confidence": self.confidence,
            "confidence_label": self.confidence_label,
            "is_recommended": self.is_recommended,
            "recency_weight": self.recency_weight,
            "games_breakdown": {"by_year": dict(self.games_by_year)},
        }


class StatsComputer:
    """
    Compute SegmentStats for a pairing's history.

    Pure and stateless after construction: safe to share between
    concurrent requests.
    """

    def __init__(self, config: dict[str, Any] | None = None):
        """
        Initialize the stats computer.

        Args:
            config: Optional segments configuration. If not provided,
                   loads from defaults.yaml
        """
        if config is None:
            config = self._load_default_config()

        self.config = config
        self._validate_config()

        recency = config.get("recency", {})
        self.half_life_years = float(recency.get("half_life_years", 3.0))
        self.form_segment_score = float(recency.get("form_segment_score", 0.9))
        self.min_games = int(config.get("min_games", 5))
        self.window_policy = WindowPolicy(
            years=dict(config["windows_years"]),
            recency_window_games=int(config.get("recency_window_games", 10)),
            form_games_per_team=int(config.get("form_games_per_team", 10)),
        )

    def _load_default_config(self) -> dict[str, Any]:
        """Load segments config from defaults.yaml."""
        config_path = Path(__file__).parent.parent.parent / "config" / "defaults.yaml"
        if config_path.exists():
            with open(config_path) as f:
                full_config = yaml.safe_load(f) or {}
                if "segments" in full_config:
                    return full_config["segments"]
        return self._get_fallback_config()

    def _get_fallback_config(self) -> dict[str, Any]:
        """Fallback configuration if defaults.yaml not found."""
        return {
            "min_games": 5,
            "recency_window_games": 10,
            "form_games_per_team": 10,
            "windows_years": {"h2h_10y": 10, "h2h_5y": 5},
            "recency": {"half_life_years": 3.0, "form_segment_score": 0.9},
        }

    def _validate_config(self) -> None:
        """Validate every windowed segment has a year span."""
        windows = self.config.get("windows_years", {})
        for segment in (Segment.H2H_10Y, Segment.H2H_5Y):
            if segment.value not in windows:
                raise ValueError(f"Missing window years: {segment.value}")

    def recency_weight(
        self,
        segment: Segment,
        games: Sequence[HistoricalGame],
        as_of: datetime,
    ) -> float:
        """
        Score how recent the contributing games are, in [0, 1].

        Form segments score high by construction. Head-to-head windows
        average an exponential decay over each game's age, so history
        spread across many years scores lower.
        """
        if segment.is_form_based:
            return self.form_segment_score
        if not games:
            return 0.0

        weights = []
        for game in games:
            age_years = max(0.0, (as_of - game.played_at).total_seconds() / SECONDS_PER_YEAR)
            weights.append(0.5 ** (age_years / self.half_life_years))
        return round(sum(weights) / len(weights), 4)

    def compute(
        self,
        segment: Segment,
        h2h_games: Sequence[HistoricalGame],
        form_games: Sequence[HistoricalGame],
        as_of: datetime,
    ) -> SegmentStats | None:
        """
        Compute statistics for one segment.

        Returns None when the window holds no games. Windows with fewer
        than min_games are still summarised so confidence can show the
        shortfall.
        """
        games = segment.select(h2h_games, form_games, as_of, self.window_policy)
        if not games:
            return None

        totals = sorted(float(g.total) for g in games)
        p05 = percentile(totals, 0.05)
        p95 = percentile(totals, 0.95)

        stats = SegmentStats(
            segment=segment,
            n_games=len(totals),
            p05=p05,
            p95=p95,
            median=median(totals),
            min_total=totals[0],
            max_total=totals[-1],
            range=p95 - p05,
            recency_weight=self.recency_weight(segment, games, as_of),
            games_by_year=dict(sorted(Counter(g.played_at.year for g in games).items())),
            totals=tuple(totals),
        )

        logger.debug(
            "segment_stats_computed",
            segment=segment.value,
            n_games=stats.n_games,
            p05=stats.p05,
            p95=stats.p95,
            usable=stats.n_games >= self.min_games,
        )
        return stats

    def compute_all(
        self,
        h2h_games: Sequence[HistoricalGame],
        form_games: Sequence[HistoricalGame],
        as_of: datetime,
    ) -> list[SegmentStats]:
        """Stats for every segment in priority order (empty stats for empty windows)."""
        return [
            self.compute(segment, h2h_games, form_games, as_of) or SegmentStats.empty(segment)
            for segment in Segment
        ]
