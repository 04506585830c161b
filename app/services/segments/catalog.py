"""Segment catalog and recommendation policy.

Computes every segment for a pairing in priority order and recommends the
first one with enough games to trust. The recommendation is derived on
every call and never stored.
"""

from collections.abc import Sequence
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Any

import structlog

from app.services.matchups.keys import TeamPair
from app.services.scoring.confidence import ConfidenceResult, ConfidenceScorer
from app.services.segments.definitions import (
    SEGMENT_PRIORITY,
    HistoricalGame,
    Segment,
)
from app.services.stats.percentiles import SegmentStats, StatsComputer

logger = structlog.get_logger(__name__)

DATA_QUALITY_THRESHOLDS = (
    (80, "excellent"),
    (60, "good"),
    (40, "fair"),
    (20, "low"),
)


def data_quality_for(score: int | None) -> str:
    """Map the winning segment's confidence to an overall quality grade."""
    if score is None:
        return "insufficient"
    for threshold, quality in DATA_QUALITY_THRESHOLDS:
        if score >= threshold:
            return quality
    return "insufficient"


@dataclass
class MatchupSegments:
    """All segments for one pairing plus the derived recommendation."""

    sport_id: str
    pair: TeamPair
    uses_franchise: bool
    segments: list[SegmentStats]
    recommended_segment: Segment | None
    recommendation_reason: str
    total_historical_games: int
    data_quality: str
    confidence: ConfidenceResult | None = None
    confidences: dict[Segment, ConfidenceResult] = field(default_factory=dict, repr=False)

    @property
    def recommended(self) -> SegmentStats | None:
        for stats in self.segments:
            if stats.is_recommended:
                return stats
        return None

    def to_dict(self) -> dict[str, Any]:
        """Convert to the computeSegments response shape."""
        return {
            "sport_id": self.sport_id,
            "team_low_id": self.pair.low,
            "team_high_id": self.pair.high,
            "uses_franchise": self.uses_franchise,
            "segments": [s.to_dict() for s in self.segments],
            "recommended_segment": (
                self.recommended_segment.value if self.recommended_segment else None
            ),
            "recommendation_reason": self.recommendation_reason,
            "total_historical_games": self.total_historical_games,
            "data_quality": self.data_quality,
            "confidence": self.confidence.to_dict() if self.confidence else None,
        }


class SegmentCatalog:
    """
    Build segment statistics and choose the segment to trust.

    Selection rule: the first segment in priority order
    (h2h_all → h2h_10y → h2h_5y → recency_weighted → hybrid_form) with at
    least min_games; failing that hybrid_form whatever its count; failing
    that nothing, and data quality is insufficient.
    """

    def __init__(
        self,
        stats_computer: StatsComputer | None = None,
        scorer: ConfidenceScorer | None = None,
    ):
        self.stats_computer = stats_computer or StatsComputer()
        self.scorer = scorer or ConfidenceScorer()
        self.min_games = self.stats_computer.min_games

    def select_recommended(
        self, segments: Sequence[SegmentStats]
    ) -> tuple[Segment | None, str]:
        """
        Apply the priority rule to computed segments.

        Deterministic and side-effect free: the same counts always give the
        same segment.
        """
        by_segment = {s.segment: s for s in segments}

        for segment in SEGMENT_PRIORITY:
            stats = by_segment.get(segment)
            if stats is not None and stats.n_games >= self.min_games:
                return segment, (
                    f"{stats.n_games} games in {segment.label} - "
                    f"first segment with at least {self.min_games} games"
                )

        form = by_segment.get(Segment.HYBRID_FORM)
        if form is not None and form.n_games > 0:
            return Segment.HYBRID_FORM, (
                f"Fewer than {self.min_games} head-to-head games - "
                f"falling back to {form.n_games} recent games vs any opponent"
            )

        return None, "Not enough historical data for reliable analysis"

    def evaluate(
        self,
        sport_id: str,
        pair: TeamPair,
        h2h_games: Sequence[HistoricalGame],
        form_games: Sequence[HistoricalGame],
        home_continuity: float | None = None,
        away_continuity: float | None = None,
        uses_franchise: bool = False,
        as_of: datetime | None = None,
    ) -> MatchupSegments:
        """
        Compute all segments, score them and pick the recommendation.

        Args:
            sport_id: Sport identifier
            pair: Canonical pair the history is keyed by
            h2h_games: Every recorded game between the pair
            form_games: Recent games of either side vs any opponent
            home_continuity: Home roster continuity 0-100 (None if unknown)
            away_continuity: Away roster continuity 0-100 (None if unknown)
            uses_franchise: Whether pair holds franchise ids
            as_of: Reference time for rolling windows (defaults to now)

        Returns:
            MatchupSegments with exactly one recommended segment, or none
            when there is no data at all
        """
        as_of = as_of or datetime.now(timezone.utc)
        computed = self.stats_computer.compute_all(h2h_games, form_games, as_of)

        scored: list[SegmentStats] = []
        confidences: dict[Segment, ConfidenceResult] = {}
        for stats in computed:
            result = self.scorer.calculate(
                n_games=stats.n_games,
                recency_weight=stats.recency_weight if stats.n_games else None,
                home_continuity=home_continuity,
                away_continuity=away_continuity,
            )
            confidences[stats.segment] = result
            scored.append(
                replace(
                    stats,
                    confidence=result.score if stats.n_games else 0,
                    confidence_label=result.label,
                )
            )

        recommended, reason = self.select_recommended(scored)
        scored = [replace(s, is_recommended=s.segment is recommended) for s in scored]

        winning = confidences.get(recommended) if recommended else None
        quality = data_quality_for(winning.score if winning else None)

        outcome = MatchupSegments(
            sport_id=sport_id,
            pair=pair,
            uses_franchise=uses_franchise,
            segments=scored,
            recommended_segment=recommended,
            recommendation_reason=reason,
            total_historical_games=len(h2h_games),
            data_quality=quality,
            confidence=winning,
            confidences=confidences,
        )

        logger.debug(
            "segments_computed",
            sport_id=sport_id,
            pair=pair.as_key(),
            total_games=outcome.total_historical_games,
            recommended=recommended.value if recommended else None,
            data_quality=quality,
        )
        return outcome
