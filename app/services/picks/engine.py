"""Edge detection and pick generation.

Compares a live sportsbook total against a segment's historical
distribution. Rules are evaluated in strict priority order and the first
match wins:

1. insufficient - the active segment has fewer than min_games
2. unavailable  - the market offers no live total
3. edge         - alternate lines near P95 (over) / P05 (under); larger
                  positive edge wins, an exact tie goes to OVER
4. percentile   - no edge data: P <= 30 over, P >= 70 under
5. no-edge      - anything else
"""

import math
from collections.abc import Sequence
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any

import structlog
import yaml

from app.services.scoring.confidence import ConfidenceResult
from app.services.stats.percentiles import SegmentStats, line_percentile

logger = structlog.get_logger(__name__)


class PickType(str, Enum):
    """Terminal outcomes of pick evaluation."""

    OVER = "over"
    UNDER = "under"
    NO_EDGE = "no-edge"
    INSUFFICIENT = "insufficient"
    UNAVAILABLE = "unavailable"


class PickBasis(str, Enum):
    """Which rule produced the pick."""

    SAMPLE_SIZE = "sample_size"
    MARKET = "market"
    EDGE = "edge"
    PERCENTILE = "percentile"


@dataclass(frozen=True)
class AlternateLine:
    """One alternate total with its American prices."""

    point: float
    over_price: int | None = None
    under_price: int | None = None


@dataclass(frozen=True)
class LiveLineContext:
    """
    Live-market input for one game.

    line_percentile and the best_*_edge values may be supplied when an odds
    refresh already computed them; otherwise they are derived here.
    """

    total_line: float | None
    offered: bool = True
    line_percentile: float | None = None
    alternate_lines: tuple[AlternateLine, ...] = ()
    best_over_edge: float | None = None
    best_under_edge: float | None = None

    @property
    def is_available(self) -> bool:
        return self.offered and self.total_line is not None


@dataclass(frozen=True)
class EdgeReport:
    """Best edge found on each side (None when that side has no line nearby)."""

    over_edge: float | None = None
    under_edge: float | None = None
    over_line: AlternateLine | None = None
    under_line: AlternateLine | None = None


@dataclass
class Pick:
    """Recommendation plus the numeric basis that explains it."""

    pick: PickType
    basis: PickBasis
    magnitude: float | None = None
    strength: str | None = None
    line: float | None = None
    price: int | None = None
    percentile: int | None = None
    over_edge: float | None = None
    under_edge: float | None = None
    beyond_extremes: bool = False
    n_games: int = 0
    confidence_score: int | None = None
    confidence_label: str | None = None
    reasons: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for API responses."""
        return {
            "pick": self.pick.value,
            "basis": self.basis.value,
            "magnitude": self.magnitude,
            "strength": self.strength,
            "line": self.line,
            "price": self.price,
            "percentile": self.percentile,
            "over_edge": self.over_edge,
            "under_edge": self.under_edge,
            "beyond_extremes": self.beyond_extremes,
            "n_games": self.n_games,
            "confidence_score": self.confidence_score,
            "confidence_label": self.confidence_label,
            "reasons": list(self.reasons),
        }


def round_half_up(value: float) -> int:
    """Round like a scoreboard: 30.5 -> 31, never banker's rounding."""
    return int(math.floor(value + 0.5))


class PickEngine:
    """
    Evaluate a live line against segment statistics.

    Pure: the same stats, confidence and context always give the same pick.
    """

    def __init__(self, config: dict[str, Any] | None = None):
        """
        Initialize pick engine.

        Args:
            config: Optional picks configuration. If not provided,
                   loads from defaults.yaml
        """
        if config is None:
            config = self._load_default_config()

        self.config = config
        self.min_games = int(config.get("min_games", 5))
        self.line_tolerance = float(config.get("line_tolerance", 3.0))
        self.over_max_percentile = int(config.get("over_max_percentile", 30))
        self.under_min_percentile = int(config.get("under_min_percentile", 70))
        self.edge_strength = config.get("edge_strength", {})
        self.percentile_strength = config.get("percentile_strength", {})

        self._validate_config()

    def _load_default_config(self) -> dict[str, Any]:
        """Load picks config from defaults.yaml."""
        config_path = Path(__file__).parent.parent.parent / "config" / "defaults.yaml"
        if config_path.exists():
            with open(config_path) as f:
                full_config = yaml.safe_load(f) or {}
                if "picks" in full_config:
                    return full_config["picks"]
        return self._get_fallback_config()

    def _get_fallback_config(self) -> dict[str, Any]:
        """Fallback configuration if defaults.yaml not found."""
        return {
            "min_games": 5,
            "line_tolerance": 3.0,
            "over_max_percentile": 30,
            "under_min_percentile": 70,
            "edge_strength": {"strong": 2.0, "moderate": 1.0},
            "percentile_strength": {"strong": 10, "moderate": 20},
        }

    def _validate_config(self) -> None:
        """Percentile bounds must leave a no-edge band between them."""
        if not 0 <= self.over_max_percentile < self.under_min_percentile <= 100:
            raise ValueError(
                f"Invalid percentile bounds: over<={self.over_max_percentile}, "
                f"under>={self.under_min_percentile}"
            )

    def edge_strength_label(self, edge: float | None) -> str | None:
        """Strong above 2 points, Moderate from 1, Weak for any other positive edge."""
        if edge is None or edge <= 0:
            return None
        if edge > self.edge_strength.get("strong", 2.0):
            return "Strong"
        if edge >= self.edge_strength.get("moderate", 1.0):
            return "Moderate"
        return "Weak"

    def percentile_strength_label(self, p: int) -> str:
        distance = min(p, 100 - p)
        if distance <= self.percentile_strength.get("strong", 10):
            return "Strong"
        if distance <= self.percentile_strength.get("moderate", 20):
            return "Moderate"
        return "Weak"

    def detect_edges(
        self, stats: SegmentStats, context: LiveLineContext
    ) -> EdgeReport | None:
        """
        Find the best alternate line near each historical extreme.

        Over side: lines with an over price within tolerance of P95, edge =
        P95 − point. Under side: lines with an under price within tolerance
        of P05, edge = point − P05. The edge is the largest among nearby
        lines; the line reported is the lowest over at or above P95 (highest
        under at or below P05), or the largest-edge line when none sits at
        the extreme. Precomputed edges on the context take precedence.
        Returns None when there is no edge data at all.
        """
        if context.best_over_edge is not None or context.best_under_edge is not None:
            return EdgeReport(
                over_edge=context.best_over_edge,
                under_edge=context.best_under_edge,
            )

        if not context.alternate_lines:
            return None

        over_line = under_line = None
        over_edge = under_edge = None

        if stats.p95 is not None:
            over_line, over_edge = self._best_line(
                [l for l in context.alternate_lines if l.over_price is not None],
                lambda line: stats.p95 - line.point,
                stats.p95,
                lambda line: line.point >= stats.p95,
            )
        if stats.p05 is not None:
            under_line, under_edge = self._best_line(
                [l for l in context.alternate_lines if l.under_price is not None],
                lambda line: line.point - stats.p05,
                stats.p05,
                lambda line: line.point <= stats.p05,
            )

        if over_line is None and under_line is None:
            return None
        return EdgeReport(
            over_edge=over_edge,
            under_edge=under_edge,
            over_line=over_line,
            under_line=under_line,
        )

    def _best_line(
        self,
        lines: Sequence[AlternateLine],
        edge_fn,
        anchor: float,
        at_extreme,
    ) -> tuple[AlternateLine | None, float | None]:
        nearby = [l for l in lines if abs(l.point - anchor) <= self.line_tolerance]
        if not nearby:
            return None, None
        best = max(nearby, key=edge_fn)
        # Closest line at or beyond the extreme
        beyond = [l for l in nearby if at_extreme(l)]
        reported = max(beyond, key=edge_fn) if beyond else best
        return reported, round(edge_fn(best), 2)

    def evaluate(
        self,
        stats: SegmentStats | None,
        confidence: ConfidenceResult | None,
        context: LiveLineContext | None,
    ) -> Pick:
        """
        Produce a pick for the active segment.

        Args:
            stats: Statistics of the recommended segment (None if none)
            confidence: Confidence for that segment, attached to the pick
            context: Live market input (None if the game has no market)

        Returns:
            Pick; never raises on valid input
        """
        n_games = stats.n_games if stats is not None else 0
        common = {
            "n_games": n_games,
            "confidence_score": confidence.score if confidence else None,
            "confidence_label": confidence.label if confidence else None,
        }

        # Rule 1: not enough games to trust the distribution
        if stats is None or n_games < self.min_games:
            return Pick(
                pick=PickType.INSUFFICIENT,
                basis=PickBasis.SAMPLE_SIZE,
                magnitude=float(n_games),
                reasons=[f"n={n_games} below minimum {self.min_games}"],
                **common,
            )

        # Rule 2: no live market
        if context is None or not context.is_available:
            return Pick(
                pick=PickType.UNAVAILABLE,
                basis=PickBasis.MARKET,
                reasons=["No live total offered"],
                **common,
            )

        line = float(context.total_line)
        common["line"] = line
        common["beyond_extremes"] = self.is_beyond_extremes(stats, line)

        # Rule 3: edge magnitudes near the percentile extremes
        edges = self.detect_edges(stats, context)
        if edges is not None:
            return self._pick_from_edges(edges, common)

        # Rule 4: percentile of the live line
        return self._pick_from_percentile(stats, context, line, common)

    def _pick_from_edges(self, edges: EdgeReport, common: dict[str, Any]) -> Pick:
        over = edges.over_edge
        under = edges.under_edge
        common = {**common, "over_edge": over, "under_edge": under}

        over_positive = over is not None and over > 0
        under_positive = under is not None and under > 0

        if over_positive and (not under_positive or over >= under):
            # Ties go to the over side
            pick_type, magnitude, chosen = PickType.OVER, over, edges.over_line
            price = chosen.over_price if chosen else None
        elif under_positive:
            pick_type, magnitude, chosen = PickType.UNDER, under, edges.under_line
            price = chosen.under_price if chosen else None
        else:
            candidates = [e for e in (over, under) if e is not None]
            return Pick(
                pick=PickType.NO_EDGE,
                basis=PickBasis.EDGE,
                magnitude=max(candidates) if candidates else None,
                reasons=["Edges present but none positive"],
                **common,
            )

        if chosen is not None:
            common["line"] = chosen.point

        pick = Pick(
            pick=pick_type,
            basis=PickBasis.EDGE,
            magnitude=magnitude,
            strength=self.edge_strength_label(magnitude),
            price=price,
            reasons=[f"{pick_type.value} edge {magnitude:+.1f} pts"],
            **common,
        )
        logger.debug("pick_from_edges", pick=pick.pick.value, over=over, under=under)
        return pick

    def _pick_from_percentile(
        self,
        stats: SegmentStats,
        context: LiveLineContext,
        line: float,
        common: dict[str, Any],
    ) -> Pick:
        raw = context.line_percentile
        if raw is None:
            raw = line_percentile(stats.totals, line)
        p = round_half_up(raw) if raw is not None else 50

        if p <= self.over_max_percentile:
            pick_type = PickType.OVER
        elif p >= self.under_min_percentile:
            pick_type = PickType.UNDER
        else:
            pick_type = PickType.NO_EDGE

        pick = Pick(
            pick=pick_type,
            basis=PickBasis.PERCENTILE,
            magnitude=float(p),
            strength=(
                self.percentile_strength_label(p)
                if pick_type is not PickType.NO_EDGE
                else None
            ),
            percentile=p,
            reasons=[f"P={p}"],
            **common,
        )
        logger.debug("pick_from_percentile", pick=pick.pick.value, percentile=p)
        return pick

    @staticmethod
    def is_beyond_extremes(stats: SegmentStats, line: float) -> bool:
        """True when the live line sits outside [P05, P95] entirely."""
        if stats.p05 is None or stats.p95 is None:
            return False
        return line < stats.p05 or line > stats.p95
