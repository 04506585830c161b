"""Unit tests for the pick engine.

Rules run in strict priority order and the first match wins:
insufficient -> unavailable -> edge magnitude -> percentile -> no-edge.
"""

import pytest

from app.services.picks.engine import (
    AlternateLine,
    LiveLineContext,
    PickBasis,
    PickEngine,
    PickType,
    round_half_up,
)
from app.services.scoring.confidence import ConfidenceScorer
from app.services.segments.definitions import Segment
from app.services.stats.percentiles import SegmentStats


@pytest.fixture
def engine():
    return PickEngine()


@pytest.fixture
def bare_stats():
    """Usable stats without the raw totals."""
    return SegmentStats(segment=Segment.H2H_ALL, n_games=10, p05=72.25, p95=112.75)


class TestRulePriority:
    """Insufficient and unavailable short-circuit everything else."""

    def test_insufficient_before_market(self, engine):
        stats = SegmentStats(segment=Segment.H2H_ALL, n_games=4, p05=200, p95=230)
        pick = engine.evaluate(stats, None, LiveLineContext(total_line=None))

        assert pick.pick is PickType.INSUFFICIENT
        assert pick.basis is PickBasis.SAMPLE_SIZE
        assert pick.magnitude == 4

    def test_no_segment_is_insufficient(self, engine):
        pick = engine.evaluate(None, None, LiveLineContext(total_line=215.5))
        assert pick.pick is PickType.INSUFFICIENT
        assert pick.n_games == 0

    def test_unavailable_without_line(self, engine, ten_game_stats):
        assert engine.evaluate(ten_game_stats, None, None).pick is PickType.UNAVAILABLE
        assert (
            engine.evaluate(ten_game_stats, None, LiveLineContext(total_line=None)).pick
            is PickType.UNAVAILABLE
        )

    def test_unavailable_when_market_closed(self, engine, ten_game_stats):
        context = LiveLineContext(total_line=90.5, offered=False, line_percentile=10)
        assert engine.evaluate(ten_game_stats, None, context).pick is PickType.UNAVAILABLE

    def test_edges_take_precedence_over_percentile(self, engine, bare_stats):
        context = LiveLineContext(total_line=90, line_percentile=95, best_over_edge=1.5)
        pick = engine.evaluate(bare_stats, None, context)
        assert pick.pick is PickType.OVER
        assert pick.basis is PickBasis.EDGE


class TestEdgeMagnitude:
    """Rule 3: alternate lines near the historical extremes."""

    def test_tie_goes_to_over(self, engine, bare_stats):
        context = LiveLineContext(total_line=92.5, best_over_edge=2.0, best_under_edge=2.0)
        pick = engine.evaluate(bare_stats, None, context)

        assert pick.pick is PickType.OVER
        assert pick.magnitude == 2.0
        assert pick.over_edge == pick.under_edge == 2.0

    def test_larger_under_edge_wins(self, engine, bare_stats):
        context = LiveLineContext(total_line=92.5, best_over_edge=1.0, best_under_edge=2.5)
        pick = engine.evaluate(bare_stats, None, context)

        assert pick.pick is PickType.UNDER
        assert pick.strength == "Strong"

    def test_non_positive_edges_are_no_edge(self, engine, bare_stats):
        context = LiveLineContext(total_line=92.5, best_over_edge=0.0, best_under_edge=-1.5)
        pick = engine.evaluate(bare_stats, None, context)

        assert pick.pick is PickType.NO_EDGE
        assert pick.basis is PickBasis.EDGE
        assert pick.magnitude == 0.0

    def test_alternate_lines(self, engine, bare_stats):
        """Over edge = P95 - point; under edge = point - P05."""
        context = LiveLineContext(
            total_line=92.5,
            alternate_lines=(
                AlternateLine(point=110.0, over_price=-110),
                AlternateLine(point=111.5, over_price=+105),
                AlternateLine(point=74.0, under_price=-115),
            ),
        )
        pick = engine.evaluate(bare_stats, None, context)

        assert pick.pick is PickType.OVER
        assert pick.over_edge == pytest.approx(2.75)
        assert pick.under_edge == pytest.approx(1.75)
        assert pick.line == 110.0
        assert pick.price == -110
        assert pick.strength == "Strong"

    def test_reports_lowest_over_at_or_above_p95(self, engine, bare_stats):
        """The edge comes from 110.0; the line shown is the first at or past P95."""
        context = LiveLineContext(
            total_line=92.5,
            alternate_lines=(
                AlternateLine(point=110.0, over_price=-110),
                AlternateLine(point=113.5, over_price=+120),
                AlternateLine(point=115.0, over_price=+150),
            ),
        )
        pick = engine.evaluate(bare_stats, None, context)

        assert pick.pick is PickType.OVER
        assert pick.over_edge == pytest.approx(2.75)
        assert pick.magnitude == pytest.approx(2.75)
        assert pick.line == 113.5
        assert pick.price == 120

    def test_reports_highest_under_at_or_below_p05(self, engine, bare_stats):
        context = LiveLineContext(
            total_line=92.5,
            alternate_lines=(
                AlternateLine(point=74.5, under_price=-110),
                AlternateLine(point=71.5, under_price=+115),
                AlternateLine(point=70.0, under_price=+140),
            ),
        )
        pick = engine.evaluate(bare_stats, None, context)

        assert pick.pick is PickType.UNDER
        assert pick.under_edge == pytest.approx(2.25)
        assert pick.line == 71.5
        assert pick.price == 115

    def test_only_under_line_in_range(self, engine, bare_stats):
        context = LiveLineContext(
            total_line=92.5,
            alternate_lines=(AlternateLine(point=73.5, under_price=-120),),
        )
        pick = engine.evaluate(bare_stats, None, context)

        assert pick.pick is PickType.UNDER
        assert pick.magnitude == pytest.approx(1.25)
        assert pick.strength == "Moderate"
        assert pick.price == -120

    def test_lines_outside_tolerance_ignored(self, engine, bare_stats):
        context = LiveLineContext(
            total_line=92.5,
            line_percentile=50,
            alternate_lines=(AlternateLine(point=100.0, over_price=-110),),
        )
        pick = engine.evaluate(bare_stats, None, context)

        assert pick.basis is PickBasis.PERCENTILE
        assert pick.pick is PickType.NO_EDGE

    @pytest.mark.parametrize("edge,expected", [
        (2.5, "Strong"),
        (2.0, "Moderate"),
        (1.0, "Moderate"),
        (0.5, "Weak"),
        (0.0, None),
    ])
    def test_edge_strength_labels(self, engine, edge, expected):
        assert engine.edge_strength_label(edge) == expected


class TestPercentileFallback:
    """Rule 4: P <= 30 over, P >= 70 under, otherwise no edge."""

    @pytest.mark.parametrize("p,expected", [
        (0, PickType.OVER),
        (30, PickType.OVER),
        (31, PickType.NO_EDGE),
        (50, PickType.NO_EDGE),
        (69, PickType.NO_EDGE),
        (70, PickType.UNDER),
        (100, PickType.UNDER),
    ])
    def test_boundaries(self, engine, bare_stats, p, expected):
        context = LiveLineContext(total_line=92.5, line_percentile=p)
        pick = engine.evaluate(bare_stats, None, context)

        assert pick.pick is expected
        assert pick.basis is PickBasis.PERCENTILE
        assert pick.percentile == p

    def test_fractional_percentile_rounds_half_up(self, engine, bare_stats):
        over = engine.evaluate(bare_stats, None, LiveLineContext(92.5, line_percentile=30.4))
        edge = engine.evaluate(bare_stats, None, LiveLineContext(92.5, line_percentile=30.5))
        under = engine.evaluate(bare_stats, None, LiveLineContext(92.5, line_percentile=69.5))

        assert over.pick is PickType.OVER
        assert edge.pick is PickType.NO_EDGE
        assert under.pick is PickType.UNDER

    def test_percentile_derived_from_totals(self, engine, ten_game_stats):
        """Three of ten totals at or below 80 puts the line at P30."""
        pick = engine.evaluate(ten_game_stats, None, LiveLineContext(total_line=80))

        assert pick.percentile == 30
        assert pick.pick is PickType.OVER

    def test_no_percentile_data_is_no_edge(self, engine, bare_stats):
        pick = engine.evaluate(bare_stats, None, LiveLineContext(total_line=92.5))
        assert pick.percentile == 50
        assert pick.pick is PickType.NO_EDGE

    @pytest.mark.parametrize("p,expected", [
        (5, "Strong"),
        (10, "Strong"),
        (20, "Moderate"),
        (25, "Weak"),
        (90, "Strong"),
        (80, "Moderate"),
    ])
    def test_percentile_strength(self, engine, p, expected):
        assert engine.percentile_strength_label(p) == expected

    def test_round_half_up(self):
        assert round_half_up(30.5) == 31
        assert round_half_up(30.49) == 30
        assert round_half_up(69.5) == 70


class TestPickDetails:
    """Signals surfaced alongside the pick."""

    def test_beyond_extremes(self, engine, bare_stats):
        above = engine.evaluate(bare_stats, None, LiveLineContext(120.0, line_percentile=100))
        inside = engine.evaluate(bare_stats, None, LiveLineContext(92.5, line_percentile=50))
        below = engine.evaluate(bare_stats, None, LiveLineContext(70.0, line_percentile=0))

        assert above.beyond_extremes is True
        assert inside.beyond_extremes is False
        assert below.beyond_extremes is True

    def test_confidence_attached(self, engine, ten_game_stats):
        confidence = ConfidenceScorer().calculate(10, 0.8)
        pick = engine.evaluate(ten_game_stats, confidence, LiveLineContext(95.5))

        assert pick.confidence_score == confidence.score
        assert pick.confidence_label == confidence.label

    def test_invalid_bounds_rejected(self):
        with pytest.raises(ValueError):
            PickEngine({"over_max_percentile": 70, "under_min_percentile": 30})

    def test_to_dict(self, engine, bare_stats):
        data = engine.evaluate(bare_stats, None, LiveLineContext(92.5, line_percentile=20)).to_dict()
        assert data["pick"] == "over"
        assert data["basis"] == "percentile"
        assert data["reasons"] == ["P=20"]
