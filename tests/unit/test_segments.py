"""Unit tests for the segment catalog and recommendation policy.

The recommendation must be deterministic: the first segment in priority
order with at least 5 games wins, regardless of larger later segments.
"""

import pytest

from app.services.matchups.keys import TeamPair, canonical_pair, history_key
from app.services.segments.catalog import SegmentCatalog, data_quality_for
from app.services.segments.definitions import SEGMENT_PRIORITY, Segment
from app.services.stats.percentiles import SegmentStats

PAIR = TeamPair("BOS", "NYK")


def stats_with_counts(counts: dict[Segment, int]) -> list[SegmentStats]:
    return [SegmentStats(segment=s, n_games=counts.get(s, 0)) for s in SEGMENT_PRIORITY]


class TestTeamPair:
    """Canonical pair keys."""

    def test_order_independent(self):
        assert canonical_pair("NYK", "BOS") == canonical_pair("BOS", "NYK")
        assert canonical_pair("NYK", "BOS") == PAIR

    def test_non_canonical_rejected(self):
        with pytest.raises(ValueError):
            TeamPair("NYK", "BOS")

    def test_franchise_pair_preferred(self):
        pair, uses_franchise = history_key("SEA", "OKC", "fr-sonics", "fr-bucks")
        assert pair == TeamPair("fr-bucks", "fr-sonics")
        assert uses_franchise is True

    def test_team_pair_without_both_franchises(self):
        pair, uses_franchise = history_key("SEA", "OKC", "fr-sonics", None)
        assert pair == TeamPair("OKC", "SEA")
        assert uses_franchise is False


class TestSegmentPriority:
    """Recommendation selection rule."""

    def setup_method(self):
        """Set up test fixtures."""
        self.catalog = SegmentCatalog()

    def test_priority_order(self):
        assert SEGMENT_PRIORITY == (
            Segment.H2H_ALL,
            Segment.H2H_10Y,
            Segment.H2H_5Y,
            Segment.RECENCY_WEIGHTED,
            Segment.HYBRID_FORM,
        )

    def test_first_qualifying_segment_wins(self):
        """Larger later segments never outrank an earlier qualifying one."""
        segments = stats_with_counts({
            Segment.H2H_ALL: 3,
            Segment.H2H_10Y: 2,
            Segment.H2H_5Y: 7,
            Segment.RECENCY_WEIGHTED: 12,
            Segment.HYBRID_FORM: 20,
        })
        recommended, _ = self.catalog.select_recommended(segments)
        assert recommended is Segment.H2H_5Y

    def test_exactly_five_qualifies(self):
        segments = stats_with_counts({Segment.H2H_ALL: 5, Segment.HYBRID_FORM: 20})
        recommended, _ = self.catalog.select_recommended(segments)
        assert recommended is Segment.H2H_ALL

    def test_hybrid_fallback_below_minimum(self):
        segments = stats_with_counts({Segment.H2H_ALL: 4, Segment.HYBRID_FORM: 2})
        recommended, reason = self.catalog.select_recommended(segments)
        assert recommended is Segment.HYBRID_FORM
        assert "falling back" in reason

    def test_no_data(self):
        recommended, reason = self.catalog.select_recommended(stats_with_counts({}))
        assert recommended is None
        assert "Not enough" in reason

    def test_deterministic(self):
        segments = stats_with_counts({Segment.H2H_10Y: 6, Segment.RECENCY_WEIGHTED: 6})
        results = {self.catalog.select_recommended(segments)[0] for _ in range(10)}
        assert results == {Segment.H2H_10Y}


class TestSegmentCatalog:
    """End-to-end evaluation over game lists."""

    def setup_method(self):
        """Set up test fixtures."""
        self.catalog = SegmentCatalog()

    def test_h2h_recommended_with_enough_games(self, make_games, as_of):
        h2h = make_games([200, 205, 210, 215, 220, 225], spacing_days=60)
        result = self.catalog.evaluate("nba", PAIR, h2h, [], as_of=as_of)

        assert result.recommended_segment is Segment.H2H_ALL
        assert result.total_historical_games == 6
        assert [s.is_recommended for s in result.segments].count(True) == 1
        assert result.recommended.segment is Segment.H2H_ALL
        assert result.data_quality != "insufficient"

    def test_fallback_to_hybrid_form(self, make_games, as_of):
        h2h = make_games([200, 210], prefix="h2h")
        form = make_games([190, 200, 205, 210, 220, 230, 240, 250], spacing_days=7, prefix="f")

        result = self.catalog.evaluate("nba", PAIR, h2h, form, as_of=as_of)

        assert result.recommended_segment is Segment.HYBRID_FORM
        assert result.recommended.n_games == 8
        assert result.confidence is not None

    def test_insufficient_without_any_games(self, as_of):
        result = self.catalog.evaluate("nba", PAIR, [], [], as_of=as_of)

        assert result.recommended_segment is None
        assert result.recommended is None
        assert result.data_quality == "insufficient"
        assert result.confidence is None
        assert all(s.confidence_label == "No Data" for s in result.segments)

    def test_confidence_attached_to_segments(self, make_games, as_of):
        h2h = make_games([200 + i for i in range(12)], spacing_days=45)
        result = self.catalog.evaluate(
            "nba", PAIR, h2h, [], home_continuity=80, away_continuity=60, as_of=as_of
        )

        recommended = result.recommended
        assert recommended.confidence == result.confidence.score
        assert recommended.confidence_label == result.confidence.label
        assert result.confidences[Segment.HYBRID_FORM].label == "No Data"

    def test_identical_inputs_identical_output(self, make_games, as_of):
        h2h = make_games([200, 205, 210, 215, 220, 225, 230])
        first = self.catalog.evaluate("nba", PAIR, h2h, [], as_of=as_of)
        second = self.catalog.evaluate("nba", PAIR, h2h, [], as_of=as_of)
        assert first.to_dict() == second.to_dict()

    def test_to_dict_shape(self, make_games, as_of):
        result = self.catalog.evaluate("nba", PAIR, make_games([200] * 5), [], as_of=as_of)
        data = result.to_dict()

        assert data["team_low_id"] == "BOS"
        assert data["team_high_id"] == "NYK"
        assert data["recommended_segment"] == "h2h_all"
        assert len(data["segments"]) == 5


class TestDataQuality:
    """Overall grade from the winning segment's confidence."""

    @pytest.mark.parametrize("score,expected", [
        (95, "excellent"),
        (80, "excellent"),
        (79, "good"),
        (60, "good"),
        (40, "fair"),
        (20, "low"),
        (19, "insufficient"),
        (None, "insufficient"),
    ])
    def test_thresholds(self, score, expected):
        assert data_quality_for(score) == expected
