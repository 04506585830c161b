"""Unit tests for the matchup analyzer and the segment stats cache."""

import pytest
from sqlalchemy.dialects import postgresql

from app.models.domain import MatchupStats
from app.services.matchups import analyzer as analyzer_module
from app.services.matchups.analyzer import MatchupAnalyzer
from app.services.matchups.keys import TeamPair
from app.services.matchups.store import MatchupStore
from app.services.segments import catalog as catalog_module
from app.services.segments.catalog import SegmentCatalog
from app.services.segments.definitions import Segment
from app.services.stats.percentiles import StatsComputer


class FakeMatchupStore:
    """In-memory history store that records every call."""

    def __init__(self, h2h_games=(), form_games=()):
        self.h2h_games = list(h2h_games)
        self.form_games = list(form_games)
        self.h2h_calls = []
        self.form_calls = []
        self.saved = []

    async def load_head_to_head(self, sport_id, pair, uses_franchise=False):
        self.h2h_calls.append((sport_id, pair, uses_franchise))
        return list(self.h2h_games)

    async def load_recent_form(self, sport_id, pair, uses_franchise=False, games_per_side=10):
        self.form_calls.append((sport_id, pair, uses_franchise, games_per_side))
        return list(self.form_games)

    async def save_segment_stats(self, sport_id, pair, stats, uses_franchise=False):
        self.saved.append((sport_id, pair, list(stats), uses_franchise))


class RecordingLogger:
    """Stands in for a module logger; keeps (level, event) pairs."""

    def __init__(self):
        self.events = []

    def debug(self, event, **kw):
        self.events.append(("debug", event))

    def info(self, event, **kw):
        self.events.append(("info", event))

    def warning(self, event, **kw):
        self.events.append(("warning", event))


class FakeSession:
    """Captures executed statements."""

    def __init__(self):
        self.statements = []
        self.commits = 0

    async def execute(self, statement):
        self.statements.append(statement)

    async def commit(self):
        self.commits += 1


class TestMatchupAnalyzer:
    """Test the MatchupAnalyzer class."""

    @pytest.mark.asyncio
    async def test_franchise_pair_passed_to_store(self, make_games, as_of):
        store = FakeMatchupStore(h2h_games=make_games([200, 210, 220]))

        result = await MatchupAnalyzer(store).compute_segments(
            "nba", "SEA", "OKC",
            home_franchise_id="fr-sonics",
            away_franchise_id="fr-bucks",
            as_of=as_of,
        )

        pair = TeamPair("fr-bucks", "fr-sonics")
        assert store.h2h_calls == [("nba", pair, True)]
        assert store.form_calls[0][:3] == ("nba", pair, True)
        assert result.uses_franchise is True

    @pytest.mark.asyncio
    async def test_team_pair_when_franchise_missing(self, make_games, as_of):
        store = FakeMatchupStore(h2h_games=make_games([200, 210]))

        await MatchupAnalyzer(store).compute_segments(
            "nba", "SEA", "OKC", home_franchise_id="fr-sonics", as_of=as_of
        )

        assert store.h2h_calls == [("nba", TeamPair("OKC", "SEA"), False)]
        assert store.form_calls[0][2] is False

    @pytest.mark.asyncio
    async def test_form_window_size_from_policy(self, as_of):
        config = StatsComputer()._get_fallback_config()
        config["form_games_per_team"] = 7
        catalog = SegmentCatalog(StatsComputer(config))
        store = FakeMatchupStore()

        await MatchupAnalyzer(store, catalog=catalog).compute_segments(
            "nba", "BOS", "NYK", as_of=as_of
        )

        assert store.form_calls[0][3] == 7

    @pytest.mark.asyncio
    async def test_only_populated_segments_cached(self, make_games, as_of):
        """No form games: hybrid_form has 0 games and is not written."""
        store = FakeMatchupStore(h2h_games=make_games([200, 210, 220]))

        await MatchupAnalyzer(store).compute_segments("nba", "BOS", "NYK", as_of=as_of)

        assert len(store.saved) == 1
        sport_id, pair, stats, uses_franchise = store.saved[0]
        assert sport_id == "nba"
        assert pair == TeamPair("BOS", "NYK")
        assert uses_franchise is False
        assert all(s.n_games >= 1 for s in stats)
        assert Segment.HYBRID_FORM not in {s.segment for s in stats}
        assert {s.segment for s in stats} == {
            Segment.H2H_ALL, Segment.H2H_10Y, Segment.H2H_5Y, Segment.RECENCY_WEIGHTED,
        }

    @pytest.mark.asyncio
    async def test_franchise_kind_passed_to_cache(self, make_games, as_of):
        store = FakeMatchupStore(h2h_games=make_games([200, 210]))

        await MatchupAnalyzer(store).compute_segments(
            "nhl", "UTA", "ARI", home_franchise_id="fr-a", away_franchise_id="fr-b", as_of=as_of
        )

        assert store.saved[0][3] is True

    @pytest.mark.asyncio
    async def test_nothing_cached_without_history(self, as_of):
        store = FakeMatchupStore()
        result = await MatchupAnalyzer(store).compute_segments("nba", "BOS", "NYK", as_of=as_of)

        assert store.saved == []
        assert result.recommended_segment is None

    @pytest.mark.asyncio
    async def test_cache_disabled(self, make_games, as_of):
        store = FakeMatchupStore(h2h_games=make_games([200, 210, 220]))
        await MatchupAnalyzer(store, cache_results=False).compute_segments(
            "nba", "BOS", "NYK", as_of=as_of
        )
        assert store.saved == []


class TestSegmentStatsCache:
    """Franchise pairs and team pairs never share a cache row."""

    def test_key_kind_in_unique_constraint(self):
        constraint = next(
            c for c in MatchupStats.__table__.constraints
            if c.name == "uq_matchup_stats_pair_segment"
        )
        assert {col.name for col in constraint.columns} == {
            "sport_id", "key_kind", "team_low_id", "team_high_id", "segment_key",
        }

    @pytest.mark.asyncio
    @pytest.mark.parametrize("uses_franchise,expected", [
        (True, "franchise"),
        (False, "team"),
    ])
    async def test_upsert_tags_key_kind(self, ten_game_stats, uses_franchise, expected):
        session = FakeSession()
        store = MatchupStore(session)

        await store.save_segment_stats(
            "nba", TeamPair("BOS", "NYK"), [ten_game_stats], uses_franchise=uses_franchise
        )

        assert len(session.statements) == 1
        assert session.commits == 1
        compiled = session.statements[0].compile(dialect=postgresql.dialect())
        assert compiled.params["key_kind"] == expected
        assert "uq_matchup_stats_pair_segment" in str(compiled)


class TestOutcomeLogging:
    """The catalog logs at debug; the analyzer reports the outcome at info."""

    @pytest.mark.asyncio
    async def test_levels(self, monkeypatch, make_games, as_of):
        catalog_log = RecordingLogger()
        analyzer_log = RecordingLogger()
        monkeypatch.setattr(catalog_module, "logger", catalog_log)
        monkeypatch.setattr(analyzer_module, "logger", analyzer_log)
        store = FakeMatchupStore(h2h_games=make_games([200, 210, 220]))

        await MatchupAnalyzer(store).compute_segments("nba", "BOS", "NYK", as_of=as_of)

        assert ("debug", "segments_computed") in catalog_log.events
        assert all(level == "debug" for level, _ in catalog_log.events)
        assert ("info", "matchup_segments_computed") in analyzer_log.events
