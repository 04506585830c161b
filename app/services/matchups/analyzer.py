"""Matchup analysis: load history, build segments, cache the stats."""

from datetime import datetime

import structlog

from app.services.matchups.keys import history_key
from app.services.matchups.store import MatchupStore
from app.services.segments.catalog import MatchupSegments, SegmentCatalog

logger = structlog.get_logger(__name__)


class MatchupAnalyzer:
    """Compute segments for a matchup from stored history."""

    def __init__(
        self,
        store: MatchupStore,
        catalog: SegmentCatalog | None = None,
        cache_results: bool = True,
    ):
        self.store = store
        self.catalog = catalog or SegmentCatalog()
        self.cache_results = cache_results

    async def compute_segments(
        self,
        sport_id: str,
        home_team_id: str,
        away_team_id: str,
        home_franchise_id: str | None = None,
        away_franchise_id: str | None = None,
        home_continuity: float | None = None,
        away_continuity: float | None = None,
        as_of: datetime | None = None,
    ) -> MatchupSegments:
        """
        Build every segment for a matchup and recommend one.

        History is keyed by the franchise pair when both franchise ids are
        given, otherwise by the team pair. Segments with at least one game
        are written to the stats cache.
        """
        pair, uses_franchise = history_key(
            home_team_id, away_team_id, home_franchise_id, away_franchise_id
        )
        policy = self.catalog.stats_computer.window_policy

        h2h_games = await self.store.load_head_to_head(sport_id, pair, uses_franchise)
        form_games = await self.store.load_recent_form(
            sport_id, pair, uses_franchise, games_per_side=policy.form_games_per_team
        )
        logger.debug(
            "matchup_history_loaded",
            sport_id=sport_id,
            pair=pair.as_key(),
            uses_franchise=uses_franchise,
            h2h_games=len(h2h_games),
            form_games=len(form_games),
        )

        result = self.catalog.evaluate(
            sport_id=sport_id,
            pair=pair,
            h2h_games=h2h_games,
            form_games=form_games,
            home_continuity=home_continuity,
            away_continuity=away_continuity,
            uses_franchise=uses_franchise,
            as_of=as_of,
        )

        if self.cache_results:
            populated = [s for s in result.segments if s.n_games > 0]
            if populated:
                await self.store.save_segment_stats(
                    sport_id, pair, populated, uses_franchise=uses_franchise
                )

        logger.info(
            "matchup_segments_computed",
            sport_id=sport_id,
            pair=pair.as_key(),
            uses_franchise=uses_franchise,
            total_games=result.total_historical_games,
            recommended=result.recommended_segment.value if result.recommended_segment else None,
            data_quality=result.data_quality,
        )
        return result
