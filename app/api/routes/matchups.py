"""Matchup segment endpoints."""

from typing import Any

import structlog
from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field, field_validator

from app.api.dependencies import get_store
from app.api.routes.picks import LiveLineIn
from app.services.matchups import canonical_pair
from app.services.matchups.analyzer import MatchupAnalyzer
from app.services.matchups.store import MatchupStore
from app.services.picks import PickEngine

router = APIRouter(prefix="/api/matchups", tags=["matchups"])
logger = structlog.get_logger(__name__)


class SegmentsRequest(BaseModel):
    """computeSegments input."""

    sport_id: str = Field(..., min_length=1)
    home_team_id: str = Field(..., min_length=1)
    away_team_id: str = Field(..., min_length=1)
    home_franchise_id: str | None = None
    away_franchise_id: str | None = None
    home_roster_continuity: float | None = Field(None, ge=0, le=100)
    away_roster_continuity: float | None = Field(None, ge=0, le=100)
    live_line: LiveLineIn | None = Field(
        None, description="When given, a pick is evaluated on the recommended segment"
    )

    @field_validator("sport_id")
    @classmethod
    def normalize_sport(cls, v: str) -> str:
        return v.strip().lower()


class SegmentsResponse(BaseModel):
    """computeSegments output."""

    sport_id: str
    team_low_id: str
    team_high_id: str
    uses_franchise: bool
    segments: list[dict[str, Any]]
    recommended_segment: str | None
    recommendation_reason: str
    total_historical_games: int
    data_quality: str
    confidence: dict[str, Any] | None = None
    pick: dict[str, Any] | None = None


class CachedStatsResponse(BaseModel):
    """Cached segment statistics for a pair."""

    sport_id: str
    team_low_id: str
    team_high_id: str
    uses_franchise: bool
    items: list[dict[str, Any]]


@router.post("/segments", response_model=SegmentsResponse)
async def compute_segments(
    request: SegmentsRequest,
    store: MatchupStore = Depends(get_store),
) -> SegmentsResponse:
    """
    Compute every historical segment for a matchup and recommend one.

    History is keyed by the franchise pair when both franchise ids are
    given, so relocated teams keep their history.
    """
    analyzer = MatchupAnalyzer(store)
    result = await analyzer.compute_segments(
        sport_id=request.sport_id,
        home_team_id=request.home_team_id,
        away_team_id=request.away_team_id,
        home_franchise_id=request.home_franchise_id,
        away_franchise_id=request.away_franchise_id,
        home_continuity=request.home_roster_continuity,
        away_continuity=request.away_roster_continuity,
    )

    payload = result.to_dict()
    if request.live_line is not None:
        pick = PickEngine().evaluate(
            result.recommended, result.confidence, request.live_line.to_context()
        )
        payload["pick"] = pick.to_dict()

    return SegmentsResponse(**payload)


@router.get("/{sport_id}/stats", response_model=CachedStatsResponse)
async def cached_stats(
    sport_id: str,
    team_a: str = Query(..., min_length=1, description="Team or franchise id"),
    team_b: str = Query(..., min_length=1, description="Team or franchise id"),
    franchise: bool = Query(False, description="Ids are franchise ids"),
    store: MatchupStore = Depends(get_store),
) -> CachedStatsResponse:
    """Cached segment statistics for a pair, in either order."""
    pair = canonical_pair(team_a, team_b)
    items = await store.load_cached_stats(sport_id.lower(), pair, uses_franchise=franchise)
    return CachedStatsResponse(
        sport_id=sport_id.lower(),
        team_low_id=pair.low,
        team_high_id=pair.high,
        uses_franchise=franchise,
        items=items,
    )
