"""Pick evaluation endpoints."""

from typing import Any

import structlog
from fastapi import APIRouter
from pydantic import BaseModel, Field, model_validator

from app.services.picks import AlternateLine, LiveLineContext, PickEngine
from app.services.scoring import ConfidenceScorer
from app.services.segments import Segment
from app.services.stats import SegmentStats

router = APIRouter(prefix="/api/picks", tags=["picks"])
logger = structlog.get_logger(__name__)


class AlternateLineIn(BaseModel):
    """One alternate total with its prices (American odds)."""

    point: float
    over_price: int | None = None
    under_price: int | None = None


class LiveLineIn(BaseModel):
    """Live market input for a game."""

    total_line: float | None = None
    offered: bool = True
    line_percentile: float | None = Field(None, ge=0, le=100)
    alternate_lines: list[AlternateLineIn] = Field(default_factory=list)
    best_over_edge: float | None = None
    best_under_edge: float | None = None

    def to_context(self) -> LiveLineContext:
        return LiveLineContext(
            total_line=self.total_line,
            offered=self.offered,
            line_percentile=self.line_percentile,
            alternate_lines=tuple(
                AlternateLine(point=a.point, over_price=a.over_price, under_price=a.under_price)
                for a in self.alternate_lines
            ),
            best_over_edge=self.best_over_edge,
            best_under_edge=self.best_under_edge,
        )


class SegmentStatsIn(BaseModel):
    """Statistics of the active segment."""

    segment: Segment = Segment.H2H_ALL
    n_games: int = Field(..., ge=0)
    p05: float | None = None
    p95: float | None = None
    median: float | None = None
    min_total: float | None = None
    max_total: float | None = None
    recency_weight: float | None = Field(None, ge=0, le=1)
    totals: list[float] = Field(default_factory=list)

    @model_validator(mode="after")
    def check_bounds(self) -> "SegmentStatsIn":
        if self.p05 is not None and self.p95 is not None and self.p05 > self.p95:
            raise ValueError("p05 must not exceed p95")
        if self.totals and len(self.totals) != self.n_games:
            raise ValueError("totals must hold exactly n_games values")
        return self

    def to_stats(self) -> SegmentStats:
        totals = tuple(sorted(self.totals))
        return SegmentStats(
            segment=self.segment,
            n_games=self.n_games,
            p05=self.p05,
            p95=self.p95,
            median=self.median,
            min_total=self.min_total,
            max_total=self.max_total,
            range=(self.p95 - self.p05) if self.p05 is not None and self.p95 is not None else None,
            recency_weight=self.recency_weight or 0.0,
            totals=totals,
        )


class PickRequest(BaseModel):
    """evaluatePick input."""

    stats: SegmentStatsIn | None = None
    home_continuity: float | None = Field(None, ge=0, le=100)
    away_continuity: float | None = Field(None, ge=0, le=100)
    live_line: LiveLineIn | None = None


class PickResponse(BaseModel):
    """Pick plus the confidence it was evaluated with."""

    pick: dict[str, Any]
    confidence: dict[str, Any] | None = None


@router.post("/evaluate", response_model=PickResponse)
async def evaluate_pick(request: PickRequest) -> PickResponse:
    """
    Evaluate a pick from segment statistics and the live market.

    Rules run in strict order: insufficient sample, no live line, edge
    magnitudes near P05/P95, live-line percentile, no edge.
    """
    stats = request.stats.to_stats() if request.stats else None

    confidence = None
    if stats is not None:
        confidence = ConfidenceScorer().calculate(
            n_games=stats.n_games,
            recency_weight=request.stats.recency_weight,
            home_continuity=request.home_continuity,
            away_continuity=request.away_continuity,
        )

    context = request.live_line.to_context() if request.live_line else None
    pick = PickEngine().evaluate(stats, confidence, context)

    logger.info(
        "pick_evaluated",
        pick=pick.pick.value,
        basis=pick.basis.value,
        magnitude=pick.magnitude,
        n_games=pick.n_games,
    )

    return PickResponse(
        pick=pick.to_dict(),
        confidence=confidence.to_dict() if confidence else None,
    )
