"""Confidence scoring engine.

Rates how far a segment's statistics can be trusted, 0-100, from three
factors: sample size, recency of the games and roster continuity.

Sample size dominates: it bounds statistical reliability no matter how
recent or continuous the history is.
"""

import math
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any

import structlog
import yaml

logger = structlog.get_logger(__name__)


class ContinuityPolicy(str, Enum):
    """How home and away continuity are combined."""

    AVERAGE = "average"
    MINIMUM = "minimum"


class ConfidenceBand(str, Enum):
    """Display band, consistent with the UI colour scale."""

    HIGH = "high"
    MODERATE = "moderate"
    LOW = "low"
    VERY_LOW = "very_low"


BAND_COLOR_CLASSES = {
    ConfidenceBand.HIGH: "confidence-high",
    ConfidenceBand.MODERATE: "confidence-moderate",
    ConfidenceBand.LOW: "confidence-low",
    ConfidenceBand.VERY_LOW: "confidence-very-low",
}


@dataclass(frozen=True)
class ConfidenceFactors:
    """Per-factor scores (0-100) and which inputs were unknown."""

    sample_size: float
    recency: float
    continuity: float
    recency_known: bool = True
    continuity_known: bool = True


@dataclass(frozen=True)
class ConfidenceResult:
    """Result of confidence scoring with factor breakdown."""

    score: int
    label: str
    band: ConfidenceBand
    color_class: str
    factors: ConfidenceFactors

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for API responses."""
        return {
            "score": self.score,
            "label": self.label,
            "band": self.band.value,
            "color_class": self.color_class,
            "factors": {
                "sample_size": self.factors.sample_size,
                "recency": self.factors.recency,
                "continuity": self.factors.continuity,
                "recency_known": self.factors.recency_known,
                "continuity_known": self.factors.continuity_known,
            },
        }


class ConfidenceScorer:
    """
    Calculate confidence scores for segment statistics.

    Formula:
    score = round(
        w_sample × f_sample(n_games)
      + w_recency × f_recency(recency_weight)
      + w_continuity × f_continuity(home, away)
    )

    None for recency or continuity means "unknown" and scores the neutral
    configured value, never zero.
    """

    def __init__(self, config: dict[str, Any] | None = None):
        """
        Initialize confidence scorer.

        Args:
            config: Optional confidence configuration. If not provided,
                   loads from defaults.yaml
        """
        if config is None:
            config = self._load_default_config()

        self.config = config
        self.weights = config.get("weights", {})
        self.labels = config.get("labels", {})
        self.bands = config.get("bands", {})

        self._validate_config()

        continuity = config.get("continuity", {})
        self.continuity_policy = ContinuityPolicy(continuity.get("policy", "average"))
        self.unknown_continuity = float(continuity.get("unknown_score", 50))
        self.unknown_recency = float(config.get("recency", {}).get("unknown_score", 50))
        self.saturation = float(config.get("sample_size", {}).get("saturation", 7.2))

    def _load_default_config(self) -> dict[str, Any]:
        """Load confidence config from defaults.yaml."""
        config_path = Path(__file__).parent.parent.parent / "config" / "defaults.yaml"
        if config_path.exists():
            with open(config_path) as f:
                full_config = yaml.safe_load(f) or {}
                if "confidence" in full_config:
                    return full_config["confidence"]
        return self._get_fallback_config()

    def _get_fallback_config(self) -> dict[str, Any]:
        """Fallback configuration if defaults.yaml not found."""
        return {
            "weights": {"sample_size": 0.50, "recency": 0.30, "continuity": 0.20},
            "sample_size": {"saturation": 7.2},
            "recency": {"unknown_score": 50},
            "continuity": {"policy": "average", "unknown_score": 50},
            "labels": {"excellent": 80, "good": 60, "fair": 40},
            "bands": {"high": 70, "moderate": 45, "low": 30},
        }

    def _validate_config(self) -> None:
        """Validate weights are present and sample size dominates."""
        for w in ("sample_size", "recency", "continuity"):
            if w not in self.weights:
                raise ValueError(f"Missing weight: {w}")
        others = (self.weights["recency"], self.weights["continuity"])
        if any(self.weights["sample_size"] < other for other in others):
            raise ValueError("sample_size weight must dominate the other factors")

    @staticmethod
    def clamp(value: float, min_val: float, max_val: float) -> float:
        """Clamp value between min and max."""
        return max(min_val, min(value, max_val))

    def f_sample_size(self, n_games: int) -> float:
        """
        Score sample size.

        Saturating curve 100 × (1 − e^(−n / k)): about 50 at 5 games
        (weak below), about 75 at 10 (adequate), approaching 100.

        Returns value in [0, 100].
        """
        if n_games <= 0:
            return 0.0
        return 100 * (1 - math.exp(-n_games / self.saturation))

    def f_recency(self, recency_weight: float | None) -> float:
        """Scale a [0, 1] recency weight to [0, 100]; unknown is neutral."""
        if recency_weight is None:
            return self.unknown_recency
        return self.clamp(recency_weight, 0, 1) * 100

    def f_continuity(
        self,
        home_continuity: float | None,
        away_continuity: float | None,
    ) -> float:
        """
        Combine home and away roster continuity (each 0-100).

        AVERAGE substitutes the neutral value for an unknown side;
        MINIMUM takes the weaker known side.
        """
        known = [
            self.clamp(v, 0, 100)
            for v in (home_continuity, away_continuity)
            if v is not None
        ]
        if not known:
            return self.unknown_continuity

        if self.continuity_policy is ContinuityPolicy.MINIMUM:
            return min(known)

        home = self.unknown_continuity if home_continuity is None else known[0]
        away = self.unknown_continuity if away_continuity is None else known[-1]
        return (home + away) / 2

    def label_for(self, score: int, n_games: int) -> str:
        """Excellent / Good / Fair / Low, or No Data without any games."""
        if n_games <= 0:
            return "No Data"
        if score >= self.labels.get("excellent", 80):
            return "Excellent"
        if score >= self.labels.get("good", 60):
            return "Good"
        if score >= self.labels.get("fair", 40):
            return "Fair"
        return "Low"

    def band_for(self, score: int) -> ConfidenceBand:
        if score >= self.bands.get("high", 70):
            return ConfidenceBand.HIGH
        if score >= self.bands.get("moderate", 45):
            return ConfidenceBand.MODERATE
        if score >= self.bands.get("low", 30):
            return ConfidenceBand.LOW
        return ConfidenceBand.VERY_LOW

    def calculate(
        self,
        n_games: int,
        recency_weight: float | None = None,
        home_continuity: float | None = None,
        away_continuity: float | None = None,
    ) -> ConfidenceResult:
        """
        Calculate the confidence score with factor breakdown.

        Args:
            n_games: Games in the active segment
            recency_weight: Segment recency in [0, 1], None if unknown
            home_continuity: Home roster continuity 0-100, None if unknown
            away_continuity: Away roster continuity 0-100, None if unknown

        Returns:
            ConfidenceResult; defined for every input combination
        """
        factors = ConfidenceFactors(
            sample_size=round(self.f_sample_size(n_games), 2),
            recency=round(self.f_recency(recency_weight), 2),
            continuity=round(self.f_continuity(home_continuity, away_continuity), 2),
            recency_known=recency_weight is not None,
            continuity_known=home_continuity is not None or away_continuity is not None,
        )

        raw_score = (
            self.weights["sample_size"] * factors.sample_size
            + self.weights["recency"] * factors.recency
            + self.weights["continuity"] * factors.continuity
        )
        score = int(self.clamp(round(raw_score), 0, 100))
        band = self.band_for(score)

        result = ConfidenceResult(
            score=score,
            label=self.label_for(score, n_games),
            band=band,
            color_class=BAND_COLOR_CLASSES[band],
            factors=factors,
        )

        logger.debug(
            "confidence_calculated",
            n_games=n_games,
            score=result.score,
            label=result.label,
            sample_size=factors.sample_size,
            recency=factors.recency,
            continuity=factors.continuity,
        )

        return result
