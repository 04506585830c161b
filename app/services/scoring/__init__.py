"""Confidence scoring module for TotalsRadar."""

from app.services.scoring.confidence import ConfidenceResult, ConfidenceScorer

__all__ = ["ConfidenceScorer", "ConfidenceResult"]
