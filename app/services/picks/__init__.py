"""Edge detection and pick module for TotalsRadar."""

from app.services.picks.engine import (
    AlternateLine,
    LiveLineContext,
    Pick,
    PickEngine,
    PickType,
)

__all__ = ["AlternateLine", "LiveLineContext", "Pick", "PickEngine", "PickType"]
