"""Hydration service client module."""

from app.services.hydration.client import (
    HydrationClient,
    HydrationError,
    HydrationResult,
)

__all__ = ["HydrationClient", "HydrationError", "HydrationResult"]
