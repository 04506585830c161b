"""Matchup hydration service client.

The hydration service fetches missing historical games for a pairing from
the upstream sports-data provider and inserts them. It is idempotent:
re-hydrating a pair only adds games that are not already stored.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any

import httpx
import structlog

from app.config import get_settings

logger = structlog.get_logger(__name__)

HYDRATE_PATH = "/functions/v1/hydrate-matchup"


class HydrationErrorType(Enum):
    """Classification of hydration failures."""

    TIMEOUT = "TIMEOUT"
    RATE_LIMITED = "RATE_LIMITED"
    INVALID_INPUT = "INVALID_INPUT"
    SERVICE_UNAVAILABLE = "SERVICE_UNAVAILABLE"
    UNKNOWN = "UNKNOWN"


class HydrationError(Exception):
    """Hydration call failed, with classification."""

    def __init__(
        self,
        message: str,
        error_type: HydrationErrorType,
        retryable: bool = False,
    ):
        super().__init__(message)
        self.error_type = error_type
        self.retryable = retryable


@dataclass(frozen=True)
class HydrationResult:
    """Outcome of one hydration call."""

    games_inserted: int = 0


class HydrationClient:
    """
    Async client for the hydrate operation.

    Does not retry: a failed matchup stays insufficient and the next
    scheduled prewarm pass picks it up again.
    """

    def __init__(
        self,
        base_url: str | None = None,
        api_key: str | None = None,
        timeout: float | None = None,
        http_client: httpx.AsyncClient | None = None,
    ):
        """
        Initialize hydration client.

        Args:
            base_url: Service base URL (defaults to settings)
            api_key: Bearer token (defaults to settings)
            timeout: Per-request timeout in seconds (defaults to settings)
            http_client: Optional pre-built httpx client
        """
        settings = get_settings()
        self.base_url = (base_url or settings.hydration_base_url).rstrip("/")
        self.api_key = api_key if api_key is not None else settings.hydration_api_key
        self.timeout = timeout or settings.hydration_timeout_seconds
        self._http_client = http_client
        self._owns_client = http_client is None

    async def __aenter__(self) -> "HydrationClient":
        """Async context manager entry."""
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(timeout=self.timeout)
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Async context manager exit."""
        if self._http_client and self._owns_client:
            await self._http_client.aclose()
            self._http_client = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(timeout=self.timeout)
        return self._http_client

    async def hydrate(
        self,
        sport_id: str,
        home_team_id: str,
        away_team_id: str,
        horizon_years: int,
    ) -> HydrationResult:
        """
        Ask the service to backfill history for one matchup.

        Raises:
            HydrationError: On timeout, HTTP error or malformed response
        """
        if not self.base_url:
            raise HydrationError(
                "Hydration service URL not configured",
                HydrationErrorType.INVALID_INPUT,
            )

        payload = {
            "sport_id": sport_id,
            "home_team_id": home_team_id,
            "away_team_id": away_team_id,
            "horizon_years": horizon_years,
        }
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"

        client = await self._get_client()
        try:
            response = await client.post(
                f"{self.base_url}{HYDRATE_PATH}", json=payload, headers=headers
            )
            response.raise_for_status()
            data: Any = response.json()
        except httpx.TimeoutException as e:
            raise HydrationError(
                "Hydration request timeout", HydrationErrorType.TIMEOUT, retryable=True
            ) from e
        except httpx.HTTPStatusError as e:
            error_type, retryable = self._classify_status(e.response.status_code)
            raise HydrationError(
                f"Hydration failed: HTTP {e.response.status_code}",
                error_type,
                retryable,
            ) from e
        except httpx.HTTPError as e:
            raise HydrationError(
                str(e), HydrationErrorType.SERVICE_UNAVAILABLE, retryable=True
            ) from e
        except ValueError as e:
            raise HydrationError(
                "Hydration response was not JSON", HydrationErrorType.UNKNOWN
            ) from e

        inserted = int(data.get("games_inserted") or 0) if isinstance(data, dict) else 0
        logger.info(
            "matchup_hydrated",
            sport_id=sport_id,
            home_team_id=home_team_id,
            away_team_id=away_team_id,
            games_inserted=inserted,
        )
        return HydrationResult(games_inserted=inserted)

    @staticmethod
    def _classify_status(status_code: int) -> tuple[HydrationErrorType, bool]:
        """Classify HTTP status and determine if retryable."""
        if status_code == 429:
            return HydrationErrorType.RATE_LIMITED, True
        if status_code >= 500:
            return HydrationErrorType.SERVICE_UNAVAILABLE, True
        if status_code in (400, 404, 422):
            return HydrationErrorType.INVALID_INPUT, False
        return HydrationErrorType.UNKNOWN, False
