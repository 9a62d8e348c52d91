"""
The Odds API service for fetching betting odds.

This service provides access to betting odds from bookmakers including:
- Game odds (moneyline, spread, totals) for every upcoming event in a sport
- Single-event odds (detailed markets, player props)

Quota Tracking: Response headers x-requests-remaining, x-requests-used are
captured on every response, including error responses, and exported as
Prometheus gauges. A warning is logged when the remaining quota drops below
ODDS_API_QUOTA_WARNING.

Without THE_ODDS_API_KEY every call returns None and no request is made.
"""
from datetime import datetime
from typing import Any, Dict, List, Optional

import httpx

from app.core.config import get_cache_ttl, settings
from app.core.logging import get_logger
from app.core.metrics import (
    record_provider_failure,
    record_provider_success,
    update_odds_api_quota,
)
from app.services.core.cache import CacheKeys, ResponseCache, get_cache
from app.services.core.http_retry import error_type, provider_retry

logger = get_logger(__name__)

# The Odds API base URL
THE_ODDS_API_BASE = "https://api.the-odds-api.com/v4"

PROVIDER = "odds_api"


class OddsApiService:
    """
    The Odds API service for betting odds.

    Odds are cached per sport per calendar day with a short TTL, since lines
    move throughout the day and each request costs quota.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        cache: Optional[ResponseCache] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        timeout: Optional[float] = None,
    ):
        """
        Initialize The Odds API service.

        Args:
            api_key: The Odds API key (default: THE_ODDS_API_KEY)
            cache: Response cache (default: process-wide shared cache)
            transport: Optional httpx transport, used by tests
            timeout: Request timeout in seconds (default: ODDS_API_TIMEOUT)
        """
        self.api_key = settings.THE_ODDS_API_KEY if api_key is None else api_key
        self.cache = cache if cache is not None else get_cache()
        self.timeout = timeout if timeout is not None else settings.ODDS_API_TIMEOUT
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

        # Quota tracking (from response headers)
        self._requests_remaining: Optional[int] = None
        self._requests_used: Optional[int] = None
        self._quota_last_updated: Optional[datetime] = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            limits = httpx.Limits(max_keepalive_connections=5, max_connections=10)
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self.timeout),
                limits=limits,
                transport=self._transport,
                headers={"Accept": "application/json"},
            )
        return self._client

    async def close(self):
        """Close the HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    def _default_params(self, markets: Optional[str] = None) -> Dict[str, str]:
        return {
            "apiKey": self.api_key,
            "regions": settings.ODDS_API_REGIONS,
            "markets": markets or settings.ODDS_API_MARKETS,
            "oddsFormat": settings.ODDS_API_FORMAT,
        }

    def _update_quota_from_headers(self, response: httpx.Response):
        """
        Update quota tracking from response headers.

        The Odds API returns:
        - x-requests-remaining: Requests left in current billing period
        - x-requests-used: Requests used in current billing period

        Args:
            response: HTTP response object
        """
        remaining = response.headers.get('x-requests-remaining')
        used = response.headers.get('x-requests-used')
        if remaining is None and used is None:
            return

        try:
            if remaining is not None:
                self._requests_remaining = int(float(remaining))
            if used is not None:
                self._requests_used = int(float(used))
        except ValueError as e:
            logger.warning(f"Failed to parse quota headers: {e}")
            return

        self._quota_last_updated = datetime.now()

        logger.info(
            f"Odds API usage: {self._requests_used} used, "
            f"{self._requests_remaining} remaining"
        )

        if (
            self._requests_remaining is not None
            and self._requests_remaining < settings.ODDS_API_QUOTA_WARNING
        ):
            logger.warning(
                f"Odds API: only {self._requests_remaining} requests remaining this month!"
            )

        update_odds_api_quota(remaining=self._requests_remaining, used=self._requests_used)

    def get_quota_status(self) -> Dict[str, Any]:
        """
        Get current quota status, as last reported by the API.

        Returns:
            Dict with remaining/used requests and last update time. Values are
            None until the first request has been made.
        """
        return {
            "requests_remaining": self._requests_remaining,
            "requests_used": self._requests_used,
            "last_updated": self._quota_last_updated.isoformat() if self._quota_last_updated else None,
        }

    @provider_retry
    async def _request(self, path: str, params: Dict[str, str]) -> Any:
        client = await self._get_client()
        response = await client.get(f"{THE_ODDS_API_BASE}{path}", params=params)

        # Quota headers are present on error responses too
        self._update_quota_from_headers(response)

        response.raise_for_status()
        return response.json()

    async def _fetch_json(self, path: str, params: Dict[str, str]) -> Optional[Any]:
        """
        Fetch JSON from The Odds API.

        Returns:
            Parsed JSON, or None when the key is missing or the request fails
        """
        if not self.api_key:
            logger.error("Odds API: THE_ODDS_API_KEY is not set")
            return None

        try:
            data = await self._request(path, params)
        except httpx.HTTPStatusError as e:
            logger.error(f"Odds API error: {e.response.status_code} - {path}")
            record_provider_failure(PROVIDER, error_type(e))
            return None
        except httpx.TimeoutException:
            logger.error(f"Odds API timeout: {path}")
            record_provider_failure(PROVIDER, "timeout")
            return None
        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"Odds API fetch failed: {e} - {path}")
            record_provider_failure(PROVIDER, error_type(e))
            return None

        record_provider_success(PROVIDER)
        return data

    # Sports

    async def get_sports(self) -> Optional[List[Dict[str, Any]]]:
        """List all sports available from The Odds API."""
        return await self.cache.get_or_fetch(
            CacheKeys.odds_sports(),
            lambda: self._fetch_json("/sports/", {"apiKey": self.api_key}),
            ttl=get_cache_ttl("odds"),
        )

    # Game Odds Methods

    async def get_odds(
        self,
        sport_key: str,
        markets: Optional[str] = None,
    ) -> Optional[List[Dict[str, Any]]]:
        """
        Fetch odds for all upcoming events in a sport.

        Args:
            sport_key: Odds API sport key (e.g. 'basketball_nba')
            markets: Comma-separated market types (default: ODDS_API_MARKETS)

        Returns:
            List of events (id, home_team, away_team, commence_time, bookmakers)
            or None
        """
        today = datetime.now().strftime('%Y%m%d')
        cache_key = CacheKeys.odds(sport_key, today)
        if markets and markets != settings.ODDS_API_MARKETS:
            cache_key = f"{cache_key}:{markets}"

        return await self.cache.get_or_fetch(
            cache_key,
            lambda: self._fetch_json(f"/sports/{sport_key}/odds", self._default_params(markets)),
            ttl=get_cache_ttl("odds"),
        )

    async def get_event_odds(
        self,
        sport_key: str,
        event_id: str,
        markets: Optional[str] = None,
    ) -> Optional[Dict[str, Any]]:
        """
        Fetch odds for a single event.

        Used for detailed markets such as player props
        (e.g. markets='player_points,player_rebounds').
        """
        cache_key = CacheKeys.odds_event(sport_key, event_id)
        if markets and markets != settings.ODDS_API_MARKETS:
            cache_key = f"{cache_key}:{markets}"

        return await self.cache.get_or_fetch(
            cache_key,
            lambda: self._fetch_json(
                f"/sports/{sport_key}/events/{event_id}/odds",
                self._default_params(markets),
            ),
            ttl=get_cache_ttl("odds"),
        )


# Singleton instance
_odds_service: Optional[OddsApiService] = None


def get_odds_service() -> OddsApiService:
    """Get or create OddsApiService singleton."""
    global _odds_service
    if _odds_service is None:
        _odds_service = OddsApiService()
    return _odds_service
