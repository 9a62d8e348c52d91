"""
ESPN API service for schedules, scores, team stats and injuries.

ESPN is the PRIMARY source for the game list: every game shown for a date
originates from an ESPN scoreboard event. Other providers only enrich it.

ESPN API Endpoints:
- Base URL: https://site.api.espn.com/apis/site/v2/sports/{sport}/{league}/
- Summary URL: https://site.web.api.espn.com/apis/site/v2/sports/{sport}/{league}/summary
  (game summaries are only served from the site.web host)
- Documentation: Unofficial, community-maintained

Rate Limits: No official limits, but be respectful

All public methods return the raw ESPN JSON payload, or None when the request
fails. Failures are logged and never raised.
"""
from typing import Any, Dict, Optional

import httpx

from app.core.config import get_cache_ttl, settings
from app.core.logging import get_logger
from app.core.metrics import record_provider_failure, record_provider_success
from app.services.core.cache import CacheKeys, ResponseCache, get_cache
from app.services.core.http_retry import error_type, provider_retry

logger = get_logger(__name__)

# ESPN API base URLs
ESPN_BASE_URL = "https://site.api.espn.com/apis/site/v2/sports"
ESPN_SUMMARY_BASE_URL = "https://site.web.api.espn.com/apis/site/v2/sports"

PROVIDER = "espn"


class ESPNApiService:
    """
    ESPN API service for fetching sports data.

    Every endpoint is read through the shared ResponseCache, so a failed
    request falls back to the last good payload for the same key.

    Usage:
        service = ESPNApiService()
        scoreboard = await service.get_scoreboard('basketball', 'nba', '20260207')
        summary = await service.get_game_summary('basketball', 'nba', '401584793')
    """

    def __init__(
        self,
        cache: Optional[ResponseCache] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        timeout: Optional[float] = None,
    ):
        """
        Initialize ESPN API service.

        Args:
            cache: Response cache (default: process-wide shared cache)
            transport: Optional httpx transport, used by tests
            timeout: Request timeout in seconds (default: ESPN_TIMEOUT)
        """
        self.cache = cache if cache is not None else get_cache()
        self.timeout = timeout if timeout is not None else settings.ESPN_TIMEOUT
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            limits = httpx.Limits(max_keepalive_connections=5, max_connections=10)
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self.timeout),
                limits=limits,
                transport=self._transport,
                headers={
                    "User-Agent": "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7)",
                    "Accept": "application/json",
                }
            )
        return self._client

    async def close(self):
        """Close the HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    @provider_retry
    async def _request(self, url: str, params: Optional[Dict[str, Any]] = None) -> Any:
        client = await self._get_client()
        response = await client.get(url, params=params)
        response.raise_for_status()
        return response.json()

    async def _fetch_json(self, url: str, params: Optional[Dict[str, Any]] = None) -> Optional[Any]:
        """
        Fetch JSON from ESPN.

        Returns:
            Parsed JSON, or None on HTTP error, timeout or invalid body
        """
        try:
            data = await self._request(url, params)
        except httpx.HTTPStatusError as e:
            logger.error(f"ESPN API error: {e.response.status_code} - {url}")
            record_provider_failure(PROVIDER, error_type(e))
            return None
        except httpx.TimeoutException:
            logger.error(f"ESPN timeout: {url}")
            record_provider_failure(PROVIDER, "timeout")
            return None
        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"ESPN fetch failed: {e} - {url}")
            record_provider_failure(PROVIDER, error_type(e))
            return None

        record_provider_success(PROVIDER)
        return data

    # ==================== SCOREBOARD ====================

    async def get_scoreboard(self, sport: str, league: str, date: str) -> Optional[Dict[str, Any]]:
        """
        Fetch the scoreboard (list of games) for a date.

        Args:
            sport: ESPN sport segment (e.g. 'basketball')
            league: ESPN league segment (e.g. 'nba')
            date: Date in YYYYMMDD format

        Returns:
            Scoreboard payload with an 'events' list, or None
        """
        url = f"{ESPN_BASE_URL}/{sport}/{league}/scoreboard"
        return await self.cache.get_or_fetch(
            CacheKeys.espn_scores(league, date),
            lambda: self._fetch_json(url, {"dates": date}),
            ttl=get_cache_ttl("espn"),
        )

    # ==================== TEAMS ====================

    async def get_team_stats(self, sport: str, league: str, team_id: str) -> Optional[Dict[str, Any]]:
        """
        Fetch season statistics for a team.

        Cached longer than scores since season totals move slowly.
        """
        url = f"{ESPN_BASE_URL}/{sport}/{league}/teams/{team_id}/statistics"
        return await self.cache.get_or_fetch(
            CacheKeys.espn_team_stats(league, team_id),
            lambda: self._fetch_json(url),
            ttl=get_cache_ttl("espn_stats"),
        )

    # ==================== GAMES ====================

    async def get_game_summary(self, sport: str, league: str, event_id: str) -> Optional[Dict[str, Any]]:
        """
        Fetch a detailed game summary (boxscore, leaders, injuries).

        Uses the site.web.api.espn.com host, which is required for summaries.
        """
        url = f"{ESPN_SUMMARY_BASE_URL}/{sport}/{league}/summary"
        return await self.cache.get_or_fetch(
            CacheKeys.espn_game_summary(league, event_id),
            lambda: self._fetch_json(url, {"event": event_id}),
            ttl=get_cache_ttl("espn"),
        )

    # ==================== LEAGUE ====================

    async def get_standings(self, sport: str, league: str) -> Optional[Dict[str, Any]]:
        """Fetch current standings for a league."""
        url = f"{ESPN_BASE_URL}/{sport}/{league}/standings"
        return await self.cache.get_or_fetch(
            CacheKeys.espn_standings(league),
            lambda: self._fetch_json(url),
            ttl=get_cache_ttl("espn"),
        )

    async def get_injuries(self, sport: str, league: str) -> Optional[Any]:
        """
        Fetch the league-wide injury report.

        ESPN returns {"injuries": [{"id", "displayName", "injuries": [...]}, ...]},
        one entry per team.
        """
        url = f"{ESPN_BASE_URL}/{sport}/{league}/injuries"
        return await self.cache.get_or_fetch(
            CacheKeys.espn_injuries(league),
            lambda: self._fetch_json(url),
            ttl=get_cache_ttl("espn"),
        )


_espn_service: Optional[ESPNApiService] = None


def get_espn_service() -> ESPNApiService:
    """Get or create ESPNApiService singleton."""
    global _espn_service
    if _espn_service is None:
        _espn_service = ESPNApiService()
    return _espn_service
