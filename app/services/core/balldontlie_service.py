"""
BallDontLie API service for player rosters and statistics.

Covers NBA, NFL, MLB and NHL (college sports are not available). Requests
are authenticated with BALLDONTLIE_API_KEY in the Authorization header;
without a key every call returns None and no request is made.

Some endpoints (season averages, game logs, leaders) require a paid tier.
On a free-tier key they answer 401, which is treated as "no data" and only
logged at debug level.
"""
import asyncio
from datetime import datetime
from typing import Any, Dict, List, Optional

import httpx

from app.core.config import get_cache_ttl, settings
from app.core.logging import get_logger
from app.core.metrics import record_provider_failure, record_provider_success
from app.services.core.cache import CacheKeys, ResponseCache, get_cache
from app.services.core.http_retry import error_type, provider_retry
from app.utils.sport_mappings import get_bdl_prefix

logger = get_logger(__name__)

BALLDONTLIE_BASE_URL = "https://api.balldontlie.io"

PROVIDER = "balldontlie"

# Sport-specific stat keys: the primary stat ranks players, secondary stats
# are carried along when present
PLAYER_STAT_KEYS = {
    "nba": {
        "primary": "pts",
        "secondary": ["reb", "ast", "stl", "blk", "fg_pct", "fg3_pct", "ft_pct", "turnover", "min"],
    },
    "nfl": {
        "primary": "pass_yds",
        "secondary": ["pass_td", "rush_yds", "rush_td", "rec_yds", "rec_td", "sacks", "interceptions"],
    },
    "mlb": {
        "primary": "hits",
        "secondary": ["home_runs", "rbi", "batting_avg", "obp", "slg", "stolen_bases", "strikeouts", "era", "whip"],
    },
    "nhl": {
        "primary": "goals",
        "secondary": ["assists", "points", "plus_minus", "shots", "hits", "blocked_shots", "save_pct"],
    },
}

ROSTER_SCAN_LIMIT = 15


class BallDontLieService:
    """
    BallDontLie client.

    Usage:
        service = BallDontLieService()
        players = await service.get_top_players_for_team('nba', 14, limit=5)
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        cache: Optional[ResponseCache] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        timeout: Optional[float] = None,
    ):
        self.api_key = settings.BALLDONTLIE_API_KEY if api_key is None else api_key
        self.cache = cache if cache is not None else get_cache()
        self.timeout = timeout if timeout is not None else settings.BDL_TIMEOUT
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    @property
    def enabled(self) -> bool:
        return bool(self.api_key)

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=BALLDONTLIE_BASE_URL,
                timeout=httpx.Timeout(self.timeout),
                transport=self._transport,
                headers={"Authorization": self.api_key, "Accept": "application/json"},
            )
        return self._client

    async def close(self):
        """Close the HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    @provider_retry
    async def _request(self, path: str, params: Optional[Dict[str, Any]] = None) -> Any:
        client = await self._get_client()
        response = await client.get(path, params=params)
        response.raise_for_status()
        return response.json()

    async def _fetch_json(self, path: str, params: Optional[Dict[str, Any]] = None) -> Optional[Any]:
        if not self.api_key:
            return None

        try:
            data = await self._request(path, params)
        except httpx.HTTPStatusError as e:
            status = e.response.status_code
            if status == 401:
                # Paid-tier endpoint on a free key
                logger.debug(f"BallDontLie 401 (paid tier): {path}")
            elif status == 429:
                logger.warning("BallDontLie: rate limited")
            else:
                logger.error(f"BallDontLie {status}: {path}")
            record_provider_failure(PROVIDER, error_type(e))
            return None
        except httpx.TimeoutException:
            logger.error(f"BallDontLie timeout: {path}")
            record_provider_failure(PROVIDER, "timeout")
            return None
        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"BallDontLie fetch failed: {e}")
            record_provider_failure(PROVIDER, error_type(e))
            return None

        record_provider_success(PROVIDER)
        return data

    async def _cached(self, key: str, path: str, params: Optional[Dict[str, Any]] = None) -> Optional[Any]:
        return await self.cache.get_or_fetch(
            key,
            lambda: self._fetch_json(path, params),
            ttl=get_cache_ttl("bdl"),
        )

    # ==================== FREE TIER ====================

    async def get_teams(self, sport: str) -> Optional[Dict[str, Any]]:
        """Get all teams for a sport."""
        prefix = get_bdl_prefix(sport)
        if not prefix:
            return None
        return await self._cached(CacheKeys.bdl(sport, "teams"), f"{prefix}/teams")

    async def search_players(self, sport: str, name: str) -> Optional[Dict[str, Any]]:
        """
        Search players by name. Not cached.

        Returns:
            {"data": [{"id", "first_name", "last_name", "position", "team": {...}}, ...]}
        """
        prefix = get_bdl_prefix(sport)
        if not prefix:
            return None
        return await self._fetch_json(f"{prefix}/players", {"search": name, "per_page": 10})

    async def get_team_players(self, sport: str, team_id: Any) -> Optional[Dict[str, Any]]:
        """Get players on a team."""
        prefix = get_bdl_prefix(sport)
        if not prefix:
            return None
        return await self._cached(
            CacheKeys.bdl(sport, "team", team_id, "players"),
            f"{prefix}/players",
            {"team_ids[]": team_id, "per_page": 25},
        )

    async def get_team_recent_games(self, sport: str, team_id: Any, count: int = 5) -> Optional[Dict[str, Any]]:
        """Get a team's recent games in the current season."""
        prefix = get_bdl_prefix(sport)
        if not prefix:
            return None
        season = datetime.now().year
        return await self._cached(
            CacheKeys.bdl(sport, "team", team_id, "recent", count),
            f"{prefix}/games",
            {"team_ids[]": team_id, "seasons[]": season, "per_page": count},
        )

    # ==================== PAID TIER ====================

    async def get_player_stats(self, sport: str, player_id: Any, season: Optional[int] = None) -> Optional[Dict[str, Any]]:
        """Get season averages for a player."""
        prefix = get_bdl_prefix(sport)
        if not prefix:
            return None
        params: Dict[str, Any] = {"player_id": player_id}
        if season:
            params["season"] = season
        return await self._cached(
            CacheKeys.bdl(sport, "player", player_id, f"season{season or ''}"),
            f"{prefix}/season_averages/general",
            params,
        )

    async def get_player_game_log(self, sport: str, player_id: Any, last: int = 5) -> Optional[Dict[str, Any]]:
        """Get a player's most recent box scores in the current season."""
        prefix = get_bdl_prefix(sport)
        if not prefix:
            return None
        season = datetime.now().year
        return await self._cached(
            CacheKeys.bdl(sport, "player", player_id, "gamelog", last),
            f"{prefix}/stats",
            {"player_ids[]": player_id, "seasons[]": season, "per_page": last},
        )

    async def get_league_leaders(self, sport: str, stat: str, season: Optional[int] = None) -> Optional[Dict[str, Any]]:
        """Get league leaders for a stat type."""
        prefix = get_bdl_prefix(sport)
        if not prefix:
            return None
        params: Dict[str, Any] = {"stat_type": stat}
        if season:
            params["season"] = season
        return await self._cached(
            CacheKeys.bdl(sport, "leaders", stat, season or "current"),
            f"{prefix}/leaders",
            params,
        )

    # ==================== TOP PLAYERS ====================

    async def get_top_players_for_team(self, sport: str, team_id: Any, limit: int = 5) -> List[Dict[str, Any]]:
        """
        Get the top players on a team.

        Tries paid-tier season averages first and ranks by the sport's primary
        stat. On a free-tier key (no averages available) falls back to the
        first players of the roster with empty stats.

        Returns:
            List of {"id", "name", "position", "stats"} dicts, at most limit long
        """
        roster = await self.get_team_players(sport, team_id)
        players = (roster or {}).get("data") or []
        if not players:
            return []

        players = players[:ROSTER_SCAN_LIMIT]
        stats_results = await asyncio.gather(
            *(self.get_player_stats(sport, p.get("id")) for p in players)
        )
        available = [r for r in stats_results if r and r.get("data")]

        if not available:
            return [
                {
                    "id": p.get("id"),
                    "name": f"{p.get('first_name', '')} {p.get('last_name', '')}".strip(),
                    "position": p.get("position") or None,
                    "stats": {},
                }
                for p in players[:limit]
            ]

        stat_keys = PLAYER_STAT_KEYS.get(sport, PLAYER_STAT_KEYS["nba"])
        primary = stat_keys["primary"]
        by_id = {p.get("id"): p for p in players}

        enriched = []
        for result in available:
            averages = result["data"][0]
            player_id = averages.get("player_id")
            player = by_id.get(player_id, {})

            stat_line = {primary: averages.get(primary)}
            for key in stat_keys["secondary"]:
                if averages.get(key) is not None:
                    stat_line[key] = averages[key]

            if player.get("first_name") and player.get("last_name"):
                name = f"{player['first_name']} {player['last_name']}"
            else:
                name = f"Player #{player_id}"

            enriched.append({
                "id": player_id,
                "name": name,
                "position": player.get("position") or None,
                "stats": stat_line,
            })

        enriched.sort(key=lambda p: p["stats"].get(primary) or 0, reverse=True)
        return enriched[:limit]


_bdl_service: Optional[BallDontLieService] = None


def get_balldontlie_service() -> BallDontLieService:
    """Get or create BallDontLieService singleton."""
    global _bdl_service
    if _bdl_service is None:
        _bdl_service = BallDontLieService()
    return _bdl_service
