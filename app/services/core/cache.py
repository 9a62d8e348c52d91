"""
Shared response cache for provider calls.

Two tiers:
- Fresh tier: key -> (value, expires_at). Values are only returned before
  they expire.
- Stale tier: key -> last value ever stored. Never expires. Served when a
  fresh fetch fails or returns nothing.

TTL is chosen per call site (see app.core.config.get_cache_ttl): schedule
data churns every ~30 min, odds every ~15 min, team season stats hourly.

The cache is shared across concurrent aggregation calls. Access is guarded by
a lock. Two callers missing the same key may both run the underlying fetch
and both write the result.
"""
import threading
import time
from typing import Any, Awaitable, Callable, Dict, Optional, Tuple

from app.core.config import settings
from app.core.logging import get_logger
from app.core.metrics import record_cache_lookup

logger = get_logger(__name__)


class ResponseCache:
    """
    Key/value cache with per-entry expiry and a last-known-good fallback tier.

    Usage:
        cache = ResponseCache()
        data = await cache.get_or_fetch(
            CacheKeys.espn_scores('nba', '20260207'),
            lambda: espn.fetch_scoreboard(...),
            ttl=1800,
        )
    """

    def __init__(
        self,
        default_ttl: Optional[int] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Initialize the cache.

        Args:
            default_ttl: TTL in seconds used when set() is called without one
                         (default: ESPN_CACHE_TTL)
            clock: Monotonic time source, overridable in tests
        """
        self.default_ttl = default_ttl if default_ttl is not None else settings.ESPN_CACHE_TTL
        self._clock = clock
        self._entries: Dict[str, Tuple[Any, float]] = {}
        self._stale: Dict[str, Any] = {}
        self._lock = threading.Lock()
        self._hits = 0
        self._misses = 0

    def get(self, key: str) -> Optional[Any]:
        """Return the value for key if it has not expired, else None."""
        with self._lock:
            entry = self._entries.get(key)
            if entry is not None:
                value, expires_at = entry
                if self._clock() < expires_at:
                    self._hits += 1
                    record_cache_lookup("hit")
                    return value
                del self._entries[key]
            self._misses += 1
        record_cache_lookup("miss")
        return None

    def get_stale(self, key: str) -> Optional[Any]:
        """Return the last value stored for key, regardless of expiry."""
        with self._lock:
            return self._stale.get(key)

    def set(self, key: str, value: Any, ttl: Optional[int] = None) -> None:
        """
        Store value under key.

        The stale tier is always overwritten; it has no TTL of its own.
        """
        ttl = self.default_ttl if ttl is None else ttl
        with self._lock:
            self._entries[key] = (value, self._clock() + ttl)
            self._stale[key] = value

    async def get_or_fetch(
        self,
        key: str,
        compute_fn: Callable[[], Awaitable[Any]],
        ttl: Optional[int] = None,
    ) -> Optional[Any]:
        """
        Return the cached value for key, computing it on a miss.

        On a miss compute_fn is awaited. A non-None result is stored in both
        tiers and returned. If compute_fn raises or returns None, the stale
        value for key is returned when one exists, otherwise None.

        Failures of compute_fn are logged and never propagated.

        Args:
            key: Cache key (see CacheKeys)
            compute_fn: Zero-argument coroutine function performing the fetch
            ttl: TTL override in seconds

        Returns:
            Fresh, computed or stale value, or None if nothing is available
        """
        cached = self.get(key)
        if cached is not None:
            return cached

        try:
            data = await compute_fn()
            if data is not None:
                self.set(key, data, ttl)
                return data
        except Exception as e:
            logger.warning(f"Cache get_or_fetch failed for {key}: {e}")

        stale = self.get_stale(key)
        if stale is not None:
            logger.info(f"Using stale cache for {key}")
            record_cache_lookup("stale")
            return stale

        return None

    def delete(self, key: str) -> None:
        """Drop key from the fresh tier. The stale value is kept."""
        with self._lock:
            self._entries.pop(key, None)

    def stats(self) -> Dict[str, Any]:
        """
        Cache hit/miss stats for monitoring.

        Returns:
            Dict with hits, misses, keys (unexpired entries) and hit_rate
            formatted as a percentage string, e.g. "66.7%"
        """
        with self._lock:
            now = self._clock()
            live_keys = sum(1 for _, expires_at in self._entries.values() if now < expires_at)
            hits = self._hits
            misses = self._misses

        total = hits + misses
        return {
            "hits": hits,
            "misses": misses,
            "keys": live_keys,
            "hit_rate": "0%" if total == 0 else f"{hits / total * 100:.1f}%",
        }

    def flush(self) -> None:
        """Clear both tiers and reset counters."""
        with self._lock:
            self._entries.clear()
            self._stale.clear()
            self._hits = 0
            self._misses = 0


class CacheKeys:
    """Cache key builders, one per provider call."""

    @staticmethod
    def espn_scores(league: str, date: str) -> str:
        return f"espn:{league}:scores:{date}"

    @staticmethod
    def espn_team_stats(league: str, team_id: str) -> str:
        return f"espn:{league}:team:{team_id}:stats"

    @staticmethod
    def espn_game_summary(league: str, game_id: str) -> str:
        return f"espn:{league}:game:{game_id}:summary"

    @staticmethod
    def espn_standings(league: str) -> str:
        return f"espn:{league}:standings"

    @staticmethod
    def espn_injuries(league: str) -> str:
        return f"espn:{league}:injuries"

    @staticmethod
    def odds(sport_key: str, date: str) -> str:
        return f"odds:{sport_key}:{date}"

    @staticmethod
    def odds_event(sport_key: str, event_id: str) -> str:
        return f"odds:{sport_key}:event:{event_id}"

    @staticmethod
    def odds_sports() -> str:
        return "odds:sports"

    @staticmethod
    def bdl(sport: str, *parts: Any) -> str:
        suffix = ":".join(str(p) for p in parts)
        return f"bdl:{sport}:{suffix}" if suffix else f"bdl:{sport}"


_cache: Optional[ResponseCache] = None


def get_cache() -> ResponseCache:
    """Get the process-wide shared cache instance."""
    global _cache
    if _cache is None:
        _cache = ResponseCache()
    return _cache
