"""
Core services that work across all sports.

- cache: Shared response cache with stale fallback
- espn_service: ESPN schedule, scores, summaries, team stats, injuries
- odds_api_service: The Odds API client with quota tracking
- balldontlie_service: BallDontLie player rosters and stats
- bet_tracking_service: Wager store (picks and performance)
- http_retry: Retry policy shared by the provider clients
"""
from app.services.core.balldontlie_service import BallDontLieService, get_balldontlie_service
from app.services.core.bet_tracking_service import BetTrackingService
from app.services.core.cache import CacheKeys, ResponseCache, get_cache
from app.services.core.espn_service import ESPNApiService, get_espn_service
from app.services.core.odds_api_service import OddsApiService, get_odds_service

__all__ = [
    "BallDontLieService",
    "get_balldontlie_service",
    "BetTrackingService",
    "CacheKeys",
    "ResponseCache",
    "get_cache",
    "ESPNApiService",
    "get_espn_service",
    "OddsApiService",
    "get_odds_service",
]
