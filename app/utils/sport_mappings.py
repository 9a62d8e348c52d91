"""
Sport/league mappings for ESPN and The Odds API.

Each key is the short sport identifier used throughout the app.
- espn: ESPN {sport}/{league} URL segments
- odds_api: The Odds API sport key
- bdl: BallDontLie path prefix (None when the sport is not covered)
"""
from typing import Dict, List, Optional

SPORT_MAPPINGS: Dict[str, Dict] = {
    "nfl": {
        "espn": {"sport": "football", "league": "nfl"},
        "odds_api": "americanfootball_nfl",
        "bdl": "/nfl/v1",
        "name": "NFL",
    },
    "ncaaf": {
        "espn": {"sport": "football", "league": "college-football"},
        "odds_api": "americanfootball_ncaaf",
        "bdl": None,
        "name": "College Football",
    },
    "nba": {
        "espn": {"sport": "basketball", "league": "nba"},
        "odds_api": "basketball_nba",
        "bdl": "/v1",
        "name": "NBA",
    },
    "ncaab": {
        "espn": {"sport": "basketball", "league": "mens-college-basketball"},
        "odds_api": "basketball_ncaab",
        "bdl": None,
        "name": "College Basketball",
    },
    "mlb": {
        "espn": {"sport": "baseball", "league": "mlb"},
        "odds_api": "baseball_mlb",
        "bdl": "/mlb/v1",
        "name": "MLB",
    },
    "nhl": {
        "espn": {"sport": "hockey", "league": "nhl"},
        "odds_api": "icehockey_nhl",
        "bdl": "/nhl/v1",
        "name": "NHL",
    },
}


def get_espn_mapping(sport: str) -> Optional[Dict[str, str]]:
    """
    Look up ESPN path segments for a sport.

    Examples:
        >>> get_espn_mapping('nba')
        {'sport': 'basketball', 'league': 'nba'}
        >>> get_espn_mapping('cricket') is None
        True
    """
    mapping = SPORT_MAPPINGS.get(sport)
    return mapping["espn"] if mapping else None


def get_odds_api_key(sport: str) -> Optional[str]:
    """Look up The Odds API sport key, e.g. 'nfl' -> 'americanfootball_nfl'."""
    mapping = SPORT_MAPPINGS.get(sport)
    return mapping["odds_api"] if mapping else None


def get_bdl_prefix(sport: str) -> Optional[str]:
    """Look up the BallDontLie path prefix for a sport."""
    mapping = SPORT_MAPPINGS.get(sport)
    return mapping["bdl"] if mapping else None


def get_supported_sports() -> List[str]:
    """Get all supported sport keys."""
    return list(SPORT_MAPPINGS.keys())
