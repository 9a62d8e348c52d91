"""
Application configuration with environment-specific secrets management.

Supported environment files (loaded in order of precedence):
1. .env.{ENVIRONMENT} (e.g., .env.production, .env.development)
2. .env (fallback)

Provider secrets:
- THE_ODDS_API_KEY (odds are omitted from games when unset)
- BALLDONTLIE_API_KEY (player stats are omitted from game detail when unset)
"""
import os
import logging
from pathlib import Path
from typing import Optional, Literal
from pydantic_settings import BaseSettings
from pydantic import ConfigDict

# Get the project root directory (3 levels up from this file)
PROJECT_ROOT = Path(__file__).parent.parent.parent

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    """Application settings with environment-specific configuration."""

    # Environment
    ENVIRONMENT: Literal["development", "production", "test"] = "development"

    model_config = ConfigDict(
        env_file=str(PROJECT_ROOT / ".env"),
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore"  # Allow extra fields from .env
    )

    # Application
    APP_NAME: str = "Game Aggregation and Pick Settlement Service"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False

    # Wager store
    DATABASE_URL: str = os.getenv("DATABASE_URL", f"sqlite:///{PROJECT_ROOT / 'picks.db'}")

    # The Odds API
    THE_ODDS_API_KEY: str = ""
    ODDS_API_REGIONS: str = "us"  # us, uk, eu, au
    ODDS_API_MARKETS: str = "h2h,spreads,totals"
    ODDS_API_FORMAT: str = "american"
    ODDS_API_QUOTA_WARNING: int = 50  # Warn when fewer requests remain
    ODDS_API_TIMEOUT: float = 10.0

    # ESPN (public, no key)
    ESPN_TIMEOUT: float = 10.0

    # BallDontLie
    BALLDONTLIE_API_KEY: str = ""
    BDL_TIMEOUT: float = 10.0

    # Cache TTLs in seconds, one per data class
    ESPN_CACHE_TTL: int = 1800        # 30 min - scores, scoreboard, standings, injuries
    ESPN_STATS_CACHE_TTL: int = 3600  # 60 min - team season stats
    ODDS_CACHE_TTL: int = 900         # 15 min - odds
    BDL_CACHE_TTL: int = 3600         # 60 min - player stats

    # Resolver sweep
    RESOLVER_INTERVAL_MINUTES: int = 30
    SCHEDULER_TIMEZONE: str = "America/New_York"

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_JSON: bool = False

    # Prometheus exposition port for the scheduler process (0 = disabled)
    METRICS_PORT: int = 0

    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.ENVIRONMENT == "production"

    def is_development(self) -> bool:
        """Check if running in development environment."""
        return self.ENVIRONMENT == "development"

    def validate_required_secrets(self) -> list[str]:
        """
        Validate that provider secrets are set.

        Missing secrets are not fatal: the matching provider is skipped and
        the aggregated games simply carry less data.

        Returns:
            List of missing secret names (empty if all present)
        """
        missing = []

        if not self.THE_ODDS_API_KEY:
            missing.append("THE_ODDS_API_KEY")

        if not self.BALLDONTLIE_API_KEY:
            missing.append("BALLDONTLIE_API_KEY")

        return missing


def _load_env_file() -> Path:
    """
    Load the appropriate environment file based on ENVIRONMENT variable.

    Loads in order of precedence:
    1. .env.{ENVIRONMENT} (e.g., .env.production, .env.development)
    2. .env (fallback)
    """
    environment = os.getenv("ENVIRONMENT", "development")

    # Try environment-specific file first
    env_file = PROJECT_ROOT / f".env.{environment}"
    if env_file.exists():
        logger.info(f"Loading environment from {env_file.name}")
        return env_file

    # Fall back to default .env
    default_env = PROJECT_ROOT / ".env"
    if default_env.exists():
        logger.info(f"Loading environment from .env (environment: {environment})")
        return default_env

    logger.debug(f"No environment file found for '{environment}' (checked .env.{environment}, .env)")
    return default_env


# Auto-detect and load environment file
_env_file = _load_env_file()


# Create settings instance with auto-detected env file
class _SettingsWithEnvFile(Settings):
    model_config = ConfigDict(
        env_file=str(_env_file),
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore"
    )


settings = _SettingsWithEnvFile()


def get_cache_ttl(data_class: str, default_ttl: Optional[int] = None) -> int:
    """
    Get the cache TTL for a class of provider data.

    Freshness requirements differ by data class, so the TTL is chosen per
    call site rather than once for the whole cache.

    Args:
        data_class: One of 'espn', 'espn_stats', 'odds', 'bdl'
        default_ttl: Fallback TTL if the data class is not recognized

    Returns:
        Cache TTL in seconds

    Examples:
        >>> get_cache_ttl('odds')
        900
        >>> get_cache_ttl('espn_stats')
        3600
    """
    ttls = {
        "espn": settings.ESPN_CACHE_TTL,
        "espn_stats": settings.ESPN_STATS_CACHE_TTL,
        "odds": settings.ODDS_CACHE_TTL,
        "bdl": settings.BDL_CACHE_TTL,
    }
    if default_ttl is None:
        default_ttl = settings.ESPN_CACHE_TTL
    return ttls.get(data_class, default_ttl)


# Report missing provider secrets on startup
missing_secrets = settings.validate_required_secrets()
if missing_secrets:
    logger.warning(
        f"Missing provider secrets for {settings.ENVIRONMENT}: {', '.join(missing_secrets)} "
        f"- the matching providers will be skipped"
    )
