"""Shared pytest fixtures for aggregation and settlement tests."""
import sys
import uuid
from pathlib import Path
from datetime import datetime, date
from typing import Generator, Optional
from unittest.mock import AsyncMock

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session

# Add project root to Python path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))


class FakeClock:
    """Manually advanced monotonic clock for cache expiry tests."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float):
        self.now += seconds


@pytest.fixture(scope="function")
def db_session() -> Generator[Session, None, None]:
    """Create fresh test database session with isolated in-memory database."""
    from app.models.models import Base

    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False}
    )
    Base.metadata.create_all(bind=engine)

    TestSessionLocal = sessionmaker(bind=engine)
    session = TestSessionLocal()

    yield session

    session.close()
    engine.dispose()


@pytest.fixture
def store(db_session: Session):
    """Wager store backed by the in-memory database."""
    from app.services.core.bet_tracking_service import BetTrackingService
    return BetTrackingService(db_session)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def cache(clock: FakeClock):
    """Isolated response cache with a controllable clock."""
    from app.services.core.cache import ResponseCache
    return ResponseCache(default_ttl=60, clock=clock)


@pytest.fixture
def espn():
    """ESPN client fake: every endpoint returns None unless a test sets it."""
    service = AsyncMock()
    service.get_scoreboard.return_value = None
    service.get_injuries.return_value = None
    service.get_game_summary.return_value = None
    service.get_team_stats.return_value = None
    return service


@pytest.fixture
def odds():
    """Odds client fake returning no events."""
    service = AsyncMock()
    service.get_odds.return_value = None
    return service


@pytest.fixture
def players():
    """Player-stats client fake returning no players."""
    service = AsyncMock()
    service.search_players.return_value = None
    service.get_top_players_for_team.return_value = []
    return service


@pytest.fixture
def aggregator(espn, odds, players, cache):
    from app.services.aggregator_service import GameAggregator
    return GameAggregator(espn=espn, odds=odds, players=players, cache=cache)


def make_competitor(
    team_id: str,
    name: str,
    home_away: str,
    score: Optional[str] = None,
    records: Optional[dict] = None,
) -> dict:
    """Build an ESPN scoreboard competitor entry."""
    return {
        "id": team_id,
        "homeAway": home_away,
        "score": score,
        "team": {
            "id": team_id,
            "displayName": name,
            "shortDisplayName": name.split()[-1],
            "abbreviation": name[:3].upper(),
        },
        "records": [
            {"type": t, "summary": s} for t, s in (records or {}).items()
        ],
    }


def make_event(
    event_id: str,
    home: str,
    away: str,
    home_score: Optional[str] = None,
    away_score: Optional[str] = None,
    state: str = "pre",
    completed: bool = False,
    home_id: str = "1",
    away_id: str = "2",
) -> dict:
    """Build an ESPN scoreboard event.

    Usage:
        event = make_event('401', 'Boston Celtics', 'Miami Heat', '110', '100',
                           state='post', completed=True)
    """
    return {
        "id": event_id,
        "date": "2026-02-08T00:30Z",
        "name": f"{away} at {home}",
        "shortName": f"{away[:3].upper()} @ {home[:3].upper()}",
        "competitions": [{
            "status": {
                "displayClock": "0:00",
                "period": 4,
                "type": {"state": state, "completed": completed, "description": "Final" if completed else "Scheduled"},
            },
            "competitors": [
                make_competitor(home_id, home, "home", home_score),
                make_competitor(away_id, away, "away", away_score),
            ],
        }],
    }


def make_odds_event(event_id: str, home: str, away: str, bookmakers: Optional[list] = None) -> dict:
    """Build a The Odds API event."""
    return {
        "id": event_id,
        "sport_key": "basketball_nba",
        "commence_time": "2026-02-08T00:30:00Z",
        "home_team": home,
        "away_team": away,
        "bookmakers": bookmakers or [],
    }


def create_pick(store, **kwargs):
    """Helper to save a pick with sensible defaults.

    Usage:
        pick = create_pick(store, pick='Boston Celtics -3.5', bet_type='spread')
    """
    defaults = {
        'pick': 'Boston Celtics',
        'odds': -110,
        'bet_type': 'moneyline',
        'units': 1.0,
        'game_id': None,
        'sport': 'nba',
        'date': date(2026, 2, 7),
        'home_team': 'Boston Celtics',
        'away_team': 'Miami Heat',
    }
    defaults.update(kwargs)
    return store.save_pick(**defaults)
