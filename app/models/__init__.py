"""
Models Module

Persistent models (SQLAlchemy, wager store):
- Pick, with BetType / PickResult / SettlementSource enums

Transient models (pydantic, built by the aggregator on every request):
- Game, GameDetail and their nested team, odds and injury models

Usage:
    from app.models import Pick, Game, GameStatus
"""
from app.models.models import (
    Base,
    BetType,
    Pick,
    PickResult,
    SettlementSource,
)
from app.models.game import (
    Game,
    GameDetail,
    GameInjuries,
    GameStatus,
    Injury,
    OddsView,
    Team,
    Venue,
)

__all__ = [
    "Base",
    "BetType",
    "Pick",
    "PickResult",
    "SettlementSource",
    "Game",
    "GameDetail",
    "GameInjuries",
    "GameStatus",
    "Injury",
    "OddsView",
    "Team",
    "Venue",
]
