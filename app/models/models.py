"""
Database models for the wager store.

Picks are created by the bet-slip feature in the ``pending`` state and
settled later, either automatically by the resolver or manually.
"""
from datetime import datetime
from enum import Enum
from sqlalchemy import Column, String, Float, Integer, DateTime, Date, Text, Index
from sqlalchemy.orm import declarative_base

Base = declarative_base()


class BetType(str, Enum):
    """Supported wager types."""
    SPREAD = "spread"
    MONEYLINE = "moneyline"
    OVER_UNDER = "over_under"
    PLAYER_PROP = "player_prop"


class PickResult(str, Enum):
    """Settlement state of a pick."""
    PENDING = "pending"
    WON = "won"
    LOST = "lost"
    PUSH = "push"


class SettlementSource(str, Enum):
    """Who settled a pick."""
    AUTO = "auto"
    MANUAL = "manual"


class Pick(Base):
    """A recorded wager awaiting or holding its settlement."""
    __tablename__ = "picks"

    id = Column(String(36), primary_key=True)

    # Game reference. game_id may be unset for manually entered picks, so the
    # free-text team names are kept as a matching fallback.
    game_id = Column(String(100), nullable=True, index=True)  # ESPN event ID
    sport = Column(String(10), nullable=True, index=True)  # 'nba', 'nfl', ...
    date = Column(Date, nullable=True, index=True)  # Game calendar date
    home_team = Column(String(255), nullable=True)
    away_team = Column(String(255), nullable=True)
    game_name = Column(String(255), nullable=True)

    # Bet details
    bet_type = Column(String(20), nullable=False, default=BetType.MONEYLINE.value)
    pick = Column(Text, nullable=False)  # "Boston Celtics -3.5", "Over 214.5"
    odds = Column(Integer, nullable=False, default=0)  # American odds (-110, +150)
    units = Column(Float, nullable=False, default=1.0)  # Stake size

    # Analysis metadata supplied when the pick was created
    confidence = Column(Float, nullable=True)
    expected_value = Column(String(50), nullable=True)
    risk_tier = Column(String(10), nullable=True)  # 'low', 'medium', 'high'
    reasoning = Column(Text, nullable=True)

    # Settlement
    result = Column(String(10), nullable=False, default=PickResult.PENDING.value, index=True)
    profit_loss = Column(Float, nullable=False, default=0.0)
    settled_by = Column(String(10), nullable=True)  # 'auto' or 'manual'
    settled_at = Column(DateTime, nullable=True)

    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    __table_args__ = (
        Index('ix_picks_sport_date', 'sport', 'date'),
    )

    def __repr__(self) -> str:
        return f"<Pick {self.id} {self.bet_type} '{self.pick}' {self.result}>"
