"""
Unified game models produced by the aggregator.

These are transient: they are rebuilt from provider payloads on every
request and never persisted.
"""
from datetime import date, datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class GameStatus(str, Enum):
    """Simplified game status."""
    SCHEDULED = "scheduled"
    IN_PROGRESS = "in_progress"
    FINAL = "final"
    POSTPONED = "postponed"  # Postponed, canceled, suspended
    UNKNOWN = "unknown"


class Venue(BaseModel):
    """Game venue."""
    name: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    capacity: Optional[int] = None


class Team(BaseModel):
    """One side of a game as reported by the schedule provider."""
    id: Optional[str] = None  # ESPN team ID
    name: str = ""  # displayName, e.g. "Boston Celtics"
    short_name: Optional[str] = None  # shortDisplayName, e.g. "Celtics"
    abbreviation: Optional[str] = None
    logo: Optional[str] = None
    home_away: Optional[str] = None  # 'home' or 'away'
    score: Optional[str] = None  # Raw provider score, None until the game starts
    winner: Optional[bool] = None
    record: Optional[str] = None  # Overall record, e.g. "30-12"
    home_record: Optional[str] = None
    away_record: Optional[str] = None
    stats: Dict[str, Any] = Field(default_factory=dict)  # Inline per-game stats

    @property
    def score_value(self) -> Optional[int]:
        """Score as an integer, or None if it is missing or not a whole number."""
        if self.score is None:
            return None
        try:
            return int(str(self.score).strip())
        except ValueError:
            return None


class Injury(BaseModel):
    """Injury report entry for one player."""
    name: Optional[str] = None
    position: Optional[str] = None
    status: Optional[str] = None  # 'Out', 'Questionable', 'Day-To-Day', ...
    description: Optional[str] = None


class GameInjuries(BaseModel):
    """Injury lists for both participating teams."""
    home: List[Injury] = Field(default_factory=list)
    away: List[Injury] = Field(default_factory=list)


class MarketOutcome(BaseModel):
    """Single bookmaker quote within a market."""
    name: str
    price: Optional[int] = None  # American odds
    point: Optional[float] = None  # Spread or total line


class BookmakerOdds(BaseModel):
    """All markets quoted by one bookmaker, keyed by market key (h2h, spreads, totals)."""
    key: Optional[str] = None
    title: Optional[str] = None
    markets: Dict[str, List[MarketOutcome]] = Field(default_factory=dict)


class MoneylineOutcome(BaseModel):
    team: str
    price: Optional[int] = None
    implied_probability: Optional[float] = None


class SpreadOutcome(BaseModel):
    team: str
    point: Optional[float] = None
    price: Optional[int] = None


class TotalOutcome(BaseModel):
    label: str  # 'Over' or 'Under'
    point: Optional[float] = None
    price: Optional[int] = None


class ConsensusOdds(BaseModel):
    """One representative line per market, taken from the primary bookmaker."""
    moneyline: List[MoneylineOutcome] = Field(default_factory=list)
    spread: List[SpreadOutcome] = Field(default_factory=list)
    total: List[TotalOutcome] = Field(default_factory=list)


class BestPrice(BaseModel):
    """Best available price for one outcome across bookmakers."""
    market: str
    outcome: str
    bookmaker: Optional[str] = None
    price: int
    point: Optional[float] = None


class OddsView(BaseModel):
    """Odds attached to a game after matching it to an odds provider event."""
    event_id: Optional[str] = None
    consensus: ConsensusOdds = Field(default_factory=ConsensusOdds)
    bookmakers: List[BookmakerOdds] = Field(default_factory=list)
    best_prices: List[BestPrice] = Field(default_factory=list)


class Game(BaseModel):
    """Unified per-game record built from schedule, odds and injury providers."""
    id: str  # ESPN event ID
    sport: str
    date: date
    start_time: Optional[datetime] = None
    name: Optional[str] = None
    short_name: Optional[str] = None
    status: GameStatus = GameStatus.UNKNOWN
    status_detail: Optional[str] = None
    clock: Optional[str] = None
    period: Optional[int] = None
    venue: Optional[Venue] = None
    home: Team
    away: Team
    odds: Optional[OddsView] = None
    injuries: GameInjuries = Field(default_factory=GameInjuries)

    @property
    def is_final(self) -> bool:
        return self.status == GameStatus.FINAL


class SeasonStat(BaseModel):
    value: Optional[float] = None
    display_value: Optional[str] = None
    rank: Optional[int] = None


class DetailTeam(BaseModel):
    """Team block of a game detail, with season-level statistics."""
    id: Optional[str] = None
    name: str = ""
    short_name: Optional[str] = None
    abbreviation: Optional[str] = None
    logo: Optional[str] = None
    record: Optional[str] = None
    score: Optional[str] = None
    season_stats: Dict[str, SeasonStat] = Field(default_factory=dict)


class PlayerSummary(BaseModel):
    """Top player of a team with a sport-specific stat line."""
    id: Optional[int] = None
    name: str
    position: Optional[str] = None
    stats: Dict[str, Any] = Field(default_factory=dict)


class Leader(BaseModel):
    name: Optional[str] = None
    team: Optional[str] = None
    value: Optional[str] = None


class LeaderCategory(BaseModel):
    category: Optional[str] = None
    leaders: List[Leader] = Field(default_factory=list)


class GameDetail(BaseModel):
    """Enriched single-game view."""
    id: str
    sport: str
    start_time: Optional[datetime] = None
    name: Optional[str] = None
    status: GameStatus = GameStatus.UNKNOWN
    status_detail: Optional[str] = None
    venue: Optional[Venue] = None
    home: DetailTeam
    away: DetailTeam
    home_players: List[PlayerSummary] = Field(default_factory=list)
    away_players: List[PlayerSummary] = Field(default_factory=list)
    injuries: GameInjuries = Field(default_factory=GameInjuries)
    leaders: List[LeaderCategory] = Field(default_factory=list)
    boxscore: Optional[Dict[str, Any]] = None
