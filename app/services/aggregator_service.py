"""Game aggregator: one unified game list per (sport, date).

This aggregator coordinates:
- Schedule, odds and injury fetching (concurrently, failures isolated)
- Odds-to-game matching via match_odds_to_games
- Merging provider payloads into Game / GameDetail models

Provider roles:
- ESPN scoreboard: the game list itself (PRIMARY, required)
- The Odds API: odds view per game (optional, matched by team names)
- ESPN injuries: injury lists per team (optional)
- ESPN team stats / game summary: detail view only
- BallDontLie: top players per team, detail view only

Any provider except the schedule may fail without affecting the result
beyond the missing field. If the schedule fails, the last good scoreboard
for the same (league, date) is used when one was ever cached.
"""
import asyncio
import logging
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Awaitable, Dict, List, Optional, Tuple, Union

from app.core.config import get_cache_ttl
from app.models.game import (
    BestPrice,
    BookmakerOdds,
    ConsensusOdds,
    DetailTeam,
    Game,
    GameDetail,
    GameInjuries,
    GameStatus,
    Injury,
    Leader,
    LeaderCategory,
    MarketOutcome,
    MoneylineOutcome,
    OddsView,
    PlayerSummary,
    SeasonStat,
    SpreadOutcome,
    Team,
    TotalOutcome,
    Venue,
)
from app.services.core.balldontlie_service import BallDontLieService, get_balldontlie_service
from app.services.core.cache import CacheKeys, ResponseCache, get_cache
from app.services.core.espn_service import ESPNApiService, get_espn_service
from app.services.core.odds_api_service import OddsApiService, get_odds_service
from app.services.sync.matchers.game_matcher import match_odds_to_games
from app.services.sync.utils.name_normalizer import SCORE_LAST_TOKEN, name_score, normalize
from app.utils.odds import best_odds, implied_probability
from app.utils.sport_mappings import SPORT_MAPPINGS

logger = logging.getLogger(__name__)

TOP_PLAYERS_PER_TEAM = 5


@dataclass
class FetchOutcome:
    """Result of one provider call in a fan-out: a value or the error that replaced it."""
    ok: bool
    value: Any = None
    error: Optional[BaseException] = None

    @property
    def data(self) -> Any:
        return self.value if self.ok else None


async def gather_settled(*calls: Awaitable[Any]) -> List[FetchOutcome]:
    """
    Run provider calls concurrently and collect every outcome.

    A failing call never cancels or hides its siblings.
    """
    results = await asyncio.gather(*calls, return_exceptions=True)
    outcomes = []
    for result in results:
        if isinstance(result, BaseException):
            outcomes.append(FetchOutcome(ok=False, error=result))
        else:
            outcomes.append(FetchOutcome(ok=True, value=result))
    return outcomes


# ==================== EXTRACTION HELPERS ====================

def _to_float(value: Any) -> Optional[float]:
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _to_int(value: Any) -> Optional[int]:
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def _to_str(value: Any) -> Optional[str]:
    if value is None or value == "":
        return None
    return str(value)


def parse_start_time(value: Optional[str]) -> Optional[datetime]:
    """Parse an ESPN timestamp such as '2026-02-08T00:30Z'."""
    if not value:
        return None
    try:
        return datetime.fromisoformat(value.replace('Z', '+00:00'))
    except ValueError:
        return None


def parse_game_status(status: Optional[Dict[str, Any]]) -> GameStatus:
    """
    Map an ESPN status block to GameStatus.

    ESPN reports status.type.state as 'pre', 'in' or 'post'. A 'post' game
    that is not completed was postponed, canceled or suspended.
    """
    status_type = (status or {}).get("type") or {}
    state = status_type.get("state")

    if state == "pre":
        return GameStatus.SCHEDULED
    if state == "in":
        return GameStatus.IN_PROGRESS
    if state == "post":
        return GameStatus.FINAL if status_type.get("completed") else GameStatus.POSTPONED
    return GameStatus.UNKNOWN


def _split_competitors(competition: Dict[str, Any]) -> Tuple[Optional[Dict], Optional[Dict]]:
    competitors = competition.get("competitors") or []
    home = next((c for c in competitors if c.get("homeAway") == "home"), None)
    away = next((c for c in competitors if c.get("homeAway") == "away"), None)
    return home, away


def extract_team(competitor: Dict[str, Any]) -> Team:
    """Build a Team from an ESPN scoreboard competitor entry."""
    team = competitor.get("team") or {}
    records = {r.get("type"): r.get("summary") for r in competitor.get("records") or []}

    return Team(
        id=_to_str(team.get("id") or competitor.get("id")),
        name=team.get("displayName") or team.get("name") or "",
        short_name=team.get("shortDisplayName"),
        abbreviation=team.get("abbreviation"),
        logo=team.get("logo"),
        home_away=competitor.get("homeAway"),
        score=_to_str(competitor.get("score")),
        winner=competitor.get("winner"),
        record=records.get("total"),
        home_record=records.get("home"),
        away_record=records.get("road"),
        stats=extract_inline_stats(competitor),
    )


def extract_inline_stats(competitor: Dict[str, Any]) -> Dict[str, Any]:
    """Per-game stats attached to a scoreboard competitor (name -> display value)."""
    return {
        s.get("name"): s.get("displayValue")
        for s in competitor.get("statistics") or []
        if s.get("name")
    }


def extract_venue(venue: Optional[Dict[str, Any]]) -> Optional[Venue]:
    if not venue:
        return None
    address = venue.get("address") or {}
    return Venue(
        name=venue.get("fullName") or venue.get("name"),
        city=address.get("city"),
        state=address.get("state"),
        capacity=_to_int(venue.get("capacity")),
    )


def extract_odds(odds_event: Optional[Dict[str, Any]]) -> Optional[OddsView]:
    """
    Build the odds view of a matched odds event.

    - consensus: the first bookmaker's h2h, spreads and totals markets
    - bookmakers: every bookmaker's markets, keyed by market key
    - best_prices: best price per (market, outcome) across bookmakers

    Returns None when the event has no bookmakers.
    """
    if not odds_event or not odds_event.get("bookmakers"):
        return None

    bookmakers = []
    for bm in odds_event["bookmakers"]:
        markets = {}
        for market in bm.get("markets") or []:
            markets[market.get("key")] = [
                MarketOutcome(
                    name=o.get("name") or "",
                    price=_to_int(o.get("price")),
                    point=_to_float(o.get("point")),
                )
                for o in market.get("outcomes") or []
            ]
        bookmakers.append(BookmakerOdds(key=bm.get("key"), title=bm.get("title"), markets=markets))

    primary = bookmakers[0].markets
    consensus = ConsensusOdds(
        moneyline=[
            MoneylineOutcome(
                team=o.name,
                price=o.price,
                implied_probability=_round(implied_probability(o.price), 4),
            )
            for o in primary.get("h2h", [])
        ],
        spread=[SpreadOutcome(team=o.name, point=o.point, price=o.price) for o in primary.get("spreads", [])],
        total=[TotalOutcome(label=o.name, point=o.point, price=o.price) for o in primary.get("totals", [])],
    )

    return OddsView(
        event_id=odds_event.get("id"),
        consensus=consensus,
        bookmakers=bookmakers,
        best_prices=extract_best_prices(bookmakers),
    )


def _round(value: Optional[float], digits: int) -> Optional[float]:
    return round(value, digits) if value is not None else None


def extract_best_prices(bookmakers: List[BookmakerOdds]) -> List[BestPrice]:
    """Line shopping: the best price quoted for each outcome of each market."""
    quotes: Dict[Tuple[str, str], List[Tuple[BookmakerOdds, MarketOutcome]]] = {}
    for bm in bookmakers:
        for market_key, outcomes in bm.markets.items():
            for outcome in outcomes:
                quotes.setdefault((market_key, outcome.name), []).append((bm, outcome))

    best_prices = []
    for (market_key, outcome_name), entries in quotes.items():
        best = best_odds((bm.key, o.price) for bm, o in entries)
        if best is None:
            continue
        bm, outcome = next((b, o) for b, o in entries if b.key == best[0] and o.price == best[1])
        best_prices.append(BestPrice(
            market=market_key,
            outcome=outcome_name,
            bookmaker=bm.key,
            price=outcome.price,
            point=outcome.point,
        ))
    return best_prices


def _injury_entries(injury_data: Any) -> List[Dict[str, Any]]:
    if isinstance(injury_data, dict):
        return injury_data.get("injuries") or []
    if isinstance(injury_data, list):
        return injury_data
    return []


def extract_injuries_for_teams(injury_data: Any, team_ids: List[str]) -> Dict[str, List[Injury]]:
    """
    Pick the injury lists of the given teams out of the league-wide report.

    Returns:
        Dict of team ID -> injuries (teams without entries are absent)
    """
    wanted = {str(t) for t in team_ids if t}
    result: Dict[str, List[Injury]] = {}

    for entry in _injury_entries(injury_data):
        team_id = (entry.get("team") or {}).get("id") or entry.get("id")
        if team_id is None or str(team_id) not in wanted:
            continue

        injuries = []
        for inj in entry.get("injuries") or []:
            athlete = inj.get("athlete") or {}
            injuries.append(Injury(
                name=athlete.get("displayName"),
                position=(athlete.get("position") or {}).get("abbreviation"),
                status=inj.get("status"),
                description=(
                    (inj.get("type") or {}).get("description")
                    or (inj.get("details") or {}).get("detail")
                    or inj.get("shortComment")
                ),
            ))
        result[str(team_id)] = injuries

    return result


def parse_season_stats(stats_data: Optional[Dict[str, Any]]) -> Dict[str, SeasonStat]:
    """Flatten ESPN team statistics categories into name -> SeasonStat."""
    if not stats_data:
        return {}
    categories = (
        ((stats_data.get("results") or {}).get("stats") or {}).get("categories")
        or (((stats_data.get("statistics") or {}).get("splits")) or {}).get("categories")
        or []
    )

    flat = {}
    for category in categories:
        for stat in category.get("stats") or []:
            if not stat.get("name"):
                continue
            flat[stat["name"]] = SeasonStat(
                value=_to_float(stat.get("value")),
                display_value=_to_str(stat.get("displayValue")),
                rank=_to_int(stat.get("rank")),
            )
    return flat


def _leader_category(category: Dict[str, Any], team_abbr: Optional[str] = None) -> LeaderCategory:
    leaders = []
    for leader in category.get("leaders") or []:
        athlete = leader.get("athlete") or {}
        leaders.append(Leader(
            name=athlete.get("displayName"),
            team=(athlete.get("team") or {}).get("abbreviation") or team_abbr,
            value=_to_str(leader.get("displayValue")),
        ))
    return LeaderCategory(category=category.get("displayName"), leaders=leaders)


def extract_leaders(summary: Dict[str, Any]) -> List[LeaderCategory]:
    """
    Stat leaders from a game summary.

    Summaries list leaders either per category, or per team with the
    categories nested under each team.
    """
    categories = []
    for entry in summary.get("leaders") or []:
        if "team" in entry:
            team_abbr = (entry.get("team") or {}).get("abbreviation")
            for category in entry.get("leaders") or []:
                categories.append(_leader_category(category, team_abbr))
        else:
            categories.append(_leader_category(entry))
    return categories


def _header_team(competitor: Dict[str, Any]) -> DetailTeam:
    team = competitor.get("team") or {}
    logos = team.get("logos") or []
    records = competitor.get("record") or []
    return DetailTeam(
        id=_to_str(competitor.get("id") or team.get("id")),
        name=team.get("displayName") or team.get("name") or "",
        short_name=team.get("shortDisplayName"),
        abbreviation=team.get("abbreviation"),
        logo=logos[0].get("href") if logos else team.get("logo"),
        record=(records[0].get("displayValue") or records[0].get("summary")) if records else None,
        score=_to_str(competitor.get("score")),
    )


def _requested_date(value: Union[date, str, None]) -> date:
    if value is None:
        return date.today()
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return datetime.strptime(value[:10], '%Y-%m-%d').date()


# ==================== AGGREGATOR ====================

class GameAggregator:
    """
    Builds unified games from the schedule, odds, injury and player providers.

    Usage:
        aggregator = GameAggregator()
        games = await aggregator.get_games_for_sport('nba', '2026-02-07')
        detail = await aggregator.get_game_detail('nba', games[0].id)
    """

    def __init__(
        self,
        espn: Optional[ESPNApiService] = None,
        odds: Optional[OddsApiService] = None,
        players: Optional[BallDontLieService] = None,
        cache: Optional[ResponseCache] = None,
    ):
        """
        Initialize the aggregator.

        Args:
            espn: Schedule/score/injury/stats client (default: shared instance)
            odds: Odds client (default: shared instance)
            players: Player-stats client (default: shared instance)
            cache: Cache used for the stale schedule fallback and team ID lookups
        """
        self.espn = espn if espn is not None else get_espn_service()
        self.odds = odds if odds is not None else get_odds_service()
        self.players = players if players is not None else get_balldontlie_service()
        self.cache = cache if cache is not None else get_cache()

    async def get_games_for_sport(self, sport: str, game_date: Union[date, str, None] = None) -> List[Game]:
        """
        Fetch and merge all games for a sport on a date.

        Args:
            sport: Sport key ('nba', 'nfl', ...)
            game_date: Calendar date, date object or 'YYYY-MM-DD' (default: today)

        Returns:
            Games in schedule order. Empty for unknown sports or when no
            schedule data is available.
        """
        mapping = SPORT_MAPPINGS.get(sport)
        if not mapping:
            logger.warning(f"Unsupported sport: {sport}")
            return []

        requested = _requested_date(game_date)
        espn_date = requested.strftime('%Y%m%d')
        espn_map = mapping["espn"]

        schedule, odds, injuries = await gather_settled(
            self.espn.get_scoreboard(espn_map["sport"], espn_map["league"], espn_date),
            self.odds.get_odds(mapping["odds_api"]),
            self.espn.get_injuries(espn_map["sport"], espn_map["league"]),
        )

        for label, outcome in (("schedule", schedule), ("odds", odds), ("injuries", injuries)):
            if not outcome.ok:
                logger.warning(f"{sport} {label} fetch failed for {espn_date}: {outcome.error}")

        scoreboard = schedule.data
        if not scoreboard:
            scoreboard = self.cache.get_stale(CacheKeys.espn_scores(espn_map["league"], espn_date))
            if scoreboard:
                logger.info(f"Using stale ESPN scoreboard for {sport}/{espn_date}")

        events = (scoreboard or {}).get("events") or []
        if not events:
            return []

        odds_map = match_odds_to_games(events, odds.data or [])
        injury_data = injuries.data

        games = []
        for event in events:
            game = self._build_game(sport, requested, event, odds_map.get(event.get("id")), injury_data)
            if game is not None:
                games.append(game)

        logger.info(
            f"Aggregated {len(games)} {sport} games for {espn_date} "
            f"({len(odds_map)} with odds)"
        )
        return games

    def _build_game(
        self,
        sport: str,
        requested: date,
        event: Dict[str, Any],
        odds_event: Optional[Dict[str, Any]],
        injury_data: Any,
    ) -> Optional[Game]:
        competitions = event.get("competitions") or []
        if not competitions:
            logger.debug(f"Skipping event {event.get('id')}: no competition")
            return None
        competition = competitions[0]

        home_comp, away_comp = _split_competitors(competition)
        if not home_comp or not away_comp:
            logger.debug(f"Skipping event {event.get('id')}: missing home or away side")
            return None

        home = extract_team(home_comp)
        away = extract_team(away_comp)
        injuries = extract_injuries_for_teams(injury_data, [home.id, away.id])

        status = competition.get("status") or event.get("status") or {}
        status_type = status.get("type") or {}

        return Game(
            id=str(event.get("id")),
            sport=sport,
            date=requested,
            start_time=parse_start_time(event.get("date")),
            name=event.get("name"),
            short_name=event.get("shortName"),
            status=parse_game_status(status),
            status_detail=status_type.get("description") or status_type.get("shortDetail"),
            clock=status.get("displayClock"),
            period=_to_int(status.get("period")),
            venue=extract_venue(competition.get("venue")),
            home=home,
            away=away,
            odds=extract_odds(odds_event),
            injuries=GameInjuries(
                home=injuries.get(home.id, []),
                away=injuries.get(away.id, []),
            ),
        )

    async def get_game_detail(self, sport: str, game_id: str) -> Optional[GameDetail]:
        """
        Fetch one game with season stats, leaders, boxscore and top players.

        Returns:
            GameDetail, or None for unknown sports or when the game summary is
            unavailable
        """
        mapping = SPORT_MAPPINGS.get(sport)
        if not mapping:
            logger.warning(f"Unsupported sport: {sport}")
            return None
        espn_sport = mapping["espn"]["sport"]
        league = mapping["espn"]["league"]

        summary_outcome, injuries_outcome = await gather_settled(
            self.espn.get_game_summary(espn_sport, league, game_id),
            self.espn.get_injuries(espn_sport, league),
        )
        if not injuries_outcome.ok:
            logger.warning(f"{sport} injuries fetch failed for game {game_id}: {injuries_outcome.error}")

        summary = summary_outcome.data
        if not summary:
            if not summary_outcome.ok:
                logger.warning(f"{sport} summary fetch failed for game {game_id}: {summary_outcome.error}")
            return None

        competitions = (summary.get("header") or {}).get("competitions") or []
        if not competitions:
            return None
        competition = competitions[0]

        home_comp, away_comp = _split_competitors(competition)
        if not home_comp or not away_comp:
            return None

        home = _header_team(home_comp)
        away = _header_team(away_comp)

        home_stats, away_stats = await gather_settled(
            self.espn.get_team_stats(espn_sport, league, home.id),
            self.espn.get_team_stats(espn_sport, league, away.id),
        )
        home.season_stats = parse_season_stats(home_stats.data)
        away.season_stats = parse_season_stats(away_stats.data)

        injuries = extract_injuries_for_teams(injuries_outcome.data, [home.id, away.id])
        home_players, away_players = await self._fetch_player_data(sport, home.name, away.name)

        status = competition.get("status") or {}
        status_type = status.get("type") or {}

        return GameDetail(
            id=str(game_id),
            sport=sport,
            start_time=parse_start_time(competition.get("date")),
            name=(summary.get("header") or {}).get("gameNote") or f"{away.name} at {home.name}",
            status=parse_game_status(status),
            status_detail=status_type.get("description"),
            venue=extract_venue((summary.get("gameInfo") or {}).get("venue")),
            home=home,
            away=away,
            home_players=home_players,
            away_players=away_players,
            injuries=GameInjuries(
                home=injuries.get(home.id, []),
                away=injuries.get(away.id, []),
            ),
            leaders=extract_leaders(summary),
            boxscore=summary.get("boxscore") or None,
        )

    # ==================== PLAYER DATA ====================

    async def _resolve_player_team_id(self, sport: str, team_name: str) -> Optional[Any]:
        """
        Resolve the player-stats provider's team ID for a team name.

        Searches players by the team's last name token and takes the team of
        the first player whose team name scores >= 0.6 against team_name.
        """
        if not team_name:
            return None

        async def lookup():
            result = await self.players.search_players(sport, team_name.split()[-1])
            for player in (result or {}).get("data") or []:
                team = player.get("team") or {}
                candidate = team.get("full_name") or team.get("name") or ""
                if name_score(team_name, candidate) >= SCORE_LAST_TOKEN:
                    return team.get("id")
            return None

        return await self.cache.get_or_fetch(
            CacheKeys.bdl(sport, "teamId", normalize(team_name)),
            lookup,
            ttl=get_cache_ttl("bdl"),
        )

    async def _fetch_player_data(
        self,
        sport: str,
        home_name: str,
        away_name: str,
    ) -> Tuple[List[PlayerSummary], List[PlayerSummary]]:
        """Top players for both teams. Any failure degrades to empty lists."""
        try:
            home_id, away_id = await asyncio.gather(
                self._resolve_player_team_id(sport, home_name),
                self._resolve_player_team_id(sport, away_name),
            )
            home_players, away_players = await asyncio.gather(
                self._top_players(sport, home_id),
                self._top_players(sport, away_id),
            )
        except Exception as e:
            logger.warning(f"Player data fetch failed for {away_name} at {home_name}: {e}")
            return [], []

        return (
            [PlayerSummary(**p) for p in home_players or []],
            [PlayerSummary(**p) for p in away_players or []],
        )

    async def _top_players(self, sport: str, team_id: Optional[Any]) -> List[Dict[str, Any]]:
        if team_id is None:
            return []
        return await self.players.get_top_players_for_team(sport, team_id, TOP_PLAYERS_PER_TEAM)


_aggregator: Optional[GameAggregator] = None


def get_aggregator() -> GameAggregator:
    """Get or create the shared GameAggregator."""
    global _aggregator
    if _aggregator is None:
        _aggregator = GameAggregator()
    return _aggregator
