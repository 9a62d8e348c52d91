"""
Automatic settlement of pending picks against final scores.

Flow per sweep:
1. Load pending picks and group them by (sport, date)
2. Fetch each group's games once through the aggregator, keep final games
3. Locate each pick's game (game_id, else team names); a pick whose game_id
   names an unfinished game waits
4. Evaluate the pick text against the final score
5. Persist result and profit with settled_by='auto'

Picks that cannot be matched or parsed stay pending and are retried on the
next sweep. Player props are never settled automatically.
"""
import logging
import re
from collections import OrderedDict
from typing import Dict, List, Optional, Tuple

from app.core.metrics import record_pick_settled, record_resolver_group_error
from app.models.game import Game
from app.models.models import BetType, Pick, PickResult, SettlementSource
from app.services.aggregator_service import GameAggregator, get_aggregator
from app.services.core.bet_tracking_service import BetTrackingService
from app.services.sync.matchers.game_matcher import find_game_for_pick
from app.services.sync.utils.name_normalizer import SCORE_LAST_TOKEN, name_score
from app.utils.odds import calculate_profit

logger = logging.getLogger(__name__)

HOME = "home"
AWAY = "away"

# Trailing signed number: "Boston Celtics -3.5" -> "-3.5"
SPREAD_PATTERN = re.compile(r'([+-]?\d+(?:\.\d+)?)\s*$')
TRAILING_NUMBER_PATTERN = re.compile(r'[+-]?\d+(?:\.\d+)?\s*$')
# "Over 214.5", "take the under 48"
TOTAL_PATTERN = re.compile(r'\b(over|under)\s+(\d+(?:\.\d+)?)', re.IGNORECASE)


# ==================== PICK TEXT PARSING ====================

def parse_pick_team(pick_text: str, home_team: str, away_team: str) -> Optional[str]:
    """
    Determine which team a pick refers to.

    Each side is scored against the full pick text and against the text with
    any trailing number removed; the higher score counts. A side is chosen
    only if its score is at least 0.6 and strictly above the other side's.

    Returns:
        'home', 'away' or None if the text is ambiguous or names neither team

    Examples:
        >>> parse_pick_team("Boston Celtics -3.5", "Boston Celtics", "Miami Heat")
        'home'
        >>> parse_pick_team("Heat ML", "Boston Celtics", "Miami Heat") is None
        True
    """
    if not pick_text or not home_team or not away_team:
        return None

    team_part = TRAILING_NUMBER_PATTERN.sub('', pick_text).strip()

    best_home = name_score(pick_text, home_team)
    best_away = name_score(pick_text, away_team)
    if team_part:
        best_home = max(best_home, name_score(team_part, home_team))
        best_away = max(best_away, name_score(team_part, away_team))

    if best_home >= SCORE_LAST_TOKEN and best_home > best_away:
        return HOME
    if best_away >= SCORE_LAST_TOKEN and best_away > best_home:
        return AWAY
    return None


def parse_spread_point(pick_text: str) -> Optional[float]:
    """
    Extract the spread from the end of the pick text.

    Examples:
        >>> parse_spread_point("Boston Celtics -3.5")
        -3.5
        >>> parse_spread_point("Celtics +7")
        7.0
    """
    if not pick_text:
        return None
    match = SPREAD_PATTERN.search(pick_text)
    return float(match.group(1)) if match else None


def parse_total_line(pick_text: str) -> Optional[Tuple[str, float]]:
    """
    Extract (direction, line) from an over/under pick.

    Examples:
        >>> parse_total_line("Over 214.5")
        ('over', 214.5)
        >>> parse_total_line("UNDER 48")
        ('under', 48.0)
    """
    if not pick_text:
        return None
    match = TOTAL_PATTERN.search(pick_text)
    if not match:
        return None
    return match.group(1).lower(), float(match.group(2))


def _compare(value: float, line: float) -> PickResult:
    if value > line:
        return PickResult.WON
    if value < line:
        return PickResult.LOST
    return PickResult.PUSH


def evaluate_pick(pick: Pick, game: Game) -> Optional[PickResult]:
    """
    Evaluate a pick against a final game.

    Returns:
        WON, LOST or PUSH, or None if the pick cannot be evaluated (missing
        scores, unparseable text, player props, unknown bet type)
    """
    home_score = game.home.score_value
    away_score = game.away.score_value
    if home_score is None or away_score is None:
        return None

    bet_type = (pick.bet_type or "").lower()
    text = pick.pick or ""

    if bet_type == BetType.MONEYLINE.value:
        side = parse_pick_team(text, game.home.name, game.away.name)
        if side is None:
            logger.info(f"Pick {pick.id}: cannot identify team in '{text}'")
            return None
        if home_score == away_score:
            return PickResult.PUSH
        home_won = home_score > away_score
        return PickResult.WON if home_won == (side == HOME) else PickResult.LOST

    if bet_type == BetType.SPREAD.value:
        side = parse_pick_team(text, game.home.name, game.away.name)
        spread = parse_spread_point(text)
        if side is None or spread is None:
            logger.info(f"Pick {pick.id}: cannot parse spread pick '{text}'")
            return None
        team_score, opp_score = (home_score, away_score) if side == HOME else (away_score, home_score)
        return _compare(team_score + spread, opp_score)

    if bet_type == BetType.OVER_UNDER.value:
        parsed = parse_total_line(text)
        if parsed is None:
            logger.info(f"Pick {pick.id}: cannot parse total pick '{text}'")
            return None
        direction, line = parsed
        total = home_score + away_score
        if direction == "over":
            return _compare(total, line)
        return _compare(line, total)

    # Player props need box score lines; they are settled manually
    return None


# ==================== RESOLVER ====================

class ResolverService:
    """
    Settles pending picks whose games have finished.

    Usage:
        db = SessionLocal()
        resolver = ResolverService(store=BetTrackingService(db))
        settled = await resolver.resolve_all_pending()
    """

    def __init__(self, store: BetTrackingService, aggregator: Optional[GameAggregator] = None):
        self.store = store
        self.aggregator = aggregator if aggregator is not None else get_aggregator()

    async def resolve_all_pending(self) -> int:
        """
        Settle every pending pick that can be settled now.

        A failure while processing one (sport, date) group, or one pick within
        a group, is logged and does not affect the others.

        Returns:
            Number of picks settled in this pass
        """
        pending = self.store.get_pending_picks()
        if not pending:
            return 0

        groups: Dict[Tuple, List[Pick]] = OrderedDict()
        for pick in pending:
            groups.setdefault((pick.sport, pick.date), []).append(pick)

        resolved = 0
        for (sport, game_date), picks in groups.items():
            if not sport or not game_date:
                logger.debug(f"Skipping {len(picks)} picks without sport or date")
                continue

            try:
                resolved += await self._resolve_group(sport, game_date, picks)
            except Exception:
                logger.exception(f"Resolver error for {sport}:{game_date}")
                record_resolver_group_error(sport)

        if resolved:
            logger.info(f"Auto-resolver: resolved {resolved} pick(s)")
        return resolved

    async def _resolve_group(self, sport: str, game_date, picks: List[Pick]) -> int:
        games = await self.aggregator.get_games_for_sport(sport, game_date)
        final_games = [g for g in games if g.is_final]
        if not final_games:
            return 0
        # Picks naming an unfinished game wait for it, even if another game
        # between the same teams is final
        unfinished_ids = {g.id for g in games if not g.is_final}

        resolved = 0
        for pick in picks:
            if pick.bet_type == BetType.PLAYER_PROP.value:
                continue

            pick_id = pick.id
            if pick.game_id and pick.game_id in unfinished_ids:
                continue

            try:
                if self._resolve_pick(sport, pick, final_games):
                    resolved += 1
            except Exception:
                # Picks already committed in this group still count
                logger.exception(f"Resolver error for pick {pick_id}")
                record_resolver_group_error(sport)

        return resolved

    def _resolve_pick(self, sport: str, pick: Pick, final_games: List[Game]) -> bool:
        game = find_game_for_pick(pick, final_games)
        if game is None:
            return False

        result = evaluate_pick(pick, game)
        if result is None:
            return False

        profit = calculate_profit(pick.odds or 0, pick.units or 1.0, result.value)
        pick_id, pick_text = pick.id, pick.pick
        if not self.store.mark_settled(pick_id, result.value, profit, SettlementSource.AUTO.value):
            return False

        record_pick_settled(sport, result.value)
        logger.info(f"Auto-resolved pick {pick_id}: {pick_text} -> {result.value} ({profit:+.2f}u)")
        return True
