"""Game matcher for correlating ESPN schedule events with other records.

Two uses share the same scoring and threshold:
1. Odds events -> ESPN events (aggregator). Greedy one-to-one assignment in
   schedule order: once an odds event is claimed it leaves the pool.
2. Picks -> final games (resolver). game_id first, then team names.

A pairing scores name_score(home) + name_score(away). It is accepted only at
MATCH_THRESHOLD (1.0) or above, so a shared mascot on one side alone (0.6)
is not enough. Below the threshold the record stays unmatched.
"""
import logging
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple, TypeVar

from app.services.sync.utils.name_normalizer import name_score

logger = logging.getLogger(__name__)

MATCH_THRESHOLD = 1.0

T = TypeVar("T")
Scorer = Callable[[str, str], float]


def pair_score(
    home: str,
    away: str,
    other_home: str,
    other_away: str,
    scorer: Scorer = name_score,
) -> float:
    """Combined home + away score of two matchups."""
    return scorer(home, other_home) + scorer(away, other_away)


def find_best_pair(
    home: str,
    away: str,
    candidates: Sequence[T],
    names: Callable[[T], Tuple[str, str]],
    scorer: Scorer = name_score,
    threshold: float = MATCH_THRESHOLD,
) -> Optional[Tuple[int, float]]:
    """
    Find the candidate whose (home, away) names best match a matchup.

    Args:
        home: Home team name to match
        away: Away team name to match
        candidates: Records to search
        names: Extracts (home_name, away_name) from a candidate
        scorer: Name comparator (default: name_score)
        threshold: Minimum combined score to accept

    Returns:
        (index, score) of the best candidate, the first one on ties, or None
        if no candidate reaches the threshold
    """
    best_idx = -1
    best_score = 0.0

    for idx, candidate in enumerate(candidates):
        cand_home, cand_away = names(candidate)
        combined = pair_score(home, away, cand_home or "", cand_away or "", scorer)
        if combined > best_score:
            best_score = combined
            best_idx = idx

    if best_idx != -1 and best_score >= threshold:
        return best_idx, best_score

    return None


def espn_event_teams(event: Dict[str, Any]) -> Optional[Tuple[str, str]]:
    """
    Extract (home, away) display names from an ESPN scoreboard event.

    Returns None when the event has no competition or lacks a side.
    """
    competitions = event.get("competitions") or []
    if not competitions:
        return None
    competitors = competitions[0].get("competitors") or []
    home = next((c for c in competitors if c.get("homeAway") == "home"), None)
    away = next((c for c in competitors if c.get("homeAway") == "away"), None)
    if not home or not away:
        return None
    return (
        (home.get("team") or {}).get("displayName") or "",
        (away.get("team") or {}).get("displayName") or "",
    )


def _odds_event_teams(odds_event: Dict[str, Any]) -> Tuple[str, str]:
    return odds_event.get("home_team") or "", odds_event.get("away_team") or ""


def match_odds_to_games(
    events: List[Dict[str, Any]],
    odds_events: List[Dict[str, Any]],
    scorer: Scorer = name_score,
) -> Dict[str, Dict[str, Any]]:
    """
    Match odds provider events to ESPN events by team names.

    Events are processed in the order given. Each takes the best-scoring
    odds event still in the pool, if it clears the threshold, and removes
    it from the pool. The result is one-to-one but not globally optimal.

    Args:
        events: ESPN scoreboard events
        odds_events: The Odds API events (home_team, away_team, bookmakers)
        scorer: Name comparator (default: name_score)

    Returns:
        Dict of ESPN event ID -> matched odds event
    """
    matched: Dict[str, Dict[str, Any]] = {}
    if not events or not odds_events:
        return matched

    remaining = list(odds_events)

    for event in events:
        teams = espn_event_teams(event)
        if teams is None:
            continue

        best = find_best_pair(teams[0], teams[1], remaining, _odds_event_teams, scorer)
        if best is None:
            logger.debug(f"No odds match for event {event.get('id')} ({teams[1]} @ {teams[0]})")
            continue

        idx, score = best
        matched[event.get("id")] = remaining.pop(idx)
        logger.debug(f"Matched event {event.get('id')} to odds event {matched[event.get('id')].get('id')} ({score:.1f})")

    logger.info(f"Matched {len(matched)}/{len(events)} events to {len(odds_events)} odds events")
    return matched


def find_game_for_pick(pick: Any, games: Sequence[T]) -> Optional[T]:
    """
    Locate the game a pick was placed on.

    Prefers an exact game_id match. Otherwise matches the pick's home_team
    and away_team against each game's teams with the same threshold used for
    odds matching.

    Args:
        pick: Object with game_id, home_team and away_team attributes
        games: Unified games (objects with id, home.name and away.name)

    Returns:
        The matched game or None
    """
    game_id = getattr(pick, "game_id", None)
    if game_id:
        for game in games:
            if game.id == game_id:
                return game

    home_team = getattr(pick, "home_team", None)
    away_team = getattr(pick, "away_team", None)
    if not home_team or not away_team:
        return None

    best = find_best_pair(
        home_team,
        away_team,
        games,
        lambda g: (g.home.name, g.away.name),
    )
    if best is None:
        return None
    return games[best[0]]
