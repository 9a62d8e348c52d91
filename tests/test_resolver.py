"""Tests for automatic pick settlement.

Test Strategy:
1. Pick text parsing: team side, spread, total line
2. evaluate_pick per bet type (won / lost / push / not evaluable)
3. ResolverService sweep: settlement, profit, skips, idempotence,
   per-group failure isolation

The aggregator is an AsyncMock returning prebuilt Game models; the wager
store is the real BetTrackingService on in-memory SQLite.
"""
from datetime import date
from types import SimpleNamespace
from unittest.mock import AsyncMock

import pytest

from conftest import create_pick
from app.models.game import Game, GameStatus, Team
from app.models.models import PickResult
from app.services.resolver_service import (
    ResolverService,
    evaluate_pick,
    parse_pick_team,
    parse_spread_point,
    parse_total_line,
)


def make_game(home_score, away_score, status=GameStatus.FINAL, game_id="401",
              home="Boston Celtics", away="Miami Heat"):
    return Game(
        id=game_id,
        sport="nba",
        date=date(2026, 2, 7),
        status=status,
        home=Team(id="1", name=home, score=str(home_score) if home_score is not None else None),
        away=Team(id="2", name=away, score=str(away_score) if away_score is not None else None),
    )


def make_pick(text, bet_type, pick_id="p1"):
    return SimpleNamespace(id=pick_id, pick=text, bet_type=bet_type)


class TestPickParsing:
    """Tests for free-text pick parsing."""

    @pytest.mark.parametrize("text,expected", [
        ("Boston Celtics -3.5", "home"),
        ("Celtics", "home"),
        ("Miami Heat +3.5", "away"),
        ("Heat", "away"),
        ("Heat ML", None),
        ("Denver Nuggets", None),
        ("", None),
    ])
    def test_parse_pick_team(self, text, expected):
        assert parse_pick_team(text, "Boston Celtics", "Miami Heat") == expected

    def test_parse_pick_team_ambiguous(self):
        """Equal scores for both sides identify neither."""
        assert parse_pick_team("Rangers", "Texas Rangers", "New York Rangers") is None

    @pytest.mark.parametrize("text,expected", [
        ("Boston Celtics -3.5", -3.5),
        ("Celtics +7", 7.0),
        ("Heat 2", 2.0),
        ("Boston Celtics", None),
        ("", None),
    ])
    def test_parse_spread_point(self, text, expected):
        assert parse_spread_point(text) == expected

    @pytest.mark.parametrize("text,expected", [
        ("Over 214.5", ("over", 214.5)),
        ("UNDER 48", ("under", 48.0)),
        ("Celtics/Heat over 220", ("over", 220.0)),
        ("Boston Celtics -3.5", None),
    ])
    def test_parse_total_line(self, text, expected):
        assert parse_total_line(text) == expected


class TestEvaluatePick:
    """Tests for evaluating one pick against a final score."""

    # Moneyline
    # ─────────────────────────────────────────────────────────────

    def test_moneyline_won(self):
        assert evaluate_pick(make_pick("Boston Celtics", "moneyline"), make_game(110, 100)) == PickResult.WON

    def test_moneyline_lost(self):
        assert evaluate_pick(make_pick("Miami Heat", "moneyline"), make_game(110, 100)) == PickResult.LOST

    def test_moneyline_tie_pushes(self):
        assert evaluate_pick(make_pick("Celtics", "moneyline"), make_game(100, 100)) == PickResult.PUSH

    def test_moneyline_unknown_team(self):
        assert evaluate_pick(make_pick("Denver Nuggets", "moneyline"), make_game(110, 100)) is None

    # Spread
    # ─────────────────────────────────────────────────────────────

    def test_favorite_covers(self):
        """110-100 with -3.5: 106.5 > 100."""
        assert evaluate_pick(make_pick("Boston Celtics -3.5", "spread"), make_game(110, 100)) == PickResult.WON

    def test_favorite_loses_outright(self):
        assert evaluate_pick(make_pick("Boston Celtics -3.5", "spread"), make_game(100, 103)) == PickResult.LOST

    def test_underdog_push(self):
        """Losing by exactly the spread."""
        assert evaluate_pick(make_pick("Miami Heat +3", "spread"), make_game(103, 100)) == PickResult.PUSH

    def test_underdog_covers(self):
        assert evaluate_pick(make_pick("Miami Heat +3.5", "spread"), make_game(103, 100)) == PickResult.WON

    def test_spread_without_number(self):
        assert evaluate_pick(make_pick("Boston Celtics", "spread"), make_game(110, 100)) is None

    # Totals
    # ─────────────────────────────────────────────────────────────

    @pytest.mark.parametrize("text,home,away,expected", [
        ("Over 214.5", 110, 105, PickResult.WON),
        ("Over 214.5", 110, 104, PickResult.LOST),
        ("Over 215", 110, 105, PickResult.PUSH),
        ("Under 214.5", 110, 105, PickResult.LOST),
        ("Under 214.5", 100, 100, PickResult.WON),
        ("Under 215", 110, 105, PickResult.PUSH),
    ])
    def test_totals(self, text, home, away, expected):
        assert evaluate_pick(make_pick(text, "over_under"), make_game(home, away)) == expected

    def test_total_without_line(self):
        assert evaluate_pick(make_pick("Over", "over_under"), make_game(110, 105)) is None

    # Not Evaluable
    # ─────────────────────────────────────────────────────────────

    def test_player_prop_never_evaluated(self):
        assert evaluate_pick(make_pick("Jayson Tatum over 27.5 points", "player_prop"), make_game(110, 100)) is None

    def test_missing_score(self):
        assert evaluate_pick(make_pick("Boston Celtics", "moneyline"), make_game(None, 100)) is None


@pytest.fixture
def games_by_sport():
    return {"nba": [make_game(110, 100)]}


@pytest.fixture
def fake_aggregator(games_by_sport):
    """Aggregator fake serving games per sport; raises for sports mapped to an exception."""
    async def get_games_for_sport(sport, game_date):
        games = games_by_sport.get(sport, [])
        if isinstance(games, Exception):
            raise games
        return games

    aggregator = AsyncMock()
    aggregator.get_games_for_sport.side_effect = get_games_for_sport
    return aggregator


@pytest.fixture
def resolver(store, fake_aggregator):
    return ResolverService(store=store, aggregator=fake_aggregator)


class TestResolveAllPending:
    """Tests for the settlement sweep."""

    @pytest.mark.asyncio
    async def test_nothing_pending(self, resolver, fake_aggregator):
        assert await resolver.resolve_all_pending() == 0
        fake_aggregator.get_games_for_sport.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_settles_with_profit(self, resolver, store):
        pick = create_pick(store, pick="Boston Celtics -3.5", bet_type="spread", odds=-110, units=2.0)

        assert await resolver.resolve_all_pending() == 1

        settled = store.get_pick_by_id(pick.id)
        assert settled.result == "won"
        assert settled.profit_loss == 1.82
        assert settled.settled_by == "auto"
        assert settled.settled_at is not None

    @pytest.mark.asyncio
    async def test_losing_pick_loses_stake(self, resolver, store):
        pick = create_pick(store, pick="Miami Heat", odds=130, units=1.5)

        await resolver.resolve_all_pending()

        settled = store.get_pick_by_id(pick.id)
        assert settled.result == "lost"
        assert settled.profit_loss == -1.5

    @pytest.mark.asyncio
    async def test_groups_fetched_once(self, resolver, store, fake_aggregator):
        create_pick(store, pick="Boston Celtics")
        create_pick(store, pick="Over 214.5", bet_type="over_under")

        assert await resolver.resolve_all_pending() == 2
        fake_aggregator.get_games_for_sport.assert_awaited_once_with("nba", date(2026, 2, 7))

    @pytest.mark.asyncio
    async def test_game_id_match(self, resolver, store, games_by_sport):
        games_by_sport["nba"] = [
            make_game(90, 120, game_id="400", home="Utah Jazz", away="Denver Nuggets"),
            make_game(110, 100, game_id="401"),
        ]
        pick = create_pick(store, pick="Celtics", game_id="401", home_team=None, away_team=None)

        await resolver.resolve_all_pending()

        assert store.get_pick_by_id(pick.id).result == "won"

    @pytest.mark.asyncio
    async def test_doubleheader_waits_for_named_game(self, resolver, store, games_by_sport):
        """The first game is final; the pick names the second, still in progress."""
        games_by_sport["nba"] = [
            make_game(110, 100, game_id="401"),
            make_game(40, 38, status=GameStatus.IN_PROGRESS, game_id="402"),
        ]
        pick = create_pick(store, game_id="402")

        assert await resolver.resolve_all_pending() == 0
        assert store.get_pick_by_id(pick.id).result == "pending"

    # Skips
    # ─────────────────────────────────────────────────────────────

    @pytest.mark.asyncio
    async def test_player_prop_stays_pending(self, resolver, store):
        pick = create_pick(store, pick="Jayson Tatum over 27.5 points", bet_type="player_prop")

        assert await resolver.resolve_all_pending() == 0
        assert store.get_pick_by_id(pick.id).result == "pending"

    @pytest.mark.asyncio
    async def test_non_final_game_skipped(self, resolver, store, games_by_sport):
        games_by_sport["nba"] = [make_game(55, 50, status=GameStatus.IN_PROGRESS)]
        pick = create_pick(store)

        assert await resolver.resolve_all_pending() == 0
        assert store.get_pick_by_id(pick.id).result == "pending"

    @pytest.mark.asyncio
    async def test_unmatched_game_stays_pending(self, resolver, store):
        pick = create_pick(store, pick="Lakers", home_team="Los Angeles Lakers", away_team="Denver Nuggets")

        assert await resolver.resolve_all_pending() == 0
        assert store.get_pick_by_id(pick.id).result == "pending"

    @pytest.mark.asyncio
    async def test_unparseable_pick_stays_pending(self, resolver, store):
        pick = create_pick(store, pick="Boston Celtics", bet_type="spread")

        assert await resolver.resolve_all_pending() == 0
        assert store.get_pick_by_id(pick.id).result == "pending"

    @pytest.mark.asyncio
    async def test_pick_without_sport_skipped(self, resolver, store, fake_aggregator):
        create_pick(store, sport=None)

        assert await resolver.resolve_all_pending() == 0
        fake_aggregator.get_games_for_sport.assert_not_awaited()

    # Idempotence and Isolation
    # ─────────────────────────────────────────────────────────────

    @pytest.mark.asyncio
    async def test_second_sweep_settles_nothing(self, resolver, store):
        pick = create_pick(store)

        assert await resolver.resolve_all_pending() == 1
        assert await resolver.resolve_all_pending() == 0
        assert store.get_pick_by_id(pick.id).profit_loss == 0.91

    @pytest.mark.asyncio
    async def test_group_failure_isolated(self, resolver, store, games_by_sport):
        """An aggregator failure for one sport does not stop the others."""
        games_by_sport["nfl"] = RuntimeError("ESPN down")
        nfl_pick = create_pick(store, sport="nfl", home_team="Kansas City Chiefs", away_team="Buffalo Bills",
                               pick="Kansas City Chiefs")
        nba_pick = create_pick(store)

        assert await resolver.resolve_all_pending() == 1
        assert store.get_pick_by_id(nfl_pick.id).result == "pending"
        assert store.get_pick_by_id(nba_pick.id).result == "won"

    @pytest.mark.asyncio
    async def test_pick_failure_keeps_settled_count(self, resolver, store, monkeypatch):
        """A failing pick does not drop the other settlements in its group."""
        first = create_pick(store, pick="Boston Celtics")
        second = create_pick(store, pick="Miami Heat")
        mark_settled = store.mark_settled

        def flaky_mark_settled(pick_id, *args, **kwargs):
            if pick_id == second.id:
                raise RuntimeError("database is locked")
            return mark_settled(pick_id, *args, **kwargs)

        monkeypatch.setattr(store, "mark_settled", flaky_mark_settled)

        assert await resolver.resolve_all_pending() == 1
        assert store.get_pick_by_id(first.id).result == "won"
        assert store.get_pick_by_id(second.id).result == "pending"
