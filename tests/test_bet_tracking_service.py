"""Tests for the wager store (BetTrackingService).

Test Strategy:
1. save_pick: defaults, input coercion, validation
2. Queries: filters and ordering
3. mark_settled: conditional on pending, idempotent
4. update_result: manual settlement and reset to pending
5. Performance summaries

Uses an isolated in-memory SQLite database per test (see conftest.py).
"""
from datetime import date, timedelta

import pytest

from conftest import create_pick
from app.services.core.bet_tracking_service import pick_to_dict


class TestSavePick:
    """Tests for recording picks."""

    def test_saves_pending_pick(self, store):
        pick = create_pick(store, game_name="Miami Heat at Boston Celtics", confidence=0.62)

        assert len(pick.id) == 36
        assert pick.result == "pending"
        assert pick.profit_loss == 0.0
        assert pick.settled_by is None
        assert pick.created_at is not None
        assert pick.confidence == 0.62

    def test_date_string_parsed(self, store):
        pick = create_pick(store, date="2026-02-07")
        assert pick.date == date(2026, 2, 7)

    def test_date_defaults_to_today(self, store):
        pick = create_pick(store, date=None)
        assert pick.date == date.today()

    @pytest.mark.parametrize("odds,expected", [
        ("-110", -110),
        ("+150", 150),
        ("even", 0),
        (None, 0),
    ])
    def test_odds_coercion(self, store, odds, expected):
        assert create_pick(store, odds=odds).odds == expected

    @pytest.mark.parametrize("units,expected", [
        ("2.5", 2.5),
        (0, 1.0),
        (-1, 1.0),
        ("lots", 1.0),
    ])
    def test_units_coercion(self, store, units, expected):
        assert create_pick(store, units=units).units == expected

    def test_rejects_unknown_bet_type(self, store):
        with pytest.raises(ValueError):
            create_pick(store, bet_type="teaser")


class TestQueries:
    """Tests for pick lookup and filtering."""

    def test_get_picks_filters(self, store):
        create_pick(store, sport="nba")
        create_pick(store, sport="nfl", date=date(2026, 2, 8))
        settled = create_pick(store, sport="nba")
        store.mark_settled(settled.id, "won", 0.91)

        assert len(store.get_picks()) == 3
        assert len(store.get_picks(sport="nba")) == 2
        assert len(store.get_picks(date="2026-02-08")) == 1
        assert [p.id for p in store.get_picks(result="won")] == [settled.id]

    def test_get_pick_by_id(self, store):
        pick = create_pick(store)
        assert store.get_pick_by_id(pick.id).pick == "Boston Celtics"
        assert store.get_pick_by_id("missing") is None

    def test_pending_excludes_settled(self, store):
        pending = create_pick(store)
        settled = create_pick(store)
        store.mark_settled(settled.id, "lost", -1.0)

        assert [p.id for p in store.get_pending_picks()] == [pending.id]


class TestMarkSettled:
    """Tests for resolver settlement."""

    def test_settles_pending_pick(self, store):
        pick = create_pick(store)

        assert store.mark_settled(pick.id, "won", 0.91) is True

        settled = store.get_pick_by_id(pick.id)
        assert settled.result == "won"
        assert settled.profit_loss == 0.91
        assert settled.settled_by == "auto"
        assert settled.settled_at is not None

    def test_already_settled_unchanged(self, store):
        pick = create_pick(store)
        store.mark_settled(pick.id, "won", 0.91)

        assert store.mark_settled(pick.id, "lost", -1.0) is False

        settled = store.get_pick_by_id(pick.id)
        assert settled.result == "won"
        assert settled.profit_loss == 0.91

    def test_manual_result_not_overwritten(self, store):
        pick = create_pick(store)
        store.update_result(pick.id, "push")

        assert store.mark_settled(pick.id, "won", 0.91) is False
        assert store.get_pick_by_id(pick.id).settled_by == "manual"

    def test_missing_pick(self, store):
        assert store.mark_settled("missing", "won", 1.0) is False

    def test_rejects_pending_result(self, store):
        pick = create_pick(store)
        with pytest.raises(ValueError):
            store.mark_settled(pick.id, "pending", 0.0)

    def test_commit_failure_rolls_back(self, store, monkeypatch):
        """A failed commit leaves the session usable for the next pick."""
        pick = create_pick(store)
        other = create_pick(store, pick="Miami Heat")

        def failing_commit():
            raise RuntimeError("database is locked")

        monkeypatch.setattr(store.db, "commit", failing_commit)
        with pytest.raises(RuntimeError):
            store.mark_settled(pick.id, "won", 0.91)
        monkeypatch.undo()

        assert store.get_pick_by_id(pick.id).result == "pending"
        assert store.mark_settled(other.id, "lost", -1.0) is True
        assert store.get_pick_by_id(other.id).result == "lost"


class TestUpdateResult:
    """Tests for manual settlement."""

    def test_manual_win_computes_profit(self, store):
        pick = create_pick(store, odds=150, units=2.0)

        updated = store.update_result(pick.id, "won")

        assert updated.result == "won"
        assert updated.profit_loss == 3.0
        assert updated.settled_by == "manual"

    def test_overrides_auto_settlement(self, store):
        pick = create_pick(store)
        store.mark_settled(pick.id, "won", 0.91)

        updated = store.update_result(pick.id, "lost")

        assert updated.profit_loss == -1.0
        assert updated.settled_by == "manual"

    def test_reset_to_pending(self, store):
        pick = create_pick(store)
        store.mark_settled(pick.id, "won", 0.91)

        updated = store.update_result(pick.id, "pending")

        assert updated.result == "pending"
        assert updated.profit_loss == 0.0
        assert updated.settled_by is None
        assert updated.settled_at is None
        assert store.mark_settled(pick.id, "lost", -1.0) is True

    def test_missing_pick(self, store):
        assert store.update_result("missing", "won") is None

    def test_rejects_unknown_result(self, store):
        pick = create_pick(store)
        with pytest.raises(ValueError):
            store.update_result(pick.id, "void")


class TestDeletePick:

    def test_returns_snapshot(self, store):
        pick = create_pick(store)
        pick_id = pick.id

        snapshot = store.delete_pick(pick_id)

        assert snapshot["id"] == pick_id
        assert snapshot["date"] == "2026-02-07"
        assert store.get_pick_by_id(pick_id) is None

    def test_missing_pick(self, store):
        assert store.delete_pick("missing") is None

    def test_pick_to_dict(self, store):
        data = pick_to_dict(create_pick(store))
        assert data["result"] == "pending"
        assert data["settled_at"] is None


class TestPerformance:
    """Tests for summary queries."""

    @pytest.fixture
    def settled_picks(self, store):
        today = date.today()
        won = create_pick(store, date=today, odds=-110, units=1.0)
        lost = create_pick(store, date=today, sport="nfl", bet_type="spread", pick="Chiefs -3", units=2.0)
        push = create_pick(store, date=today, bet_type="over_under", pick="Over 214.5")
        create_pick(store, date=today)
        old = create_pick(store, date=today - timedelta(days=20), odds=200)

        store.mark_settled(won.id, "won", 0.91)
        store.mark_settled(lost.id, "lost", -2.0)
        store.mark_settled(push.id, "push", 0.0)
        store.mark_settled(old.id, "won", 2.0)
        return store

    def test_summary_for_range(self, settled_picks):
        summary = settled_picks.get_summary("7d")

        assert summary["range"] == "7d"
        assert summary["record"] == {"wins": 1, "losses": 1, "pushes": 1}
        assert summary["total_picks"] == 4
        assert summary["pending_picks"] == 1
        assert summary["units"] == -1.09
        assert summary["total_wagered"] == 3.0
        assert summary["roi"] == -36.3

    def test_summary_all_time(self, settled_picks):
        summary = settled_picks.get_summary("all")

        assert summary["record"]["wins"] == 2
        assert summary["units"] == 0.91
        assert summary["total_wagered"] == 4.0

    def test_unknown_range_means_no_filter(self, settled_picks):
        assert settled_picks.get_summary("season")["total_picks"] == 5

    def test_empty_summary(self, store):
        summary = store.get_summary()
        assert summary["total_picks"] == 0
        assert summary["roi"] == 0.0

    def test_summary_by_sport(self, settled_picks):
        rows = {row["sport"]: row for row in settled_picks.get_summary_by("sport")}

        assert rows["nba"]["total"] == 4
        assert rows["nba"]["record"] == {"wins": 2, "losses": 0, "pushes": 1}
        assert rows["nba"]["profit"] == 2.91
        assert rows["nfl"]["profit"] == -2.0
        assert rows["nfl"]["roi"] == -100.0

    def test_summary_by_bet_type_ordered_by_profit(self, settled_picks):
        rows = settled_picks.get_summary_by("bet_type")
        assert [row["bet_type"] for row in rows] == ["moneyline", "over_under", "spread"]

    def test_summary_by_rejects_unknown_field(self, store):
        with pytest.raises(ValueError):
            store.get_summary_by("units")

    def test_daily_performance(self, settled_picks):
        days = settled_picks.get_daily_performance("30d")

        assert [d["date"] for d in days] == [
            (date.today() - timedelta(days=20)).isoformat(),
            date.today().isoformat(),
        ]
        assert days[1]["wins"] == 1
        assert days[1]["losses"] == 1
        assert days[1]["profit"] == -1.09
