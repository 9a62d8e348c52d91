"""Tests for American odds math."""
import pytest

from app.utils.odds import american_to_decimal, best_odds, calculate_profit, implied_probability


class TestCalculateProfit:
    """Tests for settled wager profit."""

    @pytest.mark.parametrize("odds,units,expected", [
        (-110, 1.0, 0.91),
        (-110, 2.0, 1.82),
        (150, 2.0, 3.0),
        (100, 1.0, 1.0),
        (-200, 1.5, 0.75),
    ])
    def test_won(self, odds, units, expected):
        assert calculate_profit(odds, units, "won") == expected

    def test_lost_is_stake(self):
        assert calculate_profit(-110, 1.5, "lost") == -1.5
        assert calculate_profit(250, 2.0, "lost") == -2.0

    @pytest.mark.parametrize("result", ["push", "pending"])
    def test_no_action(self, result):
        assert calculate_profit(-110, 1.0, result) == 0.0

    def test_zero_odds_won_is_even_money(self):
        assert calculate_profit(0, 2.0, "won") == 2.0


class TestConversions:

    def test_american_to_decimal(self):
        assert american_to_decimal(150) == 2.5
        assert american_to_decimal(-200) == 1.5

    def test_implied_probability(self):
        assert implied_probability(100) == 0.5
        assert implied_probability(-150) == 0.6
        assert round(implied_probability(-110), 4) == 0.5238
        assert implied_probability(0) is None
        assert implied_probability(None) is None


class TestBestOdds:

    def test_least_negative_wins(self):
        quotes = [("fanduel", -110), ("draftkings", -105), ("betmgm", -112)]
        assert best_odds(quotes) == ("draftkings", -105)

    def test_plus_money_beats_minus(self):
        assert best_odds([("a", -105), ("b", 100)]) == ("b", 100)

    def test_first_quote_kept_on_tie(self):
        assert best_odds([("a", 120), ("b", 120)]) == ("a", 120)

    def test_missing_prices_ignored(self):
        assert best_odds([("a", None)]) is None
        assert best_odds([]) is None
