"""
American odds math: conversion, implied probability, payouts and line shopping.
"""
import logging
from typing import Iterable, Optional, Tuple

logger = logging.getLogger(__name__)


def american_to_decimal(odds: int) -> float:
    """
    Convert American odds to decimal odds.

    Examples:
        >>> american_to_decimal(150)
        2.5
        >>> round(american_to_decimal(-110), 3)
        1.909
    """
    if odds == 0:
        return 1.0
    if odds > 0:
        return odds / 100 + 1
    return 100 / abs(odds) + 1


def implied_probability(odds: Optional[int]) -> Optional[float]:
    """
    Implied probability of American odds, including the bookmaker's vig.

    Examples:
        >>> implied_probability(100)
        0.5
        >>> round(implied_probability(-110), 4)
        0.5238
    """
    if not odds:
        return None
    if odds > 0:
        return 100 / (odds + 100)
    return abs(odds) / (abs(odds) + 100)


def calculate_profit(odds: int, units: float, result: str) -> float:
    """
    Profit or loss of a settled wager.

    - won: American-odds payout on the stake (units * odds/100 for positive
      odds, units * 100/|odds| for negative odds), rounded to cents
    - lost: -units
    - push or pending: 0

    Odds of 0 are not a valid American price; they are settled as even money.

    Examples:
        >>> calculate_profit(-110, 1.0, 'won')
        0.91
        >>> calculate_profit(150, 2.0, 'won')
        3.0
        >>> calculate_profit(-110, 1.5, 'lost')
        -1.5
    """
    if result == "won":
        if odds == 0:
            logger.warning("Settling a won pick with odds 0 as even money")
            return round(units, 2)
        if odds > 0:
            payout = units * (odds / 100)
        else:
            payout = units * (100 / abs(odds))
        return round(payout, 2)
    if result == "lost":
        return -units
    return 0.0


def best_odds(quotes: Iterable[Tuple[str, int]]) -> Optional[Tuple[str, int]]:
    """
    Best price for the bettor among (bookmaker, price) quotes.

    Comparing decimal equivalents handles both signs: +200 beats +150 and
    -105 beats -110.

    Examples:
        >>> best_odds([('fanduel', -110), ('draftkings', -105), ('betmgm', -112)])
        ('draftkings', -105)
    """
    best = None
    for bookmaker, price in quotes:
        if price is None:
            continue
        if best is None or american_to_decimal(price) > american_to_decimal(best[1]):
            best = (bookmaker, price)
    return best
