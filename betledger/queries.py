"""
queries.py - Read-Only Market Queries

Every query takes a LedgerView and never builds a transaction.
"""

from __future__ import annotations
from dataclasses import dataclass
from decimal import Decimal
from typing import Dict, Optional

from .core import LedgerView
from .operations import custody_balance
from .pricing import ODDS_DECIMAL_PLACES, truncate_decimal
from .strategies import strategy_for
from .units.bet_book import has_claimed, payout_of, stake_of
from .units.market import MarketState, MarketTerms, Outcome, load_market


# Averaged odds are reported with this many decimal places.
AVERAGE_ODDS_PLACES = 18


@dataclass(frozen=True, slots=True)
class BetsSummary:
    """Totals staked per outcome, and promised payouts per side for fixed-odds."""
    totals: Dict[Outcome, int]
    potential_payouts: Dict[Outcome, int]
    market_balance: int


@dataclass(frozen=True, slots=True)
class AccountBets:
    """
    One account's position in a market.

    odds is payout / stake per side (fixed-odds), i.e. the stake-weighted
    average of the quotes the account bet at.
    """
    address: str
    stakes: Dict[Outcome, int]
    payouts: Dict[Outcome, int]
    odds: Dict[Outcome, Decimal]
    claimed: bool


def query_config(view: LedgerView, market_id: str) -> MarketTerms:
    terms, _, _ = load_market(view, market_id)
    return terms


def query_market(view: LedgerView, market_id: str) -> MarketState:
    _, market, _ = load_market(view, market_id)
    return market


def query_bets(view: LedgerView, market_id: str) -> BetsSummary:
    terms, market, book = load_market(view, market_id)
    outcomes = strategy_for(terms.market_type).outcomes(market.is_drawable)
    return BetsSummary(
        totals={o: book.totals.get(o.value, 0) for o in outcomes},
        potential_payouts={
            o: book.potential_payouts[o.value]
            for o in outcomes if o.value in book.potential_payouts
        },
        market_balance=custody_balance(view, market_id, terms.denom),
    )


def query_bets_by_address(view: LedgerView, market_id: str, address: str) -> AccountBets:
    terms, market, book = load_market(view, market_id)
    outcomes = strategy_for(terms.market_type).outcomes(market.is_drawable)

    stakes = {o: stake_of(book, address, o.value) for o in outcomes}
    payouts: Dict[Outcome, int] = {}
    odds: Dict[Outcome, Decimal] = {}
    if book.potential_payouts:
        for o in outcomes:
            payouts[o] = payout_of(book, address, o.value)
            if stakes[o]:
                odds[o] = truncate_decimal(Decimal(payouts[o]) / Decimal(stakes[o]), AVERAGE_ODDS_PLACES)

    return AccountBets(
        address=address,
        stakes=stakes,
        payouts=payouts,
        odds=odds,
        claimed=has_claimed(book, address),
    )


def query_estimate_winnings(view: LedgerView, market_id: str, address: str, result: Outcome) -> int:
    """
    What `address` would receive if the market closed on `result` now.

    Parimutuel estimates apply the fee exactly as a claim would.
    """
    result = Outcome(result)
    terms, market, book = load_market(view, market_id)
    if result == Outcome.DRAW and not market.is_drawable:
        return 0
    return strategy_for(terms.market_type).estimate(terms, market, book, address, result)


def query_odds(view: LedgerView, market_id: str) -> Dict[Outcome, Decimal]:
    """
    Current decimal odds per outcome, truncated to 2 places.

    Fixed-odds markets report their stored quotes; parimutuel markets report
    the odds the pools imply right now.
    """
    terms, market, book = load_market(view, market_id)
    if market.home_odds is not None:
        return {Outcome.HOME: market.home_odds, Outcome.AWAY: market.away_odds}
    strategy = strategy_for(terms.market_type)
    quotes = strategy.reprice(terms, market, book, custody_balance(view, market_id, terms.denom))
    return {o: truncate_decimal(q, ODDS_DECIMAL_PLACES) for o, q in quotes.items()}


def query_max_bets(view: LedgerView, market_id: str) -> Optional[Dict[Outcome, int]]:
    """Largest stake accepted per side (fixed-odds), zero once the market is settled, None for pools."""
    terms, market, book = load_market(view, market_id)
    return strategy_for(terms.market_type).max_bets(
        terms, market, book, custody_balance(view, market_id, terms.denom),
    )
