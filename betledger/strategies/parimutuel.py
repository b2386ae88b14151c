"""
parimutuel.py - Pooled Pricing

Stakes are pooled per outcome. When the market closes the house takes a fee
in basis points of the whole pool and the winning outcome's backers split
what is left in proportion to their stakes:

    fee    = floor(total_pool * fee_bps / 10000)
    payout = floor((total_pool - fee) * stake / winning_total)

Rounding dust from the floor stays in the custody wallet. A cancelled
market refunds every stake in full without a fee.
"""

from __future__ import annotations
from dataclasses import replace
from decimal import Decimal
from typing import Any, Dict, Mapping, Optional, Tuple

from ..core import NoWinnings
from ..pricing import calculate_implied_odds, calculate_parimutuel_payout, fee_from_bps
from ..units.bet_book import (
    BetBook, empty_book, record_stake, stake_of, total_stake_of, total_pool,
)
from ..units.market import (
    MarketParams, MarketState, MarketStatus, MarketTerms, MarketType, Outcome,
)
from ..validation import validate_fee_bps


class ParimutuelPricing:
    """Pool-splitting strategy. Accepts DRAW on drawable markets."""

    market_type = MarketType.PARIMUTUEL
    requires_seed = False
    update_fields = frozenset({'fee_bps'})

    def outcomes(self, is_drawable: bool) -> Tuple[Outcome, ...]:
        if is_drawable:
            return (Outcome.HOME, Outcome.AWAY, Outcome.DRAW)
        return (Outcome.HOME, Outcome.AWAY)

    def validate_terms(self, terms: MarketTerms) -> None:
        validate_fee_bps(terms.fee_bps)

    def open_market(self, terms: MarketTerms, params: MarketParams, seed: int) -> Tuple[MarketState, BetBook]:
        market = MarketState(
            market_id=params.market_id,
            label=params.label,
            home_team=params.home_team,
            away_team=params.away_team,
            start_timestamp=params.start_timestamp,
            is_drawable=params.is_drawable,
        )
        book = empty_book(o.value for o in self.outcomes(params.is_drawable))
        return market, book

    def check_bet(
        self,
        terms: MarketTerms,
        market: MarketState,
        book: BetBook,
        outcome: Outcome,
        min_odds: Optional[Decimal],
    ) -> None:
        """Pool odds are unknown until close, so there is nothing to guard before payment."""
        return None

    def record_bet(
        self,
        terms: MarketTerms,
        market: MarketState,
        book: BetBook,
        account: str,
        outcome: Outcome,
        amount: int,
        market_balance: int,
    ) -> Tuple[MarketState, BetBook, Dict[str, Any]]:
        book = record_stake(book, account, outcome.value, amount)
        attributes = {
            'amount': amount,
            f'total_{outcome.value.lower()}': book.totals[outcome.value],
        }
        return market, book, attributes

    def compute_payout(self, terms: MarketTerms, market: MarketState, book: BetBook, account: str) -> int:
        if market.status == MarketStatus.CANCELLED:
            return total_stake_of(book, account)
        if market.status == MarketStatus.CLOSED:
            return self.estimate(terms, market, book, account, market.result)
        return 0

    def estimate(
        self,
        terms: MarketTerms,
        market: MarketState,
        book: BetBook,
        account: str,
        result: Outcome,
    ) -> int:
        """Payout the account would receive if the market closed on `result` now."""
        return calculate_parimutuel_payout(
            total_pool(book),
            book.totals.get(result.value, 0),
            stake_of(book, account, result.value),
            terms.fee_bps,
        )

    def reprice(
        self,
        terms: MarketTerms,
        market: MarketState,
        book: BetBook,
        market_balance: int,
    ) -> Dict[Outcome, Decimal]:
        """Implied decimal odds of each outcome given the current pools."""
        pool = total_pool(book)
        return {
            o: calculate_implied_odds(pool, book.totals.get(o.value, 0), terms.fee_bps)
            for o in self.outcomes(market.is_drawable)
        }

    def settlement_fee(self, terms: MarketTerms, book: BetBook, result: Outcome, market_balance: int) -> int:
        """
        Fee moved to the treasury when the market is scored.

        Raises:
            NoWinnings: nobody backed the result, or nobody bet against it
        """
        pool = total_pool(book)
        winning = book.totals.get(result.value, 0)
        if winning == 0 or pool - winning == 0:
            raise NoWinnings(f"no bets on both sides of {result.value}")
        return fee_from_bps(pool, terms.fee_bps)

    def max_bets(self, terms: MarketTerms, market: MarketState, book: BetBook, market_balance: int) -> Optional[Dict[Outcome, int]]:
        """Pools accept any stake."""
        return None

    def apply_update(
        self,
        terms: MarketTerms,
        market: MarketState,
        changes: Mapping[str, Any],
    ) -> Tuple[MarketTerms, MarketState]:
        if 'fee_bps' in changes:
            terms = replace(terms, fee_bps=validate_fee_bps(changes['fee_bps']))
        return terms, market
