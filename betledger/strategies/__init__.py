"""
strategies - Pricing strategies for betting markets.

A market's strategy is chosen once, at creation, from the closed set of
MarketType values. Every strategy exposes the same capability set so the
settlement operations never branch on market type.

Available strategies:
- parimutuel: stakes pooled per outcome, winners split the pool net of a fee
- fixed_odds: stakes priced at a quoted odd against seeded house liquidity
"""

from __future__ import annotations
from decimal import Decimal
from typing import Any, Dict, FrozenSet, Mapping, Optional, Protocol, Tuple

from ..units.bet_book import BetBook
from ..units.market import MarketParams, MarketState, MarketTerms, MarketType, Outcome
from .fixed_odds import FixedOddsPricing
from .parimutuel import ParimutuelPricing


class PricingStrategy(Protocol):
    """
    Capability set shared by all pricing strategies.

    record_bet, compute_payout and reprice are the pricing core; the
    remaining methods let operations stay type-agnostic.
    """

    market_type: MarketType
    requires_seed: bool
    update_fields: FrozenSet[str]

    def outcomes(self, is_drawable: bool) -> Tuple[Outcome, ...]: ...

    def validate_terms(self, terms: MarketTerms) -> None: ...

    def open_market(self, terms: MarketTerms, params: MarketParams, seed: int) -> Tuple[MarketState, BetBook]: ...

    def check_bet(self, terms: MarketTerms, market: MarketState, book: BetBook,
                  outcome: Outcome, min_odds: Optional[Decimal]) -> None: ...

    def record_bet(self, terms: MarketTerms, market: MarketState, book: BetBook, account: str,
                   outcome: Outcome, amount: int, market_balance: int
                   ) -> Tuple[MarketState, BetBook, Dict[str, Any]]: ...

    def compute_payout(self, terms: MarketTerms, market: MarketState, book: BetBook, account: str) -> int: ...

    def estimate(self, terms: MarketTerms, market: MarketState, book: BetBook,
                 account: str, result: Outcome) -> int: ...

    def reprice(self, terms: MarketTerms, market: MarketState, book: BetBook,
                market_balance: int) -> Dict[Outcome, Decimal]: ...

    def settlement_fee(self, terms: MarketTerms, book: BetBook, result: Outcome, market_balance: int) -> int: ...

    def max_bets(self, terms: MarketTerms, market: MarketState, book: BetBook,
                 market_balance: int) -> Optional[Dict[Outcome, int]]: ...

    def apply_update(self, terms: MarketTerms, market: MarketState,
                     changes: Mapping[str, Any]) -> Tuple[MarketTerms, MarketState]: ...


STRATEGIES: Dict[MarketType, PricingStrategy] = {
    MarketType.PARIMUTUEL: ParimutuelPricing(),
    MarketType.FIXED_ODDS: FixedOddsPricing(),
}


def strategy_for(market_type: MarketType) -> PricingStrategy:
    return STRATEGIES[MarketType(market_type)]


__all__ = [
    'PricingStrategy',
    'ParimutuelPricing',
    'FixedOddsPricing',
    'STRATEGIES',
    'strategy_for',
]
