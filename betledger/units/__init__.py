"""
units - Market units and their bet books.

- market: market configuration, record, lifecycle guards and transitions
- bet_book: stakes, totals, claims and promised payouts
"""

from .bet_book import (
    BetBook,
    empty_book,
    record_stake,
    record_payout,
    mark_claimed,
    has_claimed,
    stake_of,
    payout_of,
    total_stake_of,
    total_pool,
    is_consistent,
)
from .market import (
    BET_CUTOFF,
    SCORE_DELAY,
    MarketStatus,
    Outcome,
    MarketType,
    MarketTerms,
    MarketParams,
    MarketState,
    market_wallet,
    load_market,
    to_state_dict,
    create_market_unit,
    close_market,
    cancel_market,
)

__all__ = [
    'BetBook',
    'empty_book',
    'record_stake',
    'record_payout',
    'mark_claimed',
    'has_claimed',
    'stake_of',
    'payout_of',
    'total_stake_of',
    'total_pool',
    'is_consistent',
    'BET_CUTOFF',
    'SCORE_DELAY',
    'MarketStatus',
    'Outcome',
    'MarketType',
    'MarketTerms',
    'MarketParams',
    'MarketState',
    'market_wallet',
    'load_market',
    'to_state_dict',
    'create_market_unit',
    'close_market',
    'cancel_market',
]
