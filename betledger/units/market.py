"""
market.py - Betting Market Units and Lifecycle

A market is a single ledger Unit. Its state holds the market configuration,
the market record (teams, schedule, status, result) and the bet book. Staked
funds sit in a dedicated custody wallet, market_wallet(market_id).

ARCHITECTURE (Pure Function Pattern):
=====================================

1. FROZEN DATACLASSES (explicit inputs):
   - MarketTerms: configuration (administrator, treasury, fees, pricing knobs)
   - MarketState: market record (teams, start time, status, result, odds)
   - BetBook: stakes, totals and claims (see bet_book.py)

2. ADAPTER FUNCTIONS (load_market / to_state_dict):
   - The only place that touches LedgerView for reads

3. GUARDS AND TRANSITIONS:
   - require_* raise a typed MarketError, nothing else
   - close_market / cancel_market return a new MarketState

Lifecycle:
    ACTIVE --score--> CLOSED       (result written once)
    ACTIVE --cancel-> CANCELLED
    CLOSED and CANCELLED are terminal; only claims run afterwards.
"""

from __future__ import annotations
from dataclasses import dataclass, replace
from datetime import datetime, timedelta
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, Optional, Tuple

from ..core import (
    LedgerView, Unit,
    UNIT_TYPE_PARIMUTUEL_MARKET, UNIT_TYPE_FIXED_ODDS_MARKET,
    Unauthorized, UnitNotRegistered, MarketNotActive, MarketNotDrawable,
    BetsNotAccepted, MarketNotScoreable,
    _freeze_state,
)
from .bet_book import BetBook, book_from_state, book_to_state


# Bets close this long before the event starts.
BET_CUTOFF = timedelta(seconds=300)

# A market can be scored this long after the event starts.
SCORE_DELAY = timedelta(seconds=1800)


class MarketStatus(str, Enum):
    ACTIVE = "ACTIVE"
    CLOSED = "CLOSED"
    CANCELLED = "CANCELLED"


class Outcome(str, Enum):
    HOME = "HOME"
    AWAY = "AWAY"
    DRAW = "DRAW"


class MarketType(str, Enum):
    PARIMUTUEL = "PARIMUTUEL"
    FIXED_ODDS = "FIXED_ODDS"


MARKET_UNIT_TYPES = {
    MarketType.PARIMUTUEL: UNIT_TYPE_PARIMUTUEL_MARKET,
    MarketType.FIXED_ODDS: UNIT_TYPE_FIXED_ODDS_MARKET,
}


def _to_decimal(value: Any) -> Decimal:
    return value if isinstance(value, Decimal) else Decimal(str(value))


@dataclass(frozen=True, slots=True)
class MarketTerms:
    """
    Market configuration - set at creation, changed only by update_market.

    Parimutuel markets use fee_bps. Fixed-odds markets use the spread,
    risk factor, amplifier and initial odds; reprice_on_bet controls
    whether quoted odds move after every accepted bet.
    """
    admin: str
    treasury: str
    denom: str
    market_type: MarketType
    fee_bps: int = 0
    fee_spread_odds: Decimal = Decimal("0")
    max_bet_risk_factor: Decimal = Decimal("1")
    seed_liquidity_amplifier: Decimal = Decimal("1")
    initial_odds_home: Decimal = Decimal("1")
    initial_odds_away: Decimal = Decimal("1")
    reprice_on_bet: bool = True

    def __post_init__(self):
        """Coerce enum and Decimal fields passed as plain values."""
        if not isinstance(self.market_type, MarketType):
            object.__setattr__(self, 'market_type', MarketType(self.market_type))
        for name in ('fee_spread_odds', 'max_bet_risk_factor', 'seed_liquidity_amplifier',
                     'initial_odds_home', 'initial_odds_away'):
            object.__setattr__(self, name, _to_decimal(getattr(self, name)))
        if not self.admin or not self.admin.strip():
            raise ValueError("admin cannot be empty")
        if not self.treasury or not self.treasury.strip():
            raise ValueError("treasury cannot be empty")
        if not self.denom or not self.denom.strip():
            raise ValueError("denom cannot be empty")


@dataclass(frozen=True, slots=True)
class MarketParams:
    """What the administrator supplies about the event when creating a market."""
    market_id: str
    label: str
    home_team: str
    away_team: str
    start_timestamp: datetime
    is_drawable: bool = False


@dataclass(frozen=True, slots=True)
class MarketState:
    """
    The market record. status only moves forward and result is written once.

    home_odds/away_odds are the current quotes of a fixed-odds market and
    None for parimutuel markets.
    """
    market_id: str
    label: str
    home_team: str
    away_team: str
    start_timestamp: datetime
    is_drawable: bool
    status: MarketStatus = MarketStatus.ACTIVE
    result: Optional[Outcome] = None
    home_odds: Optional[Decimal] = None
    away_odds: Optional[Decimal] = None

    def odds_for(self, outcome: Outcome) -> Decimal:
        if outcome == Outcome.HOME:
            return self.home_odds
        if outcome == Outcome.AWAY:
            return self.away_odds
        raise MarketNotDrawable(f"market {self.market_id} does not quote DRAW")


def market_wallet(market_id: str) -> str:
    """Custody wallet holding the market's staked funds."""
    return f"market:{market_id}"


# ============================================================================
# ADAPTER FUNCTIONS
# ============================================================================

def terms_to_dict(terms: MarketTerms) -> Dict[str, Any]:
    config = {
        'admin': terms.admin,
        'treasury': terms.treasury,
        'denom': terms.denom,
        'market_type': terms.market_type.value,
    }
    if terms.market_type == MarketType.PARIMUTUEL:
        config['fee_bps'] = terms.fee_bps
    else:
        config.update({
            'fee_spread_odds': terms.fee_spread_odds,
            'max_bet_risk_factor': terms.max_bet_risk_factor,
            'seed_liquidity_amplifier': terms.seed_liquidity_amplifier,
            'initial_odds_home': terms.initial_odds_home,
            'initial_odds_away': terms.initial_odds_away,
            'reprice_on_bet': terms.reprice_on_bet,
        })
    return config


def market_to_dict(market: MarketState) -> Dict[str, Any]:
    record = {
        'id': market.market_id,
        'label': market.label,
        'home_team': market.home_team,
        'away_team': market.away_team,
        'start_timestamp': market.start_timestamp,
        'is_drawable': market.is_drawable,
        'status': market.status.value,
        'result': market.result.value if market.result else None,
    }
    if market.home_odds is not None:
        record['home_odds'] = market.home_odds
        record['away_odds'] = market.away_odds
    return record


def to_state_dict(terms: MarketTerms, market: MarketState, book: BetBook) -> Dict[str, Any]:
    """Inverse of load_market(): the unit state written back to the ledger."""
    return {
        'config': terms_to_dict(terms),
        'market': market_to_dict(market),
        **book_to_state(book),
    }


def load_market(view: LedgerView, market_id: str) -> Tuple[MarketTerms, MarketState, BetBook]:
    """
    Load a market from ledger state as typed frozen dataclasses.

    Raises:
        UnitNotRegistered: if no market with this id exists
    """
    raw = view.get_unit_state(market_id)
    if 'config' not in raw or 'market' not in raw:
        raise UnitNotRegistered(f"{market_id} is not a market")
    config = raw['config']
    record = raw['market']

    terms = MarketTerms(
        admin=config['admin'],
        treasury=config['treasury'],
        denom=config['denom'],
        market_type=MarketType(config['market_type']),
        fee_bps=config.get('fee_bps', 0),
        fee_spread_odds=config.get('fee_spread_odds', Decimal("0")),
        max_bet_risk_factor=config.get('max_bet_risk_factor', Decimal("1")),
        seed_liquidity_amplifier=config.get('seed_liquidity_amplifier', Decimal("1")),
        initial_odds_home=config.get('initial_odds_home', Decimal("1")),
        initial_odds_away=config.get('initial_odds_away', Decimal("1")),
        reprice_on_bet=config.get('reprice_on_bet', True),
    )

    market = MarketState(
        market_id=record['id'],
        label=record['label'],
        home_team=record['home_team'],
        away_team=record['away_team'],
        start_timestamp=record['start_timestamp'],
        is_drawable=record['is_drawable'],
        status=MarketStatus(record['status']),
        result=Outcome(record['result']) if record.get('result') else None,
        home_odds=record.get('home_odds'),
        away_odds=record.get('away_odds'),
    )

    return terms, market, book_from_state(raw)


def create_market_unit(terms: MarketTerms, market: MarketState, book: BetBook) -> Unit:
    """
    Build the ledger Unit representing a market.

    Nobody holds the market unit itself; its state is the market and the
    stakes live in the custody wallet. revision starts at 0 and every later
    write increments it.
    """
    return Unit(
        symbol=market.market_id,
        name=market.label,
        unit_type=MARKET_UNIT_TYPES[terms.market_type],
        min_balance=Decimal("0"),
        max_balance=Decimal("0"),
        decimal_places=0,
        _frozen_state=_freeze_state({**to_state_dict(terms, market, book), 'revision': 0}),
    )


# ============================================================================
# GUARDS
# ============================================================================

def require_admin(terms: MarketTerms, sender: str) -> None:
    if sender != terms.admin:
        raise Unauthorized(f"{sender} is not the market administrator")


def require_active(market: MarketState) -> None:
    if market.status != MarketStatus.ACTIVE:
        raise MarketNotActive(f"market {market.market_id} is {market.status.value}")


def require_outcome_allowed(market: MarketState, outcome: Outcome) -> None:
    if outcome == Outcome.DRAW and not market.is_drawable:
        raise MarketNotDrawable(f"market {market.market_id} does not accept DRAW")


def require_bets_open(market: MarketState, now: datetime, cutoff: timedelta = BET_CUTOFF) -> None:
    """A bet at exactly start - cutoff is still accepted."""
    if market.start_timestamp - cutoff < now:
        raise BetsNotAccepted(
            f"bets on {market.market_id} closed at {market.start_timestamp - cutoff}"
        )


def require_scoreable(market: MarketState, now: datetime, delay: timedelta = SCORE_DELAY) -> None:
    """Scoring is allowed from start + delay onwards."""
    if now < market.start_timestamp + delay:
        raise MarketNotScoreable(
            f"market {market.market_id} can be scored from {market.start_timestamp + delay}"
        )


# ============================================================================
# TRANSITIONS
# ============================================================================

def close_market(market: MarketState, result: Outcome) -> MarketState:
    require_active(market)
    return replace(market, status=MarketStatus.CLOSED, result=result)


def cancel_market(market: MarketState) -> MarketState:
    require_active(market)
    return replace(market, status=MarketStatus.CANCELLED)
