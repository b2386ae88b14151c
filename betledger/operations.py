"""
operations.py - Settlement Operations

Pure functions implementing every state-changing market operation. Each one:

    1. loads config, market record and bet book through a LedgerView
    2. checks authorization, lifecycle status and time gates
    3. prices the operation through the market's PricingStrategy
    4. returns an OperationPlan wrapping a PendingTransaction

Every precondition raises a typed MarketError BEFORE anything is built, so a
failed operation never reaches the ledger. The ledger then commits the plan's
moves and the market's new state together (see Ledger.execute).

Operations:
    compute_create_market   administrator opens a market (fixed-odds: with seed)
    compute_place_bet       anyone stakes on an outcome while bets are open
    compute_claim           one payout per receiver once the market is settled
    compute_update_market   administrator adjusts configuration while ACTIVE
    compute_score_market    administrator records the result, fee to treasury
    compute_cancel_market   administrator cancels, every stake becomes refundable
"""

from __future__ import annotations
from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Any, Dict, Iterable, Mapping, Optional, Tuple

from .core import (
    LedgerView, Move, OriginType, PendingTransaction, TransactionOrigin, UnitStateChange,
    ClaimAlreadyMade, MarketNotClosed, MarketNotInitiallyFunded, NoWinnings, PaymentError,
    Unauthorized, build_transaction,
)
from .strategies import strategy_for
from .units.bet_book import has_claimed, mark_claimed
from .units.market import (
    BET_CUTOFF, SCORE_DELAY,
    MarketParams, MarketStatus, MarketTerms, Outcome,
    cancel_market, close_market, create_market_unit, load_market, market_wallet,
    require_active, require_admin, require_bets_open, require_outcome_allowed,
    require_scoreable, to_state_dict,
)
from .validation import Coin, must_pay


# Fields every market accepts in update_market; strategies add their own.
COMMON_UPDATE_FIELDS = frozenset({'admin', 'treasury', 'start_timestamp'})


@dataclass(frozen=True, slots=True)
class OperationPlan:
    """
    A validated operation, ready for the ledger.

    attributes mirror what a client sees in the operation's response:
    action, sender, receiver, amounts, totals and quotes.
    """
    action: str
    market_id: str
    pending: PendingTransaction
    attributes: Mapping[str, Any] = field(default_factory=dict)

    @property
    def transfers(self) -> Tuple[Move, ...]:
        return self.pending.moves


def custody_balance(view: LedgerView, market_id: str, denom: str) -> int:
    """Funds currently held for the market, in minimal units."""
    return int(view.get_balance(market_wallet(market_id), denom))


def _origin(origin_type: OriginType, sender: str, market_id: str, action: str) -> TransactionOrigin:
    return TransactionOrigin(
        origin_type=origin_type,
        source_id=sender,
        unit_symbol=market_id,
        event_type=action,
    )


def _state_change(view: LedgerView, market_id: str, new_state: Dict[str, Any]) -> UnitStateChange:
    """Every write bumps the market revision, so no two writes share an intent_id."""
    old_state = view.get_unit_state(market_id)
    return UnitStateChange(
        unit=market_id,
        old_state=old_state,
        new_state={**new_state, 'revision': old_state.get('revision', 0) + 1},
    )


# ============================================================================
# CREATE
# ============================================================================

def compute_create_market(
    view: LedgerView,
    sender: str,
    params: MarketParams,
    terms: MarketTerms,
    funds: Iterable[Coin] = (),
    creator: Optional[str] = None,
) -> OperationPlan:
    """
    Open a new market.

    Registers the market unit and its custody wallet in the same transaction.
    A fixed-odds market must be sent its seed liquidity; a parimutuel market
    accepts no funds.

    Args:
        view: Read-only ledger access
        sender: Identity submitting the operation
        params: Event description (id, label, teams, start time, drawable)
        terms: Market configuration
        funds: Attached coins (the fixed-odds seed)
        creator: Identity allowed to open markets (defaults to terms.admin)

    Raises:
        Unauthorized: sender is not the designated creator
        InvalidFeeBps, InvalidOdds, ...: terms out of range
        MarketNotInitiallyFunded: fixed-odds market without a seed
        PaymentError: funds attached to a parimutuel market
    """
    authorized = creator or terms.admin
    if sender != authorized:
        raise Unauthorized(f"{sender} may not create markets")
    if not params.market_id or not params.market_id.strip():
        raise ValueError("market_id cannot be empty")
    if not isinstance(params.start_timestamp, datetime):
        raise ValueError(f"start_timestamp must be a datetime, got {type(params.start_timestamp)}")

    strategy = strategy_for(terms.market_type)
    strategy.validate_terms(terms)

    funds = list(funds)
    seed = 0
    if strategy.requires_seed:
        try:
            seed = must_pay(funds, terms.denom)
        except PaymentError as e:
            raise MarketNotInitiallyFunded(f"seed liquidity required: {e}") from e
    elif funds:
        raise PaymentError(f"{terms.market_type.value} markets do not take funds at creation")

    market, book = strategy.open_market(terms, params, seed)
    custody = market_wallet(params.market_id)

    moves = []
    if seed:
        moves.append(Move(
            quantity=Decimal(seed),
            unit_symbol=terms.denom,
            source=sender,
            dest=custody,
            contract_id=f"{params.market_id}:seed",
        ))

    pending = build_transaction(
        view,
        moves,
        origin=_origin(OriginType.ADMIN, sender, params.market_id, "create_market"),
        units_to_create=(create_market_unit(terms, market, book),),
        wallets_to_create=(custody,),
    )
    attributes = {
        'action': 'create_market',
        'sender': sender,
        'market_id': params.market_id,
        'market_type': terms.market_type.value,
    }
    if seed:
        attributes.update({'seed': seed, 'home_odds': market.home_odds, 'away_odds': market.away_odds})
    return OperationPlan('create_market', params.market_id, pending, attributes)


# ============================================================================
# PLACE BET
# ============================================================================

def compute_place_bet(
    view: LedgerView,
    sender: str,
    market_id: str,
    outcome: Outcome,
    funds: Iterable[Coin],
    receiver: Optional[str] = None,
    min_odds: Optional[Decimal] = None,
    cutoff: timedelta = BET_CUTOFF,
) -> OperationPlan:
    """
    Stake the attached funds on an outcome.

    The stake moves from the sender to the market's custody wallet and is
    credited to `receiver` (default: the sender).

    Checks, in order:
        DRAW on a non-drawable market -> MarketNotDrawable
        market not ACTIVE            -> MarketNotActive
        past start - cutoff          -> BetsNotAccepted
        quote below min_odds         -> MinimumOddsNotKept (fixed-odds)
        bad attached funds           -> PaymentError
        stake above the side limit   -> MaxBetExceeded (fixed-odds)
    """
    outcome = Outcome(outcome)
    receiver = receiver or sender
    terms, market, book = load_market(view, market_id)
    strategy = strategy_for(terms.market_type)

    require_outcome_allowed(market, outcome)
    require_active(market)
    require_bets_open(market, view.current_time, cutoff)
    if min_odds is not None:
        min_odds = Decimal(str(min_odds))
    strategy.check_bet(terms, market, book, outcome, min_odds)

    amount = must_pay(funds, terms.denom)
    balance = custody_balance(view, market_id, terms.denom)
    market, book, priced = strategy.record_bet(
        terms, market, book, receiver, outcome, amount, balance,
    )

    moves = [Move(
        quantity=Decimal(amount),
        unit_symbol=terms.denom,
        source=sender,
        dest=market_wallet(market_id),
        contract_id=f"{market_id}:bet",
    )]
    pending = build_transaction(
        view,
        moves,
        [_state_change(view, market_id, to_state_dict(terms, market, book))],
        origin=_origin(OriginType.USER_ACTION, sender, market_id, "place_bet"),
    )
    attributes = {
        'action': 'place_bet',
        'sender': sender,
        'receiver': receiver,
        'outcome': outcome.value,
        **priced,
    }
    return OperationPlan('place_bet', market_id, pending, attributes)


# ============================================================================
# CLAIM
# ============================================================================

def compute_claim(
    view: LedgerView,
    sender: str,
    market_id: str,
    receiver: Optional[str] = None,
) -> OperationPlan:
    """
    Pay `receiver` (default: the sender) what the settled market owes them.

    CLOSED markets pay the strategy's payout for the result; CANCELLED markets
    refund every stake. The claim flag and the single outgoing transfer are
    committed together, so a receiver is paid at most once.

    Raises:
        MarketNotClosed: market still ACTIVE
        ClaimAlreadyMade: receiver already paid
        NoWinnings: nothing owed (the claim flag is NOT written)
    """
    receiver = receiver or sender
    terms, market, book = load_market(view, market_id)
    strategy = strategy_for(terms.market_type)

    if market.status == MarketStatus.ACTIVE:
        raise MarketNotClosed(f"market {market_id} is still active")
    if has_claimed(book, receiver):
        raise ClaimAlreadyMade(f"{receiver} already claimed from {market_id}")

    payout = strategy.compute_payout(terms, market, book, receiver)
    if payout == 0:
        raise NoWinnings(f"{receiver} has nothing to claim from {market_id}")

    book = mark_claimed(book, receiver)
    moves = [Move(
        quantity=Decimal(payout),
        unit_symbol=terms.denom,
        source=market_wallet(market_id),
        dest=receiver,
        contract_id=f"{market_id}:claim",
    )]
    pending = build_transaction(
        view,
        moves,
        [_state_change(view, market_id, to_state_dict(terms, market, book))],
        origin=_origin(OriginType.USER_ACTION, sender, market_id, "claim_winnings"),
    )
    attributes = {
        'action': 'claim_winnings',
        'sender': sender,
        'receiver': receiver,
        'payout': payout,
    }
    return OperationPlan('claim_winnings', market_id, pending, attributes)


# ============================================================================
# ADMINISTRATION
# ============================================================================

def compute_update_market(
    view: LedgerView,
    sender: str,
    market_id: str,
    **changes: Any,
) -> OperationPlan:
    """
    Change configuration of an ACTIVE market. Omitted (or None) fields are kept.

    Common fields: admin, treasury, start_timestamp.
    Parimutuel: fee_bps.
    Fixed-odds: fee_spread_odds, max_bet_risk_factor, seed_liquidity_amplifier,
    initial_odds_home, initial_odds_away (each also resets that side's quote),
    reprice_on_bet.

    Every supplied field is validated before anything is written.

    Raises:
        Unauthorized, MarketNotActive, a pricing validation error, or
        ValueError for a field the market type does not have
    """
    terms, market, book = load_market(view, market_id)
    strategy = strategy_for(terms.market_type)
    require_admin(terms, sender)
    require_active(market)

    changes = {k: v for k, v in changes.items() if v is not None}
    unknown = set(changes) - COMMON_UPDATE_FIELDS - strategy.update_fields
    if unknown:
        raise ValueError(
            f"{terms.market_type.value} markets have no field(s): {', '.join(sorted(unknown))}"
        )

    if 'admin' in changes:
        terms = replace(terms, admin=changes['admin'])
    if 'treasury' in changes:
        terms = replace(terms, treasury=changes['treasury'])
    if 'start_timestamp' in changes:
        if not isinstance(changes['start_timestamp'], datetime):
            raise ValueError("start_timestamp must be a datetime")
        market = replace(market, start_timestamp=changes['start_timestamp'])
    terms, market = strategy.apply_update(terms, market, changes)

    pending = build_transaction(
        view,
        [],
        [_state_change(view, market_id, to_state_dict(terms, market, book))],
        origin=_origin(OriginType.ADMIN, sender, market_id, "update_market"),
    )
    attributes = {
        'action': 'update_market',
        'sender': sender,
        'fields': ','.join(sorted(changes)),
    }
    return OperationPlan('update_market', market_id, pending, attributes)


def compute_score_market(
    view: LedgerView,
    sender: str,
    market_id: str,
    result: Outcome,
    delay: timedelta = SCORE_DELAY,
) -> OperationPlan:
    """
    Record the event result and close the market.

    The strategy's settlement fee moves from custody to the treasury in the
    same transaction (nothing moves when the fee is zero).

    Checks, in order:
        sender not administrator     -> Unauthorized
        DRAW on a non-drawable market -> MarketNotDrawable
        market not ACTIVE            -> MarketNotActive
        before start + delay         -> MarketNotScoreable
        parimutuel one-sided pool    -> NoWinnings
    """
    result = Outcome(result)
    terms, market, book = load_market(view, market_id)
    strategy = strategy_for(terms.market_type)

    require_admin(terms, sender)
    require_outcome_allowed(market, result)
    require_active(market)
    require_scoreable(market, view.current_time, delay)

    balance = custody_balance(view, market_id, terms.denom)
    fee = strategy.settlement_fee(terms, book, result, balance)
    market = close_market(market, result)

    moves = []
    if fee > 0:
        moves.append(Move(
            quantity=Decimal(fee),
            unit_symbol=terms.denom,
            source=market_wallet(market_id),
            dest=terms.treasury,
            contract_id=f"{market_id}:fee",
        ))
    pending = build_transaction(
        view,
        moves,
        [_state_change(view, market_id, to_state_dict(terms, market, book))],
        origin=_origin(OriginType.ADMIN, sender, market_id, "score_market"),
    )
    attributes = {
        'action': 'score_market',
        'sender': sender,
        'result': result.value,
        'fee_collected': fee,
    }
    return OperationPlan('score_market', market_id, pending, attributes)


def compute_cancel_market(view: LedgerView, sender: str, market_id: str) -> OperationPlan:
    """Cancel an ACTIVE market. No funds move; every stake becomes claimable as a refund."""
    terms, market, book = load_market(view, market_id)
    require_admin(terms, sender)
    market = cancel_market(market)

    pending = build_transaction(
        view,
        [],
        [_state_change(view, market_id, to_state_dict(terms, market, book))],
        origin=_origin(OriginType.ADMIN, sender, market_id, "cancel_market"),
    )
    return OperationPlan('cancel_market', market_id, pending, {'action': 'cancel_market', 'sender': sender})
