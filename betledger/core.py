"""
core.py - Ledger primitives shared by every settlement operation

Moves, pending and applied transactions, units, the LedgerView protocol
and the exception taxonomy. Markets are Units whose state holds their
configuration and bet book; stakes sit in a custody wallet per market.

Nothing here mutates a ledger. The Ledger class in ledger.py applies what
these types describe.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal, ROUND_HALF_EVEN, ROUND_DOWN, getcontext
from enum import Enum
import copy
import hashlib
from typing import (
    Dict, List, Set, Optional, Any, Protocol,
    Tuple, FrozenSet, runtime_checkable,
)


# Pricing divides Decimals; 50 digits keeps every intermediate exact enough
# that only the explicit truncations in pricing.py decide the result.
# pricing.py switches rounding mode through decimal.localcontext() only.
_LEDGER_DECIMAL_CONTEXT = getcontext()
_LEDGER_DECIMAL_CONTEXT.prec = 50
_LEDGER_DECIMAL_CONTEXT.rounding = ROUND_HALF_EVEN


# ============================================================================
# CONSTANTS
# ============================================================================

# Issuance source; exempt from balance checks, so its balance goes negative.
SYSTEM_WALLET = "system"

UNIT_TYPE_CASH = "CASH"
UNIT_TYPE_PARIMUTUEL_MARKET = "PARIMUTUEL_MARKET"
UNIT_TYPE_FIXED_ODDS_MARKET = "FIXED_ODDS_MARKET"

# Moves smaller than this are refused as zero.
QUANTITY_EPSILON = Decimal("1e-12")

# Every stored amount must fit in an unsigned 128-bit integer.
MAX_AMOUNT = 2 ** 128 - 1


# ============================================================================
# TYPE ALIASES
# ============================================================================

# unit symbol -> quantity, for one wallet
BalanceMap = Dict[str, Decimal]

# Internal state for a unit: config, market record, bet book, claims.
UnitState = Dict[str, Any]


# ============================================================================
# PROTOCOLS
# ============================================================================

@runtime_checkable
class LedgerView(Protocol):
    """
    What a compute_* function may read: the clock, balances and market state.

    Ledger satisfies it directly; tests pass a FakeView built from plain dicts.
    """

    @property
    def current_time(self) -> datetime:
        ...

    def get_balance(self, wallet_id: str, unit_symbol: str) -> Decimal:
        """Zero when the wallet holds none of the unit."""
        ...

    def get_unit_state(self, unit_symbol: str) -> UnitState:
        """A copy; mutating it does not touch the ledger."""
        ...

    def list_wallets(self) -> Set[str]:
        ...

    def get_unit(self, symbol: str) -> 'Unit':
        ...


# ============================================================================
# ENUMS
# ============================================================================

class ExecuteResult(Enum):
    """
    What Ledger.execute() did with a PendingTransaction.

    ALREADY_APPLIED means the intent_id was seen before and nothing changed.
    REJECTED leaves the reason in Ledger.last_rejection.
    """
    APPLIED = "applied"
    ALREADY_APPLIED = "already_applied"
    REJECTED = "rejected"


class OriginType(Enum):
    """Who submits: a bettor, the market administrator, or setup code."""
    USER_ACTION = "user_action"           # Bettor-initiated (place bet, claim)
    ADMIN = "admin"                       # Administrator (create, update, score, cancel)
    SYSTEM = "system"                     # Issuance and initial setup


# ============================================================================
# EXCEPTIONS
# ============================================================================

class LedgerError(Exception):
    """Base class for ledger and market errors."""
    pass


class UnitNotRegistered(LedgerError):
    """No unit (currency or market) with this symbol."""
    pass


class WalletNotRegistered(LedgerError):
    """No wallet with this id."""
    pass


class TransactionRejected(LedgerError):
    """Raised when the ledger refuses to commit a pending transaction."""

    def __init__(self, reason: str):
        super().__init__(f"transaction rejected: {reason}")
        self.reason = reason


class MarketError(LedgerError):
    """Base exception for betting market operations."""
    pass


# Authorization

class Unauthorized(MarketError):
    """Caller is not the market administrator."""
    pass


# Lifecycle

class MarketNotActive(MarketError):
    """Operation requires an ACTIVE market."""
    pass


class MarketNotClosed(MarketError):
    """Claims are only accepted once the market is CLOSED or CANCELLED."""
    pass


class MarketNotDrawable(MarketError):
    """DRAW was selected on a market that does not accept it."""
    pass


# Timing

class BetsNotAccepted(MarketError):
    """The bet cutoff before the event start has passed."""
    pass


class MarketNotScoreable(MarketError):
    """The event has not been running long enough to be scored."""
    pass


# Payment

class PaymentError(MarketError):
    """The attached funds are missing, split across coins or in the wrong denom."""
    pass


class MarketNotInitiallyFunded(PaymentError):
    """A fixed-odds market was created without seed liquidity."""
    pass


# Pricing

class InvalidFeeBps(MarketError):
    """Parimutuel fee exceeds the allowed maximum."""
    pass


class InvalidOdds(MarketError):
    """Decimal odds must be at least 1.0."""
    pass


class InvalidFeeSpreadOdds(MarketError):
    """Fee spread must lie between 0 and 0.25."""
    pass


class InvalidMaxBetRiskFactor(MarketError):
    """Risk factor must lie between 1 and 10."""
    pass


class InvalidSeedLiquidityAmplifier(MarketError):
    """Seed liquidity amplifier must lie between 1 and 10."""
    pass


class MinimumOddsNotKept(MarketError):
    """Quoted odds dropped below the bettor's minimum."""
    pass


class MaxBetExceeded(MarketError):
    """Stake is larger than the market can cover."""
    pass


# Settlement

class NoWinnings(MarketError):
    """Nothing to pay out (empty pool or losing claim)."""
    pass


class ArithmeticOverflow(MarketError):
    """An amount left the unsigned 128-bit range."""
    pass


# Claim

class ClaimAlreadyMade(MarketError):
    """The receiver has already been paid for this market."""
    pass


# ============================================================================
# TRANSACTION ORIGIN
# ============================================================================

@dataclass(frozen=True, slots=True)
class TransactionOrigin:
    """
    Who submitted a transaction, against which market, for which operation.

    event_type is the operation name ("place_bet", "score_market", ...).
    """
    origin_type: OriginType
    source_id: str
    unit_symbol: Optional[str] = None
    event_type: Optional[str] = None

    def __repr__(self) -> str:
        text = f"{self.origin_type.value}:{self.source_id}"
        if self.unit_symbol:
            text += f" on {self.unit_symbol}"
        if self.event_type:
            text += f" ({self.event_type})"
        return f"Origin({text})"


# ============================================================================
# UNIT STATE CHANGE
# ============================================================================

@dataclass(frozen=True, slots=True)
class UnitStateChange:
    """
    Full before/after snapshots of one market's state.

    old_state is what the operation read. The ledger refuses the change if
    the live state no longer equals it. old_state is None for a unit that
    did not exist yet.
    """
    unit: str
    old_state: Any
    new_state: Any

    def changed_fields(self) -> Dict[str, Tuple[Any, Any]]:
        """{field: (old, new)} for top-level fields that differ."""
        old = self.old_state if isinstance(self.old_state, dict) else {}
        new = self.new_state if isinstance(self.new_state, dict) else {}
        return {
            key: (old.get(key), new.get(key))
            for key in old.keys() | new.keys()
            if old.get(key) != new.get(key)
        }


# ============================================================================
# CORE DATA STRUCTURES
# ============================================================================

@dataclass(frozen=True, slots=True)
class Move:
    """
    One transfer of the settlement currency between two wallets.

    A bet moves the stake from the bettor to the market's custody wallet, a
    claim moves the payout back out, and scoring moves the fee to the
    treasury. contract_id names the operation, e.g. "final:bet:alice".
    """
    quantity: Decimal
    unit_symbol: str
    source: str
    dest: str
    contract_id: str

    def __post_init__(self):
        for name in ('source', 'dest', 'unit_symbol', 'contract_id'):
            value = getattr(self, name)
            if not value or not value.strip():
                raise ValueError(f"Move {name} cannot be empty")
        if not isinstance(self.quantity, Decimal):
            raise ValueError(f"Move quantity must be Decimal, got {type(self.quantity)}")
        if not self.quantity.is_finite():
            raise ValueError(f"Move quantity must be finite, got {self.quantity}")
        if abs(self.quantity) < QUANTITY_EPSILON:
            raise ValueError("Move quantity is effectively zero")
        if self.source == self.dest:
            raise ValueError("Source and dest must be different")

    def __repr__(self) -> str:
        return f"Move({self.quantity} {self.unit_symbol}: {self.source}→{self.dest})"


def _normalize_decimal(d: Decimal) -> str:
    """Decimal("1.0") and Decimal("1.00") both give "1"; no exponent notation."""
    normalized = d.normalize()
    if normalized == normalized.to_integral_value():
        return str(int(normalized))
    return format(normalized, 'f')


def _canonicalize(value: Any) -> str:
    """
    Type-tagged string for hashing, independent of dict and set ordering.

    Decimals go through _normalize_decimal, so 10 and 10.00 hash alike.
    bool is tested before int because it is an int subclass.
    """
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, Decimal):
        return "D:" + _normalize_decimal(value)
    if isinstance(value, Enum):
        return "E:" + str(value.value)
    if isinstance(value, (int, float)):
        return f"N:{value}"
    if isinstance(value, str):
        return "S:" + value
    if isinstance(value, datetime):
        return "T:" + value.isoformat()
    if isinstance(value, dict):
        pairs = sorted(value.items(), key=lambda kv: str(kv[0]))
        return "{" + ",".join(_canonicalize(k) + ":" + _canonicalize(v) for k, v in pairs) + "}"
    if isinstance(value, (list, tuple)):
        return "[" + ",".join(map(_canonicalize, value)) + "]"
    if isinstance(value, (set, frozenset)):
        return "<" + ",".join(_canonicalize(v) for v in sorted(value, key=str)) + ">"
    return "R:" + repr(value)


def _compute_intent_id(
    moves: Tuple[Move, ...],
    state_changes: Tuple[UnitStateChange, ...],
    origin: TransactionOrigin,
    units_to_create: Tuple['Unit', ...] = (),
    wallets_to_create: Tuple[str, ...] = (),
) -> str:
    """
    sha256 of the canonical content, truncated to 16 hex digits.

    Timestamps and ledger names are left out, so resubmitting the same bet,
    claim or admin action against the same market state hashes identically.
    Move order does not matter.
    """
    content = {
        'origin': (origin.origin_type, origin.source_id, origin.unit_symbol, origin.event_type),
        'units': sorted((u.symbol, u.unit_type) for u in units_to_create),
        'wallets': sorted(wallets_to_create),
        'moves': sorted(
            (_normalize_decimal(m.quantity), m.unit_symbol, m.source, m.dest, m.contract_id)
            for m in moves
        ),
        'state': [(sc.unit, sc.old_state, sc.new_state)
                  for sc in sorted(state_changes, key=lambda s: s.unit)],
    }
    return hashlib.sha256(_canonicalize(content).encode()).hexdigest()[:16]


@dataclass(frozen=True, slots=True)
class PendingTransaction:
    """
    The ledger changes one operation wants to make, not yet applied.

    A compute_* function reads a LedgerView and returns one of these; the
    engine hands it to Ledger.execute(). intent_id is filled from the content
    when not given, so two submissions of the same operation share it.

    units_to_create and wallets_to_create let create_market register the
    market unit and its custody wallet in the same atomic step as the seed
    transfer.
    """
    moves: Tuple[Move, ...]
    state_changes: Tuple[UnitStateChange, ...]
    origin: TransactionOrigin
    timestamp: datetime
    units_to_create: Tuple['Unit', ...] = ()
    wallets_to_create: Tuple[str, ...] = ()
    intent_id: str = field(default="")

    def __post_init__(self):
        if not self.intent_id:
            object.__setattr__(self, 'intent_id', _compute_intent_id(
                self.moves, self.state_changes, self.origin,
                self.units_to_create, self.wallets_to_create,
            ))

    def is_empty(self) -> bool:
        return not (self.moves or self.state_changes
                    or self.units_to_create or self.wallets_to_create)

    def __repr__(self) -> str:
        return (f"PendingTransaction({self.intent_id}: {len(self.moves)} moves, "
                f"{len(self.state_changes)} state changes, {self.origin})")


def build_transaction(
    view: LedgerView,
    moves: List[Move],
    state_changes: Optional[List[UnitStateChange]] = None,
    origin: Optional[TransactionOrigin] = None,
    units_to_create: Optional[Tuple['Unit', ...]] = None,
    wallets_to_create: Optional[Tuple[str, ...]] = None,
) -> PendingTransaction:
    """
    Stamp moves and state changes with the view's time and wrap them.

    State snapshots are deep-copied, so the caller can keep mutating its
    dicts after the transaction is built.

    Example:
        old = view.get_unit_state("final")
        new = {**old, 'claims': {**old['claims'], 'alice': True}}
        pending = build_transaction(
            view,
            [Move(Decimal(1950), "USDC", "market:final", "alice", "final:claim:alice")],
            [UnitStateChange("final", old, new)],
        )
    """
    if origin is None:
        origin = TransactionOrigin(OriginType.USER_ACTION, "anonymous")

    copied_changes = tuple(
        UnitStateChange(sc.unit, copy.deepcopy(sc.old_state), copy.deepcopy(sc.new_state))
        for sc in state_changes or ()
    )

    return PendingTransaction(
        moves=tuple(moves),
        state_changes=copied_changes,
        origin=origin,
        timestamp=view.current_time,
        units_to_create=tuple(units_to_create or ()),
        wallets_to_create=tuple(wallets_to_create or ()),
    )


@dataclass(frozen=True, slots=True)
class Transaction:
    """
    A PendingTransaction as the ledger applied it, kept in transaction_log.

    exec_id is "exec:{ledger}:{sequence:012d}:{micros}". contract_ids is
    derived from the moves when not given.
    """
    moves: Tuple[Move, ...]
    state_changes: Tuple[UnitStateChange, ...]
    origin: TransactionOrigin
    timestamp: datetime
    intent_id: str
    exec_id: str
    ledger_name: str
    execution_time: datetime
    sequence_number: int
    units_to_create: Tuple['Unit', ...] = ()
    wallets_to_create: Tuple[str, ...] = ()
    contract_ids: FrozenSet[str] = None

    def __post_init__(self):
        if (not self.moves and not self.state_changes
                and not self.units_to_create and not self.wallets_to_create):
            raise ValueError("Transaction must change something")
        if self.contract_ids is None:
            object.__setattr__(
                self, 'contract_ids',
                frozenset(m.contract_id for m in self.moves)
            )

    def __repr__(self) -> str:
        lines = [f"Transaction {self.exec_id} #{self.sequence_number} {self.origin}"]
        for unit in self.units_to_create:
            lines.append(f"  + unit {unit.symbol} ({unit.name})")
        for wallet in self.wallets_to_create:
            lines.append(f"  + wallet {wallet}")
        for move in self.moves:
            lines.append(f"  {move.quantity} {move.unit_symbol}: {move.source} → {move.dest} [{move.contract_id}]")
        for sc in self.state_changes:
            lines.append(f"  [{sc.unit}] {', '.join(sorted(sc.changed_fields()))}")
        return "\n".join(lines)


def _freeze_state(state: Optional[UnitState]) -> Tuple[Tuple[str, Any], ...]:
    """Convert a mutable state dict to a tuple of (key, value) pairs sorted by key."""
    if not state:
        return ()
    return tuple(sorted(state.items()))


def _thaw_state(frozen_state: Tuple[Tuple[str, Any], ...]) -> UnitState:
    return dict(frozen_state)


@dataclass(frozen=True, slots=True)
class Unit:
    """
    Definition of a unit in the ledger: either a settlement currency or a market.

    Attributes:
        symbol: Short identifier for the unit (e.g., "USDC", "NBA-2024-01").
        name: Human-readable name for the unit.
        unit_type: Category of the unit (CASH, PARIMUTUEL_MARKET, FIXED_ODDS_MARKET).
        min_balance: Minimum allowed balance in any wallet.
        max_balance: Maximum allowed balance in any wallet.
        decimal_places: Number of decimal places for rounding (None = no rounding).
        _frozen_state: Internal frozen state representation (tuple of key-value pairs).
    """
    symbol: str
    name: str
    unit_type: str
    min_balance: Decimal = Decimal("0")
    max_balance: Decimal = Decimal("Infinity")
    decimal_places: Optional[int] = None
    _frozen_state: Tuple[Tuple[str, Any], ...] = field(default_factory=tuple)

    @property
    def state(self) -> UnitState:
        """Return the unit's state as a new mutable dictionary."""
        return _thaw_state(self._frozen_state)

    def round(self, value: Decimal) -> Decimal:
        """Truncate to decimal_places; fractions of a minimal unit are never credited."""
        if self.decimal_places is None:
            return value
        return Decimal(value).quantize(Decimal(1).scaleb(-self.decimal_places), rounding=ROUND_DOWN)


# ============================================================================
# UNIT FACTORIES
# ============================================================================

def cash(symbol: str, name: str, decimal_places: int = 0,
         min_balance: Decimal = Decimal("0")) -> Unit:
    """
    Create a settlement currency unit.

    Amounts are held in minimal units (e.g. micro-USDC), so the default is
    zero decimal places and no overdraft.

    Args:
        symbol: Denomination (e.g., "USDC").
        name: Full name of the currency.
        decimal_places: Number of decimal places for amounts (default: 0).
        min_balance: Lowest balance a non-system wallet may hold (default: 0).
    """
    return Unit(
        symbol=symbol,
        name=name,
        unit_type=UNIT_TYPE_CASH,
        decimal_places=decimal_places,
        min_balance=min_balance,
        _frozen_state=_freeze_state({'issuer': SYSTEM_WALLET}),
    )
