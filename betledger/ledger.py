"""
ledger.py - Stateful Double-Entry Store for Betting Markets

The Ledger holds every balance of the settlement currency (bettor wallets,
the treasury and one custody wallet per market) together with the market
units whose state carries the bet book. It is the only module that mutates
state; operations are computed elsewhere against a LedgerView and handed to
execute() as PendingTransactions.

Guarantees of execute():
    - all moves, state changes and registrations apply together or not at all
    - a pending transaction whose intent_id was seen before is not reapplied
    - a state change built from a stale read of a market is refused
    - no wallet other than SYSTEM_WALLET is driven below its unit's minimum
"""

from __future__ import annotations
from collections import defaultdict
from dataclasses import replace
from datetime import datetime
from typing import Dict, List, Set, Optional, Tuple, Any
import copy
from decimal import Decimal

from .core import (
    Transaction, Unit,
    PendingTransaction,
    ExecuteResult,
    UnitState, BalanceMap,
    SYSTEM_WALLET,
    LedgerError, UnitNotRegistered, WalletNotRegistered,
    _freeze_state,
)


def _zero_balances() -> Dict[str, Decimal]:
    return defaultdict(lambda: Decimal("0"))


class Ledger:
    """
    Double-entry ledger for market custody and settlement.

    Implements the LedgerView protocol, so it can be passed directly to the
    compute_* functions in betledger.operations.

    Not thread-safe: operations against one ledger must be sequenced.

    Example:
        ledger = Ledger("main")
        ledger.register_unit(cash("USDC", "USD Coin"))
        ledger.register_wallet("alice")
        ledger.execute(build_transaction(ledger, [
            Move(Decimal("5000"), "USDC", SYSTEM_WALLET, "alice", "issuance")
        ]))
    """

    def __init__(
        self,
        name: str,
        initial_time: Optional[datetime] = None,
        verbose: bool = True,
        test_mode: bool = False
    ):
        """
        Args:
            name: Ledger identifier, part of every exec_id
            initial_time: Starting logical time (default: 1970-01-01)
            verbose: Print each applied or rejected transaction
            test_mode: Allow set_balance() to write balances directly
        """
        self.name = name
        self.balances: Dict[str, Dict[str, Decimal]] = {SYSTEM_WALLET: _zero_balances()}
        self.units: Dict[str, Unit] = {}
        self.registered_wallets: Set[str] = {SYSTEM_WALLET}
        self.seen_intent_ids: Set[str] = set()
        self.transaction_log: List[Transaction] = []
        self.last_rejection: Optional[str] = None
        self.verbose = verbose
        self._current_time: datetime = initial_time or datetime(1970, 1, 1)
        self._test_mode = test_mode
        self._next_sequence: int = 0

    # ========================================================================
    # READ ACCESS (LedgerView)
    # ========================================================================

    @property
    def current_time(self) -> datetime:
        return self._current_time

    def _require_wallet(self, wallet_id: str) -> None:
        if wallet_id not in self.registered_wallets:
            raise WalletNotRegistered(f"Wallet {wallet_id} not registered")

    def get_unit(self, symbol: str) -> Unit:
        try:
            return self.units[symbol]
        except KeyError:
            raise UnitNotRegistered(f"Unit {symbol} not registered") from None

    def get_balance(self, wallet_id: str, unit_symbol: str) -> Decimal:
        """
        Balance of one unit in one wallet; zero if the wallet never held it.

        Raises:
            WalletNotRegistered, UnitNotRegistered
        """
        self._require_wallet(wallet_id)
        self.get_unit(unit_symbol)
        return self.balances[wallet_id].get(unit_symbol, Decimal("0"))

    def get_unit_state(self, unit_symbol: str) -> UnitState:
        """A deep copy of the unit's state. Callers may mutate it freely."""
        return copy.deepcopy(self.get_unit(unit_symbol).state)

    def get_wallet_balances(self, wallet_id: str) -> BalanceMap:
        self._require_wallet(wallet_id)
        return dict(self.balances[wallet_id])

    def list_wallets(self) -> Set[str]:
        return set(self.registered_wallets)

    def list_units(self) -> List[str]:
        return sorted(self.units)

    def is_registered(self, wallet_id: str) -> bool:
        return wallet_id in self.registered_wallets

    def total_supply(self, unit_symbol: str) -> Decimal:
        """Sum over every wallet, SYSTEM_WALLET included, in sorted wallet order."""
        self.get_unit(unit_symbol)
        total = Decimal("0")
        for wallet in sorted(self.registered_wallets):
            total += self.balances[wallet].get(unit_symbol, Decimal("0"))
        return total

    def verify_double_entry(
        self,
        expected_supplies: Dict[str, Decimal] = None,
    ) -> Dict[str, Any]:
        """
        Compare each unit's total supply with the expected figure.

        Issuance debits SYSTEM_WALLET, so a settlement currency that only
        moves between wallets always totals zero.

        Returns:
            {'valid': bool, 'supplies': {unit: total}, 'discrepancies': [...]}
            where each discrepancy names unit, expected, actual and difference.

        Example:
            assert ledger.verify_double_entry({'USDC': Decimal(0)})['valid']
        """
        expected_supplies = expected_supplies or {}
        supplies = {symbol: self.total_supply(symbol) for symbol in self.units}
        discrepancies = []
        for symbol, expected in expected_supplies.items():
            if symbol not in supplies:
                discrepancies.append({
                    'unit': symbol, 'expected': expected, 'actual': Decimal("0"),
                    'difference': abs(expected), 'error': 'unit not registered',
                })
            elif supplies[symbol] != expected:
                discrepancies.append({
                    'unit': symbol, 'expected': expected, 'actual': supplies[symbol],
                    'difference': abs(supplies[symbol] - expected),
                })
        return {
            'valid': not discrepancies,
            'supplies': supplies,
            'discrepancies': discrepancies,
        }

    # ========================================================================
    # CLOCK
    # ========================================================================

    def advance_time(self, new_time: datetime) -> None:
        """Move the logical clock forward. Bet cutoffs and scoring delays read it."""
        if new_time < self._current_time:
            raise ValueError(
                f"Cannot move time backwards: {new_time} < {self._current_time}"
            )
        self._current_time = new_time

    # ========================================================================
    # REGISTRATION
    # ========================================================================

    def register_wallet(self, wallet_id: str) -> str:
        if not wallet_id or not wallet_id.strip():
            raise ValueError("wallet_id cannot be empty")
        if wallet_id in self.registered_wallets:
            raise ValueError(f"Wallet {wallet_id} already registered")
        self.registered_wallets.add(wallet_id)
        self.balances[wallet_id] = _zero_balances()
        return wallet_id

    def register_unit(self, unit: Unit) -> None:
        """Register a settlement currency. Markets are registered by execute()."""
        if unit.symbol in self.units:
            raise ValueError(f"Unit {unit.symbol} already registered")
        self.units[unit.symbol] = unit
        if self.verbose:
            print(f"Registered: {unit.symbol} ({unit.name}) [{unit.unit_type}]")

    def set_balance(self, wallet_id: str, unit_symbol: str, quantity: Decimal) -> None:
        """
        Overwrite a balance without a counter-entry. Test mode only.

        Raises:
            LedgerError: the ledger was not created with test_mode=True
        """
        if not self._test_mode:
            raise LedgerError(
                "set_balance() is disabled in production mode. "
                "Use build_transaction() and execute() to modify balances."
            )
        self._require_wallet(wallet_id)
        self.get_unit(unit_symbol)
        self.balances[wallet_id][unit_symbol] = Decimal(str(quantity))

    # ========================================================================
    # EXECUTION
    # ========================================================================

    def execute(self, pending: PendingTransaction) -> ExecuteResult:
        """
        Apply a PendingTransaction atomically.

        Returns:
            APPLIED, ALREADY_APPLIED for a known intent_id, or REJECTED with
            the reason left in last_rejection. An empty pending transaction
            is APPLIED without being logged. Registration conflicts are
            checked first, so a second create of an existing market is
            REJECTED even when its content hashes to a seen intent_id.
        """
        self.last_rejection = None

        if pending.is_empty():
            return ExecuteResult.APPLIED

        reason = self._check_new_registrations(pending)
        if reason:
            return self._reject(reason)

        if pending.intent_id in self.seen_intent_ids:
            if self.verbose:
                print(f"ALREADY_APPLIED: intent_id={pending.intent_id}")
            return ExecuteResult.ALREADY_APPLIED

        # New markets and custody wallets exist provisionally while validating
        self._register_provisionally(pending)
        reason = self._check_pending(pending)
        if reason:
            self._unregister_provisional(pending)
            return self._reject(reason)

        sequence = self._next_sequence
        self._next_sequence += 1
        micros = int(self._current_time.timestamp() * 1_000_000)

        tx = Transaction(
            moves=pending.moves,
            state_changes=pending.state_changes,
            origin=pending.origin,
            timestamp=pending.timestamp,
            intent_id=pending.intent_id,
            exec_id=f"exec:{self.name}:{sequence:012d}:{micros}",
            ledger_name=self.name,
            execution_time=self._current_time,
            sequence_number=sequence,
            units_to_create=pending.units_to_create,
            wallets_to_create=pending.wallets_to_create,
        )

        self._apply_moves(tx)
        for sc in tx.state_changes:
            new_state = copy.deepcopy(sc.new_state) if isinstance(sc.new_state, dict) else {}
            self.units[sc.unit] = replace(self.units[sc.unit], _frozen_state=_freeze_state(new_state))

        self.transaction_log.append(tx)
        self.seen_intent_ids.add(pending.intent_id)

        if self.verbose:
            print(f"{tx!r}\n✓ APPLIED")
        return ExecuteResult.APPLIED

    def _reject(self, reason: str) -> ExecuteResult:
        self.last_rejection = reason
        if self.verbose:
            print(f"✗ REJECTED: {reason}")
        return ExecuteResult.REJECTED

    def _check_new_registrations(self, pending: PendingTransaction) -> Optional[str]:
        for unit in pending.units_to_create:
            if unit.symbol in self.units:
                return f"unit already registered: {unit.symbol}"
        for wallet in pending.wallets_to_create:
            if wallet in self.registered_wallets:
                return f"wallet already registered: {wallet}"
        return None

    def _register_provisionally(self, pending: PendingTransaction) -> None:
        for unit in pending.units_to_create:
            self.units[unit.symbol] = unit
        for wallet in pending.wallets_to_create:
            self.registered_wallets.add(wallet)
            self.balances[wallet] = _zero_balances()

    def _unregister_provisional(self, pending: PendingTransaction) -> None:
        for unit in pending.units_to_create:
            del self.units[unit.symbol]
        for wallet in pending.wallets_to_create:
            self.registered_wallets.discard(wallet)
            del self.balances[wallet]

    def _check_pending(self, pending: PendingTransaction) -> Optional[str]:
        """First reason the transaction cannot apply, or None."""
        if pending.timestamp > self._current_time:
            return "future timestamp"

        for move in pending.moves:
            if move.unit_symbol not in self.units:
                return f"unit not registered: {move.unit_symbol}"
            for wallet in (move.source, move.dest):
                if not self.is_registered(wallet):
                    return f"wallet not registered: {wallet}"

        for sc in pending.state_changes:
            if sc.unit not in self.units:
                return f"unit not registered: {sc.unit}"
            if sc.old_state is None:
                continue
            expected = sc.old_state if isinstance(sc.old_state, dict) else {}
            live = self.units[sc.unit].state
            if expected != live:
                stale = sorted(k for k in set(expected) | set(live) if expected.get(k) != live.get(k))
                return f"stale state for {sc.unit}: {', '.join(stale)}"

        return self._check_balances(pending)

    def _check_balances(self, pending: PendingTransaction) -> Optional[str]:
        """Net every move per (wallet, unit), then test the resulting balances."""
        net: Dict[Tuple[str, str], Decimal] = defaultdict(lambda: Decimal("0"))
        for move in pending.moves:
            net[(move.source, move.unit_symbol)] -= move.quantity
            net[(move.dest, move.unit_symbol)] += move.quantity

        for (wallet, symbol), delta in net.items():
            if wallet == SYSTEM_WALLET:
                continue
            unit = self.units[symbol]
            proposed = unit.round(self.balances[wallet][symbol] + delta)
            if proposed < unit.min_balance:
                return f"insufficient funds: {wallet} {symbol} {proposed} < min {unit.min_balance}"
            if proposed > unit.max_balance:
                return f"{wallet} {symbol}: {proposed} > max {unit.max_balance}"
        return None

    def _apply_moves(self, tx: Transaction) -> None:
        for move in tx.moves:
            unit = self.units[move.unit_symbol]
            source = self.balances[move.source]
            dest = self.balances[move.dest]
            source[move.unit_symbol] = unit.round(source[move.unit_symbol] - move.quantity)
            dest[move.unit_symbol] = unit.round(dest[move.unit_symbol] + move.quantity)

    # ========================================================================
    # WHAT-IF
    # ========================================================================

    def clone(self) -> Ledger:
        """
        Independent copy sharing nothing mutable with this ledger.

        Settle a market on the clone to see the outcome without touching
        live balances.
        """
        cloned = Ledger(self.name, self._current_time, self.verbose, self._test_mode)
        cloned.last_rejection = self.last_rejection
        cloned.units = {
            symbol: replace(unit, _frozen_state=_freeze_state(copy.deepcopy(unit.state)))
            for symbol, unit in self.units.items()
        }
        cloned.registered_wallets = set(self.registered_wallets)
        cloned.seen_intent_ids = set(self.seen_intent_ids)
        cloned.transaction_log = list(self.transaction_log)
        cloned._next_sequence = self._next_sequence
        cloned.balances = {
            wallet: defaultdict(lambda: Decimal("0"), held)
            for wallet, held in self.balances.items()
        }
        return cloned
