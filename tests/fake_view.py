"""
fake_view.py - Test Helper for LedgerView

Provides a minimal LedgerView implementation for testing settlement
functions without requiring a full Ledger instance.
"""

from __future__ import annotations
from datetime import datetime
from decimal import Decimal
from typing import Dict, Set, Optional, Any
import copy

from betledger import LedgerView, UnitNotRegistered


UnitState = Dict[str, Any]


class FakeView:
    """
    Minimal, immutable LedgerView implementation.

    Example:
        view = FakeView(
            balances={'market:final': {'USDC': Decimal(2000)}},
            states={'final': to_state_dict(terms, market, book)},
            time=datetime(2024, 6, 1, 19, 0),
        )
        plan = compute_claim(view, "alice", "final")
    """

    def __init__(
        self,
        balances: Dict[str, Dict[str, Any]],
        states: Optional[Dict[str, UnitState]] = None,
        time: Optional[datetime] = None,
    ):
        self._balances = balances
        self._states = states or {}
        self._time = time or datetime(2024, 1, 1)

    @property
    def current_time(self) -> datetime:
        return self._time

    def get_balance(self, wallet: str, unit: str) -> Decimal:
        return Decimal(self._balances.get(wallet, {}).get(unit, 0))

    def get_unit_state(self, unit: str) -> UnitState:
        if unit not in self._states:
            raise UnitNotRegistered(f"Unit {unit} not registered")
        return copy.deepcopy(self._states[unit])

    def list_wallets(self) -> Set[str]:
        return set(self._balances.keys())

    def get_unit(self, symbol: str) -> Any:
        raise UnitNotRegistered(f"FakeView holds no Unit objects ({symbol})")


# Verify FakeView satisfies the LedgerView protocol
assert isinstance(FakeView({}), LedgerView)
