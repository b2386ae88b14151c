"""
engine.py - Settlement Engine

Orchestrates market operations against a Ledger:

1. Build an OperationPlan with the pure compute_* function (raises on any
   failed precondition, before anything is touched)
2. Execute the plan's PendingTransaction atomically
3. Convert a ledger rejection into TransactionRejected
4. Return an OperationResult with the committed Transaction

The engine holds no market state of its own. Everything lives in the ledger,
so the engine can be rebuilt at any time from an EngineConfig.
"""

from __future__ import annotations
from dataclasses import dataclass
from datetime import timedelta
from decimal import Decimal
from typing import Any, Dict, Iterable, Mapping, Optional, Tuple

from .core import ExecuteResult, Move, Transaction, TransactionRejected
from .ledger import Ledger
from .operations import (
    OperationPlan,
    compute_cancel_market, compute_claim, compute_create_market,
    compute_place_bet, compute_score_market, compute_update_market,
)
from .queries import (
    AccountBets, BetsSummary,
    query_bets, query_bets_by_address, query_config, query_estimate_winnings,
    query_market, query_max_bets, query_odds,
)
from .units.market import (
    BET_CUTOFF, SCORE_DELAY, MarketParams, MarketState, MarketTerms, Outcome,
)
from .validation import Coin


@dataclass(frozen=True, slots=True)
class EngineConfig:
    """
    Engine-wide settings, injected at construction.

    admin:       the only identity allowed to create markets
    treasury:    default fee recipient for markets created via new_terms()
    bet_cutoff:  bets close this long before the event starts
    score_delay: results are accepted this long after the event starts
    """
    admin: str
    treasury: str
    bet_cutoff: timedelta = BET_CUTOFF
    score_delay: timedelta = SCORE_DELAY

    def __post_init__(self):
        if not self.admin or not self.admin.strip():
            raise ValueError("admin cannot be empty")
        if not self.treasury or not self.treasury.strip():
            raise ValueError("treasury cannot be empty")
        if self.bet_cutoff < timedelta(0) or self.score_delay < timedelta(0):
            raise ValueError("bet_cutoff and score_delay must not be negative")


@dataclass(frozen=True, slots=True)
class OperationResult:
    """Outcome of a committed operation."""
    action: str
    market_id: str
    attributes: Mapping[str, Any]
    transfers: Tuple[Move, ...]
    transaction: Optional[Transaction] = None

    def transferred_to(self, wallet: str) -> Decimal:
        """Total this operation moved into `wallet`."""
        return sum((m.quantity for m in self.transfers if m.dest == wallet), Decimal("0"))


class SettlementEngine:
    """
    Betting market settlement engine.

    Features:
    - Parimutuel and fixed-odds markets under one lifecycle
    - Every operation commits atomically or not at all
    - Idempotent claims: a receiver is paid at most once per market
    - Full audit trail via the ledger's transaction log

    Example:
        engine = SettlementEngine(ledger, EngineConfig(admin="house", treasury="treasury"))
        engine.create_market("house", params, engine.new_terms(MarketType.PARIMUTUEL, "USDC", fee_bps=250))
        engine.place_bet("alice", params.market_id, Outcome.HOME, [Coin("USDC", 1_000)])
    """

    def __init__(self, ledger: Ledger, config: EngineConfig):
        self.ledger = ledger
        self.config = config
        self.verbose = ledger.verbose

    def new_terms(self, market_type, denom: str, **kwargs: Any) -> MarketTerms:
        """MarketTerms with the engine's admin and treasury unless overridden."""
        kwargs.setdefault('admin', self.config.admin)
        kwargs.setdefault('treasury', self.config.treasury)
        return MarketTerms(market_type=market_type, denom=denom, **kwargs)

    # ========================================================================
    # OPERATIONS
    # ========================================================================

    def create_market(
        self,
        sender: str,
        params: MarketParams,
        terms: MarketTerms,
        funds: Iterable[Coin] = (),
    ) -> OperationResult:
        plan = compute_create_market(
            self.ledger, sender, params, terms, funds, creator=self.config.admin,
        )
        return self._execute(plan)

    def place_bet(
        self,
        sender: str,
        market_id: str,
        outcome: Outcome,
        funds: Iterable[Coin],
        receiver: Optional[str] = None,
        min_odds: Optional[Decimal] = None,
    ) -> OperationResult:
        plan = compute_place_bet(
            self.ledger, sender, market_id, outcome, funds,
            receiver=receiver, min_odds=min_odds, cutoff=self.config.bet_cutoff,
        )
        return self._execute(plan)

    def claim_winnings(self, sender: str, market_id: str, receiver: Optional[str] = None) -> OperationResult:
        return self._execute(compute_claim(self.ledger, sender, market_id, receiver))

    def update_market(self, sender: str, market_id: str, **changes: Any) -> OperationResult:
        return self._execute(compute_update_market(self.ledger, sender, market_id, **changes))

    def score_market(self, sender: str, market_id: str, result: Outcome) -> OperationResult:
        plan = compute_score_market(
            self.ledger, sender, market_id, result, delay=self.config.score_delay,
        )
        return self._execute(plan)

    def cancel_market(self, sender: str, market_id: str) -> OperationResult:
        return self._execute(compute_cancel_market(self.ledger, sender, market_id))

    # ========================================================================
    # QUERIES
    # ========================================================================

    def query_config(self, market_id: str) -> MarketTerms:
        return query_config(self.ledger, market_id)

    def query_market(self, market_id: str) -> MarketState:
        return query_market(self.ledger, market_id)

    def query_bets(self, market_id: str) -> BetsSummary:
        return query_bets(self.ledger, market_id)

    def query_bets_by_address(self, market_id: str, address: str) -> AccountBets:
        return query_bets_by_address(self.ledger, market_id, address)

    def query_estimate_winnings(self, market_id: str, address: str, result: Outcome) -> int:
        return query_estimate_winnings(self.ledger, market_id, address, result)

    def query_odds(self, market_id: str) -> Dict[Outcome, Decimal]:
        return query_odds(self.ledger, market_id)

    def query_max_bets(self, market_id: str) -> Optional[Dict[Outcome, int]]:
        return query_max_bets(self.ledger, market_id)

    # ========================================================================
    # EXECUTION
    # ========================================================================

    def _execute(self, plan: OperationPlan) -> OperationResult:
        result = self.ledger.execute(plan.pending)
        if result == ExecuteResult.REJECTED:
            raise TransactionRejected(self.ledger.last_rejection or "unknown reason")
        # A seen intent means this plan would not take effect
        if result == ExecuteResult.ALREADY_APPLIED:
            raise TransactionRejected(f"already applied: {plan.pending.intent_id}")

        transaction = None
        if result == ExecuteResult.APPLIED and self.ledger.transaction_log:
            last = self.ledger.transaction_log[-1]
            if last.intent_id == plan.pending.intent_id:
                transaction = last

        if self.verbose:
            summary = ", ".join(f"{k}={v}" for k, v in plan.attributes.items() if k != 'action')
            print(f"[{plan.action}] {plan.market_id}: {summary}")

        return OperationResult(
            action=plan.action,
            market_id=plan.market_id,
            attributes=dict(plan.attributes),
            transfers=plan.transfers,
            transaction=transaction,
        )
