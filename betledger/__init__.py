"""
betledger - Betting Market Settlement Engine

Parimutuel and fixed-odds betting markets settled on a double-entry ledger.

Usage:
    from datetime import datetime
    from decimal import Decimal
    from betledger import (
        Ledger, SettlementEngine, EngineConfig, MarketParams, MarketType,
        Outcome, Coin, Move, SYSTEM_WALLET, build_transaction, cash,
    )

    ledger = Ledger("main", initial_time=datetime(2024, 6, 1, 12, 0))
    ledger.register_unit(cash("USDC", "USD Coin"))
    for wallet in ("house", "treasury", "alice", "bob"):
        ledger.register_wallet(wallet)
    ledger.execute(build_transaction(ledger, [
        Move(Decimal("5000"), "USDC", SYSTEM_WALLET, w, "issuance") for w in ("alice", "bob")
    ]))

    engine = SettlementEngine(ledger, EngineConfig(admin="house", treasury="treasury"))
    params = MarketParams("final", "Cup Final", "Lions", "Tigers",
                          start_timestamp=datetime(2024, 6, 1, 20, 0), is_drawable=True)
    engine.create_market("house", params, engine.new_terms(MarketType.PARIMUTUEL, "USDC", fee_bps=250))

    engine.place_bet("alice", "final", Outcome.AWAY, [Coin("USDC", 1000)])
    engine.place_bet("bob", "final", Outcome.DRAW, [Coin("USDC", 1000)])

    ledger.advance_time(datetime(2024, 6, 1, 20, 30))
    engine.score_market("house", "final", Outcome.AWAY)
    engine.claim_winnings("alice", "final")    # pays 1950
"""

# Core types
from .core import (
    LedgerView,
    Move,
    Transaction,
    PendingTransaction,
    TransactionOrigin,
    OriginType,
    build_transaction,
    Unit,
    UnitStateChange,
    ExecuteResult,
    cash,
    SYSTEM_WALLET,
    UNIT_TYPE_CASH,
    UNIT_TYPE_PARIMUTUEL_MARKET,
    UNIT_TYPE_FIXED_ODDS_MARKET,
    MAX_AMOUNT,
    # Exceptions
    LedgerError,
    UnitNotRegistered,
    WalletNotRegistered,
    TransactionRejected,
    MarketError,
    Unauthorized,
    MarketNotActive,
    MarketNotClosed,
    MarketNotDrawable,
    BetsNotAccepted,
    MarketNotScoreable,
    PaymentError,
    MarketNotInitiallyFunded,
    InvalidFeeBps,
    InvalidOdds,
    InvalidFeeSpreadOdds,
    InvalidMaxBetRiskFactor,
    InvalidSeedLiquidityAmplifier,
    MinimumOddsNotKept,
    MaxBetExceeded,
    NoWinnings,
    ArithmeticOverflow,
    ClaimAlreadyMade,
)

# Ledger
from .ledger import Ledger

# Pricing
from .pricing import (
    truncate_decimal,
    multiply_ratio,
    odds_to_micros,
    odds_from_micros,
    apply_odds,
    fee_from_bps,
    calculate_parimutuel_payout,
    calculate_implied_odds,
    calculate_odds,
    calculate_max_bet,
)

# Validation
from .validation import (
    Coin,
    must_pay,
    validate_fee_bps,
    validate_odds,
    validate_fee_spread_odds,
    validate_max_bet_risk_factor,
    validate_seed_liquidity_amplifier,
)

# Markets
from .units import (
    BetBook,
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
    is_consistent,
)

# Strategies
from .strategies import (
    PricingStrategy,
    ParimutuelPricing,
    FixedOddsPricing,
    strategy_for,
)

# Operations
from .operations import (
    OperationPlan,
    compute_create_market,
    compute_place_bet,
    compute_claim,
    compute_update_market,
    compute_score_market,
    compute_cancel_market,
)

# Queries
from .queries import (
    BetsSummary,
    AccountBets,
    query_config,
    query_market,
    query_bets,
    query_bets_by_address,
    query_estimate_winnings,
    query_odds,
    query_max_bets,
)

# Engine
from .engine import EngineConfig, OperationResult, SettlementEngine

__version__ = '1.0.0'
