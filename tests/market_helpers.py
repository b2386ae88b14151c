"""
market_helpers.py - Builders shared by the settlement tests

Constants, a funded-ledger builder and one-call market openers.
"""

from datetime import datetime, timedelta
from decimal import Decimal
from typing import Iterable, List

from betledger import (
    Ledger, Move, SYSTEM_WALLET, build_transaction, cash,
    SettlementEngine,
    MarketParams, MarketType, Coin,
)


# =============================================================================
# CONSTANTS
# =============================================================================

DENOM = "USDC"
ADMIN = "house"
TREASURY = "treasury"
BETTORS = ("alice", "bob", "carol", "dave")
INITIAL_BALANCE = 1_000_000_000

# Event start; the ledger clock begins one hour earlier.
START = datetime(2024, 6, 1, 20, 0)
OPEN_TIME = START - timedelta(hours=1)


# =============================================================================
# HELPER FUNCTIONS
# =============================================================================

def usdc(amount: int) -> List[Coin]:
    """Attach `amount` minimal units of the settlement currency."""
    return [Coin(DENOM, amount)]


def make_ledger(wallets: Iterable[str] = (ADMIN, TREASURY) + BETTORS,
                balance: int = INITIAL_BALANCE,
                initial_time: datetime = OPEN_TIME) -> Ledger:
    """Ledger with the settlement currency and funded wallets (treasury starts empty)."""
    ledger = Ledger("test", initial_time=initial_time, verbose=False)
    ledger.register_unit(cash(DENOM, "USD Coin"))
    funded = []
    for wallet in wallets:
        ledger.register_wallet(wallet)
        if wallet != TREASURY:
            funded.append(wallet)
    ledger.execute(build_transaction(ledger, [
        Move(Decimal(balance), DENOM, SYSTEM_WALLET, w, "issuance") for w in funded
    ]))
    return ledger


def balance_of(ledger: Ledger, wallet: str) -> int:
    return int(ledger.get_balance(wallet, DENOM))


def market_params(market_id: str = "final", is_drawable: bool = True,
                  start: datetime = START) -> MarketParams:
    return MarketParams(
        market_id=market_id,
        label="Cup Final",
        home_team="Lions",
        away_team="Tigers",
        start_timestamp=start,
        is_drawable=is_drawable,
    )


def open_parimutuel(engine: SettlementEngine, market_id: str = "final",
                    fee_bps: int = 250, is_drawable: bool = True) -> str:
    terms = engine.new_terms(MarketType.PARIMUTUEL, DENOM, fee_bps=fee_bps)
    engine.create_market(ADMIN, market_params(market_id, is_drawable), terms)
    return market_id


def open_fixed_odds(engine: SettlementEngine, market_id: str = "derby",
                    seed: int = 100_000_000, **overrides) -> str:
    """Fixed-odds market: 2.2 / 1.8 opening odds, 0.15 spread, 1.5 risk, 3x amplifier."""
    knobs = dict(
        fee_spread_odds=Decimal("0.15"),
        max_bet_risk_factor=Decimal("1.5"),
        seed_liquidity_amplifier=Decimal("3"),
        initial_odds_home=Decimal("2.2"),
        initial_odds_away=Decimal("1.8"),
    )
    knobs.update(overrides)
    terms = engine.new_terms(MarketType.FIXED_ODDS, DENOM, **knobs)
    engine.create_market(ADMIN, market_params(market_id, is_drawable=False), terms, usdc(seed))
    return market_id
