#!/usr/bin/env python3
"""
demo.py - Interactive Tutorial: Settling Betting Markets Step by Step

A walk through one parimutuel pool and one fixed-odds book, settled on the
double-entry ledger. Each step builds on the previous one. Press Enter to
advance.

WHAT YOU'LL LEARN:
  1-2: Foundation   - A funded ledger, the engine and its administrator
  3-5: Parimutuel   - Pools, the fee, scoring and claims
  6-8: Fixed-odds   - Seed liquidity, moving quotes, max bets, the treasury sweep
  9:   Guarantees   - Rejections, idempotent retries, conservation

Run:
    python demo.py           # Interactive mode (press Enter for each step)
    python demo.py --quick   # Run all steps without pausing
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import Decimal
import sys

from betledger import (
    Ledger, Move, SYSTEM_WALLET, build_transaction, cash,
    SettlementEngine, EngineConfig, MarketParams, MarketType, Outcome, Coin,
    MarketError, TransactionRejected, market_wallet,
)


# ============================================================================
# CONFIGURATION
# ============================================================================

@dataclass
class DemoConfig:
    """Configuration for the tutorial. Modify these to experiment."""
    denom: str = "USDC"
    event_start: datetime = datetime(2024, 6, 1, 20, 0)
    bettor_balance: int = 1_000_000_000
    house_balance: int = 1_000_000_000

    # Parimutuel
    fee_bps: int = 250

    # Fixed-odds
    seed: int = 100_000_000
    initial_odds_home: Decimal = Decimal("2.2")
    initial_odds_away: Decimal = Decimal("1.8")
    fee_spread_odds: Decimal = Decimal("0.15")
    max_bet_risk_factor: Decimal = Decimal("1.5")
    seed_liquidity_amplifier: Decimal = Decimal("3")


CONFIG = DemoConfig()
BETTORS = ("alice", "bob", "carol")

QUICK_MODE = "--quick" in sys.argv


def wait_for_enter():
    """Pause for user input unless in quick mode."""
    if not QUICK_MODE:
        input("\n[Press Enter to continue...]")


def step_header(number: int, title: str, objective: str):
    print(f"\n{'='*70}")
    print(f"STEP {number}: {title}")
    print(f"{'='*70}")
    print(f"\nObjective: {objective}\n")


def section_header(text: str):
    print(f"\n--- {text} ---\n")


def coins(amount: int):
    return [Coin(CONFIG.denom, amount)]


def show_balances(ledger: Ledger, wallets):
    for wallet in wallets:
        print(f"  {wallet:<16} {ledger.get_balance(wallet, CONFIG.denom):>16}")


# ============================================================================
# PHASE 1: FOUNDATION
# ============================================================================

def step_01_funded_ledger() -> Ledger:
    step_header(1, "A Funded Ledger",
        "Register the settlement currency and give every participant a balance.")

    print("""
    Markets hold stakes in custody wallets on an ordinary ledger. Every
    transfer is a Move between wallets, so the sum of all balances of the
    settlement currency never changes.
    """)
    wait_for_enter()

    ledger = Ledger("betting", initial_time=CONFIG.event_start - timedelta(hours=1), verbose=True)
    ledger.register_unit(cash(CONFIG.denom, "USD Coin"))
    for wallet in ("house", "treasury") + BETTORS:
        ledger.register_wallet(wallet)

    funded = [("house", CONFIG.house_balance)] + [(b, CONFIG.bettor_balance) for b in BETTORS]
    ledger.execute(build_transaction(ledger, [
        Move(Decimal(amount), CONFIG.denom, SYSTEM_WALLET, wallet, "issuance")
        for wallet, amount in funded
    ]))

    section_header("Balances")
    show_balances(ledger, ("house", "treasury") + BETTORS)
    return ledger


def step_02_engine(ledger: Ledger) -> SettlementEngine:
    step_header(2, "The Settlement Engine",
        "Wire the engine to the ledger with a market administrator and a treasury.")

    print("""
    Only the administrator may open markets. Fees and the house margin are
    paid to the treasury when a market is scored.

    Bets close 5 minutes before the event starts; results may be entered
    30 minutes after it starts.
    """)
    wait_for_enter()

    config = EngineConfig(admin="house", treasury="treasury")
    engine = SettlementEngine(ledger, config)
    print(f"  bet cutoff:  {config.bet_cutoff}")
    print(f"  score delay: {config.score_delay}")
    return engine


# ============================================================================
# PHASE 2: PARIMUTUEL
# ============================================================================

def step_03_open_pool(engine: SettlementEngine) -> str:
    step_header(3, "Opening a Pool",
        "Create a drawable parimutuel market with a 2.5% fee.")

    params = MarketParams("final", "Cup Final", "Lions", "Tigers",
                          start_timestamp=CONFIG.event_start, is_drawable=True)
    terms = engine.new_terms(MarketType.PARIMUTUEL, CONFIG.denom, fee_bps=CONFIG.fee_bps)
    engine.create_market("house", params, terms)

    print(f"\n  custody wallet: {market_wallet('final')}")
    return "final"


def step_04_pool_bets(engine: SettlementEngine, market_id: str):
    step_header(4, "Betting Into the Pool",
        "Stakes on each outcome form the pool; winners share it net of fee.")
    wait_for_enter()

    engine.place_bet("alice", market_id, Outcome.AWAY, coins(1000))
    engine.place_bet("bob", market_id, Outcome.DRAW, coins(1000))

    section_header("Implied Odds")
    for outcome, odds in engine.query_odds(market_id).items():
        print(f"  {outcome.value:<5} {odds}")
    estimate = engine.query_estimate_winnings(market_id, "alice", Outcome.AWAY)
    print(f"\n  alice would receive {estimate} if AWAY wins")


def step_05_score_pool(engine: SettlementEngine, ledger: Ledger, market_id: str):
    step_header(5, "Scoring and Claiming",
        "Enter the result, sweep the fee, pay the winners on request.")
    wait_for_enter()

    ledger.advance_time(CONFIG.event_start + timedelta(minutes=30))
    engine.score_market("house", market_id, Outcome.AWAY)
    engine.claim_winnings("alice", market_id)

    try:
        engine.claim_winnings("bob", market_id)
    except MarketError as e:
        print(f"  bob: {type(e).__name__}: {e}")

    section_header("Balances")
    show_balances(ledger, ("treasury", "alice", "bob", market_wallet(market_id)))


# ============================================================================
# PHASE 3: FIXED-ODDS
# ============================================================================

def step_06_open_book(engine: SettlementEngine, ledger: Ledger) -> str:
    step_header(6, "Opening a Fixed-Odds Book",
        "The house seeds liquidity; quotes open from the initial odds less the spread.")
    wait_for_enter()

    start = ledger.current_time + timedelta(days=1)
    params = MarketParams("derby", "Derby", "Lions", "Tigers", start_timestamp=start)
    terms = engine.new_terms(
        MarketType.FIXED_ODDS, CONFIG.denom,
        fee_spread_odds=CONFIG.fee_spread_odds,
        max_bet_risk_factor=CONFIG.max_bet_risk_factor,
        seed_liquidity_amplifier=CONFIG.seed_liquidity_amplifier,
        initial_odds_home=CONFIG.initial_odds_home,
        initial_odds_away=CONFIG.initial_odds_away,
    )
    engine.create_market("house", params, terms, coins(CONFIG.seed))

    section_header("Limits")
    for outcome, limit in engine.query_max_bets("derby").items():
        print(f"  {outcome.value:<5} {limit}")
    return "derby"


def step_07_moving_quotes(engine: SettlementEngine, market_id: str):
    step_header(7, "Moving Quotes",
        "Each bet is paid at the quote it took; the quotes then follow the money.")
    wait_for_enter()

    for bettor, outcome, amount in (("alice", Outcome.HOME, 10_000_000),
                                    ("bob", Outcome.AWAY, 10_000_000),
                                    ("carol", Outcome.AWAY, 40_000_000),
                                    ("carol", Outcome.HOME, 20_000_000)):
        engine.place_bet(bettor, market_id, outcome, coins(amount))

    section_header("Book")
    summary = engine.query_bets(market_id)
    for outcome, total in summary.totals.items():
        print(f"  {outcome.value:<5} staked {total:>12}  owed {summary.potential_payouts[outcome]:>12}")

    section_header("Risk Controls")
    try:
        engine.place_bet("bob", market_id, Outcome.HOME, coins(1_000_000), min_odds=Decimal("2.5"))
    except MarketError as e:
        print(f"  {type(e).__name__}: {e}")
    try:
        engine.place_bet("bob", market_id, Outcome.AWAY, coins(90_000_000))
    except MarketError as e:
        print(f"  {type(e).__name__}: {e}")


def step_08_settle_book(engine: SettlementEngine, ledger: Ledger, market_id: str):
    step_header(8, "Treasury Sweep",
        "On scoring, everything beyond the winners' promised payouts goes to the treasury.")
    wait_for_enter()

    start = engine.query_market(market_id).start_timestamp
    ledger.advance_time(start + timedelta(minutes=30))
    engine.score_market("house", market_id, Outcome.AWAY)
    for bettor in ("bob", "carol"):
        engine.claim_winnings(bettor, market_id)

    section_header("Balances")
    show_balances(ledger, ("house", "treasury") + BETTORS + (market_wallet(market_id),))


# ============================================================================
# PHASE 4: GUARANTEES
# ============================================================================

def step_09_guarantees(engine: SettlementEngine, ledger: Ledger):
    step_header(9, "Guarantees",
        "Rejected operations change nothing, retries are recognised, value is conserved.")
    wait_for_enter()

    section_header("Double Claim")
    try:
        engine.claim_winnings("carol", "derby")
    except MarketError as e:
        print(f"  {type(e).__name__}: {e}")

    section_header("Duplicate Market")
    params = MarketParams("final", "Replay", "Lions", "Tigers",
                          start_timestamp=ledger.current_time + timedelta(days=1))
    try:
        engine.create_market("house", params, engine.new_terms(MarketType.PARIMUTUEL, CONFIG.denom))
    except TransactionRejected as e:
        print(f"  TransactionRejected: {e}")

    section_header("Conservation")
    check = ledger.verify_double_entry({CONFIG.denom: Decimal(0)})
    print(f"  valid: {check['valid']}")
    print(f"  transactions: {len(ledger.transaction_log)}")


def main():
    print("\n" + "=" * 70)
    print("       BETTING MARKET SETTLEMENT TUTORIAL")
    print("=" * 70)

    ledger = step_01_funded_ledger()
    wait_for_enter()
    engine = step_02_engine(ledger)

    pool = step_03_open_pool(engine)
    step_04_pool_bets(engine, pool)
    step_05_score_pool(engine, ledger, pool)

    book = step_06_open_book(engine, ledger)
    step_07_moving_quotes(engine, book)
    step_08_settle_book(engine, ledger, book)

    step_09_guarantees(engine, ledger)

    print("\n" + "=" * 70)
    print("       TUTORIAL COMPLETE!")
    print("=" * 70)
    print("""
    Next steps:
      - See betledger/strategies/*.py for the two pricing models
      - Run tests: pytest tests/
    """)


if __name__ == "__main__":
    main()
