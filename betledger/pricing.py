"""
pricing.py - Fixed-Point Pricing Formulas

Pure calculation functions shared by the pricing strategies. Nothing in
this module reads a LedgerView; every input is an explicit parameter.

Amounts are Python ints in minimal units of the settlement denomination.
Odds are Decimals truncated to 2 decimal places, which makes every quoted
odd exactly representable in integer micro-units (odds x 10**6).

Key Formulas:
    Parimutuel:
        fee           = floor(total_pool * fee_bps / 10000)
        distributable = total_pool - fee
        payout        = floor(distributable * stake / outcome_total)

    Fixed-odds:
        seed_balance  = market_balance - home_total - away_total
        weight        = total_bets / (total_bets + seed_balance * amplifier)
        p_new_side    = (p_derived_side * weight + p0_side * (1 - weight)) * (1 + fee_spread)
        odds_side     = truncate(1 / p_new_side, 2)
        max_bet_side  = floor((market_balance - potential_payout_side) / odds_side / risk_factor)
"""

from __future__ import annotations
from decimal import Decimal, ROUND_FLOOR, localcontext
from typing import Tuple

from .core import MAX_AMOUNT, ArithmeticOverflow, InvalidOdds


BPS_DENOMINATOR = 10_000
MAX_FEE_BPS = 1_000

ODDS_DECIMAL_PLACES = 2
ODDS_MICROS = 10 ** 6

ZERO = Decimal("0")
ONE = Decimal("1")


# ============================================================================
# FIXED-POINT HELPERS
# ============================================================================

def truncate_decimal(value: Decimal, places: int = ODDS_DECIMAL_PLACES) -> Decimal:
    """
    Drop every digit beyond `places` decimal places, rounding toward -infinity.

    Truncation is idempotent and never increases the value:
        truncate_decimal(truncate_decimal(x)) == truncate_decimal(x) <= x

    Example:
        truncate_decimal(Decimal("1.9166")) -> Decimal("1.91")
    """
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    return value.quantize(Decimal(1).scaleb(-places), rounding=ROUND_FLOOR)


def checked_amount(amount: int, what: str = "amount") -> int:
    """Return amount unchanged if it fits the unsigned 128-bit range."""
    if amount < 0 or amount > MAX_AMOUNT:
        raise ArithmeticOverflow(f"{what} out of range: {amount}")
    return amount


def multiply_ratio(amount: int, numerator: int, denominator: int) -> int:
    """floor(amount * numerator / denominator), multiplying first so no precision is lost."""
    if denominator == 0:
        raise ZeroDivisionError("multiply_ratio denominator is zero")
    return (amount * numerator) // denominator


def odds_to_micros(odds: Decimal) -> int:
    """Decimal odds -> integer micro-units (1.91 -> 1_910_000), flooring any excess digits."""
    return int((odds * ODDS_MICROS).to_integral_value(rounding=ROUND_FLOOR))


def odds_from_micros(micros: int) -> Decimal:
    return Decimal(micros).scaleb(-6)


def apply_odds(amount: int, odds: Decimal) -> int:
    """Payout promised for a stake at the given odds: floor(amount * odds)."""
    return checked_amount(multiply_ratio(amount, odds_to_micros(odds), ODDS_MICROS), "payout")


def fee_from_bps(total: int, fee_bps: int) -> int:
    if fee_bps <= 0:
        return 0
    return multiply_ratio(total, fee_bps, BPS_DENOMINATOR)


# ============================================================================
# PARIMUTUEL
# ============================================================================

def calculate_parimutuel_payout(
    total_pool: int,
    outcome_total: int,
    stake: int,
    fee_bps: int,
) -> int:
    """
    Share of the pool, net of fee, owed to a stake on the winning outcome.

    PURE FUNCTION - All inputs explicit, no hidden state.

    Args:
        total_pool: Sum of stakes across all outcomes
        outcome_total: Sum of stakes on the winning outcome
        stake: The claimant's stake on the winning outcome
        fee_bps: Fee in basis points of the total pool

    Returns:
        floor((total_pool - fee) * stake / outcome_total), or 0 when nobody
        backed the outcome.

    Example:
        >>> calculate_parimutuel_payout(2000, 1000, 1000, 250)
        1950
    """
    if outcome_total == 0 or stake == 0:
        return 0
    distributable = total_pool - fee_from_bps(total_pool, fee_bps)
    return multiply_ratio(distributable, stake, outcome_total)


def calculate_implied_odds(total_pool: int, outcome_total: int, fee_bps: int) -> Decimal:
    """Decimal odds a parimutuel pool currently implies for one outcome (0 for an empty pool)."""
    if outcome_total == 0:
        return ZERO
    distributable = total_pool - fee_from_bps(total_pool, fee_bps)
    return truncate_decimal(Decimal(distributable) / Decimal(outcome_total))


# ============================================================================
# FIXED-ODDS
# ============================================================================

def calculate_odds(
    initial_odds_home: Decimal,
    initial_odds_away: Decimal,
    fee_spread_odds: Decimal,
    seed_liquidity_amplifier: Decimal,
    market_balance: int,
    home_total: int,
    away_total: int,
) -> Tuple[Decimal, Decimal]:
    """
    Reprice both sides of a fixed-odds market.

    Blends the prior probability implied by the initial odds with the
    probability implied by the bets placed so far. The more money has been
    bet relative to the (amplified) seed liquidity, the more weight the bets
    carry. The fee spread inflates both probabilities, which shortens the odds.

    PURE FUNCTION - All inputs explicit, no hidden state.

    Args:
        initial_odds_home: Opening decimal odds for HOME
        initial_odds_away: Opening decimal odds for AWAY
        fee_spread_odds: House margin added to each probability (0-0.25)
        seed_liquidity_amplifier: Multiplier on the seed when weighting bets
        market_balance: Custody balance, seed plus every stake
        home_total: Total staked on HOME
        away_total: Total staked on AWAY

    Returns:
        (home_odds, away_odds), each truncated to 2 decimal places.

    Example:
        >>> calculate_odds(Decimal("2.2"), Decimal("1.8"), Decimal("0.15"),
        ...                Decimal("3"), 100_000_000, 0, 0)
        (Decimal('1.91'), Decimal('1.56'))
    """
    total_bets = home_total + away_total
    seed_balance = market_balance - total_bets
    if seed_balance < 0:
        raise ArithmeticOverflow(
            f"market balance {market_balance} is below total bets {total_bets}"
        )

    with localcontext() as ctx:
        ctx.prec = 50
        total_dec = Decimal(total_bets)
        denominator = total_dec + Decimal(seed_balance) * seed_liquidity_amplifier
        weight = total_dec / denominator if denominator else ZERO

        quotes = []
        for side_total, initial_odds in ((home_total, initial_odds_home),
                                         (away_total, initial_odds_away)):
            prior = ONE / initial_odds
            derived = Decimal(side_total) / total_dec if total_bets else ZERO
            probability = (derived * weight + prior * (ONE - weight)) * (ONE + fee_spread_odds)
            if probability <= 0:
                raise InvalidOdds("implied probability must be positive")
            quotes.append(truncate_decimal(ONE / probability))

    return quotes[0], quotes[1]


def calculate_max_bet(
    market_balance: int,
    potential_payout: int,
    odds: Decimal,
    max_bet_risk_factor: Decimal,
) -> int:
    """
    Largest stake the market will accept on one side.

    The liquidity left after covering the side's promised payouts, divided
    by the odds and a risk factor, floored to whole minimal units.

    Example:
        >>> calculate_max_bet(100_000_000, 0, Decimal("1.91"), Decimal("1.5"))
        34904013
    """
    if market_balance <= potential_payout or odds <= 0:
        return 0
    free_liquidity = Decimal(market_balance - potential_payout)
    limit = free_liquidity / odds / max_bet_risk_factor
    return int(limit.to_integral_value(rounding=ROUND_FLOOR))
