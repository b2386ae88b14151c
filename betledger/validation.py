"""
validation.py - Payment and parameter validation

Guards that run before any state is touched. Each raises the matching
MarketError subclass from core.
"""

from __future__ import annotations
from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable

from .core import (
    PaymentError, InvalidFeeBps, InvalidOdds, InvalidFeeSpreadOdds,
    InvalidMaxBetRiskFactor, InvalidSeedLiquidityAmplifier,
)
from .pricing import MAX_FEE_BPS, checked_amount


MAX_FEE_SPREAD_ODDS = Decimal("0.25")
MIN_RISK_FACTOR = Decimal("1")
MAX_RISK_FACTOR = Decimal("10")
MIN_AMPLIFIER = Decimal("1")
MAX_AMPLIFIER = Decimal("10")
MIN_ODDS = Decimal("1")


@dataclass(frozen=True, slots=True)
class Coin:
    """Funds attached to an operation: an amount in minimal units of one denomination."""
    denom: str
    amount: int

    def __repr__(self) -> str:
        return f"{self.amount}{self.denom}"


def must_pay(funds: Iterable[Coin], denom: str) -> int:
    """
    Return the attached amount if funds are exactly one non-zero coin of `denom`.

    Raises:
        PaymentError: no funds, several coins, another denomination, or zero amount
    """
    coins = list(funds)
    if not coins:
        raise PaymentError("no funds sent")
    if len(coins) > 1:
        raise PaymentError(f"expected a single coin, got {len(coins)}")
    coin = coins[0]
    if coin.denom != denom:
        raise PaymentError(f"expected {denom}, got {coin.denom}")
    if coin.amount <= 0:
        raise PaymentError(f"no {denom} sent")
    return checked_amount(coin.amount, "payment")


def validate_fee_bps(fee_bps: int) -> int:
    if fee_bps < 0 or fee_bps > MAX_FEE_BPS:
        raise InvalidFeeBps(f"fee_bps must be between 0 and {MAX_FEE_BPS}, got {fee_bps}")
    return fee_bps


def validate_odds(odds: Decimal, name: str = "odds") -> Decimal:
    if odds < MIN_ODDS:
        raise InvalidOdds(f"{name} must be at least {MIN_ODDS}, got {odds}")
    return odds


def validate_fee_spread_odds(spread: Decimal) -> Decimal:
    if spread < 0 or spread > MAX_FEE_SPREAD_ODDS:
        raise InvalidFeeSpreadOdds(
            f"fee_spread_odds must be between 0 and {MAX_FEE_SPREAD_ODDS}, got {spread}"
        )
    return spread


def validate_max_bet_risk_factor(factor: Decimal) -> Decimal:
    if factor < MIN_RISK_FACTOR or factor > MAX_RISK_FACTOR:
        raise InvalidMaxBetRiskFactor(
            f"max_bet_risk_factor must be between {MIN_RISK_FACTOR} and {MAX_RISK_FACTOR}, got {factor}"
        )
    return factor


def validate_seed_liquidity_amplifier(amplifier: Decimal) -> Decimal:
    if amplifier < MIN_AMPLIFIER or amplifier > MAX_AMPLIFIER:
        raise InvalidSeedLiquidityAmplifier(
            f"seed_liquidity_amplifier must be between {MIN_AMPLIFIER} and {MAX_AMPLIFIER}, got {amplifier}"
        )
    return amplifier
