"""
test_validation.py - Payment and parameter guards
"""

import pytest
from decimal import Decimal

from betledger import (
    Coin, must_pay,
    validate_fee_bps, validate_odds, validate_fee_spread_odds,
    validate_max_bet_risk_factor, validate_seed_liquidity_amplifier,
    PaymentError, InvalidFeeBps, InvalidOdds, InvalidFeeSpreadOdds,
    InvalidMaxBetRiskFactor, InvalidSeedLiquidityAmplifier,
    ArithmeticOverflow, MAX_AMOUNT,
)


class TestMustPay:
    """Exactly one non-zero coin of the market's denomination."""

    def test_single_coin(self):
        assert must_pay([Coin("USDC", 1000)], "USDC") == 1000

    def test_accepts_any_iterable(self):
        assert must_pay(iter([Coin("USDC", 5)]), "USDC") == 5

    def test_no_funds(self):
        with pytest.raises(PaymentError, match="no funds"):
            must_pay([], "USDC")

    def test_multiple_coins(self):
        with pytest.raises(PaymentError, match="single coin"):
            must_pay([Coin("USDC", 1), Coin("USDC", 1)], "USDC")

    def test_wrong_denom(self):
        with pytest.raises(PaymentError, match="expected USDC"):
            must_pay([Coin("EURC", 1000)], "USDC")

    def test_zero_amount(self):
        with pytest.raises(PaymentError):
            must_pay([Coin("USDC", 0)], "USDC")

    def test_amount_above_range(self):
        with pytest.raises(ArithmeticOverflow):
            must_pay([Coin("USDC", MAX_AMOUNT + 1)], "USDC")

    def test_coin_repr(self):
        assert repr(Coin("USDC", 7)) == "7USDC"


class TestParameterRanges:
    @pytest.mark.parametrize("bps", [0, 250, 1000])
    def test_fee_bps_in_range(self, bps):
        assert validate_fee_bps(bps) == bps

    @pytest.mark.parametrize("bps", [-1, 1001])
    def test_fee_bps_out_of_range(self, bps):
        with pytest.raises(InvalidFeeBps):
            validate_fee_bps(bps)

    def test_odds_at_least_one(self):
        assert validate_odds(Decimal("1")) == Decimal("1")
        with pytest.raises(InvalidOdds, match="initial_odds_home"):
            validate_odds(Decimal("0.99"), "initial_odds_home")

    def test_fee_spread_bounds(self):
        assert validate_fee_spread_odds(Decimal("0")) == Decimal("0")
        assert validate_fee_spread_odds(Decimal("0.25")) == Decimal("0.25")
        with pytest.raises(InvalidFeeSpreadOdds):
            validate_fee_spread_odds(Decimal("0.26"))
        with pytest.raises(InvalidFeeSpreadOdds):
            validate_fee_spread_odds(Decimal("-0.01"))

    def test_risk_factor_bounds(self):
        assert validate_max_bet_risk_factor(Decimal("1")) == Decimal("1")
        assert validate_max_bet_risk_factor(Decimal("10")) == Decimal("10")
        with pytest.raises(InvalidMaxBetRiskFactor):
            validate_max_bet_risk_factor(Decimal("0.5"))
        with pytest.raises(InvalidMaxBetRiskFactor):
            validate_max_bet_risk_factor(Decimal("10.5"))

    def test_amplifier_bounds(self):
        assert validate_seed_liquidity_amplifier(Decimal("3")) == Decimal("3")
        with pytest.raises(InvalidSeedLiquidityAmplifier):
            validate_seed_liquidity_amplifier(Decimal("0.9"))
        with pytest.raises(InvalidSeedLiquidityAmplifier):
            validate_seed_liquidity_amplifier(Decimal("11"))
