"""
fixed_odds.py - Quoted-Odds Pricing

Each bet is priced at the odds quoted when it is placed and is owed
floor(stake * odds) if its side wins. The house seeds the market with
liquidity at creation; that seed backs the promised payouts.

After every accepted bet the quotes move (when reprice_on_bet is set): the
prior implied by the initial odds is blended with the split of money already
bet, weighted by how large the bets are against the amplified seed. See
pricing.calculate_odds.

Risk controls:
    - a bettor may pass min_odds; the bet is refused if the quote is lower
    - a single stake may not exceed calculate_max_bet() for its side

On scoring, the custody balance beyond the winning side's promised payouts
goes to the treasury. A cancelled market refunds every stake.
"""

from __future__ import annotations
from dataclasses import replace
from decimal import Decimal
from typing import Any, Dict, Mapping, Optional, Tuple

from ..core import ArithmeticOverflow, MaxBetExceeded, MinimumOddsNotKept
from ..pricing import apply_odds, calculate_max_bet, calculate_odds, truncate_decimal
from ..units.bet_book import (
    BetBook, empty_book, payout_of, record_payout, record_stake, total_stake_of,
)
from ..units.market import (
    MarketParams, MarketState, MarketStatus, MarketTerms, MarketType, Outcome,
)
from ..validation import (
    validate_fee_spread_odds, validate_max_bet_risk_factor, validate_odds,
    validate_seed_liquidity_amplifier,
)


SIDES = (Outcome.HOME, Outcome.AWAY)


class FixedOddsPricing:
    """Two-way market priced by repricing quotes against seeded liquidity."""

    market_type = MarketType.FIXED_ODDS
    requires_seed = True
    update_fields = frozenset({
        'fee_spread_odds', 'max_bet_risk_factor', 'seed_liquidity_amplifier',
        'initial_odds_home', 'initial_odds_away', 'reprice_on_bet',
    })

    def outcomes(self, is_drawable: bool) -> Tuple[Outcome, ...]:
        return SIDES

    def validate_terms(self, terms: MarketTerms) -> None:
        validate_fee_spread_odds(terms.fee_spread_odds)
        validate_max_bet_risk_factor(terms.max_bet_risk_factor)
        validate_seed_liquidity_amplifier(terms.seed_liquidity_amplifier)
        validate_odds(terms.initial_odds_home, "initial_odds_home")
        validate_odds(terms.initial_odds_away, "initial_odds_away")

    def open_market(self, terms: MarketTerms, params: MarketParams, seed: int) -> Tuple[MarketState, BetBook]:
        if params.is_drawable:
            raise ValueError("fixed-odds markets cannot be drawable")
        book = empty_book((o.value for o in SIDES), track_payouts=True)
        home_odds, away_odds = self._quote(terms, book, seed)
        market = MarketState(
            market_id=params.market_id,
            label=params.label,
            home_team=params.home_team,
            away_team=params.away_team,
            start_timestamp=params.start_timestamp,
            is_drawable=False,
            home_odds=home_odds,
            away_odds=away_odds,
        )
        return market, book

    def check_bet(
        self,
        terms: MarketTerms,
        market: MarketState,
        book: BetBook,
        outcome: Outcome,
        min_odds: Optional[Decimal],
    ) -> None:
        if min_odds is None:
            return
        quoted = market.odds_for(outcome)
        if quoted < min_odds:
            raise MinimumOddsNotKept(
                f"{outcome.value} quoted at {quoted}, below minimum {min_odds}"
            )

    def record_bet(
        self,
        terms: MarketTerms,
        market: MarketState,
        book: BetBook,
        account: str,
        outcome: Outcome,
        amount: int,
        market_balance: int,
    ) -> Tuple[MarketState, BetBook, Dict[str, Any]]:
        """
        Accept a stake at the current quote.

        market_balance is the custody balance before this stake arrives.

        Raises:
            MaxBetExceeded: stake above the side's current limit
        """
        odds = market.odds_for(outcome)
        limit = calculate_max_bet(
            market_balance,
            book.potential_payouts.get(outcome.value, 0),
            odds,
            terms.max_bet_risk_factor,
        )
        if amount > limit:
            raise MaxBetExceeded(f"max bet on {outcome.value} is {limit}, got {amount}")

        payout = apply_odds(amount, odds)
        book = record_stake(book, account, outcome.value, amount)
        book = record_payout(book, account, outcome.value, payout)

        if terms.reprice_on_bet:
            home_odds, away_odds = self._quote(terms, book, market_balance + amount)
            market = replace(market, home_odds=home_odds, away_odds=away_odds)

        attributes = {
            'amount': amount,
            'odds': odds,
            'potential_payout': payout,
            'home_odds': market.home_odds,
            'away_odds': market.away_odds,
        }
        return market, book, attributes

    def compute_payout(self, terms: MarketTerms, market: MarketState, book: BetBook, account: str) -> int:
        if market.status == MarketStatus.CANCELLED:
            return total_stake_of(book, account)
        if market.status == MarketStatus.CLOSED:
            return payout_of(book, account, market.result.value)
        return 0

    def estimate(
        self,
        terms: MarketTerms,
        market: MarketState,
        book: BetBook,
        account: str,
        result: Outcome,
    ) -> int:
        return payout_of(book, account, result.value)

    def reprice(
        self,
        terms: MarketTerms,
        market: MarketState,
        book: BetBook,
        market_balance: int,
    ) -> Dict[Outcome, Decimal]:
        home_odds, away_odds = self._quote(terms, book, market_balance)
        return {Outcome.HOME: home_odds, Outcome.AWAY: away_odds}

    def _quote(self, terms: MarketTerms, book: BetBook, market_balance: int) -> Tuple[Decimal, Decimal]:
        return calculate_odds(
            terms.initial_odds_home,
            terms.initial_odds_away,
            terms.fee_spread_odds,
            terms.seed_liquidity_amplifier,
            market_balance,
            book.totals.get(Outcome.HOME.value, 0),
            book.totals.get(Outcome.AWAY.value, 0),
        )

    def settlement_fee(self, terms: MarketTerms, book: BetBook, result: Outcome, market_balance: int) -> int:
        """Everything in custody beyond the winners' promised payouts."""
        owed = book.potential_payouts.get(result.value, 0)
        if owed > market_balance:
            raise ArithmeticOverflow(
                f"promised payouts {owed} exceed market balance {market_balance}"
            )
        return market_balance - owed

    def max_bets(self, terms: MarketTerms, market: MarketState, book: BetBook, market_balance: int) -> Optional[Dict[Outcome, int]]:
        if market.status != MarketStatus.ACTIVE:
            return {side: 0 for side in SIDES}
        return {
            side: calculate_max_bet(
                market_balance,
                book.potential_payouts.get(side.value, 0),
                market.odds_for(side),
                terms.max_bet_risk_factor,
            )
            for side in SIDES
        }

    def apply_update(
        self,
        terms: MarketTerms,
        market: MarketState,
        changes: Mapping[str, Any],
    ) -> Tuple[MarketTerms, MarketState]:
        """New initial odds also replace the current quote for that side."""
        if 'fee_spread_odds' in changes:
            terms = replace(terms, fee_spread_odds=validate_fee_spread_odds(Decimal(str(changes['fee_spread_odds']))))
        if 'max_bet_risk_factor' in changes:
            terms = replace(terms, max_bet_risk_factor=validate_max_bet_risk_factor(Decimal(str(changes['max_bet_risk_factor']))))
        if 'seed_liquidity_amplifier' in changes:
            terms = replace(terms, seed_liquidity_amplifier=validate_seed_liquidity_amplifier(Decimal(str(changes['seed_liquidity_amplifier']))))
        if 'initial_odds_home' in changes:
            odds = validate_odds(Decimal(str(changes['initial_odds_home'])), "initial_odds_home")
            terms = replace(terms, initial_odds_home=odds)
            market = replace(market, home_odds=truncate_decimal(odds))
        if 'initial_odds_away' in changes:
            odds = validate_odds(Decimal(str(changes['initial_odds_away'])), "initial_odds_away")
            terms = replace(terms, initial_odds_away=odds)
            market = replace(market, away_odds=truncate_decimal(odds))
        if 'reprice_on_bet' in changes:
            terms = replace(terms, reprice_on_bet=bool(changes['reprice_on_bet']))
        return terms, market
