"""
Conservation Law Conformance Tests

INVARIANT: For the settlement currency, at all times t:
    Σ_{w ∈ wallets} balance(w, t) = 0     (issuance is booked against 'system')

and for every market, once all claims are in:
    stakes + seed = payouts + fee + custody remainder

Market operations redistribute funds between bettors, custody wallets and
the treasury. They never create or destroy value.
"""

from datetime import timedelta
from decimal import Decimal

from hypothesis import given, settings
from hypothesis import strategies as st

from betledger import (
    SettlementEngine, EngineConfig, Outcome, NoWinnings, MaxBetExceeded,
)

from tests.market_helpers import (
    ADMIN, TREASURY, BETTORS, DENOM, INITIAL_BALANCE, START,
    usdc, make_ledger, balance_of, open_parimutuel, open_fixed_odds,
)


SCORE_TIME = START + timedelta(seconds=1800)


def _engine():
    ledger = make_ledger()
    return ledger, SettlementEngine(ledger, EngineConfig(ADMIN, TREASURY))


def _claim_all(engine, market_id):
    for bettor in BETTORS:
        try:
            engine.claim_winnings(bettor, market_id)
        except NoWinnings:
            pass


pool_bets = st.lists(
    st.tuples(
        st.sampled_from(BETTORS),
        st.sampled_from([Outcome.HOME, Outcome.AWAY, Outcome.DRAW]),
        st.integers(min_value=1, max_value=10_000),
    ),
    min_size=1,
    max_size=12,
)

fixed_bets = st.lists(
    st.tuples(
        st.sampled_from(BETTORS),
        st.sampled_from([Outcome.HOME, Outcome.AWAY]),
        st.integers(min_value=1, max_value=5_000_000),
    ),
    min_size=1,
    max_size=8,
)


class TestParimutuelConservation:
    """Pools pay out at most what was staked, net of fee."""

    @given(pool_bets, st.sampled_from([Outcome.HOME, Outcome.AWAY, Outcome.DRAW]),
           st.integers(min_value=0, max_value=1000))
    @settings(max_examples=50, deadline=None)
    def test_pool_settles_without_leakage(self, bets, result, fee_bps):
        ledger, engine = _engine()
        market_id = open_parimutuel(engine, fee_bps=fee_bps)
        for bettor, outcome, amount in bets:
            engine.place_bet(bettor, market_id, outcome, usdc(amount))

        pool = sum(amount for _, _, amount in bets)
        assert balance_of(ledger, "market:final") == pool

        ledger.advance_time(SCORE_TIME)
        try:
            fee = engine.score_market(ADMIN, market_id, result).attributes['fee_collected']
            winners = {b for b, o, _ in bets if o == result}
        except NoWinnings:
            engine.cancel_market(ADMIN, market_id)
            fee = 0
            winners = set()
        _claim_all(engine, market_id)

        paid = sum(
            balance_of(ledger, b) - INITIAL_BALANCE + sum(a for bb, _, a in bets if bb == b)
            for b in BETTORS
        )
        remainder = balance_of(ledger, "market:final")
        assert balance_of(ledger, TREASURY) == fee
        assert paid + fee + remainder == pool
        assert 0 <= remainder <= max(len(winners) - 1, 0)
        assert ledger.total_supply(DENOM) == Decimal("0")

    @given(pool_bets)
    @settings(max_examples=30, deadline=None)
    def test_cancel_returns_every_stake(self, bets):
        ledger, engine = _engine()
        market_id = open_parimutuel(engine)
        for bettor, outcome, amount in bets:
            engine.place_bet(bettor, market_id, outcome, usdc(amount))
        engine.cancel_market(ADMIN, market_id)
        _claim_all(engine, market_id)

        for bettor in BETTORS:
            assert balance_of(ledger, bettor) == INITIAL_BALANCE
        assert balance_of(ledger, "market:final") == 0


class TestFixedOddsConservation:
    """Seed plus stakes cover every promised payout; the rest goes to the treasury."""

    @given(fixed_bets, st.sampled_from([Outcome.HOME, Outcome.AWAY]))
    @settings(max_examples=50, deadline=None)
    def test_custody_empties_after_claims(self, bets, result):
        ledger, engine = _engine()
        market_id = open_fixed_odds(engine)
        for bettor, outcome, amount in bets:
            try:
                engine.place_bet(bettor, market_id, outcome, usdc(amount))
            except MaxBetExceeded:
                pass

        summary = engine.query_bets(market_id)
        assert summary.market_balance == 100_000_000 + sum(summary.totals.values())

        ledger.advance_time(SCORE_TIME)
        fee = engine.score_market(ADMIN, market_id, result).attributes['fee_collected']
        assert fee == summary.market_balance - summary.potential_payouts[result]

        _claim_all(engine, market_id)
        assert balance_of(ledger, "market:derby") == 0
        assert balance_of(ledger, TREASURY) == fee
        assert ledger.total_supply(DENOM) == Decimal("0")

    @given(fixed_bets)
    @settings(max_examples=30, deadline=None)
    def test_cancel_keeps_seed_in_custody(self, bets):
        ledger, engine = _engine()
        market_id = open_fixed_odds(engine)
        for bettor, outcome, amount in bets:
            try:
                engine.place_bet(bettor, market_id, outcome, usdc(amount))
            except MaxBetExceeded:
                pass
        engine.cancel_market(ADMIN, market_id)
        _claim_all(engine, market_id)

        for bettor in BETTORS:
            assert balance_of(ledger, bettor) == INITIAL_BALANCE
        assert balance_of(ledger, "market:derby") == 100_000_000
