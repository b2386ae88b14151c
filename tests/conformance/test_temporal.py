"""
Temporal Conformance Tests

INVARIANT: Time gates and the lifecycle only move forward.

    bets accepted   ⟺ now <= start - 300s
    scoring allowed ⟺ now >= start + 1800s
    ACTIVE -> CLOSED | CANCELLED, never back

This ensures:
- No bet is taken once the event is about to start
- No result is recorded before the event could have finished
- Settled markets reject every further state change except claims
"""

import pytest
from datetime import timedelta

from hypothesis import given, settings
from hypothesis import strategies as st

from betledger import (
    SettlementEngine, EngineConfig, Outcome, MarketStatus,
    BetsNotAccepted, MarketNotScoreable, MarketNotActive, MarketNotClosed,
)

from tests.market_helpers import (
    ADMIN, TREASURY, START, OPEN_TIME, usdc, make_ledger, open_parimutuel,
)


def _engine(initial_time=OPEN_TIME):
    ledger = make_ledger(initial_time=initial_time)
    return ledger, SettlementEngine(ledger, EngineConfig(ADMIN, TREASURY))


class TestTimeGates:
    @given(st.integers(min_value=-3600, max_value=3600))
    @settings(max_examples=50, deadline=None)
    def test_bet_cutoff(self, offset):
        """
        PROPERTY: A bet is accepted exactly when it arrives at least 300s before start.
        """
        ledger, engine = _engine()
        market_id = open_parimutuel(engine)
        ledger.advance_time(START + timedelta(seconds=offset))

        if offset <= -300:
            engine.place_bet("alice", market_id, Outcome.HOME, usdc(10))
            assert engine.query_bets(market_id).totals[Outcome.HOME] == 10
        else:
            with pytest.raises(BetsNotAccepted):
                engine.place_bet("alice", market_id, Outcome.HOME, usdc(10))

    @given(st.integers(min_value=-3600, max_value=7200))
    @settings(max_examples=50, deadline=None)
    def test_scoring_delay(self, offset):
        """
        PROPERTY: A market can be scored exactly from 1800s after start.
        """
        ledger, engine = _engine()
        market_id = open_parimutuel(engine)
        engine.place_bet("alice", market_id, Outcome.HOME, usdc(10))
        engine.place_bet("bob", market_id, Outcome.AWAY, usdc(10))
        ledger.advance_time(START + timedelta(seconds=offset))

        if offset >= 1800:
            engine.score_market(ADMIN, market_id, Outcome.HOME)
            assert engine.query_market(market_id).status == MarketStatus.CLOSED
        else:
            with pytest.raises(MarketNotScoreable):
                engine.score_market(ADMIN, market_id, Outcome.HOME)

    def test_cancel_has_no_time_gate(self):
        ledger, engine = _engine()
        market_id = open_parimutuel(engine)
        engine.cancel_market(ADMIN, market_id)
        assert engine.query_market(market_id).status == MarketStatus.CANCELLED

    def test_rescheduled_start_moves_cutoff(self):
        ledger, engine = _engine()
        market_id = open_parimutuel(engine)
        ledger.advance_time(START)
        engine.update_market(ADMIN, market_id, start_timestamp=START + timedelta(days=1))
        engine.place_bet("alice", market_id, Outcome.HOME, usdc(10))


class TestLifecycle:
    def _closed(self):
        ledger, engine = _engine()
        market_id = open_parimutuel(engine)
        engine.place_bet("alice", market_id, Outcome.HOME, usdc(10))
        engine.place_bet("bob", market_id, Outcome.AWAY, usdc(10))
        ledger.advance_time(START + timedelta(hours=1))
        engine.score_market(ADMIN, market_id, Outcome.HOME)
        return ledger, engine, market_id

    def test_result_is_written_once(self):
        _, engine, market_id = self._closed()
        with pytest.raises(MarketNotActive):
            engine.score_market(ADMIN, market_id, Outcome.AWAY)
        assert engine.query_market(market_id).result == Outcome.HOME

    def test_closed_market_cannot_be_cancelled(self):
        _, engine, market_id = self._closed()
        with pytest.raises(MarketNotActive):
            engine.cancel_market(ADMIN, market_id)

    def test_closed_market_cannot_be_updated(self):
        _, engine, market_id = self._closed()
        with pytest.raises(MarketNotActive):
            engine.update_market(ADMIN, market_id, fee_bps=0)

    def test_cancelled_market_rejects_bets_and_score(self):
        ledger, engine = _engine()
        market_id = open_parimutuel(engine)
        engine.cancel_market(ADMIN, market_id)
        with pytest.raises(MarketNotActive):
            engine.place_bet("alice", market_id, Outcome.HOME, usdc(10))
        ledger.advance_time(START + timedelta(hours=1))
        with pytest.raises(MarketNotActive):
            engine.score_market(ADMIN, market_id, Outcome.HOME)

    def test_no_claims_while_active(self):
        _, engine = _engine()
        market_id = open_parimutuel(engine)
        engine.place_bet("alice", market_id, Outcome.HOME, usdc(10))
        with pytest.raises(MarketNotClosed):
            engine.claim_winnings("alice", market_id)

    def test_execution_times_follow_the_clock(self):
        ledger, engine, market_id = self._closed()
        engine.claim_winnings("alice", market_id)
        times = [tx.execution_time for tx in ledger.transaction_log]
        assert times == sorted(times)
        assert times[-1] == START + timedelta(hours=1)
