"""
test_fixed_odds_scenarios.py - End-to-end quoted-odds market lifecycles

Reference market 'derby': seed 100_000_000 from the house, opening odds
2.2 / 1.8, fee spread 0.15, max bet risk factor 1.5, amplifier 3.

Scenarios:
- Four bets moving the quotes, scored AWAY, treasury sweep and claims
- Bets above the side's limit
- Minimum odds protection
- Cancellation refunds, seed stays in custody
- Administrator resets the quotes
"""

import pytest
from datetime import timedelta
from decimal import Decimal

from betledger import (
    Outcome, MarketStatus, MarketType,
    NoWinnings, MaxBetExceeded, MinimumOddsNotKept, MarketNotDrawable,
    MarketNotInitiallyFunded, InvalidOdds,
)

from tests.market_helpers import (
    ADMIN, TREASURY, DENOM, INITIAL_BALANCE, START,
    usdc, balance_of, market_params, open_fixed_odds,
)


SCORE_TIME = START + timedelta(minutes=30)
M = 1_000_000


def _odds(engine, market_id):
    quotes = engine.query_odds(market_id)
    return quotes[Outcome.HOME], quotes[Outcome.AWAY]


def _limits(engine, market_id):
    limits = engine.query_max_bets(market_id)
    return limits[Outcome.HOME], limits[Outcome.AWAY]


class TestDerby:
    """alice HOME, bob AWAY, carol AWAY then HOME; the match ends AWAY."""

    def _place_bets(self, engine, market_id):
        engine.place_bet("alice", market_id, Outcome.HOME, usdc(10 * M))
        assert _odds(engine, market_id) == (Decimal("1.84"), Decimal("1.61"))
        assert _limits(engine, market_id) == (32_934_782, 45_548_654)

        engine.place_bet("bob", market_id, Outcome.AWAY, usdc(10 * M))
        assert _odds(engine, market_id) == (Decimal("1.90"), Decimal("1.57"))
        assert _limits(engine, market_id) == (35_403_508, 44_118_895)

        engine.place_bet("carol", market_id, Outcome.AWAY, usdc(40 * M))
        assert _odds(engine, market_id)[0] == Decimal("2.13")

        bet = engine.place_bet("carol", market_id, Outcome.HOME, usdc(20 * M))
        assert bet.attributes['odds'] == Decimal("2.13")
        assert bet.attributes['potential_payout'] == 42_600_000

    def test_opening_quotes(self, engine, fixed_odds):
        assert _odds(engine, fixed_odds) == (Decimal("1.91"), Decimal("1.56"))
        assert _limits(engine, fixed_odds) == (34_904_013, 42_735_042)

    def test_book_after_four_bets(self, engine, fixed_odds):
        self._place_bets(engine, fixed_odds)

        summary = engine.query_bets(fixed_odds)
        assert summary.totals == {Outcome.HOME: 30 * M, Outcome.AWAY: 50 * M}
        assert summary.potential_payouts == {Outcome.HOME: 61_700_000, Outcome.AWAY: 78_900_000}
        assert summary.market_balance == 180 * M
        assert _odds(engine, fixed_odds) == (Decimal("1.98"), Decimal("1.52"))
        assert _limits(engine, fixed_odds) == (39_831_649, 44_342_105)

        carol = engine.query_bets_by_address(fixed_odds, "carol")
        assert carol.odds == {Outcome.HOME: Decimal("2.13"), Outcome.AWAY: Decimal("1.57")}
        assert carol.payouts == {Outcome.HOME: 42_600_000, Outcome.AWAY: 62_800_000}

    def test_settlement(self, engine, ledger, fixed_odds):
        self._place_bets(engine, fixed_odds)
        ledger.advance_time(SCORE_TIME)

        scored = engine.score_market(ADMIN, fixed_odds, Outcome.AWAY)
        assert scored.attributes['fee_collected'] == 101_100_000
        assert balance_of(ledger, TREASURY) == 101_100_000
        assert _limits(engine, fixed_odds) == (0, 0)

        with pytest.raises(NoWinnings):
            engine.claim_winnings("alice", fixed_odds)
        assert engine.claim_winnings("bob", fixed_odds).attributes['payout'] == 16_100_000
        assert engine.claim_winnings("carol", fixed_odds).attributes['payout'] == 62_800_000

        assert balance_of(ledger, "market:derby") == 0
        assert balance_of(ledger, "bob") == INITIAL_BALANCE + 6_100_000
        assert balance_of(ledger, "carol") == INITIAL_BALANCE + 2_800_000
        assert balance_of(ledger, ADMIN) == INITIAL_BALANCE - 100 * M
        assert ledger.verify_double_entry({DENOM: Decimal(0)})['valid']


class TestRiskControls:
    def test_bet_above_limit(self, engine, ledger, fixed_odds):
        with pytest.raises(MaxBetExceeded):
            engine.place_bet("alice", fixed_odds, Outcome.HOME, usdc(34_910_000))
        assert balance_of(ledger, "alice") == INITIAL_BALANCE
        engine.place_bet("alice", fixed_odds, Outcome.HOME, usdc(34_904_013))

    def test_min_odds_kept(self, engine, fixed_odds):
        engine.place_bet("alice", fixed_odds, Outcome.HOME, usdc(M), min_odds=Decimal("1.91"))
        with pytest.raises(MinimumOddsNotKept):
            engine.place_bet("bob", fixed_odds, Outcome.HOME, usdc(M), min_odds=Decimal("1.91"))

    def test_no_draw(self, engine, ledger, fixed_odds):
        with pytest.raises(MarketNotDrawable):
            engine.place_bet("alice", fixed_odds, Outcome.DRAW, usdc(M))
        ledger.advance_time(SCORE_TIME)
        with pytest.raises(MarketNotDrawable):
            engine.score_market(ADMIN, fixed_odds, Outcome.DRAW)

    def test_static_quotes(self, engine):
        market_id = open_fixed_odds(engine, reprice_on_bet=False)
        engine.place_bet("alice", market_id, Outcome.HOME, usdc(10 * M))
        assert _odds(engine, market_id) == (Decimal("1.91"), Decimal("1.56"))
        # the limit still tracks the promised payout
        assert _limits(engine, market_id)[0] == 31_727_748


class TestCreation:
    def test_seed_required(self, engine):
        terms = engine.new_terms(MarketType.FIXED_ODDS, DENOM,
                                 initial_odds_home="2.2", initial_odds_away="1.8")
        with pytest.raises(MarketNotInitiallyFunded):
            engine.create_market(ADMIN, market_params("derby", is_drawable=False), terms)

    def test_drawable_rejected(self, engine):
        terms = engine.new_terms(MarketType.FIXED_ODDS, DENOM)
        with pytest.raises(ValueError, match="drawable"):
            engine.create_market(ADMIN, market_params("derby", is_drawable=True), terms, usdc(M))

    def test_invalid_initial_odds(self, engine):
        terms = engine.new_terms(MarketType.FIXED_ODDS, DENOM, initial_odds_home="0.9")
        with pytest.raises(InvalidOdds):
            engine.create_market(ADMIN, market_params("derby", is_drawable=False), terms, usdc(M))


class TestCancellation:
    def test_refunds_and_seed(self, engine, ledger, fixed_odds):
        engine.place_bet("alice", fixed_odds, Outcome.HOME, usdc(10 * M))
        engine.place_bet("bob", fixed_odds, Outcome.AWAY, usdc(5 * M))
        engine.cancel_market(ADMIN, fixed_odds)
        assert engine.query_market(fixed_odds).status == MarketStatus.CANCELLED

        assert engine.claim_winnings("alice", fixed_odds).attributes['payout'] == 10 * M
        assert engine.claim_winnings("bob", fixed_odds).attributes['payout'] == 5 * M
        assert balance_of(ledger, "market:derby") == 100 * M
        assert balance_of(ledger, TREASURY) == 0


class TestAdministration:
    def test_reset_quotes(self, engine, fixed_odds):
        engine.place_bet("alice", fixed_odds, Outcome.HOME, usdc(10 * M))
        engine.update_market(ADMIN, fixed_odds, initial_odds_home=Decimal("2.505"),
                             initial_odds_away=Decimal("1.5"))
        assert _odds(engine, fixed_odds) == (Decimal("2.50"), Decimal("1.50"))

        terms = engine.query_config(fixed_odds)
        assert terms.initial_odds_home == Decimal("2.505")

        bet = engine.place_bet("bob", fixed_odds, Outcome.HOME, usdc(M))
        assert bet.attributes['odds'] == Decimal("2.50")

    def test_update_unknown_field(self, engine, fixed_odds):
        with pytest.raises(ValueError, match="fee_bps"):
            engine.update_market(ADMIN, fixed_odds, fee_bps=10)
