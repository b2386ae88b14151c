"""
conftest.py - Shared pytest fixtures for settlement tests

Provides common fixtures used across unit, conformance and functional tests:
- A funded ledger with the settlement currency and bettor wallets
- A SettlementEngine wired to that ledger
- Freshly opened parimutuel and fixed-odds markets
"""

import pytest

from betledger import SettlementEngine, EngineConfig

from tests.market_helpers import (
    ADMIN, TREASURY,
    make_ledger, open_parimutuel, open_fixed_odds,
)


@pytest.fixture
def ledger():
    """Funded ledger at one hour before the event."""
    return make_ledger()


@pytest.fixture
def engine(ledger):
    """Engine administered by 'house', fees to 'treasury'."""
    return SettlementEngine(ledger, EngineConfig(admin=ADMIN, treasury=TREASURY))


@pytest.fixture
def parimutuel(engine):
    """Open drawable parimutuel market 'final' with a 250 bps fee."""
    return open_parimutuel(engine)


@pytest.fixture
def fixed_odds(engine):
    """Open fixed-odds market 'derby' seeded with 100_000_000."""
    return open_fixed_odds(engine)
