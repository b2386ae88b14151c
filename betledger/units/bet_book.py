"""
bet_book.py - Stake and Claim Ledger for a Market

A BetBook records who staked how much on which outcome, the running total
per outcome and which accounts have already been paid. Fixed-odds markets
also keep the payout promised at placement time.

Invariant:
    totals[o] == sum(stakes[o].values())   for every outcome o

All functions are pure: they return a new BetBook and never mutate their
input. Keys are outcome names ("HOME", "AWAY", "DRAW") and account ids.
"""

from __future__ import annotations
from dataclasses import dataclass, field, replace
from typing import Dict, Iterable, Mapping

from ..pricing import checked_amount


@dataclass(frozen=True, slots=True)
class BetBook:
    """
    Immutable snapshot of a market's bets.

    stakes:            outcome -> account -> staked amount
    totals:            outcome -> sum of stakes
    claims:            account -> True once paid
    payouts:           outcome -> account -> promised payout (fixed-odds)
    potential_payouts: outcome -> sum of promised payouts (fixed-odds)
    """
    stakes: Mapping[str, Mapping[str, int]]
    totals: Mapping[str, int]
    claims: Mapping[str, bool] = field(default_factory=dict)
    payouts: Mapping[str, Mapping[str, int]] = field(default_factory=dict)
    potential_payouts: Mapping[str, int] = field(default_factory=dict)


def empty_book(outcomes: Iterable[str], track_payouts: bool = False) -> BetBook:
    """Book with a zero total for every outcome the market accepts."""
    outcomes = list(outcomes)
    return BetBook(
        stakes={o: {} for o in outcomes},
        totals={o: 0 for o in outcomes},
        claims={},
        payouts={o: {} for o in outcomes} if track_payouts else {},
        potential_payouts={o: 0 for o in outcomes} if track_payouts else {},
    )


def record_stake(book: BetBook, account: str, outcome: str, amount: int) -> BetBook:
    """Add a stake for (account, outcome) and bump the outcome total."""
    stakes = {o: dict(by_account) for o, by_account in book.stakes.items()}
    by_account = stakes.setdefault(outcome, {})
    by_account[account] = checked_amount(by_account.get(account, 0) + amount, "stake")
    totals = dict(book.totals)
    totals[outcome] = checked_amount(totals.get(outcome, 0) + amount, f"{outcome} total")
    return replace(book, stakes=stakes, totals=totals)


def record_payout(book: BetBook, account: str, outcome: str, payout: int) -> BetBook:
    """Add a promised payout for (account, outcome) and bump the outcome's potential payout."""
    payouts = {o: dict(by_account) for o, by_account in book.payouts.items()}
    by_account = payouts.setdefault(outcome, {})
    by_account[account] = checked_amount(by_account.get(account, 0) + payout, "payout")
    potential = dict(book.potential_payouts)
    potential[outcome] = checked_amount(potential.get(outcome, 0) + payout, f"{outcome} potential payout")
    return replace(book, payouts=payouts, potential_payouts=potential)


def mark_claimed(book: BetBook, account: str) -> BetBook:
    return replace(book, claims={**book.claims, account: True})


def has_claimed(book: BetBook, account: str) -> bool:
    return bool(book.claims.get(account, False))


def stake_of(book: BetBook, account: str, outcome: str) -> int:
    return book.stakes.get(outcome, {}).get(account, 0)


def payout_of(book: BetBook, account: str, outcome: str) -> int:
    return book.payouts.get(outcome, {}).get(account, 0)


def total_stake_of(book: BetBook, account: str) -> int:
    """Everything the account has staked across outcomes (the refund on cancellation)."""
    return sum(by_account.get(account, 0) for by_account in book.stakes.values())


def total_pool(book: BetBook) -> int:
    return sum(book.totals.values())


def is_consistent(book: BetBook) -> bool:
    """True if every outcome total equals the sum of its stakes."""
    outcomes = set(book.stakes) | set(book.totals)
    return all(
        book.totals.get(o, 0) == sum(book.stakes.get(o, {}).values())
        for o in outcomes
    )


def book_to_state(book: BetBook) -> Dict[str, object]:
    """State-dict fragment for ledger storage; payout fields only when tracked."""
    state: Dict[str, object] = {
        'stakes': {o: dict(by_account) for o, by_account in book.stakes.items()},
        'totals': dict(book.totals),
        'claims': dict(book.claims),
    }
    if book.potential_payouts:
        state['payouts'] = {o: dict(by_account) for o, by_account in book.payouts.items()}
        state['potential_payouts'] = dict(book.potential_payouts)
    return state


def book_from_state(raw: Mapping[str, object]) -> BetBook:
    return BetBook(
        stakes={o: dict(by_account) for o, by_account in raw.get('stakes', {}).items()},
        totals=dict(raw.get('totals', {})),
        claims=dict(raw.get('claims', {})),
        payouts={o: dict(by_account) for o, by_account in raw.get('payouts', {}).items()},
        potential_payouts=dict(raw.get('potential_payouts', {})),
    )
