"""
Conformance Test Suite

This suite defines the NORMATIVE behavior of the settlement engine.
Any compliant implementation MUST pass these tests.

The tests are organized by invariant:
1. conservation.py - Funds are never created or destroyed by market operations
2. atomicity.py - All-or-nothing operation semantics
3. idempotency.py - A claim pays at most once, duplicate intents are no-ops
4. temporal.py - Bet cutoff, scoring delay and one-way lifecycle
5. truncation.py - Odds and payouts always round toward the house

These tests use hypothesis for property-based testing.
"""
