"""
Conformance Test Suite

This suite defines the NORMATIVE behavior of the conversion engine.
Any compliant implementation MUST pass these tests.

The tests are organized by invariant:
1. conservation.py - Supply equals balances and the value held in custody
2. atomicity.py - All-or-nothing deposits, redemptions and merges
3. ordering.py - Merge ordering checked before the registry is contacted

These tests use hypothesis for property-based testing.
"""
