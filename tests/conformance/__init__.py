"""
Conformance Test Suite

This suite defines the NORMATIVE behavior of the DSC engine.
Any compliant implementation MUST pass these tests.

The tests are organized by invariant:
1. atomicity.py - All-or-nothing operations, rollback of token moves and events
2. solvency_invariants.py - Health, supply and custody under random operation sequences
3. reentrancy.py - No operation runs inside another

These tests use hypothesis for property-based testing.
"""
