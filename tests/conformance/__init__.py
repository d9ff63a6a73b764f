"""
Conformance Test Suite

This suite defines the NORMATIVE behavior of the engine.
Any compliant implementation MUST pass these tests.

The tests are organized by invariant:
1. atomicity.py - A rejected call changes nothing
2. solvency.py - No successful call leaves its caller below the minimum health factor
3. conversion.py - Price conversions truncate and never invent value
4. reentrancy.py - Guarded entry points cannot be re-entered

These tests use hypothesis for property-based testing.
"""
