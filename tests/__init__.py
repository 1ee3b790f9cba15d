"""
Test suite for portfolio-ledger

Contains:
- tests/unit/          : Unit tests for value objects, engine, coordinator
"""
