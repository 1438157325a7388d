"""Test suite for StarRocks-Experts.

Test organization:
- fixtures/: Fake data source and SHOW/information_schema row builders
- unit/: Unit tests for individual modules

Run tests with:
    pytest tests/
    pytest tests/unit/
    pytest tests/ -v --tb=short
"""
