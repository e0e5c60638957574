"""
Test Suite for the Book Rating Engine

Test Organization:
- conftest.py: Shared fixtures (test databases, configs, sample reviews)
- test_weights.py: Per-review weight functions
- test_scoring.py: Scoring strategies and dispatch
- test_ratings.py: Single-book aggregation, storage, stale detection
- test_rating_config.py: Config versions and validation
- test_recalculation.py: Bulk orchestrator and background jobs
- test_store.py: SQL store and end-to-end runs on SQLite
- test_config.py: Settings validation and database wiring

Running Tests:
    # Run all tests
    pytest

    # Run specific file
    pytest tests/test_scoring.py

    # Run with verbose output
    pytest -v
"""
