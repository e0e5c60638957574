"""
Services Package

Business logic of the rating engine, kept separate from storage models
so every piece can be tested in isolation.

Current services:
- weights.py: Per-review weights (likes, text quality, time decay)
- scoring.py: Scoring strategies and algorithm dispatch
- ratings.py: Single-book aggregation and the on-demand recalculation path
- rating_config.py: Versioned rating config reads and writes
- store.py: Storage interface used by bulk recalculation (+ SQL implementation)
- recalculation.py: Bulk recalculation orchestrator and background jobs
"""
