"""
Book Rating Engine Package

Turns persisted book reviews into one rating per book under a
versioned, live-editable algorithm config.

Package Structure:
- config.py: Deployment settings using Pydantic Settings
- database.py: SQLAlchemy database connection and session management
- exceptions.py: Error taxonomy of the engine
- models/: SQLAlchemy ORM models
- schemas/: Pydantic rating config schemas
- services/: Weights, strategies, aggregation, config versions, bulk jobs
"""

__version__ = "0.1.0"
