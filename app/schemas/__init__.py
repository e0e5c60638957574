"""
Pydantic Schemas Package

Schemas validate rating config input and describe the config versions
handed to the engine. SQLAlchemy models (app/models) describe storage;
keeping them apart lets the engine work on validated, immutable values.
"""

from app.schemas.rating import (
    DEFAULT_RATING_CONFIG,
    RATING_MAX,
    RATING_MIN,
    AlgorithmType,
    RatingConfig,
    RatingConfigBase,
    RatingConfigCreate,
)

__all__ = [
    "AlgorithmType",
    "DEFAULT_RATING_CONFIG",
    "RATING_MAX",
    "RATING_MIN",
    "RatingConfig",
    "RatingConfigBase",
    "RatingConfigCreate",
]
