"""
Review Weight Functions

Per-review weights used by the weighted scoring strategies:

    w_i = likes_weight * text_quality_weight * time_decay_weight

All functions are pure. Invalid parameters degrade the weight to
neutral (1.0) instead of raising, so a bad config value can never crash
a computation. Only the fallbacks documented on each function apply;
any other out-of-range value is used as given.
"""

import math
import sys
from datetime import UTC, datetime

from app.schemas.rating import RatingConfig

# Text length (in characters) at which a review gets full text weight
TEXT_REFERENCE_LENGTH = 200

# Smallest positive normal float; decay never reaches exactly zero
_MIN_DECAY_WEIGHT = sys.float_info.min

SECONDS_PER_DAY = 86400.0


def likes_weight(like_count: int, alpha: float, max_weight: float) -> float:
    """
    Weight from the number of likes, with diminishing returns.

    Formula: min(max_weight, 1 + alpha * ln(1 + likes))

    Returns 1.0 when alpha or max_weight is non-positive or not finite.
    Negative like counts are treated as zero.
    """
    if not (_is_positive(alpha) and _is_positive(max_weight)):
        return 1.0
    likes = max(0, like_count)
    return min(max_weight, 1.0 + alpha * math.log1p(likes))


def text_quality_weight(text_length: int, min_weight: float) -> float:
    """
    Weight from review text length.

    Linear ramp from min_weight at length 0 to 1.0 at
    TEXT_REFERENCE_LENGTH characters and above.
    """
    length = max(0, text_length)
    if length >= TEXT_REFERENCE_LENGTH:
        return 1.0
    weight = min_weight + (1.0 - min_weight) * (length / TEXT_REFERENCE_LENGTH)
    return min(weight, 1.0)


def time_decay_weight(age_days: float, half_life_days: float, enabled: bool) -> float:
    """
    Exponential decay weight by review age.

    Formula: 0.5 ** (age_days / half_life_days)

    Returns 1.0 when disabled or when half_life_days is not positive.
    Negative ages (clock skew) count as age 0.
    """
    if not enabled or not _is_positive(half_life_days):
        return 1.0
    age = max(0.0, age_days)
    return max(0.5 ** (age / half_life_days), _MIN_DECAY_WEIGHT)


def review_age_days(created_at: datetime | None, as_of: datetime) -> float:
    """
    Age of a review in days at time as_of.

    Naive timestamps (e.g. read back from SQLite) are taken as UTC.
    A review without a timestamp is treated as brand new.
    """
    if created_at is None:
        return 0.0
    if created_at.tzinfo is None:
        created_at = created_at.replace(tzinfo=UTC)
    if as_of.tzinfo is None:
        as_of = as_of.replace(tzinfo=UTC)
    return (as_of - created_at).total_seconds() / SECONDS_PER_DAY


def review_weight(
    like_count: int,
    text_length: int,
    created_at: datetime | None,
    config: RatingConfig,
    as_of: datetime,
) -> float:
    """Combined weight of one review under a config."""
    age_days = review_age_days(created_at, as_of)
    return (
        likes_weight(like_count, config.likes_alpha, config.likes_max_weight)
        * text_quality_weight(text_length, config.min_text_weight)
        * time_decay_weight(
            age_days,
            config.time_decay_half_life,
            config.time_decay_enabled,
        )
    )


def _is_positive(value: float) -> bool:
    try:
        return math.isfinite(value) and value > 0
    except TypeError:
        return False
