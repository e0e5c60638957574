"""
Scoring Strategies

One pure function per AlgorithmType, all with the same signature:

    (reviews, config, as_of) -> ScoreResult

Strategies:
1. simple_average: Arithmetic mean. No rating at all for zero reviews.
2. bayesian_average: (m*mu + sum(r)) / (m + n). Equals mu for zero reviews.
3. weighted_bayesian: (m*mu + sum(w*r)) / (m + sum(w)), with per-review
   weights from likes, text length and age (see weights.py).
4. confidence_weighted: weighted_bayesian plus
   confidence = sum(w) / (sum(w) + m), an informational value in [0, 1).

Shared rules:
- Reviews without a valid rating are dropped before anything is summed
- "No rating" is None, never a sentinel number
- A zero denominator (only possible with out-of-range config values)
  yields the prior mean, and zero confidence
"""

import math
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from datetime import datetime

from app.exceptions import UnknownAlgorithmError
from app.schemas.rating import RATING_MAX, RATING_MIN, AlgorithmType, RatingConfig
from app.services.weights import review_weight


# =============================================================================
# Inputs and Outputs
# =============================================================================


@dataclass(frozen=True)
class ReviewSnapshot:
    """
    The review attributes the engine aggregates.

    Attributes:
        rating: Review rating, None for text-only reviews
        like_count: Number of likes
        text_length: Length of the stripped review text
        created_at: When the review was written
    """

    rating: float | None
    like_count: int = 0
    text_length: int = 0
    created_at: datetime | None = None

    @property
    def has_valid_rating(self) -> bool:
        """True if the rating is present, finite and within RATING_MIN..RATING_MAX."""
        if self.rating is None:
            return False
        try:
            rating = float(self.rating)
        except (TypeError, ValueError):
            return False
        return math.isfinite(rating) and RATING_MIN <= rating <= RATING_MAX


@dataclass(frozen=True)
class ScoreResult:
    """Output of a scoring strategy."""

    value: float | None
    confidence: float | None = None
    review_count: int = 0


Strategy = Callable[[Sequence[ReviewSnapshot], RatingConfig, datetime], ScoreResult]


def valid_reviews(reviews: Sequence[ReviewSnapshot]) -> list[ReviewSnapshot]:
    """Reviews that take part in aggregation."""
    return [review for review in reviews if review.has_valid_rating]


# =============================================================================
# Strategies
# =============================================================================


def simple_average(
    reviews: Sequence[ReviewSnapshot],
    config: RatingConfig,
    as_of: datetime,
) -> ScoreResult:
    """Arithmetic mean of ratings; value is None when there are no reviews."""
    included = valid_reviews(reviews)
    if not included:
        return ScoreResult(value=None, review_count=0)

    total = math.fsum(float(review.rating) for review in included)
    return ScoreResult(value=total / len(included), review_count=len(included))


def bayesian_average(
    reviews: Sequence[ReviewSnapshot],
    config: RatingConfig,
    as_of: datetime,
) -> ScoreResult:
    """
    Bayesian average with prior_weight virtual votes at prior_mean.

    Formula: (m * mu + sum(r)) / (m + n)
    """
    included = valid_reviews(reviews)
    if not included:
        return ScoreResult(value=config.prior_mean, review_count=0)

    ratings_sum = math.fsum(float(review.rating) for review in included)
    value = _shrink_to_prior(config, ratings_sum, float(len(included)))
    return ScoreResult(value=value, review_count=len(included))


def weighted_bayesian(
    reviews: Sequence[ReviewSnapshot],
    config: RatingConfig,
    as_of: datetime,
) -> ScoreResult:
    """
    Bayesian average where each review counts with its combined weight.

    Formula: (m * mu + sum(w_i * r_i)) / (m + sum(w_i))
    """
    included = valid_reviews(reviews)
    if not included:
        return ScoreResult(value=config.prior_mean, review_count=0)

    weighted_sum, total_weight = _weighted_sums(included, config, as_of)
    value = _shrink_to_prior(config, weighted_sum, total_weight)
    return ScoreResult(value=value, review_count=len(included))


def confidence_weighted(
    reviews: Sequence[ReviewSnapshot],
    config: RatingConfig,
    as_of: datetime,
) -> ScoreResult:
    """
    weighted_bayesian value plus a confidence score.

    confidence = sum(w_i) / (sum(w_i) + m)

    Confidence grows towards 1 as real evidence outweighs the prior. It is
    reported alongside the value and never changes it.
    """
    included = valid_reviews(reviews)
    if not included:
        return ScoreResult(value=config.prior_mean, confidence=0.0, review_count=0)

    weighted_sum, total_weight = _weighted_sums(included, config, as_of)
    value = _shrink_to_prior(config, weighted_sum, total_weight)

    denominator = total_weight + config.prior_weight
    confidence = total_weight / denominator if denominator != 0 else 0.0
    return ScoreResult(value=value, confidence=confidence, review_count=len(included))


# =============================================================================
# Helpers
# =============================================================================


def _weighted_sums(
    reviews: Sequence[ReviewSnapshot],
    config: RatingConfig,
    as_of: datetime,
) -> tuple[float, float]:
    """Return (sum of w_i * r_i, sum of w_i)."""
    weights = [
        review_weight(
            review.like_count,
            review.text_length,
            review.created_at,
            config,
            as_of,
        )
        for review in reviews
    ]
    weighted_sum = math.fsum(
        weight * float(review.rating) for weight, review in zip(weights, reviews)
    )
    return weighted_sum, math.fsum(weights)


def _shrink_to_prior(config: RatingConfig, evidence_sum: float, evidence_weight: float) -> float:
    denominator = config.prior_weight + evidence_weight
    if denominator == 0:
        return config.prior_mean
    return (config.prior_weight * config.prior_mean + evidence_sum) / denominator


# =============================================================================
# Dispatch
# =============================================================================

STRATEGIES: dict[AlgorithmType, Strategy] = {
    AlgorithmType.SIMPLE_AVERAGE: simple_average,
    AlgorithmType.BAYESIAN_AVERAGE: bayesian_average,
    AlgorithmType.WEIGHTED_BAYESIAN: weighted_bayesian,
    AlgorithmType.CONFIDENCE_WEIGHTED: confidence_weighted,
}


def get_strategy(algorithm: AlgorithmType | str) -> Strategy:
    """
    Resolve the strategy for an algorithm name.

    Never falls back to a default: a misconfigured algorithm must surface
    as an error, not as silently different ratings.

    Raises:
        UnknownAlgorithmError: If the name is not a known AlgorithmType
    """
    try:
        kind = AlgorithmType(algorithm)
    except (ValueError, TypeError):
        raise UnknownAlgorithmError(algorithm) from None

    strategy = STRATEGIES.get(kind)
    if strategy is None:
        raise UnknownAlgorithmError(algorithm)
    return strategy
