"""
Rating Config Pydantic Schemas

Schemas:
- AlgorithmType: The closed set of scoring strategies
- RatingConfigBase: Algorithm parameters with their documented bounds
- RatingConfigCreate: Input for publishing a new config version
- RatingConfig: A stored (or default) config version, immutable

Bounds:
- prior_mean: 1-10 (same scale as review ratings)
- prior_weight: >= 0 virtual votes
- likes_alpha: >= 0
- likes_max_weight: >= 1
- min_text_weight: (0, 1]
- time_decay_half_life: > 0 days
"""

from datetime import datetime
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field

# Review ratings outside this range are excluded from aggregation
RATING_MIN = 1
RATING_MAX = 10


class AlgorithmType(StrEnum):
    """Scoring strategies the engine implements."""

    SIMPLE_AVERAGE = "simple_average"
    BAYESIAN_AVERAGE = "bayesian_average"
    WEIGHTED_BAYESIAN = "weighted_bayesian"
    CONFIDENCE_WEIGHTED = "confidence_weighted"


# =============================================================================
# Rating Config Schemas
# =============================================================================


class RatingConfigBase(BaseModel):
    """
    Shared algorithm parameters.

    All fields are required: a new version is always a complete
    parameter set, never a patch over the previous one.
    """

    algorithm_type: AlgorithmType = Field(
        ...,
        description="Scoring strategy used to aggregate reviews",
        examples=["bayesian_average"],
    )
    prior_mean: float = Field(
        ...,
        ge=1,
        le=10,
        description="Baseline rating the Bayesian strategies shrink towards",
        examples=[7.4],
    )
    prior_weight: int = Field(
        ...,
        ge=0,
        description="How many virtual reviews the prior mean counts as",
        examples=[30],
    )
    likes_alpha: float = Field(
        ...,
        ge=0,
        description="Diminishing-returns coefficient of the likes weight",
        examples=[0.4],
    )
    likes_max_weight: float = Field(
        ...,
        ge=1,
        description="Upper bound of the likes weight",
        examples=[3.0],
    )
    min_text_weight: float = Field(
        ...,
        gt=0,
        le=1,
        description="Weight of a review with no text",
        examples=[0.3],
    )
    time_decay_enabled: bool = Field(
        ...,
        description="Down-weight older reviews exponentially",
    )
    time_decay_half_life: int = Field(
        ...,
        gt=0,
        description="Age in days at which a review counts half",
        examples=[180],
    )

    model_config = ConfigDict(allow_inf_nan=False)


class RatingConfigCreate(RatingConfigBase):
    """
    Schema for publishing a new rating config version.

    Example request body:
    {
        "algorithm_type": "weighted_bayesian",
        "prior_mean": 7.4,
        "prior_weight": 30,
        "likes_alpha": 0.4,
        "likes_max_weight": 3.0,
        "min_text_weight": 0.3,
        "time_decay_enabled": true,
        "time_decay_half_life": 180
    }
    """

    model_config = ConfigDict(allow_inf_nan=False, extra="forbid")


class RatingConfig(RatingConfigBase):
    """
    A published rating config version.

    Frozen so that a snapshot handed to recalculation workers cannot be
    changed under them. Version 0 is the built-in default.
    """

    version: int = Field(..., ge=0, description="Monotonically increasing version")
    created_at: datetime | None = Field(
        default=None,
        description="When this version was published (None for the default)",
    )

    model_config = ConfigDict(allow_inf_nan=False, frozen=True, from_attributes=True)

    @property
    def is_default(self) -> bool:
        """True for the built-in default that was never stored."""
        return self.version == 0

    def parameters(self) -> RatingConfigCreate:
        """The parameter set without version metadata."""
        return RatingConfigCreate.model_validate(
            self.model_dump(exclude={"version", "created_at"})
        )


DEFAULT_RATING_CONFIG = RatingConfig(
    algorithm_type=AlgorithmType.SIMPLE_AVERAGE,
    prior_mean=7.4,
    prior_weight=30,
    likes_alpha=0.4,
    likes_max_weight=3.0,
    min_text_weight=0.3,
    time_decay_enabled=False,
    time_decay_half_life=180,
    version=0,
)
