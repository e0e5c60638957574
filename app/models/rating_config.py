"""
Rating Config Model

Stores every version of the rating algorithm parameters.

Rows are append-only: changing the config inserts a new row, and the
active config is the row with the highest version. Old rows stay for
audit/debugging and so that a BookRating's config_version always points
at the exact parameters it was computed under.
"""

from datetime import UTC, datetime

from sqlalchemy import Boolean, DateTime, Float, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from app.database import Base


class RatingConfigRecord(Base):
    """
    One immutable version of the rating algorithm parameters.

    Table: rating_configs

    The primary key doubles as the version number. Version 0 is reserved
    for the built-in default, which is never stored.
    """

    __tablename__ = "rating_configs"

    version: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    algorithm_type: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
        comment="simple_average | bayesian_average | weighted_bayesian | confidence_weighted",
    )
    prior_mean: Mapped[float] = mapped_column(Float, nullable=False)
    prior_weight: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        comment="Number of virtual votes at prior_mean",
    )
    likes_alpha: Mapped[float] = mapped_column(Float, nullable=False)
    likes_max_weight: Mapped[float] = mapped_column(Float, nullable=False)
    min_text_weight: Mapped[float] = mapped_column(Float, nullable=False)
    time_decay_enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    time_decay_half_life: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        comment="Half-life in days",
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        nullable=False,
    )

    def __repr__(self) -> str:
        return f"<RatingConfigRecord(version={self.version}, algorithm_type='{self.algorithm_type}')>"
