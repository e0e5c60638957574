"""
Ratings Service

Computes and stores the rating of a single book.

- compute_rating: pure aggregation of one book's reviews under a config,
  dispatched to the strategy named by config.algorithm_type
- recalculate_book_rating: the on-demand path, called after a review is
  created, updated or deleted

Each BookRating row is tagged with the config version it was computed
under, so ratings left over from an older config can be found
(find_stale_book_ids) without recomputing anything.
"""

import logging
from collections.abc import Sequence
from dataclasses import asdict, dataclass
from datetime import UTC, datetime
from typing import Any

from sqlalchemy import func, or_, select
from sqlalchemy.orm import Session

from app.exceptions import DataUnavailableError
from app.models import Book, BookRating, Review
from app.schemas.rating import AlgorithmType, RatingConfig
from app.services.rating_config import get_active_config
from app.services.scoring import ReviewSnapshot, get_strategy

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BookRatingResult:
    """
    A complete computed rating for one book.

    Attributes:
        book_id: Book the rating belongs to
        value: Displayed rating, None when the book has no rating yet
        confidence: Only set by the confidence_weighted strategy
        review_count: Number of reviews included in the aggregate
        algorithm_type: Strategy that produced the value
        config_version: Config version used
        computed_at: Reference time of the computation
    """

    book_id: int
    value: float | None
    confidence: float | None
    review_count: int
    algorithm_type: str
    config_version: int
    computed_at: datetime

    @property
    def has_rating(self) -> bool:
        return self.value is not None

    def to_model(self) -> BookRating:
        """Build a fully populated BookRating row (whole-record replacement)."""
        return BookRating(**asdict(self))

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["computed_at"] = self.computed_at.isoformat()
        return data


# =============================================================================
# Aggregation
# =============================================================================


def compute_rating(
    book_id: int,
    reviews: Sequence[ReviewSnapshot],
    config: RatingConfig,
    as_of: datetime | None = None,
) -> BookRatingResult:
    """
    Aggregate one book's reviews into a rating.

    Identical (reviews, config, as_of) always produce an identical result.

    Args:
        book_id: ID of the book
        reviews: The book's reviews
        config: Config (snapshot) to compute under
        as_of: Reference time for time decay and computed_at.
            Defaults to now, which makes the result time-dependent
            when time decay is enabled.

    Returns:
        The computed rating

    Raises:
        UnknownAlgorithmError: If config.algorithm_type has no strategy
    """
    strategy = get_strategy(config.algorithm_type)
    as_of = as_of or datetime.now(UTC)

    score = strategy(reviews, config, as_of)

    return BookRatingResult(
        book_id=book_id,
        value=score.value,
        confidence=score.confidence,
        review_count=score.review_count,
        algorithm_type=AlgorithmType(config.algorithm_type).value,
        config_version=config.version,
        computed_at=as_of,
    )


# =============================================================================
# Persistence Helpers
# =============================================================================


def load_book_reviews(db: Session, book_id: int) -> list[ReviewSnapshot]:
    """
    Load the review attributes the engine needs for one book.

    The text length is computed in the database so review bodies are
    never loaded.
    """
    text_length = func.coalesce(func.length(func.trim(Review.content)), 0)
    stmt = (
        select(Review.rating, Review.like_count, text_length, Review.created_at)
        .where(Review.book_id == book_id)
        .order_by(Review.id)
    )
    return [
        ReviewSnapshot(
            rating=rating,
            like_count=like_count or 0,
            text_length=length or 0,
            created_at=created_at,
        )
        for rating, like_count, length, created_at in db.execute(stmt).all()
    ]


def save_book_rating(db: Session, result: BookRatingResult) -> BookRating:
    """
    Replace a book's stored rating with a new result.

    Does not commit; the caller owns the transaction.
    """
    return db.merge(result.to_model())


def get_book_rating(db: Session, book_id: int) -> BookRating | None:
    """Return the stored rating of a book, if one was ever computed."""
    return db.get(BookRating, book_id)


def find_stale_book_ids(db: Session, config_version: int) -> list[int]:
    """
    Books whose rating was not computed under config_version.

    Includes books that have never been rated.
    """
    stmt = (
        select(Book.id)
        .outerjoin(BookRating, BookRating.book_id == Book.id)
        .where(
            or_(
                BookRating.book_id.is_(None),
                BookRating.config_version != config_version,
            )
        )
        .order_by(Book.id)
    )
    return list(db.execute(stmt).scalars().all())


# =============================================================================
# On-Demand Recalculation
# =============================================================================


def recalculate_book_rating(
    db: Session,
    book_id: int,
    config: RatingConfig | None = None,
) -> BookRatingResult:
    """
    Recalculate and store a single book's rating.

    Called after any review create/update/delete operation.

    Args:
        db: Database session
        book_id: ID of the book to update
        config: Config to use; defaults to the active config

    Returns:
        The stored result

    Raises:
        DataUnavailableError: If the book does not exist
        UnknownAlgorithmError: If the config names an unknown algorithm

    Note:
        This function commits the changes to the database.
    """
    if db.get(Book, book_id) is None:
        raise DataUnavailableError(book_id, "book not found")

    config = config or get_active_config(db)
    reviews = load_book_reviews(db, book_id)
    result = compute_rating(book_id, reviews, config)

    save_book_rating(db, result)
    db.commit()

    logger.debug(
        f"Book {book_id} rated {result.value} from {result.review_count} reviews "
        f"(config version {result.config_version})"
    )
    return result
