"""
Book Rating Model

The engine's output for one book, kept in its own table so that
recomputing ratings never touches catalogue rows.

Each computation overwrites the whole row, never a subset of its
columns, so re-running a computation is always safe.
"""

from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import DateTime, Float, ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.database import Base

if TYPE_CHECKING:
    from app.models.book import Book


class BookRating(Base):
    """
    Latest computed rating of a book.

    Attributes:
        book_id: Primary key and foreign key to books
        value: Displayed rating, None when the book has no rating yet
        confidence: Evidence share in [0, 1), only for confidence_weighted
        review_count: Number of reviews included in the aggregate
        algorithm_type: Strategy that produced the value
        config_version: Rating config version the value was computed under
        computed_at: When the value was computed
    """

    __tablename__ = "book_ratings"

    book_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("books.id", ondelete="CASCADE"),
        primary_key=True,
    )

    value: Mapped[float | None] = mapped_column(
        Float,
        nullable=True,
        index=True,
        comment="Displayed rating, null if the book has no rating yet",
    )
    confidence: Mapped[float | None] = mapped_column(Float, nullable=True)
    review_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    algorithm_type: Mapped[str] = mapped_column(String(50), nullable=False)

    # Stale ratings are found by comparing this against the active version
    config_version: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    computed_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    book: Mapped["Book"] = relationship("Book", back_populates="rating")

    def __repr__(self) -> str:
        return (
            f"<BookRating(book_id={self.book_id}, value={self.value}, "
            f"config_version={self.config_version})>"
        )
