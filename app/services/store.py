"""
Rating Store

The storage seam used by the bulk recalculation job.

RatingStore is the interface the orchestrator depends on; SqlRatingStore
implements it on SQLAlchemy. Every SqlRatingStore call opens its own
short-lived session from the session factory, so the store can be shared
by all worker threads of a recalculation run (a Session cannot).

Error mapping:
- Corpus enumeration failures -> InfrastructureFailureError (abort run)
- Per-book load failures -> DataUnavailableError (skip book, run continues)
"""

import logging
from collections.abc import Iterator
from typing import Protocol

from sqlalchemy import or_, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from app.database import SessionLocal
from app.exceptions import DataUnavailableError, InfrastructureFailureError
from app.models import Book, BookRating
from app.schemas.rating import RatingConfig
from app.services.rating_config import get_active_config
from app.services.ratings import BookRatingResult, load_book_reviews, save_book_rating
from app.services.scoring import ReviewSnapshot

logger = logging.getLogger(__name__)


class RatingStore(Protocol):
    """Storage operations needed to recalculate ratings in bulk."""

    def get_active_config(self) -> RatingConfig:
        """Return the currently active rating config."""
        ...

    def iter_book_id_batches(
        self,
        batch_size: int,
        start_after: int | None = None,
        stale_for_version: int | None = None,
    ) -> Iterator[list[int]]:
        """
        Lazily yield book ids in ascending batches.

        Args:
            batch_size: Maximum ids per batch
            start_after: Resume after this book id
            stale_for_version: Only books not yet rated under this version
        """
        ...

    def load_reviews(self, book_id: int) -> list[ReviewSnapshot]:
        """Load one book's reviews; raise DataUnavailableError on failure."""
        ...

    def save_book_rating(self, result: BookRatingResult) -> None:
        """Replace one book's stored rating."""
        ...


class SqlRatingStore:
    """
    RatingStore backed by the application database.

    Usage:
        store = SqlRatingStore()
        for batch in store.iter_book_id_batches(200):
            ...
    """

    def __init__(self, session_factory: sessionmaker[Session] = SessionLocal) -> None:
        self._session_factory = session_factory

    def get_active_config(self) -> RatingConfig:
        with self._session_factory() as session:
            return get_active_config(session)

    def iter_book_id_batches(
        self,
        batch_size: int,
        start_after: int | None = None,
        stale_for_version: int | None = None,
    ) -> Iterator[list[int]]:
        """
        Keyset-paginate book ids.

        Only one batch of ids is held at a time. Paginating on id (not
        OFFSET) keeps the scan correct when books are added or deleted
        while it runs, and lets an interrupted scan resume via start_after.
        """
        last_id = start_after
        while True:
            stmt = select(Book.id).order_by(Book.id).limit(batch_size)
            if last_id is not None:
                stmt = stmt.where(Book.id > last_id)
            if stale_for_version is not None:
                stmt = stmt.outerjoin(BookRating, BookRating.book_id == Book.id).where(
                    or_(
                        BookRating.book_id.is_(None),
                        BookRating.config_version != stale_for_version,
                    )
                )

            try:
                with self._session_factory() as session:
                    book_ids = list(session.execute(stmt).scalars().all())
            except SQLAlchemyError as e:
                raise InfrastructureFailureError(
                    f"Could not enumerate books after id {last_id}: {e}"
                ) from e

            if not book_ids:
                return
            yield book_ids

            if len(book_ids) < batch_size:
                return
            last_id = book_ids[-1]

    def load_reviews(self, book_id: int) -> list[ReviewSnapshot]:
        try:
            with self._session_factory() as session:
                if session.get(Book, book_id) is None:
                    raise DataUnavailableError(book_id, "book not found")
                return load_book_reviews(session, book_id)
        except SQLAlchemyError as e:
            raise DataUnavailableError(book_id, f"could not load reviews: {e}") from e

    def save_book_rating(self, result: BookRatingResult) -> None:
        with self._session_factory() as session:
            try:
                save_book_rating(session, result)
                session.commit()
            except IntegrityError:
                # Another writer inserted the row first; overwrite it
                session.rollback()
                logger.debug(f"Book {result.book_id} rating inserted concurrently, retrying")
                save_book_rating(session, result)
                session.commit()
