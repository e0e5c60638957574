"""
pytest Fixtures for Rating Engine Tests

This file contains shared fixtures used across all test files.

For database tests, we use:
- session scope for the in-memory engine (expensive to create)
- function scope for sessions (each test is rolled back)
- a per-test SQLite file for the bulk recalculation store, because the
  store opens its own sessions (and worker threads) instead of sharing one
"""

# =============================================================================
# TEST ENVIRONMENT SETUP
# =============================================================================
# IMPORTANT: Set environment variables BEFORE importing the app
# so app.database builds its engine on SQLite instead of PostgreSQL.
import os

os.environ["DATABASE_URL"] = "sqlite://"
os.environ["LOG_LEVEL"] = "DEBUG"

from collections.abc import Generator
from datetime import UTC, datetime, timedelta

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from app.database import Base
from app.models import Book, Review
from app.schemas.rating import DEFAULT_RATING_CONFIG, AlgorithmType, RatingConfig
from app.services.scoring import ReviewSnapshot

# Fixed reference time so time-decay results are reproducible
AS_OF = datetime(2026, 1, 1, tzinfo=UTC)

LONG_TEXT = "A thoughtful review. " * 20


# =============================================================================
# DATABASE FIXTURES
# =============================================================================


@pytest.fixture(scope="session")
def engine():
    """
    Create a SQLite in-memory database engine.

    StaticPool keeps the connection alive for the entire session.
    Without it, SQLite in-memory database would disappear between connections.
    """
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    Base.metadata.create_all(bind=engine)

    yield engine

    Base.metadata.drop_all(bind=engine)


@pytest.fixture(scope="function")
def db_session(engine) -> Generator[Session, None, None]:
    """
    Create a fresh database session for each test.

    The session is wrapped in a transaction that's rolled back,
    ensuring test isolation without needing to recreate tables.
    """
    TestSessionLocal = sessionmaker(
        autocommit=False,
        autoflush=False,
        bind=engine,
    )

    connection = engine.connect()
    transaction = connection.begin()
    session = TestSessionLocal(bind=connection)

    yield session

    session.close()
    transaction.rollback()
    connection.close()


@pytest.fixture(scope="function")
def session_factory(tmp_path) -> Generator[sessionmaker, None, None]:
    """
    Session factory on a throwaway SQLite file.

    Used with SqlRatingStore, which opens and commits its own sessions.
    """
    file_engine = create_engine(
        f"sqlite:///{tmp_path / 'ratings.db'}",
        connect_args={"check_same_thread": False},
    )
    Base.metadata.create_all(bind=file_engine)

    yield sessionmaker(autocommit=False, autoflush=False, bind=file_engine)

    file_engine.dispose()


# =============================================================================
# CONFIG FIXTURES
# =============================================================================


def make_config(**overrides) -> RatingConfig:
    """Copy of the default config with some fields replaced (no validation)."""
    return DEFAULT_RATING_CONFIG.model_copy(update=overrides)


@pytest.fixture
def default_config() -> RatingConfig:
    return DEFAULT_RATING_CONFIG


@pytest.fixture
def bayesian_config() -> RatingConfig:
    return make_config(algorithm_type=AlgorithmType.BAYESIAN_AVERAGE, version=3)


@pytest.fixture
def weighted_config() -> RatingConfig:
    return make_config(algorithm_type=AlgorithmType.WEIGHTED_BAYESIAN, version=4)


@pytest.fixture
def confidence_config() -> RatingConfig:
    return make_config(algorithm_type=AlgorithmType.CONFIDENCE_WEIGHTED, version=5)


# =============================================================================
# SAMPLE DATA FIXTURES
# =============================================================================


def snapshot(
    rating: float | None,
    like_count: int = 0,
    text_length: int = 200,
    age_days: float = 0,
) -> ReviewSnapshot:
    """Build a review snapshot aged relative to AS_OF."""
    return ReviewSnapshot(
        rating=rating,
        like_count=like_count,
        text_length=text_length,
        created_at=AS_OF - timedelta(days=age_days),
    )


@pytest.fixture
def sample_book(db_session: Session) -> Book:
    """Create a sample book for testing."""
    book = Book(title="1984", isbn="9780451524935")
    db_session.add(book)
    db_session.commit()
    db_session.refresh(book)
    return book


@pytest.fixture
def sample_reviews(db_session: Session, sample_book: Book) -> list[Review]:
    """
    Reviews of sample_book:
    - rating 8, long text, 4 likes
    - rating 6, short padded text
    - a text-only review without rating (excluded from aggregation)
    """
    reviews = [
        Review(book_id=sample_book.id, user_id=1, rating=8, content=LONG_TEXT, like_count=4),
        Review(book_id=sample_book.id, user_id=2, rating=6, content="  Fine.  ", like_count=0),
        Review(book_id=sample_book.id, user_id=3, rating=None, content="No score", like_count=9),
    ]
    db_session.add_all(reviews)
    db_session.commit()
    return reviews
