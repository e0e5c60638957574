"""
Database Wiring

SQLAlchemy 2.0 engine, session factory and declarative base shared by
all models and services.

Sessions are synchronous. Scoring is CPU-bound around short reads and
writes, and the bulk recalculation job gets its parallelism from a
thread pool instead of an event loop.

Session ownership:
1. Service functions take a caller-owned Session (see get_db)
2. SqlRatingStore opens one short-lived Session per call, so that
   recalculation worker threads never share one
"""

from collections.abc import Generator
from typing import Any

from sqlalchemy import create_engine
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker

from app.config import get_settings

settings = get_settings()


# =============================================================================
# Engine
# =============================================================================
# The pool must hold at least recalc_max_workers connections or workers
# queue behind each other. SQLite (tests, local runs) has no sized pool.

def _engine_options(database_url: str) -> dict[str, Any]:
    """Backend-specific create_engine() keyword arguments."""
    if database_url.startswith("sqlite"):
        return {"connect_args": {"check_same_thread": False}}
    return {
        "pool_size": settings.db_pool_size,
        "max_overflow": settings.db_max_overflow,
        "pool_pre_ping": True,
    }


engine = create_engine(
    settings.database_url,
    echo=settings.debug,
    **_engine_options(settings.database_url),
)


# =============================================================================
# Session Factory
# =============================================================================
# Commits are always explicit; no autoflush before queries.

SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine,
)


# =============================================================================
# Declarative Base
# =============================================================================
class Base(DeclarativeBase):
    """Base class of all models; Alembic reads Base.metadata."""
    pass


# =============================================================================
# Session Helpers
# =============================================================================
def get_db() -> Generator[Session, None, None]:
    """
    Yield a session and close it when the caller is done.

    Usage:
        from contextlib import contextmanager

        with contextmanager(get_db)() as db:
            config = get_active_config(db)
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def create_tables() -> None:
    """
    Create all tables from the models.

    For tests and local experiments; deployed databases use Alembic.
    """
    Base.metadata.create_all(bind=engine)


def drop_tables() -> None:
    """Drop all tables. Destroys data."""
    Base.metadata.drop_all(bind=engine)
