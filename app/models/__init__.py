"""
SQLAlchemy Models Package

Model Relationships:
- Book <-> Review: One-to-Many (reviews are the engine's input)
- Book <-> BookRating: One-to-One (the engine's output)
- RatingConfigRecord: standalone, append-only version history

Import all models here to:
1. Make them available as: from app.models import Book, Review, BookRating
2. Ensure Alembic discovers them for migrations
"""

# The order matters for SQLAlchemy to resolve relationships
from app.models.book import Book
from app.models.review import Review
from app.models.book_rating import BookRating
from app.models.rating_config import RatingConfigRecord

__all__ = [
    "Book",
    "Review",
    "BookRating",
    "RatingConfigRecord",
]
