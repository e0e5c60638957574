"""add_rating_engine_tables

Revision ID: c3f1a9d2e7b4
Revises:
Create Date: 2026-10-19 09:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = 'c3f1a9d2e7b4'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        'books',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('title', sa.String(length=500), nullable=False, comment='Book title'),
        sa.Column('isbn', sa.String(length=20), nullable=True,
                  comment='International Standard Book Number'),
        sa.Column('created_at', sa.DateTime(timezone=True),
                  server_default=sa.text('now()'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True),
                  server_default=sa.text('now()'), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(op.f('ix_books_title'), 'books', ['title'], unique=False)
    op.create_index(op.f('ix_books_isbn'), 'books', ['isbn'], unique=True)

    op.create_table(
        'reviews',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('book_id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('rating', sa.Integer(), nullable=True,
                  comment='Rating from 1-10, null for text-only reviews'),
        sa.Column('content', sa.Text(), nullable=True, comment='Review text content'),
        sa.Column('like_count', sa.Integer(), nullable=False, server_default='0',
                  comment='Number of likes'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['book_id'], ['books.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('book_id', 'user_id', name='uq_review_book_user'),
        sa.CheckConstraint('rating IS NULL OR (rating >= 1 AND rating <= 10)',
                           name='ck_review_rating_range'),
        sa.CheckConstraint('like_count >= 0', name='ck_review_like_count'),
    )
    op.create_index(op.f('ix_reviews_id'), 'reviews', ['id'], unique=False)
    op.create_index(op.f('ix_reviews_book_id'), 'reviews', ['book_id'], unique=False)
    op.create_index(op.f('ix_reviews_user_id'), 'reviews', ['user_id'], unique=False)

    # Append-only config history; the highest version is active
    op.create_table(
        'rating_configs',
        sa.Column('version', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('algorithm_type', sa.String(length=50), nullable=False,
                  comment='simple_average | bayesian_average | weighted_bayesian | confidence_weighted'),
        sa.Column('prior_mean', sa.Float(), nullable=False),
        sa.Column('prior_weight', sa.Integer(), nullable=False,
                  comment='Number of virtual votes at prior_mean'),
        sa.Column('likes_alpha', sa.Float(), nullable=False),
        sa.Column('likes_max_weight', sa.Float(), nullable=False),
        sa.Column('min_text_weight', sa.Float(), nullable=False),
        sa.Column('time_decay_enabled', sa.Boolean(), nullable=False),
        sa.Column('time_decay_half_life', sa.Integer(), nullable=False,
                  comment='Half-life in days'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('version'),
    )

    op.create_table(
        'book_ratings',
        sa.Column('book_id', sa.Integer(), nullable=False),
        sa.Column('value', sa.Float(), nullable=True,
                  comment='Displayed rating, null if the book has no rating yet'),
        sa.Column('confidence', sa.Float(), nullable=True),
        sa.Column('review_count', sa.Integer(), nullable=False),
        sa.Column('algorithm_type', sa.String(length=50), nullable=False),
        sa.Column('config_version', sa.Integer(), nullable=False),
        sa.Column('computed_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['book_id'], ['books.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('book_id'),
    )
    op.create_index(op.f('ix_book_ratings_value'), 'book_ratings', ['value'], unique=False)
    op.create_index(op.f('ix_book_ratings_config_version'), 'book_ratings',
                    ['config_version'], unique=False)


def downgrade() -> None:
    op.drop_index(op.f('ix_book_ratings_config_version'), table_name='book_ratings')
    op.drop_index(op.f('ix_book_ratings_value'), table_name='book_ratings')
    op.drop_table('book_ratings')
    op.drop_table('rating_configs')
    op.drop_index(op.f('ix_reviews_user_id'), table_name='reviews')
    op.drop_index(op.f('ix_reviews_book_id'), table_name='reviews')
    op.drop_index(op.f('ix_reviews_id'), table_name='reviews')
    op.drop_table('reviews')
    op.drop_index(op.f('ix_books_isbn'), table_name='books')
    op.drop_index(op.f('ix_books_title'), table_name='books')
    op.drop_table('books')
