"""initial vote schema

Revision ID: 3c1f0a9d2b71
Revises:
Create Date: 2025-11-03 09:14:52.418306

"""
from __future__ import annotations

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "3c1f0a9d2b71"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create products, votes, reviews and rank snapshots."""
    op.create_table(
        "product",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("slug", sa.Text(), nullable=False),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("upvotes", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("downvotes", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("last_vote_at", sa.DateTime(timezone=True), nullable=True),
        sa.CheckConstraint("upvotes >= 0", name="ck_product_upvotes_non_negative"),
        sa.CheckConstraint("downvotes >= 0", name="ck_product_downvotes_non_negative"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("slug"),
    )

    op.create_table(
        "product_vote",
        sa.Column("product_id", sa.Integer(), nullable=False),
        sa.Column("voter_key", sa.String(length=160), nullable=False),
        sa.Column("direction", sa.SmallInteger(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint("direction IN (1, -1)", name="ck_product_vote_direction"),
        sa.ForeignKeyConstraint(["product_id"], ["product.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("product_id", "voter_key"),
    )
    op.create_index(
        "ix_product_vote_product_direction",
        "product_vote",
        ["product_id", "direction"],
    )
    op.create_index("ix_product_vote_voter_key", "product_vote", ["voter_key"])

    op.create_table(
        "review",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("product_id", sa.Integer(), nullable=False),
        sa.Column("rating", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint("rating BETWEEN 1 AND 5", name="ck_review_rating_range"),
        sa.ForeignKeyConstraint(["product_id"], ["product.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_review_product_id", "review", ["product_id"])

    op.create_table(
        "rank_snapshot",
        sa.Column("product_id", sa.Integer(), nullable=False),
        sa.Column("score", sa.Float(), nullable=False),
        sa.Column("rank", sa.Integer(), nullable=False),
        sa.Column("computed_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["product_id"], ["product.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("product_id"),
    )
    op.create_index("ix_rank_snapshot_rank", "rank_snapshot", ["rank"])


def downgrade() -> None:
    """Drop all vote engine tables."""
    op.drop_index("ix_rank_snapshot_rank", table_name="rank_snapshot")
    op.drop_table("rank_snapshot")
    op.drop_index("ix_review_product_id", table_name="review")
    op.drop_table("review")
    op.drop_index("ix_product_vote_voter_key", table_name="product_vote")
    op.drop_index("ix_product_vote_product_direction", table_name="product_vote")
    op.drop_table("product_vote")
    op.drop_table("product")
