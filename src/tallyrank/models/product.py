# src/tallyrank/models/product.py
"""SQLAlchemy model for catalog products and their vote aggregate."""

from datetime import datetime

from sqlalchemy import CheckConstraint, DateTime, Integer, Text
from sqlalchemy.orm import Mapped, mapped_column

from tallyrank.db.session import Base


class Product(Base):
    """Catalog item that can be voted on and ranked.

    Catalog fields are owned by the external catalog service. The vote
    aggregate (``upvotes``/``downvotes``/``last_vote_at``) is a materialized
    count of live ``product_vote`` rows and is only written by the vote store
    inside the same transaction as the vote mutation.
    """

    __tablename__ = "product"
    __table_args__ = (
        CheckConstraint("upvotes >= 0", name="ck_product_upvotes_non_negative"),
        CheckConstraint("downvotes >= 0", name="ck_product_downvotes_non_negative"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    slug: Mapped[str] = mapped_column(Text, nullable=False, unique=True)
    name: Mapped[str] = mapped_column(Text, nullable=False)

    upvotes: Mapped[int] = mapped_column(default=0, nullable=False)
    downvotes: Mapped[int] = mapped_column(default=0, nullable=False)
    last_vote_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
