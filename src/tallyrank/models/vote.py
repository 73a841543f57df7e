# src/tallyrank/models/vote.py
"""Models capturing voting interactions on products."""

from datetime import datetime

from sqlalchemy import (
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    SmallInteger,
    String,
)
from sqlalchemy.orm import Mapped, mapped_column

from tallyrank.db.session import Base
from tallyrank.db.time import utcnow

VOTE_UP = 1
VOTE_DOWN = -1


class ProductVote(Base):
    """Live vote of one identity on one product.

    Removing a vote deletes the row; there is no neutral state.
    """

    __tablename__ = "product_vote"
    __table_args__ = (
        CheckConstraint("direction IN (1, -1)", name="ck_product_vote_direction"),
        Index("ix_product_vote_product_direction", "product_id", "direction"),
        Index("ix_product_vote_voter_key", "voter_key"),
    )

    product_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("product.id", ondelete="CASCADE"),
        primary_key=True,
    )

    # "account:<id>" or "anon:<fingerprint>"
    voter_key: Mapped[str] = mapped_column(String(160), primary_key=True)

    # Composite primary key prevents duplicate votes from the same identity.

    # 1 = upvote, -1 = downvote.
    direction: Mapped[int] = mapped_column(SmallInteger, nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
    )
