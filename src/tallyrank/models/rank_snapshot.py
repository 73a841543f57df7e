# src/tallyrank/models/rank_snapshot.py
"""Derived ranking rows consumed by listing views."""

from datetime import datetime

from sqlalchemy import DateTime, Float, ForeignKey, Index, Integer
from sqlalchemy.orm import Mapped, mapped_column

from tallyrank.db.session import Base
from tallyrank.db.time import utcnow


class RankSnapshot(Base):
    """Score and dense rank of a product.

    Not authoritative; rebuilt wholesale from votes and reviews by the
    ranking refresh.
    """

    __tablename__ = "rank_snapshot"
    __table_args__ = (Index("ix_rank_snapshot_rank", "rank"),)

    product_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("product.id", ondelete="CASCADE"),
        primary_key=True,
    )
    score: Mapped[float] = mapped_column(Float, nullable=False)
    rank: Mapped[int] = mapped_column(Integer, nullable=False)
    computed_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
    )
