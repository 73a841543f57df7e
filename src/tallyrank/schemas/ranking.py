# src/tallyrank/schemas/ranking.py
"""Ranking-related Pydantic schemas."""

from datetime import datetime

from pydantic import BaseModel


class RankingEntry(BaseModel):
    """One row of the ranked product listing."""

    product_id: int
    slug: str
    name: str
    rank: int
    score: float
    upvotes: int
    downvotes: int
    computed_at: datetime
