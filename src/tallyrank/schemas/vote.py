# src/tallyrank/schemas/vote.py
"""Vote-related Pydantic schemas."""

from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field

from tallyrank.services.vote_store import VoteOutcome

Direction = Literal["up", "down"]


class VoteCast(BaseModel):
    """Schema for casting a vote."""

    product_id: int = Field(..., gt=0)
    direction: Direction = Field(..., description="'up' or 'down'; repeating a direction removes it")
    fingerprint: str | None = Field(
        None,
        description="Anonymous client fingerprint, ignored when authenticated",
    )


class VoteStatus(BaseModel):
    """Product tally and the caller's current vote."""

    product_id: int
    upvotes: int
    downvotes: int
    direction: Direction | None
    score: int

    @classmethod
    def from_outcome(cls, outcome: VoteOutcome) -> VoteStatus:
        return cls(
            product_id=outcome.product_id,
            upvotes=outcome.upvotes,
            downvotes=outcome.downvotes,
            direction=outcome.direction.value if outcome.direction else None,
            score=outcome.score,
        )


class VoteHistoryItem(BaseModel):
    product_id: int
    direction: Direction
    created_at: datetime
    updated_at: datetime
