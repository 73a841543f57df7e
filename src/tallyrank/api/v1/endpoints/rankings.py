# src/tallyrank/api/v1/endpoints/rankings.py
"""Ranked product listing endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Query

from tallyrank.api.v1.dependencies import SessionDep
from tallyrank.schemas.ranking import RankingEntry
from tallyrank.services.ranking_refresh import list_rankings, refresh_rankings

router = APIRouter(prefix="/rankings", tags=["rankings"])


def _entries(db: SessionDep, limit: int) -> list[RankingEntry]:
    return [
        RankingEntry(
            product_id=product.id,
            slug=product.slug,
            name=product.name,
            rank=snapshot.rank,
            score=snapshot.score,
            upvotes=product.upvotes,
            downvotes=product.downvotes,
            computed_at=snapshot.computed_at,
        )
        for snapshot, product in list_rankings(db, limit=limit)
    ]


@router.get("/", response_model=list[RankingEntry])
def get_rankings(
    db: SessionDep,
    limit: int = Query(50, ge=1, le=500),
) -> list[RankingEntry]:
    """Return products in rank order from the latest snapshot."""
    return _entries(db, limit)


@router.post("/refresh", response_model=list[RankingEntry])
def refresh(
    db: SessionDep,
    limit: int = Query(50, ge=1, le=500),
) -> list[RankingEntry]:
    """Recompute every product's score and rank, then return the top slice."""
    refresh_rankings(db)
    return _entries(db, limit)
