# src/tallyrank/api/v1/endpoints/votes.py
"""Vote-related endpoints for the Tallyrank API."""

from __future__ import annotations

import logging

from fastapi import APIRouter, BackgroundTasks, Path, Query

from tallyrank.api.v1.dependencies import (
    AccountRefDep,
    HeaderFingerprintDep,
    RateLimiterDep,
    SessionDep,
)
from tallyrank.core.errors import StoreUnavailableError
from tallyrank.core.settings import settings
from tallyrank.schemas.common import ErrorResponse
from tallyrank.schemas.vote import VoteCast, VoteHistoryItem, VoteStatus
from tallyrank.services.identity import resolve_identity
from tallyrank.services.ranking_refresh import RankingRefreshWorker
from tallyrank.services.toggle import VoteDirection
from tallyrank.services.vote_store import VoteStore

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/votes", tags=["votes"])

_ERROR_RESPONSES: dict[int | str, dict[str, object]] = {
    401: {"model": ErrorResponse},
    404: {"model": ErrorResponse},
    429: {"model": ErrorResponse},
    503: {"model": ErrorResponse},
}


def _refresh_rankings_after_vote() -> None:
    try:
        RankingRefreshWorker().refresh_now()
    except StoreUnavailableError as exc:
        logger.warning("Post-vote ranking refresh failed: %s", exc)


@router.post("/", response_model=VoteStatus, responses=_ERROR_RESPONSES)
def cast_vote(
    vote_data: VoteCast,
    account_ref: AccountRefDep,
    header_fingerprint: HeaderFingerprintDep,
    rate_limiter: RateLimiterDep,
    db: SessionDep,
    background_tasks: BackgroundTasks,
) -> VoteStatus:
    """Cast, switch or retract a vote.

    Casting the caller's current direction again removes the vote; casting
    the opposite direction switches it.
    """
    identity = resolve_identity(account_ref, vote_data.fingerprint or header_fingerprint)
    rate_limiter.check_and_record(identity)

    outcome = VoteStore(db).cast_vote(
        identity,
        vote_data.product_id,
        VoteDirection(vote_data.direction),
    )

    if settings.ranking_refresh_on_vote:
        background_tasks.add_task(_refresh_rankings_after_vote)

    return VoteStatus.from_outcome(outcome)


@router.get("/history", response_model=list[VoteHistoryItem], responses=_ERROR_RESPONSES)
def get_vote_history(
    account_ref: AccountRefDep,
    header_fingerprint: HeaderFingerprintDep,
    db: SessionDep,
    fingerprint: str | None = Query(None),
    limit: int = Query(50, ge=1, le=200),
) -> list[VoteHistoryItem]:
    """List the caller's live votes, most recently changed first."""
    identity = resolve_identity(account_ref, fingerprint or header_fingerprint)
    votes = VoteStore(db).list_votes(identity, limit=limit)
    return [
        VoteHistoryItem(
            product_id=vote.product_id,
            direction=VoteDirection.from_int(vote.direction).value,
            created_at=vote.created_at,
            updated_at=vote.updated_at,
        )
        for vote in votes
    ]


@router.get("/{product_id}", response_model=VoteStatus, responses=_ERROR_RESPONSES)
def get_vote_status(
    account_ref: AccountRefDep,
    header_fingerprint: HeaderFingerprintDep,
    db: SessionDep,
    product_id: int = Path(..., gt=0),
    fingerprint: str | None = Query(None),
) -> VoteStatus:
    """Return a product's tally and the caller's current vote."""
    identity = resolve_identity(account_ref, fingerprint or header_fingerprint)
    return VoteStatus.from_outcome(VoteStore(db).get_status(identity, product_id))
