"""Persisting rank snapshots and refreshing them in the background.

Snapshots are derived data: a refresh reads every product's vote aggregate
and reviews, scores them, and replaces the ``rank_snapshot`` table in one
transaction. Running it twice on unchanged inputs yields the same rows.
"""

from __future__ import annotations

import asyncio
import logging
from collections import defaultdict
from collections.abc import Callable
from datetime import datetime

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from tallyrank.core.errors import StoreUnavailableError
from tallyrank.core.settings import settings
from tallyrank.db.session import SessionLocal
from tallyrank.db.time import utcnow
from tallyrank.models import Product, RankSnapshot, Review
from tallyrank.services.ranking import (
    RankedProduct,
    RankingConfig,
    RankingInput,
    ReviewSample,
    compute_rankings,
)

logger = logging.getLogger(__name__)


def load_ranking_inputs(db: Session) -> list[RankingInput]:
    """Project every product into a ``RankingInput``."""
    reviews: dict[int, list[ReviewSample]] = defaultdict(list)
    for product_id, rating, created_at in (
        db.query(Review.product_id, Review.rating, Review.created_at)
        .order_by(Review.product_id, Review.created_at)
        .all()
    ):
        reviews[product_id].append(ReviewSample(rating=rating, created_at=created_at))

    return [
        RankingInput(
            product_id=product.id,
            upvotes=product.upvotes,
            downvotes=product.downvotes,
            reviews=tuple(reviews.get(product.id, ())),
            last_vote_at=product.last_vote_at,
        )
        for product in db.query(Product).order_by(Product.id).all()
    ]


def refresh_rankings(
    db: Session,
    now: datetime | None = None,
    config: RankingConfig | None = None,
) -> list[RankedProduct]:
    """Recompute and store a snapshot for every product.

    Raises:
        StoreUnavailableError: If the snapshot could not be written; the
            previous snapshot is kept.
    """
    now = now or utcnow()
    config = config or RankingConfig.from_settings()
    try:
        ranked = compute_rankings(
            load_ranking_inputs(db),
            now,
            config,
            max_workers=settings.ranking_max_workers,
        )
        db.query(RankSnapshot).delete(synchronize_session=False)
        db.add_all(
            RankSnapshot(
                product_id=entry.product_id,
                score=entry.score,
                rank=entry.rank,
                computed_at=now,
            )
            for entry in ranked
        )
        db.commit()
    except SQLAlchemyError as err:
        db.rollback()
        logger.error("Ranking refresh failed: %s", err)
        raise StoreUnavailableError("Rankings could not be refreshed") from err

    logger.info("Refreshed rankings for %d products", len(ranked))
    return ranked


def list_rankings(db: Session, limit: int = 50) -> list[tuple[RankSnapshot, Product]]:
    """Return stored snapshots in rank order, refreshing first if none exist."""
    try:
        has_snapshots = db.query(RankSnapshot.product_id).first() is not None
    except SQLAlchemyError as err:
        raise StoreUnavailableError("Rankings are unavailable") from err

    if not has_snapshots:
        refresh_rankings(db)

    try:
        rows = (
            db.query(RankSnapshot, Product)
            .join(Product, Product.id == RankSnapshot.product_id)
            .order_by(RankSnapshot.rank.asc())
            .limit(limit)
            .all()
        )
    except SQLAlchemyError as err:
        raise StoreUnavailableError("Rankings are unavailable") from err
    return [(snapshot, product) for snapshot, product in rows]


class RankingRefreshWorker:
    """Periodically rebuilds rank snapshots in the background."""

    def __init__(
        self,
        session_factory: Callable[[], Session] | None = None,
        interval_seconds: float | None = None,
    ) -> None:
        self._session_factory = session_factory or SessionLocal
        self.interval_seconds = (
            settings.ranking_refresh_interval_seconds
            if interval_seconds is None
            else interval_seconds
        )
        self._task: asyncio.Task[None] | None = None
        self._stopping = asyncio.Event()

    async def start(self) -> None:
        """Start the background refresh loop."""
        if self._task is None or self._task.done():
            self._stopping.clear()
            self._task = asyncio.create_task(self._run())

    async def stop(self) -> None:
        """Stop the background refresh loop."""
        if self._task is None:
            return

        self._stopping.set()
        await self._task
        self._task = None

    async def run_once(self) -> list[RankedProduct]:
        return await asyncio.to_thread(self.refresh_now)

    def refresh_now(self) -> list[RankedProduct]:
        """Run one refresh synchronously in a fresh session."""
        db = self._session_factory()
        try:
            return refresh_rankings(db)
        finally:
            db.close()

    async def _run(self) -> None:
        interval = max(0.1, float(self.interval_seconds))

        while not self._stopping.is_set():
            try:
                await self.run_once()
            except StoreUnavailableError as e:
                logger.warning("RankingRefreshWorker could not refresh: %s", e)

            try:
                await asyncio.wait_for(self._stopping.wait(), timeout=interval)
            except TimeoutError:
                continue
