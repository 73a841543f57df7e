"""Transactional vote mutations and the per-product vote aggregate.

Every mutation runs as one unit of work: the product row is locked, the
caller's vote row is inserted, switched or deleted, and the product's
``upvotes``/``downvotes`` are recounted from the live rows before commit.
The aggregate is never adjusted by deltas, so it cannot drift from the rows.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from datetime import datetime
from threading import Lock
from weakref import WeakValueDictionary

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from tallyrank.core.errors import ProductNotFoundError, StoreUnavailableError
from tallyrank.db.time import utcnow
from tallyrank.models import VOTE_DOWN, VOTE_UP, Product, ProductVote
from tallyrank.services.identity import Identity
from tallyrank.services.toggle import VoteDirection, VoteView, next_direction, parse_direction

logger = logging.getLogger(__name__)

# A racing insert of the same (product, voter) pair is retried once.
_MAX_ATTEMPTS = 2


@dataclass(frozen=True)
class VoteOutcome:
    """Aggregate of a product plus the caller's resulting direction."""

    product_id: int
    upvotes: int
    downvotes: int
    direction: VoteDirection | None

    @property
    def score(self) -> int:
        return self.upvotes - self.downvotes

    @property
    def view(self) -> VoteView:
        return VoteView(self.upvotes, self.downvotes, self.direction)


# Entries vanish once no caller holds the lock, so the registry stays small.
_PRODUCT_LOCKS: WeakValueDictionary[int, Lock] = WeakValueDictionary()
_PRODUCT_LOCKS_GUARD = Lock()


def _product_lock(product_id: int) -> Lock:
    """Return the process-wide lock serializing mutations of one product."""
    with _PRODUCT_LOCKS_GUARD:
        lock = _PRODUCT_LOCKS.get(product_id)
        if lock is None:
            lock = Lock()
            _PRODUCT_LOCKS[product_id] = lock
        return lock


class VoteStore:
    """Durable one-vote-per-(identity, product) table and its aggregate."""

    def __init__(self, db: Session, clock: Callable[[], datetime] = utcnow) -> None:
        self.db = db
        self._clock = clock

    def cast_vote(
        self,
        identity: Identity,
        product_id: int,
        direction: VoteDirection | str,
    ) -> VoteOutcome:
        """Apply a toggle-aware vote and return the post-mutation state.

        Raises:
            InvalidDirectionError: If ``direction`` is not up or down.
            ProductNotFoundError: If the product does not exist.
            StoreUnavailableError: If the transaction could not be committed.
                Nothing is applied in that case.
        """
        requested = parse_direction(direction)

        for attempt in range(1, _MAX_ATTEMPTS + 1):
            with _product_lock(product_id):
                try:
                    outcome = self._apply(identity, product_id, requested)
                    self.db.commit()
                except ProductNotFoundError:
                    self.db.rollback()
                    raise
                except IntegrityError as err:
                    self.db.rollback()
                    if attempt < _MAX_ATTEMPTS:
                        logger.info(
                            "Concurrent vote on product %s by %s; retrying",
                            product_id,
                            identity.key,
                        )
                        continue
                    raise StoreUnavailableError("Vote could not be recorded") from err
                except SQLAlchemyError as err:
                    self.db.rollback()
                    logger.error("Vote transaction failed for product %s: %s", product_id, err)
                    raise StoreUnavailableError("Vote could not be recorded") from err

            logger.debug(
                "Vote %s on product %s by %s -> %s (%d/%d)",
                requested.value,
                product_id,
                identity.key,
                outcome.direction.value if outcome.direction else None,
                outcome.upvotes,
                outcome.downvotes,
            )
            return outcome

        raise StoreUnavailableError("Vote could not be recorded")  # pragma: no cover

    def _apply(
        self,
        identity: Identity,
        product_id: int,
        requested: VoteDirection,
    ) -> VoteOutcome:
        product = (
            self.db.query(Product)
            .filter(Product.id == product_id)
            .with_for_update()
            .first()
        )
        if product is None:
            raise ProductNotFoundError(product_id)

        existing = self._get_vote(identity, product_id, for_update=True)
        current = VoteDirection.from_int(existing.direction) if existing else None
        result = next_direction(current, requested)
        now = self._clock()

        if existing is None:
            self.db.add(
                ProductVote(
                    product_id=product_id,
                    voter_key=identity.key,
                    direction=requested.as_int,
                    created_at=now,
                    updated_at=now,
                )
            )
        elif result is None:
            self.db.delete(existing)
        else:
            existing.direction = requested.as_int
            existing.updated_at = now

        self.db.flush()

        upvotes, downvotes = self._count_votes(product_id)
        product.upvotes = upvotes
        product.downvotes = downvotes
        product.last_vote_at = now
        self.db.flush()

        return VoteOutcome(product_id, upvotes, downvotes, result)

    def get_status(self, identity: Identity, product_id: int) -> VoteOutcome:
        """Return the product aggregate and the caller's current direction."""
        try:
            product = self.db.query(Product).filter(Product.id == product_id).first()
            if product is None:
                raise ProductNotFoundError(product_id)
            vote = self._get_vote(identity, product_id)
        except SQLAlchemyError as err:
            logger.error("Vote status lookup failed for product %s: %s", product_id, err)
            raise StoreUnavailableError("Vote status is unavailable") from err

        direction = VoteDirection.from_int(vote.direction) if vote else None
        return VoteOutcome(product_id, product.upvotes, product.downvotes, direction)

    def list_votes(self, identity: Identity, limit: int = 50) -> list[ProductVote]:
        """Return the identity's live votes, most recently changed first."""
        try:
            return (
                self.db.query(ProductVote)
                .filter(ProductVote.voter_key == identity.key)
                .order_by(ProductVote.updated_at.desc(), ProductVote.product_id.asc())
                .limit(limit)
                .all()
            )
        except SQLAlchemyError as err:
            logger.error("Vote history lookup failed for %s: %s", identity.key, err)
            raise StoreUnavailableError("Vote history is unavailable") from err

    def reconcile_aggregates(self, product_ids: Iterable[int] | None = None) -> list[int]:
        """Recount stored aggregates from live vote rows.

        Returns:
            Identifiers of products whose stored counts had drifted and were
            corrected.
        """
        query = self.db.query(Product)
        if product_ids is not None:
            query = query.filter(Product.id.in_(list(product_ids)))

        repaired: list[int] = []
        try:
            for product in query.order_by(Product.id).all():
                with _product_lock(product.id):
                    upvotes, downvotes = self._count_votes(product.id)
                    if (product.upvotes, product.downvotes) != (upvotes, downvotes):
                        logger.warning(
                            "Product %s aggregate drifted: stored %d/%d, actual %d/%d",
                            product.id,
                            product.upvotes,
                            product.downvotes,
                            upvotes,
                            downvotes,
                        )
                        product.upvotes = upvotes
                        product.downvotes = downvotes
                        repaired.append(product.id)
            self.db.commit()
        except SQLAlchemyError as err:
            self.db.rollback()
            raise StoreUnavailableError("Vote aggregates could not be reconciled") from err
        return repaired

    def _get_vote(
        self,
        identity: Identity,
        product_id: int,
        *,
        for_update: bool = False,
    ) -> ProductVote | None:
        query = self.db.query(ProductVote).filter(
            ProductVote.product_id == product_id,
            ProductVote.voter_key == identity.key,
        )
        if for_update:
            query = query.with_for_update()
        return query.first()

    def _count_votes(self, product_id: int) -> tuple[int, int]:
        rows = (
            self.db.query(ProductVote.direction, func.count())
            .filter(ProductVote.product_id == product_id)
            .group_by(ProductVote.direction)
            .all()
        )
        counts = {direction: int(total) for direction, total in rows}
        return counts.get(VOTE_UP, 0), counts.get(VOTE_DOWN, 0)
