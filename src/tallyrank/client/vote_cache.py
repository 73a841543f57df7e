"""Client-held vote state with optimistic updates.

Each product entry moves through a small state machine::

    IDLE -> PREDICTED -> CONFIRMED
                      -> ROLLED_BACK

A cast applies the locally predicted tally at once, then reconciles with the
server. Only the response to the most recently issued request for a product
may change what is displayed; earlier responses are folded into the last
confirmed view (used as the rollback target) or dropped if older still. A
failed latest request always restores the last confirmed view, so a
prediction is never left on screen unconfirmed; an earlier request that
succeeds after such a rollback is shown, being the newest server state.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from typing import Protocol

from tallyrank.services.toggle import VoteDirection, VoteView, apply_toggle, parse_direction

logger = logging.getLogger(__name__)


class SyncState(str, Enum):
    IDLE = "idle"
    PREDICTED = "predicted"
    CONFIRMED = "confirmed"
    ROLLED_BACK = "rolled_back"


class VoteTransport(Protocol):
    async def get_status(self, product_id: int) -> VoteView: ...

    async def cast_vote(self, product_id: int, direction: VoteDirection) -> VoteView: ...


Listener = Callable[[int, VoteView, SyncState], None]


@dataclass
class CacheEntry:
    """Displayed and last server-confirmed view of one product."""

    view: VoteView
    confirmed: VoteView
    state: SyncState = SyncState.IDLE
    issued_seq: int = 0
    confirmed_seq: int = 0
    error: BaseException | None = None

    @property
    def in_flight(self) -> bool:
        return self.state is SyncState.PREDICTED


class ClientVoteCache:
    """Per-product vote views for one identity."""

    def __init__(self, transport: VoteTransport) -> None:
        self._transport = transport
        self._entries: dict[int, CacheEntry] = {}
        self._listeners: list[Listener] = []

    def get(self, product_id: int) -> VoteView | None:
        entry = self._entries.get(product_id)
        return entry.view if entry else None

    def state(self, product_id: int) -> SyncState:
        entry = self._entries.get(product_id)
        return entry.state if entry else SyncState.IDLE

    def entry(self, product_id: int) -> CacheEntry | None:
        return self._entries.get(product_id)

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register ``listener`` for view changes; returns an unsubscribe callable."""
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def seed(self, product_id: int, view: VoteView) -> None:
        """Store a server-provided view, e.g. from a listing response.

        Ignored while a cast is in flight for the product.
        """
        entry = self._entries.get(product_id)
        if entry is None:
            entry = CacheEntry(view=view, confirmed=view)
            self._entries[product_id] = entry
        elif entry.in_flight:
            return
        else:
            entry.view = view
            entry.confirmed = view
            entry.state = SyncState.IDLE
        self._notify(product_id, entry)

    async def load(self, product_id: int) -> VoteView:
        """Fetch the authoritative view from the server and seed it."""
        view = await self._transport.get_status(product_id)
        self.seed(product_id, view)
        return self._entries[product_id].view

    async def cast(self, product_id: int, direction: VoteDirection | str) -> VoteView:
        """Cast a vote optimistically and reconcile with the server.

        Returns:
            The view displayed once this request settles.

        Raises:
            Whatever the transport raised, after the entry has been rolled
            back, so the caller can notify the user.
        """
        requested = parse_direction(direction)
        entry = self._entries.get(product_id)
        if entry is None:
            empty = VoteView(0, 0, None)
            entry = CacheEntry(view=empty, confirmed=empty)
            self._entries[product_id] = entry

        entry.issued_seq += 1
        seq = entry.issued_seq
        entry.view = apply_toggle(entry.view, requested)
        entry.state = SyncState.PREDICTED
        entry.error = None
        self._notify(product_id, entry)

        try:
            server_view = await self._transport.cast_vote(product_id, requested)
        except (Exception, asyncio.CancelledError) as exc:
            self._on_failure(product_id, entry, seq, exc)
            raise

        self._on_success(product_id, entry, seq, server_view)
        return entry.view

    def _on_success(
        self,
        product_id: int,
        entry: CacheEntry,
        seq: int,
        server_view: VoteView,
    ) -> None:
        if seq > entry.confirmed_seq:
            entry.confirmed = server_view
            entry.confirmed_seq = seq

        if entry.state is SyncState.ROLLED_BACK and seq == entry.confirmed_seq:
            # The latest request already failed; this is the newest server state.
            entry.view = server_view
            entry.state = SyncState.CONFIRMED
            self._notify(product_id, entry)
            return

        if seq != entry.issued_seq:
            logger.debug(
                "Discarding stale vote response for product %s (seq %d < %d)",
                product_id,
                seq,
                entry.issued_seq,
            )
            return

        entry.view = server_view
        entry.state = SyncState.CONFIRMED
        self._notify(product_id, entry)

    def _on_failure(
        self,
        product_id: int,
        entry: CacheEntry,
        seq: int,
        exc: BaseException,
    ) -> None:
        if seq != entry.issued_seq:
            logger.debug(
                "Ignoring failure of superseded vote request for product %s: %s",
                product_id,
                exc,
            )
            return

        logger.info("Vote on product %s failed, rolling back: %s", product_id, exc)
        entry.view = entry.confirmed
        entry.state = SyncState.ROLLED_BACK
        entry.error = exc
        self._notify(product_id, entry)

    def _notify(self, product_id: int, entry: CacheEntry) -> None:
        for listener in list(self._listeners):
            listener(product_id, entry.view, entry.state)
