"""Vote direction type and the toggle rules shared by server and client."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from tallyrank.core.errors import InvalidDirectionError
from tallyrank.models.vote import VOTE_DOWN, VOTE_UP


class VoteDirection(str, Enum):
    UP = "up"
    DOWN = "down"

    @property
    def as_int(self) -> int:
        """Return the stored integer form (1 or -1)."""
        return VOTE_UP if self is VoteDirection.UP else VOTE_DOWN

    @classmethod
    def from_int(cls, value: int) -> VoteDirection:
        if value == VOTE_UP:
            return cls.UP
        if value == VOTE_DOWN:
            return cls.DOWN
        raise InvalidDirectionError(value)

    @property
    def opposite(self) -> VoteDirection:
        return VoteDirection.DOWN if self is VoteDirection.UP else VoteDirection.UP


def parse_direction(value: object) -> VoteDirection:
    """Parse ``"up"``/``"down"`` (or an existing ``VoteDirection``).

    Raises:
        InvalidDirectionError: for anything else, including ``None``.
    """
    if isinstance(value, VoteDirection):
        return value
    if isinstance(value, str):
        try:
            return VoteDirection(value.strip().lower())
        except ValueError:
            pass
    raise InvalidDirectionError(value)


def next_direction(
    current: VoteDirection | None,
    requested: VoteDirection,
) -> VoteDirection | None:
    """Return the caller's direction after casting ``requested``.

    Same direction toggles the vote off; anything else lands on ``requested``.
    """
    if current is requested:
        return None
    return requested


@dataclass(frozen=True)
class VoteView:
    """A product's tally as seen by one identity."""

    upvotes: int
    downvotes: int
    direction: VoteDirection | None = None

    @property
    def score(self) -> int:
        return self.upvotes - self.downvotes


def apply_toggle(view: VoteView, requested: VoteDirection) -> VoteView:
    """Predict the tally after ``requested`` is cast against ``view``.

    Counts never go below zero even when ``view`` is inconsistent.
    """
    upvotes, downvotes = view.upvotes, view.downvotes
    if view.direction is VoteDirection.UP:
        upvotes -= 1
    elif view.direction is VoteDirection.DOWN:
        downvotes -= 1

    result = next_direction(view.direction, requested)
    if result is VoteDirection.UP:
        upvotes += 1
    elif result is VoteDirection.DOWN:
        downvotes += 1

    return VoteView(max(0, upvotes), max(0, downvotes), result)
