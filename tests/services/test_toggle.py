"""Tests for the toggle rules shared by the server and the client cache."""

import pytest

from tallyrank.core.errors import InvalidDirectionError
from tallyrank.services.toggle import (
    VoteDirection,
    VoteView,
    apply_toggle,
    next_direction,
    parse_direction,
)

UP = VoteDirection.UP
DOWN = VoteDirection.DOWN


@pytest.mark.parametrize(
    ("current", "requested", "expected"),
    [
        (None, UP, UP),
        (None, DOWN, DOWN),
        (UP, UP, None),
        (DOWN, DOWN, None),
        (UP, DOWN, DOWN),
        (DOWN, UP, UP),
    ],
)
def test_next_direction(current, requested, expected) -> None:
    assert next_direction(current, requested) is expected


def test_apply_toggle_first_vote() -> None:
    assert apply_toggle(VoteView(10, 5), UP) == VoteView(11, 5, UP)


def test_apply_toggle_same_direction_is_idempotent_pair() -> None:
    start = VoteView(10, 5)
    once = apply_toggle(start, UP)
    twice = apply_toggle(once, UP)
    assert twice == start


def test_apply_toggle_switch_moves_one_vote() -> None:
    view = apply_toggle(VoteView(11, 5, UP), DOWN)
    assert view == VoteView(10, 6, DOWN)
    assert view.score == 4


def test_apply_toggle_never_negative() -> None:
    # Inconsistent view: direction says up but no upvotes are counted.
    view = apply_toggle(VoteView(0, 0, UP), UP)
    assert view == VoteView(0, 0, None)


@pytest.mark.parametrize("raw", ["up", "UP", " down ", VoteDirection.DOWN])
def test_parse_direction_accepts(raw) -> None:
    assert isinstance(parse_direction(raw), VoteDirection)


@pytest.mark.parametrize("raw", [None, "", "sideways", 1, -1])
def test_parse_direction_rejects(raw) -> None:
    with pytest.raises(InvalidDirectionError):
        parse_direction(raw)


def test_direction_int_mapping() -> None:
    assert UP.as_int == 1
    assert DOWN.as_int == -1
    assert VoteDirection.from_int(-1) is DOWN
    assert UP.opposite is DOWN
    with pytest.raises(InvalidDirectionError):
        VoteDirection.from_int(0)
