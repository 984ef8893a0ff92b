"""Tests for pin grids and pin masks."""

import pytest

from keycraft.pins import free_slots, parse_pin_rows, placeholder_slots, resolve_pins

PLACEHOLDERS = {0, 11, 12, 24, 35, 36, 37, 38, 39, 40, 41}

GRID = [
    ". . . . . . . . . . . .",
    ". . . . . . . . . . . x",
    ". . . . . . . . X * x .",
    "- - - _ _ _",
]


def test_parse_pin_rows():
    assert parse_pin_rows(GRID) == {23, 32, 33, 34}


@pytest.mark.parametrize("rows", [
    GRID[:3],
    [". ."] + GRID[1:],
    [". . . . . . . . . . . o"] + GRID[1:],
])
def test_parse_pin_rows_invalid(rows):
    with pytest.raises(ValueError):
        parse_pin_rows(rows)


def test_placeholders(qwerty):
    # empty slots and the space bar
    assert placeholder_slots(qwerty) == PLACEHOLDERS


def test_placeholders_always_pinned(qwerty):
    assert resolve_pins(qwerty) == frozenset(PLACEHOLDERS)


def test_pin_characters_and_grid(qwerty):
    pinned = resolve_pins(qwerty, pin_rows=GRID, pins="aq")
    assert pinned == frozenset(PLACEHOLDERS | {23, 32, 33, 34, 13, 1})


def test_free_characters(qwerty):
    pinned = resolve_pins(qwerty, free="asdf")
    assert free_slots(pinned) == [13, 14, 15, 16]


def test_free_and_pins_conflict(qwerty):
    with pytest.raises(ValueError):
        resolve_pins(qwerty, pins="a", free="s")
    with pytest.raises(ValueError):
        resolve_pins(qwerty, pin_rows=GRID, free="s")


def test_unknown_character(qwerty):
    with pytest.raises(ValueError):
        resolve_pins(qwerty, pins="€")
    with pytest.raises(ValueError):
        resolve_pins(qwerty, free="€")
