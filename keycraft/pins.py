#!/usr/bin/env python3
"""
Resolve which layout slots the optimiser must leave alone.

A pin grid mirrors the layout shape (rows of 12/12/12/6 markers) where
'x', 'X' or '*' pins a slot and '.', '_' or '-' leaves it free. Characters
can also be pinned by name, or the other way round: name the characters to
free and pin everything else. Empty slots and whitespace are always pinned.
"""

from typing import FrozenSet, Iterable, List, Optional, Sequence, Set

from keycraft.layout import EMPTY, NUM_KEYS, ROW_LENGTHS, SplitLayout

PINNED_MARKS = frozenset("xX*")
FREE_MARKS = frozenset("._-")


def parse_pin_rows(rows: Sequence[str]) -> Set[int]:
    """
    Parse a pin grid into the set of pinned slot indices.

    Raises:
        ValueError: On a wrong row count, wrong row length or unknown marker
    """
    if len(rows) != len(ROW_LENGTHS):
        raise ValueError(f"Pin grid needs {len(ROW_LENGTHS)} rows, got {len(rows)}")

    pinned = set()
    index = 0
    for row_num, (row, expected) in enumerate(zip(rows, ROW_LENGTHS)):
        marks = row.split()
        if len(marks) != expected:
            raise ValueError(f"Pin grid row {row_num} has {len(marks)} marks, expected {expected}")
        for mark in marks:
            if mark in PINNED_MARKS:
                pinned.add(index)
            elif mark not in FREE_MARKS:
                raise ValueError(f"Invalid pin marker '{mark}' in row {row_num}")
            index += 1
    return pinned


def placeholder_slots(layout: SplitLayout) -> Set[int]:
    """Slots holding nothing or whitespace."""
    return {i for i, r in enumerate(layout.runes) if r == EMPTY or r.isspace()}


def _indices_of(layout: SplitLayout, chars: Iterable[str], action: str) -> List[int]:
    indices = []
    for char in chars:
        index = layout.index_of(char)
        if index is None:
            raise ValueError(f"Cannot {action} character {char!r}: not on layout '{layout.name}'")
        indices.append(index)
    return indices


def resolve_pins(layout: SplitLayout, pin_rows: Optional[Sequence[str]] = None,
                 pins: str = "", free: str = "") -> FrozenSet[int]:
    """
    Build the pin mask for a layout.

    Args:
        layout: Layout the mask applies to
        pin_rows: Optional pin grid (4 rows of markers)
        pins: Characters to pin in addition to the grid
        free: Characters to leave free; everything else is pinned

    Returns:
        Frozen set of pinned slot indices

    Raises:
        ValueError: If free is combined with pin_rows or pins, or a character
            is not on the layout
    """
    if free and (pin_rows or pins):
        raise ValueError("Cannot combine free characters with pinned characters or a pin grid")

    pinned = placeholder_slots(layout)

    if free:
        free_slots = set(_indices_of(layout, free, "free"))
        pinned.update(i for i in range(NUM_KEYS) if i not in free_slots)
        return frozenset(pinned)

    if pin_rows:
        pinned.update(parse_pin_rows(pin_rows))
    if pins:
        pinned.update(_indices_of(layout, pins, "pin"))
    return frozenset(pinned)


def free_slots(pinned: Iterable[int]) -> List[int]:
    """Slot indices not in the pin mask, in ascending order."""
    pinned = set(pinned)
    return [i for i in range(NUM_KEYS) if i not in pinned]
