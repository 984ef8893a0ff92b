#!/usr/bin/env python3
"""
Split keyboard layout model and physical geometry.

A layout is a fixed array of 42 character slots: three rows of twelve keys
(six per hand) followed by six thumb keys (three per hand). Every slot has
static metadata (hand, finger, row, column) taken from one table, and every
layout type supplies its own coordinate offsets for distance calculations.

Slot indices:

     0  1  2  3  4  5 |  6  7  8  9 10 11
    12 13 14 15 16 17 | 18 19 20 21 22 23
    24 25 26 27 28 29 | 30 31 32 33 34 35
             36 37 38 | 39 40 41
"""

import math
import random
from dataclasses import dataclass
from enum import IntEnum
from functools import lru_cache
from typing import Callable, Dict, FrozenSet, Iterable, List, Optional, Sequence, Tuple

NUM_KEYS = 42
NUM_MAIN_KEYS = 36
ROW_LENGTHS = (12, 12, 12, 6)

EMPTY = "\0"

LEFT = 0
RIGHT = 1

# Fingers, numbered from the left pinky to the right pinky
LP, LR, LM, LI, LT, RT, RI, RM, RR, RP = range(10)
FINGER_NAMES = ("LP", "LR", "LM", "LI", "LT", "RT", "RI", "RM", "RR", "RP")

# Finger kinds, independent of hand
PINKY, RING, MIDDLE, INDEX, THUMB = range(5)


class LayoutType(IntEnum):
    """Physical keyboard geometry variants."""
    ROWSTAG = 0
    ANGLEMOD = 1
    ORTHO = 2
    COLSTAG = 3

    @classmethod
    def parse(cls, value: str) -> "LayoutType":
        """
        Parse a layout type name (case-insensitive).

        Raises:
            ValueError: If the name is not a known layout type
        """
        if isinstance(value, LayoutType):
            return value
        if isinstance(value, int):
            return cls(value)
        try:
            return cls[str(value).strip().upper()]
        except KeyError:
            valid = ", ".join(t.name.lower() for t in cls)
            raise ValueError(f"Unknown layout type '{value}'. Valid types: {valid}")


# Finger per slot. Rows 0-2 share the same columns; the last line is thumbs.
_FINGERS = (
    LP, LP, LR, LM, LI, LI,   RI, RI, RM, RR, RP, RP,
    LP, LP, LR, LM, LI, LI,   RI, RI, RM, RR, RP, RP,
    LP, LP, LR, LM, LI, LI,   RI, RI, RM, RR, RP, RP,
    LT, LT, LT,   RT, RT, RT,
)

# Angle mod shifts the bottom-left row one finger outward
_FINGERS_ANGLEMOD = (
    LP, LP, LR, LM, LI, LI,   RI, RI, RM, RR, RP, RP,
    LP, LP, LR, LM, LI, LI,   RI, RI, RM, RR, RP, RP,
    LP, LR, LM, LI, LI, LI,   RI, RI, RM, RR, RP, RP,
    LT, LT, LT,   RT, RT, RT,
)

ROW_STAG_OFFSETS = (0.0, 0.25, 0.75, 0.0)
COL_STAG_OFFSETS = (0.35, 0.35, 0.1, 0.0, 0.1, 0.2, 0.2, 0.1, 0.0, 0.1, 0.35, 0.35)

# Per-key (dx, dy) corrections on top of the per-type offsets
_ANGLEMOD_KEY_OFFSETS = {29: (-1.0, 0.0)}

# (finger kind A, finger kind B, minimum column distance)
LSB_FINGER_PAIRS = (
    (MIDDLE, INDEX, 2.0),
    (PINKY, RING, 2.0),
    (RING, INDEX, 3.5),
)
LSB_EXTRA_DISTANCE = 1.75

# (finger kind on the lower row, finger kind on the upper row)
FULL_SCISSOR_PAIRS = (
    (MIDDLE, PINKY), (MIDDLE, RING), (MIDDLE, INDEX),
    (RING, PINKY), (RING, INDEX), (PINKY, RING), (RING, MIDDLE),
)
HALF_SCISSOR_PAIRS = FULL_SCISSOR_PAIRS[:5]


@dataclass(frozen=True)
class KeyInfo:
    """Static metadata for one slot of a layout."""
    index: int
    hand: int
    finger: int
    row: int
    column: int
    x: float
    y: float

    @property
    def is_thumb(self) -> bool:
        return self.row == 3

    @property
    def finger_kind(self) -> int:
        return finger_kind(self.finger)


@dataclass(frozen=True)
class KeyPairDistance:
    """Physical distance between two slots on the same hand."""
    row_dist: float
    col_dist: float
    finger_dist: int
    distance: float


def finger_kind(finger: int) -> int:
    """Map a finger number (0-9) to PINKY..THUMB."""
    return finger if finger < 5 else 9 - finger


def hand_of_finger(finger: int) -> int:
    return LEFT if finger <= LT else RIGHT


def index_row_col(index: int) -> Tuple[int, int]:
    """Row and column of a slot index. Thumb columns run 0-5."""
    if not 0 <= index < NUM_KEYS:
        raise IndexError(f"Slot index out of range: {index}")
    if index < NUM_MAIN_KEYS:
        return index // 12, index % 12
    return 3, index - NUM_MAIN_KEYS


def mirror_index(index: int) -> int:
    """Slot index mirrored across hands."""
    row, col = index_row_col(index)
    if row < 3:
        return row * 12 + (11 - col)
    return NUM_MAIN_KEYS + (5 - col)


def _rowstag_coords(row: int, col: int) -> Tuple[float, float]:
    return col + ROW_STAG_OFFSETS[row], float(row)


def _ortho_coords(row: int, col: int) -> Tuple[float, float]:
    return float(col), float(row)


def _colstag_coords(row: int, col: int) -> Tuple[float, float]:
    if row == 3:
        return float(col), float(row)
    return float(col), row + COL_STAG_OFFSETS[col]


_COORDINATES: Dict[LayoutType, Callable[[int, int], Tuple[float, float]]] = {
    LayoutType.ROWSTAG: _rowstag_coords,
    LayoutType.ANGLEMOD: _rowstag_coords,
    LayoutType.ORTHO: _ortho_coords,
    LayoutType.COLSTAG: _colstag_coords,
}

_FINGER_TABLES = {
    LayoutType.ROWSTAG: _FINGERS,
    LayoutType.ANGLEMOD: _FINGERS_ANGLEMOD,
    LayoutType.ORTHO: _FINGERS,
    LayoutType.COLSTAG: _FINGERS,
}

_KEY_OFFSETS = {
    LayoutType.ANGLEMOD: _ANGLEMOD_KEY_OFFSETS,
}

_LSB_EXTRA_PAIRS = {
    LayoutType.ROWSTAG: ((1, 26), (2, 27), (3, 28)),
    LayoutType.ANGLEMOD: ((3, 28),),
}


class Geometry:
    """
    Precomputed geometry for one layout type.

    Holds the per-slot key table, the distance between every same-hand pair
    of slots, and the slot pairs forming lateral stretches and scissors.
    """

    def __init__(self, layout_type: LayoutType):
        self.layout_type = layout_type
        self.keys: Tuple[KeyInfo, ...] = self._build_keys(layout_type)
        self.distances: Dict[Tuple[int, int], KeyPairDistance] = {}
        for a in self.keys:
            for b in self.keys:
                d = self._measure(a, b)
                if d is not None:
                    self.distances[(a.index, b.index)] = d

        self.lsb_pairs: FrozenSet[Tuple[int, int]] = self._build_lsb_pairs()
        self.full_scissor_pairs = self._build_scissor_pairs(2, FULL_SCISSOR_PAIRS)
        self.half_scissor_pairs = self._build_scissor_pairs(1, HALF_SCISSOR_PAIRS)

    @staticmethod
    def _build_keys(layout_type: LayoutType) -> Tuple[KeyInfo, ...]:
        fingers = _FINGER_TABLES[layout_type]
        coords = _COORDINATES[layout_type]
        extra = _KEY_OFFSETS.get(layout_type, {})
        keys = []
        for index in range(NUM_KEYS):
            row, col = index_row_col(index)
            x, y = coords(row, col)
            dx, dy = extra.get(index, (0.0, 0.0))
            finger = fingers[index]
            keys.append(KeyInfo(index, hand_of_finger(finger), finger, row, col, x + dx, y + dy))
        return tuple(keys)

    @staticmethod
    def _measure(a: KeyInfo, b: KeyInfo) -> Optional[KeyPairDistance]:
        if a.hand != b.hand or a.is_thumb != b.is_thumb:
            return None
        dx = abs(a.x - b.x)
        dy = abs(a.y - b.y)
        return KeyPairDistance(
            row_dist=dy,
            col_dist=dx,
            finger_dist=abs(a.finger - b.finger),
            distance=math.sqrt(dx * dx + dy * dy),
        )

    def distance(self, i: int, j: int) -> Optional[KeyPairDistance]:
        return self.distances.get((i, j))

    def _same_hand_main_pairs(self) -> Iterable[Tuple[KeyInfo, KeyInfo]]:
        for a in self.keys[:NUM_MAIN_KEYS]:
            for b in self.keys[:NUM_MAIN_KEYS]:
                if a.index != b.index and a.hand == b.hand:
                    yield a, b

    def _build_lsb_pairs(self) -> FrozenSet[Tuple[int, int]]:
        thresholds = {}
        for kind_a, kind_b, min_dist in LSB_FINGER_PAIRS:
            thresholds[(kind_a, kind_b)] = min_dist
            thresholds[(kind_b, kind_a)] = min_dist

        pairs = set()
        for a, b in self._same_hand_main_pairs():
            min_dist = thresholds.get((a.finger_kind, b.finger_kind))
            if min_dist is not None and self.distances[(a.index, b.index)].col_dist >= min_dist:
                pairs.add((a.index, b.index))

        # stagger pairs only stretch in the listed direction
        pairs.update(_LSB_EXTRA_PAIRS.get(self.layout_type, ()))
        return frozenset(pairs)

    def _build_scissor_pairs(self, row_gap: int,
                             finger_pairs: Sequence[Tuple[int, int]]) -> FrozenSet[Tuple[int, int]]:
        allowed = set(finger_pairs)
        pairs = set()
        for lower, upper in self._same_hand_main_pairs():
            if lower.row - upper.row != row_gap:
                continue
            if (lower.finger_kind, upper.finger_kind) in allowed:
                pairs.add((lower.index, upper.index))
                pairs.add((upper.index, lower.index))
        return frozenset(pairs)


@lru_cache(maxsize=None)
def geometry_for(layout_type: LayoutType) -> Geometry:
    """Shared, read-only geometry for a layout type."""
    return Geometry(LayoutType(layout_type))


_TOKEN_TO_CHAR = {"~": EMPTY, "_": " ", "~~": "~", "__": "_", "##": "#"}
_CHAR_TO_TOKEN = {v: k for k, v in _TOKEN_TO_CHAR.items()}


def parse_token(token: str) -> str:
    """Decode a single layout row token into a slot character."""
    if token in _TOKEN_TO_CHAR:
        return _TOKEN_TO_CHAR[token]
    if len(token) != 1:
        raise ValueError(f"Invalid layout token '{token}'")
    return token


def format_token(char: str) -> str:
    return _CHAR_TO_TOKEN.get(char, char)


class SplitLayout:
    """
    A 42-slot split keyboard layout.

    The runes list is owned by the layout and mutated in place by swap() and
    flip_horizontal(). Use clone() to take an independent snapshot.
    """

    def __init__(self, name: str, runes: Sequence[str],
                 layout_type: LayoutType = LayoutType.ROWSTAG):
        """
        Args:
            name: Layout name
            runes: 42 characters; EMPTY marks an unused slot
            layout_type: Physical geometry of the keyboard

        Raises:
            ValueError: If the slot count is wrong or a character repeats
        """
        runes = list(runes)
        if len(runes) != NUM_KEYS:
            raise ValueError(f"Layout '{name}' has {len(runes)} keys, expected {NUM_KEYS}")
        for r in runes:
            if not isinstance(r, str) or len(r) != 1:
                raise ValueError(f"Layout '{name}' has an invalid key {r!r}")

        self.name = name
        self.layout_type = LayoutType.parse(layout_type)
        self.runes: List[str] = runes
        self._positions: Dict[str, int] = {}
        for index, r in enumerate(runes):
            if r == EMPTY:
                continue
            if r in self._positions:
                raise ValueError(f"Layout '{name}' has duplicate character {r!r}")
            self._positions[r] = index

    @classmethod
    def from_rows(cls, name: str, layout_type, rows: Sequence[str]) -> "SplitLayout":
        """
        Build a layout from four whitespace-separated rows of 12/12/12/6 tokens.

        '~' is an empty slot and '_' a space; '~~', '__' and '##' stand for
        the literal characters.
        """
        if len(rows) != len(ROW_LENGTHS):
            raise ValueError(f"Layout '{name}' needs {len(ROW_LENGTHS)} rows, got {len(rows)}")
        runes = []
        for row_num, (row, expected) in enumerate(zip(rows, ROW_LENGTHS)):
            tokens = row.split()
            if len(tokens) != expected:
                raise ValueError(
                    f"Layout '{name}' row {row_num} has {len(tokens)} keys, expected {expected}"
                )
            runes.extend(parse_token(t) for t in tokens)
        return cls(name, runes, LayoutType.parse(layout_type))

    def to_rows(self) -> List[str]:
        rows = []
        start = 0
        for length in ROW_LENGTHS:
            tokens = [format_token(r) for r in self.runes[start:start + length]]
            rows.append(" ".join(tokens))
            start += length
        return rows

    @property
    def geometry(self) -> Geometry:
        return geometry_for(self.layout_type)

    def index_of(self, char: str) -> Optional[int]:
        return self._positions.get(char)

    def key_info(self, char: str) -> Optional[KeyInfo]:
        """Slot metadata for a character, or None if it is not on the layout."""
        index = self._positions.get(char)
        if index is None:
            return None
        return self.geometry.keys[index]

    def distance(self, i: int, j: int) -> Optional[KeyPairDistance]:
        """Distance between two slots, or None across hands or thumb clusters."""
        return self.geometry.distance(i, j)

    def swap(self, i: int, j: int) -> None:
        """Exchange two slots. Pin masks are the caller's concern."""
        a, b = self.runes[i], self.runes[j]
        self.runes[i], self.runes[j] = b, a
        if a != EMPTY:
            self._positions[a] = j
        if b != EMPTY:
            self._positions[b] = i

    def flip_horizontal(self) -> None:
        """Mirror the layout left to right."""
        self.runes = [self.runes[mirror_index(i)] for i in range(NUM_KEYS)]
        self._positions = {r: i for i, r in enumerate(self.runes) if r != EMPTY}

    def clone(self, name: Optional[str] = None) -> "SplitLayout":
        return SplitLayout(name or self.name, self.runes, self.layout_type)

    def characters(self) -> List[str]:
        return [r for r in self.runes if r != EMPTY]

    def check_permutation(self, reference: Sequence[str]) -> None:
        """
        Verify the layout still holds exactly the reference characters.

        Raises:
            RuntimeError: If a character was duplicated or dropped
        """
        if sorted(self.runes) != sorted(reference):
            missing = sorted(set(reference) - set(self.runes))
            extra = sorted(set(self.runes) - set(reference))
            raise RuntimeError(
                f"Layout '{self.name}' is no longer a permutation of its characters "
                f"(missing={missing!r}, extra={extra!r})"
            )
        if len(self._positions) != len(self.characters()):
            raise RuntimeError(f"Layout '{self.name}' has duplicate characters")

    def __eq__(self, other) -> bool:
        if not isinstance(other, SplitLayout):
            return NotImplemented
        return self.runes == other.runes and self.layout_type == other.layout_type

    def __repr__(self) -> str:
        return f"SplitLayout({self.name!r}, {self.layout_type.name})"

    def __str__(self) -> str:
        lines = [f"{self.name} ({self.layout_type.name.lower()})"]
        for row_num, row in enumerate(self.to_rows()):
            tokens = row.split(" ")
            if row_num < 3:
                lines.append(" ".join(tokens[:6]) + "   " + " ".join(tokens[6:]))
            else:
                lines.append("      " + " ".join(tokens[:3]) + "   " + " ".join(tokens[3:]))
        return "\n".join(lines)


def random_layout(layout: SplitLayout, pinned: Iterable[int], rng: random.Random,
                  name: Optional[str] = None) -> SplitLayout:
    """
    Shuffle the unpinned slots of a layout into a new layout.

    Args:
        layout: Source layout (left unchanged)
        pinned: Slot indices that keep their characters
        rng: Random source
        name: Name of the new layout

    Returns:
        New layout with the free slots permuted
    """
    pinned = set(pinned)
    free = [i for i in range(NUM_KEYS) if i not in pinned]
    chars = [layout.runes[i] for i in free]
    rng.shuffle(chars)
    runes = list(layout.runes)
    for index, char in zip(free, chars):
        runes[index] = char
    return SplitLayout(name or f"{layout.name}-random", runes, layout.layout_type)
