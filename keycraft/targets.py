#!/usr/bin/env python3
"""
Target load distributions used by the deviation penalty metrics.

Hand, finger and row targets are scaled to sum to 100. Pinky penalties are
weights, used as given. Each setter accepts a comma-separated string or a
sequence of numbers.
"""

from dataclasses import dataclass, field
from typing import List, Sequence, Union

Values = Union[str, Sequence[float]]

DEFAULT_HAND_LOAD = [50.0, 50.0]
DEFAULT_FINGER_LOAD = [7.0, 10.0, 16.0, 17.0, 0.0, 0.0, 17.0, 16.0, 10.0, 7.0]
DEFAULT_ROW_LOAD = [17.5, 75.0, 7.5]
# Per hand: top-outer, top-inner, home-outer, home-inner, bottom-outer, bottom-inner
DEFAULT_PINKY_PENALTIES = [2.0, 1.5, 1.0, 0.0, 2.0, 1.5] * 2


def parse_values(values: Values, what: str) -> List[float]:
    """
    Parse numbers from a comma-separated string or a sequence.

    Raises:
        ValueError: If any value is not a number or is negative
    """
    if isinstance(values, str):
        parts = [p.strip() for p in values.split(",")]
        if parts == [""]:
            raise ValueError(f"No values given for {what}")
    else:
        parts = list(values)

    result = []
    for part in parts:
        try:
            value = float(part)
        except (TypeError, ValueError):
            raise ValueError(f"Invalid number {part!r} in {what}")
        if value < 0:
            raise ValueError(f"Negative value {value} in {what}")
        result.append(value)
    return result


def scale_to_100(values: List[float], what: str) -> List[float]:
    total = sum(values)
    if total < 1e-9:
        raise ValueError(f"Values for {what} sum to zero")
    return [v * 100.0 / total for v in values]


def parse_hand_load(values: Values) -> List[float]:
    loads = parse_values(values, "hand load")
    if len(loads) != 2:
        raise ValueError(f"Hand load needs 2 values, got {len(loads)}")
    return scale_to_100(loads, "hand load")


def parse_finger_load(values: Values) -> List[float]:
    """
    Parse a finger load for the eight non-thumb fingers.

    Four values (pinky, ring, middle, index) are mirrored to the right hand;
    eight values give F0-F3 and F6-F9. Thumbs are always 0.
    """
    loads = parse_values(values, "finger load")
    if len(loads) == 4:
        left = loads
        right = list(reversed(loads))
    elif len(loads) == 8:
        left = loads[:4]
        right = loads[4:]
    else:
        raise ValueError(f"Finger load needs 4 or 8 values, got {len(loads)}")
    return scale_to_100(left + [0.0, 0.0] + right, "finger load")


def parse_row_load(values: Values) -> List[float]:
    loads = parse_values(values, "row load")
    if len(loads) != 3:
        raise ValueError(f"Row load needs 3 values, got {len(loads)}")
    return scale_to_100(loads, "row load")


def parse_pinky_penalties(values: Values) -> List[float]:
    """Parse 6 pinky penalties (used for both hands) or 12 (left then right)."""
    penalties = parse_values(values, "pinky penalties")
    if len(penalties) == 6:
        return penalties * 2
    if len(penalties) == 12:
        return penalties
    raise ValueError(f"Pinky penalties need 6 or 12 values, got {len(penalties)}")


@dataclass
class TargetLoads:
    """Ideal hand, finger and row usage plus pinky off-home penalties."""

    hand_load: List[float] = field(default_factory=lambda: list(DEFAULT_HAND_LOAD))
    finger_load: List[float] = field(default_factory=lambda: list(DEFAULT_FINGER_LOAD))
    row_load: List[float] = field(default_factory=lambda: list(DEFAULT_ROW_LOAD))
    pinky_penalties: List[float] = field(default_factory=lambda: list(DEFAULT_PINKY_PENALTIES))

    @classmethod
    def default(cls) -> "TargetLoads":
        return cls()

    @classmethod
    def from_mapping(cls, settings: dict) -> "TargetLoads":
        """
        Build targets from a configuration mapping.

        Recognised keys are hand_load, finger_load, row_load and
        pinky_penalties; missing keys keep their defaults.
        """
        targets = cls()
        if settings.get("hand_load") is not None:
            targets.set_hand_load(settings["hand_load"])
        if settings.get("finger_load") is not None:
            targets.set_finger_load(settings["finger_load"])
        if settings.get("row_load") is not None:
            targets.set_row_load(settings["row_load"])
        if settings.get("pinky_penalties") is not None:
            targets.set_pinky_penalties(settings["pinky_penalties"])
        return targets

    def set_hand_load(self, values: Values) -> None:
        self.hand_load = parse_hand_load(values)

    def set_finger_load(self, values: Values) -> None:
        self.finger_load = parse_finger_load(values)

    def set_row_load(self, values: Values) -> None:
        self.row_load = parse_row_load(values)

    def set_pinky_penalties(self, values: Values) -> None:
        self.pinky_penalties = parse_pinky_penalties(values)
