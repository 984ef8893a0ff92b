#!/usr/bin/env python3
"""
Signed metric weights.

A positive weight rewards a higher metric value, a negative weight penalises
it. Metrics without a weight contribute nothing to a score.
"""

from pathlib import Path
from typing import Dict, Iterator, Mapping, Optional, Tuple, Union

from keycraft.analyser import METRICS_ALL

_VALID_METRICS = frozenset(METRICS_ALL)


class Weights:
    """Metric name to weight mapping with validated names."""

    def __init__(self, weights: Optional[Mapping[str, float]] = None):
        self._weights: Dict[str, float] = {}
        if weights:
            self.update(weights)

    @classmethod
    def parse(cls, text: str) -> "Weights":
        """
        Parse a comma-separated 'metric=weight' string.

        Example: "SFB=-1, LSB=-0.5, ALT=0.2"
        """
        weights = cls()
        weights.add_from_string(text)
        return weights

    @classmethod
    def from_mapping(cls, mapping: Mapping[str, float]) -> "Weights":
        return cls(mapping)

    @classmethod
    def from_file(cls, path: Union[str, Path]) -> "Weights":
        """
        Read weights from a text file, one or more 'metric=weight' pairs per line.

        Lines starting with '#' are comments.
        """
        weights = cls()
        with open(path, "r", encoding="utf-8") as f:
            for line in f:
                line = line.strip()
                if line and not line.startswith("#"):
                    weights.add_from_string(line)
        return weights

    def add_from_string(self, text: str) -> None:
        """
        Raises:
            ValueError: On a malformed pair, an unknown metric or a bad number
        """
        if not text or not text.strip():
            return
        for pair in text.split(","):
            if not pair.strip():
                continue
            parts = pair.split("=")
            if len(parts) != 2:
                raise ValueError(f"Invalid weight '{pair.strip()}', expected metric=weight")
            self.set(parts[0], parts[1])

    def update(self, mapping: Mapping[str, float]) -> None:
        for metric, weight in mapping.items():
            self.set(metric, weight)

    def set(self, metric: str, weight) -> None:
        name = str(metric).strip().upper()
        if name not in _VALID_METRICS:
            raise ValueError(f"Unknown metric '{name}'. Valid metrics: {', '.join(METRICS_ALL)}")
        try:
            value = float(str(weight).strip())
        except ValueError:
            raise ValueError(f"Invalid weight {weight!r} for metric '{name}'")
        self._weights[name] = value

    def get(self, metric: str) -> float:
        """Weight of a metric, 0.0 if it has none."""
        return self._weights.get(metric.upper(), 0.0)

    def scaled(self, factor: float) -> "Weights":
        return Weights({m: w * factor for m, w in self._weights.items()})

    def non_zero(self) -> Iterator[Tuple[str, float]]:
        for metric, weight in self._weights.items():
            if weight != 0.0:
                yield metric, weight

    def as_dict(self) -> Dict[str, float]:
        return dict(self._weights)

    def __len__(self) -> int:
        return len(self._weights)

    def __contains__(self, metric: str) -> bool:
        return metric.upper() in self._weights

    def __repr__(self) -> str:
        pairs = ", ".join(f"{m}={w:g}" for m, w in self._weights.items())
        return f"Weights({pairs})"
