#!/usr/bin/env python3
"""
Weighted scoring of layout metrics.

The score is a plain linear combination, sum(weight[m] * metric[m]), and is
the only objective the optimiser maximises. An optional normalisation
rescales each metric as (value - median) / IQR over a set of reference
layouts before weighting, so metrics with very different ranges can share
one set of weights.
"""

import time
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional

from keycraft.analyser import Analyser
from keycraft.weights import Weights

MIN_IQR = 1e-9


@dataclass(frozen=True)
class Normalisation:
    """
    Per-metric medians and interquartile ranges from reference layouts.

    Metrics whose IQR is at most MIN_IQR do not separate the reference
    layouts and contribute nothing to a normalised score.
    """
    medians: Dict[str, float]
    iqrs: Dict[str, float]

    def apply(self, metric: str, value: float) -> float:
        median = self.medians.get(metric, 0.0)
        iqr = self.iqrs.get(metric, 1.0)
        if iqr <= MIN_IQR:
            return 0.0
        return (value - median) / iqr


def score(metrics: Mapping[str, float], weights: Weights,
          normalisation: Optional[Normalisation] = None) -> float:
    """
    Combine metrics into one fitness value (higher is better).

    Args:
        metrics: Metric name to value
        weights: Signed metric weights; metrics without weight are ignored
        normalisation: Optional robust scaling applied before weighting

    Returns:
        Weighted sum of the metrics
    """
    total = 0.0
    for metric, weight in weights.non_zero():
        value = metrics.get(metric, 0.0)
        if normalisation is not None:
            value = normalisation.apply(metric, value)
        total += weight * value
    return total


@dataclass
class ScoreResult:
    """
    Result of scoring one layout.

    components holds each weighted metric's contribution so the primary
    score is their sum.
    """

    primary_score: float
    """Weighted score of the layout (higher = better)"""

    components: Dict[str, float] = field(default_factory=dict)
    """Weighted contribution of every metric with a non-zero weight"""

    layout_name: str = ""

    metrics: Dict[str, float] = field(default_factory=dict)
    """All raw metric values"""

    metadata: Dict[str, Any] = field(default_factory=dict)

    execution_time: float = 0.0
    """Time taken to analyse and score (seconds)"""

    def get_score(self, component_name: Optional[str] = None) -> float:
        """
        Get a component contribution or the primary score.

        Raises:
            KeyError: If component_name is not a weighted metric
        """
        if component_name is None:
            return self.primary_score
        if component_name not in self.components:
            available = list(self.components.keys())
            raise KeyError(f"Component '{component_name}' not found. Available: {available}")
        return self.components[component_name]

    def to_dict(self) -> Dict[str, Any]:
        result = {
            'layout': self.layout_name,
            'primary_score': self.primary_score,
            'execution_time': self.execution_time,
        }
        for component, value in self.components.items():
            result[f'component_{component}'] = value
        for key, value in self.metadata.items():
            if isinstance(value, (str, int, float, bool)):
                result[f'meta_{key}'] = value
        return result

    def summary(self) -> str:
        lines = [
            f"Layout: {self.layout_name}",
            f"Score: {self.primary_score:.6f}",
        ]
        if self.components:
            lines.append("Components:")
            for name, value in self.components.items():
                lines.append(f"  {name}: {value:+.6f}")
        if self.execution_time > 0:
            lines.append(f"Execution time: {self.execution_time:.3f}s")
        return "\n".join(lines)


def score_analyser(analyser: Analyser, weights: Weights,
                   normalisation: Optional[Normalisation] = None) -> ScoreResult:
    """Score an analysed layout and keep the per-metric breakdown."""
    start_time = time.time()
    components = {}
    for metric, weight in weights.non_zero():
        value = analyser.metrics.get(metric, 0.0)
        if normalisation is not None:
            value = normalisation.apply(metric, value)
        components[metric] = weight * value

    return ScoreResult(
        primary_score=sum(components.values()),
        components=components,
        layout_name=analyser.layout.name,
        metrics=dict(analyser.metrics),
        metadata={
            'corpus': analyser.corpus.name,
            'layout_type': analyser.layout.layout_type.name.lower(),
            'normalised': normalisation is not None,
        },
        execution_time=time.time() - start_time,
    )
