#!/usr/bin/env python3
"""
Rank many layouts by weighted score.

Analyses every layout against one corpus, optionally normalises metrics by
their median and interquartile range across a reference set, and returns a
pandas DataFrame sorted best first.
"""

import logging
from typing import Iterable, List, Optional, Sequence

import numpy as np
import pandas as pd

from keycraft.analyser import METRICS_ALL, METRICS_BASIC, Analyser
from keycraft.corpus import Corpus
from keycraft.layout import SplitLayout
from keycraft.scorer import Normalisation, score
from keycraft.targets import TargetLoads
from keycraft.weights import Weights

logger = logging.getLogger(__name__)

DERIVED_NAME_MARKERS = ('-flipped', '-best', '-opt')


def tukey_hinges(values: Sequence[float]):
    """
    Median and lower/upper hinges (medians of each half) of a sample.

    Returns:
        Tuple of (q1, median, q3)
    """
    data = np.sort(np.asarray(values, dtype=float))
    n = len(data)
    if n == 0:
        return 0.0, 0.0, 0.0
    median = float(np.median(data))
    if n < 2:
        return median, median, median
    lower = data[:n // 2]
    upper = data[(n + 1) // 2:]
    return float(np.median(lower)), median, float(np.median(upper))


def compute_normalisation(analysers: Iterable[Analyser],
                          metrics: Optional[Sequence[str]] = None) -> Normalisation:
    """Per-metric median and IQR across a set of analysed layouts."""
    analysers = list(analysers)
    metrics = list(metrics or METRICS_ALL)
    medians = {}
    iqrs = {}
    for metric in metrics:
        q1, median, q3 = tukey_hinges([a.metrics.get(metric, 0.0) for a in analysers])
        medians[metric] = median
        iqrs[metric] = q3 - q1
    return Normalisation(medians=medians, iqrs=iqrs)


def is_reference_layout(layout: SplitLayout) -> bool:
    """False for hidden ('_' prefix) and derived (flipped, best, optimised) layouts."""
    name = layout.name
    return not name.startswith('_') and not any(marker in name for marker in DERIVED_NAME_MARKERS)


def reference_normalisation(layouts: Iterable[SplitLayout], corpus: Corpus,
                            target_loads: Optional[TargetLoads] = None) -> Normalisation:
    """
    Normalisation over the reference layouts among the given ones.

    Raises:
        ValueError: If no reference layout remains
    """
    targets = target_loads or TargetLoads.default()
    analysers = [Analyser(layout, corpus, targets) for layout in layouts if is_reference_layout(layout)]
    if not analysers:
        raise ValueError("No reference layouts to normalise against")
    logger.debug(f"Normalising against {len(analysers)} reference layouts")
    return compute_normalisation(analysers)


def rank_layouts(layouts: Sequence[SplitLayout], corpus: Corpus, weights: Weights,
                 target_loads: Optional[TargetLoads] = None,
                 reference: Optional[Sequence[SplitLayout]] = None,
                 normalise: bool = True,
                 metrics: Optional[List[str]] = None) -> pd.DataFrame:
    """
    Score and rank layouts.

    Args:
        layouts: Layouts to rank (names must be unique)
        corpus: Corpus to analyse against
        weights: Metric weights
        target_loads: Targets for the deviation metrics
        reference: Layouts defining medians/IQRs; defaults to the ranked layouts.
            Hidden and derived layouts are left out of the reference set.
        normalise: Apply median/IQR normalisation before weighting
        metrics: Metric columns to include (default: basic set)

    Returns:
        DataFrame with columns name, score and the requested metrics, sorted
        by descending score and indexed by rank starting at 1

    Raises:
        ValueError: If no layouts are given, names repeat, or no reference
            layout remains for normalisation
    """
    if not layouts:
        raise ValueError("No layouts to rank")
    names = [layout.name for layout in layouts]
    duplicates = sorted({n for n in names if names.count(n) > 1})
    if duplicates:
        raise ValueError(f"Duplicate layout names: {duplicates}")

    targets = target_loads or TargetLoads.default()
    analysers = [Analyser(layout, corpus, targets) for layout in layouts]

    normalisation = None
    if normalise:
        normalisation = reference_normalisation(reference or layouts, corpus, targets)

    columns = list(metrics or METRICS_BASIC)
    unknown = [m for m in columns if m not in METRICS_ALL]
    if unknown:
        raise ValueError(f"Unknown metrics: {unknown}")

    rows = []
    for analyser in analysers:
        row = {
            'name': analyser.layout.name,
            'score': score(analyser.metrics, weights, normalisation),
        }
        for metric in columns:
            row[metric] = analyser.metrics[metric]
        rows.append(row)

    frame = pd.DataFrame(rows)
    frame = frame.sort_values('score', ascending=False, kind='mergesort').reset_index(drop=True)
    frame.index = frame.index + 1
    frame.index.name = 'rank'
    return frame


def compute_deltas(frame: pd.DataFrame, base_name: str) -> pd.DataFrame:
    """
    Differences of every numeric column relative to one layout.

    Raises:
        ValueError: If base_name is not in the frame
    """
    matches = frame[frame['name'] == base_name]
    if matches.empty:
        raise ValueError(f"Layout '{base_name}' not found in ranking")
    numeric = frame.select_dtypes(include=[np.number]).columns
    deltas = frame.copy()
    deltas[numeric] = frame[numeric] - matches.iloc[0][numeric].astype(float)
    return deltas
