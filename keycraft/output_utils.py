#!/usr/bin/env python3
"""
Output utilities for keycraft.

Formats analysis, ranking and optimisation results as plain text or CSV.
"""

import sys
from typing import Any, Dict, List, Optional

import pandas as pd

from keycraft.analyser import Analyser, NgramDetail
from keycraft.optimiser import OptimiseResult
from keycraft.scorer import ScoreResult

OUTPUT_FORMATS = ('detailed', 'csv', 'score_only')


def format_metrics_table(analyser: Analyser, metrics: List[str], precision: int = 3) -> str:
    """Metrics of one layout as aligned 'name: value' lines."""
    lines = []
    for metric in metrics:
        value = analyser.metrics[metric]
        lines.append(f"  {metric:<10}: {value:10.{precision}f}")
    return '\n'.join(lines)


def format_detailed_output(result: ScoreResult, analyser: Analyser, metrics: List[str],
                           config: Optional[Dict[str, Any]] = None) -> str:
    """
    Format an analysed layout with its metrics and score breakdown.

    Args:
        result: Score of the layout
        analyser: Analyser holding every metric
        metrics: Metric names to show
        config: Output settings (precision)

    Returns:
        Formatted detailed output string
    """
    config = config or {}
    precision = config.get('precision', 3)

    lines = [str(analyser.layout), ""]
    lines.append(f"Corpus: {analyser.corpus.summary()}")
    lines.append("")
    lines.append("Metrics:")
    lines.append(format_metrics_table(analyser, metrics, precision))

    if result.components:
        lines.append("")
        lines.append("Weighted components:")
        for component, value in result.components.items():
            lines.append(f"  {component:<10}: {value:+10.{precision}f}")

    lines.append("")
    lines.append(f"Score: {result.primary_score:.{precision + 3}f}")
    return '\n'.join(lines)


def format_csv_output(result: ScoreResult, analyser: Analyser, metrics: List[str],
                      config: Optional[Dict[str, Any]] = None) -> str:
    config = config or {}
    row = {'layout': analyser.layout.name, 'score': result.primary_score}
    for metric in metrics:
        row[metric] = analyser.metrics[metric]
    frame = pd.DataFrame([row])
    return frame.to_csv(index=False, float_format=f"%.{config.get('precision', 6)}f").rstrip('\n')


def format_score_only_output(result: ScoreResult, config: Optional[Dict[str, Any]] = None) -> str:
    config = config or {}
    return f"{result.primary_score:.{config.get('precision', 6)}f}"


def print_results(result: ScoreResult, analyser: Analyser, metrics: List[str],
                  output_format: str = 'detailed',
                  config: Optional[Dict[str, Any]] = None, file=None) -> None:
    """
    Print an analysed layout in the requested format.

    Raises:
        ValueError: On an unknown output format
    """
    if file is None:
        file = sys.stdout

    if output_format == 'csv':
        output = format_csv_output(result, analyser, metrics, config)
    elif output_format == 'score_only':
        output = format_score_only_output(result, config)
    elif output_format == 'detailed':
        output = format_detailed_output(result, analyser, metrics, config)
    else:
        raise ValueError(f"Unknown output format: {output_format}")

    print(output, file=file)


def format_details(metric: str, details: List[NgramDetail], limit: int = 20) -> str:
    """Top contributing n-grams of a metric."""
    lines = [f"{metric} contributors:"]
    for detail in details[:limit]:
        lines.append(f"  {detail.ngram!r:<8} {detail.count:>8}  {detail.percentage:7.3f}%  "
                     f"{detail.classification}")
    if len(details) > limit:
        lines.append(f"  ... and {len(details) - limit} more")
    if not details:
        lines.append("  (none)")
    return '\n'.join(lines)


def format_ranking(frame: pd.DataFrame, output_format: str = 'detailed',
                   precision: int = 3) -> str:
    if output_format == 'csv':
        return frame.to_csv(float_format=f"%.{precision}f").rstrip('\n')
    if output_format == 'score_only':
        return '\n'.join(f"{name} {value:.{precision}f}"
                         for name, value in zip(frame['name'], frame['score']))
    return frame.to_string(float_format=lambda v: f"{v:.{precision}f}")


def format_optimise_summary(result: OptimiseResult, name: Optional[str] = None) -> str:
    """Run statistics followed by the best layout, optionally renamed."""
    lines = [
        f"Initial score: {result.initial_score:.6f}",
        f"Best score:    {result.best_score:.6f} ({result.improvement:+.6f})",
        f"Generations:   {result.generations} ({result.stop_reason})",
        f"Evaluations:   {result.evaluations}",
        f"Elapsed:       {result.elapsed_seconds:.1f}s",
        f"Seed:          {result.seed}",
    ]
    used = {kind: count for kind, count in result.perturbations.items() if count}
    if used:
        lines.append("Perturbations: " + ", ".join(f"{k}={v}" for k, v in used.items()))
    lines.append("")
    best = result.best_layout.clone(name) if name else result.best_layout
    lines.append(str(best))
    return '\n'.join(lines)
