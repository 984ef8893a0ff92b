# keycraft/__init__.py
"""
Keyboard layout analysis and optimisation.

Corpus statistics, split layout geometry, ergonomic metrics, weighted
scoring, ranking and breakout local search.
"""

__version__ = "0.1.0"

# Import main classes for easy access
from .analyser import Analyser
from .config_loader import ConfigLoader
from .corpus import Corpus, new_corpus
from .layout import LayoutType, SplitLayout
from .optimiser import BLSParams, OptimiseResult, optimise
from .pins import resolve_pins
from .ranking import rank_layouts
from .scorer import ScoreResult, score
from .targets import TargetLoads
from .weights import Weights

__all__ = [
    'Analyser',
    'BLSParams',
    'ConfigLoader',
    'Corpus',
    'LayoutType',
    'OptimiseResult',
    'ScoreResult',
    'SplitLayout',
    'TargetLoads',
    'Weights',
    'new_corpus',
    'optimise',
    'rank_layouts',
    'resolve_pins',
    'score',
]
