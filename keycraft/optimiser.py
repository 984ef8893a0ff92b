#!/usr/bin/env python3
"""
Breakout Local Search (BLS) layout optimiser.

The search alternates steepest-ascent local search over swaps of free slots
with a breakout phase that perturbs the layout by L swaps. L grows while the
search keeps falling back into the same local optimum, resets once it
escapes, and jumps to its maximum after a long stagnation. Perturbation
moves are picked adaptively: mostly directed (best non-tabu swap), otherwise
pattern-guided, column, random or recency based.

The run is an explicit state machine (INITIALIZE, SEARCH, BREAKOUT,
TERMINATE). The working layout is mutated in place; the best layout is a
clone taken only on improvement. Every random choice comes from one
random.Random seeded by the caller.
"""

import logging
import math
import random
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, FrozenSet, Iterable, List, Optional, TextIO, Tuple

from keycraft.analyser import Analyser
from keycraft.bls_logger import GenerationLogger, GenerationRecord
from keycraft.corpus import Corpus
from keycraft.layout import NUM_KEYS, SplitLayout
from keycraft.pins import free_slots
from keycraft.scorer import Normalisation, score
from keycraft.targets import TargetLoads
from keycraft.weights import Weights

logger = logging.getLogger(__name__)

_SCORE_EPSILON = 1e-9
_MAX_CACHED_SCORES = 200_000

Pair = Tuple[int, int]


class SearchState(Enum):
    INITIALIZE = "initialize"
    SEARCH = "search"
    BREAKOUT = "breakout"
    TERMINATE = "terminate"


class Perturbation(Enum):
    DIRECTED = "directed"
    PATTERN = "pattern"
    COLUMN = "column"
    RANDOM = "random"
    RECENCY = "recency"


@dataclass(frozen=True)
class BLSParams:
    """
    Tunable parameters of the search.

    neighbourhood_size caps the number of swaps evaluated per local search
    step. When the free slots give more pairs than that, a fresh seeded
    sample of this many pairs is drawn for every step; 0 always evaluates
    the full neighbourhood.
    """
    neighbourhood_size: int = 600
    l0: int = 1
    l_max: int = 5
    stagnation_limit: int = 500
    tabu_min: int = 1
    tabu_max: int = 2
    p0: float = 0.75
    pattern_weight: float = 0.25
    column_weight: float = 0.15
    random_weight: float = 0.40
    recency_weight: float = 0.20
    top_k_problematic: int = 8
    report_interval: int = 100

    @classmethod
    def defaults(cls, num_free: int, **overrides) -> "BLSParams":
        """Parameters scaled to the number of free keys."""
        l0 = max(1, int(0.1 * num_free))
        values = dict(
            l0=l0,
            l_max=max(l0, int(0.5 * num_free)),
            tabu_min=max(1, int(0.9 * num_free)),
            tabu_max=max(1, int(1.1 * num_free)),
        )
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)

    def validate(self) -> None:
        """
        Raises:
            ValueError: If a parameter is out of range
        """
        if self.neighbourhood_size < 0:
            raise ValueError(f"neighbourhood_size must be >= 0, got {self.neighbourhood_size}")
        if self.l0 < 1 or self.l_max < self.l0:
            raise ValueError(f"Need 1 <= l0 <= l_max, got l0={self.l0}, l_max={self.l_max}")
        if self.stagnation_limit < 1:
            raise ValueError(f"stagnation_limit must be >= 1, got {self.stagnation_limit}")
        if self.tabu_min < 0 or self.tabu_max < self.tabu_min:
            raise ValueError(f"Need 0 <= tabu_min <= tabu_max, got {self.tabu_min}, {self.tabu_max}")
        if not 0.0 <= self.p0 <= 1.0:
            raise ValueError(f"p0 must be in [0, 1], got {self.p0}")
        weights = (self.pattern_weight, self.column_weight, self.random_weight, self.recency_weight)
        if any(w < 0 for w in weights) or sum(weights) <= 0:
            raise ValueError("Perturbation weights must be non-negative and not all zero")


@dataclass(frozen=True)
class OptimiseResult:
    """Outcome and telemetry of one optimiser run."""
    original_layout: SplitLayout
    best_layout: SplitLayout
    initial_score: float
    best_score: float
    generations: int
    evaluations: int
    elapsed_seconds: float
    seed: int
    stop_reason: str
    history: Tuple[GenerationRecord, ...] = ()
    perturbations: Dict[str, int] = field(default_factory=dict)

    @property
    def improvement(self) -> float:
        return self.best_score - self.initial_score

    def score_trajectory(self) -> List[float]:
        return [record.score for record in self.history]


class LayoutEvaluator:
    """Scores layouts, remembering the score of every arrangement seen."""

    def __init__(self, corpus: Corpus, weights: Weights, target_loads: TargetLoads,
                 normalisation: Optional[Normalisation] = None):
        self.corpus = corpus
        self.weights = weights
        self.target_loads = target_loads
        self.normalisation = normalisation
        self.evaluations = 0
        self._cache: Dict[str, float] = {}

    def __call__(self, layout: SplitLayout) -> float:
        key = "".join(layout.runes)
        cached = self._cache.get(key)
        if cached is not None:
            return cached
        self.evaluations += 1
        metrics = Analyser(layout, self.corpus, self.target_loads).metrics
        value = score(metrics, self.weights, self.normalisation)
        if len(self._cache) >= _MAX_CACHED_SCORES:
            self._cache.clear()
        self._cache[key] = value
        return value


class BLSOptimiser:
    """
    One BLS run over a single layout.

    Use optimise() for the functional entry point; this class holds the
    run's mutable search state.
    """

    def __init__(self, layout: SplitLayout, evaluator: LayoutEvaluator,
                 pinned: Iterable[int], generation_budget: int,
                 time_budget_minutes: float, seed: int = 0,
                 params: Optional[BLSParams] = None,
                 log_sink: Optional[TextIO] = None):
        """
        Raises:
            ValueError: On non-positive budgets, invalid pins or fewer than
                two free slots
        """
        if generation_budget is None or generation_budget <= 0:
            raise ValueError(f"Generation budget must be positive, got {generation_budget}")
        if time_budget_minutes is None or time_budget_minutes <= 0:
            raise ValueError(f"Time budget must be positive, got {time_budget_minutes} minutes")

        pinned = frozenset(pinned)
        invalid = sorted(i for i in pinned if not 0 <= i < NUM_KEYS)
        if invalid:
            raise ValueError(f"Pinned slot indices out of range: {invalid}")

        self.free = free_slots(pinned)
        if not self.free:
            raise ValueError("No free keys to optimise: every slot is pinned")
        if len(self.free) < 2:
            raise ValueError(f"Need at least two free keys to swap, got {len(self.free)}")

        self.layout = layout
        self.evaluator = evaluator
        self.pinned: FrozenSet[int] = pinned
        self.generation_budget = generation_budget
        self.time_budget_seconds = time_budget_minutes * 60.0
        self.seed = seed if seed != 0 else time.time_ns()
        self.params = params or BLSParams.defaults(len(self.free))
        self.params.validate()
        self.log = GenerationLogger(log_sink)

        self.rng = random.Random(self.seed)
        self.pairs: List[Pair] = [
            (i, j) for n, i in enumerate(self.free) for j in self.free[n + 1:]
        ]

    def _reset(self) -> None:
        self.current = self.layout.clone()
        self.reference_runes = list(self.current.runes)
        self.current_score = self.evaluator(self.current)
        self.initial_score = self.current_score
        self.best = self.current.clone()
        self.best_score = self.current_score
        self.last_optimum_score = self.current_score

        self.jump = self.params.l0
        self.omega = 0
        self.generation = 0
        self.moves = 0
        self.tabu: Dict[Pair, int] = {}
        self.last_moved = {i: -1 for i in self.free}
        self.history: List[GenerationRecord] = []
        self.perturbation_counts = {p.value: 0 for p in Perturbation}
        self.start_time = time.time()

    def _elapsed(self) -> float:
        return time.time() - self.start_time

    def _out_of_time(self) -> bool:
        return self._elapsed() >= self.time_budget_seconds

    def _neighbourhood(self) -> List[Pair]:
        size = self.params.neighbourhood_size
        if size == 0 or len(self.pairs) <= size:
            return self.pairs
        return self.rng.sample(self.pairs, size)

    def _apply(self, i: int, j: int) -> None:
        self.current.swap(i, j)
        key = (i, j) if i < j else (j, i)
        self.tabu[key] = self.moves
        self.last_moved[i] = self.moves
        self.last_moved[j] = self.moves
        self.moves += 1

    def _try_swap(self, i: int, j: int) -> float:
        self.current.swap(i, j)
        value = self.evaluator(self.current)
        self.current.swap(i, j)
        return value

    def _update_best(self) -> bool:
        if self.current_score > self.best_score + _SCORE_EPSILON:
            self.best = self.current.clone()
            self.best_score = self.current_score
            return True
        return False

    def run(self) -> OptimiseResult:
        state = SearchState.INITIALIZE
        stop_reason = ""

        while state is not SearchState.TERMINATE:
            if state is SearchState.INITIALIZE:
                self._reset()
                logger.info(f"Starting BLS on '{self.layout.name}': {len(self.free)} free keys, "
                            f"initial score {self.initial_score:.4f}, seed {self.seed}")
                state = SearchState.SEARCH

            elif state is SearchState.SEARCH:
                if self.generation >= self.generation_budget:
                    stop_reason = "generation budget reached"
                    state = SearchState.TERMINATE
                elif self._out_of_time():
                    stop_reason = "time budget reached"
                    state = SearchState.TERMINATE
                else:
                    self._local_search()
                    state = SearchState.BREAKOUT

            elif state is SearchState.BREAKOUT:
                self._breakout()
                state = SearchState.SEARCH

        elapsed = self._elapsed()
        logger.info(f"BLS finished after {self.generation} generations ({stop_reason}): "
                    f"best score {self.best_score:.4f}, {self.evaluator.evaluations} evaluations, "
                    f"{elapsed:.1f}s")

        best = self.best.clone(name=f"{self.layout.name}-best")
        return OptimiseResult(
            original_layout=self.layout.clone(),
            best_layout=best,
            initial_score=self.initial_score,
            best_score=self.best_score,
            generations=self.generation,
            evaluations=self.evaluator.evaluations,
            elapsed_seconds=elapsed,
            seed=self.seed,
            stop_reason=stop_reason,
            history=tuple(self.history),
            perturbations=dict(self.perturbation_counts),
        )

    def _local_search(self) -> None:
        """Apply the most improving swap until none improves."""
        while not self._out_of_time():
            best_pair = None
            best_value = self.current_score
            for i, j in self._neighbourhood():
                value = self._try_swap(i, j)
                if value > best_value + _SCORE_EPSILON:
                    best_value = value
                    best_pair = (i, j)

            if best_pair is None:
                break
            self._apply(*best_pair)
            self.current_score = best_value

    def _breakout(self) -> None:
        """Record the local optimum, adapt the jump magnitude and perturb."""
        optimum = self.current_score
        same_optimum = abs(optimum - self.last_optimum_score) < _SCORE_EPSILON

        if self._update_best():
            self.omega = 0
        elif not same_optimum:
            self.omega += 1

        if self.omega > self.params.stagnation_limit:
            self.jump = self.params.l_max
            self.omega = 0
        elif same_optimum:
            self.jump = min(self.jump + 1, self.params.l_max)
        else:
            self.jump = self.params.l0

        self.last_optimum_score = optimum
        self._perturb(self.jump)
        self.current_score = self.evaluator(self.current)
        self.current.check_permutation(self.reference_runes)

        self.generation += 1
        record = GenerationRecord(
            generation=self.generation,
            score=optimum,
            best_score=self.best_score,
            elapsed_seconds=self._elapsed(),
        )
        self.history.append(record)
        self.log.log(record)

        interval = self.params.report_interval
        if interval > 0 and self.generation % interval == 0:
            logger.info(f"Generation {self.generation}: optimum {optimum:.4f}, "
                        f"best {self.best_score:.4f}, L={self.jump}, omega={self.omega}")

    def _select_perturbation(self) -> Perturbation:
        p = self.params
        directed = max(math.exp(-self.omega / p.stagnation_limit), p.p0)
        r = self.rng.random()
        if r < directed:
            return Perturbation.DIRECTED

        r = (r - directed) / (1.0 - directed) if directed < 1.0 else 0.0
        total = p.pattern_weight + p.column_weight + p.random_weight + p.recency_weight
        cumulative = 0.0
        for kind, weight in ((Perturbation.PATTERN, p.pattern_weight),
                             (Perturbation.COLUMN, p.column_weight),
                             (Perturbation.RANDOM, p.random_weight)):
            cumulative += weight / total
            if r < cumulative:
                return kind
        return Perturbation.RECENCY

    def _perturb(self, strength: int) -> None:
        for _ in range(strength):
            kind = self._select_perturbation()
            self.perturbation_counts[kind.value] += 1

            if kind is Perturbation.COLUMN:
                swaps = self._column_swaps()
                if swaps:
                    for i, j in swaps:
                        self._apply(i, j)
                    continue
                pair = self._random_pair()
            elif kind is Perturbation.DIRECTED:
                pair = self._directed_pair()
            elif kind is Perturbation.PATTERN:
                pair = self._pattern_pair()
            elif kind is Perturbation.RECENCY:
                pair = self._recency_pair()
            else:
                pair = self._random_pair()
            self._apply(*pair)

    def _random_pair(self) -> Pair:
        return self.rng.choice(self.pairs)

    def _directed_pair(self) -> Pair:
        """Least damaging non-tabu swap; tabu swaps pass if they beat the best."""
        tenure = self.rng.randint(self.params.tabu_min, self.params.tabu_max)
        base = self.evaluator(self.current)
        best_pair = None
        best_delta = math.inf
        for i, j in self._neighbourhood():
            last = self.tabu.get((i, j))
            is_tabu = last is not None and self.moves - last < tenure
            value = self._try_swap(i, j)
            aspiration = value > self.best_score + _SCORE_EPSILON
            delta = base - value
            if (not is_tabu or aspiration) and delta < best_delta:
                best_delta = delta
                best_pair = (i, j)
        return best_pair if best_pair is not None else self._random_pair()

    def _problematic_slots(self) -> List[int]:
        """Free slots contributing most to same-finger and lateral stretch bigrams."""
        corpus = self.evaluator.corpus
        if corpus.total_bigrams == 0:
            return []
        geometry = self.current.geometry
        badness: Dict[int, float] = {}
        for bigram, count in corpus.bigrams.items():
            i = self.current.index_of(bigram[0])
            j = self.current.index_of(bigram[1])
            if i is None or j is None or i == j:
                continue
            weight = 0.0
            if geometry.keys[i].finger == geometry.keys[j].finger:
                weight += 100.0
            if (i, j) in geometry.lsb_pairs:
                weight += 80.0
            if weight:
                share = weight * count / corpus.total_bigrams
                badness[i] = badness.get(i, 0.0) + share
                badness[j] = badness.get(j, 0.0) + share

        ranked = sorted(
            (slot for slot in badness if slot not in self.pinned),
            key=lambda slot: (-badness[slot], slot),
        )
        return ranked[:self.params.top_k_problematic]

    def _pattern_pair(self) -> Pair:
        problematic = self._problematic_slots()
        if not problematic:
            return self._random_pair()
        bad = self.rng.choice(problematic)
        keys = self.current.geometry.keys
        candidates = [
            slot for slot in self.free
            if slot != bad and (keys[slot].hand != keys[bad].hand
                                or keys[slot].finger != keys[bad].finger)
        ]
        if not candidates:
            return self._random_pair()
        return bad, self.rng.choice(candidates)

    def _recency_pair(self) -> Pair:
        """The two free slots that have gone longest without moving."""
        order = sorted(self.free, key=lambda slot: (self.last_moved[slot], self.rng.random()))
        return order[0], order[1]

    def _column_swaps(self) -> List[Pair]:
        col_a, col_b = self.rng.sample(range(12), 2)
        swaps = []
        for row in range(3):
            a = row * 12 + col_a
            b = row * 12 + col_b
            if a not in self.pinned and b not in self.pinned:
                swaps.append((a, b))
        return swaps


def optimise(layout: SplitLayout, corpus: Corpus, weights: Weights,
             target_loads: Optional[TargetLoads], pinned: Iterable[int],
             generation_budget: int, time_budget_minutes: float, seed: int = 0,
             log_sink: Optional[TextIO] = None, params: Optional[BLSParams] = None,
             normalisation: Optional[Normalisation] = None) -> OptimiseResult:
    """
    Search for a higher-scoring arrangement of a layout's free slots.

    Args:
        layout: Starting layout (not modified)
        corpus: Corpus to score against
        weights: Metric weights defining the score
        target_loads: Targets for the deviation metrics (defaults if None)
        pinned: Slot indices that must keep their characters
        generation_budget: Maximum number of generations (local search + breakout)
        time_budget_minutes: Wall-clock limit
        seed: Random seed; 0 uses the current time
        log_sink: Optional text stream receiving one JSON line per generation
        params: Search parameters; scaled defaults when None
        normalisation: Optional metric normalisation applied before weighting

    Returns:
        OptimiseResult with the best layout found and run telemetry

    Raises:
        ValueError: On non-positive budgets or fewer than two free slots
    """
    evaluator = LayoutEvaluator(corpus, weights, target_loads or TargetLoads.default(),
                                normalisation)
    optimiser = BLSOptimiser(layout, evaluator, pinned, generation_budget,
                             time_budget_minutes, seed=seed, params=params, log_sink=log_sink)
    return optimiser.run()
