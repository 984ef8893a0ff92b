#!/usr/bin/env python3
"""
Ergonomic metrics of a layout against a corpus.

Metrics are percentages (0-100) of the relevant n-gram table unless noted:

    SFB  same finger bigram            SFS  same finger skipgram
    LSB  lateral stretch bigram        LSS  lateral stretch skipgram
    FSB  full scissor bigram           FSS  full scissor skipgram
    HSB  half scissor bigram           HSS  half scissor skipgram
    ALT  hand alternation trigrams     2RL  two-key rolls
    3RL  three-key rolls               RED  redirects
    H0-H1, F0-F9, C0-C11, R0-R3        hand, finger, column and row usage
    HLD, FBL, RBL                      deviation from target hand/finger/row load
    POH                                pinky off-home usage, weighted by penalties
    IN:OUT                             inward to outward roll ratio (not a percentage)
    FLW                                flow: alternations and rolls without same-finger use

An Analyser is a pure function of (layout, corpus, targets). Per-n-gram
breakdowns are computed on demand by details() so the optimiser's hot path
only aggregates counts.
"""

from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

from keycraft.corpus import Corpus
from keycraft.layout import (
    INDEX, LEFT, NUM_MAIN_KEYS, PINKY, Geometry, KeyInfo, SplitLayout,
)
from keycraft.targets import TargetLoads

PAIR_KINDS = ("SF", "LS", "FS", "HS")

METRICS_BASIC = [
    "SFB", "LSB", "FSB", "HSB",
    "SFS",
    "ALT", "2RL", "3RL", "RED", "RED-WEAK",
    "IN:OUT", "RBL", "FBL", "POH", "FLW",
]

METRICS_EXTENDED = [
    "SFB", "LSB", "FSB", "HSB",
    "SFS", "LSS", "FSS", "HSS",
    "ALT", "ALT-NML", "ALT-SFS",
    "2RL", "2RL-IN", "2RL-OUT", "2RL-SFB",
    "3RL", "3RL-IN", "3RL-OUT", "3RL-SFB",
    "RED", "RED-NML", "RED-WEAK", "RED-SFS",
    "IN:OUT", "HLD", "RBL", "FBL", "POH", "FLW",
]

METRICS_FINGERS = ["H0"] + [f"F{i}" for i in range(10)] + ["H1"]

METRICS_ALL = (
    METRICS_EXTENDED
    + METRICS_FINGERS
    + [f"C{i}" for i in range(12)]
    + [f"R{i}" for i in range(4)]
)

METRIC_SETS = {
    "basic": METRICS_BASIC,
    "extended": METRICS_EXTENDED,
    "fingers": METRICS_FINGERS,
    "all": METRICS_ALL,
}

TRIGRAM_CLASSES = (
    "ALT-NML", "ALT-SFS",
    "2RL-IN", "2RL-OUT", "2RL-SFB",
    "3RL-IN", "3RL-OUT", "3RL-SFB",
    "RED-NML", "RED-WEAK", "RED-SFS",
)

_ROLL_CLASSES = ("2RL-IN", "2RL-OUT", "3RL-IN", "3RL-OUT")
_FLOW_CLASSES = ("ALT-NML",) + _ROLL_CLASSES


@dataclass(frozen=True)
class NgramDetail:
    """One n-gram's contribution to a metric."""
    ngram: str
    count: int
    percentage: float
    classification: str


def classify_pair(geometry: Geometry, i: int, j: int) -> Tuple[str, ...]:
    """
    Kinds of a same-hand key pair: 'SF', 'LS', 'FS', 'HS'.

    A pair can be both a lateral stretch and a scissor. Same-finger pairs
    need two different keys.
    """
    a = geometry.keys[i]
    b = geometry.keys[j]
    if a.hand != b.hand:
        return ()
    kinds = []
    if a.finger == b.finger and i != j:
        kinds.append("SF")
    if (i, j) in geometry.lsb_pairs:
        kinds.append("LS")
    if (i, j) in geometry.full_scissor_pairs:
        kinds.append("FS")
    if (i, j) in geometry.half_scissor_pairs:
        kinds.append("HS")
    return tuple(kinds)


def _roll_class(hand: int, finger_a: int, finger_b: int) -> str:
    if finger_a == finger_b:
        return "2RL-SFB"
    if (finger_a < finger_b) == (hand == LEFT):
        return "2RL-IN"
    return "2RL-OUT"


def classify_trigram(a: KeyInfo, b: KeyInfo, c: KeyInfo) -> str:
    """
    Classify a trigram by the hands and fingers of its three keys.

    Inward means towards the thumb: increasing finger numbers on the left
    hand, decreasing on the right.
    """
    h0, h1, h2 = a.hand, b.hand, c.hand
    f0, f1, f2 = a.finger, b.finger, c.finger

    if h0 == h2 and h0 != h1:
        if f0 == f2 and a.index != c.index:
            return "ALT-SFS"
        return "ALT-NML"

    if h0 == h1 == h2:
        if f0 == f1 or f1 == f2:
            return "3RL-SFB"
        if (f0 < f1) == (f1 < f2):
            return "3RL-IN" if (f0 < f1) == (h0 == LEFT) else "3RL-OUT"
        if INDEX not in (a.finger_kind, b.finger_kind, c.finger_kind):
            return "RED-WEAK"
        if f0 == f2 and a.index != c.index:
            return "RED-SFS"
        return "RED-NML"

    if h0 == h1:
        return _roll_class(h0, f0, f1)
    return _roll_class(h1, f1, f2)


def pinky_penalty_index(key: KeyInfo) -> Optional[int]:
    """
    Position of a main-row pinky key in the 12-entry pinky penalty table.

    Per hand the order is top-outer, top-inner, home-outer, home-inner,
    bottom-outer, bottom-inner.
    """
    if key.row >= 3 or key.finger_kind != PINKY:
        return None
    outer = key.column in (0, 11)
    return key.hand * 6 + key.row * 2 + (0 if outer else 1)


def _percent(count: float, total: float) -> float:
    return count * 100.0 / total if total > 0 else 0.0


class Analyser:
    """
    Computes every metric for one layout and corpus.

    Attributes:
        layout: The analysed layout
        corpus: Corpus providing n-gram frequencies
        target_loads: Targets used by the deviation metrics
        metrics: Metric name to value, populated on construction
    """

    def __init__(self, layout: SplitLayout, corpus: Corpus,
                 target_loads: Optional[TargetLoads] = None):
        self.layout = layout
        self.corpus = corpus
        self.target_loads = target_loads or TargetLoads.default()
        self.metrics: Dict[str, float] = {name: 0.0 for name in METRICS_ALL}

        self._analyse_loads()
        self._analyse_pairs(corpus.bigrams, corpus.total_bigrams, "B")
        self._analyse_pairs(corpus.skipgrams, corpus.total_skipgrams, "S")
        self._analyse_trigrams()

    def __getitem__(self, metric: str) -> float:
        return self.metrics[metric]

    def _keys_of(self, ngram: str) -> Optional[List[KeyInfo]]:
        keys = []
        for char in ngram:
            key = self.layout.key_info(char)
            if key is None:
                return None
            keys.append(key)
        return keys

    def _analyse_loads(self) -> None:
        hand = [0] * 2
        finger = [0] * 10
        column = [0] * 12
        row = [0] * 4
        pinky_weighted = 0.0
        total = 0
        penalties = self.target_loads.pinky_penalties

        for char, count in self.corpus.unigrams.items():
            key = self.layout.key_info(char)
            if key is None:
                continue
            total += count
            hand[key.hand] += count
            finger[key.finger] += count
            row[key.row] += count
            if key.index < NUM_MAIN_KEYS:
                column[key.column] += count
            slot = pinky_penalty_index(key)
            if slot is not None:
                pinky_weighted += penalties[slot] * count

        m = self.metrics
        for i, c in enumerate(hand):
            m[f"H{i}"] = _percent(c, total)
        for i, c in enumerate(finger):
            m[f"F{i}"] = _percent(c, total)
        for i, c in enumerate(column):
            m[f"C{i}"] = _percent(c, total)
        for i, c in enumerate(row):
            m[f"R{i}"] = _percent(c, total)
        m["POH"] = _percent(pinky_weighted, total)

        targets = self.target_loads
        m["HLD"] = sum(abs(m[f"H{i}"] - targets.hand_load[i]) for i in range(2))
        m["FBL"] = sum(abs(m[f"F{i}"] - targets.finger_load[i]) for i in range(10))

        main_rows = sum(row[:3])
        m["RBL"] = sum(
            abs(_percent(row[r], main_rows) - targets.row_load[r]) for r in range(3)
        )

    def _analyse_pairs(self, table: Dict[str, int], total: int, suffix: str) -> None:
        geometry = self.layout.geometry
        counts = dict.fromkeys(PAIR_KINDS, 0)
        index_of = self.layout.index_of

        for ngram, count in table.items():
            i = index_of(ngram[0])
            j = index_of(ngram[1])
            if i is None or j is None:
                continue
            for kind in classify_pair(geometry, i, j):
                counts[kind] += count

        for kind, count in counts.items():
            self.metrics[kind + suffix] = _percent(count, total)

    def _analyse_trigrams(self) -> None:
        counts = dict.fromkeys(TRIGRAM_CLASSES, 0)
        for ngram, count in self.corpus.trigrams.items():
            keys = self._keys_of(ngram)
            if keys is None:
                continue
            counts[classify_trigram(*keys)] += count

        m = self.metrics
        total = self.corpus.total_trigrams
        for name, count in counts.items():
            m[name] = _percent(count, total)

        m["ALT"] = m["ALT-NML"] + m["ALT-SFS"]
        m["2RL"] = m["2RL-IN"] + m["2RL-OUT"]
        m["3RL"] = m["3RL-IN"] + m["3RL-OUT"]
        m["RED"] = m["RED-NML"] + m["RED-WEAK"] + m["RED-SFS"]

        inward = m["2RL-IN"] + m["3RL-IN"]
        outward = m["2RL-OUT"] + m["3RL-OUT"]
        m["IN:OUT"] = inward / outward if outward > 0 else 0.0
        m["FLW"] = sum(m[name] for name in _FLOW_CLASSES)

    def details(self, metric: str) -> List[NgramDetail]:
        """
        Break a metric down into the n-grams contributing to it.

        Args:
            metric: Metric name (case-insensitive)

        Returns:
            Contributing n-grams sorted by descending count

        Raises:
            ValueError: If the metric has no n-gram breakdown
        """
        metric = metric.upper()
        if metric[:2] in PAIR_KINDS and metric[2:] in ("B", "S") and len(metric) == 3:
            return self._pair_details(metric)
        if metric in TRIGRAM_CLASSES or metric in ("ALT", "2RL", "3RL", "RED", "FLW", "IN:OUT"):
            return self._trigram_details(metric)
        if metric[:1] in ("H", "F", "C", "R") and metric[1:].isdigit() or metric == "POH":
            return self._unigram_details(metric)
        raise ValueError(f"Metric '{metric}' has no n-gram breakdown")

    def _pair_details(self, metric: str) -> List[NgramDetail]:
        kind = metric[:2]
        if metric.endswith("B"):
            table, total = self.corpus.bigrams, self.corpus.total_bigrams
        else:
            table, total = self.corpus.skipgrams, self.corpus.total_skipgrams

        geometry = self.layout.geometry
        rows = []
        for ngram, count in table.items():
            i = self.layout.index_of(ngram[0])
            j = self.layout.index_of(ngram[1])
            if i is None or j is None:
                continue
            if kind in classify_pair(geometry, i, j):
                rows.append(NgramDetail(ngram, count, _percent(count, total), metric))
        return _sorted(rows)

    def _trigram_details(self, metric: str) -> List[NgramDetail]:
        if metric in TRIGRAM_CLASSES:
            wanted = (metric,)
        elif metric == "FLW":
            wanted = _FLOW_CLASSES
        elif metric == "IN:OUT":
            wanted = _ROLL_CLASSES
        elif metric in ("2RL", "3RL"):
            wanted = (f"{metric}-IN", f"{metric}-OUT")
        else:
            wanted = tuple(c for c in TRIGRAM_CLASSES if c.startswith(metric + "-"))

        total = self.corpus.total_trigrams
        rows = []
        for ngram, count in self.corpus.trigrams.items():
            keys = self._keys_of(ngram)
            if keys is None:
                continue
            label = classify_trigram(*keys)
            if label in wanted:
                rows.append(NgramDetail(ngram, count, _percent(count, total), label))
        return _sorted(rows)

    def _unigram_details(self, metric: str) -> List[NgramDetail]:
        prefix = metric[0]
        number = int(metric[1:]) if metric != "POH" else None
        rows = []
        for char, count in self.corpus.unigrams.items():
            key = self.layout.key_info(char)
            if key is None:
                continue
            if metric == "POH":
                if pinky_penalty_index(key) is None:
                    continue
            elif prefix == "H" and key.hand != number:
                continue
            elif prefix == "F" and key.finger != number:
                continue
            elif prefix == "C" and (key.index >= NUM_MAIN_KEYS or key.column != number):
                continue
            elif prefix == "R" and key.row != number:
                continue
            rows.append(NgramDetail(char, count, 0.0, metric))

        typed = sum(c for ch, c in self.corpus.unigrams.items() if self.layout.key_info(ch))
        return _sorted([
            NgramDetail(r.ngram, r.count, _percent(r.count, typed), r.classification)
            for r in rows
        ])


def _sorted(rows: List[NgramDetail]) -> List[NgramDetail]:
    return sorted(rows, key=lambda r: (-r.count, r.ngram))
