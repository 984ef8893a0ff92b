"""Tests for the breakout local search optimiser."""

import io
import json

import pytest

from keycraft.analyser import Analyser
from keycraft.bls_logger import GenerationLogger, GenerationRecord, read_generation_log
from keycraft.layout import NUM_KEYS, SplitLayout
from keycraft.optimiser import BLSParams, LayoutEvaluator, optimise
from keycraft.pins import resolve_pins
from keycraft.ranking import rank_layouts, reference_normalisation
from keycraft.scorer import score
from keycraft.targets import TargetLoads

FREE = "asdfghjkl"


@pytest.fixture
def pinned(qwerty):
    return resolve_pins(qwerty, free=FREE)


def run(layout, corpus, weights, pinned, generations=4, seed=42, **kwargs):
    return optimise(layout, corpus, weights, TargetLoads.default(), pinned,
                    generations, 1.0, seed=seed, **kwargs)


class TestParams:
    def test_defaults_scale_with_free_keys(self):
        params = BLSParams.defaults(30)
        assert params.l0 == 3
        assert params.l_max == 15
        assert params.tabu_min == 27
        assert params.tabu_max == 33

    def test_defaults_with_overrides(self):
        params = BLSParams.defaults(30, l_max=20, p0=None)
        assert params.l_max == 20
        assert params.p0 == 0.75

    @pytest.mark.parametrize("overrides", [
        dict(l0=3, l_max=2),
        dict(p0=1.5),
        dict(neighbourhood_size=-1),
        dict(stagnation_limit=0),
        dict(tabu_min=5, tabu_max=2),
        dict(pattern_weight=0, column_weight=0, random_weight=0, recency_weight=0),
        dict(random_weight=-1),
    ])
    def test_validate(self, overrides):
        with pytest.raises(ValueError):
            BLSParams(**overrides).validate()


class TestEntryValidation:
    def test_non_positive_generation_budget(self, qwerty, sample_corpus, weights, pinned):
        with pytest.raises(ValueError):
            run(qwerty, sample_corpus, weights, pinned, generations=0)

    def test_non_positive_time_budget(self, qwerty, sample_corpus, weights, pinned):
        with pytest.raises(ValueError):
            optimise(qwerty, sample_corpus, weights, None, pinned, 5, 0)

    def test_everything_pinned(self, qwerty, sample_corpus, weights):
        with pytest.raises(ValueError):
            run(qwerty, sample_corpus, weights, range(NUM_KEYS))

    def test_single_free_key(self, qwerty, sample_corpus, weights):
        pinned = set(range(NUM_KEYS)) - {13}
        with pytest.raises(ValueError):
            run(qwerty, sample_corpus, weights, pinned)

    def test_pin_out_of_range(self, qwerty, sample_corpus, weights):
        with pytest.raises(ValueError):
            run(qwerty, sample_corpus, weights, {NUM_KEYS})


class TestSearch:
    def test_result(self, qwerty, sample_corpus, weights, pinned):
        result = run(qwerty, sample_corpus, weights, pinned)
        assert result.generations == 4
        assert result.stop_reason == "generation budget reached"
        assert result.seed == 42
        assert result.best_score >= result.initial_score
        assert result.improvement >= 0
        assert len(result.history) == 4
        assert sum(result.perturbations.values()) >= 4
        assert result.evaluations > 0

    def test_pinned_slots_untouched(self, qwerty, sample_corpus, weights, pinned):
        result = run(qwerty, sample_corpus, weights, pinned)
        for index in pinned:
            assert result.best_layout.runes[index] == qwerty.runes[index]
        assert sorted(result.best_layout.runes) == sorted(qwerty.runes)

    def test_pinned_slots_hold_after_every_swap(self, qwerty, sample_corpus, weights, pinned,
                                                monkeypatch):
        expected = {index: qwerty.runes[index] for index in pinned}
        plain_swap = SplitLayout.swap
        swaps = []

        def checked_swap(layout, i, j):
            plain_swap(layout, i, j)
            swaps.append((i, j))
            assert all(layout.runes[index] == rune for index, rune in expected.items())

        monkeypatch.setattr(SplitLayout, "swap", checked_swap)
        run(qwerty, sample_corpus, weights, pinned)
        assert swaps

    def test_normalised_best_score_matches_ranking(self, qwerty, dvorak, sample_corpus, weights,
                                                   pinned):
        references = [qwerty, dvorak]
        norm = reference_normalisation(references, sample_corpus)
        result = run(qwerty, sample_corpus, weights, pinned, normalisation=norm)
        best = result.best_layout.clone("candidate")
        frame = rank_layouts([best], sample_corpus, weights, reference=references)
        assert frame["score"].iloc[0] == pytest.approx(result.best_score)

    def test_input_layout_unchanged(self, qwerty, sample_corpus, weights, pinned):
        before = list(qwerty.runes)
        result = run(qwerty, sample_corpus, weights, pinned)
        assert qwerty.runes == before
        assert result.original_layout == qwerty

    def test_best_score_matches_best_layout(self, qwerty, sample_corpus, weights, pinned):
        result = run(qwerty, sample_corpus, weights, pinned)
        metrics = Analyser(result.best_layout, sample_corpus).metrics
        assert score(metrics, weights) == pytest.approx(result.best_score)

    def test_best_score_never_decreases(self, qwerty, sample_corpus, weights, pinned):
        result = run(qwerty, sample_corpus, weights, pinned, generations=6)
        best = [record.best_score for record in result.history]
        assert best == sorted(best)
        assert all(record.score <= result.best_score + 1e-9 for record in result.history)

    def test_same_seed_same_run(self, qwerty, sample_corpus, weights, pinned):
        first = run(qwerty, sample_corpus, weights, pinned, seed=7)
        second = run(qwerty, sample_corpus, weights, pinned, seed=7)
        assert first.best_layout == second.best_layout
        assert first.best_score == second.best_score
        assert first.score_trajectory() == second.score_trajectory()
        assert first.perturbations == second.perturbations

    def test_sampled_neighbourhood(self, qwerty, sample_corpus, weights, pinned):
        params = BLSParams.defaults(len(FREE), neighbourhood_size=10)
        first = run(qwerty, sample_corpus, weights, pinned, seed=3, params=params)
        second = run(qwerty, sample_corpus, weights, pinned, seed=3, params=params)
        assert first.best_layout == second.best_layout
        assert first.best_score >= first.initial_score

    def test_time_based_seed(self, qwerty, sample_corpus, weights, pinned):
        result = run(qwerty, sample_corpus, weights, pinned, generations=1, seed=0)
        assert result.seed != 0

    def test_time_budget(self, qwerty, sample_corpus, weights, pinned):
        result = optimise(qwerty, sample_corpus, weights, None, pinned,
                          10 ** 6, 1e-6, seed=1)
        assert result.stop_reason == "time budget reached"
        assert result.generations <= 1

    def test_generation_log(self, qwerty, sample_corpus, weights, pinned):
        sink = io.StringIO()
        result = run(qwerty, sample_corpus, weights, pinned, log_sink=sink)
        lines = sink.getvalue().splitlines()
        assert len(lines) == result.generations
        records = [json.loads(line) for line in lines]
        assert [r["generation"] for r in records] == [1, 2, 3, 4]
        assert set(records[0]) == {"generation", "score", "best_score", "elapsed_seconds"}
        assert records[-1]["best_score"] == pytest.approx(result.best_score)


class TestEvaluator:
    def test_scores_are_cached(self, qwerty, sample_corpus, weights):
        evaluator = LayoutEvaluator(sample_corpus, weights, TargetLoads.default())
        first = evaluator(qwerty)
        assert evaluator(qwerty.clone("other")) == first
        assert evaluator.evaluations == 1
        qwerty.swap(13, 14)
        evaluator(qwerty)
        assert evaluator.evaluations == 2


class TestGenerationLogger:
    def test_disabled_without_sink(self):
        log = GenerationLogger(None)
        log.log(GenerationRecord(1, 0.0, 0.0, 0.0))
        assert not log.enabled
        assert log.records_written == 0

    def test_read_back(self, tmp_path):
        path = tmp_path / "run.jsonl"
        with open(path, "w", encoding="utf-8") as f:
            log = GenerationLogger(f)
            log.log(GenerationRecord(1, -2.5, -2.0, 0.1))
            log.log(GenerationRecord(2, -2.1, -2.0, 0.2))
        records = read_generation_log(str(path))
        assert records == [GenerationRecord(1, -2.5, -2.0, 0.1), GenerationRecord(2, -2.1, -2.0, 0.2)]
