"""Tests for weighted scoring and metric normalisation."""

import pytest

from keycraft.analyser import Analyser
from keycraft.scorer import Normalisation, ScoreResult, score, score_analyser
from keycraft.weights import Weights


def test_score_is_linear():
    weights = Weights({"SFB": -1.0, "ALT": 2.0})
    assert score({"SFB": 3.0, "ALT": 4.0}, weights) == pytest.approx(5.0)
    assert score({"SFB": 6.0, "ALT": 8.0}, weights) == pytest.approx(10.0)


def test_unweighted_metrics_ignored():
    assert score({"SFB": 3.0, "LSB": 100.0}, Weights({"SFB": -1.0})) == pytest.approx(-3.0)


def test_zero_weights_score_zero():
    assert score({"SFB": 3.0}, Weights()) == 0.0
    assert score({"SFB": 3.0}, Weights({"SFB": 0})) == 0.0


def test_missing_metric_counts_as_zero():
    assert score({}, Weights({"SFB": -1.0})) == 0.0


def test_normalisation():
    norm = Normalisation(medians={"SFB": 2.0, "ALT": 5.0}, iqrs={"SFB": 4.0, "ALT": 0.0})
    assert norm.apply("SFB", 6.0) == pytest.approx(1.0)
    # zero spread drops the metric
    assert norm.apply("ALT", 7.0) == 0.0
    weights = Weights({"SFB": -1.0, "ALT": 1.0})
    assert score({"SFB": 6.0, "ALT": 7.0}, weights, norm) == pytest.approx(-1.0)


def test_near_zero_spread_is_dropped():
    norm = Normalisation(medians={"SFB": 1.0}, iqrs={"SFB": 1e-12})
    assert score({"SFB": 9.0}, Weights({"SFB": -1.0}), norm) == 0.0


def test_score_analyser_matches_score(qwerty, sample_corpus, weights):
    analyser = Analyser(qwerty, sample_corpus)
    result = score_analyser(analyser, weights)
    assert isinstance(result, ScoreResult)
    assert result.primary_score == pytest.approx(score(analyser.metrics, weights))
    assert sum(result.components.values()) == pytest.approx(result.primary_score)
    assert result.layout_name == "qwerty"
    assert result.metadata["layout_type"] == "rowstag"


def test_score_result_accessors():
    result = ScoreResult(primary_score=1.5, components={"SFB": -0.5}, layout_name="x")
    assert result.get_score() == 1.5
    assert result.get_score("SFB") == -0.5
    with pytest.raises(KeyError):
        result.get_score("ALT")
    assert result.to_dict()["component_SFB"] == -0.5
    assert "Score: 1.500000" in result.summary()


@pytest.mark.parametrize("k", [2.0, -0.5, 10.0])
def test_scaling_weights_scales_score(qwerty, sample_corpus, weights, k):
    metrics = Analyser(qwerty, sample_corpus).metrics
    assert score(metrics, weights.scaled(k)) == pytest.approx(k * score(metrics, weights))
