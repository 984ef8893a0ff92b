"""End-to-end tests of the keycraft command."""

import json
import shutil

import pandas as pd
import pytest

from keycraft.cli import main


@pytest.fixture
def corpus_file(tmp_path, config_path):
    path = tmp_path / "sample.txt"
    shutil.copy(config_path.parent / "data" / "corpus" / "sample.txt", path)
    return str(path)


def cli(config_path, *args):
    return main([args[0], "--config", str(config_path), "--quiet", *args[1:]])


def test_corpus(config_path, corpus_file, capsys):
    assert cli(config_path, "corpus", "--corpus", corpus_file, "--top", "3") == 0
    lines = capsys.readouterr().out.splitlines()
    start = lines.index("Top 3 bigrams:")
    assert len(lines[start + 1:]) == 3


def test_analyse(config_path, corpus_file, capsys):
    assert cli(config_path, "analyse", "--layout", "qwerty", "--corpus", corpus_file,
               "--details", "SFB") == 0
    out = capsys.readouterr().out
    assert "Score:" in out
    assert "SFB contributors:" in out


def test_analyse_score_only(config_path, corpus_file, capsys):
    assert cli(config_path, "analyse", "--layout", "dvorak", "--corpus", corpus_file,
               "--output-format", "score_only", "--weights", "SFB=0,ALT=1") == 0
    float(capsys.readouterr().out.strip())


def test_rank_csv(config_path, corpus_file, capsys):
    assert cli(config_path, "rank", "--corpus", corpus_file, "--csv") == 0
    lines = capsys.readouterr().out.strip().splitlines()
    assert lines[0].startswith("rank,name,score")
    assert len(lines) == 5


def test_rank_to_file(config_path, corpus_file, tmp_path):
    output = tmp_path / "ranking.csv"
    assert cli(config_path, "rank", "--corpus", corpus_file, "--layouts", "qwerty,canary",
               "--output", str(output)) == 0
    assert len(output.read_text(encoding="utf-8").strip().splitlines()) == 3


def test_optimise(config_path, corpus_file, tmp_path, capsys):
    log = tmp_path / "run.jsonl"
    assert cli(config_path, "optimise", "--layout", "qwerty", "--corpus", corpus_file,
               "--free", "etaoins", "--generations", "2", "--time", "1", "--seed", "5",
               "--log", str(log), "--name", "mine") == 0
    out = capsys.readouterr().out
    assert "Best score:" in out
    assert "mine (rowstag)" in out
    records = [json.loads(line) for line in log.read_text(encoding="utf-8").splitlines()]
    assert len(records) == 2


def test_flip(config_path, capsys):
    assert cli(config_path, "flip", "--layout", "qwerty") == 0
    assert "qwerty-flipped (rowstag)" in capsys.readouterr().out


def test_generate(config_path, capsys):
    assert cli(config_path, "generate", "--layout", "canary", "--seed", "7", "--name", "shuffled") == 0
    assert "shuffled (colstag)" in capsys.readouterr().out


def test_unknown_layout_exit_code(config_path, capsys):
    assert cli(config_path, "flip", "--layout", "azerty") == 1
    assert "azerty" in capsys.readouterr().err


def test_missing_corpus_exit_code(config_path, tmp_path):
    assert cli(config_path, "corpus", "--corpus", str(tmp_path / "none.txt")) == 1


def test_missing_config_exit_code(tmp_path):
    assert main(["flip", "--config", str(tmp_path / "none.yaml"), "--layout", "qwerty"]) == 1


@pytest.mark.parametrize("extra", [(), ("--no-normalise",)])
def test_optimise_scores_like_rank(config_path, corpus_file, tmp_path, capsys, extra):
    ranking = tmp_path / "ranking.csv"
    assert cli(config_path, "rank", "--corpus", corpus_file, "--output", str(ranking), *extra) == 0
    frame = pd.read_csv(ranking)
    expected = frame.loc[frame["name"] == "dvorak", "score"].iloc[0]

    assert cli(config_path, "optimise", "--layout", "dvorak", "--corpus", corpus_file,
               "--free", "aoeu", "--generations", "1", "--time", "1", "--seed", "3", *extra) == 0
    out = capsys.readouterr().out
    line = next(line for line in out.splitlines() if line.startswith("Initial score:"))
    assert float(line.split(":")[1]) == pytest.approx(expected, abs=1e-6)
