"""Shared fixtures for the keycraft test suite."""

from pathlib import Path

import pytest

from keycraft.corpus import Corpus
from keycraft.layout import SplitLayout
from keycraft.targets import TargetLoads
from keycraft.weights import Weights

PROJECT_ROOT = Path(__file__).resolve().parent.parent
CONFIG_PATH = PROJECT_ROOT / "config.yaml"

QWERTY_ROWS = [
    "~ q w e r t y u i o p ~",
    "~ a s d f g h j k l ; '",
    "~ z x c v b n m , . / ~",
    "~ _ ~ ~ ~ ~",
]

DVORAK_ROWS = [
    "~ ' , . p y f g c r l ~",
    "~ a o e u i d h t n s -",
    "~ ; q j k x b m w v z ~",
    "~ _ ~ ~ ~ ~",
]

SAMPLE_TEXT = (
    "The quick brown fox jumps over the lazy dog. "
    "Pack my box with five dozen liquor jugs. "
    "How vexingly quick daft zebras jump! "
    "The five boxing wizards jump quickly, and the dog sleeps."
)


def make_corpus(text: str, name: str = "test") -> Corpus:
    """In-memory corpus keeping every word."""
    return Corpus.from_text(name, text, coverage=100.0)


@pytest.fixture
def corpus_of():
    """Factory building an in-memory corpus from text."""
    return make_corpus


@pytest.fixture
def config_path() -> Path:
    return CONFIG_PATH


@pytest.fixture
def qwerty() -> SplitLayout:
    return SplitLayout.from_rows("qwerty", "rowstag", QWERTY_ROWS)


@pytest.fixture
def dvorak() -> SplitLayout:
    return SplitLayout.from_rows("dvorak", "rowstag", DVORAK_ROWS)


@pytest.fixture
def sample_corpus() -> Corpus:
    return make_corpus(SAMPLE_TEXT, name="sample")


@pytest.fixture
def targets() -> TargetLoads:
    return TargetLoads.default()


@pytest.fixture
def weights() -> Weights:
    return Weights({"SFB": -1.0, "LSB": -0.5, "SFS": -0.4, "ALT": 0.2, "2RL": 0.2, "RED": -0.2})


@pytest.fixture
def qwerty_rows():
    return list(QWERTY_ROWS)
