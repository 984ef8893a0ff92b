#!/usr/bin/env python3
"""
Corpus statistics engine.

Tokenizes text into words, prunes the long tail of rare words by cumulative
coverage, and counts unigrams, bigrams, trigrams and skipgrams inside the
surviving words. Built corpora are cached next to their source as JSON,
one file per (source, coverage) pair.
"""

import json
import logging
import re
from collections import Counter
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Tuple, Union

logger = logging.getLogger(__name__)

DEFAULT_COVERAGE = 98.0
CACHE_VERSION = 1

# Letters and digits of any script, apostrophes allowed inside a word and once at the end
WORD_PATTERN = re.compile(r"[^\W_]+(?:'[^\W_]+)*'?")

_TABLES = ("unigrams", "bigrams", "trigrams", "skipgrams")


def normalize_text(text: str) -> str:
    """Lowercase text and fold typographic apostrophes."""
    return text.lower().replace("’", "'")


def tokenize(text: str) -> List[str]:
    """
    Split text into words.

    Words are runs of letters and digits. Apostrophes are kept inside words,
    a trailing run of apostrophes collapses to one, and leading apostrophes
    are dropped ("'90s" -> "90s").

    Args:
        text: Raw input text

    Returns:
        List of lowercase words in text order
    """
    if not text:
        return []
    return WORD_PATTERN.findall(normalize_text(text))


def validate_coverage(coverage: float) -> float:
    try:
        value = float(coverage)
    except (TypeError, ValueError):
        raise ValueError(f"Coverage must be a number, got {coverage!r}")
    if not 0.0 < value <= 100.0:
        raise ValueError(f"Coverage must be in (0, 100], got {coverage}")
    return value


def select_by_coverage(word_counts: Dict[str, int], coverage: float) -> Dict[str, int]:
    """
    Keep the most frequent words until their cumulative share reaches coverage.

    Words are ranked by descending count, ties by the word itself, so a lower
    coverage always keeps a prefix of what a higher coverage keeps.

    Args:
        word_counts: Word to occurrence count
        coverage: Percentage of word occurrences to retain (0, 100]

    Returns:
        Surviving words with their counts
    """
    total = sum(word_counts.values())
    kept: Dict[str, int] = {}
    if total == 0:
        return kept

    ranked = sorted(word_counts.items(), key=lambda item: (-item[1], item[0]))
    cumulative = 0
    for word, count in ranked:
        kept[word] = count
        cumulative += count
        if cumulative * 100.0 >= coverage * total:
            break
    return kept


def count_ngrams(words: Dict[str, int]) -> Dict[str, Dict[str, int]]:
    """
    Count n-grams within words, weighted by word frequency.

    Skipgrams pair the first and last character of every trigram window.
    """
    unigrams: Counter = Counter()
    bigrams: Counter = Counter()
    trigrams: Counter = Counter()
    skipgrams: Counter = Counter()

    for word, count in words.items():
        for i, char in enumerate(word):
            unigrams[char] += count
            if i + 1 < len(word):
                bigrams[word[i:i + 2]] += count
            if i + 2 < len(word):
                trigrams[word[i:i + 3]] += count
                skipgrams[char + word[i + 2]] += count

    return {
        "unigrams": dict(unigrams),
        "bigrams": dict(bigrams),
        "trigrams": dict(trigrams),
        "skipgrams": dict(skipgrams),
    }


def cache_path_for(source_path: Union[str, Path], coverage: float) -> Path:
    """Side-car cache file for a corpus source at a given coverage."""
    return Path(f"{source_path}.cov{float(coverage):g}.json")


class Corpus:
    """
    N-gram statistics of a text corpus.

    Instances are built once and treated as read-only afterwards; the
    analyser and optimiser share them freely.
    """

    def __init__(self, name: str, words: Dict[str, int], coverage: float = DEFAULT_COVERAGE,
                 source_path: Optional[str] = None,
                 tables: Optional[Dict[str, Dict[str, int]]] = None,
                 vocabulary_size: Optional[int] = None,
                 source_word_count: Optional[int] = None):
        self.name = name
        self.source_path = source_path
        self.coverage = validate_coverage(coverage)
        self.words: Dict[str, int] = dict(words)

        if tables is None:
            tables = count_ngrams(self.words)
        self.unigrams: Dict[str, int] = tables["unigrams"]
        self.bigrams: Dict[str, int] = tables["bigrams"]
        self.trigrams: Dict[str, int] = tables["trigrams"]
        self.skipgrams: Dict[str, int] = tables["skipgrams"]

        self.total_words = sum(self.words.values())
        self.total_unigrams = sum(self.unigrams.values())
        self.total_bigrams = sum(self.bigrams.values())
        self.total_trigrams = sum(self.trigrams.values())
        self.total_skipgrams = sum(self.skipgrams.values())

        self.vocabulary_size = len(self.words) if vocabulary_size is None else vocabulary_size
        self.source_word_count = self.total_words if source_word_count is None else source_word_count
        self.loaded_from_cache = False

    @classmethod
    def from_words(cls, name: str, words: Iterable[str], coverage: float = DEFAULT_COVERAGE,
                   source_path: Optional[str] = None) -> "Corpus":
        coverage = validate_coverage(coverage)
        word_counts = Counter(words)
        kept = select_by_coverage(word_counts, coverage)
        logger.debug(f"Corpus '{name}': kept {len(kept)} of {len(word_counts)} words "
                     f"at {coverage:g}% coverage")
        return cls(name, kept, coverage, source_path=source_path,
                   vocabulary_size=len(word_counts),
                   source_word_count=sum(word_counts.values()))

    @classmethod
    def from_text(cls, name: str, text: str, coverage: float = DEFAULT_COVERAGE,
                  source_path: Optional[str] = None) -> "Corpus":
        """Build an in-memory corpus from raw text (no cache involved)."""
        return cls.from_words(name, tokenize(text), coverage, source_path=source_path)

    def to_dict(self) -> Dict:
        data = {
            "version": CACHE_VERSION,
            "name": self.name,
            "coverage": self.coverage,
            "vocabulary_size": self.vocabulary_size,
            "source_word_count": self.source_word_count,
            "words": self.words,
        }
        for table in _TABLES:
            data[table] = getattr(self, table)
        return data

    def save_cache(self, cache_path: Union[str, Path]) -> None:
        cache_path = Path(cache_path)
        with open(cache_path, "w", encoding="utf-8") as f:
            json.dump(self.to_dict(), f, ensure_ascii=False)
        logger.info(f"Wrote corpus cache {cache_path}")

    @classmethod
    def load_cache(cls, cache_path: Union[str, Path], name: str, coverage: float,
                   source_path: Optional[str] = None) -> "Corpus":
        """
        Load a corpus snapshot written by save_cache().

        Raises:
            OSError: If the file cannot be read
            ValueError: If the file is not a valid snapshot for this coverage
        """
        with open(cache_path, "r", encoding="utf-8") as f:
            data = json.load(f)

        if not isinstance(data, dict) or data.get("version") != CACHE_VERSION:
            raise ValueError(f"Unsupported corpus cache format in {cache_path}")
        if float(data.get("coverage", -1)) != float(coverage):
            raise ValueError(
                f"Corpus cache {cache_path} has coverage {data.get('coverage')}, expected {coverage}"
            )

        tables = {}
        for table in _TABLES + ("words",):
            values = data.get(table)
            if not isinstance(values, dict):
                raise ValueError(f"Corpus cache {cache_path} is missing the '{table}' table")
            tables[table] = {str(k): int(v) for k, v in values.items()}

        corpus = cls(name, tables.pop("words"), coverage, source_path=source_path,
                     tables=tables,
                     vocabulary_size=int(data["vocabulary_size"]),
                     source_word_count=int(data["source_word_count"]))
        corpus.loaded_from_cache = True
        return corpus

    def top(self, table: str, n: int = 10) -> List[Tuple[str, int]]:
        """Most frequent entries of a table ('words', 'unigrams', ...)."""
        values = getattr(self, table)
        return sorted(values.items(), key=lambda item: (-item[1], item[0]))[:n]

    def summary(self) -> str:
        return (f"Corpus '{self.name}': {len(self.words)} words kept of {self.vocabulary_size} "
                f"({self.coverage:g}% coverage), {self.total_unigrams} characters, "
                f"{self.total_bigrams} bigrams, {self.total_trigrams} trigrams")

    def __repr__(self) -> str:
        return f"Corpus({self.name!r}, words={len(self.words)}, coverage={self.coverage:g})"


def new_corpus(name: str, source_path: Union[str, Path], force_reload: bool = False,
               coverage: float = DEFAULT_COVERAGE) -> Corpus:
    """
    Load a corpus from a text file, reusing its cache when possible.

    The cache is used when force_reload is false and it exists, matches the
    coverage and is not older than the source. A missing source is accepted
    as long as a cache exists. An unreadable or corrupt cache is rebuilt.

    Args:
        name: Corpus name
        source_path: Path to the UTF-8 text file
        force_reload: Ignore any existing cache
        coverage: Percentage of word occurrences to keep (0, 100]

    Returns:
        Corpus instance

    Raises:
        ValueError: If the filename is empty or coverage is out of range
        FileNotFoundError: If neither the source nor a usable cache exists
    """
    if source_path is None or str(source_path).strip() == "":
        raise ValueError("Corpus filename cannot be empty")
    coverage = validate_coverage(coverage)

    source = Path(source_path)
    cache = cache_path_for(source, coverage)
    source_exists = source.is_file()

    if not force_reload and cache.is_file():
        if not source_exists or cache.stat().st_mtime >= source.stat().st_mtime:
            try:
                corpus = Corpus.load_cache(cache, name, coverage, source_path=str(source))
                logger.info(f"Loaded corpus '{name}' from cache {cache}")
                return corpus
            except (OSError, ValueError, KeyError, TypeError) as e:
                if not source_exists:
                    raise FileNotFoundError(
                        f"Corpus cache {cache} is unusable ({e}) and source {source} does not exist"
                    )
                logger.warning(f"Ignoring corrupt corpus cache {cache}: {e}")
        else:
            logger.info(f"Corpus cache {cache} is older than {source}, rebuilding")

    if not source_exists:
        raise FileNotFoundError(f"Corpus file not found: {source}")

    with open(source, "r", encoding="utf-8", errors="replace") as f:
        text = f.read()

    corpus = Corpus.from_text(name, text, coverage, source_path=str(source))
    logger.info(corpus.summary())
    try:
        corpus.save_cache(cache)
    except OSError as e:
        logger.warning(f"Could not write corpus cache {cache}: {e}")
    return corpus
