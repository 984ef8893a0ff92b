"""Tests for tokenization, coverage pruning, n-gram counting and caching."""

import json
import os

import pytest

from keycraft.corpus import (
    Corpus, cache_path_for, count_ngrams, new_corpus, select_by_coverage,
    tokenize, validate_coverage,
)


class TestTokenize:
    def test_lowercases_and_splits_on_punctuation(self):
        assert tokenize("Hello, World! Hello.") == ["hello", "world", "hello"]

    def test_keeps_inner_apostrophes(self):
        assert tokenize("Don't stop rock'n'roll") == ["don't", "stop", "rock'n'roll"]

    def test_typographic_apostrophe_is_folded(self):
        assert tokenize("it’s") == ["it's"]

    def test_leading_apostrophe_dropped_trailing_kept_once(self):
        assert tokenize("'90s dogs''") == ["90s", "dogs'"]

    def test_underscore_separates_words(self):
        assert tokenize("snake_case") == ["snake", "case"]

    def test_non_latin_letters(self):
        assert tokenize("Grüße, Ελλάδα") == ["grüße", "ελλάδα"]

    def test_empty(self):
        assert tokenize("") == []
        assert tokenize("... --- !!!") == []


class TestCoverage:
    COUNTS = {"the": 5, "cat": 3, "dog": 2}

    def test_keeps_prefix_until_coverage_reached(self):
        assert select_by_coverage(self.COUNTS, 50) == {"the": 5}
        assert select_by_coverage(self.COUNTS, 80) == {"the": 5, "cat": 3}
        assert select_by_coverage(self.COUNTS, 100) == self.COUNTS

    def test_lower_coverage_is_subset_of_higher(self):
        low = select_by_coverage(self.COUNTS, 60)
        high = select_by_coverage(self.COUNTS, 90)
        assert set(low) <= set(high)

    def test_ties_broken_by_word(self):
        assert select_by_coverage({"b": 1, "a": 1}, 50) == {"a": 1}

    def test_empty_counts(self):
        assert select_by_coverage({}, 98) == {}

    @pytest.mark.parametrize("coverage", [0, -5, 100.5, "abc", None])
    def test_invalid_coverage(self, coverage):
        with pytest.raises(ValueError):
            validate_coverage(coverage)

    def test_valid_coverage(self):
        assert validate_coverage("98") == 98.0
        assert validate_coverage(100) == 100.0


class TestNgrams:
    def test_counts_weighted_by_word_frequency(self):
        tables = count_ngrams({"abcd": 2})
        assert tables["unigrams"] == {"a": 2, "b": 2, "c": 2, "d": 2}
        assert tables["bigrams"] == {"ab": 2, "bc": 2, "cd": 2}
        assert tables["trigrams"] == {"abc": 2, "bcd": 2}
        assert tables["skipgrams"] == {"ac": 2, "bd": 2}

    def test_ngrams_do_not_cross_word_boundaries(self):
        corpus = Corpus.from_text("t", "ab cd", coverage=100)
        assert "bc" not in corpus.bigrams
        assert corpus.total_bigrams == 2
        assert corpus.total_trigrams == 0

    def test_pangram_word_counts(self):
        text = "the quick brown fox jumps over the lazy dog the five boxing wizards jump quickly"
        corpus = Corpus.from_text("t", text, coverage=100)
        assert corpus.words["the"] == 3
        assert corpus.words["jump"] == 1
        assert corpus.words["jumps"] == 1

    def test_word_counts_and_totals(self, sample_corpus):
        assert sample_corpus.words["the"] == 4
        assert sample_corpus.total_unigrams == sum(sample_corpus.unigrams.values())
        assert sample_corpus.vocabulary_size == len(sample_corpus.words)

    def test_coverage_prunes_rare_words(self):
        text = "the " * 98 + "rare zebra"
        corpus = Corpus.from_text("t", text, coverage=98)
        assert set(corpus.words) == {"the"}
        assert corpus.vocabulary_size == 3
        assert corpus.source_word_count == 100

    def test_top(self, corpus_of):
        corpus = corpus_of("aa ab ab")
        assert corpus.top("bigrams", 1) == [("ab", 2)]
        assert corpus.top("words", 5) == [("ab", 2), ("aa", 1)]


class TestCache:
    def write_source(self, tmp_path, text="the cat and the hat"):
        source = tmp_path / "corpus.txt"
        source.write_text(text, encoding="utf-8")
        return source

    def test_cache_path_includes_coverage(self, tmp_path):
        assert cache_path_for(tmp_path / "c.txt", 98).name == "c.txt.cov98.json"
        assert cache_path_for(tmp_path / "c.txt", 97.5).name == "c.txt.cov97.5.json"

    def test_build_then_reuse_cache(self, tmp_path):
        source = self.write_source(tmp_path)
        first = new_corpus("c", source, coverage=100)
        assert not first.loaded_from_cache
        assert cache_path_for(source, 100).is_file()

        second = new_corpus("c", source, coverage=100)
        assert second.loaded_from_cache
        for table in ("words", "unigrams", "bigrams", "trigrams", "skipgrams"):
            assert getattr(second, table) == getattr(first, table)
            assert getattr(second, f"total_{table}") == getattr(first, f"total_{table}")
        assert second.vocabulary_size == first.vocabulary_size

    def test_force_reload_ignores_cache(self, tmp_path):
        source = self.write_source(tmp_path)
        new_corpus("c", source, coverage=100)
        assert not new_corpus("c", source, force_reload=True, coverage=100).loaded_from_cache

    def test_different_coverage_uses_different_cache(self, tmp_path):
        source = self.write_source(tmp_path)
        new_corpus("c", source, coverage=100)
        corpus = new_corpus("c", source, coverage=50)
        assert not corpus.loaded_from_cache
        assert cache_path_for(source, 50).is_file()

    def test_stale_cache_is_rebuilt(self, tmp_path):
        source = self.write_source(tmp_path)
        new_corpus("c", source, coverage=100)
        cache = cache_path_for(source, 100)
        newer = cache.stat().st_mtime + 10
        source.write_text("completely new words", encoding="utf-8")
        os.utime(source, (newer, newer))

        corpus = new_corpus("c", source, coverage=100)
        assert not corpus.loaded_from_cache
        assert "new" in corpus.words

    def test_corrupt_cache_is_rebuilt(self, tmp_path):
        source = self.write_source(tmp_path)
        cache = cache_path_for(source, 100)
        cache.write_text("{not json", encoding="utf-8")
        newer = source.stat().st_mtime + 10
        os.utime(cache, (newer, newer))

        corpus = new_corpus("c", source, coverage=100)
        assert not corpus.loaded_from_cache
        assert corpus.words["the"] == 2
        with open(cache, encoding="utf-8") as f:
            assert json.load(f)["words"]["the"] == 2

    def test_cache_without_source(self, tmp_path):
        source = self.write_source(tmp_path)
        new_corpus("c", source, coverage=100)
        source.unlink()
        assert new_corpus("c", source, coverage=100).loaded_from_cache

    def test_corrupt_cache_without_source(self, tmp_path):
        source = tmp_path / "gone.txt"
        cache_path_for(source, 100).write_text("[]", encoding="utf-8")
        with pytest.raises(FileNotFoundError):
            new_corpus("c", source, coverage=100)

    def test_cache_with_wrong_coverage_rejected(self, tmp_path):
        corpus = Corpus.from_text("c", "a b c", coverage=100)
        path = tmp_path / "snapshot.json"
        corpus.save_cache(path)
        with pytest.raises(ValueError):
            Corpus.load_cache(path, "c", 90)

    def test_missing_source(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            new_corpus("c", tmp_path / "missing.txt")

    @pytest.mark.parametrize("filename", ["", "   ", None])
    def test_empty_filename(self, filename):
        with pytest.raises(ValueError):
            new_corpus("c", filename)

    def test_invalid_coverage(self, tmp_path):
        source = self.write_source(tmp_path)
        with pytest.raises(ValueError):
            new_corpus("c", source, coverage=0)
