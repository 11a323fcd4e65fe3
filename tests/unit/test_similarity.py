"""Tests for the pairwise similarity metrics."""

from __future__ import annotations

import math
import random

import pytest

from mangamatch.core.matching.similarity import (
    SimilarityCore,
    character_similarity,
    dice_coefficient,
    exact_match,
    jaro_winkler_similarity,
    levenshtein_similarity,
    ngram_similarity,
    semantic_similarity,
    substring_match,
    word_order_similarity,
)

ALPHABET = "abcdefghijklmnopqrstuvwxyz      -:'!.0123456789éüñ進撃の巨人ОПР"
WORDS = ["one", "piece", "attack", "on", "titan", "the", "hero", "heroes", "no", "kyojin", "season", "2", "II"]


def _random_text(rng: random.Random) -> str:
    if rng.random() < 0.5:
        return "".join(rng.choice(ALPHABET) for _ in range(rng.randint(0, 24)))
    return " ".join(rng.choice(WORDS) for _ in range(rng.randint(0, 6)))


def _random_pairs(count: int, seed: int = 1234) -> list[tuple[str, str]]:
    rng = random.Random(seed)
    return [(_random_text(rng), _random_text(rng)) for _ in range(count)]


PAIRS = _random_pairs(1200)


class TestMetrics:
    """Test individual metric values."""

    def test_dice(self):
        """Test the bigram Dice coefficient."""
        assert dice_coefficient("night", "nacht") == pytest.approx(0.25)
        assert dice_coefficient("one piece", "onepiece") == 1.0
        assert dice_coefficient("a", "b") == 0.0

    def test_levenshtein(self):
        """Test normalized Levenshtein similarity."""
        assert levenshtein_similarity("kitten", "sitting") == pytest.approx(1 - 3 / 7)
        assert levenshtein_similarity("", "abc") == 0.0
        assert levenshtein_similarity("same", "same") == 1.0

    def test_exact_match(self):
        """Test equality and containment ratio."""
        assert exact_match("onepiece", "onepiece") == 1.0
        assert exact_match("onepiece", "onepiecefilmred") == pytest.approx(8 / 15)
        assert exact_match("naruto", "bleach") == 0.0

    def test_substring_match(self):
        """Test longest common substring over the longer length."""
        assert substring_match("abcdef", "zcdez") == pytest.approx(3 / 6)
        assert substring_match("piece", "onepiece") == pytest.approx(5 / 8)
        assert substring_match("", "abc") == 0.0

    def test_word_order(self):
        """Test Jaccard similarity of meaningful words."""
        assert word_order_similarity("One Piece", "Piece One") == 1.0
        assert word_order_similarity("Attack on Titan", "Titan Attack Force") == pytest.approx(2 / 3)
        assert word_order_similarity("the", "a") == 1.0
        assert word_order_similarity("Naruto", "") == 0.0

    def test_character_similarity(self):
        """Test the Dice and Levenshtein average."""
        expected = (dice_coefficient("naruto", "naruta") + levenshtein_similarity("naruto", "naruta")) / 2
        assert character_similarity("naruto", "naruta") == pytest.approx(expected)
        assert character_similarity("", "") == 1.0
        assert character_similarity("abc", "") == 0.0

    def test_jaro_winkler(self):
        """Test the classic Jaro-Winkler reference pair."""
        assert jaro_winkler_similarity("martha", "marhta") == pytest.approx(0.9611, abs=1e-4)
        assert jaro_winkler_similarity("", "abc") == 0.0

    def test_ngram(self):
        """Test trigram Jaccard with the short-string fallbacks."""
        assert ngram_similarity("abcd", "abce") == pytest.approx(1 / 3)
        assert ngram_similarity("ab", "ab") == 1.0
        assert ngram_similarity("a", "b") == 0.0

    def test_semantic_stems(self):
        """Test that inflected forms count as near matches."""
        assert semantic_similarity("Shield Heroes", "Shield Hero") == pytest.approx(0.7 * (1 + 0.95) / 2 + 0.3)
        assert semantic_similarity("Naruto", "Bleach") == 0.0


class TestProperties:
    """Property tests over randomized ASCII and Unicode pairs."""

    @pytest.mark.parametrize(
        "metric",
        [
            dice_coefficient,
            levenshtein_similarity,
            exact_match,
            substring_match,
            word_order_similarity,
            character_similarity,
            jaro_winkler_similarity,
            ngram_similarity,
            semantic_similarity,
        ],
    )
    def test_symmetric_and_bounded(self, metric):
        """Test that every metric is symmetric and within [0, 1]."""
        for a, b in PAIRS:
            forward = metric(a, b)
            backward = metric(b, a)
            assert forward == backward, (a, b)
            assert math.isfinite(forward), (a, b)
            assert 0.0 <= forward <= 1.0, (a, b)

    def test_core_symmetric(self):
        """Test that memoized metrics give the same answer in both orders."""
        core = SimilarityCore()
        for a, b in PAIRS[:300]:
            assert core.all_metrics(a, b) == core.all_metrics(b, a)


class TestSimilarityCore:
    """Test SimilarityCore memoization."""

    def test_memoizes_metrics(self):
        """Test that repeated calls hit the memo."""
        core = SimilarityCore()
        core.character("One Piece", "One Pace")
        core.character("One Pace", "One Piece")

        stats = core.stats()["character"]
        assert stats["size"] == 1
        assert stats["hits"] == 1

    def test_normalized_metrics_share_entries(self):
        """Test that inputs with the same canonical form share a memo entry."""
        core = SimilarityCore()
        core.exact("One Piece", "Naruto")
        core.exact("one-piece", "NARUTO")

        assert core.stats()["exact"]["size"] == 1

    def test_all_metrics_order(self):
        """Test that all_metrics lists the seven metrics in weight order."""
        core = SimilarityCore()
        assert list(core.all_metrics("a b", "b a")) == [
            "exact",
            "substring",
            "word_order",
            "character",
            "semantic",
            "jaro_winkler",
            "ngram",
        ]

    def test_memo_size_bound(self):
        """Test that the memos respect their size bound."""
        core = SimilarityCore(memo_max_size=2)
        for title in ("alpha", "beta", "gamma", "delta"):
            core.jaro_winkler(title, "omega")
        assert core.stats()["jaro_winkler"]["size"] == 2

    def test_clear(self):
        """Test that clear empties every memo."""
        core = SimilarityCore()
        core.all_metrics("One Piece", "One Pace")
        core.clear()
        assert all(stats["size"] == 0 for stats in core.stats().values())
