"""Pairwise similarity metrics.

Every metric is a pure function of two strings returning a value in [0, 1].
Arguments are put in a canonical order before computing, so
``metric(a, b) == metric(b, a)`` holds exactly, not just mathematically.

``SimilarityCore`` wraps the metrics with one bounded memo per metric. Most
metrics read the canonical ``normalize`` form; word order and semantic
similarity need word boundaries and therefore key on the raw pair.
"""

from __future__ import annotations

from collections import Counter
from collections.abc import Callable

from rapidfuzz.distance import JaroWinkler, Levenshtein

from .memo import LRUMemo, pair_key
from .normalizer import extract_meaningful_words, normalize
from .stemmer import stem

JARO_WINKLER_PREFIX_WEIGHT = 0.1

# Semantic word scoring
STEM_MATCH_SCORE = 0.95
JARO_WINKLER_WORD_THRESHOLD = 0.85
JARO_WINKLER_WORD_FACTOR = 0.9
DICE_WORD_THRESHOLD = 0.8
DICE_WORD_FACTOR = 0.85
SEMANTIC_MATCH_WEIGHT = 0.7
SEMANTIC_STEM_WEIGHT = 0.3


def _ordered(a: str, b: str) -> tuple[str, str]:
    return (a, b) if a <= b else (b, a)


def _bigrams(text: str) -> Counter[str]:
    return Counter(text[i : i + 2] for i in range(len(text) - 1))


def dice_coefficient(a: str, b: str) -> float:
    """Sørensen-Dice coefficient over character bigram multisets.

    Whitespace is ignored. Equal strings score 1; a string shorter than two
    characters has no bigrams and scores 0 against anything else.
    """
    a = "".join(a.split())
    b = "".join(b.split())
    if a == b:
        return 1.0
    if len(a) < 2 or len(b) < 2:
        return 0.0

    a, b = _ordered(a, b)
    overlap = sum((_bigrams(a) & _bigrams(b)).values())
    return (2.0 * overlap) / (len(a) + len(b) - 2)


def levenshtein_similarity(a: str, b: str) -> float:
    """``1 - distance / max(len)``."""
    if a == b:
        return 1.0
    longest = max(len(a), len(b))
    if longest == 0 or not a or not b:
        return 0.0
    a, b = _ordered(a, b)
    return 1.0 - Levenshtein.distance(a, b) / longest


def exact_match(norm_a: str, norm_b: str) -> float:
    """1 for equal forms, length ratio when one contains the other, else 0."""
    if norm_a == norm_b:
        return 1.0
    if norm_a in norm_b or norm_b in norm_a:
        return min(len(norm_a), len(norm_b)) / max(len(norm_a), len(norm_b))
    return 0.0


def substring_match(norm_a: str, norm_b: str) -> float:
    """Longest common substring length over the longer length.

    Uses a rolling two-row table sized by the shorter string and stops as
    soon as the whole shorter string has matched.
    """
    if not norm_a or not norm_b:
        return 0.0

    norm_a, norm_b = _ordered(norm_a, norm_b)
    short, long = (norm_a, norm_b) if len(norm_a) <= len(norm_b) else (norm_b, norm_a)
    target = len(short)

    longest = 0
    previous = [0] * (target + 1)
    for long_char in long:
        current = [0] * (target + 1)
        for j, short_char in enumerate(short, start=1):
            if long_char == short_char:
                run = previous[j - 1] + 1
                current[j] = run
                if run > longest:
                    longest = run
                    if longest == target:
                        return longest / len(long)
        previous = current

    return longest / len(long)


def word_order_similarity(raw_a: str, raw_b: str) -> float:
    """Jaccard similarity of the meaningful-word sets of two raw titles."""
    words_a = set(extract_meaningful_words(raw_a))
    words_b = set(extract_meaningful_words(raw_b))

    if not words_a and not words_b:
        return 1.0
    if not words_a or not words_b:
        return 0.0

    return len(words_a & words_b) / len(words_a | words_b)


def character_similarity(norm_a: str, norm_b: str) -> float:
    """Average of the Dice coefficient and Levenshtein similarity."""
    if not norm_a and not norm_b:
        return 1.0
    if not norm_a or not norm_b:
        return 0.0

    dice = dice_coefficient(norm_a, norm_b)
    if dice == 1.0:
        return 1.0
    return (dice + levenshtein_similarity(norm_a, norm_b)) / 2


def jaro_winkler_similarity(norm_a: str, norm_b: str) -> float:
    """Jaro-Winkler similarity with a 0.1 prefix weight (prefix capped at 4)."""
    if norm_a == norm_b:
        return 1.0
    if not norm_a or not norm_b:
        return 0.0
    norm_a, norm_b = _ordered(norm_a, norm_b)
    return JaroWinkler.similarity(norm_a, norm_b, prefix_weight=JARO_WINKLER_PREFIX_WEIGHT)


def ngram_similarity(norm_a: str, norm_b: str) -> float:
    """Jaccard similarity of character trigram sets.

    Falls back to bigrams when the shorter string has fewer than three
    characters, and to plain equality below two.
    """
    shorter = min(len(norm_a), len(norm_b))
    if shorter < 2:
        return 1.0 if norm_a == norm_b else 0.0

    n = 3 if shorter >= 3 else 2
    grams_a = {norm_a[i : i + n] for i in range(len(norm_a) - n + 1)}
    grams_b = {norm_b[i : i + n] for i in range(len(norm_b) - n + 1)}
    return len(grams_a & grams_b) / len(grams_a | grams_b)


def _best_word_match(word: str, candidates: list[str]) -> float:
    best = 0.0
    word_stem = stem(word)
    for other in candidates:
        if word == other:
            return 1.0

        score = 0.0
        if word_stem == stem(other):
            score = STEM_MATCH_SCORE
        else:
            jw = jaro_winkler_similarity(word, other)
            if jw > JARO_WINKLER_WORD_THRESHOLD:
                score = jw * JARO_WINKLER_WORD_FACTOR
            dice = dice_coefficient(word, other)
            if dice > DICE_WORD_THRESHOLD:
                score = max(score, dice * DICE_WORD_FACTOR)
        best = max(best, score)
    return best


def semantic_similarity(raw_a: str, raw_b: str) -> float:
    """Word-level best-match score blended with stem-set overlap.

    Each meaningful word of the shorter side is matched against the other
    side by exact equality, equal Porter stem, Jaro-Winkler or Dice, keeping
    its best score. The result is ``0.7 * mean best match + 0.3 * Jaccard of
    the stem sets``.
    """
    raw_a, raw_b = _ordered(raw_a, raw_b)
    words_a = extract_meaningful_words(raw_a)
    words_b = extract_meaningful_words(raw_b)

    if not words_a and not words_b:
        return 1.0
    if not words_a or not words_b:
        return 0.0

    if len(words_b) < len(words_a):
        words_a, words_b = words_b, words_a

    mean_best = sum(_best_word_match(word, words_b) for word in words_a) / len(words_a)

    stems_a = {stem(w) for w in words_a}
    stems_b = {stem(w) for w in words_b}
    stem_overlap = len(stems_a & stems_b) / len(stems_a | stems_b)

    return SEMANTIC_MATCH_WEIGHT * mean_best + SEMANTIC_STEM_WEIGHT * stem_overlap


class SimilarityCore:
    """Memoized access to the seven metrics and to ``normalize``.

    Each metric has its own bounded LRU memo, plus one for normalized forms
    and one for composite scores (filled by the composite scorer).
    """

    MEMO_NAMES = (
        "normalize",
        "exact",
        "substring",
        "word_order",
        "character",
        "semantic",
        "jaro_winkler",
        "ngram",
        "composite",
    )

    def __init__(self, memo_max_size: int = 5000):
        self.memos: dict[str, LRUMemo] = {
            name: LRUMemo(name, memo_max_size) for name in self.MEMO_NAMES
        }

    def normalize(self, text: str | None) -> str:
        if not text:
            return ""
        return self.memos["normalize"].get_or_compute(text, lambda: normalize(text))

    def _normalized_metric(self, name: str, fn: Callable[[str, str], float], a: str, b: str) -> float:
        norm_a = self.normalize(a)
        norm_b = self.normalize(b)
        return self.memos[name].get_or_compute(pair_key(norm_a, norm_b), lambda: fn(norm_a, norm_b))

    def _raw_metric(self, name: str, fn: Callable[[str, str], float], a: str, b: str) -> float:
        return self.memos[name].get_or_compute(pair_key(a, b), lambda: fn(a, b))

    def exact(self, a: str, b: str) -> float:
        return self._normalized_metric("exact", exact_match, a, b)

    def substring(self, a: str, b: str) -> float:
        return self._normalized_metric("substring", substring_match, a, b)

    def word_order(self, a: str, b: str) -> float:
        return self._raw_metric("word_order", word_order_similarity, a, b)

    def character(self, a: str, b: str) -> float:
        return self._normalized_metric("character", character_similarity, a, b)

    def semantic(self, a: str, b: str) -> float:
        return self._raw_metric("semantic", semantic_similarity, a, b)

    def jaro_winkler(self, a: str, b: str) -> float:
        return self._normalized_metric("jaro_winkler", jaro_winkler_similarity, a, b)

    def ngram(self, a: str, b: str) -> float:
        return self._normalized_metric("ngram", ngram_similarity, a, b)

    def all_metrics(self, a: str, b: str) -> dict[str, float]:
        """All seven metric values for a raw pair, in weight order."""
        return {
            "exact": self.exact(a, b),
            "substring": self.substring(a, b),
            "word_order": self.word_order(a, b),
            "character": self.character(a, b),
            "semantic": self.semantic(a, b),
            "jaro_winkler": self.jaro_winkler(a, b),
            "ngram": self.ngram(a, b),
        }

    @property
    def composite_memo(self) -> LRUMemo:
        return self.memos["composite"]

    def clear(self) -> None:
        for memo in self.memos.values():
            memo.clear()

    def stats(self) -> dict[str, dict[str, int | float]]:
        return {name: memo.stats() for name, memo in self.memos.items()}
