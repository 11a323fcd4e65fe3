"""Tests for the composite similarity scorer."""

from __future__ import annotations

import math
import random

from mangamatch.core.matching.config import (
    DEFAULT_SIMILARITY_CONFIG,
    LEGACY_SIMILARITY_CONFIG,
    SimilarityConfig,
)
from mangamatch.core.matching.scorer import CompositeScorer, round_half_up
from mangamatch.core.matching.similarity import dice_coefficient
from mangamatch.core.tracing import TraceEvent, Tracer

WORDS = ["one", "piece", "attack", "on", "titan", "the", "hero", "heroes", "no", "kyojin", "re:zero", "II", "進撃"]


def _random_pairs(count: int, seed: int = 99) -> list[tuple[str, str]]:
    rng = random.Random(seed)

    def title() -> str:
        return " ".join(rng.choice(WORDS) for _ in range(rng.randint(0, 5)))

    return [(title(), title()) for _ in range(count)]


PAIRS = _random_pairs(600)


class TestRoundHalfUp:
    """Test round_half_up()."""

    def test_halves_round_up(self):
        """Test that .5 rounds away from zero for positive values."""
        assert round_half_up(0.5) == 1
        assert round_half_up(2.5) == 3
        assert round_half_up(2.49) == 2


class TestCalculateEnhancedSimilarity:
    """Test CompositeScorer.calculate_enhanced_similarity()."""

    def test_identity(self):
        """Test that identical non-empty input scores 100."""
        scorer = CompositeScorer()
        for title in ("One Piece", "x", "進撃の巨人", "!!!"):
            assert scorer.calculate_enhanced_similarity(title, title) == 100

    def test_empty_input(self):
        """Test that empty input scores 0."""
        scorer = CompositeScorer()
        assert scorer.calculate_enhanced_similarity("", "One Piece") == 0
        assert scorer.calculate_enhanced_similarity(None, "One Piece") == 0

    def test_normalized_equality(self):
        """Test that punctuation and abbreviation differences still score 100."""
        scorer = CompositeScorer()
        assert scorer.calculate_enhanced_similarity("Re:Zero", "Rezero") >= 95
        assert scorer.calculate_enhanced_similarity("One-Piece", "one piece") == 100

    def test_unrelated_titles_score_low(self):
        """Test that unrelated titles stay well below match thresholds."""
        scorer = CompositeScorer()
        assert scorer.calculate_enhanced_similarity("Naruto", "Bleach") < 40

    def test_typo_scores_above_unrelated(self):
        """Test that a transposed letter scores above an unrelated title."""
        scorer = CompositeScorer()
        typo = scorer.calculate_enhanced_similarity("One Piece", "One Peice")
        assert typo > scorer.calculate_enhanced_similarity("Naruto", "Bleach")
        assert typo < 100

    def test_length_penalty_path(self):
        """Test that very different lengths take the penalized Dice path."""
        tracer = Tracer()
        events: list[TraceEvent] = []
        tracer.subscribe(events.append)
        scorer = CompositeScorer(config=SimilarityConfig(debug=True), tracer=tracer)

        short = "abc"
        long = "abc" + "xyz" * 9
        score = scorer.calculate_enhanced_similarity(short, long)

        assert [e.name for e in events] == ["similarity.length_penalty"]
        assert score < dice_coefficient(short, long) * 100
        assert score == round_half_up(dice_coefficient(short, long) * 0.1 * 100)

    def test_breakdown_event(self):
        """Test that debug mode reports every metric."""
        tracer = Tracer()
        events: list[TraceEvent] = []
        tracer.subscribe(events.append)
        scorer = CompositeScorer(config=SimilarityConfig(debug=True), tracer=tracer)

        score = scorer.calculate_enhanced_similarity("One Piece", "One Peice")

        assert len(events) == 1
        assert events[0].name == "similarity.breakdown"
        assert events[0].fields["score"] == score
        assert "jaro_winkler" in events[0].fields

    def test_no_events_without_debug(self):
        """Test that scoring stays silent unless debug is set."""
        tracer = Tracer()
        events: list[TraceEvent] = []
        tracer.subscribe(events.append)
        scorer = CompositeScorer(tracer=tracer)

        scorer.calculate_enhanced_similarity("One Piece", "One Peice")
        assert events == []

    def test_zero_weights(self):
        """Test that a config without weight scores 0."""
        scorer = CompositeScorer()
        zero = SimilarityConfig(*([0.0] * 7))
        assert scorer.calculate_enhanced_similarity("One Piece", "One Peice", zero) == 0

    def test_nan_weight_does_not_raise(self):
        """Test that a NaN weight yields NaN instead of an exception."""
        scorer = CompositeScorer()
        config = DEFAULT_SIMILARITY_CONFIG.with_overrides(exact_match_weight=float("nan"))
        assert math.isnan(scorer.calculate_enhanced_similarity("One Piece", "One Peice", config))

    def test_memoized_per_config(self):
        """Test that different weight sets do not share composite memo entries."""
        scorer = CompositeScorer()
        scorer.calculate_enhanced_similarity("One Piece", "One Peice")
        scorer.calculate_enhanced_similarity("One Piece", "One Peice", LEGACY_SIMILARITY_CONFIG)
        scorer.calculate_enhanced_similarity("One Peice", "One Piece")

        stats = scorer.core.composite_memo.stats()
        assert stats["size"] == 2
        assert stats["hits"] == 1

    def test_symmetric_and_bounded(self):
        """Test symmetry and the 0-100 range over randomized pairs."""
        scorer = CompositeScorer()
        for a, b in PAIRS:
            forward = scorer.calculate_enhanced_similarity(a, b)
            backward = scorer.calculate_enhanced_similarity(b, a)
            assert forward == backward, (a, b)
            assert 0 <= forward <= 100, (a, b)

    def test_symmetric_without_memo(self):
        """Test symmetry of the computed value itself, bypassing the memo."""
        scorer = CompositeScorer(config=SimilarityConfig(debug=True))
        for a, b in PAIRS[:300]:
            assert scorer.calculate_enhanced_similarity(a, b) == scorer.calculate_enhanced_similarity(b, a)
