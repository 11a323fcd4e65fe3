"""Composite similarity: the seven metrics folded into one 0-100 score."""

from __future__ import annotations

import math

from mangamatch.core.tracing import Tracer

from .config import DEFAULT_SIMILARITY_CONFIG, SimilarityConfig
from .memo import pair_key
from .similarity import SimilarityCore, dice_coefficient


def round_half_up(value: float) -> int:
    return math.floor(value + 0.5)


class CompositeScorer:
    """Weighted combination of the Similarity Core metrics.

    Args:
        core: Memoized metrics (a fresh core is created when omitted)
        config: Default weights for calls that do not pass their own
        tracer: Receives breakdown events when ``config.debug`` is set
    """

    def __init__(
        self,
        core: SimilarityCore | None = None,
        config: SimilarityConfig = DEFAULT_SIMILARITY_CONFIG,
        tracer: Tracer | None = None,
    ):
        self.core = core or SimilarityCore()
        self.config = config
        self.tracer = tracer or Tracer()

    def calculate_enhanced_similarity(
        self,
        a: str | None,
        b: str | None,
        config: SimilarityConfig | None = None,
    ) -> float:
        """Score two titles from 0 to 100.

        Empty input scores 0, identical raw or normalized input scores 100.
        When the normalized lengths differ too much (ratio below
        ``length_difference_threshold``) the metrics are skipped and the
        Dice coefficient scaled by the length ratio is returned instead, so
        a short fragment cannot score high against a long title on shared
        characters alone.

        Args:
            a: First title
            b: Second title
            config: Weights to use (defaults to the scorer's config)

        Returns:
            Rounded score in [0, 100], or NaN when the weights are not finite
        """
        config = config or self.config

        if not a or not b:
            return 0.0
        if a == b:
            return 100.0

        if config.debug:
            return self._compute(a, b, config)

        key = pair_key(a, b, config.fingerprint)
        return self.core.composite_memo.get_or_compute(key, lambda: self._compute(a, b, config))

    def _compute(self, a: str, b: str, config: SimilarityConfig) -> float:
        norm_a = self.core.normalize(a)
        norm_b = self.core.normalize(b)

        if norm_a == norm_b:
            return 100.0
        if not norm_a or not norm_b:
            return 0.0

        length_ratio = min(len(norm_a), len(norm_b)) / max(len(norm_a), len(norm_b))
        if length_ratio < config.length_difference_threshold:
            dice = dice_coefficient(norm_a, norm_b)
            penalized = float(round_half_up(dice * length_ratio * 100))
            if config.debug:
                self.tracer.emit(
                    "similarity.length_penalty",
                    a=a,
                    b=b,
                    length_ratio=round(length_ratio, 3),
                    dice=round(dice, 3),
                    score=penalized,
                )
            return penalized

        metrics = self.core.all_metrics(a, b)

        total_weight = config.total_weight
        if total_weight == 0:
            return 0.0

        weighted = sum(value * weight for value, weight in zip(metrics.values(), config.weights)) / total_weight
        if not math.isfinite(weighted):
            return math.nan

        final = float(min(100, max(0, round_half_up(weighted * 100))))

        if config.debug:
            self.tracer.emit(
                "similarity.breakdown",
                a=a,
                b=b,
                **{name: round(value * 100, 1) for name, value in metrics.items()},
                score=final,
            )

        return final
