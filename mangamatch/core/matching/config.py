"""Matching configuration - similarity weights, thresholds and pipeline options."""

from __future__ import annotations

import json
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any

import structlog

logger = structlog.get_logger("mangamatch.matching.config")


@dataclass(frozen=True)
class SimilarityConfig:
    """Weights of the seven similarity metrics.

    Weights need not sum to 1; the composite score divides by their total.
    Pairs whose normalized lengths differ by more than
    ``length_difference_threshold`` skip the metrics and take the
    length-penalty path instead.
    """

    exact_match_weight: float = 0.35
    substring_match_weight: float = 0.12
    word_order_weight: float = 0.08
    character_similarity_weight: float = 0.18
    semantic_weight: float = 0.10
    jaro_winkler_weight: float = 0.10
    ngram_weight: float = 0.07

    length_difference_threshold: float = 0.7

    # Emit per-metric breakdowns through the trace hook (disables composite memo)
    debug: bool = False

    @property
    def weights(self) -> tuple[float, ...]:
        return (
            self.exact_match_weight,
            self.substring_match_weight,
            self.word_order_weight,
            self.character_similarity_weight,
            self.semantic_weight,
            self.jaro_winkler_weight,
            self.ngram_weight,
        )

    @property
    def total_weight(self) -> float:
        return sum(self.weights)

    @property
    def fingerprint(self) -> str:
        """Stable identity of the scoring-relevant fields, for memo keys."""
        return ",".join(repr(v) for v in (*self.weights, self.length_difference_threshold))

    def with_overrides(self, **overrides: Any) -> SimilarityConfig:
        """Copy with any subset of fields replaced; ``None`` values are ignored."""
        known = {f.name for f in fields(self)}
        unknown = set(overrides) - known
        if unknown:
            raise ValueError(f"Unknown similarity config fields: {', '.join(sorted(unknown))}")
        return replace(self, **{k: v for k, v in overrides.items() if v is not None})


# Seven-metric default
DEFAULT_SIMILARITY_CONFIG = SimilarityConfig()

# Earlier five-metric weighting, kept for regression comparisons
LEGACY_SIMILARITY_CONFIG = SimilarityConfig(
    exact_match_weight=0.5,
    substring_match_weight=0.15,
    word_order_weight=0.1,
    character_similarity_weight=0.2,
    semantic_weight=0.05,
    jaro_winkler_weight=0.0,
    ngram_weight=0.0,
)


@dataclass(frozen=True)
class MatchingConfig:
    """Options of the title match pipeline and best-match selection.

    Instances are frozen and may be shared between matchers; derive variants
    with ``dataclasses.replace``.
    """

    # Best-match selection (0-100 confidence)
    confidence_threshold: int = 75
    exact_match_confidence: int = 95
    ambiguity_margin: int = 20
    max_matches: int = 5

    # Title preferences
    prefer_english_titles: bool = True
    prefer_romaji_titles: bool = False
    preferred_title_boost: float = 1.05
    use_alternative_titles: bool = True

    case_sensitive: bool = False
    min_title_length: int = 3

    # Meaningful-word overlap and initialism stages; off reproduces the older pipeline
    enable_extended_matching: bool = True

    # Content filters; novels are always skipped
    ignore_one_shots: bool = False
    ignore_adult_content: bool = False

    # Ranking inclusion (0-1 pipeline score)
    exact_inclusion_threshold: float = 0.6
    regular_inclusion_threshold: float = 0.15
    exact_inclusion_floor: float = 0.75
    fallback_score: float = 0.1


# Default config instance
DEFAULT_CONFIG = MatchingConfig()


def load_matching_config(settings_file: Path) -> MatchingConfig:
    """Load pipeline options from the ``matching`` section of a settings file.

    Missing files, unreadable JSON and unknown keys fall back to defaults.

    Args:
        settings_file: Path to settings.json

    Returns:
        MatchingConfig instance
    """
    if not settings_file.exists():
        return DEFAULT_CONFIG

    try:
        with settings_file.open("r", encoding="utf-8") as f:
            all_settings = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        logger.warning("Failed to read matching settings", path=str(settings_file), error=str(e))
        return DEFAULT_CONFIG

    matching_settings = all_settings.get("matching") if isinstance(all_settings, dict) else None
    if not isinstance(matching_settings, dict):
        return DEFAULT_CONFIG

    known = {f.name for f in fields(MatchingConfig)}
    ignored = sorted(set(matching_settings) - known)
    if ignored:
        logger.warning("Ignoring unknown matching settings", keys=ignored)

    return MatchingConfig(**{k: v for k, v in matching_settings.items() if k in known})
