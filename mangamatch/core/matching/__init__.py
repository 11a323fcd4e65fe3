"""Title matching system for manga catalogue searches.

This module scores catalogue candidates against user-supplied titles with a
memoized seven-metric similarity core, a weighted composite scorer, and a
staged match pipeline with configurable thresholds.
"""

from .config import (
    DEFAULT_CONFIG,
    DEFAULT_SIMILARITY_CONFIG,
    LEGACY_SIMILARITY_CONFIG,
    MatchingConfig,
    SimilarityConfig,
    load_matching_config,
)
from .evaluator import TitleMatcher
from .memo import LRUMemo, pair_key
from .normalizer import create_normalized_titles, normalize, normalize_for_matching, normalize_string
from .results import build_outcome_result, calculate_title_type_priority, confidence_from_score
from .scorer import CompositeScorer, round_half_up
from .similarity import SimilarityCore

__all__ = [
    "MatchingConfig",
    "SimilarityConfig",
    "DEFAULT_CONFIG",
    "DEFAULT_SIMILARITY_CONFIG",
    "LEGACY_SIMILARITY_CONFIG",
    "load_matching_config",
    "TitleMatcher",
    "LRUMemo",
    "pair_key",
    "normalize",
    "normalize_string",
    "normalize_for_matching",
    "create_normalized_titles",
    "build_outcome_result",
    "calculate_title_type_priority",
    "confidence_from_score",
    "CompositeScorer",
    "round_half_up",
    "SimilarityCore",
]
