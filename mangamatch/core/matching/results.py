"""Result builders for the matching system.

Functions to map pipeline scores to confidence values and to serialize
match outcomes for callers.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

from mangamatch.core.models import MatchOutcome, TitleRecord

from .normalizer import normalize_for_matching
from .scorer import round_half_up

TITLE_TYPE_PRIORITY = {
    "english": 100,
    "romaji": 90,
    "native": 80,
    "synonym": 70,
}


def confidence_from_score(score: float) -> int:
    """Map a 0-1 pipeline score to a 0-99 confidence percentage.

    The mapping is banded so that near-perfect scores spread out over the
    90s while weak matches compress into the low range. The sentinel and
    non-positive scores map to 0; nothing maps to 100.

    Args:
        score: Pipeline score (or -1)

    Returns:
        Confidence percentage
    """
    if not score > 0:
        return 0
    if score >= 0.97:
        return 99
    if score >= 0.94:
        return round_half_up(90 + (score - 0.94) * 125)
    if score >= 0.87:
        return round_half_up(80 + (score - 0.87) * 143)
    if score >= 0.75:
        return round_half_up(65 + (score - 0.75) * 125)
    if score >= 0.6:
        return round_half_up(50 + (score - 0.6) * 100)
    if score >= 0.4:
        return round_half_up(30 + (score - 0.4) * 100)
    if score >= 0.2:
        return round_half_up(15 + (score - 0.2) * 75)
    return max(1, round_half_up(score * 75))


def calculate_title_type_priority(
    candidate: TitleRecord,
    query: str,
    similarity: Callable[[str, str], float],
) -> int:
    """Priority of the title type that best matches the query.

    English titles rank above romaji, native and synonyms. When nothing
    scores above 0 the synonym priority is returned.

    Args:
        candidate: Candidate record
        query: Query title
        similarity: Raw 0-100 similarity function

    Returns:
        Priority score (70-100)
    """
    normalized_query = normalize_for_matching(query)

    best_type = "synonym"
    best_similarity = 0.0

    for title, title_type in (
        (candidate.titles.english, "english"),
        (candidate.titles.romaji, "romaji"),
        (candidate.titles.native, "native"),
    ):
        if not title:
            continue
        sim = similarity(normalize_for_matching(title), normalized_query)
        if sim > best_similarity:
            best_similarity = sim
            best_type = title_type

    for synonym in candidate.synonyms:
        if not synonym:
            continue
        sim = similarity(normalize_for_matching(synonym), normalized_query)
        if sim > best_similarity:
            best_similarity = sim
            best_type = "synonym"

    return TITLE_TYPE_PRIORITY[best_type]


def build_outcome_result(outcome: MatchOutcome) -> dict[str, Any]:
    """Serialize a match outcome for callers that exchange JSON.

    Returns:
        Dict with the query, status, selected record and ranked matches
    """
    selected = outcome.selected_match
    return {
        "query": outcome.query,
        "status": outcome.status,
        "selected_match": selected.model_dump(mode="json", by_alias=True) if selected else None,
        "matches": [
            {
                "id": match.id,
                "confidence": match.confidence,
                "manga": match.manga.model_dump(mode="json", by_alias=True),
            }
            for match in outcome.matches
        ],
        "match_date": outcome.match_date,
    }
