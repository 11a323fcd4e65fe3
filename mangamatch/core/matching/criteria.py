"""Individual match criteria of the title match pipeline.

Each check evaluates one way a query can match a candidate's titles and
returns a ``(score, reason)`` tuple. A score of ``NO_MATCH`` (-1) means the
check found nothing; callers branch on it before using the value.
"""

from __future__ import annotations

import re
from collections.abc import Callable, Sequence

from mangamatch.core.models import NO_MATCH, NormalizedTitle, TitleRecord

from .normalizer import (
    SECONDARY_WORDS,
    extract_match_tokens,
    is_difference_only_articles,
    is_primary_token,
    normalize_for_matching,
    process_title,
    remove_punctuation,
    replace_special_chars,
)
from .similarity import jaro_winkler_similarity

# Raw 0-100 similarity between two strings
SimilarityFn = Callable[[str, str], float]

MIN_CONTAINED_LENGTH = 6

ARTICLE_ONLY_SCORE = 0.97
QUERY_IN_TITLE_SCORE = 0.85
TITLE_IN_QUERY_SCORE = 0.8

WORD_MATCH_EARLY_RETURN = 0.9
SHORT_QUERY_LENGTH = 10

OVERLAP_ACCEPT = 0.6
OVERLAP_MIN_PRIMARY_COVERAGE = 0.6
OVERLAP_MAX_SCORE = 0.98

INITIALISM_EXACT_SCORE = 0.92
INITIALISM_FUZZY_THRESHOLD = 0.8
INITIALISM_MAX_FUZZY_SCORE = 0.9
INITIALISM_MAX_QUERY_LENGTH = 10

SEASON_MATCH_SCORE = 0.95
EARLY_RETURN_SCORE = 0.95

_TITLE_SUFFIX = re.compile(r"@\w+$|[@(（][^)）]*[)）]$")
_NON_ALNUM = re.compile(r"[\W_]+")

SEASON_PATTERNS: tuple[re.Pattern[str], ...] = tuple(
    re.compile(p, re.IGNORECASE)
    for p in (
        r"season\s+(\d+)",
        r"s(\d+)(?:\s|$)",
        r"saison\s+(\d+)",
        r"part\s+(\d+)",
        r"partie\s+(\d+)",
        r"vol\.\s*(\d+)",
        r"volume\s+(\d+)",
        r"tome\s+(\d+)",
        r"\b(?:season|part|tome|vol\.?|volume)?\s*([IVX]+)\b",
        r"arc\s+(\d+)",
        r"cour\s+(\d+)",
    )
)


def _words(text: str) -> list[str]:
    return remove_punctuation(text).lower().split()


def check_title_match(title: str, query: str) -> bool:
    """Check that the query's words appear in the title close together.

    A single-word query only has to be present. For longer queries every
    word must be present, and the words must either keep the query's order
    or at least half of the consecutive pairs must be adjacent in the title.
    """
    title_words = _words(title)
    query_words = _words(query)

    if not query_words:
        return False
    if len(query_words) == 1:
        return query_words[0] in title_words
    if not all(word in title_words for word in query_words):
        return False

    indexes = [title_words.index(word) for word in query_words]
    same_order = all(indexes[i] > indexes[i - 1] for i in range(1, len(indexes)))

    adjacent = sum(1 for i in range(1, len(indexes)) if indexes[i] - indexes[i - 1] == 1)
    proximity = adjacent / (len(query_words) - 1)

    return same_order or proximity >= 0.5


def _lcs_length(words1: Sequence[str], words2: Sequence[str]) -> int:
    previous = [0] * (len(words2) + 1)
    for word1 in words1:
        current = [0] * (len(words2) + 1)
        for j, word2 in enumerate(words2, start=1):
            if word1 == word2:
                current[j] = previous[j - 1] + 1
            else:
                current[j] = max(current[j - 1], previous[j])
        previous = current
    return previous[-1]


def calculate_word_order_similarity(words1: Sequence[str], words2: Sequence[str]) -> float:
    """Score how well two word lists preserve order.

    ``0.5 * LCS ratio + 0.3 * position proximity + 0.2 * coverage``. A word
    at the same index earns full position credit, a displaced word earns
    ``1 - distance / max length``.

    Returns:
        Value in [0, 1]; 0 when either list is empty or nothing is shared
    """
    if not words1 or not words2:
        return 0.0

    common = [word for word in words1 if word in words2]
    if not common:
        return 0.0

    max_length = max(len(words1), len(words2))
    lcs_score = _lcs_length(words1, words2) / max_length

    position_score = 0.0
    for i in range(min(len(words1), len(words2))):
        if words1[i] == words2[i]:
            position_score += 1
        elif words1[i] in words2:
            distance = abs(i - list(words2).index(words1[i]))
            position_score += max(0.0, 1 - distance / max_length)
    position_score /= max_length

    coverage = min(1.0, len(common) / max_length)

    return lcs_score * 0.5 + position_score * 0.3 + coverage * 0.2


def contains_complete_title(normalized_title: str, normalized_query: str) -> float:
    """Share of the title taken up by the query when the title contains it."""
    if normalized_title and normalized_query and normalized_query in normalized_title:
        return len(normalized_query) / len(normalized_title)
    return 0.0


def calculate_word_match_score(title_words: Sequence[str], query_words: Sequence[str]) -> float:
    """Bag-of-words match ratio, rescaled into [0.75, 0.9] or -1.

    Title words of two characters or fewer are ignored. An exact word match
    counts 1 point, a prefix match between words of four or more characters
    counts 0.5.
    """
    matching = 0.0
    for word in title_words:
        if len(word) <= 2:
            continue
        if word in query_words:
            matching += 1
            continue
        for query_word in query_words:
            if (word.startswith(query_word) or query_word.startswith(word)) and min(
                len(word), len(query_word)
            ) >= 4:
                matching += 0.5
                break

    ratio = min(1.0, matching / max(2, min(len(title_words), len(query_words))))
    return 0.75 + (ratio - 0.75) * 0.6 if ratio >= 0.75 else NO_MATCH


def check_season_pattern(query: str, title: str) -> tuple[float, str]:
    """Match titles that differ only by season/part/volume markers."""
    if not any(p.search(query) or p.search(title) for p in SEASON_PATTERNS):
        return NO_MATCH, "No season pattern"

    clean_query = query
    clean_title = title
    for pattern in SEASON_PATTERNS:
        clean_query = pattern.sub("", clean_query).strip()
        clean_title = pattern.sub("", clean_title).strip()

    clean_query = " ".join(remove_punctuation(clean_query.lower()).split())
    clean_title = " ".join(remove_punctuation(clean_title.lower()).split())

    if clean_query and clean_query == clean_title:
        return SEASON_MATCH_SCORE, f"Same series apart from season markers: '{clean_title}'"
    return NO_MATCH, "Season pattern present but base titles differ"


def is_one_shot(record: TitleRecord) -> bool:
    return (
        record.format == "ONE_SHOT"
        or record.chapters == 1
        or (record.chapters is None and record.volumes == 1)
    )


def build_initialisms(title: str) -> set[str]:
    """Initialisms of a title.

    Two variants are built from the non-secondary words: one over every
    word ("Attack on Titan" -> "aot") and one over meaningful words only
    ("at"). Numbers are skipped. Variants shorter than two letters are
    dropped.
    """
    all_words = [w for w in _words(title.replace("-", " ")) if w not in SECONDARY_WORDS]
    meaningful = [w for w in extract_match_tokens(title) if is_primary_token(w)]

    variants = set()
    for words in (all_words, meaningful):
        letters = "".join(w[0] for w in words if not w.isdigit())
        if len(letters) >= 2:
            variants.add(letters)
    return variants


def check_direct_matches(
    normalized_titles: Sequence[NormalizedTitle],
    normalized_query: str,
    query: str,
    candidate: TitleRecord,
) -> tuple[float, str]:
    """Exact normalized equality, or substantial containment either way."""
    reference = candidate.titles.english or candidate.titles.romaji or ""

    for title in normalized_titles:
        text = title.text
        if not text:
            continue

        if text == normalized_query:
            return 1.0, f"Perfect match: '{text}' ({title.source})"

        if normalized_query in text and len(normalized_query) > MIN_CONTAINED_LENGTH:
            if is_difference_only_articles(query, reference):
                return ARTICLE_ONLY_SCORE, f"Article-only difference with '{text}' ({title.source})"
            return QUERY_IN_TITLE_SCORE, f"Query is a substantial part of '{text}' ({title.source})"

        if text in normalized_query and len(text) > MIN_CONTAINED_LENGTH:
            if is_difference_only_articles(query, reference):
                return ARTICLE_ONLY_SCORE, f"Article-only difference with '{text}' ({title.source})"
            return TITLE_IN_QUERY_SCORE, f"'{text}' ({title.source}) is a substantial part of query"

    return NO_MATCH, "No direct match"


def check_enhanced_similarity_score(
    text: str,
    normalized_query: str,
    similarity: SimilarityFn,
) -> tuple[float, str]:
    sim = similarity(text, normalized_query) / 100
    threshold = 0.6 if len(normalized_query) < SHORT_QUERY_LENGTH else 0.5
    if sim > threshold:
        return max(0.6, sim * 0.95), f"High text similarity ({sim:.2f}) with '{text}'"
    return NO_MATCH, f"Text similarity {sim:.2f} below {threshold}"


def check_word_matching(
    normalized_titles: Sequence[NormalizedTitle],
    normalized_query: str,
    similarity: SimilarityFn,
) -> tuple[float, str]:
    """Word-match ratio and enhanced similarity over every title.

    A word-match score above 0.9 is returned immediately; otherwise the best
    of all titles and both checks wins.
    """
    best, best_reason = NO_MATCH, "No word match"
    query_words = normalized_query.split()

    for title in normalized_titles:
        if not title.text:
            continue

        word_score = calculate_word_match_score(title.text.split(), query_words)
        if word_score > 0:
            reason = f"Word match with '{title.text}' ({title.source}): {word_score:.2f}"
            if word_score > WORD_MATCH_EARLY_RETURN:
                return word_score, reason
            if word_score > best:
                best, best_reason = word_score, reason

        sim_score, sim_reason = check_enhanced_similarity_score(title.text, normalized_query, similarity)
        if sim_score > best:
            best, best_reason = sim_score, f"{sim_reason} ({title.source})"

    return best, best_reason


def check_meaningful_word_overlap(
    normalized_titles: Sequence[NormalizedTitle],
    query: str,
) -> tuple[float, str]:
    """Coverage of the query's meaningful words by a title.

    ``composite = 0.65 * coverage + 0.2 * jaccard + 0.15 * order``; accepted
    at 0.6 and rescaled to ``min(0.98, 0.8 + (composite - 0.6) * 0.5)``. A
    title is rejected when the query covers less than 60% of its primary
    tokens.
    """
    query_tokens = [t for t in extract_match_tokens(query) if t not in SECONDARY_WORDS]
    if not query_tokens:
        return NO_MATCH, "No meaningful query words"
    query_set = set(query_tokens)

    best, best_reason = NO_MATCH, "No meaningful word overlap"
    for title in normalized_titles:
        title_tokens = [t for t in extract_match_tokens(title.original) if t not in SECONDARY_WORDS]
        primary = {t for t in title_tokens if is_primary_token(t)}
        if not primary:
            continue

        if len(primary & query_set) / len(primary) < OVERLAP_MIN_PRIMARY_COVERAGE:
            continue

        title_set = set(title_tokens)
        shared = query_set & title_set
        coverage = len(shared) / len(query_set)
        jaccard = len(shared) / len(query_set | title_set)
        order = calculate_word_order_similarity(query_tokens, title_tokens)

        composite = 0.65 * coverage + 0.2 * jaccard + 0.15 * order
        if composite < OVERLAP_ACCEPT:
            continue

        score = min(OVERLAP_MAX_SCORE, 0.8 + (composite - OVERLAP_ACCEPT) * 0.5)
        if score > best:
            best = score
            best_reason = (
                f"Meaningful word overlap with '{title.original}' ({title.source}): "
                f"coverage={coverage:.2f}, jaccard={jaccard:.2f}, order={order:.2f}"
            )

    return best, best_reason


def check_initialism(
    normalized_titles: Sequence[NormalizedTitle],
    query: str,
) -> tuple[float, str]:
    """Match single-word queries such as "AoT" against title initialisms."""
    if len(query.split()) != 1:
        return NO_MATCH, "Query is not a single word"

    compact = _NON_ALNUM.sub("", query.lower())
    if not 2 <= len(compact) <= INITIALISM_MAX_QUERY_LENGTH or compact.isdigit():
        return NO_MATCH, "Query length unsuitable for initialism"

    best, best_reason = NO_MATCH, "No initialism match"
    for title in normalized_titles:
        for initialism in build_initialisms(title.original):
            if initialism == compact:
                return INITIALISM_EXACT_SCORE, f"Initialism '{initialism}' of '{title.original}'"

            if len(initialism) < 3:
                continue
            sim = jaro_winkler_similarity(initialism, compact)
            if sim >= INITIALISM_FUZZY_THRESHOLD:
                score = min(INITIALISM_MAX_FUZZY_SCORE, 0.8 + (sim - INITIALISM_FUZZY_THRESHOLD) * 0.5)
                if score > best:
                    best = score
                    best_reason = f"Initialism '{initialism}' of '{title.original}' ~ '{compact}' ({sim:.2f})"

    return best, best_reason


def check_exact_title_match(
    normalized_title: str,
    special_title: str,
    normalized_query: str,
    special_query: str,
) -> tuple[float, str]:
    if normalized_title == normalized_query or special_title == special_query:
        return 1.0, "Perfect match"

    if _TITLE_SUFFIX.sub("", normalized_title).strip() == normalized_query:
        return 0.95, "Perfect match after removing suffix"
    if _TITLE_SUFFIX.sub("", special_title).strip() == special_query:
        return 0.95, "Perfect match after removing suffix and special characters"

    return NO_MATCH, "No exact title match"


def check_partial_title_match(
    normalized_title: str,
    special_title: str,
    normalized_query: str,
    special_query: str,
) -> tuple[float, str]:
    contained = normalized_query in normalized_title or special_query in special_title
    if contained and len(normalized_query) > MIN_CONTAINED_LENGTH:
        return 0.85, "Query is a substantial part of the full title"
    return NO_MATCH, "No partial title match"


def check_word_similarity(special_title: str, special_query: str) -> tuple[float, str]:
    title_words = special_title.split()
    query_words = special_query.split()
    total = max(len(title_words), len(query_words))
    if total == 0:
        return NO_MATCH, "No words"

    matching = sum(1 for word in title_words if word in query_words and len(word) > 1)
    ratio = matching / total
    if ratio >= 0.75:
        return 0.8 + (ratio - 0.75) * 0.8, f"High word match ratio ({ratio:.2f})"
    return NO_MATCH, f"Word match ratio {ratio:.2f} below 0.75"


def check_contained_title(normalized_title: str, normalized_query: str) -> tuple[float, str]:
    bonus = contains_complete_title(normalized_title, normalized_query)
    if bonus > 0:
        return 0.85 + bonus * 0.1, f"Query completely contained in title ({bonus:.2f})"
    return NO_MATCH, "Query not contained in title"


def check_legacy_similarity(
    normalized_title: str,
    normalized_query: str,
    similarity: SimilarityFn,
) -> tuple[float, str]:
    sim = similarity(normalized_title, normalized_query) / 100
    threshold = 0.6 if len(normalized_query) < SHORT_QUERY_LENGTH else 0.45
    if sim > threshold:
        return max(0.8, sim), f"High similarity ({sim:.2f})"
    return NO_MATCH, f"Similarity {sim:.2f} below {threshold}"


def check_subset_match(
    processed_title: str,
    query: str,
    normalized_title: str,
    normalized_query: str,
    important_words: Sequence[str],
) -> tuple[float, str]:
    """Composite score for titles containing the query's words in order."""
    if not check_title_match(processed_title, query):
        return NO_MATCH, "Query words not in title order"

    longest = max(len(processed_title), len(query))
    length_diff = abs(len(processed_title) - len(query)) / longest if longest else 0.0

    matched = sum(1 for word in important_words if word in normalized_title)
    coverage = matched / len(important_words) if important_words else 0.0

    order = calculate_word_order_similarity(normalized_title.split(), normalized_query.split())

    length_factor = (1 - length_diff) * 0.1
    coverage_factor = coverage * 0.1
    order_factor = order * 0.1
    score = 0.5 + length_factor + coverage_factor + order_factor

    return score, (
        f"Subset match (length: {length_factor:.2f}, coverage: {coverage_factor:.2f}, "
        f"order: {order_factor:.2f})"
    )


def check_legacy_matching(
    titles: Sequence[str],
    normalized_query: str,
    query: str,
    important_words: Sequence[str],
    similarity: SimilarityFn,
) -> tuple[float, str]:
    """Fallback checks over every raw title string of a candidate.

    Any check scoring 0.95 or more returns immediately; otherwise the best
    score across titles and checks is returned.
    """
    best, best_reason = NO_MATCH, "No legacy match"
    special_query = replace_special_chars(normalized_query)

    for title in titles:
        if not title:
            continue

        processed = process_title(title)
        normalized_title = normalize_for_matching(processed)
        special_title = replace_special_chars(normalized_title)

        checks: tuple[Callable[[], tuple[float, str]], ...] = (
            lambda: check_exact_title_match(normalized_title, special_title, normalized_query, special_query),
            lambda: check_partial_title_match(normalized_title, special_title, normalized_query, special_query),
            lambda: check_word_similarity(special_title, special_query),
            lambda: check_contained_title(normalized_title, normalized_query),
            lambda: check_legacy_similarity(normalized_title, normalized_query, similarity),
            lambda: check_season_pattern(normalized_query, normalized_title),
            lambda: check_subset_match(processed, query, normalized_title, normalized_query, important_words),
        )

        for check in checks:
            score, reason = check()
            if score <= 0:
                continue
            if score >= EARLY_RETURN_SCORE:
                return score, f"{reason}: '{title}'"
            if score > best:
                best, best_reason = score, f"{reason}: '{title}'"

    return best, best_reason
