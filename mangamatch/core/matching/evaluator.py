"""Match evaluator - orchestrates the criteria into the title match pipeline.

``TitleMatcher.calculate_match_score`` runs a short-circuiting cascade:

1. direct match (normalized equality or substantial containment)
2. word matching (word-match ratio, enhanced similarity, and unless
   disabled, meaningful-word overlap and initialisms)
3. legacy checks over every raw title

The first stage producing a positive score wins. Scores are in [0, 1];
``NO_MATCH`` (-1) means no stage found anything.
"""

from __future__ import annotations

import math
from collections.abc import Iterable, Mapping, Sequence
from datetime import UTC, datetime

import structlog

from mangamatch.core.models import (
    NO_MATCH,
    MatchOutcome,
    MatchResult,
    RankedMatch,
    TitleRecord,
    TitleScore,
)
from mangamatch.core.tracing import Tracer

from .config import DEFAULT_CONFIG, MatchingConfig
from .criteria import (
    WORD_MATCH_EARLY_RETURN,
    check_direct_matches,
    check_initialism,
    is_one_shot,
    check_legacy_matching,
    check_meaningful_word_overlap,
    check_word_matching,
)
from .normalizer import create_normalized_titles, normalize_for_matching, normalize_string
from .results import calculate_title_type_priority, confidence_from_score
from .scorer import CompositeScorer, round_half_up

logger = structlog.get_logger("mangamatch.matching.evaluator")

EXACT_MATCH_SIMILARITY = 88
BATCH_KEY_LENGTH = 10


class TitleMatcher:
    """Scores catalogue candidates against query titles.

    Args:
        scorer: Composite similarity scorer (owns the metric memos)
        config: Pipeline and best-match options
        tracer: Receives ``match.stage`` events; defaults to the scorer's
    """

    def __init__(
        self,
        scorer: CompositeScorer | None = None,
        config: MatchingConfig = DEFAULT_CONFIG,
        tracer: Tracer | None = None,
    ):
        self.scorer = scorer or CompositeScorer(tracer=tracer)
        self.config = config
        self.tracer = tracer or self.scorer.tracer

    def similarity(self, a: str, b: str) -> float:
        """Raw 0-100 composite similarity."""
        return self.scorer.calculate_enhanced_similarity(a, b)

    def _result(self, candidate: TitleRecord, score: float, reason: str, stage: str) -> MatchResult:
        self.tracer.emit(
            "match.stage",
            candidate_id=candidate.id,
            stage=stage,
            score=score,
            reason=reason,
        )
        return MatchResult(score=score, manga=candidate, reason=reason, stage=stage)

    def evaluate(
        self,
        candidate: TitleRecord,
        query: str | None,
        enable_extended_matching: bool | None = None,
    ) -> MatchResult:
        """Run the pipeline and report which stage decided.

        Args:
            candidate: Catalogue record
            query: Query title
            enable_extended_matching: Override of the config toggle for the
                overlap and initialism checks

        Returns:
            MatchResult with score in [0, 1] or NO_MATCH
        """
        if not query or not query.strip():
            return self._result(candidate, NO_MATCH, "Empty query", "empty_query")

        extended = (
            self.config.enable_extended_matching
            if enable_extended_matching is None
            else enable_extended_matching
        )

        normalized_query = normalize_for_matching(query)
        if not normalized_query:
            return self._result(candidate, NO_MATCH, "Query has no word characters", "empty_query")

        normalized_titles = create_normalized_titles(candidate)

        score, reason = check_direct_matches(normalized_titles, normalized_query, query, candidate)
        if score > 0:
            return self._result(candidate, score, reason, "direct")

        score, reason = check_word_matching(normalized_titles, normalized_query, self.similarity)
        if score > WORD_MATCH_EARLY_RETURN:
            return self._result(candidate, score, reason, "word")

        if extended:
            for check in (check_meaningful_word_overlap, check_initialism):
                extra_score, extra_reason = check(normalized_titles, query)
                if extra_score > score:
                    score, reason = extra_score, extra_reason
        if score > 0:
            return self._result(candidate, score, reason, "word")

        important_words = [w for w in normalized_query.split() if len(w) > 2]
        score, reason = check_legacy_matching(
            candidate.all_titles(),
            normalized_query,
            query,
            important_words,
            self.similarity,
        )
        if score > 0:
            return self._result(candidate, score, reason, "legacy")
        return self._result(candidate, NO_MATCH, reason, "none")

    def calculate_match_score(
        self,
        candidate: TitleRecord,
        query: str | None,
        enable_extended_matching: bool | None = None,
    ) -> float:
        """Best pipeline score of a candidate for a query, or NO_MATCH (-1)."""
        return self.evaluate(candidate, query, enable_extended_matching).score

    def calculate_confidence(self, query: str, candidate: TitleRecord) -> int:
        """Pipeline score mapped to a 0-99 confidence percentage."""
        return confidence_from_score(self.calculate_match_score(candidate, query))

    def calculate_title_type_priority(self, candidate: TitleRecord, query: str) -> int:
        return calculate_title_type_priority(candidate, query, self.similarity)

    def filter_candidates(self, candidates: Iterable[TitleRecord], query: str = "") -> list[TitleRecord]:
        """Drop candidates that are never offered as matches.

        Novels are always dropped. One-shots and adult titles are dropped
        when ``ignore_one_shots`` and ``ignore_adult_content`` are set.
        """
        config = self.config
        kept: list[TitleRecord] = []
        dropped = {"novel": 0, "one_shot": 0, "adult": 0}

        for candidate in candidates:
            if candidate.is_novel:
                dropped["novel"] += 1
            elif config.ignore_one_shots and is_one_shot(candidate):
                dropped["one_shot"] += 1
            elif config.ignore_adult_content and candidate.is_adult:
                dropped["adult"] += 1
            else:
                kept.append(candidate)

        if any(dropped.values()):
            logger.debug("Filtered candidates", query=query, kept=len(kept), **dropped)
        return kept

    def check_exact_match(self, candidate: TitleRecord, query: str) -> bool:
        """Check whether any title is a near-exact match for the query.

        True when a normalized title equals the normalized query, scores
        above 88 on composite similarity, or contains every word (two or
        more) of the query.
        """
        normalized_query = normalize_for_matching(query)
        query_words = [w for w in query.lower().split() if len(w) > 1]

        titles = [candidate.titles.romaji, candidate.titles.english, candidate.titles.native]
        titles.extend(candidate.synonyms)

        for title in titles:
            if not title:
                continue

            normalized_title = normalize_for_matching(title)
            if normalized_title and normalized_title == normalized_query:
                return True
            if self.similarity(normalized_title, normalized_query) > EXACT_MATCH_SIMILARITY:
                return True

            title_lower = title.lower()
            if len(query_words) >= 2 and all(word in title_lower for word in query_words):
                return True

        return False

    def score_match(
        self,
        query: str,
        candidate: TitleRecord,
        alternative_titles: Sequence[str] = (),
    ) -> TitleScore:
        """Composite confidence of a candidate for a query title.

        Primary titles are scored first, then synonyms and the query's
        alternative titles when enabled. A 100 anywhere returns at once;
        otherwise the best field wins, boosted when it is a preferred one.
        """
        config = self.config
        title = normalize_string(query, config.case_sensitive)
        if len(title) < config.min_title_length:
            return TitleScore(confidence=0, is_exact_match=False, matched_field="none")

        scores: list[tuple[str, float]] = []

        for field_name, field_title in (
            ("english", candidate.titles.english),
            ("romaji", candidate.titles.romaji),
            ("native", candidate.titles.native),
        ):
            if not field_title:
                continue
            score = self.similarity(title, field_title)
            scores.append((field_name, score))
            if score == 100:
                return TitleScore(confidence=100, is_exact_match=True, matched_field=field_name)

        if config.use_alternative_titles:
            for synonym in candidate.synonyms:
                if not synonym:
                    continue
                score = self.similarity(title, synonym)
                scores.append(("synonym", score))
                if score == 100:
                    return TitleScore(confidence=100, is_exact_match=True, matched_field="synonym")

            for alternative in alternative_titles:
                if not alternative:
                    continue
                normalized_alternative = normalize_string(alternative, config.case_sensitive)
                if len(normalized_alternative) < config.min_title_length:
                    continue
                for field_name, field_title in (
                    ("alt_to_english", candidate.titles.english),
                    ("alt_to_romaji", candidate.titles.romaji),
                ):
                    if not field_title:
                        continue
                    score = self.similarity(normalized_alternative, field_title)
                    scores.append((field_name, score))
                    if score == 100:
                        return TitleScore(confidence=100, is_exact_match=True, matched_field=field_name)

        return self._final_score(scores)

    def _final_score(self, scores: list[tuple[str, float]]) -> TitleScore:
        if not scores:
            return TitleScore(confidence=0, is_exact_match=False, matched_field="none")

        top_field, top_score = scores[0]
        for field_name, score in scores[1:]:
            if score > top_score:
                top_field, top_score = field_name, score

        if math.isnan(top_score):
            return TitleScore(confidence=0, is_exact_match=False, matched_field=top_field)

        adjusted = top_score
        if (top_field == "english" and self.config.prefer_english_titles) or (
            top_field == "romaji" and self.config.prefer_romaji_titles
        ):
            adjusted = min(100.0, adjusted * self.config.preferred_title_boost)

        return TitleScore(
            confidence=round_half_up(adjusted),
            is_exact_match=adjusted >= self.config.exact_match_confidence,
            matched_field=top_field,
        )

    def find_best_matches(
        self,
        query: str,
        candidates: Iterable[TitleRecord],
        alternative_titles: Sequence[str] = (),
    ) -> MatchOutcome:
        """Rank candidates for a query and decide whether the top one is safe.

        Candidates are filtered with ``filter_candidates`` and ordered by
        confidence, ties broken by title-type priority. The outcome is
        ``matched`` when the top candidate is an exact match, or clears the
        confidence threshold and is alone or leads the runner up by more
        than the ambiguity margin. Otherwise it is ``pending``.
        """
        config = self.config
        scored = [
            (candidate, self.score_match(query, candidate, alternative_titles))
            for candidate in self.filter_candidates(candidates, query)
        ]
        scored.sort(
            key=lambda item: (item[1].confidence, self.calculate_title_type_priority(item[0], query)),
            reverse=True,
        )

        top = [item for item in scored[: config.max_matches] if item[1].confidence > 0]
        match_date = datetime.now(UTC).isoformat().replace("+00:00", "Z")
        matches = [RankedMatch(manga=candidate, confidence=score.confidence) for candidate, score in top]

        if not top:
            return MatchOutcome(query=query, matches=[], status="pending", selected_match=None, match_date=match_date)

        best_candidate, best_score = top[0]
        clear_lead = len(top) == 1 or best_score.confidence - top[1][1].confidence > config.ambiguity_margin
        if best_score.is_exact_match or (best_score.confidence >= config.confidence_threshold and clear_lead):
            return MatchOutcome(
                query=query,
                matches=matches,
                status="matched",
                selected_match=best_candidate,
                match_date=match_date,
            )

        return MatchOutcome(query=query, matches=matches, status="pending", selected_match=None, match_date=match_date)

    @staticmethod
    def batch_key(query: str) -> str:
        """Key under which batch callers group candidate lists for a query."""
        return normalize_string(query)[:BATCH_KEY_LENGTH]

    def process_batch(
        self,
        queries: Iterable[str],
        candidate_map: Mapping[str, Sequence[TitleRecord]],
    ) -> list[MatchOutcome]:
        """Find best matches for many queries, candidates looked up by ``batch_key``."""
        return [
            self.find_best_matches(query, candidate_map.get(self.batch_key(query), ()))
            for query in queries
        ]

    def rank_candidates(
        self,
        query: str,
        candidates: Sequence[TitleRecord],
        exact_only: bool = False,
    ) -> list[MatchResult]:
        """Score, filter and sort search results for a query.

        Candidates are filtered with ``filter_candidates``. With
        ``exact_only`` the stricter inclusion rule applies and near-exact
        matches are lifted to a confidence floor. When nothing qualifies, the
        first remaining candidate is returned at the fallback score.

        Returns:
            MatchResults sorted by descending score, ties broken by
            title-type priority
        """
        config = self.config
        few_results = len(candidates) <= 2
        comparable = self.filter_candidates(candidates, query)
        ranked: list[MatchResult] = []

        for candidate in comparable:
            result = self.evaluate(candidate, query)
            score = result.score

            if exact_only:
                found_good_match = self.check_exact_match(candidate, query)
                if score > config.exact_inclusion_threshold or found_good_match or few_results:
                    if found_good_match:
                        result.score = max(score, config.exact_inclusion_floor)
                    ranked.append(result)
            elif score > config.regular_inclusion_threshold or few_results:
                ranked.append(result)

        ranked.sort(
            key=lambda r: (r.score, self.calculate_title_type_priority(r.manga, query)),
            reverse=True,
        )

        if not ranked and comparable:
            ranked.append(
                MatchResult(
                    score=config.fallback_score,
                    manga=comparable[0],
                    reason="No candidate cleared the inclusion threshold",
                    stage="fallback",
                )
            )

        return ranked
