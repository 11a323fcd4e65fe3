"""Matching engine - owns the memo maps, the candidate cache and the tracer.

Hosts create one engine per session instead of sharing module-level state:

    engine = MatchingEngine.from_settings(get_settings())
    engine.sync()
    outcome = engine.find_best_matches("Shingeki no Kyojin", candidates)
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Mapping, Sequence
from dataclasses import replace
from typing import Any

import structlog

from mangamatch.core.config import Settings
from mangamatch.core.matching.config import (
    DEFAULT_CONFIG,
    DEFAULT_SIMILARITY_CONFIG,
    MatchingConfig,
    SimilarityConfig,
    load_matching_config,
)
from mangamatch.core.matching.evaluator import TitleMatcher
from mangamatch.core.matching.scorer import CompositeScorer
from mangamatch.core.matching.similarity import SimilarityCore
from mangamatch.core.metrics import match_stage_results_total, setup_metrics
from mangamatch.core.models import (
    ClearTitlesResult,
    MatchOutcome,
    MatchResult,
    TitleRecord,
    TitleScore,
)
from mangamatch.core.search.cache import CandidateCache
from mangamatch.core.search.store import CacheStore, JsonFileStore
from mangamatch.core.tracing import Tracer, TraceHook, trace_context

logger = structlog.get_logger("mangamatch.engine")

ENGINE_VERSION = "0.1.0"


class MatchingEngine:
    """Title matching with session-scoped caches.

    Args:
        similarity_config: Composite weights
        matching_config: Pipeline and best-match options
        store: Persisted backing store of the candidate cache
        memo_max_size: Entries per similarity memo
        cache_ttl_hours: Candidate cache read validity
        cache_key_length: Candidate cache key length
    """

    def __init__(
        self,
        similarity_config: SimilarityConfig = DEFAULT_SIMILARITY_CONFIG,
        matching_config: MatchingConfig = DEFAULT_CONFIG,
        store: CacheStore | None = None,
        memo_max_size: int = 5000,
        cache_ttl_hours: float = 24,
        cache_key_length: int = 30,
    ):
        self.tracer = Tracer()
        self.core = SimilarityCore(memo_max_size=memo_max_size)
        self.scorer = CompositeScorer(self.core, similarity_config, self.tracer)
        self.matcher = TitleMatcher(self.scorer, matching_config, self.tracer)
        self.cache = CandidateCache(
            normalizer=self.core.normalize,
            store=store,
            ttl_hours=cache_ttl_hours,
            key_length=cache_key_length,
        )

    @classmethod
    def from_settings(cls, settings: Settings, store: CacheStore | None = None) -> MatchingEngine:
        """Build an engine from settings and the ``matching`` section of settings.json.

        Without an explicit store, cache blobs are kept in the settings'
        cache directory.
        """
        matching_config = load_matching_config(settings.settings_file)
        if matching_config.enable_extended_matching != settings.enable_extended_matching:
            matching_config = replace(matching_config, enable_extended_matching=settings.enable_extended_matching)

        setup_metrics(ENGINE_VERSION)

        engine = cls(
            similarity_config=settings.similarity_config(),
            matching_config=matching_config,
            store=store if store is not None else JsonFileStore(settings.cache_dir),
            memo_max_size=settings.memo_max_size,
            cache_ttl_hours=settings.cache_ttl_hours,
            cache_key_length=settings.cache_key_length,
        )
        logger.info(
            "Matching engine created",
            version=ENGINE_VERSION,
            data_dir=str(settings.data_dir),
            extended_matching=matching_config.enable_extended_matching,
            memo_max_size=settings.memo_max_size,
        )
        return engine

    @property
    def similarity_config(self) -> SimilarityConfig:
        return self.scorer.config

    @property
    def matching_config(self) -> MatchingConfig:
        return self.matcher.config

    def subscribe(self, hook: TraceHook) -> Callable[[], None]:
        """Receive scoring trace events; returns an unsubscribe callable."""
        return self.tracer.subscribe(hook)

    # Scoring

    def calculate_enhanced_similarity(
        self,
        a: str | None,
        b: str | None,
        config: SimilarityConfig | None = None,
    ) -> float:
        return self.scorer.calculate_enhanced_similarity(a, b, config)

    def evaluate(
        self,
        candidate: TitleRecord,
        query: str | None,
        enable_extended_matching: bool | None = None,
    ) -> MatchResult:
        result = self.matcher.evaluate(candidate, query, enable_extended_matching)
        match_stage_results_total.labels(stage=result.stage).inc()
        return result

    def calculate_match_score(
        self,
        candidate: TitleRecord,
        query: str | None,
        enable_extended_matching: bool | None = None,
    ) -> float:
        """Pipeline score in [0, 1], or -1 when nothing matched."""
        return self.evaluate(candidate, query, enable_extended_matching).score

    def calculate_confidence(self, query: str, candidate: TitleRecord) -> int:
        return self.matcher.calculate_confidence(query, candidate)

    def score_match(
        self,
        query: str,
        candidate: TitleRecord,
        alternative_titles: Sequence[str] = (),
    ) -> TitleScore:
        return self.matcher.score_match(query, candidate, alternative_titles)

    def find_best_matches(
        self,
        query: str,
        candidates: Iterable[TitleRecord] | None = None,
        alternative_titles: Sequence[str] = (),
    ) -> MatchOutcome:
        """Best matches of a query, falling back to cached candidates.

        Candidates passed in are cached under the query. Without candidates
        the cached list is used, or an empty pending outcome is returned.
        """
        if candidates is None:
            cached = self.cache.lookup(query) or []
            return self.matcher.find_best_matches(query, cached, alternative_titles)

        candidates = list(candidates)
        if candidates:
            self.cache.store(query, candidates)
        return self.matcher.find_best_matches(query, candidates, alternative_titles)

    def rank_candidates(
        self,
        query: str,
        candidates: Sequence[TitleRecord],
        exact_only: bool = False,
    ) -> list[MatchResult]:
        results = self.matcher.rank_candidates(query, candidates, exact_only)
        for result in results:
            match_stage_results_total.labels(stage=result.stage).inc()
        return results

    def process_batch(
        self,
        queries: Iterable[str],
        candidate_map: Mapping[str, Sequence[TitleRecord]],
    ) -> list[MatchOutcome]:
        """Match many queries under one trace ID."""
        queries = list(queries)
        with trace_context() as trace_id:
            logger.info("Processing batch", queries=len(queries), trace_id=trace_id)
            outcomes = self.matcher.process_batch(queries, candidate_map)
            matched = sum(1 for o in outcomes if o.status == "matched")
            logger.info("Batch processed", queries=len(queries), matched=matched)
        return outcomes

    # Candidate cache

    def ingest(self, candidates: Iterable[TitleRecord], timestamp: int | None = None) -> int:
        """Cache the results of a search the host just completed."""
        return self.cache.ingest(candidates, timestamp)

    def sync(self) -> int:
        """Merge the persisted cache blobs into the candidate cache."""
        return self.cache.sync_from_store()

    def clear_cache(self, titles: Iterable[str] | None = None) -> ClearTitlesResult | None:
        """Clear specific titles from the candidate cache, or everything."""
        if titles is None:
            self.cache.clear()
            return None
        return self.cache.clear_titles(titles)

    def clear_memos(self) -> None:
        self.core.clear()
        logger.debug("Similarity memos cleared")

    def stats(self) -> dict[str, Any]:
        """Memo statistics and candidate cache size."""
        return {
            "memos": self.core.stats(),
            "candidate_cache": {"entries": len(self.cache)},
        }
