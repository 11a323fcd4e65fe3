"""Prometheus metrics configuration."""

from __future__ import annotations

import structlog
from prometheus_client import REGISTRY, CollectorRegistry, Counter, Gauge, generate_latest

logger = structlog.get_logger("mangamatch.metrics")

# Library information
app_info = Gauge(
    "mangamatch_info",
    "Matching engine information",
    ["version"],
)

# Candidate cache metrics
candidate_cache_lookups_total = Counter(
    "candidate_cache_lookups_total",
    "Total number of candidate cache lookups",
    ["result"],  # result: hit, miss, stale
)
candidate_cache_writes_total = Counter(
    "candidate_cache_writes_total",
    "Total number of candidate cache entries written",
    ["source"],  # source: store, ingest, snapshot, search_cache
)
candidate_cache_sync_total = Counter(
    "candidate_cache_sync_total",
    "Total number of persisted-store sync operations",
    ["blob", "outcome"],  # outcome: merged, empty, malformed, error
)
candidate_cache_entries = Gauge(
    "candidate_cache_entries",
    "Number of entries currently held by the candidate cache",
)

# Matching metrics
match_stage_results_total = Counter(
    "match_stage_results_total",
    "Total number of title match scores by the pipeline stage that produced them",
    ["stage"],  # stage: direct, word, legacy, none, empty_query, fallback
)
memo_evictions_total = Counter(
    "memo_evictions_total",
    "Total number of least-recently-used memo evictions",
    ["memo"],
)

_metrics_setup = False


def setup_metrics(version: str) -> None:
    """Record the library version once per process.

    Args:
        version: Package version
    """
    global _metrics_setup
    if _metrics_setup:
        logger.debug("Metrics already initialized, skipping")
        return

    app_info.labels(version=version).set(1)
    _metrics_setup = True
    logger.info("Metrics initialized", version=version)


def render_metrics(registry: CollectorRegistry = REGISTRY) -> bytes:
    """Render metrics in the Prometheus text exposition format."""
    return generate_latest(registry)
