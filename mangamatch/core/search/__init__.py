"""Candidate cache and its persisted stores."""

from mangamatch.core.search.cache import CandidateCache
from mangamatch.core.search.store import (
    MANGA_CACHE_KEY,
    SEARCH_CACHE_KEY,
    CacheStore,
    JsonFileStore,
    MemoryStore,
)

__all__ = [
    "CandidateCache",
    "CacheStore",
    "JsonFileStore",
    "MemoryStore",
    "MANGA_CACHE_KEY",
    "SEARCH_CACHE_KEY",
]
