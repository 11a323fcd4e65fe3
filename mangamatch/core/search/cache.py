"""Candidate cache for previously seen catalogue search results."""

from __future__ import annotations

import json
import math
import time
from collections.abc import Callable, Iterable, Sequence
from typing import Any

import structlog
from pydantic import ValidationError

from mangamatch.core.matching.normalizer import normalize
from mangamatch.core.metrics import (
    candidate_cache_entries,
    candidate_cache_lookups_total,
    candidate_cache_sync_total,
    candidate_cache_writes_total,
)
from mangamatch.core.models import CacheEntry, ClearTitlesResult, TitleRecord
from mangamatch.core.search.store import MANGA_CACHE_KEY, SEARCH_CACHE_KEY, CacheStore

logger = structlog.get_logger("mangamatch.search.cache")

HOUR_MS = 60 * 60 * 1000


def _now_ms() -> int:
    return int(time.time() * 1000)


def _is_timestamp(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool) and math.isfinite(value)


class CandidateCache:
    """Maps title-derived keys to the candidates last seen for them.

    Entries are replaced only by writes carrying a newer timestamp. Reads
    ignore entries older than the TTL, but stale entries stay in place until
    cleared.
    """

    def __init__(
        self,
        normalizer: Callable[[str], str] = normalize,
        store: CacheStore | None = None,
        ttl_hours: float = 24,
        key_length: int = 30,
        clock: Callable[[], int] | None = None,
    ) -> None:
        """Initialize candidate cache.

        Args:
            normalizer: Canonicalizes titles before they are truncated to keys
            store: Backing store for the persisted blobs (None = memory only)
            ttl_hours: Read validity window
            key_length: Maximum key length
            clock: Current time in epoch milliseconds
        """
        self.normalizer = normalizer
        self.backend = store
        self.ttl_ms = int(ttl_hours * HOUR_MS)
        self.key_length = key_length
        self.clock = clock or _now_ms
        self._entries: dict[str, CacheEntry] = {}

    def cache_key(self, title: str) -> str:
        return self.normalizer(title)[: self.key_length]

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, title: object) -> bool:
        return isinstance(title, str) and self.cache_key(title) in self._entries

    def entries(self) -> dict[str, CacheEntry]:
        """Snapshot of all entries by key, stale ones included."""
        return dict(self._entries)

    def _update_gauge(self) -> None:
        candidate_cache_entries.set(len(self._entries))

    def _is_fresh(self, entry: CacheEntry) -> bool:
        return self.clock() - entry.timestamp < self.ttl_ms

    def is_valid(self, title: str) -> bool:
        """Check whether a title has an entry younger than the TTL."""
        entry = self._entries.get(self.cache_key(title))
        return entry is not None and self._is_fresh(entry)

    def lookup(self, title: str) -> list[TitleRecord] | None:
        """Get cached candidates for a title.

        Args:
            title: Query title

        Returns:
            Cached candidates, or None if absent or stale
        """
        key = self.cache_key(title)
        entry = self._entries.get(key)

        if entry is None:
            candidate_cache_lookups_total.labels(result="miss").inc()
            return None

        if not self._is_fresh(entry):
            candidate_cache_lookups_total.labels(result="stale").inc()
            logger.debug("Stale cache entry", key=key, timestamp=entry.timestamp)
            return None

        candidate_cache_lookups_total.labels(result="hit").inc()
        logger.debug("Cache hit", key=key, count=len(entry.candidates))
        return list(entry.candidates)

    def _put(self, key: str, entry: CacheEntry, source: str) -> bool:
        existing = self._entries.get(key)
        if existing is not None and entry.timestamp <= existing.timestamp:
            return False

        self._entries[key] = entry
        candidate_cache_writes_total.labels(source=source).inc()
        return True

    def store(
        self,
        title: str,
        candidates: Sequence[TitleRecord],
        timestamp: int | None = None,
    ) -> bool:
        """Cache candidates for a title unless a newer entry exists.

        Args:
            title: Query title
            candidates: Candidates to cache
            timestamp: Write time in epoch milliseconds (defaults to now)

        Returns:
            True if the entry was written
        """
        key = self.cache_key(title)
        if not key:
            return False

        ts = self.clock() if timestamp is None else timestamp
        written = self._put(key, CacheEntry(candidates=list(candidates), timestamp=ts), "store")
        if written:
            self._update_gauge()
            logger.debug("Cached candidates", key=key, count=len(candidates), timestamp=ts)
        return written

    def clear(self) -> None:
        """Drop every entry."""
        count = len(self._entries)
        self._entries.clear()
        self._update_gauge()
        logger.info("Cleared candidate cache", entries=count)

    def clear_titles(self, titles: Iterable[str]) -> ClearTitlesResult:
        """Drop the entries of specific titles and save if anything changed."""
        cleared = 0
        not_found = 0

        for title in titles:
            key = self.cache_key(title)
            if key in self._entries:
                del self._entries[key]
                cleared += 1
            else:
                not_found += 1

        if cleared:
            self._update_gauge()
            self.save()

        result = ClearTitlesResult(
            cleared_count=cleared,
            remaining=len(self._entries),
            not_found=not_found,
        )
        logger.debug(
            "Cleared cache for titles",
            cleared=cleared,
            not_found=not_found,
            remaining=result.remaining,
        )
        return result

    def ingest(self, candidates: Iterable[TitleRecord], timestamp: int | None = None) -> int:
        """Cache fresh search results under each record's romaji and English titles.

        Args:
            candidates: Records returned by a completed search
            timestamp: Search time in epoch milliseconds (defaults to now)

        Returns:
            Number of entries written
        """
        ts = self.clock() if timestamp is None else timestamp
        written = 0

        for candidate in candidates:
            for title in (candidate.titles.romaji, candidate.titles.english):
                if not title:
                    continue
                key = self.cache_key(title)
                if key and self._put(key, CacheEntry(candidates=[candidate], timestamp=ts), "ingest"):
                    written += 1

        if written:
            self._update_gauge()
            self.save()
        logger.debug("Ingested search results", written=written, timestamp=ts)
        return written

    @staticmethod
    def _load_blob(blob: str | dict[str, Any], name: str) -> dict[str, Any]:
        data = json.loads(blob) if isinstance(blob, str) else blob
        if not isinstance(data, dict):
            raise ValueError(f"{name} must be a JSON object")
        return data

    def merge_snapshot(self, blob: str | dict[str, Any]) -> int:
        """Merge a persisted manga-cache blob, keeping the newer entry per key.

        Entries without a finite timestamp or a record list are skipped.
        Every record is validated before anything is merged, so an invalid
        record leaves the cache untouched. Novel-format records are filtered
        out of merged entries.

        Args:
            blob: ``{key: {"manga": [...], "timestamp": ms}}`` as JSON or dict

        Returns:
            Number of entries merged

        Raises:
            ValueError: If the blob is not a JSON object
            ValidationError: If a record does not match the catalogue shape
        """
        data = self._load_blob(blob, "manga cache snapshot")

        pending: list[tuple[str, CacheEntry]] = []
        for key, raw_entry in data.items():
            if not isinstance(raw_entry, dict):
                continue
            timestamp = raw_entry.get("timestamp")
            records = raw_entry.get("manga")
            if not _is_timestamp(timestamp) or not isinstance(records, list):
                continue

            entry = CacheEntry.model_validate({"manga": records, "timestamp": timestamp})
            entry.candidates = [c for c in entry.candidates if not c.is_novel]
            pending.append((key, entry))

        merged = sum(1 for key, entry in pending if self._put(key, entry, "snapshot"))

        self._update_gauge()
        logger.debug("Merged manga cache snapshot", keys=len(data), merged=merged)
        return merged

    def import_search_cache(self, blob: str | dict[str, Any]) -> int:
        """Import records out of a persisted search-results blob.

        Each record found under ``data.Page.media`` is cached under its
        romaji and English titles at the search entry's timestamp. As with
        ``merge_snapshot``, records are validated before any are cached.

        Returns:
            Number of entries written

        Raises:
            ValueError: If the blob is not a JSON object
            ValidationError: If a record does not match the catalogue shape
        """
        data = self._load_blob(blob, "search cache")

        pending: list[tuple[str, CacheEntry]] = []
        for search_entry in data.values():
            if not isinstance(search_entry, dict):
                continue
            timestamp = search_entry.get("timestamp")
            payload = search_entry.get("data")
            page = payload.get("Page") if isinstance(payload, dict) else None
            media = page.get("media") if isinstance(page, dict) else None
            if not _is_timestamp(timestamp) or not isinstance(media, list):
                continue

            for raw in media:
                if not isinstance(raw, dict):
                    continue
                entry = CacheEntry.model_validate({"manga": [raw], "timestamp": timestamp})
                record = entry.candidates[0]
                if not record.titles.romaji:
                    continue
                for title in (record.titles.romaji, record.titles.english):
                    if title:
                        pending.append((self.cache_key(title), entry))

        imported = sum(1 for key, entry in pending if key and self._put(key, entry, "search_cache"))

        self._update_gauge()
        logger.debug("Imported search cache", searches=len(data), imported=imported)
        return imported

    def _sync_blob(self, blob_key: str, merge: Callable[[str], int]) -> int:
        try:
            raw = self.backend.get(blob_key) if self.backend else None
        except Exception as e:
            logger.warning("Failed to read cache blob", blob=blob_key, error=str(e))
            candidate_cache_sync_total.labels(blob=blob_key, outcome="error").inc()
            return 0

        if not raw:
            candidate_cache_sync_total.labels(blob=blob_key, outcome="empty").inc()
            return 0

        try:
            count = merge(raw)
        except ValidationError as e:
            logger.warning(
                "Invalid record in cache blob, skipping",
                blob=blob_key,
                errors=e.error_count(),
                error=str(e),
            )
            candidate_cache_sync_total.labels(blob=blob_key, outcome="invalid").inc()
            return 0
        except ValueError as e:
            logger.warning("Malformed cache blob, skipping", blob=blob_key, error=str(e))
            candidate_cache_sync_total.labels(blob=blob_key, outcome="malformed").inc()
            return 0

        candidate_cache_sync_total.labels(blob=blob_key, outcome="merged").inc()
        return count

    def sync_from_store(self) -> int:
        """Merge both persisted blobs into memory.

        A missing store, missing blobs, malformed JSON or invalid records
        leave the in-memory entries untouched. The manga-cache blob is saved
        back when the search cache contributed entries.

        Returns:
            Number of entries merged or imported
        """
        if self.backend is None:
            return 0

        merged = self._sync_blob(MANGA_CACHE_KEY, self.merge_snapshot)
        imported = self._sync_blob(SEARCH_CACHE_KEY, self.import_search_cache)
        if imported:
            self.save()

        logger.info("Synced candidate cache", merged=merged, imported=imported, entries=len(self._entries))
        return merged + imported

    def to_dict(self) -> dict[str, dict[str, Any]]:
        return {key: entry.model_dump(mode="json", by_alias=True) for key, entry in self._entries.items()}

    def save(self) -> None:
        """Write the manga-cache blob; failures are logged, never raised."""
        if self.backend is None:
            return

        try:
            self.backend.set(MANGA_CACHE_KEY, json.dumps(self.to_dict()))
        except Exception as e:
            logger.warning("Failed to save candidate cache", error=str(e))
