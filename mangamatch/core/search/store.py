"""Key-value stores backing the candidate cache."""

from __future__ import annotations

from pathlib import Path
from typing import Protocol

import structlog

logger = structlog.get_logger("mangamatch.search.store")

MANGA_CACHE_KEY = "anilist_manga_cache"
SEARCH_CACHE_KEY = "anilist_search_cache"


class CacheStore(Protocol):
    """Opaque string store holding the persisted cache blobs."""

    def get(self, key: str) -> str | None: ...

    def set(self, key: str, value: str) -> None: ...


class MemoryStore:
    """In-process store, mostly for tests and short-lived engines."""

    def __init__(self, blobs: dict[str, str] | None = None) -> None:
        self.blobs: dict[str, str] = dict(blobs or {})

    def get(self, key: str) -> str | None:
        return self.blobs.get(key)

    def set(self, key: str, value: str) -> None:
        self.blobs[key] = value


class JsonFileStore:
    """Store keeping each blob in ``<directory>/<key>.json``.

    Reads are best effort: a missing or unreadable file reads as ``None``.
    Write failures are logged and swallowed.
    """

    def __init__(self, directory: Path) -> None:
        self.directory = directory

    def _get_path(self, key: str) -> Path:
        return self.directory / f"{key}.json"

    def get(self, key: str) -> str | None:
        path = self._get_path(key)
        if not path.exists():
            return None

        try:
            return path.read_text(encoding="utf-8")
        except OSError as e:
            logger.warning("Failed to read cache blob", key=key, path=str(path), error=str(e))
            return None

    def set(self, key: str, value: str) -> None:
        path = self._get_path(key)
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
            path.write_text(value, encoding="utf-8")
            logger.debug("Wrote cache blob", key=key, size=len(value))
        except OSError as e:
            logger.warning("Failed to write cache blob", key=key, path=str(path), error=str(e))
