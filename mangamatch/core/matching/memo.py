"""Bounded memoization maps for pairwise similarity metrics."""

from __future__ import annotations

import threading
from collections import OrderedDict
from collections.abc import Callable
from typing import Generic, TypeVar

from mangamatch.core.metrics import memo_evictions_total

V = TypeVar("V")

_MISSING = object()


def pair_key(a: str, b: str, extra: str | None = None) -> str:
    """Build an order-independent key for a pair of strings.

    ``pair_key(a, b) == pair_key(b, a)`` always holds.

    Args:
        a: First string
        b: Second string
        extra: Optional discriminator (e.g. a config fingerprint)

    Returns:
        ``min::max`` or ``min::max::extra``
    """
    low, high = (a, b) if a <= b else (b, a)
    if extra is None:
        return f"{low}::{high}"
    return f"{low}::{high}::{extra}"


class LRUMemo(Generic[V]):
    """Thread-safe least-recently-used map.

    Reads and writes both count as a touch, so ``get`` mutates recency and
    is guarded by the same lock as ``set``.
    """

    def __init__(self, name: str, max_size: int = 5000):
        if max_size < 1:
            raise ValueError(f"max_size must be positive, got {max_size}")
        self.name = name
        self.max_size = max_size
        self._data: OrderedDict[str, V] = OrderedDict()
        self._lock = threading.Lock()
        self._hits = 0
        self._misses = 0
        self._evictions = 0

    def get(self, key: str, default: V | None = None) -> V | None:
        with self._lock:
            value = self._data.get(key, _MISSING)
            if value is _MISSING:
                self._misses += 1
                return default
            self._data.move_to_end(key)
            self._hits += 1
            return value  # type: ignore[return-value]

    def set(self, key: str, value: V) -> None:
        with self._lock:
            if key in self._data:
                self._data.move_to_end(key)
            elif len(self._data) >= self.max_size:
                self._data.popitem(last=False)
                self._evictions += 1
                memo_evictions_total.labels(memo=self.name).inc()
            self._data[key] = value

    def get_or_compute(self, key: str, compute: Callable[[], V]) -> V:
        """Return the memoized value, computing and storing it on a miss."""
        value = self.get(key, _MISSING)  # type: ignore[arg-type]
        if value is not _MISSING:
            return value  # type: ignore[return-value]
        value = compute()
        self.set(key, value)
        return value

    def clear(self) -> None:
        with self._lock:
            self._data.clear()
            self._hits = 0
            self._misses = 0
            self._evictions = 0

    def __len__(self) -> int:
        return len(self._data)

    def __contains__(self, key: object) -> bool:
        return key in self._data

    def stats(self) -> dict[str, int | float]:
        """Size, hit/miss counters and hit rate."""
        with self._lock:
            total = self._hits + self._misses
            return {
                "size": len(self._data),
                "max_size": self.max_size,
                "hits": self._hits,
                "misses": self._misses,
                "evictions": self._evictions,
                "hit_rate": round(self._hits / total, 3) if total else 0.0,
            }
