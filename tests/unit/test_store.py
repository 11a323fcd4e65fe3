"""Tests for the cache blob stores."""

from __future__ import annotations

from pathlib import Path

from mangamatch.core.search.store import MANGA_CACHE_KEY, JsonFileStore, MemoryStore


def test_memory_store_round_trip() -> None:
    """Test that MemoryStore returns what was set and None otherwise."""
    store = MemoryStore({"a": "1"})
    store.set("b", "2")

    assert store.get("a") == "1"
    assert store.get("b") == "2"
    assert store.get("c") is None


def test_memory_store_copies_initial_blobs() -> None:
    """Test that the initial mapping is not shared with the caller."""
    initial = {"a": "1"}
    store = MemoryStore(initial)
    store.set("b", "2")
    assert "b" not in initial


def test_json_file_store_writes_key_file(tmp_path: Path) -> None:
    """Test that each key is stored in its own JSON file."""
    directory = tmp_path / "cache"
    store = JsonFileStore(directory)

    store.set(MANGA_CACHE_KEY, '{"onepiece": {}}')

    path = directory / f"{MANGA_CACHE_KEY}.json"
    assert path.read_text(encoding="utf-8") == '{"onepiece": {}}'
    assert store.get(MANGA_CACHE_KEY) == '{"onepiece": {}}'


def test_json_file_store_missing_key(tmp_path: Path) -> None:
    """Test that a missing file reads as None."""
    assert JsonFileStore(tmp_path).get("missing") is None


def test_json_file_store_write_failure_swallowed(tmp_path: Path) -> None:
    """Test that a write into an unusable directory is logged, not raised."""
    blocker = tmp_path / "blocker"
    blocker.write_text("not a directory", encoding="utf-8")
    store = JsonFileStore(blocker / "cache")

    store.set("key", "value")

    assert store.get("key") is None


def test_json_file_store_read_failure(tmp_path: Path) -> None:
    """Test that an unreadable blob reads as None."""
    (tmp_path / "key.json").mkdir()
    assert JsonFileStore(tmp_path).get("key") is None
