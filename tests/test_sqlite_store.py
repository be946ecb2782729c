"""Tests for daysync/storage/sqlite.py — SQLiteKeyValueStore."""

import pytest

from daysync.storage import LocalCacheStore, SQLiteKeyValueStore
from daysync.types import CacheKey, ResourceKind


@pytest.fixture
def store(tmp_path):
    return SQLiteKeyValueStore(tmp_path / "nested" / "cache.db")


def test_creates_parent_directories(tmp_path):
    SQLiteKeyValueStore(tmp_path / "a" / "b" / "cache.db")
    assert (tmp_path / "a" / "b" / "cache.db").exists()


def test_read_missing_returns_none(store):
    assert store.read("nope") is None


def test_write_then_read(store):
    store.write("k", "v1")
    assert store.read("k") == "v1"


def test_write_overwrites(store):
    store.write("k", "v1")
    store.write("k", "v2")
    assert store.read("k") == "v2"


def test_persists_across_instances(tmp_path):
    path = tmp_path / "cache.db"
    SQLiteKeyValueStore(path).write("k", "v")
    assert SQLiteKeyValueStore(path).read("k") == "v"


def test_keys_by_prefix(store):
    store.write("daysync_journal_cache_u1_2024-05-01", "{}")
    store.write("daysync_journal_cache_u1_2024-05-02", "{}")
    store.write("daysync_tracker_cache_u1_2024-05", "{}")
    assert store.keys("daysync_journal_") == [
        "daysync_journal_cache_u1_2024-05-01",
        "daysync_journal_cache_u1_2024-05-02",
    ]
    assert len(store.keys()) == 3


def test_backs_local_cache(store):
    cache = LocalCacheStore(store)
    key = CacheKey("u1", ResourceKind.GRAPH, "2024-05")
    cache.put(key, {"records": {}, "updatedAt": "2024-05-01T00:00:00Z"})
    assert cache.get(key) == {"records": {}, "updatedAt": "2024-05-01T00:00:00Z"}
