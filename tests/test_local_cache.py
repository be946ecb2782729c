"""Tests for daysync/storage/local.py — LocalCacheStore.

Covers:
- round trip and unconditional overwrite
- missing, malformed and non-object entries read as absent
- failed reads and writes are swallowed
- namespace in raw keys
"""

import json
from unittest.mock import MagicMock

import pytest

from daysync.storage import LocalCacheStore, MemoryKeyValueStore
from daysync.types import CacheKey, ResourceKind


@pytest.fixture
def key():
    return CacheKey("u1", ResourceKind.JOURNAL, "2024-05-01")


class TestGetPut:
    def test_round_trip(self, local_cache, key):
        record = {"diary": "hello", "tasks": [], "updatedAt": "2024-05-01T10:00:00Z"}
        assert local_cache.put(key, record) is True
        assert local_cache.get(key) == record

    def test_overwrites_without_merge(self, local_cache, key):
        local_cache.put(key, {"diary": "a", "tasks": [{"id": "1"}]})
        local_cache.put(key, {"diary": "b"})
        assert local_cache.get(key) == {"diary": "b"}

    def test_missing_key_is_absent(self, local_cache, key):
        assert local_cache.get(key) is None

    def test_non_ascii_preserved(self, local_cache, key, kv_store):
        local_cache.put(key, {"diary": "今日は晴れ"})
        assert "今日は晴れ" in kv_store.data[key.raw_key()]
        assert local_cache.get(key)["diary"] == "今日は晴れ"

    def test_keys_do_not_collide_across_kinds(self, local_cache):
        journal = CacheKey("u1", ResourceKind.JOURNAL, "2024-05-01")
        tracker = CacheKey("u1", ResourceKind.TRACKER, "2024-05")
        local_cache.put(journal, {"diary": "a"})
        local_cache.put(tracker, {"items": []})
        assert local_cache.get(journal) == {"diary": "a"}
        assert local_cache.get(tracker) == {"items": []}


class TestDegradation:
    def test_malformed_json_is_absent(self, local_cache, kv_store, key):
        kv_store.write(key.raw_key(), "{not valid json")
        assert local_cache.get(key) is None

    def test_non_object_json_is_absent(self, local_cache, kv_store, key):
        kv_store.write(key.raw_key(), json.dumps(["a", "b"]))
        assert local_cache.get(key) is None

    def test_read_failure_is_absent(self, key):
        store = MagicMock()
        store.read.side_effect = OSError("disk gone")
        assert LocalCacheStore(store).get(key) is None

    def test_quota_exceeded_is_swallowed(self, key):
        store = MemoryKeyValueStore(quota=10)
        cache = LocalCacheStore(store)
        assert cache.put(key, {"diary": "x" * 100}) is False
        assert cache.get(key) is None

    def test_unserializable_record_is_swallowed(self, local_cache, key):
        assert local_cache.put(key, {"diary": object()}) is False


class TestNamespace:
    def test_namespace_prefixes_raw_key(self, kv_store, key):
        cache = LocalCacheStore(kv_store, namespace="yurutto")
        cache.put(key, {"diary": "a"})
        assert list(kv_store.data) == ["yurutto_journal_cache_u1_2024-05-01"]
        assert cache.raw_key(key) == "yurutto_journal_cache_u1_2024-05-01"

    def test_namespaces_are_isolated(self, kv_store, key):
        LocalCacheStore(kv_store, namespace="a").put(key, {"diary": "a"})
        assert LocalCacheStore(kv_store, namespace="b").get(key) is None
