"""
Pytest fixtures and test configuration for daysync tests.
"""

import asyncio
from typing import List

import pytest

from daysync.protocols import RemoteError, RemoteErrorKind
from daysync.storage import LocalCacheStore, MemoryKeyValueStore, MemoryRemoteStore
from daysync.sync import SyncController
from daysync.types import CacheKey, ResourceKind

# Scaled-down timings: 1000 ms idle / 3000 ms deadline become 0.1 s / 0.3 s
IDLE = 0.1
DEADLINE = 0.3


class TimedRemoteStore(MemoryRemoteStore):
    """MemoryRemoteStore that records the loop time of every put call."""

    def __init__(self):
        super().__init__()
        self.put_times: List[float] = []

    async def put(self, key, document):
        self.put_times.append(asyncio.get_running_loop().time())
        await super().put(key, document)


@pytest.fixture
def kv_store():
    return MemoryKeyValueStore()


@pytest.fixture
def local_cache(kv_store):
    return LocalCacheStore(kv_store)


@pytest.fixture
def remote():
    return TimedRemoteStore()


@pytest.fixture
def controller(remote, local_cache):
    return SyncController(
        remote,
        local_cache,
        read_deadline=DEADLINE,
        idle_interval=IDLE,
        write_deadline=DEADLINE,
    )


@pytest.fixture
def journal_key():
    return CacheKey("user-1", ResourceKind.JOURNAL, "2024-05-01")


@pytest.fixture
def tracker_key():
    return CacheKey("user-1", ResourceKind.TRACKER, "2024-05")


@pytest.fixture
def graph_key():
    return CacheKey("user-1", ResourceKind.GRAPH, "2024-05")


@pytest.fixture
def genuine_error():
    return RemoteError("permission denied", RemoteErrorKind.PERMISSION_DENIED)


@pytest.fixture
def offline_error():
    return RemoteError("client is offline", RemoteErrorKind.OFFLINE)
