"""Local cache and store collaborators for daysync."""

from .local import LocalCacheStore
from .memory import MemoryKeyValueStore, MemoryRemoteStore
from .sqlite import SQLiteKeyValueStore

__all__ = [
    "LocalCacheStore",
    "MemoryKeyValueStore",
    "MemoryRemoteStore",
    "SQLiteKeyValueStore",
]
