"""
daysync - Local-first sync for per-period planner records.

Journals, habit trackers, mood graphs and monthly task lists paint instantly
from a local cache and reach the remote document store eventually.
"""

from .protocols import DaysyncError, NoActivePeriodError, RemoteError, RemoteErrorKind
from .storage import LocalCacheStore
from .sync import DebouncedWriter, SyncController, TimedRemoteFetch
from .types import CacheKey, FetchOutcome, FlushResult, ResourceKind, SyncState

try:
    from importlib.metadata import version

    __version__ = version("daysync")
except Exception:
    __version__ = "0.0.0"

__all__ = [
    "CacheKey",
    "DaysyncError",
    "DebouncedWriter",
    "FetchOutcome",
    "FlushResult",
    "LocalCacheStore",
    "NoActivePeriodError",
    "RemoteError",
    "RemoteErrorKind",
    "ResourceKind",
    "SyncController",
    "SyncState",
    "TimedRemoteFetch",
]
