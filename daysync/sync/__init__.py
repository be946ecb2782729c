"""Synchronization engine: timed fetch, debounced writes and the controller."""

from .controller import PeriodSession, SyncController
from .fetch import TimedRemoteFetch, run_with_deadline
from .writer import DebouncedWriter, PendingWrite

__all__ = [
    "DebouncedWriter",
    "PendingWrite",
    "PeriodSession",
    "SyncController",
    "TimedRemoteFetch",
    "run_with_deadline",
]
