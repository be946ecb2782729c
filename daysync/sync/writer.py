"""Debounced remote writes.

Edits to one key are coalesced: each ``schedule`` replaces the pending
snapshot and restarts the idle timer, and only the latest snapshot is
flushed. A flush writes the local cache as it starts, then the remote store under a
deadline. Remote failures are never retried here; the next edit, an explicit
retry or a force-save is the retry.

Flushes already in flight are never cancelled by later edits. Each flush
carries a whole-record snapshot, so the remote store always ends up holding
one complete snapshot, though a slow earlier write may land after a later
one.
"""

import asyncio
import copy
import logging
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Set

from daysync.protocols import RemoteError, RemoteStore
from daysync.storage.local import LocalCacheStore
from daysync.sync.fetch import run_with_deadline
from daysync.types import CacheKey, FlushResult, Record

logger = logging.getLogger(__name__)

DEFAULT_IDLE_INTERVAL = 1.0
DEFAULT_WRITE_DEADLINE = 3.0


@dataclass
class PendingWrite:
    """The latest unflushed snapshot for a key and its armed timer."""

    record: Record
    handle: asyncio.TimerHandle


class DebouncedWriter:
    """Coalesces edits per key into single deferred remote writes.

    Args:
        local: Local cache written at the start of every flush.
        remote: Remote document store.
        idle_interval: Seconds of inactivity before a scheduled write fires.
        write_deadline: Seconds a remote write may take before it is
            treated as an ignorable timeout.
        on_flushed: Called with the FlushResult of every completed flush.
    """

    def __init__(
        self,
        local: LocalCacheStore,
        remote: RemoteStore,
        idle_interval: float = DEFAULT_IDLE_INTERVAL,
        write_deadline: float = DEFAULT_WRITE_DEADLINE,
        on_flushed: Optional[Callable[[FlushResult], None]] = None,
    ):
        self._local = local
        self._remote = remote
        self.idle_interval = idle_interval
        self.write_deadline = write_deadline
        self.on_flushed = on_flushed
        self._pending: Dict[CacheKey, PendingWrite] = {}
        self._inflight: Dict[CacheKey, int] = {}
        self._tasks: Set[asyncio.Future] = set()
        self._stragglers: Set[asyncio.Future] = set()

    # === Scheduling ===

    def schedule(self, key: CacheKey, record: Record) -> None:
        """Arm (or re-arm) the idle timer for ``key`` with ``record``.

        Must be called from within the running event loop.
        """
        loop = asyncio.get_running_loop()
        previous = self._pending.pop(key, None)
        if previous is not None:
            previous.handle.cancel()
        handle = loop.call_later(self.idle_interval, self._fire, key)
        self._pending[key] = PendingWrite(copy.deepcopy(record), handle)

    def cancel(self, key: CacheKey) -> Optional[Record]:
        """Disarm the timer without flushing. Returns the dropped snapshot."""
        pending = self._pending.pop(key, None)
        if pending is None:
            return None
        pending.handle.cancel()
        return pending.record

    def flush_pending(self, key: CacheKey) -> Optional[asyncio.Future]:
        """Flush the pending snapshot for ``key`` immediately, if any."""
        record = self.cancel(key)
        if record is None:
            return None
        return self._spawn(key, record)

    async def flush_now(self, key: CacheKey, record: Record) -> FlushResult:
        """Write ``record`` right away, superseding any pending snapshot."""
        self.cancel(key)
        task = self._spawn(key, copy.deepcopy(record))
        return await asyncio.shield(task)

    # === Introspection ===

    def pending(self, key: CacheKey) -> Optional[Record]:
        pending = self._pending.get(key)
        return pending.record if pending else None

    def has_pending(self, key: CacheKey) -> bool:
        return key in self._pending

    def in_flight(self, key: CacheKey) -> int:
        return self._inflight.get(key, 0)

    def is_busy(self, key: CacheKey) -> bool:
        return self.has_pending(key) or self.in_flight(key) > 0

    # === Lifecycle ===

    def flush_all(self) -> List[asyncio.Future]:
        return [task for task in map(self.flush_pending, list(self._pending)) if task is not None]

    async def drain(self) -> None:
        """Wait until every started flush has completed."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def aclose(self) -> None:
        """Flush everything pending and wait for it."""
        self.flush_all()
        await self.drain()

    # === Internals ===

    def _fire(self, key: CacheKey) -> None:
        pending = self._pending.pop(key, None)
        if pending is not None:
            self._spawn(key, pending.record)

    def _spawn(self, key: CacheKey, record: Record) -> asyncio.Future:
        # Written before the task first runs, so a later edit is never overwritten
        self._local.put(key, record)
        self._inflight[key] = self._inflight.get(key, 0) + 1
        task = asyncio.ensure_future(self._flush(key, record))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _flush(self, key: CacheKey, record: Record) -> FlushResult:
        path = key.document_path
        try:
            await run_with_deadline(
                self._remote.put(key, record), self.write_deadline, path, self._stragglers
            )
            result = FlushResult(key, record)
        except RemoteError as e:
            if e.ignorable:
                logger.debug(f"Remote write for {path} deferred ({e.kind.value}); kept locally")
            else:
                logger.warning(f"Failed to save {path}: {e!r}")
            result = FlushResult(key, record, error=e)
        finally:
            remaining = self._inflight.get(key, 1) - 1
            if remaining > 0:
                self._inflight[key] = remaining
            else:
                self._inflight.pop(key, None)

        if self.on_flushed is not None:
            try:
                self.on_flushed(result)
            except Exception:
                logger.exception(f"Flush listener failed for {path}")
        return result
