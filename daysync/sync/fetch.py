"""Deadline-bounded remote reads.

``run_with_deadline`` races a remote call against a timer without cancelling
the call: if the deadline wins, the call keeps running in the background and
its eventual result or failure is only logged.

``TimedRemoteFetch`` builds the two-stage load on top of it: the store's
cache replica first (fast, no deadline, failures read as a miss), then the
authoritative server under the deadline. A present server document
supersedes the replica's.
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Optional, Set

from daysync.protocols import RemoteError, RemoteStore
from daysync.types import CacheKey, FetchOutcome, Record

logger = logging.getLogger(__name__)

DEFAULT_READ_DEADLINE = 3.0


def _log_straggler(path: Optional[str]) -> Callable[[asyncio.Future], None]:
    def callback(task: asyncio.Future) -> None:
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.debug(f"Late remote call for {path} failed after its deadline: {exc!r}")
        else:
            logger.debug(f"Late remote call for {path} completed after its deadline")

    return callback


async def run_with_deadline(
    call: Awaitable[Any],
    deadline: float,
    path: Optional[str] = None,
    stragglers: Optional[Set[asyncio.Future]] = None,
) -> Any:
    """Await ``call`` for at most ``deadline`` seconds.

    Raises:
        RemoteError: TIMEOUT if the deadline elapsed first, otherwise the
            call's own failure coerced into a RemoteError.
    """
    task = asyncio.ensure_future(call)
    done, _ = await asyncio.wait({task}, timeout=deadline)
    if task in done:
        try:
            return task.result()
        except asyncio.CancelledError:
            raise
        except Exception as e:
            raise RemoteError.wrap(e, path) from e

    task.add_done_callback(_log_straggler(path))
    if stragglers is not None:
        stragglers.add(task)
        task.add_done_callback(stragglers.discard)
    raise RemoteError.timeout(path, deadline)


class TimedRemoteFetch:
    """Two-stage remote read racing the server against a deadline.

    Args:
        remote: The remote document store.
        deadline: Default server read deadline in seconds.
    """

    def __init__(self, remote: RemoteStore, deadline: float = DEFAULT_READ_DEADLINE):
        self._remote = remote
        self.deadline = deadline
        self._stragglers: Set[asyncio.Future] = set()

    async def fetch(
        self,
        key: CacheKey,
        deadline: Optional[float] = None,
        on_replica: Optional[Callable[[Record], None]] = None,
    ) -> FetchOutcome:
        """Read ``key`` from the cache replica, then from the server.

        ``on_replica`` is called with a replica hit as soon as it is
        available, before the server read starts.
        """
        outcome = FetchOutcome()

        replica = await self._read_replica(key)
        if replica is not None:
            outcome.record = replica
            outcome.replica_hit = True
            if on_replica is not None:
                on_replica(replica)

        server_outcome = await self.fetch_server(key, deadline)
        outcome.error = server_outcome.error
        if server_outcome.server_hit:
            outcome.record = server_outcome.record
            outcome.server_hit = True
        return outcome

    async def fetch_server(self, key: CacheKey, deadline: Optional[float] = None) -> FetchOutcome:
        """Server-only read under the deadline."""
        deadline = self.deadline if deadline is None else deadline
        path = key.document_path
        try:
            doc = await run_with_deadline(
                self._remote.get_from_server(key), deadline, path, self._stragglers
            )
        except RemoteError as e:
            self._report(e)
            return FetchOutcome(error=e)
        if doc is None:
            return FetchOutcome()
        return FetchOutcome(record=doc, server_hit=True)

    async def _read_replica(self, key: CacheKey) -> Optional[Record]:
        try:
            return await self._remote.get_from_cache(key)
        except Exception as e:
            logger.debug(f"Cache replica miss for {key.document_path}: {e!r}")
            return None

    @staticmethod
    def _report(error: RemoteError) -> None:
        if error.ignorable:
            logger.debug(f"Server read for {error.path} skipped ({error.kind.value})")
        else:
            logger.error(f"Failed to load {error.path}: {error!r}")

    @property
    def pending_stragglers(self) -> int:
        """Server reads still running after losing their deadline race."""
        return len(self._stragglers)
