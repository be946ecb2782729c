"""Sync controller: the engine's public face.

One ``PeriodSession`` exists per displayed key. It holds the in-memory record
and the SyncState. Loading a key replaces the session for its (user, kind)
slot, so switching from one month to the next discards the old session
instead of mutating it. Any unflushed edit for the old key is flushed
immediately (flush-before-switch).

State machine per key::

    Idle -> Loading -> Syncing -> Synced
                          |  \\-> LoadFailed -> (retry) Syncing
                          |                  \\-> (forceSave) Saving
    any (except LoadFailed) -- edit --> Saving -> Synced

Edits are always applied in memory and to the local cache. While in
LoadFailed they are not sent to the remote store; ``force_save`` sends them
anyway, accepting that an unseen remote record may be overwritten.
"""

import copy
import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Mapping, Optional, Union

from daysync.config import Settings, get_settings
from daysync.protocols import KeyValueStore, NoActivePeriodError, RemoteError, RemoteStore
from daysync.records import default_record
from daysync.storage.local import LocalCacheStore
from daysync.sync.fetch import DEFAULT_READ_DEADLINE, TimedRemoteFetch
from daysync.sync.writer import DEFAULT_IDLE_INTERVAL, DEFAULT_WRITE_DEADLINE, DebouncedWriter
from daysync.types import (
    UPDATED_AT,
    CacheKey,
    FetchOutcome,
    FlushResult,
    Record,
    SyncState,
    is_newer,
    utc_now,
)

logger = logging.getLogger(__name__)

Listener = Callable[[CacheKey, SyncState, Optional[Record]], None]
PatchLike = Union[Mapping[str, Any], Callable[[Record], Mapping[str, Any]]]


@dataclass
class PeriodSession:
    """Live sync state for one displayed key."""

    key: CacheKey
    state: SyncState = SyncState.IDLE
    record: Optional[Record] = None
    local_hit: bool = False
    replica_hit: bool = False
    edited: bool = False  # User changed the record during this session
    loading: bool = False  # A load or retry read is in flight
    last_error: Optional[RemoteError] = None

    @property
    def has_fallback(self) -> bool:
        return self.local_hit or self.replica_hit


class SyncController:
    """Load/edit/save lifecycle for per-period records.

    Args:
        remote: Remote document store.
        local: Local record cache.
        fetcher: Timed remote reader (built from ``remote`` if omitted).
        writer: Debounced writer (built from ``local`` and ``remote`` if omitted).
        fail_on_unverified_load: Also enter LoadFailed when the server read
            failed ignorably (timeout, offline) and nothing was cached.
    """

    def __init__(
        self,
        remote: RemoteStore,
        local: LocalCacheStore,
        fetcher: Optional[TimedRemoteFetch] = None,
        writer: Optional[DebouncedWriter] = None,
        read_deadline: float = DEFAULT_READ_DEADLINE,
        idle_interval: float = DEFAULT_IDLE_INTERVAL,
        write_deadline: float = DEFAULT_WRITE_DEADLINE,
        fail_on_unverified_load: bool = False,
    ):
        self._remote = remote
        self._local = local
        self._fetcher = fetcher or TimedRemoteFetch(remote, read_deadline)
        self._writer = writer or DebouncedWriter(local, remote, idle_interval, write_deadline)
        self._writer.on_flushed = self._on_flushed
        self.fail_on_unverified_load = fail_on_unverified_load
        self._sessions: Dict[CacheKey, PeriodSession] = {}
        self._listeners: List[Listener] = []

    @classmethod
    def from_settings(
        cls,
        remote: RemoteStore,
        store: KeyValueStore,
        settings: Optional[Settings] = None,
    ) -> "SyncController":
        """Build a controller with timings and namespace taken from Settings."""
        settings = settings or get_settings()
        return cls(
            remote,
            LocalCacheStore(store, namespace=settings.cache_namespace),
            read_deadline=settings.read_deadline,
            idle_interval=settings.debounce_interval,
            write_deadline=settings.write_deadline,
            fail_on_unverified_load=settings.fail_on_unverified_load,
        )

    # === Observation ===

    def state(self, key: CacheKey) -> SyncState:
        session = self._sessions.get(key)
        return session.state if session else SyncState.IDLE

    def record(self, key: CacheKey) -> Optional[Record]:
        """A copy of the displayed record, or None if nothing is displayed."""
        session = self._sessions.get(key)
        if session is None or session.record is None:
            return None
        return copy.deepcopy(session.record)

    def last_error(self, key: CacheKey) -> Optional[RemoteError]:
        session = self._sessions.get(key)
        return session.last_error if session else None

    def can_force_save(self, key: CacheKey) -> bool:
        session = self._sessions.get(key)
        return bool(session and session.state is SyncState.LOAD_FAILED and session.edited)

    def active_keys(self) -> List[CacheKey]:
        return list(self._sessions)

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register ``listener(key, state, record)``; returns an unsubscribe callable."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    # === Operations ===

    async def load(self, key: CacheKey) -> SyncState:
        """Open ``key``: paint from the local cache, then sync with the remote store.

        Any other period open in the same (user, kind) slot is disposed first.
        Returns the state the session settled in.
        """
        for other in [k for k in self._sessions if k.slot == key.slot]:
            self.dispose(other)

        session = PeriodSession(key)
        self._sessions[key] = session
        self._transition(session, SyncState.LOADING)

        cached = self._local.get(key)
        if cached is not None:
            session.record = cached
            session.local_hit = True
        session.loading = True
        self._transition(session, SyncState.SYNCING)

        def on_replica(doc: Record) -> None:
            if self._is_current(session):
                session.replica_hit = True
                self._apply_remote(session, doc)

        outcome = await self._fetcher.fetch(key, on_replica=on_replica)
        if not self._is_current(session):
            logger.debug(f"Discarding load result for {key}; period was closed")
            return session.state
        session.loading = False
        self._resolve_load(session, outcome)
        return session.state

    def edit(self, key: CacheKey, patch: PatchLike) -> Record:
        """Apply ``patch`` to the displayed record and persist it.

        ``patch`` is a mapping of top-level fields, or a callable that takes
        the current record and returns one (see ``daysync.records``). The
        local cache is written before this returns; the remote write is
        debounced.
        """
        session = self._require(key)
        base = session.record if session.record is not None else default_record(key.kind)
        changes = patch(copy.deepcopy(base)) if callable(patch) else patch
        updated = copy.deepcopy(base)
        updated.update(copy.deepcopy(dict(changes)))
        updated[UPDATED_AT] = utc_now()

        session.record = updated
        session.edited = True
        self._local.put(key, updated)

        if session.state is SyncState.LOAD_FAILED:
            # Shown and cached locally only, until retry or force_save
            self._notify(session)
        else:
            self._writer.schedule(key, updated)
            self._transition(session, SyncState.SAVING)
        return copy.deepcopy(updated)

    async def retry(self, key: CacheKey) -> SyncState:
        """Re-read ``key`` from the server after a failed load."""
        session = self._require(key)
        if session.state is not SyncState.LOAD_FAILED:
            return session.state

        session.loading = True
        self._transition(session, SyncState.SYNCING)
        outcome = await self._fetcher.fetch_server(key)
        if not self._is_current(session):
            return session.state
        session.loading = False

        if not outcome.resolved:
            if not outcome.ignorable:
                session.last_error = outcome.error
            self._transition(session, SyncState.LOAD_FAILED)
            return session.state

        applied = outcome.server_hit and self._apply_remote(session, outcome.record)
        session.last_error = None
        if session.record is None:
            session.record = default_record(key.kind)
        if session.edited and not applied:
            # Local edits are newer than anything the server holds
            self._writer.schedule(key, session.record)
        self._settle(session)
        return session.state

    async def force_save(self, key: CacheKey) -> Optional[FlushResult]:
        """Write the displayed record to the remote store now, even after a failed load."""
        session = self._require(key)
        if session.record is None:
            logger.debug(f"Nothing to force-save for {key}")
            return None
        unverified = session.state is SyncState.LOAD_FAILED
        if unverified:
            logger.info(f"Force-saving {key} without a verified remote read")
        self._transition(session, SyncState.SAVING)
        result = await self._writer.flush_now(key, session.record)
        if unverified and not result.ok and not result.error.ignorable and self._is_current(session):
            self._transition(session, SyncState.LOAD_FAILED)
        return result

    def dispose(self, key: CacheKey):
        """Close ``key``, flushing any pending edit for it.

        Returns the flush task when one was started, else None.
        """
        session = self._sessions.pop(key, None)
        task = self._writer.flush_pending(key)
        if session is not None:
            session.state = SyncState.IDLE
            session.loading = False
            self._notify(session)
        return task

    async def aclose(self) -> None:
        """Dispose every session and wait for outstanding writes."""
        for key in list(self._sessions):
            self.dispose(key)
        await self._writer.drain()

    # === Internals ===

    def _require(self, key: CacheKey) -> PeriodSession:
        session = self._sessions.get(key)
        if session is None:
            raise NoActivePeriodError(key)
        return session

    def _is_current(self, session: PeriodSession) -> bool:
        return self._sessions.get(session.key) is session

    def _apply_remote(self, session: PeriodSession, doc: Optional[Record]) -> bool:
        """Display a remote document unless the user's own edit is newer."""
        if doc is None:
            return False
        if session.edited and not is_newer(doc, session.record):
            logger.debug(f"Keeping local edit for {session.key}; remote copy is older")
            return False
        if session.edited and self._writer.cancel(session.key) is not None:
            logger.debug(f"Dropped pending write for {session.key}; remote copy is newer")
        session.record = doc
        session.edited = False
        self._local.put(session.key, doc)
        self._notify(session)
        return True

    def _resolve_load(self, session: PeriodSession, outcome: FetchOutcome) -> None:
        if outcome.server_hit:
            self._apply_remote(session, outcome.record)

        if outcome.resolved:
            if session.record is None:
                session.record = default_record(session.key.kind)
            self._settle(session)
            return

        error = outcome.error
        if not error.ignorable:
            session.last_error = error
        if not session.has_fallback and (not error.ignorable or self.fail_on_unverified_load):
            # Pending edits would overwrite a record we never saw
            self._writer.cancel(session.key)
            self._transition(session, SyncState.LOAD_FAILED)
            return

        if session.record is None:
            session.record = default_record(session.key.kind)
        self._settle(session)

    def _settle(self, session: PeriodSession) -> None:
        if session.state is SyncState.LOAD_FAILED:
            return
        if self._writer.is_busy(session.key):
            state = SyncState.SAVING
        elif session.loading:
            state = SyncState.SYNCING
        else:
            state = SyncState.SYNCED
        self._transition(session, state)

    def _on_flushed(self, result: FlushResult) -> None:
        session = self._sessions.get(result.key)
        if session is None:
            return
        if result.ok:
            session.last_error = None
        elif not result.error.ignorable:
            session.last_error = result.error
        self._settle(session)

    def _transition(self, session: PeriodSession, state: SyncState) -> None:
        if session.state is not state:
            logger.debug(f"{session.key}: {session.state.value} -> {state.value}")
        session.state = state
        self._notify(session)

    def _notify(self, session: PeriodSession) -> None:
        for listener in list(self._listeners):
            try:
                listener(session.key, session.state, copy.deepcopy(session.record))
            except Exception:
                logger.exception(f"Sync listener failed for {session.key}")
