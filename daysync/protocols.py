"""
daysync Protocol Definitions
============================

Interface contracts for the collaborators the sync engine talks to.

Collaborators:
- RemoteStore:    async key-addressed document database. Offers a read served
                  from its own client-side replica, a read from the
                  authoritative server, and a whole-document write.
- KeyValueStore:  synchronous local persistent store of strings.

Error handling philosophy:
- Remote failures raise RemoteError with a structured ``kind``. Whether a
  failure is ignorable (timeout, offline) is decided by that kind, never by
  inspecting messages.
- Local store failures are the local store's problem: LocalCacheStore
  swallows them, because the remote store is the durability backstop.
- Routed operations on a period that was never loaded raise
  NoActivePeriodError.
"""

from __future__ import annotations

from enum import Enum
from typing import TYPE_CHECKING, Any, Dict, Optional, Protocol, runtime_checkable

if TYPE_CHECKING:
    from daysync.types import CacheKey


# =============================================================================
# ERRORS
# =============================================================================


class DaysyncError(Exception):
    """Base for all daysync errors."""

    pass


class RemoteErrorKind(str, Enum):
    """Why a remote store call failed."""

    TIMEOUT = "timeout"  # Deadline elapsed before the store answered
    OFFLINE = "offline"  # Client offline or store unreachable
    PERMISSION_DENIED = "permission_denied"
    INVALID_DOCUMENT = "invalid_document"  # Document could not be decoded
    UNKNOWN = "unknown"


IGNORABLE_KINDS = frozenset({RemoteErrorKind.TIMEOUT, RemoteErrorKind.OFFLINE})


class RemoteError(DaysyncError):
    """Raised by remote store collaborators.

    Ignorable errors (timeout, offline) never change user-visible error state
    when a fallback exists.
    """

    def __init__(
        self,
        message: str,
        kind: RemoteErrorKind = RemoteErrorKind.UNKNOWN,
        path: Optional[str] = None,
    ):
        super().__init__(message)
        self.kind = RemoteErrorKind(kind)
        self.path = path

    @property
    def ignorable(self) -> bool:
        return self.kind in IGNORABLE_KINDS

    @classmethod
    def timeout(cls, path: Optional[str] = None, seconds: Optional[float] = None) -> "RemoteError":
        detail = f" after {seconds:.3f}s" if seconds is not None else ""
        return cls(f"Timeout{detail}", RemoteErrorKind.TIMEOUT, path)

    @classmethod
    def wrap(cls, exc: BaseException, path: Optional[str] = None) -> "RemoteError":
        """Coerce any collaborator exception into a RemoteError."""
        if isinstance(exc, RemoteError):
            if exc.path is None:
                exc.path = path
            return exc
        wrapped = cls(f"{type(exc).__name__}: {exc}", RemoteErrorKind.UNKNOWN, path)
        wrapped.__cause__ = exc
        return wrapped

    def __repr__(self) -> str:
        return f"RemoteError(kind={self.kind.value!r}, path={self.path!r}, message={str(self)!r})"


class NoActivePeriodError(DaysyncError):
    """Raised when an operation targets a key that has not been loaded."""

    def __init__(self, key: "CacheKey"):
        super().__init__(f"No active period for {key}; call load() first")
        self.key = key


# =============================================================================
# COLLABORATORS
# =============================================================================


@runtime_checkable
class RemoteStore(Protocol):
    """Async document store addressed by CacheKey.

    All methods return the document as a dict, or None when absent, and
    raise RemoteError on failure.
    """

    async def get_from_cache(self, key: "CacheKey") -> Optional[Dict[str, Any]]:
        """Read from the store's client-side replica. No network round-trip."""
        ...

    async def get_from_server(self, key: "CacheKey") -> Optional[Dict[str, Any]]:
        """Read from the authoritative server."""
        ...

    async def put(self, key: "CacheKey", document: Dict[str, Any]) -> None:
        """Replace the whole document."""
        ...


@runtime_checkable
class KeyValueStore(Protocol):
    """Synchronous local string store."""

    def read(self, raw_key: str) -> Optional[str]: ...

    def write(self, raw_key: str, value: str) -> None: ...
