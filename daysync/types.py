"""
Shared types for daysync.

The value types passed between the local cache, the remote fetch/write
machinery and the sync controller live here. Records themselves are plain
JSON-like dicts; the only field the engine reasons about is ``updatedAt``.
"""

import re
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional, Tuple

from daysync.protocols import RemoteError

Record = Dict[str, Any]

UPDATED_AT = "updatedAt"

_DAY_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")
_MONTH_RE = re.compile(r"^\d{4}-\d{2}$")


# === Shared Utility Functions ===


def utc_now() -> str:
    """Get current timestamp as ISO string in UTC."""
    return datetime.now(timezone.utc).isoformat()


def parse_datetime(s: Optional[str]) -> Optional[datetime]:
    """Parse an ISO datetime string, returning None for empty or invalid input."""
    if not s or not isinstance(s, str):
        return None
    try:
        parsed = datetime.fromisoformat(s.replace("Z", "+00:00"))
    except (TypeError, ValueError):
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def is_newer(candidate: Optional[Record], current: Optional[Record]) -> bool:
    """Whether ``candidate`` is strictly more recent than ``current`` by updatedAt.

    A record without a parseable timestamp never wins over one that has one.
    """
    if candidate is None:
        return False
    if current is None:
        return True
    candidate_at = parse_datetime(candidate.get(UPDATED_AT))
    current_at = parse_datetime(current.get(UPDATED_AT))
    if candidate_at is None:
        return False
    if current_at is None:
        return True
    return candidate_at > current_at


# === Enums ===


class ResourceKind(str, Enum):
    """The per-user, per-period resources that are synchronized."""

    JOURNAL = "journal"
    TRACKER = "tracker"
    GRAPH = "graph"
    MONTHLY_TASKS = "monthly_tasks"

    @property
    def collection(self) -> str:
        """Remote collection name under ``users/{userId}/``."""
        return _COLLECTIONS[self]

    @property
    def per_day(self) -> bool:
        return self is ResourceKind.JOURNAL


_COLLECTIONS = {
    ResourceKind.JOURNAL: "journal",
    ResourceKind.TRACKER: "tracker",
    ResourceKind.GRAPH: "graph",
    ResourceKind.MONTHLY_TASKS: "monthlyTasks",
}


class SyncState(Enum):
    """Sync state of one displayed period."""

    IDLE = "idle"
    LOADING = "loading"  # Local cache is being read
    SYNCING = "syncing"  # Painted locally, remote fetch in flight
    SAVING = "saving"  # Edits pending or being written remotely
    LOAD_FAILED = "load_failed"  # Nothing trustworthy could be shown
    SYNCED = "synced"


# === Keys ===


@dataclass(frozen=True)
class CacheKey:
    """Identifies exactly one record: a user's resource for one period."""

    user_id: str
    kind: ResourceKind
    period_key: str

    def __post_init__(self):
        if not self.user_id:
            raise ValueError("user_id must not be empty")
        if not isinstance(self.kind, ResourceKind):
            object.__setattr__(self, "kind", ResourceKind(self.kind))
        pattern = _DAY_RE if self.kind.per_day else _MONTH_RE
        if not isinstance(self.period_key, str) or not pattern.match(self.period_key):
            expected = "YYYY-MM-DD" if self.kind.per_day else "YYYY-MM"
            raise ValueError(
                f"period_key for {self.kind.value} must be {expected}, got {self.period_key!r}"
            )

    def raw_key(self, namespace: str = "daysync") -> str:
        """Local store key, e.g. ``daysync_journal_cache_u1_2024-05-01``."""
        return f"{namespace}_{self.kind.value}_cache_{self.user_id}_{self.period_key}"

    @property
    def document_path(self) -> str:
        return f"users/{self.user_id}/{self.kind.collection}/{self.period_key}"

    @property
    def slot(self) -> Tuple[str, ResourceKind]:
        """The (user, kind) pair; at most one period is active per slot."""
        return (self.user_id, self.kind)

    def __str__(self) -> str:
        return self.document_path


# === Outcomes ===


@dataclass
class FetchOutcome:
    """Result of a timed two-stage remote fetch.

    ``record`` is the freshest document seen: the server's when it returned
    one, otherwise the cache replica's. ``error`` is set when the server read
    did not complete successfully.
    """

    record: Optional[Record] = None
    error: Optional[RemoteError] = None
    replica_hit: bool = False
    server_hit: bool = False

    @property
    def resolved(self) -> bool:
        return self.error is None

    @property
    def ignorable(self) -> bool:
        return self.error is not None and self.error.ignorable


@dataclass
class FlushResult:
    """Result of flushing one snapshot to the remote store."""

    key: CacheKey
    record: Record
    error: Optional[RemoteError] = None

    @property
    def ok(self) -> bool:
        return self.error is None
