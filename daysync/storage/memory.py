"""In-memory store collaborators.

``MemoryKeyValueStore`` stands in for a browser-style local store and
``MemoryRemoteStore`` for a document database with a client-side replica.
They back the test suite and embedders without a real backend; the
remote one supports injected latency and failures so deadline behavior can be exercised
on a real event loop.
"""

import asyncio
import copy
import logging
from typing import Any, Dict, List, Optional, Tuple

from daysync.protocols import RemoteError, RemoteErrorKind
from daysync.types import CacheKey

logger = logging.getLogger(__name__)


class MemoryKeyValueStore:
    """Dict-backed local store.

    Args:
        quota: Maximum number of bytes across all values; writes beyond it
            raise, like a browser store reporting quota exceeded.
    """

    def __init__(self, quota: Optional[int] = None):
        self.data: Dict[str, str] = {}
        self.quota = quota

    def read(self, raw_key: str) -> Optional[str]:
        return self.data.get(raw_key)

    def write(self, raw_key: str, value: str) -> None:
        if self.quota is not None:
            used = sum(len(v) for k, v in self.data.items() if k != raw_key)
            if used + len(value) > self.quota:
                raise OSError("local store quota exceeded")
        self.data[raw_key] = value


class MemoryRemoteStore:
    """Dict-backed remote document store.

    ``server`` holds authoritative documents and ``replica`` the client-side
    cached copies. Successful server reads and writes refresh the replica.

    Failure and latency injection:
        server_delay / put_delay: seconds to sleep before answering.
        cache_error / server_error / put_error: exception raised by that call.

    ``closed`` is set by ``aclose``, which the CLI calls when a command ends.
    """

    def __init__(self):
        self.server: Dict[str, Dict[str, Any]] = {}
        self.replica: Dict[str, Dict[str, Any]] = {}
        self.cache_delay: float = 0.0
        self.server_delay: float = 0.0
        self.put_delay: float = 0.0
        self.cache_error: Optional[BaseException] = None
        self.server_error: Optional[BaseException] = None
        self.put_error: Optional[BaseException] = None
        self.calls: List[Tuple[str, str]] = []
        self.puts: List[Tuple[CacheKey, Dict[str, Any]]] = []
        self.closed = False

    def seed(self, key: CacheKey, document: Dict[str, Any], replica: bool = False) -> None:
        """Place a document on the server (and optionally in the replica)."""
        self.server[key.document_path] = copy.deepcopy(document)
        if replica:
            self.replica[key.document_path] = copy.deepcopy(document)

    async def get_from_cache(self, key: CacheKey) -> Optional[Dict[str, Any]]:
        self.calls.append(("get_from_cache", key.document_path))
        if self.cache_delay:
            await asyncio.sleep(self.cache_delay)
        if self.cache_error is not None:
            raise self.cache_error
        doc = self.replica.get(key.document_path)
        return copy.deepcopy(doc) if doc is not None else None

    async def get_from_server(self, key: CacheKey) -> Optional[Dict[str, Any]]:
        self.calls.append(("get_from_server", key.document_path))
        if self.server_delay:
            await asyncio.sleep(self.server_delay)
        if self.server_error is not None:
            raise self.server_error
        doc = self.server.get(key.document_path)
        if doc is None:
            return None
        self.replica[key.document_path] = copy.deepcopy(doc)
        return copy.deepcopy(doc)

    async def put(self, key: CacheKey, document: Dict[str, Any]) -> None:
        self.calls.append(("put", key.document_path))
        snapshot = copy.deepcopy(document)
        if self.put_delay:
            await asyncio.sleep(self.put_delay)
        if self.put_error is not None:
            raise self.put_error
        self.puts.append((key, snapshot))
        self.server[key.document_path] = snapshot
        self.replica[key.document_path] = copy.deepcopy(snapshot)
        logger.debug(f"Stored {key.document_path}")

    def document(self, key: CacheKey) -> Optional[Dict[str, Any]]:
        return self.server.get(key.document_path)

    @staticmethod
    def offline(path: Optional[str] = None) -> RemoteError:
        return RemoteError("client is offline", RemoteErrorKind.OFFLINE, path)

    async def aclose(self) -> None:
        self.closed = True
