"""Local cache for synchronized records.

Wraps a synchronous KeyValueStore with JSON (de)serialization keyed by
CacheKey. Nothing here ever raises: unreadable entries read as absent and
failed writes are dropped, since the remote store is the durability
backstop.
"""

import json
import logging
from typing import Optional

from daysync.protocols import KeyValueStore
from daysync.types import CacheKey, Record

logger = logging.getLogger(__name__)


class LocalCacheStore:
    """JSON record cache over a local key-value store.

    Args:
        store: The underlying local store.
        namespace: Leading part of every raw key.
    """

    def __init__(self, store: KeyValueStore, namespace: str = "daysync"):
        self._store = store
        self.namespace = namespace

    def raw_key(self, key: CacheKey) -> str:
        return key.raw_key(self.namespace)

    def get(self, key: CacheKey) -> Optional[Record]:
        """Return the cached record, or None if missing or malformed."""
        raw_key = self.raw_key(key)
        try:
            raw = self._store.read(raw_key)
        except Exception as e:
            logger.debug(f"Local cache read failed for {raw_key}: {e}")
            return None
        if raw is None:
            return None
        try:
            data = json.loads(raw)
        except (TypeError, ValueError) as e:
            logger.debug(f"Ignoring malformed local cache entry {raw_key}: {e}")
            return None
        if not isinstance(data, dict):
            logger.debug(f"Ignoring non-object local cache entry {raw_key}")
            return None
        return data

    def put(self, key: CacheKey, record: Record) -> bool:
        """Overwrite the cached record. Returns False if the write was dropped."""
        raw_key = self.raw_key(key)
        try:
            self._store.write(raw_key, json.dumps(record, ensure_ascii=False))
        except Exception as e:
            # Quota exceeded, disk full, unserializable value: keep going.
            logger.debug(f"Local cache write failed for {raw_key}: {e}")
            return False
        return True
