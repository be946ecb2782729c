"""SQLite-backed local key-value store.

Durable counterpart of a browser's local storage: one table of string values
keyed by raw cache key. Connections are opened per operation.
"""

import contextlib
import logging
import sqlite3
from pathlib import Path
from typing import List, Optional, Union

logger = logging.getLogger(__name__)

SCHEMA = """
CREATE TABLE IF NOT EXISTS kv_cache (
    raw_key TEXT PRIMARY KEY,
    value TEXT NOT NULL,
    written_at TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%fZ', 'now'))
)
"""


class SQLiteKeyValueStore:
    """Local string store in a single SQLite file.

    Args:
        db_path: Database file path; parent directories are created.
    """

    def __init__(self, db_path: Union[str, Path]):
        self.db_path = Path(db_path).expanduser()
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        with self._connect() as conn:
            conn.execute(SCHEMA)

    def _get_conn(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA journal_mode=WAL")
        conn.execute("PRAGMA busy_timeout=5000")
        return conn

    @contextlib.contextmanager
    def _connect(self):
        """Context manager that commits on success, rolls back on error and closes."""
        conn = self._get_conn()
        try:
            yield conn
            conn.commit()
        except Exception as e:
            logger.debug(f"Transaction failed, rolling back: {e}")
            conn.rollback()
            raise
        finally:
            conn.close()

    def read(self, raw_key: str) -> Optional[str]:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT value FROM kv_cache WHERE raw_key = ?", (raw_key,)
            ).fetchone()
        return row["value"] if row else None

    def write(self, raw_key: str, value: str) -> None:
        with self._connect() as conn:
            conn.execute(
                """INSERT INTO kv_cache (raw_key, value, written_at)
                   VALUES (?, ?, strftime('%Y-%m-%dT%H:%M:%fZ', 'now'))
                   ON CONFLICT(raw_key) DO UPDATE SET
                       value = excluded.value,
                       written_at = excluded.written_at""",
                (raw_key, value),
            )

    def keys(self, prefix: str = "") -> List[str]:
        """Raw keys starting with ``prefix``, sorted."""
        with self._connect() as conn:
            rows = conn.execute(
                "SELECT raw_key FROM kv_cache WHERE substr(raw_key, 1, ?) = ? ORDER BY raw_key",
                (len(prefix), prefix),
            ).fetchall()
        return [row["raw_key"] for row in rows]
