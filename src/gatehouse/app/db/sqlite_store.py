from __future__ import annotations

import logging
import sqlite3
from pathlib import Path

logger = logging.getLogger(__name__)

SCHEMA = """
CREATE TABLE IF NOT EXISTS kv_store (
    namespace TEXT NOT NULL,
    key       TEXT NOT NULL,
    value     TEXT NOT NULL,
    PRIMARY KEY (namespace, key)
)
"""


class SQLiteStore:
    """Namespace-scoped string store persisted in a single SQLite table.

    Every gate shares one ``kv_store`` table; rows are partitioned by
    namespace so several applications can point at the same file. Writes
    are last-write-wins. A connection is opened per operation, so the store
    can be shared freely between tasks on the event loop.
    """

    __slots__ = ("db_path", "namespace", "_max_value_bytes", "_timeout")

    def __init__(
        self,
        db_path: str | Path,
        *,
        namespace: str = "gatehouse",
        max_value_bytes: int | None = None,
        timeout: float = 5.0,
    ) -> None:
        raw_path = Path(db_path)
        if str(db_path) == ":memory:":
            raise ValueError("SQLiteStore needs a file path; use MemoryStore instead")
        self.db_path = raw_path.expanduser().resolve(strict=False)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self.namespace = namespace
        self._max_value_bytes = max_value_bytes
        self._timeout = timeout
        self._ensure_schema()

    def _connect(self) -> sqlite3.Connection:
        return sqlite3.connect(self.db_path, timeout=self._timeout)

    def _ensure_schema(self) -> None:
        conn = self._connect()
        try:
            conn.execute(SCHEMA)
            conn.commit()
        finally:
            conn.close()

    def get(self, key: str) -> str | None:
        """Return the stored value, or ``None`` when the key is absent."""

        conn = self._connect()
        try:
            cursor = conn.execute(
                "SELECT value FROM kv_store WHERE namespace = ? AND key = ?",
                (self.namespace, key),
            )
            row = cursor.fetchone()
        finally:
            conn.close()
        return str(row[0]) if row else None

    def set(self, key: str, value: str) -> bool:
        """Upsert ``value``; return ``False`` when the write is rejected."""

        if (
            self._max_value_bytes is not None
            and len(value.encode("utf-8")) > self._max_value_bytes
        ):
            logger.warning(
                "Refusing to store %s: value exceeds %s bytes",
                key,
                self._max_value_bytes,
            )
            return False

        try:
            conn = self._connect()
            try:
                conn.execute(
                    """
                    INSERT INTO kv_store (namespace, key, value)
                    VALUES (?, ?, ?)
                    ON CONFLICT(namespace, key) DO UPDATE SET
                        value = excluded.value
                    """,
                    (self.namespace, key, value),
                )
                conn.commit()
            finally:
                conn.close()
        except sqlite3.Error:
            logger.warning("Failed to write %s to %s", key, self.db_path, exc_info=True)
            return False
        return True

    def remove(self, key: str) -> None:
        """Delete a specific entry."""

        conn = self._connect()
        try:
            conn.execute(
                "DELETE FROM kv_store WHERE namespace = ? AND key = ?",
                (self.namespace, key),
            )
            conn.commit()
        finally:
            conn.close()

    def remove_namespace(self) -> int:
        """Delete every entry in this store's namespace and return the count."""

        conn = self._connect()
        try:
            cursor = conn.execute(
                "DELETE FROM kv_store WHERE namespace = ?",
                (self.namespace,),
            )
            conn.commit()
            return cursor.rowcount or 0
        finally:
            conn.close()


__all__ = ["SQLiteStore"]
