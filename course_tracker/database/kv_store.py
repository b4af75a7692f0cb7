"""
SQLite-backed Key-Value Store.

Durable, process-independent storage for two kinds of values:
    - thumbnail data URLs keyed by video file path
    - per-folder JSON documents (progress and notes maps)

Interface (async, safe to call from the event loop):
    get(key) -> Optional[str], set(key, value)

Blocking sqlite calls run in worker threads via asyncio.to_thread.
Each call opens its own connection, so concurrent threads never share one.
"""
import asyncio
import os
import sqlite3
import time
from typing import Optional, Protocol


class StoreError(Exception):
    """Raised when the persistent store cannot be read or written."""


class KeyValueStore(Protocol):
    """
    Protocol for persistent stores consumed by the tracker.
    Implementations raise StoreError on I/O failure.
    """

    async def get(self, key: str) -> Optional[str]:
        ...

    async def set(self, key: str, value: str) -> None:
        ...


class SQLiteKVStore:
    """
    Key-value table on top of SQLite.
    Auto-commits on every write.
    """

    def __init__(self, db_file: str):
        self.db_file = db_file
        self._initialized = False

    def _get_conn(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.db_file, timeout=10, isolation_level=None)
        conn.execute("PRAGMA synchronous=NORMAL")
        return conn

    def _ensure_schema(self) -> None:
        """Create the directory, enable WAL and create the table on first use."""
        if self._initialized:
            return

        directory = os.path.dirname(self.db_file)
        if directory:
            os.makedirs(directory, exist_ok=True)

        conn = self._get_conn()
        try:
            conn.execute("PRAGMA journal_mode=WAL")
            conn.execute("""
                CREATE TABLE IF NOT EXISTS kv (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL,
                    updated_at INTEGER DEFAULT 0
                )
            """)
        finally:
            conn.close()
        self._initialized = True

    # ------------------------------------------------------------------
    # Sync implementation (runs in worker threads)
    # ------------------------------------------------------------------

    def get_sync(self, key: str) -> Optional[str]:
        try:
            self._ensure_schema()
            conn = self._get_conn()
            try:
                row = conn.execute("SELECT value FROM kv WHERE key = ?", (key,)).fetchone()
            finally:
                conn.close()
        except (sqlite3.Error, OSError) as e:
            raise StoreError(f"read failed for {key!r}: {e}") from e
        return row[0] if row else None

    def set_sync(self, key: str, value: str) -> None:
        try:
            self._ensure_schema()
            conn = self._get_conn()
            try:
                conn.execute(
                    "INSERT OR REPLACE INTO kv (key, value, updated_at) VALUES (?, ?, ?)",
                    (key, value, int(time.time())),
                )
            finally:
                conn.close()
        except (sqlite3.Error, OSError) as e:
            raise StoreError(f"write failed for {key!r}: {e}") from e

    def count_sync(self) -> int:
        try:
            self._ensure_schema()
            conn = self._get_conn()
            try:
                return conn.execute("SELECT COUNT(*) FROM kv").fetchone()[0]
            finally:
                conn.close()
        except (sqlite3.Error, OSError) as e:
            raise StoreError(f"count failed: {e}") from e

    # ------------------------------------------------------------------
    # Public interface
    # ------------------------------------------------------------------

    async def get(self, key: str) -> Optional[str]:
        return await asyncio.to_thread(self.get_sync, key)

    async def set(self, key: str, value: str) -> None:
        await asyncio.to_thread(self.set_sync, key, value)

    async def count(self) -> int:
        return await asyncio.to_thread(self.count_sync)
