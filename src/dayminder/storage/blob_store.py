# src/dayminder/storage/blob_store.py

from __future__ import annotations

import asyncio
import contextlib
import logging
import sqlite3
import time
from collections.abc import Iterable, Mapping
from pathlib import Path

logger = logging.getLogger(__name__)


class SqliteBlobStore:
    """
    SQLite key -> bytes store.

    One row per key; a write replaces the whole value inside a transaction,
    so readers see either the old or the new blob.

    Thread-safety:
    - each method opens its own SQLite connection
    - async methods run the blocking work in a worker thread
    """

    def __init__(self, db_path: str | Path = "dayminder.sqlite3") -> None:
        self._db_path = Path(db_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._ensure_schema()
        logger.info("SqliteBlobStore ready db=%s keys=%s", self._db_path, self.count_keys())

    def close(self) -> None:
        """Compatibility hook for shutdown (no persistent connections to close)."""
        return

    # ---- low-level helpers ----

    def _get_conn(self) -> sqlite3.Connection:
        conn = sqlite3.connect(str(self._db_path), timeout=30.0)
        self._configure_conn(conn)
        return conn

    @staticmethod
    def _configure_conn(conn: sqlite3.Connection) -> None:
        with contextlib.suppress(sqlite3.Error):
            conn.execute("PRAGMA journal_mode=WAL")

    def _ensure_schema(self) -> None:
        conn = self._get_conn()
        try:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS blobs (
                    key TEXT PRIMARY KEY,
                    value BLOB NOT NULL,
                    updated_at REAL NOT NULL
                )
                """
            )
            conn.commit()
        finally:
            conn.close()

    def count_keys(self) -> int:
        conn = self._get_conn()
        try:
            (n,) = conn.execute("SELECT COUNT(*) FROM blobs").fetchone()
            return int(n)
        finally:
            conn.close()

    def get_sync(self, key: str) -> bytes | None:
        conn = self._get_conn()
        try:
            row = conn.execute("SELECT value FROM blobs WHERE key = ?", (key,)).fetchone()
            return bytes(row[0]) if row else None
        finally:
            conn.close()

    def set_many_sync(self, items: Mapping[str, bytes]) -> None:
        if not items:
            return
        now = time.time()
        conn = self._get_conn()
        try:
            with conn:
                conn.executemany(
                    """
                    INSERT INTO blobs(key, value, updated_at) VALUES (?, ?, ?)
                    ON CONFLICT(key) DO UPDATE SET value = excluded.value, updated_at = excluded.updated_at
                    """,
                    [(key, sqlite3.Binary(value), now) for key, value in items.items()],
                )
            logger.debug("Blob write keys=%s", sorted(items))
        finally:
            conn.close()

    def remove_sync(self, keys: Iterable[str]) -> None:
        key_list = list(keys)
        if not key_list:
            return
        placeholders = ",".join("?" for _ in key_list)
        conn = self._get_conn()
        try:
            with conn:
                conn.execute(f"DELETE FROM blobs WHERE key IN ({placeholders})", key_list)
            logger.info("Blob keys removed: %s", key_list)
        finally:
            conn.close()

    # ---- async API (BlobStore port) ----

    async def get(self, key: str) -> bytes | None:
        return await asyncio.to_thread(self.get_sync, key)

    async def set(self, key: str, value: bytes) -> None:
        await asyncio.to_thread(self.set_many_sync, {key: value})

    async def set_many(self, items: Mapping[str, bytes]) -> None:
        await asyncio.to_thread(self.set_many_sync, dict(items))

    async def remove(self, keys: Iterable[str]) -> None:
        await asyncio.to_thread(self.remove_sync, list(keys))
