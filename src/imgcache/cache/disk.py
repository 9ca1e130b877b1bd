"""Disk tier backed by SQLite."""

from __future__ import annotations

import logging
import sqlite3
import threading
import time
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from pathlib import Path

from imgcache.cache.stats import DiskRecord
from imgcache.config.defaults import DEFAULT_DISK_BYTE_LIMIT, DEFAULT_EXPIRATION_SECONDS
from imgcache.config.schema import DEFAULT_DISK_PATH

logger = logging.getLogger(__name__)


class DiskCache:
    """SQLite-backed persistent cache with expiration and LRU eviction.

    ``seq`` is bumped on every insert and read hit, so ordering by it gives
    least-recently-accessed first even when clock readings tie.
    """

    def __init__(
        self,
        db_path: Path | None = None,
        max_bytes: int = DEFAULT_DISK_BYTE_LIMIT,
        expiration_seconds: float = DEFAULT_EXPIRATION_SECONDS,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._db_path = db_path or DEFAULT_DISK_PATH
        self._max_bytes = max_bytes
        self._expiration_seconds = expiration_seconds
        self._clock = clock
        self._lock = threading.RLock()
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        # Accessed from the manager's disk worker thread
        self._conn = sqlite3.connect(str(self._db_path), check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._create_table()
        self._current_bytes: int = self._stored_bytes()
        row = self._conn.execute("SELECT COALESCE(MAX(seq), 0) FROM images").fetchone()
        self._seq: int = row[0]

    def get(self, key: str) -> DiskRecord | None:
        with self._lock:
            row = self._conn.execute(
                "SELECT * FROM images WHERE key = ?", (key,)
            ).fetchone()
            if row is None:
                return None
            record = self._row_to_record(row)
            now = self._clock()
            if record.is_expired(self._expiration_seconds, now):
                logger.debug("Disk entry %s expired, treating as miss", key)
                with self._transaction():
                    self._delete(key, record.size_bytes)
                return None
            with self._transaction():
                self._conn.execute(
                    "UPDATE images SET last_accessed = ?, seq = ? WHERE key = ?",
                    (now, self._next_seq(), key),
                )
            record.last_accessed = now
            return record

    def set(self, key: str, record: DiskRecord) -> bool:
        """Write a record, evicting as needed. Returns False if it can never fit."""
        size = record.size_bytes
        with self._lock:
            if size > self._max_bytes:
                logger.debug(
                    "Entry %s (%d bytes) exceeds disk limit %d, not cached",
                    key, size, self._max_bytes,
                )
                return False
            with self._transaction():
                existing = self._conn.execute(
                    "SELECT size_bytes FROM images WHERE key = ?", (key,)
                ).fetchone()
                if existing is not None:
                    self._delete(key, existing[0])
                self._evict_if_needed(size)
                self._conn.execute(
                    """INSERT INTO images
                       (key, locator, data, size_bytes, created_at, last_accessed, seq)
                       VALUES (?, ?, ?, ?, ?, ?, ?)""",
                    (
                        key, record.locator, record.data, size,
                        record.created_at, self._clock(), self._next_seq(),
                    ),
                )
                self._current_bytes += size
            return True

    def remove(self, key: str) -> bool:
        with self._lock:
            row = self._conn.execute(
                "SELECT size_bytes FROM images WHERE key = ?", (key,)
            ).fetchone()
            if row is None:
                return False
            with self._transaction():
                self._delete(key, row[0])
            return True

    def clear(self) -> None:
        with self._lock:
            with self._conn:
                self._conn.execute("DELETE FROM images")
            self._current_bytes = 0

    def sweep_expired(self) -> int:
        """Remove every entry older than the expiration window. Returns count removed."""
        with self._lock:
            cutoff = self._clock() - self._expiration_seconds
            with self._transaction():
                removed = self._delete_expired(cutoff)
            if removed:
                logger.info("Swept %d expired disk entries", removed)
            return removed

    def reconfigure(self, max_bytes: int, expiration_seconds: float) -> None:
        """Change the limits. Capacity is enforced lazily at the next insertion."""
        with self._lock:
            self._max_bytes = max_bytes
            self._expiration_seconds = expiration_seconds

    @property
    def max_bytes(self) -> int:
        return self._max_bytes

    @property
    def expiration_seconds(self) -> float:
        return self._expiration_seconds

    @property
    def entry_count(self) -> int:
        with self._lock:
            row = self._conn.execute("SELECT COUNT(*) FROM images").fetchone()
            return row[0]

    @property
    def size_bytes(self) -> int:
        return self._current_bytes

    def keys(self) -> list[str]:
        """Keys in eviction order, least recently used first."""
        with self._lock:
            rows = self._conn.execute("SELECT key FROM images ORDER BY seq ASC").fetchall()
            return [r[0] for r in rows]

    def close(self) -> None:
        with self._lock:
            self._conn.close()

    def _create_table(self) -> None:
        with self._conn:
            self._conn.execute("""
                CREATE TABLE IF NOT EXISTS images (
                    key TEXT PRIMARY KEY,
                    locator TEXT,
                    data BLOB NOT NULL,
                    size_bytes INTEGER NOT NULL,
                    created_at REAL NOT NULL,
                    last_accessed REAL NOT NULL,
                    seq INTEGER NOT NULL
                )
            """)
            self._conn.execute("CREATE INDEX IF NOT EXISTS idx_images_seq ON images (seq)")

    @contextmanager
    def _transaction(self) -> Iterator[None]:
        # Totals are adjusted per statement; after a rollback, recount from the table
        try:
            with self._conn:
                yield
        except sqlite3.Error:
            self._current_bytes = self._stored_bytes()
            raise

    def _stored_bytes(self) -> int:
        row = self._conn.execute("SELECT COALESCE(SUM(size_bytes), 0) FROM images").fetchone()
        return row[0]

    def _evict_if_needed(self, new_entry_size: int) -> None:
        # Expired entries go first, regardless of recency
        self._delete_expired(self._clock() - self._expiration_seconds)

        while self._current_bytes + new_entry_size > self._max_bytes:
            oldest = self._conn.execute(
                "SELECT key, size_bytes FROM images ORDER BY seq ASC LIMIT 1"
            ).fetchone()
            if oldest is None:
                break
            self._delete(oldest[0], oldest[1])
            logger.debug("Evicted %s from disk tier (%d bytes)", oldest[0], oldest[1])

    def _delete_expired(self, cutoff: float) -> int:
        row = self._conn.execute(
            "SELECT COUNT(*), COALESCE(SUM(size_bytes), 0) FROM images WHERE created_at < ?",
            (cutoff,),
        ).fetchone()
        if row[0]:
            self._conn.execute("DELETE FROM images WHERE created_at < ?", (cutoff,))
            self._current_bytes -= row[1]
        return row[0]

    def _delete(self, key: str, size: int) -> None:
        self._conn.execute("DELETE FROM images WHERE key = ?", (key,))
        self._current_bytes -= size

    def _next_seq(self) -> int:
        self._seq += 1
        return self._seq

    @staticmethod
    def _row_to_record(row: sqlite3.Row) -> DiskRecord:
        return DiskRecord(
            key=row["key"],
            locator=row["locator"] or "",
            data=bytes(row["data"]),
            created_at=row["created_at"],
            last_accessed=row["last_accessed"],
        )
