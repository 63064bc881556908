"""SQLite-backed TTL cache used to memoize search provider calls."""

from __future__ import annotations

import hashlib
import json
import logging
import sqlite3
import time
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)

SEARCH_PREFIX = "usaspending"


def generate_cache_key(prefix: str, params: Any) -> str:
    """Deterministic key: the prefix plus an md5 of key-sorted JSON."""
    serialized = json.dumps(params, sort_keys=True, default=str)
    digest = hashlib.md5(serialized.encode("utf-8")).hexdigest()
    return f"{prefix}:{digest}"


@dataclass(slots=True)
class CacheStats:
    hits: int = 0
    misses: int = 0
    sets: int = 0
    deletes: int = 0
    errors: int = 0

    @property
    def hit_rate(self) -> float:
        total = self.hits + self.misses
        return self.hits / total if total else 0.0

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["hit_rate"] = round(self.hit_rate, 4)
        return data


class SQLiteCache:
    """Key/value cache with per-entry expiry.

    Read and write failures are logged and reported as misses so the cache
    never breaks the caller.
    """

    def __init__(self, db_path: str) -> None:
        self._db_path = Path(db_path)
        if self._db_path.parent and not self._db_path.parent.exists():
            self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self.stats = CacheStats()
        self._ensure_schema()

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self._db_path, timeout=10.0, check_same_thread=False)
        conn.row_factory = sqlite3.Row
        return conn

    def _ensure_schema(self) -> None:
        with self._connect() as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS cache_entries (
                    cache_key TEXT PRIMARY KEY,
                    value TEXT NOT NULL,
                    expires_at REAL NOT NULL
                )
                """
            )

    def get(self, key: str) -> Optional[Any]:
        try:
            with self._connect() as conn:
                row = conn.execute(
                    "SELECT value, expires_at FROM cache_entries WHERE cache_key = ?",
                    (key,),
                ).fetchone()
                if row and row["expires_at"] <= time.time():
                    conn.execute("DELETE FROM cache_entries WHERE cache_key = ?", (key,))
                    row = None
        except sqlite3.Error:
            self.stats.errors += 1
            logger.exception("Cache get error for %s", key)
            return None

        if row is None:
            self.stats.misses += 1
            logger.debug("Cache miss: %s", key)
            return None
        self.stats.hits += 1
        logger.debug("Cache hit: %s", key)
        return json.loads(row["value"])

    def set(self, key: str, value: Any, ttl_seconds: int) -> bool:
        try:
            with self._connect() as conn:
                conn.execute(
                    """
                    INSERT INTO cache_entries (cache_key, value, expires_at)
                    VALUES (?, ?, ?)
                    ON CONFLICT(cache_key) DO UPDATE SET
                        value = excluded.value,
                        expires_at = excluded.expires_at
                    """,
                    (key, json.dumps(value), time.time() + ttl_seconds),
                )
        except sqlite3.Error:
            self.stats.errors += 1
            logger.exception("Cache set error for %s", key)
            return False
        self.stats.sets += 1
        return True

    def delete(self, key: str) -> bool:
        try:
            with self._connect() as conn:
                removed = conn.execute(
                    "DELETE FROM cache_entries WHERE cache_key = ?", (key,)
                ).rowcount
        except sqlite3.Error:
            self.stats.errors += 1
            logger.exception("Cache delete error for %s", key)
            return False
        self.stats.deletes += removed
        return removed > 0

    def clear(self, prefix: str | None = None) -> int:
        """Drop every entry, or only those under ``prefix``."""
        try:
            with self._connect() as conn:
                if prefix:
                    removed = conn.execute(
                        "DELETE FROM cache_entries WHERE cache_key LIKE ?", (f"{prefix}:%",)
                    ).rowcount
                else:
                    removed = conn.execute("DELETE FROM cache_entries").rowcount
        except sqlite3.Error:
            self.stats.errors += 1
            logger.exception("Cache clear error for prefix %s", prefix or "*")
            return 0
        self.stats.deletes += removed
        logger.info("Cleared %d cache entries", removed)
        return removed

    def entry_counts(self) -> Dict[str, int]:
        """Unexpired entries per key prefix, read from the table."""
        try:
            with self._connect() as conn:
                rows = conn.execute(
                    """
                    SELECT substr(cache_key, 1, instr(cache_key, ':') - 1) AS prefix,
                           COUNT(*) AS total
                    FROM cache_entries
                    WHERE expires_at > ?
                    GROUP BY prefix
                    """,
                    (time.time(),),
                ).fetchall()
        except sqlite3.Error:
            self.stats.errors += 1
            logger.exception("Cache entry count error")
            return {}
        return {row["prefix"]: row["total"] for row in rows}


__all__ = ["CacheStats", "SEARCH_PREFIX", "SQLiteCache", "generate_cache_key"]
