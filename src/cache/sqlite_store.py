# src/cache/sqlite_store.py — v1
"""SQLite-based cache store (CACHE_BACKEND=sqlite, default).

Uses stdlib sqlite3, no external dependency.
"""

from __future__ import annotations

import json
import logging
import sqlite3
from datetime import datetime, timedelta
from pathlib import Path
from typing import Any

from shortrender.cache.base_cache_store import BaseCacheStore
from shortrender.cache.models import CacheLookup, aware, utc_now

logger = logging.getLogger(__name__)

_SCHEMA = """
CREATE TABLE IF NOT EXISTS cache_entries (
    hash_key TEXT PRIMARY KEY,
    kind TEXT NOT NULL,
    result TEXT NOT NULL,
    expires_at TEXT,
    created_at TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_cache_expires ON cache_entries(expires_at);
"""


class SqliteCacheStore(BaseCacheStore):
    """SQLite-backed provider-result cache."""

    def __init__(self, db_path: Path | str) -> None:
        self._db_path = Path(db_path).expanduser()
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._conn = sqlite3.connect(str(self._db_path))
        self._conn.execute("PRAGMA journal_mode=WAL")
        self._conn.executescript(_SCHEMA)

    async def get(self, hash_key: str) -> CacheLookup:
        row = self._conn.execute(
            "SELECT result, expires_at FROM cache_entries WHERE hash_key = ?",
            (hash_key,),
        ).fetchone()
        if row is None:
            return CacheLookup(status="miss")

        raw_result, raw_expires = row
        try:
            if raw_expires is not None:
                expires_at = aware(datetime.fromisoformat(raw_expires))
                if utc_now() >= expires_at:
                    await self.delete(hash_key)
                    return CacheLookup(status="expired")
            value = json.loads(raw_result)
            if not isinstance(value, dict):
                raise ValueError(f"expected JSON object, got {type(value).__name__}")
        except ValueError as e:
            logger.warning("Malformed cache entry %s: %s", hash_key, e)
            return CacheLookup(status="malformed")

        return CacheLookup(status="hit", value=value)

    async def put(
        self,
        hash_key: str,
        kind: str,
        value: dict[str, Any],
        ttl_seconds: int | None = None,
    ) -> None:
        now = utc_now()
        expires_at = (
            (now + timedelta(seconds=ttl_seconds)).isoformat()
            if ttl_seconds is not None
            else None
        )
        self._conn.execute(
            """INSERT INTO cache_entries (hash_key, kind, result, expires_at, created_at)
               VALUES (?, ?, ?, ?, ?)
               ON CONFLICT(hash_key) DO UPDATE SET
                   kind = excluded.kind,
                   result = excluded.result,
                   expires_at = excluded.expires_at,
                   created_at = excluded.created_at""",
            (hash_key, kind, json.dumps(value), expires_at, now.isoformat()),
        )
        self._conn.commit()

    async def delete(self, hash_key: str) -> None:
        self._conn.execute("DELETE FROM cache_entries WHERE hash_key = ?", (hash_key,))
        self._conn.commit()

    async def purge_expired(self) -> int:
        cursor = self._conn.execute(
            "DELETE FROM cache_entries WHERE expires_at IS NOT NULL AND expires_at <= ?",
            (utc_now().isoformat(),),
        )
        self._conn.commit()
        return cursor.rowcount

    def close(self) -> None:
        """Close the database connection."""
        self._conn.close()
