# src/cache/json_store.py — v1
"""JSON file-based cache store (CACHE_BACKEND=json).

Stores one entry per file under CACHE_ROOT, named after the hash key.
"""

from __future__ import annotations

import json
import logging
from datetime import timedelta
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from shortrender.cache.base_cache_store import BaseCacheStore
from shortrender.cache.models import CacheEntry, CacheLookup, utc_now

logger = logging.getLogger(__name__)


class JsonCacheStore(BaseCacheStore):
    """File-based cache store using JSON files."""

    def __init__(self, cache_root: Path | str) -> None:
        self._root = Path(cache_root).expanduser()
        self._root.mkdir(parents=True, exist_ok=True)

    async def get(self, hash_key: str) -> CacheLookup:
        path = self._entry_path(hash_key)
        if not path.exists():
            return CacheLookup(status="miss")
        try:
            entry = CacheEntry(**json.loads(path.read_text(encoding="utf-8")))
        except (ValueError, TypeError, ValidationError) as e:
            logger.warning("Malformed cache entry %s: %s", hash_key, e)
            return CacheLookup(status="malformed")

        if entry.is_expired():
            path.unlink(missing_ok=True)
            return CacheLookup(status="expired")
        return CacheLookup(status="hit", value=entry.result)

    async def put(
        self,
        hash_key: str,
        kind: str,
        value: dict[str, Any],
        ttl_seconds: int | None = None,
    ) -> None:
        now = utc_now()
        entry = CacheEntry(
            hash_key=hash_key,
            kind=kind,
            result=value,
            created_at=now,
            expires_at=(
                now + timedelta(seconds=ttl_seconds) if ttl_seconds is not None else None
            ),
        )
        path = self._entry_path(hash_key)
        tmp = path.with_suffix(".tmp")
        tmp.write_text(entry.model_dump_json(indent=2), encoding="utf-8")
        tmp.replace(path)

    async def delete(self, hash_key: str) -> None:
        self._entry_path(hash_key).unlink(missing_ok=True)

    async def purge_expired(self) -> int:
        removed = 0
        for path in self._root.glob("*.json"):
            try:
                entry = CacheEntry(**json.loads(path.read_text(encoding="utf-8")))
            except (ValueError, TypeError, ValidationError):
                continue
            if entry.is_expired():
                path.unlink(missing_ok=True)
                removed += 1
        return removed

    def _entry_path(self, hash_key: str) -> Path:
        """Return file path for a cache key."""
        safe_key = hash_key.replace("/", "_").replace("\\", "_")
        return self._root / f"{safe_key}.json"
