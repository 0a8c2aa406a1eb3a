# src/cache/base_cache_store.py — v1
"""Abstract cache store interface."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

from shortrender.cache.models import CacheLookup


class BaseCacheStore(ABC):
    """Unified interface for provider-result cache backends.

    Reads never raise on bad data: a corrupt or expired entry is reported
    through ``CacheLookup.status`` and behaves as a miss.
    """

    @abstractmethod
    async def get(self, hash_key: str) -> CacheLookup:
        """Look up a result by key, expiring it lazily."""

    @abstractmethod
    async def put(
        self,
        hash_key: str,
        kind: str,
        value: dict[str, Any],
        ttl_seconds: int | None = None,
    ) -> None:
        """Store a result (upsert). A write resets expiry."""

    @abstractmethod
    async def delete(self, hash_key: str) -> None:
        """Remove a cache entry."""

    @abstractmethod
    async def purge_expired(self) -> int:
        """Delete every expired entry; return how many were removed."""

    def close(self) -> None:
        """Release backend resources."""
