# src/cache/cache_factory.py — v1
"""Factory for cache store instantiation."""

from __future__ import annotations

from shortrender.cache.base_cache_store import BaseCacheStore
from shortrender.config.settings import Settings


def create_cache_store(settings: Settings | None = None) -> BaseCacheStore | None:
    """Instantiate the configured cache backend.

    Args:
        settings: Application settings. Defaults to the SQLite backend.

    Returns:
        Configured BaseCacheStore, or None when caching is disabled.
    """
    if settings is not None and not settings.cache_enabled:
        return None

    backend = "sqlite" if settings is None else settings.cache_backend
    cache_root = "artifacts/.cache" if settings is None else str(settings.cache_root)

    if backend == "json":
        from shortrender.cache.json_store import JsonCacheStore
        return JsonCacheStore(cache_root=cache_root)

    if backend == "sqlite":
        from shortrender.cache.sqlite_store import SqliteCacheStore
        return SqliteCacheStore(db_path=f"{cache_root}/provider_cache.db")

    raise ValueError(f"Unsupported cache backend: {backend!r}")
