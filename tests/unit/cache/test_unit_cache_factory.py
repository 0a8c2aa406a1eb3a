# tests/unit/cache/test_unit_cache_factory.py — v1
"""Tests for cache/cache_factory.py."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from shortrender.cache.cache_factory import create_cache_store
from shortrender.cache.json_store import JsonCacheStore
from shortrender.cache.sqlite_store import SqliteCacheStore
from shortrender.config.settings import Settings


class TestCreateCacheStore:
    def test_sqlite_default(self, tmp_path):
        s = Settings(_env_file=None, cache_root=tmp_path)
        store = create_cache_store(s)
        assert isinstance(store, SqliteCacheStore)
        store.close()
        assert (tmp_path / "provider_cache.db").is_file()

    def test_json_backend(self, tmp_path):
        s = Settings(_env_file=None, cache_backend="json", cache_root=tmp_path)
        assert isinstance(create_cache_store(s), JsonCacheStore)

    def test_disabled(self, tmp_path):
        s = Settings(_env_file=None, cache_enabled=False, cache_root=tmp_path)
        assert create_cache_store(s) is None

    def test_unsupported_backend(self):
        with pytest.raises(ValidationError):
            Settings(_env_file=None, cache_backend="redis")
