"""
Tests for urp.core.cache.

Covers:
- InMemoryCache: get/set/delete/exists/clear, LRU eviction, TTL expiry
- TTL driven by an injected clock (no sleeping)
- build_cache backend selection
- RedisCache against a mocked client
"""

import sys
from unittest.mock import MagicMock, patch

import pytest

from urp.core.cache import InMemoryCache, RedisCache, build_cache
from urp.core.settings import UrpSettings


class TestInMemoryCache:
    """Test InMemoryCache backend."""

    def test_basic_get_set(self):
        cache = InMemoryCache(max_size=100, default_ttl_seconds=None)
        cache.set("key1", {"data": [1, 2, 3]})
        assert cache.get("key1") == {"data": [1, 2, 3]}

    def test_get_missing_key(self):
        assert InMemoryCache().get("missing") is None

    def test_delete(self):
        cache = InMemoryCache()
        cache.set("key1", "value1")
        assert cache.exists("key1")
        cache.delete("key1")
        assert not cache.exists("key1")
        cache.delete("never-there")

    def test_clear(self):
        cache = InMemoryCache()
        for i in range(3):
            cache.set(f"k{i}", i)
        cache.clear()
        assert cache.size() == 0

    def test_lru_eviction(self):
        cache = InMemoryCache(max_size=2, default_ttl_seconds=None)
        cache.set("a", 1)
        cache.set("b", 2)
        cache.get("a")
        cache.set("c", 3)
        assert cache.get("a") == 1
        assert cache.get("b") is None
        assert cache.get("c") == 3


class TestCacheTTL:
    """TTL expiry using the fake clock from conftest."""

    def test_entry_expires_at_ttl(self, clock):
        cache = InMemoryCache(default_ttl_seconds=300, clock=clock)
        cache.set("k", "v", ttl_seconds=60)

        clock.advance(59)
        assert cache.get("k") == "v"

        clock.advance(1)
        assert cache.get("k") is None
        assert cache.size() == 0

    def test_default_ttl_used(self, clock):
        cache = InMemoryCache(default_ttl_seconds=10, clock=clock)
        cache.set("k", "v")
        clock.advance(10)
        assert not cache.exists("k")

    def test_zero_ttl_never_expires(self, clock):
        cache = InMemoryCache(default_ttl_seconds=None, clock=clock)
        cache.set("k", "v", ttl_seconds=0)
        clock.advance(10_000_000)
        assert cache.get("k") == "v"

    def test_overwrite_resets_expiry(self, clock):
        cache = InMemoryCache(clock=clock)
        cache.set("k", "old", ttl_seconds=10)
        clock.advance(8)
        cache.set("k", "new", ttl_seconds=10)
        clock.advance(8)
        assert cache.get("k") == "new"


class TestBuildCache:
    def test_memory_backend(self):
        cache = build_cache(UrpSettings(_env_file=None, cache_backend="memory", cache_max_size=5))
        assert isinstance(cache, InMemoryCache)

    def test_redis_backend(self):
        fake_redis = MagicMock()
        with patch.dict(sys.modules, {"redis": fake_redis}):
            cache = build_cache(UrpSettings(_env_file=None, cache_backend="redis", redis_url="redis://cache:6379/1"))
        assert isinstance(cache, RedisCache)
        fake_redis.from_url.assert_called_once_with("redis://cache:6379/1", decode_responses=False)


class TestRedisCache:
    """RedisCache with the client mocked out."""

    @pytest.fixture
    def client(self):
        fake_redis = MagicMock()
        client = MagicMock()
        fake_redis.from_url.return_value = client
        with patch.dict(sys.modules, {"redis": fake_redis}):
            yield client

    def test_set_with_ttl_uses_setex(self, client):
        cache = RedisCache(default_ttl_seconds=300)
        cache.set("recipe:x", {"data": [1]}, ttl_seconds=60)
        client.setex.assert_called_once_with("urp:recipe:x", 60, '{"data": [1]}')

    def test_get_decodes_json(self, client):
        client.get.return_value = b'{"data": [1]}'
        assert RedisCache().get("recipe:x") == {"data": [1]}
        client.get.assert_called_once_with("urp:recipe:x")

    def test_get_missing(self, client):
        client.get.return_value = None
        assert RedisCache().get("recipe:x") is None

    def test_clear_scans_prefix(self, client):
        client.scan_iter.return_value = [b"urp:a", b"urp:b"]
        RedisCache().clear()
        client.scan_iter.assert_called_once_with(match="urp:*")
        assert client.delete.call_count == 2
