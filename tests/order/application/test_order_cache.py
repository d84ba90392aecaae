"""Tests for the order cache adapters."""

import json
from unittest.mock import MagicMock

import redis

from commerce.cache import MemoryOrderCache, RedisOrderCache, build_order_cache
from commerce.cache.port import order_key
from commerce.config import Settings


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


class TestMemoryOrderCache:
    def test_entries_expire(self):
        clock = FakeClock()
        cache = MemoryOrderCache(ttl=60, clock=clock)
        cache.set("o1", {"id": "o1"})
        assert cache.get("o1") == {"id": "o1"}

        clock.now += 61
        assert cache.get("o1") is None

    def test_delete(self):
        cache = MemoryOrderCache()
        cache.set("o1", {"id": "o1"})
        cache.delete("o1")
        assert cache.get("o1") is None


class TestRedisOrderCache:
    def test_set_uses_ttl_and_order_key(self):
        client = MagicMock()
        RedisOrderCache(client, ttl=30).set("o1", {"id": "o1"})
        client.setex.assert_called_once_with(order_key("o1"), 30, json.dumps({"id": "o1"}))

    def test_get_decodes_payload(self):
        client = MagicMock()
        client.get.return_value = json.dumps({"id": "o1"})
        assert RedisOrderCache(client).get("o1") == {"id": "o1"}
        client.get.assert_called_once_with("order:o1")

    def test_unreachable_redis_is_a_miss(self):
        client = MagicMock()
        client.get.side_effect = redis.ConnectionError("down")
        assert RedisOrderCache(client).get("o1") is None

    def test_failed_delete_does_not_raise(self):
        client = MagicMock()
        client.delete.side_effect = redis.ConnectionError("down")
        RedisOrderCache(client).delete("o1")


class TestBuildOrderCache:
    def test_memory_without_redis_url(self):
        assert isinstance(build_order_cache(Settings()), MemoryOrderCache)
