"""Read-through cache of serialised orders, keyed ``order:<id>``.

Reads fill the cache; every mutation deletes the key before the service call
returns, so a stale entry lives at most until the next write.
"""

from commerce.cache.memory import MemoryOrderCache
from commerce.cache.port import OrderCache
from commerce.cache.redis_adapter import RedisOrderCache


def build_order_cache(settings) -> OrderCache:
    if settings.redis_url:
        return RedisOrderCache.from_url(settings.redis_url, ttl=settings.order_cache_ttl)
    return MemoryOrderCache(ttl=settings.order_cache_ttl)


__all__ = ["MemoryOrderCache", "OrderCache", "RedisOrderCache", "build_order_cache"]
