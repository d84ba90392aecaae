import json

import redis
import structlog

from commerce.cache.port import OrderCache, order_key

logger = structlog.get_logger(__name__)


class RedisOrderCache(OrderCache):
    """Shared cache for multi-worker deployments.

    Cache failures never fail a request: a broken read is a miss and a broken
    write is logged.
    """

    def __init__(self, client: redis.Redis, ttl: int = 60) -> None:
        self.client = client
        self.ttl = ttl

    @classmethod
    def from_url(cls, url: str, ttl: int = 60) -> "RedisOrderCache":
        return cls(redis.Redis.from_url(url, decode_responses=True), ttl=ttl)

    def get(self, order_id) -> dict | None:
        try:
            raw = self.client.get(order_key(order_id))
        except redis.RedisError as exc:
            logger.warning("Order cache read failed", order_id=str(order_id), error=str(exc))
            return None
        return json.loads(raw) if raw else None

    def set(self, order_id, payload: dict) -> None:
        try:
            self.client.setex(order_key(order_id), self.ttl, json.dumps(payload, default=str))
        except redis.RedisError as exc:
            logger.warning("Order cache write failed", order_id=str(order_id), error=str(exc))

    def delete(self, order_id) -> None:
        try:
            self.client.delete(order_key(order_id))
        except redis.RedisError as exc:
            logger.error("Order cache invalidation failed", order_id=str(order_id), error=str(exc))
