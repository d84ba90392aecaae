import time

from commerce.cache.port import OrderCache, order_key


class MemoryOrderCache(OrderCache):
    """Process-local cache for development and tests."""

    def __init__(self, ttl: int = 60, clock=time.monotonic) -> None:
        self.ttl = ttl
        self._clock = clock
        self._entries: dict[str, tuple[float, dict]] = {}

    def get(self, order_id) -> dict | None:
        entry = self._entries.get(order_key(order_id))
        if entry is None:
            return None
        expires_at, payload = entry
        if expires_at <= self._clock():
            self._entries.pop(order_key(order_id), None)
            return None
        return payload

    def set(self, order_id, payload: dict) -> None:
        self._entries[order_key(order_id)] = (self._clock() + self.ttl, payload)

    def delete(self, order_id) -> None:
        self._entries.pop(order_key(order_id), None)

    def clear(self) -> None:
        self._entries.clear()
