from abc import ABC, abstractmethod


def order_key(order_id) -> str:
    return f"order:{order_id}"


class OrderCache(ABC):
    """Stores order payloads as plain dicts."""

    @abstractmethod
    def get(self, order_id) -> dict | None: ...

    @abstractmethod
    def set(self, order_id, payload: dict) -> None: ...

    @abstractmethod
    def delete(self, order_id) -> None: ...
