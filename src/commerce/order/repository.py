"""Repository for the Order aggregate: gateway lookups and filtered listings."""

from protean.exceptions import ObjectNotFoundError
from protean.utils.globals import current_domain

from commerce.domain import commerce
from commerce.errors import NotFound
from commerce.order.order import Order
from commerce.shared.tenancy import DEFAULT_TENANT


def load_order(order_id) -> Order:
    try:
        return current_domain.repository_for(Order).get(str(order_id))
    except ObjectNotFoundError as exc:
        raise NotFound("Order") from exc


@commerce.repository(part_of=Order)
class OrderRepository:
    def find_by_transaction(self, transaction_id: str) -> Order | None:
        orders = self._dao.query.filter(payment_transaction_id=transaction_id).all().items
        return orders[0] if orders else None

    def find_by_payment_intent(self, payment_intent_id: str) -> Order | None:
        orders = self._dao.query.filter(payment_payment_intent_id=payment_intent_id).all().items
        return orders[0] if orders else None

    def search(
        self,
        tenant_id: str = DEFAULT_TENANT,
        user_id: str | None = None,
        seller_id: str | None = None,
        status: str | None = None,
        payment_status: str | None = None,
    ) -> list[Order]:
        """Orders for a tenant, newest first, narrowed by the given filters."""
        filters = {"tenant_id": tenant_id}
        if user_id:
            filters["user_id"] = str(user_id)
        if status:
            filters["status"] = status
        if payment_status:
            filters["payment_status"] = payment_status

        orders = self._dao.query.filter(**filters).all().items
        if seller_id:
            orders = [order for order in orders if str(seller_id) in order.seller_ids]
        return sorted(orders, key=lambda o: o.created_at, reverse=True)
