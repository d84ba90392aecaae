"""Order application service.

Wraps the order commands with access checks, listings and the read cache.
Reads go through the cache; every mutation deletes the order's cache entry
before returning, so readers see their own writes.
"""

from datetime import datetime
from math import ceil

import structlog
from protean.utils.globals import current_domain

from commerce.errors import Forbidden
from commerce.order.access import Role, ensure_admin, ensure_can_view, ensure_staff
from commerce.order.cancellation import CancelOrder
from commerce.order.creation import PlaceOrder
from commerce.order.order import Order, OrderStatus
from commerce.order.repository import load_order
from commerce.order.status import UpdateOrderStatus
from commerce.order.tracking import AddTracking, RecordDelivery
from commerce.shared.money import round_money
from commerce.shared.tenancy import tenant_or_default

logger = structlog.get_logger(__name__)

RECENT_ORDERS = 5


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


def _address(address) -> dict | None:
    if address is None:
        return None
    fields = (
        "first_name",
        "last_name",
        "company",
        "address_line1",
        "address_line2",
        "city",
        "state",
        "postal_code",
        "country",
        "phone",
        "email",
    )
    return {name: getattr(address, name) for name in fields}


def serialize_order(order: Order) -> dict:
    """JSON-safe representation used by the API and the cache."""
    payment = order.payment
    return {
        "id": str(order.id),
        "user_id": str(order.user_id),
        "tenant_id": order.tenant_id,
        "status": order.status,
        "payment_status": order.payment_status,
        "items": [
            {
                "id": str(item.id),
                "product_id": str(item.product_id),
                "variant_id": str(item.variant_id) if item.variant_id else None,
                "seller_id": str(item.seller_id) if item.seller_id else None,
                "sku": item.sku,
                "name": item.name,
                "image": item.image,
                "price": item.price,
                "compare_at_price": item.compare_at_price,
                "quantity": item.quantity,
                "status": item.status,
                "tracking_number": item.tracking_number,
                "carrier": item.carrier,
                "shipped_at": _iso(item.shipped_at),
                "delivered_at": _iso(item.delivered_at),
            }
            for item in order.items
        ],
        "shipping_address": _address(order.shipping_address),
        "billing_address": _address(order.billing_address),
        "subtotal": order.subtotal,
        "discount": order.discount,
        "discount_code": order.discount_code,
        "tax": order.tax,
        "shipping": order.shipping,
        "total": order.total,
        "currency": order.currency,
        "payment": {
            "method": payment.method,
            "provider": payment.provider,
            "transaction_id": payment.transaction_id,
            "payment_intent_id": payment.payment_intent_id,
            "brand": payment.brand,
            "last4": payment.last4,
            "paid_at": _iso(payment.paid_at),
            "refunded_at": _iso(payment.refunded_at),
            "refund_id": payment.refund_id,
            "refund_amount": payment.refund_amount or 0.0,
        }
        if payment
        else None,
        "timeline": [
            {
                "sequence": entry.sequence,
                "status": entry.status,
                "message": entry.message,
                "actor": entry.actor,
                "timestamp": _iso(entry.timestamp),
            }
            for entry in order.history
        ],
        "notes": order.notes,
        "cancel_reason": order.cancel_reason,
        "estimated_delivery": _iso(order.estimated_delivery),
        "delivered_at": _iso(order.delivered_at),
        "created_at": _iso(order.created_at),
        "updated_at": _iso(order.updated_at),
    }


def _summary(order: Order) -> dict:
    return {
        "id": str(order.id),
        "user_id": str(order.user_id),
        "status": order.status,
        "payment_status": order.payment_status,
        "total": order.total,
        "currency": order.currency,
        "item_count": sum(item.quantity for item in order.items),
        "created_at": _iso(order.created_at),
    }


def paginate(orders: list, page: int = 1, limit: int = 10) -> dict:
    page = max(page, 1)
    limit = max(limit, 1)
    total = len(orders)
    total_pages = ceil(total / limit) if total else 0
    start = (page - 1) * limit
    return {
        "data": [_summary(order) for order in orders[start : start + limit]],
        "pagination": {
            "page": page,
            "limit": limit,
            "total": total,
            "total_pages": total_pages,
            "has_next_page": page < total_pages,
            "has_prev_page": page > 1,
        },
    }


class OrderService:
    def __init__(self, cache, settings) -> None:
        self.cache = cache
        self.settings = settings

    def invalidate(self, order_id) -> None:
        self.cache.delete(str(order_id))
        logger.debug("Order cache invalidated", order_id=str(order_id))

    # -------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------
    def get_order(self, order_id, user_id=None, role=None) -> dict:
        payload = self.cache.get(str(order_id))
        if payload is None:
            payload = serialize_order(load_order(order_id))
            self.cache.set(str(order_id), payload)

        seller_ids = {item["seller_id"] for item in payload["items"] if item["seller_id"]}
        ensure_can_view(payload["user_id"], seller_ids, user_id, role)
        return payload

    def my_orders(self, user_id, tenant_id=None, status=None, page=1, limit=10) -> dict:
        if not user_id:
            raise Forbidden("Access denied")
        orders = current_domain.repository_for(Order).search(
            tenant_id=tenant_or_default(tenant_id), user_id=user_id, status=status
        )
        return paginate(orders, page, limit)

    def seller_orders(self, user_id, role, tenant_id=None, status=None, payment_status=None, page=1, limit=10) -> dict:
        if role != Role.SELLER.value or not user_id:
            raise Forbidden("Access denied")
        orders = current_domain.repository_for(Order).search(
            tenant_id=tenant_or_default(tenant_id),
            seller_id=user_id,
            status=status,
            payment_status=payment_status,
        )
        return paginate(orders, page, limit)

    def list_orders(
        self,
        role,
        tenant_id=None,
        status=None,
        payment_status=None,
        user_id=None,
        seller_id=None,
        page=1,
        limit=10,
    ) -> dict:
        ensure_staff(role)
        orders = current_domain.repository_for(Order).search(
            tenant_id=tenant_or_default(tenant_id),
            user_id=user_id,
            seller_id=seller_id,
            status=status,
            payment_status=payment_status,
        )
        return paginate(orders, page, limit)

    def statistics(self, role, tenant_id=None, seller_id=None, start=None, end=None) -> dict:
        ensure_admin(role)
        orders = current_domain.repository_for(Order).search(tenant_id=tenant_or_default(tenant_id), seller_id=seller_id)
        if start is not None:
            orders = [o for o in orders if o.created_at.replace(tzinfo=None) >= start.replace(tzinfo=None)]
        if end is not None:
            orders = [o for o in orders if o.created_at.replace(tzinfo=None) <= end.replace(tzinfo=None)]

        total_orders = len(orders)
        total_revenue = round_money(sum(order.total for order in orders))
        by_status = {status.value: 0 for status in OrderStatus}
        for order in orders:
            by_status[order.status] += 1

        return {
            "total_orders": total_orders,
            "total_revenue": total_revenue,
            "average_order_value": round_money(total_revenue / total_orders) if total_orders else 0.0,
            "orders_by_status": by_status,
            "recent_orders": [_summary(order) for order in orders[:RECENT_ORDERS]],
        }

    # -------------------------------------------------------------------
    # Mutations
    # -------------------------------------------------------------------
    def place_order(
        self,
        user_id,
        shipping_address: dict,
        payment_method: str,
        billing_address: dict | None = None,
        notes: str | None = None,
        tenant_id=None,
    ) -> dict:
        if not user_id:
            raise Forbidden("Access denied")
        order_id = current_domain.process(
            PlaceOrder(
                user_id=user_id,
                tenant_id=tenant_or_default(tenant_id),
                shipping_address=shipping_address,
                payment_method=payment_method,
                payment_provider=self.settings.default_payment_provider,
                notes=notes,
                # Omitted billing falls back to the shipping address
                **({"billing_address": billing_address} if billing_address else {}),
            ),
            asynchronous=False,
        )
        return self.get_order(order_id, user_id=user_id)

    def update_status(self, order_id, status, message=None, user_id=None, role=None) -> dict:
        current_domain.process(
            UpdateOrderStatus(order_id=order_id, status=status, message=message, user_id=user_id, role=role),
            asynchronous=False,
        )
        self.invalidate(order_id)
        return self.get_order(order_id, user_id=user_id, role=role)

    def cancel(self, order_id, reason, user_id=None, role=None) -> dict:
        current_domain.process(
            CancelOrder(order_id=order_id, reason=reason, user_id=user_id, role=role),
            asynchronous=False,
        )
        self.invalidate(order_id)
        return self.get_order(order_id, user_id=user_id, role=role)

    def add_tracking(self, order_id, item_id, tracking_number, carrier=None, user_id=None, role=None) -> dict:
        current_domain.process(
            AddTracking(
                order_id=order_id,
                item_id=item_id,
                tracking_number=tracking_number,
                carrier=carrier,
                user_id=user_id,
                role=role,
            ),
            asynchronous=False,
        )
        self.invalidate(order_id)
        return self.get_order(order_id, user_id=user_id, role=role)

    def record_delivery(self, order_id, item_ids=None, user_id=None, role=None) -> dict:
        current_domain.process(
            RecordDelivery(order_id=order_id, item_ids=item_ids or [], user_id=user_id, role=role),
            asynchronous=False,
        )
        self.invalidate(order_id)
        return self.get_order(order_id, user_id=user_id, role=role)
