"""Domain events for the Order aggregate.

Every status change and payment event on an order raises exactly one of these
alongside the timeline entry it appends.
"""

from protean.fields import Boolean, DateTime, Float, Identifier, Integer, String

from commerce.domain import commerce


@commerce.event(part_of="Order")
class OrderPlaced:
    __version__ = 1

    order_id = Identifier(required=True)
    user_id = Identifier(required=True)
    tenant_id = String(required=True)
    item_count = Integer(required=True)
    total = Float(required=True)
    currency = String(required=True)
    payment_method = String(required=True)
    placed_at = DateTime(required=True)


@commerce.event(part_of="Order")
class OrderStatusChanged:
    __version__ = 1

    order_id = Identifier(required=True)
    previous_status = String(required=True)
    new_status = String(required=True)
    message = String()
    actor = String()
    changed_at = DateTime(required=True)


@commerce.event(part_of="Order")
class OrderCancelled:
    __version__ = 1

    order_id = Identifier(required=True)
    previous_status = String(required=True)
    reason = String(required=True)
    cancelled_by = String()
    cancelled_at = DateTime(required=True)


@commerce.event(part_of="Order")
class OrderItemShipped:
    __version__ = 1

    order_id = Identifier(required=True)
    item_id = Identifier(required=True)
    tracking_number = String(required=True)
    carrier = String()
    shipped_at = DateTime(required=True)


@commerce.event(part_of="Order")
class OrderPaymentCaptured:
    __version__ = 1

    order_id = Identifier(required=True)
    provider = String()
    transaction_id = String()
    amount = Float(required=True)
    captured_at = DateTime(required=True)


@commerce.event(part_of="Order")
class OrderPaymentFailed:
    __version__ = 1

    order_id = Identifier(required=True)
    provider = String()
    reason = String(required=True)
    failed_at = DateTime(required=True)


@commerce.event(part_of="Order")
class OrderPaymentRefunded:
    __version__ = 1

    order_id = Identifier(required=True)
    refund_id = String()
    refunded_total = Float(required=True)
    is_full_refund = Boolean(required=True)
    refunded_at = DateTime(required=True)
