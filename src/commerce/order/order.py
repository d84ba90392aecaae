"""Order aggregate: the core of the checkout flow.

An order is created once from a cart and then owned by the checkout flow for
its whole life. Line items carry their own sub-status so they can ship and
deliver independently; the order's ``status`` only moves through the
transition table below. ``payment_status`` tracks the gateway side and moves
independently of ``status``.

State Machine:
    PENDING          → CONFIRMED, CANCELLED, FAILED
    CONFIRMED        → PROCESSING, CANCELLED
    PROCESSING       → SHIPPED, CANCELLED
    SHIPPED          → OUT_FOR_DELIVERY, DELIVERED
    OUT_FOR_DELIVERY → DELIVERED
    DELIVERED        → RETURNED
    RETURNED         → REFUNDED
    FAILED           → PENDING
    CANCELLED, REFUNDED are terminal.

A full refund moves the order to REFUNDED from wherever it stands; that is the
one status change made outside the table.

The timeline is append-only: ``_append_timeline`` is the only code that
touches it, and every status change and payment event appends exactly one
entry.
"""

from datetime import UTC, datetime, timedelta
from enum import Enum

from protean import invariant
from protean.exceptions import ValidationError
from protean.fields import (
    DateTime,
    Float,
    HasMany,
    Identifier,
    Integer,
    List,
    String,
    Text,
    ValueObject,
)

from commerce.domain import commerce
from commerce.errors import BadRequest, NotFound, PaymentError
from commerce.order.events import (
    OrderCancelled,
    OrderItemShipped,
    OrderPaymentCaptured,
    OrderPaymentFailed,
    OrderPaymentRefunded,
    OrderPlaced,
    OrderStatusChanged,
)
from commerce.shared.money import amounts_match, round_money
from commerce.shared.tenancy import DEFAULT_TENANT

ESTIMATED_DELIVERY_WINDOW = timedelta(days=7)

CAPTURE_MESSAGE = "Payment received, order confirmed"


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------
class OrderStatus(Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    PROCESSING = "processing"
    SHIPPED = "shipped"
    OUT_FOR_DELIVERY = "out_for_delivery"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"
    REFUNDED = "refunded"
    RETURNED = "returned"
    FAILED = "failed"


class PaymentStatus(Enum):
    PENDING = "pending"
    AUTHORIZED = "authorized"
    CAPTURED = "captured"
    FAILED = "failed"
    REFUNDED = "refunded"
    PARTIALLY_REFUNDED = "partially_refunded"


class ItemStatus(Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    PROCESSING = "processing"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"
    RETURNED = "returned"


class PaymentMethod(Enum):
    CARD = "card"
    UPI = "upi"
    NETBANKING = "netbanking"
    WALLET = "wallet"
    COD = "cod"


VALID_TRANSITIONS = {
    OrderStatus.PENDING: {OrderStatus.CONFIRMED, OrderStatus.CANCELLED, OrderStatus.FAILED},
    OrderStatus.CONFIRMED: {OrderStatus.PROCESSING, OrderStatus.CANCELLED},
    OrderStatus.PROCESSING: {OrderStatus.SHIPPED, OrderStatus.CANCELLED},
    OrderStatus.SHIPPED: {OrderStatus.OUT_FOR_DELIVERY, OrderStatus.DELIVERED},
    OrderStatus.OUT_FOR_DELIVERY: {OrderStatus.DELIVERED},
    OrderStatus.DELIVERED: {OrderStatus.RETURNED},
    OrderStatus.CANCELLED: set(),  # Terminal
    OrderStatus.REFUNDED: set(),  # Terminal
    OrderStatus.RETURNED: {OrderStatus.REFUNDED},
    OrderStatus.FAILED: {OrderStatus.PENDING},
}

# States from which the owner (or an admin) may cancel
CANCELLABLE_STATES = {OrderStatus.PENDING, OrderStatus.CONFIRMED}

# Item sub-status that follows an order status change, in fulfilment order
_ITEM_STATUS_FOR = {
    OrderStatus.CONFIRMED: ItemStatus.CONFIRMED,
    OrderStatus.PROCESSING: ItemStatus.PROCESSING,
    OrderStatus.SHIPPED: ItemStatus.SHIPPED,
    OrderStatus.DELIVERED: ItemStatus.DELIVERED,
    OrderStatus.RETURNED: ItemStatus.RETURNED,
}
_ITEM_PROGRESS = [
    ItemStatus.PENDING,
    ItemStatus.CONFIRMED,
    ItemStatus.PROCESSING,
    ItemStatus.SHIPPED,
    ItemStatus.DELIVERED,
    ItemStatus.RETURNED,
]

_PAYMENT_FIELDS = (
    "method",
    "provider",
    "transaction_id",
    "payment_intent_id",
    "bank_transaction_id",
    "brand",
    "last4",
    "paid_at",
    "refunded_at",
    "refund_id",
    "refund_amount",
)


def can_transition(current, target) -> bool:
    return OrderStatus(target) in VALID_TRANSITIONS[OrderStatus(current)]


# ---------------------------------------------------------------------------
# Value Objects
# ---------------------------------------------------------------------------
@commerce.value_object(part_of="Order")
class Address:
    """A shipping or billing address captured at checkout time."""

    first_name = String(required=True, max_length=100)
    last_name = String(required=True, max_length=100)
    company = String(max_length=255)
    address_line1 = String(required=True, max_length=255)
    address_line2 = String(max_length=255)
    city = String(required=True, max_length=100)
    state = String(required=True, max_length=100)
    postal_code = String(required=True, max_length=20)
    country = String(max_length=2, default="IN")
    phone = String(required=True, max_length=20)
    email = String(max_length=255)


@commerce.value_object(part_of="Order")
class PaymentInfo:
    """Gateway-side record of how the order was (or will be) paid."""

    method = String(choices=PaymentMethod, required=True)
    provider = String(max_length=50)
    transaction_id = String(max_length=255)
    payment_intent_id = String(max_length=255)
    bank_transaction_id = String(max_length=255)
    brand = String(max_length=50)
    last4 = String(max_length=4)
    paid_at = DateTime()
    refunded_at = DateTime()
    refund_id = String(max_length=255)
    refund_amount = Float(default=0.0, min_value=0.0)


# ---------------------------------------------------------------------------
# Entities
# ---------------------------------------------------------------------------
@commerce.entity(part_of="Order")
class OrderItem:
    """A line copied from the cart, with its own fulfilment sub-status."""

    product_id = Identifier(required=True)
    variant_id = Identifier()
    seller_id = Identifier()
    sku = String(required=True, max_length=50)
    name = String(required=True, max_length=255)
    image = String(max_length=500)
    price = Float(required=True, min_value=0.0)
    compare_at_price = Float(min_value=0.0)
    quantity = Integer(required=True, min_value=1)
    status = String(choices=ItemStatus, default=ItemStatus.PENDING.value)
    tracking_number = String(max_length=100)
    carrier = String(max_length=100)
    shipped_at = DateTime()
    delivered_at = DateTime()


@commerce.entity(part_of="Order")
class TimelineEntry:
    sequence = Integer(required=True, min_value=1)
    status = String(required=True, choices=OrderStatus)
    message = String(required=True, max_length=1000)
    actor = String(max_length=255)
    timestamp = DateTime(required=True)


# ---------------------------------------------------------------------------
# Aggregate Root
# ---------------------------------------------------------------------------
@commerce.aggregate
class Order:
    user_id = Identifier(required=True)
    tenant_id = String(max_length=100, default=DEFAULT_TENANT)
    items = HasMany(OrderItem)
    shipping_address = ValueObject(Address)
    billing_address = ValueObject(Address)
    subtotal = Float(default=0.0, min_value=0.0)
    discount = Float(default=0.0, min_value=0.0)
    discount_code = String(max_length=50)
    tax = Float(default=0.0, min_value=0.0)
    shipping = Float(default=0.0, min_value=0.0)
    total = Float(default=0.0, min_value=0.0)
    currency = String(max_length=3, default="INR")
    status = String(choices=OrderStatus, default=OrderStatus.PENDING.value)
    payment_status = String(choices=PaymentStatus, default=PaymentStatus.PENDING.value)
    payment = ValueObject(PaymentInfo)
    timeline = HasMany(TimelineEntry)
    notes = Text()
    cancel_reason = String(max_length=500)
    estimated_delivery = DateTime()
    delivered_at = DateTime()
    processed_gateway_events = List(content_type=String, default=list)
    created_at = DateTime()
    updated_at = DateTime()

    @invariant.post
    def refunds_cannot_exceed_total(self):
        if self.payment and (self.payment.refund_amount or 0.0) > (self.total or 0.0) + 0.005:
            raise ValidationError({"refund_amount": ["Refunded amount cannot exceed the order total"]})

    # -------------------------------------------------------------------
    # Factory
    # -------------------------------------------------------------------
    @classmethod
    def place(
        cls,
        user_id,
        items_data,
        shipping_address,
        pricing,
        payment_method,
        payment_provider,
        billing_address=None,
        notes=None,
        tenant_id=DEFAULT_TENANT,
    ):
        """Create a PENDING order from a cart snapshot.

        Args:
            items_data: list of dicts with product_id, variant_id, seller_id,
                sku, name, image, price, compare_at_price and quantity.
            shipping_address: dict of Address fields.
            pricing: dict with subtotal, discount, discount_code, tax,
                shipping, total and currency, copied verbatim from the cart.
            billing_address: defaults to the shipping address.
        """
        now = datetime.now(UTC)
        order = cls(
            user_id=user_id,
            tenant_id=tenant_id,
            shipping_address=Address(**shipping_address),
            billing_address=Address(**(billing_address or shipping_address)),
            subtotal=pricing["subtotal"],
            discount=pricing.get("discount") or 0.0,
            discount_code=pricing.get("discount_code"),
            tax=pricing.get("tax") or 0.0,
            shipping=pricing.get("shipping") or 0.0,
            total=pricing["total"],
            currency=pricing.get("currency") or "INR",
            status=OrderStatus.PENDING.value,
            payment_status=PaymentStatus.PENDING.value,
            payment=PaymentInfo(method=PaymentMethod(payment_method).value, provider=payment_provider),
            notes=notes,
            estimated_delivery=now + ESTIMATED_DELIVERY_WINDOW,
            created_at=now,
            updated_at=now,
        )
        for item in items_data:
            order.add_items(OrderItem(**item))
        order._append_timeline(OrderStatus.PENDING, "Order placed", actor=str(user_id))

        order.raise_(
            OrderPlaced(
                order_id=str(order.id),
                user_id=str(user_id),
                tenant_id=tenant_id,
                item_count=sum(item["quantity"] for item in items_data),
                total=order.total,
                currency=order.currency,
                payment_method=order.payment.method,
                placed_at=now,
            )
        )
        return order

    # -------------------------------------------------------------------
    # Read helpers
    # -------------------------------------------------------------------
    @property
    def seller_ids(self) -> set:
        return {str(item.seller_id) for item in self.items if item.seller_id}

    @property
    def history(self) -> list:
        """Timeline entries in the order they were appended."""
        return sorted(self.timeline, key=lambda entry: entry.sequence)

    @property
    def refunded_amount(self) -> float:
        return round_money(self.payment.refund_amount if self.payment else 0.0)

    @property
    def refundable_amount(self) -> float:
        return round_money(max(0.0, self.total - self.refunded_amount))

    def find_item(self, item_id):
        item = next((i for i in self.items if str(i.id) == str(item_id)), None)
        if item is None:
            raise NotFound("Order item")
        return item

    def has_processed(self, event_id) -> bool:
        return bool(event_id) and event_id in (self.processed_gateway_events or [])

    # -------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------
    def _append_timeline(self, status, message, actor=None):
        now = datetime.now(UTC)
        self.add_timeline(
            TimelineEntry(
                sequence=len(self.timeline) + 1,
                status=OrderStatus(status).value,
                message=message,
                actor=actor,
                timestamp=now,
            )
        )
        self.updated_at = now

    def _mark_processed(self, event_id):
        if event_id:
            self.processed_gateway_events = [*(self.processed_gateway_events or []), event_id]

    def _update_payment(self, **changes):
        values = {name: getattr(self.payment, name) for name in _PAYMENT_FIELDS} if self.payment else {}
        values.update(changes)
        self.payment = PaymentInfo(**values)

    def _sync_item_status(self, target):
        item_status = _ITEM_STATUS_FOR.get(target)
        if item_status is None:
            return
        now = datetime.now(UTC)
        for item in self.items:
            current = ItemStatus(item.status)
            if current == ItemStatus.CANCELLED:
                continue
            if _ITEM_PROGRESS.index(current) < _ITEM_PROGRESS.index(item_status):
                item.status = item_status.value
                if item_status == ItemStatus.SHIPPED and item.shipped_at is None:
                    item.shipped_at = now
                if item_status == ItemStatus.DELIVERED and item.delivered_at is None:
                    item.delivered_at = now

    def _apply_transition(self, target, message, actor=None):
        current = OrderStatus(self.status)
        target = OrderStatus(target)
        if target not in VALID_TRANSITIONS[current]:
            raise BadRequest(f"Invalid status transition from {current.value} to {target.value}")

        self.status = target.value
        now = datetime.now(UTC)
        if target == OrderStatus.DELIVERED:
            self.delivered_at = now
        self._sync_item_status(target)
        self._append_timeline(target, message, actor=actor)

        self.raise_(
            OrderStatusChanged(
                order_id=str(self.id),
                previous_status=current.value,
                new_status=target.value,
                message=message,
                actor=actor,
                changed_at=now,
            )
        )

    # -------------------------------------------------------------------
    # Status transitions
    # -------------------------------------------------------------------
    def transition_to(self, target, message=None, actor=None):
        """Move to ``target`` if the transition table allows it.

        Cancellation needs a reason, so a CANCELLED target goes through
        ``cancel`` with ``message`` as the reason.
        """
        target = OrderStatus(target)
        if target == OrderStatus.CANCELLED:
            self.cancel(message, actor=actor, enforce_cancellable=False)
            return
        self._apply_transition(target, message or f"Order status updated to {target.value}", actor=actor)

    def cancel(self, reason, actor=None, enforce_cancellable=True):
        """Cancel the order. Stock restoration is the caller's job (see cancellation.py)."""
        if not reason or not reason.strip():
            raise BadRequest("Cancellation reason is required")
        current = OrderStatus(self.status)
        if enforce_cancellable and current not in CANCELLABLE_STATES:
            raise BadRequest("Order cannot be cancelled at this stage")

        self._apply_transition(OrderStatus.CANCELLED, f"Order cancelled: {reason}", actor=actor)
        self.cancel_reason = reason
        for item in self.items:
            item.status = ItemStatus.CANCELLED.value

        self.raise_(
            OrderCancelled(
                order_id=str(self.id),
                previous_status=current.value,
                reason=reason,
                cancelled_by=actor,
                cancelled_at=datetime.now(UTC),
            )
        )

    # -------------------------------------------------------------------
    # Shipping
    # -------------------------------------------------------------------
    def add_tracking(self, item_id, tracking_number, carrier=None, actor=None):
        """Ship one item; the order follows to SHIPPED once every item has shipped."""
        if OrderStatus(self.status) not in (OrderStatus.PROCESSING, OrderStatus.SHIPPED):
            raise BadRequest("Tracking can only be added to orders being processed")

        item = self.find_item(item_id)
        if ItemStatus(item.status) in (ItemStatus.CANCELLED, ItemStatus.RETURNED):
            raise BadRequest(f"Item cannot be shipped from status {item.status}")

        now = datetime.now(UTC)
        item.tracking_number = tracking_number
        item.carrier = carrier
        if ItemStatus(item.status) != ItemStatus.DELIVERED:
            item.status = ItemStatus.SHIPPED.value
        if item.shipped_at is None:
            item.shipped_at = now
        self.updated_at = now

        self.raise_(
            OrderItemShipped(
                order_id=str(self.id),
                item_id=str(item.id),
                tracking_number=tracking_number,
                carrier=carrier,
                shipped_at=now,
            )
        )

        shipped = {ItemStatus.SHIPPED.value, ItemStatus.DELIVERED.value}
        if OrderStatus(self.status) != OrderStatus.SHIPPED and all(i.status in shipped for i in self.items):
            self._apply_transition(OrderStatus.SHIPPED, "All items shipped", actor=actor)

    def record_delivery(self, item_ids=None, actor=None):
        """Mark items delivered; the order becomes DELIVERED when every item is."""
        if OrderStatus(self.status) not in (OrderStatus.SHIPPED, OrderStatus.OUT_FOR_DELIVERY):
            raise BadRequest("Only shipped orders can be delivered")

        targets = [self.find_item(item_id) for item_id in item_ids] if item_ids else list(self.items)
        now = datetime.now(UTC)
        for item in targets:
            if ItemStatus(item.status) == ItemStatus.CANCELLED:
                continue
            item.status = ItemStatus.DELIVERED.value
            item.delivered_at = item.delivered_at or now
        self.updated_at = now

        live_items = [i for i in self.items if i.status != ItemStatus.CANCELLED.value]
        if all(i.status == ItemStatus.DELIVERED.value for i in live_items):
            self._apply_transition(OrderStatus.DELIVERED, "All items delivered", actor=actor)

    # -------------------------------------------------------------------
    # Payments
    # -------------------------------------------------------------------
    def attach_payment_reference(self, provider, transaction_id=None, payment_intent_id=None):
        """Remember the gateway reference of a payment attempt before it completes."""
        if self.payment_status == PaymentStatus.CAPTURED.value:
            raise BadRequest("Order is already paid")
        if OrderStatus(self.status) in (OrderStatus.CANCELLED, OrderStatus.REFUNDED):
            raise BadRequest(f"Cannot take payment for a {self.status} order")

        changes = {"provider": provider}
        if transaction_id:
            changes["transaction_id"] = transaction_id
        if payment_intent_id:
            changes["payment_intent_id"] = payment_intent_id
        self._update_payment(**changes)
        self.updated_at = datetime.now(UTC)

    def capture_payment(
        self,
        transaction_id=None,
        amount=None,
        method=None,
        brand=None,
        last4=None,
        payment_intent_id=None,
        bank_transaction_id=None,
        message=CAPTURE_MESSAGE,
        event_id=None,
    ) -> bool:
        """Record a successful payment. Returns False when nothing changed.

        Only a PENDING order is confirmed, so a redelivered success signal
        never appends a second confirmation.
        """
        if self.has_processed(event_id):
            return False
        if amount is not None and not amounts_match(amount, self.total):
            raise PaymentError("Payment amount mismatch")
        if self.payment_status in (PaymentStatus.REFUNDED.value, PaymentStatus.PARTIALLY_REFUNDED.value):
            self._mark_processed(event_id)
            return False

        already_captured = self.payment_status == PaymentStatus.CAPTURED.value
        now = datetime.now(UTC)

        changes = {"paid_at": self.payment.paid_at if already_captured and self.payment.paid_at else now}
        if transaction_id:
            changes["transaction_id"] = transaction_id
        if payment_intent_id:
            changes["payment_intent_id"] = payment_intent_id
        if bank_transaction_id:
            changes["bank_transaction_id"] = bank_transaction_id
        if method:
            changes["method"] = PaymentMethod(method).value
        if brand:
            changes["brand"] = brand
        if last4:
            changes["last4"] = last4[-4:]
        self._update_payment(**changes)
        self.payment_status = PaymentStatus.CAPTURED.value
        self._mark_processed(event_id)

        if OrderStatus(self.status) == OrderStatus.PENDING:
            self._apply_transition(OrderStatus.CONFIRMED, message)
        elif not already_captured:
            self._append_timeline(self.status, "Payment received")
        else:
            return False

        self.raise_(
            OrderPaymentCaptured(
                order_id=str(self.id),
                provider=self.payment.provider,
                transaction_id=self.payment.transaction_id,
                amount=self.total if amount is None else round_money(amount),
                captured_at=now,
            )
        )
        return True

    def fail_payment(self, reason, event_id=None) -> bool:
        """Record a failed payment attempt. The order status is left alone."""
        if self.has_processed(event_id):
            return False
        if self.payment_status in (
            PaymentStatus.CAPTURED.value,
            PaymentStatus.REFUNDED.value,
            PaymentStatus.PARTIALLY_REFUNDED.value,
        ):
            self._mark_processed(event_id)
            return False

        self.payment_status = PaymentStatus.FAILED.value
        self._append_timeline(self.status, reason)
        self._mark_processed(event_id)

        self.raise_(
            OrderPaymentFailed(
                order_id=str(self.id),
                provider=self.payment.provider,
                reason=reason,
                failed_at=datetime.now(UTC),
            )
        )
        return True

    def resolve_refund_amount(self, amount=None) -> float:
        """Validate a refund request and return the amount it will refund."""
        if not (self.payment and (self.payment.transaction_id or self.payment.payment_intent_id)):
            raise BadRequest("No payment found for this order")
        if self.payment_status == PaymentStatus.REFUNDED.value:
            raise BadRequest("Order is already refunded")
        if self.payment_status not in (PaymentStatus.CAPTURED.value, PaymentStatus.PARTIALLY_REFUNDED.value):
            raise BadRequest("Cannot refund unpaid order")

        remaining = self.refundable_amount
        amount = remaining if amount is None else round_money(amount)
        if amount <= 0:
            raise BadRequest("Refund amount must be positive")
        if amount > remaining + 0.001:
            raise BadRequest("Refund amount exceeds the refundable balance")
        return amount

    def refund(self, amount=None, refund_id=None, reason=None, actor=None) -> float:
        """Record a refund; amounts accumulate until the total is refunded."""
        amount = self.resolve_refund_amount(amount)
        self._apply_refund(self.refunded_amount + amount, refund_id, reason or "Payment refunded", actor=actor)
        return amount

    def sync_refund_total(self, refunded_total, refund_id=None, event_id=None) -> bool:
        """Align with the refunded total reported by the gateway."""
        if self.has_processed(event_id):
            return False
        refunded_total = round_money(min(refunded_total, self.total))
        if refunded_total <= self.refunded_amount + 0.001:
            self._mark_processed(event_id)
            return False

        self._apply_refund(refunded_total, refund_id, "Refund recorded by payment gateway")
        self._mark_processed(event_id)
        return True

    def _apply_refund(self, refunded_total, refund_id, message, actor=None):
        now = datetime.now(UTC)
        refunded_total = round_money(refunded_total)
        is_full = refunded_total >= self.total - 0.005

        self._update_payment(refund_amount=refunded_total, refund_id=refund_id, refunded_at=now)
        if is_full:
            self.payment_status = PaymentStatus.REFUNDED.value
            previous = OrderStatus(self.status)
            self.status = OrderStatus.REFUNDED.value
            self._append_timeline(OrderStatus.REFUNDED, message, actor=actor)
            self.raise_(
                OrderStatusChanged(
                    order_id=str(self.id),
                    previous_status=previous.value,
                    new_status=OrderStatus.REFUNDED.value,
                    message=message,
                    actor=actor,
                    changed_at=now,
                )
            )
        else:
            self.payment_status = PaymentStatus.PARTIALLY_REFUNDED.value
            self._append_timeline(self.status, message, actor=actor)

        self.raise_(
            OrderPaymentRefunded(
                order_id=str(self.id),
                refund_id=refund_id,
                refunded_total=refunded_total,
                is_full_refund=is_full,
                refunded_at=now,
            )
        )
