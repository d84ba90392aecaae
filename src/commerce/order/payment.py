"""Order payment — commands and handler.

Gateways report outcomes through these commands. Capture, failure and
gateway-reported refund totals carry an optional ``event_id``; a repeated id
is acknowledged without touching the order.
"""

from protean import handle
from protean.fields import Float, Identifier, String
from protean.utils.globals import current_domain

from commerce.domain import commerce
from commerce.order.order import CAPTURE_MESSAGE, Order, PaymentMethod
from commerce.order.repository import load_order


@commerce.command(part_of="Order")
class AttachPaymentReference:
    order_id = Identifier(required=True)
    provider = String(required=True, max_length=50)
    transaction_id = String(max_length=255)
    payment_intent_id = String(max_length=255)


@commerce.command(part_of="Order")
class CapturePayment:
    order_id = Identifier(required=True)
    transaction_id = String(max_length=255)
    payment_intent_id = String(max_length=255)
    bank_transaction_id = String(max_length=255)
    amount = Float()
    method = String(choices=PaymentMethod)
    brand = String(max_length=50)
    last4 = String(max_length=4)
    message = String(max_length=1000, default=CAPTURE_MESSAGE)
    event_id = String(max_length=255)


@commerce.command(part_of="Order")
class FailPayment:
    order_id = Identifier(required=True)
    reason = String(required=True, max_length=1000)
    event_id = String(max_length=255)


@commerce.command(part_of="Order")
class RecordRefund:
    order_id = Identifier(required=True)
    amount = Float()  # Defaults to the refundable balance
    refund_id = String(max_length=255)
    reason = String(max_length=500)
    actor = String(max_length=255)


@commerce.command(part_of="Order")
class SyncRefundTotal:
    order_id = Identifier(required=True)
    refunded_total = Float(required=True, min_value=0.0)
    refund_id = String(max_length=255)
    event_id = String(max_length=255)


@commerce.command_handler(part_of=Order)
class OrderPaymentHandler:
    @handle(AttachPaymentReference)
    def attach_reference(self, command):
        order = load_order(command.order_id)
        order.attach_payment_reference(
            command.provider,
            transaction_id=command.transaction_id,
            payment_intent_id=command.payment_intent_id,
        )
        current_domain.repository_for(Order).add(order)
        return str(order.id)

    @handle(CapturePayment)
    def capture(self, command):
        order = load_order(command.order_id)
        changed = order.capture_payment(
            transaction_id=command.transaction_id,
            amount=command.amount,
            method=command.method,
            brand=command.brand,
            last4=command.last4,
            payment_intent_id=command.payment_intent_id,
            bank_transaction_id=command.bank_transaction_id,
            message=command.message or CAPTURE_MESSAGE,
            event_id=command.event_id,
        )
        current_domain.repository_for(Order).add(order)
        return changed

    @handle(FailPayment)
    def fail(self, command):
        order = load_order(command.order_id)
        changed = order.fail_payment(command.reason, event_id=command.event_id)
        current_domain.repository_for(Order).add(order)
        return changed

    @handle(RecordRefund)
    def record_refund(self, command):
        order = load_order(command.order_id)
        refunded = order.refund(
            amount=command.amount,
            refund_id=command.refund_id,
            reason=command.reason,
            actor=command.actor,
        )
        current_domain.repository_for(Order).add(order)
        return refunded

    @handle(SyncRefundTotal)
    def sync_refund_total(self, command):
        order = load_order(command.order_id)
        changed = order.sync_refund_total(
            command.refunded_total,
            refund_id=command.refund_id,
            event_id=command.event_id,
        )
        current_domain.repository_for(Order).add(order)
        return changed
