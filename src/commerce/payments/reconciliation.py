"""Payment reconciliation: bridges gateway notifications and orders.

Gateways report outcomes out of band (webhooks, IPNs, browser redirects) and
may repeat themselves. Adapters verify and translate each notification; this
service locates the order and dispatches exactly one order command for it.
The command carries the gateway's event id, so a redelivered notification is
acknowledged without touching the order again.
"""

import structlog
from protean.utils.globals import current_domain

from commerce.errors import BadRequest, NotFound
from commerce.order.access import ensure_can_pay, ensure_staff
from commerce.order.order import CAPTURE_MESSAGE, Order, PaymentStatus
from commerce.order.payment import AttachPaymentReference, CapturePayment, FailPayment, RecordRefund, SyncRefundTotal
from commerce.order.repository import load_order
from commerce.order.service import serialize_order
from commerce.payments.gateway.port import EventKind, GatewayEvent, PaymentRequest
from commerce.payments.gateway.sslcommerz_adapter import event_id_for

logger = structlog.get_logger(__name__)

CARD_PROVIDER = "stripe"
REGIONAL_PROVIDER = "sslcommerz"


class PaymentReconciler:
    def __init__(self, gateways, orders) -> None:
        self.gateways = gateways
        self.orders = orders  # OrderService, for cache invalidation and reads

    # -------------------------------------------------------------------
    # Starting a payment
    # -------------------------------------------------------------------
    def create_intent(self, order_id, user_id=None, role=None, currency=None, metadata=None) -> dict:
        """Open a card payment intent for an order."""
        return self._initiate(CARD_PROVIDER, order_id, user_id, role, currency=currency, metadata=metadata)

    def init_regional(self, order_id, user_id=None, role=None, customer=None) -> dict:
        """Open an SSLCommerz hosted checkout session for an order."""
        return self._initiate(REGIONAL_PROVIDER, order_id, user_id, role, customer=customer)

    def _initiate(self, provider, order_id, user_id, role, currency=None, metadata=None, customer=None) -> dict:
        order = load_order(order_id)
        ensure_can_pay(order.user_id, user_id, role)
        if order.payment_status == PaymentStatus.CAPTURED.value:
            raise BadRequest("Order is already paid")

        gateway = self.gateways.get(provider)
        shipping = serialize_order(order)["shipping_address"] or {}
        session = gateway.initiate(
            PaymentRequest(
                order_id=str(order.id),
                user_id=str(order.user_id),
                amount=order.total,
                currency=currency or order.currency,
                description=f"Order {order.id}",
                customer=customer or {},
                shipping=shipping,
                metadata=metadata or {},
            )
        )

        current_domain.process(
            AttachPaymentReference(
                order_id=str(order.id),
                provider=gateway.name,
                transaction_id=session.transaction_id,
                payment_intent_id=session.payment_intent_id,
            ),
            asynchronous=False,
        )
        self.orders.invalidate(order.id)

        return {
            "order_id": str(order.id),
            "provider": session.provider,
            "amount": session.amount,
            "currency": session.currency,
            "client_secret": session.client_secret,
            "payment_intent_id": session.payment_intent_id,
            "transaction_id": session.transaction_id,
            "gateway_url": session.gateway_url,
            "session_key": session.session_key,
        }

    def confirm_card_payment(self, payment_intent_id, user_id=None, role=None) -> dict:
        """Ask the card gateway about an intent when the client finishes checkout."""
        gateway = self.gateways.get(CARD_PROVIDER)
        event = gateway.confirm_capture(payment_intent_id)
        order = self._locate(event)
        if order is None:
            raise BadRequest("Invalid payment intent")
        ensure_can_pay(order.user_id, user_id, role)

        self._apply(event, order)
        return self.orders.get_order(order.id, user_id=user_id, role=role)

    # -------------------------------------------------------------------
    # Gateway notifications
    # -------------------------------------------------------------------
    def handle_card_webhook(self, payload: bytes, signature: str | None) -> dict:
        gateway = self.gateways.get(CARD_PROVIDER)
        event = gateway.reconcile_webhook_event(payload, signature)
        logger.info("Processing card webhook", event_type=event.event_type, event_id=event.event_id)

        if event.kind == EventKind.DISPUTED:
            logger.error(
                "Payment disputed",
                dispute_id=event.dispute_id,
                charge=event.transaction_id,
                payment_intent_id=event.payment_intent_id,
                amount=event.amount,
                reason=event.reason,
            )
        elif event.kind == EventKind.IGNORED:
            logger.info("Unhandled card webhook event", event_type=event.event_type)
        else:
            order = self._locate(event)
            if order is None:
                logger.warning(
                    "No order for card webhook",
                    event_type=event.event_type,
                    order_id=event.order_id,
                    payment_intent_id=event.payment_intent_id,
                )
            else:
                self._apply(event, order)

        return {"received": True, "event": event.event_type}

    def handle_ipn(self, form: dict) -> dict:
        gateway = self.gateways.get(REGIONAL_PROVIDER)
        event = gateway.reconcile_webhook_event(form)

        if not event.order_id and not event.transaction_id:
            raise BadRequest("Order ID not found in IPN data")
        order = self._locate(event)
        if order is None:
            raise NotFound("Order")
        self._ensure_transaction_matches(order, event.transaction_id)

        if event.kind == EventKind.IGNORED:
            return serialize_order(order)
        self._apply(event, order)
        return serialize_order(load_order(order.id))

    def sslcommerz_success(self, transaction_id, val_id) -> dict:
        order = self._order_for_transaction(transaction_id)
        event = self.gateways.get(REGIONAL_PROVIDER).confirm_capture(val_id)
        self._ensure_transaction_matches(order, event.transaction_id)
        self._apply(event, order)
        return serialize_order(load_order(order.id))

    def sslcommerz_fail(self, transaction_id) -> dict:
        return self._regional_failure(transaction_id, "failed", "Payment failed via SSLCommerz")

    def sslcommerz_cancel(self, transaction_id) -> dict:
        return self._regional_failure(transaction_id, "cancelled", "Payment cancelled by customer")

    def _regional_failure(self, transaction_id, outcome, reason) -> dict:
        order = self._order_for_transaction(transaction_id)
        event = GatewayEvent(
            kind=EventKind.FAILED,
            event_type=f"redirect.{outcome}",
            event_id=event_id_for(transaction_id, outcome),
            order_id=str(order.id),
            transaction_id=transaction_id,
            reason=reason,
        )
        self._apply(event, order)
        return serialize_order(load_order(order.id))

    # -------------------------------------------------------------------
    # Refunds
    # -------------------------------------------------------------------
    def refund(self, order_id, amount=None, reason=None, user_id=None, role=None) -> dict:
        """Refund through the order's gateway, then record it on the order."""
        ensure_staff(role)
        order = load_order(order_id)
        amount = order.resolve_refund_amount(amount)

        gateway = self.gateways.get(order.payment.provider)
        result = gateway.refund(str(order.id), order.payment, amount, reason)

        current_domain.process(
            RecordRefund(
                order_id=str(order.id),
                amount=amount,
                refund_id=result.refund_id,
                reason=reason,
                actor=str(user_id) if user_id else None,
            ),
            asynchronous=False,
        )
        self.orders.invalidate(order.id)
        logger.info("Refund recorded", order_id=str(order.id), refund_id=result.refund_id, amount=amount)
        return self.orders.get_order(order.id, user_id=user_id, role=role)

    # -------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------
    def _locate(self, event: GatewayEvent) -> Order | None:
        repo = current_domain.repository_for(Order)
        if event.order_id:
            try:
                return load_order(event.order_id)
            except NotFound:
                logger.warning("Gateway event names an unknown order", order_id=event.order_id)
                return None
        if event.payment_intent_id:
            order = repo.find_by_payment_intent(event.payment_intent_id)
            if order is not None:
                return order
        if event.transaction_id:
            return repo.find_by_transaction(event.transaction_id)
        return None

    def _order_for_transaction(self, transaction_id) -> Order:
        if not transaction_id:
            raise BadRequest("Transaction ID is required")
        order = current_domain.repository_for(Order).find_by_transaction(transaction_id)
        if order is None:
            raise NotFound("Order")
        return order

    @staticmethod
    def _ensure_transaction_matches(order, transaction_id):
        if not order.payment or order.payment.transaction_id != transaction_id:
            logger.error("Transaction ID mismatch", order_id=str(order.id), received=transaction_id)
            raise BadRequest("Transaction ID mismatch")

    def _apply(self, event: GatewayEvent, order: Order) -> bool:
        if event.kind == EventKind.CAPTURED:
            command = CapturePayment(
                order_id=str(order.id),
                transaction_id=event.transaction_id,
                payment_intent_id=event.payment_intent_id,
                bank_transaction_id=event.bank_transaction_id,
                amount=event.amount,
                method=event.method,
                brand=event.brand,
                last4=event.last4,
                message=event.message or CAPTURE_MESSAGE,
                event_id=event.event_id,
            )
        elif event.kind == EventKind.FAILED:
            command = FailPayment(order_id=str(order.id), reason=event.reason, event_id=event.event_id)
        elif event.kind == EventKind.REFUNDED:
            command = SyncRefundTotal(
                order_id=str(order.id),
                refunded_total=event.refunded_total,
                refund_id=event.refund_id,
                event_id=event.event_id,
            )
        else:
            return False

        changed = current_domain.process(command, asynchronous=False)
        self.orders.invalidate(order.id)
        logger.info(
            "Gateway event applied",
            order_id=str(order.id),
            event_type=event.event_type,
            event_id=event.event_id,
            changed=bool(changed),
        )
        return bool(changed)
