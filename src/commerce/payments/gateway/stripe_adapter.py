"""Stripe card gateway adapter.

Uses the stripe-python SDK to create PaymentIntents and refunds. Webhooks are
verified against the endpoint's signing secret before the payload is parsed,
so an unsigned or tampered request never produces an event.
"""

import json

import stripe
import structlog

from commerce.errors import BadRequest, ExternalServiceError, PaymentError
from commerce.payments.gateway.port import (
    EventKind,
    GatewayEvent,
    PaymentProvider,
    PaymentRequest,
    PaymentSession,
    RefundResult,
)
from commerce.shared.money import from_minor_units, to_minor_units

logger = structlog.get_logger(__name__)

SUCCEEDED = "payment_intent.succeeded"
PAYMENT_FAILED = "payment_intent.payment_failed"
CHARGE_REFUNDED = "charge.refunded"
DISPUTE_CREATED = "charge.dispute.created"


def _metadata_order_id(obj: dict) -> str | None:
    metadata = obj.get("metadata") or {}
    return metadata.get("order_id") or metadata.get("orderId")


def event_from_stripe(event: dict, card_lookup=None) -> GatewayEvent:
    """Translate a parsed Stripe event into a GatewayEvent.

    ``card_lookup`` resolves a payment method id to ``(brand, last4)`` when the
    intent does not carry the card inline.
    """
    event_type = event.get("type", "")
    event_id = event.get("id")
    obj = (event.get("data") or {}).get("object") or {}

    if event_type == SUCCEEDED:
        brand = last4 = None
        payment_method = obj.get("payment_method")
        if isinstance(payment_method, dict):
            card = payment_method.get("card") or {}
            brand, last4 = card.get("brand"), card.get("last4")
        elif payment_method and card_lookup is not None:
            brand, last4 = card_lookup(payment_method)
        return GatewayEvent(
            kind=EventKind.CAPTURED,
            event_type=event_type,
            event_id=event_id,
            order_id=_metadata_order_id(obj),
            transaction_id=obj.get("id"),
            payment_intent_id=obj.get("id"),
            amount=from_minor_units(obj.get("amount_received") or obj.get("amount")),
            method="card",
            brand=brand,
            last4=last4,
        )

    if event_type == PAYMENT_FAILED:
        error = obj.get("last_payment_error") or {}
        return GatewayEvent(
            kind=EventKind.FAILED,
            event_type=event_type,
            event_id=event_id,
            order_id=_metadata_order_id(obj),
            payment_intent_id=obj.get("id"),
            reason=f"Payment failed: {error.get('message') or 'Unknown error'}",
        )

    if event_type == CHARGE_REFUNDED:
        refunds = (obj.get("refunds") or {}).get("data") or []
        return GatewayEvent(
            kind=EventKind.REFUNDED,
            event_type=event_type,
            event_id=event_id,
            order_id=_metadata_order_id(obj),
            payment_intent_id=obj.get("payment_intent"),
            refunded_total=from_minor_units(obj.get("amount_refunded")),
            refund_id=refunds[0].get("id") if refunds else None,
        )

    if event_type == DISPUTE_CREATED:
        return GatewayEvent(
            kind=EventKind.DISPUTED,
            event_type=event_type,
            event_id=event_id,
            payment_intent_id=obj.get("payment_intent"),
            transaction_id=obj.get("charge"),
            amount=from_minor_units(obj.get("amount")),
            reason=obj.get("reason"),
            dispute_id=obj.get("id"),
        )

    return GatewayEvent(kind=EventKind.IGNORED, event_type=event_type, event_id=event_id)


class StripeGateway(PaymentProvider):
    """Production Stripe gateway adapter."""

    name = "stripe"

    def __init__(self, api_key: str, webhook_secret: str, timeout: int = 30, client=None) -> None:
        self.webhook_secret = webhook_secret
        self.client = client or stripe.StripeClient(api_key, http_client=stripe.RequestsClient(timeout=timeout))

    def initiate(self, request: PaymentRequest) -> PaymentSession:
        params = {
            "amount": to_minor_units(request.amount),
            "currency": (request.currency or "inr").lower(),
            "metadata": {"order_id": request.order_id, "user_id": request.user_id, **request.metadata},
            "automatic_payment_methods": {"enabled": True},
            "description": request.description or f"Order {request.order_id}",
        }
        intent = self._call(
            "create_intent",
            self.client.payment_intents.create,
            params=params,
            options={"idempotency_key": f"order-{request.order_id}-{params['amount']}"},
        )
        logger.info("Payment intent created", order_id=request.order_id, payment_intent_id=intent.id)
        return PaymentSession(
            provider=self.name,
            amount=request.amount,
            currency=request.currency,
            payment_intent_id=intent.id,
            client_secret=intent.client_secret,
        )

    def reconcile_webhook_event(self, payload, signature: str | None = None) -> GatewayEvent:
        body = payload.decode("utf-8") if isinstance(payload, bytes) else payload
        try:
            stripe.WebhookSignature.verify_header(body, signature or "", self.webhook_secret)
        except stripe.SignatureVerificationError as exc:
            logger.error("Webhook signature verification failed", error=str(exc))
            raise BadRequest("Invalid webhook signature") from exc

        try:
            event = json.loads(body)
        except ValueError as exc:
            raise BadRequest("Invalid webhook payload") from exc
        return event_from_stripe(event, card_lookup=self._card_details)

    def confirm_capture(self, reference: str) -> GatewayEvent:
        intent = self._call("retrieve_intent", self.client.payment_intents.retrieve, reference)
        if intent.status != "succeeded":
            raise PaymentError(f"Payment status: {intent.status}")

        brand = last4 = None
        if intent.payment_method:
            brand, last4 = self._card_details(intent.payment_method)
        metadata = intent.metadata or {}
        return GatewayEvent(
            kind=EventKind.CAPTURED,
            event_type=SUCCEEDED,
            event_id=f"{SUCCEEDED}:{intent.id}",
            order_id=metadata.get("order_id"),
            transaction_id=intent.id,
            payment_intent_id=intent.id,
            amount=from_minor_units(intent.amount_received or intent.amount),
            method="card",
            brand=brand,
            last4=last4,
        )

    def refund(self, order_id: str, payment, amount: float, reason: str | None = None) -> RefundResult:
        intent_id = payment.payment_intent_id or payment.transaction_id
        if not intent_id:
            raise BadRequest("No payment found for this order")

        refund = self._call(
            "refund",
            self.client.refunds.create,
            params={
                "payment_intent": intent_id,
                "amount": to_minor_units(amount),
                "reason": "requested_by_customer",
                "metadata": {"order_id": order_id, "reason": reason or "Customer requested"},
            },
        )
        logger.info("Refund created", order_id=order_id, refund_id=refund.id, amount=amount)
        return RefundResult(refund_id=refund.id, amount=from_minor_units(refund.amount), gateway_status=refund.status)

    def _card_details(self, payment_method_id) -> tuple[str | None, str | None]:
        method = self._call("retrieve_payment_method", self.client.payment_methods.retrieve, payment_method_id)
        card = getattr(method, "card", None)
        if card is None:
            return None, None
        return card.brand, card.last4

    def _call(self, operation, func, *args, **kwargs):
        try:
            return func(*args, **kwargs)
        except stripe.APIConnectionError as exc:
            logger.error("Stripe unreachable", operation=operation, error=str(exc))
            raise ExternalServiceError("stripe", "Payment gateway unavailable") from exc
        except stripe.StripeError as exc:
            logger.error("Stripe request rejected", operation=operation, error=str(exc))
            raise PaymentError(exc.user_message or "Payment processing failed") from exc
