"""Configurable fake card gateway for development and testing.

Stands in for Stripe when no API keys are configured. Webhook payloads use the
Stripe event shape and are accepted only with the signature
``"test-signature"``; every outbound call is recorded in ``calls``.
"""

import json
from uuid import uuid4

from commerce.errors import BadRequest, PaymentError
from commerce.payments.gateway.port import (
    EventKind,
    GatewayEvent,
    PaymentProvider,
    PaymentRequest,
    PaymentSession,
    RefundResult,
)
from commerce.payments.gateway.stripe_adapter import SUCCEEDED, event_from_stripe
from commerce.shared.money import round_money

TEST_SIGNATURE = "test-signature"


class FakeGateway(PaymentProvider):
    def __init__(self, name: str = "stripe") -> None:
        self.name = name
        self.should_succeed: bool = True
        self.failure_reason: str = "Card declined"
        self.calls: list[dict] = []
        self.intents: dict[str, dict] = {}

    def configure(self, should_succeed: bool, failure_reason: str = "Card declined") -> None:
        self.should_succeed = should_succeed
        self.failure_reason = failure_reason

    def initiate(self, request: PaymentRequest) -> PaymentSession:
        self.calls.append({"method": "initiate", "order_id": request.order_id, "amount": request.amount})
        if not self.should_succeed:
            raise PaymentError(self.failure_reason)

        intent_id = f"pi_fake_{uuid4().hex[:12]}"
        self.intents[intent_id] = {"order_id": request.order_id, "amount": round_money(request.amount)}
        return PaymentSession(
            provider=self.name,
            amount=request.amount,
            currency=request.currency,
            payment_intent_id=intent_id,
            client_secret=f"{intent_id}_secret",
        )

    def reconcile_webhook_event(self, payload, signature: str | None = None) -> GatewayEvent:
        if signature != TEST_SIGNATURE:
            raise BadRequest("Invalid webhook signature")
        body = payload.decode("utf-8") if isinstance(payload, bytes) else payload
        try:
            return event_from_stripe(json.loads(body))
        except ValueError as exc:
            raise BadRequest("Invalid webhook payload") from exc

    def confirm_capture(self, reference: str) -> GatewayEvent:
        self.calls.append({"method": "confirm_capture", "reference": reference})
        intent = self.intents.get(reference)
        if intent is None:
            raise BadRequest("Invalid payment intent")
        if not self.should_succeed:
            raise PaymentError(f"Payment status: {self.failure_reason}")
        return GatewayEvent(
            kind=EventKind.CAPTURED,
            event_type=SUCCEEDED,
            event_id=f"{SUCCEEDED}:{reference}",
            order_id=intent["order_id"],
            transaction_id=reference,
            payment_intent_id=reference,
            amount=intent["amount"],
            method="card",
            brand="visa",
            last4="4242",
        )

    def refund(self, order_id: str, payment, amount: float, reason: str | None = None) -> RefundResult:
        self.calls.append({"method": "refund", "order_id": order_id, "amount": amount, "reason": reason})
        if not self.should_succeed:
            raise PaymentError(self.failure_reason)
        return RefundResult(refund_id=f"re_fake_{uuid4().hex[:12]}", amount=round_money(amount), gateway_status="succeeded")
