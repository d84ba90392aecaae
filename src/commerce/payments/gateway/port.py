"""Payment provider port (abstract interface).

Every gateway the checkout talks to implements this contract. Adapters only
speak to the gateway and translate its payloads into ``GatewayEvent`` values;
they never touch orders. ``PaymentReconciler`` turns those events into order
commands.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum


class EventKind(Enum):
    CAPTURED = "captured"
    FAILED = "failed"
    REFUNDED = "refunded"
    DISPUTED = "disputed"
    IGNORED = "ignored"


@dataclass(frozen=True)
class PaymentRequest:
    """What a gateway needs to open a payment session for an order."""

    order_id: str
    user_id: str
    amount: float
    currency: str
    description: str | None = None
    customer: dict = field(default_factory=dict)  # name, email, phone
    shipping: dict = field(default_factory=dict)  # Address fields of the order
    metadata: dict = field(default_factory=dict)


@dataclass(frozen=True)
class PaymentSession:
    """Result of opening a payment session."""

    provider: str
    amount: float
    currency: str
    transaction_id: str | None = None
    payment_intent_id: str | None = None
    client_secret: str | None = None
    gateway_url: str | None = None
    session_key: str | None = None


@dataclass(frozen=True)
class GatewayEvent:
    """A verified gateway notification, reduced to what an order needs."""

    kind: EventKind
    event_type: str
    event_id: str | None = None
    order_id: str | None = None
    transaction_id: str | None = None
    payment_intent_id: str | None = None
    bank_transaction_id: str | None = None
    amount: float | None = None
    method: str | None = None
    brand: str | None = None
    last4: str | None = None
    refunded_total: float | None = None
    refund_id: str | None = None
    dispute_id: str | None = None
    reason: str | None = None
    message: str | None = None


@dataclass(frozen=True)
class RefundResult:
    """Result of a refund accepted by the gateway."""

    refund_id: str
    amount: float
    gateway_status: str | None = None


class PaymentProvider(ABC):
    """Abstract payment provider interface."""

    name: str

    @abstractmethod
    def initiate(self, request: PaymentRequest) -> PaymentSession:
        """Open a payment session (intent or hosted checkout) for an order."""
        ...

    @abstractmethod
    def reconcile_webhook_event(self, payload, signature: str | None = None) -> GatewayEvent:
        """Verify a gateway notification and translate it.

        Raises BadRequest when the signature does not verify; nothing may be
        mutated before this returns.
        """
        ...

    @abstractmethod
    def confirm_capture(self, reference: str) -> GatewayEvent:
        """Ask the gateway directly whether a payment went through."""
        ...

    @abstractmethod
    def refund(self, order_id: str, payment, amount: float, reason: str | None = None) -> RefundResult:
        """Refund ``amount`` of the payment recorded on an order."""
        ...
