"""SSLCommerz regional gateway adapter.

Hosted checkout: ``initiate`` opens a session and returns the gateway page the
customer is redirected to. The gateway then posts an IPN (instant payment
notification) signed with the store password:

    verify_sign = md5("k1=v1&k2=v2...&store_passwd=" + md5(store_password))

where the keys and their order come from the ``verify_key`` field. Successful
payments are re-checked against the validator API before they count.
"""

import hashlib
import hmac
import time

import requests
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
from commerce.shared.money import round_money

logger = structlog.get_logger(__name__)

SANDBOX_URL = "https://sandbox.sslcommerz.com"
LIVE_URL = "https://securepay.sslcommerz.com"

INIT_PATH = "/gwprocess/v4/api.php"
VALIDATION_PATH = "/validator/api/validationserverAPI.php"
REFUND_PATH = "/validator/api/merchantTransIDvalidationAPI.php"

SUCCESS_STATUSES = {"VALID", "VALIDATED"}


def map_card_type(card_type: str | None) -> str:
    """Map an SSLCommerz ``card_type`` to a payment method."""
    value = (card_type or "").lower()
    if any(name in value for name in ("visa", "master", "amex")):
        return "card"
    if any(name in value for name in ("bkash", "nagad", "rocket")):
        return "wallet"
    if "bank" in value or "netbanking" in value:
        return "netbanking"
    return "card"


def event_id_for(transaction_id: str, outcome: str) -> str:
    """Dedup key for one outcome of one transaction, shared by IPN and redirects."""
    return f"sslcommerz:{transaction_id}:{outcome}"


class SSLCommerzGateway(PaymentProvider):
    name = "sslcommerz"

    def __init__(
        self,
        store_id: str,
        store_password: str,
        is_live: bool = False,
        urls: dict | None = None,
        timeout: int = 30,
        session: requests.Session | None = None,
    ) -> None:
        self.store_id = store_id
        self.store_password = store_password
        self.base_url = LIVE_URL if is_live else SANDBOX_URL
        self.urls = urls or {}
        self.timeout = timeout
        self.session = session or requests.Session()

    # -------------------------------------------------------------------
    # Port
    # -------------------------------------------------------------------
    def initiate(self, request: PaymentRequest) -> PaymentSession:
        transaction_id = f"TXN_{request.order_id.replace('-', '')[:12].upper()}_{int(time.time() * 1000)}"
        customer = request.customer
        shipping = request.shipping
        ship_name = f"{shipping.get('first_name', '')} {shipping.get('last_name', '')}".strip()

        payload = {
            "store_id": self.store_id,
            "store_passwd": self.store_password,
            "total_amount": f"{round_money(request.amount):.2f}",
            "currency": request.currency or "BDT",
            "tran_id": transaction_id,
            "success_url": self.urls.get("success_url", ""),
            "fail_url": self.urls.get("fail_url", ""),
            "cancel_url": self.urls.get("cancel_url", ""),
            "ipn_url": self.urls.get("ipn_url", ""),
            "cus_name": customer.get("name") or ship_name,
            "cus_email": customer.get("email") or shipping.get("email") or "",
            "cus_phone": customer.get("phone") or shipping.get("phone") or "",
            "cus_add1": customer.get("address") or shipping.get("address_line1", ""),
            "cus_city": customer.get("city") or shipping.get("city", ""),
            "cus_postcode": customer.get("postcode") or shipping.get("postal_code", ""),
            "cus_country": customer.get("country") or shipping.get("country", ""),
            "shipping_method": customer.get("shipping_method") or "Courier",
            "product_name": request.description or f"Order {request.order_id}",
            "product_category": customer.get("product_category") or "General",
            "product_profile": "general",
            "ship_name": ship_name,
            "ship_add1": shipping.get("address_line1", ""),
            "ship_city": shipping.get("city", ""),
            "ship_postcode": shipping.get("postal_code", ""),
            "ship_country": shipping.get("country", ""),
            "value_a": request.order_id,
            "value_b": request.user_id,
        }

        data = self._request("init", "POST", INIT_PATH, data=payload)
        if data.get("status") != "SUCCESS":
            logger.error("SSLCommerz init failed", order_id=request.order_id, reason=data.get("failedreason"))
            raise PaymentError("Failed to initialize payment gateway")

        logger.info("SSLCommerz payment initiated", order_id=request.order_id, transaction_id=transaction_id)
        return PaymentSession(
            provider=self.name,
            amount=request.amount,
            currency=payload["currency"],
            transaction_id=transaction_id,
            gateway_url=data.get("GatewayPageURL"),
            session_key=data.get("sessionkey"),
        )

    def reconcile_webhook_event(self, payload, signature: str | None = None) -> GatewayEvent:
        """Verify and translate an IPN. ``payload`` is the posted form as a dict."""
        if not self.verify_ipn_signature(payload):
            logger.error("SSLCommerz IPN signature verification failed", tran_id=payload.get("tran_id"))
            raise BadRequest("Invalid IPN signature")

        status = (payload.get("status") or "").upper()
        transaction_id = payload.get("tran_id")
        common = {
            "event_type": f"ipn.{status.lower()}",
            "order_id": payload.get("value_a"),
            "transaction_id": transaction_id,
        }

        if status in SUCCESS_STATUSES:
            validation = self.validate(payload.get("val_id"))
            if validation.get("status") not in SUCCESS_STATUSES:
                logger.error(
                    "SSLCommerz IPN failed server-side validation",
                    tran_id=transaction_id,
                    validation_status=validation.get("status"),
                )
                raise PaymentError("Payment validation failed")
            return GatewayEvent(
                kind=EventKind.CAPTURED,
                event_id=event_id_for(transaction_id, "captured"),
                bank_transaction_id=validation.get("bank_tran_id") or payload.get("bank_tran_id"),
                amount=round_money(validation.get("amount")),
                method=map_card_type(payload.get("card_type")),
                brand=payload.get("card_brand"),
                last4=(payload.get("card_no") or "")[-4:] or None,
                **common,
            )
        if status == "FAILED":
            return GatewayEvent(
                kind=EventKind.FAILED,
                event_id=event_id_for(transaction_id, "failed"),
                reason=f"Payment failed: {payload.get('risk_title') or 'Unknown error'}",
                **common,
            )
        if status == "CANCELLED":
            return GatewayEvent(
                kind=EventKind.FAILED,
                event_id=event_id_for(transaction_id, "cancelled"),
                reason="Payment was cancelled by customer",
                **common,
            )

        logger.warning("Unhandled SSLCommerz status", status=status, tran_id=transaction_id)
        return GatewayEvent(kind=EventKind.IGNORED, **common)

    def confirm_capture(self, reference: str) -> GatewayEvent:
        """Validate a ``val_id`` from the success redirect."""
        validation = self.validate(reference)
        if validation.get("status") not in SUCCESS_STATUSES:
            raise PaymentError("Payment validation failed")

        transaction_id = validation.get("tran_id")
        return GatewayEvent(
            kind=EventKind.CAPTURED,
            event_type="validation.valid",
            event_id=event_id_for(transaction_id, "captured"),
            order_id=validation.get("value_a"),
            transaction_id=transaction_id,
            bank_transaction_id=validation.get("bank_tran_id"),
            amount=round_money(validation.get("amount")),
            method=map_card_type(validation.get("card_type")),
            brand=validation.get("card_brand"),
            last4=(validation.get("card_no") or "")[-4:] or None,
        )

    def refund(self, order_id: str, payment, amount: float, reason: str | None = None) -> RefundResult:
        if not payment.bank_transaction_id:
            raise BadRequest("No bank transaction recorded for this order")

        params = {
            "bank_tran_id": payment.bank_transaction_id,
            "store_id": self.store_id,
            "store_passwd": self.store_password,
            "refund_amount": f"{round_money(amount):.2f}",
            "refund_remarks": reason or "Customer requested refund",
            "refe_id": f"REF_{order_id.replace('-', '')[:12].upper()}_{int(time.time() * 1000)}",
            "format": "json",
        }
        data = self._request("refund", "GET", REFUND_PATH, params=params)
        if data.get("status") != "success":
            logger.error("SSLCommerz refund rejected", order_id=order_id, reason=data.get("errorReason"))
            raise PaymentError(data.get("errorReason") or "Refund processing failed")

        logger.info("SSLCommerz refund processed", order_id=order_id, refund_id=data.get("refund_ref_id"))
        return RefundResult(refund_id=data.get("refund_ref_id"), amount=round_money(amount), gateway_status="success")

    # -------------------------------------------------------------------
    # Gateway calls
    # -------------------------------------------------------------------
    def verify_ipn_signature(self, data: dict) -> bool:
        verify_key = data.get("verify_key")
        verify_sign = data.get("verify_sign")
        if not verify_key or not verify_sign:
            return False

        signed = "&".join(f"{key}={data.get(key) or ''}" for key in verify_key.split(","))
        password_hash = hashlib.md5(self.store_password.encode("utf-8")).hexdigest()
        expected = hashlib.md5(f"{signed}&store_passwd={password_hash}".encode()).hexdigest()
        return hmac.compare_digest(expected, verify_sign)

    def validate(self, val_id: str | None) -> dict:
        if not val_id:
            raise BadRequest("Missing validation id")
        params = {
            "val_id": val_id,
            "store_id": self.store_id,
            "store_passwd": self.store_password,
            "format": "json",
        }
        return self._request("validate", "GET", VALIDATION_PATH, params=params)

    def _request(self, operation, method, path, **kwargs) -> dict:
        try:
            response = self.session.request(method, f"{self.base_url}{path}", timeout=self.timeout, **kwargs)
            response.raise_for_status()
            return response.json()
        except requests.exceptions.HTTPError as exc:
            logger.error("SSLCommerz request rejected", operation=operation, error=str(exc))
            raise PaymentError("Payment gateway rejected the request") from exc
        except requests.exceptions.RequestException as exc:
            logger.error("SSLCommerz unreachable", operation=operation, error=str(exc))
            raise ExternalServiceError("sslcommerz", "Payment gateway unavailable") from exc
        except ValueError as exc:
            logger.error("SSLCommerz returned an unreadable response", operation=operation)
            raise ExternalServiceError("sslcommerz", "Payment gateway returned an invalid response") from exc
