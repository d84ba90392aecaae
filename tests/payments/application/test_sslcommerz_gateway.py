"""Tests for the SSLCommerz adapter against a mocked requests session."""

import hashlib
from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest
import requests

from commerce.errors import BadRequest, ExternalServiceError, PaymentError
from commerce.payments.gateway.port import EventKind, PaymentRequest
from commerce.payments.gateway.sslcommerz_adapter import INIT_PATH, SANDBOX_URL, SSLCommerzGateway

STORE_PASSWORD = "store-secret"


def signed_ipn(**fields):
    """An IPN form signed with the test store password."""
    form = {"tran_id": "TXN_1", "val_id": "VAL_1", "amount": "100.00", "status": "VALID", **fields}
    keys = sorted(form)
    form["verify_key"] = ",".join(keys)
    signed = "&".join(f"{key}={form[key]}" for key in keys)
    password_hash = hashlib.md5(STORE_PASSWORD.encode()).hexdigest()
    form["verify_sign"] = hashlib.md5(f"{signed}&store_passwd={password_hash}".encode()).hexdigest()
    return form


def response(payload, status_code=200):
    resp = MagicMock()
    resp.json.return_value = payload
    if status_code >= 400:
        resp.raise_for_status.side_effect = requests.HTTPError(f"{status_code} error")
    return resp


@pytest.fixture()
def session():
    return MagicMock()


@pytest.fixture()
def gateway(session):
    return SSLCommerzGateway("store", STORE_PASSWORD, urls={"ipn_url": "https://shop/ipn"}, session=session)


class TestInitiate:
    def test_opens_hosted_session(self, gateway, session):
        session.request.return_value = response(
            {"status": "SUCCESS", "GatewayPageURL": "https://sandbox/pay", "sessionkey": "SK1"}
        )

        result = gateway.initiate(
            PaymentRequest(
                order_id="order-1",
                user_id="user-1",
                amount=94.51,
                currency="BDT",
                customer={"name": "Asha Rao", "email": "asha@example.com", "phone": "+8801"},
                shipping={"address_line1": "12 Road", "city": "Dhaka", "postal_code": "1207", "country": "BD"},
            )
        )

        assert result.gateway_url == "https://sandbox/pay"
        assert result.session_key == "SK1"
        assert result.transaction_id.startswith("TXN_ORDER1_")

        method, url = session.request.call_args.args
        data = session.request.call_args.kwargs["data"]
        assert (method, url) == ("POST", f"{SANDBOX_URL}{INIT_PATH}")
        assert data["total_amount"] == "94.51"
        assert data["value_a"] == "order-1"
        assert data["ipn_url"] == "https://shop/ipn"
        assert session.request.call_args.kwargs["timeout"] == 30

    def test_rejected_session(self, gateway, session):
        session.request.return_value = response({"status": "FAILED", "failedreason": "Store inactive"})
        with pytest.raises(PaymentError, match="Failed to initialize payment gateway"):
            gateway.initiate(PaymentRequest(order_id="o", user_id="u", amount=1.0, currency="BDT"))

    def test_timeout_is_an_external_failure(self, gateway, session):
        session.request.side_effect = requests.Timeout("slow")
        with pytest.raises(ExternalServiceError):
            gateway.initiate(PaymentRequest(order_id="o", user_id="u", amount=1.0, currency="BDT"))


class TestIPN:
    def test_valid_ipn_is_validated_and_captured(self, gateway, session):
        session.request.return_value = response({"status": "VALID", "amount": "100.00", "bank_tran_id": "BANK_1"})

        event = gateway.reconcile_webhook_event(signed_ipn(value_a="order-1", card_type="BKASH-BKash"))

        assert event.kind == EventKind.CAPTURED
        assert event.order_id == "order-1"
        assert event.amount == 100.0
        assert event.bank_transaction_id == "BANK_1"
        assert event.method == "wallet"
        assert event.event_id == "sslcommerz:TXN_1:captured"
        assert session.request.call_args.kwargs["params"]["val_id"] == "VAL_1"

    def test_signed_ipn_rejected_by_validator(self, gateway, session):
        session.request.return_value = response({"status": "INVALID_TRANSACTION", "amount": "100.00"})

        with pytest.raises(PaymentError, match="Payment validation failed"):
            gateway.reconcile_webhook_event(signed_ipn(value_a="order-1"))

    def test_failed_ipn(self, gateway, session):
        event = gateway.reconcile_webhook_event(signed_ipn(status="FAILED", risk_title="Risky card"))
        assert event.kind == EventKind.FAILED
        assert event.reason == "Payment failed: Risky card"
        session.request.assert_not_called()

    def test_cancelled_ipn(self, gateway):
        event = gateway.reconcile_webhook_event(signed_ipn(status="CANCELLED"))
        assert event.kind == EventKind.FAILED
        assert event.reason == "Payment was cancelled by customer"

    def test_unknown_status_is_ignored(self, gateway):
        assert gateway.reconcile_webhook_event(signed_ipn(status="UNATTEMPTED")).kind == EventKind.IGNORED

    def test_tampered_ipn_is_refused(self, gateway, session):
        form = signed_ipn()
        form["amount"] = "1.00"
        with pytest.raises(BadRequest, match="Invalid IPN signature"):
            gateway.reconcile_webhook_event(form)
        session.request.assert_not_called()


class TestRefund:
    def test_refund_by_bank_transaction(self, gateway, session):
        session.request.return_value = response({"status": "success", "refund_ref_id": "RR_1"})
        result = gateway.refund("order-1", SimpleNamespace(bank_transaction_id="BANK_1"), 40.0)

        assert result.refund_id == "RR_1"
        params = session.request.call_args.kwargs["params"]
        assert params["bank_tran_id"] == "BANK_1"
        assert params["refund_amount"] == "40.00"

    def test_rejected_refund(self, gateway, session):
        session.request.return_value = response({"status": "failed", "errorReason": "Already refunded"})
        with pytest.raises(PaymentError, match="Already refunded"):
            gateway.refund("order-1", SimpleNamespace(bank_transaction_id="BANK_1"), 40.0)

    def test_http_error(self, gateway, session):
        session.request.return_value = response({}, status_code=500)
        with pytest.raises(PaymentError):
            gateway.refund("order-1", SimpleNamespace(bank_transaction_id="BANK_1"), 40.0)

    def test_refund_needs_bank_transaction(self, gateway):
        with pytest.raises(BadRequest):
            gateway.refund("order-1", SimpleNamespace(bank_transaction_id=None), 40.0)
