"""FastAPI endpoints for payments.

Gateway callbacks (the card webhook, the SSLCommerz IPN and redirects) are
public; their authenticity comes from the gateway signature or from
server-side validation, never from identity headers.

Every service call here may reach a payment gateway over the network, so it
goes through ``run_blocking``.
"""

from fastapi import APIRouter, Depends, Header, Request

from commerce.api.dependencies import Caller, get_caller, get_services, run_blocking
from commerce.api.schemas import (
    ConfirmPaymentRequest,
    CreateIntentRequest,
    PaymentSessionResponse,
    RefundRequest,
    SSLCommerzInitRequest,
    WebhookResponse,
)

payment_router = APIRouter(prefix="/payments", tags=["payments"])


async def _form(request: Request) -> dict:
    form = await request.form()
    return {key: value for key, value in form.items()}


@payment_router.post("/create-intent", status_code=201, response_model=PaymentSessionResponse)
async def create_intent(
    body: CreateIntentRequest,
    caller: Caller = Depends(get_caller),
    services=Depends(get_services),
) -> PaymentSessionResponse:
    session = await run_blocking(
        services.payments.create_intent,
        body.order_id,
        user_id=caller.user_id,
        role=caller.role,
        currency=body.currency,
        metadata=body.metadata,
    )
    return PaymentSessionResponse(**session)


@payment_router.post("/confirm")
async def confirm_payment(
    body: ConfirmPaymentRequest,
    caller: Caller = Depends(get_caller),
    services=Depends(get_services),
) -> dict:
    return await run_blocking(
        services.payments.confirm_card_payment, body.payment_intent_id, user_id=caller.user_id, role=caller.role
    )


@payment_router.post("/webhook", response_model=WebhookResponse)
async def card_webhook(
    request: Request,
    stripe_signature: str | None = Header(default=None),
    services=Depends(get_services),
) -> WebhookResponse:
    """Signed card gateway webhook. The raw body is verified before parsing."""
    payload = await request.body()
    result = await run_blocking(services.payments.handle_card_webhook, payload, stripe_signature)
    return WebhookResponse(**result)


@payment_router.post("/sslcommerz/init", status_code=201, response_model=PaymentSessionResponse)
async def sslcommerz_init(
    body: SSLCommerzInitRequest,
    caller: Caller = Depends(get_caller),
    services=Depends(get_services),
) -> PaymentSessionResponse:
    customer = {
        "name": body.customer_name,
        "email": body.customer_email,
        "phone": body.customer_phone,
        "address": body.customer_address,
        "city": body.customer_city,
        "postcode": body.customer_postcode,
        "country": body.customer_country,
        "shipping_method": body.shipping_method,
        "product_category": body.product_category,
    }
    session = await run_blocking(
        services.payments.init_regional,
        body.order_id,
        user_id=caller.user_id,
        role=caller.role,
        customer={key: value for key, value in customer.items() if value},
    )
    return PaymentSessionResponse(**session)


@payment_router.post("/sslcommerz/ipn")
async def sslcommerz_ipn(request: Request, services=Depends(get_services)) -> dict:
    order = await run_blocking(services.payments.handle_ipn, await _form(request))
    return {"status": "ok", "order_id": order["id"], "payment_status": order["payment_status"]}


@payment_router.post("/sslcommerz/success")
async def sslcommerz_success(request: Request, services=Depends(get_services)) -> dict:
    form = await _form(request)
    order = await run_blocking(services.payments.sslcommerz_success, form.get("tran_id"), form.get("val_id"))
    return {"status": "success", "order_id": order["id"], "payment_status": order["payment_status"]}


@payment_router.post("/sslcommerz/fail")
async def sslcommerz_fail(request: Request, services=Depends(get_services)) -> dict:
    form = await _form(request)
    order = await run_blocking(services.payments.sslcommerz_fail, form.get("tran_id"))
    return {"status": "failed", "order_id": order["id"], "payment_status": order["payment_status"]}


@payment_router.post("/sslcommerz/cancel")
async def sslcommerz_cancel(request: Request, services=Depends(get_services)) -> dict:
    form = await _form(request)
    order = await run_blocking(services.payments.sslcommerz_cancel, form.get("tran_id"))
    return {"status": "cancelled", "order_id": order["id"], "payment_status": order["payment_status"]}


@payment_router.post("/{order_id}/refund")
async def refund(
    order_id: str,
    body: RefundRequest | None = None,
    caller: Caller = Depends(get_caller),
    services=Depends(get_services),
) -> dict:
    return await run_blocking(
        services.payments.refund,
        order_id,
        amount=body.amount if body else None,
        reason=body.reason if body else None,
        user_id=caller.user_id,
        role=caller.role,
    )
