"""FastAPI endpoints for orders."""

from datetime import datetime

from fastapi import APIRouter, Depends, Query

from commerce.api.dependencies import Caller, get_caller, get_services
from commerce.api.schemas import (
    AddTrackingRequest,
    CancelOrderRequest,
    PlaceOrderRequest,
    RecordDeliveryRequest,
    UpdateOrderStatusRequest,
)

order_router = APIRouter(prefix="/orders", tags=["orders"])


@order_router.post("", status_code=201)
async def place_order(
    body: PlaceOrderRequest,
    caller: Caller = Depends(get_caller),
    services=Depends(get_services),
) -> dict:
    """Create an order from the caller's cart."""
    return services.orders.place_order(
        user_id=caller.user_id,
        shipping_address=body.shipping_address.model_dump(),
        billing_address=body.billing_address.model_dump() if body.billing_address else None,
        payment_method=body.payment_method,
        notes=body.notes,
        tenant_id=caller.tenant_id,
    )


@order_router.get("/my-orders")
async def my_orders(
    status: str | None = None,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    caller: Caller = Depends(get_caller),
    services=Depends(get_services),
) -> dict:
    return services.orders.my_orders(caller.user_id, caller.tenant_id, status=status, page=page, limit=limit)


@order_router.get("/seller-orders")
async def seller_orders(
    status: str | None = None,
    payment_status: str | None = None,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    caller: Caller = Depends(get_caller),
    services=Depends(get_services),
) -> dict:
    return services.orders.seller_orders(
        caller.user_id,
        caller.role,
        caller.tenant_id,
        status=status,
        payment_status=payment_status,
        page=page,
        limit=limit,
    )


@order_router.get("/statistics")
async def order_statistics(
    seller_id: str | None = None,
    start_date: datetime | None = None,
    end_date: datetime | None = None,
    caller: Caller = Depends(get_caller),
    services=Depends(get_services),
) -> dict:
    return services.orders.statistics(
        caller.role,
        caller.tenant_id,
        seller_id=seller_id,
        start=start_date,
        end=end_date,
    )


@order_router.get("")
async def list_orders(
    status: str | None = None,
    payment_status: str | None = None,
    user_id: str | None = None,
    seller_id: str | None = None,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    caller: Caller = Depends(get_caller),
    services=Depends(get_services),
) -> dict:
    return services.orders.list_orders(
        caller.role,
        caller.tenant_id,
        status=status,
        payment_status=payment_status,
        user_id=user_id,
        seller_id=seller_id,
        page=page,
        limit=limit,
    )


@order_router.get("/{order_id}")
async def get_order(order_id: str, caller: Caller = Depends(get_caller), services=Depends(get_services)) -> dict:
    return services.orders.get_order(order_id, user_id=caller.user_id, role=caller.role)


@order_router.patch("/{order_id}/status")
async def update_order_status(
    order_id: str,
    body: UpdateOrderStatusRequest,
    caller: Caller = Depends(get_caller),
    services=Depends(get_services),
) -> dict:
    return services.orders.update_status(
        order_id, body.status, message=body.message, user_id=caller.user_id, role=caller.role
    )


@order_router.post("/{order_id}/cancel")
async def cancel_order(
    order_id: str,
    body: CancelOrderRequest,
    caller: Caller = Depends(get_caller),
    services=Depends(get_services),
) -> dict:
    return services.orders.cancel(order_id, body.reason, user_id=caller.user_id, role=caller.role)


@order_router.post("/{order_id}/items/{item_id}/tracking")
async def add_tracking(
    order_id: str,
    item_id: str,
    body: AddTrackingRequest,
    caller: Caller = Depends(get_caller),
    services=Depends(get_services),
) -> dict:
    return services.orders.add_tracking(
        order_id,
        item_id,
        body.tracking_number,
        carrier=body.carrier,
        user_id=caller.user_id,
        role=caller.role,
    )


@order_router.post("/{order_id}/delivered")
async def record_delivery(
    order_id: str,
    body: RecordDeliveryRequest | None = None,
    caller: Caller = Depends(get_caller),
    services=Depends(get_services),
) -> dict:
    return services.orders.record_delivery(
        order_id,
        item_ids=body.item_ids if body else None,
        user_id=caller.user_id,
        role=caller.role,
    )
