"""FastAPI endpoints for the shopping cart.

Authenticated callers own their cart through ``X-User-Id``; guests through
``X-Session-Id``.
"""

from fastapi import APIRouter, Depends
from protean.utils.globals import current_domain

from commerce.api.dependencies import Caller, get_caller, get_services
from commerce.api.schemas import (
    AddCartItemRequest,
    ApplyDiscountRequest,
    MergeCartRequest,
    SetShippingRequest,
    UpdateCartItemRequest,
)
from commerce.cart.cart import Cart
from commerce.cart.items import AddCartItem, RemoveCartItem, UpdateCartItem, cart_for
from commerce.cart.management import (
    ApplyCartDiscount,
    ClearCart,
    MergeGuestCart,
    RemoveCartDiscount,
    SetCartShipping,
)
from commerce.errors import Forbidden
from commerce.shared.tenancy import tenant_or_default

cart_router = APIRouter(prefix="/cart", tags=["cart"])


def serialize_cart(cart: Cart) -> dict:
    return {
        "id": str(cart.id),
        "user_id": str(cart.user_id) if cart.user_id else None,
        "session_id": cart.session_id,
        "items": [
            {
                "id": str(item.id),
                "product_id": str(item.product_id),
                "variant_id": str(item.variant_id) if item.variant_id else None,
                "seller_id": str(item.seller_id) if item.seller_id else None,
                "sku": item.sku,
                "name": item.name,
                "image": item.image,
                "price": item.price,
                "quantity": item.quantity,
            }
            for item in cart.items
        ],
        "subtotal": cart.subtotal,
        "discount": cart.discount or 0.0,
        "discount_code": cart.discount_code,
        "tax": cart.tax,
        "shipping": cart.shipping or 0.0,
        "total": cart.total,
        "item_count": cart.item_count,
        "currency": cart.currency,
        "expires_at": cart.expires_at.isoformat() if cart.expires_at else None,
    }


def _owner(caller: Caller) -> dict:
    return {
        "user_id": caller.user_id,
        "session_id": None if caller.user_id else caller.session_id,
        "tenant_id": tenant_or_default(caller.tenant_id),
    }


def _current_cart(caller: Caller, services) -> dict:
    cart = cart_for(
        create=True,
        tax_rate=services.settings.default_tax_rate,
        currency=services.settings.default_currency,
        **_owner(caller),
    )
    return serialize_cart(cart)


@cart_router.get("")
async def get_cart(caller: Caller = Depends(get_caller), services=Depends(get_services)) -> dict:
    """The caller's cart. An empty cart is returned (not stored) when none exists yet."""
    return _current_cart(caller, services)


@cart_router.post("/items", status_code=201)
async def add_item(
    body: AddCartItemRequest,
    caller: Caller = Depends(get_caller),
    services=Depends(get_services),
) -> dict:
    current_domain.process(
        AddCartItem(
            product_id=body.product_id,
            variant_id=body.variant_id,
            quantity=body.quantity,
            tax_rate=services.settings.default_tax_rate,
            currency=services.settings.default_currency,
            **_owner(caller),
        ),
        asynchronous=False,
    )
    return _current_cart(caller, services)


@cart_router.patch("/items/{item_id}")
async def update_item(
    item_id: str,
    body: UpdateCartItemRequest,
    caller: Caller = Depends(get_caller),
    services=Depends(get_services),
) -> dict:
    current_domain.process(
        UpdateCartItem(item_id=item_id, quantity=body.quantity, **_owner(caller)),
        asynchronous=False,
    )
    return _current_cart(caller, services)


@cart_router.delete("/items/{item_id}")
async def remove_item(item_id: str, caller: Caller = Depends(get_caller), services=Depends(get_services)) -> dict:
    current_domain.process(RemoveCartItem(item_id=item_id, **_owner(caller)), asynchronous=False)
    return _current_cart(caller, services)


@cart_router.post("/discount")
async def apply_discount(
    body: ApplyDiscountRequest,
    caller: Caller = Depends(get_caller),
    services=Depends(get_services),
) -> dict:
    current_domain.process(
        ApplyCartDiscount(code=body.code, amount=body.amount, **_owner(caller)),
        asynchronous=False,
    )
    return _current_cart(caller, services)


@cart_router.delete("/discount")
async def remove_discount(caller: Caller = Depends(get_caller), services=Depends(get_services)) -> dict:
    current_domain.process(RemoveCartDiscount(**_owner(caller)), asynchronous=False)
    return _current_cart(caller, services)


@cart_router.post("/shipping")
async def set_shipping(
    body: SetShippingRequest,
    caller: Caller = Depends(get_caller),
    services=Depends(get_services),
) -> dict:
    current_domain.process(SetCartShipping(amount=body.amount, **_owner(caller)), asynchronous=False)
    return _current_cart(caller, services)


@cart_router.post("/merge")
async def merge_guest_cart(
    body: MergeCartRequest,
    caller: Caller = Depends(get_caller),
    services=Depends(get_services),
) -> dict:
    if not caller.user_id:
        raise Forbidden("Access denied")
    current_domain.process(
        MergeGuestCart(
            user_id=caller.user_id,
            session_id=body.session_id,
            tenant_id=tenant_or_default(caller.tenant_id),
        ),
        asynchronous=False,
    )
    return _current_cart(caller, services)


@cart_router.delete("")
async def clear_cart(caller: Caller = Depends(get_caller), services=Depends(get_services)) -> dict:
    current_domain.process(ClearCart(**_owner(caller)), asynchronous=False)
    return _current_cart(caller, services)
