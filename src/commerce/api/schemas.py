"""Pydantic request/response schemas for the commerce API."""

from __future__ import annotations

from pydantic import BaseModel, Field

# --- Shared ---


class AddressSchema(BaseModel):
    first_name: str = Field(..., max_length=100)
    last_name: str = Field(..., max_length=100)
    company: str | None = Field(None, max_length=255)
    address_line1: str = Field(..., max_length=255)
    address_line2: str | None = Field(None, max_length=255)
    city: str = Field(..., max_length=100)
    state: str = Field(..., max_length=100)
    postal_code: str = Field(..., max_length=20)
    country: str = Field("IN", min_length=2, max_length=2)
    phone: str = Field(..., max_length=20)
    email: str | None = Field(None, max_length=255)


class StatusResponse(BaseModel):
    status: str = "ok"


# --- Orders ---


class PlaceOrderRequest(BaseModel):
    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "shipping_address": {
                        "first_name": "Asha",
                        "last_name": "Rao",
                        "address_line1": "12 MG Road",
                        "city": "Bengaluru",
                        "state": "KA",
                        "postal_code": "560001",
                        "country": "IN",
                        "phone": "+919800000000",
                    },
                    "payment_method": "card",
                }
            ]
        }
    }

    shipping_address: AddressSchema
    billing_address: AddressSchema | None = None
    payment_method: str = Field(..., pattern="^(card|upi|netbanking|wallet|cod)$")
    notes: str | None = Field(None, max_length=1000)


class UpdateOrderStatusRequest(BaseModel):
    status: str = Field(
        ...,
        pattern="^(pending|confirmed|processing|shipped|out_for_delivery|delivered|cancelled|refunded|returned|failed)$",
    )
    message: str | None = Field(None, max_length=1000)


class CancelOrderRequest(BaseModel):
    reason: str = Field(..., min_length=10, max_length=500)


class AddTrackingRequest(BaseModel):
    tracking_number: str = Field(..., min_length=1, max_length=100)
    carrier: str | None = Field(None, max_length=100)


class RecordDeliveryRequest(BaseModel):
    item_ids: list[str] = Field(default_factory=list)


# --- Payments ---


class CreateIntentRequest(BaseModel):
    order_id: str
    currency: str | None = Field(None, min_length=3, max_length=3)
    metadata: dict[str, str] = Field(default_factory=dict)


class ConfirmPaymentRequest(BaseModel):
    payment_intent_id: str


class SSLCommerzInitRequest(BaseModel):
    order_id: str
    customer_name: str = Field(..., max_length=255)
    customer_email: str = Field(..., max_length=255)
    customer_phone: str = Field(..., max_length=20)
    customer_address: str | None = None
    customer_city: str | None = None
    customer_postcode: str | None = None
    customer_country: str | None = None
    shipping_method: str | None = None
    product_category: str | None = None


class RefundRequest(BaseModel):
    amount: float | None = Field(None, gt=0)
    reason: str | None = Field(None, max_length=500)


class PaymentSessionResponse(BaseModel):
    order_id: str
    provider: str
    amount: float
    currency: str
    client_secret: str | None = None
    payment_intent_id: str | None = None
    transaction_id: str | None = None
    gateway_url: str | None = None
    session_key: str | None = None


class WebhookResponse(BaseModel):
    received: bool
    event: str


# --- Cart ---


class AddCartItemRequest(BaseModel):
    product_id: str
    variant_id: str | None = None
    quantity: int = Field(..., ge=1, le=100)


class UpdateCartItemRequest(BaseModel):
    quantity: int = Field(..., ge=1, le=100)


class ApplyDiscountRequest(BaseModel):
    code: str = Field(..., min_length=1, max_length=50)
    amount: float = Field(..., ge=0)


class SetShippingRequest(BaseModel):
    amount: float = Field(..., ge=0)


class MergeCartRequest(BaseModel):
    session_id: str = Field(..., min_length=1, max_length=255)


# --- Inventory ---


class RegisterProductRequest(BaseModel):
    sku: str = Field(..., max_length=50)
    name: str = Field(..., max_length=255)
    base_price: float = Field(..., ge=0)
    seller_id: str | None = None
    stock: int = Field(0, ge=0)
    status: str = Field("active", pattern="^(draft|active|inactive|archived)$")
    currency: str = Field("INR", min_length=3, max_length=3)
    low_stock_threshold: int = Field(5, ge=0)
    compare_at_price: float | None = Field(None, ge=0)
    image: str | None = None
    variants: list[dict] = Field(default_factory=list)


class ReceiveStockRequest(BaseModel):
    variant_id: str | None = None
    quantity: int = Field(..., ge=1)
    reference: str | None = Field(None, max_length=255)
    notes: str | None = None


class AdjustStockRequest(BaseModel):
    variant_id: str | None = None
    quantity: int  # Signed; must not be zero
    notes: str | None = None


class WriteOffStockRequest(BaseModel):
    variant_id: str | None = None
    quantity: int = Field(..., ge=1)
    movement_type: str = Field("damage", pattern="^(damage|expired)$")
    notes: str | None = None


class ProductIdResponse(BaseModel):
    product_id: str


class StockLevelResponse(BaseModel):
    product_id: str
    new_stock: int
