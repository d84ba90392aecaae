"""Order creation: turn the caller's cart into a PENDING order.

Every line is checked before any stock moves, then each line is debited
through the inventory ledger. The order, the stock changes, the movements and
the emptied cart all commit in the handler's unit of work, so a failure on
any line leaves stock and cart exactly as they were.
"""

import structlog
from protean import handle
from protean.exceptions import ObjectNotFoundError
from protean.fields import Dict, Identifier, String, Text
from protean.utils.globals import current_domain

from commerce.cart.cart import Cart
from commerce.cart.items import cart_for
from commerce.domain import commerce
from commerce.errors import BadRequest, InsufficientStock
from commerce.inventory.ledger import InventoryLedger
from commerce.inventory.product import Product
from commerce.order.order import Order, PaymentMethod
from commerce.shared.tenancy import DEFAULT_TENANT

logger = structlog.get_logger(__name__)

CASH_PROVIDER = "cash"


@commerce.command(part_of="Order")
class PlaceOrder:
    user_id = Identifier(required=True)
    tenant_id = String(max_length=100, default=DEFAULT_TENANT)
    shipping_address = Dict(required=True)
    billing_address = Dict()
    payment_method = String(choices=PaymentMethod, required=True)
    payment_provider = String(max_length=50, default="stripe")
    notes = Text()


def _check_line(line, products):
    """Return the product for a cart line, or refuse the whole checkout."""
    key = str(line.product_id)
    if key not in products:
        try:
            products[key] = current_domain.repository_for(Product).get(key)
        except ObjectNotFoundError as exc:
            raise BadRequest(f"{line.name} is no longer available") from exc

    product = products[key]
    if not product.is_sellable(line.variant_id):
        raise BadRequest(f"{line.name} is no longer available")

    # Two lines never share a product and variant, so a per-line check is exact.
    available = product.available(line.variant_id)
    if available < line.quantity:
        raise InsufficientStock(available=available, item=line.name)
    return product


@commerce.command_handler(part_of=Order)
class PlaceOrderHandler:
    @handle(PlaceOrder)
    def place_order(self, command):
        tenant_id = command.tenant_id or DEFAULT_TENANT
        cart = cart_for(user_id=command.user_id, tenant_id=tenant_id, create=True)
        if not cart.items:
            raise BadRequest("Cart is empty")

        products = {}
        for line in cart.items:
            _check_line(line, products)

        items_data = [
            {
                "product_id": str(line.product_id),
                "variant_id": str(line.variant_id) if line.variant_id else None,
                "seller_id": str(line.seller_id) if line.seller_id else None,
                "sku": line.sku,
                "name": line.name,
                "image": line.image,
                "price": line.price,
                "compare_at_price": products[str(line.product_id)].compare_at_price,
                "quantity": line.quantity,
            }
            for line in cart.items
        ]

        method = PaymentMethod(command.payment_method)
        provider = CASH_PROVIDER if method == PaymentMethod.COD else command.payment_provider

        order = Order.place(
            user_id=command.user_id,
            items_data=items_data,
            shipping_address=command.shipping_address,
            billing_address=command.billing_address or None,
            pricing=cart.snapshot(),
            payment_method=method.value,
            payment_provider=provider,
            notes=command.notes,
            tenant_id=tenant_id,
        )

        ledger = InventoryLedger()
        for line in cart.items:
            ledger.debit(
                line.product_id,
                line.variant_id,
                line.quantity,
                actor_id=str(command.user_id),
                reason="Order placed",
                reference_id=str(order.id),
            )

        current_domain.repository_for(Order).add(order)

        cart.clear()
        current_domain.repository_for(Cart).add(cart)

        logger.info(
            "Order placed",
            order_id=str(order.id),
            user_id=str(command.user_id),
            total=order.total,
            item_count=len(items_data),
            payment_method=method.value,
        )
        return str(order.id)
