"""Cart item management — commands and handler.

Prices are snapshotted from the product when a line is added. Stock is checked
against the whole quantity the cart would hold, so a cart never asks for more
than is on hand at the time of the mutation.
"""

from protean import handle
from protean.exceptions import ObjectNotFoundError
from protean.fields import Float, Identifier, Integer, String
from protean.utils.globals import current_domain

from commerce.cart.cart import Cart
from commerce.domain import commerce
from commerce.errors import BadRequest, InsufficientStock, NotFound
from commerce.inventory.product import Product
from commerce.shared.tenancy import DEFAULT_TENANT


def cart_for(user_id=None, session_id=None, tenant_id=DEFAULT_TENANT, create=False, tax_rate=0.0, currency="INR"):
    """Load the caller's cart, creating it lazily when asked to."""
    if not user_id and not session_id:
        raise BadRequest("A user or guest session is required")

    repo = current_domain.repository_for(Cart)
    cart = repo.find_for(user_id=user_id, session_id=session_id, tenant_id=tenant_id)
    if cart is None:
        if not create:
            raise NotFound("Cart")
        cart = Cart.create(
            user_id=user_id,
            session_id=session_id,
            tenant_id=tenant_id,
            tax_rate=tax_rate or 0.0,
            currency=currency or "INR",
        )
    return cart


def _sellable_product(product_id, variant_id):
    try:
        product = current_domain.repository_for(Product).get(str(product_id))
    except ObjectNotFoundError as exc:
        raise NotFound("Product") from exc
    if not product.is_sellable(variant_id):
        raise BadRequest(f"{product.name} is not available for purchase")
    return product


@commerce.command(part_of="Cart")
class AddCartItem:
    user_id = Identifier()
    session_id = String(max_length=255)
    tenant_id = String(max_length=100, default=DEFAULT_TENANT)
    product_id = Identifier(required=True)
    variant_id = Identifier()
    quantity = Integer(required=True, min_value=1)
    tax_rate = Float(default=0.0, min_value=0.0)
    currency = String(max_length=3, default="INR")


@commerce.command(part_of="Cart")
class UpdateCartItem:
    user_id = Identifier()
    session_id = String(max_length=255)
    tenant_id = String(max_length=100, default=DEFAULT_TENANT)
    item_id = Identifier(required=True)
    quantity = Integer(required=True, min_value=1)


@commerce.command(part_of="Cart")
class RemoveCartItem:
    user_id = Identifier()
    session_id = String(max_length=255)
    tenant_id = String(max_length=100, default=DEFAULT_TENANT)
    item_id = Identifier(required=True)


@commerce.command_handler(part_of=Cart)
class CartItemsHandler:
    @handle(AddCartItem)
    def add_item(self, command):
        cart = cart_for(
            command.user_id,
            command.session_id,
            command.tenant_id or DEFAULT_TENANT,
            create=True,
            tax_rate=command.tax_rate,
            currency=command.currency,
        )
        product = _sellable_product(command.product_id, command.variant_id)

        wanted = cart.quantity_of(command.product_id, command.variant_id) + command.quantity
        available = product.available(command.variant_id)
        if available < wanted:
            raise InsufficientStock(available=available, item=product.sku_for(command.variant_id))

        variant = product.find_variant(command.variant_id)
        cart.add_item(
            product_id=str(product.id),
            variant_id=str(command.variant_id) if command.variant_id else None,
            seller_id=product.seller_id,
            sku=product.sku_for(command.variant_id),
            name=f"{product.name} - {variant.name}" if variant is not None and variant.name else product.name,
            image=product.image,
            price=product.price_for(command.variant_id),
            quantity=command.quantity,
        )
        current_domain.repository_for(Cart).add(cart)
        return str(cart.id)

    @handle(UpdateCartItem)
    def update_item(self, command):
        cart = cart_for(command.user_id, command.session_id, command.tenant_id or DEFAULT_TENANT)
        item = next((i for i in cart.items if str(i.id) == str(command.item_id)), None)
        if item is None:
            raise NotFound("Cart item")

        product = _sellable_product(item.product_id, item.variant_id)
        available = product.available(item.variant_id)
        if available < command.quantity:
            raise InsufficientStock(available=available, item=item.sku)

        cart.update_item_quantity(command.item_id, command.quantity)
        current_domain.repository_for(Cart).add(cart)
        return str(cart.id)

    @handle(RemoveCartItem)
    def remove_item(self, command):
        cart = cart_for(command.user_id, command.session_id, command.tenant_id or DEFAULT_TENANT)
        cart.remove_item(command.item_id)
        current_domain.repository_for(Cart).add(cart)
        return str(cart.id)
