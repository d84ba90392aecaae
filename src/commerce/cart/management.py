"""Cart discounts, shipping, clearing and guest-cart merging — commands and handler."""

import structlog
from protean import handle
from protean.fields import Float, Identifier, String
from protean.utils.globals import current_domain

from commerce.cart.cart import Cart
from commerce.cart.items import cart_for
from commerce.domain import commerce
from commerce.errors import BadRequest
from commerce.shared.tenancy import DEFAULT_TENANT

logger = structlog.get_logger(__name__)


@commerce.command(part_of="Cart")
class ApplyCartDiscount:
    """Apply a discount already validated by the coupon service."""

    user_id = Identifier()
    session_id = String(max_length=255)
    tenant_id = String(max_length=100, default=DEFAULT_TENANT)
    code = String(required=True, max_length=50)
    amount = Float(required=True, min_value=0.0)


@commerce.command(part_of="Cart")
class RemoveCartDiscount:
    user_id = Identifier()
    session_id = String(max_length=255)
    tenant_id = String(max_length=100, default=DEFAULT_TENANT)


@commerce.command(part_of="Cart")
class SetCartShipping:
    user_id = Identifier()
    session_id = String(max_length=255)
    tenant_id = String(max_length=100, default=DEFAULT_TENANT)
    amount = Float(required=True, min_value=0.0)


@commerce.command(part_of="Cart")
class ClearCart:
    user_id = Identifier()
    session_id = String(max_length=255)
    tenant_id = String(max_length=100, default=DEFAULT_TENANT)


@commerce.command(part_of="Cart")
class MergeGuestCart:
    """Fold a guest session's cart into the user's cart after login."""

    user_id = Identifier(required=True)
    session_id = String(required=True, max_length=255)
    tenant_id = String(max_length=100, default=DEFAULT_TENANT)


@commerce.command_handler(part_of=Cart)
class CartManagementHandler:
    @handle(ApplyCartDiscount)
    def apply_discount(self, command):
        cart = cart_for(command.user_id, command.session_id, command.tenant_id or DEFAULT_TENANT)
        cart.apply_discount(command.code, command.amount)
        current_domain.repository_for(Cart).add(cart)
        return str(cart.id)

    @handle(RemoveCartDiscount)
    def remove_discount(self, command):
        cart = cart_for(command.user_id, command.session_id, command.tenant_id or DEFAULT_TENANT)
        cart.remove_discount()
        current_domain.repository_for(Cart).add(cart)
        return str(cart.id)

    @handle(SetCartShipping)
    def set_shipping(self, command):
        cart = cart_for(command.user_id, command.session_id, command.tenant_id or DEFAULT_TENANT)
        cart.set_shipping(command.amount)
        current_domain.repository_for(Cart).add(cart)
        return str(cart.id)

    @handle(ClearCart)
    def clear_cart(self, command):
        cart = cart_for(command.user_id, command.session_id, command.tenant_id or DEFAULT_TENANT)
        cart.clear()
        current_domain.repository_for(Cart).add(cart)
        return str(cart.id)

    @handle(MergeGuestCart)
    def merge_guest_cart(self, command):
        tenant_id = command.tenant_id or DEFAULT_TENANT
        repo = current_domain.repository_for(Cart)

        guest_cart = repo.find_for(session_id=command.session_id, tenant_id=tenant_id)
        if guest_cart is None or not guest_cart.is_guest:
            raise BadRequest("No guest cart found for this session")

        cart = cart_for(
            user_id=command.user_id,
            tenant_id=tenant_id,
            create=True,
            tax_rate=guest_cart.tax_rate,
            currency=guest_cart.currency,
        )
        merged = cart.merge_from(guest_cart)
        repo.add(cart)
        repo._dao.delete(guest_cart)

        logger.info(
            "Guest cart merged",
            cart_id=str(cart.id),
            session_id=command.session_id,
            items_merged=merged,
        )
        return str(cart.id)
