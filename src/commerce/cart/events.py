"""Domain events for the Cart aggregate."""

from protean.fields import DateTime, Float, Identifier, Integer, String

from commerce.domain import commerce


@commerce.event(part_of="Cart")
class CartItemAdded:
    __version__ = 1

    cart_id = Identifier(required=True)
    item_id = Identifier(required=True)
    product_id = Identifier(required=True)
    variant_id = Identifier()
    quantity = Integer(required=True)
    price = Float(required=True)


@commerce.event(part_of="Cart")
class CartItemRemoved:
    __version__ = 1

    cart_id = Identifier(required=True)
    item_id = Identifier(required=True)


@commerce.event(part_of="Cart")
class CartDiscountApplied:
    __version__ = 1

    cart_id = Identifier(required=True)
    discount_code = String(required=True)
    discount = Float(required=True)


@commerce.event(part_of="Cart")
class CartsMerged:
    """A guest cart's items were folded into an authenticated customer's cart."""

    __version__ = 1

    cart_id = Identifier(required=True)
    source_session_id = String()
    items_merged_count = Integer(required=True)


@commerce.event(part_of="Cart")
class CartCleared:
    __version__ = 1

    cart_id = Identifier(required=True)
    cleared_at = DateTime(required=True)
