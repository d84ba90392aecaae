"""Domain events for stock records and stock alerts."""

from protean.fields import DateTime, Identifier, Integer, String

from commerce.domain import commerce


@commerce.event(part_of="Product")
class ProductRegistered:
    """A sellable product and its variants were registered for stock tracking."""

    __version__ = 1

    product_id = Identifier(required=True)
    sku = String(required=True)
    seller_id = Identifier()
    tenant_id = String(required=True)
    total_stock = Integer(required=True)
    registered_at = DateTime(required=True)


@commerce.event(part_of="Product")
class StockMoved:
    """Stock on a product (or one of its variants) changed."""

    __version__ = 1

    product_id = Identifier(required=True)
    variant_id = Identifier()
    sku = String(required=True)
    movement_type = String(required=True)
    quantity = Integer(required=True)
    previous_stock = Integer(required=True)
    new_stock = Integer(required=True)
    moved_at = DateTime(required=True)


@commerce.event(part_of="StockAlert")
class StockAlertRaised:
    __version__ = 1

    alert_id = Identifier(required=True)
    product_id = Identifier(required=True)
    variant_id = Identifier()
    sku = String(required=True)
    alert_type = String(required=True)
    current_stock = Integer(required=True)
    threshold = Integer(required=True)
    raised_at = DateTime(required=True)


@commerce.event(part_of="StockAlert")
class StockAlertResolved:
    __version__ = 1

    alert_id = Identifier(required=True)
    resolved_by = String(required=True)
    resolved_at = DateTime(required=True)
