"""Stock receiving — command and handler."""

from protean import handle
from protean.fields import Identifier, Integer, String, Text

from commerce.domain import commerce
from commerce.inventory.ledger import InventoryLedger
from commerce.inventory.product import Product


@commerce.command(part_of="Product")
class ReceiveStock:
    """Record stock arriving from a supplier."""

    product_id = Identifier(required=True)
    variant_id = Identifier()
    quantity = Integer(required=True, min_value=1)
    received_by = String(required=True, max_length=255)
    reference = String(max_length=255)  # Purchase order / receiving document
    notes = Text()


@commerce.command_handler(part_of=Product)
class ReceiveStockHandler:
    @handle(ReceiveStock)
    def receive_stock(self, command):
        return InventoryLedger().receive(
            command.product_id,
            command.variant_id,
            command.quantity,
            command.received_by,
            notes=command.notes,
            reference_id=command.reference,
        )
