"""Stock corrections and write-offs — commands and handler."""

from protean import handle
from protean.fields import Identifier, Integer, String, Text

from commerce.domain import commerce
from commerce.inventory.ledger import InventoryLedger
from commerce.inventory.movement import MovementType
from commerce.inventory.product import Product


@commerce.command(part_of="Product")
class AdjustStock:
    """Correct stock after a physical count. Quantity is signed."""

    product_id = Identifier(required=True)
    variant_id = Identifier()
    quantity = Integer(required=True)
    adjusted_by = String(required=True, max_length=255)
    notes = Text()


@commerce.command(part_of="Product")
class WriteOffStock:
    """Remove damaged or expired units from sellable stock."""

    product_id = Identifier(required=True)
    variant_id = Identifier()
    quantity = Integer(required=True, min_value=1)
    movement_type = String(choices=MovementType, default=MovementType.DAMAGE.value)
    written_off_by = String(required=True, max_length=255)
    notes = Text()


@commerce.command_handler(part_of=Product)
class StockCorrectionHandler:
    @handle(AdjustStock)
    def adjust_stock(self, command):
        return InventoryLedger().adjust(
            command.product_id,
            command.variant_id,
            command.quantity,
            command.adjusted_by,
            notes=command.notes,
        )

    @handle(WriteOffStock)
    def write_off_stock(self, command):
        return InventoryLedger().write_off(
            command.product_id,
            command.variant_id,
            command.quantity,
            command.written_off_by,
            movement_type=command.movement_type or MovementType.DAMAGE.value,
            notes=command.notes,
        )
