"""Order cancellation — command and handler."""

import structlog
from protean import handle
from protean.fields import Identifier, String
from protean.utils.globals import current_domain

from commerce.domain import commerce
from commerce.inventory.ledger import InventoryLedger
from commerce.order.access import ensure_can_cancel
from commerce.order.order import Order
from commerce.order.repository import load_order

logger = structlog.get_logger(__name__)


@commerce.command(part_of="Order")
class CancelOrder:
    order_id = Identifier(required=True)
    reason = String(required=True, max_length=500)
    user_id = Identifier()
    role = String(max_length=50)


def restock(order, actor_id, reason="Order cancelled"):
    """Credit every line of ``order`` back to inventory."""
    ledger = InventoryLedger()
    for item in order.items:
        ledger.credit(
            item.product_id,
            item.variant_id,
            item.quantity,
            actor_id=actor_id,
            reason=reason,
            reference_id=str(order.id),
        )


@commerce.command_handler(part_of=Order)
class CancelOrderHandler:
    @handle(CancelOrder)
    def cancel_order(self, command):
        order = load_order(command.order_id)
        ensure_can_cancel(order.user_id, command.user_id, command.role)

        actor = str(command.user_id) if command.user_id else None
        order.cancel(command.reason, actor=actor)
        restock(order, actor_id=actor)
        current_domain.repository_for(Order).add(order)

        logger.info("Order cancelled", order_id=str(order.id), reason=command.reason, cancelled_by=actor)
        return str(order.id)
