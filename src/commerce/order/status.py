"""Order status updates by sellers and administrators."""

import structlog
from protean import handle
from protean.fields import Identifier, String, Text
from protean.utils.globals import current_domain

from commerce.domain import commerce
from commerce.order.access import ensure_can_fulfil
from commerce.order.cancellation import restock
from commerce.order.order import Order, OrderStatus
from commerce.order.repository import load_order

logger = structlog.get_logger(__name__)


@commerce.command(part_of="Order")
class UpdateOrderStatus:
    order_id = Identifier(required=True)
    status = String(choices=OrderStatus, required=True)
    message = Text()  # Doubles as the reason when cancelling
    user_id = Identifier()
    role = String(max_length=50)


@commerce.command_handler(part_of=Order)
class UpdateOrderStatusHandler:
    @handle(UpdateOrderStatus)
    def update_status(self, command):
        order = load_order(command.order_id)
        ensure_can_fulfil(order.seller_ids, command.user_id, command.role)

        actor = str(command.user_id) if command.user_id else None
        previous = order.status
        target = OrderStatus(command.status)
        order.transition_to(target, message=command.message, actor=actor)
        if target == OrderStatus.CANCELLED:
            restock(order, actor_id=actor)
        current_domain.repository_for(Order).add(order)

        logger.info(
            "Order status updated",
            order_id=str(order.id),
            previous_status=previous,
            new_status=order.status,
            actor=actor,
        )
        return str(order.id)
