"""Shipment tracking and delivery confirmation."""

from protean import handle
from protean.fields import Identifier, List, String
from protean.utils.globals import current_domain

from commerce.domain import commerce
from commerce.order.access import ensure_can_fulfil
from commerce.order.order import Order
from commerce.order.repository import load_order


@commerce.command(part_of="Order")
class AddTracking:
    order_id = Identifier(required=True)
    item_id = Identifier(required=True)
    tracking_number = String(required=True, max_length=100)
    carrier = String(max_length=100)
    user_id = Identifier()
    role = String(max_length=50)


@commerce.command(part_of="Order")
class RecordDelivery:
    order_id = Identifier(required=True)
    item_ids = List(content_type=String)  # Empty means every item
    user_id = Identifier()
    role = String(max_length=50)


@commerce.command_handler(part_of=Order)
class ShipmentHandler:
    @handle(AddTracking)
    def add_tracking(self, command):
        order = load_order(command.order_id)
        ensure_can_fulfil(order.seller_ids, command.user_id, command.role)

        order.add_tracking(
            command.item_id,
            command.tracking_number,
            carrier=command.carrier,
            actor=str(command.user_id) if command.user_id else None,
        )
        current_domain.repository_for(Order).add(order)
        return str(order.id)

    @handle(RecordDelivery)
    def record_delivery(self, command):
        order = load_order(command.order_id)
        ensure_can_fulfil(order.seller_ids, command.user_id, command.role)

        order.record_delivery(
            item_ids=command.item_ids or None,
            actor=str(command.user_id) if command.user_id else None,
        )
        current_domain.repository_for(Order).add(order)
        return str(order.id)
