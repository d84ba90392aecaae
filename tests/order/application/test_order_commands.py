"""Application tests for order placement, cancellation, status updates and shipping."""

import pytest
from protean import current_domain

from commerce.cart.items import cart_for
from commerce.cart.management import ApplyCartDiscount
from commerce.errors import BadRequest, Forbidden, InsufficientStock
from commerce.inventory.movement import InventoryMovement
from commerce.inventory.product import Product
from commerce.order.cancellation import CancelOrder
from commerce.order.creation import CASH_PROVIDER, PlaceOrder
from commerce.order.order import Order, OrderStatus
from commerce.order.status import UpdateOrderStatus
from commerce.order.tracking import AddTracking, RecordDelivery


def _stock(product_id):
    return current_domain.repository_for(Product).get(product_id).total_stock


def _order(order_id):
    return current_domain.repository_for(Order).get(order_id)


class TestPlaceOrder:
    def test_order_copies_cart_and_debits_stock(self, make_product, fill_cart, shipping_address):
        mug = make_product(stock=10, base_price=100.005, compare_at_price=120.0)
        fill_cart("user-1", [(mug, 1)], tax_rate=0.05)
        current_domain.process(ApplyCartDiscount(user_id="user-1", code="SAVE10", amount=10), asynchronous=False)

        order_id = current_domain.process(
            PlaceOrder(user_id="user-1", shipping_address=shipping_address, payment_method="card"),
            asynchronous=False,
        )

        order = _order(order_id)
        assert order.status == OrderStatus.PENDING.value
        assert order.subtotal == 100.01
        assert order.discount == 10.0
        assert order.discount_code == "SAVE10"
        assert order.tax == 4.5
        assert order.total == 94.51
        assert order.items[0].compare_at_price == 120.0
        assert order.payment.provider == "stripe"

        assert _stock(mug) == 9
        assert cart_for(user_id="user-1").items == []

        [movement] = current_domain.repository_for(InventoryMovement).for_reference(order_id)
        assert movement.movement_type == "sale"
        assert movement.reference_type == "order"

    def test_empty_cart_is_refused(self, shipping_address):
        with pytest.raises(BadRequest, match="Cart is empty"):
            current_domain.process(
                PlaceOrder(user_id="user-1", shipping_address=shipping_address, payment_method="card"),
                asynchronous=False,
            )

    def test_short_line_refuses_the_whole_order(self, make_product, fill_cart, shipping_address):
        plenty = make_product(stock=10)
        scarce = make_product(stock=2)
        fill_cart("user-1", [(plenty, 3), (scarce, 2)])

        # Stock sold elsewhere after the cart was filled
        from commerce.inventory.ledger import InventoryLedger

        InventoryLedger().debit(scarce, None, 1, "other-user", "Order placed")

        with pytest.raises(InsufficientStock):
            current_domain.process(
                PlaceOrder(user_id="user-1", shipping_address=shipping_address, payment_method="card"),
                asynchronous=False,
            )

        assert _stock(plenty) == 10
        assert _stock(scarce) == 1
        assert cart_for(user_id="user-1").item_count == 5
        assert current_domain.repository_for(Order)._dao.query.all().items == []

    def test_unavailable_product_is_refused(self, make_product, fill_cart, shipping_address):
        product_id = make_product()
        fill_cart("user-1", [(product_id, 1)])

        product = current_domain.repository_for(Product).get(product_id)
        product.status = "inactive"
        current_domain.repository_for(Product).add(product)

        with pytest.raises(BadRequest, match="no longer available"):
            current_domain.process(
                PlaceOrder(user_id="user-1", shipping_address=shipping_address, payment_method="card"),
                asynchronous=False,
            )

    def test_cash_on_delivery_uses_cash_provider(self, place_order):
        order_id = place_order(payment_method="cod")
        assert _order(order_id).payment.provider == CASH_PROVIDER


class TestCancelOrder:
    @pytest.mark.parametrize("quantity", [2, 3])
    def test_cancel_restores_stock(self, make_product, place_order, quantity):
        product_id = make_product(stock=10)
        order_id = place_order(lines=[(product_id, quantity)])
        assert _stock(product_id) == 10 - quantity

        current_domain.process(
            CancelOrder(order_id=order_id, reason="Ordered by mistake", user_id="user-1"),
            asynchronous=False,
        )

        assert _stock(product_id) == 10
        assert _order(order_id).status == OrderStatus.CANCELLED.value
        movements = current_domain.repository_for(InventoryMovement).for_reference(order_id)
        assert [m.movement_type for m in movements] == ["sale", "return"]

    def test_other_customers_cannot_cancel(self, place_order):
        order_id = place_order()
        with pytest.raises(Forbidden):
            current_domain.process(
                CancelOrder(order_id=order_id, reason="Not mine at all", user_id="user-2", role="customer"),
                asynchronous=False,
            )

    def test_admin_can_cancel(self, place_order):
        order_id = place_order()
        current_domain.process(
            CancelOrder(order_id=order_id, reason="Fraud suspected", user_id="admin-1", role="admin"),
            asynchronous=False,
        )
        assert _order(order_id).status == OrderStatus.CANCELLED.value

    def test_shipped_order_cannot_be_cancelled(self, place_order):
        order_id = place_order()
        order = _order(order_id)
        order.status = OrderStatus.SHIPPED.value
        current_domain.repository_for(Order).add(order)

        with pytest.raises(BadRequest):
            current_domain.process(
                CancelOrder(order_id=order_id, reason="Too late now", user_id="user-1"),
                asynchronous=False,
            )


class TestUpdateOrderStatus:
    def _update(self, order_id, status, user_id="seller-1", role="seller", message=None):
        current_domain.process(
            UpdateOrderStatus(order_id=order_id, status=status, message=message, user_id=user_id, role=role),
            asynchronous=False,
        )

    def test_seller_moves_order_forward(self, place_order):
        order_id = place_order()
        self._update(order_id, "confirmed")
        self._update(order_id, "processing", message="Packing")

        order = _order(order_id)
        assert order.status == "processing"
        assert order.history[-1].message == "Packing"
        assert order.history[-1].actor == "seller-1"

    def test_invalid_transition(self, place_order):
        order_id = place_order()
        with pytest.raises(BadRequest):
            self._update(order_id, "delivered")

    def test_unrelated_seller_is_refused(self, place_order):
        order_id = place_order()
        with pytest.raises(Forbidden):
            self._update(order_id, "confirmed", user_id="seller-9")

    def test_customer_is_refused(self, place_order):
        order_id = place_order()
        with pytest.raises(Forbidden):
            self._update(order_id, "confirmed", user_id="user-1", role="customer")

    def test_cancelling_through_status_restocks(self, make_product, place_order):
        product_id = make_product(stock=5)
        order_id = place_order(lines=[(product_id, 2)])
        self._update(order_id, "confirmed", role="admin", user_id="admin-1")
        self._update(order_id, "processing", role="admin", user_id="admin-1")
        self._update(order_id, "cancelled", role="admin", user_id="admin-1", message="Warehouse damage")

        assert _stock(product_id) == 5
        assert _order(order_id).cancel_reason == "Warehouse damage"


class TestShipments:
    def _processing(self, place_order, make_product):
        first = make_product()
        second = make_product()
        order_id = place_order(lines=[(first, 1), (second, 1)])
        for status in ("confirmed", "processing"):
            current_domain.process(
                UpdateOrderStatus(order_id=order_id, status=status, user_id="admin-1", role="admin"),
                asynchronous=False,
            )
        return order_id

    def test_tracking_then_delivery(self, place_order, make_product):
        order_id = self._processing(place_order, make_product)
        for item in _order(order_id).items:
            current_domain.process(
                AddTracking(
                    order_id=order_id,
                    item_id=item.id,
                    tracking_number=f"TRK-{item.sku}",
                    carrier="Delhivery",
                    user_id="seller-1",
                    role="seller",
                ),
                asynchronous=False,
            )
        assert _order(order_id).status == "shipped"

        current_domain.process(
            RecordDelivery(order_id=order_id, item_ids=[], user_id="seller-1", role="seller"),
            asynchronous=False,
        )
        order = _order(order_id)
        assert order.status == "delivered"
        assert all(i.status == "delivered" for i in order.items)

    def test_customer_cannot_add_tracking(self, place_order, make_product):
        order_id = self._processing(place_order, make_product)
        item = _order(order_id).items[0]
        with pytest.raises(Forbidden):
            current_domain.process(
                AddTracking(order_id=order_id, item_id=item.id, tracking_number="X", user_id="user-1", role="customer"),
                asynchronous=False,
            )
