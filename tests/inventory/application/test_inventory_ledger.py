"""Application tests for the inventory ledger and the stock commands."""

import pytest
from protean import current_domain
from protean.exceptions import InvalidOperationError

from commerce.errors import BadRequest, Conflict, InsufficientStock, NotFound
from commerce.inventory.adjustment import AdjustStock, WriteOffStock
from commerce.inventory.alert import AlertType, StockAlert
from commerce.inventory.alerts import ResolveStockAlert
from commerce.inventory.ledger import InventoryLedger
from commerce.inventory.movement import InventoryMovement, MovementType
from commerce.inventory.product import Product
from commerce.inventory.receiving import ReceiveStock
from commerce.inventory.registration import RegisterProduct


def _stock(product_id):
    return current_domain.repository_for(Product).get(product_id).total_stock


def _movements(product_id):
    return current_domain.repository_for(InventoryMovement).for_product(product_id)


def _open_alerts():
    return current_domain.repository_for(StockAlert).list_for_tenant()


class TestRegisterProduct:
    def test_register_persists_product(self, make_product):
        product_id = make_product(stock=7, sku="MUG-1")
        product = current_domain.repository_for(Product).get(product_id)
        assert product.sku == "MUG-1"
        assert product.total_stock == 7
        assert product.is_active

    def test_duplicate_sku_is_a_conflict(self, make_product):
        make_product(sku="MUG-1")
        with pytest.raises(Conflict):
            current_domain.process(RegisterProduct(sku="MUG-1", name="Mug", base_price=10.0), asynchronous=False)


class TestDebitAndCredit:
    def test_debit_records_a_sale_movement(self, make_product):
        product_id = make_product(stock=10)
        new_stock = InventoryLedger().debit(product_id, None, 3, "user-1", "Order placed", reference_id="order-1")

        assert new_stock == 7
        assert _stock(product_id) == 7
        [movement] = _movements(product_id)
        assert movement.movement_type == MovementType.SALE.value
        assert movement.quantity == 3
        assert (movement.previous_stock, movement.new_stock) == (10, 7)
        assert movement.reference_type == "order"
        assert movement.reference_id == "order-1"
        assert movement.created_by == "user-1"

    def test_debit_beyond_stock_changes_nothing(self, make_product):
        product_id = make_product(stock=2)
        with pytest.raises(InsufficientStock):
            InventoryLedger().debit(product_id, None, 3, "user-1", "Order placed")
        assert _stock(product_id) == 2
        assert _movements(product_id) == []

    def test_credit_has_no_upper_bound(self, make_product):
        product_id = make_product(stock=2)
        InventoryLedger().credit(product_id, None, 50, "user-1", "Order cancelled")
        assert _stock(product_id) == 52

    def test_zero_quantity_is_rejected(self, make_product):
        product_id = make_product(stock=2)
        with pytest.raises(BadRequest):
            InventoryLedger().debit(product_id, None, 0, "user-1", "Order placed")

    def test_unknown_product(self):
        with pytest.raises(NotFound):
            InventoryLedger().debit("missing", None, 1, "user-1", "Order placed")

    def test_two_variants_of_one_product_in_one_ledger(self, make_product):
        product_id = make_product(
            variants=[{"sku": "S", "stock": 3}, {"sku": "M", "stock": 3}],
        )
        product = current_domain.repository_for(Product).get(product_id)
        small, medium = sorted(product.variants, key=lambda v: v.sku, reverse=True)

        ledger = InventoryLedger()
        ledger.debit(product_id, small.id, 1, "user-1", "Order placed")
        ledger.debit(product_id, medium.id, 2, "user-1", "Order placed")

        assert _stock(product_id) == 3


class TestLedgerAccuracy:
    def test_movements_replay_to_current_stock(self, make_product):
        product_id = make_product(stock=10)
        ledger = InventoryLedger()
        ledger.debit(product_id, None, 4, "u", "sale")
        ledger.receive(product_id, None, 6, "u")
        ledger.adjust(product_id, None, -3, "u")
        ledger.write_off(product_id, None, 2, "u")
        ledger.credit(product_id, None, 1, "u", "return")

        movements = _movements(product_id)
        assert len(movements) == 5
        for earlier, later in zip(movements, movements[1:]):
            assert later.previous_stock == earlier.new_stock
        assert movements[-1].new_stock == _stock(product_id) == 8

    def test_recorded_movement_cannot_be_rewritten(self, make_product):
        product_id = make_product(stock=10)
        InventoryLedger().debit(product_id, None, 1, "u", "sale")
        [movement] = _movements(product_id)

        movement.notes = "tampered"
        with pytest.raises(InvalidOperationError):
            current_domain.repository_for(InventoryMovement).add(movement)


class TestStockCommands:
    def test_receive_stock(self, make_product):
        product_id = make_product(stock=1)
        new_stock = current_domain.process(
            ReceiveStock(product_id=product_id, quantity=9, received_by="staff-1", reference="PO-77"),
            asynchronous=False,
        )
        assert new_stock == 10
        [movement] = _movements(product_id)
        assert movement.movement_type == "purchase"
        assert movement.reference_id == "PO-77"

    def test_adjust_stock_clamps_at_zero(self, make_product):
        product_id = make_product(stock=3)
        new_stock = current_domain.process(
            AdjustStock(product_id=product_id, quantity=-10, adjusted_by="staff-1", notes="Recount"),
            asynchronous=False,
        )
        assert new_stock == 0

    def test_zero_adjustment_is_rejected(self, make_product):
        product_id = make_product(stock=3)
        with pytest.raises(BadRequest):
            current_domain.process(
                AdjustStock(product_id=product_id, quantity=0, adjusted_by="staff-1"),
                asynchronous=False,
            )

    def test_write_off_expired(self, make_product):
        product_id = make_product(stock=10)
        current_domain.process(
            WriteOffStock(product_id=product_id, quantity=2, movement_type="expired", written_off_by="staff-1"),
            asynchronous=False,
        )
        [movement] = _movements(product_id)
        assert movement.movement_type == "expired"
        assert _stock(product_id) == 8


class TestStockAlerts:
    def test_low_stock_raises_one_alert(self, make_product):
        product_id = make_product(stock=10, low_stock_threshold=5)
        ledger = InventoryLedger()
        ledger.debit(product_id, None, 5, "u", "sale")
        ledger.debit(product_id, None, 1, "u", "sale")

        alerts = _open_alerts()
        assert len(alerts) == 1
        assert alerts[0].alert_type == AlertType.LOW_STOCK.value
        assert alerts[0].current_stock == 5

    def test_out_of_stock_alert(self, make_product):
        product_id = make_product(stock=2, low_stock_threshold=1)
        InventoryLedger().debit(product_id, None, 2, "u", "sale")
        [alert] = _open_alerts()
        assert alert.alert_type == AlertType.OUT_OF_STOCK.value

    def test_resolved_alert_can_be_raised_again(self, make_product):
        product_id = make_product(stock=10, low_stock_threshold=5)
        InventoryLedger().debit(product_id, None, 6, "u", "sale")
        [alert] = _open_alerts()

        current_domain.process(ResolveStockAlert(alert_id=alert.id, resolved_by="staff-1"), asynchronous=False)
        assert _open_alerts() == []

        InventoryLedger().debit(product_id, None, 1, "u", "sale")
        assert len(_open_alerts()) == 1

    def test_resolving_twice_is_rejected(self, make_product):
        product_id = make_product(stock=1, low_stock_threshold=5)
        InventoryLedger().debit(product_id, None, 1, "u", "sale")
        [alert] = _open_alerts()
        current_domain.process(ResolveStockAlert(alert_id=alert.id, resolved_by="staff-1"), asynchronous=False)

        with pytest.raises(BadRequest):
            current_domain.process(ResolveStockAlert(alert_id=alert.id, resolved_by="staff-1"), asynchronous=False)
