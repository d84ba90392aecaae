"""Domain tests for Cart totals and line management."""

from datetime import UTC, datetime, timedelta

import pytest
from protean.exceptions import ValidationError

from commerce.cart.cart import GUEST_CART_TTL, Cart
from commerce.errors import BadRequest, NotFound


def _cart(tax_rate=0.0, **kwargs):
    kwargs.setdefault("user_id", "user-1")
    return Cart.create(tax_rate=tax_rate, **kwargs)


def _add(cart, product_id="p1", price=100.0, quantity=1, variant_id=None):
    return cart.add_item(
        product_id=product_id,
        variant_id=variant_id,
        sku=f"SKU-{product_id}",
        name=f"Product {product_id}",
        price=price,
        quantity=quantity,
    )


class TestCartOwnership:
    def test_cart_needs_user_or_session(self):
        with pytest.raises(ValidationError):
            Cart.create()

    def test_guest_cart_expires_after_ttl(self):
        cart = Cart.create(session_id="sess-1")
        assert cart.is_guest
        assert not cart.is_expired()
        assert cart.is_expired(datetime.now(UTC) + GUEST_CART_TTL + timedelta(seconds=1))

    def test_user_cart_never_expires(self):
        cart = _cart()
        assert cart.expires_at is None
        assert not cart.is_expired(datetime.now(UTC) + timedelta(days=365))

    def test_user_cart_ignores_session(self):
        cart = Cart.create(user_id="user-1", session_id="sess-1")
        assert cart.session_id is None


class TestCartTotals:
    def test_totals_follow_lines(self):
        cart = _cart(tax_rate=0.1)
        _add(cart, "p1", price=100.0, quantity=2)
        _add(cart, "p2", price=50.0, quantity=1)

        assert cart.subtotal == 250.0
        assert cart.tax == 25.0
        assert cart.total == 275.0
        assert cart.item_count == 3

    def test_half_cent_rounds_up(self):
        cart = _cart(tax_rate=0.05)
        _add(cart, price=100.005)
        cart.apply_discount("SAVE10", 10)

        assert cart.subtotal == 100.01
        assert cart.tax == 4.5
        assert cart.total == 94.51

    def test_total_never_negative(self):
        cart = _cart()
        _add(cart, price=10.0)
        cart.apply_discount("BIG", 50)
        assert cart.total == 0.0
        assert cart.tax == 0.0

    def test_shipping_is_added(self):
        cart = _cart()
        _add(cart, price=10.0)
        cart.set_shipping(5)
        assert cart.total == 15.0

    def test_negative_shipping_is_rejected(self):
        cart = _cart()
        with pytest.raises(BadRequest):
            cart.set_shipping(-1)

    def test_discount_on_empty_cart_is_rejected(self):
        with pytest.raises(BadRequest):
            _cart().apply_discount("SAVE10", 10)

    def test_remove_discount(self):
        cart = _cart()
        _add(cart, price=100.0)
        cart.apply_discount("SAVE10", 10)
        cart.remove_discount()
        assert cart.discount == 0.0
        assert cart.discount_code is None
        assert cart.total == 100.0


class TestCartLines:
    def test_same_product_and_variant_grows_the_line(self):
        cart = _cart()
        first = _add(cart, quantity=1)
        second = _add(cart, quantity=2)
        assert first == second
        assert len(cart.items) == 1
        assert cart.quantity_of("p1") == 3

    def test_variants_are_separate_lines(self):
        cart = _cart()
        _add(cart, variant_id="v1")
        _add(cart, variant_id="v2")
        assert len(cart.items) == 2

    def test_update_quantity(self):
        cart = _cart()
        item_id = _add(cart, price=20.0)
        cart.update_item_quantity(item_id, 4)
        assert cart.subtotal == 80.0

    def test_update_to_zero_is_rejected(self):
        cart = _cart()
        item_id = _add(cart)
        with pytest.raises(BadRequest):
            cart.update_item_quantity(item_id, 0)

    def test_remove_unknown_item(self):
        with pytest.raises(NotFound):
            _cart().remove_item("nope")

    def test_clear_empties_and_resets_discount(self):
        cart = _cart()
        _add(cart)
        cart.apply_discount("SAVE10", 10)
        cart.clear()
        assert cart.items == []
        assert cart.discount == 0.0
        assert cart.total == 0.0

    def test_snapshot_copies_pricing(self):
        cart = _cart(tax_rate=0.05)
        _add(cart, price=100.0)
        cart.set_shipping(10)
        assert cart.snapshot() == {
            "subtotal": 100.0,
            "discount": 0.0,
            "discount_code": None,
            "tax": 5.0,
            "shipping": 10.0,
            "total": 115.0,
            "currency": "INR",
        }


class TestMerge:
    def test_merge_sums_matching_lines(self):
        guest = Cart.create(session_id="sess-1")
        _add(guest, "p1", quantity=2)
        _add(guest, "p2", quantity=1)

        cart = _cart()
        _add(cart, "p1", quantity=1)

        assert cart.merge_from(guest) == 2
        assert cart.quantity_of("p1") == 3
        assert cart.quantity_of("p2") == 1

    def test_guest_cart_cannot_absorb(self):
        with pytest.raises(BadRequest):
            Cart.create(session_id="a").merge_from(Cart.create(session_id="b"))
