"""Application tests for cart commands."""

from datetime import UTC, datetime, timedelta

import pytest
from protean import current_domain

from commerce.cart.cart import GUEST_CART_TTL, Cart
from commerce.cart.expiry import ExpireGuestCarts
from commerce.cart.items import AddCartItem, RemoveCartItem, UpdateCartItem, cart_for
from commerce.cart.management import ApplyCartDiscount, ClearCart, MergeGuestCart, SetCartShipping
from commerce.errors import BadRequest, InsufficientStock, NotFound


def _add(product_id, quantity=1, user_id="user-1", session_id=None, variant_id=None):
    return current_domain.process(
        AddCartItem(
            user_id=user_id,
            session_id=session_id,
            product_id=product_id,
            variant_id=variant_id,
            quantity=quantity,
        ),
        asynchronous=False,
    )


class TestAddCartItem:
    def test_creates_cart_lazily_and_snapshots_price(self, make_product):
        product_id = make_product(base_price=250.0)
        _add(product_id, quantity=2)

        cart = cart_for(user_id="user-1")
        [item] = cart.items
        assert item.price == 250.0
        assert item.seller_id == "seller-1"
        assert cart.subtotal == 500.0

    def test_quantity_is_checked_against_whole_line(self, make_product):
        product_id = make_product(stock=3)
        _add(product_id, quantity=2)
        with pytest.raises(InsufficientStock):
            _add(product_id, quantity=2)
        assert cart_for(user_id="user-1").quantity_of(product_id) == 2

    def test_inactive_product_cannot_be_added(self, make_product):
        product_id = make_product(status="inactive")
        with pytest.raises(BadRequest):
            _add(product_id)

    def test_unknown_product(self):
        with pytest.raises(NotFound):
            _add("missing")

    def test_variant_line_uses_variant_sku_and_name(self, make_product):
        from commerce.inventory.product import Product

        product_id = make_product(name="Tee", variants=[{"sku": "TEE-L", "name": "Large", "stock": 2, "price": 12.5}])
        variant = current_domain.repository_for(Product).get(product_id).variants[0]
        _add(product_id, variant_id=variant.id)

        [item] = cart_for(user_id="user-1").items
        assert item.sku == "TEE-L"
        assert item.name == "Tee - Large"
        assert item.price == 12.5

    def test_guest_cart_by_session(self, make_product):
        product_id = make_product()
        _add(product_id, user_id=None, session_id="sess-1")
        cart = cart_for(session_id="sess-1")
        assert cart.is_guest
        assert cart.item_count == 1

    def test_needs_user_or_session(self, make_product):
        product_id = make_product()
        with pytest.raises(BadRequest):
            _add(product_id, user_id=None)


class TestUpdateAndRemove:
    def test_update_checks_stock(self, make_product):
        product_id = make_product(stock=3)
        _add(product_id)
        item_id = cart_for(user_id="user-1").items[0].id

        with pytest.raises(InsufficientStock):
            current_domain.process(UpdateCartItem(user_id="user-1", item_id=item_id, quantity=4), asynchronous=False)

        current_domain.process(UpdateCartItem(user_id="user-1", item_id=item_id, quantity=3), asynchronous=False)
        assert cart_for(user_id="user-1").item_count == 3

    def test_remove_item(self, make_product):
        product_id = make_product()
        _add(product_id)
        item_id = cart_for(user_id="user-1").items[0].id

        current_domain.process(RemoveCartItem(user_id="user-1", item_id=item_id), asynchronous=False)
        assert cart_for(user_id="user-1").items == []

    def test_missing_cart(self):
        with pytest.raises(NotFound):
            current_domain.process(RemoveCartItem(user_id="nobody", item_id="x"), asynchronous=False)


class TestCartManagement:
    def test_discount_shipping_and_clear(self, make_product):
        product_id = make_product(base_price=100.0)
        _add(product_id)

        current_domain.process(ApplyCartDiscount(user_id="user-1", code="SAVE10", amount=10), asynchronous=False)
        current_domain.process(SetCartShipping(user_id="user-1", amount=5), asynchronous=False)
        assert cart_for(user_id="user-1").total == 95.0

        current_domain.process(ClearCart(user_id="user-1"), asynchronous=False)
        cart = cart_for(user_id="user-1")
        assert cart.items == []
        assert cart.discount_code is None

    def test_merge_guest_cart_on_login(self, make_product):
        product_id = make_product()
        _add(product_id, user_id=None, session_id="sess-1", quantity=2)
        _add(product_id, quantity=1)

        current_domain.process(MergeGuestCart(user_id="user-1", session_id="sess-1"), asynchronous=False)

        assert cart_for(user_id="user-1").quantity_of(product_id) == 3
        assert current_domain.repository_for(Cart).find_for(session_id="sess-1") is None

    def test_merge_without_guest_cart(self):
        with pytest.raises(BadRequest):
            current_domain.process(MergeGuestCart(user_id="user-1", session_id="none"), asynchronous=False)


class TestExpireGuestCarts:
    def test_only_idle_guest_carts_are_deleted(self, make_product):
        product_id = make_product()
        _add(product_id, user_id=None, session_id="sess-old")
        _add(product_id, user_id="user-1")

        later = datetime.now(UTC) + GUEST_CART_TTL + timedelta(minutes=1)
        deleted = current_domain.process(ExpireGuestCarts(as_of=later), asynchronous=False)

        assert deleted == 1
        assert current_domain.repository_for(Cart).find_for(session_id="sess-old") is None
        assert cart_for(user_id="user-1").item_count == 1

    def test_nothing_to_expire(self, make_product):
        product_id = make_product()
        _add(product_id, user_id=None, session_id="sess-new")
        assert current_domain.process(ExpireGuestCarts(), asynchronous=False) == 0
