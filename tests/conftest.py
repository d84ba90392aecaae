import os
from pathlib import Path

import pytest
from protean.integrations.pytest import DomainFixture


def pytest_addoption(parser):
    parser.addoption(
        "--env",
        action="store",
        default="test",
        help="Config environment to run tests on",
    )


def pytest_sessionstart(session):
    """Select the config overlay before the domain is initialized."""
    os.environ["PROTEAN_ENV"] = session.config.option.env


def pytest_collection_modifyitems(config, items):
    """Automatically mark tests based on their directory location."""
    for item in items:
        test_path = Path(item.fspath)

        if "/domain/" in str(test_path):
            item.add_marker(pytest.mark.domain)
        elif "/application/" in str(test_path) or "/bdd/" in str(test_path):
            item.add_marker(pytest.mark.application)
        elif "/integration/" in str(test_path):
            item.add_marker(pytest.mark.integration)
            # Integration tests are often slower
            if not any(m.name == "fast" for m in item.iter_markers()):
                item.add_marker(pytest.mark.slow)


@pytest.fixture(scope="session")
def commerce_bed():
    from commerce.domain import commerce

    bed = DomainFixture(commerce)
    bed.setup()
    yield bed
    bed.teardown()


@pytest.fixture(autouse=True)
def _ctx(commerce_bed):
    with commerce_bed.domain_context():
        yield

        from protean import current_domain

        # Clear all databases
        for _, provider in current_domain.providers.items():
            provider._data_reset()

        # Drain event stores
        current_domain.event_store.store._data_reset()


# ---------------------------------------------------------------------------
# Shared builders
# ---------------------------------------------------------------------------
SHIPPING_ADDRESS = {
    "first_name": "Asha",
    "last_name": "Rao",
    "address_line1": "12 MG Road",
    "city": "Bengaluru",
    "state": "KA",
    "postal_code": "560001",
    "country": "IN",
    "phone": "+919800000000",
    "email": "asha@example.com",
}


@pytest.fixture()
def shipping_address():
    return dict(SHIPPING_ADDRESS)


@pytest.fixture()
def make_product():
    """Register a product through the command and return its id."""
    from protean import current_domain

    from commerce.inventory.registration import RegisterProduct

    counter = {"n": 0}

    def _make(stock=10, base_price=100.0, seller_id="seller-1", **kwargs):
        counter["n"] += 1
        kwargs.setdefault("sku", f"SKU-{counter['n']:03d}")
        kwargs.setdefault("name", f"Product {counter['n']}")
        return current_domain.process(
            RegisterProduct(base_price=base_price, stock=stock, seller_id=seller_id, **kwargs),
            asynchronous=False,
        )

    return _make


@pytest.fixture()
def fill_cart():
    """Put ``(product_id, quantity)`` lines into a user's cart."""
    from protean import current_domain

    from commerce.cart.items import AddCartItem

    def _fill(user_id, lines, tax_rate=0.0, variant_id=None):
        for product_id, quantity in lines:
            current_domain.process(
                AddCartItem(
                    user_id=user_id,
                    product_id=product_id,
                    variant_id=variant_id,
                    quantity=quantity,
                    tax_rate=tax_rate,
                ),
                asynchronous=False,
            )

    return _fill


@pytest.fixture()
def place_order(make_product, fill_cart, shipping_address):
    """Build a cart for ``user_id`` and place an order from it. Returns the order id."""
    from protean import current_domain

    from commerce.order.creation import PlaceOrder

    def _place(user_id="user-1", lines=None, payment_method="card", provider="stripe", price=100.0, stock=10):
        if lines is None:
            lines = [(make_product(stock=stock, base_price=price), 1)]
        fill_cart(user_id, lines)
        return current_domain.process(
            PlaceOrder(
                user_id=user_id,
                shipping_address=shipping_address,
                payment_method=payment_method,
                payment_provider=provider,
            ),
            asynchronous=False,
        )

    return _place


# ---------------------------------------------------------------------------
# HTTP
# ---------------------------------------------------------------------------
@pytest.fixture()
def card_gateway():
    from commerce.payments.gateway.fake_adapter import FakeGateway

    return FakeGateway(name="stripe")


@pytest.fixture()
def ssl_session():
    """A stand-in ``requests.Session`` for the SSLCommerz adapter."""
    from unittest.mock import MagicMock

    return MagicMock()


@pytest.fixture()
def services(card_gateway, ssl_session):
    from commerce.cache.memory import MemoryOrderCache
    from commerce.config import Settings
    from commerce.payments.gateway import GatewayRegistry
    from commerce.payments.gateway.sslcommerz_adapter import SSLCommerzGateway
    from commerce.services import build_services

    gateways = GatewayRegistry()
    gateways.register(card_gateway)
    gateways.register(SSLCommerzGateway("store", "store-secret", session=ssl_session))
    return build_services(Settings(), cache=MemoryOrderCache(), gateways=gateways)


@pytest.fixture()
def client(services):
    from fastapi.testclient import TestClient

    from commerce.api.app import create_app

    return TestClient(create_app(services=services, init_domain=False))
