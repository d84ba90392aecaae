"""Application services, built once per process and shared by the API."""

from dataclasses import dataclass

from commerce.cache import build_order_cache
from commerce.cache.port import OrderCache
from commerce.config import Settings
from commerce.order.service import OrderService
from commerce.payments.gateway import GatewayRegistry, build_gateways
from commerce.payments.reconciliation import PaymentReconciler


@dataclass
class Services:
    settings: Settings
    cache: OrderCache
    gateways: GatewayRegistry
    orders: OrderService
    payments: PaymentReconciler


def build_services(
    settings: Settings | None = None,
    cache: OrderCache | None = None,
    gateways: GatewayRegistry | None = None,
) -> Services:
    settings = settings or Settings.from_env()
    cache = cache or build_order_cache(settings)
    gateways = gateways or build_gateways(settings)
    orders = OrderService(cache, settings)
    return Services(
        settings=settings,
        cache=cache,
        gateways=gateways,
        orders=orders,
        payments=PaymentReconciler(gateways, orders),
    )
