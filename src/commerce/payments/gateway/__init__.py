"""Payment gateway registry.

Gateways are built once from settings and looked up by the provider name
stored on each order (``order.payment.provider``):

- ``stripe``: StripeGateway, or FakeGateway when no Stripe keys are configured
  outside production
- ``sslcommerz``: SSLCommerzGateway, when store credentials are configured
"""

import structlog

from commerce.errors import BadRequest
from commerce.payments.gateway.fake_adapter import FakeGateway
from commerce.payments.gateway.port import PaymentProvider
from commerce.payments.gateway.sslcommerz_adapter import SSLCommerzGateway
from commerce.payments.gateway.stripe_adapter import StripeGateway

logger = structlog.get_logger(__name__)


class GatewayRegistry:
    def __init__(self, gateways: dict[str, PaymentProvider] | None = None) -> None:
        self._gateways = dict(gateways or {})

    def register(self, gateway: PaymentProvider) -> None:
        self._gateways[gateway.name] = gateway

    def get(self, provider: str | None) -> PaymentProvider:
        gateway = self._gateways.get(provider or "")
        if gateway is None:
            raise BadRequest(f"Unsupported payment provider: {provider}")
        return gateway

    def names(self) -> list[str]:
        return sorted(self._gateways)

    def __contains__(self, provider) -> bool:
        return provider in self._gateways


def build_gateways(settings) -> GatewayRegistry:
    registry = GatewayRegistry()

    if settings.stripe_secret_key and settings.stripe_webhook_secret:
        registry.register(
            StripeGateway(
                settings.stripe_secret_key,
                settings.stripe_webhook_secret,
                timeout=settings.gateway_timeout,
            )
        )
    elif settings.is_production:
        # Card payments and webhooks are refused until real keys are set
        logger.error("Stripe keys not configured, card payments are disabled")
    else:
        logger.warning("Stripe keys not configured, using the fake card gateway")
        registry.register(FakeGateway(name="stripe"))

    if settings.sslcommerz_store_id and settings.sslcommerz_store_password:
        registry.register(
            SSLCommerzGateway(
                settings.sslcommerz_store_id,
                settings.sslcommerz_store_password,
                is_live=settings.sslcommerz_is_live,
                urls={
                    "success_url": settings.sslcommerz_success_url,
                    "fail_url": settings.sslcommerz_fail_url,
                    "cancel_url": settings.sslcommerz_cancel_url,
                    "ipn_url": settings.sslcommerz_ipn_url,
                },
                timeout=settings.gateway_timeout,
            )
        )

    return registry
