"""Application settings read from the environment.

Domain wiring (databases, brokers, event processing) lives in ``domain.toml``;
this model holds what the application services need: gateway credentials,
checkout defaults and cache settings.
"""

import os

from pydantic import BaseModel, Field


def _env_bool(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


class Settings(BaseModel):
    environment: str = "development"

    # Checkout
    default_payment_provider: str = "stripe"
    default_currency: str = "INR"
    default_tax_rate: float = Field(default=0.0, ge=0.0, le=1.0)

    # Stripe
    stripe_secret_key: str | None = None
    stripe_webhook_secret: str | None = None

    # SSLCommerz
    sslcommerz_store_id: str | None = None
    sslcommerz_store_password: str | None = None
    sslcommerz_is_live: bool = False
    sslcommerz_success_url: str = "http://localhost:3000/payment/success"
    sslcommerz_fail_url: str = "http://localhost:3000/payment/fail"
    sslcommerz_cancel_url: str = "http://localhost:3000/payment/cancel"
    sslcommerz_ipn_url: str = "http://localhost:8000/payments/sslcommerz/ipn"

    gateway_timeout: int = Field(default=30, gt=0)

    # Order cache
    redis_url: str | None = None
    order_cache_ttl: int = Field(default=60, gt=0)

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    @classmethod
    def from_env(cls) -> "Settings":
        values = {
            "environment": (os.getenv("ENVIRONMENT") or os.getenv("PROTEAN_ENV") or "development").lower(),
            "default_payment_provider": os.getenv("DEFAULT_PAYMENT_PROVIDER"),
            "default_currency": os.getenv("DEFAULT_CURRENCY"),
            "default_tax_rate": os.getenv("DEFAULT_TAX_RATE"),
            "stripe_secret_key": os.getenv("STRIPE_SECRET_KEY"),
            "stripe_webhook_secret": os.getenv("STRIPE_WEBHOOK_SECRET"),
            "sslcommerz_store_id": os.getenv("SSLCOMMERZ_STORE_ID"),
            "sslcommerz_store_password": os.getenv("SSLCOMMERZ_STORE_PASSWORD"),
            "sslcommerz_is_live": _env_bool("SSLCOMMERZ_IS_LIVE"),
            "sslcommerz_success_url": os.getenv("SSLCOMMERZ_SUCCESS_URL"),
            "sslcommerz_fail_url": os.getenv("SSLCOMMERZ_FAIL_URL"),
            "sslcommerz_cancel_url": os.getenv("SSLCOMMERZ_CANCEL_URL"),
            "sslcommerz_ipn_url": os.getenv("SSLCOMMERZ_IPN_URL"),
            "gateway_timeout": os.getenv("GATEWAY_TIMEOUT"),
            "redis_url": os.getenv("REDIS_URL"),
            "order_cache_ttl": os.getenv("ORDER_CACHE_TTL"),
        }
        # Unset variables fall back to the field defaults
        return cls(**{key: value for key, value in values.items() if value is not None})
