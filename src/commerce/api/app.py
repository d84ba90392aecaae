"""Commerce FastAPI application factory.

Every request runs inside the commerce domain context, so route handlers can
process commands through ``current_domain`` directly.
"""

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from commerce.api.carts import cart_router
from commerce.api.errors import register_exception_handlers
from commerce.api.inventory import inventory_router
from commerce.api.orders import order_router
from commerce.api.payments import payment_router
from commerce.domain import commerce
from commerce.services import Services, build_services


def create_app(services: Services | None = None, init_domain: bool = True) -> FastAPI:
    if init_domain:
        commerce.init()

    app = FastAPI(
        title="Commerce API",
        description="Inventory, carts, orders and payment reconciliation",
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def domain_context_middleware(request: Request, call_next):
        """Push the commerce domain context for each request."""
        with commerce.domain_context():
            response = await call_next(request)
        return response

    with commerce.domain_context():
        app.state.services = services or build_services()

    register_exception_handlers(app, debug=not app.state.services.settings.is_production)

    app.include_router(order_router)
    app.include_router(payment_router)
    app.include_router(cart_router)
    app.include_router(inventory_router)

    @app.get("/health")
    async def health():
        return JSONResponse(
            content={
                "status": "ok",
                "domain": commerce.name,
                "payment_providers": app.state.services.gateways.names(),
            }
        )

    return app
