"""Request dependencies: caller identity and the application services.

Identity arrives pre-validated from the auth gateway in trusted headers.
"""

from dataclasses import dataclass

from fastapi import Header, Request
from starlette.concurrency import run_in_threadpool

from commerce.domain import commerce
from commerce.shared.tenancy import tenant_or_default


@dataclass(frozen=True)
class Caller:
    user_id: str | None
    role: str | None
    tenant_id: str
    session_id: str | None = None


async def get_caller(
    x_user_id: str | None = Header(default=None),
    x_user_role: str | None = Header(default=None),
    x_tenant_id: str | None = Header(default=None),
    x_session_id: str | None = Header(default=None),
) -> Caller:
    return Caller(
        user_id=x_user_id or None,
        role=(x_user_role or "").lower() or None,
        tenant_id=tenant_or_default(x_tenant_id),
        session_id=x_session_id or None,
    )


def get_services(request: Request):
    return request.app.state.services


async def run_blocking(func, *args, **kwargs):
    """Run a service call that talks to a payment gateway on a worker thread.

    Gateway SDKs block on network I/O, so the call leaves the event loop. The
    worker pushes its own domain context.
    """

    def call():
        with commerce.domain_context():
            return func(*args, **kwargs)

    return await run_in_threadpool(call)
