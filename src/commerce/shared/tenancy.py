"""Tenant isolation key shared by every persisted record."""

DEFAULT_TENANT = "default"


def tenant_or_default(tenant_id: str | None) -> str:
    return tenant_id or DEFAULT_TENANT
