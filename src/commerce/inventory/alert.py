"""StockAlert aggregate: low and out-of-stock notices raised by the ledger.

At most one unresolved alert exists per product, variant and alert type; the
ledger checks for an open alert before raising another.
"""

from datetime import UTC, datetime
from enum import Enum

from protean.fields import Boolean, DateTime, Identifier, Integer, String

from commerce.domain import commerce
from commerce.errors import BadRequest
from commerce.inventory.events import StockAlertRaised, StockAlertResolved
from commerce.shared.tenancy import DEFAULT_TENANT


class AlertType(Enum):
    LOW_STOCK = "low_stock"
    OUT_OF_STOCK = "out_of_stock"
    OVERSTOCK = "overstock"


def alert_type_for(stock: int, threshold: int) -> AlertType | None:
    if stock == 0:
        return AlertType.OUT_OF_STOCK
    if 0 < stock <= threshold:
        return AlertType.LOW_STOCK
    return None


@commerce.aggregate
class StockAlert:
    product_id = Identifier(required=True)
    variant_id = Identifier()
    sku = String(required=True, max_length=50)
    current_stock = Integer(required=True, min_value=0)
    threshold = Integer(required=True, min_value=0)
    alert_type = String(required=True, choices=AlertType)
    is_resolved = Boolean(default=False)
    resolved_at = DateTime()
    resolved_by = String(max_length=255)
    tenant_id = String(max_length=100, default=DEFAULT_TENANT)
    created_at = DateTime()

    @classmethod
    def open(cls, product_id, sku, alert_type, current_stock, threshold, variant_id=None, tenant_id=DEFAULT_TENANT):
        now = datetime.now(UTC)
        alert = cls(
            product_id=product_id,
            variant_id=variant_id,
            sku=sku,
            alert_type=AlertType(alert_type).value,
            current_stock=current_stock,
            threshold=threshold,
            tenant_id=tenant_id,
            created_at=now,
        )
        alert.raise_(
            StockAlertRaised(
                alert_id=str(alert.id),
                product_id=str(product_id),
                variant_id=str(variant_id) if variant_id else None,
                sku=sku,
                alert_type=alert.alert_type,
                current_stock=current_stock,
                threshold=threshold,
                raised_at=now,
            )
        )
        return alert

    def resolve(self, actor_id):
        if self.is_resolved:
            raise BadRequest("Alert is already resolved")

        now = datetime.now(UTC)
        self.is_resolved = True
        self.resolved_at = now
        self.resolved_by = str(actor_id)

        self.raise_(
            StockAlertResolved(
                alert_id=str(self.id),
                resolved_by=str(actor_id),
                resolved_at=now,
            )
        )


@commerce.repository(part_of=StockAlert)
class StockAlertRepository:
    def find_open(self, product_id, alert_type, variant_id=None):
        """The unresolved alert of this type for the product (or variant), if any."""
        candidates = (
            self._dao.query.filter(
                product_id=str(product_id),
                alert_type=AlertType(alert_type).value,
                is_resolved=False,
            )
            .all()
            .items
        )
        wanted = str(variant_id) if variant_id else None
        return next(
            (a for a in candidates if (str(a.variant_id) if a.variant_id else None) == wanted),
            None,
        )

    def list_for_tenant(self, tenant_id=DEFAULT_TENANT, include_resolved=False):
        filters = {"tenant_id": tenant_id}
        if not include_resolved:
            filters["is_resolved"] = False
        alerts = self._dao.query.filter(**filters).all().items
        return sorted(alerts, key=lambda a: a.created_at, reverse=True)
