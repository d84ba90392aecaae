"""Inventory ledger: every stock change goes through here.

Each operation loads the product, applies the movement on the aggregate,
appends one InventoryMovement and raises a deduplicated stock alert when the
new level is low or zero. Called from inside a command handler, all of these
writes share the handler's unit of work and commit (or roll back) together.
"""

import structlog
from protean.exceptions import ObjectNotFoundError
from protean.utils.globals import current_domain

from commerce.errors import BadRequest, DatabaseError, NotFound
from commerce.inventory.alert import StockAlert, alert_type_for
from commerce.inventory.movement import InventoryMovement, MovementType, ReferenceType
from commerce.inventory.product import Product

logger = structlog.get_logger(__name__)


class InventoryLedger:
    def __init__(self):
        # Products loaded by this ledger. A handler debiting two variants of
        # one product must keep moving the same aggregate instance.
        self._products = {}

    def debit(self, product_id, variant_id, quantity, actor_id, reason, reference_id=None):
        """Take stock for a sale. Fails with InsufficientStock, leaving stock untouched."""
        return self._move(
            product_id,
            variant_id,
            quantity,
            MovementType.SALE,
            actor_id,
            notes=reason,
            reference_type=ReferenceType.ORDER.value if reference_id else None,
            reference_id=reference_id,
        )

    def credit(self, product_id, variant_id, quantity, actor_id, reason, reference_id=None):
        """Put stock back (cancellation or customer return). No upper bound."""
        return self._move(
            product_id,
            variant_id,
            quantity,
            MovementType.RETURN,
            actor_id,
            notes=reason,
            reference_type=ReferenceType.ORDER.value if reference_id else None,
            reference_id=reference_id,
        )

    def receive(self, product_id, variant_id, quantity, actor_id, notes=None, reference_id=None):
        return self._move(
            product_id,
            variant_id,
            quantity,
            MovementType.PURCHASE,
            actor_id,
            notes=notes,
            reference_type=ReferenceType.PURCHASE.value,
            reference_id=reference_id,
        )

    def adjust(self, product_id, variant_id, quantity, actor_id, notes=None):
        """Apply a signed correction; the result is clamped at zero."""
        if quantity == 0:
            raise BadRequest("Adjustment quantity must not be zero")
        return self._move(
            product_id,
            variant_id,
            quantity,
            MovementType.ADJUSTMENT,
            actor_id,
            notes=notes,
            reference_type=ReferenceType.ADJUSTMENT.value,
        )

    def write_off(self, product_id, variant_id, quantity, actor_id, movement_type=MovementType.DAMAGE, notes=None):
        movement_type = MovementType(movement_type)
        if movement_type not in (MovementType.DAMAGE, MovementType.EXPIRED):
            raise BadRequest("Write-offs must be damage or expired")
        return self._move(product_id, variant_id, quantity, movement_type, actor_id, notes=notes)

    # -------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------
    def _load_product(self, product_id):
        key = str(product_id)
        if key not in self._products:
            try:
                self._products[key] = current_domain.repository_for(Product).get(key)
            except ObjectNotFoundError as exc:
                raise NotFound("Product") from exc
        return self._products[key]

    def _move(
        self,
        product_id,
        variant_id,
        quantity,
        movement_type,
        actor_id,
        notes=None,
        reference_type=None,
        reference_id=None,
    ):
        if movement_type != MovementType.ADJUSTMENT and quantity <= 0:
            raise BadRequest("Quantity must be positive")

        product = self._load_product(product_id)
        previous, new_stock = product.apply_movement(movement_type, quantity, variant_id=variant_id)
        sku = product.sku_for(variant_id)

        movement = InventoryMovement.record(
            product_id=str(product.id),
            variant_id=str(variant_id) if variant_id else None,
            sku=sku,
            movement_type=movement_type,
            quantity=quantity,
            previous_stock=previous,
            created_by=actor_id,
            reference_type=reference_type,
            reference_id=str(reference_id) if reference_id else None,
            notes=notes,
            tenant_id=product.tenant_id,
        )

        try:
            current_domain.repository_for(Product).add(product)
            current_domain.repository_for(InventoryMovement).add(movement)
        except Exception as exc:
            logger.error(
                "Stock movement could not be persisted",
                product_id=str(product.id),
                sku=sku,
                movement_type=movement_type.value,
                quantity=quantity,
                error=str(exc),
            )
            raise DatabaseError("Stock movement could not be recorded") from exc

        self._raise_alert_if_needed(product, variant_id, new_stock)

        logger.info(
            "Stock moved",
            product_id=str(product.id),
            sku=sku,
            movement_type=movement_type.value,
            quantity=quantity,
            previous_stock=previous,
            new_stock=new_stock,
        )
        return new_stock

    def _raise_alert_if_needed(self, product, variant_id, new_stock):
        threshold = product.threshold_for(variant_id)
        alert_type = alert_type_for(new_stock, threshold)
        if alert_type is None:
            return

        repo = current_domain.repository_for(StockAlert)
        if repo.find_open(product.id, alert_type, variant_id=variant_id) is not None:
            return

        repo.add(
            StockAlert.open(
                product_id=str(product.id),
                variant_id=str(variant_id) if variant_id else None,
                sku=product.sku_for(variant_id),
                alert_type=alert_type,
                current_stock=new_stock,
                threshold=threshold,
                tenant_id=product.tenant_id,
            )
        )
        logger.warning(
            "Stock alert raised",
            product_id=str(product.id),
            sku=product.sku_for(variant_id),
            alert_type=alert_type.value,
            current_stock=new_stock,
        )
