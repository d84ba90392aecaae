"""InventoryMovement aggregate: the append-only stock ledger.

One movement is recorded for every stock-affecting operation. A movement is
never updated or deleted: the repository refuses to persist a movement whose
identity already exists, so the ledger doubles as the audit trail.
"""

from datetime import UTC, datetime
from enum import Enum

from protean import invariant
from protean.core.repository import BaseRepository
from protean.exceptions import InvalidOperationError, ValidationError
from protean.fields import DateTime, Identifier, Integer, String, Text

from commerce.domain import commerce
from commerce.shared.tenancy import DEFAULT_TENANT


class MovementType(Enum):
    PURCHASE = "purchase"
    SALE = "sale"
    RETURN = "return"
    ADJUSTMENT = "adjustment"
    TRANSFER = "transfer"
    DAMAGE = "damage"
    EXPIRED = "expired"


class ReferenceType(Enum):
    ORDER = "order"
    PURCHASE = "purchase"
    ADJUSTMENT = "adjustment"
    TRANSFER = "transfer"


_ADDITIVE = {MovementType.PURCHASE, MovementType.RETURN}
_SUBTRACTIVE = {MovementType.SALE, MovementType.DAMAGE, MovementType.EXPIRED}


def compute_new_stock(previous: int, quantity: int, movement_type: MovementType | str) -> int:
    """Stock after applying a movement; never below zero.

    Adjustments carry a signed quantity. Transfers move stock between
    locations and leave the counter unchanged.
    """
    movement_type = MovementType(movement_type)
    if movement_type in _ADDITIVE:
        return previous + quantity
    if movement_type in _SUBTRACTIVE:
        return max(0, previous - quantity)
    if movement_type == MovementType.ADJUSTMENT:
        return max(0, previous + quantity)
    return previous


@commerce.aggregate
class InventoryMovement:
    product_id = Identifier(required=True)
    variant_id = Identifier()
    sku = String(required=True, max_length=50)
    movement_type = String(required=True, choices=MovementType)
    quantity = Integer(required=True)
    previous_stock = Integer(required=True, min_value=0)
    new_stock = Integer(required=True, min_value=0)
    reference_type = String(choices=ReferenceType)
    reference_id = String(max_length=255)
    notes = Text()
    created_by = String(required=True, max_length=255)
    tenant_id = String(max_length=100, default=DEFAULT_TENANT)
    created_at = DateTime()

    @invariant.post
    def new_stock_must_follow_movement_type(self):
        expected = compute_new_stock(self.previous_stock, self.quantity, self.movement_type)
        if self.new_stock != expected:
            raise ValidationError(
                {"new_stock": [f"Expected {expected} after {self.movement_type} of {self.quantity}"]}
            )

    @classmethod
    def record(
        cls,
        product_id,
        sku,
        movement_type,
        quantity,
        previous_stock,
        created_by,
        variant_id=None,
        reference_type=None,
        reference_id=None,
        notes=None,
        tenant_id=DEFAULT_TENANT,
    ):
        movement_type = MovementType(movement_type)
        return cls(
            product_id=product_id,
            variant_id=variant_id,
            sku=sku,
            movement_type=movement_type.value,
            quantity=quantity,
            previous_stock=previous_stock,
            new_stock=compute_new_stock(previous_stock, quantity, movement_type),
            reference_type=reference_type,
            reference_id=reference_id,
            notes=notes,
            created_by=str(created_by),
            tenant_id=tenant_id,
            created_at=datetime.now(UTC),
        )


@commerce.repository(part_of=InventoryMovement)
class InventoryMovementRepository:
    def add(self, movement):
        if self._dao.query.filter(id=str(movement.id)).all().items:
            raise InvalidOperationError("Inventory movements are immutable once recorded")
        return BaseRepository.add(self, movement)

    def for_sku(self, sku: str, tenant_id: str = DEFAULT_TENANT) -> list:
        movements = self._dao.query.filter(sku=sku, tenant_id=tenant_id).all().items
        return sorted(movements, key=lambda m: m.created_at)

    def for_reference(self, reference_id: str) -> list:
        movements = self._dao.query.filter(reference_id=str(reference_id)).all().items
        return sorted(movements, key=lambda m: m.created_at)

    def for_product(self, product_id: str) -> list:
        movements = self._dao.query.filter(product_id=str(product_id)).all().items
        return sorted(movements, key=lambda m: m.created_at)
