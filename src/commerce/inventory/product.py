"""Product stock record: the catalogue-owned counters the ledger moves.

Catalogue management lives elsewhere; this aggregate keeps only what checkout
and the inventory ledger need: status, prices, and stock per product and per
variant. When a product has variants, ``total_stock`` is always the sum of the
active variants' stock.
"""

from datetime import UTC, datetime
from enum import Enum

from protean.fields import Boolean, DateTime, Float, HasMany, Identifier, Integer, String

from commerce.domain import commerce
from commerce.errors import InsufficientStock, NotFound
from commerce.inventory.events import ProductRegistered, StockMoved
from commerce.inventory.movement import MovementType, compute_new_stock
from commerce.shared.tenancy import DEFAULT_TENANT

DEFAULT_LOW_STOCK_THRESHOLD = 5


class ProductStatus(Enum):
    DRAFT = "draft"
    ACTIVE = "active"
    INACTIVE = "inactive"
    ARCHIVED = "archived"


@commerce.entity(part_of="Product")
class Variant:
    sku = String(required=True, max_length=50)
    name = String(max_length=255)
    price = Float(min_value=0.0)  # Overrides the product's base price when set
    stock = Integer(default=0, min_value=0)
    low_stock_threshold = Integer(default=DEFAULT_LOW_STOCK_THRESHOLD, min_value=0)
    is_active = Boolean(default=True)


@commerce.aggregate
class Product:
    tenant_id = String(max_length=100, default=DEFAULT_TENANT)
    seller_id = Identifier()
    sku = String(required=True, max_length=50)
    name = String(required=True, max_length=255)
    image = String(max_length=500)
    status = String(choices=ProductStatus, default=ProductStatus.DRAFT.value)
    base_price = Float(required=True, min_value=0.0)
    compare_at_price = Float(min_value=0.0)
    currency = String(max_length=3, default="INR")
    total_stock = Integer(default=0, min_value=0)
    low_stock_threshold = Integer(default=DEFAULT_LOW_STOCK_THRESHOLD, min_value=0)
    variants = HasMany(Variant)
    created_at = DateTime()
    updated_at = DateTime()

    @classmethod
    def register(
        cls,
        sku,
        name,
        base_price,
        seller_id=None,
        stock=0,
        variants=None,
        status=ProductStatus.ACTIVE.value,
        currency="INR",
        low_stock_threshold=DEFAULT_LOW_STOCK_THRESHOLD,
        compare_at_price=None,
        image=None,
        tenant_id=DEFAULT_TENANT,
    ):
        now = datetime.now(UTC)
        product = cls(
            tenant_id=tenant_id,
            seller_id=seller_id,
            sku=sku,
            name=name,
            image=image,
            status=ProductStatus(status).value,
            base_price=base_price,
            compare_at_price=compare_at_price,
            currency=currency,
            total_stock=stock,
            low_stock_threshold=low_stock_threshold,
            created_at=now,
            updated_at=now,
        )
        for variant_data in variants or []:
            product.add_variants(Variant(**variant_data))
        if product.variants:
            product._recompute_total_stock()

        product.raise_(
            ProductRegistered(
                product_id=str(product.id),
                sku=sku,
                seller_id=str(seller_id) if seller_id else None,
                tenant_id=tenant_id,
                total_stock=product.total_stock,
                registered_at=now,
            )
        )
        return product

    # -------------------------------------------------------------------
    # Catalogue collaborator contract
    # -------------------------------------------------------------------
    @property
    def is_active(self) -> bool:
        return self.status == ProductStatus.ACTIVE.value

    def find_variant(self, variant_id):
        if not variant_id:
            return None
        return next((v for v in self.variants if str(v.id) == str(variant_id)), None)

    def for_pricing(self) -> dict:
        return {
            "status": self.status,
            "base_price": self.base_price,
            "total_stock": self.total_stock,
            "variants": [
                {
                    "id": str(v.id),
                    "sku": v.sku,
                    "price": v.price,
                    "stock": v.stock,
                    "is_active": v.is_active,
                }
                for v in self.variants
            ],
        }

    def _variant_or_raise(self, variant_id):
        variant = self.find_variant(variant_id)
        if variant is None:
            raise NotFound("Variant")
        return variant

    def price_for(self, variant_id=None) -> float:
        variant = self.find_variant(variant_id)
        if variant is not None and variant.price is not None:
            return variant.price
        return self.base_price

    def sku_for(self, variant_id=None) -> str:
        variant = self.find_variant(variant_id)
        return variant.sku if variant is not None else self.sku

    def available(self, variant_id=None) -> int:
        if variant_id:
            return self._variant_or_raise(variant_id).stock
        return self.total_stock

    def threshold_for(self, variant_id=None) -> int:
        if variant_id:
            return self._variant_or_raise(variant_id).low_stock_threshold
        return self.low_stock_threshold

    def is_sellable(self, variant_id=None) -> bool:
        if not self.is_active:
            return False
        if variant_id:
            variant = self.find_variant(variant_id)
            return variant is not None and variant.is_active
        return True

    # -------------------------------------------------------------------
    # Stock movements
    # -------------------------------------------------------------------
    def _recompute_total_stock(self):
        self.total_stock = sum(v.stock for v in self.variants if v.is_active)

    def apply_movement(self, movement_type, quantity, variant_id=None):
        """Move stock and return ``(previous_stock, new_stock)``.

        Sales fail with InsufficientStock when the requested quantity exceeds
        what is available; every other type clamps at zero.
        """
        movement_type = MovementType(movement_type)
        variant = self._variant_or_raise(variant_id) if variant_id else None
        previous = variant.stock if variant is not None else self.total_stock

        if movement_type == MovementType.SALE and previous < quantity:
            raise InsufficientStock(available=previous, item=self.sku_for(variant_id))

        new_stock = compute_new_stock(previous, quantity, movement_type)
        if variant is not None:
            variant.stock = new_stock
            self._recompute_total_stock()
        else:
            self.total_stock = new_stock

        now = datetime.now(UTC)
        self.updated_at = now

        self.raise_(
            StockMoved(
                product_id=str(self.id),
                variant_id=str(variant_id) if variant_id else None,
                sku=self.sku_for(variant_id),
                movement_type=movement_type.value,
                quantity=quantity,
                previous_stock=previous,
                new_stock=new_stock,
                moved_at=now,
            )
        )
        return previous, new_stock
