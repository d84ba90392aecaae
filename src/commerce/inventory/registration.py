"""Product registration — command and handler.

The catalogue owns product content; registering here creates the stock record
checkout and the ledger work against.
"""

from protean import handle
from protean.fields import Dict, Float, Identifier, Integer, List, String
from protean.utils.globals import current_domain

from commerce.domain import commerce
from commerce.errors import Conflict
from commerce.inventory.product import DEFAULT_LOW_STOCK_THRESHOLD, Product, ProductStatus
from commerce.shared.tenancy import DEFAULT_TENANT


@commerce.command(part_of="Product")
class RegisterProduct:
    sku = String(required=True, max_length=50)
    name = String(required=True, max_length=255)
    base_price = Float(required=True, min_value=0.0)
    seller_id = Identifier()
    stock = Integer(default=0, min_value=0)
    variants = List(content_type=Dict)  # [{sku, name, price, stock, low_stock_threshold, is_active}]
    status = String(choices=ProductStatus, default=ProductStatus.ACTIVE.value)
    currency = String(max_length=3, default="INR")
    low_stock_threshold = Integer(default=DEFAULT_LOW_STOCK_THRESHOLD, min_value=0)
    compare_at_price = Float(min_value=0.0)
    image = String(max_length=500)
    tenant_id = String(max_length=100, default=DEFAULT_TENANT)


@commerce.command_handler(part_of=Product)
class RegisterProductHandler:
    @handle(RegisterProduct)
    def register_product(self, command):
        repo = current_domain.repository_for(Product)
        tenant_id = command.tenant_id or DEFAULT_TENANT
        if repo._dao.query.filter(sku=command.sku, tenant_id=tenant_id).all().items:
            raise Conflict(f"A product with SKU {command.sku} already exists")

        product = Product.register(
            sku=command.sku,
            name=command.name,
            base_price=command.base_price,
            seller_id=command.seller_id,
            stock=command.stock or 0,
            variants=command.variants or [],
            status=command.status or ProductStatus.ACTIVE.value,
            currency=command.currency or "INR",
            low_stock_threshold=command.low_stock_threshold,
            compare_at_price=command.compare_at_price,
            image=command.image,
            tenant_id=tenant_id,
        )
        repo.add(product)
        return str(product.id)
