"""FastAPI endpoints for stock management.

Staff manage any product; a seller manages only the products they sell.
"""

from fastapi import APIRouter, Depends
from protean.exceptions import ObjectNotFoundError
from protean.utils.globals import current_domain

from commerce.api.dependencies import Caller, get_caller
from commerce.api.schemas import (
    AdjustStockRequest,
    ProductIdResponse,
    ReceiveStockRequest,
    RegisterProductRequest,
    StatusResponse,
    StockLevelResponse,
    WriteOffStockRequest,
)
from commerce.errors import BadRequest, Forbidden, NotFound
from commerce.inventory.adjustment import AdjustStock, WriteOffStock
from commerce.inventory.alert import StockAlert
from commerce.inventory.alerts import ResolveStockAlert
from commerce.inventory.movement import InventoryMovement
from commerce.inventory.product import Product
from commerce.inventory.receiving import ReceiveStock
from commerce.inventory.registration import RegisterProduct
from commerce.order.access import STAFF_ROLES, Role

inventory_router = APIRouter(prefix="/inventory", tags=["inventory"])


def _ensure_inventory_role(caller: Caller):
    if caller.role in STAFF_ROLES or (caller.role == Role.SELLER.value and caller.user_id):
        return
    raise Forbidden("Access denied")


def _ensure_can_manage(product_id: str, caller: Caller) -> Product:
    _ensure_inventory_role(caller)
    try:
        product = current_domain.repository_for(Product).get(product_id)
    except ObjectNotFoundError as exc:
        raise NotFound("Product") from exc
    if caller.role not in STAFF_ROLES and str(product.seller_id) != str(caller.user_id):
        raise Forbidden("Access denied")
    return product


def _movement(movement: InventoryMovement) -> dict:
    return {
        "id": str(movement.id),
        "product_id": str(movement.product_id),
        "variant_id": str(movement.variant_id) if movement.variant_id else None,
        "sku": movement.sku,
        "movement_type": movement.movement_type,
        "quantity": movement.quantity,
        "previous_stock": movement.previous_stock,
        "new_stock": movement.new_stock,
        "reference_type": movement.reference_type,
        "reference_id": movement.reference_id,
        "notes": movement.notes,
        "created_by": movement.created_by,
        "created_at": movement.created_at.isoformat() if movement.created_at else None,
    }


def _alert(alert: StockAlert) -> dict:
    return {
        "id": str(alert.id),
        "product_id": str(alert.product_id),
        "variant_id": str(alert.variant_id) if alert.variant_id else None,
        "sku": alert.sku,
        "alert_type": alert.alert_type,
        "current_stock": alert.current_stock,
        "threshold": alert.threshold,
        "is_resolved": alert.is_resolved,
        "resolved_by": alert.resolved_by,
        "resolved_at": alert.resolved_at.isoformat() if alert.resolved_at else None,
        "created_at": alert.created_at.isoformat() if alert.created_at else None,
    }


@inventory_router.post("/products", status_code=201, response_model=ProductIdResponse)
async def register_product(body: RegisterProductRequest, caller: Caller = Depends(get_caller)) -> ProductIdResponse:
    _ensure_inventory_role(caller)
    seller_id = body.seller_id if caller.role in STAFF_ROLES else caller.user_id
    product_id = current_domain.process(
        RegisterProduct(
            seller_id=seller_id,
            tenant_id=caller.tenant_id,
            **body.model_dump(exclude={"seller_id"}),
        ),
        asynchronous=False,
    )
    return ProductIdResponse(product_id=product_id)


@inventory_router.post("/{product_id}/receive", response_model=StockLevelResponse)
async def receive_stock(
    product_id: str, body: ReceiveStockRequest, caller: Caller = Depends(get_caller)
) -> StockLevelResponse:
    _ensure_can_manage(product_id, caller)
    new_stock = current_domain.process(
        ReceiveStock(product_id=product_id, received_by=caller.user_id or caller.role, **body.model_dump()),
        asynchronous=False,
    )
    return StockLevelResponse(product_id=product_id, new_stock=new_stock)


@inventory_router.post("/{product_id}/adjust", response_model=StockLevelResponse)
async def adjust_stock(
    product_id: str, body: AdjustStockRequest, caller: Caller = Depends(get_caller)
) -> StockLevelResponse:
    _ensure_can_manage(product_id, caller)
    if body.quantity == 0:
        raise BadRequest("Adjustment quantity must not be zero")
    new_stock = current_domain.process(
        AdjustStock(product_id=product_id, adjusted_by=caller.user_id or caller.role, **body.model_dump()),
        asynchronous=False,
    )
    return StockLevelResponse(product_id=product_id, new_stock=new_stock)


@inventory_router.post("/{product_id}/write-off", response_model=StockLevelResponse)
async def write_off_stock(
    product_id: str, body: WriteOffStockRequest, caller: Caller = Depends(get_caller)
) -> StockLevelResponse:
    _ensure_can_manage(product_id, caller)
    new_stock = current_domain.process(
        WriteOffStock(product_id=product_id, written_off_by=caller.user_id or caller.role, **body.model_dump()),
        asynchronous=False,
    )
    return StockLevelResponse(product_id=product_id, new_stock=new_stock)


@inventory_router.get("/movements")
async def list_movements(
    sku: str | None = None,
    product_id: str | None = None,
    reference: str | None = None,
    caller: Caller = Depends(get_caller),
) -> dict:
    """Ledger entries for a SKU, a product or an order reference, oldest first."""
    repo = current_domain.repository_for(InventoryMovement)
    if product_id:
        _ensure_can_manage(product_id, caller)
        movements = repo.for_product(product_id)
    elif sku:
        if caller.role not in STAFF_ROLES:
            raise Forbidden("Access denied")
        movements = repo.for_sku(sku, caller.tenant_id)
    elif reference:
        if caller.role not in STAFF_ROLES:
            raise Forbidden("Access denied")
        movements = repo.for_reference(reference)
    else:
        raise BadRequest("Filter by sku, product_id or reference")
    return {"data": [_movement(m) for m in movements]}


@inventory_router.get("/alerts")
async def list_alerts(include_resolved: bool = False, caller: Caller = Depends(get_caller)) -> dict:
    _ensure_inventory_role(caller)
    alerts = current_domain.repository_for(StockAlert).list_for_tenant(caller.tenant_id, include_resolved)
    if caller.role not in STAFF_ROLES:
        product_repo = current_domain.repository_for(Product)
        own = {str(p.id) for p in product_repo._dao.query.filter(seller_id=caller.user_id).all().items}
        alerts = [a for a in alerts if str(a.product_id) in own]
    return {"data": [_alert(a) for a in alerts]}


@inventory_router.post("/alerts/{alert_id}/resolve", response_model=StatusResponse)
async def resolve_alert(alert_id: str, caller: Caller = Depends(get_caller)) -> StatusResponse:
    if caller.role not in STAFF_ROLES:
        raise Forbidden("Access denied")
    current_domain.process(
        ResolveStockAlert(alert_id=alert_id, resolved_by=caller.user_id or caller.role),
        asynchronous=False,
    )
    return StatusResponse()
