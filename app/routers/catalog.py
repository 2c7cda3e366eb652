"""
routers/catalog.py — Read-only catalog, stock and price endpoints

Business Rules:
- Never writes; safe to call with unlimited concurrency
- Rate limited per client IP
- Unknown ids → 404, inactive context entities → 400
- No applicable price → 404 "No matching price found"

Called by: main.py (router mount)
Depends on: services/catalog_service, stock_service, price_service
"""

from datetime import datetime

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.orm import Session

from ..database import get_db
from ..rate_limit import CATALOG_LIMIT, limiter
from ..services.catalog_service import get_product, list_products, list_warehouses
from ..services.price_service import resolve_effective_price
from ..services.stock_service import get_product_stock

router = APIRouter(prefix="/api/catalog", tags=["catalog"])


@router.get("/products")
@limiter.limit(CATALOG_LIMIT)
async def products(
    request: Request,
    search: str | None = Query(None, max_length=200),
    group_guid: str | None = Query(None, alias="groupGuid"),
    limit: int = Query(50, ge=1, le=500),
    offset: int = Query(0, ge=0),
    include_inactive: bool = Query(False, alias="includeInactive"),
    db: Session = Depends(get_db),
):
    return list_products(db, search, group_guid, limit, offset, include_inactive)


@router.get("/products/{guid}")
@limiter.limit(CATALOG_LIMIT)
async def product_detail(request: Request, guid: str, db: Session = Depends(get_db)):
    return get_product(db, guid)


@router.get("/products/{guid}/stock")
@limiter.limit(CATALOG_LIMIT)
async def product_stock(
    request: Request,
    guid: str,
    warehouse_guid: str | None = Query(None, alias="warehouseGuid"),
    include_inactive: bool = Query(False, alias="includeInactiveWarehouses"),
    db: Session = Depends(get_db),
):
    return get_product_stock(db, guid, warehouse_guid, include_inactive)


@router.get("/warehouses")
@limiter.limit(CATALOG_LIMIT)
async def warehouses(
    request: Request,
    include_inactive: bool = Query(False, alias="includeInactive"),
    db: Session = Depends(get_db),
):
    return list_warehouses(db, include_inactive)


@router.get("/prices/resolve")
@limiter.limit(CATALOG_LIMIT)
async def resolve_price(
    request: Request,
    product_guid: str = Query(..., alias="productGuid", min_length=1),
    counterparty_guid: str | None = Query(None, alias="counterpartyGuid"),
    agreement_guid: str | None = Query(None, alias="agreementGuid"),
    price_type_guid: str | None = Query(None, alias="priceTypeGuid"),
    at: datetime | None = Query(None),
    db: Session = Depends(get_db),
):
    return resolve_effective_price(
        db, product_guid, counterparty_guid, agreement_guid, price_type_guid, at
    )
