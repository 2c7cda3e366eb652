"""
catalog_service.py — Read-only product and warehouse listings

Business Rules:
- Inactive products / warehouses are hidden unless include_inactive
- Packages: default first, then sort_order, then name
- Product stock totals only count active warehouses
- Search matches name, code, article or sku (case-insensitive substring)

Called by: routers/catalog.py
Depends on: services/stock_service
"""

from sqlalchemy import func, or_, select
from sqlalchemy.orm import Session, selectinload

from ..models import Product, ProductGroup, ProductPackage, Warehouse
from ..utils import decimal_to_float
from .errors import NotFoundError
from .stock_service import balances_by_product, product_balances, stock_row, stock_totals


def _package_order(pack: ProductPackage):
    return (not pack.is_default, pack.sort_order or 0, pack.name or "")


def serialize_package(pack: ProductPackage) -> dict:
    return {
        "guid": pack.guid,
        "name": pack.name,
        "unit": {"guid": pack.unit.guid, "name": pack.unit.name, "symbol": pack.unit.symbol},
        "multiplier": decimal_to_float(pack.multiplier),
        "barcode": pack.barcode,
        "isDefault": pack.is_default,
        "sortOrder": pack.sort_order,
    }


def serialize_product(db: Session, product: Product, with_stock_rows: bool = False,
                      balances: list | None = None) -> dict:
    if balances is None:
        balances = product_balances(db, product.id)
    unit = product.base_unit
    data = {
        "guid": product.guid,
        "name": product.name,
        "code": product.code,
        "article": product.article,
        "sku": product.sku,
        "isWeight": product.is_weight,
        "isService": product.is_service,
        "isActive": product.is_active,
        "group": {"guid": product.group.guid, "name": product.group.name} if product.group else None,
        "baseUnit": {"guid": unit.guid, "name": unit.name, "symbol": unit.symbol} if unit else None,
        "packages": [serialize_package(p) for p in sorted(product.packages, key=_package_order)],
        "stock": stock_totals(balances),
    }
    if with_stock_rows:
        data["stockItems"] = [stock_row(b) for b in balances]
    return data


def list_products(
    db: Session,
    search: str | None = None,
    group_guid: str | None = None,
    limit: int = 50,
    offset: int = 0,
    include_inactive: bool = False,
) -> dict:
    q = select(Product)
    if not include_inactive:
        q = q.where(Product.is_active.is_(True))
    if group_guid:
        group_id = db.execute(
            select(ProductGroup.id).where(ProductGroup.guid == group_guid)
        ).scalar_one_or_none()
        if group_id is None:
            raise NotFoundError(f"Group {group_guid} not found")
        q = q.where(Product.group_id == group_id)
    if search:
        pattern = f"%{search.strip().lower()}%"
        q = q.where(
            or_(
                func.lower(Product.name).like(pattern),
                func.lower(Product.code).like(pattern),
                func.lower(Product.article).like(pattern),
                func.lower(Product.sku).like(pattern),
            )
        )

    total = db.execute(select(func.count()).select_from(q.subquery())).scalar_one()
    products = db.execute(
        q.options(
            selectinload(Product.packages).selectinload(ProductPackage.unit),
            selectinload(Product.group),
            selectinload(Product.base_unit),
        )
        .order_by(Product.name, Product.id)
        .limit(limit)
        .offset(offset)
    ).scalars().all()
    balances = balances_by_product(db, [p.id for p in products])
    items = [serialize_product(db, p, balances=balances[p.id]) for p in products]
    return {"items": items, "total": total}


def get_product(db: Session, guid: str) -> dict:
    product = db.execute(select(Product).where(Product.guid == guid)).scalar_one_or_none()
    if product is None:
        raise NotFoundError(f"Product {guid} not found")
    return serialize_product(db, product, with_stock_rows=True)


def list_warehouses(db: Session, include_inactive: bool = False) -> dict:
    q = select(Warehouse).order_by(Warehouse.is_default.desc(), Warehouse.name)
    if not include_inactive:
        q = q.where(Warehouse.is_active.is_(True))
    rows = db.execute(q).scalars().all()
    items = [
        {
            "guid": w.guid,
            "name": w.name,
            "code": w.code,
            "isActive": w.is_active,
            "isDefault": w.is_default,
            "isPickup": w.is_pickup,
            "address": w.address,
        }
        for w in rows
    ]
    return {"items": items, "total": len(items)}
