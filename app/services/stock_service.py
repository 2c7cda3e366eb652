"""
stock_service.py — Stock balance reconciliation and stock reads

Business Rules:
- One StockBalance row per (product, warehouse); upsert on that pair
- Unknown product or warehouse → item error, no row written
- quantity / reserved / updated_at are always overwritten (last write wins)
- With STOCK_REJECT_STALE_UPDATES an older updated_at is skipped: reported
  "ok" with a warning, stored row untouched
- available = quantity - reserved, computed in Decimal

Called by: routers/erp.py, routers/catalog.py, services/catalog_service
Depends on: services/identity_service, services/sync_service
"""

import logging
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.orm import Session

from ..config import settings
from ..database import utcnow
from ..models import Product, StockBalance, Warehouse
from ..utils import as_utc, decimal_to_float, iso, to_decimal
from .errors import InvalidContextError, NotFoundError, UnresolvedReferenceError
from .identity_service import GuidCache, upsert_on
from .sync_service import ItemOutcome, SyncBatch

log = logging.getLogger("catalog.stock")

ZERO = Decimal("0")


class StockBatch(SyncBatch):
    entity = "STOCK"
    noun = "stock balance"

    def __init__(self, db):
        super().__init__(db)
        self.products = GuidCache(db, Product)
        self.warehouses = GuidCache(db, Warehouse)

    def key(self, item) -> str:
        return f"{item.product_guid}:{item.warehouse_guid}"

    def apply(self, item, outcome: ItemOutcome) -> None:
        product_id = self.products.get(item.product_guid)
        warehouse_id = self.warehouses.get(item.warehouse_guid)
        if product_id is None or warehouse_id is None:
            raise UnresolvedReferenceError("Product or warehouse not found")

        updated_at = as_utc(item.updated_at) or utcnow()
        if settings.stock_reject_stale_updates and self._is_stale(product_id, warehouse_id, updated_at):
            outcome.warn(f"Stale update ({updated_at.isoformat()}) skipped")
            return

        upsert_on(
            self.db,
            StockBalance,
            ["product_id", "warehouse_id"],
            {
                "product_id": product_id,
                "warehouse_id": warehouse_id,
                "quantity": to_decimal(item.quantity, default=ZERO),
                "reserved": to_decimal(item.reserved, default=ZERO),
                "updated_at": updated_at,
            },
        )

    def _is_stale(self, product_id: int, warehouse_id: int, updated_at) -> bool:
        stored = self.db.execute(
            select(StockBalance.updated_at).where(
                StockBalance.product_id == product_id,
                StockBalance.warehouse_id == warehouse_id,
            )
        ).scalar_one_or_none()
        return stored is not None and as_utc(stored) > updated_at


# ── Reads ───────────────────────────────────────────────────────────────


def stock_row(balance: StockBalance) -> dict:
    quantity = balance.quantity or ZERO
    reserved = balance.reserved or ZERO
    wh = balance.warehouse
    return {
        "warehouse": {"guid": wh.guid, "name": wh.name, "isActive": wh.is_active},
        "quantity": decimal_to_float(quantity),
        "reserved": decimal_to_float(reserved),
        "available": decimal_to_float(quantity - reserved),
        "updatedAt": iso(balance.updated_at),
    }


def stock_totals(balances) -> dict:
    quantity = sum((b.quantity or ZERO for b in balances), ZERO)
    reserved = sum((b.reserved or ZERO for b in balances), ZERO)
    return {
        "quantity": decimal_to_float(quantity),
        "reserved": decimal_to_float(reserved),
        "available": decimal_to_float(quantity - reserved),
    }


def product_balances(db: Session, product_id: int, warehouse_id: int | None = None,
                     include_inactive: bool = False) -> list[StockBalance]:
    q = (
        select(StockBalance)
        .join(Warehouse, StockBalance.warehouse_id == Warehouse.id)
        .where(StockBalance.product_id == product_id)
        .order_by(Warehouse.is_default.desc(), Warehouse.name)
    )
    if warehouse_id is not None:
        q = q.where(StockBalance.warehouse_id == warehouse_id)
    if not include_inactive:
        q = q.where(Warehouse.is_active.is_(True))
    return list(db.execute(q).scalars())


def balances_by_product(db: Session, product_ids) -> dict[int, list[StockBalance]]:
    """Active-warehouse balances for a page of products, in one query."""
    grouped: dict[int, list[StockBalance]] = {pid: [] for pid in product_ids}
    if not grouped:
        return grouped
    q = (
        select(StockBalance)
        .join(Warehouse, StockBalance.warehouse_id == Warehouse.id)
        .where(StockBalance.product_id.in_(list(grouped)), Warehouse.is_active.is_(True))
    )
    for balance in db.execute(q).scalars():
        grouped[balance.product_id].append(balance)
    return grouped


def get_product_stock(
    db: Session,
    product_guid: str,
    warehouse_guid: str | None = None,
    include_inactive: bool = False,
) -> dict:
    product = db.execute(select(Product).where(Product.guid == product_guid)).scalar_one_or_none()
    if product is None:
        raise NotFoundError(f"Product {product_guid} not found")

    warehouse_id = None
    if warehouse_guid:
        warehouse = db.execute(
            select(Warehouse).where(Warehouse.guid == warehouse_guid)
        ).scalar_one_or_none()
        if warehouse is None:
            raise NotFoundError(f"Warehouse {warehouse_guid} not found")
        if not warehouse.is_active and not include_inactive:
            raise InvalidContextError(f"Warehouse {warehouse_guid} is inactive")
        warehouse_id = warehouse.id

    balances = product_balances(db, product.id, warehouse_id, include_inactive)
    return {
        "product": {"guid": product.guid, "name": product.name},
        "totals": stock_totals(balances),
        "items": [stock_row(b) for b in balances],
    }
