"""
nomenclature_service.py — Group/product hierarchy upsert

Consumes a nomenclature batch (groups and products mixed) and upserts it
by guid. All groups are processed before any product, in input order.

Business Rules:
- Two passes only: a group whose parent appears later in the same batch is
  saved without a parent (it links up on the next sync); no fixup pass
- A parent guid that does not resolve is a warning, the item stays "ok"
- A group never becomes its own parent
- A product's base unit is upserted first; a new product without one fails
- Packages are upserted by guid; packages without a guid are matched on
  (product, unit, name) so repeated syncs do not duplicate them

Called by: routers/erp.py
Depends on: services/identity_service, services/sync_service
"""

import logging

from sqlalchemy import select

from ..models import Product, ProductGroup, ProductPackage, Unit
from ..utils import to_decimal
from .errors import UnresolvedReferenceError
from .identity_service import GuidCache, upsert_by_guid, upsert_on
from .sync_service import ItemOutcome, SyncBatch

log = logging.getLogger("catalog.nomenclature")


def upsert_unit(db, unit) -> int:
    return upsert_by_guid(
        db, Unit, unit.guid, {"name": unit.name, "code": unit.code, "symbol": unit.symbol}
    )


class NomenclatureBatch(SyncBatch):
    entity = "NOMENCLATURE"
    noun = "nomenclature item"

    def __init__(self, db):
        super().__init__(db)
        self.groups = GuidCache(db, ProductGroup)

    def order(self, items):
        groups = [i for i in items if i.is_group]
        products = [i for i in items if not i.is_group]
        return groups + products

    def apply(self, item, outcome: ItemOutcome) -> None:
        if item.is_group:
            self._upsert_group(item, outcome)
        else:
            self._upsert_product(item, outcome)

    def _parent_id(self, item, kind: str, outcome: ItemOutcome) -> int | None:
        if not item.parent_guid:
            return None
        if item.is_group and item.parent_guid == item.guid:
            outcome.warn(f"Group {item.guid} references itself as parent; saved without parent")
            return None
        parent_id = self.groups.get(item.parent_guid)
        if parent_id is None:
            log.debug("Unresolved parent %s for %s %s", item.parent_guid, kind, item.guid)
            outcome.warn(
                f"Parent group {item.parent_guid} not found; {kind} saved without parent"
            )
        return parent_id

    def _upsert_group(self, item, outcome: ItemOutcome) -> None:
        parent_id = self._parent_id(item, "group", outcome)
        group_id = upsert_by_guid(
            self.db,
            ProductGroup,
            item.guid,
            {
                "name": item.name,
                "code": item.code,
                "is_active": item.is_active,
                "parent_id": parent_id,
            },
        )
        self.groups.remember(item.guid, group_id)

    def _base_unit_id(self, item) -> int:
        if item.base_unit is not None:
            return upsert_unit(self.db, item.base_unit)
        # Keep the unit of an already synced product when the ERP omits it
        existing = self.db.execute(
            select(Product.base_unit_id).where(Product.guid == item.guid)
        ).scalar_one_or_none()
        if existing is None:
            raise UnresolvedReferenceError(f"Base unit is required for new product {item.guid}")
        return existing

    def _upsert_product(self, item, outcome: ItemOutcome) -> None:
        base_unit_id = self._base_unit_id(item)
        group_id = self._parent_id(item, "product", outcome)

        product_id = upsert_by_guid(
            self.db,
            Product,
            item.guid,
            {
                "name": item.name,
                "code": item.code,
                "article": item.article,
                "sku": item.sku,
                "is_weight": item.is_weight,
                "is_service": item.is_service,
                "is_active": item.is_active,
                "group_id": group_id,
                "base_unit_id": base_unit_id,
            },
        )

        for pack in item.packages or []:
            self._upsert_package(product_id, pack)

    def _upsert_package(self, product_id: int, pack) -> None:
        unit_id = upsert_unit(self.db, pack.unit)
        data = {
            "product_id": product_id,
            "unit_id": unit_id,
            "name": pack.name,
            "multiplier": to_decimal(pack.multiplier, default=to_decimal(1)),
            "barcode": pack.barcode,
            "is_default": pack.is_default,
            "sort_order": pack.sort_order,
        }
        if pack.guid:
            upsert_by_guid(self.db, ProductPackage, pack.guid, data)
            return

        upsert_on(
            self.db,
            ProductPackage,
            ["product_id", "unit_id", "name"],
            data,
            index_where=ProductPackage.guid.is_(None),
        )
