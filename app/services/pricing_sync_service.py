"""
pricing_sync_service.py — Special-price and base-price stores

Price rules are keyed by guid when the ERP sends one. Without a guid the
rule is keyed by its composite scope: (product, counterparty, agreement,
price type, start date) for special prices and (product, price type,
start date) for base prices. Empty components are replaced by a fixed
sentinel so that NULLs still collide; the resulting string lives in the
unique ``scope_key`` column and is the ON CONFLICT target.

Business Rules:
- The product must resolve (hard per-item error)
- A scope reference that is given but does not resolve is a hard per-item
  error; a scoped rule never widens into a broader tier
- Same scope + same start date without guid → update, never a duplicate
- A guid row whose scope collides with another row is a storage conflict,
  reported as an item error

Called by: routers/erp.py
Depends on: services/identity_service, services/sync_service
"""

import logging
from datetime import datetime

from ..models import ClientAgreement, Counterparty, PriceType, Product, ProductPrice, SpecialPrice
from ..utils import as_utc, to_decimal
from .identity_service import GuidCache, upsert_by_guid, upsert_on
from .errors import UnresolvedReferenceError
from .sync_service import ItemOutcome, SyncBatch

log = logging.getLogger("catalog.pricing_sync")

SCOPE_SENTINEL = "*"


def _scope_part(value) -> str:
    if value is None:
        return SCOPE_SENTINEL
    if isinstance(value, datetime):
        return as_utc(value).strftime("%Y-%m-%dT%H:%M:%S.%fZ")
    return str(value)


def scope_key(*parts) -> str:
    """Composite identity with every empty component normalized to the sentinel."""
    return "|".join(_scope_part(p) for p in parts)


def special_price_scope_key(product_id, counterparty_id, agreement_id, price_type_id, start_date) -> str:
    return scope_key(product_id, counterparty_id, agreement_id, price_type_id, start_date)


def product_price_scope_key(product_id, price_type_id, start_date) -> str:
    return scope_key(product_id, price_type_id, start_date)


class _PriceBatch(SyncBatch):
    def __init__(self, db):
        super().__init__(db)
        self.products = GuidCache(db, Product)
        self.counterparties = GuidCache(db, Counterparty)
        self.agreements = GuidCache(db, ClientAgreement)
        self.price_types = GuidCache(db, PriceType)

    def _require(self, cache: GuidCache, guid: str | None, label: str) -> int | None:
        if not guid:
            return None
        found = cache.get(guid)
        if found is None:
            log.debug("Price scope %s %s unresolved", label, guid)
            raise UnresolvedReferenceError(f"{label} {guid} not found")
        return found

    def _write(self, model, item, values: dict) -> None:
        if item.guid:
            upsert_by_guid(self.db, model, item.guid, values)
        else:
            upsert_on(self.db, model, ["scope_key"], values)


class SpecialPriceBatch(_PriceBatch):
    entity = "SPECIAL_PRICES"
    noun = "special price"

    def key(self, item) -> str:
        return item.guid or f"{item.product_guid}:{item.counterparty_guid or 'all'}"

    def apply(self, item, outcome: ItemOutcome) -> None:
        product_id = self._require(self.products, item.product_guid, "Product")
        counterparty_id = self._require(self.counterparties, item.counterparty_guid, "Counterparty")
        agreement_id = self._require(self.agreements, item.agreement_guid, "Agreement")
        price_type_id = self._require(self.price_types, item.price_type_guid, "Price type")

        values = {
            "scope_key": special_price_scope_key(
                product_id, counterparty_id, agreement_id, price_type_id, item.start_date
            ),
            "product_id": product_id,
            "counterparty_id": counterparty_id,
            "agreement_id": agreement_id,
            "price_type_id": price_type_id,
            "price": to_decimal(item.price),
            "currency": item.currency,
            "start_date": item.start_date,
            "end_date": item.end_date,
            "min_qty": to_decimal(item.min_qty),
            "is_active": item.is_active,
        }
        self._write(SpecialPrice, item, values)


class ProductPriceBatch(_PriceBatch):
    entity = "PRODUCT_PRICES"
    noun = "product price"

    def key(self, item) -> str:
        return item.guid or f"{item.product_guid}:{item.price_type_guid or 'base'}"

    def apply(self, item, outcome: ItemOutcome) -> None:
        product_id = self._require(self.products, item.product_guid, "Product")
        price_type_id = self._require(self.price_types, item.price_type_guid, "Price type")

        values = {
            "scope_key": product_price_scope_key(product_id, price_type_id, item.start_date),
            "product_id": product_id,
            "price_type_id": price_type_id,
            "price": to_decimal(item.price),
            "currency": item.currency,
            "start_date": item.start_date,
            "end_date": item.end_date,
            "min_qty": to_decimal(item.min_qty),
            "is_active": item.is_active,
        }
        self._write(ProductPrice, item, values)
