"""
schemas/erp.py — Pydantic models for ERP ingestion batches

Every batch body is ``{"secret": str, "items": [...]}`` with camelCase keys
on the wire. Malformed bodies are rejected as a whole before any write.

Business Rules:
- items must be non-empty
- isActive defaults to true; isWeight/isService/isDefault/isPickup to false
- Package multiplier defaults to 1 and sortOrder to 0; stock reserved to 0
- Numbers arrive as JSON floats and are converted to Decimal by the services
- Contract dates accept plain dates or datetime strings (time part dropped)

Called by: routers/erp.py
Depends on: pydantic
"""

from __future__ import annotations

from datetime import date as Date, datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class ErpModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


def _guid(**kw):
    return Field(min_length=1, max_length=64, **kw)


# ── Nomenclature ─────────────────────────────────────────────────────


class UnitIn(ErpModel):
    guid: str = _guid()
    name: str = Field(min_length=1)
    code: str | None = None
    symbol: str | None = None


class PackageIn(ErpModel):
    guid: str | None = None
    name: str = Field(min_length=1)
    unit: UnitIn
    multiplier: float = Field(default=1, gt=0)
    barcode: str | None = None
    is_default: bool = False
    sort_order: int = 0


class NomenclatureItem(ErpModel):
    guid: str = _guid()
    is_group: bool = False
    parent_guid: str | None = None
    name: str = Field(min_length=1)
    code: str | None = None
    is_active: bool = True
    article: str | None = None
    sku: str | None = None
    is_weight: bool = False
    is_service: bool = False
    base_unit: UnitIn | None = None
    packages: list[PackageIn] = Field(default_factory=list)


# ── Stock / warehouses ───────────────────────────────────────────────


class StockItem(ErpModel):
    product_guid: str = _guid()
    warehouse_guid: str = _guid()
    quantity: float
    reserved: float = 0
    updated_at: datetime | None = None


class WarehouseItem(ErpModel):
    guid: str = _guid()
    name: str = Field(min_length=1)
    code: str | None = None
    is_active: bool = True
    is_default: bool = False
    is_pickup: bool = False
    address: str | None = None


# ── Counterparties ───────────────────────────────────────────────────


class AddressIn(ErpModel):
    guid: str | None = None
    name: str | None = None
    full_address: str = Field(min_length=1)
    city: str | None = None
    street: str | None = None
    house: str | None = None
    building: str | None = None
    apartment: str | None = None
    postcode: str | None = None
    is_default: bool = False
    is_active: bool = True


class CounterpartyItem(ErpModel):
    guid: str = _guid()
    name: str = Field(min_length=1)
    full_name: str | None = None
    inn: str | None = None
    kpp: str | None = None
    phone: str | None = None
    email: str | None = None
    is_active: bool = True
    addresses: list[AddressIn] = Field(default_factory=list)


# ── Agreements ───────────────────────────────────────────────────────


class PriceTypeIn(ErpModel):
    guid: str = _guid()
    name: str = Field(min_length=1)
    code: str | None = None
    is_active: bool = True


class ContractIn(ErpModel):
    guid: str = _guid()
    counterparty_guid: str = _guid()
    number: str | None = None
    date: Date | None = None
    valid_from: Date | None = None
    valid_to: Date | None = None
    is_active: bool = True
    comment: str | None = None

    @field_validator("date", "valid_from", "valid_to", mode="before")
    @classmethod
    def drop_time(cls, v):
        if isinstance(v, str) and "T" in v:
            return v.split("T", 1)[0]
        if isinstance(v, datetime):
            return v.date()
        return v


class AgreementIn(ErpModel):
    guid: str = _guid()
    name: str = Field(min_length=1)
    counterparty_guid: str | None = None
    contract_guid: str | None = None
    price_type_guid: str | None = None
    warehouse_guid: str | None = None
    currency: str | None = None
    is_active: bool = True


class AgreementItem(ErpModel):
    price_type: PriceTypeIn | None = None
    contract: ContractIn
    agreement: AgreementIn


# ── Prices ───────────────────────────────────────────────────────────


class SpecialPriceItem(ErpModel):
    guid: str | None = None
    product_guid: str = _guid()
    counterparty_guid: str | None = None
    agreement_guid: str | None = None
    price_type_guid: str | None = None
    price: float = Field(ge=0)
    currency: str = Field(default="RUB", min_length=1, max_length=10)
    start_date: datetime | None = None
    end_date: datetime | None = None
    min_qty: float | None = None
    is_active: bool = True


class ProductPriceItem(ErpModel):
    guid: str | None = None
    product_guid: str = _guid()
    price_type_guid: str | None = None
    price: float = Field(ge=0)
    currency: str = Field(default="RUB", min_length=1, max_length=10)
    start_date: datetime | None = None
    end_date: datetime | None = None
    min_qty: float | None = None
    is_active: bool = True


# ── Envelopes ────────────────────────────────────────────────────────


class NomenclatureBatchIn(ErpModel):
    secret: str
    items: list[NomenclatureItem] = Field(min_length=1)


class StockBatchIn(ErpModel):
    secret: str
    items: list[StockItem] = Field(min_length=1)


class WarehouseBatchIn(ErpModel):
    secret: str
    items: list[WarehouseItem] = Field(min_length=1)


class CounterpartyBatchIn(ErpModel):
    secret: str
    items: list[CounterpartyItem] = Field(min_length=1)


class AgreementBatchIn(ErpModel):
    secret: str
    items: list[AgreementItem] = Field(min_length=1)


class SpecialPriceBatchIn(ErpModel):
    secret: str
    items: list[SpecialPriceItem] = Field(min_length=1)


class ProductPriceBatchIn(ErpModel):
    secret: str
    items: list[ProductPriceItem] = Field(min_length=1)


class BatchItemResult(BaseModel):
    key: str
    status: str
    error: str | None = None
    warnings: list[str] | None = None


class BatchResult(BaseModel):
    success: bool = True
    count: int
    results: list[BatchItemResult]
