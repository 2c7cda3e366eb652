"""
catalog_sync_service.py — Warehouse, counterparty and agreement-chain upserts

Same idempotent upsert-by-guid contract as the nomenclature batch, applied
to flatter shapes.

Business Rules:
- Warehouses: single-level upsert by guid
- Counterparties: upsert by guid; nested addresses upsert by their own guid,
  guid-less addresses are matched on (counterparty, full address)
- Agreements: optional price type block first, then the contract (its
  counterparty must resolve, else a hard error), then the agreement
- An agreement always has a counterparty: the one it names, else the
  contract's one; a named counterparty that does not resolve is a hard error
- Contract, price type and warehouse links resolve independently; an omitted
  link takes the block written by this item, an unresolved one is left null
  with a warning

Called by: routers/erp.py
Depends on: services/identity_service, services/sync_service
"""

import logging

from ..models import (
    ClientAgreement,
    ClientContract,
    Counterparty,
    DeliveryAddress,
    PriceType,
    Warehouse,
)
from .identity_service import require_id, resolve_id, upsert_by_guid, upsert_on
from .sync_service import ItemOutcome, SyncBatch

log = logging.getLogger("catalog.catalog_sync")


class WarehouseBatch(SyncBatch):
    entity = "WAREHOUSES"
    noun = "warehouse"

    def apply(self, item, outcome: ItemOutcome) -> None:
        upsert_by_guid(
            self.db,
            Warehouse,
            item.guid,
            {
                "name": item.name,
                "code": item.code,
                "is_active": item.is_active,
                "is_default": item.is_default,
                "is_pickup": item.is_pickup,
                "address": item.address,
            },
        )


class CounterpartyBatch(SyncBatch):
    entity = "COUNTERPARTIES"
    noun = "counterparty"

    def apply(self, item, outcome: ItemOutcome) -> None:
        counterparty_id = upsert_by_guid(
            self.db,
            Counterparty,
            item.guid,
            {
                "name": item.name,
                "legal_name": item.full_name,
                "inn": item.inn,
                "kpp": item.kpp,
                "phone": item.phone,
                "email": item.email,
                "is_active": item.is_active,
            },
        )
        for address in item.addresses or []:
            self._upsert_address(counterparty_id, address)

    def _upsert_address(self, counterparty_id: int, address) -> None:
        data = {
            "counterparty_id": counterparty_id,
            "name": address.name,
            "full_address": address.full_address,
            "city": address.city,
            "street": address.street,
            "house": address.house,
            "building": address.building,
            "apartment": address.apartment,
            "postcode": address.postcode,
            "is_default": address.is_default,
            "is_active": address.is_active,
        }
        if address.guid:
            upsert_by_guid(self.db, DeliveryAddress, address.guid, data)
            return

        upsert_on(
            self.db,
            DeliveryAddress,
            ["counterparty_id", "full_address"],
            data,
            index_where=DeliveryAddress.guid.is_(None),
        )


class AgreementBatch(SyncBatch):
    entity = "AGREEMENTS"
    noun = "agreement set"

    def key(self, item) -> str:
        return item.agreement.guid

    def apply(self, item, outcome: ItemOutcome) -> None:
        db = self.db

        price_type_id = None
        if item.price_type is not None:
            pt = item.price_type
            price_type_id = upsert_by_guid(
                db,
                PriceType,
                pt.guid,
                {"name": pt.name, "code": pt.code, "is_active": pt.is_active},
            )

        contract = item.contract
        contract_counterparty_id = require_id(
            db, Counterparty, contract.counterparty_guid, "Counterparty"
        )
        contract_id = upsert_by_guid(
            db,
            ClientContract,
            contract.guid,
            {
                "counterparty_id": contract_counterparty_id,
                "number": contract.number,
                "date": contract.date,
                "valid_from": contract.valid_from,
                "valid_to": contract.valid_to,
                "is_active": contract.is_active,
                "comment": contract.comment,
            },
        )

        agreement = item.agreement
        counterparty_id = contract_counterparty_id
        if agreement.counterparty_guid and agreement.counterparty_guid != contract.counterparty_guid:
            counterparty_id = require_id(db, Counterparty, agreement.counterparty_guid, "Counterparty")
        agreement_contract_id = self._link(
            ClientContract, agreement.contract_guid, contract.guid,
            contract_id, "Contract", outcome,
        )
        agreement_price_type_id = self._link(
            PriceType, agreement.price_type_guid,
            item.price_type.guid if item.price_type else None,
            price_type_id, "Price type", outcome,
        )
        warehouse_id = self._link(
            Warehouse, agreement.warehouse_guid, None, None, "Warehouse", outcome,
        )

        upsert_by_guid(
            db,
            ClientAgreement,
            agreement.guid,
            {
                "name": agreement.name,
                "counterparty_id": counterparty_id,
                "contract_id": agreement_contract_id,
                "price_type_id": agreement_price_type_id,
                "warehouse_id": warehouse_id,
                "currency": agreement.currency,
                "is_active": agreement.is_active,
            },
        )

    def _link(self, model, guid, own_guid, own_id, label, outcome):
        """Resolve one optional agreement link.

        An omitted guid, or the guid of the block this item wrote, takes that
        block's id. Any other guid that does not resolve leaves the link null.
        """
        if not guid or guid == own_guid:
            return own_id
        found = resolve_id(self.db, model, guid)
        if found is None:
            log.debug("Agreement link %s %s unresolved", label, guid)
            outcome.warn(f"{label} {guid} not found; agreement link left empty")
        return found
