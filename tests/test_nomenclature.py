"""
test_nomenclature.py — Tests for the group/product hierarchy upsert

Covers group-before-product ordering, unresolved parents (warning, still
ok), self-parenting, base units, guid-less package matching, per-item
failure isolation and idempotence of repeated batches.

Called by: pytest
Depends on: app.services.nomenclature_service, app.services.sync_service
"""

from sqlalchemy import func, select

from app.models import Product, ProductGroup, ProductPackage, Unit
from app.schemas.erp import NomenclatureItem
from app.services.nomenclature_service import NomenclatureBatch
from app.services.sync_service import run_batch

PCS = {"guid": "u-pcs", "name": "Piece", "symbol": "pcs"}
BOX = {"guid": "u-box", "name": "Box", "symbol": "box"}


def _items(*raw):
    return [NomenclatureItem.model_validate(r) for r in raw]


def _sync(db, *raw):
    return run_batch(db, NomenclatureBatch(db), _items(*raw))


def _count(db, model):
    return db.execute(select(func.count(model.id))).scalar_one()


def _group(db, guid):
    return db.execute(select(ProductGroup).where(ProductGroup.guid == guid)).scalar_one()


def _product(db, guid):
    return db.execute(select(Product).where(Product.guid == guid)).scalar_one()


class TestGroups:
    def test_groups_processed_before_products(self, db_session):
        resp = _sync(
            db_session,
            {"guid": "p-1", "name": "Bolt", "parentGuid": "g-1", "baseUnit": PCS},
            {"guid": "g-1", "isGroup": True, "name": "Hardware"},
        )
        assert resp["success"] is True
        assert [r["key"] for r in resp["results"]] == ["g-1", "p-1"]
        assert all(r["status"] == "ok" for r in resp["results"])
        assert _product(db_session, "p-1").group_id == _group(db_session, "g-1").id

    def test_parent_in_same_batch_earlier(self, db_session):
        _sync(
            db_session,
            {"guid": "g-root", "isGroup": True, "name": "Root"},
            {"guid": "g-child", "isGroup": True, "name": "Child", "parentGuid": "g-root"},
        )
        assert _group(db_session, "g-child").parent_id == _group(db_session, "g-root").id

    def test_parent_later_in_batch_is_left_unparented(self, db_session):
        resp = _sync(
            db_session,
            {"guid": "g-child", "isGroup": True, "name": "Child", "parentGuid": "g-root"},
            {"guid": "g-root", "isGroup": True, "name": "Root"},
        )
        child = resp["results"][0]
        assert child["status"] == "ok"
        assert "warnings" in child
        assert _group(db_session, "g-child").parent_id is None

    def test_parent_links_up_on_next_sync(self, db_session):
        batch = (
            {"guid": "g-child", "isGroup": True, "name": "Child", "parentGuid": "g-root"},
            {"guid": "g-root", "isGroup": True, "name": "Root"},
        )
        _sync(db_session, *batch)
        resp = _sync(db_session, *batch)
        assert "warnings" not in resp["results"][0]
        assert _group(db_session, "g-child").parent_id == _group(db_session, "g-root").id

    def test_unknown_parent_is_warning_not_error(self, db_session):
        resp = _sync(db_session, {"guid": "g-1", "isGroup": True, "name": "G", "parentGuid": "g-ghost"})
        result = resp["results"][0]
        assert result["status"] == "ok"
        assert "g-ghost" in result["warnings"][0]
        assert _group(db_session, "g-1").parent_id is None

    def test_self_parent_is_ignored(self, db_session):
        resp = _sync(db_session, {"guid": "g-1", "isGroup": True, "name": "G", "parentGuid": "g-1"})
        assert resp["results"][0]["status"] == "ok"
        assert _group(db_session, "g-1").parent_id is None

    def test_group_rename_updates_in_place(self, db_session):
        _sync(db_session, {"guid": "g-1", "isGroup": True, "name": "Old"})
        _sync(db_session, {"guid": "g-1", "isGroup": True, "name": "New"})
        assert _count(db_session, ProductGroup) == 1
        assert _group(db_session, "g-1").name == "New"


class TestProducts:
    def test_product_with_unknown_group_is_created_parentless(self, db_session):
        resp = _sync(db_session, {"guid": "p-1", "name": "Bolt", "parentGuid": "g-x", "baseUnit": PCS})
        assert resp["results"][0]["status"] == "ok"
        assert resp["results"][0]["warnings"]
        assert _product(db_session, "p-1").group_id is None

    def test_defaults_applied(self, db_session):
        _sync(db_session, {"guid": "p-1", "name": "Bolt", "baseUnit": PCS})
        p = _product(db_session, "p-1")
        assert p.is_active is True
        assert p.is_weight is False
        assert p.is_service is False

    def test_new_product_without_base_unit_fails_alone(self, db_session):
        resp = _sync(
            db_session,
            {"guid": "p-bad", "name": "No unit"},
            {"guid": "p-good", "name": "Bolt", "baseUnit": PCS},
        )
        by_key = {r["key"]: r for r in resp["results"]}
        assert by_key["p-bad"]["status"] == "error"
        assert "Base unit" in by_key["p-bad"]["error"]
        assert by_key["p-good"]["status"] == "ok"
        assert _count(db_session, Product) == 1

    def test_existing_product_keeps_unit_when_omitted(self, db_session):
        _sync(db_session, {"guid": "p-1", "name": "Bolt", "baseUnit": PCS})
        resp = _sync(db_session, {"guid": "p-1", "name": "Bolt M6"})
        assert resp["results"][0]["status"] == "ok"
        p = _product(db_session, "p-1")
        assert p.name == "Bolt M6"
        assert p.base_unit.guid == "u-pcs"


class TestPackages:
    def _product_with_packages(self, *packages):
        return {"guid": "p-1", "name": "Bolt", "baseUnit": PCS, "packages": list(packages)}

    def test_guidless_packages_are_not_duplicated(self, db_session):
        item = self._product_with_packages(
            {"name": "Box of 10", "unit": BOX, "multiplier": 10},
            {"name": "Single", "unit": PCS, "isDefault": True},
        )
        _sync(db_session, item)
        _sync(db_session, item)
        assert _count(db_session, ProductPackage) == 2
        assert _count(db_session, Unit) == 2

    def test_package_updated_by_guid(self, db_session):
        _sync(db_session, self._product_with_packages(
            {"guid": "pk-1", "name": "Box", "unit": BOX, "multiplier": 10}
        ))
        _sync(db_session, self._product_with_packages(
            {"guid": "pk-1", "name": "Box", "unit": BOX, "multiplier": 12, "barcode": "460000"}
        ))
        pack = db_session.execute(select(ProductPackage)).scalar_one()
        assert float(pack.multiplier) == 12
        assert pack.barcode == "460000"
        assert pack.sort_order == 0


class TestIdempotence:
    def test_same_batch_twice_same_state_and_statuses(self, db_session):
        raw = (
            {"guid": "g-1", "isGroup": True, "name": "Hardware"},
            {"guid": "p-1", "name": "Bolt", "parentGuid": "g-1", "baseUnit": PCS,
             "packages": [{"name": "Box", "unit": BOX, "multiplier": 10}]},
            {"guid": "p-2", "name": "Broken"},
        )
        first = _sync(db_session, *raw)
        snapshot = (
            _count(db_session, ProductGroup),
            _count(db_session, Product),
            _count(db_session, ProductPackage),
            _count(db_session, Unit),
        )
        second = _sync(db_session, *raw)
        assert [r["status"] for r in first["results"]] == [r["status"] for r in second["results"]]
        assert snapshot == (
            _count(db_session, ProductGroup),
            _count(db_session, Product),
            _count(db_session, ProductPackage),
            _count(db_session, Unit),
        )
