"""
identity_service.py — External id → internal id resolution and atomic upsert

Every synced entity carries the ERP guid as a unique column. Upserts are a
single INSERT ... ON CONFLICT DO UPDATE ... RETURNING id statement, so two
batches writing the same guid concurrently never create duplicate rows;
the unique constraint is the only concurrency guard (no in-process locks).

Business Rules:
- upsert_by_guid overwrites every mutable attribute it is given
- Calling an upsert twice with identical input leaves identical rows
- resolve_* never write

Called by: services/nomenclature_service, catalog_sync_service,
           pricing_sync_service, stock_service, price_service, catalog_service
Depends on: SQLAlchemy dialect inserts (postgresql, sqlite)
"""

import logging

from sqlalchemy import select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.orm import Session

from .errors import UnresolvedReferenceError

log = logging.getLogger("catalog.identity")

_INSERTS = {"postgresql": postgresql.insert, "sqlite": sqlite.insert}


def _insert_for(db: Session, table):
    dialect = db.get_bind().dialect.name
    try:
        return _INSERTS[dialect](table)
    except KeyError:
        log.error("No atomic upsert for dialect %s", dialect)
        raise RuntimeError(f"Atomic upsert is not supported on {dialect}") from None


def upsert_on(db: Session, model, conflict_cols: list[str], values: dict, index_where=None) -> int:
    """Insert ``values`` or update the row that collides on ``conflict_cols``.

    ``index_where`` names the predicate of a partial unique index, for keys
    that are only unique among rows without a guid. Returns the internal id
    of the written row.
    """
    table = model.__table__
    updates = {k: v for k, v in values.items() if k not in conflict_cols}
    stmt = (
        _insert_for(db, table)
        .values(**values)
        .on_conflict_do_update(
            index_elements=conflict_cols, index_where=index_where, set_=updates
        )
        .returning(table.c.id)
    )
    return db.execute(stmt).scalar_one()


def upsert_by_guid(db: Session, model, guid: str, attrs: dict) -> int:
    return upsert_on(db, model, ["guid"], {"guid": guid, **attrs})


def resolve_id(db: Session, model, guid: str | None) -> int | None:
    if not guid:
        return None
    return db.execute(select(model.id).where(model.guid == guid)).scalar_one_or_none()


def require_id(db: Session, model, guid: str, label: str) -> int:
    found = resolve_id(db, model, guid)
    if found is None:
        raise UnresolvedReferenceError(f"{label} {guid} not found")
    return found


class GuidCache:
    """Per-batch memo of guid → id for one model.

    Only hits are cached: an entity missing now may be created by a later
    item of the same batch.
    """

    def __init__(self, db: Session, model):
        self.db = db
        self.model = model
        self._ids: dict[str, int] = {}

    def get(self, guid: str | None) -> int | None:
        if not guid:
            return None
        if guid in self._ids:
            return self._ids[guid]
        found = resolve_id(self.db, self.model, guid)
        if found is not None:
            self._ids[guid] = found
        return found

    def remember(self, guid: str, id_: int) -> None:
        self._ids[guid] = id_
