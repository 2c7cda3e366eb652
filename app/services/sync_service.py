"""
sync_service.py — Batch runner and sync-run journal for ERP ingestion

Runs one ingestion batch inside the request's transaction. Each item gets
its own SAVEPOINT: a failing item rolls back only its own statements and
is reported as an error entry, every other item still commits. The outer
transaction commits once, after all items were attempted.

Business Rules:
- Items are processed sequentially, in the order the batch class returns
- One result entry per item: {key, status: ok|error, error?, warnings?}
- Unresolved optional links are warnings; the item is still "ok"
- The journal (SyncRun + SyncRunItem) is written after the batch in its own
  commit; journal failures are logged and never change the response
- An unexpected failure outside item processing rolls back the whole batch

Called by: routers/erp.py
Depends on: models (SyncRun, SyncRunItem), services/errors
"""

import logging
import time

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload

from ..database import utcnow
from ..models import SyncRun, SyncRunItem
from ..utils import iso
from .errors import CatalogError, NotFoundError

log = logging.getLogger("catalog.sync")

ENTITIES = (
    "NOMENCLATURE",
    "STOCK",
    "WAREHOUSES",
    "COUNTERPARTIES",
    "AGREEMENTS",
    "SPECIAL_PRICES",
    "PRODUCT_PRICES",
)


class ItemOutcome:
    """Collects warnings raised while one item is applied."""

    def __init__(self, entity: str, key: str):
        self.entity = entity
        self.key = key
        self.warnings: list[str] = []

    def warn(self, message: str) -> None:
        log.warning("%s %s: %s", self.entity, self.key, message)
        self.warnings.append(message)


class SyncBatch:
    """Base class for one kind of ingestion batch.

    Subclasses set ``entity`` and ``noun`` and implement ``key`` and
    ``apply``. ``order`` may reorder items before processing.
    """

    entity = ""
    noun = "item"

    def __init__(self, db: Session):
        self.db = db

    def order(self, items: list) -> list:
        return list(items)

    def key(self, item) -> str:
        return item.guid

    def apply(self, item, outcome: ItemOutcome) -> None:
        raise NotImplementedError


def _item_error(batch: SyncBatch, key: str, exc: Exception) -> str:
    if isinstance(exc, CatalogError):
        log.warning("%s %s rejected: %s", batch.entity, key, exc)
        return exc.message
    if isinstance(exc, IntegrityError):
        log.error("%s %s hit a storage conflict: %s", batch.entity, key, exc.orig)
        return f"Conflicting {batch.noun} already exists"
    log.exception("Failed to upsert %s %s", batch.noun, key)
    return f"Failed to upsert {batch.noun}"


def run_batch(db: Session, batch: SyncBatch, items: list, request_id: str = "") -> dict:
    """Apply every item of ``items`` and return the batch response body."""
    started = utcnow()
    t0 = time.monotonic()
    results: list[dict] = []

    try:
        for item in batch.order(items):
            key = batch.key(item)
            outcome = ItemOutcome(batch.entity, key)
            savepoint = db.begin_nested()
            try:
                batch.apply(item, outcome)
                savepoint.commit()
                entry = {"key": key, "status": "ok"}
            except Exception as exc:
                savepoint.rollback()
                entry = {"key": key, "status": "error", "error": _item_error(batch, key, exc)}
            if outcome.warnings:
                entry["warnings"] = outcome.warnings
            results.append(entry)
        db.commit()
    except Exception as exc:
        db.rollback()
        log.exception("%s batch aborted", batch.entity)
        _record_run(db, batch.entity, started, results, request_id, error=str(exc))
        raise

    db.expire_all()
    errors = sum(1 for r in results if r["status"] == "error")
    log.info(
        "%s batch: %d items, %d ok, %d errors in %.2fs",
        batch.entity,
        len(results),
        len(results) - errors,
        errors,
        time.monotonic() - t0,
    )
    _record_run(db, batch.entity, started, results, request_id)
    return {"success": True, "count": len(results), "results": results}


# ── Journal ─────────────────────────────────────────────────────────────


def run_status(total: int, errors: int, crashed: bool = False) -> str:
    if crashed:
        return "FAILED"
    if errors == 0:
        return "COMPLETED"
    if errors >= total:
        return "FAILED"
    return "PARTIAL"


def _record_run(
    db: Session,
    entity: str,
    started,
    results: list[dict],
    request_id: str,
    error: str | None = None,
) -> None:
    finished = utcnow()
    errors = sum(1 for r in results if r["status"] == "error")
    try:
        run = SyncRun(
            entity=entity,
            direction="IMPORT",
            status=run_status(len(results), errors, crashed=error is not None),
            request_id=request_id or None,
            started_at=started,
            finished_at=finished,
            duration_seconds=round((finished - started).total_seconds(), 3),
            total=len(results),
            ok_count=len(results) - errors,
            error_count=errors,
            error=error,
        )
        run.items = [
            SyncRunItem(
                key=r["key"],
                status=r["status"],
                error=r.get("error"),
                warnings=r.get("warnings"),
            )
            for r in results
        ]
        db.add(run)
        db.commit()
    except Exception:
        log.exception("Failed to write sync run for %s", entity)
        db.rollback()


def serialize_run(run: SyncRun) -> dict:
    return {
        "id": run.id,
        "entity": run.entity,
        "direction": run.direction,
        "status": run.status,
        "requestId": run.request_id,
        "startedAt": iso(run.started_at),
        "finishedAt": iso(run.finished_at),
        "durationSeconds": run.duration_seconds,
        "total": run.total,
        "okCount": run.ok_count,
        "errorCount": run.error_count,
        "error": run.error,
    }


def list_runs(db: Session, entity: str | None = None, limit: int = 20) -> list[dict]:
    q = select(SyncRun).order_by(SyncRun.started_at.desc(), SyncRun.id.desc()).limit(limit)
    if entity:
        q = q.where(SyncRun.entity == entity)
    return [serialize_run(r) for r in db.execute(q).scalars()]


def get_run(db: Session, run_id: int, include_items: bool = False, items_limit: int = 200) -> dict:
    run = db.execute(
        select(SyncRun).options(selectinload(SyncRun.items)).where(SyncRun.id == run_id)
    ).scalar_one_or_none()
    if not run:
        raise NotFoundError(f"Sync run {run_id} not found")
    data = serialize_run(run)
    if include_items:
        data["items"] = [
            {
                "key": i.key,
                "status": i.status,
                "error": i.error,
                "warnings": i.warnings or [],
            }
            for i in run.items[:items_limit]
        ]
    return data
