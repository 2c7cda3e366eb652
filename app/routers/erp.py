"""
routers/erp.py — ERP ingestion batches and the sync-run journal

One POST endpoint per entity kind. Each takes {secret, items} and answers
{success, count, results}. The shared secret is checked before the body is
validated and before any storage access.

Business Rules:
- 401 on secret mismatch, nothing written
- 400 on malformed body, nothing written
- Per-item failures are reported in results; the batch still commits
- Sync runs are listed newest first (limit 1..100)

Called by: main.py (router mount)
Depends on: dependencies, schemas/erp, services/*_sync, services/sync_service
"""

from fastapi import APIRouter, Depends, Query, Request
from loguru import logger
from sqlalchemy.orm import Session

from ..config import settings
from ..database import get_db
from ..dependencies import require_erp_query_secret, require_erp_secret
from ..schemas.erp import (
    AgreementBatchIn,
    BatchResult,
    CounterpartyBatchIn,
    NomenclatureBatchIn,
    ProductPriceBatchIn,
    SpecialPriceBatchIn,
    StockBatchIn,
    WarehouseBatchIn,
)
from ..services.catalog_sync_service import AgreementBatch, CounterpartyBatch, WarehouseBatch
from ..services.nomenclature_service import NomenclatureBatch
from ..services.pricing_sync_service import ProductPriceBatch, SpecialPriceBatch
from ..services.stock_service import StockBatch
from ..services.sync_service import ENTITIES, get_run, list_runs, run_batch

router = APIRouter(prefix="/api/erp", tags=["erp"])

_batch = dict(
    response_model=BatchResult,
    response_model_exclude_none=True,
    dependencies=[Depends(require_erp_secret)],
)


def _run(request: Request, db: Session, batch_cls, items) -> dict:
    request_id = getattr(request.state, "request_id", "")
    logger.info("{} batch received: {} items", batch_cls.entity, len(items))
    return run_batch(db, batch_cls(db), items, request_id=request_id)


@router.post("/nomenclature/batch", **_batch)
async def nomenclature_batch(request: Request, body: NomenclatureBatchIn, db: Session = Depends(get_db)):
    return _run(request, db, NomenclatureBatch, body.items)


@router.post("/stock/batch", **_batch)
async def stock_batch(request: Request, body: StockBatchIn, db: Session = Depends(get_db)):
    return _run(request, db, StockBatch, body.items)


@router.post("/warehouses/batch", **_batch)
async def warehouses_batch(request: Request, body: WarehouseBatchIn, db: Session = Depends(get_db)):
    return _run(request, db, WarehouseBatch, body.items)


@router.post("/counterparties/batch", **_batch)
async def counterparties_batch(request: Request, body: CounterpartyBatchIn, db: Session = Depends(get_db)):
    return _run(request, db, CounterpartyBatch, body.items)


@router.post("/agreements/batch", **_batch)
async def agreements_batch(request: Request, body: AgreementBatchIn, db: Session = Depends(get_db)):
    return _run(request, db, AgreementBatch, body.items)


@router.post("/special-prices/batch", **_batch)
async def special_prices_batch(request: Request, body: SpecialPriceBatchIn, db: Session = Depends(get_db)):
    return _run(request, db, SpecialPriceBatch, body.items)


@router.post("/product-prices/batch", **_batch)
async def product_prices_batch(request: Request, body: ProductPriceBatchIn, db: Session = Depends(get_db)):
    return _run(request, db, ProductPriceBatch, body.items)


# ── Sync journal ─────────────────────────────────────────────────────


@router.get("/sync/runs", dependencies=[Depends(require_erp_query_secret)])
async def sync_runs(
    entity: str | None = Query(None, pattern="^(" + "|".join(ENTITIES) + ")$"),
    limit: int = Query(20, ge=1, le=100),
    db: Session = Depends(get_db),
):
    runs = list_runs(db, entity, limit)
    return {"success": True, "count": len(runs), "runs": runs}


@router.get("/sync/runs/{run_id}", dependencies=[Depends(require_erp_query_secret)])
async def sync_run_detail(
    run_id: int,
    include_items: bool = Query(False, alias="includeItems"),
    items_limit: int | None = Query(None, alias="itemsLimit", ge=1, le=1000),
    db: Session = Depends(get_db),
):
    limit = items_limit or settings.sync_run_items_limit
    return {"success": True, "run": get_run(db, run_id, include_items, limit)}
