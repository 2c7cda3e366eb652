"""
main.py — Catalog Sync Service entry point

Wires the FastAPI app: logging, startup migrations, request-ID middleware,
structured error handlers, rate limiting and the routers.

Business Rules:
- Every response carries an 8-char X-Request-ID plus security headers
- Validation errors → 400 with field details
- Catalog errors → their own status (404 / 400 / 422)
- Anything unexpected → 500 {"error": "Internal server error"}, no detail leaked

Called by: uvicorn (app.main:app)
Depends on: config, logging_config, startup, rate_limit, routers
"""

import time
import uuid
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from loguru import logger
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from starlette.exceptions import HTTPException as StarletteHTTPException

from .config import settings
from .logging_config import setup_logging
from .rate_limit import limiter
from .routers import catalog, erp
from .schemas.errors import ErrorResponse
from .services.errors import CatalogError
from .startup import run_startup_migrations


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging()
    run_startup_migrations()
    logger.info("Catalog sync service {} started", settings.app_version)
    yield
    logger.info("Catalog sync service stopped")


app = FastAPI(title="Catalog Sync", version=settings.app_version, lifespan=lifespan)
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)


# ── Middleware ───────────────────────────────────────────────────────

_SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "X-XSS-Protection": "1; mode=block",
    "Referrer-Policy": "strict-origin-when-cross-origin",
    "X-API-Version": "v1",
}


@app.middleware("http")
async def request_id_middleware(request: Request, call_next):
    request_id = uuid.uuid4().hex[:8]
    request.state.request_id = request_id
    t0 = time.monotonic()
    with logger.contextualize(request_id=request_id):
        response = await call_next(request)
        elapsed_ms = (time.monotonic() - t0) * 1000
        if request.url.path != "/health":
            logger.info(
                "{} {} → {} ({:.0f}ms)",
                request.method, request.url.path, response.status_code, elapsed_ms,
            )
    response.headers["X-Request-ID"] = request_id
    for name, value in _SECURITY_HEADERS.items():
        response.headers[name] = value
    return response


# ── Error handlers ───────────────────────────────────────────────────


def _error(request: Request, status_code: int, error: str, detail: list | None = None) -> JSONResponse:
    body = ErrorResponse(
        error=error,
        status_code=status_code,
        request_id=getattr(request.state, "request_id", ""),
        detail=detail,
    )
    return JSONResponse(status_code=status_code, content=body.model_dump(exclude_none=True))


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    detail = [
        {"loc": list(e.get("loc", ())), "msg": e.get("msg", ""), "type": e.get("type", "")}
        for e in exc.errors()
    ]
    logger.info("Validation error on {}: {} issue(s)", request.url.path, len(detail))
    return _error(request, 400, "Validation error", jsonable_encoder(detail))


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    return _error(request, exc.status_code, str(exc.detail))


@app.exception_handler(CatalogError)
async def catalog_error_handler(request: Request, exc: CatalogError):
    return _error(request, exc.status_code, exc.message)


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.opt(exception=exc).error("Unhandled error on {} {}", request.method, request.url.path)
    return _error(request, 500, "Internal server error")


# ── Routes ───────────────────────────────────────────────────────────

app.include_router(erp.router)
app.include_router(catalog.router)


@app.get("/health")
async def health():
    return {"status": "ok", "version": settings.app_version}
