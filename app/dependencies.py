"""
dependencies.py — Shared FastAPI Dependencies

ERP endpoints authenticate with a shared secret carried in the request
itself: inside the JSON body for batches, as a query parameter for the
sync-run journal.

Business Rules:
- The secret is compared in constant time (hmac.compare_digest)
- An empty configured secret rejects every request
- require_erp_secret runs before body validation and before any storage
  access, so a mismatch answers 401 with zero writes
- A body that is not a JSON object fails authentication, not validation

Called by: routers/erp.py
Depends on: config
"""

import hmac
import json

from fastapi import HTTPException, Query, Request
from loguru import logger

from .config import settings


def secret_matches(candidate) -> bool:
    expected = settings.erp_shared_secret
    if not expected or not isinstance(candidate, str):
        return False
    return hmac.compare_digest(candidate.encode("utf-8"), expected.encode("utf-8"))


async def require_erp_secret(request: Request) -> None:
    """Dependency: raises 401 unless the batch body carries the shared secret."""
    try:
        body = await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError):
        body = None
    candidate = body.get("secret") if isinstance(body, dict) else None
    if not secret_matches(candidate):
        logger.warning("ERP request rejected: bad secret on {}", request.url.path)
        raise HTTPException(401, "Unauthorized")


def require_erp_query_secret(secret: str = Query("", description="ERP shared secret")) -> None:
    """Dependency: same check for GET endpoints, secret passed as ?secret=."""
    if not secret_matches(secret):
        raise HTTPException(401, "Unauthorized")
