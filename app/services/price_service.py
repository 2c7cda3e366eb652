"""
price_service.py — Effective price resolution

Picks the single price that applies to a product for an optional customer
context (counterparty, agreement, price type) at a point in time. Read
only: never writes, so repeated calls on unchanged data are identical.

Business Rules:
- Tiers, most specific first: AGREEMENT > COUNTERPARTY > PRICE_TYPE > GLOBAL
- A rule is valid when active and start_date <= at <= end_date (open ends allowed)
- A rule's agreement scope must equal the context agreement; rules scoped to
  any agreement are excluded when no agreement is given
- A rule's counterparty / price-type scope must be empty or equal the context
- The tier of a rule is the most specific scope it matches; the best tier wins
- Inside a tier the latest start_date wins (empty start = earliest), then the
  most recently inserted rule
- An agreement implies its counterparty and price type
- Special prices first; base product prices only when no special price matched
- Nothing valid → NoPriceFound

Called by: routers/catalog.py
Depends on: models (pricing, catalog, counterparties), services/errors
"""

import enum
import logging
from datetime import datetime, timezone

from sqlalchemy import select
from sqlalchemy.orm import Session

from ..models import ClientAgreement, Counterparty, PriceType, Product, ProductPrice, SpecialPrice
from ..utils import as_utc, decimal_to_float, iso
from .errors import InvalidContextError, NoPriceFound, NotFoundError

log = logging.getLogger("catalog.prices")

_EARLIEST = datetime.min.replace(tzinfo=timezone.utc)


class MatchLevel(enum.IntEnum):
    GLOBAL = 1
    PRICE_TYPE = 2
    COUNTERPARTY = 3
    AGREEMENT = 4


def is_valid_at(rule, at: datetime) -> bool:
    if not rule.is_active:
        return False
    start, end = as_utc(rule.start_date), as_utc(rule.end_date)
    if start is not None and start > at:
        return False
    if end is not None and end < at:
        return False
    return True


def is_eligible(rule, agreement_id, counterparty_id, price_type_id) -> bool:
    """Every scope the rule carries must match the context."""
    agreement_scope = getattr(rule, "agreement_id", None)
    counterparty_scope = getattr(rule, "counterparty_id", None)
    if agreement_scope is not None and agreement_scope != agreement_id:
        return False
    if counterparty_scope is not None and counterparty_scope != counterparty_id:
        return False
    if rule.price_type_id is not None and rule.price_type_id != price_type_id:
        return False
    return True


def match_level(rule, agreement_id, counterparty_id, price_type_id) -> MatchLevel:
    if agreement_id is not None and getattr(rule, "agreement_id", None) == agreement_id:
        return MatchLevel.AGREEMENT
    if counterparty_id is not None and getattr(rule, "counterparty_id", None) == counterparty_id:
        return MatchLevel.COUNTERPARTY
    if price_type_id is not None and rule.price_type_id == price_type_id:
        return MatchLevel.PRICE_TYPE
    return MatchLevel.GLOBAL


def pick_rule(rules, at: datetime, agreement_id=None, counterparty_id=None, price_type_id=None):
    """Return (rule, level) for the winning rule, or None."""
    ranked = [
        (match_level(r, agreement_id, counterparty_id, price_type_id), r)
        for r in rules
        if is_valid_at(r, at) and is_eligible(r, agreement_id, counterparty_id, price_type_id)
    ]
    if not ranked:
        return None
    level, rule = max(
        ranked,
        key=lambda pair: (pair[0], as_utc(pair[1].start_date) or _EARLIEST, pair[1].id or 0),
    )
    return rule, level


# ── Context resolution ──────────────────────────────────────────────────


def _load_active(db: Session, model, guid: str | None, label: str):
    if not guid:
        return None
    entity = db.execute(select(model).where(model.guid == guid)).scalar_one_or_none()
    if entity is None:
        raise NotFoundError(f"{label} {guid} not found")
    if not entity.is_active:
        raise InvalidContextError(f"{label} {guid} is inactive")
    return entity


def resolve_effective_price(
    db: Session,
    product_guid: str,
    counterparty_guid: str | None = None,
    agreement_guid: str | None = None,
    price_type_guid: str | None = None,
    at: datetime | None = None,
) -> dict:
    at = as_utc(at) or datetime.now(timezone.utc)

    product = _load_active(db, Product, product_guid, "Product")
    counterparty = _load_active(db, Counterparty, counterparty_guid, "Counterparty")
    agreement = _load_active(db, ClientAgreement, agreement_guid, "Agreement")
    price_type = _load_active(db, PriceType, price_type_guid, "Price type")

    if agreement and counterparty and agreement.counterparty_id != counterparty.id:
        raise InvalidContextError(
            f"Agreement {agreement.guid} does not belong to counterparty {counterparty.guid}"
        )
    if agreement and price_type and agreement.price_type_id and agreement.price_type_id != price_type.id:
        raise InvalidContextError(
            f"Agreement {agreement.guid} does not use price type {price_type.guid}"
        )

    agreement_id = agreement.id if agreement else None
    counterparty_id = counterparty.id if counterparty else (agreement.counterparty_id if agreement else None)
    price_type_id = price_type.id if price_type else (agreement.price_type_id if agreement else None)

    context = {
        "at": at.isoformat(),
        "counterpartyGuid": counterparty.guid if counterparty else (
            agreement.counterparty.guid if agreement and agreement.counterparty else None
        ),
        "agreementGuid": agreement.guid if agreement else None,
        "priceTypeGuid": price_type.guid if price_type else (
            agreement.price_type.guid if agreement and agreement.price_type else None
        ),
    }

    special = db.execute(
        select(SpecialPrice).where(
            SpecialPrice.product_id == product.id, SpecialPrice.is_active.is_(True)
        )
    ).scalars().all()
    picked = pick_rule(special, at, agreement_id, counterparty_id, price_type_id)
    source, guid_field = "SPECIAL_PRICE", "specialPriceGuid"

    if picked is None:
        base = db.execute(
            select(ProductPrice).where(
                ProductPrice.product_id == product.id, ProductPrice.is_active.is_(True)
            )
        ).scalars().all()
        picked = pick_rule(base, at, price_type_id=price_type_id)
        source, guid_field = "PRODUCT_PRICE", "productPriceGuid"

    if picked is None:
        log.info("No price for product %s in context %s", product.guid, context)
        raise NoPriceFound()

    rule, level = picked
    return {
        "product": {"guid": product.guid, "name": product.name},
        "context": context,
        "match": {
            "source": source,
            "level": level.name,
            guid_field: rule.guid,
            "startDate": iso(rule.start_date),
            "endDate": iso(rule.end_date),
            "minQty": decimal_to_float(rule.min_qty),
        },
        "price": {"value": decimal_to_float(rule.price), "currency": rule.currency},
    }
