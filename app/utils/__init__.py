"""Shared utility helpers used across services and routers."""

from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation


def to_decimal(v, default=None):
    """Convert a JSON number to Decimal without float artefacts; None passes through."""
    if v is None:
        return default
    if isinstance(v, Decimal):
        return v
    try:
        return Decimal(str(v))
    except (InvalidOperation, ValueError, TypeError):
        return default


def decimal_to_float(v):
    """Render a Numeric column value for JSON output."""
    if v is None:
        return None
    return float(v)


def as_utc(dt: datetime | None) -> datetime | None:
    """Treat naive datetimes as UTC and convert aware ones to UTC."""
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def iso(dt: datetime | None) -> str | None:
    return as_utc(dt).isoformat() if dt else None
