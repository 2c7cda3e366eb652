"""Inventory models — Warehouse and StockBalance."""

from datetime import datetime, timezone

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship

from ..database import UTCDateTime
from .base import Base


class Warehouse(Base):
    __tablename__ = "warehouses"
    id = Column(Integer, primary_key=True)
    guid = Column(String(64), nullable=False, unique=True, index=True)
    name = Column(String(500), nullable=False)
    code = Column(String(100))
    is_active = Column(Boolean, nullable=False, default=True)
    is_default = Column(Boolean, nullable=False, default=False)
    is_pickup = Column(Boolean, nullable=False, default=False)
    address = Column(Text)
    created_at = Column(DateTime, default=lambda: datetime.now(timezone.utc))

    stocks = relationship("StockBalance", back_populates="warehouse")


class StockBalance(Base):
    """One row per (product, warehouse); last write wins."""

    __tablename__ = "stock_balances"
    id = Column(Integer, primary_key=True)
    product_id = Column(
        Integer, ForeignKey("products.id", ondelete="CASCADE"), nullable=False
    )
    warehouse_id = Column(
        Integer, ForeignKey("warehouses.id", ondelete="CASCADE"), nullable=False
    )
    quantity = Column(Numeric(18, 3), nullable=False, default=0)
    reserved = Column(Numeric(18, 3), nullable=False, default=0)
    updated_at = Column(UTCDateTime, nullable=False)

    product = relationship("Product", back_populates="stocks")
    warehouse = relationship("Warehouse", back_populates="stocks")

    __table_args__ = (
        UniqueConstraint("product_id", "warehouse_id", name="uq_stock_product_warehouse"),
    )
