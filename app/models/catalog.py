"""Catalog models — ProductGroup, Unit, Product, ProductPackage.

Every row is keyed internally by an integer id and externally by the
ERP guid, which is the idempotency key for upserts. Group parents are
stored as id references (adjacency list), never as embedded objects.
"""

from datetime import datetime, timezone

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
)
from sqlalchemy.orm import relationship

from .base import Base


class ProductGroup(Base):
    __tablename__ = "product_groups"
    id = Column(Integer, primary_key=True)
    guid = Column(String(64), nullable=False, unique=True, index=True)
    name = Column(String(500), nullable=False)
    code = Column(String(100))
    is_active = Column(Boolean, nullable=False, default=True)
    # Unparented groups are valid; acyclicity is trusted to the ERP
    parent_id = Column(Integer, ForeignKey("product_groups.id", ondelete="SET NULL"))
    created_at = Column(DateTime, default=lambda: datetime.now(timezone.utc))

    parent = relationship("ProductGroup", remote_side=[id])
    products = relationship("Product", back_populates="group")


class Unit(Base):
    __tablename__ = "units"
    id = Column(Integer, primary_key=True)
    guid = Column(String(64), nullable=False, unique=True, index=True)
    name = Column(String(255), nullable=False)
    code = Column(String(50))
    symbol = Column(String(50))
    created_at = Column(DateTime, default=lambda: datetime.now(timezone.utc))


class Product(Base):
    __tablename__ = "products"
    id = Column(Integer, primary_key=True)
    guid = Column(String(64), nullable=False, unique=True, index=True)
    name = Column(String(1024), nullable=False)
    code = Column(String(100))
    article = Column(String(255))
    sku = Column(String(255))
    is_weight = Column(Boolean, nullable=False, default=False)
    is_service = Column(Boolean, nullable=False, default=False)
    is_active = Column(Boolean, nullable=False, default=True)
    group_id = Column(Integer, ForeignKey("product_groups.id", ondelete="SET NULL"))
    base_unit_id = Column(Integer, ForeignKey("units.id"), nullable=False)
    created_at = Column(DateTime, default=lambda: datetime.now(timezone.utc))

    group = relationship("ProductGroup", back_populates="products")
    base_unit = relationship("Unit")
    packages = relationship(
        "ProductPackage",
        back_populates="product",
        cascade="all, delete-orphan",
    )
    stocks = relationship("StockBalance", back_populates="product")

    __table_args__ = (Index("ix_products_group", "group_id"),)


class ProductPackage(Base):
    __tablename__ = "product_packages"
    id = Column(Integer, primary_key=True)
    # Optional: packages without a guid are matched on (product, unit, name)
    guid = Column(String(64), unique=True)
    product_id = Column(
        Integer, ForeignKey("products.id", ondelete="CASCADE"), nullable=False
    )
    unit_id = Column(Integer, ForeignKey("units.id"), nullable=False)
    name = Column(String(255), nullable=False)
    multiplier = Column(Numeric(18, 6), nullable=False, default=1)
    barcode = Column(String(100))
    is_default = Column(Boolean, nullable=False, default=False)
    sort_order = Column(Integer, nullable=False, default=0)

    product = relationship("Product", back_populates="packages")
    unit = relationship("Unit")

    __table_args__ = (
        Index(
            "uq_packages_guidless_product_unit_name",
            "product_id",
            "unit_id",
            "name",
            unique=True,
            postgresql_where=guid.is_(None),
            sqlite_where=guid.is_(None),
        ),
    )
