"""Pricing models — PriceType, ClientContract, ClientAgreement, SpecialPrice, ProductPrice.

Price rows are identified by a guid when the ERP sends one, otherwise by a
composite scope key. ``scope_key`` holds that key with every empty scope
component replaced by a fixed sentinel, so rows without a counterparty,
agreement, price type or start date still collide on the unique index.
"""

from datetime import datetime, timezone

from sqlalchemy import (
    Boolean,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
)
from sqlalchemy.orm import relationship

from ..database import UTCDateTime
from .base import Base


class PriceType(Base):
    __tablename__ = "price_types"
    id = Column(Integer, primary_key=True)
    guid = Column(String(64), nullable=False, unique=True, index=True)
    name = Column(String(255), nullable=False)
    code = Column(String(100))
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, default=lambda: datetime.now(timezone.utc))


class ClientContract(Base):
    __tablename__ = "client_contracts"
    id = Column(Integer, primary_key=True)
    guid = Column(String(64), nullable=False, unique=True, index=True)
    counterparty_id = Column(
        Integer, ForeignKey("counterparties.id", ondelete="CASCADE"), nullable=False
    )
    number = Column(String(100))
    date = Column(Date)
    valid_from = Column(Date)
    valid_to = Column(Date)
    is_active = Column(Boolean, nullable=False, default=True)
    comment = Column(Text)

    counterparty = relationship("Counterparty")


class ClientAgreement(Base):
    __tablename__ = "client_agreements"
    id = Column(Integer, primary_key=True)
    guid = Column(String(64), nullable=False, unique=True, index=True)
    name = Column(String(500), nullable=False)
    counterparty_id = Column(
        Integer, ForeignKey("counterparties.id", ondelete="CASCADE"), nullable=False
    )
    contract_id = Column(Integer, ForeignKey("client_contracts.id", ondelete="SET NULL"))
    price_type_id = Column(Integer, ForeignKey("price_types.id", ondelete="SET NULL"))
    warehouse_id = Column(Integer, ForeignKey("warehouses.id", ondelete="SET NULL"))
    currency = Column(String(10))
    is_active = Column(Boolean, nullable=False, default=True)

    counterparty = relationship("Counterparty")
    contract = relationship("ClientContract")
    price_type = relationship("PriceType")
    warehouse = relationship("Warehouse")


class SpecialPrice(Base):
    __tablename__ = "special_prices"
    id = Column(Integer, primary_key=True)
    guid = Column(String(64), unique=True)
    scope_key = Column(String(255), nullable=False, unique=True)
    product_id = Column(
        Integer, ForeignKey("products.id", ondelete="CASCADE"), nullable=False
    )
    counterparty_id = Column(Integer, ForeignKey("counterparties.id", ondelete="CASCADE"))
    agreement_id = Column(Integer, ForeignKey("client_agreements.id", ondelete="CASCADE"))
    price_type_id = Column(Integer, ForeignKey("price_types.id", ondelete="CASCADE"))
    price = Column(Numeric(18, 4), nullable=False)
    currency = Column(String(10))
    start_date = Column(UTCDateTime)
    end_date = Column(UTCDateTime)
    min_qty = Column(Numeric(18, 3))
    is_active = Column(Boolean, nullable=False, default=True)

    product = relationship("Product")

    __table_args__ = (Index("ix_special_prices_product_active", "product_id", "is_active"),)


class ProductPrice(Base):
    """Base price list entry, used when no special price applies."""

    __tablename__ = "product_prices"
    id = Column(Integer, primary_key=True)
    guid = Column(String(64), unique=True)
    scope_key = Column(String(255), nullable=False, unique=True)
    product_id = Column(
        Integer, ForeignKey("products.id", ondelete="CASCADE"), nullable=False
    )
    price_type_id = Column(Integer, ForeignKey("price_types.id", ondelete="CASCADE"))
    price = Column(Numeric(18, 4), nullable=False)
    currency = Column(String(10))
    start_date = Column(UTCDateTime)
    end_date = Column(UTCDateTime)
    min_qty = Column(Numeric(18, 3))
    is_active = Column(Boolean, nullable=False, default=True)

    product = relationship("Product")

    __table_args__ = (Index("ix_product_prices_product_active", "product_id", "is_active"),)
