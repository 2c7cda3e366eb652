"""Counterparty models — Counterparty and DeliveryAddress."""

from datetime import datetime, timezone

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import relationship

from .base import Base


class Counterparty(Base):
    __tablename__ = "counterparties"
    id = Column(Integer, primary_key=True)
    guid = Column(String(64), nullable=False, unique=True, index=True)
    name = Column(String(500), nullable=False)
    legal_name = Column(String(1000))
    inn = Column(String(20))
    kpp = Column(String(20))
    phone = Column(String(100))
    email = Column(String(255))
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, default=lambda: datetime.now(timezone.utc))

    addresses = relationship(
        "DeliveryAddress", back_populates="counterparty", cascade="all, delete-orphan"
    )


class DeliveryAddress(Base):
    __tablename__ = "delivery_addresses"
    id = Column(Integer, primary_key=True)
    # Optional: addresses without a guid are matched on (counterparty, full_address)
    guid = Column(String(64), unique=True)
    counterparty_id = Column(
        Integer, ForeignKey("counterparties.id", ondelete="CASCADE"), nullable=False
    )
    name = Column(String(255))
    full_address = Column(Text, nullable=False)
    city = Column(String(255))
    street = Column(String(255))
    house = Column(String(50))
    building = Column(String(50))
    apartment = Column(String(50))
    postcode = Column(String(20))
    is_default = Column(Boolean, nullable=False, default=False)
    is_active = Column(Boolean, nullable=False, default=True)

    counterparty = relationship("Counterparty", back_populates="addresses")

    __table_args__ = (
        Index("ix_addresses_counterparty", "counterparty_id"),
        Index(
            "uq_addresses_guidless_counterparty_address",
            "counterparty_id",
            "full_address",
            unique=True,
            postgresql_where=guid.is_(None),
            sqlite_where=guid.is_(None),
        ),
    )
