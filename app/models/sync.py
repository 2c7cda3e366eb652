"""Sync models — ERP ingestion run journal."""

from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, Float, ForeignKey, Index, Integer, JSON, String, Text
from sqlalchemy.orm import relationship

from ..database import UTCDateTime
from .base import Base


class SyncRun(Base):
    """Log of each ingestion batch."""

    __tablename__ = "sync_runs"
    id = Column(Integer, primary_key=True)
    entity = Column(String(50), nullable=False)
    direction = Column(String(20), nullable=False, default="IMPORT")
    status = Column(String(20), nullable=False)
    request_id = Column(String(50))
    started_at = Column(UTCDateTime, nullable=False)
    finished_at = Column(UTCDateTime)
    duration_seconds = Column(Float)
    total = Column(Integer, nullable=False, default=0)
    ok_count = Column(Integer, nullable=False, default=0)
    error_count = Column(Integer, nullable=False, default=0)
    error = Column(Text)
    created_at = Column(DateTime, default=lambda: datetime.now(timezone.utc))

    items = relationship(
        "SyncRunItem",
        back_populates="run",
        cascade="all, delete-orphan",
        order_by="SyncRunItem.id",
    )

    __table_args__ = (Index("ix_sync_runs_entity_time", "entity", "started_at"),)


class SyncRunItem(Base):
    __tablename__ = "sync_run_items"
    id = Column(Integer, primary_key=True)
    run_id = Column(Integer, ForeignKey("sync_runs.id", ondelete="CASCADE"), nullable=False)
    key = Column(String(255), nullable=False)
    status = Column(String(20), nullable=False)
    error = Column(Text)
    warnings = Column(JSON)

    run = relationship("SyncRun", back_populates="items")

    __table_args__ = (Index("ix_sync_run_items_run", "run_id"),)
