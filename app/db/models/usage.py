# app/db/models/usage.py
from sqlalchemy import BigInteger, Column, DateTime, Integer, UniqueConstraint
from sqlalchemy.dialects.postgresql import UUID
import uuid
from datetime import datetime

from app.db.base import Base


class UsageRecord(Base):
    """Per-organization counters for one calendar month"""
    __tablename__ = "usage_records"
    __table_args__ = (
        UniqueConstraint("organization_id", "period_start", name="uq_usage_records_org_period"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    organization_id = Column(UUID(as_uuid=True), nullable=False, index=True)
    period_start = Column(DateTime, nullable=False)
    period_end = Column(DateTime, nullable=False)

    documents_count = Column(Integer, nullable=False, default=0)
    queries_count = Column(Integer, nullable=False, default=0)
    pages_count = Column(Integer, nullable=False, default=0)
    storage_bytes = Column(BigInteger, nullable=False, default=0)
    audio_seconds_used = Column(Integer, nullable=False, default=0)
    video_seconds_used = Column(Integer, nullable=False, default=0)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
