# app/db/models/document.py
from sqlalchemy import (
    BigInteger, Boolean, Column, DateTime, ForeignKey, Integer, String, Text, UniqueConstraint
)
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import relationship
import uuid
from datetime import datetime

from app.db.base import Base


class DocumentStatus:
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    PROCESSED = "processed"
    FAILED = "failed"

    ALL = (PENDING, PROCESSING, COMPLETED, PROCESSED, FAILED)
    TERMINAL = (COMPLETED, PROCESSED, FAILED)


class Document(Base):
    __tablename__ = "documents"
    __table_args__ = (
        UniqueConstraint("user_id", "idempotency_key", name="uq_documents_user_idempotency_key"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(UUID(as_uuid=True), nullable=False, index=True)
    organization_id = Column(UUID(as_uuid=True), nullable=False, index=True)
    workspace = Column(String(100), nullable=False, default="default")

    file_name = Column(String(255), nullable=False)
    file_type = Column(String(20), nullable=False)  # pdf, docx, mp4, jpg, ...
    file_size = Column(BigInteger, nullable=False)  # in bytes
    file_path = Column(String(500), nullable=False)  # object-store key

    status = Column(String(20), nullable=False, default=DocumentStatus.PENDING, index=True)
    error_message = Column(Text)
    chunks_count = Column(Integer, default=0)

    # System + user supplied fields
    metadata_ = Column("metadata", JSONB, nullable=False, default=dict)

    idempotency_key = Column(String(255))
    usage_recorded = Column(Boolean, nullable=False, default=False)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    # Relationships
    chunks = relationship(
        "Chunk",
        back_populates="document",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
    processing_job = relationship(
        "ProcessingJob",
        back_populates="document",
        uselist=False,
        cascade="all, delete-orphan",
        passive_deletes=True,
    )


class Chunk(Base):
    __tablename__ = "chunks"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    document_id = Column(
        UUID(as_uuid=True),
        ForeignKey("documents.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    user_id = Column(UUID(as_uuid=True), nullable=False, index=True)
    content = Column(Text, nullable=False)
    chunk_index = Column(Integer, nullable=False, default=0)
    chunk_type = Column(String(20), default="text")
    created_at = Column(DateTime, default=datetime.utcnow)

    document = relationship("Document", back_populates="chunks")
