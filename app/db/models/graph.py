# app/db/models/graph.py
"""Knowledge-graph rows derived from chunks by the document processor"""
from sqlalchemy import Column, String, DateTime, ForeignKey, Text
from sqlalchemy.dialects.postgresql import JSONB, UUID
import uuid
from datetime import datetime

from app.db.base import Base


class Entity(Base):
    __tablename__ = "entities"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(UUID(as_uuid=True), nullable=False, index=True)
    name = Column(String(500), nullable=False)
    entity_type = Column(String(100))
    description = Column(Text)
    # Array of chunk id strings the entity was extracted from
    source_chunk_ids = Column(JSONB, nullable=False, default=list)
    created_at = Column(DateTime, default=datetime.utcnow)


class Relation(Base):
    __tablename__ = "relations"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(UUID(as_uuid=True), nullable=False, index=True)
    source_entity_id = Column(UUID(as_uuid=True), ForeignKey("entities.id", ondelete="CASCADE"), nullable=False)
    target_entity_id = Column(UUID(as_uuid=True), ForeignKey("entities.id", ondelete="CASCADE"), nullable=False)
    relation_type = Column(String(100))
    description = Column(Text)
    source_chunk_ids = Column(JSONB, nullable=False, default=list)
    created_at = Column(DateTime, default=datetime.utcnow)
