# app/db/models/__init__.py
"""Database models"""
from app.db.base import Base
from app.db.models.document import Document, Chunk, DocumentStatus
from app.db.models.graph import Entity, Relation
from app.db.models.processing_job import ProcessingJob, JobStatus
from app.db.models.usage import UsageRecord
from app.db.models.billing import Subscription, Invoice


# Export all models
__all__ = [
    "Base",
    "Document",
    "DocumentStatus",
    "Chunk",
    "Entity",
    "Relation",
    "ProcessingJob",
    "JobStatus",
    "UsageRecord",
    "Subscription",
    "Invoice",
]
