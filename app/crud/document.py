# app/crud/document.py
"""CRUD operations for documents and their derived rows"""
from typing import Any, Dict, List, Optional, Tuple
from uuid import UUID
from datetime import datetime
from sqlalchemy import select, and_, delete, func, or_
from sqlalchemy.dialects.postgresql import array
from sqlalchemy.ext.asyncio import AsyncSession

from app.crud.base import CRUDBase
from app.db.models.document import Document, Chunk, DocumentStatus
from app.db.models.graph import Entity, Relation
from app.db.models.processing_job import ProcessingJob, JobStatus


class CRUDDocument(CRUDBase[Document, dict, dict]):
    """CRUD operations for Document model"""

    async def create_with_job(
            self,
            db: AsyncSession,
            *,
            document_id: UUID,
            user_id: UUID,
            organization_id: UUID,
            workspace: str,
            file_name: str,
            file_type: str,
            file_size: int,
            file_path: str,
            metadata: Dict[str, Any],
            idempotency_key: Optional[str] = None,
            enqueue: bool = False
    ) -> Tuple[Document, Optional[ProcessingJob]]:
        """Insert a pending document and, when requested, its queued job in one commit"""
        db_obj = Document(
            id=document_id,
            user_id=user_id,
            organization_id=organization_id,
            workspace=workspace,
            file_name=file_name,
            file_type=file_type,
            file_size=file_size,
            file_path=file_path,
            status=DocumentStatus.PENDING,
            metadata_=metadata,
            idempotency_key=idempotency_key,
        )
        db.add(db_obj)

        job = None
        if enqueue:
            job = ProcessingJob(
                document_id=document_id,
                status=JobStatus.QUEUED,
                storage_path=file_path,
                file_type=file_type,
                workspace=workspace,
            )
            db.add(job)

        try:
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        await db.refresh(db_obj)
        return db_obj, job

    async def get_user_document(
            self,
            db: AsyncSession,
            *,
            document_id: UUID,
            user_id: UUID
    ) -> Optional[Document]:
        """Get a specific document for a user"""
        query = select(Document).where(
            and_(
                Document.id == document_id,
                Document.user_id == user_id
            )
        )
        result = await db.execute(query)
        return result.scalar_one_or_none()

    async def get_by_idempotency_key(
            self,
            db: AsyncSession,
            *,
            user_id: UUID,
            idempotency_key: str
    ) -> Optional[Document]:
        query = select(Document).where(
            and_(
                Document.user_id == user_id,
                Document.idempotency_key == idempotency_key
            )
        )
        result = await db.execute(query)
        return result.scalar_one_or_none()

    async def list_user_documents(
            self,
            db: AsyncSession,
            *,
            user_id: UUID,
            skip: int = 0,
            limit: int = 20,
            status: Optional[str] = None,
            workspace: Optional[str] = None
    ) -> Tuple[List[Document], int]:
        """Page of a user's documents, newest first, plus the unpaged total"""
        conditions = [Document.user_id == user_id]
        if status:
            conditions.append(Document.status == status)
        if workspace:
            conditions.append(Document.workspace == workspace)

        total = await db.scalar(
            select(func.count()).select_from(Document).where(and_(*conditions))
        )
        query = (
            select(Document)
            .where(and_(*conditions))
            .order_by(Document.created_at.desc())
            .offset(skip)
            .limit(limit)
        )
        result = await db.execute(query)
        return result.scalars().all(), int(total or 0)

    async def update_fields(
            self,
            db: AsyncSession,
            *,
            document: Document,
            file_name: Optional[str] = None,
            metadata: Optional[Dict[str, Any]] = None
    ) -> Document:
        if file_name is not None:
            document.file_name = file_name
        if metadata is not None:
            document.metadata_ = metadata
        document.updated_at = datetime.utcnow()
        await db.commit()
        await db.refresh(document)
        return document

    async def get_chunk_ids(
            self,
            db: AsyncSession,
            *,
            document_id: UUID
    ) -> List[UUID]:
        result = await db.execute(
            select(Chunk.id).where(Chunk.document_id == document_id)
        )
        return result.scalars().all()

    async def delete_with_graph(
            self,
            db: AsyncSession,
            *,
            document: Document,
            chunk_ids: List[UUID]
    ) -> Dict[str, int]:
        """
        Delete a document together with the graph rows built from its chunks.
        Chunks and the processing job go with the document via ON DELETE CASCADE.
        """
        counts = {"entities": 0, "relations": 0}
        try:
            if chunk_ids:
                refs = array([str(c) for c in chunk_ids])
                entity_ids = (
                    await db.execute(
                        select(Entity.id).where(
                            and_(
                                Entity.user_id == document.user_id,
                                Entity.source_chunk_ids.has_any(refs)
                            )
                        )
                    )
                ).scalars().all()

                relation_filter = Relation.source_chunk_ids.has_any(refs)
                if entity_ids:
                    relation_filter = or_(
                        relation_filter,
                        Relation.source_entity_id.in_(entity_ids),
                        Relation.target_entity_id.in_(entity_ids),
                    )
                relations = await db.execute(
                    delete(Relation).where(
                        and_(Relation.user_id == document.user_id, relation_filter)
                    )
                )
                counts["relations"] = relations.rowcount or 0

                if entity_ids:
                    entities = await db.execute(
                        delete(Entity).where(Entity.id.in_(entity_ids))
                    )
                    counts["entities"] = entities.rowcount or 0

            await db.execute(
                delete(Document).where(
                    and_(
                        Document.id == document.id,
                        Document.user_id == document.user_id
                    )
                )
            )
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        return counts

    async def update_processing_status(
            self,
            db: AsyncSession,
            *,
            document_id: UUID,
            status: str,
            error_message: Optional[str] = None,
            chunks_count: Optional[int] = None,
            keep_terminal: bool = False
    ) -> Optional[Document]:
        """Update document processing status"""
        document = await self.get(db, document_id)
        if not document:
            return None
        if keep_terminal and document.status in DocumentStatus.TERMINAL:
            return document
        document.status = status
        document.error_message = error_message
        if chunks_count is not None:
            document.chunks_count = chunks_count
        document.updated_at = datetime.utcnow()
        await db.commit()
        await db.refresh(document)
        return document

    async def usage_totals(
            self,
            db: AsyncSession,
            *,
            organization_id: UUID
    ) -> Tuple[int, int]:
        """Actual (document count, stored bytes) for an organization"""
        result = await db.execute(
            select(
                func.count(Document.id),
                func.coalesce(func.sum(Document.file_size), 0)
            ).where(Document.organization_id == organization_id)
        )
        count, total = result.one()
        return int(count or 0), int(total or 0)


# Create instance
crud_document = CRUDDocument(Document)
