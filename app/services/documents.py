# app/services/documents.py
"""Document listing, metadata updates and deletion"""
import logging
import math
from typing import Any, Dict, Optional
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from app.api.dependencies import Session
from app.core.exceptions import BadRequestException, DatabaseException, NotFoundException, StorageError
from app.crud import crud_document
from app.db.models.document import Document
from app.observability.context import document_id_ctx
from app.observability.metrics import inc_counter
from app.schemas.document import (
    DocumentDeleteResponse,
    DocumentList,
    DocumentResponse,
    DocumentUpdate,
    Pagination,
)
from app.services.storage import ObjectStorage
from app.services.usage import usage_service

logger = logging.getLogger(__name__)

STORAGE_CLEANUP_WARNING = (
    "Document record deleted but file cleanup failed. The file may remain in storage."
)


async def list_documents(
        db: AsyncSession,
        *,
        session: Session,
        page: int = 1,
        limit: int = 50,
        status: Optional[str] = None,
        workspace: Optional[str] = None
) -> DocumentList:
    documents, total = await crud_document.list_user_documents(
        db,
        user_id=session.user_id,
        skip=(page - 1) * limit,
        limit=limit,
        status=status,
        workspace=workspace,
    )
    logger.debug(f"Listed {len(documents)}/{total} documents (page {page})")
    return DocumentList(
        documents=[DocumentResponse.model_validate(d) for d in documents],
        pagination=Pagination(
            page=page,
            limit=limit,
            total=total,
            totalPages=math.ceil(total / limit) if total else 0,
        ),
    )


async def get_owned_document(db: AsyncSession, *, session: Session, document_id: UUID) -> Document:
    document = await crud_document.get_user_document(
        db, document_id=document_id, user_id=session.user_id
    )
    if not document:
        raise NotFoundException("Document not found")
    return document


def merge_metadata(existing: Optional[Dict[str, Any]], update: DocumentUpdate) -> Dict[str, Any]:
    """
    Apply a PATCH body to stored metadata.
    Empty or null description/category/tags remove the key, a scalar tag
    becomes a one-element list, customMetadata merges with null removing keys.
    """
    provided = update.model_fields_set
    metadata = dict(existing or {})

    if "description" in provided:
        if update.description:
            metadata["description"] = update.description
        else:
            metadata.pop("description", None)

    if "tags" in provided:
        tags = update.tags
        if tags is None or tags == [] or tags == "":
            metadata.pop("tags", None)
        else:
            metadata["tags"] = tags if isinstance(tags, list) else [tags]

    if "category" in provided:
        if update.category:
            metadata["category"] = update.category
        else:
            metadata.pop("category", None)

    if "customMetadata" in provided and update.customMetadata is not None:
        for key, value in update.customMetadata.items():
            if value is None:
                metadata.pop(key, None)
            else:
                metadata[key] = value

    return metadata


async def update_document(
        db: AsyncSession,
        *,
        session: Session,
        update: DocumentUpdate
) -> Document:
    provided = update.model_fields_set
    new_name = update.file_name.strip() if update.file_name and update.file_name.strip() else None
    metadata_fields = {"description", "tags", "category", "customMetadata"} & provided

    if not new_name and not metadata_fields:
        raise BadRequestException(
            "At least one field to update is required "
            "(file_name, description, tags, category, or customMetadata)"
        )

    document = await get_owned_document(db, session=session, document_id=update.id)
    metadata = merge_metadata(document.metadata_, update) if metadata_fields else None

    try:
        document = await crud_document.update_fields(
            db, document=document, file_name=new_name, metadata=metadata
        )
    except Exception as e:
        logger.error(f"❌ Failed to update document {update.id}: {e}")
        raise DatabaseException("Failed to update document")

    logger.info(f"✏️ Document updated: {document.id}")
    return document


async def delete_document(
        db: AsyncSession,
        *,
        session: Session,
        document_id: UUID,
        storage: ObjectStorage
) -> DocumentDeleteResponse:
    """
    Delete a document, its chunks and the graph rows built from them.
    Usage is decremented only after the database deletion commits; the
    stored object is removed last and a failure there is only a warning.
    """
    document_id_ctx.set(str(document_id))
    document = await get_owned_document(db, session=session, document_id=document_id)

    # Keep what is needed after the row is gone
    file_path = document.file_path
    file_size = document.file_size or 0
    usage_recorded = bool(document.usage_recorded)
    organization_id = document.organization_id

    chunk_ids = await crud_document.get_chunk_ids(db, document_id=document_id)
    logger.info(f"🗑️ Deleting document {document_id} with {len(chunk_ids)} chunks")

    try:
        counts = await crud_document.delete_with_graph(db, document=document, chunk_ids=chunk_ids)
    except Exception as e:
        logger.error(f"❌ Failed to delete document {document_id}: {e}", exc_info=True)
        raise DatabaseException("Failed to delete document")

    logger.info(
        f"✅ Document {document_id} deleted: "
        f"{counts['entities']} entities, {counts['relations']} relations"
    )

    if usage_recorded:
        try:
            await usage_service.decrement(db, organization_id, "documents", 1)
            if file_size:
                await usage_service.decrement(db, organization_id, "storage", file_size)
        except Exception as e:
            await db.rollback()
            logger.error(f"❌ Failed to decrement usage for {document_id}: {e}", exc_info=True)

    warning = None
    if file_path:
        try:
            await storage.remove([file_path])
        except StorageError as e:
            logger.error(f"❌ Storage delete error for {file_path}: {e}")
            warning = STORAGE_CLEANUP_WARNING

    inc_counter("documents_deleted_total")
    return DocumentDeleteResponse(
        success=True,
        message="Document deleted successfully",
        entitiesDeleted=counts["entities"],
        relationsDeleted=counts["relations"],
        warning=warning,
    )
