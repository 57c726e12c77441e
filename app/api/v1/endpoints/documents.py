"""
Document management endpoints
List, poll, rename/re-tag and delete the caller's documents
"""
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Optional
from uuid import UUID
import logging

from app.db.session import get_db
from app.api.dependencies import Session, get_current_session
from app.db.models.document import DocumentStatus
from app.core.exceptions import BadRequestException
from app.schemas import (
    DocumentDeleteResponse,
    DocumentList,
    DocumentResponse,
    DocumentUpdate,
    DocumentUpdateResponse,
)
from app.services import documents as documents_service
from app.services.storage import ObjectStorage, get_object_storage

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("", response_model=DocumentList)
async def list_documents(
        page: int = Query(1, ge=1),
        limit: int = Query(50, ge=1, le=100),
        status: Optional[str] = Query(None),
        workspace: Optional[str] = Query(None),
        db: AsyncSession = Depends(get_db),
        session: Session = Depends(get_current_session)
):
    """List the caller's documents, newest first"""
    if status and status not in DocumentStatus.ALL:
        raise BadRequestException(f"Unknown status: {status}")
    return await documents_service.list_documents(
        db,
        session=session,
        page=page,
        limit=limit,
        status=status,
        workspace=workspace,
    )


@router.get("/{document_id}", response_model=DocumentResponse)
async def get_document(
        document_id: UUID,
        db: AsyncSession = Depends(get_db),
        session: Session = Depends(get_current_session)
):
    """Single document, used to poll processing status"""
    document = await documents_service.get_owned_document(
        db, session=session, document_id=document_id
    )
    return DocumentResponse.model_validate(document)


@router.patch("", response_model=DocumentUpdateResponse)
async def update_document(
        update: DocumentUpdate,
        db: AsyncSession = Depends(get_db),
        session: Session = Depends(get_current_session)
):
    """Rename a document or update its metadata"""
    document = await documents_service.update_document(db, session=session, update=update)
    return DocumentUpdateResponse(success=True, document=DocumentResponse.model_validate(document))


@router.delete("", response_model=DocumentDeleteResponse, response_model_exclude_none=True)
async def delete_document(
        id: Optional[UUID] = Query(None),
        db: AsyncSession = Depends(get_db),
        session: Session = Depends(get_current_session),
        storage: ObjectStorage = Depends(get_object_storage)
):
    """
    Delete a document with its chunks, derived entities and relations.
    Storage cleanup failures come back as a warning, not an error.
    """
    if id is None:
        raise BadRequestException("Document ID is required")
    return await documents_service.delete_document(
        db, session=session, document_id=id, storage=storage
    )
