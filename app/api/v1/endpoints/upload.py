"""
Upload endpoints
Intake of new documents and pre-flight validation against plan limits
"""
from fastapi import APIRouter, Depends, Request, Response, status
from sqlalchemy.ext.asyncio import AsyncSession
import logging

from app.db.session import get_db
from app.api.dependencies import Session, get_current_session
from app.schemas import UploadResponse, UploadValidateRequest, UploadValidateResponse
from app.services.processing import ProcessingDispatcher, get_processing_dispatcher
from app.services.storage import ObjectStorage, get_object_storage
from app.services.upload import upload_document, validate_upload

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post("", response_model=UploadResponse, status_code=status.HTTP_201_CREATED)
async def upload_file(
        request: Request,
        response: Response,
        db: AsyncSession = Depends(get_db),
        session: Session = Depends(get_current_session),
        storage: ObjectStorage = Depends(get_object_storage),
        dispatcher: ProcessingDispatcher = Depends(get_processing_dispatcher)
):
    """
    Upload one document (multipart form)

    Form fields: file, description, tags, category, customMetadata,
    mediaType, durationSeconds. An Idempotency-Key header replays an earlier
    upload with 200 instead of creating a second document.
    """
    body, created = await upload_document(
        request,
        db=db,
        session=session,
        storage=storage,
        dispatcher=dispatcher,
    )
    if not created:
        response.status_code = status.HTTP_200_OK
    return body


@router.post("/validate", response_model=UploadValidateResponse)
async def validate_file(
        body: UploadValidateRequest,
        db: AsyncSession = Depends(get_db),
        session: Session = Depends(get_current_session)
):
    """Check size and media duration before sending the file"""
    return await validate_upload(db, session=session, body=body)
