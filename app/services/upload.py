# app/services/upload.py
"""
Upload intake

Every failure is terminal for the request and reported once; nothing here
retries. Order of side effects: storage write, document insert, usage
counters, media counters, processing dispatch.
"""
import json
import logging
import math
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple
from uuid import uuid4

from fastapi import Request
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.datastructures import FormData, UploadFile

from app.api.dependencies import Session
from app.core.config import settings
from app.core.exceptions import (
    BadRequestException,
    BaseAPIException,
    DatabaseException,
    FileTooLargeException,
    QuotaExceededException,
    StorageError,
    StorageException,
)
from app.crud import crud_document
from app.observability.context import document_id_ctx
from app.observability.metrics import inc_counter
from app.schemas.upload import UploadLimits, UploadResponse, UploadValidateRequest, UploadValidateResponse
from app.services.plans import (
    check_file_size,
    check_media_duration,
    effective_upload_limit,
    format_bytes,
    format_duration,
    get_plan_limits,
    get_upgrade_hint,
)
from app.services.processing import ProcessingDispatcher, can_process_now
from app.services.storage import ObjectStorage, build_storage_path
from app.services.usage import usage_service

logger = logging.getLogger(__name__)

# extension -> stored file_type
FILE_TYPE_MAP = {
    "pdf": "pdf",
    "docx": "docx",
    "pptx": "pptx",
    "xlsx": "xlsx",
    "txt": "txt",
    "md": "md",
    "mp4": "mp4",
    "mp3": "mp3",
    "wav": "wav",
    "jpg": "jpg",
    "jpeg": "jpg",
    "png": "png",
    "gif": "gif",
    "webp": "webp",
}

MEDIA_TYPES = ("audio", "video")


def _rejected(exc: BaseAPIException) -> BaseAPIException:
    inc_counter("upload_rejections_total", code=exc.code)
    logger.info(f"🚫 Upload rejected: {exc.code} - {exc.detail}")
    return exc


def _ensure_size_allowed(size: int, plan_name: str, max_size: int) -> None:
    check = check_file_size(size, plan_name, max_size)
    if not check.allowed:
        raise _rejected(FileTooLargeException(
            check.error,
            details={
                "plan": plan_name,
                "fileSize": check.file_size_formatted,
                "maxSize": check.max_size_formatted,
                "upgradeHint": check.upgrade_hint,
            },
        ))


def parse_tags(raw: Optional[str]) -> List[str]:
    """JSON array, or a comma separated list"""
    if not raw:
        return []
    try:
        parsed = json.loads(raw)
    except ValueError:
        parsed = None
    if isinstance(parsed, list):
        return [str(tag).strip() for tag in parsed if str(tag).strip()]
    return [tag.strip() for tag in raw.split(",") if tag.strip()]


def parse_custom_metadata(raw: Optional[str]) -> Dict[str, Any]:
    if not raw:
        return {}
    try:
        parsed = json.loads(raw)
    except ValueError:
        logger.warning("⚠️ Invalid customMetadata JSON, ignoring")
        return {}
    if not isinstance(parsed, dict):
        logger.warning("⚠️ customMetadata is not a JSON object, ignoring")
        return {}
    return parsed


def parse_duration(raw: Optional[str]) -> Optional[int]:
    """Whole seconds, None for anything that is not a finite number"""
    if not raw:
        return None
    try:
        value = float(raw)
    except ValueError:
        return None
    if not math.isfinite(value):
        return None
    return int(value)


def parse_media_usage(form: FormData) -> Optional[Tuple[str, int]]:
    """(media type, seconds) reported by the client, None when absent or invalid"""
    media_type = form.get("mediaType")
    raw_duration = form.get("durationSeconds")
    duration = parse_duration(raw_duration if isinstance(raw_duration, str) else None)
    if media_type in MEDIA_TYPES and duration and duration > 0:
        return media_type, duration
    return None


def file_extension(file_name: str) -> str:
    return file_name.rsplit(".", 1)[-1].lower() if "." in file_name else ""


def build_metadata(
        form: FormData,
        *,
        original_name: str,
        sanitized_name: str,
        mime_type: Optional[str]
) -> Dict[str, Any]:
    """System metadata first, then user fields, then custom fields merged on top"""
    metadata: Dict[str, Any] = {
        "originalName": original_name,
        "sanitizedName": sanitized_name,
        "mimeType": mime_type,
        "uploadedAt": datetime.utcnow().isoformat() + "Z",
    }
    description = form.get("description")
    if isinstance(description, str) and description.strip():
        metadata["description"] = description.strip()
    tags = parse_tags(form.get("tags") if isinstance(form.get("tags"), str) else None)
    if tags:
        metadata["tags"] = tags
    category = form.get("category")
    if isinstance(category, str) and category.strip():
        metadata["category"] = category.strip()
    custom = form.get("customMetadata")
    metadata.update(parse_custom_metadata(custom if isinstance(custom, str) else None))
    return metadata


def _storage_error_message(error: StorageError) -> str:
    message = str(error)
    if error.status_code == 413 or "Payload too large" in message:
        return f"File is too large. Maximum size is {settings.MAX_FILE_SIZE_MB}MB"
    if error.status_code == 409 or "already exists" in message:
        return "A file with this name already exists. Please rename and try again."
    if message:
        return f"Storage error: {message}"
    return "Failed to upload file to storage"


async def upload_document(
        request: Request,
        *,
        db: AsyncSession,
        session: Session,
        storage: ObjectStorage,
        dispatcher: ProcessingDispatcher
) -> Tuple[UploadResponse, bool]:
    """
    Accept one file for the caller.

    Returns the response body and whether a new document was created
    (False when an Idempotency-Key replays an earlier upload).
    """
    # Idempotent replay
    idempotency_key = request.headers.get("idempotency-key")
    if idempotency_key:
        existing = await crud_document.get_by_idempotency_key(
            db, user_id=session.user_id, idempotency_key=idempotency_key
        )
        if existing:
            logger.info(f"↩️ Idempotent replay of upload {existing.id}")
            return UploadResponse(
                documentId=existing.id,
                status=existing.status,
                message="Upload already accepted",
            ), False

    plan_name = await usage_service.get_plan_name(
        db, user_id=session.user_id, organization_id=session.organization_id
    )
    max_size = effective_upload_limit(plan_name)
    logger.info(f"📋 User plan: {plan_name}, max upload {format_bytes(max_size)}")

    # Size check before the body is parsed
    content_length = request.headers.get("content-length")
    if content_length and content_length.isdigit():
        _ensure_size_allowed(int(content_length), plan_name, max_size)

    try:
        form = await request.form()
    except Exception as e:
        logger.error(f"❌ FormData parse error: {e}")
        raise _rejected(BadRequestException(
            "Cannot process file upload. File may be too large or corrupted.",
            code="PARSE_ERROR",
            details={
                "hint": f"Upload limit for {plan_name} plan is {format_bytes(max_size)}",
                "maxSize": format_bytes(max_size),
            },
        ))

    upload = form.get("file")
    if not isinstance(upload, UploadFile) or not upload.filename:
        raise _rejected(BadRequestException("No file provided", code="NO_FILE"))

    data = await upload.read()
    file_size = len(data)

    # Size check on the actual bytes
    _ensure_size_allowed(file_size, plan_name, max_size)

    failure = await usage_service.check_upload_limits(
        db, session.organization_id, plan_name, file_size
    )
    if failure:
        kind, check = failure
        raise _rejected(QuotaExceededException(
            check.message,
            details={
                "type": kind,
                "current": check.current,
                "limit": check.limit,
                "upgradeUrl": "/pricing",
            },
        ))

    original_name = upload.filename
    extension = file_extension(original_name)
    file_type = FILE_TYPE_MAP.get(extension)
    if not file_type:
        raise _rejected(BadRequestException(
            f"Unsupported file type: .{extension}",
            code="UNSUPPORTED_FILE_TYPE",
            details={"supported": sorted(FILE_TYPE_MAP)},
        ))

    document_id = uuid4()
    document_id_ctx.set(str(document_id))
    storage_path = build_storage_path(document_id, original_name)
    sanitized_name = storage_path.rsplit("/", 1)[-1]

    # All form fields are read before the first write
    metadata = build_metadata(
        form,
        original_name=original_name,
        sanitized_name=sanitized_name,
        mime_type=upload.content_type,
    )
    media_usage = parse_media_usage(form)
    processable = can_process_now(file_type)

    logger.info(f"📤 Uploading file: {original_name} ({format_bytes(file_size)}) -> {storage_path}")

    # 1. Object storage
    try:
        await storage.upload(storage_path, data, upload.content_type or "application/octet-stream")
    except StorageError as e:
        logger.error(f"❌ Storage upload error: {e}")
        raise _rejected(StorageException(_storage_error_message(e)))

    # 2. Document row (+ processing job)
    try:
        document, job = await crud_document.create_with_job(
            db,
            document_id=document_id,
            user_id=session.user_id,
            organization_id=session.organization_id,
            workspace=settings.DEFAULT_WORKSPACE,
            file_name=original_name,
            file_type=file_type,
            file_size=file_size,
            file_path=storage_path,
            metadata=metadata,
            idempotency_key=idempotency_key,
            enqueue=processable,
        )
        logger.info(f"✅ Document record created in DB: {document_id}")
    except Exception as e:
        logger.error(f"❌ Failed to create document record: {e}")
        # Remove the stored object so it is not orphaned
        try:
            await storage.remove([storage_path])
        except StorageError as cleanup_error:
            logger.error(f"❌ Failed to remove orphaned object {storage_path}: {cleanup_error}")
        raise _rejected(DatabaseException("Failed to create document record"))

    # 3. Usage counters; tracking failures never fail the upload.
    # Both counters and the usage_recorded flag land in one commit.
    try:
        await usage_service.increment_many(
            db,
            session.organization_id,
            {"documents": 1, "storage": file_size},
            document=document,
        )
    except Exception as e:
        await db.rollback()
        logger.error(f"❌ Failed to increment usage for {document_id}: {e}", exc_info=True)

    # 4. Media duration reported by the client
    if media_usage:
        media_type, duration = media_usage
        try:
            await usage_service.increment(db, session.organization_id, media_type, duration)
            logger.info(f"🎞️ Media usage +{format_duration(duration)} {media_type}")
        except Exception as e:
            await db.rollback()
            logger.error(f"❌ Failed to track media duration: {e}", exc_info=True)

    # 5. Background processing
    if job is not None:
        dispatcher.dispatch(job.id)
        logger.info(f"🚀 Document processing started: {document_id}")

    inc_counter("uploads_total", file_type=file_type)

    if processable:
        message = "File uploaded successfully, processing started"
    else:
        message = (
            f"File uploaded successfully. {file_type.upper()} processing will be "
            f"available in a future update."
        )
    return UploadResponse(documentId=document_id, status="pending", message=message), True


async def validate_upload(
        db: AsyncSession,
        *,
        session: Session,
        body: UploadValidateRequest
) -> UploadValidateResponse:
    """Pre-flight check of size and media duration before the client sends bytes"""
    plan_name = await usage_service.get_plan_name(
        db, user_id=session.user_id, organization_id=session.organization_id
    )
    limits = get_plan_limits(plan_name)
    max_size = effective_upload_limit(plan_name)

    if body.fileSize > max_size:
        raise BadRequestException(
            f"File too large ({format_bytes(body.fileSize)}). {plan_name} plan limit is {format_bytes(max_size)}",
            code="FILE_TOO_LARGE",
            details={
                "fileSize": body.fileSize,
                "maxSize": max_size,
                "upgradeHint": get_upgrade_hint(plan_name, "upload"),
            },
        )

    if body.mediaType and body.durationSeconds and body.durationSeconds > 0:
        media_type = body.mediaType
        check = check_media_duration(media_type, body.durationSeconds, plan_name)
        if not check.allowed:
            raise BadRequestException(
                check.error,
                code="AUDIO_TOO_LONG" if media_type == "audio" else "VIDEO_TOO_LONG",
                details={
                    "duration": check.duration_seconds,
                    "limit": check.limit_seconds,
                    "durationFormatted": check.duration_formatted,
                    "limitFormatted": check.limit_formatted,
                    "upgradeHint": check.upgrade_hint,
                },
            )

        usage = await usage_service.get_usage(db, session.organization_id)
        used = getattr(usage, media_type)
        if used + body.durationSeconds > check.limit_seconds:
            remaining = max(0, check.limit_seconds - used)
            raise BadRequestException(
                f"You have used {format_duration(used)}/{format_duration(check.limit_seconds)} {media_type}. "
                f"This file ({format_duration(body.durationSeconds)}) would exceed your limit. "
                f"Remaining: {format_duration(remaining)}",
                code="AUDIO_QUOTA_EXCEEDED" if media_type == "audio" else "VIDEO_QUOTA_EXCEEDED",
                details={
                    "currentUsed": used,
                    "limit": check.limit_seconds,
                    "remaining": remaining,
                    "upgradeHint": get_upgrade_hint(plan_name, media_type),
                },
            )

    return UploadValidateResponse(
        valid=True,
        planName=plan_name,
        limits=UploadLimits(
            maxUploadBytes=max_size,
            maxUploadFormatted=format_bytes(max_size),
            audioSeconds=limits.audio_seconds,
            audioFormatted=format_duration(limits.audio_seconds),
            videoSeconds=limits.video_seconds,
            videoFormatted=format_duration(limits.video_seconds),
        ),
    )
