# app/schemas/__init__.py
from app.schemas.document import (
    DocumentResponse, DocumentList, DocumentUpdate, DocumentUpdateResponse,
    DocumentDeleteResponse, Pagination
)
from app.schemas.upload import (
    UploadResponse, UploadValidateRequest, UploadValidateResponse, UploadLimits
)
from app.schemas.common import (
    ErrorBody, ErrorResponse, HealthCheck, WebhookAck
)

__all__ = [
    # Document
    "DocumentResponse", "DocumentList", "DocumentUpdate", "DocumentUpdateResponse",
    "DocumentDeleteResponse", "Pagination",
    # Upload
    "UploadResponse", "UploadValidateRequest", "UploadValidateResponse", "UploadLimits",
    # Common
    "ErrorBody", "ErrorResponse", "HealthCheck", "WebhookAck"
]
