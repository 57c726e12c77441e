# app/schemas/upload.py
import uuid
from typing import Optional
from pydantic import BaseModel, Field


class UploadResponse(BaseModel):
    documentId: uuid.UUID
    status: str
    message: str


class UploadValidateRequest(BaseModel):
    fileName: str
    fileSize: int = Field(ge=0)
    mediaType: Optional[str] = Field(None, pattern="^(audio|video)$")
    durationSeconds: Optional[int] = None


class UploadLimits(BaseModel):
    maxUploadBytes: int
    maxUploadFormatted: str
    audioSeconds: int
    audioFormatted: str
    videoSeconds: int
    videoFormatted: str


class UploadValidateResponse(BaseModel):
    valid: bool = True
    planName: str
    limits: UploadLimits
