# app/schemas/document.py
import uuid
from typing import Any, Dict, List, Optional, Union
from datetime import datetime
from pydantic import BaseModel, Field


class DocumentResponse(BaseModel):
    id: uuid.UUID
    file_name: str
    file_type: str
    file_size: int
    file_path: str
    status: str
    error_message: Optional[str] = None
    chunks_count: Optional[int] = 0
    workspace: str = "default"
    metadata: Dict[str, Any] = Field(default_factory=dict, validation_alias="metadata_")
    created_at: datetime
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class Pagination(BaseModel):
    page: int = Field(ge=1)
    limit: int = Field(ge=1, le=100)
    total: int
    totalPages: int


class DocumentList(BaseModel):
    documents: List[DocumentResponse]
    pagination: Pagination


class DocumentUpdate(BaseModel):
    """Fields sent explicitly as null clear the matching metadata key"""
    id: uuid.UUID
    file_name: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = None
    tags: Optional[Union[List[str], str]] = None
    category: Optional[str] = None
    customMetadata: Optional[Dict[str, Any]] = None


class DocumentUpdateResponse(BaseModel):
    success: bool = True
    document: DocumentResponse


class DocumentDeleteResponse(BaseModel):
    success: bool = True
    message: str
    entitiesDeleted: int = 0
    relationsDeleted: int = 0
    warning: Optional[str] = None
