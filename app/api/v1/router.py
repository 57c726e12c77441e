# app/api/v1/router.py
from fastapi import APIRouter

from app.api.v1.endpoints import (
    documents,
    upload,
    usage,
    webhooks
)
from app.schemas import ErrorResponse

api_router = APIRouter()

# Error envelope shared by every endpoint
error_responses = {
    400: {"model": ErrorResponse},
    401: {"model": ErrorResponse},
    500: {"model": ErrorResponse},
}

# Include all routers
api_router.include_router(upload.router, prefix="/upload", tags=["Upload"], responses=error_responses)
api_router.include_router(documents.router, prefix="/documents", tags=["Documents"], responses=error_responses)
api_router.include_router(usage.router, prefix="/usage", tags=["Usage"], responses=error_responses)
api_router.include_router(webhooks.router, prefix="/webhooks", tags=["Webhooks"], responses={
    400: {"model": ErrorResponse},
    500: {"model": ErrorResponse},
})
