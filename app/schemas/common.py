# app/schemas/common.py
from typing import Any, Optional
from pydantic import BaseModel


class ErrorBody(BaseModel):
    code: str
    message: str
    details: Optional[Any] = None


class ErrorResponse(BaseModel):
    error: ErrorBody


class HealthCheck(BaseModel):
    status: str = "healthy"
    timestamp: float


class WebhookAck(BaseModel):
    received: bool = True
