# app/core/exceptions.py
from typing import Any, Optional, Dict
from fastapi import HTTPException, status


class BaseAPIException(HTTPException):
    """Base exception for API"""
    code: str = "ERROR"

    def __init__(
        self,
        status_code: int,
        detail: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, Any]] = None
    ):
        super().__init__(status_code=status_code, detail=detail, headers=headers)
        if code:
            self.code = code
        self.details = details


class UnauthorizedException(BaseAPIException):
    """Unauthorized exception"""
    def __init__(self, detail: str = "Unauthorized"):
        super().__init__(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=detail,
            code="UNAUTHORIZED",
            headers={"WWW-Authenticate": "Bearer"}
        )


class SessionTimeoutException(BaseAPIException):
    """Session lookup did not finish in time"""
    def __init__(self, detail: str = "Session lookup timed out"):
        super().__init__(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=detail,
            code="SESSION_TIMEOUT"
        )


class NotFoundException(BaseAPIException):
    """Resource not found exception"""
    def __init__(self, detail: str = "Resource not found"):
        super().__init__(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=detail,
            code="NOT_FOUND"
        )


class BadRequestException(BaseAPIException):
    """Bad request exception"""
    def __init__(
        self,
        detail: str = "Bad request",
        code: str = "BAD_REQUEST",
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=detail,
            code=code,
            details=details
        )


class FileTooLargeException(BaseAPIException):
    """Upload exceeds the plan (or global) byte limit"""
    def __init__(self, detail: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(
            status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
            detail=detail,
            code="FILE_TOO_LARGE",
            details=details
        )


class QuotaExceededException(BaseAPIException):
    """Usage quota for the current period is exhausted"""
    def __init__(self, detail: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=detail,
            code="QUOTA_EXCEEDED",
            details=details
        )


class StorageException(BaseAPIException):
    """Object storage failure"""
    def __init__(self, detail: str = "Failed to upload file to storage", details: Optional[Dict[str, Any]] = None):
        super().__init__(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=detail,
            code="STORAGE_ERROR",
            details=details
        )


class DatabaseException(BaseAPIException):
    """Database write failure"""
    def __init__(self, detail: str = "Failed to save document metadata", details: Optional[Dict[str, Any]] = None):
        super().__init__(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=detail,
            code="DATABASE_ERROR",
            details=details
        )


class ConfigurationException(BaseAPIException):
    """Server is missing required configuration"""
    def __init__(self, detail: str = "Server misconfigured"):
        super().__init__(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=detail,
            code="CONFIGURATION_ERROR"
        )


class StorageError(Exception):
    """Object storage backend error"""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class ProcessingError(Exception):
    """Document processor error"""
    pass
