# app/api/dependencies.py
"""
Session resolution for authenticated endpoints.

resolve_session returns a typed result (ok / timed_out / unauthenticated)
and cancels the pending verification when it exceeds AUTH_TIMEOUT_SECONDS.
"""
import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional
from uuid import UUID

import httpx
from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

from app.core import security
from app.core.config import settings
from app.core.exceptions import SessionTimeoutException, UnauthorizedException
from app.observability.context import user_id_ctx

logger = logging.getLogger(__name__)

# Security scheme
security_bearer = HTTPBearer(auto_error=False)


class SessionStatus(str, Enum):
    OK = "ok"
    TIMED_OUT = "timed_out"
    UNAUTHENTICATED = "unauthenticated"


@dataclass
class Session:
    user_id: UUID
    organization_id: UUID
    email: Optional[str] = None


@dataclass
class SessionResult:
    status: SessionStatus
    session: Optional[Session] = None


def _to_uuid(value) -> Optional[UUID]:
    if not value:
        return None
    try:
        return UUID(str(value))
    except ValueError:
        return None


async def _confirm_remote(token: str) -> bool:
    """Ask the Supabase auth API whether the token still belongs to a live user"""
    url = f"{settings.SUPABASE_URL.rstrip('/')}/auth/v1/user"
    headers = {
        "Authorization": f"Bearer {token}",
        "apikey": settings.SUPABASE_SERVICE_ROLE_KEY,
    }
    try:
        async with httpx.AsyncClient() as client:
            response = await client.get(url, headers=headers)
    except httpx.HTTPError as e:
        logger.warning(f"⚠️ Remote session check failed: {e}")
        return False
    return response.status_code == 200


async def _verify_token(token: str) -> Optional[Session]:
    payload = security.decode_access_token(token)
    if not payload:
        return None

    user_id = _to_uuid(payload.get("sub"))
    if user_id is None:
        return None

    if settings.AUTH_VERIFY_REMOTE and not await _confirm_remote(token):
        return None

    app_metadata = payload.get("app_metadata") or {}
    organization_id = _to_uuid(app_metadata.get("organization_id")) or user_id
    return Session(user_id=user_id, organization_id=organization_id, email=payload.get("email"))


async def resolve_session(token: Optional[str], timeout: Optional[float] = None) -> SessionResult:
    if not token:
        return SessionResult(SessionStatus.UNAUTHENTICATED)

    timeout = timeout if timeout is not None else settings.AUTH_TIMEOUT_SECONDS
    try:
        session = await asyncio.wait_for(_verify_token(token), timeout=timeout)
    except asyncio.TimeoutError:
        logger.warning(f"⚠️ Session lookup exceeded {timeout}s, cancelled")
        return SessionResult(SessionStatus.TIMED_OUT)

    if session is None:
        return SessionResult(SessionStatus.UNAUTHENTICATED)
    return SessionResult(SessionStatus.OK, session)


async def get_current_session(
        credentials: HTTPAuthorizationCredentials = Depends(security_bearer)
) -> Session:
    """
    Get current authenticated session (required authentication)
    """
    result = await resolve_session(credentials.credentials if credentials else None)

    if result.status == SessionStatus.TIMED_OUT:
        raise SessionTimeoutException()
    if result.status != SessionStatus.OK:
        raise UnauthorizedException("Unauthorized - please log in")

    user_id_ctx.set(str(result.session.user_id))
    return result.session
