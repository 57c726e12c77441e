# app/core/security.py
from typing import Optional
from jose import JWTError, jwt

from app.core.config import settings


def decode_access_token(token: str) -> Optional[dict]:
    """
    Decode a JWT access token
    """
    if not settings.SUPABASE_JWT_SECRET:
        return None
    options = {"verify_aud": bool(settings.JWT_AUDIENCE)}
    try:
        payload = jwt.decode(
            token,
            settings.SUPABASE_JWT_SECRET,
            algorithms=[settings.JWT_ALGORITHM],
            audience=settings.JWT_AUDIENCE or None,
            options=options,
        )
        return payload
    except JWTError:
        return None
