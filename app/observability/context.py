# app/observability/context.py
from __future__ import annotations

from contextvars import ContextVar
from typing import Optional

request_id_ctx: ContextVar[Optional[str]] = ContextVar("request_id", default=None)
user_id_ctx: ContextVar[Optional[str]] = ContextVar("user_id", default=None)
document_id_ctx: ContextVar[Optional[str]] = ContextVar("document_id", default=None)
