# app/observability/middleware.py
from __future__ import annotations

import time
import uuid
from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

from app.observability.context import request_id_ctx
from app.observability.metrics import inc_counter, observe_ms


class RequestIdMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        rid = request.headers.get("x-request-id") or str(uuid.uuid4())
        token = request_id_ctx.set(rid)
        started = time.perf_counter()
        try:
            response = await call_next(request)
            response.headers["x-request-id"] = rid
            inc_counter(
                "http_requests_total",
                method=request.method,
                path=request.url.path,
                status=response.status_code,
            )
            observe_ms(
                "http_request_duration_ms",
                (time.perf_counter() - started) * 1000,
                method=request.method,
                path=request.url.path,
            )
            return response
        finally:
            request_id_ctx.reset(token)
