# app/main.py
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import PlainTextResponse
from contextlib import asynccontextmanager
import logging
import time

from app.api.v1.router import api_router
from app.core.config import settings
from app.core.error_handlers import register_error_handlers
from app.core.logging import setup_logging
from app.db.session import engine
from app.observability.metrics import render_prometheus_metrics
from app.observability.middleware import RequestIdMiddleware
from app.schemas import HealthCheck
from app.services.processing import processing_dispatcher

setup_logging()
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("🚀 Server starting...")
    if settings.PROCESSING_RECOVER_ON_STARTUP:
        try:
            await processing_dispatcher.recover_jobs()
        except Exception:
            logger.exception("❌ Processing job recovery failed")
    yield
    logger.info("👋 Server stopping...")
    await processing_dispatcher.wait_idle()
    await engine.dispose()


app = FastAPI(title="Document Intake API", version="1.0.0", lifespan=lifespan)

register_error_handlers(app)


# Request logging
@app.middleware("http")
async def log_requests(request: Request, call_next):
    logger.info(f"➡️  {request.method} {request.url.path}")
    try:
        response = await call_next(request)
        logger.info(f"⬅️  {request.method} {request.url.path} → {response.status_code}")
        return response
    except Exception as e:
        logger.error(f"❌ {request.method} {request.url.path} → ERROR: {e}")
        raise


# Added last so the request id is set before request logging runs
app.add_middleware(RequestIdMiddleware)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Health check (без /api префикса)
@app.get("/health", response_model=HealthCheck)
async def health_check():
    logger.info("✓ Health check")
    return HealthCheck(status="healthy", timestamp=time.time())


@app.get("/metrics", response_class=PlainTextResponse)
async def metrics():
    return PlainTextResponse(
        render_prometheus_metrics(),
        media_type="text/plain; version=0.0.4; charset=utf-8",
    )


# API routes
app.include_router(api_router, prefix="/api")

logger.info("✅ Application configured")
