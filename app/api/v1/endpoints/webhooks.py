"""
Webhook endpoints
"""
from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.ext.asyncio import AsyncSession
import logging

from app.db.session import get_db
from app.core.exceptions import BaseAPIException
from app.schemas import WebhookAck
from app.services import billing

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post("/stripe", response_model=WebhookAck)
async def stripe_webhook(
        request: Request,
        db: AsyncSession = Depends(get_db)
):
    """Signature-verified Stripe event ingestion"""
    payload = await request.body()
    event = billing.verify_event(payload, request.headers.get("stripe-signature"))

    try:
        await billing.process_event(db, event)
    except Exception as e:
        logger.error(f"❌ Webhook handler error for {event.get('type')}: {e}", exc_info=True)
        await db.rollback()
        raise BaseAPIException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Webhook handler failed",
            code="WEBHOOK_HANDLER_FAILED",
        )

    return WebhookAck(received=True)
