"""
Usage endpoints
"""
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from dataclasses import asdict
import logging

from app.db.session import get_db
from app.api.dependencies import Session, get_current_session
from app.services.usage import usage_service

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("")
async def get_usage(
        db: AsyncSession = Depends(get_db),
        session: Session = Depends(get_current_session)
):
    """Current period usage against plan limits, including media minutes"""
    return await usage_service.summary(
        db, user_id=session.user_id, organization_id=session.organization_id
    )


@router.post("/sync")
async def sync_usage(
        db: AsyncSession = Depends(get_db),
        session: Session = Depends(get_current_session)
):
    """Recount document and storage usage from the documents table"""
    snapshot = await usage_service.sync_actual_usage(db, session.organization_id)
    return {"success": True, "usage": asdict(snapshot)}
