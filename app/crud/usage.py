# app/crud/usage.py
"""CRUD operations for per-period usage counters"""
import logging
from typing import Dict, Optional
from uuid import UUID
from datetime import datetime
from sqlalchemy import select, and_
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.crud.base import CRUDBase
from app.db.models.document import Document
from app.db.models.usage import UsageRecord

logger = logging.getLogger(__name__)

COUNTER_COLUMNS = (
    "documents_count",
    "queries_count",
    "pages_count",
    "storage_bytes",
    "audio_seconds_used",
    "video_seconds_used",
)


class CRUDUsage(CRUDBase[UsageRecord, dict, dict]):

    async def get_for_period(
            self,
            db: AsyncSession,
            *,
            organization_id: UUID,
            period_start: datetime
    ) -> Optional[UsageRecord]:
        result = await db.execute(
            select(UsageRecord).where(
                and_(
                    UsageRecord.organization_id == organization_id,
                    UsageRecord.period_start == period_start
                )
            )
        )
        return result.scalar_one_or_none()

    async def create_for_period(
            self,
            db: AsyncSession,
            *,
            organization_id: UUID,
            period_start: datetime,
            period_end: datetime
    ) -> UsageRecord:
        """Create a zeroed record; a concurrent insert for the same period wins"""
        record = UsageRecord(
            organization_id=organization_id,
            period_start=period_start,
            period_end=period_end,
            **{column: 0 for column in COUNTER_COLUMNS}
        )
        db.add(record)
        try:
            await db.commit()
        except IntegrityError:
            await db.rollback()
            logger.info(f"Usage record for {organization_id} created concurrently, re-reading")
            existing = await self.get_for_period(
                db, organization_id=organization_id, period_start=period_start
            )
            if existing is None:
                raise
            return existing
        await db.refresh(record)
        return record

    async def set_counter(
            self,
            db: AsyncSession,
            *,
            record: UsageRecord,
            column: str,
            value: int
    ) -> UsageRecord:
        setattr(record, column, value)
        record.updated_at = datetime.utcnow()
        await db.commit()
        await db.refresh(record)
        return record

    async def set_counters(
            self,
            db: AsyncSession,
            *,
            record: UsageRecord,
            values: Dict[str, int],
            document: Optional[Document] = None
    ) -> UsageRecord:
        """Write several counters, and optionally flag the document as counted, in one commit"""
        for column, value in values.items():
            setattr(record, column, value)
        record.updated_at = datetime.utcnow()
        if document is not None:
            document.usage_recorded = True
            db.add(document)
        await db.commit()
        await db.refresh(record)
        return record

    async def upsert_zeroed(
            self,
            db: AsyncSession,
            *,
            organization_id: UUID,
            period_start: datetime,
            period_end: datetime
    ) -> None:
        zeroed = {column: 0 for column in COUNTER_COLUMNS}
        stmt = insert(UsageRecord).values(
            organization_id=organization_id,
            period_start=period_start,
            period_end=period_end,
            **zeroed
        )
        stmt = stmt.on_conflict_do_update(
            constraint="uq_usage_records_org_period",
            set_={"period_end": period_end, "updated_at": datetime.utcnow(), **zeroed},
        )
        await db.execute(stmt)
        await db.commit()


crud_usage = CRUDUsage(UsageRecord)
