# app/services/usage.py
"""
Usage accounting per organization and calendar month.

Counters are plain read-then-write updates without locking: concurrent
requests may drift slightly, Stripe stays the billing source of truth.
"""
import calendar
import logging
from dataclasses import dataclass, asdict
from datetime import datetime
from typing import Any, Dict, Optional, Tuple
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from app.crud import crud_document, crud_subscription, crud_usage
from app.db.models.document import Document
from app.db.models.usage import UsageRecord
from app.services.plans import (
    format_bytes,
    format_duration,
    get_base_plan_name,
    get_plan_limits,
)

logger = logging.getLogger(__name__)

# usage kind -> usage_records column
COUNTERS = {
    "documents": "documents_count",
    "queries": "queries_count",
    "pages": "pages_count",
    "storage": "storage_bytes",
    "audio": "audio_seconds_used",
    "video": "video_seconds_used",
}

WARNING_PERCENTAGE = 80


def current_period(now: Optional[datetime] = None) -> Tuple[datetime, datetime]:
    """First and last second of the UTC calendar month containing ``now``"""
    now = now or datetime.utcnow()
    start = datetime(now.year, now.month, 1)
    last_day = calendar.monthrange(now.year, now.month)[1]
    end = datetime(now.year, now.month, last_day, 23, 59, 59)
    return start, end


@dataclass
class UsageSnapshot:
    documents: int = 0
    queries: int = 0
    pages: int = 0
    storage: int = 0
    audio: int = 0
    video: int = 0

    @classmethod
    def from_record(cls, record: Optional[UsageRecord]) -> "UsageSnapshot":
        if record is None:
            return cls()
        return cls(**{kind: int(getattr(record, column) or 0) for kind, column in COUNTERS.items()})


@dataclass
class UsageCheck:
    allowed: bool
    current: int
    limit: int
    percentage: int
    warning: bool
    message: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def _limit_for(plan_name: str, kind: str) -> int:
    limits = get_plan_limits(plan_name)
    return {
        "documents": limits.documents,
        "queries": limits.queries,
        "pages": limits.pages,
        "storage": limits.storage_bytes,
        "audio": limits.audio_seconds,
        "video": limits.video_seconds,
    }[kind]


def _column(kind: str) -> str:
    try:
        return COUNTERS[kind]
    except KeyError:
        raise ValueError(f"Unknown usage kind: {kind}")


class UsageService:

    async def get_plan_name(
            self,
            db: AsyncSession,
            *,
            user_id: UUID,
            organization_id: Optional[UUID] = None
    ) -> str:
        """Base plan of the caller's current subscription, FREE without one"""
        subscription = await crud_subscription.get_current(
            db, user_id=user_id, organization_id=organization_id
        )
        if subscription is None:
            return "FREE"
        return get_base_plan_name(subscription.plan_name)

    async def get_usage(self, db: AsyncSession, organization_id: UUID) -> UsageSnapshot:
        start, _ = current_period()
        record = await crud_usage.get_for_period(
            db, organization_id=organization_id, period_start=start
        )
        return UsageSnapshot.from_record(record)

    async def get_or_create_record(self, db: AsyncSession, organization_id: UUID) -> UsageRecord:
        start, end = current_period()
        record = await crud_usage.get_for_period(
            db, organization_id=organization_id, period_start=start
        )
        if record is None:
            logger.info(f"Creating usage record for {organization_id}, period {start:%Y-%m}")
            record = await crud_usage.create_for_period(
                db, organization_id=organization_id, period_start=start, period_end=end
            )
        return record

    async def increment(
            self,
            db: AsyncSession,
            organization_id: UUID,
            kind: str,
            amount: int = 1
    ) -> int:
        column = _column(kind)
        record = await self.get_or_create_record(db, organization_id)
        value = int(getattr(record, column) or 0) + int(amount)
        await crud_usage.set_counter(db, record=record, column=column, value=value)
        return value

    async def increment_many(
            self,
            db: AsyncSession,
            organization_id: UUID,
            amounts: Dict[str, int],
            document: Optional[Document] = None
    ) -> UsageSnapshot:
        """
        Add several counters at once.

        With ``document`` its usage_recorded flag is set in the same commit,
        so a later delete decrements exactly what was added here.
        """
        values = {}
        record = await self.get_or_create_record(db, organization_id)
        for kind, amount in amounts.items():
            column = _column(kind)
            values[column] = int(getattr(record, column) or 0) + int(amount)
        record = await crud_usage.set_counters(db, record=record, values=values, document=document)
        return UsageSnapshot.from_record(record)

    async def decrement(
            self,
            db: AsyncSession,
            organization_id: UUID,
            kind: str,
            amount: int = 1
    ) -> int:
        """Counters never go below zero"""
        column = _column(kind)
        record = await self.get_or_create_record(db, organization_id)
        value = max(0, int(getattr(record, column) or 0) - int(amount))
        await crud_usage.set_counter(db, record=record, column=column, value=value)
        return value

    async def check_limit(
            self,
            db: AsyncSession,
            organization_id: UUID,
            plan_name: str,
            kind: str,
            additional: int = 1
    ) -> UsageCheck:
        usage = await self.get_usage(db, organization_id)
        current = getattr(usage, kind)
        limit = _limit_for(plan_name, kind)
        percentage = round(current / limit * 100) if limit > 0 else 0
        allowed = current + additional <= limit

        if not allowed:
            message = f"{kind.capitalize()} limit reached. Please upgrade your plan."
        elif percentage >= WARNING_PERCENTAGE:
            message = f"You've used {percentage}% of your {kind} limit"
        else:
            message = None

        return UsageCheck(
            allowed=allowed,
            current=current,
            limit=limit,
            percentage=percentage,
            warning=percentage >= WARNING_PERCENTAGE,
            message=message,
        )

    async def check_upload_limits(
            self,
            db: AsyncSession,
            organization_id: UUID,
            plan_name: str,
            file_size: int
    ) -> Optional[Tuple[str, UsageCheck]]:
        """First failing (kind, check) for one more document of ``file_size`` bytes, else None"""
        documents = await self.check_limit(db, organization_id, plan_name, "documents", 1)
        if not documents.allowed:
            return "documents", documents

        storage = await self.check_limit(db, organization_id, plan_name, "storage", file_size)
        if not storage.allowed:
            storage.message = "Storage limit exceeded. Please upgrade or delete some files."
            return "storage", storage
        return None

    async def reset_period(
            self,
            db: AsyncSession,
            organization_id: UUID,
            within: datetime
    ) -> None:
        """Zero the counters of the calendar period containing ``within`` (billing rollover)"""
        period_start, period_end = current_period(within)
        await crud_usage.upsert_zeroed(
            db,
            organization_id=organization_id,
            period_start=period_start,
            period_end=period_end,
        )
        logger.info(f"🔄 Usage reset for {organization_id}, period {period_start:%Y-%m-%d}")

    async def summary(
            self,
            db: AsyncSession,
            *,
            user_id: UUID,
            organization_id: UUID
    ) -> Dict[str, Any]:
        subscription = await crud_subscription.get_current(
            db, user_id=user_id, organization_id=organization_id
        )
        plan_name = get_base_plan_name(subscription.plan_name if subscription else None)
        billing_cycle = (subscription.billing_cycle if subscription else None) or "monthly"
        usage = await self.get_usage(db, organization_id)

        period_start, period_end = current_period()
        if subscription and subscription.current_period_start and subscription.current_period_end:
            period_start = subscription.current_period_start
            period_end = subscription.current_period_end

        days_remaining = max(0, (period_end - datetime.utcnow()).days + 1)

        def entry(kind: str) -> Dict[str, Any]:
            current = getattr(usage, kind)
            limit = _limit_for(plan_name, kind)
            return {
                "current": current,
                "limit": limit,
                "percentage": min(100, round(current / limit * 100)) if limit > 0 else 0,
                "warning": current >= limit * WARNING_PERCENTAGE / 100 if limit > 0 else False,
            }

        storage = entry("storage")
        storage["currentFormatted"] = format_bytes(usage.storage)
        storage["limitFormatted"] = format_bytes(storage["limit"])
        audio = entry("audio")
        audio["currentFormatted"] = format_duration(usage.audio)
        audio["limitFormatted"] = format_duration(audio["limit"])
        video = entry("video")
        video["currentFormatted"] = format_duration(usage.video)
        video["limitFormatted"] = format_duration(video["limit"])

        return {
            "planName": plan_name,
            "billingCycle": billing_cycle,
            "periodStart": period_start.isoformat(),
            "periodEnd": period_end.isoformat(),
            "daysRemaining": days_remaining,
            "documents": entry("documents"),
            "pages": entry("pages"),
            "queries": entry("queries"),
            "storage": storage,
            "audio": audio,
            "video": video,
        }

    async def sync_actual_usage(self, db: AsyncSession, organization_id: UUID) -> UsageSnapshot:
        """Recount documents and stored bytes from the documents table"""
        count, total_bytes = await crud_document.usage_totals(db, organization_id=organization_id)
        record = await self.get_or_create_record(db, organization_id)
        record = await crud_usage.set_counters(
            db, record=record, values={"documents_count": count, "storage_bytes": total_bytes}
        )
        logger.info(f"✅ Usage synced for {organization_id}: {count} documents, {format_bytes(total_bytes)}")
        return UsageSnapshot.from_record(record)


usage_service = UsageService()
