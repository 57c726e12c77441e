# app/services/plans.py
"""
Subscription plan tiers and their limits.
Single source of truth for upload, storage, quota and media-duration ceilings.
"""
import logging
from dataclasses import dataclass
from typing import Dict, Optional, Tuple

from app.core.config import settings

logger = logging.getLogger(__name__)

KB = 1024
MB = 1024 * KB
GB = 1024 * MB


@dataclass(frozen=True)
class PlanLimits:
    documents: int
    pages: int
    queries: int
    storage_bytes: int
    max_upload_bytes: int  # per file
    audio_seconds: int
    video_seconds: int


PLAN_LIMITS: Dict[str, PlanLimits] = {
    "FREE": PlanLimits(
        documents=5,
        pages=50,
        queries=100,
        storage_bytes=50 * MB,
        max_upload_bytes=25 * MB,
        audio_seconds=5 * 60,
        video_seconds=1 * 60,
    ),
    "STARTER": PlanLimits(
        documents=50,
        pages=500,
        queries=1000,
        storage_bytes=1 * GB,
        max_upload_bytes=200 * MB,
        audio_seconds=60 * 60,
        video_seconds=10 * 60,
    ),
    "PRO": PlanLimits(
        documents=200,
        pages=2000,
        queries=5000,
        storage_bytes=5 * GB,
        max_upload_bytes=500 * MB,
        audio_seconds=300 * 60,
        video_seconds=60 * 60,
    ),
    "BUSINESS": PlanLimits(
        documents=1000,
        pages=10000,
        queries=20000,
        storage_bytes=20 * GB,
        max_upload_bytes=1 * GB,
        audio_seconds=1000 * 60,
        video_seconds=300 * 60,
    ),
}

_UPGRADE_HINTS: Dict[str, Dict[str, str]] = {
    "FREE": {
        "audio": "Upgrade to STARTER for 60 min audio",
        "video": "Upgrade to STARTER for 10 min video",
        "upload": "Upgrade to STARTER for 200MB max file size",
        "storage": "Upgrade to STARTER for 1GB storage",
    },
    "STARTER": {
        "audio": "Upgrade to PRO for 300 min audio",
        "video": "Upgrade to PRO for 60 min video",
        "upload": "Upgrade to PRO for 500MB max file size",
        "storage": "Upgrade to PRO for 5GB storage",
    },
    "PRO": {
        "audio": "Upgrade to BUSINESS for 1000 min audio",
        "video": "Upgrade to BUSINESS for 300 min video",
        "upload": "Upgrade to BUSINESS for 1GB max file size",
        "storage": "Upgrade to BUSINESS for 20GB storage",
    },
    "BUSINESS": {
        "audio": "Contact sales to increase limits",
        "video": "Contact sales to increase limits",
        "upload": "Contact sales to increase limits",
        "storage": "Contact sales to increase limits",
    },
}


def get_base_plan_name(plan_name: Optional[str]) -> str:
    """FREE/STARTER/PRO/BUSINESS for any plan variant; unknown names fall back to FREE"""
    base = (plan_name or "FREE").upper().replace("_YEARLY", "").replace("_MONTHLY", "")
    return base if base in PLAN_LIMITS else "FREE"


def get_plan_limits(plan_name: Optional[str]) -> PlanLimits:
    return PLAN_LIMITS[get_base_plan_name(plan_name)]


def effective_upload_limit(plan_name: Optional[str]) -> int:
    """Per-file byte ceiling: the plan limit capped by the global MAX_FILE_SIZE_MB"""
    return min(get_plan_limits(plan_name).max_upload_bytes, settings.max_file_size_bytes)


def format_bytes(size: int) -> str:
    if size == 0:
        return "0 B"
    if size < KB:
        return f"{size} B"
    if size < MB:
        return f"{size / KB:.1f} KB"
    if size < GB:
        return f"{size / MB:.1f} MB"
    return f"{size / GB:.2f} GB"


def format_duration(seconds: int) -> str:
    if seconds < 60:
        return f"{seconds} sec"
    if seconds < 3600:
        return f"{seconds // 60} min"
    hours = seconds // 3600
    mins = (seconds % 3600) // 60
    return f"{hours}h {mins}m" if mins > 0 else f"{hours}h"


def get_upgrade_hint(plan_name: Optional[str], limit_type: str) -> str:
    hints = _UPGRADE_HINTS.get(get_base_plan_name(plan_name), {})
    return hints.get(limit_type, "Upgrade your plan for more capacity")


@dataclass
class FileSizeCheck:
    allowed: bool
    file_size: int
    max_size: int
    file_size_formatted: str
    max_size_formatted: str
    error: Optional[str] = None
    upgrade_hint: Optional[str] = None


@dataclass
class DurationCheck:
    allowed: bool
    media_type: str
    duration_seconds: int
    limit_seconds: int
    duration_formatted: str
    limit_formatted: str
    error: Optional[str] = None
    upgrade_hint: Optional[str] = None


def check_file_size(file_size: int, plan_name: str, max_size: Optional[int] = None) -> FileSizeCheck:
    """Compare a byte count to the plan's per-upload ceiling"""
    limit = max_size if max_size is not None else effective_upload_limit(plan_name)
    result = FileSizeCheck(
        allowed=file_size <= limit,
        file_size=file_size,
        max_size=limit,
        file_size_formatted=format_bytes(file_size),
        max_size_formatted=format_bytes(limit),
    )
    if not result.allowed:
        result.error = (
            f"File size {result.file_size_formatted} exceeds {plan_name} plan limit "
            f"(max {result.max_size_formatted})"
        )
        result.upgrade_hint = get_upgrade_hint(plan_name, "upload")
    logger.debug(
        f"File size check: plan={plan_name} size={result.file_size_formatted} "
        f"max={result.max_size_formatted} allowed={result.allowed}"
    )
    return result


def check_media_duration(media_type: str, duration_seconds: int, plan_name: str) -> DurationCheck:
    """Compare a single audio/video duration to the plan's per-period media limit"""
    limits = get_plan_limits(plan_name)
    limit = limits.audio_seconds if media_type == "audio" else limits.video_seconds
    result = DurationCheck(
        allowed=duration_seconds <= limit,
        media_type=media_type,
        duration_seconds=duration_seconds,
        limit_seconds=limit,
        duration_formatted=format_duration(duration_seconds),
        limit_formatted=format_duration(limit),
    )
    if not result.allowed:
        label = "Audio" if media_type == "audio" else "Video"
        result.error = (
            f"{label} duration {result.duration_formatted} exceeds {plan_name} plan limit "
            f"(max {result.limit_formatted})"
        )
        result.upgrade_hint = get_upgrade_hint(plan_name, media_type)
    return result


def _price_lookup() -> Dict[str, Tuple[str, str]]:
    lookup: Dict[str, Tuple[str, str]] = {}
    for plan, (monthly, yearly) in settings.price_ids().items():
        if monthly:
            lookup[monthly] = (plan, "monthly")
        if yearly:
            lookup[yearly] = (plan, "yearly")
    return lookup


def plan_from_price_id(price_id: Optional[str]) -> str:
    """Base plan for a Stripe price id; unknown prices map to FREE"""
    if not price_id:
        return "FREE"
    return _price_lookup().get(price_id, ("FREE", "monthly"))[0]


def billing_cycle_from_price_id(price_id: Optional[str]) -> str:
    if not price_id:
        return "monthly"
    return _price_lookup().get(price_id, ("FREE", "monthly"))[1]
