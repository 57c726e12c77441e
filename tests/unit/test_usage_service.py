import asyncio
import uuid
from datetime import datetime

from app.services.usage import current_period, usage_service


def test_current_period_is_calendar_month():
    start, end = current_period(datetime(2024, 2, 17, 13, 5))
    assert start == datetime(2024, 2, 1)
    assert end == datetime(2024, 2, 29, 23, 59, 59)


def test_usage_defaults_to_zero_without_record(store, db_session):  # noqa: ARG001
    usage = asyncio.run(usage_service.get_usage(db_session, uuid.uuid4()))

    assert usage.documents == 0
    assert usage.storage == 0


def test_increment_creates_record_then_adds(store, db_session):
    org_id = uuid.uuid4()

    async def scenario():
        await usage_service.increment(db_session, org_id, "documents", 1)
        await usage_service.increment(db_session, org_id, "storage", 2048)
        await usage_service.increment(db_session, org_id, "documents", 1)
        return await usage_service.get_usage(db_session, org_id)

    usage = asyncio.run(scenario())

    assert usage.documents == 2
    assert usage.storage == 2048
    assert len(store.usage) == 1


def test_decrement_clamps_at_zero(store, db_session):
    org_id = uuid.uuid4()
    start, end = current_period()
    store.set_usage(org_id, start, end, documents_count=1, storage_bytes=100)

    async def scenario():
        await usage_service.decrement(db_session, org_id, "documents", 3)
        await usage_service.decrement(db_session, org_id, "storage", 500)
        return await usage_service.get_usage(db_session, org_id)

    usage = asyncio.run(scenario())
    assert usage.documents == 0
    assert usage.storage == 0


def test_check_limit_warns_at_eighty_percent(store, db_session):
    org_id = uuid.uuid4()
    start, end = current_period()
    store.set_usage(org_id, start, end, documents_count=4)

    check = asyncio.run(usage_service.check_limit(db_session, org_id, "FREE", "documents", 1))

    assert check.allowed is True
    assert check.percentage == 80
    assert check.warning is True
    assert check.message == "You've used 80% of your documents limit"


def test_check_upload_limits_reports_documents_first(store, db_session):
    org_id = uuid.uuid4()
    start, end = current_period()
    store.set_usage(org_id, start, end, documents_count=5, storage_bytes=50 * 1024 * 1024)

    kind, check = asyncio.run(usage_service.check_upload_limits(db_session, org_id, "FREE", 10))

    assert kind == "documents"
    assert check.allowed is False
    assert check.message == "Documents limit reached. Please upgrade your plan."


def test_check_upload_limits_storage(store, db_session):
    org_id = uuid.uuid4()
    start, end = current_period()
    store.set_usage(org_id, start, end, documents_count=1, storage_bytes=50 * 1024 * 1024 - 10)

    kind, check = asyncio.run(usage_service.check_upload_limits(db_session, org_id, "FREE", 11))

    assert kind == "storage"
    assert check.message == "Storage limit exceeded. Please upgrade or delete some files."


def test_reset_period_zeroes_counters(store, db_session):
    org_id = uuid.uuid4()
    start, end = current_period(datetime(2024, 5, 3))
    store.set_usage(org_id, start, end, documents_count=7, queries_count=40)

    asyncio.run(usage_service.reset_period(db_session, org_id, datetime(2024, 5, 20, 8, 0)))

    record = store.usage[(org_id, start)]
    assert record.documents_count == 0
    assert record.queries_count == 0


def test_sync_actual_usage_recounts_documents(store, db_session):
    user_id = uuid.uuid4()
    store.add_document(user_id=user_id, file_size=100)
    store.add_document(user_id=user_id, file_size=250)
    start, end = current_period()
    store.set_usage(user_id, start, end, documents_count=9, storage_bytes=1)

    usage = asyncio.run(usage_service.sync_actual_usage(db_session, user_id))

    assert usage.documents == 2
    assert usage.storage == 350


def test_summary_uses_subscription_plan(store, db_session):
    user_id = uuid.uuid4()
    store.add_subscription(user_id=user_id, plan_name="PRO_YEARLY", billing_cycle="yearly")

    summary = asyncio.run(usage_service.summary(db_session, user_id=user_id, organization_id=user_id))

    assert summary["planName"] == "PRO"
    assert summary["billingCycle"] == "yearly"
    assert summary["documents"] == {"current": 0, "limit": 200, "percentage": 0, "warning": False}
    assert summary["storage"]["limitFormatted"] == "5.00 GB"
