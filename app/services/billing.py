# app/services/billing.py
"""
Stripe webhook handling

Events are verified with the stripe library and then dispatched on type to
keep the subscriptions and invoices tables in sync with Stripe.
"""
import asyncio
import json
import logging
from datetime import datetime
from typing import Any, Awaitable, Callable, Dict, Optional, Tuple
from uuid import UUID

import stripe
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.exceptions import BadRequestException, ConfigurationException
from app.crud import crud_invoice, crud_subscription
from app.observability.metrics import inc_counter
from app.services.plans import billing_cycle_from_price_id, plan_from_price_id
from app.services.usage import usage_service

logger = logging.getLogger(__name__)


def verify_event(payload: bytes, signature: Optional[str]) -> Dict[str, Any]:
    """Check the Stripe signature and return the event as a plain dict"""
    if not signature:
        logger.error("❌ Missing stripe-signature header")
        raise BadRequestException("Missing signature", code="WEBHOOK_SIGNATURE_INVALID")

    if not settings.STRIPE_WEBHOOK_SECRET:
        logger.error("❌ Missing STRIPE_WEBHOOK_SECRET")
        raise ConfigurationException("Webhook secret not configured")

    try:
        stripe.Webhook.construct_event(payload, signature, settings.STRIPE_WEBHOOK_SECRET)
    except (ValueError, stripe.SignatureVerificationError) as e:
        logger.error(f"❌ Webhook signature verification failed: {e}")
        raise BadRequestException(f"Webhook Error: {e}", code="WEBHOOK_SIGNATURE_INVALID")

    return json.loads(payload)


async def retrieve_subscription(subscription_id: str) -> Dict[str, Any]:
    """Fetch a subscription from the Stripe API"""
    if not settings.STRIPE_SECRET_KEY:
        raise RuntimeError("Missing STRIPE_SECRET_KEY")
    subscription = await asyncio.to_thread(
        stripe.Subscription.retrieve, subscription_id, api_key=settings.STRIPE_SECRET_KEY
    )
    return subscription.to_dict()


def _ts(value: Optional[int]) -> Optional[datetime]:
    return datetime.utcfromtimestamp(value) if value else None


def _id(value: Any) -> Optional[str]:
    """Stripe references arrive either as an id string or an expanded object"""
    if isinstance(value, str):
        return value
    if isinstance(value, dict):
        return value.get("id")
    return None


def _uuid(value: Any) -> Optional[UUID]:
    if not value:
        return None
    try:
        return UUID(str(value))
    except ValueError:
        logger.warning(f"⚠️ Ignoring non-UUID owner id in Stripe metadata: {value}")
        return None


def _first_price_id(subscription: Dict[str, Any]) -> Optional[str]:
    items = (subscription.get("items") or {}).get("data") or []
    if not items:
        return None
    return (items[0].get("price") or {}).get("id")


def subscription_period(subscription: Dict[str, Any]) -> Tuple[Optional[datetime], Optional[datetime]]:
    """Period bounds live on the first subscription item in current API versions"""
    items = (subscription.get("items") or {}).get("data") or []
    if items and items[0].get("current_period_start"):
        return _ts(items[0]["current_period_start"]), _ts(items[0].get("current_period_end"))
    if subscription.get("current_period_start"):
        return _ts(subscription["current_period_start"]), _ts(subscription.get("current_period_end"))
    anchor = _ts(subscription.get("billing_cycle_anchor"))
    return anchor, anchor


def subscription_id_from_invoice(invoice: Dict[str, Any]) -> Optional[str]:
    details = (invoice.get("parent") or {}).get("subscription_details") or {}
    return _id(details.get("subscription")) or _id(invoice.get("subscription"))


async def handle_checkout_completed(db: AsyncSession, session: Dict[str, Any]) -> None:
    logger.info(f"Processing checkout.session.completed: {session.get('id')}")
    metadata = session.get("metadata") or {}
    user_id = _uuid(metadata.get("userId"))
    organization_id = _uuid(metadata.get("organizationId"))
    billing_cycle = metadata.get("billingCycle") or "monthly"

    if not user_id:
        logger.error("❌ No userId in checkout session metadata")
        return

    subscription_id = _id(session.get("subscription"))
    if not subscription_id:
        logger.error("❌ No subscription id in checkout session")
        return

    subscription = await retrieve_subscription(subscription_id)
    period_start, period_end = subscription_period(subscription)
    price_id = _first_price_id(subscription)

    await crud_subscription.upsert_from_stripe(
        db,
        stripe_subscription_id=subscription_id,
        values={
            "user_id": user_id,
            "organization_id": organization_id,
            "stripe_customer_id": _id(session.get("customer")),
            "stripe_price_id": price_id,
            "plan_name": plan_from_price_id(price_id),
            "status": subscription.get("status") or "active",
            "billing_cycle": billing_cycle,
            "current_period_start": period_start,
            "current_period_end": period_end,
            "cancel_at_period_end": bool(subscription.get("cancel_at_period_end")),
        },
    )

    if organization_id and period_start:
        await usage_service.reset_period(db, organization_id, period_start)

    logger.info(f"✅ Checkout completed for user {user_id}, subscription {subscription_id}")


async def handle_subscription_created(db: AsyncSession, subscription: Dict[str, Any]) -> None:
    logger.info(f"Processing customer.subscription.created: {subscription.get('id')}")
    metadata = subscription.get("metadata") or {}
    user_id = _uuid(metadata.get("userId"))
    if not user_id:
        logger.info("No userId in subscription metadata, skipping")
        return

    price_id = _first_price_id(subscription)
    period_start, period_end = subscription_period(subscription)
    await crud_subscription.upsert_from_stripe(
        db,
        stripe_subscription_id=subscription["id"],
        values={
            "user_id": user_id,
            "organization_id": _uuid(metadata.get("organizationId")),
            "stripe_customer_id": _id(subscription.get("customer")),
            "stripe_price_id": price_id,
            "plan_name": plan_from_price_id(price_id),
            "status": subscription.get("status") or "active",
            "billing_cycle": billing_cycle_from_price_id(price_id),
            "current_period_start": period_start,
            "current_period_end": period_end,
            "cancel_at_period_end": bool(subscription.get("cancel_at_period_end")),
            "trial_start": _ts(subscription.get("trial_start")),
            "trial_end": _ts(subscription.get("trial_end")),
        },
    )
    logger.info(f"✅ Subscription created: {subscription['id']}")


async def handle_subscription_updated(db: AsyncSession, subscription: Dict[str, Any]) -> None:
    logger.info(f"Processing customer.subscription.updated: {subscription.get('id')}")
    price_id = _first_price_id(subscription)
    period_start, period_end = subscription_period(subscription)
    updated = await crud_subscription.update_by_stripe_id(
        db,
        stripe_subscription_id=subscription["id"],
        values={
            "stripe_price_id": price_id,
            "plan_name": plan_from_price_id(price_id),
            "status": subscription.get("status"),
            "billing_cycle": billing_cycle_from_price_id(price_id),
            "current_period_start": period_start,
            "current_period_end": period_end,
            "cancel_at_period_end": bool(subscription.get("cancel_at_period_end")),
            "canceled_at": _ts(subscription.get("canceled_at")),
        },
    )
    if updated is None:
        logger.warning(f"⚠️ Subscription {subscription['id']} not found locally, update ignored")
        return
    logger.info(f"✅ Subscription updated: {subscription['id']}, status: {subscription.get('status')}")


async def handle_subscription_deleted(db: AsyncSession, subscription: Dict[str, Any]) -> None:
    logger.info(f"Processing customer.subscription.deleted: {subscription.get('id')}")
    await crud_subscription.update_by_stripe_id(
        db,
        stripe_subscription_id=subscription["id"],
        values={
            "status": "canceled",
            "plan_name": "FREE",
            "canceled_at": datetime.utcnow(),
        },
    )
    logger.info(f"🗑️ Subscription deleted: {subscription['id']}")


def _invoice_values(invoice: Dict[str, Any], subscription_id: Optional[str]) -> Dict[str, Any]:
    return {
        "stripe_subscription_id": subscription_id,
        "stripe_customer_id": _id(invoice.get("customer")),
        "amount_due": invoice.get("amount_due") or 0,
        "currency": invoice.get("currency") or "usd",
        "invoice_pdf": invoice.get("invoice_pdf"),
        "hosted_invoice_url": invoice.get("hosted_invoice_url"),
        "period_start": _ts(invoice.get("period_start")),
        "period_end": _ts(invoice.get("period_end")),
    }


async def handle_invoice_paid(db: AsyncSession, invoice: Dict[str, Any]) -> None:
    logger.info(f"Processing invoice.paid: {invoice.get('id')}")
    subscription_id = subscription_id_from_invoice(invoice)
    subscription = None
    if subscription_id:
        subscription = await crud_subscription.get_by_stripe_id(db, stripe_subscription_id=subscription_id)

    if subscription is None:
        logger.info("No subscription found for invoice, skipping invoice record")
        return

    organization_id = subscription.organization_id or subscription.user_id
    await crud_invoice.upsert(
        db,
        stripe_invoice_id=invoice["id"],
        values={
            **_invoice_values(invoice, subscription_id),
            "user_id": subscription.user_id,
            "organization_id": organization_id,
            "amount_paid": invoice.get("amount_paid") or 0,
            "status": "paid",
            "paid_at": datetime.utcnow(),
        },
    )

    if invoice.get("billing_reason") == "subscription_cycle" and invoice.get("period_start"):
        await usage_service.reset_period(db, organization_id, _ts(invoice["period_start"]))

    logger.info(f"✅ Invoice paid: {invoice['id']}")


async def handle_invoice_failed(db: AsyncSession, invoice: Dict[str, Any]) -> None:
    logger.info(f"Processing invoice.payment_failed: {invoice.get('id')}")
    subscription_id = subscription_id_from_invoice(invoice)
    if not subscription_id:
        logger.warning(f"⚠️ Invoice {invoice.get('id')} has no subscription reference")
        return

    subscription = await crud_subscription.update_by_stripe_id(
        db,
        stripe_subscription_id=subscription_id,
        values={"status": "past_due"},
    )
    if subscription is None:
        logger.warning(f"⚠️ Subscription {subscription_id} not found locally")
        return

    await crud_invoice.upsert(
        db,
        stripe_invoice_id=invoice["id"],
        values={
            **_invoice_values(invoice, subscription_id),
            "user_id": subscription.user_id,
            "organization_id": subscription.organization_id or subscription.user_id,
            "amount_paid": 0,
            "status": "open",
        },
    )
    logger.warning(f"⚠️ Invoice payment failed: {invoice['id']}")


EVENT_HANDLERS: Dict[str, Callable[[AsyncSession, Dict[str, Any]], Awaitable[None]]] = {
    "checkout.session.completed": handle_checkout_completed,
    "customer.subscription.created": handle_subscription_created,
    "customer.subscription.updated": handle_subscription_updated,
    "customer.subscription.deleted": handle_subscription_deleted,
    "invoice.paid": handle_invoice_paid,
    "invoice.payment_failed": handle_invoice_failed,
}


async def process_event(db: AsyncSession, event: Dict[str, Any]) -> bool:
    """Run the handler for a verified event; False when the type is not handled"""
    event_type = event.get("type")
    logger.info(f"Received Stripe webhook: {event_type}")

    handler = EVENT_HANDLERS.get(event_type)
    if handler is None:
        logger.info(f"Unhandled event type: {event_type}")
        inc_counter("stripe_events_total", type=event_type, outcome="ignored")
        return False

    try:
        await handler(db, event["data"]["object"])
    except Exception:
        inc_counter("stripe_events_total", type=event_type, outcome="failed")
        raise
    inc_counter("stripe_events_total", type=event_type, outcome="handled")
    return True
