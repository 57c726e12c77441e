# app/crud/billing.py
"""CRUD operations for Stripe-mirrored subscriptions and invoices"""
from typing import Any, Dict, Optional
from uuid import UUID
from datetime import datetime
from sqlalchemy import select, or_
from sqlalchemy.ext.asyncio import AsyncSession

from app.crud.base import CRUDBase
from app.db.models.billing import Subscription, Invoice

CURRENT_SUBSCRIPTION_STATUSES = ("active", "trialing", "past_due")


class CRUDSubscription(CRUDBase[Subscription, dict, dict]):

    async def get_current(
            self,
            db: AsyncSession,
            *,
            user_id: UUID,
            organization_id: Optional[UUID] = None
    ) -> Optional[Subscription]:
        """Newest non-terminal subscription owned by the user or their organization"""
        owner = Subscription.user_id == user_id
        if organization_id and organization_id != user_id:
            owner = or_(owner, Subscription.organization_id == organization_id)
        result = await db.execute(
            select(Subscription)
            .where(owner, Subscription.status.in_(CURRENT_SUBSCRIPTION_STATUSES))
            .order_by(Subscription.created_at.desc())
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def get_by_stripe_id(
            self,
            db: AsyncSession,
            *,
            stripe_subscription_id: str
    ) -> Optional[Subscription]:
        result = await db.execute(
            select(Subscription).where(Subscription.stripe_subscription_id == stripe_subscription_id)
        )
        return result.scalar_one_or_none()

    async def upsert_from_stripe(
            self,
            db: AsyncSession,
            *,
            stripe_subscription_id: str,
            values: Dict[str, Any]
    ) -> Subscription:
        subscription = await self.get_by_stripe_id(db, stripe_subscription_id=stripe_subscription_id)
        if subscription is None:
            subscription = Subscription(stripe_subscription_id=stripe_subscription_id)
            db.add(subscription)
        for field, value in values.items():
            setattr(subscription, field, value)
        subscription.updated_at = datetime.utcnow()
        await db.commit()
        await db.refresh(subscription)
        return subscription

    async def update_by_stripe_id(
            self,
            db: AsyncSession,
            *,
            stripe_subscription_id: str,
            values: Dict[str, Any]
    ) -> Optional[Subscription]:
        subscription = await self.get_by_stripe_id(db, stripe_subscription_id=stripe_subscription_id)
        if subscription is None:
            return None
        return await self.update(db, db_obj=subscription, values={**values, "updated_at": datetime.utcnow()})


class CRUDInvoice(CRUDBase[Invoice, dict, dict]):

    async def upsert(
            self,
            db: AsyncSession,
            *,
            stripe_invoice_id: str,
            values: Dict[str, Any]
    ) -> Invoice:
        result = await db.execute(
            select(Invoice).where(Invoice.stripe_invoice_id == stripe_invoice_id)
        )
        invoice = result.scalar_one_or_none()
        if invoice is None:
            invoice = Invoice(stripe_invoice_id=stripe_invoice_id)
            db.add(invoice)
        for field, value in values.items():
            setattr(invoice, field, value)
        await db.commit()
        await db.refresh(invoice)
        return invoice


crud_subscription = CRUDSubscription(Subscription)
crud_invoice = CRUDInvoice(Invoice)
