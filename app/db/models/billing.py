# app/db/models/billing.py
from sqlalchemy import BigInteger, Boolean, Column, DateTime, String
from sqlalchemy.dialects.postgresql import UUID
import uuid
from datetime import datetime

from app.db.base import Base


class Subscription(Base):
    __tablename__ = "subscriptions"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(UUID(as_uuid=True), index=True)
    organization_id = Column(UUID(as_uuid=True), index=True)

    stripe_customer_id = Column(String(255), index=True)
    stripe_subscription_id = Column(String(255), unique=True)
    stripe_price_id = Column(String(255))

    plan_name = Column(String(50), nullable=False, default="FREE")
    status = Column(String(30), nullable=False, default="active")  # active, trialing, past_due, canceled, ...
    billing_cycle = Column(String(20), default="monthly")

    current_period_start = Column(DateTime)
    current_period_end = Column(DateTime)
    cancel_at_period_end = Column(Boolean, default=False)
    canceled_at = Column(DateTime)
    trial_start = Column(DateTime)
    trial_end = Column(DateTime)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


class Invoice(Base):
    __tablename__ = "invoices"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(UUID(as_uuid=True), index=True)
    organization_id = Column(UUID(as_uuid=True), index=True)
    stripe_subscription_id = Column(String(255), index=True)

    stripe_invoice_id = Column(String(255), unique=True, nullable=False)
    stripe_customer_id = Column(String(255))
    amount_due = Column(BigInteger, default=0)  # cents
    amount_paid = Column(BigInteger, default=0)
    currency = Column(String(10), default="usd")
    status = Column(String(30))  # draft, open, paid, void, uncollectible
    invoice_pdf = Column(String(1000))
    hosted_invoice_url = Column(String(1000))
    period_start = Column(DateTime)
    period_end = Column(DateTime)
    paid_at = Column(DateTime)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
