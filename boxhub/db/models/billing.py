import uuid
from sqlalchemy import (
    Column, String, Text, Date, DateTime, Boolean, Integer, Numeric, ForeignKey, Index, CheckConstraint,
)
from sqlalchemy.dialects.postgresql import UUID, JSONB
from .base import Base, now_utc, today_utc


PLAN_TYPES = ('monthly', 'quarterly', 'biannual', 'annual', 'session_card', 'unlimited')
SUBSCRIPTION_STATUSES = ('active', 'paused', 'expired', 'cancelled')
PAYMENT_STATUSES = ('pending', 'paid', 'failed', 'refunded', 'cancelled')
PAYMENT_METHODS = ('card', 'sepa', 'cash', 'check', 'transfer', 'other')


class Plan(Base):
    __tablename__ = 'plans'
    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    organization_id = Column(UUID(as_uuid=True), ForeignKey('organizations.id', ondelete='CASCADE'), nullable=False)
    name = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    plan_type = Column(String, nullable=False)
    price = Column(Numeric(10, 2, asdecimal=False), nullable=False)
    currency = Column(String(3), nullable=False, default='EUR')
    duration_days = Column(Integer, nullable=True)
    session_count = Column(Integer, nullable=True)
    max_classes_per_week = Column(Integer, nullable=True)
    max_bookings_per_day = Column(Integer, nullable=True)
    features = Column(JSONB, nullable=False, default=list)
    is_active = Column(Boolean, nullable=False, default=True)
    display_order = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), default=now_utc)
    updated_at = Column(DateTime(timezone=True), default=now_utc, onupdate=now_utc)

    __table_args__ = (
        Index('ix_plans_organization_id', 'organization_id'),
        CheckConstraint(
            "plan_type in ('monthly','quarterly','biannual','annual','session_card','unlimited')",
            name='ck_plans_plan_type',
        ),
    )


class Subscription(Base):
    __tablename__ = 'subscriptions'
    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    organization_id = Column(UUID(as_uuid=True), ForeignKey('organizations.id', ondelete='CASCADE'), nullable=False)
    member_id = Column(UUID(as_uuid=True), ForeignKey('members.id', ondelete='CASCADE'), nullable=False)
    plan_id = Column(UUID(as_uuid=True), ForeignKey('plans.id', ondelete='SET NULL'), nullable=True)
    status = Column(String, nullable=False, default='active')
    start_date = Column(Date, nullable=False, default=today_utc)
    end_date = Column(Date, nullable=True)
    paused_at = Column(DateTime(timezone=True), nullable=True)
    cancelled_at = Column(DateTime(timezone=True), nullable=True)
    sessions_total = Column(Integer, nullable=True)
    sessions_used = Column(Integer, nullable=False, default=0)
    price_paid = Column(Numeric(10, 2, asdecimal=False), nullable=True)
    discount_percent = Column(Numeric(5, 2, asdecimal=False), nullable=True)
    discount_reason = Column(Text, nullable=True)
    auto_renew = Column(Boolean, nullable=False, default=False)
    renewal_reminder_sent = Column(Boolean, nullable=False, default=False)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), default=now_utc)
    updated_at = Column(DateTime(timezone=True), default=now_utc, onupdate=now_utc)

    __table_args__ = (
        Index('ix_subscriptions_organization_id_status', 'organization_id', 'status'),
        Index('ix_subscriptions_member_id', 'member_id'),
        Index('ix_subscriptions_end_date', 'end_date'),
        CheckConstraint("status in ('active','paused','expired','cancelled')", name='ck_subscriptions_status'),
    )

    @property
    def sessions_remaining(self):
        if self.sessions_total is None:
            return None
        return max(0, self.sessions_total - (self.sessions_used or 0))


class Payment(Base):
    __tablename__ = 'payments'
    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    organization_id = Column(UUID(as_uuid=True), ForeignKey('organizations.id', ondelete='CASCADE'), nullable=False)
    member_id = Column(UUID(as_uuid=True), ForeignKey('members.id', ondelete='CASCADE'), nullable=False)
    subscription_id = Column(UUID(as_uuid=True), ForeignKey('subscriptions.id', ondelete='SET NULL'), nullable=True)
    amount = Column(Numeric(10, 2, asdecimal=False), nullable=False)
    currency = Column(String(3), nullable=False, default='EUR')
    status = Column(String, nullable=False, default='pending')
    payment_method = Column(String, nullable=False, default='other')
    description = Column(Text, nullable=True)
    paid_at = Column(DateTime(timezone=True), nullable=True)
    due_date = Column(Date, nullable=True)
    refunded_amount = Column(Numeric(10, 2, asdecimal=False), nullable=True)
    refunded_at = Column(DateTime(timezone=True), nullable=True)
    refund_reason = Column(Text, nullable=True)
    metadata_json = Column('metadata', JSONB, nullable=True)
    created_at = Column(DateTime(timezone=True), default=now_utc)
    updated_at = Column(DateTime(timezone=True), default=now_utc, onupdate=now_utc)

    __table_args__ = (
        Index('ix_payments_organization_id_status', 'organization_id', 'status'),
        Index('ix_payments_member_id', 'member_id'),
        CheckConstraint("status in ('pending','paid','failed','refunded','cancelled')", name='ck_payments_status'),
        CheckConstraint(
            "payment_method in ('card','sepa','cash','check','transfer','other')",
            name='ck_payments_method',
        ),
    )
