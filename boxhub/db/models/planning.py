import uuid
from sqlalchemy import (
    Column, String, Text, Date, DateTime, Boolean, Integer, Numeric, ForeignKey, Index, CheckConstraint,
)
from sqlalchemy.dialects.postgresql import UUID, JSONB
from .base import Base, now_utc


CLASS_TYPES = ('group', 'private', 'open_gym', 'event', 'workshop')
CLASS_STATUSES = ('scheduled', 'in_progress', 'completed', 'cancelled')
BOOKING_STATUSES = ('confirmed', 'waitlist', 'cancelled', 'no_show', 'attended')
RECURRENCE_TYPES = ('none', 'daily', 'weekly', 'biweekly', 'monthly')
DEFAULT_CLASS_COLOR = '#3b82f6'

# Booking statuses that hold a seat or a waitlist slot
ACTIVE_BOOKING_STATUSES = ('confirmed', 'waitlist', 'attended')


class ClassTemplate(Base):
    __tablename__ = 'class_templates'
    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    organization_id = Column(UUID(as_uuid=True), ForeignKey('organizations.id', ondelete='CASCADE'), nullable=False)
    name = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    class_type = Column(String, nullable=False, default='group')
    duration_minutes = Column(Integer, nullable=False, default=60)
    max_participants = Column(Integer, nullable=True)
    min_participants = Column(Integer, nullable=False, default=1)
    color = Column(String, nullable=False, default=DEFAULT_CLASS_COLOR)
    default_coach_id = Column(UUID(as_uuid=True), ForeignKey('users.id', ondelete='SET NULL'), nullable=True)
    default_location = Column(String, nullable=True)
    requires_subscription = Column(Boolean, nullable=False, default=True)
    allowed_plan_types = Column(JSONB, nullable=True)
    session_cost = Column(Integer, nullable=False, default=1)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), default=now_utc)
    updated_at = Column(DateTime(timezone=True), default=now_utc, onupdate=now_utc)

    __table_args__ = (
        Index('ix_class_templates_organization_id', 'organization_id'),
        CheckConstraint("duration_minutes between 15 and 480", name='ck_class_templates_duration'),
    )


class GymClass(Base):
    """A scheduled session on the planning."""
    __tablename__ = 'classes'
    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    organization_id = Column(UUID(as_uuid=True), ForeignKey('organizations.id', ondelete='CASCADE'), nullable=False)
    template_id = Column(UUID(as_uuid=True), ForeignKey('class_templates.id', ondelete='SET NULL'), nullable=True)
    name = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    class_type = Column(String, nullable=False, default='group')
    status = Column(String, nullable=False, default='scheduled')
    start_time = Column(DateTime(timezone=True), nullable=False)
    end_time = Column(DateTime(timezone=True), nullable=False)
    duration_minutes = Column(Integer, nullable=False, default=60)
    max_participants = Column(Integer, nullable=True)
    min_participants = Column(Integer, nullable=False, default=1)
    current_participants = Column(Integer, nullable=False, default=0)
    waitlist_count = Column(Integer, nullable=False, default=0)
    coach_id = Column(UUID(as_uuid=True), ForeignKey('users.id', ondelete='SET NULL'), nullable=True)
    location = Column(String, nullable=True)
    room = Column(String, nullable=True)
    color = Column(String, nullable=False, default=DEFAULT_CLASS_COLOR)
    recurrence_type = Column(String, nullable=False, default='none')
    recurrence_id = Column(UUID(as_uuid=True), nullable=True)
    recurrence_end_date = Column(Date, nullable=True)
    requires_subscription = Column(Boolean, nullable=False, default=True)
    drop_in_price = Column(Numeric(10, 2, asdecimal=False), nullable=True)
    session_cost = Column(Integer, nullable=False, default=1)
    allowed_plan_types = Column(JSONB, nullable=True)
    notes = Column(Text, nullable=True)
    cancelled_reason = Column(Text, nullable=True)
    cancelled_at = Column(DateTime(timezone=True), nullable=True)
    workout_id = Column(UUID(as_uuid=True), ForeignKey('workouts.id', ondelete='SET NULL'), nullable=True)
    created_at = Column(DateTime(timezone=True), default=now_utc)
    updated_at = Column(DateTime(timezone=True), default=now_utc, onupdate=now_utc)

    __table_args__ = (
        Index('ix_classes_organization_id_start_time', 'organization_id', 'start_time'),
        Index('ix_classes_recurrence_id', 'recurrence_id'),
        CheckConstraint("status in ('scheduled','in_progress','completed','cancelled')", name='ck_classes_status'),
        CheckConstraint("current_participants >= 0", name='ck_classes_current_participants'),
        CheckConstraint("waitlist_count >= 0", name='ck_classes_waitlist_count'),
    )


class Booking(Base):
    __tablename__ = 'bookings'
    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    organization_id = Column(UUID(as_uuid=True), ForeignKey('organizations.id', ondelete='CASCADE'), nullable=False)
    class_id = Column(UUID(as_uuid=True), ForeignKey('classes.id', ondelete='CASCADE'), nullable=False)
    member_id = Column(UUID(as_uuid=True), ForeignKey('members.id', ondelete='CASCADE'), nullable=False)
    subscription_id = Column(UUID(as_uuid=True), ForeignKey('subscriptions.id', ondelete='SET NULL'), nullable=True)
    status = Column(String, nullable=False, default='confirmed')
    waitlist_position = Column(Integer, nullable=True)
    checked_in_at = Column(DateTime(timezone=True), nullable=True)
    checked_in_by = Column(UUID(as_uuid=True), ForeignKey('users.id', ondelete='SET NULL'), nullable=True)
    is_drop_in = Column(Boolean, nullable=False, default=False)
    sessions_deducted = Column(Integer, nullable=False, default=0)
    cancelled_at = Column(DateTime(timezone=True), nullable=True)
    cancelled_reason = Column(Text, nullable=True)
    no_show_at = Column(DateTime(timezone=True), nullable=True)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), default=now_utc)
    updated_at = Column(DateTime(timezone=True), default=now_utc, onupdate=now_utc)

    __table_args__ = (
        Index('ix_bookings_class_id_status', 'class_id', 'status'),
        Index('ix_bookings_member_id', 'member_id'),
        CheckConstraint(
            "status in ('confirmed','waitlist','cancelled','no_show','attended')",
            name='ck_bookings_status',
        ),
    )
