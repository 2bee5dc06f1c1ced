import uuid
from sqlalchemy import Column, String, Text, DateTime, Boolean, ForeignKey, Index
from sqlalchemy.dialects.postgresql import UUID, JSONB
from .base import Base, now_utc


EMAIL_STATUSES = ('pending', 'sent', 'delivered', 'failed', 'bounced')
EMAIL_TEMPLATE_TYPES = (
    'welcome',
    'booking_confirmation',
    'waitlist_promoted',
    'class_reminder',
    'class_cancelled',
    'subscription_expiring',
    'subscription_expired',
    'payment_confirmation',
    'custom',
)


class NotificationSettings(Base):
    """Per-organization switches for automatic emails."""
    __tablename__ = 'notification_settings'

    organization_id = Column(UUID(as_uuid=True), ForeignKey('organizations.id', ondelete='CASCADE'), primary_key=True)
    welcome_email = Column(Boolean, nullable=False, default=True)
    booking_confirmation_email = Column(Boolean, nullable=False, default=True)
    class_reminder_24h = Column(Boolean, nullable=False, default=True)
    class_reminder_2h = Column(Boolean, nullable=False, default=False)
    class_cancelled_email = Column(Boolean, nullable=False, default=True)
    subscription_expiring_30d = Column(Boolean, nullable=False, default=True)
    subscription_expiring_7d = Column(Boolean, nullable=False, default=True)
    subscription_expired = Column(Boolean, nullable=False, default=False)
    from_name = Column(String(100), nullable=False, default='BoxHub')
    reply_to = Column(String(320), nullable=True)
    created_at = Column(DateTime(timezone=True), default=now_utc, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=now_utc, onupdate=now_utc, nullable=False)


class MemberNotificationPreference(Base):
    __tablename__ = 'member_notification_preferences'

    member_id = Column(UUID(as_uuid=True), ForeignKey('members.id', ondelete='CASCADE'), primary_key=True)
    email_enabled = Column(Boolean, nullable=False, default=True)
    push_enabled = Column(Boolean, nullable=False, default=True)
    receive_class_reminders = Column(Boolean, nullable=False, default=True)
    receive_subscription_alerts = Column(Boolean, nullable=False, default=True)
    receive_booking_confirmations = Column(Boolean, nullable=False, default=True)
    receive_marketing = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), default=now_utc, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=now_utc, onupdate=now_utc, nullable=False)


class EmailLog(Base):
    __tablename__ = 'email_logs'

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    organization_id = Column(UUID(as_uuid=True), ForeignKey('organizations.id', ondelete='CASCADE'), nullable=False)
    member_id = Column(UUID(as_uuid=True), ForeignKey('members.id', ondelete='SET NULL'), nullable=True)
    recipient_email = Column(String(320), nullable=False)
    recipient_name = Column(String(200), nullable=True)
    template_type = Column(String(50), nullable=False)
    subject = Column(String(200), nullable=False)
    metadata_json = Column('metadata', JSONB, nullable=True)
    status = Column(String(20), nullable=False, default='pending')
    provider_message_id = Column(String(255), nullable=True)
    error_message = Column(Text, nullable=True)
    sent_at = Column(DateTime(timezone=True), nullable=True)
    delivered_at = Column(DateTime(timezone=True), nullable=True)
    bounced_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), default=now_utc, nullable=False)

    __table_args__ = (
        Index('idx_email_logs_organization_id_created_at', 'organization_id', 'created_at'),
        Index('idx_email_logs_member_id', 'member_id'),
        Index('idx_email_logs_status', 'status'),
        Index('idx_email_logs_provider_message_id', 'provider_message_id'),
    )

    def get_metadata(self):
        return self.metadata_json

    def set_metadata(self, value):
        self.metadata_json = value


class MemberNotification(Base):
    """In-app message shown in the member portal."""
    __tablename__ = 'member_notifications'

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    organization_id = Column(UUID(as_uuid=True), ForeignKey('organizations.id', ondelete='CASCADE'), nullable=False)
    member_id = Column(UUID(as_uuid=True), ForeignKey('members.id', ondelete='CASCADE'), nullable=False)
    title = Column(String(200), nullable=False)
    message = Column(Text, nullable=False)
    link = Column(Text, nullable=True)
    icon = Column(String(50), nullable=True)
    type = Column(String(30), nullable=False, default='workflow')
    is_read = Column(Boolean, nullable=False, default=False)
    read_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), default=now_utc, nullable=False)

    __table_args__ = (
        Index('idx_member_notifications_member_id_created_at', 'member_id', 'created_at'),
    )
