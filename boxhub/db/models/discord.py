import uuid
from sqlalchemy import Column, String, Text, DateTime, Boolean, ForeignKey, Index
from sqlalchemy.dialects.postgresql import UUID, JSONB
from .base import Base, now_utc


DISCORD_MESSAGE_TYPES = (
    'wod', 'welcome', 'class_reminder', 'subscription_alert', 'achievement', 'announcement', 'custom',
)
DEFAULT_DISCORD_NOTIFICATION_TYPES = {
    'welcome': True,
    'class_reminder': False,
    'subscription_alert': False,
    'achievement': True,
    'announcement': True,
}
DEFAULT_POST_WOD_DAYS = ['monday', 'tuesday', 'wednesday', 'thursday', 'friday']


class DiscordConfig(Base):
    __tablename__ = 'discord_configs'

    organization_id = Column(UUID(as_uuid=True), ForeignKey('organizations.id', ondelete='CASCADE'), primary_key=True)
    webhook_url = Column(Text, nullable=True)
    wod_channel_webhook = Column(Text, nullable=True)
    auto_post_wod = Column(Boolean, nullable=False, default=False)
    post_wod_time = Column(String(8), nullable=False, default='06:00')
    post_wod_days = Column(JSONB, nullable=False, default=lambda: list(DEFAULT_POST_WOD_DAYS))
    notification_types = Column(JSONB, nullable=False, default=lambda: dict(DEFAULT_DISCORD_NOTIFICATION_TYPES))
    is_active = Column(Boolean, nullable=False, default=True)
    last_wod_posted_at = Column(DateTime(timezone=True), nullable=True)
    last_wod_workout_id = Column(UUID(as_uuid=True), nullable=True)
    created_at = Column(DateTime(timezone=True), default=now_utc, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=now_utc, onupdate=now_utc, nullable=False)


class DiscordLog(Base):
    __tablename__ = 'discord_logs'

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    organization_id = Column(UUID(as_uuid=True), ForeignKey('organizations.id', ondelete='CASCADE'), nullable=False)
    member_id = Column(UUID(as_uuid=True), ForeignKey('members.id', ondelete='SET NULL'), nullable=True)
    workout_id = Column(UUID(as_uuid=True), ForeignKey('workouts.id', ondelete='SET NULL'), nullable=True)
    class_id = Column(UUID(as_uuid=True), ForeignKey('classes.id', ondelete='SET NULL'), nullable=True)
    message_type = Column(String(30), nullable=False)
    webhook_url = Column(Text, nullable=False)
    content = Column(Text, nullable=True)
    embed_data = Column(JSONB, nullable=True)
    status = Column(String(20), nullable=False, default='pending')
    discord_message_id = Column(String(64), nullable=True)
    error_message = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), default=now_utc, nullable=False)
    sent_at = Column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        Index('ix_discord_logs_organization_id_created_at', 'organization_id', 'created_at'),
    )
