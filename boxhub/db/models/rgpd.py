import uuid
from sqlalchemy import Column, String, Text, DateTime, Boolean, ForeignKey, Index, CheckConstraint
from sqlalchemy.dialects.postgresql import UUID, JSONB
from .base import Base, now_utc


CONSENT_TYPES = (
    'marketing_email',
    'marketing_sms',
    'data_processing',
    'photo_usage',
    'health_data',
    'newsletter',
)
REQUEST_TYPES = (
    'data_export',
    'data_deletion',
    'data_rectification',
    'data_access',
    'data_portability',
    'processing_restriction',
)
REQUEST_STATUSES = ('pending', 'processing', 'completed', 'rejected', 'cancelled')
OPEN_REQUEST_STATUSES = ('pending', 'processing')


class MemberConsent(Base):
    """Consent history. Rows are only appended; the latest per type is current."""
    __tablename__ = 'member_consents'

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    organization_id = Column(UUID(as_uuid=True), ForeignKey('organizations.id', ondelete='CASCADE'), nullable=False)
    member_id = Column(UUID(as_uuid=True), ForeignKey('members.id', ondelete='CASCADE'), nullable=False)
    consent_type = Column(String, nullable=False)
    granted = Column(Boolean, nullable=False)
    source = Column(String, nullable=False, default='web')
    ip_address = Column(String, nullable=True)
    user_agent = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), default=now_utc, nullable=False)

    __table_args__ = (
        Index('ix_member_consents_member_id_type_created_at', 'member_id', 'consent_type', 'created_at'),
    )


class RgpdRequest(Base):
    __tablename__ = 'rgpd_requests'

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    organization_id = Column(UUID(as_uuid=True), ForeignKey('organizations.id', ondelete='CASCADE'), nullable=False)
    member_id = Column(UUID(as_uuid=True), ForeignKey('members.id', ondelete='CASCADE'), nullable=False)
    request_type = Column(String, nullable=False)
    status = Column(String, nullable=False, default='pending')
    reason = Column(Text, nullable=True)
    rejection_reason = Column(Text, nullable=True)
    due_date = Column(DateTime(timezone=True), nullable=False)
    processed_by = Column(UUID(as_uuid=True), ForeignKey('users.id', ondelete='SET NULL'), nullable=True)
    processed_at = Column(DateTime(timezone=True), nullable=True)
    export_file_url = Column(Text, nullable=True)
    export_expires_at = Column(DateTime(timezone=True), nullable=True)
    export_data = Column(JSONB, nullable=True)
    created_at = Column(DateTime(timezone=True), default=now_utc, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=now_utc, onupdate=now_utc, nullable=False)

    __table_args__ = (
        Index('ix_rgpd_requests_organization_id_status', 'organization_id', 'status'),
        Index('ix_rgpd_requests_member_id', 'member_id'),
        CheckConstraint(
            "status in ('pending','processing','completed','rejected','cancelled')",
            name='ck_rgpd_requests_status',
        ),
    )


class RgpdAuditLog(Base):
    __tablename__ = 'rgpd_audit_logs'

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    organization_id = Column(UUID(as_uuid=True), ForeignKey('organizations.id', ondelete='CASCADE'), nullable=False)
    member_id = Column(UUID(as_uuid=True), ForeignKey('members.id', ondelete='SET NULL'), nullable=True)
    actor_user_id = Column(UUID(as_uuid=True), ForeignKey('users.id', ondelete='SET NULL'), nullable=True)
    action = Column(String, nullable=False)
    entity_type = Column(String, nullable=False)
    entity_id = Column(UUID(as_uuid=True), nullable=True)
    details = Column(JSONB, nullable=True)
    ip_address = Column(String, nullable=True)
    user_agent = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), default=now_utc, nullable=False)

    __table_args__ = (
        Index('ix_rgpd_audit_logs_organization_id_created_at', 'organization_id', 'created_at'),
    )
