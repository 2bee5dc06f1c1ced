import uuid
from sqlalchemy import Column, String, DateTime, Boolean, ForeignKey, Index, CheckConstraint, Text
from sqlalchemy.dialects.postgresql import UUID, JSONB
from sqlalchemy.orm import relationship
from .base import Base, now_utc


DEFAULT_PRIMARY_COLOR = '#3b82f6'
DEFAULT_SECONDARY_COLOR = '#1e293b'


class Organization(Base):
    """A box (gym). Every tenant-owned row points back here."""
    __tablename__ = 'organizations'
    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name = Column(String, nullable=False, unique=True)
    slug = Column(String, nullable=True, unique=True)
    email = Column(String, nullable=True)
    phone = Column(String, nullable=True)
    address = Column(Text, nullable=True)
    logo_url = Column(Text, nullable=True)
    # primary_color, secondary_color, timezone, ...
    settings = Column(JSONB, nullable=False, default=dict)
    is_active = Column(Boolean, nullable=False, default=True)
    created_by = Column(UUID(as_uuid=True), ForeignKey('users.id'), nullable=True)
    # Platform billing
    platform_plan_id = Column(UUID(as_uuid=True), ForeignKey('platform_plans.id', ondelete='SET NULL'), nullable=True)
    platform_subscription_status = Column(String, nullable=False, default='trialing')
    trial_ends_at = Column(DateTime(timezone=True), nullable=True)
    billing_email = Column(String, nullable=True)
    owner_user_id = Column(UUID(as_uuid=True), ForeignKey('users.id', ondelete='SET NULL'), nullable=True)
    created_at = Column(DateTime(timezone=True), default=now_utc)
    updated_at = Column(DateTime(timezone=True), default=now_utc, onupdate=now_utc)

    platform_plan = relationship("PlatformPlan", lazy="joined")

    def get_setting(self, key, default=None):
        return (self.settings or {}).get(key, default)


class OrganizationMembership(Base):
    """Staff access to an organization. Gym members live in `members`."""
    __tablename__ = 'organization_memberships'
    organization_id = Column(UUID(as_uuid=True), ForeignKey('organizations.id'), primary_key=True)
    user_id = Column(UUID(as_uuid=True), ForeignKey('users.id'), primary_key=True)
    role = Column(String, nullable=False)  # 'owner'|'admin'|'coach'|'staff'
    can_read = Column(Boolean, nullable=False, default=True)
    can_write = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), default=now_utc)

    __table_args__ = (
        Index('idx_org_memberships_user_id', 'user_id'),
        CheckConstraint("role in ('owner','admin','coach','staff')", name='ck_org_memberships_role'),
    )
