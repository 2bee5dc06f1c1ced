import secrets
import uuid
from sqlalchemy import Column, String, Text, DateTime, Boolean, Integer, ForeignKey, Index, CheckConstraint
from sqlalchemy.dialects.postgresql import UUID, JSONB
from .base import Base, now_utc


PLATFORM_PLAN_TIERS = ('free_trial', 'basic', 'pro', 'enterprise')
PLATFORM_SUBSCRIPTION_STATUSES = ('trialing', 'active', 'past_due', 'canceled', 'unpaid')
INVITATION_STATUSES = ('pending', 'accepted', 'expired', 'revoked')

# Keys of PlatformPlan.features
PLAN_FEATURE_KEYS = (
    'members',
    'subscriptions',
    'planning',
    'workouts',
    'tv_display',
    'teams',
    'discord',
    'workflows',
    'api_access',
    'white_label',
    'priority_support',
)


_CORE = {key: True for key in ('members', 'subscriptions', 'planning', 'workouts')}

# Seeded tiers; prices in cents, None limits mean unlimited
DEFAULT_PLATFORM_PLANS = (
    {
        'tier': 'free_trial', 'name': 'Essai gratuit', 'price_monthly': 0, 'price_yearly': None,
        'max_members': 50, 'max_staff': 3, 'max_classes_per_month': 100, 'sort_order': 0,
        'features': {**_CORE, 'tv_display': True, 'discord': True, 'teams': True, 'workflows': True},
    },
    {
        'tier': 'basic', 'name': 'Basic', 'price_monthly': 4900, 'price_yearly': 49000,
        'max_members': 150, 'max_staff': 5, 'max_classes_per_month': None, 'sort_order': 1,
        'features': {**_CORE, 'tv_display': True, 'discord': False, 'teams': False, 'workflows': False},
    },
    {
        'tier': 'pro', 'name': 'Pro', 'price_monthly': 9900, 'price_yearly': 99000,
        'max_members': 500, 'max_staff': 15, 'max_classes_per_month': None, 'sort_order': 2,
        'features': {**_CORE, 'tv_display': True, 'discord': True, 'teams': True, 'workflows': True},
    },
    {
        'tier': 'enterprise', 'name': 'Enterprise', 'price_monthly': 19900, 'price_yearly': 199000,
        'max_members': None, 'max_staff': None, 'max_classes_per_month': None, 'sort_order': 3,
        'features': {key: True for key in PLAN_FEATURE_KEYS},
    },
)


def new_invitation_token() -> str:
    return secrets.token_urlsafe(32)


class PlatformPlan(Base):
    """What a box pays BoxHub for; limits and the feature map of its tier."""
    __tablename__ = 'platform_plans'
    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name = Column(String, nullable=False)
    tier = Column(String, nullable=False, unique=True)
    description = Column(Text, nullable=True)
    price_monthly = Column(Integer, nullable=False, default=0)  # cents
    price_yearly = Column(Integer, nullable=True)
    currency = Column(String(3), nullable=False, default='EUR')
    # None means unlimited
    max_members = Column(Integer, nullable=True)
    max_staff = Column(Integer, nullable=True)
    max_classes_per_month = Column(Integer, nullable=True)
    features = Column(JSONB, nullable=False, default=dict)
    is_active = Column(Boolean, nullable=False, default=True)
    sort_order = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), default=now_utc)
    updated_at = Column(DateTime(timezone=True), default=now_utc, onupdate=now_utc)

    __table_args__ = (
        CheckConstraint("tier in ('free_trial','basic','pro','enterprise')", name='ck_platform_plans_tier'),
    )


class OrganizationInvitation(Base):
    """Invitation for someone to take over a box, usually as its owner."""
    __tablename__ = 'organization_invitations'
    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    organization_id = Column(UUID(as_uuid=True), ForeignKey('organizations.id', ondelete='CASCADE'), nullable=False)
    email = Column(String, nullable=False)
    role = Column(String, nullable=False, default='owner')
    token = Column(String, nullable=False, unique=True, default=new_invitation_token)
    status = Column(String, nullable=False, default='pending')
    invited_by = Column(UUID(as_uuid=True), ForeignKey('users.id', ondelete='SET NULL'), nullable=True)
    expires_at = Column(DateTime(timezone=True), nullable=False)
    accepted_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), default=now_utc)

    __table_args__ = (
        Index('ix_organization_invitations_organization_id', 'organization_id'),
        CheckConstraint("status in ('pending','accepted','expired','revoked')", name='ck_organization_invitations_status'),
        CheckConstraint("role in ('owner','admin','coach','staff')", name='ck_organization_invitations_role'),
    )
