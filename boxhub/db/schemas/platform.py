import uuid
from datetime import datetime
from typing import Dict, List, Literal, Optional
from pydantic import BaseModel, ConfigDict, Field, field_validator

from .organizations import Organization


PlanTier = Literal['free_trial', 'basic', 'pro', 'enterprise']
SubscriptionStatus = Literal['trialing', 'active', 'past_due', 'canceled', 'unpaid']
InviteRole = Literal['owner', 'admin', 'coach', 'staff']


class PlatformPlan(BaseModel):
    id: uuid.UUID
    name: str
    tier: str
    description: Optional[str] = None
    price_monthly: int
    price_yearly: Optional[int] = None
    currency: str
    max_members: Optional[int] = None
    max_staff: Optional[int] = None
    max_classes_per_month: Optional[int] = None
    features: Dict[str, bool] = Field(default_factory=dict)
    is_active: bool
    sort_order: int
    model_config = ConfigDict(from_attributes=True)


class PlatformPlanUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1)
    description: Optional[str] = None
    price_monthly: Optional[int] = Field(default=None, ge=0)
    price_yearly: Optional[int] = Field(default=None, ge=0)
    max_members: Optional[int] = Field(default=None, ge=0)
    max_staff: Optional[int] = Field(default=None, ge=0)
    max_classes_per_month: Optional[int] = Field(default=None, ge=0)
    # Merged into the stored feature map
    features: Optional[Dict[str, bool]] = None
    is_active: Optional[bool] = None
    sort_order: Optional[int] = None

    @field_validator('name', 'price_monthly', 'is_active', 'sort_order')
    @classmethod
    def _reject_null(cls, value):
        if value is None:
            raise ValueError("ne peut pas etre null")
        return value


class PlatformOrganizationCreate(BaseModel):
    name: str = Field(min_length=1)
    slug: str = Field(min_length=2, pattern=r'^[a-z0-9-]+$')
    owner_email: str
    plan_tier: PlanTier = 'free_trial'
    timezone: str = 'Europe/Paris'


class PlatformOrganization(Organization):
    platform_plan_id: Optional[uuid.UUID] = None
    platform_subscription_status: str
    trial_ends_at: Optional[datetime] = None
    billing_email: Optional[str] = None
    owner_user_id: Optional[uuid.UUID] = None
    platform_plan: Optional[PlatformPlan] = None


class PlatformOrganizationList(BaseModel):
    items: List[PlatformOrganization]
    total: int
    page: int
    page_size: int


class SuspendRequest(BaseModel):
    reason: Optional[str] = None


class ChangePlanRequest(BaseModel):
    plan_tier: PlanTier


class SubscriptionStatusUpdate(BaseModel):
    status: SubscriptionStatus


class OwnerInvite(BaseModel):
    email: str = Field(min_length=3)
    role: InviteRole = 'owner'


class Invitation(BaseModel):
    id: uuid.UUID
    organization_id: uuid.UUID
    email: str
    role: str
    status: str
    expires_at: datetime
    accepted_at: Optional[datetime] = None
    created_at: datetime
    model_config = ConfigDict(from_attributes=True)


class InvitationPreview(BaseModel):
    """What the invitee sees before accepting."""
    email: str
    role: str
    expires_at: datetime
    organization_id: uuid.UUID
    organization_name: str
    organization_slug: Optional[str] = None


class PlanLimits(BaseModel):
    within_member_limit: bool
    current_members: int
    max_members: Optional[int] = None
    within_staff_limit: bool
    current_staff: int
    max_staff: Optional[int] = None


class PlatformStats(BaseModel):
    total_orgs: int
    active_orgs: int
    suspended_orgs: int
    trials: int
    active_subscriptions: int
    total_members: int
    mrr_cents: int
