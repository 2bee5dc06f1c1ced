import uuid
from datetime import date, datetime
from typing import Any, Dict, List, Literal, Optional
from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator


PlanType = Literal['monthly', 'quarterly', 'biannual', 'annual', 'session_card', 'unlimited']
PaymentMethod = Literal['card', 'sepa', 'cash', 'check', 'transfer', 'other']
PaymentStatus = Literal['pending', 'paid', 'failed', 'refunded', 'cancelled']


class PlanBase(BaseModel):
    name: str = Field(min_length=1)
    description: Optional[str] = None
    plan_type: PlanType
    price: float = Field(ge=0)
    currency: str = 'EUR'
    duration_days: Optional[int] = Field(default=None, gt=0)
    session_count: Optional[int] = Field(default=None, gt=0)
    max_classes_per_week: Optional[int] = Field(default=None, gt=0)
    max_bookings_per_day: Optional[int] = Field(default=None, gt=0)
    features: List[str] = Field(default_factory=list)
    display_order: int = 0


class PlanCreate(PlanBase):
    pass


class PlanUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1)
    description: Optional[str] = None
    plan_type: Optional[PlanType] = None
    price: Optional[float] = Field(default=None, ge=0)
    currency: Optional[str] = None
    duration_days: Optional[int] = Field(default=None, gt=0)
    session_count: Optional[int] = Field(default=None, gt=0)
    max_classes_per_week: Optional[int] = None
    max_bookings_per_day: Optional[int] = None
    features: Optional[List[str]] = None
    display_order: Optional[int] = None
    is_active: Optional[bool] = None

    @field_validator('name', 'plan_type', 'price', 'currency', 'features', 'display_order', 'is_active')
    @classmethod
    def _reject_null(cls, value):
        if value is None:
            raise ValueError("ne peut pas etre null")
        return value


class Plan(PlanBase):
    id: uuid.UUID
    organization_id: uuid.UUID
    is_active: bool
    created_at: datetime
    updated_at: datetime
    model_config = ConfigDict(from_attributes=True)


class SubscriptionCreate(BaseModel):
    member_id: uuid.UUID
    plan_id: uuid.UUID
    start_date: Optional[date] = None
    price_paid: Optional[float] = Field(default=None, ge=0)
    discount_percent: Optional[float] = Field(default=None, ge=0, le=100)
    discount_reason: Optional[str] = None
    payment_method: PaymentMethod = 'other'
    auto_renew: bool = False
    notes: Optional[str] = None


class SubscriptionUpdate(BaseModel):
    end_date: Optional[date] = None
    auto_renew: Optional[bool] = None
    notes: Optional[str] = None
    sessions_total: Optional[int] = None

    @field_validator('auto_renew')
    @classmethod
    def _reject_null(cls, value):
        if value is None:
            raise ValueError("ne peut pas etre null")
        return value


class Subscription(BaseModel):
    id: uuid.UUID
    organization_id: uuid.UUID
    member_id: uuid.UUID
    plan_id: Optional[uuid.UUID] = None
    status: str
    start_date: date
    end_date: Optional[date] = None
    paused_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    sessions_total: Optional[int] = None
    sessions_used: int
    sessions_remaining: Optional[int] = None
    price_paid: Optional[float] = None
    discount_percent: Optional[float] = None
    discount_reason: Optional[str] = None
    auto_renew: bool
    notes: Optional[str] = None
    created_at: datetime
    model_config = ConfigDict(from_attributes=True)


class PaymentCreate(BaseModel):
    member_id: uuid.UUID
    subscription_id: Optional[uuid.UUID] = None
    amount: float = Field(ge=0)
    currency: str = 'EUR'
    status: PaymentStatus = 'pending'
    payment_method: PaymentMethod = 'other'
    description: Optional[str] = None
    due_date: Optional[date] = None


class PaymentRefund(BaseModel):
    amount: Optional[float] = Field(default=None, gt=0)
    reason: Optional[str] = None


class Payment(BaseModel):
    id: uuid.UUID
    organization_id: uuid.UUID
    member_id: uuid.UUID
    subscription_id: Optional[uuid.UUID] = None
    amount: float
    currency: str
    status: str
    payment_method: str
    description: Optional[str] = None
    paid_at: Optional[datetime] = None
    due_date: Optional[date] = None
    refunded_amount: Optional[float] = None
    refunded_at: Optional[datetime] = None
    refund_reason: Optional[str] = None
    metadata: Optional[Dict[str, Any]] = Field(
        default=None, validation_alias=AliasChoices('metadata_json', 'metadata')
    )
    created_at: datetime
    model_config = ConfigDict(from_attributes=True)


class BillingStats(BaseModel):
    total: int
    active: int
    total_revenue: float
    pending_payments: int
