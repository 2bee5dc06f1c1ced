import uuid
from datetime import date, datetime
from typing import List, Literal, Optional
from pydantic import BaseModel, ConfigDict, Field, field_validator


ClassType = Literal['group', 'private', 'open_gym', 'event', 'workshop']
RecurrencePattern = Literal['daily', 'weekly', 'biweekly', 'monthly']


def _not_null(value):
    if value is None:
        raise ValueError("ne peut pas etre null")
    return value


class ClassTemplateBase(BaseModel):
    name: str = Field(min_length=1)
    description: Optional[str] = None
    class_type: ClassType = 'group'
    duration_minutes: int = Field(default=60, ge=15, le=480)
    max_participants: Optional[int] = Field(default=None, gt=0)
    min_participants: int = Field(default=1, ge=0)
    color: str = '#3b82f6'
    default_coach_id: Optional[uuid.UUID] = None
    default_location: Optional[str] = None
    requires_subscription: bool = True
    allowed_plan_types: Optional[List[str]] = None
    session_cost: int = Field(default=1, ge=0)


class ClassTemplateCreate(ClassTemplateBase):
    pass


class ClassTemplateUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1)
    description: Optional[str] = None
    class_type: Optional[ClassType] = None
    duration_minutes: Optional[int] = Field(default=None, ge=15, le=480)
    max_participants: Optional[int] = Field(default=None, gt=0)
    min_participants: Optional[int] = Field(default=None, ge=0)
    color: Optional[str] = None
    default_coach_id: Optional[uuid.UUID] = None
    default_location: Optional[str] = None
    requires_subscription: Optional[bool] = None
    allowed_plan_types: Optional[List[str]] = None
    session_cost: Optional[int] = Field(default=None, ge=0)

    @field_validator('name', 'class_type', 'duration_minutes', 'min_participants', 'color', 'requires_subscription', 'session_cost')
    @classmethod
    def _reject_null(cls, value):
        return _not_null(value)


class ClassTemplate(ClassTemplateBase):
    id: uuid.UUID
    organization_id: uuid.UUID
    is_active: bool
    created_at: datetime
    model_config = ConfigDict(from_attributes=True)


class GymClassCreate(BaseModel):
    template_id: Optional[uuid.UUID] = None
    name: Optional[str] = None
    description: Optional[str] = None
    class_type: Optional[ClassType] = None
    start_time: datetime
    duration_minutes: Optional[int] = Field(default=None, ge=15, le=480)
    max_participants: Optional[int] = Field(default=None, gt=0)
    min_participants: Optional[int] = Field(default=None, ge=0)
    coach_id: Optional[uuid.UUID] = None
    location: Optional[str] = None
    room: Optional[str] = None
    color: Optional[str] = None
    requires_subscription: Optional[bool] = None
    drop_in_price: Optional[float] = None
    session_cost: Optional[int] = Field(default=None, ge=0)
    notes: Optional[str] = None
    workout_id: Optional[uuid.UUID] = None


class GymClassUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1)
    description: Optional[str] = None
    class_type: Optional[ClassType] = None
    start_time: Optional[datetime] = None
    duration_minutes: Optional[int] = Field(default=None, ge=15, le=480)
    max_participants: Optional[int] = Field(default=None, gt=0)
    min_participants: Optional[int] = Field(default=None, ge=0)
    coach_id: Optional[uuid.UUID] = None
    location: Optional[str] = None
    room: Optional[str] = None
    color: Optional[str] = None
    requires_subscription: Optional[bool] = None
    drop_in_price: Optional[float] = None
    notes: Optional[str] = None
    status: Optional[Literal['scheduled', 'in_progress', 'completed']] = None

    @field_validator('name', 'class_type', 'start_time', 'duration_minutes', 'min_participants', 'color', 'requires_subscription', 'status')
    @classmethod
    def _reject_null(cls, value):
        return _not_null(value)


class GymClass(BaseModel):
    id: uuid.UUID
    organization_id: uuid.UUID
    template_id: Optional[uuid.UUID] = None
    name: str
    description: Optional[str] = None
    class_type: str
    status: str
    start_time: datetime
    end_time: datetime
    duration_minutes: int
    max_participants: Optional[int] = None
    min_participants: int
    current_participants: int
    waitlist_count: int
    coach_id: Optional[uuid.UUID] = None
    location: Optional[str] = None
    room: Optional[str] = None
    color: str
    recurrence_type: str
    recurrence_id: Optional[uuid.UUID] = None
    requires_subscription: bool
    drop_in_price: Optional[float] = None
    session_cost: int
    notes: Optional[str] = None
    cancelled_reason: Optional[str] = None
    cancelled_at: Optional[datetime] = None
    workout_id: Optional[uuid.UUID] = None
    model_config = ConfigDict(from_attributes=True)


class ClassCancel(BaseModel):
    reason: Optional[str] = None


class BookingCreate(BaseModel):
    member_id: uuid.UUID
    notes: Optional[str] = None
    is_drop_in: bool = False


class BookingCancel(BaseModel):
    reason: Optional[str] = None


class Booking(BaseModel):
    id: uuid.UUID
    organization_id: uuid.UUID
    class_id: uuid.UUID
    member_id: uuid.UUID
    subscription_id: Optional[uuid.UUID] = None
    status: str
    waitlist_position: Optional[int] = None
    checked_in_at: Optional[datetime] = None
    is_drop_in: bool
    sessions_deducted: int
    cancelled_at: Optional[datetime] = None
    cancelled_reason: Optional[str] = None
    no_show_at: Optional[datetime] = None
    notes: Optional[str] = None
    created_at: datetime
    model_config = ConfigDict(from_attributes=True)


class RecurringClassesCreate(BaseModel):
    template_id: Optional[uuid.UUID] = None
    name: Optional[str] = None
    class_type: Optional[ClassType] = None
    duration_minutes: Optional[int] = Field(default=None, ge=15, le=480)
    max_participants: Optional[int] = Field(default=None, gt=0)
    coach_id: Optional[uuid.UUID] = None
    location: Optional[str] = None
    color: Optional[str] = None
    start_date: date
    end_date: date
    time: str = Field(pattern=r'^\d{2}:\d{2}$')
    pattern: RecurrencePattern
    # 0 = Sunday ... 6 = Saturday
    days_of_week: List[int] = Field(default_factory=list)
    exclude_dates: List[date] = Field(default_factory=list)


class RecurringClassesDelete(BaseModel):
    class_ids: List[uuid.UUID] = Field(default_factory=list)
    recurrence_id: Optional[uuid.UUID] = None


class WorkoutLink(BaseModel):
    workout_id: Optional[uuid.UUID] = None


class PlanningStats(BaseModel):
    total: int
    scheduled: int
    cancelled: int
    total_participants: int
    average_occupancy: int


class ClassBooking(Booking):
    member_name: Optional[str] = None
    member_email: Optional[str] = None


class GymClassDetail(GymClass):
    bookings: List[ClassBooking] = Field(default_factory=list)


class BookingCancelResult(BaseModel):
    booking: Booking
    promoted_booking: Optional[Booking] = None


class ClassCancelResult(BaseModel):
    gym_class: GymClass
    cancelled_bookings: int
    notified: int


class RecurringClassesResult(BaseModel):
    count: int
    class_ids: List[uuid.UUID]
    recurrence_id: uuid.UUID


class RecurringDeleteResult(BaseModel):
    deleted: int
    skipped: int


class MemberClass(GymClass):
    """A class as seen from the member portal, with the caller's own booking."""
    booking_id: Optional[uuid.UUID] = None
    booking_status: Optional[str] = None
    waitlist_position: Optional[int] = None


class MemberBookingCreate(BaseModel):
    notes: Optional[str] = None


class MemberBookingHistoryItem(BaseModel):
    booking: Booking
    gym_class: GymClass
