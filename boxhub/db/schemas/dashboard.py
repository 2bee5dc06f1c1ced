import uuid
from datetime import datetime
from typing import List
from pydantic import BaseModel

from .planning import GymClass


class MemberStats(BaseModel):
    total: int
    active: int
    new_this_month: int


class SubscriptionStats(BaseModel):
    active: int
    expiring_soon: int
    revenue: float


class PlanningOverview(BaseModel):
    classes_today: int
    classes_this_week: int
    average_attendance: int
    upcoming_classes: List[GymClass]


class RecentBooking(BaseModel):
    booking_id: uuid.UUID
    status: str
    member_name: str
    class_name: str
    class_start: datetime
    created_at: datetime


class DashboardStats(BaseModel):
    members: MemberStats
    subscriptions: SubscriptionStats
    planning: PlanningOverview
    recent_activity: List[RecentBooking]


class RevenuePoint(BaseModel):
    month: str
    revenue: float


class AttendancePoint(BaseModel):
    date: str
    count: int
