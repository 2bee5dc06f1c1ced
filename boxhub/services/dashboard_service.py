"""Dashboard aggregates for an organization."""

import logging
import uuid
from collections import OrderedDict
from datetime import datetime, timedelta
from typing import Optional, Dict, Any, List

from sqlalchemy.orm import Session

from boxhub.db import models
from boxhub.db.repositories import billing as billing_repo
from boxhub.db.repositories import members as members_repo
from boxhub.db.repositories import planning as planning_repo
from boxhub.utils.dates import add_months, as_utc, day_bounds, start_of_day

logger = logging.getLogger(__name__)

EXPIRING_SOON_DAYS = 30


def get_dashboard_stats(db: Session, organization_id: uuid.UUID, now: Optional[datetime] = None) -> Dict[str, Any]:
    now = now or models.now_utc()
    today = now.date()
    month_start = today.replace(day=1)
    week_start = today - timedelta(days=today.weekday())

    counts = members_repo.count_members_by_status(db, organization_id)
    today_start, today_end = day_bounds(today)
    week_classes = planning_repo.list_classes(
        db, organization_id, start_of_day(week_start), start_of_day(week_start + timedelta(days=7))
    )
    classes_today = [c for c in week_classes if today_start <= as_utc(c.start_time) < today_end]
    with_capacity = [c for c in week_classes if c.max_participants and c.status != 'cancelled']
    average_attendance = (
        round(sum(c.current_participants / c.max_participants * 100 for c in with_capacity) / len(with_capacity))
        if with_capacity else 0
    )

    recent = [
        {
            'booking_id': booking.id,
            'status': booking.status,
            'member_name': member.full_name,
            'class_name': gym_class.name,
            'class_start': gym_class.start_time,
            'created_at': booking.created_at,
        }
        for booking, gym_class, member in planning_repo.get_recent_bookings(db, organization_id, limit=5)
    ]

    return {
        'members': {
            'total': counts['total'],
            'active': counts['active'],
            'new_this_month': members_repo.count_new_members_since(db, organization_id, month_start),
        },
        'subscriptions': {
            'active': billing_repo.count_subscriptions(db, organization_id, status='active'),
            'expiring_soon': len(billing_repo.get_expiring_subscriptions(
                db, organization_id, today, today + timedelta(days=EXPIRING_SOON_DAYS)
            )),
            'revenue': billing_repo.sum_paid_payments(db, organization_id, since=start_of_day(month_start)),
        },
        'planning': {
            'classes_today': len([c for c in classes_today if c.status != 'cancelled']),
            'classes_this_week': len([c for c in week_classes if c.status != 'cancelled']),
            'average_attendance': average_attendance,
            'upcoming_classes': planning_repo.get_upcoming_classes(db, organization_id, now, limit=5),
        },
        'recent_activity': recent,
    }


def revenue_by_month(db: Session, organization_id: uuid.UUID, months: int = 6, now: Optional[datetime] = None) -> List[Dict[str, Any]]:
    """Paid revenue per calendar month, oldest first, zero-filled."""
    now = now or models.now_utc()
    first_month = add_months(now.date().replace(day=1), -(months - 1))
    buckets = OrderedDict(
        (add_months(first_month, i).strftime('%Y-%m'), 0.0) for i in range(months)
    )
    for payment in billing_repo.get_paid_payments_since(db, organization_id, start_of_day(first_month)):
        key = as_utc(payment.paid_at).strftime('%Y-%m')
        if key in buckets:
            buckets[key] += float(payment.amount or 0)
    return [{'month': month, 'revenue': round(total, 2)} for month, total in buckets.items()]


def attendance_by_day(db: Session, organization_id: uuid.UUID, days: int = 7, now: Optional[datetime] = None) -> List[Dict[str, Any]]:
    """Check-in counts per day over the last `days` days, oldest first."""
    now = now or models.now_utc()
    first_day = now.date() - timedelta(days=days - 1)
    buckets = OrderedDict(((first_day + timedelta(days=i)).isoformat(), 0) for i in range(days))
    for (checked_in_at,) in planning_repo.get_checkins_since(db, organization_id, start_of_day(first_day)):
        key = as_utc(checked_in_at).date().isoformat()
        if key in buckets:
            buckets[key] += 1
    return [{'date': day, 'count': count} for day, count in buckets.items()]
