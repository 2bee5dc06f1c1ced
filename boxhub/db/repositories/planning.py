"""
Planning repository functions: class templates, classes and bookings.

Seat and waitlist counters on `classes` are only changed through the
conditional UPDATE helpers below so concurrent bookings cannot oversell a
class. Callers commit.
"""
from __future__ import annotations

import uuid
from datetime import datetime, timedelta
from typing import Iterable, Optional
from sqlalchemy import or_
from sqlalchemy.orm import Session

from boxhub.db import schemas, models
from boxhub.db.models.planning import ACTIVE_BOOKING_STATUSES


# Templates

def list_templates(db: Session, organization_id: uuid.UUID, include_inactive: bool = False):
    query = db.query(models.ClassTemplate).filter(models.ClassTemplate.organization_id == organization_id)
    if not include_inactive:
        query = query.filter(models.ClassTemplate.is_active.is_(True))
    return query.order_by(models.ClassTemplate.name).all()


def get_template(db: Session, organization_id: uuid.UUID, template_id: uuid.UUID):
    return (
        db.query(models.ClassTemplate)
        .filter(
            models.ClassTemplate.id == template_id,
            models.ClassTemplate.organization_id == organization_id,
        )
        .first()
    )


def create_template(db: Session, organization_id: uuid.UUID, template: schemas.ClassTemplateCreate):
    db_template = models.ClassTemplate(organization_id=organization_id, **template.model_dump())
    db.add(db_template)
    db.commit()
    db.refresh(db_template)
    return db_template


def update_template(db: Session, organization_id: uuid.UUID, template_id: uuid.UUID, template: schemas.ClassTemplateUpdate):
    db_template = get_template(db, organization_id, template_id)
    if db_template:
        for key, value in template.model_dump(exclude_unset=True).items():
            setattr(db_template, key, value)
        db.commit()
        db.refresh(db_template)
    return db_template


def deactivate_template(db: Session, organization_id: uuid.UUID, template_id: uuid.UUID) -> bool:
    db_template = get_template(db, organization_id, template_id)
    if not db_template:
        return False
    db_template.is_active = False
    db.commit()
    return True


# Classes

def list_classes(
    db: Session,
    organization_id: uuid.UUID,
    start: datetime,
    end: datetime,
    *,
    status: Optional[str] = None,
    coach_id: Optional[uuid.UUID] = None,
):
    query = db.query(models.GymClass).filter(
        models.GymClass.organization_id == organization_id,
        models.GymClass.start_time >= start,
        models.GymClass.start_time <= end,
    )
    if status:
        query = query.filter(models.GymClass.status == status)
    if coach_id:
        query = query.filter(models.GymClass.coach_id == coach_id)
    return query.order_by(models.GymClass.start_time).all()


def get_class(db: Session, organization_id: uuid.UUID, class_id: uuid.UUID):
    return (
        db.query(models.GymClass)
        .filter(models.GymClass.id == class_id, models.GymClass.organization_id == organization_id)
        .first()
    )


def get_class_by_id(db: Session, class_id: uuid.UUID):
    return db.query(models.GymClass).filter(models.GymClass.id == class_id).first()


def add_class(db: Session, db_class: models.GymClass, commit: bool = True):
    db.add(db_class)
    if commit:
        db.commit()
        db.refresh(db_class)
    else:
        db.flush()
    return db_class


def get_classes_by_ids(db: Session, organization_id: uuid.UUID, class_ids: Iterable[uuid.UUID]):
    ids = list(class_ids)
    if not ids:
        return []
    return (
        db.query(models.GymClass)
        .filter(models.GymClass.organization_id == organization_id, models.GymClass.id.in_(ids))
        .all()
    )


def get_classes_by_recurrence(db: Session, organization_id: uuid.UUID, recurrence_id: uuid.UUID):
    return (
        db.query(models.GymClass)
        .filter(
            models.GymClass.organization_id == organization_id,
            models.GymClass.recurrence_id == recurrence_id,
        )
        .order_by(models.GymClass.start_time)
        .all()
    )


def get_current_class(db: Session, organization_id: uuid.UUID, now: datetime):
    return (
        db.query(models.GymClass)
        .filter(
            models.GymClass.organization_id == organization_id,
            models.GymClass.status == 'scheduled',
            models.GymClass.start_time <= now,
            models.GymClass.end_time >= now,
        )
        .order_by(models.GymClass.start_time)
        .first()
    )


def get_next_class(db: Session, organization_id: uuid.UUID, now: datetime):
    return (
        db.query(models.GymClass)
        .filter(
            models.GymClass.organization_id == organization_id,
            models.GymClass.status == 'scheduled',
            models.GymClass.start_time > now,
        )
        .order_by(models.GymClass.start_time)
        .first()
    )


def get_upcoming_classes(db: Session, organization_id: uuid.UUID, now: datetime, limit: int = 5):
    return (
        db.query(models.GymClass)
        .filter(
            models.GymClass.organization_id == organization_id,
            models.GymClass.status == 'scheduled',
            models.GymClass.start_time >= now,
        )
        .order_by(models.GymClass.start_time)
        .limit(limit)
        .all()
    )


def count_bookings_with_status(db: Session, class_id: uuid.UUID, status: str) -> int:
    return (
        db.query(models.Booking)
        .filter(models.Booking.class_id == class_id, models.Booking.status == status)
        .count()
    )


def delete_class(db: Session, db_class: models.GymClass, commit: bool = True):
    db.query(models.Booking).filter(models.Booking.class_id == db_class.id).delete(synchronize_session=False)
    db.delete(db_class)
    if commit:
        db.commit()


# Atomic counters

def try_reserve_seat(db: Session, class_id: uuid.UUID) -> bool:
    """Take one seat if the class has room. Returns False when full."""
    result = (
        db.query(models.GymClass)
        .filter(
            models.GymClass.id == class_id,
            or_(
                models.GymClass.max_participants.is_(None),
                models.GymClass.current_participants < models.GymClass.max_participants,
            ),
        )
        .update(
            {models.GymClass.current_participants: models.GymClass.current_participants + 1},
            synchronize_session=False,
        )
    )
    return result == 1


def release_seat(db: Session, class_id: uuid.UUID) -> None:
    (
        db.query(models.GymClass)
        .filter(models.GymClass.id == class_id, models.GymClass.current_participants > 0)
        .update(
            {models.GymClass.current_participants: models.GymClass.current_participants - 1},
            synchronize_session=False,
        )
    )


def increment_waitlist(db: Session, class_id: uuid.UUID) -> int:
    """Add one to the waitlist counter and return the new value (the position)."""
    (
        db.query(models.GymClass)
        .filter(models.GymClass.id == class_id)
        .update(
            {models.GymClass.waitlist_count: models.GymClass.waitlist_count + 1},
            synchronize_session=False,
        )
    )
    return db.query(models.GymClass.waitlist_count).filter(models.GymClass.id == class_id).scalar()


def decrement_waitlist(db: Session, class_id: uuid.UUID) -> None:
    (
        db.query(models.GymClass)
        .filter(models.GymClass.id == class_id, models.GymClass.waitlist_count > 0)
        .update(
            {models.GymClass.waitlist_count: models.GymClass.waitlist_count - 1},
            synchronize_session=False,
        )
    )


# Bookings

def get_booking(db: Session, organization_id: uuid.UUID, booking_id: uuid.UUID):
    return (
        db.query(models.Booking)
        .filter(models.Booking.id == booking_id, models.Booking.organization_id == organization_id)
        .first()
    )


def get_member_booking_for_class(db: Session, class_id: uuid.UUID, member_id: uuid.UUID):
    """Booking still holding a seat or a waitlist slot (not cancelled nor no-show)."""
    return (
        db.query(models.Booking)
        .filter(
            models.Booking.class_id == class_id,
            models.Booking.member_id == member_id,
            models.Booking.status.in_(ACTIVE_BOOKING_STATUSES),
        )
        .first()
    )


def get_class_bookings(db: Session, class_id: uuid.UUID, statuses: Optional[Iterable[str]] = None):
    query = db.query(models.Booking).filter(models.Booking.class_id == class_id)
    if statuses:
        query = query.filter(models.Booking.status.in_(list(statuses)))
    return query.order_by(models.Booking.created_at).all()


def get_class_bookings_with_members(db: Session, class_id: uuid.UUID):
    return (
        db.query(models.Booking, models.Member)
        .join(models.Member, models.Member.id == models.Booking.member_id)
        .filter(models.Booking.class_id == class_id)
        .order_by(models.Booking.status, models.Booking.waitlist_position, models.Member.last_name)
        .all()
    )


def get_waitlist(db: Session, class_id: uuid.UUID):
    return (
        db.query(models.Booking)
        .filter(models.Booking.class_id == class_id, models.Booking.status == 'waitlist')
        .order_by(models.Booking.waitlist_position, models.Booking.created_at)
        .all()
    )


def renumber_waitlist(db: Session, class_id: uuid.UUID) -> None:
    for position, booking in enumerate(get_waitlist(db, class_id), start=1):
        booking.waitlist_position = position


def get_member_bookings(
    db: Session,
    member_id: uuid.UUID,
    *,
    since: Optional[datetime] = None,
    until: Optional[datetime] = None,
    limit: int = 100,
):
    """Bookings of a member joined with their classes, latest class first."""
    query = (
        db.query(models.Booking, models.GymClass)
        .join(models.GymClass, models.GymClass.id == models.Booking.class_id)
        .filter(models.Booking.member_id == member_id)
    )
    if since is not None:
        query = query.filter(models.GymClass.start_time >= since)
    if until is not None:
        query = query.filter(models.GymClass.start_time < until)
    return query.order_by(models.GymClass.start_time.desc()).limit(limit).all()


def get_member_attendances(db: Session, member_id: uuid.UUID):
    return (
        db.query(models.Booking, models.GymClass)
        .join(models.GymClass, models.GymClass.id == models.Booking.class_id)
        .filter(models.Booking.member_id == member_id, models.Booking.status == 'attended')
        .order_by(models.GymClass.start_time.desc())
        .all()
    )


def get_confirmed_bookings_between(db: Session, organization_id: uuid.UUID, start: datetime, end: datetime):
    """Confirmed bookings for scheduled classes starting in [start, end), with class and member."""
    return (
        db.query(models.Booking, models.GymClass, models.Member)
        .join(models.GymClass, models.GymClass.id == models.Booking.class_id)
        .join(models.Member, models.Member.id == models.Booking.member_id)
        .filter(
            models.Booking.organization_id == organization_id,
            models.Booking.status == 'confirmed',
            models.GymClass.status == 'scheduled',
            models.GymClass.start_time >= start,
            models.GymClass.start_time < end,
        )
        .order_by(models.GymClass.start_time)
        .all()
    )


def get_recent_bookings(db: Session, organization_id: uuid.UUID, limit: int = 5):
    return (
        db.query(models.Booking, models.GymClass, models.Member)
        .join(models.GymClass, models.GymClass.id == models.Booking.class_id)
        .join(models.Member, models.Member.id == models.Booking.member_id)
        .filter(models.Booking.organization_id == organization_id)
        .order_by(models.Booking.created_at.desc())
        .limit(limit)
        .all()
    )


def get_checkins_since(db: Session, organization_id: uuid.UUID, since: datetime):
    return (
        db.query(models.Booking.checked_in_at)
        .filter(
            models.Booking.organization_id == organization_id,
            models.Booking.status == 'attended',
            models.Booking.checked_in_at.isnot(None),
            models.Booking.checked_in_at >= since,
        )
        .all()
    )


def get_member_bookings_for_classes(db: Session, member_id: uuid.UUID, class_ids: Iterable[uuid.UUID]):
    ids = list(class_ids)
    if not ids:
        return {}
    rows = (
        db.query(models.Booking)
        .filter(
            models.Booking.member_id == member_id,
            models.Booking.class_id.in_(ids),
            models.Booking.status != 'cancelled',
        )
        .all()
    )
    return {b.class_id: b for b in rows}


def default_window(now: datetime, days: int = 7):
    return now, now + timedelta(days=days)
