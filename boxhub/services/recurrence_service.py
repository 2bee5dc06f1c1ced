"""
Recurring class generation and bulk deletion.
"""

import logging
import uuid
from datetime import date, timedelta
from typing import List, Dict, Any, Iterable

from sqlalchemy.orm import Session

from boxhub.db import models, schemas
from boxhub.db.repositories import planning as planning_repo
from boxhub.services.booking_service import BookingService
from boxhub.utils.dates import add_months, js_weekday, local_to_utc, org_zone, parse_hhmm

logger = logging.getLogger(__name__)

MAX_RECURRING_CLASSES = 100


def generate_recurring_dates(
    start_date: date,
    end_date: date,
    pattern: str,
    days_of_week: Iterable[int] = (),
    exclude_dates: Iterable[date] = (),
) -> List[date]:
    """
    Dates in [start_date, end_date] matching a recurrence pattern.

    `days_of_week` uses 0 = Sunday. Biweekly scans one 7-day week then skips
    the next one; monthly keeps the start day and skips months too short
    to contain it.
    """
    weekdays = set(days_of_week)
    excluded = set(exclude_dates)
    dates: List[date] = []

    if pattern == 'monthly':
        offset = 0
        current = start_date
        while current <= end_date:
            if current.day == start_date.day and current not in excluded:
                dates.append(current)
            offset += 1
            current = add_months(start_date, offset)
        return dates

    current = start_date
    day_index = 0
    while current <= end_date:
        if pattern == 'daily':
            include = True
        else:
            include = js_weekday(current) in weekdays
        if include and current not in excluded:
            dates.append(current)

        day_index += 1
        current += timedelta(days=1)
        if pattern == 'biweekly' and day_index % 7 == 0:
            current += timedelta(days=7)
    return dates


def create_recurring_classes(db: Session, organization: models.Organization, payload: schemas.RecurringClassesCreate) -> Dict[str, Any]:
    if payload.end_date < payload.start_date:
        return {'success': False, 'error': 'La date de fin doit suivre la date de debut', 'code': 'invalid'}
    try:
        at = parse_hhmm(payload.time)
    except ValueError:
        return {'success': False, 'error': f"Heure invalide: {payload.time}", 'code': 'invalid'}

    dates = generate_recurring_dates(
        payload.start_date, payload.end_date, payload.pattern, payload.days_of_week, payload.exclude_dates
    )
    if len(dates) > MAX_RECURRING_CLASSES:
        return {
            'success': False,
            'error': f"Trop de cours a generer ({len(dates)}). Maximum: {MAX_RECURRING_CLASSES}",
            'code': 'invalid',
        }
    if not dates:
        return {'success': False, 'error': 'Aucune date correspondante trouvee', 'code': 'invalid'}

    zone = org_zone(organization)
    recurrence = {
        'recurrence_type': payload.pattern,
        'recurrence_id': uuid.uuid4(),
        'recurrence_end_date': payload.end_date,
    }
    service = BookingService(db)
    created = []
    try:
        for day in dates:
            result = service.create_class(
                organization.id,
                schemas.GymClassCreate(
                    template_id=payload.template_id,
                    name=payload.name,
                    class_type=payload.class_type,
                    start_time=local_to_utc(day, at, zone),
                    duration_minutes=payload.duration_minutes,
                    max_participants=payload.max_participants,
                    coach_id=payload.coach_id,
                    location=payload.location,
                    color=payload.color,
                ),
                commit=False,
                recurrence=recurrence,
            )
            if not result['success']:
                db.rollback()
                return result
            created.append(result['class'])
        db.commit()
    except Exception as e:
        db.rollback()
        logger.error("Recurring class generation failed for org %s: %s", organization.id, e, exc_info=True)
        return {'success': False, 'error': 'Erreur lors de la creation des cours', 'code': 'error'}

    logger.info("Generated %d recurring classes (recurrence %s)", len(created), recurrence['recurrence_id'])
    return {
        'success': True,
        'count': len(created),
        'class_ids': [c.id for c in created],
        'recurrence_id': recurrence['recurrence_id'],
    }


def delete_recurring_classes(db: Session, organization_id: uuid.UUID, payload: schemas.RecurringClassesDelete) -> Dict[str, Any]:
    """Delete the selected classes, keeping those with confirmed bookings."""
    if payload.recurrence_id:
        classes = planning_repo.get_classes_by_recurrence(db, organization_id, payload.recurrence_id)
    else:
        classes = planning_repo.get_classes_by_ids(db, organization_id, payload.class_ids)
    if not classes:
        return {'success': True, 'deleted': 0, 'skipped': 0}

    deletable = [
        c for c in classes
        if planning_repo.count_bookings_with_status(db, c.id, 'confirmed') == 0
    ]
    if not deletable:
        return {
            'success': False,
            'error': 'Tous les cours selectionnes ont des reservations confirmees',
            'code': 'conflict',
        }

    for db_class in deletable:
        planning_repo.delete_class(db, db_class, commit=False)
    db.commit()
    return {'success': True, 'deleted': len(deletable), 'skipped': len(classes) - len(deletable)}
