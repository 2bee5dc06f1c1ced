"""
Booking service: class scheduling, seat reservation, waitlist and attendance.

Seat and waitlist counters are changed with conditional UPDATE statements
(see `repositories.planning`) in the same transaction as the booking row,
so two members racing for the last seat cannot both be confirmed.
"""

import logging
import os
import uuid
from datetime import datetime, timedelta
from typing import Optional, Dict, Any

from sqlalchemy.orm import Session

from boxhub.db import models, schemas
from boxhub.db.models.planning import DEFAULT_CLASS_COLOR
from boxhub.db.repositories import planning as planning_repo
from boxhub.db.repositories import members as members_repo
from boxhub.db.repositories import billing as billing_repo
from boxhub.utils.dates import as_utc

logger = logging.getLogger(__name__)

DEFAULT_CANCELLATION_DEADLINE_HOURS = 2
CLASS_CANCELLED_BOOKING_REASON = 'Cours annule'


def get_cancellation_deadline_hours() -> float:
    raw = os.getenv('BOOKING_CANCELLATION_DEADLINE_HOURS')
    if not raw:
        return DEFAULT_CANCELLATION_DEADLINE_HOURS
    try:
        return float(raw)
    except ValueError:
        logger.warning("Invalid BOOKING_CANCELLATION_DEADLINE_HOURS=%r, using %s", raw, DEFAULT_CANCELLATION_DEADLINE_HOURS)
        return DEFAULT_CANCELLATION_DEADLINE_HOURS


def _error(message: str, code: str = 'invalid') -> Dict[str, Any]:
    return {'success': False, 'error': message, 'code': code}


class BookingService:
    """Planning operations that touch several rows at once."""

    def __init__(self, db: Session, notification_service: Optional[Any] = None):
        self.db = db
        self._notification_service = notification_service

    @property
    def notifications(self):
        if self._notification_service is None:
            from boxhub.services.notification_service import NotificationService
            self._notification_service = NotificationService(self.db)
        return self._notification_service

    # === Classes ===

    def create_class(
        self,
        organization_id: uuid.UUID,
        payload: schemas.GymClassCreate,
        *,
        commit: bool = True,
        recurrence: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        """Create a class, filling unset fields from its template."""
        template = None
        if payload.template_id:
            template = planning_repo.get_template(self.db, organization_id, payload.template_id)
            if not template:
                return _error('Modele de cours introuvable', 'not_found')

        def pick(field, template_field=None, default=None):
            value = getattr(payload, field)
            if value is not None:
                return value
            if template is not None:
                return getattr(template, template_field or field)
            return default

        name = pick('name')
        if not name:
            return _error('Le nom du cours est requis')

        duration = pick('duration_minutes', default=60)
        start_time = as_utc(payload.start_time)
        db_class = models.GymClass(
            organization_id=organization_id,
            template_id=payload.template_id,
            name=name,
            description=pick('description'),
            class_type=pick('class_type', default='group'),
            start_time=start_time,
            end_time=start_time + timedelta(minutes=duration),
            duration_minutes=duration,
            max_participants=pick('max_participants'),
            min_participants=pick('min_participants', default=1),
            coach_id=pick('coach_id', 'default_coach_id'),
            location=pick('location', 'default_location'),
            room=payload.room,
            color=pick('color', default=DEFAULT_CLASS_COLOR),
            requires_subscription=pick('requires_subscription', default=True),
            allowed_plan_types=template.allowed_plan_types if template is not None else None,
            drop_in_price=payload.drop_in_price,
            session_cost=pick('session_cost', default=1),
            notes=payload.notes,
            workout_id=payload.workout_id,
            **(recurrence or {}),
        )
        planning_repo.add_class(self.db, db_class, commit=commit)
        return {'success': True, 'class': db_class}

    def update_class(self, organization_id: uuid.UUID, class_id: uuid.UUID, payload: schemas.GymClassUpdate) -> Dict[str, Any]:
        db_class = planning_repo.get_class(self.db, organization_id, class_id)
        if not db_class:
            return _error('Cours introuvable', 'not_found')
        if db_class.status == 'cancelled':
            return _error('Ce cours a ete annule')

        updates = payload.model_dump(exclude_unset=True)
        for key, value in updates.items():
            setattr(db_class, key, value)
        if 'start_time' in updates or 'duration_minutes' in updates:
            db_class.start_time = as_utc(db_class.start_time)
            db_class.end_time = db_class.start_time + timedelta(minutes=db_class.duration_minutes)
        self.db.flush()

        # More room (or no limit any more) moves waitlisted bookings into the free seats
        promoted = []
        if 'max_participants' in updates:
            while True:
                booking = self._promote_from_waitlist(db_class.id)
                if booking is None:
                    break
                promoted.append(booking)
            if promoted:
                self.db.flush()
                planning_repo.renumber_waitlist(self.db, db_class.id)
        self.db.commit()
        self.db.refresh(db_class)

        for booking in promoted:
            member = members_repo.get_member_by_id(self.db, booking.member_id)
            if member is not None:
                self.notifications.notify_waitlist_promoted(member, db_class)
        if promoted:
            logger.info("Class %s capacity change promoted %d waitlisted bookings", db_class.id, len(promoted))
        return {'success': True, 'class': db_class, 'promoted_bookings': promoted}

    def delete_class(self, organization_id: uuid.UUID, class_id: uuid.UUID) -> Dict[str, Any]:
        db_class = planning_repo.get_class(self.db, organization_id, class_id)
        if not db_class:
            return _error('Cours introuvable', 'not_found')
        if planning_repo.count_bookings_with_status(self.db, db_class.id, 'confirmed') > 0:
            return _error('Impossible de supprimer un cours avec des reservations confirmees', 'conflict')
        planning_repo.delete_class(self.db, db_class)
        return {'success': True}

    def cancel_class(self, organization_id: uuid.UUID, class_id: uuid.UUID, reason: Optional[str] = None) -> Dict[str, Any]:
        """Cancel a class, cancel its bookings and email every affected member."""
        db_class = planning_repo.get_class(self.db, organization_id, class_id)
        if not db_class:
            return _error('Cours introuvable', 'not_found')
        if db_class.status == 'cancelled':
            return _error('Ce cours est deja annule')

        now = models.now_utc()
        affected = planning_repo.get_class_bookings(self.db, db_class.id, statuses=('confirmed', 'waitlist'))
        for booking in affected:
            booking.status = 'cancelled'
            booking.cancelled_at = now
            booking.cancelled_reason = CLASS_CANCELLED_BOOKING_REASON
            booking.waitlist_position = None

        db_class.status = 'cancelled'
        db_class.cancelled_at = now
        db_class.cancelled_reason = reason
        db_class.current_participants = 0
        db_class.waitlist_count = 0
        self.db.commit()
        self.db.refresh(db_class)
        logger.info("Class %s cancelled, %d bookings cancelled", db_class.id, len(affected))

        notified = 0
        for booking in affected:
            member = members_repo.get_member_by_id(self.db, booking.member_id)
            if member is None:
                continue
            result = self.notifications.notify_class_cancelled(member, db_class, reason)
            if result.get('success'):
                notified += 1
        return {'success': True, 'class': db_class, 'cancelled_bookings': len(affected), 'notified': notified}

    def set_class_workout(self, organization_id: uuid.UUID, class_id: uuid.UUID, workout_id: Optional[uuid.UUID]) -> Dict[str, Any]:
        db_class = planning_repo.get_class(self.db, organization_id, class_id)
        if not db_class:
            return _error('Cours introuvable', 'not_found')
        if workout_id is not None:
            workout = (
                self.db.query(models.Workout)
                .filter(models.Workout.id == workout_id, models.Workout.organization_id == organization_id)
                .first()
            )
            if workout is None:
                return _error('Workout introuvable', 'not_found')
        db_class.workout_id = workout_id
        self.db.commit()
        self.db.refresh(db_class)
        return {'success': True, 'class': db_class}

    # === Bookings ===

    def create_booking(
        self,
        organization_id: uuid.UUID,
        class_id: uuid.UUID,
        member_id: uuid.UUID,
        *,
        by_staff: bool,
        notes: Optional[str] = None,
        is_drop_in: bool = False,
        now: Optional[datetime] = None,
    ) -> Dict[str, Any]:
        """
        Book a member into a class, or onto its waitlist when full.

        Staff bookings skip the subscription requirement; member self-booking
        needs an active subscription with sessions left when the class
        requires one.
        """
        now = now or models.now_utc()
        db_class = planning_repo.get_class(self.db, organization_id, class_id)
        if not db_class:
            return _error('Cours introuvable', 'not_found')
        if db_class.status == 'cancelled':
            return _error('Ce cours a ete annule')
        if as_utc(db_class.end_time) <= now:
            return _error('Ce cours est termine')

        member = members_repo.get_member(self.db, organization_id, member_id)
        if not member:
            return _error('Membre introuvable', 'not_found')
        if member.status == 'archived':
            return _error('Ce membre est archive')

        if planning_repo.get_member_booking_for_class(self.db, db_class.id, member.id):
            return _error('Deja inscrit', 'conflict')

        subscription = billing_repo.get_active_subscription(self.db, member.id, now.date())
        if db_class.requires_subscription and not is_drop_in and not by_staff:
            if subscription is None:
                return _error('Un abonnement actif est requis pour reserver ce cours')
            remaining = subscription.sessions_remaining
            if remaining is not None and remaining < (db_class.session_cost or 0):
                return _error("Plus de seance disponible sur votre carte")

        try:
            if planning_repo.try_reserve_seat(self.db, db_class.id):
                status, position = 'confirmed', None
            else:
                status = 'waitlist'
                position = planning_repo.increment_waitlist(self.db, db_class.id)

            booking = models.Booking(
                organization_id=organization_id,
                class_id=db_class.id,
                member_id=member.id,
                subscription_id=subscription.id if subscription else None,
                status=status,
                waitlist_position=position,
                is_drop_in=is_drop_in,
                notes=notes,
            )
            self.db.add(booking)
            self.db.commit()
        except Exception as e:
            self.db.rollback()
            logger.error("Booking of member %s into class %s failed: %s", member.id, db_class.id, e, exc_info=True)
            return _error('Erreur lors de la reservation', 'error')

        self.db.refresh(booking)
        self.db.refresh(db_class)
        logger.info("Member %s booked class %s (%s)", member.id, db_class.id, status)

        if status == 'confirmed':
            self.notifications.notify_booking_confirmation(member, db_class)
        return {'success': True, 'booking': booking, 'class': db_class, 'waitlisted': status == 'waitlist'}

    def cancel_booking(
        self,
        organization_id: uuid.UUID,
        booking_id: uuid.UUID,
        *,
        by_staff: bool,
        member_id: Optional[uuid.UUID] = None,
        reason: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> Dict[str, Any]:
        """
        Cancel a booking and promote the first waitlisted booking into the freed seat.

        Members are held to the cancellation deadline before the class start;
        staff can cancel until the class ends. Passing `member_id` restricts the
        lookup to that member's own bookings.
        """
        now = now or models.now_utc()
        booking = planning_repo.get_booking(self.db, organization_id, booking_id)
        if not booking or (member_id is not None and booking.member_id != member_id):
            return _error('Reservation introuvable', 'not_found')
        if booking.status not in ('confirmed', 'waitlist'):
            return _error('Cette reservation ne peut plus etre annulee')

        db_class = planning_repo.get_class_by_id(self.db, booking.class_id)
        start_time = as_utc(db_class.start_time)
        if by_staff:
            if as_utc(db_class.end_time) <= now:
                return _error('Ce cours est termine')
        else:
            hours = get_cancellation_deadline_hours()
            if now >= start_time - timedelta(hours=hours):
                return _error(f"Annulation impossible moins de {hours:g}h avant le cours")

        previous_status = booking.status
        promoted = None
        try:
            booking.status = 'cancelled'
            booking.cancelled_at = now
            booking.cancelled_reason = reason
            booking.waitlist_position = None
            self.db.flush()

            if previous_status == 'confirmed':
                planning_repo.release_seat(self.db, db_class.id)
                promoted = self._promote_from_waitlist(db_class.id)
            else:
                planning_repo.decrement_waitlist(self.db, db_class.id)
            self.db.flush()
            planning_repo.renumber_waitlist(self.db, db_class.id)
            self.db.commit()
        except Exception as e:
            self.db.rollback()
            logger.error("Cancelling booking %s failed: %s", booking_id, e, exc_info=True)
            return _error("Erreur lors de l'annulation", 'error')

        self.db.refresh(booking)
        self.db.refresh(db_class)
        logger.info("Booking %s cancelled (was %s)", booking.id, previous_status)

        if promoted is not None:
            member = members_repo.get_member_by_id(self.db, promoted.member_id)
            if member is not None:
                self.notifications.notify_waitlist_promoted(member, db_class)
        return {'success': True, 'booking': booking, 'promoted_booking': promoted}

    def _promote_from_waitlist(self, class_id: uuid.UUID) -> Optional[models.Booking]:
        waitlist = planning_repo.get_waitlist(self.db, class_id)
        if not waitlist:
            return None
        if not planning_repo.try_reserve_seat(self.db, class_id):
            return None
        first = waitlist[0]
        first.status = 'confirmed'
        first.waitlist_position = None
        planning_repo.decrement_waitlist(self.db, class_id)
        logger.info("Booking %s promoted from waitlist of class %s", first.id, class_id)
        return first

    def check_in(
        self,
        organization_id: uuid.UUID,
        booking_id: uuid.UUID,
        user_id: Optional[uuid.UUID],
        now: Optional[datetime] = None,
    ) -> Dict[str, Any]:
        """Mark attendance and deduct the class cost from a session card."""
        booking = planning_repo.get_booking(self.db, organization_id, booking_id)
        if not booking:
            return _error('Reservation introuvable', 'not_found')
        if booking.status == 'attended':
            return _error('Presence deja enregistree', 'conflict')
        if booking.status not in ('confirmed', 'no_show'):
            return _error("Seule une reservation confirmee peut etre pointee")

        db_class = planning_repo.get_class_by_id(self.db, booking.class_id)
        booking.status = 'attended'
        booking.checked_in_at = now or models.now_utc()
        booking.checked_in_by = user_id
        booking.no_show_at = None

        subscription = None
        if booking.subscription_id:
            subscription = billing_repo.get_subscription(self.db, organization_id, booking.subscription_id)
        if subscription is None or subscription.status != 'active':
            subscription = billing_repo.get_active_subscription(self.db, booking.member_id)
        if subscription is not None and subscription.sessions_total is not None and not booking.is_drop_in:
            cost = db_class.session_cost or 0
            used = subscription.sessions_used or 0
            remaining = max(subscription.sessions_total - used, 0)
            if cost > remaining:
                logger.warning(
                    "Subscription %s has %d sessions left, check-in of booking %s deducts %d instead of %d",
                    subscription.id, remaining, booking.id, remaining, cost,
                )
                cost = remaining
            subscription.sessions_used = used + cost
            booking.sessions_deducted = cost
            booking.subscription_id = subscription.id

        self.db.commit()
        self.db.refresh(booking)
        return {'success': True, 'booking': booking}

    def mark_no_show(self, organization_id: uuid.UUID, booking_id: uuid.UUID, now: Optional[datetime] = None) -> Dict[str, Any]:
        booking = planning_repo.get_booking(self.db, organization_id, booking_id)
        if not booking:
            return _error('Reservation introuvable', 'not_found')
        if booking.status != 'confirmed':
            return _error('Seule une reservation confirmee peut etre marquee absente')
        booking.status = 'no_show'
        booking.no_show_at = now or models.now_utc()
        self.db.commit()
        self.db.refresh(booking)
        return {'success': True, 'booking': booking}


def planning_stats(db: Session, organization_id: uuid.UUID, start: Optional[datetime] = None, end: Optional[datetime] = None) -> Dict[str, int]:
    """Class counts and average occupancy over a window (default: the next 7 days)."""
    if start is None or end is None:
        default_start, default_end = planning_repo.default_window(models.now_utc())
        start = start or default_start
        end = end or default_end
    classes = planning_repo.list_classes(db, organization_id, start, end)

    occupancies = [
        c.current_participants / c.max_participants * 100
        for c in classes
        if c.max_participants
    ]
    return {
        'total': len(classes),
        'scheduled': sum(1 for c in classes if c.status == 'scheduled'),
        'cancelled': sum(1 for c in classes if c.status == 'cancelled'),
        'total_participants': sum(c.current_participants for c in classes),
        'average_occupancy': round(sum(occupancies) / len(occupancies)) if occupancies else 0,
    }
