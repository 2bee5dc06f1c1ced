"""
Member portal API.

Everything a signed-in gym member can see and do inside one organization:
their profile, the upcoming planning with their own booking status, booking
and cancelling (cancellation deadline applies), subscription, today's WOD,
scores and PRs, RGPD consents and requests, and notification preferences.

The caller is resolved to a `members` row linked to their user; staff roles
play no part here.
"""
import logging
from datetime import timedelta
from typing import List, Optional
import uuid

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.orm import Session

from boxhub.db.database import get_db
from boxhub.db import models, schemas
from boxhub.db.repositories import billing as billing_repo
from boxhub.db.repositories import notifications as notif_repo
from boxhub.db.repositories import planning as planning_repo
from boxhub.db.repositories import rgpd as rgpd_repo
from boxhub.db.repositories import workouts as workouts_repo
from boxhub.db.repositories import workflows as workflows_repo
from boxhub.api.deps import (
    get_current_user_context,
    get_current_member,
    get_organization_or_404,
    get_request_meta,
    raise_for_result,
)
from boxhub.services import workout_service
from boxhub.services.booking_service import BookingService
from boxhub.services.rgpd_service import RgpdService
from boxhub.utils.dates import org_zone

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/me/organizations/{org_id}", tags=["member-portal"])

UPCOMING_DAYS = 14


def _member(db: Session, org_id: uuid.UUID, user_context) -> models.Member:
    _, current_user = user_context
    get_organization_or_404(db, org_id)
    return get_current_member(db, org_id, current_user)


def _rgpd(db: Session, org_id: uuid.UUID, user, request: Request) -> RgpdService:
    return RgpdService(db, org_id, actor_user_id=user.id, **get_request_meta(request))


@router.get("/profile", response_model=schemas.Member)
def get_profile(
    org_id: uuid.UUID,
    db: Session = Depends(get_db),
    user_context = Depends(get_current_user_context),
):
    return _member(db, org_id, user_context)


# Planning and bookings

@router.get("/classes", response_model=List[schemas.MemberClass])
def upcoming_classes(
    org_id: uuid.UUID,
    days: int = UPCOMING_DAYS,
    db: Session = Depends(get_db),
    user_context = Depends(get_current_user_context),
):
    """Scheduled classes of the coming days, each with the caller's booking if any."""
    member = _member(db, org_id, user_context)
    now = models.now_utc()
    classes = planning_repo.list_classes(
        db, org_id, now, now + timedelta(days=max(1, min(days, 60))), status="scheduled"
    )
    bookings = planning_repo.get_member_bookings_for_classes(db, member.id, [c.id for c in classes])
    result = []
    for gym_class in classes:
        item = schemas.MemberClass.model_validate(gym_class)
        booking = bookings.get(gym_class.id)
        if booking is not None:
            item = item.model_copy(update={
                "booking_id": booking.id,
                "booking_status": booking.status,
                "waitlist_position": booking.waitlist_position,
            })
        result.append(item)
    return result


@router.post("/classes/{class_id}/book", response_model=schemas.Booking)
def book_class(
    org_id: uuid.UUID,
    class_id: uuid.UUID,
    payload: Optional[schemas.MemberBookingCreate] = None,
    db: Session = Depends(get_db),
    user_context = Depends(get_current_user_context),
):
    """Self-booking. A full class puts the member on its waitlist."""
    member = _member(db, org_id, user_context)
    result = BookingService(db).create_booking(
        org_id, class_id, member.id,
        by_staff=False,
        notes=payload.notes if payload else None,
    )
    return raise_for_result(result)["booking"]


@router.post("/bookings/{booking_id}/cancel", response_model=schemas.BookingCancelResult)
def cancel_my_booking(
    org_id: uuid.UUID,
    booking_id: uuid.UUID,
    payload: Optional[schemas.BookingCancel] = None,
    db: Session = Depends(get_db),
    user_context = Depends(get_current_user_context),
):
    member = _member(db, org_id, user_context)
    result = BookingService(db).cancel_booking(
        org_id, booking_id,
        by_staff=False,
        member_id=member.id,
        reason=payload.reason if payload else None,
    )
    raise_for_result(result)
    return {"booking": result["booking"], "promoted_booking": result["promoted_booking"]}


@router.get("/bookings", response_model=List[schemas.MemberBookingHistoryItem])
def booking_history(
    org_id: uuid.UUID,
    limit: int = 50,
    db: Session = Depends(get_db),
    user_context = Depends(get_current_user_context),
):
    member = _member(db, org_id, user_context)
    rows = planning_repo.get_member_bookings(db, member.id, limit=min(limit, 200))
    return [{"booking": booking, "gym_class": gym_class} for booking, gym_class in rows]


# Subscription and training

@router.get("/subscription", response_model=Optional[schemas.Subscription])
def active_subscription(
    org_id: uuid.UUID,
    db: Session = Depends(get_db),
    user_context = Depends(get_current_user_context),
):
    member = _member(db, org_id, user_context)
    return billing_repo.get_active_subscription(db, member.id)


@router.get("/workout/today", response_model=Optional[schemas.Workout])
def todays_workout(
    org_id: uuid.UUID,
    db: Session = Depends(get_db),
    user_context = Depends(get_current_user_context),
):
    """Today's published WOD, where "today" is the box's local date."""
    _member(db, org_id, user_context)
    organization = get_organization_or_404(db, org_id)
    today = models.now_utc().astimezone(org_zone(organization)).date()
    return workouts_repo.get_workout_by_date(db, org_id, today, published_only=True)


@router.get("/scores", response_model=List[schemas.WorkoutScore])
def my_scores(
    org_id: uuid.UUID,
    db: Session = Depends(get_db),
    user_context = Depends(get_current_user_context),
):
    member = _member(db, org_id, user_context)
    return workouts_repo.get_member_scores(db, member.id)


@router.get("/records", response_model=List[schemas.PersonalRecord])
def my_records(
    org_id: uuid.UUID,
    db: Session = Depends(get_db),
    user_context = Depends(get_current_user_context),
):
    member = _member(db, org_id, user_context)
    return workouts_repo.get_member_personal_records(db, member.id)


@router.post("/records", response_model=schemas.PersonalRecord)
def record_my_pr(
    org_id: uuid.UUID,
    payload: schemas.PersonalRecordCreate,
    db: Session = Depends(get_db),
    user_context = Depends(get_current_user_context),
):
    member = _member(db, org_id, user_context)
    organization = get_organization_or_404(db, org_id)
    return raise_for_result(workout_service.record_personal_record(db, organization, member, payload))["record"]


# RGPD

@router.get("/consents", response_model=List[schemas.MemberConsent])
def my_consents(
    org_id: uuid.UUID,
    db: Session = Depends(get_db),
    user_context = Depends(get_current_user_context),
):
    """Latest consent row per consent type."""
    member = _member(db, org_id, user_context)
    return rgpd_repo.get_current_consents(db, member.id)


@router.post("/consents", response_model=schemas.MemberConsent)
def update_my_consent(
    org_id: uuid.UUID,
    payload: schemas.ConsentCreate,
    request: Request,
    db: Session = Depends(get_db),
    user_context = Depends(get_current_user_context),
):
    user, _ = user_context
    member = _member(db, org_id, user_context)
    return _rgpd(db, org_id, user, request).record_consent(member, payload, source="web")


@router.get("/rgpd/requests", response_model=List[schemas.RgpdRequest])
def my_rgpd_requests(
    org_id: uuid.UUID,
    db: Session = Depends(get_db),
    user_context = Depends(get_current_user_context),
):
    member = _member(db, org_id, user_context)
    return rgpd_repo.list_requests(db, org_id, member_id=member.id)


@router.post("/rgpd/requests", response_model=schemas.RgpdRequest)
def create_rgpd_request(
    org_id: uuid.UUID,
    payload: schemas.RgpdRequestCreate,
    request: Request,
    db: Session = Depends(get_db),
    user_context = Depends(get_current_user_context),
):
    """One open request per type; a second one is refused with 409."""
    user, _ = user_context
    member = _member(db, org_id, user_context)
    return raise_for_result(_rgpd(db, org_id, user, request).create_request(member, payload))["request"]


@router.post("/rgpd/requests/{request_id}/cancel", response_model=schemas.RgpdRequest)
def cancel_rgpd_request(
    org_id: uuid.UUID,
    request_id: uuid.UUID,
    request: Request,
    db: Session = Depends(get_db),
    user_context = Depends(get_current_user_context),
):
    user, _ = user_context
    member = _member(db, org_id, user_context)
    return raise_for_result(_rgpd(db, org_id, user, request).cancel_request(member, request_id))["request"]


# Notification preferences

@router.get("/preferences", response_model=schemas.MemberPreferences)
def get_preferences(
    org_id: uuid.UUID,
    db: Session = Depends(get_db),
    user_context = Depends(get_current_user_context),
):
    member = _member(db, org_id, user_context)
    prefs = notif_repo.get_member_preferences(db, member.id)
    if prefs is None:
        return schemas.MemberPreferences(
            member_id=member.id,
            email_enabled=True,
            push_enabled=True,
            receive_class_reminders=True,
            receive_subscription_alerts=True,
            receive_booking_confirmations=True,
            receive_marketing=False,
        )
    return prefs


@router.put("/preferences", response_model=schemas.MemberPreferences)
def update_preferences(
    org_id: uuid.UUID,
    payload: schemas.MemberPreferencesUpdate,
    db: Session = Depends(get_db),
    user_context = Depends(get_current_user_context),
):
    member = _member(db, org_id, user_context)
    return notif_repo.upsert_member_preferences(db, member.id, payload)


@router.get("/notifications", response_model=List[schemas.MemberNotification])
def list_notifications(
    org_id: uuid.UUID,
    unread_only: bool = False,
    db: Session = Depends(get_db),
    user_context = Depends(get_current_user_context),
):
    member = _member(db, org_id, user_context)
    return workflows_repo.list_member_notifications(db, member.id, unread_only=unread_only)


@router.post("/notifications/{notification_id}/read", response_model=schemas.MemberNotification)
def mark_notification_read(
    org_id: uuid.UUID,
    notification_id: uuid.UUID,
    db: Session = Depends(get_db),
    user_context = Depends(get_current_user_context),
):
    member = _member(db, org_id, user_context)
    notification = workflows_repo.mark_member_notification_read(db, member.id, notification_id)
    if notification is None:
        raise HTTPException(status_code=404, detail="Notification not found")
    return notification
