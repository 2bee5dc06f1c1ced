"""
Planning API: class templates, scheduled classes, recurring series and bookings.
"""
import logging
from datetime import datetime
from typing import List, Optional
import uuid

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from boxhub.db.database import get_db
from boxhub.db import models, schemas
from boxhub.db.repositories import planning as planning_repo
from boxhub.db.repositories import workouts as workouts_repo
from boxhub.api.deps import get_current_user_context, ensure_org_access, raise_for_result
from boxhub.audit import log_class, AuditAction
from boxhub.services import recurrence_service
from boxhub.services.booking_service import BookingService, planning_stats
from boxhub.utils.dates import as_utc

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/organizations/{org_id}/planning", tags=["planning"])


# === Templates ===

@router.get("/templates", response_model=List[schemas.ClassTemplate])
def list_templates(
    org_id: uuid.UUID,
    include_inactive: bool = False,
    db: Session = Depends(get_db),
    user_context = Depends(get_current_user_context),
):
    _, current_user = user_context
    ensure_org_access(db, org_id, current_user, "read")
    return planning_repo.list_templates(db, org_id, include_inactive=include_inactive)


@router.post("/templates", status_code=status.HTTP_201_CREATED, response_model=schemas.ClassTemplate)
def create_template(
    org_id: uuid.UUID,
    payload: schemas.ClassTemplateCreate,
    db: Session = Depends(get_db),
    user_context = Depends(get_current_user_context),
):
    _, current_user = user_context
    ensure_org_access(db, org_id, current_user, "write")
    return planning_repo.create_template(db, org_id, payload)


@router.put("/templates/{template_id}", response_model=schemas.ClassTemplate)
def update_template(
    org_id: uuid.UUID,
    template_id: uuid.UUID,
    payload: schemas.ClassTemplateUpdate,
    db: Session = Depends(get_db),
    user_context = Depends(get_current_user_context),
):
    _, current_user = user_context
    ensure_org_access(db, org_id, current_user, "write")
    template = planning_repo.update_template(db, org_id, template_id, payload)
    if not template:
        raise HTTPException(status_code=404, detail="Class template not found")
    return template


@router.delete("/templates/{template_id}", status_code=status.HTTP_204_NO_CONTENT)
def deactivate_template(
    org_id: uuid.UUID,
    template_id: uuid.UUID,
    db: Session = Depends(get_db),
    user_context = Depends(get_current_user_context),
):
    _, current_user = user_context
    ensure_org_access(db, org_id, current_user, "write")
    if not planning_repo.deactivate_template(db, org_id, template_id):
        raise HTTPException(status_code=404, detail="Class template not found")


# === Classes ===

@router.get("/classes", response_model=List[schemas.GymClass])
def list_classes(
    org_id: uuid.UUID,
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
    status_filter: Optional[str] = Query(default=None, alias="status"),
    coach_id: Optional[uuid.UUID] = None,
    db: Session = Depends(get_db),
    user_context = Depends(get_current_user_context),
):
    """Classes starting inside [start, end]; defaults to the next seven days."""
    _, current_user = user_context
    ensure_org_access(db, org_id, current_user, "read")
    default_start, default_end = planning_repo.default_window(models.now_utc())
    return planning_repo.list_classes(
        db,
        org_id,
        as_utc(start) if start else default_start,
        as_utc(end) if end else default_end,
        status=status_filter,
        coach_id=coach_id,
    )


@router.get("/stats", response_model=schemas.PlanningStats)
def get_planning_stats(
    org_id: uuid.UUID,
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
    db: Session = Depends(get_db),
    user_context = Depends(get_current_user_context),
):
    _, current_user = user_context
    ensure_org_access(db, org_id, current_user, "read")
    return planning_stats(db, org_id, as_utc(start) if start else None, as_utc(end) if end else None)


@router.get("/workouts/available", response_model=List[schemas.WorkoutSummary])
def available_workouts(
    org_id: uuid.UUID,
    db: Session = Depends(get_db),
    user_context = Depends(get_current_user_context),
):
    """Published workouts that can be attached to a class."""
    _, current_user = user_context
    ensure_org_access(db, org_id, current_user, "read")
    return workouts_repo.get_published_workouts(db, org_id, limit=50)


@router.get("/classes/{class_id}", response_model=schemas.GymClassDetail)
def get_class(
    org_id: uuid.UUID,
    class_id: uuid.UUID,
    db: Session = Depends(get_db),
    user_context = Depends(get_current_user_context),
):
    _, current_user = user_context
    ensure_org_access(db, org_id, current_user, "read")
    db_class = planning_repo.get_class(db, org_id, class_id)
    if not db_class:
        raise HTTPException(status_code=404, detail="Class not found")

    detail = schemas.GymClassDetail.model_validate(db_class, from_attributes=True)
    detail.bookings = [
        schemas.ClassBooking.model_validate(booking, from_attributes=True).model_copy(
            update={"member_name": member.full_name, "member_email": member.email}
        )
        for booking, member in planning_repo.get_class_bookings_with_members(db, class_id)
    ]
    return detail


@router.post("/classes", status_code=status.HTTP_201_CREATED, response_model=schemas.GymClass)
def create_class(
    org_id: uuid.UUID,
    payload: schemas.GymClassCreate,
    db: Session = Depends(get_db),
    user_context = Depends(get_current_user_context),
):
    user, current_user = user_context
    ensure_org_access(db, org_id, current_user, "write")
    result = raise_for_result(BookingService(db).create_class(org_id, payload))
    db_class = result["class"]
    log_class(db, actor_user_id=user.id, organization_id=org_id, class_id=db_class.id, action=AuditAction.CLASS_CREATE)
    return db_class


@router.put("/classes/{class_id}", response_model=schemas.GymClass)
def update_class(
    org_id: uuid.UUID,
    class_id: uuid.UUID,
    payload: schemas.GymClassUpdate,
    db: Session = Depends(get_db),
    user_context = Depends(get_current_user_context),
):
    user, current_user = user_context
    ensure_org_access(db, org_id, current_user, "write")
    result = raise_for_result(BookingService(db).update_class(org_id, class_id, payload))
    log_class(db, actor_user_id=user.id, organization_id=org_id, class_id=class_id, action=AuditAction.CLASS_UPDATE)
    return result["class"]


@router.delete("/classes/{class_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_class(
    org_id: uuid.UUID,
    class_id: uuid.UUID,
    db: Session = Depends(get_db),
    user_context = Depends(get_current_user_context),
):
    user, current_user = user_context
    ensure_org_access(db, org_id, current_user, "write")
    raise_for_result(BookingService(db).delete_class(org_id, class_id))
    log_class(db, actor_user_id=user.id, organization_id=org_id, class_id=None, action=AuditAction.CLASS_DELETE,
              metadata={"class_id": str(class_id)})


@router.post("/classes/{class_id}/cancel", response_model=schemas.ClassCancelResult)
def cancel_class(
    org_id: uuid.UUID,
    class_id: uuid.UUID,
    payload: Optional[schemas.ClassCancel] = None,
    db: Session = Depends(get_db),
    user_context = Depends(get_current_user_context),
):
    """Cancel a class; its bookings are cancelled and members are emailed."""
    user, current_user = user_context
    ensure_org_access(db, org_id, current_user, "write")
    reason = payload.reason if payload else None
    result = raise_for_result(BookingService(db).cancel_class(org_id, class_id, reason))
    log_class(
        db, actor_user_id=user.id, organization_id=org_id, class_id=class_id, action=AuditAction.CLASS_CANCEL,
        metadata={"reason": reason, "cancelled_bookings": result["cancelled_bookings"]},
    )
    return {
        "gym_class": result["class"],
        "cancelled_bookings": result["cancelled_bookings"],
        "notified": result["notified"],
    }


@router.put("/classes/{class_id}/workout", response_model=schemas.GymClass)
def link_workout(
    org_id: uuid.UUID,
    class_id: uuid.UUID,
    payload: schemas.WorkoutLink,
    db: Session = Depends(get_db),
    user_context = Depends(get_current_user_context),
):
    """Attach a workout to a class, or detach it with `workout_id: null`."""
    _, current_user = user_context
    ensure_org_access(db, org_id, current_user, "write")
    return raise_for_result(BookingService(db).set_class_workout(org_id, class_id, payload.workout_id))["class"]


# === Recurring series ===

@router.post("/recurring", status_code=status.HTTP_201_CREATED, response_model=schemas.RecurringClassesResult)
def create_recurring_classes(
    org_id: uuid.UUID,
    payload: schemas.RecurringClassesCreate,
    db: Session = Depends(get_db),
    user_context = Depends(get_current_user_context),
):
    user, current_user = user_context
    org = ensure_org_access(db, org_id, current_user, "write")
    result = raise_for_result(recurrence_service.create_recurring_classes(db, org, payload))
    log_class(
        db, actor_user_id=user.id, organization_id=org_id, class_id=None,
        action=AuditAction.CLASS_RECURRING_CREATE,
        metadata={"count": result["count"], "recurrence_id": str(result["recurrence_id"]), "pattern": payload.pattern},
    )
    return result


@router.post("/recurring/delete", response_model=schemas.RecurringDeleteResult)
def delete_recurring_classes(
    org_id: uuid.UUID,
    payload: schemas.RecurringClassesDelete,
    db: Session = Depends(get_db),
    user_context = Depends(get_current_user_context),
):
    user, current_user = user_context
    ensure_org_access(db, org_id, current_user, "write")
    if not payload.class_ids and not payload.recurrence_id:
        raise HTTPException(status_code=400, detail="class_ids or recurrence_id is required")
    result = raise_for_result(recurrence_service.delete_recurring_classes(db, org_id, payload))
    log_class(
        db, actor_user_id=user.id, organization_id=org_id, class_id=None,
        action=AuditAction.CLASS_RECURRING_DELETE,
        metadata={"deleted": result["deleted"], "skipped": result["skipped"]},
    )
    return result


# === Bookings ===

@router.post("/classes/{class_id}/bookings", status_code=status.HTTP_201_CREATED, response_model=schemas.Booking)
def create_booking(
    org_id: uuid.UUID,
    class_id: uuid.UUID,
    payload: schemas.BookingCreate,
    db: Session = Depends(get_db),
    user_context = Depends(get_current_user_context),
):
    """Staff booking; lands on the waitlist when the class is full."""
    user, current_user = user_context
    ensure_org_access(db, org_id, current_user, "write")
    result = raise_for_result(BookingService(db).create_booking(
        org_id, class_id, payload.member_id,
        by_staff=True, notes=payload.notes, is_drop_in=payload.is_drop_in,
    ))
    booking = result["booking"]
    log_class(
        db, actor_user_id=user.id, organization_id=org_id, class_id=class_id, action=AuditAction.BOOKING_CREATE,
        metadata={"booking_id": str(booking.id), "member_id": str(payload.member_id), "status": booking.status},
    )
    return booking


@router.post("/bookings/{booking_id}/cancel", response_model=schemas.BookingCancelResult)
def cancel_booking(
    org_id: uuid.UUID,
    booking_id: uuid.UUID,
    payload: Optional[schemas.BookingCancel] = None,
    db: Session = Depends(get_db),
    user_context = Depends(get_current_user_context),
):
    user, current_user = user_context
    ensure_org_access(db, org_id, current_user, "write")
    result = raise_for_result(BookingService(db).cancel_booking(
        org_id, booking_id, by_staff=True, reason=payload.reason if payload else None,
    ))
    booking = result["booking"]
    promoted = result.get("promoted_booking")
    log_class(
        db, actor_user_id=user.id, organization_id=org_id, class_id=booking.class_id,
        action=AuditAction.BOOKING_CANCEL,
        metadata={"booking_id": str(booking.id), "promoted_booking_id": str(promoted.id) if promoted else None},
    )
    return {"booking": booking, "promoted_booking": promoted}


@router.post("/bookings/{booking_id}/check-in", response_model=schemas.Booking)
def check_in(
    org_id: uuid.UUID,
    booking_id: uuid.UUID,
    db: Session = Depends(get_db),
    user_context = Depends(get_current_user_context),
):
    user, current_user = user_context
    ensure_org_access(db, org_id, current_user, "write")
    booking = raise_for_result(BookingService(db).check_in(org_id, booking_id, user.id))["booking"]
    log_class(
        db, actor_user_id=user.id, organization_id=org_id, class_id=booking.class_id,
        action=AuditAction.BOOKING_CHECK_IN,
        metadata={"booking_id": str(booking.id), "sessions_deducted": booking.sessions_deducted},
    )
    return booking


@router.post("/bookings/{booking_id}/no-show", response_model=schemas.Booking)
def mark_no_show(
    org_id: uuid.UUID,
    booking_id: uuid.UUID,
    db: Session = Depends(get_db),
    user_context = Depends(get_current_user_context),
):
    user, current_user = user_context
    ensure_org_access(db, org_id, current_user, "write")
    booking = raise_for_result(BookingService(db).mark_no_show(org_id, booking_id))["booking"]
    log_class(
        db, actor_user_id=user.id, organization_id=org_id, class_id=booking.class_id,
        action=AuditAction.BOOKING_NO_SHOW, metadata={"booking_id": str(booking.id)},
    )
    return booking
