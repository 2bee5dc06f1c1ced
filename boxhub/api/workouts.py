"""
Workout programming API: exercise library, workouts with blocks, scores,
leaderboards and personal records.
"""
import logging
from datetime import date
from typing import List, Optional
import uuid

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from boxhub.db.database import get_db
from boxhub.db import schemas
from boxhub.db.repositories import members as members_repo
from boxhub.db.repositories import workouts as workouts_repo
from boxhub.api.deps import get_current_user_context, ensure_org_access, raise_for_result
from boxhub.audit import log, AuditAction, AuditStatus
from boxhub.services import workout_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/organizations/{org_id}", tags=["workouts"])


def _workout_or_404(db: Session, org_id: uuid.UUID, workout_id: uuid.UUID):
    workout = workouts_repo.get_workout(db, org_id, workout_id)
    if not workout:
        raise HTTPException(status_code=404, detail="Workout not found")
    return workout


def _member_or_404(db: Session, org_id: uuid.UUID, member_id: uuid.UUID):
    member = members_repo.get_member(db, org_id, member_id)
    if not member:
        raise HTTPException(status_code=404, detail="Member not found")
    return member


def _audit_workout(db: Session, user, org_id: uuid.UUID, workout_id, action: AuditAction, metadata=None):
    log(
        db,
        action=action,
        status=AuditStatus.SUCCESS,
        target_type="workout",
        target_id=workout_id,
        actor_user_id=user.id,
        organization_id=org_id,
        metadata=metadata,
    )


# === Exercises ===

@router.get("/exercises", response_model=List[schemas.Exercise])
def list_exercises(
    org_id: uuid.UUID,
    category: Optional[str] = None,
    search: Optional[str] = None,
    db: Session = Depends(get_db),
    user_context = Depends(get_current_user_context),
):
    """Organization exercises plus the shared global library."""
    _, current_user = user_context
    ensure_org_access(db, org_id, current_user, "read")
    return workouts_repo.list_exercises(db, org_id, category=category, search=search)


@router.post("/exercises", status_code=status.HTTP_201_CREATED, response_model=schemas.Exercise)
def create_exercise(
    org_id: uuid.UUID,
    payload: schemas.ExerciseCreate,
    db: Session = Depends(get_db),
    user_context = Depends(get_current_user_context),
):
    _, current_user = user_context
    ensure_org_access(db, org_id, current_user, "write")
    return workouts_repo.create_exercise(db, org_id, payload)


# === Workouts ===

@router.get("/workouts", response_model=List[schemas.WorkoutSummary])
def list_workouts(
    org_id: uuid.UUID,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    is_template: Optional[bool] = None,
    is_published: Optional[bool] = None,
    limit: int = 100,
    db: Session = Depends(get_db),
    user_context = Depends(get_current_user_context),
):
    _, current_user = user_context
    ensure_org_access(db, org_id, current_user, "read")
    return workouts_repo.list_workouts(
        db, org_id,
        start_date=start_date, end_date=end_date,
        is_template=is_template, is_published=is_published,
        limit=min(limit, 500),
    )


@router.get("/workouts/by-date/{day}", response_model=schemas.Workout)
def get_workout_by_date(
    org_id: uuid.UUID,
    day: date,
    db: Session = Depends(get_db),
    user_context = Depends(get_current_user_context),
):
    _, current_user = user_context
    ensure_org_access(db, org_id, current_user, "read")
    workout = workouts_repo.get_workout_by_date(db, org_id, day)
    if not workout:
        raise HTTPException(status_code=404, detail="No workout programmed for this date")
    return workout


@router.get("/workouts/{workout_id}", response_model=schemas.Workout)
def get_workout(
    org_id: uuid.UUID,
    workout_id: uuid.UUID,
    db: Session = Depends(get_db),
    user_context = Depends(get_current_user_context),
):
    _, current_user = user_context
    ensure_org_access(db, org_id, current_user, "read")
    return _workout_or_404(db, org_id, workout_id)


@router.post("/workouts", status_code=status.HTTP_201_CREATED, response_model=schemas.Workout)
def create_workout(
    org_id: uuid.UUID,
    payload: schemas.WorkoutCreate,
    db: Session = Depends(get_db),
    user_context = Depends(get_current_user_context),
):
    user, current_user = user_context
    ensure_org_access(db, org_id, current_user, "write")
    workout = workouts_repo.create_workout(db, org_id, payload, user_id=user.id)
    _audit_workout(db, user, org_id, workout.id, AuditAction.WORKOUT_CREATE, {"name": workout.name})
    return workout


@router.put("/workouts/{workout_id}", response_model=schemas.Workout)
def update_workout(
    org_id: uuid.UUID,
    workout_id: uuid.UUID,
    payload: schemas.WorkoutUpdate,
    db: Session = Depends(get_db),
    user_context = Depends(get_current_user_context),
):
    user, current_user = user_context
    ensure_org_access(db, org_id, current_user, "write")
    workout = workouts_repo.update_workout(db, org_id, workout_id, payload)
    if not workout:
        raise HTTPException(status_code=404, detail="Workout not found")
    _audit_workout(db, user, org_id, workout.id, AuditAction.WORKOUT_UPDATE)
    return workout


@router.delete("/workouts/{workout_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_workout(
    org_id: uuid.UUID,
    workout_id: uuid.UUID,
    db: Session = Depends(get_db),
    user_context = Depends(get_current_user_context),
):
    user, current_user = user_context
    ensure_org_access(db, org_id, current_user, "write")
    if not workouts_repo.delete_workout(db, org_id, workout_id):
        raise HTTPException(status_code=404, detail="Workout not found")
    _audit_workout(db, user, org_id, None, AuditAction.WORKOUT_DELETE, {"workout_id": str(workout_id)})


@router.post("/workouts/{workout_id}/duplicate", status_code=status.HTTP_201_CREATED, response_model=schemas.Workout)
def duplicate_workout(
    org_id: uuid.UUID,
    workout_id: uuid.UUID,
    payload: Optional[schemas.WorkoutDuplicate] = None,
    db: Session = Depends(get_db),
    user_context = Depends(get_current_user_context),
):
    user, current_user = user_context
    ensure_org_access(db, org_id, current_user, "write")
    workout = _workout_or_404(db, org_id, workout_id)
    copy = workout_service.duplicate_workout(db, workout, user.id, payload.date if payload else None)
    _audit_workout(db, user, org_id, copy.id, AuditAction.WORKOUT_CREATE, {"duplicated_from": str(workout_id)})
    return copy


@router.post("/workouts/{workout_id}/publish", response_model=schemas.Workout)
def publish_workout(
    org_id: uuid.UUID,
    workout_id: uuid.UUID,
    published: bool = True,
    db: Session = Depends(get_db),
    user_context = Depends(get_current_user_context),
):
    """Publish, or unpublish with `?published=false`."""
    user, current_user = user_context
    ensure_org_access(db, org_id, current_user, "write")
    workout = workout_service.set_published(db, _workout_or_404(db, org_id, workout_id), published)
    _audit_workout(db, user, org_id, workout.id, AuditAction.WORKOUT_PUBLISH, {"published": published})
    return workout


# === Blocks ===

@router.post("/workouts/{workout_id}/blocks", status_code=status.HTTP_201_CREATED, response_model=schemas.WorkoutBlock)
def add_block(
    org_id: uuid.UUID,
    workout_id: uuid.UUID,
    payload: schemas.WorkoutBlockCreate,
    db: Session = Depends(get_db),
    user_context = Depends(get_current_user_context),
):
    _, current_user = user_context
    ensure_org_access(db, org_id, current_user, "write")
    return workouts_repo.add_block(db, _workout_or_404(db, org_id, workout_id), payload)


@router.put("/workouts/{workout_id}/blocks/{block_id}", response_model=schemas.WorkoutBlock)
def update_block(
    org_id: uuid.UUID,
    workout_id: uuid.UUID,
    block_id: uuid.UUID,
    payload: schemas.WorkoutBlockUpdate,
    db: Session = Depends(get_db),
    user_context = Depends(get_current_user_context),
):
    _, current_user = user_context
    ensure_org_access(db, org_id, current_user, "write")
    _workout_or_404(db, org_id, workout_id)
    block = workouts_repo.update_block(db, workout_id, block_id, payload)
    if not block:
        raise HTTPException(status_code=404, detail="Block not found")
    return block


@router.delete("/workouts/{workout_id}/blocks/{block_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_block(
    org_id: uuid.UUID,
    workout_id: uuid.UUID,
    block_id: uuid.UUID,
    db: Session = Depends(get_db),
    user_context = Depends(get_current_user_context),
):
    _, current_user = user_context
    ensure_org_access(db, org_id, current_user, "write")
    _workout_or_404(db, org_id, workout_id)
    if not workouts_repo.delete_block(db, workout_id, block_id):
        raise HTTPException(status_code=404, detail="Block not found")


@router.post(
    "/workouts/{workout_id}/blocks/{block_id}/exercises",
    status_code=status.HTTP_201_CREATED,
    response_model=schemas.BlockExercise,
)
def add_block_exercise(
    org_id: uuid.UUID,
    workout_id: uuid.UUID,
    block_id: uuid.UUID,
    payload: schemas.BlockExerciseCreate,
    db: Session = Depends(get_db),
    user_context = Depends(get_current_user_context),
):
    _, current_user = user_context
    ensure_org_access(db, org_id, current_user, "write")
    _workout_or_404(db, org_id, workout_id)
    block = workouts_repo.get_block(db, workout_id, block_id)
    if not block:
        raise HTTPException(status_code=404, detail="Block not found")
    return workouts_repo.add_block_exercise(db, block, payload)


@router.delete(
    "/workouts/{workout_id}/blocks/{block_id}/exercises/{block_exercise_id}",
    status_code=status.HTTP_204_NO_CONTENT,
)
def delete_block_exercise(
    org_id: uuid.UUID,
    workout_id: uuid.UUID,
    block_id: uuid.UUID,
    block_exercise_id: uuid.UUID,
    db: Session = Depends(get_db),
    user_context = Depends(get_current_user_context),
):
    _, current_user = user_context
    ensure_org_access(db, org_id, current_user, "write")
    _workout_or_404(db, org_id, workout_id)
    if not workouts_repo.delete_block_exercise(db, block_id, block_exercise_id):
        raise HTTPException(status_code=404, detail="Block exercise not found")


# === Scores ===

@router.post("/workouts/{workout_id}/scores", status_code=status.HTTP_201_CREATED, response_model=schemas.WorkoutScore)
def record_score(
    org_id: uuid.UUID,
    workout_id: uuid.UUID,
    payload: schemas.ScoreCreate,
    db: Session = Depends(get_db),
    user_context = Depends(get_current_user_context),
):
    """Record a member's score; recording again for the same block replaces it."""
    _, current_user = user_context
    ensure_org_access(db, org_id, current_user, "write")
    _workout_or_404(db, org_id, workout_id)
    _member_or_404(db, org_id, payload.member_id)
    if payload.block_id and not workouts_repo.get_block(db, workout_id, payload.block_id):
        raise HTTPException(status_code=404, detail="Block not found")
    return workouts_repo.upsert_score(db, workout_id, payload)


@router.delete("/workouts/{workout_id}/scores/{score_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_score(
    org_id: uuid.UUID,
    workout_id: uuid.UUID,
    score_id: uuid.UUID,
    db: Session = Depends(get_db),
    user_context = Depends(get_current_user_context),
):
    _, current_user = user_context
    ensure_org_access(db, org_id, current_user, "write")
    _workout_or_404(db, org_id, workout_id)
    if not workouts_repo.delete_score(db, workout_id, score_id):
        raise HTTPException(status_code=404, detail="Score not found")


@router.get("/workouts/{workout_id}/leaderboard", response_model=List[schemas.LeaderboardEntry])
def get_leaderboard(
    org_id: uuid.UUID,
    workout_id: uuid.UUID,
    block_id: Optional[uuid.UUID] = None,
    db: Session = Depends(get_db),
    user_context = Depends(get_current_user_context),
):
    _, current_user = user_context
    ensure_org_access(db, org_id, current_user, "read")
    _workout_or_404(db, org_id, workout_id)
    return workout_service.get_leaderboard(db, workout_id, block_id)


# === Personal records ===

@router.get("/members/{member_id}/records", response_model=List[schemas.PersonalRecord])
def list_personal_records(
    org_id: uuid.UUID,
    member_id: uuid.UUID,
    db: Session = Depends(get_db),
    user_context = Depends(get_current_user_context),
):
    _, current_user = user_context
    ensure_org_access(db, org_id, current_user, "read")
    _member_or_404(db, org_id, member_id)
    return workouts_repo.get_member_personal_records(db, member_id)


@router.post("/members/{member_id}/records", status_code=status.HTTP_201_CREATED, response_model=schemas.PersonalRecord)
def record_personal_record(
    org_id: uuid.UUID,
    member_id: uuid.UUID,
    payload: schemas.PersonalRecordCreate,
    db: Session = Depends(get_db),
    user_context = Depends(get_current_user_context),
):
    _, current_user = user_context
    org = ensure_org_access(db, org_id, current_user, "write")
    member = _member_or_404(db, org_id, member_id)
    return raise_for_result(workout_service.record_personal_record(db, org, member, payload))["record"]


@router.get("/members/{member_id}/workout-history", response_model=List[schemas.WorkoutHistoryItem])
def member_workout_history(
    org_id: uuid.UUID,
    member_id: uuid.UUID,
    limit: int = 20,
    db: Session = Depends(get_db),
    user_context = Depends(get_current_user_context),
):
    _, current_user = user_context
    ensure_org_access(db, org_id, current_user, "read")
    member = _member_or_404(db, org_id, member_id)
    return workout_service.member_workout_history(db, member, limit=min(limit, 100))
