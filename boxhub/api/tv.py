"""
TV display API.

Staff drive the screen through `/organizations/{org_id}/tv`; the box screen
polls the public `/tv/{org_ref}` endpoint, where `org_ref` is an id or a slug.
"""
import logging
from typing import Optional
import uuid

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from boxhub.db.database import get_db
from boxhub.db import schemas
from boxhub.db.repositories import tv as tv_repo
from boxhub.db.repositories import workouts as workouts_repo
from boxhub.api.deps import get_current_user_context, ensure_org_access
from boxhub.services import tv_service
from boxhub.utils.feature_flags import feature_enabled, org_feature_enabled

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/organizations/{org_id}/tv", tags=["tv"])
public_router = APIRouter(prefix="/tv", tags=["tv"])


def _require_workout(db: Session, org_id: uuid.UUID, workout_id: uuid.UUID) -> None:
    if not workouts_repo.get_workout(db, org_id, workout_id):
        raise HTTPException(status_code=404, detail="Workout not found")


@router.get("/state", response_model=Optional[schemas.TVState])
def get_state(
    org_id: uuid.UUID,
    db: Session = Depends(get_db),
    user_context = Depends(get_current_user_context),
):
    _, current_user = user_context
    ensure_org_access(db, org_id, current_user, "read")
    return tv_repo.get_tv_state(db, org_id)


@router.put("/state", response_model=schemas.TVState)
def update_state(
    org_id: uuid.UUID,
    payload: schemas.TVStateUpdate,
    db: Session = Depends(get_db),
    user_context = Depends(get_current_user_context),
):
    """Partial update; the last write wins."""
    _, current_user = user_context
    ensure_org_access(db, org_id, current_user, "write")
    if payload.workout_id:
        _require_workout(db, org_id, payload.workout_id)
    return tv_service.update_state(db, org_id, payload)


@router.post("/workout", response_model=schemas.TVState)
def show_workout(
    org_id: uuid.UUID,
    payload: schemas.TVShowWorkout,
    db: Session = Depends(get_db),
    user_context = Depends(get_current_user_context),
):
    _, current_user = user_context
    ensure_org_access(db, org_id, current_user, "write")
    _require_workout(db, org_id, payload.workout_id)
    return tv_service.show_workout(db, org_id, payload.workout_id)


@router.post("/waiting", response_model=schemas.TVState)
def show_waiting(
    org_id: uuid.UUID,
    payload: Optional[schemas.TVWaiting] = None,
    db: Session = Depends(get_db),
    user_context = Depends(get_current_user_context),
):
    _, current_user = user_context
    ensure_org_access(db, org_id, current_user, "write")
    return tv_service.show_waiting(db, org_id, payload.message if payload else None)


@router.post("/timer", response_model=schemas.TVState)
def start_timer(
    org_id: uuid.UUID,
    payload: schemas.TimerState,
    db: Session = Depends(get_db),
    user_context = Depends(get_current_user_context),
):
    _, current_user = user_context
    ensure_org_access(db, org_id, current_user, "write")
    return tv_service.start_timer(db, org_id, payload)


@router.patch("/timer", response_model=schemas.TVState)
def update_timer(
    org_id: uuid.UUID,
    payload: schemas.TimerUpdate,
    db: Session = Depends(get_db),
    user_context = Depends(get_current_user_context),
):
    _, current_user = user_context
    ensure_org_access(db, org_id, current_user, "write")
    state = tv_service.update_timer(db, org_id, payload)
    if state is None:
        raise HTTPException(status_code=409, detail="No timer has been started")
    return state


@router.post("/leaderboard", response_model=schemas.TVState)
def show_leaderboard(
    org_id: uuid.UUID,
    payload: schemas.TVShowWorkout,
    db: Session = Depends(get_db),
    user_context = Depends(get_current_user_context),
):
    _, current_user = user_context
    ensure_org_access(db, org_id, current_user, "write")
    _require_workout(db, org_id, payload.workout_id)
    return tv_service.show_leaderboard(db, org_id, payload.workout_id)


@router.post("/teams", response_model=schemas.TVState)
def show_teams(
    org_id: uuid.UUID,
    payload: schemas.TVTeams,
    db: Session = Depends(get_db),
    user_context = Depends(get_current_user_context),
):
    _, current_user = user_context
    ensure_org_access(db, org_id, current_user, "write")
    return tv_service.show_teams(db, org_id, payload.teams)


@public_router.get("/{org_ref}", response_model=schemas.TVDisplay)
def get_display(org_ref: str, db: Session = Depends(get_db)):
    if not feature_enabled("tv"):
        raise HTTPException(status_code=404, detail="TV display is disabled")
    org = tv_service.resolve_organization(db, org_ref)
    if org is None or not org.is_active:
        raise HTTPException(status_code=404, detail="Organization not found")
    if not org_feature_enabled(org, "tv"):
        raise HTTPException(status_code=404, detail="TV display is not included in this plan")
    return tv_service.get_display_data(db, org_ref)
