"""TV display: state updates from staff and the public display payload."""

import logging
import uuid
from datetime import datetime
from typing import Optional, Dict, Any

from sqlalchemy.orm import Session

from boxhub.db import models, schemas
from boxhub.db.models.organizations import DEFAULT_PRIMARY_COLOR, DEFAULT_SECONDARY_COLOR
from boxhub.db.repositories import organizations as orgs_repo
from boxhub.db.repositories import planning as planning_repo
from boxhub.db.repositories import tv as tv_repo
from boxhub.db.repositories import workouts as workouts_repo
from boxhub.services.workout_service import get_leaderboard

logger = logging.getLogger(__name__)


def update_state(db: Session, organization_id: uuid.UUID, update: schemas.TVStateUpdate) -> models.TVState:
    values = update.model_dump(exclude_unset=True)
    if update.timer_state is not None:
        values['timer_state'] = update.timer_state.model_dump()
    return tv_repo.upsert_tv_state(db, organization_id, values)


def show_workout(db: Session, organization_id: uuid.UUID, workout_id: uuid.UUID) -> models.TVState:
    return tv_repo.upsert_tv_state(db, organization_id, {'mode': 'workout', 'workout_id': workout_id})


def show_waiting(db: Session, organization_id: uuid.UUID, message: Optional[str] = None) -> models.TVState:
    return tv_repo.upsert_tv_state(db, organization_id, {'mode': 'waiting', 'message': message})


def start_timer(db: Session, organization_id: uuid.UUID, timer: schemas.TimerState) -> models.TVState:
    state = timer.model_dump()
    state['is_running'] = True
    return tv_repo.upsert_tv_state(db, organization_id, {'mode': 'timer', 'timer_state': state})


def update_timer(db: Session, organization_id: uuid.UUID, update: schemas.TimerUpdate) -> Optional[models.TVState]:
    """Merge running-timer fields; None when no timer has been started."""
    state = tv_repo.get_tv_state(db, organization_id)
    if state is None or not state.timer_state:
        return None
    timer = dict(state.timer_state)
    timer.update(update.model_dump(exclude_unset=True))
    return tv_repo.upsert_tv_state(db, organization_id, {'timer_state': timer})


def show_leaderboard(db: Session, organization_id: uuid.UUID, workout_id: uuid.UUID) -> models.TVState:
    return tv_repo.upsert_tv_state(db, organization_id, {'mode': 'leaderboard', 'workout_id': workout_id})


def show_teams(db: Session, organization_id: uuid.UUID, teams) -> models.TVState:
    return tv_repo.upsert_tv_state(db, organization_id, {'mode': 'teams', 'teams_data': teams})


def resolve_organization(db: Session, org_ref: str) -> Optional[models.Organization]:
    try:
        org = orgs_repo.get_organization(db, uuid.UUID(str(org_ref)))
    except ValueError:
        org = None
    return org or orgs_repo.get_organization_by_slug(db, org_ref)


def get_display_data(db: Session, org_ref: str, now: Optional[datetime] = None) -> Optional[Dict[str, Any]]:
    """Everything the box screen needs, looked up by organization id or slug."""
    org = resolve_organization(db, org_ref)
    if org is None or not org.is_active:
        return None
    now = now or models.now_utc()

    state = tv_repo.get_tv_state(db, org.id)
    workout = workouts_repo.get_workout_by_date(db, org.id, now.date())
    if state is not None and state.workout_id:
        workout = workouts_repo.get_workout(db, org.id, state.workout_id) or workout

    leaderboard = []
    if state is not None and state.mode == 'leaderboard' and workout is not None:
        leaderboard = get_leaderboard(db, workout.id)

    return {
        'organization': {
            'id': org.id,
            'name': org.name,
            'slug': org.slug,
            'logo_url': org.logo_url,
            'primary_color': org.get_setting('primary_color', DEFAULT_PRIMARY_COLOR),
            'secondary_color': org.get_setting('secondary_color', DEFAULT_SECONDARY_COLOR),
        },
        'current_class': planning_repo.get_current_class(db, org.id, now),
        'next_class': planning_repo.get_next_class(db, org.id, now),
        'workout': workout,
        'leaderboard': leaderboard,
        'state': state,
    }
