"""Workout helpers: leaderboard ranking, duplication and member history."""

import logging
import uuid
from datetime import date
from typing import Optional, List, Dict, Any

from sqlalchemy.orm import Session

from boxhub.db import models, schemas
from boxhub.db.repositories import workouts as workouts_repo
from boxhub.services.discord_service import DiscordService
from boxhub.services import workflow_engine

logger = logging.getLogger(__name__)

# Lower is better only for times
ASCENDING_SCORE_TYPES = frozenset({'time'})


def is_improvement(record_type: str, previous: Optional[float], current: float) -> bool:
    """A first record always counts. Time records improve downwards."""
    if previous is None:
        return True
    if 'time' in (record_type or '').lower():
        return current < previous
    return current > previous


def _sort_key(score: models.WorkoutScore):
    value = score.score_value if score.score_type in ASCENDING_SCORE_TYPES else -score.score_value
    secondary = -(score.score_secondary or 0) if score.score_type == 'rounds_reps' else 0
    return (0 if score.is_rx else 1, value, secondary)


def rank_scores(rows) -> List[Dict[str, Any]]:
    """
    Rank (score, member) rows.

    Rx before scaled, then by score (times ascending, everything else
    descending, rounds+reps ties broken by reps). Exact ties share a rank
    and the next rank skips accordingly (1, 1, 3).
    """
    ordered = sorted(rows, key=lambda row: _sort_key(row[0]))
    entries = []
    previous_key = None
    rank = 0
    for index, (score, member) in enumerate(ordered, start=1):
        key = _sort_key(score)
        if key != previous_key:
            rank = index
            previous_key = key
        entries.append({
            'rank': rank,
            'member_id': member.id,
            'member_name': member.full_name,
            'score_type': score.score_type,
            'score_value': score.score_value,
            'score_secondary': score.score_secondary,
            'is_rx': score.is_rx,
        })
    return entries


def get_leaderboard(db: Session, workout_id: uuid.UUID, block_id: Optional[uuid.UUID] = None) -> List[Dict[str, Any]]:
    return rank_scores(workouts_repo.get_workout_scores(db, workout_id, block_id))


def duplicate_workout(db: Session, workout: models.Workout, user_id: Optional[uuid.UUID], new_date: Optional[date] = None) -> models.Workout:
    """Copy a workout with its blocks and exercises, unpublished."""
    copy = models.Workout(
        organization_id=workout.organization_id,
        name=f"{workout.name} (copie)",
        description=workout.description,
        date=new_date if new_date is not None else workout.date,
        is_template=workout.is_template,
        is_published=False,
        created_by=user_id,
    )
    for block in workout.blocks:
        new_block = models.WorkoutBlock(
            name=block.name,
            block_type=block.block_type,
            wod_type=block.wod_type,
            time_cap=block.time_cap,
            rounds=block.rounds,
            work_time=block.work_time,
            rest_time=block.rest_time,
            position=block.position,
            notes=block.notes,
        )
        for exercise in block.exercises:
            new_block.exercises.append(models.BlockExercise(
                exercise_id=exercise.exercise_id,
                custom_name=exercise.custom_name,
                reps=exercise.reps,
                reps_unit=exercise.reps_unit,
                weight_male=exercise.weight_male,
                weight_female=exercise.weight_female,
                weight_unit=exercise.weight_unit,
                distance=exercise.distance,
                distance_unit=exercise.distance_unit,
                time_seconds=exercise.time_seconds,
                calories=exercise.calories,
                position=exercise.position,
                notes=exercise.notes,
            ))
        copy.blocks.append(new_block)
    db.add(copy)
    db.commit()
    db.refresh(copy)
    logger.info("Workout %s duplicated as %s", workout.id, copy.id)
    return copy


def set_published(db: Session, workout: models.Workout, published: bool) -> models.Workout:
    workout.is_published = published
    db.commit()
    db.refresh(workout)
    return workout


def member_workout_history(db: Session, member: models.Member, limit: int = 20) -> List[Dict[str, Any]]:
    workouts = workouts_repo.get_recent_dated_workouts(db, member.organization_id, limit=limit)
    scores = workouts_repo.get_member_workout_scores(db, member.id, [w.id for w in workouts])
    return [{'workout': w, 'score': scores.get(w.id)} for w in workouts]


def record_personal_record(
    db: Session,
    organization: models.Organization,
    member: models.Member,
    payload: schemas.PersonalRecordCreate,
) -> Dict[str, Any]:
    """Upsert a PR and announce it on the box's chat webhook when enabled."""
    exercise = workouts_repo.get_exercise(db, payload.exercise_id)
    if exercise is None or (not exercise.is_global and exercise.organization_id != organization.id):
        return {'success': False, 'error': 'Exercice introuvable', 'code': 'not_found'}

    previous = workouts_repo.get_personal_record(db, member.id, payload.exercise_id, payload.record_type)
    previous_value = previous.record_value if previous is not None else None
    record = workouts_repo.upsert_personal_record(db, member.id, payload)

    improved = is_improvement(record.record_type, previous_value, record.record_value)
    if improved:
        details = f"a battu son record sur {exercise.name} : {record.record_value:g} {record.record_unit or ''}".rstrip()
        DiscordService(db, organization).send_achievement(member, 'personal_record', details)
        workflow_engine.trigger_personal_record(
            db, organization, member, exercise.name, record.record_value, record.record_unit, previous_value
        )
    else:
        logger.info("PR %s for member %s not improved, no announcement", record.id, member.id)
    return {'success': True, 'record': record, 'improved': improved}
