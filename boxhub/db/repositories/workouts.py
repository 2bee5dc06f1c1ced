"""
Workout repository functions: exercises, workouts, blocks, scores and PRs.
"""
from __future__ import annotations

import uuid
from datetime import date
from typing import Optional
from sqlalchemy import or_, func
from sqlalchemy.orm import Session, selectinload

from boxhub.db import schemas, models


# Exercises

def list_exercises(
    db: Session,
    organization_id: uuid.UUID,
    *,
    category: Optional[str] = None,
    search: Optional[str] = None,
):
    """Exercises of the organization plus the global library."""
    query = db.query(models.Exercise).filter(
        models.Exercise.is_active.is_(True),
        or_(
            models.Exercise.organization_id == organization_id,
            models.Exercise.is_global.is_(True),
        ),
    )
    if category:
        query = query.filter(models.Exercise.category == category)
    if search:
        pattern = f"%{search.strip().lower()}%"
        query = query.filter(
            or_(
                func.lower(models.Exercise.name).like(pattern),
                func.lower(models.Exercise.name_en).like(pattern),
            )
        )
    return query.order_by(models.Exercise.name).all()


def get_exercise(db: Session, exercise_id: uuid.UUID):
    return db.query(models.Exercise).filter(models.Exercise.id == exercise_id).first()


def create_exercise(db: Session, organization_id: Optional[uuid.UUID], exercise: schemas.ExerciseCreate):
    db_exercise = models.Exercise(
        organization_id=organization_id,
        is_global=organization_id is None,
        **exercise.model_dump(),
    )
    db.add(db_exercise)
    db.commit()
    db.refresh(db_exercise)
    return db_exercise


# Workouts

def list_workouts(
    db: Session,
    organization_id: uuid.UUID,
    *,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    is_template: Optional[bool] = None,
    is_published: Optional[bool] = None,
    limit: int = 100,
):
    query = db.query(models.Workout).filter(models.Workout.organization_id == organization_id)
    if start_date:
        query = query.filter(models.Workout.date >= start_date)
    if end_date:
        query = query.filter(models.Workout.date <= end_date)
    if is_template is not None:
        query = query.filter(models.Workout.is_template.is_(is_template))
    if is_published is not None:
        query = query.filter(models.Workout.is_published.is_(is_published))
    return (
        query.order_by(models.Workout.date.desc(), models.Workout.created_at.desc())
        .limit(limit)
        .all()
    )


def get_workout(db: Session, organization_id: uuid.UUID, workout_id: uuid.UUID):
    return (
        db.query(models.Workout)
        .options(selectinload(models.Workout.blocks).selectinload(models.WorkoutBlock.exercises))
        .filter(models.Workout.id == workout_id, models.Workout.organization_id == organization_id)
        .first()
    )


def get_workout_by_date(db: Session, organization_id: uuid.UUID, day: date, published_only: bool = False):
    query = (
        db.query(models.Workout)
        .filter(
            models.Workout.organization_id == organization_id,
            models.Workout.date == day,
            models.Workout.is_template.is_(False),
        )
    )
    if published_only:
        query = query.filter(models.Workout.is_published.is_(True))
    return query.order_by(models.Workout.created_at.desc()).first()


def _build_blocks(workout: models.Workout, blocks) -> None:
    for position, block in enumerate(blocks):
        block_data = block.model_dump(exclude={'exercises'})
        db_block = models.WorkoutBlock(position=position, **block_data)
        for ex_position, exercise in enumerate(block.exercises):
            db_block.exercises.append(models.BlockExercise(position=ex_position, **exercise.model_dump()))
        workout.blocks.append(db_block)


def create_workout(db: Session, organization_id: uuid.UUID, workout: schemas.WorkoutCreate, user_id: Optional[uuid.UUID]):
    db_workout = models.Workout(
        organization_id=organization_id,
        created_by=user_id,
        **workout.model_dump(exclude={'blocks'}),
    )
    _build_blocks(db_workout, workout.blocks)
    db.add(db_workout)
    db.commit()
    db.refresh(db_workout)
    return db_workout


def update_workout(db: Session, organization_id: uuid.UUID, workout_id: uuid.UUID, workout: schemas.WorkoutUpdate):
    db_workout = get_workout(db, organization_id, workout_id)
    if db_workout:
        for key, value in workout.model_dump(exclude_unset=True).items():
            setattr(db_workout, key, value)
        db.commit()
        db.refresh(db_workout)
    return db_workout


def delete_workout(db: Session, organization_id: uuid.UUID, workout_id: uuid.UUID) -> bool:
    db_workout = get_workout(db, organization_id, workout_id)
    if not db_workout:
        return False
    db.query(models.WorkoutScore).filter(models.WorkoutScore.workout_id == workout_id).delete(synchronize_session=False)
    db.query(models.GymClass).filter(models.GymClass.workout_id == workout_id).update(
        {models.GymClass.workout_id: None}, synchronize_session=False
    )
    db.delete(db_workout)
    db.commit()
    return True


def get_published_workouts(db: Session, organization_id: uuid.UUID, limit: int = 50):
    return (
        db.query(models.Workout)
        .filter(
            models.Workout.organization_id == organization_id,
            models.Workout.is_published.is_(True),
            models.Workout.is_template.is_(False),
        )
        .order_by(models.Workout.date.desc())
        .limit(limit)
        .all()
    )


def get_recent_dated_workouts(db: Session, organization_id: uuid.UUID, limit: int = 20):
    return (
        db.query(models.Workout)
        .filter(
            models.Workout.organization_id == organization_id,
            models.Workout.is_template.is_(False),
            models.Workout.date.isnot(None),
        )
        .order_by(models.Workout.date.desc())
        .limit(limit)
        .all()
    )


# Blocks

def get_block(db: Session, workout_id: uuid.UUID, block_id: uuid.UUID):
    return (
        db.query(models.WorkoutBlock)
        .filter(models.WorkoutBlock.id == block_id, models.WorkoutBlock.workout_id == workout_id)
        .first()
    )


def add_block(db: Session, workout: models.Workout, block: schemas.WorkoutBlockCreate):
    next_position = (
        db.query(func.coalesce(func.max(models.WorkoutBlock.position), -1))
        .filter(models.WorkoutBlock.workout_id == workout.id)
        .scalar()
        + 1
    )
    db_block = models.WorkoutBlock(
        workout_id=workout.id,
        position=next_position,
        **block.model_dump(exclude={'exercises'}),
    )
    for ex_position, exercise in enumerate(block.exercises):
        db_block.exercises.append(models.BlockExercise(position=ex_position, **exercise.model_dump()))
    db.add(db_block)
    db.commit()
    db.refresh(db_block)
    return db_block


def update_block(db: Session, workout_id: uuid.UUID, block_id: uuid.UUID, block: schemas.WorkoutBlockUpdate):
    db_block = get_block(db, workout_id, block_id)
    if db_block:
        for key, value in block.model_dump(exclude_unset=True).items():
            setattr(db_block, key, value)
        db.commit()
        db.refresh(db_block)
    return db_block


def delete_block(db: Session, workout_id: uuid.UUID, block_id: uuid.UUID) -> bool:
    db_block = get_block(db, workout_id, block_id)
    if not db_block:
        return False
    db.delete(db_block)
    db.commit()
    return True


def add_block_exercise(db: Session, block: models.WorkoutBlock, exercise: schemas.BlockExerciseCreate):
    next_position = (
        db.query(func.coalesce(func.max(models.BlockExercise.position), -1))
        .filter(models.BlockExercise.block_id == block.id)
        .scalar()
        + 1
    )
    db_exercise = models.BlockExercise(block_id=block.id, position=next_position, **exercise.model_dump())
    db.add(db_exercise)
    db.commit()
    db.refresh(db_exercise)
    return db_exercise


def delete_block_exercise(db: Session, block_id: uuid.UUID, block_exercise_id: uuid.UUID) -> bool:
    db_exercise = (
        db.query(models.BlockExercise)
        .filter(models.BlockExercise.id == block_exercise_id, models.BlockExercise.block_id == block_id)
        .first()
    )
    if not db_exercise:
        return False
    db.delete(db_exercise)
    db.commit()
    return True


# Scores

def _score_filter(query, workout_id, member_id, block_id):
    query = query.filter(
        models.WorkoutScore.workout_id == workout_id,
        models.WorkoutScore.member_id == member_id,
    )
    if block_id is None:
        return query.filter(models.WorkoutScore.block_id.is_(None))
    return query.filter(models.WorkoutScore.block_id == block_id)


def upsert_score(db: Session, workout_id: uuid.UUID, score: schemas.ScoreCreate):
    """One score per (workout, member, block); recording again replaces it."""
    existing = _score_filter(db.query(models.WorkoutScore), workout_id, score.member_id, score.block_id).first()
    data = score.model_dump()
    if existing:
        for key, value in data.items():
            setattr(existing, key, value)
        existing.recorded_at = models.now_utc()
        db_score = existing
    else:
        db_score = models.WorkoutScore(workout_id=workout_id, **data)
        db.add(db_score)
    db.commit()
    db.refresh(db_score)
    return db_score


def get_score(db: Session, score_id: uuid.UUID):
    return db.query(models.WorkoutScore).filter(models.WorkoutScore.id == score_id).first()


def delete_score(db: Session, workout_id: uuid.UUID, score_id: uuid.UUID) -> bool:
    db_score = (
        db.query(models.WorkoutScore)
        .filter(models.WorkoutScore.id == score_id, models.WorkoutScore.workout_id == workout_id)
        .first()
    )
    if not db_score:
        return False
    db.delete(db_score)
    db.commit()
    return True


def get_workout_scores(db: Session, workout_id: uuid.UUID, block_id: Optional[uuid.UUID] = None):
    """Scores with their members for one workout (or one block of it)."""
    query = (
        db.query(models.WorkoutScore, models.Member)
        .join(models.Member, models.Member.id == models.WorkoutScore.member_id)
        .filter(models.WorkoutScore.workout_id == workout_id)
    )
    if block_id is None:
        query = query.filter(models.WorkoutScore.block_id.is_(None))
    else:
        query = query.filter(models.WorkoutScore.block_id == block_id)
    return query.all()


def get_member_scores(db: Session, member_id: uuid.UUID, limit: int = 100):
    return (
        db.query(models.WorkoutScore)
        .filter(models.WorkoutScore.member_id == member_id)
        .order_by(models.WorkoutScore.recorded_at.desc())
        .limit(limit)
        .all()
    )


def get_member_workout_scores(db: Session, member_id: uuid.UUID, workout_ids):
    ids = list(workout_ids)
    if not ids:
        return {}
    rows = (
        db.query(models.WorkoutScore)
        .filter(
            models.WorkoutScore.member_id == member_id,
            models.WorkoutScore.workout_id.in_(ids),
            models.WorkoutScore.block_id.is_(None),
        )
        .all()
    )
    return {s.workout_id: s for s in rows}


# Personal records

def get_personal_record(db: Session, member_id: uuid.UUID, exercise_id: uuid.UUID, record_type: str):
    return (
        db.query(models.PersonalRecord)
        .filter(
            models.PersonalRecord.member_id == member_id,
            models.PersonalRecord.exercise_id == exercise_id,
            models.PersonalRecord.record_type == record_type,
        )
        .first()
    )


def upsert_personal_record(db: Session, member_id: uuid.UUID, record: schemas.PersonalRecordCreate):
    existing = get_personal_record(db, member_id, record.exercise_id, record.record_type)
    data = record.model_dump(exclude_none=True)
    if existing:
        for key, value in data.items():
            setattr(existing, key, value)
        if record.achieved_at is None:
            existing.achieved_at = models.today_utc()
        db_record = existing
    else:
        db_record = models.PersonalRecord(member_id=member_id, **data)
        db.add(db_record)
    db.commit()
    db.refresh(db_record)
    return db_record


def get_member_personal_records(db: Session, member_id: uuid.UUID):
    return (
        db.query(models.PersonalRecord)
        .filter(models.PersonalRecord.member_id == member_id)
        .order_by(models.PersonalRecord.achieved_at.desc(), models.PersonalRecord.created_at.desc())
        .all()
    )
