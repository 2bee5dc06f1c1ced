import uuid
from sqlalchemy import (
    Column, String, Text, Date, DateTime, Boolean, Integer, Float, ForeignKey, Index, CheckConstraint,
)
from sqlalchemy.dialects.postgresql import UUID, JSONB
from sqlalchemy.orm import relationship
from .base import Base, now_utc, today_utc


BLOCK_TYPES = ('warmup', 'skill', 'strength', 'wod', 'cooldown', 'accessory', 'custom')
WOD_TYPES = ('amrap', 'emom', 'for_time', 'tabata', 'rounds', 'max_reps', 'max_weight', 'chipper', 'ladder', 'custom')
EXERCISE_CATEGORIES = ('weightlifting', 'gymnastics', 'cardio', 'strongman', 'core', 'mobility', 'other')
SCORE_TYPES = ('time', 'reps', 'rounds_reps', 'weight', 'calories', 'distance', 'points')


class Exercise(Base):
    __tablename__ = 'exercises'
    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    # NULL organization means a global exercise shared by every box
    organization_id = Column(UUID(as_uuid=True), ForeignKey('organizations.id', ondelete='CASCADE'), nullable=True)
    name = Column(String, nullable=False)
    name_en = Column(String, nullable=True)
    description = Column(Text, nullable=True)
    category = Column(String, nullable=False, default='other')
    video_url = Column(Text, nullable=True)
    image_url = Column(Text, nullable=True)
    equipment = Column(JSONB, nullable=False, default=list)
    is_global = Column(Boolean, nullable=False, default=False)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), default=now_utc)
    updated_at = Column(DateTime(timezone=True), default=now_utc, onupdate=now_utc)

    __table_args__ = (
        Index('ix_exercises_organization_id', 'organization_id'),
        CheckConstraint(
            "category in ('weightlifting','gymnastics','cardio','strongman','core','mobility','other')",
            name='ck_exercises_category',
        ),
    )


class Workout(Base):
    __tablename__ = 'workouts'
    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    organization_id = Column(UUID(as_uuid=True), ForeignKey('organizations.id', ondelete='CASCADE'), nullable=False)
    name = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    date = Column(Date, nullable=True)
    is_template = Column(Boolean, nullable=False, default=False)
    is_published = Column(Boolean, nullable=False, default=False)
    created_by = Column(UUID(as_uuid=True), ForeignKey('users.id', ondelete='SET NULL'), nullable=True)
    created_at = Column(DateTime(timezone=True), default=now_utc)
    updated_at = Column(DateTime(timezone=True), default=now_utc, onupdate=now_utc)

    blocks = relationship(
        "WorkoutBlock",
        back_populates="workout",
        order_by="WorkoutBlock.position",
        cascade="all, delete-orphan",
    )

    __table_args__ = (
        Index('ix_workouts_organization_id_date', 'organization_id', 'date'),
    )


class WorkoutBlock(Base):
    __tablename__ = 'workout_blocks'
    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    workout_id = Column(UUID(as_uuid=True), ForeignKey('workouts.id', ondelete='CASCADE'), nullable=False)
    name = Column(String, nullable=True)
    block_type = Column(String, nullable=False, default='wod')
    wod_type = Column(String, nullable=True)
    time_cap = Column(Integer, nullable=True)
    rounds = Column(Integer, nullable=True)
    work_time = Column(Integer, nullable=True)
    rest_time = Column(Integer, nullable=True)
    position = Column(Integer, nullable=False, default=0)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), default=now_utc)
    updated_at = Column(DateTime(timezone=True), default=now_utc, onupdate=now_utc)

    workout = relationship("Workout", back_populates="blocks")
    exercises = relationship(
        "BlockExercise",
        back_populates="block",
        order_by="BlockExercise.position",
        cascade="all, delete-orphan",
    )

    __table_args__ = (
        Index('ix_workout_blocks_workout_id', 'workout_id'),
    )


class BlockExercise(Base):
    __tablename__ = 'block_exercises'
    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    block_id = Column(UUID(as_uuid=True), ForeignKey('workout_blocks.id', ondelete='CASCADE'), nullable=False)
    exercise_id = Column(UUID(as_uuid=True), ForeignKey('exercises.id', ondelete='SET NULL'), nullable=True)
    custom_name = Column(String, nullable=True)
    reps = Column(Integer, nullable=True)
    reps_unit = Column(String, nullable=True)
    weight_male = Column(Float, nullable=True)
    weight_female = Column(Float, nullable=True)
    weight_unit = Column(String, nullable=True)
    distance = Column(Float, nullable=True)
    distance_unit = Column(String, nullable=True)
    time_seconds = Column(Integer, nullable=True)
    calories = Column(Integer, nullable=True)
    position = Column(Integer, nullable=False, default=0)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), default=now_utc)

    block = relationship("WorkoutBlock", back_populates="exercises")
    exercise = relationship("Exercise")

    @property
    def display_name(self) -> str:
        if self.exercise is not None:
            return self.exercise.name
        return self.custom_name or ''


class WorkoutScore(Base):
    __tablename__ = 'workout_scores'
    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    workout_id = Column(UUID(as_uuid=True), ForeignKey('workouts.id', ondelete='CASCADE'), nullable=False)
    member_id = Column(UUID(as_uuid=True), ForeignKey('members.id', ondelete='CASCADE'), nullable=False)
    block_id = Column(UUID(as_uuid=True), ForeignKey('workout_blocks.id', ondelete='CASCADE'), nullable=True)
    score_type = Column(String, nullable=False)
    score_value = Column(Float, nullable=False)
    score_secondary = Column(Float, nullable=True)
    is_rx = Column(Boolean, nullable=False, default=True)
    notes = Column(Text, nullable=True)
    recorded_at = Column(DateTime(timezone=True), default=now_utc, nullable=False)
    created_at = Column(DateTime(timezone=True), default=now_utc)
    updated_at = Column(DateTime(timezone=True), default=now_utc, onupdate=now_utc)

    member = relationship("Member")

    __table_args__ = (
        Index('ix_workout_scores_workout_member_block', 'workout_id', 'member_id', 'block_id', unique=True),
        CheckConstraint(
            "score_type in ('time','reps','rounds_reps','weight','calories','distance','points')",
            name='ck_workout_scores_score_type',
        ),
    )


class PersonalRecord(Base):
    __tablename__ = 'personal_records'
    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    member_id = Column(UUID(as_uuid=True), ForeignKey('members.id', ondelete='CASCADE'), nullable=False)
    exercise_id = Column(UUID(as_uuid=True), ForeignKey('exercises.id', ondelete='CASCADE'), nullable=False)
    record_type = Column(String, nullable=False)  # 1rm, 3rm, max_reps, best_time, ...
    record_value = Column(Float, nullable=False)
    record_unit = Column(String, nullable=False)
    workout_id = Column(UUID(as_uuid=True), ForeignKey('workouts.id', ondelete='SET NULL'), nullable=True)
    notes = Column(Text, nullable=True)
    achieved_at = Column(Date, nullable=False, default=today_utc)
    created_at = Column(DateTime(timezone=True), default=now_utc)
    updated_at = Column(DateTime(timezone=True), default=now_utc, onupdate=now_utc)

    exercise = relationship("Exercise")

    __table_args__ = (
        Index('ix_personal_records_member_exercise_type', 'member_id', 'exercise_id', 'record_type', unique=True),
    )
