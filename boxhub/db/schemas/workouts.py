import uuid
import datetime
from typing import List, Literal, Optional
from pydantic import BaseModel, ConfigDict, Field, field_validator


BlockType = Literal['warmup', 'skill', 'strength', 'wod', 'cooldown', 'accessory', 'custom']
WodType = Literal['amrap', 'emom', 'for_time', 'tabata', 'rounds', 'max_reps', 'max_weight', 'chipper', 'ladder', 'custom']
ExerciseCategory = Literal['weightlifting', 'gymnastics', 'cardio', 'strongman', 'core', 'mobility', 'other']
ScoreType = Literal['time', 'reps', 'rounds_reps', 'weight', 'calories', 'distance', 'points']


class ExerciseCreate(BaseModel):
    name: str = Field(min_length=1)
    name_en: Optional[str] = None
    description: Optional[str] = None
    category: ExerciseCategory = 'other'
    video_url: Optional[str] = None
    image_url: Optional[str] = None
    equipment: List[str] = Field(default_factory=list)


class Exercise(ExerciseCreate):
    id: uuid.UUID
    organization_id: Optional[uuid.UUID] = None
    is_global: bool
    is_active: bool
    model_config = ConfigDict(from_attributes=True)


class BlockExerciseCreate(BaseModel):
    exercise_id: Optional[uuid.UUID] = None
    custom_name: Optional[str] = None
    reps: Optional[int] = None
    reps_unit: Optional[str] = None
    weight_male: Optional[float] = None
    weight_female: Optional[float] = None
    weight_unit: Optional[str] = None
    distance: Optional[float] = None
    distance_unit: Optional[str] = None
    time_seconds: Optional[int] = None
    calories: Optional[int] = None
    notes: Optional[str] = None


class BlockExercise(BlockExerciseCreate):
    id: uuid.UUID
    block_id: uuid.UUID
    position: int
    display_name: str = ''
    model_config = ConfigDict(from_attributes=True)


class WorkoutBlockCreate(BaseModel):
    name: Optional[str] = None
    block_type: BlockType = 'wod'
    wod_type: Optional[WodType] = None
    time_cap: Optional[int] = None
    rounds: Optional[int] = None
    work_time: Optional[int] = None
    rest_time: Optional[int] = None
    notes: Optional[str] = None
    exercises: List[BlockExerciseCreate] = Field(default_factory=list)


class WorkoutBlockUpdate(BaseModel):
    name: Optional[str] = None
    block_type: Optional[BlockType] = None
    wod_type: Optional[WodType] = None
    time_cap: Optional[int] = None
    rounds: Optional[int] = None
    work_time: Optional[int] = None
    rest_time: Optional[int] = None
    position: Optional[int] = None
    notes: Optional[str] = None

    @field_validator('block_type', 'position')
    @classmethod
    def _reject_null(cls, value):
        if value is None:
            raise ValueError("ne peut pas etre null")
        return value


class WorkoutBlock(BaseModel):
    id: uuid.UUID
    workout_id: uuid.UUID
    name: Optional[str] = None
    block_type: str
    wod_type: Optional[str] = None
    time_cap: Optional[int] = None
    rounds: Optional[int] = None
    work_time: Optional[int] = None
    rest_time: Optional[int] = None
    position: int
    notes: Optional[str] = None
    exercises: List[BlockExercise] = Field(default_factory=list)
    model_config = ConfigDict(from_attributes=True)


class WorkoutCreate(BaseModel):
    name: str = Field(min_length=1)
    description: Optional[str] = None
    date: Optional[datetime.date] = None
    is_template: bool = False
    is_published: bool = False
    blocks: List[WorkoutBlockCreate] = Field(default_factory=list)


class WorkoutUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1)
    description: Optional[str] = None
    date: Optional[datetime.date] = None
    is_template: Optional[bool] = None
    is_published: Optional[bool] = None

    @field_validator('name', 'is_template', 'is_published')
    @classmethod
    def _reject_null(cls, value):
        if value is None:
            raise ValueError("ne peut pas etre null")
        return value


class WorkoutSummary(BaseModel):
    id: uuid.UUID
    organization_id: uuid.UUID
    name: str
    description: Optional[str] = None
    date: Optional[datetime.date] = None
    is_template: bool
    is_published: bool
    created_at: datetime.datetime
    model_config = ConfigDict(from_attributes=True)


class Workout(WorkoutSummary):
    blocks: List[WorkoutBlock] = Field(default_factory=list)


class WorkoutDuplicate(BaseModel):
    date: Optional[datetime.date] = None


class ScoreCreate(BaseModel):
    member_id: uuid.UUID
    block_id: Optional[uuid.UUID] = None
    score_type: ScoreType
    score_value: float
    score_secondary: Optional[float] = None
    is_rx: bool = True
    notes: Optional[str] = None


class WorkoutScore(BaseModel):
    id: uuid.UUID
    workout_id: uuid.UUID
    member_id: uuid.UUID
    block_id: Optional[uuid.UUID] = None
    score_type: str
    score_value: float
    score_secondary: Optional[float] = None
    is_rx: bool
    notes: Optional[str] = None
    recorded_at: datetime.datetime
    model_config = ConfigDict(from_attributes=True)


class LeaderboardEntry(BaseModel):
    rank: int
    member_id: uuid.UUID
    member_name: str
    score_type: str
    score_value: float
    score_secondary: Optional[float] = None
    is_rx: bool


class PersonalRecordCreate(BaseModel):
    exercise_id: uuid.UUID
    record_type: str = Field(min_length=1)
    record_value: float
    record_unit: str = Field(min_length=1)
    workout_id: Optional[uuid.UUID] = None
    notes: Optional[str] = None
    achieved_at: Optional[datetime.date] = None


class PersonalRecord(BaseModel):
    id: uuid.UUID
    member_id: uuid.UUID
    exercise_id: uuid.UUID
    record_type: str
    record_value: float
    record_unit: str
    workout_id: Optional[uuid.UUID] = None
    notes: Optional[str] = None
    achieved_at: datetime.date
    model_config = ConfigDict(from_attributes=True)


class WorkoutHistoryItem(BaseModel):
    workout: WorkoutSummary
    score: Optional[WorkoutScore] = None
