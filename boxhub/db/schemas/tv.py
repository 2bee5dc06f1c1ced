import uuid
from datetime import datetime
from typing import Any, Dict, List, Literal, Optional
from pydantic import BaseModel, ConfigDict, Field, field_validator

from .planning import GymClass
from .workouts import LeaderboardEntry, Workout


TVMode = Literal['waiting', 'workout', 'timer', 'leaderboard', 'teams']
TimerType = Literal['countdown', 'countup', 'emom', 'tabata']


class TimerState(BaseModel):
    type: TimerType = 'countdown'
    duration: int = Field(default=0, ge=0)
    current_time: int = Field(default=0, ge=0)
    is_running: bool = False
    round: Optional[int] = None
    total_rounds: Optional[int] = None
    work_time: Optional[int] = None
    rest_time: Optional[int] = None


class TimerUpdate(BaseModel):
    current_time: Optional[int] = Field(default=None, ge=0)
    is_running: Optional[bool] = None
    round: Optional[int] = None

    @field_validator('current_time', 'is_running')
    @classmethod
    def _reject_null(cls, value):
        if value is None:
            raise ValueError("ne peut pas etre null")
        return value


class TVStateUpdate(BaseModel):
    mode: Optional[TVMode] = None
    workout_id: Optional[uuid.UUID] = None
    timer_state: Optional[TimerState] = None
    teams_data: Optional[List[Dict[str, Any]]] = None
    message: Optional[str] = None

    @field_validator('mode')
    @classmethod
    def _reject_null(cls, value):
        if value is None:
            raise ValueError("ne peut pas etre null")
        return value


class TVState(BaseModel):
    organization_id: uuid.UUID
    mode: str
    workout_id: Optional[uuid.UUID] = None
    timer_state: Optional[Dict[str, Any]] = None
    teams_data: Optional[List[Dict[str, Any]]] = None
    message: Optional[str] = None
    updated_at: datetime
    model_config = ConfigDict(from_attributes=True)


class TVShowWorkout(BaseModel):
    workout_id: uuid.UUID


class TVWaiting(BaseModel):
    message: Optional[str] = None


class TVTeams(BaseModel):
    teams: List[Dict[str, Any]]


class TVOrganization(BaseModel):
    id: uuid.UUID
    name: str
    slug: Optional[str] = None
    logo_url: Optional[str] = None
    primary_color: str
    secondary_color: str


class TVDisplay(BaseModel):
    organization: TVOrganization
    current_class: Optional[GymClass] = None
    next_class: Optional[GymClass] = None
    workout: Optional[Workout] = None
    leaderboard: List[LeaderboardEntry] = Field(default_factory=list)
    state: Optional[TVState] = None
