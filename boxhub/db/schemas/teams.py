import uuid
from datetime import datetime
from typing import List, Literal, Optional
from pydantic import BaseModel, ConfigDict, Field, field_validator


StationType = Literal['rower', 'assault_bike', 'echo_bike', 'ski_erg', 'bike_erg', 'treadmill', 'other']
BalanceMode = Literal['random', 'gender', 'skill_level', 'manual']

_HEX_COLOR = r'^#[0-9A-Fa-f]{6}$'


class TeamCreate(BaseModel):
    name: str = Field(min_length=1)
    color: Optional[str] = Field(default=None, pattern=_HEX_COLOR)
    class_id: Optional[uuid.UUID] = None
    workout_id: Optional[uuid.UUID] = None
    position: int = Field(default=0, ge=0)


class TeamUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1)
    color: Optional[str] = Field(default=None, pattern=_HEX_COLOR)
    position: Optional[int] = Field(default=None, ge=0)

    @field_validator('name', 'color', 'position')
    @classmethod
    def _reject_null(cls, value):
        if value is None:
            raise ValueError("ne peut pas etre null")
        return value


class TeamMemberAdd(BaseModel):
    member_id: uuid.UUID
    station: Optional[str] = None


class TeamMemberStation(BaseModel):
    station: Optional[str] = None


class TeamMemberMember(BaseModel):
    id: uuid.UUID
    first_name: str
    last_name: str
    avatar_url: Optional[str] = None
    model_config = ConfigDict(from_attributes=True)


class TeamMember(BaseModel):
    id: uuid.UUID
    team_id: uuid.UUID
    member_id: uuid.UUID
    position: int
    station: Optional[str] = None
    member: TeamMemberMember
    model_config = ConfigDict(from_attributes=True)


class Team(BaseModel):
    id: uuid.UUID
    organization_id: uuid.UUID
    class_id: Optional[uuid.UUID] = None
    workout_id: Optional[uuid.UUID] = None
    name: str
    color: str
    position: int
    members: List[TeamMember] = Field(default_factory=list)
    created_at: datetime
    model_config = ConfigDict(from_attributes=True)


class RandomTeamsCreate(BaseModel):
    """Either `team_count` or a saved `template_id` (which also brings names, colors and balancing)."""
    member_ids: List[uuid.UUID] = Field(min_length=1)
    team_count: Optional[int] = Field(default=None, ge=1, le=20)
    template_id: Optional[uuid.UUID] = None
    class_id: Optional[uuid.UUID] = None
    workout_id: Optional[uuid.UUID] = None
    team_names: Optional[List[str]] = None
    team_colors: Optional[List[str]] = None
    balance_by: Literal['random', 'gender'] = 'random'


class CardioAssignment(BaseModel):
    member_ids: List[uuid.UUID] = Field(min_length=1)
    station_type: Optional[StationType] = None


class StationAssignmentEntry(BaseModel):
    member_id: uuid.UUID
    station_id: uuid.UUID
    station_name: str


class CardioStationCreate(BaseModel):
    type: StationType
    name: str = Field(min_length=1)
    position: Optional[int] = Field(default=None, ge=0)


class CardioStationUpdate(BaseModel):
    type: Optional[StationType] = None
    name: Optional[str] = Field(default=None, min_length=1)
    position: Optional[int] = Field(default=None, ge=0)
    is_active: Optional[bool] = None

    @field_validator('type', 'name', 'position', 'is_active')
    @classmethod
    def _reject_null(cls, value):
        if value is None:
            raise ValueError("ne peut pas etre null")
        return value


class CardioStationBulkCreate(BaseModel):
    type: StationType
    count: int = Field(ge=1, le=50)
    name_prefix: Optional[str] = None


class CardioStation(BaseModel):
    id: uuid.UUID
    organization_id: uuid.UUID
    type: str
    name: str
    position: int
    is_active: bool
    model_config = ConfigDict(from_attributes=True)


class TeamTemplateConfig(BaseModel):
    team_count: int = Field(ge=1, le=20)
    team_names: List[str] = Field(default_factory=list)
    team_colors: List[str] = Field(default_factory=list)
    balance_by: BalanceMode = 'random'


class TeamTemplateCreate(BaseModel):
    name: str = Field(min_length=1)
    description: Optional[str] = None
    config: TeamTemplateConfig
    is_default: bool = False


class TeamTemplate(BaseModel):
    id: uuid.UUID
    organization_id: uuid.UUID
    name: str
    description: Optional[str] = None
    config: TeamTemplateConfig
    is_default: bool
    created_at: datetime
    model_config = ConfigDict(from_attributes=True)


class TeamsOnScreen(BaseModel):
    class_id: Optional[uuid.UUID] = None
