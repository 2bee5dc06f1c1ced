import uuid
from datetime import date, datetime
from typing import Any, Dict, List, Literal, Optional
from pydantic import BaseModel, ConfigDict, Field, field_validator


MemberStatus = Literal['active', 'inactive', 'suspended', 'archived']
Gender = Literal['male', 'female', 'other']


class MemberBase(BaseModel):
    first_name: str = Field(min_length=1)
    last_name: str = Field(min_length=1)
    email: Optional[str] = None
    phone: Optional[str] = None
    birth_date: Optional[date] = None
    gender: Optional[Gender] = None
    address: Optional[str] = None
    member_number: Optional[str] = None
    emergency_contact: Dict[str, Any] = Field(default_factory=dict)
    medical_info: Dict[str, Any] = Field(default_factory=dict)
    tags: List[str] = Field(default_factory=list)
    notes: Optional[str] = None
    avatar_url: Optional[str] = None


class MemberCreate(MemberBase):
    status: MemberStatus = 'active'
    joined_at: Optional[date] = None
    user_id: Optional[uuid.UUID] = None


class MemberUpdate(BaseModel):
    first_name: Optional[str] = Field(default=None, min_length=1)
    last_name: Optional[str] = Field(default=None, min_length=1)
    email: Optional[str] = None
    phone: Optional[str] = None
    birth_date: Optional[date] = None
    gender: Optional[Gender] = None
    address: Optional[str] = None
    member_number: Optional[str] = None
    emergency_contact: Optional[Dict[str, Any]] = None
    medical_info: Optional[Dict[str, Any]] = None
    tags: Optional[List[str]] = None
    notes: Optional[str] = None
    avatar_url: Optional[str] = None
    status: Optional[MemberStatus] = None
    user_id: Optional[uuid.UUID] = None

    @field_validator('first_name', 'last_name', 'emergency_contact', 'medical_info', 'tags', 'status')
    @classmethod
    def _reject_null(cls, value):
        if value is None:
            raise ValueError("ne peut pas etre null")
        return value


class Member(MemberBase):
    id: uuid.UUID
    organization_id: uuid.UUID
    user_id: Optional[uuid.UUID] = None
    status: str
    joined_at: date
    last_data_export_at: Optional[datetime] = None
    anonymized_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime
    model_config = ConfigDict(from_attributes=True)


class PaginatedMembers(BaseModel):
    members: List[Member]
    total: int
    page: int
    page_size: int
    total_pages: int


class MemberCounts(BaseModel):
    total: int
    active: int
    inactive: int
    suspended: int


class MemberImportResult(BaseModel):
    total: int
    imported: int
    errors: List[str]
