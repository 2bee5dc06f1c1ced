import uuid
from datetime import datetime
from typing import Any, Dict, Literal
from pydantic import BaseModel, ConfigDict, field_validator


StaffRole = Literal['owner', 'admin', 'coach', 'staff']


class OrganizationBase(BaseModel):
    name: str
    slug: str | None = None
    email: str | None = None
    phone: str | None = None
    address: str | None = None
    logo_url: str | None = None


class OrganizationCreate(OrganizationBase):
    settings: Dict[str, Any] | None = None


class OrganizationUpdate(BaseModel):
    name: str | None = None
    slug: str | None = None
    email: str | None = None
    phone: str | None = None
    address: str | None = None
    logo_url: str | None = None
    # Merged into the stored settings
    settings: Dict[str, Any] | None = None

    @field_validator('name')
    @classmethod
    def _reject_null(cls, value):
        if value is None:
            raise ValueError("ne peut pas etre null")
        return value


class Organization(OrganizationBase):
    id: uuid.UUID
    settings: Dict[str, Any] | None = None
    is_active: bool
    created_by: uuid.UUID | None = None
    created_at: datetime
    updated_at: datetime
    model_config = ConfigDict(from_attributes=True)


class StaffMemberCreate(BaseModel):
    email: str
    role: StaffRole = 'staff'
    display_name: str | None = None


class StaffMemberUpdate(BaseModel):
    role: StaffRole


class StaffMember(BaseModel):
    user_id: uuid.UUID
    email: str
    display_name: str | None = None
    role: str
    can_read: bool
    can_write: bool
