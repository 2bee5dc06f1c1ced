import uuid
from datetime import datetime
from typing import Any, Dict, Literal, Optional
from pydantic import BaseModel, ConfigDict


ConsentType = Literal['marketing_email', 'marketing_sms', 'data_processing', 'photo_usage', 'health_data', 'newsletter']
RequestType = Literal[
    'data_export',
    'data_deletion',
    'data_rectification',
    'data_access',
    'data_portability',
    'processing_restriction',
]


class ConsentCreate(BaseModel):
    consent_type: ConsentType
    granted: bool


class MemberConsent(BaseModel):
    id: uuid.UUID
    member_id: uuid.UUID
    consent_type: str
    granted: bool
    source: str
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    created_at: datetime
    model_config = ConfigDict(from_attributes=True)


class RgpdRequestCreate(BaseModel):
    request_type: RequestType
    reason: Optional[str] = None


class RgpdRequestProcess(BaseModel):
    action: Literal['approve', 'reject']
    rejection_reason: Optional[str] = None


class RgpdRequest(BaseModel):
    id: uuid.UUID
    organization_id: uuid.UUID
    member_id: uuid.UUID
    request_type: str
    status: str
    reason: Optional[str] = None
    rejection_reason: Optional[str] = None
    due_date: datetime
    processed_by: Optional[uuid.UUID] = None
    processed_at: Optional[datetime] = None
    export_file_url: Optional[str] = None
    export_expires_at: Optional[datetime] = None
    created_at: datetime
    model_config = ConfigDict(from_attributes=True)


class RgpdRequestCounts(BaseModel):
    pending: int
    urgent: int
    overdue: int


class RgpdAuditLog(BaseModel):
    id: uuid.UUID
    member_id: Optional[uuid.UUID] = None
    actor_user_id: Optional[uuid.UUID] = None
    action: str
    entity_type: str
    entity_id: Optional[uuid.UUID] = None
    details: Optional[Dict[str, Any]] = None
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    created_at: datetime
    model_config = ConfigDict(from_attributes=True)


class ConsentStat(BaseModel):
    consent_type: str
    granted_count: int
    revoked_count: int
    total_members: int
