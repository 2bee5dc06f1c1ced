import uuid
from datetime import datetime
from typing import Any, Dict, List, Literal, Optional
from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator


class NotificationSettingsUpdate(BaseModel):
    welcome_email: Optional[bool] = None
    booking_confirmation_email: Optional[bool] = None
    class_reminder_24h: Optional[bool] = None
    class_reminder_2h: Optional[bool] = None
    class_cancelled_email: Optional[bool] = None
    subscription_expiring_30d: Optional[bool] = None
    subscription_expiring_7d: Optional[bool] = None
    subscription_expired: Optional[bool] = None
    from_name: Optional[str] = None
    reply_to: Optional[str] = None

    @field_validator(
        'welcome_email', 'booking_confirmation_email', 'class_reminder_24h', 'class_reminder_2h',
        'class_cancelled_email', 'subscription_expiring_30d', 'subscription_expiring_7d', 'subscription_expired',
        'from_name',
    )
    @classmethod
    def _reject_null(cls, value):
        if value is None:
            raise ValueError("ne peut pas etre null")
        return value


class NotificationSettings(BaseModel):
    organization_id: uuid.UUID
    welcome_email: bool
    booking_confirmation_email: bool
    class_reminder_24h: bool
    class_reminder_2h: bool
    class_cancelled_email: bool
    subscription_expiring_30d: bool
    subscription_expiring_7d: bool
    subscription_expired: bool
    from_name: str
    reply_to: Optional[str] = None
    model_config = ConfigDict(from_attributes=True)


class MemberPreferencesUpdate(BaseModel):
    email_enabled: Optional[bool] = None
    push_enabled: Optional[bool] = None
    receive_class_reminders: Optional[bool] = None
    receive_subscription_alerts: Optional[bool] = None
    receive_booking_confirmations: Optional[bool] = None
    receive_marketing: Optional[bool] = None

    @field_validator('*')
    @classmethod
    def _reject_null(cls, value):
        if value is None:
            raise ValueError("ne peut pas etre null")
        return value


class MemberPreferences(BaseModel):
    member_id: uuid.UUID
    email_enabled: bool
    push_enabled: bool
    receive_class_reminders: bool
    receive_subscription_alerts: bool
    receive_booking_confirmations: bool
    receive_marketing: bool
    model_config = ConfigDict(from_attributes=True)


class EmailLog(BaseModel):
    id: uuid.UUID
    organization_id: uuid.UUID
    member_id: Optional[uuid.UUID] = None
    recipient_email: str
    recipient_name: Optional[str] = None
    template_type: str
    subject: str
    metadata: Optional[Dict[str, Any]] = Field(
        default=None, validation_alias=AliasChoices('metadata_json', 'metadata')
    )
    status: str
    provider_message_id: Optional[str] = None
    error_message: Optional[str] = None
    sent_at: Optional[datetime] = None
    delivered_at: Optional[datetime] = None
    created_at: datetime
    model_config = ConfigDict(from_attributes=True)


class EmailStats(BaseModel):
    total: int
    delivered: int
    failed: int
    pending: int
    by_template: Dict[str, int]


class EmailStatusUpdate(BaseModel):
    provider_message_id: str
    status: Literal['sent', 'delivered', 'failed', 'bounced']
    error_message: Optional[str] = None


class BulkEmailRequest(BaseModel):
    subject: str = Field(min_length=1)
    message: str = Field(min_length=1)
    member_ids: List[uuid.UUID] = Field(default_factory=list)
    # Used when member_ids is empty
    member_status: Optional[Literal['active', 'inactive', 'suspended']] = 'active'
    marketing: bool = False


class BatchResult(BaseModel):
    sent: int
    errors: int
    skipped: int = 0


class EmailLogList(BaseModel):
    logs: List[EmailLog]
    total: int
