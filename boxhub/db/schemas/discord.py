import uuid
from datetime import datetime
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, ConfigDict, Field, field_validator


class DiscordConfigUpdate(BaseModel):
    webhook_url: Optional[str] = None
    wod_channel_webhook: Optional[str] = None
    auto_post_wod: Optional[bool] = None
    post_wod_time: Optional[str] = Field(default=None, pattern=r'^\d{2}:\d{2}$')
    post_wod_days: Optional[List[str]] = None
    notification_types: Optional[Dict[str, bool]] = None
    is_active: Optional[bool] = None

    @field_validator('auto_post_wod', 'post_wod_time', 'post_wod_days', 'notification_types', 'is_active')
    @classmethod
    def _reject_null(cls, value):
        if value is None:
            raise ValueError("ne peut pas etre null")
        return value


class DiscordConfig(BaseModel):
    organization_id: uuid.UUID
    webhook_url: Optional[str] = None
    wod_channel_webhook: Optional[str] = None
    auto_post_wod: bool
    post_wod_time: str
    post_wod_days: List[str]
    notification_types: Dict[str, bool]
    is_active: bool
    last_wod_posted_at: Optional[datetime] = None
    last_wod_workout_id: Optional[uuid.UUID] = None
    model_config = ConfigDict(from_attributes=True)


class DiscordWebhookTest(BaseModel):
    webhook_url: str


class DiscordAnnouncement(BaseModel):
    title: str = Field(min_length=1)
    message: str = Field(min_length=1)


class DiscordCustomMessage(BaseModel):
    content: str = Field(min_length=1, max_length=2000)


class DiscordLog(BaseModel):
    id: uuid.UUID
    message_type: str
    content: Optional[str] = None
    embed_data: Optional[Dict[str, Any]] = None
    status: str
    discord_message_id: Optional[str] = None
    error_message: Optional[str] = None
    created_at: datetime
    sent_at: Optional[datetime] = None
    model_config = ConfigDict(from_attributes=True)
