"""
Notification repository functions.

Organization notification settings, member preferences and the email log.
"""
from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any, Dict, Optional
from sqlalchemy import or_, func
from sqlalchemy.orm import Session

from boxhub.db import schemas, models


def get_notification_settings(db: Session, organization_id: uuid.UUID):
    return (
        db.query(models.NotificationSettings)
        .filter(models.NotificationSettings.organization_id == organization_id)
        .first()
    )


def get_or_default_notification_settings(db: Session, organization_id: uuid.UUID):
    """Stored settings, or an unsaved row carrying the column defaults."""
    settings = get_notification_settings(db, organization_id)
    if settings:
        return settings
    defaults = {
        column.name: column.default.arg
        for column in models.NotificationSettings.__table__.columns
        if column.default is not None and not callable(column.default.arg)
    }
    return models.NotificationSettings(organization_id=organization_id, **defaults)


def upsert_notification_settings(db: Session, organization_id: uuid.UUID, update: schemas.NotificationSettingsUpdate):
    settings = get_notification_settings(db, organization_id)
    if not settings:
        settings = models.NotificationSettings(organization_id=organization_id)
        db.add(settings)
    for key, value in update.model_dump(exclude_unset=True).items():
        if value is None and key != 'reply_to':
            continue
        setattr(settings, key, value)
    db.commit()
    db.refresh(settings)
    return settings


def get_member_preferences(db: Session, member_id: uuid.UUID):
    return (
        db.query(models.MemberNotificationPreference)
        .filter(models.MemberNotificationPreference.member_id == member_id)
        .first()
    )


def upsert_member_preferences(db: Session, member_id: uuid.UUID, update: schemas.MemberPreferencesUpdate):
    prefs = get_member_preferences(db, member_id)
    if not prefs:
        prefs = models.MemberNotificationPreference(member_id=member_id)
        db.add(prefs)
    for key, value in update.model_dump(exclude_unset=True).items():
        if value is not None:
            setattr(prefs, key, value)
    db.commit()
    db.refresh(prefs)
    return prefs


def delete_member_preferences(db: Session, member_id: uuid.UUID) -> None:
    db.query(models.MemberNotificationPreference).filter(
        models.MemberNotificationPreference.member_id == member_id
    ).delete(synchronize_session=False)


# Email log

def create_email_log(
    db: Session,
    *,
    organization_id: uuid.UUID,
    member_id: Optional[uuid.UUID],
    recipient_email: str,
    recipient_name: Optional[str],
    template_type: str,
    subject: str,
    metadata: Optional[Dict[str, Any]] = None,
):
    email_log = models.EmailLog(
        organization_id=organization_id,
        member_id=member_id,
        recipient_email=recipient_email,
        recipient_name=recipient_name,
        template_type=template_type,
        subject=subject,
        metadata_json=metadata,
        status='pending',
    )
    db.add(email_log)
    db.commit()
    db.refresh(email_log)
    return email_log


def update_email_status(
    db: Session,
    email_log_id: uuid.UUID,
    status: str,
    *,
    provider_message_id: Optional[str] = None,
    error_message: Optional[str] = None,
):
    email_log = db.query(models.EmailLog).filter(models.EmailLog.id == email_log_id).first()
    if not email_log:
        return None
    _apply_email_status(email_log, status, provider_message_id=provider_message_id, error_message=error_message)
    db.commit()
    db.refresh(email_log)
    return email_log


def update_email_status_by_provider_id(db: Session, provider_message_id: str, status: str, error_message: Optional[str] = None):
    """Delivery webhooks identify the email by the provider's message id."""
    email_log = (
        db.query(models.EmailLog)
        .filter(models.EmailLog.provider_message_id == provider_message_id)
        .first()
    )
    if not email_log:
        return None
    _apply_email_status(email_log, status, error_message=error_message)
    db.commit()
    db.refresh(email_log)
    return email_log


def _apply_email_status(email_log, status, *, provider_message_id=None, error_message=None):
    now = models.now_utc()
    email_log.status = status
    if provider_message_id:
        email_log.provider_message_id = provider_message_id
    if error_message:
        email_log.error_message = error_message
    if status == 'sent':
        email_log.sent_at = now
    elif status == 'delivered':
        email_log.delivered_at = now
    elif status == 'bounced':
        email_log.bounced_at = now


def _email_log_query(
    db: Session,
    organization_id: uuid.UUID,
    *,
    status: Optional[str] = None,
    template_type: Optional[str] = None,
    search: Optional[str] = None,
    date_from: Optional[datetime] = None,
    date_to: Optional[datetime] = None,
):
    query = db.query(models.EmailLog).filter(models.EmailLog.organization_id == organization_id)
    if status:
        query = query.filter(models.EmailLog.status == status)
    if template_type:
        query = query.filter(models.EmailLog.template_type == template_type)
    if search:
        pattern = f"%{search.strip().lower()}%"
        query = query.filter(
            or_(
                func.lower(models.EmailLog.recipient_email).like(pattern),
                func.lower(models.EmailLog.recipient_name).like(pattern),
                func.lower(models.EmailLog.subject).like(pattern),
            )
        )
    if date_from:
        query = query.filter(models.EmailLog.created_at >= date_from)
    if date_to:
        query = query.filter(models.EmailLog.created_at <= date_to)
    return query


def list_email_logs(db: Session, organization_id: uuid.UUID, *, skip: int = 0, limit: int = 50, **filters):
    query = _email_log_query(db, organization_id, **filters)
    total = query.count()
    rows = query.order_by(models.EmailLog.created_at.desc()).offset(skip).limit(limit).all()
    return rows, total


def get_email_log(db: Session, organization_id: uuid.UUID, email_log_id: uuid.UUID):
    return (
        db.query(models.EmailLog)
        .filter(models.EmailLog.id == email_log_id, models.EmailLog.organization_id == organization_id)
        .first()
    )


def get_email_stats(db: Session, organization_id: uuid.UUID, since: Optional[datetime] = None) -> dict:
    """Counts per outcome. Bounced counts as failed; sent-but-unconfirmed as pending."""
    query = db.query(models.EmailLog.status, models.EmailLog.template_type, func.count(models.EmailLog.id)).filter(
        models.EmailLog.organization_id == organization_id
    )
    if since is not None:
        query = query.filter(models.EmailLog.created_at >= since)
    rows = query.group_by(models.EmailLog.status, models.EmailLog.template_type).all()

    stats = {"total": 0, "delivered": 0, "failed": 0, "pending": 0, "by_template": {}}
    for status, template_type, count in rows:
        stats["total"] += count
        if status == 'delivered':
            stats["delivered"] += count
        elif status in ('failed', 'bounced'):
            stats["failed"] += count
        elif status in ('pending', 'sent'):
            stats["pending"] += count
        stats["by_template"][template_type] = stats["by_template"].get(template_type, 0) + count
    return stats
