"""
Chat webhook repository functions: per-organization config and send log.
"""
from __future__ import annotations

import uuid
from typing import Any, Dict, Optional
from sqlalchemy.orm import Session

from boxhub.db import models


def get_config(db: Session, organization_id: uuid.UUID):
    return db.query(models.DiscordConfig).filter(models.DiscordConfig.organization_id == organization_id).first()


def upsert_config(db: Session, organization_id: uuid.UUID, values: Dict[str, Any]):
    config = get_config(db, organization_id)
    if not config:
        config = models.DiscordConfig(organization_id=organization_id)
        db.add(config)
    for key, value in values.items():
        setattr(config, key, value)
    db.commit()
    db.refresh(config)
    return config


def mark_wod_posted(db: Session, organization_id: uuid.UUID, workout_id: uuid.UUID) -> None:
    config = get_config(db, organization_id)
    if config:
        config.last_wod_posted_at = models.now_utc()
        config.last_wod_workout_id = workout_id
        db.commit()


def create_log(
    db: Session,
    *,
    organization_id: uuid.UUID,
    message_type: str,
    webhook_url: str,
    content: Optional[str] = None,
    embed_data: Optional[Dict[str, Any]] = None,
    member_id: Optional[uuid.UUID] = None,
    workout_id: Optional[uuid.UUID] = None,
    class_id: Optional[uuid.UUID] = None,
):
    log = models.DiscordLog(
        organization_id=organization_id,
        message_type=message_type,
        webhook_url=webhook_url,
        content=content,
        embed_data=embed_data,
        member_id=member_id,
        workout_id=workout_id,
        class_id=class_id,
        status='pending',
    )
    db.add(log)
    db.commit()
    db.refresh(log)
    return log


def mark_log_sent(db: Session, log: models.DiscordLog, discord_message_id: Optional[str] = None):
    log.status = 'sent'
    log.sent_at = models.now_utc()
    log.discord_message_id = discord_message_id
    db.commit()
    db.refresh(log)
    return log


def mark_log_failed(db: Session, log: models.DiscordLog, error_message: str):
    log.status = 'failed'
    log.error_message = error_message
    db.commit()
    db.refresh(log)
    return log


def list_logs(db: Session, organization_id: uuid.UUID, limit: int = 50):
    return (
        db.query(models.DiscordLog)
        .filter(models.DiscordLog.organization_id == organization_id)
        .order_by(models.DiscordLog.created_at.desc())
        .limit(limit)
        .all()
    )
