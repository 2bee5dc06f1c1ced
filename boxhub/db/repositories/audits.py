"""
Audit trail storage.

Rows are append-only; the filters below back both the per-organization
trail and the platform-wide listing.
"""
from __future__ import annotations

import uuid
from datetime import datetime
from typing import Dict, List, Optional, Tuple

from sqlalchemy import func
from sqlalchemy.orm import Session

from boxhub.db import schemas, models


def insert_entry(
    db: Session,
    entry: schemas.AuditLogCreate,
    *,
    actor_user_id: Optional[uuid.UUID],
    organization_id: Optional[uuid.UUID] = None,
) -> models.AuditLog:
    fields = entry.model_dump(exclude={'metadata'})
    row = models.AuditLog(
        **fields,
        actor_user_id=actor_user_id,
        organization_id=organization_id,
        metadata_json=entry.metadata or {},
    )
    db.add(row)
    db.commit()
    db.refresh(row)
    return row


def _filtered(
    db: Session,
    *,
    organization_id: Optional[uuid.UUID] = None,
    actor_user_id: Optional[uuid.UUID] = None,
    action_type: Optional[str] = None,
    target_type: Optional[str] = None,
    target_id: Optional[uuid.UUID] = None,
    status: Optional[str] = None,
    since: Optional[datetime] = None,
    until: Optional[datetime] = None,
):
    query = db.query(models.AuditLog)
    column_filters = (
        (models.AuditLog.organization_id, organization_id),
        (models.AuditLog.actor_user_id, actor_user_id),
        (models.AuditLog.action_type, action_type),
        (models.AuditLog.target_type, target_type),
        (models.AuditLog.target_id, target_id),
        (models.AuditLog.status, status),
    )
    for column, value in column_filters:
        if value is not None:
            query = query.filter(column == value)
    if since is not None:
        query = query.filter(models.AuditLog.created_at >= since)
    if until is not None:
        query = query.filter(models.AuditLog.created_at < until)
    return query


def search_entries(db: Session, *, skip: int = 0, limit: int = 100, **filters) -> Tuple[int, List[models.AuditLog]]:
    """Newest first, with the unpaginated total."""
    query = _filtered(db, **filters)
    total = query.count()
    rows = query.order_by(models.AuditLog.created_at.desc()).offset(skip).limit(limit).all()
    return total, rows


def count_by_action(db: Session, organization_id: uuid.UUID, since: Optional[datetime] = None) -> Dict[str, int]:
    query = db.query(models.AuditLog.action_type, func.count(models.AuditLog.id)).filter(
        models.AuditLog.organization_id == organization_id
    )
    if since is not None:
        query = query.filter(models.AuditLog.created_at >= since)
    return {action: count for action, count in query.group_by(models.AuditLog.action_type).all()}
