"""
RGPD repository functions: consents, data requests and the RGPD audit trail.
"""
from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any, Dict, Optional
from sqlalchemy.orm import Session

from boxhub.db import models
from boxhub.db.models.rgpd import OPEN_REQUEST_STATUSES


# Consents

def add_consent(
    db: Session,
    *,
    organization_id: uuid.UUID,
    member_id: uuid.UUID,
    consent_type: str,
    granted: bool,
    source: str = 'web',
    ip_address: Optional[str] = None,
    user_agent: Optional[str] = None,
    commit: bool = True,
):
    consent = models.MemberConsent(
        organization_id=organization_id,
        member_id=member_id,
        consent_type=consent_type,
        granted=granted,
        source=source,
        ip_address=ip_address,
        user_agent=user_agent,
    )
    db.add(consent)
    if commit:
        db.commit()
        db.refresh(consent)
    else:
        db.flush()
    return consent


def get_consent_history(db: Session, member_id: uuid.UUID):
    return (
        db.query(models.MemberConsent)
        .filter(models.MemberConsent.member_id == member_id)
        .order_by(models.MemberConsent.created_at.desc())
        .all()
    )


def get_current_consents(db: Session, member_id: uuid.UUID):
    """Latest consent row per type."""
    current = {}
    for consent in get_consent_history(db, member_id):
        current.setdefault(consent.consent_type, consent)
    return list(current.values())


# Requests

def get_open_request(db: Session, member_id: uuid.UUID, request_type: str):
    return (
        db.query(models.RgpdRequest)
        .filter(
            models.RgpdRequest.member_id == member_id,
            models.RgpdRequest.request_type == request_type,
            models.RgpdRequest.status.in_(OPEN_REQUEST_STATUSES),
        )
        .first()
    )


def create_request(
    db: Session,
    *,
    organization_id: uuid.UUID,
    member_id: uuid.UUID,
    request_type: str,
    reason: Optional[str],
    due_date: datetime,
):
    request = models.RgpdRequest(
        organization_id=organization_id,
        member_id=member_id,
        request_type=request_type,
        reason=reason,
        due_date=due_date,
        status='pending',
    )
    db.add(request)
    db.commit()
    db.refresh(request)
    return request


def get_request(db: Session, organization_id: uuid.UUID, request_id: uuid.UUID):
    return (
        db.query(models.RgpdRequest)
        .filter(models.RgpdRequest.id == request_id, models.RgpdRequest.organization_id == organization_id)
        .first()
    )


def get_request_by_id(db: Session, request_id: uuid.UUID):
    return db.query(models.RgpdRequest).filter(models.RgpdRequest.id == request_id).first()


def list_requests(
    db: Session,
    organization_id: uuid.UUID,
    *,
    status: Optional[str] = None,
    request_type: Optional[str] = None,
    member_id: Optional[uuid.UUID] = None,
):
    query = db.query(models.RgpdRequest).filter(models.RgpdRequest.organization_id == organization_id)
    if status:
        query = query.filter(models.RgpdRequest.status == status)
    if request_type:
        query = query.filter(models.RgpdRequest.request_type == request_type)
    if member_id:
        query = query.filter(models.RgpdRequest.member_id == member_id)
    return query.order_by(models.RgpdRequest.created_at.desc()).all()


def get_open_requests(db: Session, organization_id: uuid.UUID):
    return (
        db.query(models.RgpdRequest)
        .filter(
            models.RgpdRequest.organization_id == organization_id,
            models.RgpdRequest.status.in_(OPEN_REQUEST_STATUSES),
        )
        .all()
    )


# Audit trail

def add_audit_entry(
    db: Session,
    *,
    organization_id: uuid.UUID,
    action: str,
    entity_type: str,
    entity_id: Optional[uuid.UUID] = None,
    member_id: Optional[uuid.UUID] = None,
    actor_user_id: Optional[uuid.UUID] = None,
    details: Optional[Dict[str, Any]] = None,
    ip_address: Optional[str] = None,
    user_agent: Optional[str] = None,
):
    """Stage an RGPD audit row; committed with the caller's transaction."""
    entry = models.RgpdAuditLog(
        organization_id=organization_id,
        member_id=member_id,
        actor_user_id=actor_user_id,
        action=action,
        entity_type=entity_type,
        entity_id=entity_id,
        details=details,
        ip_address=ip_address,
        user_agent=user_agent,
    )
    db.add(entry)
    return entry


def list_audit_entries(db: Session, organization_id: uuid.UUID, member_id: Optional[uuid.UUID] = None, limit: int = 100):
    query = db.query(models.RgpdAuditLog).filter(models.RgpdAuditLog.organization_id == organization_id)
    if member_id:
        query = query.filter(models.RgpdAuditLog.member_id == member_id)
    return query.order_by(models.RgpdAuditLog.created_at.desc()).limit(limit).all()


def get_organization_consents(db: Session, organization_id: uuid.UUID):
    """Every consent row of an organization, newest first."""
    return (
        db.query(models.MemberConsent)
        .filter(models.MemberConsent.organization_id == organization_id)
        .order_by(models.MemberConsent.created_at.desc())
        .all()
    )
