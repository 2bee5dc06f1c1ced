"""
Platform-level data: BoxHub's own plans, organizations across tenants and owner invitations.
"""
from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple
from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from boxhub.db import models
from boxhub.db.models.platform import DEFAULT_PLATFORM_PLANS


def ensure_default_plans(db: Session) -> None:
    """Insert any seeded tier that is missing."""
    existing = {tier for (tier,) in db.query(models.PlatformPlan.tier).all()}
    missing = [dict(plan) for plan in DEFAULT_PLATFORM_PLANS if plan['tier'] not in existing]
    if missing:
        db.add_all(models.PlatformPlan(**plan) for plan in missing)
        db.commit()


def list_plans(db: Session, include_inactive: bool = True) -> List[models.PlatformPlan]:
    query = db.query(models.PlatformPlan)
    if not include_inactive:
        query = query.filter(models.PlatformPlan.is_active.is_(True))
    return query.order_by(models.PlatformPlan.sort_order).all()


def get_plan(db: Session, plan_id: uuid.UUID) -> Optional[models.PlatformPlan]:
    return db.get(models.PlatformPlan, plan_id)


def get_plan_by_tier(db: Session, tier: str) -> Optional[models.PlatformPlan]:
    return db.query(models.PlatformPlan).filter(models.PlatformPlan.tier == tier).first()


def update_plan(db: Session, plan: models.PlatformPlan, values: Dict[str, Any]) -> models.PlatformPlan:
    for key, value in values.items():
        setattr(plan, key, value)
    db.commit()
    db.refresh(plan)
    return plan


# === Organizations ===

def search_organizations(
    db: Session,
    *,
    status: Optional[str] = None,
    search: Optional[str] = None,
    skip: int = 0,
    limit: int = 20,
) -> Tuple[int, List[models.Organization]]:
    query = db.query(models.Organization)
    if status == 'active':
        query = query.filter(models.Organization.is_active.is_(True))
    elif status == 'suspended':
        query = query.filter(models.Organization.is_active.is_(False))
    elif status:
        query = query.filter(models.Organization.platform_subscription_status == status)
    if search:
        pattern = f"%{search.lower()}%"
        query = query.filter(or_(
            func.lower(models.Organization.name).like(pattern),
            func.lower(models.Organization.slug).like(pattern),
        ))
    total = query.count()
    rows = query.order_by(models.Organization.created_at.desc()).offset(skip).limit(limit).all()
    return total, rows


def update_organization(db: Session, organization: models.Organization, values: Dict[str, Any]) -> models.Organization:
    for key, value in values.items():
        setattr(organization, key, value)
    db.commit()
    db.refresh(organization)
    return organization


def count_staff(db: Session, organization_id: uuid.UUID) -> int:
    return (
        db.query(models.OrganizationMembership)
        .filter(models.OrganizationMembership.organization_id == organization_id)
        .count()
    )


def count_active_members(db: Session, organization_id: uuid.UUID) -> int:
    return (
        db.query(models.Member)
        .filter(models.Member.organization_id == organization_id, models.Member.status != 'archived')
        .count()
    )


def platform_counts(db: Session) -> Dict[str, int]:
    orgs = models.Organization
    return {
        'total_orgs': db.query(orgs).count(),
        'active_orgs': db.query(orgs).filter(orgs.is_active.is_(True)).count(),
        'suspended_orgs': db.query(orgs).filter(orgs.is_active.is_(False)).count(),
        'trials': db.query(orgs).filter(orgs.platform_subscription_status == 'trialing').count(),
        'active_subscriptions': db.query(orgs).filter(orgs.platform_subscription_status == 'active').count(),
        'total_members': db.query(models.Member).filter(models.Member.status != 'archived').count(),
    }


def monthly_recurring_revenue(db: Session) -> int:
    """Sum of the monthly price of every active, paying organization (cents)."""
    total = (
        db.query(func.coalesce(func.sum(models.PlatformPlan.price_monthly), 0))
        .join(models.Organization, models.Organization.platform_plan_id == models.PlatformPlan.id)
        .filter(
            models.Organization.is_active.is_(True),
            models.Organization.platform_subscription_status == 'active',
        )
        .scalar()
    )
    return int(total or 0)


# === Invitations ===

def get_pending_invitation(db: Session, organization_id: uuid.UUID, email: str) -> Optional[models.OrganizationInvitation]:
    return (
        db.query(models.OrganizationInvitation)
        .filter(
            models.OrganizationInvitation.organization_id == organization_id,
            func.lower(models.OrganizationInvitation.email) == email.lower(),
            models.OrganizationInvitation.status == 'pending',
        )
        .first()
    )


def create_invitation(db: Session, **fields) -> models.OrganizationInvitation:
    invitation = models.OrganizationInvitation(**fields)
    db.add(invitation)
    db.commit()
    db.refresh(invitation)
    return invitation


def get_invitation(db: Session, invitation_id: uuid.UUID) -> Optional[models.OrganizationInvitation]:
    return db.get(models.OrganizationInvitation, invitation_id)


def get_invitation_by_token(db: Session, token: str) -> Optional[models.OrganizationInvitation]:
    return db.query(models.OrganizationInvitation).filter(models.OrganizationInvitation.token == token).first()


def list_invitations(db: Session, organization_id: uuid.UUID) -> List[models.OrganizationInvitation]:
    return (
        db.query(models.OrganizationInvitation)
        .filter(models.OrganizationInvitation.organization_id == organization_id)
        .order_by(models.OrganizationInvitation.created_at.desc())
        .all()
    )


def set_invitation_status(
    db: Session,
    invitation: models.OrganizationInvitation,
    status: str,
    accepted_at: Optional[datetime] = None,
    commit: bool = True,
) -> models.OrganizationInvitation:
    invitation.status = status
    if accepted_at is not None:
        invitation.accepted_at = accepted_at
    if commit:
        db.commit()
        db.refresh(invitation)
    return invitation
