"""
Platform administration API (superadmins only), plus the invitation
endpoints used by invitees.
"""
import logging
from typing import List, Literal, Optional
import uuid

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from boxhub.db.database import get_db
from boxhub.db import schemas
from boxhub.db.repositories import platform as platform_repo
from boxhub.api.deps import get_current_user_context, get_organization_or_404, raise_for_result
from boxhub.audit import log, AuditAction
from boxhub.services import platform_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/platform", tags=["platform"])
invitations_router = APIRouter(prefix="/invitations", tags=["invitations"])

OrgStatusFilter = Literal["active", "suspended", "trialing", "past_due", "canceled", "unpaid"]


def _superadmin(user_context):
    user, current_user = user_context
    if not current_user.get("is_superadmin"):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Superadmin access required")
    return user


def _audit(db: Session, user, action: AuditAction, org_id: Optional[uuid.UUID], target_type: str, target_id, reason=None, **metadata):
    log(
        db,
        action=action,
        target_type=target_type,
        target_id=target_id,
        actor_user_id=user.id,
        organization_id=org_id,
        reason=reason,
        metadata=metadata or None,
    )


# === Plans ===

@router.get("/plans", response_model=List[schemas.PlatformPlan])
def list_plans(
    db: Session = Depends(get_db),
    user_context = Depends(get_current_user_context),
):
    _superadmin(user_context)
    return platform_service.list_plans(db)


@router.put("/plans/{plan_id}", response_model=schemas.PlatformPlan)
def update_plan(
    plan_id: uuid.UUID,
    payload: schemas.PlatformPlanUpdate,
    db: Session = Depends(get_db),
    user_context = Depends(get_current_user_context),
):
    user = _superadmin(user_context)
    plan = platform_repo.get_plan(db, plan_id)
    if plan is None:
        raise HTTPException(status_code=404, detail="Plan not found")
    plan = platform_service.update_plan(db, plan, payload)
    _audit(db, user, AuditAction.PLATFORM_PLAN_UPDATE, None, "platform_plan", plan.id, fields=sorted(payload.model_fields_set))
    return plan


# === Organizations ===

@router.get("/stats", response_model=schemas.PlatformStats)
def platform_stats(
    db: Session = Depends(get_db),
    user_context = Depends(get_current_user_context),
):
    _superadmin(user_context)
    return platform_service.stats(db)


@router.get("/organizations", response_model=schemas.PlatformOrganizationList)
def list_organizations(
    status_filter: Optional[OrgStatusFilter] = Query(default=None, alias="status"),
    search: Optional[str] = None,
    page: int = Query(default=1, ge=1),
    page_size: int = Query(default=20, ge=1, le=100),
    db: Session = Depends(get_db),
    user_context = Depends(get_current_user_context),
):
    _superadmin(user_context)
    total, rows = platform_repo.search_organizations(
        db, status=status_filter, search=search, skip=(page - 1) * page_size, limit=page_size
    )
    return {"items": rows, "total": total, "page": page, "page_size": page_size}


@router.post("/organizations", status_code=status.HTTP_201_CREATED, response_model=schemas.PlatformOrganization)
def create_organization(
    payload: schemas.PlatformOrganizationCreate,
    db: Session = Depends(get_db),
    user_context = Depends(get_current_user_context),
):
    user = _superadmin(user_context)
    org = raise_for_result(platform_service.create_organization(db, payload, user.id))["organization"]
    _audit(
        db, user, AuditAction.PLATFORM_ORG_CREATE, org.id, "organization", org.id,
        slug=org.slug, owner_email=payload.owner_email, plan_tier=payload.plan_tier,
    )
    return org


@router.get("/organizations/{org_id}", response_model=schemas.PlatformOrganization)
def get_organization(
    org_id: uuid.UUID,
    db: Session = Depends(get_db),
    user_context = Depends(get_current_user_context),
):
    _superadmin(user_context)
    return get_organization_or_404(db, org_id)


@router.post("/organizations/{org_id}/suspend", response_model=schemas.PlatformOrganization)
def suspend_organization(
    org_id: uuid.UUID,
    payload: schemas.SuspendRequest,
    db: Session = Depends(get_db),
    user_context = Depends(get_current_user_context),
):
    user = _superadmin(user_context)
    org = platform_service.set_active(db, get_organization_or_404(db, org_id), False)
    _audit(db, user, AuditAction.PLATFORM_ORG_SUSPEND, org.id, "organization", org.id, reason=payload.reason)
    return org


@router.post("/organizations/{org_id}/activate", response_model=schemas.PlatformOrganization)
def activate_organization(
    org_id: uuid.UUID,
    db: Session = Depends(get_db),
    user_context = Depends(get_current_user_context),
):
    user = _superadmin(user_context)
    org = platform_service.set_active(db, get_organization_or_404(db, org_id), True)
    _audit(db, user, AuditAction.PLATFORM_ORG_ACTIVATE, org.id, "organization", org.id)
    return org


@router.put("/organizations/{org_id}/plan", response_model=schemas.PlatformOrganization)
def change_plan(
    org_id: uuid.UUID,
    payload: schemas.ChangePlanRequest,
    db: Session = Depends(get_db),
    user_context = Depends(get_current_user_context),
):
    user = _superadmin(user_context)
    result = raise_for_result(platform_service.change_plan(db, get_organization_or_404(db, org_id), payload.plan_tier))
    org = result["organization"]
    _audit(db, user, AuditAction.PLATFORM_PLAN_CHANGE, org.id, "organization", org.id,
           previous_tier=result["previous_tier"], new_tier=payload.plan_tier)
    return org


@router.put("/organizations/{org_id}/subscription-status", response_model=schemas.PlatformOrganization)
def set_subscription_status(
    org_id: uuid.UUID,
    payload: schemas.SubscriptionStatusUpdate,
    db: Session = Depends(get_db),
    user_context = Depends(get_current_user_context),
):
    user = _superadmin(user_context)
    org = platform_service.set_subscription_status(db, get_organization_or_404(db, org_id), payload.status)
    _audit(db, user, AuditAction.PLATFORM_SUBSCRIPTION_STATUS, org.id, "organization", org.id, status=payload.status)
    return org


@router.get("/organizations/{org_id}/limits", response_model=schemas.PlanLimits)
def check_limits(
    org_id: uuid.UUID,
    db: Session = Depends(get_db),
    user_context = Depends(get_current_user_context),
):
    _superadmin(user_context)
    return platform_service.check_org_limits(db, get_organization_or_404(db, org_id))


@router.get("/organizations/{org_id}/invitations", response_model=List[schemas.Invitation])
def list_invitations(
    org_id: uuid.UUID,
    db: Session = Depends(get_db),
    user_context = Depends(get_current_user_context),
):
    _superadmin(user_context)
    get_organization_or_404(db, org_id)
    return platform_repo.list_invitations(db, org_id)


@router.post("/organizations/{org_id}/invitations", status_code=status.HTTP_201_CREATED, response_model=schemas.Invitation)
def invite_owner(
    org_id: uuid.UUID,
    payload: schemas.OwnerInvite,
    db: Session = Depends(get_db),
    user_context = Depends(get_current_user_context),
):
    user = _superadmin(user_context)
    org = get_organization_or_404(db, org_id)
    result = raise_for_result(platform_service.invite_owner(db, org, payload, user))
    invitation = result["invitation"]
    _audit(db, user, AuditAction.OWNER_INVITE, org.id, "invitation", invitation.id,
           email=invitation.email, role=invitation.role, email_sent=result["email_sent"])
    return invitation


@router.post("/invitations/{invitation_id}/revoke", response_model=schemas.Invitation)
def revoke_invitation(
    invitation_id: uuid.UUID,
    db: Session = Depends(get_db),
    user_context = Depends(get_current_user_context),
):
    user = _superadmin(user_context)
    invitation = platform_repo.get_invitation(db, invitation_id)
    if invitation is None:
        raise HTTPException(status_code=404, detail="Invitation not found")
    invitation = raise_for_result(platform_service.revoke_invitation(db, invitation))["invitation"]
    _audit(db, user, AuditAction.INVITATION_REVOKE, invitation.organization_id, "invitation", invitation.id)
    return invitation


# === Invitee side ===

@invitations_router.get("/{token}", response_model=schemas.InvitationPreview)
def preview_invitation(token: str, db: Session = Depends(get_db)):
    """Public: what the link is for, without accepting it."""
    return raise_for_result(platform_service.preview_invitation(db, token))["preview"]


@invitations_router.post("/{token}/accept", response_model=schemas.Invitation)
def accept_invitation(
    token: str,
    db: Session = Depends(get_db),
    user_context = Depends(get_current_user_context),
):
    user, _ = user_context
    result = raise_for_result(platform_service.accept_invitation(db, token, user))
    invitation = result["invitation"]
    _audit(db, user, AuditAction.INVITATION_ACCEPT, invitation.organization_id, "invitation", invitation.id, role=invitation.role)
    return invitation
