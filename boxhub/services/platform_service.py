"""
Platform administration for BoxHub superadmins.

Creating a box puts it on a plan tier (free trial by default, 14 days),
then an owner invitation is mailed to whoever runs it. Invitations are
single-use tokens valid for 7 days; the invitee accepts while signed in
with the invited address and becomes a staff member with the invited role.
Suspending a box blocks its staff and members until it is reactivated.
"""

import logging
import uuid
from datetime import timedelta
from typing import Any, Dict, Optional

from sqlalchemy.orm import Session

from boxhub.db import models, schemas
from boxhub.db.repositories import organizations as orgs_repo
from boxhub.db.repositories import platform as platform_repo
from boxhub.services.notification_service import NotificationService
from boxhub.utils.dates import as_utc
from boxhub.utils.urls import get_app_base_url

logger = logging.getLogger(__name__)

TRIAL_DAYS = 14
INVITATION_DAYS = 7
TEMPLATE_OWNER_INVITATION = 'owner_invitation'


def _error(message: str, code: str = 'invalid') -> Dict[str, Any]:
    return {'success': False, 'error': message, 'code': code}


def _plan_for_tier(db: Session, tier: str) -> Optional[models.PlatformPlan]:
    platform_repo.ensure_default_plans(db)
    plan = platform_repo.get_plan_by_tier(db, tier)
    if plan is None or not plan.is_active:
        return None
    return plan


def list_plans(db: Session):
    platform_repo.ensure_default_plans(db)
    return platform_repo.list_plans(db)


def update_plan(db: Session, plan: models.PlatformPlan, payload: schemas.PlatformPlanUpdate) -> models.PlatformPlan:
    values = payload.model_dump(exclude_unset=True)
    if 'features' in values:
        merged = dict(plan.features or {})
        merged.update(values['features'] or {})
        values['features'] = merged
    return platform_repo.update_plan(db, plan, values)


def create_organization(db: Session, payload: schemas.PlatformOrganizationCreate, user_id: uuid.UUID) -> Dict[str, Any]:
    if orgs_repo.get_organization_by_slug(db, payload.slug):
        return _error("Ce slug est deja utilise", 'conflict')
    if orgs_repo.get_organization_by_name(db, payload.name):
        return _error("Ce nom est deja utilise", 'conflict')
    plan = _plan_for_tier(db, payload.plan_tier)
    if plan is None:
        return _error("Plan non trouve", 'not_found')

    settings = dict(orgs_repo.DEFAULT_ORGANIZATION_SETTINGS)
    settings['timezone'] = payload.timezone
    org = models.Organization(
        name=payload.name,
        slug=payload.slug,
        settings=settings,
        created_by=user_id,
        platform_plan_id=plan.id,
        platform_subscription_status='trialing',
        trial_ends_at=models.now_utc() + timedelta(days=TRIAL_DAYS),
        billing_email=payload.owner_email,
    )
    db.add(org)
    db.commit()
    db.refresh(org)
    logger.info("Organization %s created on plan %s", org.id, plan.tier)
    return {'success': True, 'organization': org}


def set_active(db: Session, org: models.Organization, active: bool) -> models.Organization:
    org = platform_repo.update_organization(db, org, {'is_active': active})
    logger.info("Organization %s %s", org.id, 'activated' if active else 'suspended')
    return org


def change_plan(db: Session, org: models.Organization, tier: str) -> Dict[str, Any]:
    plan = _plan_for_tier(db, tier)
    if plan is None:
        return _error("Plan non trouve", 'not_found')
    previous = org.platform_plan.tier if org.platform_plan else None
    org = platform_repo.update_organization(db, org, {'platform_plan_id': plan.id})
    return {'success': True, 'organization': org, 'previous_tier': previous}


def set_subscription_status(db: Session, org: models.Organization, status: str) -> models.Organization:
    return platform_repo.update_organization(db, org, {'platform_subscription_status': status})


def check_org_limits(db: Session, org: models.Organization) -> Dict[str, Any]:
    plan = org.platform_plan
    max_members = plan.max_members if plan else None
    max_staff = plan.max_staff if plan else None
    members = platform_repo.count_active_members(db, org.id)
    staff = platform_repo.count_staff(db, org.id)
    return {
        'within_member_limit': max_members is None or members <= max_members,
        'current_members': members,
        'max_members': max_members,
        'within_staff_limit': max_staff is None or staff <= max_staff,
        'current_staff': staff,
        'max_staff': max_staff,
    }


def stats(db: Session) -> Dict[str, int]:
    return {**platform_repo.platform_counts(db), 'mrr_cents': platform_repo.monthly_recurring_revenue(db)}


# === Invitations ===

def _send_invitation_email(db: Session, org: models.Organization, invitation: models.OrganizationInvitation, inviter: models.User) -> Dict[str, Any]:
    expires = as_utc(invitation.expires_at)
    return NotificationService(db).send_email(
        organization=org,
        recipient_email=invitation.email,
        recipient_name=None,
        template_type=TEMPLATE_OWNER_INVITATION,
        template_name=TEMPLATE_OWNER_INVITATION,
        subject=f"Invitation a gerer {org.name} sur BoxHub",
        context={
            'invitation_url': f"{get_app_base_url()}/invitations/{invitation.token}",
            'inviter_name': inviter.display_name or inviter.email,
            'plan_name': org.platform_plan.name if org.platform_plan else None,
            'expires_at': expires.strftime('%d/%m/%Y'),
            'role': invitation.role,
        },
        metadata={'invitation_id': str(invitation.id)},
    )


def invite_owner(db: Session, org: models.Organization, payload: schemas.OwnerInvite, inviter: models.User) -> Dict[str, Any]:
    email = payload.email.strip().lower()
    if platform_repo.get_pending_invitation(db, org.id, email):
        return _error("Une invitation est deja en cours", 'conflict')
    invitation = platform_repo.create_invitation(
        db,
        organization_id=org.id,
        email=email,
        role=payload.role,
        invited_by=inviter.id,
        expires_at=models.now_utc() + timedelta(days=INVITATION_DAYS),
    )
    if payload.role == 'owner':
        platform_repo.update_organization(db, org, {'billing_email': email})
    sent = _send_invitation_email(db, org, invitation, inviter)
    if not sent.get('success'):
        logger.warning("Invitation %s created but email failed: %s", invitation.id, sent.get('error'))
    return {'success': True, 'invitation': invitation, 'email_sent': bool(sent.get('success'))}


def get_valid_invitation(db: Session, token: str) -> Optional[models.OrganizationInvitation]:
    """The pending invitation for `token`; an expired one is marked so and not returned."""
    invitation = platform_repo.get_invitation_by_token(db, token)
    if invitation is None or invitation.status != 'pending':
        return None
    if as_utc(invitation.expires_at) < models.now_utc():
        platform_repo.set_invitation_status(db, invitation, 'expired')
        return None
    return invitation


def preview_invitation(db: Session, token: str) -> Dict[str, Any]:
    invitation = get_valid_invitation(db, token)
    if invitation is None:
        return _error("Invitation invalide ou expiree", 'not_found')
    org = orgs_repo.get_organization(db, invitation.organization_id)
    return {
        'success': True,
        'preview': {
            'email': invitation.email,
            'role': invitation.role,
            'expires_at': invitation.expires_at,
            'organization_id': org.id,
            'organization_name': org.name,
            'organization_slug': org.slug,
        },
    }


def accept_invitation(db: Session, token: str, user: models.User) -> Dict[str, Any]:
    invitation = get_valid_invitation(db, token)
    if invitation is None:
        return _error("Invitation invalide ou expiree", 'not_found')
    if user.email.lower() != invitation.email.lower():
        return _error("Cette invitation est destinee a une autre adresse", 'forbidden')

    membership = orgs_repo.get_organization_member(db, invitation.organization_id, user.id)
    if membership is None:
        orgs_repo.create_organization_member(db, invitation.organization_id, user.id, invitation.role)
    elif membership.role != invitation.role:
        orgs_repo.update_organization_member_role(db, invitation.organization_id, user.id, invitation.role)

    org = orgs_repo.get_organization(db, invitation.organization_id)
    if invitation.role == 'owner':
        org.owner_user_id = user.id
    platform_repo.set_invitation_status(db, invitation, 'accepted', accepted_at=models.now_utc())
    logger.info("Invitation %s accepted by user %s", invitation.id, user.id)
    return {'success': True, 'invitation': invitation, 'organization': org}


def revoke_invitation(db: Session, invitation: models.OrganizationInvitation) -> Dict[str, Any]:
    if invitation.status != 'pending':
        return _error("Seules les invitations en attente peuvent etre revoquees", 'conflict')
    return {'success': True, 'invitation': platform_repo.set_invitation_status(db, invitation, 'revoked')}
