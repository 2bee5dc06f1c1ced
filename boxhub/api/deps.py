"""
API dependency helpers.

Provides the dependency-resolved user context, organization access guards,
member-portal resolution and the cron secret check.
"""
import os
import uuid
import hmac
import logging
from typing import Optional, Tuple, Dict, Any

from fastapi import Header, HTTPException, Request, status, Depends
from sqlalchemy.orm import Session

from boxhub.db.database import get_db
from boxhub.db import models
from boxhub.api.auth import (
    resolve_identity_from_headers,
    get_or_create_user,
    get_user_memberships,
    get_member_profiles,
)
from boxhub.api.permissions import can_read_org, can_write_org, can_manage_org, get_member_profile
from boxhub.utils.runtime import DEV_IDENTITY, dev_mode_active
from boxhub.utils.feature_flags import org_feature_enabled

logger = logging.getLogger(__name__)

# Contract:
# Returns (sqlalchemy User model, current_user_context_dict)
# Raises 401 if identity cannot be resolved.

def get_current_user_context(
    db: Session = Depends(get_db),
    x_auth_request_user: Optional[str] = Header(default=None),
    x_auth_request_email: Optional[str] = Header(default=None),
    x_forwarded_user: Optional[str] = Header(default=None),
    x_forwarded_email: Optional[str] = Header(default=None),
) -> Tuple[Any, Dict[str, Any]]:
    if dev_mode_active():
        name, email = DEV_IDENTITY
    else:
        name, email = resolve_identity_from_headers(
            x_auth_request_user=x_auth_request_user,
            x_auth_request_email=x_auth_request_email,
            x_forwarded_user=x_forwarded_user,
            x_forwarded_email=x_forwarded_email,
        )
        if not email:
            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Authentication required")
    user = get_or_create_user(db, email=email, display_name=name)

    memberships = get_user_memberships(db, user.id)
    # Keys are strings to match the permission helpers
    memberships_by_org = {str(m["organization_id"]): m for m in memberships}
    current_user = {
        "id": user.id,
        "email": user.email,
        "display_name": user.display_name,
        "is_superadmin": bool(user.is_superadmin),
        "memberships": memberships,
        "memberships_by_org": memberships_by_org,
        "member_profiles": get_member_profiles(db, user.id),
    }
    return user, current_user


def get_organization_or_404(db: Session, org_id: uuid.UUID) -> models.Organization:
    org = db.query(models.Organization).filter(models.Organization.id == org_id).first()
    if not org:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Organization not found")
    return org


_ACCESS_CHECKS = {
    "read": (can_read_org, "Not a member of this organization"),
    "write": (can_write_org, "Insufficient permissions"),
    "manage": (can_manage_org, "Only owners and admins can perform this action"),
}


def _reject_suspended(org: models.Organization, current_user: Dict[str, Any]) -> None:
    if not org.is_active and not current_user.get("is_superadmin"):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Organization suspended")


def ensure_org_access(db: Session, org_id: uuid.UUID, current_user: Dict[str, Any], level: str = "read") -> models.Organization:
    """Load the organization and check the caller's staff access level.

    Raises 404 for unknown organizations, 403 for suspended ones (superadmins
    excepted) and 403 when the role is too low.
    """
    org = get_organization_or_404(db, org_id)
    _reject_suspended(org, current_user)
    check, message = _ACCESS_CHECKS[level]
    if not check(org_id, current_user):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=message)
    return org


def ensure_feature(org: models.Organization, feature: str) -> None:
    """403 when the platform switch or the organization's plan leaves the feature out."""
    if not org_feature_enabled(org, feature):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=f"Feature '{feature}' is not available for this organization")


def get_current_member(db: Session, org_id: uuid.UUID, current_user: Dict[str, Any]) -> models.Member:
    """Resolve the gym member row of the caller inside an organization (member portal)."""
    _reject_suspended(get_organization_or_404(db, org_id), current_user)
    profile = get_member_profile(org_id, current_user)
    if not profile:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="No member profile in this organization")
    member = db.query(models.Member).filter(models.Member.id == uuid.UUID(profile["member_id"])).first()
    if not member:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Member not found")
    return member


def get_request_meta(request: Request) -> Dict[str, Optional[str]]:
    """Client address and user agent, recorded on RGPD rows."""
    forwarded = request.headers.get("x-forwarded-for")
    ip_address = forwarded.split(",")[0].strip() if forwarded else (request.client.host if request.client else None)
    return {
        "ip_address": ip_address,
        "user_agent": request.headers.get("user-agent"),
    }


def verify_cron_secret(authorization: Optional[str] = Header(default=None)) -> None:
    """Guard for scheduler-triggered endpoints: `Authorization: Bearer $CRON_SECRET`."""
    secret = os.getenv("CRON_SECRET")
    if not secret:
        logger.error("CRON_SECRET is not configured; refusing cron call")
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Cron secret not configured")
    expected = f"Bearer {secret}"
    if not authorization or not hmac.compare_digest(authorization, expected):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")


_RESULT_STATUS = {
    "invalid": status.HTTP_400_BAD_REQUEST,
    "not_found": status.HTTP_404_NOT_FOUND,
    "conflict": status.HTTP_409_CONFLICT,
    "forbidden": status.HTTP_403_FORBIDDEN,
    "gone": status.HTTP_410_GONE,
    "upstream": status.HTTP_502_BAD_GATEWAY,
    "error": status.HTTP_500_INTERNAL_SERVER_ERROR,
}


def raise_for_result(result: Dict[str, Any]) -> Dict[str, Any]:
    """Turn a failed service result into an HTTPException; pass successes through."""
    if result.get("success"):
        return result
    code = _RESULT_STATUS.get(result.get("code", "invalid"), status.HTTP_400_BAD_REQUEST)
    raise HTTPException(status_code=code, detail=result.get("error") or "Request failed")
