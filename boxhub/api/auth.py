"""
Authentication helpers and identity resolution.

Parses proxy headers, normalizes emails, and upserts users while supporting
simple superadmin elevation via environment configuration.
"""
import os
import logging
from typing import Optional, Dict, Any, List, Tuple
from sqlalchemy.orm import Session

from boxhub.db import models

logger = logging.getLogger(__name__)


def _normalize_email(email: Optional[str]) -> Optional[str]:
    if not email:
        return None
    return email.strip().lower()


def _normalize_list_env(var_name: str) -> set:
    raw = os.getenv(var_name, "")
    values = set()
    for entry in raw.split(","):
        cleaned = entry.strip().strip('"').strip("'")
        if cleaned:
            values.add(cleaned.lower())
    return values


def _admin_emails() -> set:
    return _normalize_list_env("ADMIN_EMAILS")


def resolve_identity_from_headers(
    x_auth_request_user: Optional[str],
    x_auth_request_email: Optional[str],
    x_forwarded_user: Optional[str],
    x_forwarded_email: Optional[str],
) -> Tuple[Optional[str], Optional[str]]:
    user = x_auth_request_user or x_forwarded_user
    email = _normalize_email(x_auth_request_email or x_forwarded_email)
    return user, email


def get_or_create_user(db: Session, email: str, display_name: Optional[str] = None) -> models.User:
    email = _normalize_email(email)
    user = db.query(models.User).filter(models.User.email == email).first()
    admins = _admin_emails()
    if not user:
        user = models.User(
            email=email,
            display_name=display_name or email.split("@")[0],
            is_superadmin=email in admins,
        )
        db.add(user)
        db.commit()
        db.refresh(user)
        logger.info("Created user %s", email)
        return user

    # Existing users might predate a new ADMIN_EMAILS value
    if email in admins and not user.is_superadmin:
        user.is_superadmin = True
        db.commit()
        db.refresh(user)
    return user


def get_user_memberships(db: Session, user_id) -> List[Dict[str, Any]]:
    """Staff memberships of a user, with organization names."""
    results = (
        db.query(models.OrganizationMembership, models.Organization)
        .join(models.Organization, models.Organization.id == models.OrganizationMembership.organization_id)
        .filter(models.OrganizationMembership.user_id == user_id)
        .all()
    )
    memberships: List[Dict[str, Any]] = []
    for membership, org in results:
        memberships.append(
            {
                "organization_id": str(membership.organization_id),
                "organization_name": org.name,
                "role": membership.role,
                "can_read": bool(membership.can_read),
                "can_write": bool(membership.can_write),
            }
        )
    return memberships


def get_member_profiles(db: Session, user_id) -> List[Dict[str, Any]]:
    """Gym member rows linked to a user account, one per organization."""
    rows = (
        db.query(models.Member)
        .filter(models.Member.user_id == user_id, models.Member.status != 'archived')
        .all()
    )
    return [
        {
            "organization_id": str(m.organization_id),
            "member_id": str(m.id),
            "status": m.status,
        }
        for m in rows
    ]
