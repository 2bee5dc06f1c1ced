"""
Permission checks for organization-scoped access control.

Staff roles map onto three access levels:
- read: every staff role (front desk accounts stop here)
- write: planning, members, workouts, TV and check-in (owner, admin, coach)
- manage: billing, staff, settings, RGPD and integrations (owner, admin)

Superadmins (ADMIN_EMAILS) pass every check.
"""
from typing import Optional, Dict, Any, Tuple


# role -> (can_read, can_write) stored on new memberships
ROLE_DEFAULT_FLAGS: Dict[str, Tuple[bool, bool]] = {
    "owner": (True, True),
    "admin": (True, True),
    "coach": (True, True),
    "staff": (True, False),
}

_ACCESS_LEVELS = {
    "read": frozenset(ROLE_DEFAULT_FLAGS),
    "write": frozenset({"owner", "admin", "coach"}),
    "manage": frozenset({"owner", "admin"}),
}


def membership_flags(role: str) -> Dict[str, bool]:
    """can_read/can_write columns for a membership with this role."""
    if role not in ROLE_DEFAULT_FLAGS:
        raise ValueError(f"Unknown staff role '{role}'")
    can_read, can_write = ROLE_DEFAULT_FLAGS[role]
    return {"can_read": can_read, "can_write": can_write}


def role_has_access(role: Optional[str], level: str) -> bool:
    return (role or "staff") in _ACCESS_LEVELS[level]


def get_org_membership(org_id, current_user: Optional[Dict[str, Any]]):
    """Get the staff membership entry of the current user for an organization."""
    if not current_user or org_id is None:
        return None

    str_id = str(org_id)
    by_org = current_user.get("memberships_by_org", {}) or {}
    m = by_org.get(str_id)
    if m:
        return m

    for item in current_user.get("memberships", []) or []:
        if item and item.get("organization_id") == str_id:
            return item
    return None


def can_read_org(org_id, current_user: Optional[Dict[str, Any]]) -> bool:
    if current_user is None or org_id is None:
        return False
    if current_user.get("is_superadmin"):
        return True
    membership = get_org_membership(org_id, current_user)
    return bool(membership and membership.get("can_read", True))


def can_write_org(org_id, current_user: Optional[Dict[str, Any]]) -> bool:
    if current_user is None or org_id is None:
        return False
    if current_user.get("is_superadmin"):
        return True
    membership = get_org_membership(org_id, current_user)
    return bool(membership and (
        role_has_access(membership.get("role"), "write") or
        membership.get("can_write")
    ))


def can_manage_org(org_id, current_user: Optional[Dict[str, Any]]) -> bool:
    if current_user is None or org_id is None:
        return False
    if current_user.get("is_superadmin"):
        return True
    membership = get_org_membership(org_id, current_user)
    return bool(membership and role_has_access(membership.get("role"), "manage"))


def get_member_profile(org_id, current_user: Optional[Dict[str, Any]]):
    """Member-portal entry for an organization, if the user is a gym member there."""
    if not current_user or org_id is None:
        return None
    str_id = str(org_id)
    for item in current_user.get("member_profiles", []) or []:
        if item.get("organization_id") == str_id:
            return item
    return None
