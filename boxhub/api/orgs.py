"""
Organization management API: the box itself and its staff memberships.
"""
import logging
from typing import List
import uuid

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from boxhub.db.database import get_db
from boxhub.db import models, schemas
from boxhub.db.repositories import organizations as orgs_repo
from boxhub.api.deps import get_current_user_context, ensure_org_access
from boxhub.api.auth import get_or_create_user
from boxhub.audit import log, AuditAction, AuditStatus

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/organizations", tags=["organizations"])


def _staff_out(membership: models.OrganizationMembership, user: models.User) -> dict:
    return {
        "user_id": user.id,
        "email": user.email,
        "display_name": user.display_name,
        "role": membership.role,
        "can_read": bool(membership.can_read),
        "can_write": bool(membership.can_write),
    }


def _check_unique(db: Session, name: str | None, slug: str | None, exclude_id: uuid.UUID | None = None):
    if name:
        existing = orgs_repo.get_organization_by_name(db, name)
        if existing and existing.id != exclude_id:
            raise HTTPException(status_code=409, detail="Organization name already exists")
    if slug:
        existing = orgs_repo.get_organization_by_slug(db, slug)
        if existing and existing.id != exclude_id:
            raise HTTPException(status_code=409, detail="Organization slug already exists")


@router.post("/", status_code=status.HTTP_201_CREATED, response_model=schemas.Organization)
def create_organization(
    payload: schemas.OrganizationCreate,
    db: Session = Depends(get_db),
    user_context = Depends(get_current_user_context),
):
    user, _ = user_context
    _check_unique(db, payload.name, payload.slug)
    org = orgs_repo.create_organization(db, payload, user_id=user.id)

    log(
        db,
        action=AuditAction.ORGANIZATION_CREATE,
        status=AuditStatus.SUCCESS,
        target_type="organization",
        target_id=org.id,
        actor_user_id=user.id,
        organization_id=org.id,
    )
    return org


@router.get("/", response_model=List[schemas.Organization])
def list_organizations(
    skip: int = 0,
    limit: int = 100,
    db: Session = Depends(get_db),
    user_context = Depends(get_current_user_context),
):
    """Superadmins see every box; everyone else sees the boxes they staff."""
    user, current_user = user_context
    if current_user.get("is_superadmin"):
        return orgs_repo.get_all_organizations(db, skip=skip, limit=limit)
    return orgs_repo.get_organizations(db, user_id=user.id, skip=skip, limit=limit)


@router.get("/{org_id}", response_model=schemas.Organization)
def get_organization(
    org_id: uuid.UUID,
    db: Session = Depends(get_db),
    user_context = Depends(get_current_user_context),
):
    _, current_user = user_context
    return ensure_org_access(db, org_id, current_user, "read")


@router.put("/{org_id}", response_model=schemas.Organization)
def update_organization(
    org_id: uuid.UUID,
    payload: schemas.OrganizationUpdate,
    db: Session = Depends(get_db),
    user_context = Depends(get_current_user_context),
):
    user, current_user = user_context
    org = ensure_org_access(db, org_id, current_user, "manage")
    _check_unique(db, payload.name, payload.slug, exclude_id=org.id)

    old_data = {"name": org.name, "slug": org.slug, "is_active": org.is_active}
    org = orgs_repo.update_organization(db, org_id, payload)
    log(
        db,
        action=AuditAction.ORGANIZATION_UPDATE,
        status=AuditStatus.SUCCESS,
        target_type="organization",
        target_id=org.id,
        actor_user_id=user.id,
        organization_id=org.id,
        metadata={
            "old_data": old_data,
            "changed": sorted(payload.model_dump(exclude_unset=True).keys()),
        },
    )
    return org


@router.delete("/{org_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_organization(
    org_id: uuid.UUID,
    db: Session = Depends(get_db),
    user_context = Depends(get_current_user_context),
):
    user, current_user = user_context
    ensure_org_access(db, org_id, current_user, "manage")
    if orgs_repo.count_members(db, org_id):
        raise HTTPException(status_code=409, detail="Organization still has members; archive or remove them first")

    # Audit rows reference the organization, so log before the delete
    log(
        db,
        action=AuditAction.ORGANIZATION_DELETE,
        status=AuditStatus.SUCCESS,
        target_type="organization",
        target_id=org_id,
        actor_user_id=user.id,
        organization_id=None,
        metadata={"organization_id": str(org_id)},
    )
    orgs_repo.delete_organization(db, org_id)
    logger.info("Organization %s deleted by %s", org_id, user.email)


# === Staff ===

@router.get("/{org_id}/staff", response_model=List[schemas.StaffMember])
def list_staff(
    org_id: uuid.UUID,
    db: Session = Depends(get_db),
    user_context = Depends(get_current_user_context),
):
    _, current_user = user_context
    ensure_org_access(db, org_id, current_user, "read")
    return [_staff_out(m, u) for m, u in orgs_repo.get_organization_members(db, org_id)]


@router.post("/{org_id}/staff", status_code=status.HTTP_201_CREATED, response_model=schemas.StaffMember)
def add_staff(
    org_id: uuid.UUID,
    payload: schemas.StaffMemberCreate,
    db: Session = Depends(get_db),
    user_context = Depends(get_current_user_context),
):
    user, current_user = user_context
    ensure_org_access(db, org_id, current_user, "manage")

    email = payload.email.strip().lower()
    if not email:
        raise HTTPException(status_code=422, detail="Email is required")
    staff_user = get_or_create_user(db, email=email, display_name=payload.display_name)
    if orgs_repo.get_organization_member(db, org_id, staff_user.id):
        raise HTTPException(status_code=409, detail="User already a staff member")

    membership = orgs_repo.create_organization_member(db, org_id, staff_user.id, payload.role)
    log(
        db,
        action=AuditAction.STAFF_ADD,
        status=AuditStatus.SUCCESS,
        target_type="user",
        target_id=staff_user.id,
        actor_user_id=user.id,
        organization_id=org_id,
        metadata={"role": payload.role},
    )
    return _staff_out(membership, staff_user)


@router.put("/{org_id}/staff/{staff_user_id}", response_model=schemas.StaffMember)
def update_staff_role(
    org_id: uuid.UUID,
    staff_user_id: uuid.UUID,
    payload: schemas.StaffMemberUpdate,
    db: Session = Depends(get_db),
    user_context = Depends(get_current_user_context),
):
    user, current_user = user_context
    ensure_org_access(db, org_id, current_user, "manage")
    membership = orgs_repo.get_organization_member(db, org_id, staff_user_id)
    if not membership:
        raise HTTPException(status_code=404, detail="Staff member not found")

    old_role = membership.role
    if old_role == "owner" and payload.role != "owner" and orgs_repo.count_owners(db, org_id) <= 1:
        raise HTTPException(status_code=400, detail="An organization must keep at least one owner")

    membership = orgs_repo.update_organization_member_role(db, org_id, staff_user_id, payload.role)
    log(
        db,
        action=AuditAction.STAFF_ROLE_CHANGE,
        status=AuditStatus.SUCCESS,
        target_type="user",
        target_id=staff_user_id,
        actor_user_id=user.id,
        organization_id=org_id,
        metadata={"old_role": old_role, "new_role": payload.role},
    )
    staff_user = db.query(models.User).filter(models.User.id == staff_user_id).first()
    return _staff_out(membership, staff_user)


@router.delete("/{org_id}/staff/{staff_user_id}", status_code=status.HTTP_204_NO_CONTENT)
def remove_staff(
    org_id: uuid.UUID,
    staff_user_id: uuid.UUID,
    db: Session = Depends(get_db),
    user_context = Depends(get_current_user_context),
):
    user, current_user = user_context
    ensure_org_access(db, org_id, current_user, "manage")
    membership = orgs_repo.get_organization_member(db, org_id, staff_user_id)
    if not membership:
        raise HTTPException(status_code=404, detail="Staff member not found")
    if membership.role == "owner" and orgs_repo.count_owners(db, org_id) <= 1:
        raise HTTPException(status_code=400, detail="Cannot remove the last owner")

    orgs_repo.delete_organization_member(db, org_id, staff_user_id)
    log(
        db,
        action=AuditAction.STAFF_REMOVE,
        status=AuditStatus.SUCCESS,
        target_type="user",
        target_id=staff_user_id,
        actor_user_id=user.id,
        organization_id=org_id,
        metadata={"role": membership.role},
    )
