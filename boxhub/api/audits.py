"""
Audit log API endpoints.

Organization managers read their own organization's trail; superadmins may
list across organizations. Listings carry the unpaginated total in the
`X-Total-Count` header.
"""
from datetime import datetime
from typing import Optional, List
import uuid

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status
from sqlalchemy.orm import Session

from boxhub.db.database import get_db
from boxhub.db import schemas
from boxhub.db.repositories import audits as audits_repo
from boxhub.api.deps import get_current_user_context, ensure_org_access

router = APIRouter(tags=["audits"])

MAX_PAGE = 500


@router.get("/organizations/{org_id}/audits", response_model=List[schemas.AuditLog])
def list_organization_audit_logs(
    org_id: uuid.UUID,
    response: Response,
    user_id: Optional[uuid.UUID] = None,
    action_type: Optional[str] = None,
    target_type: Optional[str] = None,
    target_id: Optional[uuid.UUID] = None,
    status_filter: Optional[str] = Query(default=None, alias="status"),
    since: Optional[datetime] = None,
    until: Optional[datetime] = None,
    skip: int = Query(default=0, ge=0),
    limit: int = Query(default=100, ge=1),
    db: Session = Depends(get_db),
    user_context = Depends(get_current_user_context),
):
    _, current_user = user_context
    ensure_org_access(db, org_id, current_user, "manage")
    total, rows = audits_repo.search_entries(
        db,
        organization_id=org_id,
        actor_user_id=user_id,
        action_type=action_type,
        target_type=target_type,
        target_id=target_id,
        status=status_filter,
        since=since,
        until=until,
        skip=skip,
        limit=min(limit, MAX_PAGE),
    )
    response.headers["X-Total-Count"] = str(total)
    return rows


@router.get("/organizations/{org_id}/audits/summary")
def organization_audit_summary(
    org_id: uuid.UUID,
    since: Optional[datetime] = None,
    db: Session = Depends(get_db),
    user_context = Depends(get_current_user_context),
):
    """Entry counts per action type."""
    _, current_user = user_context
    ensure_org_access(db, org_id, current_user, "manage")
    return audits_repo.count_by_action(db, org_id, since=since)


@router.get("/audits", response_model=List[schemas.AuditLog])
def list_audit_logs(
    response: Response,
    organization_id: Optional[uuid.UUID] = None,
    user_id: Optional[uuid.UUID] = None,
    action_type: Optional[str] = None,
    target_type: Optional[str] = None,
    since: Optional[datetime] = None,
    skip: int = Query(default=0, ge=0),
    limit: int = Query(default=100, ge=1),
    db: Session = Depends(get_db),
    user_context = Depends(get_current_user_context),
):
    _, current_user = user_context
    if not current_user.get("is_superadmin"):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Superadmin access required")
    total, rows = audits_repo.search_entries(
        db,
        organization_id=organization_id,
        actor_user_id=user_id,
        action_type=action_type,
        target_type=target_type,
        since=since,
        skip=skip,
        limit=min(limit, MAX_PAGE),
    )
    response.headers["X-Total-Count"] = str(total)
    return rows
