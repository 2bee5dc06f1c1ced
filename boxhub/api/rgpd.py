"""
RGPD staff API: data subject requests, consent overview, anonymization and
the export download link handed to members.
"""
import logging
from typing import List, Optional
import uuid

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from sqlalchemy.orm import Session

from boxhub.db.database import get_db
from boxhub.db import schemas
from boxhub.db.repositories import members as members_repo
from boxhub.db.repositories import rgpd as rgpd_repo
from boxhub.api.deps import get_current_user_context, ensure_org_access, get_request_meta, raise_for_result
from boxhub.api.permissions import can_manage_org, get_member_profile
from boxhub.services.rgpd_service import RgpdService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/organizations/{org_id}/rgpd", tags=["rgpd"])
export_router = APIRouter(prefix="/rgpd", tags=["rgpd"])


def _service(db: Session, org_id: uuid.UUID, user, request: Request) -> RgpdService:
    return RgpdService(db, org_id, actor_user_id=user.id, **get_request_meta(request))


@router.get("/requests", response_model=List[schemas.RgpdRequest])
def list_requests(
    org_id: uuid.UUID,
    status_filter: Optional[str] = Query(default=None, alias="status"),
    request_type: Optional[str] = None,
    member_id: Optional[uuid.UUID] = None,
    db: Session = Depends(get_db),
    user_context = Depends(get_current_user_context),
):
    _, current_user = user_context
    ensure_org_access(db, org_id, current_user, "manage")
    return rgpd_repo.list_requests(db, org_id, status=status_filter, request_type=request_type, member_id=member_id)


@router.get("/requests/counts", response_model=schemas.RgpdRequestCounts)
def request_counts(
    org_id: uuid.UUID,
    request: Request,
    db: Session = Depends(get_db),
    user_context = Depends(get_current_user_context),
):
    user, current_user = user_context
    ensure_org_access(db, org_id, current_user, "manage")
    return _service(db, org_id, user, request).request_counts()


@router.post("/requests/{request_id}/process", response_model=schemas.RgpdRequest)
def process_request(
    org_id: uuid.UUID,
    request_id: uuid.UUID,
    payload: schemas.RgpdRequestProcess,
    request: Request,
    db: Session = Depends(get_db),
    user_context = Depends(get_current_user_context),
):
    """Approve or reject a request. Approving an export or deletion carries it out."""
    user, current_user = user_context
    ensure_org_access(db, org_id, current_user, "manage")
    result = _service(db, org_id, user, request).process_request(request_id, payload)
    return raise_for_result(result)["request"]


@router.post("/members/{member_id}/anonymize", response_model=schemas.Member)
def anonymize_member(
    org_id: uuid.UUID,
    member_id: uuid.UUID,
    request: Request,
    db: Session = Depends(get_db),
    user_context = Depends(get_current_user_context),
):
    user, current_user = user_context
    ensure_org_access(db, org_id, current_user, "manage")
    member = members_repo.get_member(db, org_id, member_id)
    if not member:
        raise HTTPException(status_code=404, detail="Member not found")
    return raise_for_result(_service(db, org_id, user, request).anonymize_member(member))["member"]


@router.get("/members/{member_id}/consents", response_model=List[schemas.MemberConsent])
def member_consent_history(
    org_id: uuid.UUID,
    member_id: uuid.UUID,
    db: Session = Depends(get_db),
    user_context = Depends(get_current_user_context),
):
    _, current_user = user_context
    ensure_org_access(db, org_id, current_user, "manage")
    if not members_repo.get_member(db, org_id, member_id):
        raise HTTPException(status_code=404, detail="Member not found")
    return rgpd_repo.get_consent_history(db, member_id)


@router.get("/consents/stats", response_model=List[schemas.ConsentStat])
def consent_stats(
    org_id: uuid.UUID,
    request: Request,
    db: Session = Depends(get_db),
    user_context = Depends(get_current_user_context),
):
    user, current_user = user_context
    ensure_org_access(db, org_id, current_user, "manage")
    return _service(db, org_id, user, request).consent_stats()


@router.get("/audit-logs", response_model=List[schemas.RgpdAuditLog])
def list_rgpd_audit_logs(
    org_id: uuid.UUID,
    member_id: Optional[uuid.UUID] = None,
    limit: int = 100,
    db: Session = Depends(get_db),
    user_context = Depends(get_current_user_context),
):
    _, current_user = user_context
    ensure_org_access(db, org_id, current_user, "manage")
    return rgpd_repo.list_audit_entries(db, org_id, member_id=member_id, limit=min(limit, 500))


@export_router.get("/export/{request_id}")
def download_export(
    request_id: uuid.UUID,
    request: Request,
    db: Session = Depends(get_db),
    user_context = Depends(get_current_user_context),
):
    """JSON export of a completed request, for the member concerned or a manager."""
    user, current_user = user_context
    rgpd_request = rgpd_repo.get_request_by_id(db, request_id)
    if not rgpd_request:
        raise HTTPException(status_code=404, detail="Export not found")

    org_id = rgpd_request.organization_id
    profile = get_member_profile(org_id, current_user)
    is_owner = profile is not None and uuid.UUID(str(profile["member_id"])) == rgpd_request.member_id
    if not is_owner and not can_manage_org(org_id, current_user):
        raise HTTPException(status_code=403, detail="Forbidden")

    result = raise_for_result(_service(db, org_id, user, request).get_export(request_id))
    return result["data"]
