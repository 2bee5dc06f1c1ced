"""
Gym member API: directory, profile edits, archive and CSV import/export.
"""
import logging
from typing import Optional
import uuid

from fastapi import APIRouter, Depends, HTTPException, Query, Request, Response, status
from sqlalchemy.orm import Session

from boxhub.db.database import get_db
from boxhub.db import schemas
from boxhub.db.repositories import members as members_repo
from boxhub.api.deps import get_current_user_context, ensure_org_access
from boxhub.audit import log, log_member, AuditAction, AuditStatus
from boxhub.services import member_csv, workflow_engine
from boxhub.services.discord_service import DiscordService
from boxhub.services.notification_service import NotificationService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/organizations/{org_id}/members", tags=["members"])

CSV_MEDIA_TYPE = "text/csv; charset=utf-8"


def _csv_response(content: str, filename: str) -> Response:
    return Response(
        content=content,
        media_type=CSV_MEDIA_TYPE,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.get("/", response_model=schemas.PaginatedMembers)
def list_members(
    org_id: uuid.UUID,
    status_filter: Optional[str] = Query(default=None, alias="status"),
    search: Optional[str] = None,
    page: int = 1,
    page_size: int = 50,
    db: Session = Depends(get_db),
    user_context = Depends(get_current_user_context),
):
    _, current_user = user_context
    ensure_org_access(db, org_id, current_user, "read")
    page = max(page, 1)
    page_size = min(max(page_size, 1), 200)
    return members_repo.list_members(
        db, org_id, status=status_filter, search=search, page=page, page_size=page_size
    )


@router.get("/counts", response_model=schemas.MemberCounts)
def member_counts(
    org_id: uuid.UUID,
    db: Session = Depends(get_db),
    user_context = Depends(get_current_user_context),
):
    _, current_user = user_context
    ensure_org_access(db, org_id, current_user, "read")
    return members_repo.count_members_by_status(db, org_id)


@router.get("/export")
def export_members(
    org_id: uuid.UUID,
    status_filter: Optional[str] = Query(default=None, alias="status"),
    db: Session = Depends(get_db),
    user_context = Depends(get_current_user_context),
):
    _, current_user = user_context
    org = ensure_org_access(db, org_id, current_user, "write")
    content = member_csv.export_members_csv(db, org_id, status=status_filter)
    return _csv_response(content, f"membres-{org.slug or org.id}.csv")


@router.get("/import/template")
def import_template(
    org_id: uuid.UUID,
    db: Session = Depends(get_db),
    user_context = Depends(get_current_user_context),
):
    _, current_user = user_context
    ensure_org_access(db, org_id, current_user, "read")
    return _csv_response(member_csv.import_template_csv(), "modele-import-membres.csv")


async def _request_body(request: Request) -> bytes:
    return await request.body()


@router.post("/import", response_model=schemas.MemberImportResult)
def import_members(
    org_id: uuid.UUID,
    raw: bytes = Depends(_request_body),
    db: Session = Depends(get_db),
    user_context = Depends(get_current_user_context),
):
    """Import members from a CSV request body."""
    user, current_user = user_context
    ensure_org_access(db, org_id, current_user, "write")
    try:
        content = raw.decode("utf-8-sig")
    except UnicodeDecodeError:
        content = raw.decode("latin-1")

    result = member_csv.import_members_csv(db, org_id, content)
    log(
        db,
        action=AuditAction.MEMBER_IMPORT,
        status=AuditStatus.SUCCESS if result["imported"] else AuditStatus.FAILURE,
        target_type="member",
        actor_user_id=user.id,
        organization_id=org_id,
        metadata={"total": result["total"], "imported": result["imported"], "errors": len(result["errors"])},
    )
    return result


@router.get("/{member_id}", response_model=schemas.Member)
def get_member(
    org_id: uuid.UUID,
    member_id: uuid.UUID,
    db: Session = Depends(get_db),
    user_context = Depends(get_current_user_context),
):
    _, current_user = user_context
    ensure_org_access(db, org_id, current_user, "read")
    member = members_repo.get_member(db, org_id, member_id)
    if not member:
        raise HTTPException(status_code=404, detail="Member not found")
    return member


@router.post("/", status_code=status.HTTP_201_CREATED, response_model=schemas.Member)
def create_member(
    org_id: uuid.UUID,
    payload: schemas.MemberCreate,
    db: Session = Depends(get_db),
    user_context = Depends(get_current_user_context),
):
    user, current_user = user_context
    org = ensure_org_access(db, org_id, current_user, "write")
    if payload.email and members_repo.get_member_by_email(db, org_id, payload.email):
        raise HTTPException(status_code=409, detail="A member with this email already exists")

    member = members_repo.create_member(db, org_id, payload)
    log_member(
        db,
        actor_user_id=user.id,
        organization_id=org_id,
        member_id=member.id,
        action=AuditAction.MEMBER_CREATE,
        name=member.full_name,
    )

    # Delivery outcomes land on the email and discord logs
    NotificationService(db).notify_welcome(member)
    DiscordService(db, org).send_welcome(member)
    workflow_engine.trigger_member_created(db, org, member)
    return member


@router.put("/{member_id}", response_model=schemas.Member)
def update_member(
    org_id: uuid.UUID,
    member_id: uuid.UUID,
    payload: schemas.MemberUpdate,
    db: Session = Depends(get_db),
    user_context = Depends(get_current_user_context),
):
    user, current_user = user_context
    ensure_org_access(db, org_id, current_user, "write")
    member = members_repo.update_member(db, org_id, member_id, payload)
    if not member:
        raise HTTPException(status_code=404, detail="Member not found")
    log_member(
        db,
        actor_user_id=user.id,
        organization_id=org_id,
        member_id=member.id,
        action=AuditAction.MEMBER_UPDATE,
        name=member.full_name,
    )
    return member


@router.delete("/{member_id}", response_model=schemas.Member)
def archive_member(
    org_id: uuid.UUID,
    member_id: uuid.UUID,
    db: Session = Depends(get_db),
    user_context = Depends(get_current_user_context),
):
    """Members are never hard-deleted; this archives them."""
    user, current_user = user_context
    ensure_org_access(db, org_id, current_user, "write")
    member = members_repo.archive_member(db, org_id, member_id)
    if not member:
        raise HTTPException(status_code=404, detail="Member not found")
    log_member(
        db,
        actor_user_id=user.id,
        organization_id=org_id,
        member_id=member.id,
        action=AuditAction.MEMBER_ARCHIVE,
        name=member.full_name,
    )
    return member
