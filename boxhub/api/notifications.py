"""
Notification API Endpoints

Organization email settings, the email log with its statistics, bulk sends
and the provider delivery-status webhook.
"""
import logging
from datetime import datetime
from typing import Optional
import uuid

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from boxhub.db.database import get_db
from boxhub.db import schemas
from boxhub.db.repositories import notifications as notif_repo
from boxhub.api.deps import get_current_user_context, ensure_org_access, verify_cron_secret
from boxhub.audit import log, AuditAction, AuditStatus
from boxhub.services.notification_service import NotificationService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/organizations/{org_id}/notifications", tags=["notifications"])
webhook_router = APIRouter(prefix="/notifications", tags=["notifications"])


@router.get("/settings", response_model=schemas.NotificationSettings)
def get_settings(
    org_id: uuid.UUID,
    db: Session = Depends(get_db),
    user_context = Depends(get_current_user_context),
):
    """Current settings, or the defaults when the box never saved any."""
    _, current_user = user_context
    ensure_org_access(db, org_id, current_user, "read")
    return notif_repo.get_or_default_notification_settings(db, org_id)


@router.put("/settings", response_model=schemas.NotificationSettings)
def update_settings(
    org_id: uuid.UUID,
    payload: schemas.NotificationSettingsUpdate,
    db: Session = Depends(get_db),
    user_context = Depends(get_current_user_context),
):
    user, current_user = user_context
    ensure_org_access(db, org_id, current_user, "manage")
    settings = notif_repo.upsert_notification_settings(db, org_id, payload)
    log(
        db,
        action=AuditAction.NOTIFICATION_SETTINGS_UPDATE,
        status=AuditStatus.SUCCESS,
        target_type="notification_settings",
        target_id=org_id,
        actor_user_id=user.id,
        organization_id=org_id,
        metadata=payload.model_dump(exclude_unset=True),
    )
    return settings


@router.get("/emails", response_model=schemas.EmailLogList)
def list_email_logs(
    org_id: uuid.UUID,
    status_filter: Optional[str] = Query(default=None, alias="status"),
    template_type: Optional[str] = None,
    search: Optional[str] = None,
    date_from: Optional[datetime] = None,
    date_to: Optional[datetime] = None,
    skip: int = 0,
    limit: int = 50,
    db: Session = Depends(get_db),
    user_context = Depends(get_current_user_context),
):
    _, current_user = user_context
    ensure_org_access(db, org_id, current_user, "manage")
    logs, total = notif_repo.list_email_logs(
        db, org_id,
        skip=skip, limit=min(limit, 200),
        status=status_filter, template_type=template_type, search=search,
        date_from=date_from, date_to=date_to,
    )
    return {"logs": logs, "total": total}


@router.get("/emails/stats", response_model=schemas.EmailStats)
def email_stats(
    org_id: uuid.UUID,
    since: Optional[datetime] = None,
    db: Session = Depends(get_db),
    user_context = Depends(get_current_user_context),
):
    _, current_user = user_context
    ensure_org_access(db, org_id, current_user, "manage")
    return notif_repo.get_email_stats(db, org_id, since=since)


@router.get("/emails/{email_log_id}", response_model=schemas.EmailLog)
def get_email_log(
    org_id: uuid.UUID,
    email_log_id: uuid.UUID,
    db: Session = Depends(get_db),
    user_context = Depends(get_current_user_context),
):
    _, current_user = user_context
    ensure_org_access(db, org_id, current_user, "manage")
    email_log = notif_repo.get_email_log(db, org_id, email_log_id)
    if not email_log:
        raise HTTPException(status_code=404, detail="Email log not found")
    return email_log


@router.post("/bulk", response_model=schemas.BatchResult)
def send_bulk_email(
    org_id: uuid.UUID,
    payload: schemas.BulkEmailRequest,
    db: Session = Depends(get_db),
    user_context = Depends(get_current_user_context),
):
    """
    Send a custom message to selected members, or to every member with a status.

    Individual failures are counted and do not stop the batch.
    """
    user, current_user = user_context
    ensure_org_access(db, org_id, current_user, "manage")
    result = NotificationService(db).send_bulk(org_id, payload)
    log(
        db,
        action=AuditAction.BULK_EMAIL_SEND,
        status=AuditStatus.SUCCESS if not result["errors"] else AuditStatus.FAILURE,
        target_type="email",
        actor_user_id=user.id,
        organization_id=org_id,
        metadata={"subject": payload.subject, **result},
    )
    return result


@webhook_router.post("/email-status", dependencies=[Depends(verify_cron_secret)], response_model=schemas.EmailLog)
def email_status_webhook(
    payload: schemas.EmailStatusUpdate,
    db: Session = Depends(get_db),
):
    """Delivery updates pushed by the email provider, keyed by its message id."""
    email_log = notif_repo.update_email_status_by_provider_id(
        db, payload.provider_message_id, payload.status, error_message=payload.error_message
    )
    if not email_log:
        raise HTTPException(status_code=404, detail="Unknown provider message id")
    logger.info("Email %s marked %s by provider", email_log.id, payload.status)
    return email_log
