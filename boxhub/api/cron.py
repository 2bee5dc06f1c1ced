"""
Scheduler-triggered jobs. Every route requires `Authorization: Bearer $CRON_SECRET`.
"""
import logging
from typing import Literal

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from boxhub.db.database import get_db
from boxhub.db.repositories import billing as billing_repo
from boxhub.api.deps import verify_cron_secret
from boxhub.services.notification_service import run_notification_cron
from boxhub.services.workflow_engine import run_workflow_cron

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/cron", tags=["cron"], dependencies=[Depends(verify_cron_secret)])

CronJobType = Literal["all", "class_reminders", "subscription_7d", "subscription_30d"]


@router.post("/notifications")
def notifications_cron(
    job_type: CronJobType = Query(default="all", alias="type"),
    db: Session = Depends(get_db),
):
    """Send reminder batches for every active organization."""
    result = run_notification_cron(db, job_type)
    return {"success": True, **result}


@router.post("/subscriptions/expire")
def expire_subscriptions_cron(db: Session = Depends(get_db)):
    """Flip active subscriptions whose end date has passed to `expired`."""
    expired = billing_repo.expire_overdue_subscriptions(db)
    logger.info("Expired %d overdue subscriptions", expired)
    return {"success": True, "expired": expired}


WorkflowJob = Literal["all", "subscriptions", "classes", "scheduled"]


@router.post("/workflows")
def workflows_cron(
    job: WorkflowJob = Query(default="all"),
    db: Session = Depends(get_db),
):
    """Time-based workflow triggers and delayed continuations."""
    result = run_workflow_cron(db, job)
    return {"success": True, **result}
