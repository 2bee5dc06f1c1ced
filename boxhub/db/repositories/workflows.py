"""
Workflow definitions, their runs, per-node results, logs and delayed continuations.
"""
from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any, Dict, List, Optional
from sqlalchemy import func
from sqlalchemy.orm import Session, selectinload

from boxhub.db import models


def list_workflows(db: Session, organization_id: uuid.UUID, active_only: bool = False) -> List[models.Workflow]:
    query = db.query(models.Workflow).filter(models.Workflow.organization_id == organization_id)
    if active_only:
        query = query.filter(models.Workflow.is_active.is_(True))
    return query.order_by(models.Workflow.updated_at.desc(), models.Workflow.name).all()


def get_workflow(db: Session, organization_id: uuid.UUID, workflow_id: uuid.UUID) -> Optional[models.Workflow]:
    return (
        db.query(models.Workflow)
        .filter(models.Workflow.organization_id == organization_id, models.Workflow.id == workflow_id)
        .first()
    )


def create_workflow(db: Session, organization_id: uuid.UUID, values: Dict[str, Any]) -> models.Workflow:
    workflow = models.Workflow(organization_id=organization_id, **values)
    db.add(workflow)
    db.commit()
    db.refresh(workflow)
    return workflow


def update_workflow(db: Session, workflow: models.Workflow, values: Dict[str, Any]) -> models.Workflow:
    for key, value in values.items():
        setattr(workflow, key, value)
    db.commit()
    db.refresh(workflow)
    return workflow


def delete_workflow(db: Session, workflow: models.Workflow) -> None:
    db.delete(workflow)
    db.commit()


def record_execution(db: Session, workflow_id: uuid.UUID, *, started: bool = False, outcome: Optional[str] = None) -> None:
    """Bump counters with UPDATE ... SET x = x + 1 so concurrent runs do not lose counts."""
    values: Dict[str, Any] = {}
    if started:
        values['total_executions'] = models.Workflow.total_executions + 1
        values['last_executed_at'] = models.now_utc()
    if outcome == 'completed':
        values['successful_executions'] = models.Workflow.successful_executions + 1
    elif outcome == 'failed':
        values['failed_executions'] = models.Workflow.failed_executions + 1
    if values:
        db.query(models.Workflow).filter(models.Workflow.id == workflow_id).update(values, synchronize_session=False)
        db.commit()


# === Runs ===

def create_run(db: Session, workflow: models.Workflow, **fields) -> models.WorkflowRun:
    run = models.WorkflowRun(workflow_id=workflow.id, organization_id=workflow.organization_id, **fields)
    db.add(run)
    db.commit()
    db.refresh(run)
    return run


def finish_run(db: Session, run: models.WorkflowRun, status: str, error_message: Optional[str] = None) -> models.WorkflowRun:
    run.status = status
    run.error_message = error_message
    if status in ('completed', 'failed', 'cancelled'):
        run.completed_at = models.now_utc()
        if run.started_at is not None:
            started = run.started_at if run.started_at.tzinfo else run.started_at.replace(tzinfo=run.completed_at.tzinfo)
            run.duration_ms = int((run.completed_at - started).total_seconds() * 1000)
    db.commit()
    db.refresh(run)
    return run


def list_runs(db: Session, workflow_id: uuid.UUID, limit: int = 50) -> List[models.WorkflowRun]:
    return (
        db.query(models.WorkflowRun)
        .filter(models.WorkflowRun.workflow_id == workflow_id)
        .order_by(models.WorkflowRun.created_at.desc())
        .limit(limit)
        .all()
    )


def get_run(db: Session, organization_id: uuid.UUID, run_id: uuid.UUID) -> Optional[models.WorkflowRun]:
    return (
        db.query(models.WorkflowRun)
        .options(selectinload(models.WorkflowRun.node_runs))
        .filter(models.WorkflowRun.organization_id == organization_id, models.WorkflowRun.id == run_id)
        .first()
    )


def add_node_run(db: Session, run_id: uuid.UUID, node_id: str, result: Dict[str, Any], started_at: datetime) -> models.WorkflowNodeRun:
    completed_at = models.now_utc()
    node_run = models.WorkflowNodeRun(
        run_id=run_id,
        node_id=node_id,
        status=result['status'],
        output_data=result.get('output') or {},
        error_message=result.get('error'),
        started_at=started_at,
        completed_at=completed_at,
        duration_ms=int((completed_at - started_at).total_seconds() * 1000),
    )
    db.add(node_run)
    db.commit()
    return node_run


def add_log(db: Session, run_id: uuid.UUID, level: str, message: str, node_id: Optional[str] = None, data: Optional[Dict[str, Any]] = None) -> None:
    db.add(models.WorkflowLog(run_id=run_id, node_id=node_id, level=level, message=message, data=data or {}))
    db.commit()


def list_logs(db: Session, run_id: uuid.UUID, limit: int = 200) -> List[models.WorkflowLog]:
    return (
        db.query(models.WorkflowLog)
        .filter(models.WorkflowLog.run_id == run_id)
        .order_by(models.WorkflowLog.created_at)
        .limit(limit)
        .all()
    )


def run_stats(db: Session, organization_id: uuid.UUID) -> Dict[str, int]:
    rows = (
        db.query(models.WorkflowRun.status, func.count(models.WorkflowRun.id))
        .filter(models.WorkflowRun.organization_id == organization_id)
        .group_by(models.WorkflowRun.status)
        .all()
    )
    return {status: count for status, count in rows}


# === Delayed continuations ===

def schedule_continuation(
    db: Session,
    run: models.WorkflowRun,
    next_node_ids: List[str],
    scheduled_for: datetime,
) -> models.WorkflowScheduledRun:
    scheduled = models.WorkflowScheduledRun(
        run_id=run.id,
        workflow_id=run.workflow_id,
        next_node_ids=list(next_node_ids),
        scheduled_for=scheduled_for,
    )
    db.add(scheduled)
    db.commit()
    db.refresh(scheduled)
    return scheduled


def due_continuations(db: Session, now: datetime, limit: int = 100) -> List[models.WorkflowScheduledRun]:
    return (
        db.query(models.WorkflowScheduledRun)
        .filter(models.WorkflowScheduledRun.status == 'pending', models.WorkflowScheduledRun.scheduled_for <= now)
        .order_by(models.WorkflowScheduledRun.scheduled_for)
        .limit(limit)
        .all()
    )


def close_continuation(db: Session, scheduled: models.WorkflowScheduledRun, status: str, error_message: Optional[str] = None) -> None:
    scheduled.status = status
    scheduled.error_message = error_message
    scheduled.executed_at = models.now_utc()
    db.commit()


# === In-app notifications ===

def create_member_notification(db: Session, **fields) -> models.MemberNotification:
    notification = models.MemberNotification(**fields)
    db.add(notification)
    db.commit()
    db.refresh(notification)
    return notification


def list_member_notifications(db: Session, member_id: uuid.UUID, unread_only: bool = False, limit: int = 50) -> List[models.MemberNotification]:
    query = db.query(models.MemberNotification).filter(models.MemberNotification.member_id == member_id)
    if unread_only:
        query = query.filter(models.MemberNotification.is_read.is_(False))
    return query.order_by(models.MemberNotification.created_at.desc()).limit(limit).all()


def mark_member_notification_read(db: Session, member_id: uuid.UUID, notification_id: uuid.UUID) -> Optional[models.MemberNotification]:
    notification = (
        db.query(models.MemberNotification)
        .filter(models.MemberNotification.member_id == member_id, models.MemberNotification.id == notification_id)
        .first()
    )
    if notification is not None and not notification.is_read:
        notification.is_read = True
        notification.read_at = models.now_utc()
        db.commit()
        db.refresh(notification)
    return notification
