"""
Workflows API: automation definitions, activation, runs and manual starts.
"""
import logging
from typing import List
import uuid

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from boxhub.db.database import get_db
from boxhub.db import models, schemas
from boxhub.db.repositories import workflows as workflows_repo
from boxhub.api.deps import get_current_user_context, ensure_org_access, ensure_feature, raise_for_result
from boxhub.audit import log, AuditAction
from boxhub.services import workflow_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/organizations/{org_id}/workflows", tags=["workflows"])


def _org(db: Session, org_id: uuid.UUID, current_user, level: str) -> models.Organization:
    org = ensure_org_access(db, org_id, current_user, level)
    ensure_feature(org, "workflows")
    return org


def _workflow_or_404(db: Session, org_id: uuid.UUID, workflow_id: uuid.UUID) -> models.Workflow:
    workflow = workflows_repo.get_workflow(db, org_id, workflow_id)
    if workflow is None:
        raise HTTPException(status_code=404, detail="Workflow not found")
    return workflow


def _audit(db: Session, user, org_id: uuid.UUID, action: AuditAction, workflow_id: uuid.UUID, **metadata) -> None:
    log(
        db,
        action=action,
        target_type="workflow",
        target_id=workflow_id,
        actor_user_id=user.id,
        organization_id=org_id,
        metadata=metadata or None,
    )


@router.get("", response_model=List[schemas.Workflow])
def list_workflows(
    org_id: uuid.UUID,
    active_only: bool = False,
    db: Session = Depends(get_db),
    user_context = Depends(get_current_user_context),
):
    _, current_user = user_context
    _org(db, org_id, current_user, "read")
    return workflows_repo.list_workflows(db, org_id, active_only=active_only)


@router.post("", status_code=status.HTTP_201_CREATED, response_model=schemas.Workflow)
def create_workflow(
    org_id: uuid.UUID,
    payload: schemas.WorkflowCreate,
    db: Session = Depends(get_db),
    user_context = Depends(get_current_user_context),
):
    user, current_user = user_context
    _org(db, org_id, current_user, "manage")
    workflow = workflow_service.create_workflow(db, org_id, payload, user.id)
    _audit(db, user, org_id, AuditAction.WORKFLOW_CREATE, workflow.id, name=workflow.name)
    return workflow


@router.get("/stats", response_model=schemas.WorkflowStats)
def workflow_stats(
    org_id: uuid.UUID,
    db: Session = Depends(get_db),
    user_context = Depends(get_current_user_context),
):
    _, current_user = user_context
    _org(db, org_id, current_user, "read")
    return workflow_service.stats(db, org_id)


@router.post("/events", response_model=List[schemas.ExecutionResult])
def dispatch_event(
    org_id: uuid.UUID,
    payload: schemas.WorkflowEvent,
    db: Session = Depends(get_db),
    user_context = Depends(get_current_user_context),
):
    """Fire an event (e.g. from an integration) at every matching active workflow."""
    _, current_user = user_context
    org = _org(db, org_id, current_user, "write")
    return raise_for_result(workflow_service.dispatch_event(db, org, payload))["results"]


@router.get("/runs/{run_id}", response_model=schemas.WorkflowRunDetail)
def get_run(
    org_id: uuid.UUID,
    run_id: uuid.UUID,
    db: Session = Depends(get_db),
    user_context = Depends(get_current_user_context),
):
    _, current_user = user_context
    _org(db, org_id, current_user, "read")
    run = workflows_repo.get_run(db, org_id, run_id)
    if run is None:
        raise HTTPException(status_code=404, detail="Run not found")
    return run


@router.get("/runs/{run_id}/logs", response_model=List[schemas.WorkflowLog])
def get_run_logs(
    org_id: uuid.UUID,
    run_id: uuid.UUID,
    limit: int = Query(default=200, ge=1, le=1000),
    db: Session = Depends(get_db),
    user_context = Depends(get_current_user_context),
):
    _, current_user = user_context
    _org(db, org_id, current_user, "read")
    if workflows_repo.get_run(db, org_id, run_id) is None:
        raise HTTPException(status_code=404, detail="Run not found")
    return workflows_repo.list_logs(db, run_id, limit=limit)


@router.get("/{workflow_id}", response_model=schemas.Workflow)
def get_workflow(
    org_id: uuid.UUID,
    workflow_id: uuid.UUID,
    db: Session = Depends(get_db),
    user_context = Depends(get_current_user_context),
):
    _, current_user = user_context
    _org(db, org_id, current_user, "read")
    return _workflow_or_404(db, org_id, workflow_id)


@router.put("/{workflow_id}", response_model=schemas.Workflow)
def update_workflow(
    org_id: uuid.UUID,
    workflow_id: uuid.UUID,
    payload: schemas.WorkflowUpdate,
    db: Session = Depends(get_db),
    user_context = Depends(get_current_user_context),
):
    user, current_user = user_context
    _org(db, org_id, current_user, "manage")
    workflow = workflow_service.update_workflow(db, _workflow_or_404(db, org_id, workflow_id), payload, user.id)
    _audit(db, user, org_id, AuditAction.WORKFLOW_UPDATE, workflow.id, fields=sorted(payload.model_fields_set))
    return workflow


@router.delete("/{workflow_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_workflow(
    org_id: uuid.UUID,
    workflow_id: uuid.UUID,
    db: Session = Depends(get_db),
    user_context = Depends(get_current_user_context),
):
    user, current_user = user_context
    _org(db, org_id, current_user, "manage")
    workflow = _workflow_or_404(db, org_id, workflow_id)
    name = workflow.name
    workflows_repo.delete_workflow(db, workflow)
    _audit(db, user, org_id, AuditAction.WORKFLOW_DELETE, workflow_id, name=name)


@router.post("/{workflow_id}/duplicate", status_code=status.HTTP_201_CREATED, response_model=schemas.Workflow)
def duplicate_workflow(
    org_id: uuid.UUID,
    workflow_id: uuid.UUID,
    payload: schemas.WorkflowDuplicate,
    db: Session = Depends(get_db),
    user_context = Depends(get_current_user_context),
):
    user, current_user = user_context
    _org(db, org_id, current_user, "manage")
    copy = workflow_service.duplicate_workflow(db, _workflow_or_404(db, org_id, workflow_id), payload.name, user.id)
    _audit(db, user, org_id, AuditAction.WORKFLOW_CREATE, copy.id, duplicated_from=str(workflow_id))
    return copy


@router.post("/{workflow_id}/toggle", response_model=schemas.Workflow)
def toggle_workflow(
    org_id: uuid.UUID,
    workflow_id: uuid.UUID,
    db: Session = Depends(get_db),
    user_context = Depends(get_current_user_context),
):
    user, current_user = user_context
    _org(db, org_id, current_user, "manage")
    result = raise_for_result(workflow_service.toggle_workflow(db, _workflow_or_404(db, org_id, workflow_id), user.id))
    workflow = result["workflow"]
    _audit(db, user, org_id, AuditAction.WORKFLOW_TOGGLE, workflow.id, is_active=workflow.is_active)
    return workflow


@router.post("/{workflow_id}/run", response_model=schemas.ExecutionResult)
def run_workflow(
    org_id: uuid.UUID,
    workflow_id: uuid.UUID,
    payload: schemas.WorkflowTrigger,
    db: Session = Depends(get_db),
    user_context = Depends(get_current_user_context),
):
    user, current_user = user_context
    org = _org(db, org_id, current_user, "write")
    result = raise_for_result(workflow_service.run_manually(db, org, workflow_id, payload, user.id))["result"]
    _audit(db, user, org_id, AuditAction.WORKFLOW_RUN, workflow_id, run_id=str(result["run_id"]), status=result["status"])
    return result


@router.get("/{workflow_id}/runs", response_model=List[schemas.WorkflowRun])
def list_runs(
    org_id: uuid.UUID,
    workflow_id: uuid.UUID,
    limit: int = Query(default=50, ge=1, le=200),
    db: Session = Depends(get_db),
    user_context = Depends(get_current_user_context),
):
    _, current_user = user_context
    _org(db, org_id, current_user, "read")
    workflow = _workflow_or_404(db, org_id, workflow_id)
    return workflows_repo.list_runs(db, workflow.id, limit=limit)
