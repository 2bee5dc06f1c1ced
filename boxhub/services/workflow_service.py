"""
Workflow management: CRUD, activation, run history and manual starts.
"""

import logging
import uuid
from typing import Any, Dict, Optional

from sqlalchemy.orm import Session

from boxhub.db import models, schemas
from boxhub.db.models.workflows import DEFAULT_WORKFLOW_COLOR, DEFAULT_WORKFLOW_ICON, default_workflow_settings, empty_canvas
from boxhub.db.repositories import billing as billing_repo
from boxhub.db.repositories import members as members_repo
from boxhub.db.repositories import planning as planning_repo
from boxhub.db.repositories import workflows as workflows_repo
from boxhub.services.workflow_engine import WorkflowEngine

logger = logging.getLogger(__name__)

DEFAULT_COPY_NAME = "Copie de workflow"


def _error(message: str, code: str = 'invalid') -> Dict[str, Any]:
    return {'success': False, 'error': message, 'code': code}


def create_workflow(db: Session, organization_id: uuid.UUID, payload: schemas.WorkflowCreate, user_id: Optional[uuid.UUID]) -> models.Workflow:
    settings = default_workflow_settings()
    settings.update(payload.settings or {})
    values = {
        'name': payload.name,
        'description': payload.description,
        'icon': payload.icon or DEFAULT_WORKFLOW_ICON,
        'color': payload.color or DEFAULT_WORKFLOW_COLOR,
        'tags': payload.tags,
        'canvas_data': payload.canvas_data.model_dump() if payload.canvas_data else empty_canvas(),
        'settings': settings,
        'is_active': False,
        'created_by': user_id,
        'updated_by': user_id,
    }
    return workflows_repo.create_workflow(db, organization_id, values)


def update_workflow(db: Session, workflow: models.Workflow, payload: schemas.WorkflowUpdate, user_id: Optional[uuid.UUID]) -> models.Workflow:
    values = payload.model_dump(exclude_unset=True)
    if 'canvas_data' in values:
        values['canvas_data'] = payload.canvas_data.model_dump()
        values['version'] = (workflow.version or 1) + 1
    if 'settings' in values:
        merged = dict(workflow.settings or default_workflow_settings())
        merged.update(values['settings'] or {})
        values['settings'] = merged
    values['updated_by'] = user_id
    return workflows_repo.update_workflow(db, workflow, values)


def duplicate_workflow(db: Session, workflow: models.Workflow, name: Optional[str], user_id: Optional[uuid.UUID]) -> models.Workflow:
    """Inactive copy with fresh counters."""
    values = {
        'name': name or (f"{workflow.name} (copie)" if workflow.name else DEFAULT_COPY_NAME),
        'description': workflow.description,
        'icon': workflow.icon,
        'color': workflow.color,
        'tags': list(workflow.tags or []),
        'canvas_data': dict(workflow.canvas_data or empty_canvas()),
        'settings': dict(workflow.settings or default_workflow_settings()),
        'is_active': False,
        'created_by': user_id,
        'updated_by': user_id,
    }
    return workflows_repo.create_workflow(db, workflow.organization_id, values)


def toggle_workflow(db: Session, workflow: models.Workflow, user_id: Optional[uuid.UUID]) -> Dict[str, Any]:
    if not workflow.is_active and not workflow.trigger_types():
        return _error("Le workflow doit contenir un declencheur")
    workflow = workflows_repo.update_workflow(db, workflow, {'is_active': not workflow.is_active, 'updated_by': user_id})
    logger.info("Workflow %s is now %s", workflow.id, 'active' if workflow.is_active else 'inactive')
    return {'success': True, 'workflow': workflow}


def stats(db: Session, organization_id: uuid.UUID) -> Dict[str, int]:
    workflows = workflows_repo.list_workflows(db, organization_id)
    runs = workflows_repo.run_stats(db, organization_id)
    total = sum(runs.values())
    successful = runs.get('completed', 0)
    return {
        'total_workflows': len(workflows),
        'active_workflows': sum(1 for w in workflows if w.is_active),
        'total_runs': total,
        'successful_runs': successful,
        'failed_runs': runs.get('failed', 0),
        'success_rate': round(successful / total * 100) if total else 0,
    }


def run_manually(
    db: Session,
    organization: models.Organization,
    workflow_id: uuid.UUID,
    payload: schemas.WorkflowTrigger,
    user_id: Optional[uuid.UUID],
) -> Dict[str, Any]:
    workflow = workflows_repo.get_workflow(db, organization.id, workflow_id)
    if workflow is None:
        return _error("Workflow non trouve", 'not_found')
    if not workflow.is_active:
        return _error("Workflow inactif")
    member = None
    if payload.member_id is not None:
        member = members_repo.get_member(db, organization.id, payload.member_id)
        if member is None:
            return _error("Membre introuvable", 'not_found')
    engine = WorkflowEngine(db, organization)
    context = engine.build_context(member=member, data={'event': 'manual_trigger', **payload.data})
    result = engine.execute(workflow, context, triggered_by='manual', executed_by=user_id)
    return {'success': True, 'result': result}


def dispatch_event(db: Session, organization: models.Organization, event: schemas.WorkflowEvent) -> Dict[str, Any]:
    """Fire an application event at the organization's workflows."""
    member = subscription = gym_class = None
    if event.member_id is not None:
        member = members_repo.get_member(db, organization.id, event.member_id)
        if member is None:
            return _error("Membre introuvable", 'not_found')
    if event.subscription_id is not None:
        subscription = billing_repo.get_subscription(db, organization.id, event.subscription_id)
        if subscription is None:
            return _error("Abonnement introuvable", 'not_found')
    if event.class_id is not None:
        gym_class = planning_repo.get_class(db, organization.id, event.class_id)
        if gym_class is None:
            return _error("Cours introuvable", 'not_found')
    data = {'event': event.trigger_type, **event.data}
    results = WorkflowEngine(db, organization).trigger(
        event.trigger_type, member=member, subscription=subscription, gym_class=gym_class, data=data
    )
    return {'success': True, 'results': results}
