"""
Workflow execution.

A workflow's canvas is a graph: one or more `trigger` nodes, `action` nodes
and `condition` nodes joined by edges. A run starts at the trigger node that
matches the event and walks the graph breadth-first, each node running at
most once. A failed node ends the run as `failed` unless its action config
sets `continue_on_fail`. A `delay` action parks the run as `waiting` and
stores a `WorkflowScheduledRun`; the scheduler resumes it later from the
delay's successors with the same context.

Condition expressions take one of these forms:
`{{x}} == 'text'`, `{{x}} != 'text'`, `{{x}} > 3`, `{{x}} < 3`, or a bare
value that is true unless empty, `false` or `0`.
"""

import logging
import re
import uuid
from collections import deque
from datetime import datetime, timedelta
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy.orm import Session

from boxhub.db import models
from boxhub.db.repositories import billing as billing_repo
from boxhub.db.repositories import organizations as orgs_repo
from boxhub.db.repositories import planning as planning_repo
from boxhub.db.repositories import workflows as workflows_repo
from boxhub.services.workflow_actions import ActionContext, days_until, execute_action, interpolate
from boxhub.utils.dates import as_utc
from boxhub.utils.feature_flags import org_feature_enabled

logger = logging.getLogger(__name__)

DELAY_UNITS = {'seconds': 1, 'minutes': 60, 'hours': 3600, 'days': 86400}
DEFAULT_DELAY_SECONDS = 60

SUBSCRIPTION_REMINDER_DAYS = (7, 30)
CLASS_REMINDER_HOURS = (2, 24)
CLASS_WINDOW = timedelta(minutes=15)

_EQ = re.compile(r"^(.*?)\s*==\s*['\"](.*)['\"]$")
_NEQ = re.compile(r"^(.*?)\s*!=\s*['\"](.*)['\"]$")
_GT = re.compile(r"^(.*?)\s*>\s*(-?\d+(?:\.\d+)?)$")
_LT = re.compile(r"^(.*?)\s*<\s*(-?\d+(?:\.\d+)?)$")


def _number(text: str) -> Optional[float]:
    try:
        return float(text.strip())
    except ValueError:
        return None


def evaluate_condition(expression: Optional[str], context: Dict[str, Any]) -> bool:
    text = interpolate(expression or 'true', context).strip()

    match = _EQ.match(text)
    if match:
        return match.group(1).strip() == match.group(2)
    match = _NEQ.match(text)
    if match:
        return match.group(1).strip() != match.group(2)
    for pattern, compare in ((_GT, lambda a, b: a > b), (_LT, lambda a, b: a < b)):
        match = pattern.match(text)
        if match:
            left = _number(match.group(1))
            return left is not None and compare(left, float(match.group(2)))
    return bool(text) and text not in ('false', '0')


def delay_seconds(config: Dict[str, Any]) -> int:
    try:
        duration = float(config.get('duration') or DEFAULT_DELAY_SECONDS)
    except (TypeError, ValueError):
        duration = DEFAULT_DELAY_SECONDS
    unit = config.get('unit') or 'seconds'
    return int(duration * DELAY_UNITS.get(unit, 1))


def _iso(value) -> Optional[str]:
    return value.isoformat() if value is not None else None


def _node_data(node: Dict[str, Any]) -> Dict[str, Any]:
    return node.get('data') or {}


class WorkflowEngine:
    """Runs an organization's workflows. `now` is injectable for the scheduler and tests."""

    def __init__(self, db: Session, organization: models.Organization, now: Optional[datetime] = None):
        self.db = db
        self.organization = organization
        self.now = now or models.now_utc()

    # === Context ===

    def build_context(
        self,
        member: Optional[models.Member] = None,
        subscription: Optional[models.Subscription] = None,
        gym_class: Optional[models.GymClass] = None,
        data: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        org = self.organization
        context: Dict[str, Any] = {
            'org': {'id': str(org.id), 'name': org.name, 'settings': org.settings or {}},
            'trigger_data': dict(data or {}),
            'variables': {},
            'now': self.now.isoformat(),
        }
        if member is not None:
            context['member'] = {
                'id': str(member.id),
                'first_name': member.first_name,
                'last_name': member.last_name,
                'full_name': member.full_name,
                'email': member.email,
                'phone': member.phone,
                'status': member.status,
                'tags': list(member.tags or []),
            }
        if subscription is not None:
            plan = self.db.get(models.Plan, subscription.plan_id) if subscription.plan_id else None
            context['subscription'] = {
                'id': str(subscription.id),
                'plan_name': plan.name if plan else '',
                'start_date': _iso(subscription.start_date),
                'end_date': _iso(subscription.end_date),
                'status': subscription.status,
                'days_remaining': days_until(subscription.end_date, self.now.date()),
            }
        if gym_class is not None:
            coach = self.db.get(models.User, gym_class.coach_id) if gym_class.coach_id else None
            context['class'] = {
                'id': str(gym_class.id),
                'name': gym_class.name,
                'starts_at': _iso(as_utc(gym_class.start_time)),
                'ends_at': _iso(as_utc(gym_class.end_time)),
                'coach_name': (coach.display_name or coach.email) if coach else None,
            }
        return context

    # === Entry points ===

    def trigger(
        self,
        trigger_type: str,
        member: Optional[models.Member] = None,
        subscription: Optional[models.Subscription] = None,
        gym_class: Optional[models.GymClass] = None,
        data: Optional[Dict[str, Any]] = None,
    ) -> List[Dict[str, Any]]:
        """Run every active workflow listening for `trigger_type`."""
        if not org_feature_enabled(self.organization, "workflows"):
            return []
        workflows = [
            workflow
            for workflow in workflows_repo.list_workflows(self.db, self.organization.id, active_only=True)
            if trigger_type in workflow.trigger_types()
        ]
        if not workflows:
            return []
        context = self.build_context(member, subscription, gym_class, data)
        results = []
        for workflow in workflows:
            trigger_node = self._trigger_node(workflow, trigger_type)
            if not self._trigger_matches(trigger_node, context):
                logger.debug("Workflow %s filtered out %s event", workflow.id, trigger_type)
                continue
            results.append(self.execute(workflow, context, trigger_type=trigger_type))
        return results

    def execute(
        self,
        workflow: models.Workflow,
        context: Dict[str, Any],
        trigger_type: Optional[str] = None,
        triggered_by: str = 'trigger',
        executed_by: Optional[uuid.UUID] = None,
    ) -> Dict[str, Any]:
        run = workflows_repo.create_run(
            self.db,
            workflow,
            status='running',
            triggered_by=triggered_by,
            trigger_data=context.get('trigger_data') or {},
            context=context,
            started_at=models.now_utc(),
            executed_by=executed_by,
        )
        workflows_repo.record_execution(self.db, workflow.id, started=True)
        self._log(run, 'info', f"Starting workflow: {workflow.name}")

        trigger_node = self._trigger_node(workflow, trigger_type)
        if trigger_node is None:
            return self._finish(workflow, run, 'failed', 0, "No trigger node found in workflow")
        run.trigger_node_id = trigger_node['id']
        self.db.commit()
        return self._walk(workflow, run, context, [trigger_node['id']])

    def resume(self, scheduled: models.WorkflowScheduledRun) -> Dict[str, Any]:
        """Continue a run parked on a delay node."""
        run = self.db.get(models.WorkflowRun, scheduled.run_id)
        workflow = self.db.get(models.Workflow, scheduled.workflow_id)
        if run is None or workflow is None:
            workflows_repo.close_continuation(self.db, scheduled, 'failed', "Workflow not found")
            return {'success': False, 'error': "Workflow not found"}
        if run.status != 'waiting':
            workflows_repo.close_continuation(self.db, scheduled, 'failed', f"Run is {run.status}")
            return {'success': False, 'error': f"Run is {run.status}"}
        run.status = 'running'
        self.db.commit()
        self._log(run, 'info', "Resuming after delay")
        result = self._walk(workflow, run, dict(run.context or {}), list(scheduled.next_node_ids or []))
        workflows_repo.close_continuation(
            self.db, scheduled, 'failed' if result['status'] == 'failed' else 'completed', result.get('error')
        )
        return result

    # === Graph walk ===

    def _trigger_node(self, workflow: models.Workflow, trigger_type: Optional[str]) -> Optional[Dict[str, Any]]:
        for node in workflow.nodes:
            if node.get('type') != 'trigger':
                continue
            if trigger_type is None or _node_data(node).get('trigger_type') == trigger_type:
                return node
        return None

    def _trigger_matches(self, node: Optional[Dict[str, Any]], context: Dict[str, Any]) -> bool:
        """Optional per-trigger filters set in the editor."""
        config = _node_data(node or {}).get('trigger_config') or {}
        data = context.get('trigger_data') or {}
        if config.get('days_before') is not None and data.get('days_remaining') is not None:
            if int(config['days_before']) != int(data['days_remaining']):
                return False
        if config.get('hours_before') is not None and data.get('hours_until_start') is not None:
            if int(config['hours_before']) != int(data['hours_until_start']):
                return False
        exercise_filter = config.get('exercise_filter')
        if exercise_filter and data.get('exercise_name') is not None:
            wanted = [exercise_filter] if isinstance(exercise_filter, str) else list(exercise_filter)
            if data['exercise_name'] not in wanted:
                return False
        return True

    def _walk(self, workflow: models.Workflow, run: models.WorkflowRun, context: Dict[str, Any], start: Iterable[str]):
        nodes = {node['id']: node for node in workflow.nodes}
        edges = workflow.edges
        queue = deque(start)
        executed = set()
        count = 0
        parked = False
        ctx = ActionContext(self.db, self.organization, context)

        while queue:
            node_id = queue.popleft()
            if node_id in executed or node_id not in nodes:
                continue
            node = nodes[node_id]
            started_at = models.now_utc()
            result = self._run_node(ctx, run, node, edges)
            executed.add(node_id)
            count += 1
            workflows_repo.add_node_run(self.db, run.id, node_id, result, started_at)

            config = _node_data(node).get('action_config') or {}
            if result['status'] == 'failed' and not config.get('continue_on_fail'):
                return self._finish(workflow, run, 'failed', count, result.get('error') or "Node execution failed")

            if result.get('delay_seconds') is not None:
                if result['next']:
                    when = self.now + timedelta(seconds=result['delay_seconds'])
                    workflows_repo.schedule_continuation(self.db, run, result['next'], when)
                    self._log(run, 'info', f"Scheduled continuation at {when.isoformat()}", node_id)
                    parked = True
                continue
            queue.extend(result['next'])

        return self._finish(workflow, run, 'waiting' if parked else 'completed', count)

    def _run_node(self, ctx: ActionContext, run, node: Dict[str, Any], edges) -> Dict[str, Any]:
        data = _node_data(node)
        node_type = node.get('type')
        successors = [edge['target'] for edge in edges if edge.get('source') == node['id']]

        if node_type == 'trigger':
            return {'status': 'completed', 'output': {'triggered': True, 'trigger_type': data.get('trigger_type')}, 'next': successors}

        action_type = data.get('action_type')
        config = data.get('action_config') or {}

        if node_type == 'condition' or action_type == 'condition_branch':
            outcome = evaluate_condition(config.get('expression'), ctx.context)
            handles = [edge for edge in edges if edge.get('source') == node['id'] and edge.get('sourceHandle') in ('true', 'false')]
            if handles:
                wanted = 'true' if outcome else 'false'
                following = [edge['target'] for edge in handles if edge['sourceHandle'] == wanted]
            else:
                following = successors if outcome else []
            return {'status': 'completed', 'output': {'condition_result': outcome}, 'next': following}

        if node_type == 'action' and action_type == 'delay':
            seconds = delay_seconds(config)
            return {
                'status': 'completed',
                'output': {'delayed': True, 'seconds': seconds},
                'next': successors,
                'delay_seconds': seconds,
            }

        if node_type == 'action' and action_type:
            result = execute_action(ctx, action_type, config)
            if result['success']:
                self._log(run, 'info', f"Action {action_type} completed", node['id'])
                return {'status': 'completed', 'output': result.get('data') or {}, 'next': successors}
            self._log(run, 'error', f"Action {action_type} failed: {result.get('error')}", node['id'])
            # continue_on_fail keeps walking past the failed node
            following = successors if config.get('continue_on_fail') else []
            return {'status': 'failed', 'output': result.get('data') or {}, 'error': result.get('error'), 'next': following}

        error = f"Unknown node type: {node_type}"
        self._log(run, 'error', error, node['id'])
        return {'status': 'failed', 'output': {}, 'error': error, 'next': []}

    def _finish(self, workflow, run, status: str, count: int, error: Optional[str] = None) -> Dict[str, Any]:
        run = workflows_repo.finish_run(self.db, run, status, error)
        if status in ('completed', 'failed'):
            workflows_repo.record_execution(self.db, workflow.id, outcome=status)
        if status == 'failed':
            self._log(run, 'error', f"Workflow failed: {error}")
            logger.warning("Workflow %s run %s failed: %s", workflow.id, run.id, error)
        elif status == 'completed':
            self._log(run, 'info', f"Workflow completed in {run.duration_ms or 0}ms")
        return {
            'workflow_id': workflow.id,
            'run_id': run.id,
            'success': status != 'failed',
            'status': status,
            'nodes_executed': count,
            'error': error,
        }

    def _log(self, run, level: str, message: str, node_id: Optional[str] = None) -> None:
        workflows_repo.add_log(self.db, run.id, level, message, node_id=node_id)


# === Event helpers ===

def trigger_member_created(db: Session, organization: models.Organization, member: models.Member) -> List[Dict[str, Any]]:
    data = {'event': 'member_created', 'member_id': str(member.id)}
    return WorkflowEngine(db, organization).trigger('member_created', member=member, data=data)


def trigger_personal_record(
    db: Session,
    organization: models.Organization,
    member: models.Member,
    exercise_name: str,
    new_value: float,
    unit: Optional[str],
    previous_value: Optional[float],
) -> List[Dict[str, Any]]:
    improvement = f"{new_value:g} (was {previous_value:g})" if previous_value is not None else f"{new_value:g}"
    data = {
        'event': 'personal_record_achieved',
        'member_id': str(member.id),
        'exercise_name': exercise_name,
        'new_value': new_value,
        'unit': unit,
        'previous_value': previous_value,
        'improvement': improvement,
    }
    return WorkflowEngine(db, organization).trigger('personal_record_achieved', member=member, data=data)


def _expiring_subscriptions(engine: WorkflowEngine) -> Dict[str, int]:
    results = {f"{days}_days": 0 for days in SUBSCRIPTION_REMINDER_DAYS}
    results['errors'] = 0
    today = engine.now.date()
    for days in SUBSCRIPTION_REMINDER_DAYS:
        target = today + timedelta(days=days)
        for subscription, member, _plan in billing_repo.get_expiring_subscriptions(engine.db, engine.organization.id, target, target):
            try:
                engine.trigger(
                    'subscription_expiring_soon',
                    member=member,
                    subscription=subscription,
                    data={
                        'event': 'subscription_expiring_soon',
                        'member_id': str(member.id),
                        'subscription_id': str(subscription.id),
                        'days_remaining': days,
                    },
                )
                results[f"{days}_days"] += 1
            except Exception as e:
                logger.error("Expiring-subscription trigger failed for %s: %s", subscription.id, e, exc_info=True)
                engine.db.rollback()
                results['errors'] += 1
    return results


def _upcoming_classes(engine: WorkflowEngine) -> Dict[str, int]:
    results = {f"{hours}_hours": 0 for hours in CLASS_REMINDER_HOURS}
    results['errors'] = 0
    for hours in CLASS_REMINDER_HOURS:
        start = engine.now + timedelta(hours=hours)
        rows = planning_repo.get_confirmed_bookings_between(engine.db, engine.organization.id, start, start + CLASS_WINDOW)
        for _booking, gym_class, member in rows:
            try:
                engine.trigger(
                    'class_starting_soon',
                    member=member,
                    gym_class=gym_class,
                    data={
                        'event': 'class_starting_soon',
                        'class_id': str(gym_class.id),
                        'member_id': str(member.id),
                        'hours_until_start': hours,
                    },
                )
                results[f"{hours}_hours"] += 1
            except Exception as e:
                logger.error("Class trigger failed for %s: %s", gym_class.id, e, exc_info=True)
                engine.db.rollback()
                results['errors'] += 1
    return results


def process_scheduled_runs(db: Session, now: Optional[datetime] = None) -> Dict[str, int]:
    now = now or models.now_utc()
    processed = errors = 0
    for scheduled in workflows_repo.due_continuations(db, now):
        workflow = db.get(models.Workflow, scheduled.workflow_id)
        organization = orgs_repo.get_organization(db, workflow.organization_id) if workflow else None
        if organization is None:
            workflows_repo.close_continuation(db, scheduled, 'failed', "Workflow not found")
            errors += 1
            continue
        result = WorkflowEngine(db, organization, now=now).resume(scheduled)
        if result.get('success'):
            processed += 1
        else:
            errors += 1
    return {'processed': processed, 'errors': errors}


def run_workflow_cron(db: Session, job: str = 'all', now: Optional[datetime] = None) -> Dict[str, Any]:
    """Time-based triggers for every active organization, then due continuations."""
    now = now or models.now_utc()
    organizations = orgs_repo.get_active_organizations(db)
    results: Dict[str, Any] = {}
    for org in organizations:
        engine = WorkflowEngine(db, org, now=now)
        org_results: Dict[str, Any] = {}
        if job in ('all', 'subscriptions'):
            org_results['subscriptions'] = _expiring_subscriptions(engine)
        if job in ('all', 'classes'):
            org_results['classes'] = _upcoming_classes(engine)
        results[str(org.id)] = org_results
    if job in ('all', 'scheduled'):
        results['scheduled'] = process_scheduled_runs(db, now)
    logger.info("Workflow cron (%s) done for %d organizations", job, len(organizations))
    return {'job': job, 'organizations': len(organizations), 'results': results}
