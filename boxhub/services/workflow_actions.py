"""
Action handlers for workflow nodes.

Each handler takes `(ctx, config)` where `ctx` is an `ActionContext` carrying
the session, the organization and the run's expression context, and returns
`{'success': bool, 'data': {...}, 'error': str}`. Handlers never raise;
`execute_action` turns an unexpected exception into a failed result.

String config values may contain `{{path.to.value}}` placeholders, resolved
against the run context (`member.first_name`, `trigger_data.new_value`, ...).
"""

import logging
import re
import uuid
from datetime import date
from typing import Any, Callable, Dict, Optional

from sqlalchemy.orm import Session

from boxhub.db import models
from boxhub.db.models.members import MEMBER_STATUSES
from boxhub.db.repositories import billing as billing_repo
from boxhub.db.repositories import planning as planning_repo
from boxhub.db.repositories import workflows as workflows_repo
from boxhub.services.discord_service import COLORS, DiscordService
from boxhub.services.notification_service import NotificationService

logger = logging.getLogger(__name__)

_PLACEHOLDER = re.compile(r'\{\{(.+?)\}\}')

# Member columns an automation may write; `tags` is the only list field.
UPDATABLE_MEMBER_FIELDS = ('status', 'notes', 'phone', 'address', 'tags')
LIST_MEMBER_FIELDS = ('tags',)

EMBED_FOOTER = 'BoxHub'


def get_path(context: Dict[str, Any], path: str) -> Any:
    current: Any = context
    for part in path.split('.'):
        if current is None:
            return None
        if isinstance(current, dict):
            current = current.get(part)
        elif isinstance(current, list) and part.isdigit():
            index = int(part)
            current = current[index] if index < len(current) else None
        else:
            return None
    return current


def _as_text(value: Any) -> str:
    if value is None:
        return ''
    if isinstance(value, bool):
        return 'true' if value else 'false'
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def interpolate(template: Optional[str], context: Dict[str, Any]) -> str:
    """Replace `{{a.b}}` with the context value; missing paths become ''."""
    if not template:
        return ''
    return _PLACEHOLDER.sub(lambda m: _as_text(get_path(context, m.group(1).strip())), template)


def _interpolate_values(values: Dict[str, Any], context: Dict[str, Any]) -> Dict[str, Any]:
    return {key: interpolate(value, context) if isinstance(value, str) else value for key, value in values.items()}


def hex_to_int(color: Optional[str], default: int = COLORS['primary']) -> int:
    if not color:
        return default
    try:
        return int(color.lstrip('#'), 16) or default
    except ValueError:
        return default


class ActionContext:
    def __init__(self, db: Session, organization: models.Organization, context: Dict[str, Any]):
        self.db = db
        self.organization = organization
        self.context = context

    def member(self) -> Optional[models.Member]:
        member_id = get_path(self.context, 'member.id')
        if not member_id:
            return None
        member = self.db.get(models.Member, uuid.UUID(str(member_id)))
        if member is None or member.organization_id != self.organization.id:
            return None
        return member


def _ok(**data) -> Dict[str, Any]:
    return {'success': True, 'data': data}


def _fail(error: str, **data) -> Dict[str, Any]:
    return {'success': False, 'error': error, 'data': data}


def _from_send(result: Dict[str, Any]) -> Dict[str, Any]:
    if result.get('success'):
        return _ok(message_id=result.get('message_id'))
    return _fail(result.get('error') or 'Envoi impossible', skipped=bool(result.get('skipped')))


# === Handlers ===

def send_email(ctx: ActionContext, config: Dict[str, Any]) -> Dict[str, Any]:
    member = ctx.member()
    template = config.get('template') or 'custom'
    service = NotificationService(ctx.db)

    if template == 'welcome':
        if member is None:
            return _fail("Member context required for welcome email")
        return _from_send(service.notify_welcome(member))

    if template == 'class_reminder':
        class_id = get_path(ctx.context, 'class.id')
        gym_class = planning_repo.get_class(ctx.db, ctx.organization.id, uuid.UUID(class_id)) if class_id else None
        if member is None or gym_class is None:
            return _fail("Member and class context required")
        return _from_send(service.notify_class_reminder(member, gym_class))

    if template in ('subscription_expiring', 'renewal_reminder'):
        subscription_id = get_path(ctx.context, 'subscription.id')
        subscription = (
            billing_repo.get_subscription(ctx.db, ctx.organization.id, uuid.UUID(subscription_id))
            if subscription_id else None
        )
        if member is None or subscription is None or subscription.end_date is None:
            return _fail("Member and subscription context required")
        plan_name = get_path(ctx.context, 'subscription.plan_name') or ''
        return _from_send(service.notify_subscription_expiring(member, subscription, plan_name))

    subject = interpolate(config.get('subject'), ctx.context) or ctx.organization.name
    content = interpolate(config.get('content'), ctx.context)
    to_field = config.get('to_field')
    recipient = get_path(ctx.context, to_field) if to_field else (member.email if member else None)
    if not recipient:
        return _fail("No recipient email found")
    if member is not None and recipient == member.email:
        return _from_send(service.send_custom_message(member, subject, content))
    result = service.send_email(
        organization=ctx.organization,
        recipient_email=str(recipient),
        recipient_name=None,
        template_type='custom',
        template_name='custom_message',
        subject=subject,
        context={'member_name': '', 'message': content},
        metadata={'source': 'workflow'},
    )
    return _from_send(result)


def send_in_app_notification(ctx: ActionContext, config: Dict[str, Any]) -> Dict[str, Any]:
    member = ctx.member()
    if member is None:
        return _fail("Member context required for in-app notification")
    title = interpolate(config.get('title'), ctx.context)
    message = interpolate(config.get('message'), ctx.context)
    if not title or not message:
        return _fail("Title and message required")
    notification = workflows_repo.create_member_notification(
        ctx.db,
        organization_id=ctx.organization.id,
        member_id=member.id,
        title=title[:200],
        message=message,
        link=interpolate(config.get('link'), ctx.context) or None,
        icon=config.get('icon'),
        type='workflow',
    )
    return _ok(notification_id=str(notification.id))


def send_discord_message(ctx: ActionContext, config: Dict[str, Any]) -> Dict[str, Any]:
    content = interpolate(config.get('message'), ctx.context) or None
    title = interpolate(config.get('embed_title'), ctx.context)
    description = interpolate(config.get('embed_description'), ctx.context)
    embed = None
    if title or description:
        embed = {
            'title': title or None,
            'description': description or None,
            'color': hex_to_int(config.get('embed_color')),
            'footer': {'text': EMBED_FOOTER},
        }
    webhook_url = None
    if config.get('use_org_webhook') is False:
        webhook_url = config.get('webhook_url')
    member = ctx.member()
    result = DiscordService(ctx.db, ctx.organization).send_workflow_message(
        content=content,
        embed=embed,
        webhook_url=webhook_url,
        member_id=member.id if member else None,
    )
    return _from_send(result)


def update_member(ctx: ActionContext, config: Dict[str, Any]) -> Dict[str, Any]:
    member = ctx.member()
    if member is None:
        return _fail("Member context required")
    field = config.get('field')
    if field not in UPDATABLE_MEMBER_FIELDS:
        return _fail(f"Field not allowed: {field}")
    operation = config.get('operation') or 'set'
    value = interpolate(config.get('value'), ctx.context)

    if operation in ('append', 'remove'):
        if field not in LIST_MEMBER_FIELDS:
            return _fail(f"Cannot {operation} on non-array field")
        current = list(getattr(member, field) or [])
        if operation == 'append':
            if value not in current:
                current.append(value)
        else:
            current = [item for item in current if item != value]
        setattr(member, field, current)
    elif operation == 'set':
        if field in LIST_MEMBER_FIELDS:
            return _fail(f"Cannot set list field {field}")
        if field == 'status' and value not in MEMBER_STATUSES:
            return _fail(f"Invalid member status: {value}")
        setattr(member, field, value or None)
    else:
        return _fail(f"Unknown operation: {operation}")
    ctx.db.commit()
    return _ok(field=field, value=value, operation=operation)


def _change_tag(ctx: ActionContext, config: Dict[str, Any], add: bool) -> Dict[str, Any]:
    member = ctx.member()
    tag = interpolate(config.get('tag'), ctx.context).strip()
    if member is None or not tag:
        return _fail("Member context and tag required")
    tags = list(member.tags or [])
    if add:
        if tag in tags:
            return _ok(tag=tag, action='already_exists')
        member.tags = tags + [tag]
        outcome = 'added'
    else:
        if tag not in tags:
            return _ok(tag=tag, action='not_found')
        member.tags = [t for t in tags if t != tag]
        outcome = 'removed'
    ctx.db.commit()
    return _ok(tag=tag, action=outcome)


def add_member_tag(ctx: ActionContext, config: Dict[str, Any]) -> Dict[str, Any]:
    return _change_tag(ctx, config, add=True)


def remove_member_tag(ctx: ActionContext, config: Dict[str, Any]) -> Dict[str, Any]:
    return _change_tag(ctx, config, add=False)


_LOG_LEVELS = {'debug': logging.DEBUG, 'info': logging.INFO, 'warn': logging.WARNING, 'error': logging.ERROR}


def log_event(ctx: ActionContext, config: Dict[str, Any]) -> Dict[str, Any]:
    message = interpolate(config.get('message'), ctx.context)
    level = config.get('level') or 'info'
    data = _interpolate_values(config.get('data') or {}, ctx.context)
    logger.log(_LOG_LEVELS.get(level, logging.INFO), "[workflow %s] %s %s", ctx.organization.id, message, data)
    return _ok(message=message, level=level, logged_data=data)


ACTION_HANDLERS: Dict[str, Callable[[ActionContext, Dict[str, Any]], Dict[str, Any]]] = {
    'send_email': send_email,
    'send_in_app_notification': send_in_app_notification,
    'send_discord_message': send_discord_message,
    'update_member': update_member,
    'add_member_tag': add_member_tag,
    'remove_member_tag': remove_member_tag,
    'log_event': log_event,
}


def execute_action(ctx: ActionContext, action_type: str, config: Dict[str, Any]) -> Dict[str, Any]:
    handler = ACTION_HANDLERS.get(action_type)
    if handler is None:
        return _fail(f"Unknown action type: {action_type}")
    try:
        return handler(ctx, config or {})
    except Exception as e:
        logger.error("Workflow action %s failed: %s", action_type, e, exc_info=True)
        ctx.db.rollback()
        return _fail(str(e) or 'Action execution failed')


def days_until(end: Optional[date], today: date) -> Optional[int]:
    return None if end is None else (end - today).days
