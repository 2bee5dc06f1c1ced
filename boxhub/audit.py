"""
Audit logging helpers and enums.

Centralized helpers to persist normalized audit records for staff actions;
includes convenience wrappers per target type.
"""
from __future__ import annotations
import uuid
from enum import Enum
from typing import Any, Optional, Dict
from sqlalchemy.orm import Session

from boxhub.db import schemas
from boxhub.db.repositories import audits as audits_repo


class AuditAction(str, Enum):
    # Organization
    ORGANIZATION_CREATE = "organization_create"
    ORGANIZATION_UPDATE = "organization_update"
    ORGANIZATION_DELETE = "organization_delete"
    # Staff
    STAFF_ADD = "staff_add"
    STAFF_REMOVE = "staff_remove"
    STAFF_ROLE_CHANGE = "staff_role_change"
    # Members
    MEMBER_CREATE = "member_create"
    MEMBER_UPDATE = "member_update"
    MEMBER_ARCHIVE = "member_archive"
    MEMBER_IMPORT = "member_import"
    # Billing
    PLAN_CREATE = "plan_create"
    PLAN_UPDATE = "plan_update"
    PLAN_DEACTIVATE = "plan_deactivate"
    SUBSCRIPTION_CREATE = "subscription_create"
    SUBSCRIPTION_UPDATE = "subscription_update"
    SUBSCRIPTION_CANCEL = "subscription_cancel"
    SUBSCRIPTION_PAUSE = "subscription_pause"
    SUBSCRIPTION_RESUME = "subscription_resume"
    PAYMENT_CREATE = "payment_create"
    PAYMENT_MARK_PAID = "payment_mark_paid"
    PAYMENT_REFUND = "payment_refund"
    PAYMENT_CANCEL = "payment_cancel"
    # Planning
    CLASS_CREATE = "class_create"
    CLASS_UPDATE = "class_update"
    CLASS_DELETE = "class_delete"
    CLASS_CANCEL = "class_cancel"
    CLASS_RECURRING_CREATE = "class_recurring_create"
    CLASS_RECURRING_DELETE = "class_recurring_delete"
    BOOKING_CREATE = "booking_create"
    BOOKING_CANCEL = "booking_cancel"
    BOOKING_CHECK_IN = "booking_check_in"
    BOOKING_NO_SHOW = "booking_no_show"
    # Workouts
    WORKOUT_CREATE = "workout_create"
    WORKOUT_UPDATE = "workout_update"
    WORKOUT_DELETE = "workout_delete"
    WORKOUT_PUBLISH = "workout_publish"
    # Settings
    NOTIFICATION_SETTINGS_UPDATE = "notification_settings_update"
    DISCORD_CONFIG_UPDATE = "discord_config_update"
    BULK_EMAIL_SEND = "bulk_email_send"
    # Automation
    WORKFLOW_CREATE = "workflow_create"
    WORKFLOW_UPDATE = "workflow_update"
    WORKFLOW_DELETE = "workflow_delete"
    WORKFLOW_TOGGLE = "workflow_toggle"
    WORKFLOW_RUN = "workflow_run"
    # Platform
    PLATFORM_ORG_CREATE = "platform_org_create"
    PLATFORM_ORG_SUSPEND = "platform_org_suspend"
    PLATFORM_ORG_ACTIVATE = "platform_org_activate"
    PLATFORM_PLAN_CHANGE = "platform_plan_change"
    PLATFORM_SUBSCRIPTION_STATUS = "platform_subscription_status"
    PLATFORM_PLAN_UPDATE = "platform_plan_update"
    OWNER_INVITE = "owner_invite"
    INVITATION_ACCEPT = "invitation_accept"
    INVITATION_REVOKE = "invitation_revoke"


class AuditStatus(str, Enum):
    SUCCESS = "success"
    FAILURE = "failure"


def log(
    db: Session,
    *,
    action: AuditAction | str,
    status: AuditStatus | str = AuditStatus.SUCCESS,
    target_type: str,
    target_id: Optional[uuid.UUID] = None,
    actor_user_id: Optional[uuid.UUID],
    organization_id: Optional[uuid.UUID] = None,
    reason: Optional[str] = None,
    metadata: Optional[Dict[str, Any]] = None,
):
    """Central audit logging helper."""
    # Persist plain strings, not Enum reprs
    action_value = action.value if isinstance(action, AuditAction) else str(action)
    status_value = status.value if isinstance(status, AuditStatus) else str(status)
    audit_log = schemas.AuditLogCreate(
        action_type=action_value,
        status=status_value,
        target_type=target_type,
        target_id=target_id,
        reason=reason,
        metadata=metadata or {},
    )
    return audits_repo.insert_entry(
        db,
        audit_log,
        actor_user_id=actor_user_id,
        organization_id=organization_id,
    )


__all__ = ["AuditAction", "AuditStatus", "log"]


def log_member(db: Session, *, actor_user_id: uuid.UUID, organization_id: uuid.UUID, member_id: uuid.UUID, action: AuditAction, name: Optional[str] = None, status: AuditStatus | str = AuditStatus.SUCCESS):
    return log(
        db,
        action=action,
        status=status,
        target_type="member",
        target_id=member_id,
        actor_user_id=actor_user_id,
        organization_id=organization_id,
        metadata={"name": name} if name else None,
    )


def log_class(db: Session, *, actor_user_id: uuid.UUID, organization_id: uuid.UUID, class_id: Optional[uuid.UUID], action: AuditAction, status: AuditStatus | str = AuditStatus.SUCCESS, metadata: Optional[Dict[str, Any]] = None):
    return log(
        db,
        action=action,
        status=status,
        target_type="class",
        target_id=class_id,
        actor_user_id=actor_user_id,
        organization_id=organization_id,
        metadata=metadata,
    )


def log_billing(db: Session, *, actor_user_id: uuid.UUID, organization_id: uuid.UUID, target_type: str, target_id: uuid.UUID, action: AuditAction, status: AuditStatus | str = AuditStatus.SUCCESS, metadata: Optional[Dict[str, Any]] = None):
    return log(
        db,
        action=action,
        status=status,
        target_type=target_type,
        target_id=target_id,
        actor_user_id=actor_user_id,
        organization_id=organization_id,
        metadata=metadata,
    )


__all__.extend(["log_member", "log_class", "log_billing"])
