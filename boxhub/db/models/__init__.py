"""
Domain-split SQLAlchemy models.

Exposes `Base`, the time helpers and every ORM class so callers can write
`from boxhub.db import models` and use `models.Member`, `models.Booking`, ...
"""

from .base import Base, now_utc, today_utc  # re-export

from .users import User
from .organizations import Organization, OrganizationMembership
from .members import Member
from .billing import Plan, Subscription, Payment
from .planning import ClassTemplate, GymClass, Booking
from .workouts import Exercise, Workout, WorkoutBlock, BlockExercise, WorkoutScore, PersonalRecord
from .notifications import NotificationSettings, MemberNotificationPreference, EmailLog, MemberNotification
from .tv import TVState
from .rgpd import MemberConsent, RgpdRequest, RgpdAuditLog
from .discord import DiscordConfig, DiscordLog
from .audit import AuditLog
from .platform import PlatformPlan, OrganizationInvitation
from .teams import Team, TeamMember, CardioStation, TeamTemplate
from .workflows import Workflow, WorkflowRun, WorkflowNodeRun, WorkflowLog, WorkflowScheduledRun

__all__ = [
    # base
    "Base",
    "now_utc",
    "today_utc",
    # users/orgs
    "User",
    "Organization",
    "OrganizationMembership",
    "Member",
    # billing
    "Plan",
    "Subscription",
    "Payment",
    # planning
    "ClassTemplate",
    "GymClass",
    "Booking",
    # workouts
    "Exercise",
    "Workout",
    "WorkoutBlock",
    "BlockExercise",
    "WorkoutScore",
    "PersonalRecord",
    # notifications
    "NotificationSettings",
    "MemberNotificationPreference",
    "EmailLog",
    "MemberNotification",
    # display / compliance / integrations
    "TVState",
    "MemberConsent",
    "RgpdRequest",
    "RgpdAuditLog",
    "DiscordConfig",
    "DiscordLog",
    "AuditLog",
    # platform
    "PlatformPlan",
    "OrganizationInvitation",
    # teams
    "Team",
    "TeamMember",
    "CardioStation",
    "TeamTemplate",
    # automation
    "Workflow",
    "WorkflowRun",
    "WorkflowNodeRun",
    "WorkflowLog",
    "WorkflowScheduledRun",
]
