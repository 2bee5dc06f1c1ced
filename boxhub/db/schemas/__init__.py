"""
Domain-split Pydantic schemas with a single aggregator.

Routers import `from boxhub.db import schemas` and use `schemas.Member`,
`schemas.BookingCreate`, ...
"""

from .users import UserBase, UserCreate, User
from .organizations import (
    OrganizationBase,
    OrganizationCreate,
    OrganizationUpdate,
    Organization,
    StaffMemberCreate,
    StaffMemberUpdate,
    StaffMember,
)
from .members import (
    MemberBase,
    MemberCreate,
    MemberUpdate,
    Member,
    PaginatedMembers,
    MemberCounts,
    MemberImportResult,
)
from .billing import (
    PlanBase,
    PlanCreate,
    PlanUpdate,
    Plan,
    SubscriptionCreate,
    SubscriptionUpdate,
    Subscription,
    PaymentCreate,
    PaymentRefund,
    Payment,
    BillingStats,
)
from .planning import (
    ClassTemplateBase,
    ClassTemplateCreate,
    ClassTemplateUpdate,
    ClassTemplate,
    GymClassCreate,
    GymClassUpdate,
    GymClass,
    ClassCancel,
    BookingCreate,
    BookingCancel,
    Booking,
    RecurringClassesCreate,
    RecurringClassesDelete,
    WorkoutLink,
    PlanningStats,
    ClassBooking,
    GymClassDetail,
    BookingCancelResult,
    ClassCancelResult,
    RecurringClassesResult,
    RecurringDeleteResult,
    MemberClass,
    MemberBookingCreate,
    MemberBookingHistoryItem,
)
from .workouts import (
    ExerciseCreate,
    Exercise,
    BlockExerciseCreate,
    BlockExercise,
    WorkoutBlockCreate,
    WorkoutBlockUpdate,
    WorkoutBlock,
    WorkoutCreate,
    WorkoutUpdate,
    WorkoutSummary,
    Workout,
    WorkoutDuplicate,
    ScoreCreate,
    WorkoutScore,
    LeaderboardEntry,
    PersonalRecordCreate,
    PersonalRecord,
    WorkoutHistoryItem,
)
from .notifications import (
    NotificationSettingsUpdate,
    NotificationSettings,
    MemberPreferencesUpdate,
    MemberPreferences,
    EmailLog,
    EmailStats,
    EmailStatusUpdate,
    BulkEmailRequest,
    BatchResult,
    EmailLogList,
)
from .tv import (
    TimerState,
    TimerUpdate,
    TVStateUpdate,
    TVState,
    TVShowWorkout,
    TVWaiting,
    TVTeams,
    TVOrganization,
    TVDisplay,
)
from .rgpd import (
    ConsentCreate,
    MemberConsent,
    RgpdRequestCreate,
    RgpdRequestProcess,
    RgpdRequest,
    RgpdRequestCounts,
    RgpdAuditLog,
    ConsentStat,
)
from .discord import (
    DiscordConfigUpdate,
    DiscordConfig,
    DiscordWebhookTest,
    DiscordAnnouncement,
    DiscordCustomMessage,
    DiscordLog,
)
from .audits import AuditLogBase, AuditLogCreate, AuditLog
from .teams import (
    TeamCreate,
    TeamUpdate,
    TeamMemberAdd,
    TeamMemberStation,
    TeamMember,
    Team,
    RandomTeamsCreate,
    CardioAssignment,
    StationAssignmentEntry,
    CardioStationCreate,
    CardioStationUpdate,
    CardioStationBulkCreate,
    CardioStation,
    TeamTemplateConfig,
    TeamTemplateCreate,
    TeamTemplate,
    TeamsOnScreen,
)
from .workflows import (
    WorkflowCanvas,
    WorkflowCreate,
    WorkflowUpdate,
    WorkflowDuplicate,
    Workflow,
    WorkflowTrigger,
    WorkflowEvent,
    ExecutionResult,
    WorkflowNodeRun,
    WorkflowRun,
    WorkflowRunDetail,
    WorkflowLog,
    WorkflowStats,
    MemberNotification,
)
from .platform import (
    PlatformPlan,
    PlatformPlanUpdate,
    PlatformOrganizationCreate,
    PlatformOrganization,
    PlatformOrganizationList,
    SuspendRequest,
    ChangePlanRequest,
    SubscriptionStatusUpdate,
    OwnerInvite,
    Invitation,
    InvitationPreview,
    PlanLimits,
    PlatformStats,
)
from .dashboard import (
    MemberStats,
    SubscriptionStats,
    PlanningOverview,
    RecentBooking,
    DashboardStats,
    RevenuePoint,
    AttendancePoint,
)

__all__ = [
    # users / orgs
    "UserBase", "UserCreate", "User",
    "OrganizationBase", "OrganizationCreate", "OrganizationUpdate", "Organization",
    "StaffMemberCreate", "StaffMemberUpdate", "StaffMember",
    # members
    "MemberBase", "MemberCreate", "MemberUpdate", "Member", "PaginatedMembers", "MemberCounts",
    "MemberImportResult",
    # billing
    "PlanBase", "PlanCreate", "PlanUpdate", "Plan",
    "SubscriptionCreate", "SubscriptionUpdate", "Subscription",
    "PaymentCreate", "PaymentRefund", "Payment", "BillingStats",
    # planning
    "ClassTemplateBase", "ClassTemplateCreate", "ClassTemplateUpdate", "ClassTemplate",
    "GymClassCreate", "GymClassUpdate", "GymClass", "ClassCancel",
    "BookingCreate", "BookingCancel", "Booking",
    "RecurringClassesCreate", "RecurringClassesDelete", "WorkoutLink", "PlanningStats",
    "ClassBooking", "GymClassDetail", "BookingCancelResult", "ClassCancelResult",
    "RecurringClassesResult", "RecurringDeleteResult", "MemberClass",
    "MemberBookingCreate", "MemberBookingHistoryItem",
    # workouts
    "ExerciseCreate", "Exercise", "BlockExerciseCreate", "BlockExercise",
    "WorkoutBlockCreate", "WorkoutBlockUpdate", "WorkoutBlock",
    "WorkoutCreate", "WorkoutUpdate", "WorkoutSummary", "Workout", "WorkoutDuplicate",
    "ScoreCreate", "WorkoutScore", "LeaderboardEntry",
    "PersonalRecordCreate", "PersonalRecord", "WorkoutHistoryItem",
    # notifications
    "NotificationSettingsUpdate", "NotificationSettings", "MemberPreferencesUpdate", "MemberPreferences",
    "EmailLog", "EmailStats", "EmailStatusUpdate", "BulkEmailRequest", "BatchResult", "EmailLogList",
    # tv
    "TimerState", "TimerUpdate", "TVStateUpdate", "TVState",
    "TVShowWorkout", "TVWaiting", "TVTeams", "TVOrganization", "TVDisplay",
    # rgpd
    "ConsentCreate", "MemberConsent", "RgpdRequestCreate", "RgpdRequestProcess", "RgpdRequest",
    "RgpdRequestCounts", "RgpdAuditLog", "ConsentStat",
    # discord
    "DiscordConfigUpdate", "DiscordConfig", "DiscordWebhookTest", "DiscordAnnouncement",
    "DiscordCustomMessage", "DiscordLog",
    # audit
    "AuditLogBase", "AuditLogCreate", "AuditLog",
    # dashboard
    "MemberStats", "SubscriptionStats", "PlanningOverview", "RecentBooking",
    "DashboardStats", "RevenuePoint", "AttendancePoint",
    # teams
    "TeamCreate", "TeamUpdate", "TeamMemberAdd", "TeamMemberStation", "TeamMember", "Team",
    "RandomTeamsCreate", "CardioAssignment", "StationAssignmentEntry",
    "CardioStationCreate", "CardioStationUpdate", "CardioStationBulkCreate", "CardioStation",
    "TeamTemplateConfig", "TeamTemplateCreate", "TeamTemplate", "TeamsOnScreen",
    # workflows
    "WorkflowCanvas", "WorkflowCreate", "WorkflowUpdate", "WorkflowDuplicate", "Workflow",
    "WorkflowTrigger", "WorkflowEvent", "ExecutionResult", "WorkflowNodeRun", "WorkflowRun",
    "WorkflowRunDetail", "WorkflowLog", "WorkflowStats", "MemberNotification",
    # platform
    "PlatformPlan", "PlatformPlanUpdate", "PlatformOrganizationCreate", "PlatformOrganization",
    "PlatformOrganizationList", "SuspendRequest", "ChangePlanRequest", "SubscriptionStatusUpdate",
    "OwnerInvite", "Invitation", "InvitationPreview", "PlanLimits", "PlatformStats",
]
