import uuid
from sqlalchemy import Column, String, Text, DateTime, Boolean, Integer, ForeignKey, Index, CheckConstraint
from sqlalchemy.dialects.postgresql import UUID, JSONB
from sqlalchemy.orm import relationship
from .base import Base, now_utc


TRIGGER_TYPES = (
    'member_created',
    'subscription_expiring_soon',
    'class_starting_soon',
    'personal_record_achieved',
    'manual_trigger',
)
RUN_STATUSES = ('pending', 'running', 'completed', 'failed', 'cancelled', 'waiting')
NODE_RUN_STATUSES = ('pending', 'running', 'completed', 'failed', 'skipped', 'waiting')
RUN_SOURCES = ('trigger', 'manual', 'api', 'schedule')
LOG_LEVELS = ('debug', 'info', 'warn', 'error')

DEFAULT_WORKFLOW_ICON = 'workflow'
DEFAULT_WORKFLOW_COLOR = '#6366f1'


def empty_canvas() -> dict:
    return {'nodes': [], 'edges': [], 'viewport': {'x': 0, 'y': 0, 'zoom': 1}}


def default_workflow_settings() -> dict:
    return {
        'timezone': 'Europe/Paris',
        'max_executions_per_day': 1000,
        'retry_failed': False,
        'retry_count': 3,
        'retry_delay_seconds': 60,
        'log_level': 'info',
        'notifications': {'on_failure': True, 'on_success': False, 'notify_emails': []},
    }


class Workflow(Base):
    """An automation: a graph of trigger, action and condition nodes."""
    __tablename__ = 'workflows'
    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    organization_id = Column(UUID(as_uuid=True), ForeignKey('organizations.id', ondelete='CASCADE'), nullable=False)
    name = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    icon = Column(String, nullable=False, default=DEFAULT_WORKFLOW_ICON)
    color = Column(String, nullable=False, default=DEFAULT_WORKFLOW_COLOR)
    tags = Column(JSONB, nullable=False, default=list)
    is_active = Column(Boolean, nullable=False, default=False)
    version = Column(Integer, nullable=False, default=1)
    # {nodes: [...], edges: [...], viewport: {...}}
    canvas_data = Column(JSONB, nullable=False, default=empty_canvas)
    settings = Column(JSONB, nullable=False, default=default_workflow_settings)
    total_executions = Column(Integer, nullable=False, default=0)
    successful_executions = Column(Integer, nullable=False, default=0)
    failed_executions = Column(Integer, nullable=False, default=0)
    last_executed_at = Column(DateTime(timezone=True), nullable=True)
    created_by = Column(UUID(as_uuid=True), ForeignKey('users.id', ondelete='SET NULL'), nullable=True)
    updated_by = Column(UUID(as_uuid=True), ForeignKey('users.id', ondelete='SET NULL'), nullable=True)
    created_at = Column(DateTime(timezone=True), default=now_utc)
    updated_at = Column(DateTime(timezone=True), default=now_utc, onupdate=now_utc)

    __table_args__ = (
        Index('ix_workflows_organization_id_is_active', 'organization_id', 'is_active'),
    )

    @property
    def nodes(self):
        return (self.canvas_data or {}).get('nodes') or []

    @property
    def edges(self):
        return (self.canvas_data or {}).get('edges') or []

    def trigger_types(self):
        return {
            (node.get('data') or {}).get('trigger_type')
            for node in self.nodes
            if node.get('type') == 'trigger'
        }


class WorkflowRun(Base):
    __tablename__ = 'workflow_runs'
    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    workflow_id = Column(UUID(as_uuid=True), ForeignKey('workflows.id', ondelete='CASCADE'), nullable=False)
    organization_id = Column(UUID(as_uuid=True), ForeignKey('organizations.id', ondelete='CASCADE'), nullable=False)
    status = Column(String, nullable=False, default='pending')
    triggered_by = Column(String, nullable=False, default='trigger')
    trigger_node_id = Column(String, nullable=True)
    trigger_data = Column(JSONB, nullable=False, default=dict)
    # Snapshot of the expression context the run started with
    context = Column(JSONB, nullable=False, default=dict)
    error_message = Column(Text, nullable=True)
    started_at = Column(DateTime(timezone=True), nullable=True)
    completed_at = Column(DateTime(timezone=True), nullable=True)
    duration_ms = Column(Integer, nullable=True)
    executed_by = Column(UUID(as_uuid=True), ForeignKey('users.id', ondelete='SET NULL'), nullable=True)
    created_at = Column(DateTime(timezone=True), default=now_utc)

    node_runs = relationship(
        "WorkflowNodeRun",
        back_populates="run",
        order_by="WorkflowNodeRun.created_at",
        cascade="all, delete-orphan",
    )

    __table_args__ = (
        Index('ix_workflow_runs_workflow_id_created_at', 'workflow_id', 'created_at'),
        CheckConstraint(
            "status in ('pending','running','completed','failed','cancelled','waiting')",
            name='ck_workflow_runs_status',
        ),
    )


class WorkflowNodeRun(Base):
    __tablename__ = 'workflow_node_runs'
    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    run_id = Column(UUID(as_uuid=True), ForeignKey('workflow_runs.id', ondelete='CASCADE'), nullable=False)
    node_id = Column(String, nullable=False)
    status = Column(String, nullable=False)
    output_data = Column(JSONB, nullable=False, default=dict)
    error_message = Column(Text, nullable=True)
    started_at = Column(DateTime(timezone=True), nullable=True)
    completed_at = Column(DateTime(timezone=True), nullable=True)
    duration_ms = Column(Integer, nullable=True)
    created_at = Column(DateTime(timezone=True), default=now_utc)

    run = relationship("WorkflowRun", back_populates="node_runs")


class WorkflowLog(Base):
    __tablename__ = 'workflow_logs'
    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    run_id = Column(UUID(as_uuid=True), ForeignKey('workflow_runs.id', ondelete='CASCADE'), nullable=False)
    node_id = Column(String, nullable=True)
    level = Column(String, nullable=False, default='info')
    message = Column(Text, nullable=False)
    data = Column(JSONB, nullable=False, default=dict)
    created_at = Column(DateTime(timezone=True), default=now_utc)

    __table_args__ = (
        Index('ix_workflow_logs_run_id_created_at', 'run_id', 'created_at'),
    )


class WorkflowScheduledRun(Base):
    """Continuation of a run paused on a delay node."""
    __tablename__ = 'workflow_scheduled_runs'
    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    run_id = Column(UUID(as_uuid=True), ForeignKey('workflow_runs.id', ondelete='CASCADE'), nullable=False)
    workflow_id = Column(UUID(as_uuid=True), ForeignKey('workflows.id', ondelete='CASCADE'), nullable=False)
    scheduled_for = Column(DateTime(timezone=True), nullable=False)
    next_node_ids = Column(JSONB, nullable=False, default=list)
    status = Column(String, nullable=False, default='pending')  # 'pending'|'completed'|'failed'
    error_message = Column(Text, nullable=True)
    executed_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), default=now_utc)

    __table_args__ = (
        Index('ix_workflow_scheduled_runs_status_scheduled_for', 'status', 'scheduled_for'),
    )
