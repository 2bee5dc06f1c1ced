import uuid
from datetime import datetime
from typing import Any, Dict, List, Literal, Optional
from pydantic import BaseModel, ConfigDict, Field, field_validator


TriggerType = Literal[
    'member_created',
    'subscription_expiring_soon',
    'class_starting_soon',
    'personal_record_achieved',
    'manual_trigger',
]


class WorkflowCanvas(BaseModel):
    """Editor graph. Nodes: {id, type, position, data}; edges: {id, source, target, sourceHandle}."""
    nodes: List[Dict[str, Any]] = Field(default_factory=list)
    edges: List[Dict[str, Any]] = Field(default_factory=list)
    viewport: Dict[str, Any] = Field(default_factory=lambda: {'x': 0, 'y': 0, 'zoom': 1})

    @field_validator('nodes')
    @classmethod
    def _nodes_have_ids(cls, nodes):
        ids = [node.get('id') for node in nodes]
        if any(not node_id for node_id in ids):
            raise ValueError("chaque noeud doit avoir un id")
        if len(set(ids)) != len(ids):
            raise ValueError("ids de noeuds en double")
        return nodes


class WorkflowCreate(BaseModel):
    name: str = Field(min_length=1)
    description: Optional[str] = None
    icon: Optional[str] = None
    color: Optional[str] = None
    tags: List[str] = Field(default_factory=list)
    canvas_data: Optional[WorkflowCanvas] = None
    settings: Optional[Dict[str, Any]] = None


class WorkflowUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1)
    description: Optional[str] = None
    icon: Optional[str] = None
    color: Optional[str] = None
    tags: Optional[List[str]] = None
    is_active: Optional[bool] = None
    canvas_data: Optional[WorkflowCanvas] = None
    # Merged into the stored settings
    settings: Optional[Dict[str, Any]] = None

    @field_validator('name', 'icon', 'color', 'tags', 'is_active', 'canvas_data')
    @classmethod
    def _reject_null(cls, value):
        if value is None:
            raise ValueError("ne peut pas etre null")
        return value


class WorkflowDuplicate(BaseModel):
    name: Optional[str] = None


class Workflow(BaseModel):
    id: uuid.UUID
    organization_id: uuid.UUID
    name: str
    description: Optional[str] = None
    icon: str
    color: str
    tags: List[str] = Field(default_factory=list)
    is_active: bool
    version: int
    canvas_data: Dict[str, Any]
    settings: Dict[str, Any]
    total_executions: int
    successful_executions: int
    failed_executions: int
    last_executed_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime
    model_config = ConfigDict(from_attributes=True)


class WorkflowTrigger(BaseModel):
    """Manual start, optionally scoped to a member."""
    member_id: Optional[uuid.UUID] = None
    data: Dict[str, Any] = Field(default_factory=dict)


class WorkflowEvent(BaseModel):
    trigger_type: TriggerType
    member_id: Optional[uuid.UUID] = None
    subscription_id: Optional[uuid.UUID] = None
    class_id: Optional[uuid.UUID] = None
    data: Dict[str, Any] = Field(default_factory=dict)


class ExecutionResult(BaseModel):
    workflow_id: uuid.UUID
    run_id: Optional[uuid.UUID] = None
    success: bool
    status: str
    nodes_executed: int = 0
    error: Optional[str] = None


class WorkflowNodeRun(BaseModel):
    id: uuid.UUID
    node_id: str
    status: str
    output_data: Dict[str, Any] = Field(default_factory=dict)
    error_message: Optional[str] = None
    duration_ms: Optional[int] = None
    created_at: datetime
    model_config = ConfigDict(from_attributes=True)


class WorkflowRun(BaseModel):
    id: uuid.UUID
    workflow_id: uuid.UUID
    status: str
    triggered_by: str
    trigger_node_id: Optional[str] = None
    trigger_data: Dict[str, Any] = Field(default_factory=dict)
    error_message: Optional[str] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    duration_ms: Optional[int] = None
    created_at: datetime
    model_config = ConfigDict(from_attributes=True)


class WorkflowRunDetail(WorkflowRun):
    node_runs: List[WorkflowNodeRun] = Field(default_factory=list)


class WorkflowLog(BaseModel):
    id: uuid.UUID
    run_id: uuid.UUID
    node_id: Optional[str] = None
    level: str
    message: str
    data: Dict[str, Any] = Field(default_factory=dict)
    created_at: datetime
    model_config = ConfigDict(from_attributes=True)


class WorkflowStats(BaseModel):
    total_workflows: int
    active_workflows: int
    total_runs: int
    successful_runs: int
    failed_runs: int
    success_rate: int


class MemberNotification(BaseModel):
    id: uuid.UUID
    title: str
    message: str
    link: Optional[str] = None
    icon: Optional[str] = None
    type: str
    is_read: bool
    created_at: datetime
    model_config = ConfigDict(from_attributes=True)
