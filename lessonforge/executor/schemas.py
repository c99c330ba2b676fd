"""Executor-side schemas for workflow lifecycle, steps, events and progress."""

from datetime import datetime
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field


class WorkflowStatus(str, Enum):
    """Workflow lifecycle states."""
    PENDING = "pending"
    RUNNING = "running"
    PAUSED = "paused"
    COMPLETED = "completed"
    FAILED = "failed"


TERMINAL_STATUSES = frozenset({WorkflowStatus.COMPLETED, WorkflowStatus.FAILED})


class StepStatus(str, Enum):
    """Step execution states."""
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


class EventType(str, Enum):
    STARTED = "started"
    STEP_STARTED = "step_started"
    STEP_COMPLETED = "step_completed"
    STEP_FAILED = "step_failed"
    COMPLETED = "completed"
    FAILED = "failed"


class StepSpec(BaseModel):
    """Declared step as supplied to ``create_workflow``."""

    skill_id: str = Field(..., description="Target skill identifier")
    description: str = Field(default="")
    input: dict[str, Any] = Field(
        default_factory=dict,
        description="Step input; may contain {{stepN.output.path}} placeholders",
    )


class WorkflowStep(BaseModel):
    """One step of a workflow, bound to a single skill."""

    ordinal: int = Field(..., ge=1, description="1-based execution order and template namespace")
    skill_id: str
    description: str = ""
    input: dict[str, Any] = Field(default_factory=dict)
    resolved_input: Optional[dict[str, Any]] = None
    output: Any = None
    status: StepStatus = StepStatus.PENDING
    error: Optional[str] = None
    duration_ms: Optional[int] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None


class WorkflowError(BaseModel):
    """Workflow-level error record."""

    step: Optional[int] = Field(default=None, description="Ordinal of the failing step")
    skill_id: Optional[str] = None
    message: str
    timestamp: datetime = Field(default_factory=datetime.utcnow)
    recoverable: bool = True


class Workflow(BaseModel):
    """A multi-step workflow and its accumulated results."""

    id: str
    name: str
    type: str = "custom"
    steps: list[WorkflowStep] = Field(default_factory=list)
    status: WorkflowStatus = WorkflowStatus.PENDING
    current_step: int = Field(default=0, description="0-based index of the step in progress")
    results: dict[int, Any] = Field(
        default_factory=dict,
        description="Step ordinal -> output, present only for completed steps",
    )
    errors: list[WorkflowError] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=datetime.utcnow)
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    total_duration_ms: Optional[int] = None

    @property
    def total_steps(self) -> int:
        return len(self.steps)

    @property
    def completed_steps(self) -> int:
        return sum(1 for s in self.steps if s.status == StepStatus.COMPLETED)

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES


class WorkflowEvent(BaseModel):
    """Lifecycle event emitted for a workflow."""

    workflow_id: str
    type: EventType
    message: str
    step: Optional[int] = Field(default=None, description="Step ordinal, for step events")
    timestamp: datetime = Field(default_factory=datetime.utcnow)
    data: Optional[dict[str, Any]] = None


class WorkflowProgress(BaseModel):
    """Progress snapshot for polling."""

    workflow_id: str
    current_step_ordinal: Optional[int] = None
    total_steps: int
    completed_steps: int = 0
    percent_complete: float = 0.0
    status: WorkflowStatus
    current_activity: str = ""
