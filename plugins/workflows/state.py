"""
Workflow Run State

Step and workflow state machines, result records, and the status rollup.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence

from .definition import Step


def utcnow() -> datetime:
    """Timezone-aware current UTC time."""
    return datetime.now(timezone.utc)


class StepStatus(str, Enum):
    """Status of a workflow step."""

    PENDING = "pending"
    RUNNING = "running"
    SUCCESS = "success"
    FAILED = "failed"
    SKIPPED = "skipped"

    @property
    def is_terminal(self) -> bool:
        return self in (StepStatus.SUCCESS, StepStatus.FAILED, StepStatus.SKIPPED)


# Allowed step transitions: Pending -> Skipped, Pending -> Running -> Success|Failed.
STEP_TRANSITIONS = {
    StepStatus.PENDING: {StepStatus.RUNNING, StepStatus.SKIPPED},
    StepStatus.RUNNING: {StepStatus.SUCCESS, StepStatus.FAILED},
    StepStatus.SUCCESS: set(),
    StepStatus.FAILED: set(),
    StepStatus.SKIPPED: set(),
}


class WorkflowState(str, Enum):
    """Lifecycle state of a workflow run."""

    NOT_STARTED = "not_started"
    RUNNING = "running"
    COMPLETED = "completed"
    HALTED = "halted"


WORKFLOW_TRANSITIONS = {
    WorkflowState.NOT_STARTED: {WorkflowState.RUNNING},
    WorkflowState.RUNNING: {WorkflowState.COMPLETED, WorkflowState.HALTED},
    WorkflowState.COMPLETED: set(),
    WorkflowState.HALTED: set(),
}


class WorkflowStatus(str, Enum):
    """Run-level outcome reported to callers."""

    SUCCESS = "success"
    PARTIAL = "partial"  # some steps failed under skip/continue
    FAILED = "failed"


class HaltReason(str, Enum):
    """Why a run stopped before reaching its last step."""

    STEP_FAILED = "step_failed"
    TIMEOUT = "timeout"


class ResourceType(str, Enum):
    """Kinds of resources a step may report as created."""

    DASHBOARD = "dashboard"
    SLO = "slo"
    ALERT_RULE = "alert_rule"
    OTHER = "other"


class InvalidTransitionError(RuntimeError):
    """Raised when a state machine is driven through an illegal transition."""


@dataclass
class CreatedResource:
    """A resource created by a workflow step."""

    type: ResourceType
    id: str
    name: str
    url: Optional[str] = None
    step_id: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        result = {"type": self.type.value, "id": self.id, "name": self.name}
        if self.url:
            result["url"] = self.url
        return result


@dataclass
class StepResult:
    """Result of a step execution."""

    id: str
    name: str
    tool: str
    status: StepStatus = StepStatus.PENDING
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    duration_ms: float = 0.0
    output_summary: Optional[str] = None
    error: Optional[str] = None

    @classmethod
    def pending(cls, step: Step) -> "StepResult":
        """Create a pending result for a declared step."""
        return cls(id=step.id, name=step.name, tool=step.tool)

    def transition(self, status: StepStatus) -> None:
        """
        Move the step to a new status.

        Raises:
            InvalidTransitionError: If the transition is not allowed
        """
        if status not in STEP_TRANSITIONS[self.status]:
            raise InvalidTransitionError(
                f"Step '{self.id}' cannot move from {self.status.value} to {status.value}"
            )
        self.status = status

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        result = {
            "id": self.id,
            "name": self.name,
            "tool": self.tool,
            "status": self.status.value,
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "completed_at": (
                self.completed_at.isoformat() if self.completed_at else None
            ),
            "duration_ms": round(self.duration_ms, 3),
        }
        if self.output_summary is not None:
            result["output_summary"] = self.output_summary
        if self.error is not None:
            result["error"] = self.error
        return result


@dataclass
class WorkflowExecutionResult:
    """Result of workflow execution."""

    workflow_name: str
    execution_id: str
    status: WorkflowStatus
    started_at: datetime
    completed_at: datetime
    duration_ms: float
    steps: List[StepResult] = field(default_factory=list)
    created_resources: List[CreatedResource] = field(default_factory=list)
    variables: Dict[str, Any] = field(default_factory=dict)
    halt_reason: Optional[HaltReason] = None

    def get_step(self, step_id: str) -> Optional[StepResult]:
        """Get a step result by step ID."""
        for step in self.steps:
            if step.id == step_id:
                return step
        return None

    def count(self, status: StepStatus) -> int:
        """Number of steps in the given status."""
        return sum(1 for step in self.steps if step.status == status)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "workflow_name": self.workflow_name,
            "execution_id": self.execution_id,
            "status": self.status.value,
            "started_at": self.started_at.isoformat(),
            "completed_at": self.completed_at.isoformat(),
            "duration_ms": round(self.duration_ms, 3),
            "steps": [step.to_dict() for step in self.steps],
            "created_resources": [r.to_dict() for r in self.created_resources],
            "halt_reason": self.halt_reason.value if self.halt_reason else None,
        }


def rollup_status(step_results: Sequence[StepResult], halted: bool) -> WorkflowStatus:
    """
    Compute the run-level status from per-step outcomes.

    Args:
        step_results: One result per declared step
        halted: Whether the run stopped early

    Returns:
        FAILED if the run halted, SUCCESS if no step failed, PARTIAL otherwise
    """
    if halted:
        return WorkflowStatus.FAILED
    if any(result.status == StepStatus.FAILED for result in step_results):
        return WorkflowStatus.PARTIAL
    return WorkflowStatus.SUCCESS


def skip_remaining(step_results: Sequence[StepResult], reason: str) -> None:
    """Mark every non-terminal step as skipped with a zero duration."""
    now = utcnow()
    for result in step_results:
        if result.status.is_terminal:
            continue
        result.status = StepStatus.SKIPPED
        result.started_at = result.started_at or now
        result.completed_at = now
        result.duration_ms = 0.0
        result.output_summary = reason


def build_execution_result(
    workflow_name: str,
    execution_id: str,
    step_results: Sequence[StepResult],
    started_at: datetime,
    completed_at: datetime,
    duration_ms: float,
    halt_reason: Optional[HaltReason] = None,
    created_resources: Optional[List[CreatedResource]] = None,
    variables: Optional[Dict[str, Any]] = None,
) -> WorkflowExecutionResult:
    """
    Aggregate per-step results into a complete run result.

    Steps that never reached a terminal state are recorded as skipped so the
    result always carries one entry per declared step.
    """
    skip_remaining(step_results, "Not run: workflow halted")
    return WorkflowExecutionResult(
        workflow_name=workflow_name,
        execution_id=execution_id,
        status=rollup_status(step_results, halt_reason is not None),
        started_at=started_at,
        completed_at=completed_at,
        duration_ms=duration_ms,
        steps=list(step_results),
        created_resources=list(created_resources or []),
        variables=dict(variables or {}),
        halt_reason=halt_reason,
    )
