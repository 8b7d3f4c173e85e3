"""
Workflow System

Sequential orchestration of observability tools through declarative workflows.

This module provides:
- Workflow definition parsing and schema validation (YAML or JSON)
- Variable interpolation between steps
- A sequential execution engine with per-step error policies
- Built-in and custom workflow registry
"""

from .builtin import BUILT_IN_WORKFLOWS, BuiltInWorkflow, get_built_in
from .definition import (
    OnError,
    Step,
    VariableSpec,
    WorkflowDefinition,
    load_workflow_file,
    parse_workflow,
)
from .engine import WorkflowEngine
from .errors import (
    ConfigurationError,
    ParseError,
    ToolInvocationError,
    UnknownWorkflowError,
    UnresolvedVariableError,
    ValidationError,
    Violation,
    WorkflowError,
)
from .registry import (
    DiscoveryError,
    WorkflowListing,
    WorkflowRegistry,
    WorkflowSource,
    WorkflowSummary,
    discover_workflows,
)
from .schema import validate_workflow_document
from .state import (
    CreatedResource,
    StepResult,
    StepStatus,
    WorkflowExecutionResult,
    WorkflowStatus,
)
from .variables import VariableResolver

__all__ = [
    "BUILT_IN_WORKFLOWS",
    "BuiltInWorkflow",
    "get_built_in",
    "OnError",
    "Step",
    "VariableSpec",
    "WorkflowDefinition",
    "load_workflow_file",
    "parse_workflow",
    "WorkflowEngine",
    "ConfigurationError",
    "ParseError",
    "ToolInvocationError",
    "UnknownWorkflowError",
    "UnresolvedVariableError",
    "ValidationError",
    "Violation",
    "WorkflowError",
    "DiscoveryError",
    "WorkflowListing",
    "WorkflowRegistry",
    "WorkflowSource",
    "WorkflowSummary",
    "discover_workflows",
    "validate_workflow_document",
    "CreatedResource",
    "StepResult",
    "StepStatus",
    "WorkflowExecutionResult",
    "WorkflowStatus",
    "VariableResolver",
]
