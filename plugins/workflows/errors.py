"""
Workflow Errors

Exception types raised while loading, resolving and running workflows.
"""

from dataclasses import dataclass
from typing import List, Sequence


@dataclass(frozen=True)
class Violation:
    """A single schema violation found in a workflow document."""

    path: str
    message: str

    def __str__(self) -> str:
        return f"{self.path}: {self.message}"


class WorkflowError(Exception):
    """Base class for all workflow errors."""


class ParseError(WorkflowError):
    """Raised when workflow source text cannot be decoded."""

    def __init__(self, format: str, message: str):
        self.format = format
        self.message = message
        super().__init__(f"Failed to parse workflow {format.upper()}: {message}")


class ValidationError(WorkflowError):
    """Raised when a workflow document or run input violates the schema."""

    def __init__(self, violations: Sequence[Violation]):
        self.violations: List[Violation] = list(violations)
        details = "\n".join(f"  - {v}" for v in self.violations)
        super().__init__(f"Workflow validation failed:\n{details}")


class ConfigurationError(WorkflowError):
    """Raised for setup faults such as an unsupported file extension."""


class UnknownWorkflowError(WorkflowError):
    """Raised when a workflow name is not present in the registry."""

    def __init__(self, name: str):
        self.name = name
        super().__init__(
            f"Workflow '{name}' not found. Use list_workflows to see available workflows."
        )


class UnresolvedVariableError(WorkflowError):
    """Raised when interpolation references an undefined variable."""

    def __init__(self, token: str):
        self.token = token
        super().__init__(f"Unresolved variable reference '{token}'")


class ToolInvocationError(WorkflowError):
    """Raised when a tool signals failure during a step."""

    def __init__(self, tool: str, message: str):
        self.tool = tool
        self.message = message
        super().__init__(message)
