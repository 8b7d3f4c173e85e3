"""
Workflow Definition

Parse, validate, and represent workflow definitions from YAML or JSON.
"""

import copy
import json
import logging
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional, Tuple, Union

import yaml

from .errors import ConfigurationError, ParseError, ValidationError
from .schema import validate_workflow_document

logger = logging.getLogger(__name__)

SUPPORTED_FORMATS = ("yaml", "json")

EXTENSION_FORMATS = {
    ".yaml": "yaml",
    ".yml": "yaml",
    ".json": "json",
}


class OnError(str, Enum):
    """Step failure policy."""

    STOP = "stop"
    SKIP = "skip"  # failure is non-fatal
    CONTINUE = "continue"  # failure is expected and tolerable


@dataclass(frozen=True)
class VariableSpec:
    """Declared workflow variable."""

    name: str
    type: str = "string"
    description: str = ""
    required: bool = False
    default: Any = None
    has_default: bool = False

    @classmethod
    def from_dict(cls, name: str, data: Dict[str, Any]) -> "VariableSpec":
        """Create from dictionary."""
        return cls(
            name=name,
            type=data.get("type", "string"),
            description=data.get("description", ""),
            required=bool(data.get("required", False)),
            default=copy.deepcopy(data.get("default")),
            has_default="default" in data,
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        result: Dict[str, Any] = {"description": self.description, "type": self.type}
        if self.has_default:
            result["default"] = copy.deepcopy(self.default)
        if self.required:
            result["required"] = True
        return result


@dataclass(frozen=True)
class Step:
    """A single workflow step invoking one tool."""

    id: str
    name: str
    tool: str
    parameters: Mapping[str, Any] = field(default_factory=dict)
    condition: Optional[str] = None
    output_mapping: Mapping[str, str] = field(default_factory=dict)
    on_error: OnError = OnError.STOP

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Step":
        """
        Create from dictionary.

        Args:
            data: Step definition dictionary (already schema-validated)

        Returns:
            Step instance
        """
        return cls(
            id=data["id"],
            name=data["name"],
            tool=data["tool"],
            parameters=MappingProxyType(copy.deepcopy(data.get("parameters", {}))),
            condition=data.get("condition"),
            output_mapping=MappingProxyType(dict(data.get("output_mapping") or {})),
            on_error=OnError(data.get("on_error", OnError.STOP.value)),
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        result: Dict[str, Any] = {
            "id": self.id,
            "name": self.name,
            "tool": self.tool,
            "parameters": copy.deepcopy(dict(self.parameters)),
        }
        if self.condition is not None:
            result["condition"] = self.condition
        if self.output_mapping:
            result["output_mapping"] = dict(self.output_mapping)
        if self.on_error != OnError.STOP:
            result["on_error"] = self.on_error.value
        return result


@dataclass(frozen=True)
class WorkflowDefinition:
    """
    Workflow definition.

    Immutable once constructed. Build instances through parse_workflow,
    load_workflow_file, or from_dict on a schema-valid document.
    """

    name: str
    description: str
    version: Optional[str] = None
    variables: Mapping[str, VariableSpec] = field(default_factory=dict)
    steps: Tuple[Step, ...] = ()

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "WorkflowDefinition":
        """
        Validate a generic structure and build a definition from it.

        Raises:
            ValidationError: If the structure violates the workflow schema
        """
        violations = validate_workflow_document(data)
        if violations:
            raise ValidationError(violations)

        variables = {
            name: VariableSpec.from_dict(name, spec)
            for name, spec in (data.get("variables") or {}).items()
        }
        return cls(
            name=data["name"],
            description=data["description"],
            version=data.get("version"),
            variables=MappingProxyType(variables),
            steps=tuple(Step.from_dict(step) for step in data["steps"]),
        )

    @classmethod
    def from_yaml(cls, yaml_str: str) -> "WorkflowDefinition":
        """Parse workflow from YAML string."""
        return parse_workflow(yaml_str, "yaml")

    @classmethod
    def from_json(cls, json_str: str) -> "WorkflowDefinition":
        """Parse workflow from JSON string."""
        return parse_workflow(json_str, "json")

    @classmethod
    def from_file(cls, file_path: Union[str, Path]) -> "WorkflowDefinition":
        """Load workflow from a .yaml, .yml or .json file."""
        return load_workflow_file(file_path)

    def get_step(self, step_id: str) -> Optional[Step]:
        """Get step by ID."""
        for step in self.steps:
            if step.id == step_id:
                return step
        return None

    def to_dict(self) -> Dict[str, Any]:
        """
        Convert to dictionary.

        Returns:
            Dictionary in the workflow document format
        """
        result: Dict[str, Any] = {
            "name": self.name,
            "description": self.description,
        }
        if self.version is not None:
            result["version"] = self.version
        if self.variables:
            result["variables"] = {
                name: spec.to_dict() for name, spec in self.variables.items()
            }
        result["steps"] = [step.to_dict() for step in self.steps]
        return result

    def __repr__(self) -> str:
        """String representation."""
        return (
            f"WorkflowDefinition(name='{self.name}', "
            f"version='{self.version}', steps={len(self.steps)})"
        )


def _decode(content: str, fmt: str) -> Any:
    if fmt == "yaml":
        try:
            return yaml.safe_load(content)
        except yaml.YAMLError as e:
            raise ParseError(fmt, str(e)) from e
    try:
        return json.loads(content)
    except json.JSONDecodeError as e:
        raise ParseError(fmt, str(e)) from e


def parse_workflow(content: str, fmt: str) -> WorkflowDefinition:
    """
    Parse workflow source text.

    Args:
        content: Raw YAML or JSON text
        fmt: Either "yaml" or "json"

    Returns:
        WorkflowDefinition instance

    Raises:
        ConfigurationError: If the format is not supported
        ParseError: If the text cannot be decoded
        ValidationError: If the decoded document violates the schema
    """
    fmt = fmt.lower()
    if fmt not in SUPPORTED_FORMATS:
        raise ConfigurationError(
            f"Unsupported workflow format '{fmt}'. Use one of: {', '.join(SUPPORTED_FORMATS)}"
        )

    data = _decode(content, fmt)
    return WorkflowDefinition.from_dict(data)


def format_for_path(file_path: Union[str, Path]) -> str:
    """
    Infer the workflow format from a file extension.

    Raises:
        ConfigurationError: If the extension is not recognized
    """
    ext = Path(file_path).suffix.lower()
    fmt = EXTENSION_FORMATS.get(ext)
    if fmt is None:
        raise ConfigurationError(
            f'Unsupported workflow file extension "{ext}". Use .yaml, .yml, or .json'
        )
    return fmt


def load_workflow_file(file_path: Union[str, Path]) -> WorkflowDefinition:
    """
    Load workflow from a file, choosing the decoder by extension.

    Raises:
        ConfigurationError: If the extension is not recognized
        FileNotFoundError: If the file doesn't exist
        ParseError: If the file is not UTF-8 text or cannot be decoded
        ValidationError: If the document violates the schema
    """
    path = Path(file_path)
    fmt = format_for_path(path)

    try:
        with open(path, "r", encoding="utf-8") as f:
            content = f.read()
    except UnicodeDecodeError as e:
        raise ParseError(fmt, f"{path} is not valid UTF-8: {e}") from e

    logger.debug(f"Parsing workflow file {path} as {fmt}")
    return parse_workflow(content, fmt)
