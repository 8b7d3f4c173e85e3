"""
Variable Resolver

Owns the run-scoped variable namespace and performs parameter interpolation.

Token syntax inside string parameters:
- ${service_name}                   a declared or mapped variable
- ${variables.service_name}         same, with an explicit root
- ${steps.discover.output.index}    a field of an earlier step's payload
- $service_name                     shorthand for a bare variable name
- $$                                a literal dollar sign
"""

import copy
import json
import logging
import re
from typing import Any, Dict, List, Mapping, Optional, Tuple

from .definition import WorkflowDefinition
from .errors import UnresolvedVariableError, ValidationError, Violation

logger = logging.getLogger(__name__)

TOKEN_PATTERN = re.compile(
    r"\$\$|\$\{\s*([^}]+?)\s*\}|\$([A-Za-z_][A-Za-z0-9_]*)"
)


class _Missing:
    def __repr__(self) -> str:
        return "MISSING"

    def __bool__(self) -> bool:
        return False


MISSING = _Missing()

_TYPE_CHECKS = {
    "string": lambda v: isinstance(v, str),
    "number": lambda v: isinstance(v, (int, float)) and not isinstance(v, bool),
    "boolean": lambda v: isinstance(v, bool),
    "object": lambda v: isinstance(v, (dict, list)),
}


def walk_path(obj: Any, parts: List[str]) -> Any:
    """
    Walk a dotted path through nested mappings and sequences.

    Mappings are indexed by key, lists by integer position, and ``length``
    yields the size of a list or string. Returns MISSING when any segment
    cannot be followed.
    """
    current = obj
    for part in parts:
        if isinstance(current, Mapping):
            if part not in current:
                return MISSING
            current = current[part]
        elif isinstance(current, (list, tuple, str)):
            if part == "length":
                current = len(current)
            elif part.lstrip("-").isdigit() and not isinstance(current, str):
                index = int(part)
                if not -len(current) <= index < len(current):
                    return MISSING
                current = current[index]
            else:
                return MISSING
        else:
            return MISSING
    return current


def stringify(value: Any) -> str:
    """Render a value for embedding inside a larger string."""
    if isinstance(value, bool):
        return "true" if value else "false"
    if value is None:
        return "null"
    if isinstance(value, (dict, list)):
        return json.dumps(value, sort_keys=True)
    return str(value)


class VariableResolver:
    """
    Run-scoped variable namespace.

    The engine is the only writer: it records step outputs and applies
    output mappings between steps. Tools only ever see resolved copies.
    """

    def __init__(self, variables: Optional[Dict[str, Any]] = None):
        self._variables: Dict[str, Any] = dict(variables or {})
        self._step_outputs: Dict[str, Dict[str, Any]] = {}

    @classmethod
    def initialize(
        cls,
        definition: WorkflowDefinition,
        arguments: Optional[Mapping[str, Any]] = None,
        strict: bool = False,
    ) -> "VariableResolver":
        """
        Build the namespace from declared defaults overlaid with run arguments.

        Args:
            definition: Workflow whose variables are declared
            arguments: Caller-supplied run arguments
            strict: Reject undeclared or mistyped arguments instead of warning

        Returns:
            Initialized VariableResolver

        Raises:
            ValidationError: If required variables lack a value, or in strict
                mode if arguments are undeclared or mistyped
        """
        arguments = arguments or {}
        violations: List[Violation] = []
        namespace: Dict[str, Any] = {}

        for name, spec in definition.variables.items():
            if spec.has_default:
                namespace[name] = copy.deepcopy(spec.default)

        for name, value in arguments.items():
            spec = definition.variables.get(name)
            if spec is None:
                message = f"variable '{name}' is not declared by workflow '{definition.name}'"
                if strict:
                    violations.append(Violation(f"/variables/{name}", message))
                else:
                    logger.warning(f"Undeclared {message}")
            elif value is not None and not _TYPE_CHECKS[spec.type](value):
                message = (
                    f"expected {spec.type}, got {type(value).__name__}"
                )
                if strict:
                    violations.append(Violation(f"/variables/{name}", message))
                else:
                    logger.warning(f"Variable '{name}' {message}")
            namespace[name] = copy.deepcopy(value)

        for name, spec in definition.variables.items():
            if spec.required and namespace.get(name) is None:
                violations.append(
                    Violation(f"/variables/{name}", "required variable has no value")
                )

        if violations:
            raise ValidationError(violations)

        return cls(namespace)

    def __contains__(self, name: str) -> bool:
        return name in self._variables

    def snapshot(self) -> Dict[str, Any]:
        """Return a deep copy of the current namespace."""
        return copy.deepcopy(self._variables)

    def lookup(self, path: str) -> Tuple[bool, Any]:
        """
        Resolve a dotted path against the namespace.

        Returns:
            Tuple of (found, value)
        """
        parts = [p for p in path.strip().split(".") if p != ""]
        if not parts:
            return False, None

        if parts[0] == "variables" and len(parts) > 1:
            value = walk_path(self._variables, parts[1:])
        elif parts[0] == "steps" and len(parts) > 1:
            value = walk_path(self._step_outputs, parts[1:])
        else:
            value = walk_path(self._variables, parts)

        if value is MISSING:
            return False, None
        return True, value

    def set(self, name: str, value: Any) -> None:
        """Set a variable, visible to subsequent interpolations."""
        self._variables[name] = value

    def interpolate(self, value: Any) -> Any:
        """
        Resolve all tokens in a parameter structure.

        A string consisting of exactly one token keeps the variable's native
        type; tokens embedded in a longer string are rendered as text.

        Raises:
            UnresolvedVariableError: If any token references an undefined name
        """
        if isinstance(value, str):
            return self._interpolate_string(value)
        if isinstance(value, Mapping):
            return {key: self.interpolate(item) for key, item in value.items()}
        if isinstance(value, (list, tuple)):
            return [self.interpolate(item) for item in value]
        return copy.deepcopy(value)

    def _resolve_token(self, match: "re.Match[str]") -> Any:
        path = match.group(1) or match.group(2)
        found, value = self.lookup(path)
        if not found:
            raise UnresolvedVariableError(match.group(0))
        return value

    def _interpolate_string(self, text: str) -> Any:
        whole = TOKEN_PATTERN.fullmatch(text)
        if whole and whole.group(0) != "$$":
            return copy.deepcopy(self._resolve_token(whole))

        def replace(match: "re.Match[str]") -> str:
            if match.group(0) == "$$":
                return "$"
            return stringify(self._resolve_token(match))

        return TOKEN_PATTERN.sub(replace, text)

    def record_step_output(self, step_id: str, payload: Any, raw: str = "") -> None:
        """Store a completed step's payload for ${steps.<id>.output} references."""
        self._step_outputs[step_id] = {
            "output": copy.deepcopy(payload),
            "raw": raw,
        }

    def apply_output_mapping(
        self, step_id: str, mapping: Mapping[str, str], payload: Any
    ) -> Dict[str, Any]:
        """
        Copy fields of a step's payload into the namespace.

        Args:
            step_id: Step the payload came from (for logging)
            mapping: Variable name -> dotted field path into the payload
            payload: The step's decoded result payload

        Returns:
            The variables that were assigned
        """
        assigned: Dict[str, Any] = {}
        for var_name, field_path in mapping.items():
            value = walk_path(payload, field_path.split("."))
            if value is MISSING:
                logger.warning(
                    f"Step '{step_id}' output has no field '{field_path}'; "
                    f"variable '{var_name}' left unset"
                )
                continue
            self._variables[var_name] = copy.deepcopy(value)
            assigned[var_name] = value
        return assigned
