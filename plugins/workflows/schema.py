"""
Workflow Schema

Structural validation of parsed workflow documents. All violations are
collected in a single pass so authors can fix a document in one go.
"""

import re
from typing import Any, Dict, List, Set

from .errors import Violation

NAME_PATTERN = re.compile(r"^[a-z0-9][a-z0-9-]*$")
VERSION_PATTERN = re.compile(r"^\d+\.\d+\.\d+$")
STEP_ID_PATTERN = re.compile(r"^[a-z_][a-z0-9_]*$")

VARIABLE_TYPES = ("string", "number", "boolean", "object")
ON_ERROR_VALUES = ("stop", "skip", "continue")

DOCUMENT_KEYS = {"name", "description", "version", "variables", "steps"}
VARIABLE_KEYS = {"description", "type", "default", "required"}
STEP_KEYS = {
    "id",
    "name",
    "tool",
    "parameters",
    "condition",
    "output_mapping",
    "on_error",
}


def _is_non_empty_string(value: Any) -> bool:
    return isinstance(value, str) and value.strip() != ""


def _check_unknown_keys(
    data: Dict[str, Any], allowed: Set[str], path: str, errors: List[Violation]
) -> None:
    for key in data:
        if key not in allowed:
            errors.append(Violation(f"{path}/{key}", "unknown property"))


def _validate_variables(variables: Any, errors: List[Violation]) -> None:
    if not isinstance(variables, dict):
        errors.append(Violation("/variables", "must be an object"))
        return

    for var_name, spec in variables.items():
        path = f"/variables/{var_name}"
        if not isinstance(spec, dict):
            errors.append(Violation(path, "must be an object"))
            continue

        _check_unknown_keys(spec, VARIABLE_KEYS, path, errors)

        if "description" not in spec:
            errors.append(Violation(path, "missing required property 'description'"))
        elif not isinstance(spec["description"], str):
            errors.append(Violation(f"{path}/description", "must be a string"))

        if "type" not in spec:
            errors.append(Violation(path, "missing required property 'type'"))
        elif spec["type"] not in VARIABLE_TYPES:
            errors.append(
                Violation(
                    f"{path}/type",
                    f"must be one of: {', '.join(VARIABLE_TYPES)}",
                )
            )

        if "required" in spec and not isinstance(spec["required"], bool):
            errors.append(Violation(f"{path}/required", "must be a boolean"))


def _validate_step(step: Any, index: int, errors: List[Violation]) -> None:
    path = f"/steps/{index}"
    if not isinstance(step, dict):
        errors.append(Violation(path, "must be an object"))
        return

    _check_unknown_keys(step, STEP_KEYS, path, errors)

    for key in ("id", "name", "tool"):
        if key not in step:
            errors.append(Violation(path, f"missing required property '{key}'"))
        elif not _is_non_empty_string(step[key]):
            errors.append(Violation(f"{path}/{key}", "must be a non-empty string"))

    step_id = step.get("id")
    if _is_non_empty_string(step_id) and not STEP_ID_PATTERN.fullmatch(step_id):
        errors.append(
            Violation(f"{path}/id", f"must match pattern {STEP_ID_PATTERN.pattern}")
        )

    if "parameters" not in step:
        errors.append(Violation(path, "missing required property 'parameters'"))
    elif not isinstance(step["parameters"], dict):
        errors.append(Violation(f"{path}/parameters", "must be an object"))

    if "condition" in step and not isinstance(step["condition"], str):
        errors.append(Violation(f"{path}/condition", "must be a string"))

    if "output_mapping" in step:
        mapping = step["output_mapping"]
        if not isinstance(mapping, dict):
            errors.append(Violation(f"{path}/output_mapping", "must be an object"))
        else:
            for var_name, field_path in mapping.items():
                if not _is_non_empty_string(field_path):
                    errors.append(
                        Violation(
                            f"{path}/output_mapping/{var_name}",
                            "must be a non-empty string",
                        )
                    )

    if "on_error" in step and step["on_error"] not in ON_ERROR_VALUES:
        errors.append(
            Violation(
                f"{path}/on_error",
                f"must be one of: {', '.join(ON_ERROR_VALUES)}",
            )
        )


def validate_workflow_document(data: Any) -> List[Violation]:
    """
    Validate a generic parsed workflow structure.

    Args:
        data: Structure produced by the YAML or JSON decoder

    Returns:
        List of violations (empty if the document is valid)
    """
    errors: List[Violation] = []

    if not isinstance(data, dict):
        return [Violation("/", "workflow document must be an object")]

    _check_unknown_keys(data, DOCUMENT_KEYS, "", errors)

    name = data.get("name")
    if "name" not in data:
        errors.append(Violation("/", "missing required property 'name'"))
    elif not _is_non_empty_string(name):
        errors.append(Violation("/name", "must be a non-empty string"))
    elif not NAME_PATTERN.fullmatch(name):
        errors.append(
            Violation("/name", f"must match pattern {NAME_PATTERN.pattern}")
        )

    if "description" not in data:
        errors.append(Violation("/", "missing required property 'description'"))
    elif not _is_non_empty_string(data["description"]):
        errors.append(Violation("/description", "must be a non-empty string"))

    if "version" in data:
        version = data["version"]
        if not isinstance(version, str) or not VERSION_PATTERN.fullmatch(version):
            errors.append(
                Violation("/version", "must be a semantic version (e.g. \"1.0.0\")")
            )

    if "variables" in data:
        _validate_variables(data["variables"], errors)

    steps = data.get("steps")
    if "steps" not in data:
        errors.append(Violation("/", "missing required property 'steps'"))
    elif not isinstance(steps, list):
        errors.append(Violation("/steps", "must be an array"))
    elif not steps:
        errors.append(Violation("/steps", "must contain at least one step"))
    else:
        seen: Dict[str, int] = {}
        for index, step in enumerate(steps):
            _validate_step(step, index, errors)
            step_id = step.get("id") if isinstance(step, dict) else None
            if not isinstance(step_id, str):
                continue
            if step_id in seen:
                errors.append(
                    Violation(
                        f"/steps/{index}/id",
                        f"duplicate step id '{step_id}' (first used at /steps/{seen[step_id]})",
                    )
                )
            else:
                seen[step_id] = index

    return errors
