"""
Created Resource Detection

Only tools named ``create_*`` create resources. Such a step reports one when:

- its payload is an object with an ``id`` field; or
- its payload is plain text containing http(s) URLs (one resource per URL).

Read tools such as ``get_dashboard`` often return ids and URLs too; those
are never counted.

The resource type comes from an explicit ``type`` field when it names a known
kind, otherwise from keywords in the tool name or URL.
"""

import re
from typing import Any, List, Mapping, Optional

from .state import CreatedResource, ResourceType

CREATE_PREFIX = "create_"

URL_PATTERN = re.compile(r"https?://[^\s)>\"']+")

_KEYWORDS = (
    ("dashboard", ResourceType.DASHBOARD),
    ("slo", ResourceType.SLO),
    ("alert", ResourceType.ALERT_RULE),
    ("rule", ResourceType.ALERT_RULE),
)


def infer_type(*hints: Optional[str]) -> ResourceType:
    """Pick a resource type from the first hint containing a known keyword."""
    for hint in hints:
        if not hint:
            continue
        lowered = hint.lower()
        for keyword, resource_type in _KEYWORDS:
            if keyword in lowered:
                return resource_type
    return ResourceType.OTHER


def _from_mapping(tool: str, payload: Mapping[str, Any]) -> Optional[CreatedResource]:
    resource_id = payload.get("id")
    if resource_id in (None, "") or isinstance(resource_id, (dict, list, bool)):
        return None

    url = payload.get("url")
    url = url if isinstance(url, str) and url else None

    explicit = payload.get("type")
    try:
        resource_type = ResourceType(explicit)
    except ValueError:
        resource_type = infer_type(tool, url)

    name = payload.get("name") or payload.get("title")
    return CreatedResource(
        type=resource_type,
        id=str(resource_id),
        name=str(name) if name else f"{resource_type.value} resource",
        url=url,
    )


def _from_text(text: str) -> List[CreatedResource]:
    resources = []
    for url in URL_PATTERN.findall(text):
        resource_type = infer_type(url)
        resources.append(
            CreatedResource(
                type=resource_type,
                id=url.rstrip("/").split("/")[-1] or url,
                name=f"{resource_type.value} resource",
                url=url,
            )
        )
    return resources


def detect_resources(step_id: str, tool: str, payload: Any) -> List[CreatedResource]:
    """
    Detect resources created by a successful step.

    Args:
        step_id: Step that produced the payload
        tool: Tool identifier the step invoked
        payload: Decoded step result payload

    Returns:
        List of created resources (possibly empty)
    """
    if not tool.startswith(CREATE_PREFIX):
        return []

    if isinstance(payload, Mapping):
        found = _from_mapping(tool, payload)
        resources = [found] if found else []
    elif isinstance(payload, str):
        resources = _from_text(payload)
    else:
        resources = []

    for resource in resources:
        resource.step_id = step_id
    return resources
