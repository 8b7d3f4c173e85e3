"""
Built-in Workflows

The fixed catalogue of workflows that ship with the engine.
"""

from enum import Enum
from typing import Any, Dict, Tuple

from .definition import WorkflowDefinition


class BuiltInWorkflow(str, Enum):
    """Names of the built-in workflows."""

    FULL_O11Y_SETUP = "full-o11y-setup"
    SERVICE_DASHBOARD = "service-dashboard"
    SLO_FROM_APM = "slo-from-apm"
    INFRASTRUCTURE_OVERVIEW = "infrastructure-overview"


_DOCUMENTS: Dict[BuiltInWorkflow, Dict[str, Any]] = {
    BuiltInWorkflow.FULL_O11Y_SETUP: {
        "name": BuiltInWorkflow.FULL_O11Y_SETUP.value,
        "description": (
            "End-to-end observability setup: discover data, generate dashboards "
            "for each recommended service, and create SLOs."
        ),
        "version": "1.0.0",
        "variables": {
            "cluster_url": {
                "description": "Elasticsearch cluster URL",
                "type": "string",
                "required": False,
            },
            "kibana_url": {
                "description": "Kibana URL for dashboard and SLO creation",
                "type": "string",
                "required": False,
            },
        },
        "steps": [
            {
                "id": "discover",
                "name": "Discover observability data",
                "tool": "discover_o11y_data",
                "parameters": {},
                "on_error": "stop",
            },
            {
                "id": "summarize",
                "name": "Summarize discovered data",
                "tool": "get_data_summary",
                "parameters": {"format": "json"},
                "on_error": "stop",
            },
            {
                "id": "create_dashboards",
                "name": "Create recommended dashboards",
                "tool": "create_dashboard",
                "parameters": {
                    "title": "O11y Overview Dashboard",
                    "service_name": "${steps.summarize.output.primary_service}",
                },
                "condition": "steps.summarize.output.has_apm_data == true",
                "on_error": "continue",
            },
            {
                "id": "create_slos",
                "name": "Create recommended SLOs",
                "tool": "create_slo",
                "parameters": {
                    "service_name": "${steps.summarize.output.primary_service}",
                    "slo_type": "availability",
                    "target": 99.9,
                },
                "condition": "steps.summarize.output.has_apm_data == true",
                "on_error": "continue",
            },
        ],
    },
    BuiltInWorkflow.SERVICE_DASHBOARD: {
        "name": BuiltInWorkflow.SERVICE_DASHBOARD.value,
        "description": (
            "Create a service-specific overview dashboard: discover data for the "
            "service, summarize, and generate a dashboard."
        ),
        "version": "1.0.0",
        "variables": {
            "service_name": {
                "description": "APM service name to scope the dashboard to",
                "type": "string",
                "required": True,
            },
        },
        "steps": [
            {
                "id": "discover",
                "name": "Discover service data",
                "tool": "discover_o11y_data",
                "parameters": {"service_name": "${variables.service_name}"},
                "on_error": "stop",
            },
            {
                "id": "summarize",
                "name": "Summarize service data",
                "tool": "get_data_summary",
                "parameters": {"service_name": "${variables.service_name}"},
                "on_error": "stop",
            },
            {
                "id": "create_dashboard",
                "name": "Create service overview dashboard",
                "tool": "create_dashboard",
                "parameters": {
                    "title": "${variables.service_name} - Service Overview",
                    "service_name": "${variables.service_name}",
                },
                "on_error": "stop",
            },
        ],
    },
    BuiltInWorkflow.SLO_FROM_APM: {
        "name": BuiltInWorkflow.SLO_FROM_APM.value,
        "description": "Discover APM data, summarize recommended SLOs, and create them.",
        "version": "1.0.0",
        "variables": {
            "service_name": {
                "description": "APM service name to scope SLO creation",
                "type": "string",
                "default": "",
            },
            "target": {
                "description": "SLO target percentage",
                "type": "number",
                "default": 99.9,
            },
        },
        "steps": [
            {
                "id": "discover",
                "name": "Discover APM data",
                "tool": "discover_o11y_data",
                "parameters": {"service_name": "${variables.service_name}"},
                "on_error": "stop",
            },
            {
                "id": "summarize",
                "name": "Summarize SLO recommendations",
                "tool": "get_data_summary",
                "parameters": {
                    "format": "json",
                    "service_name": "${variables.service_name}",
                },
                "on_error": "stop",
            },
            {
                "id": "create_slo",
                "name": "Create availability SLO",
                "tool": "create_slo",
                "parameters": {
                    "service_name": "${variables.service_name}",
                    "slo_type": "availability",
                    "target": "${variables.target}",
                },
                "condition": "steps.summarize.output.has_apm_data == true",
                "on_error": "continue",
            },
        ],
    },
    BuiltInWorkflow.INFRASTRUCTURE_OVERVIEW: {
        "name": BuiltInWorkflow.INFRASTRUCTURE_OVERVIEW.value,
        "description": (
            "Discover infrastructure metrics and create a health dashboard "
            "covering hosts, containers, and pods."
        ),
        "version": "1.0.0",
        "variables": {
            "index_pattern": {
                "description": "Metrics index pattern to query",
                "type": "string",
                "default": "metrics-*",
            },
        },
        "steps": [
            {
                "id": "discover",
                "name": "Discover infrastructure data",
                "tool": "discover_o11y_data",
                "parameters": {},
                "on_error": "stop",
            },
            {
                "id": "summarize",
                "name": "Summarize infrastructure data",
                "tool": "get_data_summary",
                "parameters": {},
                "on_error": "stop",
            },
            {
                "id": "create_dashboard",
                "name": "Create infrastructure health dashboard",
                "tool": "create_dashboard",
                "parameters": {
                    "title": "Infrastructure Health Overview",
                    "index_pattern": "${variables.index_pattern}",
                },
                "on_error": "stop",
            },
        ],
    },
}


def _build() -> Tuple[WorkflowDefinition, ...]:
    return tuple(
        WorkflowDefinition.from_dict(_DOCUMENTS[member]) for member in BuiltInWorkflow
    )


BUILT_IN_WORKFLOWS: Tuple[WorkflowDefinition, ...] = _build()


def get_built_in(name: str) -> WorkflowDefinition:
    """
    Look up a built-in workflow by name.

    Raises:
        KeyError: If no built-in workflow has that name
    """
    for workflow in BUILT_IN_WORKFLOWS:
        if workflow.name == name:
            return workflow
    raise KeyError(name)
