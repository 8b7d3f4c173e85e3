"""
Pytest fixtures for workflow tests.

Provides a recording fake of the tool-invocation capability and the small
service-dashboard workflow used across the engine and registry tests.
"""

import pytest

from o11y_mcp.types import ToolResult
from plugins.workflows import WorkflowDefinition


SERVICE_DASHBOARD_YAML = """
name: service-dashboard
description: Create a dashboard for one service
version: "1.0.0"
variables:
  service_name:
    description: APM service name
    type: string
    required: true
steps:
  - id: discover
    name: Discover service data
    tool: discover_o11y_data
    parameters:
      service: $service_name
    output_mapping:
      apm_index: result.index
  - id: summarize
    name: Summarize data
    tool: get_data_summary
    parameters:
      index: $apm_index
  - id: dashboard
    name: Create dashboard
    tool: create_dashboard
    parameters:
      title: $service_name overview
"""


class FakeInvoker:
    """
    Tool-invocation capability that answers from a table of canned responses.

    Each response is either a value (returned as-is), an Exception instance
    (raised), or a callable taking the parameters. Every call is recorded.
    """

    def __init__(self, responses=None):
        self.responses = dict(responses or {})
        self.calls = []

    async def __call__(self, tool, params):
        self.calls.append((tool, params))
        response = self.responses.get(tool, ToolResult.success({"ok": True}))
        if isinstance(response, Exception):
            raise response
        if callable(response):
            return response(params)
        return response

    def called_tools(self):
        return [tool for tool, _ in self.calls]

    def params_for(self, tool):
        for called, params in self.calls:
            if called == tool:
                return params
        raise AssertionError(f"{tool} was never called")


@pytest.fixture
def make_invoker():
    """Factory for FakeInvoker instances."""
    return FakeInvoker


@pytest.fixture
def service_dashboard():
    """The three-step service-dashboard workflow."""
    return WorkflowDefinition.from_yaml(SERVICE_DASHBOARD_YAML)


@pytest.fixture
def succeeding_invoker():
    """Invoker whose three service-dashboard tools all succeed."""
    return FakeInvoker(
        {
            "discover_o11y_data": ToolResult.success(
                {"result": {"index": "traces-apm-my-app", "services": ["my-app"]}}
            ),
            "get_data_summary": ToolResult.success(
                {"has_apm_data": True, "primary_service": "my-app"}
            ),
            "create_dashboard": ToolResult.success(
                {
                    "id": "dash-1",
                    "title": "my-app overview",
                    "url": "https://kibana.example.com/app/dashboards#/view/dash-1",
                }
            ),
        }
    )
