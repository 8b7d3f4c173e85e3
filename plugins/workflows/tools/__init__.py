"""MCP tools exposing the workflow registry and engine."""

from plugins.workflows.tools.workflow_tools import (
    ListWorkflowsTool,
    RunWorkflowTool,
    SaveWorkflowTool,
)

__all__ = ["ListWorkflowsTool", "RunWorkflowTool", "SaveWorkflowTool"]
