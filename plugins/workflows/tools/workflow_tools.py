"""Workflow tools for MCP.

This module exposes the workflow registry as three MCP tools: listing the
available workflows, running one by name, and saving a custom definition.
"""

import logging
from typing import Any, Dict, Optional

from o11y_mcp.interfaces import ToolInterface
from o11y_mcp.plugin import register_tool, registry

from ..engine import ToolInvoker
from ..errors import (
    ConfigurationError,
    ParseError,
    UnknownWorkflowError,
    ValidationError,
)
from ..registry import WorkflowRegistry


def _error(message: str, **extra: Any) -> Dict[str, Any]:
    return {"success": False, "error": message, **extra}


def _violations(error: ValidationError) -> Dict[str, Any]:
    return _error(
        str(error),
        violations=[{"path": v.path, "message": v.message} for v in error.violations],
    )


@register_tool
class ListWorkflowsTool(ToolInterface):
    """List built-in and custom workflows."""

    def __init__(self):
        super().__init__()
        self.logger = logging.getLogger(__name__)

    @property
    def name(self) -> str:
        return "list_workflows"

    @property
    def description(self) -> str:
        return (
            "List available observability workflows, both built-in and custom, "
            "with any custom workflow files that failed to load"
        )

    @property
    def input_schema(self) -> Dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "custom_dir": {
                    "type": "string",
                    "description": "Directory containing custom workflow files",
                },
            },
            "required": [],
        }

    async def execute_tool(self, arguments: Dict[str, Any]) -> Dict[str, Any]:
        """List workflows from the registry."""
        workflow_registry = WorkflowRegistry(custom_dir=arguments.get("custom_dir"))
        listing = workflow_registry.list_workflows()
        self.logger.info(
            f"Listed {len(listing.summaries)} workflows "
            f"({len(listing.errors)} discovery errors)"
        )
        return {"success": True, **listing.to_dict()}


@register_tool
class RunWorkflowTool(ToolInterface):
    """Run a workflow by name against the registered tools."""

    def __init__(self, invoker: Optional[ToolInvoker] = None):
        """
        Initialize the run tool.

        Args:
            invoker: Tool-invocation capability for workflow steps. Defaults
                to the plugin registry's invoke_tool.
        """
        super().__init__()
        self.logger = logging.getLogger(__name__)
        self.invoker = invoker or registry.invoke_tool

    @property
    def name(self) -> str:
        return "run_workflow"

    @property
    def description(self) -> str:
        return (
            "Run a named observability workflow step by step and report the "
            "status, per-step results and created resources"
        )

    @property
    def input_schema(self) -> Dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "name": {
                    "type": "string",
                    "description": "Name of the workflow to run",
                },
                "variables": {
                    "type": "object",
                    "description": "Input variables for the workflow",
                },
                "custom_dir": {
                    "type": "string",
                    "description": "Directory containing custom workflow files",
                },
                "timeout": {
                    "type": "number",
                    "description": "Run timeout in seconds, checked between steps",
                },
            },
            "required": ["name"],
        }

    async def execute_tool(self, arguments: Dict[str, Any]) -> Dict[str, Any]:
        """Run the named workflow."""
        name = arguments.get("name")
        if not name:
            return _error("Missing required parameter: name")

        variables = arguments.get("variables") or {}
        if not isinstance(variables, dict):
            return _error("Parameter 'variables' must be an object")

        workflow_registry = WorkflowRegistry(custom_dir=arguments.get("custom_dir"))
        try:
            result = await workflow_registry.run(
                name,
                variables,
                self.invoker,
                timeout=arguments.get("timeout"),
            )
        except UnknownWorkflowError as e:
            available = [s.name for s in workflow_registry.list_workflows().summaries]
            return _error(str(e), available=available)
        except ValidationError as e:
            return _violations(e)

        return result.to_dict()


@register_tool
class SaveWorkflowTool(ToolInterface):
    """Validate and save a custom workflow definition."""

    def __init__(self):
        super().__init__()
        self.logger = logging.getLogger(__name__)

    @property
    def name(self) -> str:
        return "save_workflow"

    @property
    def description(self) -> str:
        return "Validate a workflow definition and save it as a custom YAML workflow"

    @property
    def input_schema(self) -> Dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "name": {
                    "type": "string",
                    "description": "Workflow name; overrides the definition's name if given",
                },
                "definition": {
                    "type": "object",
                    "description": "Workflow definition document",
                },
                "save_dir": {
                    "type": "string",
                    "description": "Directory to write the workflow file to",
                },
            },
            "required": ["definition"],
        }

    async def execute_tool(self, arguments: Dict[str, Any]) -> Dict[str, Any]:
        """Save the workflow definition."""
        document = arguments.get("definition")
        if not isinstance(document, dict):
            return _error("Parameter 'definition' must be an object")

        document = dict(document)
        if arguments.get("name"):
            document["name"] = arguments["name"]

        save_dir = arguments.get("save_dir")
        workflow_registry = WorkflowRegistry(custom_dir=save_dir)
        try:
            path = workflow_registry.save(document, directory=save_dir)
        except ValidationError as e:
            return _violations(e)
        except (ParseError, ConfigurationError, OSError) as e:
            return _error(str(e))

        return {
            "success": True,
            "name": document["name"],
            "path": str(path),
            "step_count": len(document.get("steps", [])),
        }
