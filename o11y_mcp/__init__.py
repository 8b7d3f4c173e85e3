"""o11y MCP - tool interface, result types and plugin registry."""

from o11y_mcp.interfaces import ToolInterface
from o11y_mcp.plugin import (
    PluginRegistry,
    discover_and_register_tools,
    register_tool,
    registry,
)
from o11y_mcp.types import TextContent, Tool, ToolResult

__all__ = [
    "ToolInterface",
    "PluginRegistry",
    "discover_and_register_tools",
    "register_tool",
    "registry",
    "TextContent",
    "Tool",
    "ToolResult",
]
