"""
Types shared by the tool layer and the workflow engine.

A tool invocation answers with a ToolResult: a list of text content blocks
plus an isError flag, mirroring the MCP tool-call result shape.
"""

import json
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict


class TextContent(BaseModel):
    """Text content for a message."""

    type: Literal["text"] = "text"
    text: str
    """The text content of the message."""

    model_config = ConfigDict(extra="allow")


class Tool(BaseModel):
    """Definition for a tool the client can call."""

    name: str
    """The name of the tool."""
    description: Optional[str] = None
    """A human-readable description of the tool."""
    inputSchema: Dict[str, Any]
    """A JSON Schema object defining the expected parameters for the tool."""
    source: str = "code"

    model_config = ConfigDict(extra="allow")


class ToolResult(BaseModel):
    """Result of a tool call."""

    content: List[TextContent]
    isError: bool = False

    model_config = ConfigDict(extra="allow")

    @classmethod
    def success(cls, payload: Any) -> "ToolResult":
        """Wrap a payload as a successful result, JSON-encoding non-text values."""
        text = payload if isinstance(payload, str) else json.dumps(payload, default=str)
        return cls(content=[TextContent(text=text)])

    @classmethod
    def failure(cls, message: str) -> "ToolResult":
        """Build a failed result carrying an error message."""
        return cls(content=[TextContent(text=message)], isError=True)

    @property
    def text(self) -> str:
        """All text blocks joined by newlines."""
        return "\n".join(block.text for block in self.content)
