"""Tests for the plugin registry and tool result types."""

import json

import pytest

from o11y_mcp.interfaces import ToolInterface
from o11y_mcp.plugin import discover_and_register_tools, register_tool, registry
from o11y_mcp.types import TextContent, Tool, ToolResult


class MockQueryTool(ToolInterface):
    """Mock tool returning a plain payload."""

    @property
    def name(self) -> str:
        return "mock_query_tool"

    @property
    def description(self) -> str:
        return "A mock query tool for testing"

    @property
    def input_schema(self) -> dict:
        return {"type": "object", "properties": {"query": {"type": "string"}}}

    async def execute_tool(self, arguments: dict):
        if arguments.get("query") == "fail":
            return {"success": False, "error": "query rejected"}
        if arguments.get("query") == "raw":
            return ToolResult(content=[TextContent(text="raw answer")])
        return {"success": True, "hits": 2}


class MockAbstractTool(ToolInterface):
    """Abstract tool that must never be registered."""


@pytest.fixture
def clean_registry():
    """Fixture to provide a clean registry for each test."""
    original_tools = registry.tools.copy()
    original_instances = registry.instances.copy()
    original_tool_sources = registry.tool_sources.copy()
    original_discovered = set(registry.discovered_paths)

    registry.clear()

    yield registry

    registry.tools = original_tools
    registry.instances = original_instances
    registry.tool_sources = original_tool_sources
    registry.discovered_paths = original_discovered


def test_register_tool_with_source(clean_registry):
    """Test registering a tool class with an explicit source."""
    clean_registry.register_tool(MockQueryTool, source="plugin")

    assert "mock_query_tool" in clean_registry.tools
    assert clean_registry.tool_sources["mock_query_tool"] == "plugin"


def test_register_tool_decorator(clean_registry):
    """Test registering tools using the decorator."""

    @register_tool
    class DecoratedTool(ToolInterface):
        @property
        def name(self) -> str:
            return "decorated_tool"

        @property
        def description(self) -> str:
            return "A decorated tool"

        @property
        def input_schema(self) -> dict:
            return {"type": "object", "properties": {}}

        async def execute_tool(self, arguments: dict):
            return {"success": True}

    assert clean_registry.tools["decorated_tool"] is DecoratedTool
    assert clean_registry.tool_sources["decorated_tool"] == "code"


def test_register_rejects_non_tools(clean_registry):
    """Test that only ToolInterface classes are accepted."""
    with pytest.raises(TypeError):
        clean_registry.register_tool(MockQueryTool())
    with pytest.raises(TypeError):
        clean_registry.register_tool(dict)


def test_abstract_tools_are_skipped(clean_registry):
    assert clean_registry.register_tool(MockAbstractTool) is None
    assert clean_registry.tools == {}


def test_case_insensitive_lookup(clean_registry):
    clean_registry.register_tool(MockQueryTool)

    instance = clean_registry.get_tool_instance("Mock_Query_Tool")

    assert isinstance(instance, MockQueryTool)
    assert clean_registry.get_tool_instance("mock_query_tool") is instance
    assert clean_registry.get_tool_instance("unknown") is None


def test_get_all_tools(clean_registry):
    clean_registry.register_tool(MockQueryTool)

    tools = clean_registry.get_all_tools()

    assert tools == [
        Tool(
            name="mock_query_tool",
            description="A mock query tool for testing",
            inputSchema={"type": "object", "properties": {"query": {"type": "string"}}},
            source="code",
        )
    ]


class TestInvokeTool:
    """Tests for PluginRegistry.invoke_tool."""

    @pytest.mark.asyncio
    async def test_success_payload_is_json_text(self, clean_registry):
        clean_registry.register_tool(MockQueryTool)

        result = await clean_registry.invoke_tool("mock_query_tool", {"query": "x"})

        assert result.isError is False
        assert json.loads(result.text) == {"success": True, "hits": 2}

    @pytest.mark.asyncio
    async def test_failure_dict_is_error_result(self, clean_registry):
        clean_registry.register_tool(MockQueryTool)

        result = await clean_registry.invoke_tool("mock_query_tool", {"query": "fail"})

        assert result.isError is True
        assert result.text == "query rejected"

    @pytest.mark.asyncio
    async def test_tool_result_passes_through(self, clean_registry):
        clean_registry.register_tool(MockQueryTool)

        result = await clean_registry.invoke_tool("mock_query_tool", {"query": "raw"})

        assert result.text == "raw answer"

    @pytest.mark.asyncio
    async def test_unregistered_tool(self, clean_registry):
        result = await clean_registry.invoke_tool("missing_tool", {})

        assert result.isError is True
        assert "missing_tool" in result.text


def test_discover_tools_from_package(clean_registry, tmp_path, monkeypatch):
    """Test that importing a package registers its decorated tools."""
    package = tmp_path / "sample_o11y_tools"
    package.mkdir()
    (package / "__init__.py").write_text("")
    (package / "echo.py").write_text(
        "from o11y_mcp.interfaces import ToolInterface\n"
        "from o11y_mcp.plugin import register_tool\n"
        "\n"
        "\n"
        "@register_tool\n"
        "class EchoTool(ToolInterface):\n"
        "    name = 'echo'\n"
        "    description = 'Echo arguments'\n"
        "    input_schema = {'type': 'object'}\n"
        "\n"
        "    async def execute_tool(self, arguments):\n"
        "        return arguments\n"
    )
    monkeypatch.syspath_prepend(str(tmp_path))

    names = discover_and_register_tools(["sample_o11y_tools"])

    assert names == ["echo"]


class TestToolResult:
    def test_success_text_and_payload(self):
        assert ToolResult.success("plain").text == "plain"
        assert ToolResult.success({"a": 1}).text == '{"a": 1}'

    def test_failure(self):
        result = ToolResult.failure("bad")

        assert result.isError is True
        assert result.content[0].type == "text"

    def test_text_joins_blocks(self):
        result = ToolResult(content=[TextContent(text="one"), TextContent(text="two")])

        assert result.text == "one\ntwo"
