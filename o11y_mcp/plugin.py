import importlib
import inspect
import logging
import pkgutil
import time
from contextlib import contextmanager
from typing import Any, Dict, List, Optional, Type

from o11y_mcp.interfaces import ToolInterface
from o11y_mcp.types import Tool, ToolResult

logger = logging.getLogger(__name__)


@contextmanager
def time_plugin_operation(name: str):
    start_time = time.time()
    logger.info(f"Starting {name}...")
    try:
        yield
    finally:
        duration = time.time() - start_time
        logger.info(f"{name} completed in {duration:.2f}s")


class PluginRegistry:
    """Registry for MCP tool plugins.

    This class handles the registration, discovery, and invocation of tool
    plugins that implement the ToolInterface.
    """

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super(PluginRegistry, cls).__new__(cls)
            cls._instance._initialize()
        return cls._instance

    def _initialize(self):
        """Initialize the plugin registry"""
        self.tools: Dict[str, Type[ToolInterface]] = {}
        self.instances: Dict[str, ToolInterface] = {}
        self.discovered_paths = set()
        self.tool_sources: Dict[str, str] = {}

    def register_tool(
        self, tool_class: Type[ToolInterface], source: str = "code"
    ) -> Optional[Type[ToolInterface]]:
        """Register a tool class.

        Args:
            tool_class: A class that implements ToolInterface
            source: Where the tool comes from ("code" or "plugin")

        Returns:
            The registered tool class or None if it wasn't registered

        Raises:
            TypeError: If the provided class doesn't implement ToolInterface
        """
        if not inspect.isclass(tool_class):
            raise TypeError(f"Expected a class, got {type(tool_class)}")

        if not issubclass(tool_class, ToolInterface):
            raise TypeError(
                f"Class {tool_class.__name__} does not implement ToolInterface"
            )

        if inspect.isabstract(tool_class):
            logger.debug(
                f"Skipping registration of abstract class {tool_class.__name__}"
            )
            return None

        # Create a temporary instance to get the name
        try:
            tool_name = tool_class().name
        except Exception as e:
            logger.error(f"Error creating instance of {tool_class.__name__}: {e}")
            return None

        logger.info(f"Registering tool: {tool_name} ({tool_class.__name__}) from {source}")
        self.tools[tool_name] = tool_class
        self.tool_sources[tool_name] = source
        self.instances.pop(tool_name, None)
        return tool_class

    def register_instance(self, instance: ToolInterface, source: str = "code") -> None:
        """Register an already constructed tool instance."""
        if not isinstance(instance, ToolInterface):
            raise TypeError(f"{type(instance).__name__} does not implement ToolInterface")
        self.tools[instance.name] = type(instance)
        self.instances[instance.name] = instance
        self.tool_sources[instance.name] = source

    def _resolve_name(self, tool_name: str) -> Optional[str]:
        if tool_name in self.tools:
            return tool_name
        for registered_name in self.tools:
            if registered_name.lower() == tool_name.lower():
                logger.debug(
                    f"Found tool '{registered_name}' with case-insensitive match for '{tool_name}'"
                )
                return registered_name
        return None

    def get_tool_instance(self, tool_name: str) -> Optional[ToolInterface]:
        """Get or create an instance of a registered tool.

        Args:
            tool_name: Name of the tool to get

        Returns:
            Instance of the tool, or None if not found
        """
        name = self._resolve_name(tool_name)
        if name is None:
            logger.warning(f"Tool '{tool_name}' not found")
            return None

        if name not in self.instances:
            logger.debug(f"Creating new instance for tool '{name}'")
            try:
                self.instances[name] = self.tools[name]()
            except Exception as e:
                logger.error(f"Error creating instance of tool {name}: {e}")
                return None
        return self.instances[name]

    def get_all_tools(self) -> List[Tool]:
        """Describe every registered tool."""
        described = []
        for name in sorted(self.tools):
            instance = self.get_tool_instance(name)
            if instance is None:
                continue
            described.append(
                Tool(
                    name=instance.name,
                    description=instance.description,
                    inputSchema=instance.input_schema,
                    source=self.tool_sources.get(name, "code"),
                )
            )
        return described

    async def invoke_tool(self, tool_name: str, arguments: Dict[str, Any]) -> ToolResult:
        """Invoke a registered tool and normalize its answer into a ToolResult.

        Tools in this layer report failure by returning a dict with
        ``success: False`` and an ``error`` message; that is mapped to an
        error result. Exceptions raised by the tool propagate to the caller.

        Args:
            tool_name: Name of the tool to invoke
            arguments: Resolved tool arguments

        Returns:
            ToolResult describing the outcome
        """
        instance = self.get_tool_instance(tool_name)
        if instance is None:
            return ToolResult.failure(f"Tool '{tool_name}' is not registered")

        result = await instance.execute_tool(arguments)
        if isinstance(result, ToolResult):
            return result
        if isinstance(result, dict) and result.get("success") is False:
            return ToolResult.failure(str(result.get("error", "Tool reported failure")))
        return ToolResult.success(result)

    def discover_tools(self, package_name: str) -> None:
        """Discover tools by recursively importing a package.

        Modules register their tools through the register_tool decorator
        as a side effect of being imported.

        Args:
            package_name: Name of the package to scan for tools
        """
        if package_name in self.discovered_paths:
            return
        self.discovered_paths.add(package_name)

        logger.info(f"Discovering tools in package: {package_name}")
        package = importlib.import_module(package_name)
        for _, module_name, _ in pkgutil.walk_packages(
            getattr(package, "__path__", []), prefix=f"{package_name}."
        ):
            if ".tests" in module_name or module_name in self.discovered_paths:
                continue
            self.discovered_paths.add(module_name)
            try:
                importlib.import_module(module_name)
            except ImportError as e:
                logger.warning(f"Error processing module {module_name}: {e}")

    def clear(self) -> None:
        """Remove all registered tools."""
        self._initialize()


registry = PluginRegistry()


def register_tool(cls=None, *, source: str = "code"):
    """Decorator to register a tool class with the plugin registry.

    Example:
        @register_tool
        class MyTool(ToolInterface):
            ...

        @register_tool(source="plugin")
        class OtherTool(ToolInterface):
            ...
    """

    def _register(cls):
        cls._mcp_source = source
        result = registry.register_tool(cls, source=source)
        return cls if result is None else result

    if cls is None:
        return _register
    return _register(cls)


def discover_and_register_tools(packages: Optional[List[str]] = None) -> List[str]:
    """Import plugin packages so their tools register, returning the tool names."""
    with time_plugin_operation("Tool discovery"):
        for package_name in packages or ["plugins.workflows.tools"]:
            registry.discover_tools(package_name)
    return sorted(registry.tools)
