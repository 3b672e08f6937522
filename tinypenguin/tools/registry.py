"""Tools registry and dispatcher."""

from tinypenguin.config import Settings, get_settings
from tinypenguin.models.chat import ToolCall, ToolSpec
from tinypenguin.models.tools import ToolResult
from tinypenguin.tools.base import ToolDefinition
from tinypenguin.tools.edit_files import FileEditor, create_edit_files_tool
from tinypenguin.tools.run_commands import CommandRunner, create_run_commands_tool
from tinypenguin.utils.logging import get_logger

logger = get_logger(__name__)


class ToolsRegistry:
    """Registry of the tools offered to the model, and their dispatcher."""

    def __init__(self, command_runner: CommandRunner, file_editor: FileEditor):
        """Initialize tools registry with tool dependencies."""
        self.command_runner = command_runner
        self.file_editor = file_editor
        self._tools: dict[str, ToolDefinition] = {}
        self._register_default_tools()

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> "ToolsRegistry":
        settings = settings or get_settings()
        return cls(
            CommandRunner(default_timeout=settings.command_timeout, max_output_bytes=settings.max_output_bytes),
            FileEditor(),
        )

    def _register_default_tools(self) -> None:
        """Register the default set of system administration tools."""
        tools = [
            create_edit_files_tool(self.file_editor),
            create_run_commands_tool(self.command_runner),
        ]

        for tool in tools:
            self.register_tool(tool)

    def register_tool(self, tool: ToolDefinition) -> None:
        """Register a new tool in the registry."""
        self._tools[tool.name] = tool

    def get_tool_specs(self) -> list[ToolSpec]:
        """Get tool definitions in the format sent to the endpoint."""
        return [tool.to_spec() for tool in self._tools.values()]

    def get_tool_names(self) -> list[str]:
        """Get list of all registered tool names."""
        return list(self._tools.keys())

    def has_tool(self, name: str) -> bool:
        """Check if a tool is registered."""
        return name in self._tools

    def execute(self, name: str, arguments: str) -> ToolResult:
        """Run a tool by name with JSON-encoded arguments.

        Never raises; every failure comes back as an error result.
        """
        tool = self._tools.get(name)
        if tool is None:
            logger.error(f"Unknown tool requested: {name}")
            return ToolResult.error(f"Unknown tool: {name}", error_details=f"Available tools: {self.get_tool_names()}")

        logger.debug(f"Executing tool: {name} with arguments: {arguments}")
        try:
            result = tool.invoke(arguments)
        except Exception as e:
            logger.error(f"Tool {name} failed: {e}", exc_info=True)
            return ToolResult.error(f"Tool {name} failed: {e}", error_details=repr(e))

        logger.info(f"Tool {name} finished with status {result.status}")
        return result

    def dispatch(self, tool_call: ToolCall) -> ToolResult:
        """Run a tool call requested by the model."""
        return self.execute(tool_call.name, tool_call.arguments)


_tools_registry: ToolsRegistry | None = None


def get_tools_registry() -> ToolsRegistry:
    """Get or create tools registry instance."""
    global _tools_registry

    if _tools_registry is None:
        _tools_registry = ToolsRegistry.from_settings()

    return _tools_registry
