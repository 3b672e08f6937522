"""Task flow: one model round-trip followed by tool execution and logging."""

import json
import os
from collections.abc import Iterator

from tinypenguin.clients.inference import InferenceClient, InferenceConfig
from tinypenguin.config import Settings, get_settings
from tinypenguin.errors import TransportError
from tinypenguin.models.chat import ChatMessage, ChatRequest
from tinypenguin.models.log import LogEntry
from tinypenguin.models.task import TaskEvent
from tinypenguin.models.tools import ToolResult
from tinypenguin.services.interaction_log import InteractionLog
from tinypenguin.services.interpreter import PlainText, RecoveredCommand, StructuredToolCalls, interpret
from tinypenguin.services.rating import NullRatingProvider, RatingProvider
from tinypenguin.tools.registry import ToolsRegistry
from tinypenguin.tools.safety import DENIAL_MESSAGE, is_dangerous
from tinypenguin.utils.logging import get_logger

logger = get_logger(__name__)

SYSTEM_PROMPT = """You are a Red Hat Certified System Administrator (RHCSA) assistant.
You help with Linux system administration tasks including:
- File system operations (create, edit, delete files)
- Package management (yum/dnf, rpm)
- Service management (systemctl)
- User and group management
- Network configuration
- Security (SELinux, firewall, permissions)

CRITICAL INSTRUCTIONS FOR TOOL CALLING:
When you need to execute a command or edit a file, you MUST use the tool_calls format in your response.
DO NOT put JSON in your text content - the API expects tool_calls in a specific format.

KEY RULES:
1. ALWAYS use the tool_calls array format (not JSON in content)
2. The "arguments" field must be a JSON STRING (escaped), not an object
3. For run_commands: arguments = "{{\\"command\\": \\"your-command-here\\"}}"
4. For edit_files: arguments = "{{\\"path\\": \\"/path/to/file\\", \\"diff\\": \\"your-diff-here\\"}}"
5. When the user asks informational questions (like "check users"), ALWAYS use run_commands
6. The tool name must be exactly "run_commands" or "edit_files"

EXAMPLE:
User: "Check current users"
Respond with tool_calls containing:
{{"tool_calls": [{{"id": "call_1", "type": "function",
  "function": {{"name": "run_commands", "arguments": "{{\\"command\\": \\"who\\"}}"}}}}]}}

Always prioritize security and provide safe, tested commands.
Use sudo when necessary for administrative tasks.

Current working directory: {cwd}
Available tools:
- edit_files: Edit file contents using diff format
- run_commands: Execute shell commands (USE THIS tool for ALL commands, including informational queries)"""


def build_system_prompt() -> str:
    try:
        cwd = os.getcwd()
    except OSError:
        cwd = "/unknown"
    return SYSTEM_PROMPT.format(cwd=cwd)


class TaskManager:
    """Runs a single natural-language task against the model.

    ``run`` is a generator of ``TaskEvent``. Events are produced as work
    happens, so a terminal consumer shows each tool result before the
    rating prompt for it.
    """

    def __init__(
        self,
        client: InferenceClient,
        tools_registry: ToolsRegistry,
        interaction_log: InteractionLog,
        model: str,
        tools_enabled: bool = True,
        rating_provider: RatingProvider | None = None,
    ):
        """Initialize task manager.

        Args:
            client: Inference endpoint client
            tools_registry: Tools offered to the model and their dispatcher
            interaction_log: Where tool invocations are recorded
            model: Model name sent with each request
            tools_enabled: Whether tool definitions are sent to the model
            rating_provider: Source of ratings (defaults to unrated)
        """
        self.client = client
        self.tools_registry = tools_registry
        self.interaction_log = interaction_log
        self.model = model
        self.tools_enabled = tools_enabled
        self.rating_provider = rating_provider or NullRatingProvider()

    @classmethod
    def from_settings(cls, settings: Settings | None = None, rating_provider: RatingProvider | None = None):
        settings = settings or get_settings()
        return cls(
            client=InferenceClient(InferenceConfig.from_settings(settings)),
            tools_registry=ToolsRegistry.from_settings(settings),
            interaction_log=InteractionLog.from_settings(settings),
            model=settings.model,
            tools_enabled=settings.tools_enabled,
            rating_provider=rating_provider,
        )

    def build_request(self, query: str) -> ChatRequest:
        messages = [
            ChatMessage(role="system", content=build_system_prompt()),
            ChatMessage(role="user", content=query),
        ]
        tools = self.tools_registry.get_tool_specs() if self.tools_enabled else None
        return ChatRequest(model=self.model, messages=messages, tools=tools, stream=False)

    def run(self, query: str, task_id: str | None = None) -> Iterator[TaskEvent]:
        """Execute a task, yielding progress events.

        Raises:
            TransportError: If the model could not be reached; the task aborts
        """
        logger.info(f"Starting task: {query[:80]}")
        yield TaskEvent(type="started", task_id=task_id, message=f"Analyzing task with {self.model}...")

        response = self.client.chat(self.build_request(query))
        if not response.choices:
            raise TransportError("no response from model")

        choice = response.choices[0]
        message = choice.message
        logger.debug(f"Finish reason: {choice.finish_reason}, tool calls: {len(message.tool_calls)}")

        outcome = interpret(message)

        if isinstance(outcome, StructuredToolCalls):
            logger.info(f"Model wants to use {len(outcome.tool_calls)} tool(s)")
            for tool_call in outcome.tool_calls:
                yield TaskEvent(
                    type="tool_call", task_id=task_id, tool_name=tool_call.name, message=tool_call.arguments
                )
                result = self.tools_registry.dispatch(tool_call)
                yield TaskEvent(type="tool_result", task_id=task_id, tool_name=tool_call.name, result=result)
                yield from self._rate_and_log(query, message, tool_call.name, tool_call.arguments, result, task_id)

        elif isinstance(outcome, RecoveredCommand) and outcome.auto_execute:
            logger.warning(f"Command found in content instead of tool_calls, executing: {outcome.command}")
            arguments = json.dumps({"command": outcome.command})
            yield TaskEvent(
                type="tool_call",
                task_id=task_id,
                tool_name="run_commands",
                command=outcome.command,
                message="Detected command suggestion in response; executing it to answer your question",
            )
            result = self.tools_registry.execute("run_commands", arguments)
            yield TaskEvent(type="tool_result", task_id=task_id, tool_name="run_commands", result=result)
            yield from self._rate_and_log(query, message, "run_commands", arguments, result, task_id)

        elif isinstance(outcome, RecoveredCommand):
            if is_dangerous(outcome.command):
                yield TaskEvent(
                    type="suggestion",
                    task_id=task_id,
                    command=outcome.command,
                    result=ToolResult.denied(DENIAL_MESSAGE),
                    message=f"Model suggested a command that was denied: {outcome.command}",
                )
            else:
                yield TaskEvent(
                    type="suggestion",
                    task_id=task_id,
                    command=outcome.command,
                    message=f"Model suggested command: {outcome.command}",
                )

        elif isinstance(outcome, PlainText):
            yield TaskEvent(type="answer", task_id=task_id, message=outcome.content)

        else:
            yield TaskEvent(type="answer", task_id=task_id, message="Task completed without tool usage")

        yield TaskEvent(type="completed", task_id=task_id, message="Task completed")

    def _rate_and_log(
        self,
        query: str,
        response: ChatMessage,
        tool_name: str,
        arguments: str,
        result: ToolResult,
        task_id: str | None,
    ) -> Iterator[TaskEvent]:
        rating = self.rating_provider.rate(result)
        if rating > 0:
            yield TaskEvent(
                type="rating",
                task_id=task_id,
                tool_name=tool_name,
                rating=rating,
                message=f"Rating saved: {rating}/5 stars",
            )

        entry = LogEntry.from_result(
            model=self.model,
            user_query=query,
            response=response,
            tool_name=tool_name,
            arguments=arguments,
            result=result,
            tools_enabled=self.tools_enabled,
            rating=rating,
        )
        try:
            self.interaction_log.append(entry)
        except (OSError, UnicodeError) as e:
            logger.error(f"Failed to write interaction log {self.interaction_log.path}: {e}")
