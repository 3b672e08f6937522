"""Interpretation of model responses.

Small local models often put a tool call into the message text instead of
the ``tool_calls`` field, usually as JSON wrapped in a code fence. This
module recovers a command from such text and decides whether it is harmless
enough to run without an explicit tool call.
"""

import json
from dataclasses import dataclass
from typing import Any

from tinypenguin.models.chat import ChatMessage, ToolCall
from tinypenguin.utils.logging import get_logger

logger = get_logger(__name__)

# Informational commands that may run automatically, exactly or followed by arguments
SAFE_INFO_COMMANDS: tuple[str, ...] = (
    "who",
    "w",
    "users",
    "whoami",
    "id",
    "cat /etc/passwd",
    "getent passwd",
    "cut -d: -f1 /etc/passwd",
    "ls",
    "pwd",
    "date",
    "uptime",
    "uname",
    "hostname",
    "df",
    "free",
    "ps",
    "systemctl list-units",
    "systemctl status",
    "netstat",
    "ss",
    "ip addr",
    "ip route",
)

READ_ONLY_PREFIXES: tuple[str, ...] = (
    "cat ",
    "less ",
    "head ",
    "tail ",
    "grep ",
    "find ",
    "ls ",
    "getent ",
    "cut ",
)

# Chaining, piping, redirection and substitution disqualify auto-execution.
# A line break starts a new command; "<" covers input redirection and "<(".
SHELL_METACHARACTERS: tuple[str, ...] = (";", "|", "&", ">", "<", "`", "$(", "\n", "\r")


@dataclass(frozen=True)
class StructuredToolCalls:
    """The message carries well-formed tool calls."""

    tool_calls: list[ToolCall]


@dataclass(frozen=True)
class RecoveredCommand:
    """A command recovered from the message text."""

    command: str
    auto_execute: bool


@dataclass(frozen=True)
class PlainText:
    """Text with no recoverable command."""

    content: str


@dataclass(frozen=True)
class Empty:
    """Nothing to act on or display."""


InterpretedResponse = StructuredToolCalls | RecoveredCommand | PlainText | Empty


def interpret(message: ChatMessage) -> InterpretedResponse:
    """Classify a model message, structured tool calls first."""
    if message.tool_calls:
        return StructuredToolCalls(tool_calls=list(message.tool_calls))

    command, auto_execute = parse_command_from_content(message.content)
    if command:
        return RecoveredCommand(command=command, auto_execute=auto_execute)

    if message.content.strip():
        return PlainText(content=message.content)

    return Empty()


def parse_command_from_content(content: str) -> tuple[str | None, bool]:
    """Recover a command from free-form response text.

    Returns:
        The command (or None) and whether it may run automatically
    """
    if not content:
        return None, False

    content = strip_code_fence(content)

    parsed, content = _load_json_object(content)
    if parsed is not None:
        command = extract_command(parsed)
        if command:
            auto_execute = is_read_only_command(command)
            logger.debug(f"Recovered command from JSON content: {command!r} (auto_execute={auto_execute})")
            return command, auto_execute
        return None, False

    command = _scan_command_lines(content)
    if command:
        logger.debug(f"Recovered command from text line: {command!r}")
        return command, False

    return None, False


def strip_code_fence(content: str) -> str:
    """Remove one opening ``` / ```json line and one closing ``` line."""
    content = content.strip()
    if not content.startswith("```"):
        return content

    lines = content.split("\n")
    if lines and lines[0].strip().startswith("```"):
        lines = lines[1:]
    if lines and lines[-1].strip() == "```":
        lines = lines[:-1]
    return "\n".join(lines).strip()


def extract_command(payload: dict[str, Any]) -> str:
    """Read a command from the JSON shapes models commonly produce.

    Tried in order:
    ``{"command": ...}``, ``{"arguments": {"command": ...}}`` and
    ``{"arguments": "{\\"command\\": ...}"}``.
    """
    command = payload.get("command")
    if isinstance(command, str) and command:
        return command

    arguments = payload.get("arguments")
    if isinstance(arguments, dict):
        command = arguments.get("command")
        if isinstance(command, str) and command:
            return command

    if isinstance(arguments, str):
        try:
            decoded = json.loads(arguments)
        except json.JSONDecodeError:
            decoded = None
        if isinstance(decoded, dict):
            command = decoded.get("command")
            if isinstance(command, str) and command:
                return command

    return ""


def is_read_only_command(command: str) -> bool:
    """Return True for the informational commands allowed to auto-run."""
    normalized = command.strip().lower()
    if any(meta in normalized for meta in SHELL_METACHARACTERS):
        return False

    for safe in SAFE_INFO_COMMANDS:
        if normalized == safe or normalized.startswith(safe + " "):
            return True

    return normalized.startswith(READ_ONLY_PREFIXES)


def _load_json_object(content: str) -> tuple[dict[str, Any] | None, str]:
    parsed = _try_json_object(content)
    if parsed is not None:
        return parsed, content

    start = content.find("{")
    end = content.rfind("}")
    if start >= 0 and end > start:
        candidate = content[start : end + 1]
        parsed = _try_json_object(candidate)
        if parsed is not None:
            return parsed, candidate

    return None, content


def _try_json_object(text: str) -> dict[str, Any] | None:
    try:
        value = json.loads(text)
    except json.JSONDecodeError:
        return None
    return value if isinstance(value, dict) else None


def _scan_command_lines(content: str) -> str | None:
    for raw_line in content.split("\n"):
        line = raw_line.strip()
        if not line:
            continue
        if '"command"' not in line and "'command'" not in line:
            continue

        idx = line.find(":")
        if idx <= 0:
            continue

        candidate = line[idx + 1 :].strip().strip("\"'{}[]")
        if candidate and "{" not in candidate:
            return candidate

    return None
