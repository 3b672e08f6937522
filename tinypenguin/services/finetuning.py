"""Conversion of the interaction log into fine-tuning examples."""

import json
from dataclasses import dataclass
from pathlib import Path

from pydantic import ValidationError

from tinypenguin.models.chat import ChatMessage, FunctionCall, ToolCall
from tinypenguin.models.log import FineTuningExample, LogEntry, TrainingMessage
from tinypenguin.utils.logging import get_logger

logger = get_logger(__name__)

DEFAULT_MIN_RATING = 3


@dataclass
class ConversionStats:
    """Counts reported after a conversion run."""

    converted: int = 0
    skipped: int = 0
    reconstructed: int = 0


def convert_log(log_path: Path, output_path: Path, min_rating: int = DEFAULT_MIN_RATING) -> ConversionStats:
    """Write one fine-tuning example per usable log entry as JSONL.

    Entries rated below ``min_rating`` are skipped; unrated entries are kept.

    Raises:
        OSError: If the log cannot be read or the output cannot be written
    """
    stats = ConversionStats()
    lines: list[str] = []

    for line_number, raw_line in enumerate(log_path.read_bytes().splitlines(), start=1):
        if not raw_line.strip():
            continue

        try:
            entry = LogEntry.model_validate_json(raw_line.decode("utf-8"))
        except UnicodeDecodeError as e:
            logger.warning(f"Failed to decode line {line_number}: {e.reason}")
            stats.skipped += 1
            continue
        except ValidationError as e:
            logger.warning(f"Failed to parse line {line_number}: {e.error_count()} validation error(s)")
            stats.skipped += 1
            continue

        if 0 < entry.rating < min_rating:
            stats.skipped += 1
            continue

        example = build_example(entry)
        if example is None:
            example = reconstruct_example(entry)
            stats.reconstructed += 1

        lines.append(example.model_dump_json(exclude_none=True))
        stats.converted += 1

    output_path.write_text("".join(f"{line}\n" for line in lines), encoding="utf-8")
    logger.info(f"Converted {stats.converted} entries from {log_path} into {output_path}")
    return stats


def build_example(entry: LogEntry) -> FineTuningExample | None:
    """Build an example from an entry that recorded the query and response.

    Returns None for older entries without ``user_query`` / ``model_response``.
    """
    if not entry.user_query or not entry.model_response:
        return None

    try:
        response = ChatMessage.model_validate_json(entry.model_response)
    except ValidationError:
        logger.debug(f"Unreadable model_response for {entry.tool_name} entry at {entry.timestamp}")
        return None

    assistant = TrainingMessage(
        role="assistant",
        content=response.content,
        tool_calls=response.tool_calls or [_tool_call_from_entry(entry)],
    )
    messages = [TrainingMessage(role="user", content=entry.user_query), assistant]

    tool_message = _tool_result_message(entry)
    if tool_message:
        messages.append(tool_message)

    return FineTuningExample(messages=messages)


def reconstruct_example(entry: LogEntry) -> FineTuningExample:
    """Best-effort example for entries logged without the user query."""
    assistant_content = f"I'll help you with that. Let me use the {entry.tool_name} tool."
    messages = [
        TrainingMessage(role="user", content=reconstruct_user_query(entry)),
        TrainingMessage(role="assistant", content=assistant_content, tool_calls=[_tool_call_from_entry(entry)]),
    ]

    tool_message = _tool_result_message(entry)
    if tool_message:
        messages.append(tool_message)

    return FineTuningExample(messages=messages)


def reconstruct_user_query(entry: LogEntry) -> str:
    """Infer a plausible user query from the logged tool call."""
    try:
        args = json.loads(entry.arguments)
    except json.JSONDecodeError:
        args = {}
    if not isinstance(args, dict):
        args = {}

    if entry.tool_name == "run_commands":
        command = args.get("command")
        if not isinstance(command, str):
            return "Execute a command"
        if command.startswith("who") or command.startswith("w "):
            return "Check current users"
        if command.startswith("pwd"):
            return "What's the current directory?"
        if command.startswith("ls"):
            return "List files in current directory"
        if command.startswith("ps"):
            return "Show running processes"
        return f"Execute: {command}"

    if entry.tool_name == "edit_files":
        path = args.get("path")
        return f"Edit file: {path}" if isinstance(path, str) else "Edit a file"

    return f"Use tool: {entry.tool_name}"


def _tool_call_from_entry(entry: LogEntry) -> ToolCall:
    return ToolCall(id="call_1", function=FunctionCall(name=entry.tool_name, arguments=entry.arguments))


def _tool_result_message(entry: LogEntry) -> TrainingMessage | None:
    if entry.status != "success" or not entry.output:
        return None
    return TrainingMessage(
        role="tool",
        content=f"Tool execution result:\nStatus: {entry.status}\nOutput: {entry.output}",
    )
