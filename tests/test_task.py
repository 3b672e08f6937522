"""Tests for the task flow."""

import json
import os
from unittest.mock import patch

import pytest

from tinypenguin.errors import TransportError
from tinypenguin.models.chat import ChatMessage, ChatResponse, Choice, FunctionCall, ToolCall
from tinypenguin.models.tools import ToolResult
from tinypenguin.services.interaction_log import InteractionLog
from tinypenguin.services.task import TaskManager, build_system_prompt
from tinypenguin.tools.edit_files import FileEditor
from tinypenguin.tools.registry import ToolsRegistry
from tinypenguin.tools.run_commands import CommandRunner


class FakeClient:
    """Inference client returning a canned message."""

    def __init__(self, message: ChatMessage | None):
        self.message = message
        self.requests = []

    def chat(self, request):
        self.requests.append(request)
        choices = [] if self.message is None else [Choice(message=self.message, finish_reason="stop")]
        return ChatResponse(model=request.model, choices=choices)

    def close(self):
        pass


class FixedRating:
    """Rating provider that always answers the same rating."""

    def __init__(self, rating: int):
        self.rating = rating
        self.rated = []

    def rate(self, result: ToolResult) -> int:
        self.rated.append(result)
        return self.rating


def assistant(content: str = "", tool_calls=None) -> ChatMessage:
    """Create an assistant message."""
    return ChatMessage(role="assistant", content=content, tool_calls=tool_calls or [])


def tool_call(name: str, arguments: dict, call_id: str = "call_1") -> ToolCall:
    """Create a structured tool call."""
    return ToolCall(id=call_id, function=FunctionCall(name=name, arguments=json.dumps(arguments)))


@pytest.fixture
def log(tmp_path):
    """Interaction log in a temporary directory."""
    return InteractionLog(tmp_path / "tool_calls.log")


def make_manager(message, log, rating_provider=None, tools_enabled=True) -> TaskManager:
    """Create a task manager around a fake client."""
    return TaskManager(
        client=FakeClient(message),
        tools_registry=ToolsRegistry(CommandRunner(default_timeout=10), FileEditor()),
        interaction_log=log,
        model="qwen2.5-coder:3b",
        tools_enabled=tools_enabled,
        rating_provider=rating_provider,
    )


class TestBuildRequest:
    """Tests for the request sent to the model."""

    def test_system_and_user_messages(self, log):
        """Test that the system prompt precedes the user query."""
        request = make_manager(None, log).build_request("Check current users")
        assert [m.role for m in request.messages] == ["system", "user"]
        assert request.messages[1].content == "Check current users"
        assert "RHCSA" in request.messages[0].content
        assert request.stream is False

    def test_tools_sent_when_enabled(self, log):
        """Test that both tool definitions are offered."""
        request = make_manager(None, log).build_request("q")
        assert sorted(t.function.name for t in request.tools) == ["edit_files", "run_commands"]

    def test_tools_omitted_when_disabled(self, log):
        """Test that no tools are offered when tool calling is off."""
        assert make_manager(None, log, tools_enabled=False).build_request("q").tools is None

    def test_system_prompt_includes_cwd(self, tmp_path, monkeypatch):
        """Test that the working directory is rendered into the prompt."""
        monkeypatch.chdir(tmp_path)
        prompt = build_system_prompt()
        assert f"Current working directory: {os.getcwd()}" in prompt
        assert '{"tool_calls": [{"id": "call_1"' in prompt


class TestStructuredToolCalls:
    """Tests for responses carrying structured tool calls."""

    def test_executes_and_logs(self, log):
        """Test the event stream and log entry for one tool call."""
        message = assistant(tool_calls=[tool_call("run_commands", {"command": "echo hello"})])
        rating = FixedRating(4)
        events = list(make_manager(message, log, rating).run("Say hello", task_id="t1"))

        assert [e.type for e in events] == ["started", "tool_call", "tool_result", "rating", "completed"]
        assert all(e.task_id == "t1" for e in events)
        assert events[2].result.status == "success"
        assert events[2].result.output == "hello\n"
        assert events[3].rating == 4

        entries = log.read_entries()
        assert len(entries) == 1
        assert entries[0].user_query == "Say hello"
        assert entries[0].tool_name == "run_commands"
        assert json.loads(entries[0].arguments) == {"command": "echo hello"}
        assert entries[0].rating == 4
        assert entries[0].output == "hello\n"
        assert ChatMessage.model_validate_json(entries[0].model_response).tool_calls[0].name == "run_commands"

    def test_every_call_attempted(self, log):
        """Test that an unknown tool does not stop later calls."""
        message = assistant(
            tool_calls=[
                tool_call("format_disk", {}, "call_1"),
                tool_call("run_commands", {"command": "echo second"}, "call_2"),
            ]
        )
        events = list(make_manager(message, log).run("Do two things"))

        results = [e.result for e in events if e.type == "tool_result"]
        assert [r.status for r in results] == ["error", "success"]
        assert results[0].message == "Unknown tool: format_disk"
        assert [e.tool_name for e in log.read_entries()] == ["format_disk", "run_commands"]

    def test_unrated_has_no_rating_event(self, log):
        """Test that a skipped rating produces no event and logs 0."""
        message = assistant(tool_calls=[tool_call("run_commands", {"command": "echo hi"})])
        events = list(make_manager(message, log).run("q"))

        assert "rating" not in [e.type for e in events]
        assert log.read_entries()[0].rating == 0

    def test_denied_call_is_logged(self, log):
        """Test that denied structured calls are still invocations and get logged."""
        message = assistant(tool_calls=[tool_call("run_commands", {"command": "rm -rf /"})])
        with patch("tinypenguin.tools.run_commands.subprocess.Popen") as mock_popen:
            events = list(make_manager(message, log).run("Clean up"))

        mock_popen.assert_not_called()
        assert [e.result.status for e in events if e.type == "tool_result"] == ["denied"]
        assert log.read_entries()[0].status == "denied"

    def test_edit_files_call(self, log, tmp_path):
        """Test a structured edit_files call end to end."""
        target = tmp_path / "etc" / "motd"
        message = assistant(tool_calls=[tool_call("edit_files", {"path": str(target), "diff": "+Welcome"})])
        list(make_manager(message, log).run("Set the message of the day"))

        assert target.read_text() == "Welcome\n"
        assert log.read_entries()[0].tool_name == "edit_files"

    def test_log_write_failure_does_not_abort(self, tmp_path):
        """Test that an unwritable log is reported but the task completes."""
        broken_log = InteractionLog(tmp_path)
        message = assistant(tool_calls=[tool_call("run_commands", {"command": "echo hi"})])
        events = list(make_manager(message, broken_log).run("q"))
        assert events[-1].type == "completed"

    def test_corrupt_log_bytes_do_not_abort(self, log):
        """Test that a log holding non-UTF-8 bytes is still appended to."""
        log.path.write_bytes(b"\xff\xfe garbage\n")
        message = assistant(tool_calls=[tool_call("run_commands", {"command": "echo hi"})])
        events = list(make_manager(message, log).run("q"))

        assert [e.type for e in events] == ["started", "tool_call", "tool_result", "completed"]
        assert [e.tool_name for e in log.read_entries()] == ["run_commands"]


class TestRecoveredCommands:
    """Tests for commands recovered from message text."""

    def test_safe_command_auto_executes(self, log, tmp_path, monkeypatch):
        """Test that a read-only command in content runs and is logged."""
        monkeypatch.chdir(tmp_path)
        events = list(make_manager(assistant('{"command": "pwd"}'), log).run("Where am I?"))

        assert [e.type for e in events] == ["started", "tool_call", "tool_result", "completed"]
        assert events[1].command == "pwd"
        assert events[1].tool_name == "run_commands"
        assert events[2].result.status == "success"

        entries = log.read_entries()
        assert len(entries) == 1
        assert json.loads(entries[0].arguments) == {"command": "pwd"}

    def test_dangerous_suggestion_is_denied_and_not_logged(self, log):
        """Test that a fenced `rm -rf /` is reported as denied without execution."""
        content = '```json\n{"command": "rm -rf /"}\n```'
        with patch("tinypenguin.tools.run_commands.subprocess.Popen") as mock_popen:
            events = list(make_manager(assistant(content), log).run("Free up disk space"))

        mock_popen.assert_not_called()
        suggestion = next(e for e in events if e.type == "suggestion")
        assert suggestion.command == "rm -rf /"
        assert suggestion.result.status == "denied"
        assert suggestion.result.message == "Command was denied for safety reasons"
        assert not log.path.exists()

    def test_mutating_suggestion_is_not_executed(self, log):
        """Test that non read-only commands are only suggested."""
        with patch("tinypenguin.tools.run_commands.subprocess.Popen") as mock_popen:
            events = list(make_manager(assistant('{"command": "useradd john"}'), log).run("Add user john"))

        mock_popen.assert_not_called()
        assert [e.type for e in events] == ["started", "suggestion", "completed"]
        assert events[1].message == "Model suggested command: useradd john"
        assert events[1].result is None
        assert not log.path.exists()

    def test_chained_command_is_not_executed(self, log):
        """Test that a read-only command chained with another is only suggested."""
        with patch("tinypenguin.tools.run_commands.subprocess.Popen") as mock_popen:
            events = list(make_manager(assistant('{"command": "ls; reboot"}'), log).run("List files"))

        mock_popen.assert_not_called()
        assert events[1].type == "suggestion"

    @pytest.mark.parametrize("command", ["cat /etc/hostname\nrm -rf ~", "cat <(touch /tmp/pwned)"])
    def test_multiline_and_substitution_not_executed(self, log, command):
        """Test that a second command or process substitution is only suggested."""
        content = json.dumps({"command": command})
        with patch("tinypenguin.tools.run_commands.subprocess.Popen") as mock_popen:
            events = list(make_manager(assistant(content), log).run("Show hostname"))

        mock_popen.assert_not_called()
        assert events[1].type == "suggestion"
        assert events[1].command == command
        assert not log.path.exists()


class TestTextOutcomes:
    """Tests for responses without tool usage."""

    def test_plain_text_answer(self, log):
        """Test that prose is shown as the answer."""
        content = "Use `useradd john` followed by `passwd john`."
        events = list(make_manager(assistant(content), log).run("How do I add a user?"))

        assert [e.type for e in events] == ["started", "answer", "completed"]
        assert events[1].message == content
        assert not log.path.exists()

    def test_empty_message(self, log):
        """Test the fallback answer for an empty response."""
        events = list(make_manager(assistant(""), log).run("Anything"))
        assert events[1].message == "Task completed without tool usage"

    def test_no_choices_is_a_transport_error(self, log):
        """Test that a response without choices aborts the task."""
        manager = make_manager(None, log)
        with pytest.raises(TransportError, match="no response from model"):
            list(manager.run("q"))
