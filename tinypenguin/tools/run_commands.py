"""Shell command execution tool."""

import os
import shutil
import signal
import subprocess
import threading
from typing import cast

from pydantic import BaseModel

from tinypenguin.config import DEFAULT_MAX_OUTPUT_BYTES
from tinypenguin.models.tools import RunCommandsInput, ToolResult
from tinypenguin.tools.base import ToolDefinition
from tinypenguin.tools.safety import DENIAL_MESSAGE, is_dangerous, matched_rule
from tinypenguin.utils.logging import get_logger

logger = get_logger(__name__)

RUN_COMMANDS_PARAMETERS = {
    "type": "object",
    "properties": {
        "command": {
            "type": "string",
            "description": "Command to execute",
        },
        "timeout": {
            "type": "integer",
            "description": "Timeout in seconds (optional)",
        },
    },
    "required": ["command"],
}

TRUNCATION_MARKER = "\n... (output truncated) ..."
READ_CHUNK_BYTES = 64 * 1024
# Grace period for the reader once the shell itself has exited
DRAIN_TIMEOUT_S = 1.0


def kill_process_group(proc: subprocess.Popen) -> None:
    """Send SIGKILL to the whole process group so shell children do not linger."""
    if os.name == "posix":
        # The shell leads its own session, so its pid names the group even after it is reaped
        try:
            os.killpg(proc.pid, signal.SIGKILL)
        except (OSError, ProcessLookupError):
            logger.debug(f"Process group of {proc.pid} already gone")
    proc.kill()


class OutputCapture:
    """Drains a process pipe into memory, stopping the process once the cap is passed."""

    def __init__(self, proc: subprocess.Popen, max_bytes: int):
        self.proc = proc
        self.max_bytes = max_bytes
        self.buffer = bytearray()
        self.truncated = False

    def drain(self) -> None:
        stream = self.proc.stdout
        if stream is None:
            return
        while True:
            chunk = stream.read1(READ_CHUNK_BYTES)
            if not chunk:
                return
            self.buffer += chunk
            if len(self.buffer) > self.max_bytes:
                self.truncated = True
                del self.buffer[self.max_bytes :]
                kill_process_group(self.proc)
                return

    def text(self) -> str:
        text = bytes(self.buffer).decode("utf-8", errors="replace")
        return text + TRUNCATION_MARKER if self.truncated else text


class CommandRunner:
    """Runs shell commands with a deadline and a bounded output buffer."""

    def __init__(
        self,
        default_timeout: int = 30,
        max_output_bytes: int = DEFAULT_MAX_OUTPUT_BYTES,
        shell: str | None = None,
    ):
        """Initialize command runner.

        Args:
            default_timeout: Seconds allowed when a call gives no timeout
            max_output_bytes: Combined stdout+stderr bytes kept per command
            shell: Shell binary used for ``-c`` (defaults to bash, then sh)
        """
        self.default_timeout = default_timeout
        self.max_output_bytes = max_output_bytes
        self.shell = shell or shutil.which("bash") or "/bin/sh"

    def run(self, command: str, timeout: int | None = None) -> ToolResult:
        """Run a command through the shell in the current directory."""
        if not command or not command.strip():
            return ToolResult.error("Command is required", error_details="Command parameter is missing")

        if is_dangerous(command):
            logger.warning(f"Denied dangerous command: {command}")
            return ToolResult.denied(
                DENIAL_MESSAGE,
                error_details=f"Command matches denylist rule: {matched_rule(command)}",
            )

        timeout_s = timeout if timeout and timeout > 0 else self.default_timeout
        cwd = os.getcwd()
        logger.info(f"Running command: {command} (cwd={cwd}, timeout={timeout_s}s)")

        proc = subprocess.Popen(
            [self.shell, "-c", command],
            stdin=subprocess.DEVNULL,
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT,
            cwd=cwd,
            start_new_session=os.name == "posix",
        )
        capture = OutputCapture(proc, self.max_output_bytes)
        reader = threading.Thread(target=capture.drain, daemon=True)
        reader.start()
        try:
            try:
                returncode = proc.wait(timeout=timeout_s)
            except subprocess.TimeoutExpired:
                self._kill(proc)
                reader.join(timeout=DRAIN_TIMEOUT_S)
                logger.warning(f"Command timed out after {timeout_s}s: {command}")
                return ToolResult.error("Command timed out", error_details=f"Command exceeded {timeout_s}s timeout")

            reader.join(timeout=DRAIN_TIMEOUT_S)
            if reader.is_alive():
                # A background child still holds the pipe open
                self._kill(proc)
                reader.join(timeout=DRAIN_TIMEOUT_S)
        finally:
            if proc.stdout is not None and not reader.is_alive():
                proc.stdout.close()

        output = capture.text()
        if capture.truncated:
            logger.warning(f"Command output exceeded {self.max_output_bytes} bytes; command was stopped")
            return ToolResult.error(
                f"Command output exceeded {self.max_output_bytes} bytes",
                output=output,
                error_details="Process was killed after its output passed the limit",
            )

        if returncode != 0:
            logger.info(f"Command exited with status {returncode}")
            return ToolResult.error(
                f"Command failed: exit status {returncode}",
                output=output,
                error_details=f"Process exited with status {returncode}",
            )

        logger.debug(f"Command output: {output[:200]}{'...' if len(output) > 200 else ''}")
        return ToolResult.success("Command executed successfully", output=output)

    @staticmethod
    def _kill(proc: subprocess.Popen) -> None:
        kill_process_group(proc)
        try:
            proc.wait(timeout=5)
        except subprocess.TimeoutExpired:
            logger.error(f"Process {proc.pid} did not exit after SIGKILL")


def create_run_commands_tool(runner: CommandRunner) -> ToolDefinition:
    def run_commands_handler(params: BaseModel) -> ToolResult:
        command_input = cast(RunCommandsInput, params)
        return runner.run(command_input.command, command_input.timeout)

    return ToolDefinition(
        name="run_commands",
        description="Execute shell commands on the system",
        input_schema_class=RunCommandsInput,
        handler=run_commands_handler,
        parameters=RUN_COMMANDS_PARAMETERS,
    )
