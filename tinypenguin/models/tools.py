"""Tool input and result models."""

from typing import Literal

from pydantic import BaseModel

ToolStatus = Literal["success", "error", "denied"]


class ToolResult(BaseModel):
    """Uniform result envelope returned by every tool."""

    status: ToolStatus
    message: str
    output: str | None = None
    error_details: str | None = None

    @property
    def succeeded(self) -> bool:
        return self.status == "success"

    @classmethod
    def success(cls, message: str, output: str | None = None) -> "ToolResult":
        return cls(status="success", message=message, output=output)

    @classmethod
    def error(cls, message: str, output: str | None = None, error_details: str | None = None) -> "ToolResult":
        return cls(status="error", message=message, output=output, error_details=error_details)

    @classmethod
    def denied(cls, message: str, error_details: str | None = None) -> "ToolResult":
        return cls(status="denied", message=message, error_details=error_details)


class RunCommandsInput(BaseModel):
    """Input schema for the run_commands tool."""

    command: str = ""
    timeout: int | None = None


class EditFilesInput(BaseModel):
    """Input schema for the edit_files tool."""

    path: str = ""
    diff: str | None = None
    content: str | None = None
