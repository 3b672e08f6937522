"""Task request and progress event models."""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel

from tinypenguin.models.tools import ToolResult

TaskEventType = Literal["started", "tool_call", "tool_result", "rating", "suggestion", "answer", "error", "completed"]


class TaskRequest(BaseModel):
    """Request model for running a task."""

    query: str


class TaskEvent(BaseModel):
    """A progress event emitted while a task runs."""

    type: TaskEventType
    message: str = ""
    task_id: str | None = None
    tool_name: str | None = None
    command: str | None = None
    result: ToolResult | None = None
    rating: int | None = None


class CancelTaskResponse(BaseModel):
    """Response model for task cancellation."""

    success: bool
    task_id: str


class TaskListResponse(BaseModel):
    """Response model for the task listing."""

    tasks: list[str]
    next_page_token: str = ""


class HealthResponse(BaseModel):
    """Response model for health check endpoint."""

    status: str
    timestamp: datetime
    version: str
    endpoint_reachable: bool
