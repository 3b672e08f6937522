"""Interaction log and fine-tuning data models."""

from datetime import UTC, datetime

from pydantic import BaseModel, Field

from tinypenguin.models.chat import ChatMessage, ToolCall
from tinypenguin.models.tools import ToolResult


class LogEntry(BaseModel):
    """One logged tool invocation, persisted as a single NDJSON line."""

    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))
    model: str
    user_query: str = ""
    model_response: str = ""
    tool_name: str
    arguments: str
    status: str
    message: str
    output: str | None = None
    error_details: str | None = None
    tools_enabled: bool = True
    rating: int = Field(default=0, ge=0, le=5)

    class Config:
        extra = "ignore"
        protected_namespaces = ()

    @classmethod
    def from_result(
        cls,
        *,
        model: str,
        user_query: str,
        response: ChatMessage,
        tool_name: str,
        arguments: str,
        result: ToolResult,
        tools_enabled: bool,
        rating: int = 0,
    ) -> "LogEntry":
        """Build an entry for a tool invocation that just finished."""
        error_details = None
        if result.status == "error":
            error_details = result.error_details or result.message

        return cls(
            model=model,
            user_query=user_query,
            model_response=response.model_dump_json(),
            tool_name=tool_name,
            arguments=arguments,
            status=result.status,
            message=result.message,
            output=result.output or None,
            error_details=error_details,
            tools_enabled=tools_enabled,
            rating=rating,
        )

    def to_line(self) -> str:
        return self.model_dump_json(exclude_none=True)


class TrainingMessage(BaseModel):
    """A message of a fine-tuning example."""

    role: str
    content: str
    tool_calls: list[ToolCall] | None = None


class FineTuningExample(BaseModel):
    """A role-tagged message sequence used for fine-tuning."""

    messages: list[TrainingMessage]
