"""Chat-completion wire models (OpenAI-compatible, as served by Ollama)."""

import json
from typing import Any, Literal

from pydantic import BaseModel, Field, field_validator


class FunctionCall(BaseModel):
    """Function name and JSON-encoded arguments of a tool call."""

    name: str
    arguments: str = "{}"

    class Config:
        extra = "ignore"
        frozen = True

    @field_validator("arguments", mode="before")
    @classmethod
    def encode_arguments(cls, v: Any) -> str:
        """Some endpoints send arguments as an object rather than a string."""
        if v is None:
            return "{}"
        if isinstance(v, str):
            return v
        return json.dumps(v)


class ToolCall(BaseModel):
    """A tool call requested by the model."""

    id: str = ""
    type: Literal["function"] = "function"
    function: FunctionCall

    class Config:
        extra = "ignore"
        frozen = True

    @property
    def name(self) -> str:
        return self.function.name

    @property
    def arguments(self) -> str:
        return self.function.arguments


class ChatMessage(BaseModel):
    """A message in a chat-completion exchange."""

    role: Literal["system", "user", "assistant", "tool"]
    content: str = ""
    tool_calls: list[ToolCall] = Field(default_factory=list)

    class Config:
        extra = "ignore"

    @field_validator("content", mode="before")
    @classmethod
    def null_content(cls, v: Any) -> str:
        return v if v is not None else ""

    @field_validator("tool_calls", mode="before")
    @classmethod
    def null_tool_calls(cls, v: Any) -> Any:
        return v if v is not None else []

    def to_wire(self) -> dict[str, Any]:
        """Serialize for a request body, omitting empty tool calls."""
        body: dict[str, Any] = {"role": self.role, "content": self.content}
        if self.tool_calls:
            body["tool_calls"] = [call.model_dump() for call in self.tool_calls]
        return body


class FunctionSpec(BaseModel):
    """Function definition advertised to the model."""

    name: str
    description: str
    parameters: dict[str, Any]


class ToolSpec(BaseModel):
    """Tool definition in the format expected by the endpoint."""

    type: Literal["function"] = "function"
    function: FunctionSpec


class ChatRequest(BaseModel):
    """Body of a chat-completion request."""

    model: str
    messages: list[ChatMessage]
    tools: list[ToolSpec] | None = None
    stream: bool = False

    def to_wire(self) -> dict[str, Any]:
        body: dict[str, Any] = {
            "model": self.model,
            "messages": [message.to_wire() for message in self.messages],
            "stream": self.stream,
        }
        if self.tools:
            body["tools"] = [tool.model_dump() for tool in self.tools]
        return body


class Usage(BaseModel):
    """Token usage reported by the endpoint."""

    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0

    class Config:
        extra = "ignore"


class Choice(BaseModel):
    """One completion choice."""

    index: int = 0
    message: ChatMessage
    finish_reason: str | None = None

    class Config:
        extra = "ignore"


class ChatResponse(BaseModel):
    """Chat-completion response."""

    id: str = ""
    model: str = ""
    choices: list[Choice] = Field(default_factory=list)
    usage: Usage = Field(default_factory=Usage)

    class Config:
        extra = "ignore"

    @field_validator("usage", mode="before")
    @classmethod
    def null_usage(cls, v: Any) -> Any:
        return v if v is not None else {}


class ModelInfo(BaseModel):
    """An entry of the model listing."""

    name: str
    size: int = 0

    class Config:
        extra = "ignore"
