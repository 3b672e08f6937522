"""Exception types raised across the assistant.

Only transport failures escape a task. Everything that goes wrong while a
tool runs is reported as a ``ToolResult`` instead.
"""


class TinyPenguinError(Exception):
    """Base class for all application errors."""


class ParseError(TinyPenguinError):
    """Tool arguments or a model response could not be decoded."""


class TransportError(TinyPenguinError):
    """The inference endpoint was unreachable or answered with an error."""

    def __init__(self, message: str, status_code: int | None = None, body: str | None = None):
        super().__init__(message)
        self.status_code = status_code
        self.body = body
