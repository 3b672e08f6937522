"""Base types and definitions for tools."""

import json
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from pydantic import BaseModel, ValidationError

from tinypenguin.errors import ParseError
from tinypenguin.models.chat import FunctionSpec, ToolSpec
from tinypenguin.models.tools import ToolResult

ToolHandler = Callable[[BaseModel], ToolResult]


@dataclass
class ToolDefinition:
    """Definition of a tool available to the model."""

    name: str
    description: str
    input_schema_class: type[BaseModel]
    handler: ToolHandler
    parameters: dict[str, Any] | None = None

    def get_json_schema(self) -> dict[str, Any]:
        """Get JSON schema for this tool's input."""
        if self.parameters is not None:
            return self.parameters
        return self.input_schema_class.model_json_schema()

    def to_spec(self) -> ToolSpec:
        return ToolSpec(
            function=FunctionSpec(name=self.name, description=self.description, parameters=self.get_json_schema())
        )

    def parse_input(self, arguments: str) -> BaseModel:
        """Parse and validate JSON-encoded tool arguments.

        Raises:
            ParseError: If the arguments are not a JSON object or fail validation
        """
        try:
            raw_input = json.loads(arguments) if arguments.strip() else {}
        except json.JSONDecodeError as e:
            raise ParseError(f"Failed to parse {self.name} arguments: {e}") from e

        if not isinstance(raw_input, dict):
            raise ParseError(f"Failed to parse {self.name} arguments: expected a JSON object")

        try:
            return self.input_schema_class.model_validate(raw_input)
        except ValidationError as e:
            raise ParseError(f"Failed to parse {self.name} arguments: {e}") from e

    def invoke(self, arguments: str) -> ToolResult:
        """Parse the arguments and run the handler."""
        try:
            params = self.parse_input(arguments)
        except ParseError as e:
            return ToolResult.error(str(e), error_details=repr(e.__cause__))
        return self.handler(params)
