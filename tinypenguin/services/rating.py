"""Ratings attached to logged tool invocations."""

from typing import Protocol

from rich.console import Console
from rich.prompt import Prompt

from tinypenguin.models.tools import ToolResult

RATING_PROMPT = "⭐ Rate this tool usage (1-5 stars, or 0 to skip)"


class RatingProvider(Protocol):
    """Supplies a 0-5 rating for a tool result; 0 means unrated."""

    def rate(self, result: ToolResult) -> int: ...


class NullRatingProvider:
    """Leaves every result unrated. Used for headless runs."""

    def rate(self, result: ToolResult) -> int:
        return 0


class PromptRatingProvider:
    """Asks the user on the terminal."""

    def __init__(self, console: Console | None = None):
        self.console = console or Console()

    def rate(self, result: ToolResult) -> int:
        try:
            answer = Prompt.ask(f"\n{RATING_PROMPT}", console=self.console, default="0", show_default=False)
        except EOFError:
            # stdin closed (piped input); treat as skipped
            return 0
        return parse_rating(answer)


def parse_rating(answer: str) -> int:
    """Turn user input into a rating; anything invalid counts as skipped."""
    try:
        rating = int(answer.strip())
    except (ValueError, AttributeError):
        return 0
    return rating if 0 <= rating <= 5 else 0
