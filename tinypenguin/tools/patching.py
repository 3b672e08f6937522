"""Patch strategies used by the edit_files tool."""

from dataclasses import dataclass
from typing import Protocol


@dataclass
class PatchStats:
    """Counts of changed lines in a diff."""

    additions: int = 0
    deletions: int = 0

    @classmethod
    def from_diff(cls, diff: str) -> "PatchStats":
        lines = diff.split("\n")
        return cls(
            additions=sum(1 for line in lines if line.startswith("+")),
            deletions=sum(1 for line in lines if line.startswith("-")),
        )


class PatchStrategy(Protocol):
    """Applies a diff to file content."""

    def apply(self, original: str, diff: str) -> str: ...


class LinePositionalPatch:
    """Applies diff lines in order against a cursor into the original lines.

    This is not a unified-diff applier. Hunk headers and line numbers are
    ignored:

    - `` `` (context) moves the cursor forward one line
    - ``+`` inserts the rest of the line at the cursor, then moves forward
    - ``-`` deletes the line at the cursor; the cursor stays put

    Deleting past the end of the file is a no-op.
    """

    def apply(self, original: str, diff: str) -> str:
        lines = original.split("\n")
        cursor = 0

        for line in diff.split("\n"):
            if line.startswith(" "):
                cursor += 1
            elif line.startswith("+"):
                lines.insert(cursor, line[1:])
                cursor += 1
            elif line.startswith("-"):
                if cursor < len(lines):
                    del lines[cursor]

        return "\n".join(lines)
