"""File editing tool."""

from pathlib import Path
from typing import cast

from pydantic import BaseModel

from tinypenguin.models.tools import EditFilesInput, ToolResult
from tinypenguin.tools.base import ToolDefinition
from tinypenguin.tools.patching import LinePositionalPatch, PatchStats, PatchStrategy
from tinypenguin.utils.logging import get_logger

logger = get_logger(__name__)

EDIT_FILES_PARAMETERS = {
    "type": "object",
    "properties": {
        "path": {
            "type": "string",
            "description": "Path to the file to edit",
        },
        "diff": {
            "type": "string",
            "description": "Diff content showing changes to make",
        },
    },
    "required": ["path", "diff"],
}


class FileEditor:
    """Applies diffs to files or overwrites them with new content."""

    def __init__(self, patch_strategy: PatchStrategy | None = None):
        self.patch_strategy = patch_strategy or LinePositionalPatch()

    def edit(self, path: str, diff: str | None = None, content: str | None = None) -> ToolResult:
        """Edit a file with either a diff or full content.

        A diff takes precedence over content when both are given. Missing
        parent directories are created.
        """
        if not path:
            return ToolResult.error("File path is required", error_details="Path parameter is missing")

        if not diff and not content:
            return ToolResult.error(
                "Either content or diff is required", error_details="No content or diff provided"
            )

        target = Path(path)
        logger.info(f"Editing file: {target}")

        try:
            if not target.parent.exists():
                target.parent.mkdir(parents=True, exist_ok=True)
                logger.info(f"Created directory: {target.parent}")

            if diff:
                return self._apply_diff(target, diff)
            return self._write_content(target, content or "")

        except (OSError, UnicodeDecodeError) as e:
            logger.error(f"Error editing file {target}: {e}")
            return ToolResult.error(f"Failed to edit file: {e}", error_details=repr(e))

    def _apply_diff(self, target: Path, diff: str) -> ToolResult:
        current = target.read_text(encoding="utf-8") if target.exists() else ""
        logger.debug(f"Current file content read ({len(current)} chars)")

        target.write_text(self.patch_strategy.apply(current, diff), encoding="utf-8")

        stats = PatchStats.from_diff(diff)
        return ToolResult.success(
            f"Applied diff to file: {target}",
            output=f"File updated with {stats.additions} additions and {stats.deletions} deletions",
        )

    def _write_content(self, target: Path, content: str) -> ToolResult:
        target.write_text(content, encoding="utf-8")
        logger.info(f"Wrote {len(content)} chars to {target}")
        return ToolResult.success(
            f"Wrote content to file: {target}",
            output=f"File created/updated with {len(content)} characters",
        )


def create_edit_files_tool(editor: FileEditor) -> ToolDefinition:
    def edit_files_handler(params: BaseModel) -> ToolResult:
        edit_input = cast(EditFilesInput, params)
        return editor.edit(edit_input.path, diff=edit_input.diff, content=edit_input.content)

    return ToolDefinition(
        name="edit_files",
        description="Edit file contents by providing a diff of changes to make",
        input_schema_class=EditFilesInput,
        handler=edit_files_handler,
        parameters=EDIT_FILES_PARAMETERS,
    )
