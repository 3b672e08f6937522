"""Tool invocation log used to build fine-tuning data."""

import os
import sys
import threading
from pathlib import Path

from pydantic import ValidationError

from tinypenguin.config import Settings, get_settings
from tinypenguin.models.log import LogEntry
from tinypenguin.utils.logging import get_logger

logger = get_logger(__name__)

LOG_FILE_NAME = "tool_calls.log"


def resolve_log_path(marker_file: str = "README.md", start: Path | None = None) -> Path:
    """Find where tool_calls.log lives.

    Walks up from ``start`` (the working directory by default) to the first
    directory holding ``marker_file``. Falls back to the directory of the
    running script, then to the working directory.
    """
    try:
        directory = (start or Path.cwd()).resolve()
    except OSError:
        directory = Path(".").absolute()

    for candidate in (directory, *directory.parents):
        if (candidate / marker_file).is_file():
            return candidate / LOG_FILE_NAME

    if sys.argv and sys.argv[0]:
        script_dir = Path(sys.argv[0]).resolve().parent
        if script_dir.is_dir():
            return script_dir / LOG_FILE_NAME

    return Path(os.getcwd()) / LOG_FILE_NAME


class InteractionLog:
    """Append-only NDJSON log capped at ``max_entries`` lines.

    Every append rewrites the whole file with the newest entries, so the
    oldest entries fall off first.
    """

    def __init__(self, path: Path, max_entries: int = 1000):
        """Initialize interaction log.

        Args:
            path: Log file location
            max_entries: Entries kept after each append
        """
        self.path = path
        self.max_entries = max_entries
        self._lock = threading.Lock()

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> "InteractionLog":
        settings = settings or get_settings()
        path = settings.tool_log_path or resolve_log_path(settings.log_marker_file)
        return cls(path, max_entries=settings.max_log_entries)

    def read_entries(self) -> list[LogEntry]:
        """Read all parseable entries; malformed lines are skipped."""
        try:
            data = self.path.read_bytes()
        except FileNotFoundError:
            return []

        entries: list[LogEntry] = []
        for line_number, raw_line in enumerate(data.splitlines(), start=1):
            if not raw_line.strip():
                continue
            try:
                entries.append(LogEntry.model_validate_json(raw_line.decode("utf-8")))
            except (UnicodeDecodeError, ValidationError):
                logger.debug(f"Skipping malformed log line {line_number} in {self.path}")
        return entries

    def append(self, entry: LogEntry) -> None:
        """Append an entry, keeping only the newest ``max_entries``.

        Raises:
            OSError: If the log file cannot be written
        """
        with self._lock:
            entries = self.read_entries()
            entries.append(entry)

            if len(entries) > self.max_entries:
                dropped = len(entries) - self.max_entries
                entries = entries[dropped:]
                logger.debug(f"Rotated {dropped} oldest entries out of {self.path}")

            self.path.parent.mkdir(parents=True, exist_ok=True)
            content = "\n".join(e.to_line() for e in entries) + "\n"
            self.path.write_text(content, encoding="utf-8")

        logger.info(f"Logged {entry.tool_name} call ({entry.status}) to {self.path}")


_interaction_log: InteractionLog | None = None


def get_interaction_log() -> InteractionLog:
    """Get or create interaction log instance."""
    global _interaction_log
    if _interaction_log is None:
        _interaction_log = InteractionLog.from_settings()
    return _interaction_log
