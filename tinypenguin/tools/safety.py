"""Denylist check for shell commands.

This is a blocklist, not a sandbox. It keeps obviously destructive commands
from running; it does not confine what an allowed command can do.
"""

import re

DANGEROUS_SUBSTRINGS: tuple[str, ...] = (
    "rm -rf /",
    "rm -rf /usr",
    "rm -rf /bin",
    "dd if=",
    "mkfs",
    "fdisk",
    "shred",
    "cryptsetup",
    "chmod 777",
)

DANGEROUS_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(r"\bsudo\b.*\brm\s+-rf\s+/"),
    re.compile(r"^chown\s+.*:.*/etc"),
)

DENIAL_MESSAGE = "Command was denied for safety reasons"


def is_dangerous(command: str) -> bool:
    """Return True when the command matches the denylist (case-insensitive)."""
    lowered = command.lower().strip()
    if any(pattern in lowered for pattern in DANGEROUS_SUBSTRINGS):
        return True
    return any(pattern.search(lowered) for pattern in DANGEROUS_PATTERNS)


def matched_rule(command: str) -> str | None:
    """Name the first denylist rule a command trips, for error details."""
    lowered = command.lower().strip()
    for pattern in DANGEROUS_SUBSTRINGS:
        if pattern in lowered:
            return pattern
    for regex in DANGEROUS_PATTERNS:
        if regex.search(lowered):
            return regex.pattern
    return None
