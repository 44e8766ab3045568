"""Exception types shared across swarmdeck.

``UsageError`` and its ``InvalidSpec`` subclass are raised before any side
effect is performed.  ``ExternalToolError`` wraps a failed ``docker`` (or
other) invocation and aborts the current operation immediately.
"""

from __future__ import annotations


class SwarmdeckError(Exception):
    """Base class for every error raised by swarmdeck."""


class UsageError(SwarmdeckError):
    """Raised for missing or invalid command-line arguments."""


class InvalidSpec(UsageError, ValueError):
    """Raised when a project or service identifier, domain, or port is invalid."""

    def __init__(self, field: str, value: object, reason: str) -> None:
        self.field = field
        self.value = value
        self.reason = reason
        super().__init__(f"Invalid {field} {value!r}: {reason}")


class ExternalToolError(SwarmdeckError):
    """Raised when a wrapped external command exits non-zero or times out."""

    def __init__(
        self,
        message: str,
        command: str = "",
        returncode: int | None = None,
        stderr: str = "",
    ) -> None:
        self.command = command
        self.returncode = returncode
        self.stderr = stderr
        super().__init__(message)
