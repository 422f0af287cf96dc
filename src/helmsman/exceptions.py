"""
Helmsman Custom Exceptions

Structured exception hierarchy for the Helmsman service.
All Helmsman-specific exceptions inherit from HelmsmanError.

Exception hierarchy:
    HelmsmanError
    +-- ProcessExecutionError     (external command exited non-zero)
    |   +-- ProcessTimeoutError   (external command killed on timeout)
    +-- ActionNotFoundError       (no action with the given id)
    +-- InvalidTransitionError    (resolve on a non-pending action)
    +-- HelmsmanAPIError          (API layer error)

Most failures in the core are returned as results rather than raised.
These exceptions cover the seams where a caller has to branch: the process
primitive (caught by the executor) and the approval gate (mapped to client
errors by the API).
"""

from __future__ import annotations


class HelmsmanError(Exception):
    """Base exception for all Helmsman errors."""

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


class ProcessExecutionError(HelmsmanError):
    """Raised when an external command fails.

    The message is the command's stderr when it produced any, so it can be
    surfaced to the user as-is.
    """

    def __init__(
        self,
        command: str,
        message: str,
        returncode: int | None = None,
        details: dict | None = None,
    ):
        super().__init__(
            message,
            details={"command": command, "returncode": returncode, **(details or {})},
        )
        self.command = command
        self.returncode = returncode


class ProcessTimeoutError(ProcessExecutionError):
    """Raised when an external command exceeds its timeout and is killed."""

    def __init__(self, command: str, timeout: float):
        super().__init__(
            command,
            f"Command timed out after {timeout:g}s",
            details={"timeout": timeout},
        )
        self.timeout = timeout


class ActionNotFoundError(HelmsmanError):
    """Raised when an action id does not exist."""

    def __init__(self, action_id: str):
        super().__init__("Action not found", details={"action_id": action_id})
        self.action_id = action_id


class InvalidTransitionError(HelmsmanError):
    """Raised when resolving an action that is no longer pending.

    No state is mutated when this is raised.
    """

    def __init__(self, action_id: str, status: str):
        super().__init__(
            f"Action already {status}",
            details={"action_id": action_id, "status": status},
        )
        self.action_id = action_id
        self.status = status


class HelmsmanAPIError(HelmsmanError):
    """Raised for API layer errors (FastAPI endpoints)."""

    def __init__(self, message: str, status_code: int = 500, details: dict | None = None):
        super().__init__(
            message,
            details={"status_code": status_code, **(details or {})},
        )
        self.status_code = status_code
