"""Error taxonomy for workspace operations.

Every error a user can act on derives from ``GroveError``; the CLI turns
these into a message on stderr and exit code 1.  Anything else is a bug
and propagates with a traceback.
"""

from __future__ import annotations


class GroveError(RuntimeError):
    """Base class for reported workspace errors."""


class ValidationError(GroveError):
    """Bad input, wrong invocation context, or a missing prerequisite."""


class StateError(GroveError):
    """The workspace is not in the state the operation requires."""


class WorkspaceExistsError(StateError):
    """Raised when creating a workspace whose name is already taken."""


class WorkspaceNotFoundError(StateError, LookupError):
    """Raised when a workspace (or its record) does not exist."""


class ConcurrencyError(GroveError):
    """Raised when the merge lock could not be acquired in time."""

    def __init__(self, message: str, *, holder_pid: int | None = None) -> None:
        super().__init__(message)
        self.holder_pid = holder_pid


class VCSOperationError(GroveError):
    """A git command failed."""

    def __init__(self, message: str, *, command: list[str] | None = None, stderr: str = "") -> None:
        super().__init__(message)
        self.command = command or []
        self.stderr = stderr


class MergeConflictError(VCSOperationError):
    """``git merge`` stopped with conflicts; the primary checkout needs manual resolution."""


class WorkspaceIOError(GroveError, OSError):
    """A metadata record or guidance document could not be read or written."""
