"""Registry interface for workspace metadata records.

One record per workspace, keyed by workspace name.  Status changes are full
rewrites through ``put``; there is no partial update.
"""

from __future__ import annotations

from collections.abc import Iterator
from typing import Protocol, runtime_checkable

from grove.workspaces.models.workspace import WorkspaceRecord


@runtime_checkable
class WorkspaceRegistry(Protocol):
    """Protocol for reading and writing workspace records.

    Storage layout (keyed by workspace name)::

        {primary}/.worktrees/{name}/.worktree.json
    """

    def put(self, name: str, record: WorkspaceRecord) -> None:
        """Write a record atomically; readers never observe a partial file."""
        ...

    def get(self, name: str) -> WorkspaceRecord:
        """Read a record.  Raises ``WorkspaceNotFoundError`` or ``WorkspaceIOError``."""
        ...

    def list(self) -> Iterator[tuple[str, WorkspaceRecord]]:
        """Yield every readable record; missing or invalid ones are skipped."""
        ...

    def exists(self, name: str) -> bool:
        """Check whether a record exists for the given workspace."""
        ...

    def delete(self, name: str) -> None:
        """Delete a record.  No-op if not found."""
        ...
