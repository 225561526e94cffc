"""Workspace registry implementations."""

from grove.workspaces.store.base import WorkspaceRegistry
from grove.workspaces.store.local import LocalWorkspaceRegistry, atomic_write

__all__ = ["LocalWorkspaceRegistry", "WorkspaceRegistry", "atomic_write"]
