"""Lifecycle managers.

Managers orchestrate the registry, lock, git, and document sync, and raise
domain exceptions from ``grove.workspaces.errors`` -- never click exceptions;
that translation is the CLI's responsibility.
"""

from grove.workspaces.managers.workspaces import Interaction, WorkspaceManager

__all__ = ["Interaction", "WorkspaceManager"]
