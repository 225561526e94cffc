"""Data models for grove."""

from grove.workspaces.models.enums import GuardAction, ListingState, Outcome, WorkspaceStatus
from grove.workspaces.models.workspace import (
    BootstrapResult,
    CleanupResult,
    CreateResult,
    MergeResult,
    WorkspaceListing,
    WorkspaceRecord,
)

__all__ = [
    # Results
    "BootstrapResult",
    "CleanupResult",
    "CreateResult",
    # Enums
    "GuardAction",
    "ListingState",
    "MergeResult",
    "Outcome",
    # Workspace
    "WorkspaceListing",
    "WorkspaceRecord",
    "WorkspaceStatus",
]
