"""Shared enumerations used across grove."""

from __future__ import annotations

from enum import StrEnum

# -- Workspace ---------------------------------------------------------------


class WorkspaceStatus(StrEnum):
    """Persisted lifecycle status of a workspace record."""

    ACTIVE = "active"
    MERGED = "merged"
    REMOVED = "removed"


class ListingState(StrEnum):
    """What ``grove list`` reports for a workspace.

    Persisted statuses pass through; the rest are derived on read and
    never written back.
    """

    ACTIVE = "active"
    MERGED = "merged"
    REMOVED = "removed"
    STALE = "stale"
    MISSING = "missing"
    """Record present but git no longer knows the worktree."""
    UNREGISTERED = "unregistered"
    """Git worktree with no record."""


# -- Operations --------------------------------------------------------------


class Outcome(StrEnum):
    """How an interactive operation ended."""

    DONE = "done"
    ABORTED = "aborted"


# -- Guard -------------------------------------------------------------------


class GuardAction(StrEnum):
    ALLOW = "allow"
    ASK = "ask"
