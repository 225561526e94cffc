"""Workspace data models.

A workspace is a git worktree under ``<primary>/.worktrees/<name>`` bound to
its own branch.  Its metadata record is a small JSON file stored inside the
worktree, so the directory and the record come and go together.

The on-disk keys (``base_branch``, ``created``, ``main_repo``) match the
files written by earlier shell-based tooling; the model exposes clearer
attribute names through aliases.
"""

from __future__ import annotations

from datetime import UTC, datetime
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, field_serializer, field_validator

from grove.workspaces.models.enums import ListingState, Outcome, WorkspaceStatus

CREATED_FORMAT = "%Y-%m-%dT%H:%M:%SZ"


class WorkspaceRecord(BaseModel):
    """Persisted metadata for one workspace (``.worktree.json``).

    Every key is required on read; a record missing one is reported as
    invalid rather than filled in.
    """

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    branch: str = Field(min_length=1)
    base_branch: str = Field(min_length=1)
    created_at: datetime = Field(alias="created")
    primary_repo_path: Path = Field(alias="main_repo")
    status: WorkspaceStatus

    @classmethod
    def new(cls, *, branch: str, base_branch: str, primary_repo_path: Path) -> WorkspaceRecord:
        """A fresh ``active`` record stamped with the current time."""
        return cls(
            branch=branch,
            base_branch=base_branch,
            created_at=datetime.now(tz=UTC),
            primary_repo_path=primary_repo_path,
            status=WorkspaceStatus.ACTIVE,
        )

    @field_validator("created_at")
    @classmethod
    def _as_utc(cls, value: datetime) -> datetime:
        if value.tzinfo is None:
            return value.replace(tzinfo=UTC)
        return value.astimezone(UTC)

    @field_validator("primary_repo_path")
    @classmethod
    def _absolute(cls, value: Path) -> Path:
        if not value.is_absolute():
            msg = f"primary repository path must be absolute, got {value}"
            raise ValueError(msg)
        return value

    @field_serializer("created_at")
    def _format_created(self, value: datetime) -> str:
        return value.strftime(CREATED_FORMAT)

    @field_serializer("primary_repo_path")
    def _format_path(self, value: Path) -> str:
        return str(value)

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True, indent=2) + "\n"


class WorkspaceListing(BaseModel):
    """One row of ``grove list``: registry record cross-checked against git."""

    name: str
    path: Path
    record: WorkspaceRecord | None = None
    branch: str | None = None
    in_git: bool = False
    last_commit_at: datetime | None = None
    last_commit_relative: str | None = None
    stale: bool = False

    @property
    def state(self) -> ListingState:
        if self.record is None:
            return ListingState.UNREGISTERED
        if not self.in_git:
            return ListingState.MISSING
        if self.stale and self.record.status is WorkspaceStatus.ACTIVE:
            return ListingState.STALE
        return ListingState(self.record.status.value)


# -- Operation results --------------------------------------------------------


class BootstrapResult(BaseModel):
    command: list[str]
    ok: bool
    output: str = ""


class CreateResult(BaseModel):
    name: str
    path: Path
    record: WorkspaceRecord
    branch_created: bool = True
    linked: list[str] = Field(default_factory=list, description="Shared config dirs symlinked in")
    copied: list[str] = Field(default_factory=list, description="Config files copied in")
    bootstrap: BootstrapResult | None = None


class CleanupResult(BaseModel):
    name: str
    outcome: Outcome
    path: Path
    branch: str | None = None
    had_changes: bool = False
    branch_deleted: bool = False


class MergeResult(BaseModel):
    name: str
    outcome: Outcome
    branch: str
    base_branch: str
    commits: list[str] = Field(default_factory=list)
    removed: bool = False
    branch_deleted: bool = False
