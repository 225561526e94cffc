"""Workspace lifecycle manager -- create, list, merge, cleanup, switch.

The manager is the only writer of registry records and the only user of the
merge lock.  It is built per invocation from a ``RepoContext`` and talks to
the user through an ``Interaction`` (prompts and progress lines), so the CLI
and tests can supply their own.

Ordering rules:

- ``create`` adds the git worktree *before* writing the record, so a crash
  can leave an unregistered worktree (reported by ``list``) but never a
  record pointing at nothing.
- ``merge`` holds the lock from before the first mutation until every exit,
  including conflicts and declined prompts.

Per-workspace state machine::

    (none) --create--> active --merge+cleanup--> merged  (record removed)
                              --cleanup--------> removed (record removed)
"""

from __future__ import annotations

import shutil
from datetime import UTC, datetime, timedelta
from pathlib import Path
from typing import Protocol

from loguru import logger

from grove.workspaces.bootstrap import run_bootstrap
from grove.workspaces.context import RepoContext, ensure_ignored
from grove.workspaces.errors import (
    MergeConflictError,
    StateError,
    ValidationError,
    VCSOperationError,
    WorkspaceExistsError,
    WorkspaceIOError,
    WorkspaceNotFoundError,
)
from grove.workspaces.git import Git
from grove.workspaces.guidance import inject_workspace_context, refresh_status_table, write_boundary_rule
from grove.workspaces.lock import MergeLock
from grove.workspaces.models.enums import Outcome, WorkspaceStatus
from grove.workspaces.models.workspace import (
    CleanupResult,
    CreateResult,
    MergeResult,
    WorkspaceListing,
    WorkspaceRecord,
)
from grove.workspaces.store.base import WorkspaceRegistry
from grove.workspaces.store.local import LocalWorkspaceRegistry


class Interaction(Protocol):
    """User-facing channel: progress lines and yes/no confirmations."""

    def echo(self, message: str = "") -> None: ...

    def confirm(self, prompt: str, *, default: bool = False) -> bool: ...


class WorkspaceManager:
    """Orchestrates the workspace lifecycle for one primary repository."""

    def __init__(
        self,
        ctx: RepoContext,
        interaction: Interaction,
        *,
        git: Git | None = None,
        registry: WorkspaceRegistry | None = None,
    ) -> None:
        self.ctx = ctx
        self.git = git or Git()
        self.registry = registry or LocalWorkspaceRegistry(ctx.worktrees_dir, ctx.settings.metadata_filename)
        self._ui = interaction

    # -- Helpers ---------------------------------------------------------------

    def _workspace_dir(self, name: str) -> Path:
        """Workspace path for ``name``; refuses names that escape the worktrees directory."""
        root = self.ctx.worktrees_dir.resolve()
        path = (root / name).resolve()
        if path == root or root not in path.parents:
            msg = f"'{name}' is not a valid workspace name."
            raise ValidationError(msg)
        return self.ctx.workspace_path(name)

    def _resolve_name(self, name: str | None) -> str:
        if name:
            return name.strip("/")
        detected = self.ctx.workspace_name_for(self.ctx.current_root)
        if detected is None:
            msg = (
                f"Not in a managed workspace (no {self.ctx.settings.metadata_filename} found). "
                "Run from inside a workspace or pass its name."
            )
            raise StateError(msg)
        return detected

    def _lock(self) -> MergeLock:
        return MergeLock(
            self.ctx.lock_path,
            timeout=self.ctx.settings.lock_timeout,
            poll_interval=self.ctx.settings.lock_poll_interval,
        )

    def _propagate_config(self, name: str, path: Path) -> tuple[list[str], list[str]]:
        """Link shared config dirs and copy per-workspace config files from the primary checkout."""
        try:
            return self._link_and_copy_config(path)
        except OSError as exc:
            msg = (
                f"Could not set up {self.ctx.settings.config_dirname}/ in workspace {path}: {exc}\n"
                f"The workspace is only partly configured; remove it with: grove cleanup {name}"
            )
            raise WorkspaceIOError(msg) from exc

    def _link_and_copy_config(self, path: Path) -> tuple[list[str], list[str]]:
        settings = self.ctx.settings
        source = self.ctx.primary_root / settings.config_dirname
        if not source.is_dir():
            return [], []
        target = path / settings.config_dirname
        target.mkdir(parents=True, exist_ok=True)

        linked: list[str] = []
        for dirname in settings.shared_config_dirs:
            src = source / dirname
            if not src.is_dir():
                continue
            dst = target / dirname
            if dst.is_symlink():
                dst.unlink()
            elif dst.exists():
                # Tracked in git, so the checkout already has its own copy.
                logger.info("Config: {} already present in workspace, not linking", dst)
                continue
            dst.symlink_to(src, target_is_directory=True)
            linked.append(f"{settings.config_dirname}/{dirname}")

        copied: list[str] = []
        for filename in settings.copied_config_files:
            src = source / filename
            if src.is_file():
                shutil.copy2(src, target / filename)
                copied.append(f"{settings.config_dirname}/{filename}")
        return linked, copied

    def _remove_workspace(self, name: str, path: Path) -> None:
        primary = self.ctx.primary_root
        if not self.git.worktree_remove(primary, path):
            logger.warning("git worktree remove failed for {}; deleting the directory instead", path)
            try:
                if path.exists():
                    shutil.rmtree(path)
            except OSError as exc:
                msg = f"Could not remove workspace directory {path}: {exc}"
                raise WorkspaceIOError(msg) from exc
            self.git.worktree_prune(primary)
        self.registry.delete(name)
        self._prune_empty_parents(path)

    def _prune_empty_parents(self, path: Path) -> None:
        """Remove directories left empty by nested names such as ``feature/auth``."""
        root = self.ctx.worktrees_dir
        parent = path.parent
        while parent != root and root in parent.parents:
            if not parent.is_dir() or any(parent.iterdir()):
                break
            parent.rmdir()
            parent = parent.parent

    def _refresh_map(self) -> None:
        if refresh_status_table(self.ctx, self.registry):
            self._ui.echo(f"Updated workspace map in {self.ctx.settings.guidance_filename}")

    # -- Create ----------------------------------------------------------------

    def create(self, name: str, base: str | None = None) -> CreateResult:
        """Create workspace ``name`` on branch ``name``, rooted at ``base`` (default: current branch)."""
        primary = self.ctx.primary_root
        if not self.git.is_valid_branch_name(primary, name):
            msg = f"'{name}' is not a valid branch name."
            raise ValidationError(msg)
        if self.ctx.in_workspace:
            msg = f"You are inside a workspace. Run create from the main repo: {primary}"
            raise ValidationError(msg)

        path = self._workspace_dir(name)
        if path.exists() or self.registry.exists(name):
            msg = f"Workspace '{name}' already exists at {path}"
            raise WorkspaceExistsError(msg)

        if ensure_ignored(self.ctx, self.git):
            self._ui.echo(f"Added {self.ctx.settings.worktrees_dirname}/ to .gitignore")

        base_branch = base or self.git.current_branch(primary) or self.git.short_head(primary)

        path.parent.mkdir(parents=True, exist_ok=True)
        self._ui.echo(f"Creating workspace '{name}' from '{base_branch}'...")
        branch_created = self.git.worktree_add(primary, path, name, base or "HEAD")

        record = WorkspaceRecord.new(branch=name, base_branch=base_branch, primary_repo_path=primary)
        self.registry.put(name, record)
        self._ui.echo(f"  Created {self.ctx.settings.metadata_filename}")

        linked, copied = self._propagate_config(name, path)
        for item in linked:
            self._ui.echo(f"  Symlinked {item}")
        for item in copied:
            self._ui.echo(f"  Copied {item}")

        inject_workspace_context(self.ctx, name, record)
        self._ui.echo(f"  Injected workspace context into {self.ctx.settings.guidance_filename}")
        write_boundary_rule(self.ctx, name)
        self._ui.echo("  Generated boundary guard rule")

        self._refresh_map()

        bootstrap = run_bootstrap(path) if self.ctx.settings.run_bootstrap else None
        if bootstrap is not None and not bootstrap.ok:
            self._ui.echo(f"Warning: {' '.join(bootstrap.command)} failed")

        logger.info("Created workspace {} at {}", name, path)
        return CreateResult(
            name=name,
            path=path,
            record=record,
            branch_created=branch_created,
            linked=linked,
            copied=copied,
            bootstrap=bootstrap,
        )

    # -- List ------------------------------------------------------------------

    def list(self) -> list[WorkspaceListing]:
        """Registry records cross-checked against git, plus worktrees git knows that have no record."""
        primary = self.ctx.primary_root
        worktrees = {
            info.path.resolve(): info for info in self.git.worktree_list(primary) if not info.prunable
        }
        now = datetime.now(tz=UTC)
        threshold = timedelta(days=self.ctx.settings.stale_after_days)

        listings: list[WorkspaceListing] = []
        seen: set[Path] = set()
        for name, record in self.registry.list():
            path = self.ctx.workspace_path(name).resolve()
            seen.add(path)
            info = worktrees.get(path)
            stamp = self.git.last_commit(path) if info is not None else None
            listings.append(
                WorkspaceListing(
                    name=name,
                    path=path,
                    record=record,
                    branch=info.branch if info is not None and info.branch else record.branch,
                    in_git=info is not None,
                    last_commit_at=stamp.committed_at if stamp else None,
                    last_commit_relative=stamp.relative if stamp else None,
                    stale=stamp is not None and now - stamp.committed_at > threshold,
                )
            )

        root = self.ctx.worktrees_dir.resolve()
        for path, info in worktrees.items():
            if path in seen or path == primary:
                continue
            name = path.relative_to(root).as_posix() if root in path.parents else str(path)
            stamp = self.git.last_commit(path)
            listings.append(
                WorkspaceListing(
                    name=name,
                    path=path,
                    branch=info.branch,
                    in_git=True,
                    last_commit_at=stamp.committed_at if stamp else None,
                    last_commit_relative=stamp.relative if stamp else None,
                    stale=stamp is not None and now - stamp.committed_at > threshold,
                )
            )
        return sorted(listings, key=lambda item: item.name)

    def worktree_overview(self) -> str:
        """Raw ``git worktree list`` output for the primary repository."""
        return self.git.worktree_list_text(self.ctx.primary_root)

    # -- Merge -----------------------------------------------------------------

    def merge(self, name: str | None = None) -> MergeResult:
        """Merge a workspace's branch into its base branch in the primary checkout.

        The merge lock is held for the whole operation.  On conflict the
        primary checkout is left on the base branch with conflict markers,
        the workspace is untouched, and ``MergeConflictError`` is raised.
        """
        name = self._resolve_name(name)
        path = self._workspace_dir(name)
        record = self.registry.get(name)
        if record.primary_repo_path.resolve() != self.ctx.primary_root:
            logger.warning(
                "Record for {} names primary repo {}, merging into {}",
                name,
                record.primary_repo_path,
                self.ctx.primary_root,
            )

        with self._lock():
            return self._merge_locked(name, path, record)

    def _merge_locked(self, name: str, path: Path, record: WorkspaceRecord) -> MergeResult:
        primary = self.ctx.primary_root
        branch, base = record.branch, record.base_branch
        result = MergeResult(name=name, outcome=Outcome.ABORTED, branch=branch, base_branch=base)

        self._ui.echo(f"Merging workspace '{name}' (branch: {branch}) into '{base}'")
        if path.is_dir() and self.git.has_uncommitted_changes(path):
            self._ui.echo("Warning: Uncommitted changes in this workspace:")
            self._ui.echo(self.git.status_short(path))
            if not self._ui.confirm("Continue? Uncommitted changes will NOT be merged."):
                return result

        result.commits = self.git.log_range(primary, base, branch)
        if not result.commits:
            self._ui.echo("No new commits to merge.")
            if not self._ui.confirm("Continue with cleanup anyway?"):
                return result
        else:
            self._ui.echo("Changes to merge:")
            for line in result.commits:
                self._ui.echo(f"  {line}")
            self._ui.echo(self.git.diff_stat(primary, base, branch))

        if not self._ui.confirm(f"Proceed with merge into '{base}'?"):
            return result

        try:
            self.git.checkout(primary, base)
        except VCSOperationError as exc:
            msg = f"Could not checkout '{base}' in main repo {primary}.\n{exc.stderr.strip()}"
            raise VCSOperationError(msg, command=exc.command, stderr=exc.stderr) from exc
        try:
            self.git.merge(primary, branch)
        except MergeConflictError as exc:
            msg = f"{exc}\nResolve conflicts in {primary}, then run: grove cleanup {name}"
            raise MergeConflictError(msg, command=exc.command, stderr=exc.stderr) from exc
        self._ui.echo(f"Merged '{branch}' into '{base}' successfully.")
        result.outcome = Outcome.DONE

        if self._ui.confirm(f"Clean up workspace '{name}'?", default=True):
            self.registry.put(name, record.model_copy(update={"status": WorkspaceStatus.MERGED}))
            self._remove_workspace(name, path)
            result.removed = True
            self._ui.echo("Removed workspace directory.")
            if self._ui.confirm(f"Delete branch '{branch}'?", default=True):
                self.git.delete_branch(primary, branch)
                result.branch_deleted = True
                self._ui.echo(f"Deleted branch '{branch}'.")

        self._refresh_map()
        logger.info("Merged workspace {} into {}", name, base)
        return result

    # -- Cleanup ---------------------------------------------------------------

    def cleanup(self, name: str | None = None) -> CleanupResult:
        """Remove a workspace without merging.  Irreversible for uncommitted changes."""
        name = self._resolve_name(name)
        path = self._workspace_dir(name)
        if not path.is_dir():
            msg = f"Workspace '{name}' not found at {path}"
            raise WorkspaceNotFoundError(msg)

        result = CleanupResult(name=name, outcome=Outcome.ABORTED, path=path)
        result.had_changes = self.git.has_uncommitted_changes(path)
        if result.had_changes:
            self._ui.echo(f"Warning: Workspace '{name}' has uncommitted changes:")
            self._ui.echo(self.git.status_short(path))
            prompt = f"Remove workspace '{name}' with uncommitted changes? This is irreversible."
        else:
            prompt = f"Remove workspace '{name}'?"
        if not self._ui.confirm(prompt):
            return result

        try:
            record: WorkspaceRecord | None = self.registry.get(name)
        except (WorkspaceNotFoundError, WorkspaceIOError) as exc:
            logger.warning("Cleanup: no usable record for {}: {}", name, exc)
            record = None
        if record is not None:
            result.branch = record.branch
            self.registry.put(name, record.model_copy(update={"status": WorkspaceStatus.REMOVED}))

        self._remove_workspace(name, path)
        result.outcome = Outcome.DONE
        self._ui.echo(f"Removed workspace '{name}'.")

        if result.branch and self._ui.confirm(f"Also delete branch '{result.branch}'?"):
            self.git.delete_branch(self.ctx.primary_root, result.branch)
            result.branch_deleted = True
            self._ui.echo(f"Deleted branch '{result.branch}'.")

        self._refresh_map()
        logger.info("Cleaned up workspace {}", name)
        return result

    # -- Switch ----------------------------------------------------------------

    def switch(self, name: str) -> Path:
        """Path of an existing workspace; the caller decides whether to ``cd`` there."""
        path = self._workspace_dir(name)
        if not path.is_dir():
            available = [listing.name for listing in self.list() if listing.record is not None]
            msg = f"Workspace '{name}' not found at {path}. Available: {', '.join(available) or '(none)'}"
            raise WorkspaceNotFoundError(msg)
        return path
