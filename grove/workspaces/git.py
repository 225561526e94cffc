"""Thin subprocess wrapper around the ``git`` binary.

Every call passes ``-C <path>`` explicitly; nothing here depends on (or
changes) the process working directory.  Failed commands raise
``VCSOperationError`` carrying the command line and git's stderr, except
for query helpers documented as returning a fallback value.
"""

from __future__ import annotations

import subprocess
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path

from loguru import logger

from grove.workspaces.errors import MergeConflictError, ValidationError, VCSOperationError


@dataclass(frozen=True, slots=True)
class WorktreeInfo:
    """One entry of ``git worktree list --porcelain``."""

    path: Path
    head: str | None = None
    branch: str | None = None
    detached: bool = False
    bare: bool = False
    prunable: bool = False


@dataclass(frozen=True, slots=True)
class CommitStamp:
    """Time of the most recent commit in a checkout."""

    committed_at: datetime
    relative: str


class Git:
    """Version-control collaborator used by the lifecycle manager and the guard."""

    def __init__(self, binary: str = "git") -> None:
        self.binary = binary

    # -- Plumbing --------------------------------------------------------------

    def run(self, cwd: Path, *args: str, check: bool = True) -> subprocess.CompletedProcess[str]:
        cmd = [self.binary, "-C", str(cwd), *args]
        logger.debug("git: {}", " ".join(cmd))
        try:
            proc = subprocess.run(cmd, text=True, capture_output=True, check=False)  # noqa: S603
        except FileNotFoundError as exc:
            msg = f"'{self.binary}' is required but was not found on PATH."
            raise ValidationError(msg) from exc
        if check and proc.returncode != 0:
            msg = f"Command failed: {' '.join(cmd)}\n{proc.stderr.strip()}"
            raise VCSOperationError(msg, command=cmd, stderr=proc.stderr)
        return proc

    def _ok(self, cwd: Path, *args: str) -> bool:
        return self.run(cwd, *args, check=False).returncode == 0

    def _out(self, cwd: Path, *args: str) -> str:
        return self.run(cwd, *args).stdout.strip()

    # -- Repository discovery --------------------------------------------------

    def is_inside_work_tree(self, cwd: Path) -> bool:
        return self._ok(cwd, "rev-parse", "--is-inside-work-tree")

    def toplevel(self, cwd: Path) -> Path:
        return Path(self._out(cwd, "rev-parse", "--show-toplevel")).resolve()

    def common_dir(self, cwd: Path) -> Path:
        """Shared ``.git`` directory; identical for the primary checkout and all its worktrees."""
        raw = Path(self._out(cwd, "rev-parse", "--git-common-dir"))
        if not raw.is_absolute():
            raw = cwd / raw
        return raw.resolve()

    def git_dir(self, cwd: Path) -> Path:
        raw = Path(self._out(cwd, "rev-parse", "--git-dir"))
        if not raw.is_absolute():
            raw = cwd / raw
        return raw.resolve()

    def is_ignored(self, repo: Path, relpath: str) -> bool:
        return self._ok(repo, "check-ignore", "-q", relpath)

    # -- Branches --------------------------------------------------------------

    def is_valid_branch_name(self, cwd: Path, name: str) -> bool:
        return self._ok(cwd, "check-ref-format", "--branch", name)

    def branch_exists(self, repo: Path, branch: str) -> bool:
        return self._ok(repo, "show-ref", "--verify", "--quiet", f"refs/heads/{branch}")

    def current_branch(self, repo: Path) -> str | None:
        """Checked-out branch name, or ``None`` on a detached HEAD."""
        return self._out(repo, "branch", "--show-current") or None

    def short_head(self, repo: Path) -> str:
        return self._out(repo, "rev-parse", "--short", "HEAD")

    def checkout(self, repo: Path, branch: str) -> None:
        self.run(repo, "checkout", branch)

    def merge(self, repo: Path, branch: str) -> None:
        """Merge ``branch`` into the checked-out branch.

        Raises ``MergeConflictError`` when git stops with unmerged paths, and
        ``VCSOperationError`` for any other failure.
        """
        cmd = ["merge", "--no-edit", branch]
        proc = self.run(repo, *cmd, check=False)
        if proc.returncode == 0:
            return
        unmerged = self.run(repo, "diff", "--name-only", "--diff-filter=U", check=False).stdout.split()
        if unmerged:
            msg = f"Merge of '{branch}' stopped with conflicts in: {', '.join(unmerged)}"
            raise MergeConflictError(msg, command=[self.binary, *cmd], stderr=proc.stderr)
        msg = f"Merge of '{branch}' failed:\n{(proc.stderr or proc.stdout).strip()}"
        raise VCSOperationError(msg, command=[self.binary, *cmd], stderr=proc.stderr)

    def delete_branch(self, repo: Path, branch: str) -> None:
        """Delete ``branch``, forcing the delete when git refuses an unmerged branch."""
        if self._ok(repo, "branch", "-d", branch):
            return
        logger.info("Safe delete of branch {} refused, forcing", branch)
        self.run(repo, "branch", "-D", branch)

    # -- Worktrees -------------------------------------------------------------

    def worktree_add(self, repo: Path, path: Path, branch: str, base: str) -> bool:
        """Check out ``branch`` at ``path``.

        Reuses the branch if it already exists, otherwise creates it from
        ``base``.  Returns ``True`` when a new branch was created.
        """
        if self.branch_exists(repo, branch):
            self.run(repo, "worktree", "add", str(path), branch)
            return False
        self.run(repo, "worktree", "add", "-b", branch, str(path), base)
        return True

    def worktree_remove(self, repo: Path, path: Path) -> bool:
        """``git worktree remove --force``; returns ``False`` instead of raising."""
        return self._ok(repo, "worktree", "remove", "--force", str(path))

    def worktree_prune(self, repo: Path) -> None:
        self.run(repo, "worktree", "prune")

    def worktree_list(self, repo: Path) -> list[WorktreeInfo]:
        out = self.run(repo, "worktree", "list", "--porcelain").stdout
        return parse_worktree_porcelain(out)

    def worktree_list_text(self, repo: Path) -> str:
        return self._out(repo, "worktree", "list")

    # -- Working copy state ----------------------------------------------------

    def has_uncommitted_changes(self, path: Path) -> bool:
        """Staged or unstaged changes to tracked files (untracked files do not count)."""
        unstaged = not self._ok(path, "diff", "--quiet")
        staged = not self._ok(path, "diff", "--cached", "--quiet")
        return unstaged or staged

    def status_short(self, path: Path) -> str:
        return self.run(path, "status", "--short", check=False).stdout.rstrip()

    def log_range(self, repo: Path, base: str, branch: str) -> list[str]:
        """One-line summaries of commits on ``branch`` that are not on ``base``."""
        proc = self.run(repo, "log", "--oneline", f"{base}..{branch}", check=False)
        if proc.returncode != 0:
            return []
        return [line for line in proc.stdout.splitlines() if line.strip()]

    def diff_stat(self, repo: Path, base: str, branch: str) -> str:
        return self.run(repo, "diff", "--stat", f"{base}..{branch}", check=False).stdout.rstrip()

    def last_commit(self, path: Path) -> CommitStamp | None:
        """Most recent commit of the checkout at ``path``; ``None`` if unavailable."""
        proc = self.run(path, "log", "-1", "--format=%ct|%cr", check=False)
        if proc.returncode != 0 or "|" not in proc.stdout:
            return None
        epoch, relative = proc.stdout.strip().split("|", 1)
        try:
            committed_at = datetime.fromtimestamp(int(epoch), tz=UTC)
        except ValueError:
            return None
        return CommitStamp(committed_at=committed_at, relative=relative)


def parse_worktree_porcelain(text: str) -> list[WorktreeInfo]:
    """Parse ``git worktree list --porcelain`` output (blank-line separated stanzas)."""
    entries: list[WorktreeInfo] = []
    for stanza in text.strip().split("\n\n"):
        fields: dict[str, str] = {}
        for line in stanza.splitlines():
            key, _, value = line.partition(" ")
            fields[key] = value
        if "worktree" not in fields:
            continue
        branch = fields.get("branch")
        if branch and branch.startswith("refs/heads/"):
            branch = branch.removeprefix("refs/heads/")
        entries.append(
            WorktreeInfo(
                path=Path(fields["worktree"]),
                head=fields.get("HEAD"),
                branch=branch,
                detached="detached" in fields,
                bare="bare" in fields,
                prunable="prunable" in fields,
            )
        )
    return entries
