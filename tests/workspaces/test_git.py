"""Tests for the git collaborator."""

from __future__ import annotations

from pathlib import Path

import pytest

from grove.workspaces.errors import MergeConflictError, ValidationError, VCSOperationError
from grove.workspaces.git import Git, parse_worktree_porcelain

PORCELAIN = """\
worktree /srv/project
HEAD 1111111111111111111111111111111111111111
branch refs/heads/main

worktree /srv/project/.worktrees/auth
HEAD 2222222222222222222222222222222222222222
branch refs/heads/auth

worktree /srv/project/.worktrees/spike
HEAD 3333333333333333333333333333333333333333
detached

worktree /tmp/gone
HEAD 4444444444444444444444444444444444444444
branch refs/heads/gone
prunable gitdir file points to non-existent location
"""


def test_parse_worktree_porcelain() -> None:
    entries = parse_worktree_porcelain(PORCELAIN)

    assert [e.path for e in entries] == [
        Path("/srv/project"),
        Path("/srv/project/.worktrees/auth"),
        Path("/srv/project/.worktrees/spike"),
        Path("/tmp/gone"),
    ]
    assert entries[1].branch == "auth"
    assert entries[2].branch is None and entries[2].detached is True
    assert entries[3].prunable is True
    assert not any(e.bare for e in entries)


def test_parse_worktree_porcelain_bare_and_empty() -> None:
    assert parse_worktree_porcelain("") == []
    (bare,) = parse_worktree_porcelain("worktree /srv/repo.git\nbare\n")
    assert bare.bare is True


def test_missing_binary_is_a_validation_error(tmp_path: Path) -> None:
    with pytest.raises(ValidationError, match="not found on PATH"):
        Git(binary="grove-no-such-git").run(tmp_path, "status")


def test_failed_command_carries_stderr(repo: Path) -> None:
    with pytest.raises(VCSOperationError) as excinfo:
        Git().run(repo, "checkout", "no-such-branch")
    assert excinfo.value.stderr
    assert excinfo.value.command[:3] == ["git", "-C", str(repo)]


def test_branch_queries(repo: Path) -> None:
    git = Git()
    assert git.current_branch(repo) == "main"
    assert git.branch_exists(repo, "main") is True
    assert git.branch_exists(repo, "other") is False
    assert git.is_valid_branch_name(repo, "feature/auth") is True
    assert git.is_valid_branch_name(repo, "has space") is False


def test_worktree_add_and_list(repo: Path) -> None:
    git = Git()
    path = repo / ".worktrees" / "auth"

    assert git.worktree_add(repo, path, "auth", "main") is True
    entries = git.worktree_list(repo)
    assert [e.path.resolve() for e in entries] == [repo, path]
    assert entries[1].branch == "auth"
    assert git.toplevel(path) == path
    assert git.common_dir(path) == repo / ".git"
    assert git.git_dir(path) != git.common_dir(path)

    assert git.worktree_remove(repo, path) is True
    assert git.worktree_add(repo, path, "auth", "main") is False


def test_uncommitted_changes_ignore_untracked(repo: Path) -> None:
    git = Git()
    (repo / "scratch.txt").write_text("untracked\n", encoding="utf-8")
    assert git.has_uncommitted_changes(repo) is False
    (repo / "README.md").write_text("changed\n", encoding="utf-8")
    assert git.has_uncommitted_changes(repo) is True


def test_log_range_and_last_commit(repo: Path, gitx) -> None:
    git = Git()
    gitx.run(repo, "checkout", "-q", "-b", "topic")
    gitx.commit(repo, "a.txt", "a\n", "add a", date="2020-05-01T00:00:00Z")

    commits = git.log_range(repo, "main", "topic")
    assert len(commits) == 1 and commits[0].endswith("add a")
    assert git.log_range(repo, "main", "no-such-branch") == []

    stamp = git.last_commit(repo)
    assert stamp is not None
    assert stamp.committed_at.year == 2020
    assert stamp.relative.endswith("ago")


def test_merge_conflict(repo: Path, gitx) -> None:
    git = Git()
    gitx.run(repo, "checkout", "-q", "-b", "topic")
    gitx.commit(repo, "README.md", "topic\n", "topic edit")
    gitx.run(repo, "checkout", "-q", "main")
    gitx.commit(repo, "README.md", "main\n", "main edit")

    with pytest.raises(MergeConflictError, match="README.md"):
        git.merge(repo, "topic")


def test_delete_branch_forces_unmerged(repo: Path, gitx) -> None:
    git = Git()
    gitx.run(repo, "checkout", "-q", "-b", "topic")
    gitx.commit(repo, "a.txt", "a\n", "unmerged work")
    gitx.run(repo, "checkout", "-q", "main")

    git.delete_branch(repo, "topic")

    assert git.branch_exists(repo, "topic") is False
