"""Shared test fixtures: throwaway git repositories and isolated settings.

Tests drive the real ``git`` binary against repositories under ``tmp_path``.
Global and system git config are masked so the user's aliases, hooks, or
signing setup cannot leak in.  Tests that need git are skipped when it is
not installed.
"""

from __future__ import annotations

import os
import shutil
import subprocess
from collections.abc import Callable, Iterator
from pathlib import Path

import pytest

from grove.workspaces.context import RepoContext
from grove.workspaces.git import Git
from grove.workspaces.managers import WorkspaceManager
from grove.workspaces.settings import GroveSettings, get_settings


class GitHelper:
    """Small driver for setting up repository state in tests."""

    def run(self, cwd: Path, *args: str, env: dict[str, str] | None = None) -> str:
        proc = subprocess.run(
            ["git", "-C", str(cwd), *args],
            capture_output=True,
            text=True,
            check=True,
            env={**os.environ, **(env or {})},
        )
        return proc.stdout.strip()

    def commit(self, cwd: Path, filename: str, content: str, message: str, *, date: str | None = None) -> None:
        (cwd / filename).write_text(content, encoding="utf-8")
        self.run(cwd, "add", filename)
        env = {"GIT_AUTHOR_DATE": date, "GIT_COMMITTER_DATE": date} if date else None
        self.run(cwd, "commit", "-q", "-m", message, env=env)

    def branches(self, cwd: Path) -> list[str]:
        return self.run(cwd, "branch", "--format=%(refname:short)").splitlines()


class ScriptedInteraction:
    """Interaction double: replays canned answers and records every prompt and message."""

    def __init__(self, answers: list[bool] | None = None) -> None:
        self.answers = list(answers or [])
        self.prompts: list[str] = []
        self.messages: list[str] = []

    def echo(self, message: str = "") -> None:
        self.messages.append(message)

    def confirm(self, prompt: str, *, default: bool = False) -> bool:
        self.prompts.append(prompt)
        if not self.answers:
            msg = f"Unexpected prompt: {prompt}"
            raise AssertionError(msg)
        return self.answers.pop(0)


# ---------------------------------------------------------------------------
# Environment isolation
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _isolated_git_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> Iterator[None]:
    """Mask user git config and reset the settings cache around every test."""
    monkeypatch.setenv("GIT_CONFIG_GLOBAL", str(tmp_path / "gitconfig"))
    monkeypatch.setenv("GIT_CONFIG_NOSYSTEM", "1")
    monkeypatch.setenv("GIT_AUTHOR_NAME", "Grove Test")
    monkeypatch.setenv("GIT_AUTHOR_EMAIL", "grove@example.com")
    monkeypatch.setenv("GIT_COMMITTER_NAME", "Grove Test")
    monkeypatch.setenv("GIT_COMMITTER_EMAIL", "grove@example.com")
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


# ---------------------------------------------------------------------------
# Repositories
# ---------------------------------------------------------------------------


@pytest.fixture
def gitx() -> GitHelper:
    return GitHelper()


@pytest.fixture
def repo(tmp_path: Path, gitx: GitHelper) -> Path:
    """A primary checkout on branch ``main`` with one commit."""
    if shutil.which("git") is None:
        pytest.skip("git is not installed")
    root = (tmp_path / "project").resolve()
    root.mkdir()
    gitx.run(root, "init", "-q")
    gitx.run(root, "symbolic-ref", "HEAD", "refs/heads/main")
    gitx.run(root, "config", "commit.gpgsign", "false")
    gitx.commit(root, "README.md", "# project\n", "initial commit")
    return root


@pytest.fixture
def settings() -> GroveSettings:
    return GroveSettings(run_bootstrap=False, lock_timeout=1.0, lock_poll_interval=0.05)


@pytest.fixture
def ctx(repo: Path, settings: GroveSettings) -> RepoContext:
    return RepoContext.discover(repo, settings, Git())


@pytest.fixture
def make_manager(ctx: RepoContext) -> Callable[..., tuple[WorkspaceManager, ScriptedInteraction]]:
    """Build a manager whose confirmations replay ``answers``.

    Returns ``(manager, interaction)`` so tests can inspect prompts and output.
    """

    def _make(
        answers: list[bool] | None = None, *, context: RepoContext | None = None
    ) -> tuple[WorkspaceManager, ScriptedInteraction]:
        interaction = ScriptedInteraction(answers)
        return WorkspaceManager(context or ctx, interaction, git=Git()), interaction

    return _make
