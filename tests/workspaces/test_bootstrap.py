"""Unit tests for dependency bootstrap detection and execution."""

from __future__ import annotations

import subprocess
from pathlib import Path

import pytest

from grove.workspaces import bootstrap
from grove.workspaces.bootstrap import detect_command, run_bootstrap


@pytest.mark.parametrize(
    ("markers", "expected"),
    [
        ([], None),
        (["package.json"], ["npm", "install"]),
        (["package.json", "bun.lockb"], ["bun", "install"]),
        (["package.json", "bun.lock"], ["bun", "install"]),
        (["package.json", "yarn.lock"], ["yarn", "install"]),
        (["package.json", "pnpm-lock.yaml"], ["pnpm", "install"]),
        (["package.json", "package-lock.json", "yarn.lock"], ["npm", "install"]),
        (["Cargo.toml"], ["cargo", "build"]),
        (["requirements.txt", "pyproject.toml"], ["pip", "install", "-r", "requirements.txt"]),
        (["pyproject.toml", "uv.lock"], ["uv", "sync"]),
        (["pyproject.toml", "poetry.lock"], ["poetry", "install"]),
        (["pyproject.toml"], None),
        (["go.mod"], ["go", "mod", "download"]),
        (["package.json", "Cargo.toml"], ["npm", "install"]),
    ],
)
def test_detect_command(tmp_path: Path, markers: list[str], expected: list[str] | None) -> None:
    for marker in markers:
        (tmp_path / marker).write_text("", encoding="utf-8")
    assert detect_command(tmp_path) == expected


def test_run_bootstrap_nothing_to_do(tmp_path: Path) -> None:
    assert run_bootstrap(tmp_path) is None


def test_run_bootstrap_success(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    (tmp_path / "go.mod").write_text("module x\n", encoding="utf-8")
    seen: dict = {}

    def fake_run(command, **kwargs):
        seen["command"] = command
        seen["cwd"] = kwargs["cwd"]
        return subprocess.CompletedProcess(command, 0, stdout="ok\n", stderr="")

    monkeypatch.setattr(bootstrap.subprocess, "run", fake_run)
    result = run_bootstrap(tmp_path)

    assert result is not None and result.ok is True
    assert result.output == "ok"
    assert seen == {"command": ["go", "mod", "download"], "cwd": tmp_path}


def test_run_bootstrap_failure_is_reported(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    (tmp_path / "Cargo.toml").write_text("", encoding="utf-8")
    monkeypatch.setattr(
        bootstrap.subprocess,
        "run",
        lambda command, **kwargs: subprocess.CompletedProcess(command, 101, stdout="", stderr="error: no targets"),
    )

    result = run_bootstrap(tmp_path)

    assert result is not None and result.ok is False
    assert "no targets" in result.output


def test_run_bootstrap_missing_tool(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    (tmp_path / "package.json").write_text("{}", encoding="utf-8")

    def missing(command, **kwargs):
        raise FileNotFoundError(2, "No such file or directory", command[0])

    monkeypatch.setattr(bootstrap.subprocess, "run", missing)
    result = run_bootstrap(tmp_path)

    assert result is not None and result.ok is False
    assert result.command == ["npm", "install"]
