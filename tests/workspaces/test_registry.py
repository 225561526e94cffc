"""Unit tests for the local workspace registry."""

from __future__ import annotations

import json
import os
import stat
from pathlib import Path

import pytest

from grove.workspaces.errors import WorkspaceIOError, WorkspaceNotFoundError
from grove.workspaces.models import WorkspaceRecord, WorkspaceStatus
from grove.workspaces.store import LocalWorkspaceRegistry, WorkspaceRegistry, atomic_write


@pytest.fixture
def registry(tmp_path: Path) -> LocalWorkspaceRegistry:
    return LocalWorkspaceRegistry(tmp_path / ".worktrees")


def _record(branch: str = "auth") -> WorkspaceRecord:
    return WorkspaceRecord.new(branch=branch, base_branch="main", primary_repo_path=Path("/srv/project"))


def test_satisfies_protocol(registry: LocalWorkspaceRegistry) -> None:
    assert isinstance(registry, WorkspaceRegistry)


def test_put_then_get(registry: LocalWorkspaceRegistry, tmp_path: Path) -> None:
    record = _record()
    registry.put("auth", record)

    assert (tmp_path / ".worktrees" / "auth" / ".worktree.json").is_file()
    assert registry.exists("auth")
    loaded = registry.get("auth")
    assert loaded.branch == "auth"
    assert loaded.created_at.replace(microsecond=0) == record.created_at.replace(microsecond=0)


def test_put_overwrites(registry: LocalWorkspaceRegistry) -> None:
    registry.put("auth", _record())
    registry.put("auth", _record().model_copy(update={"status": WorkspaceStatus.MERGED}))
    assert registry.get("auth").status is WorkspaceStatus.MERGED


def test_get_missing(registry: LocalWorkspaceRegistry) -> None:
    with pytest.raises(WorkspaceNotFoundError):
        registry.get("nope")
    assert registry.exists("nope") is False


def test_get_invalid_record(registry: LocalWorkspaceRegistry, tmp_path: Path) -> None:
    path = tmp_path / ".worktrees" / "broken" / ".worktree.json"
    path.parent.mkdir(parents=True)
    path.write_text('{"branch": ""}', encoding="utf-8")

    with pytest.raises(WorkspaceIOError, match="Invalid workspace record"):
        registry.get("broken")


def test_list_finds_nested_names_and_skips_bad_records(registry: LocalWorkspaceRegistry, tmp_path: Path) -> None:
    registry.put("auth", _record("auth"))
    registry.put("feature/billing", _record("feature/billing"))
    bad = tmp_path / ".worktrees" / "broken" / ".worktree.json"
    bad.parent.mkdir(parents=True)
    bad.write_text("not json", encoding="utf-8")
    (tmp_path / ".worktrees" / "empty").mkdir()

    assert registry.names() == ["auth", "broken", "feature/billing"]
    assert [name for name, _ in registry.list()] == ["auth", "feature/billing"]


def test_names_does_not_descend_into_checkouts(registry: LocalWorkspaceRegistry, tmp_path: Path) -> None:
    checkout = tmp_path / ".worktrees" / "manual"
    (checkout / "sub").mkdir(parents=True)
    (checkout / ".git").write_text("gitdir: elsewhere\n", encoding="utf-8")
    (checkout / "sub" / ".worktree.json").write_text(_record().to_json(), encoding="utf-8")

    assert registry.names() == []


def test_names_on_missing_root(tmp_path: Path) -> None:
    assert LocalWorkspaceRegistry(tmp_path / "absent").names() == []


def test_delete_is_idempotent(registry: LocalWorkspaceRegistry) -> None:
    registry.put("auth", _record())
    registry.delete("auth")
    registry.delete("auth")
    assert registry.exists("auth") is False


def test_written_record_uses_compatible_keys(registry: LocalWorkspaceRegistry, tmp_path: Path) -> None:
    registry.put("auth", _record())
    data = json.loads((tmp_path / ".worktrees" / "auth" / ".worktree.json").read_text(encoding="utf-8"))
    assert set(data) == {"branch", "base_branch", "created", "main_repo", "status"}
    assert data["main_repo"] == "/srv/project"
    assert data["status"] == "active"


def test_get_record_without_status(registry: LocalWorkspaceRegistry, tmp_path: Path) -> None:
    path = tmp_path / ".worktrees" / "auth" / ".worktree.json"
    path.parent.mkdir(parents=True)
    data = json.loads(_record().to_json())
    del data["status"]
    path.write_text(json.dumps(data), encoding="utf-8")

    with pytest.raises(WorkspaceIOError, match="Invalid workspace record"):
        registry.get("auth")


# -- atomic_write ----------------------------------------------------------------


def test_atomic_write_preserves_mode(tmp_path: Path) -> None:
    target = tmp_path / "doc.md"
    target.write_text("old", encoding="utf-8")
    os.chmod(target, 0o640)

    atomic_write(target, "new")

    assert target.read_text(encoding="utf-8") == "new"
    assert stat.S_IMODE(target.stat().st_mode) == 0o640


def test_atomic_write_leaves_no_temp_files(tmp_path: Path) -> None:
    atomic_write(tmp_path / "nested" / "doc.md", "data")
    assert [p.name for p in (tmp_path / "nested").iterdir()] == ["doc.md"]
