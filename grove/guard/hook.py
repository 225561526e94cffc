"""Pre-edit hook adapter around ``decide``.

Reads one request object from stdin, gathers the few facts the policy needs
(repository root, whether any workspace record exists, whether the hook
runs inside a workspace), and emits nothing for allow or a decision object
for ask.  Anything it cannot make sense of is an implicit allow.

Install per project in ``.claude/settings.json``::

    {"hooks": {"PreToolUse": [{"matcher": "Write|Edit",
      "hooks": [{"type": "command", "command": "grove guard", "timeout": 5000}]}]}}
"""

from __future__ import annotations

from pathlib import Path

from loguru import logger
from pydantic import BaseModel, ConfigDict
from pydantic import ValidationError as PydanticValidationError

from grove.guard.policy import decide
from grove.workspaces.errors import GroveError
from grove.workspaces.git import Git
from grove.workspaces.settings import GroveSettings
from grove.workspaces.store.local import LocalWorkspaceRegistry


class ToolInput(BaseModel):
    model_config = ConfigDict(extra="ignore")

    file_path: str | None = None


class GuardRequest(BaseModel):
    """Hook payload.  Either ``tool_input.file_path`` or a top-level ``file_path``."""

    model_config = ConfigDict(extra="ignore")

    tool_input: ToolInput | None = None
    file_path: str | None = None

    @property
    def edit_path(self) -> str | None:
        if self.tool_input is not None and self.tool_input.file_path:
            return self.tool_input.file_path
        return self.file_path or None


def evaluate(payload: str, cwd: Path, settings: GroveSettings, git: Git | None = None) -> dict[str, str] | None:
    """Return the decision object to print, or ``None`` to allow silently."""
    try:
        request = GuardRequest.model_validate_json(payload)
    except PydanticValidationError:
        logger.debug("Guard: unreadable payload, allowing")
        return None
    edit_path = request.edit_path
    if not edit_path:
        return None

    git = git or Git()
    try:
        if not git.is_inside_work_tree(cwd):
            return None
        root = git.toplevel(cwd)
        inside_workspace = git.git_dir(cwd) != git.common_dir(cwd)
    except GroveError as exc:
        logger.debug("Guard: git query failed ({}), allowing", exc)
        return None

    registry = LocalWorkspaceRegistry(root / settings.worktrees_dirname, settings.metadata_filename)
    try:
        workspaces_exist = bool(registry.names())
    except OSError as exc:
        logger.debug("Guard: could not scan workspace records ({}), allowing", exc)
        return None

    verdict = decide(
        edit_path,
        root,
        workspaces_exist=workspaces_exist,
        inside_workspace=inside_workspace,
        worktrees_dirname=settings.worktrees_dirname,
        exempt_patterns=settings.guard_exempt_patterns,
    )
    if verdict.allowed:
        return None
    return {"decision": verdict.action.value, "reason": verdict.reason or ""}
