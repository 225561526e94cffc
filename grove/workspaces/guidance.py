"""Guidance text rendered into documents that agents read.

Three artefacts, all rendered with Jinja2:

- the isolation-context block appended once to a workspace's guidance
  document (guarded by ``CONTEXT_SENTINEL``),
- the status table kept between ``MAP_START`` / ``MAP_END`` in the primary
  checkout's guidance document,
- the boundary rule file dropped into each workspace's config directory.

Sentinel strings are shared with the earlier shell tooling so documents
that already carry them keep working.
"""

from __future__ import annotations

from collections.abc import Iterable
from pathlib import Path

import jinja2

from grove.workspaces.context import RepoContext
from grove.workspaces.errors import WorkspaceIOError
from grove.workspaces.models.workspace import WorkspaceRecord
from grove.workspaces.store.base import WorkspaceRegistry
from grove.workspaces.store.local import atomic_write
from grove.workspaces.sync import inject_once, sync_region

CONTEXT_SENTINEL = "<!-- WORKTREE-CONTEXT-INJECTED -->"
MAP_START = "<!-- WORKTREE-MAP-START -->"
MAP_END = "<!-- WORKTREE-MAP-END -->"

BOUNDARY_RULE_FILENAME = "hookify.worktree-boundary.local.md"

_CONTEXT_TEMPLATE = """\
## Worktree Context -- READ THIS FIRST

**You are in a worktree.** This is an isolated workspace.

| Field | Value |
|-------|-------|
| Project | `{{ project }}` |
| Branch | `{{ branch }}` |
| Base branch | `{{ base_branch }}` |
| Worktree path | `{{ path }}` |
| Main repo | `{{ primary_root }}` |

### Hard Rules
1. **Stay in this directory.** Do not `cd` to the main repo or other worktrees.
2. **Do not switch branches.** Never `git checkout` or `git switch`.
3. **Do not read/modify files in other worktrees.** Those are other agents' workspaces.
4. **PRs target `{{ base_branch }}`.**
5. **Do not create new branches** without explicit user instruction.
6. **Verify at session start:** `pwd && git branch --show-current`
7. **Do not modify this section.** It is auto-generated.
"""

_TABLE_TEMPLATE = """\
| Branch | Base | Path | Status |
|--------|------|------|--------|
{% for row in rows -%}
| `{{ row.branch }}` | `{{ row.base_branch }}` | `{{ row.path }}` | {{ row.status }} |
{% else -%}
| _(none)_ | | | |
{% endfor %}"""

_BOUNDARY_TEMPLATE = """\
---
name: worktree-boundary-guard
enabled: true
event: file
conditions:
  - field: file_path
    operator: not_contains
    pattern: {{ path }}
action: warn
---
You are editing a file outside your worktree boundary (`{{ path }}`).
You should only edit files within this worktree. If you need to edit files elsewhere, ask the user first.
"""

_env = jinja2.Environment(autoescape=False, keep_trailing_newline=True)  # noqa: S701


def render_context_block(*, project: str, record: WorkspaceRecord, path: Path) -> str:
    return _env.from_string(_CONTEXT_TEMPLATE).render(
        project=project,
        branch=record.branch,
        base_branch=record.base_branch,
        path=path,
        primary_root=record.primary_repo_path,
    )


def render_status_table(rows: Iterable[dict[str, str]]) -> str:
    """Markdown table of workspaces; a placeholder row when there are none."""
    return _env.from_string(_TABLE_TEMPLATE).render(rows=list(rows))


def render_boundary_rule(path: Path) -> str:
    return _env.from_string(_BOUNDARY_TEMPLATE).render(path=path)


# -- Document updates ------------------------------------------------------------


def inject_workspace_context(ctx: RepoContext, name: str, record: WorkspaceRecord) -> bool:
    """Append the isolation-context block to the workspace's guidance document (once)."""
    path = ctx.workspace_path(name)
    block = render_context_block(project=ctx.project_name, record=record, path=path)
    return inject_once(path / ctx.settings.guidance_filename, CONTEXT_SENTINEL, block)


def write_boundary_rule(ctx: RepoContext, name: str) -> Path:
    path = ctx.workspace_path(name)
    rule = path / ctx.settings.config_dirname / BOUNDARY_RULE_FILENAME
    try:
        atomic_write(rule, render_boundary_rule(path))
    except OSError as exc:
        msg = f"Could not write boundary rule {rule}: {exc}"
        raise WorkspaceIOError(msg) from exc
    return rule


def refresh_status_table(ctx: RepoContext, registry: WorkspaceRegistry) -> bool:
    """Regenerate the workspace table in the primary guidance document.

    No-op unless the document exists and carries the map markers.
    """
    rows = [
        {
            "branch": record.branch,
            "base_branch": record.base_branch,
            "path": f"{ctx.settings.worktrees_dirname}/{name}",
            "status": record.status.value,
        }
        for name, record in registry.list()
    ]
    return sync_region(ctx.guidance_path, MAP_START, MAP_END, render_status_table(rows))
