"""Boundary policy for edit requests.

``decide`` is a pure function of its arguments: no filesystem or git access,
so it is safe to call from a latency-bounded hook as often as needed.  Rules
are evaluated in order, first match wins:

1. no workspaces exist                         -> allow
2. path inside the managed worktrees directory -> allow
3. path outside the primary checkout           -> allow
4. caller is itself running in a workspace     -> allow
5. file name matches an exemption pattern      -> allow
6. otherwise                                   -> ask
"""

from __future__ import annotations

import fnmatch
import os
from collections.abc import Iterable
from dataclasses import dataclass
from pathlib import PurePath

from grove.workspaces.models.enums import GuardAction

ASK_REASON = (
    "Worktrees exist for this project. You are editing a file in the main repo "
    "-- are you sure this change does not belong in a worktree?"
)


@dataclass(frozen=True, slots=True)
class GuardVerdict:
    action: GuardAction
    reason: str | None = None

    @property
    def allowed(self) -> bool:
        return self.action is GuardAction.ALLOW


ALLOW = GuardVerdict(GuardAction.ALLOW)


def _normalize(path: str | PurePath, base: str | PurePath) -> PurePath:
    raw = os.fspath(path)
    if not os.path.isabs(raw):
        raw = os.path.join(os.fspath(base), raw)
    return PurePath(os.path.normpath(raw))


def _is_within(path: PurePath, root: PurePath) -> bool:
    return path == root or root in path.parents


def decide(
    edit_path: str | PurePath,
    primary_root: str | PurePath,
    *,
    workspaces_exist: bool,
    inside_workspace: bool,
    worktrees_dirname: str = ".worktrees",
    exempt_patterns: Iterable[str] = (),
) -> GuardVerdict:
    """Decide whether an edit to ``edit_path`` may proceed without asking.

    Relative paths are taken relative to ``primary_root``.
    """
    if not workspaces_exist:
        return ALLOW

    root = _normalize(primary_root, "/")
    path = _normalize(edit_path, root)

    if _is_within(path, root / worktrees_dirname):
        return ALLOW
    if not _is_within(path, root):
        return ALLOW
    if inside_workspace:
        return ALLOW
    if any(fnmatch.fnmatchcase(path.name, pattern) for pattern in exempt_patterns):
        return ALLOW
    return GuardVerdict(GuardAction.ASK, ASK_REASON)
