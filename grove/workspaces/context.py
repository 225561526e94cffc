"""Repository context.

All paths a command touches (worktrees directory, lock file, guidance
document) hang off a single ``RepoContext`` value that is built once per
invocation and passed to every component.  There is no module-level state.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

from loguru import logger

from grove.workspaces.errors import ValidationError
from grove.workspaces.git import Git
from grove.workspaces.settings import GroveSettings


@dataclass(frozen=True)
class RepoContext:
    """Where a command runs, relative to the primary checkout.

    ``primary_root`` is the canonical checkout (even when invoked from inside
    a workspace); ``current_root`` is the top level of the checkout the
    command was started in.
    """

    primary_root: Path
    current_root: Path
    settings: GroveSettings = field(default_factory=GroveSettings)

    @classmethod
    def discover(cls, start: Path, settings: GroveSettings, git: Git) -> RepoContext:
        """Resolve the primary checkout from any directory inside it or one of its worktrees."""
        start = start.resolve()
        if not git.is_inside_work_tree(start):
            msg = f"Not inside a git repository: {start}"
            raise ValidationError(msg)
        current_root = git.toplevel(start)
        common_dir = git.common_dir(start)
        if common_dir.name != ".git":
            msg = f"Bare repositories are not supported: {common_dir}"
            raise ValidationError(msg)
        return cls(primary_root=common_dir.parent, current_root=current_root, settings=settings)

    # -- Derived paths ---------------------------------------------------------

    @property
    def project_name(self) -> str:
        return self.primary_root.name

    @property
    def worktrees_dir(self) -> Path:
        return self.primary_root / self.settings.worktrees_dirname

    @property
    def lock_path(self) -> Path:
        return self.worktrees_dir / self.settings.lock_filename

    @property
    def guidance_path(self) -> Path:
        return self.primary_root / self.settings.guidance_filename

    @property
    def in_workspace(self) -> bool:
        """True when the command was started inside a workspace rather than the primary checkout."""
        return self.current_root != self.primary_root

    def workspace_path(self, name: str) -> Path:
        return self.worktrees_dir / name

    def workspace_name_for(self, path: Path) -> str | None:
        """Name of the workspace containing ``path``, judged by the closest record file."""
        path = path.resolve()
        root = self.worktrees_dir.resolve()
        if path == root or root not in path.parents:
            return None
        for candidate in (path, *path.parents):
            if candidate == root:
                break
            if (candidate / self.settings.metadata_filename).is_file():
                return candidate.relative_to(root).as_posix()
        return None


def ensure_ignored(ctx: RepoContext, git: Git) -> bool:
    """Append the worktrees directory to ``.gitignore`` unless git already ignores it.

    Returns ``True`` when the ignore file was changed.
    """
    dirname = ctx.settings.worktrees_dirname
    # Directory-only patterns such as ``.worktrees/`` match only existing directories.
    ctx.worktrees_dir.mkdir(parents=True, exist_ok=True)
    if git.is_ignored(ctx.primary_root, dirname):
        return False
    gitignore = ctx.primary_root / ".gitignore"
    lines = f"# Git worktrees managed by grove\n{dirname}/\n"
    if gitignore.exists():
        with gitignore.open("a", encoding="utf-8") as f:
            f.write("\n" + lines)
    else:
        gitignore.write_text(lines, encoding="utf-8")
    logger.info("Added {}/ to {}", dirname, gitignore)
    return True
