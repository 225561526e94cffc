"""Local filesystem workspace registry.

Each record lives inside its workspace directory::

    {primary}/.worktrees/{name}/.worktree.json

Names may contain ``/`` (``feature/auth``), so enumeration walks the tree,
descending only into directories that are not themselves checkouts.

Writes are atomic: data is written to a temporary file in the same directory,
then renamed over the target.  A crash mid-write leaves the old record (or no
record), never a truncated one.
"""

from __future__ import annotations

import contextlib
import os
import tempfile
from collections.abc import Iterator
from pathlib import Path

from loguru import logger
from pydantic import ValidationError as PydanticValidationError

from grove.workspaces.errors import WorkspaceIOError, WorkspaceNotFoundError
from grove.workspaces.models.workspace import WorkspaceRecord


class LocalWorkspaceRegistry:
    """Local filesystem implementation of the WorkspaceRegistry protocol."""

    def __init__(self, worktrees_dir: str | Path, metadata_filename: str = ".worktree.json") -> None:
        self._root = Path(worktrees_dir)
        self._filename = metadata_filename

    def _record_path(self, name: str) -> Path:
        return self._root / name / self._filename

    # -- Write -----------------------------------------------------------------

    def put(self, name: str, record: WorkspaceRecord) -> None:
        path = self._record_path(name)
        try:
            atomic_write(path, record.to_json())
        except OSError as exc:
            msg = f"Could not write workspace record {path}: {exc}"
            raise WorkspaceIOError(msg) from exc
        logger.debug("Registry: wrote {} (status={})", path, record.status)

    def delete(self, name: str) -> None:
        self._record_path(name).unlink(missing_ok=True)

    # -- Read ------------------------------------------------------------------

    def get(self, name: str) -> WorkspaceRecord:
        path = self._record_path(name)
        try:
            raw = path.read_text(encoding="utf-8")
        except FileNotFoundError:
            raise WorkspaceNotFoundError(f"No workspace record for '{name}' at {path}") from None
        except OSError as exc:
            msg = f"Could not read workspace record {path}: {exc}"
            raise WorkspaceIOError(msg) from exc
        try:
            return WorkspaceRecord.model_validate_json(raw)
        except PydanticValidationError as exc:
            msg = f"Invalid workspace record {path}: {exc}"
            raise WorkspaceIOError(msg) from None

    def exists(self, name: str) -> bool:
        return self._record_path(name).is_file()

    def list(self) -> Iterator[tuple[str, WorkspaceRecord]]:
        for name in self.names():
            try:
                yield name, self.get(name)
            except (WorkspaceNotFoundError, WorkspaceIOError) as exc:
                logger.warning("Registry: skipping unreadable record for {}: {}", name, exc)

    def names(self) -> list[str]:
        """Names of all directories holding a record file, sorted."""
        if not self._root.is_dir():
            return []
        found: list[str] = []
        pending = [self._root]
        while pending:
            current = pending.pop()
            for child in current.iterdir():
                if not child.is_dir() or child.is_symlink():
                    continue
                if (child / self._filename).is_file():
                    found.append(child.relative_to(self._root).as_posix())
                elif not (child / ".git").exists():
                    pending.append(child)
        return sorted(found)


# -- Helpers -------------------------------------------------------------------


def atomic_write(path: Path, data: str) -> None:
    """Write data atomically: temp file + rename.

    The temp file is created in the same directory so ``os.replace`` is
    atomic on POSIX.  An existing target keeps its permission bits; a new
    one gets the usual umask-derived mode rather than mkstemp's 0600.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    try:
        mode = path.stat().st_mode & 0o777
    except FileNotFoundError:
        umask = os.umask(0)
        os.umask(umask)
        mode = 0o666 & ~umask
    fd, tmp_path = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8", newline="") as f:
            f.write(data)
        os.chmod(tmp_path, mode)
        os.replace(tmp_path, path)
    except BaseException:
        with contextlib.suppress(OSError):
            os.unlink(tmp_path)
        raise
