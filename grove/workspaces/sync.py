"""Idempotent marker-based document sections.

Two operations, both safe to repeat:

- ``inject_once`` appends a block guarded by a unique sentinel; once the
  sentinel is in the document nothing is written again.
- ``sync_region`` replaces whatever sits between an open/close sentinel pair
  and leaves every other byte of the document untouched.

Documents opt in to region sync by containing the sentinel pair.  A missing
document or missing markers is a no-op; malformed markers (duplicated, only
one of the pair, or close before open) are also left alone rather than
repaired, with a warning.

Writes go through temp-file-then-rename, so readers never see a half-written
document.  Two concurrent writers may still lose one update.
"""

from __future__ import annotations

from pathlib import Path

from loguru import logger

from grove.workspaces.errors import WorkspaceIOError
from grove.workspaces.store.local import atomic_write


def _read(path: Path) -> str | None:
    try:
        with path.open(encoding="utf-8", newline="") as f:
            return f.read()
    except FileNotFoundError:
        return None
    except OSError as exc:
        msg = f"Could not read {path}: {exc}"
        raise WorkspaceIOError(msg) from exc


def _write(path: Path, text: str) -> None:
    try:
        atomic_write(path, text)
    except OSError as exc:
        msg = f"Could not write {path}: {exc}"
        raise WorkspaceIOError(msg) from exc


def inject_once(path: Path, guard: str, block: str) -> bool:
    """Append ``block`` under ``guard`` unless ``guard`` already occurs in the document.

    Creates the document when it does not exist.  Returns ``True`` if the
    document was written.
    """
    current = _read(path)
    if current is not None and guard in current:
        return False

    body = block.rstrip("\n")
    _write(path, (current or "") + f"\n{guard}\n{body}\n")
    return True


def replace_region(text: str, start: str, end: str, content: str) -> str | None:
    """Return ``text`` with the span between the sentinels replaced.

    The replacement is framed by newlines so the sentinels stay on their own
    lines.  Returns ``None`` when the document has not opted in (neither
    sentinel present) or when the markers are malformed.
    """
    n_start, n_end = text.count(start), text.count(end)
    if n_start == 0 and n_end == 0:
        return None
    if n_start != 1 or n_end != 1:
        logger.warning(
            "Sync: expected exactly one {!r}/{!r} pair, found {}/{}; leaving document unchanged",
            start,
            end,
            n_start,
            n_end,
        )
        return None

    open_at = text.index(start) + len(start)
    close_at = text.index(end)
    if close_at < open_at:
        logger.warning("Sync: {!r} appears before {!r}; leaving document unchanged", end, start)
        return None

    body = content.strip("\n")
    inner = f"\n{body}\n" if body else "\n"
    return text[:open_at] + inner + text[close_at:]


def sync_region(path: Path, start: str, end: str, content: str) -> bool:
    """Replace the region between ``start`` and ``end`` in the document at ``path``.

    Returns ``True`` if the document was rewritten; ``False`` when it is
    missing, has not opted in, has malformed markers, or already holds
    exactly this content.
    """
    current = _read(path)
    if current is None:
        return False
    updated = replace_region(current, start, end, content)
    if updated is None or updated == current:
        return False
    _write(path, updated)
    return True
