"""PID-tagged advisory lock guarding ``merge``.

The lock record is a one-line file holding the holder's process id.  It is
created with ``os.link`` from a fully written temp file, so it appears
atomically and never without its pid.  Waiters poll: a record whose pid is
no longer alive is reclaimed on the spot; a live holder past the deadline
raises ``ConcurrencyError`` naming that pid.

Reclaiming a stale record happens under an exclusive ``flock`` on a sidecar
file (``<lock>.reclaim``), and the record is re-read there before it is
removed.  Two waiters that both saw the same dead pid therefore cannot
remove each other's freshly created record.

Single host, cooperative only: a process that deletes or rewrites the file
directly bypasses the protocol.
"""

from __future__ import annotations

import contextlib
import fcntl
import os
import tempfile
import time
from collections.abc import Callable, Iterator
from pathlib import Path

from loguru import logger

from grove.workspaces.errors import ConcurrencyError


def pid_alive(pid: int) -> bool:
    """Whether a process with this pid currently exists (signal 0)."""
    if pid <= 0:
        return False
    try:
        os.kill(pid, 0)
    except ProcessLookupError:
        return False
    except PermissionError:
        # Exists but belongs to another user.
        return True
    return True


class MergeLock:
    """Mutual exclusion for merges into one primary repository.

    Use as a context manager (or via ``hold()``) so the record is removed on
    every exit path::

        with MergeLock(ctx.lock_path, timeout=10):
            ...
    """

    def __init__(
        self,
        path: Path,
        *,
        timeout: float = 10.0,
        poll_interval: float = 1.0,
        pid: int | None = None,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.path = path
        self.timeout = timeout
        self.poll_interval = poll_interval
        self.pid = pid if pid is not None else os.getpid()
        self._sleep = sleep
        self._clock = clock

    # -- Record I/O ------------------------------------------------------------

    def _try_create(self) -> bool:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp = tempfile.mkstemp(dir=self.path.parent, prefix=".lock.", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(f"{self.pid}\n")
            os.link(tmp, self.path)
        except FileExistsError:
            return False
        finally:
            with contextlib.suppress(OSError):
                os.unlink(tmp)
        return True

    def holder(self) -> int | None:
        """Pid recorded in the lock file; ``None`` if absent or unparseable."""
        try:
            raw = self.path.read_text(encoding="utf-8").strip()
        except FileNotFoundError:
            return None
        try:
            return int(raw)
        except ValueError:
            return None

    @contextlib.contextmanager
    def _reclaim_guard(self) -> Iterator[None]:
        sidecar = self.path.with_name(f"{self.path.name}.reclaim")
        with sidecar.open("a") as f:
            fcntl.flock(f.fileno(), fcntl.LOCK_EX)
            try:
                yield
            finally:
                fcntl.flock(f.fileno(), fcntl.LOCK_UN)

    def _reclaim_stale(self) -> bool:
        """Remove the record if it still names a dead holder.

        Returns ``False`` when, by the time the guard is held, the record
        belongs to a live process.
        """
        with self._reclaim_guard():
            if not self.path.exists():
                return True
            holder = self.holder()
            if holder is not None and pid_alive(holder):
                return False
            logger.info("Lock: removing stale lock {} (pid {} no longer running)", self.path, holder)
            self.path.unlink(missing_ok=True)
            return True

    # -- Acquire / release -----------------------------------------------------

    def acquire(self) -> None:
        """Take the lock, reclaiming dead holders, or raise ``ConcurrencyError``."""
        deadline = self._clock() + self.timeout
        while True:
            if self._try_create():
                logger.debug("Lock: acquired {} (pid {})", self.path, self.pid)
                return

            holder = self.holder()
            if not self.path.exists():
                # Released between our attempt and the read; retry at once.
                continue
            if holder is None or not pid_alive(holder):
                # Re-checked under the reclaim guard; a live replacement is waited on as usual.
                self._reclaim_stale()
                continue

            if self._clock() >= deadline:
                msg = f"Could not acquire merge lock after {self.timeout:g}s (held by PID {holder})"
                raise ConcurrencyError(msg, holder_pid=holder)
            self._sleep(self.poll_interval)

    def release(self) -> None:
        """Delete the lock record.  Idempotent."""
        self.path.unlink(missing_ok=True)
        logger.debug("Lock: released {}", self.path)

    @contextlib.contextmanager
    def hold(self) -> Iterator[MergeLock]:
        self.acquire()
        try:
            yield self
        finally:
            self.release()

    def __enter__(self) -> MergeLock:
        self.acquire()
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.release()
