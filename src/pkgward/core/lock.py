"""Cross-process repository lock built on atomic directory creation.

The marker is a directory containing a ``pid`` file. ``os.mkdir`` either
creates the directory or fails because it exists, which makes it the
compare-and-swap primitive. Within one process the lock is reentrant:
nested acquisitions bump a counter and only the outermost release
removes the marker.

A marker is considered stale and removed when the recorded process is
not running or the marker is older than ``STALE_AFTER_SECONDS``. A
marker without a readable pid is held, since its owner may still be
writing the pid. A caller can also force removal of any existing marker.
"""

from __future__ import annotations

import errno
import logging
import os
import shutil
import time
from pathlib import Path

from pkgward.exceptions import LockHeldError

logger = logging.getLogger(__name__)

STALE_AFTER_SECONDS = 2 * 60 * 60
PID_FILENAME = "pid"

# Bounds the remove-and-retry loop when markers keep reappearing.
_MAX_ATTEMPTS = 5


def process_running(pid: int | None) -> bool:
    """Return True if a process with *pid* exists."""
    if pid is None or pid <= 0:
        return False
    try:
        os.kill(pid, 0)
    except ProcessLookupError:
        return False
    except PermissionError:
        # Exists, owned by another user.
        return True
    return True


class RepositoryLock:
    """Reentrant lock over a package repository.

    Args:
        lock_dir: Marker directory path.
        force: Remove any existing marker instead of honouring it.

    Example::

        with RepositoryLock(Path("/var/pkgward/lock")):
            ...
    """

    def __init__(self, lock_dir: Path, force: bool = False) -> None:
        self.lock_dir = Path(lock_dir)
        self.pid_file = self.lock_dir / PID_FILENAME
        self.force = force
        self._count = 0

    @property
    def held(self) -> bool:
        return self._count > 0

    def _recorded_pid(self) -> int | None:
        try:
            return int(self.pid_file.read_text().strip())
        except (OSError, ValueError):
            return None

    def _remove_marker(self) -> None:
        shutil.rmtree(self.lock_dir, ignore_errors=True)

    def _marker_is_stale(self) -> bool:
        try:
            age = time.time() - self.lock_dir.stat().st_mtime
        except FileNotFoundError:
            return False
        return age > STALE_AFTER_SECONDS

    def acquire(self) -> None:
        """Acquire the lock or raise ``LockHeldError``."""
        if self._count > 0:
            self._count += 1
            return

        if self.lock_dir.is_dir():
            if self.force:
                logger.warning("Forcing lock removal at %s", self.lock_dir)
                self._remove_marker()
            elif self._marker_is_stale():
                logger.warning("Lock is more than 2 hours old, removing")
                self._remove_marker()

        pid = None
        for _ in range(_MAX_ATTEMPTS):
            try:
                self.lock_dir.parent.mkdir(parents=True, exist_ok=True)
                os.mkdir(self.lock_dir)
            except FileExistsError:
                pid = self._recorded_pid()
                # No pid yet: the holder is between mkdir and writing it.
                if pid is None or process_running(pid):
                    raise LockHeldError(pid) from None
                logger.warning("Removing lock left by process %s, which is not running", pid)
                self._remove_marker()
                continue
            except OSError as exc:
                if exc.errno != errno.EEXIST:
                    raise
                continue
            self.pid_file.write_text(f"{os.getpid()}\n")
            self._count = 1
            logger.debug("Acquired repository lock %s", self.lock_dir)
            return
        raise LockHeldError(pid)

    def release(self) -> None:
        """Release one level of the lock; a release while unheld only warns."""
        if self._count == 0:
            logger.warning("release called but the repository is not locked")
            return
        self._count -= 1
        if self._count == 0:
            self._remove_marker()
            logger.debug("Released repository lock %s", self.lock_dir)

    def __enter__(self) -> RepositoryLock:
        self.acquire()
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.release()
