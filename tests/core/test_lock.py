"""Tests for the repository lock (pkgward.core.lock).

Verifies:
    - Acquisition creates the marker and records the pid.
    - Nested acquisitions are counted; only the outermost release unlocks.
    - A marker held by a live process raises LockHeldError.
    - Stale markers (dead pid, old age) and forced acquisition recover.
    - A marker without a readable pid is held unless old or forced.
"""

from __future__ import annotations

import os
import time
from pathlib import Path

import pytest

from pkgward.core import lock as lock_module
from pkgward.core.lock import STALE_AFTER_SECONDS, RepositoryLock, process_running
from pkgward.exceptions import LockHeldError


def _plant_marker(lock_dir: Path, pid: int) -> None:
    lock_dir.mkdir(parents=True)
    (lock_dir / "pid").write_text(f"{pid}\n")


class TestAcquireRelease:
    def test_marker_lifecycle(self, tmp_path: Path) -> None:
        lock = RepositoryLock(tmp_path / "lock")
        lock.acquire()
        assert lock.held
        assert (tmp_path / "lock" / "pid").read_text().strip() == str(os.getpid())
        lock.release()
        assert not lock.held
        assert not (tmp_path / "lock").exists()

    def test_reentrant(self, tmp_path: Path) -> None:
        lock = RepositoryLock(tmp_path / "lock")
        with lock:
            with lock:
                assert lock.held
            assert (tmp_path / "lock").is_dir()
        assert not (tmp_path / "lock").exists()

    def test_release_when_unheld_only_warns(self, tmp_path: Path, caplog) -> None:
        RepositoryLock(tmp_path / "lock").release()
        assert "not locked" in caplog.text

    def test_creates_parent_directories(self, tmp_path: Path) -> None:
        with RepositoryLock(tmp_path / "a" / "b" / "lock") as lock:
            assert lock.held


class TestContention:
    def test_live_holder_raises(self, tmp_path: Path, monkeypatch) -> None:
        _plant_marker(tmp_path / "lock", 4242)
        monkeypatch.setattr(lock_module, "process_running", lambda pid: True)
        with pytest.raises(LockHeldError) as excinfo:
            RepositoryLock(tmp_path / "lock").acquire()
        assert excinfo.value.pid == 4242
        assert "4242" in str(excinfo.value)

    def test_dead_holder_is_replaced(self, tmp_path: Path, monkeypatch) -> None:
        _plant_marker(tmp_path / "lock", 4242)
        monkeypatch.setattr(lock_module, "process_running", lambda pid: False)
        with RepositoryLock(tmp_path / "lock") as lock:
            assert lock.held
            assert (tmp_path / "lock" / "pid").read_text().strip() == str(os.getpid())

    def test_old_marker_is_stale(self, tmp_path: Path, monkeypatch) -> None:
        _plant_marker(tmp_path / "lock", 4242)
        old = time.time() - STALE_AFTER_SECONDS - 60
        os.utime(tmp_path / "lock", (old, old))
        monkeypatch.setattr(lock_module, "process_running", lambda pid: True)
        with RepositoryLock(tmp_path / "lock") as lock:
            assert lock.held

    def test_force_removes_marker(self, tmp_path: Path, monkeypatch) -> None:
        _plant_marker(tmp_path / "lock", 4242)
        monkeypatch.setattr(lock_module, "process_running", lambda pid: True)
        with RepositoryLock(tmp_path / "lock", force=True) as lock:
            assert lock.held


class TestProcessRunning:
    def test_own_process(self) -> None:
        assert process_running(os.getpid())

    @pytest.mark.parametrize("pid", [None, 0, -1])
    def test_invalid_pids(self, pid) -> None:
        assert not process_running(pid)


class TestMarkerWithoutPid:
    """A marker whose pid is not written yet belongs to an acquirer mid-way."""

    def test_is_held(self, tmp_path: Path) -> None:
        (tmp_path / "lock").mkdir()
        lock = RepositoryLock(tmp_path / "lock")
        with pytest.raises(LockHeldError) as excinfo:
            lock.acquire()
        assert excinfo.value.pid is None
        assert not lock.held
        assert (tmp_path / "lock").is_dir()

    def test_unreadable_pid_is_held(self, tmp_path: Path) -> None:
        (tmp_path / "lock").mkdir()
        (tmp_path / "lock" / "pid").write_text("not-a-pid\n")
        with pytest.raises(LockHeldError):
            RepositoryLock(tmp_path / "lock").acquire()

    def test_second_instance_excluded(self, tmp_path: Path) -> None:
        first = RepositoryLock(tmp_path / "lock")
        first.acquire()
        (tmp_path / "lock" / "pid").unlink()
        with pytest.raises(LockHeldError):
            RepositoryLock(tmp_path / "lock").acquire()
        assert first.held

    def test_old_marker_recovered(self, tmp_path: Path) -> None:
        (tmp_path / "lock").mkdir()
        old = time.time() - STALE_AFTER_SECONDS - 60
        os.utime(tmp_path / "lock", (old, old))
        with RepositoryLock(tmp_path / "lock") as lock:
            assert lock.held

    def test_forced(self, tmp_path: Path) -> None:
        (tmp_path / "lock").mkdir()
        with RepositoryLock(tmp_path / "lock", force=True) as lock:
            assert lock.held
