"""Tests for best-effort ownership and permission changes."""

from __future__ import annotations

import os
from pathlib import Path

import pytest

from pkgward.exceptions import PrivilegeDeniedError
from pkgward.transaction import privilege
from pkgward.transaction.privilege import apply_ownership, apply_permissions


@pytest.fixture
def target(tmp_path: Path) -> Path:
    path = tmp_path / "file"
    path.write_text("x")
    return path


def _refuse(*args, **kwargs) -> None:
    raise PermissionError("Operation not permitted")


class TestPermissions:
    def test_applied(self, target: Path) -> None:
        apply_permissions(target, 0o640)
        assert os.stat(target).st_mode & 0o777 == 0o640

    def test_none_is_a_no_op(self, target: Path) -> None:
        before = os.stat(target).st_mode
        apply_permissions(target, None)
        assert os.stat(target).st_mode == before

    def test_denied_as_user_warns(self, target: Path, monkeypatch, caplog) -> None:
        monkeypatch.setattr(privilege, "running_as_root", lambda: False)
        monkeypatch.setattr(privilege.os, "chmod", _refuse)
        apply_permissions(target, 0o600)
        assert "Failed to change permissions" in caplog.text

    def test_denied_as_root_raises(self, target: Path, monkeypatch) -> None:
        monkeypatch.setattr(privilege, "running_as_root", lambda: True)
        monkeypatch.setattr(privilege.os, "chmod", _refuse)
        with pytest.raises(PrivilegeDeniedError):
            apply_permissions(target, 0o600)


class TestOwnership:
    def test_unknown_user_warns(self, target: Path, caplog) -> None:
        apply_ownership(target, "no-such-user-pkgward", None)
        assert "Unknown owner or group" in caplog.text

    def test_numeric_ids_passed_through(self, target: Path, monkeypatch) -> None:
        calls = []
        monkeypatch.setattr(privilege.os, "chown", lambda path, uid, gid, **kw: calls.append((uid, gid)))
        apply_ownership(target, "1234", None)
        assert calls == [(1234, -1)]

    def test_denied_as_user_warns(self, target: Path, monkeypatch, caplog) -> None:
        monkeypatch.setattr(privilege, "running_as_root", lambda: False)
        monkeypatch.setattr(privilege.os, "chown", _refuse)
        apply_ownership(target, "0", "0")
        assert "Failed to change ownership" in caplog.text
