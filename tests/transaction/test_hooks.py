"""Tests for HookRunner (pkgward.transaction.hooks)."""

from __future__ import annotations

from pathlib import Path

import pytest

from pkgward.core.dependency.models import External
from pkgward.exceptions import HookFailureError
from pkgward.transaction.hooks import ACTION_ENV_VAR, HookRunner


def _write_script(path: Path, body: str) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text("#!/bin/sh\n" + body)
    path.chmod(0o755)
    return path


@pytest.fixture
def workdir(tmp_path: Path) -> Path:
    path = tmp_path / "pkg"
    path.mkdir()
    return path


@pytest.fixture
def externals(tmp_path: Path) -> Path:
    path = tmp_path / "externals"
    path.mkdir()
    return path


class TestScriptHooks:
    def test_missing_hook_is_fine(self, workdir: Path, externals: Path) -> None:
        runner = HookRunner(externals)
        runner.pre("preinstall", workdir, "foo-1.0.tpkg", "install")
        assert runner.post("postinstall", workdir, "foo-1.0.tpkg", "install") is True

    def test_runs_in_package_directory(self, workdir: Path, externals: Path) -> None:
        _write_script(workdir / "preinstall", f'pwd > out.txt\necho "${ACTION_ENV_VAR}" >> out.txt\n')
        HookRunner(externals).pre("preinstall", workdir, "foo-1.0.tpkg", "upgrade")
        lines = (workdir / "out.txt").read_text().splitlines()
        assert Path(lines[0]).resolve() == workdir.resolve()
        assert lines[1] == "upgrade"

    def test_pre_failure_raises(self, workdir: Path, externals: Path) -> None:
        _write_script(workdir / "preremove", "exit 4\n")
        with pytest.raises(HookFailureError, match="preremove for foo-1.0.tpkg failed with exit value 4"):
            HookRunner(externals).pre("preremove", workdir, "foo-1.0.tpkg", "remove")

    def test_pre_failure_forced(self, workdir: Path, externals: Path, caplog) -> None:
        _write_script(workdir / "preremove", "exit 4\n")
        HookRunner(externals, force=True).pre("preremove", workdir, "foo-1.0.tpkg", "remove")
        assert "exit value 4" in caplog.text

    def test_post_failure_warns(self, workdir: Path, externals: Path, caplog) -> None:
        _write_script(workdir / "postinstall", "exit 1\n")
        assert HookRunner(externals).post("postinstall", workdir, "foo-1.0.tpkg", "install") is False
        assert "postinstall for foo-1.0.tpkg failed" in caplog.text

    def test_non_executable_hook_warns(self, workdir: Path, externals: Path, caplog) -> None:
        (workdir / "postinstall").write_text("#!/bin/sh\nexit 0\n")
        assert HookRunner(externals).post("postinstall", workdir, "foo-1.0.tpkg", "install") is False
        assert "not executable" in caplog.text


class TestExternals:
    def test_receives_arguments_and_data(self, externals: Path, tmp_path: Path) -> None:
        out = tmp_path / "external.out"
        _write_script(externals / "users", f'echo "$1 $2" > "{out}"\ncat >> "{out}"\n')
        HookRunner(externals).external(External(name="users", data="alice\n"), "foo-1.0.tpkg", "install")
        assert out.read_text() == "foo-1.0.tpkg install\nalice\n"

    def test_missing_external(self, externals: Path) -> None:
        with pytest.raises(HookFailureError, match="does not exist"):
            HookRunner(externals).external(External(name="nope"), "foo-1.0.tpkg", "install")

    def test_failing_external(self, externals: Path) -> None:
        _write_script(externals / "users", "exit 9\n")
        with pytest.raises(HookFailureError, match="exit value 9"):
            HookRunner(externals).external(External(name="users"), "foo-1.0.tpkg", "remove")

    def test_failing_external_forced(self, externals: Path, caplog) -> None:
        _write_script(externals / "users", "exit 9\n")
        HookRunner(externals, force=True).external(External(name="users"), "foo-1.0.tpkg", "remove")
        assert "exit value 9" in caplog.text
