"""Tests for ``TransactionManager.install``.

Verifies:
    - Files land under the file system root and base directory.
    - Dependencies are resolved from the package directory and installed
      before the packages that need them.
    - Planning failures leave the system untouched.
    - Hook failure policy and status codes.
    - A failed preinstall leaves independent packages installed and logged.
    - Config files already present are kept, with a ``.pkgnew`` copy.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Callable

import httpx
import pytest

from pkgward import GENERIC_ERR, INITSCRIPT_ERR, POSTINSTALL_ERR
from pkgward.config import TransactionConfig
from pkgward.core import lock as lock_module
from pkgward.core.platform import PlatformAdapter, PlatformInfo
from pkgward.exceptions import (
    ConflictError,
    HookFailureError,
    LockHeldError,
    RequestError,
    UnsatisfiableError,
)
from pkgward.transaction.manager import TransactionManager


def _installed(manager: TransactionManager) -> list[str]:
    return manager.store.installed_filenames()


def _log_hook(log: Path, label: str) -> str:
    """Shell body appending "<label> <action>" to *log*."""
    return f'echo "{label} $PKGWARD_ACTION" >> "{log}"\n'


class TestBasicInstall:
    def test_files_installed(
        self, manager: TransactionManager, make_package: Callable[..., Path], config: TransactionConfig
    ) -> None:
        make_package("foo", "1.0", contents={"/etc/foo.conf": "a=1\n", "bin/foo": "run\n"})
        assert manager.install(["foo"]) == 0
        assert (config.file_system_root / "etc" / "foo.conf").read_text() == "a=1\n"
        assert (config.base_dir / "bin" / "foo").read_text() == "run\n"
        assert _installed(manager) == ["foo-1.0.tpkg"]

    def test_manifest_recorded(self, manager, make_package, config) -> None:
        make_package("foo", "1.0", contents={"bin/foo": "run\n"})
        manager.install(["foo"])
        paths = {e.path for e in manager.store.file_manifest("foo-1.0.tpkg")}
        assert str(config.base_dir / "bin" / "foo") in paths
        assert str(config.base_dir / "bin") in paths

    def test_highest_version_installed(self, manager, make_package) -> None:
        make_package("foo", "1.0")
        make_package("foo", "1.10")
        make_package("foo", "1.9")
        manager.install(["foo"])
        assert _installed(manager) == ["foo-1.10.tpkg"]

    def test_version_constraint(self, manager, make_package) -> None:
        make_package("foo", "1.0")
        make_package("foo", "2.0")
        manager.install(["foo<2"])
        assert _installed(manager) == ["foo-1.0.tpkg"]

    def test_history_logged(self, manager, make_package) -> None:
        make_package("foo", "1.0")
        manager.install(["foo"])
        [line] = manager.history()
        assert "foo-1.0.tpkg was installed by" in line

    def test_install_from_file(self, manager, make_package, tmp_path: Path) -> None:
        path = make_package("foo", "1.0", outdir=tmp_path / "elsewhere")
        assert manager.install([str(path)]) == 0
        assert _installed(manager) == ["foo-1.0.tpkg"]

    def test_already_installed_is_a_no_op(self, manager, make_package) -> None:
        make_package("foo", "1.0")
        manager.install(["foo"])
        assert manager.install(["foo"]) == 0
        assert len(manager.history()) == 1

    def test_scratch_space_cleaned(self, manager, make_package, config) -> None:
        make_package("foo", "1.0", contents={"bin/foo": "run\n"})
        manager.install(["foo"])
        assert list(config.tmp_dir.iterdir()) == []
        assert not config.lock_dir.exists()


class TestDependencies:
    def test_dependency_installed_first(self, manager, make_package, tmp_path: Path) -> None:
        log = tmp_path / "hooks.log"
        make_package(
            "app", "1.0",
            dependencies=[{"name": "lib", "minimum_version": "2.0"}],
            hooks={"postinstall": _log_hook(log, "app")},
        )
        make_package("lib", "1.0", hooks={"postinstall": _log_hook(log, "lib1")})
        make_package("lib", "2.0", hooks={"postinstall": _log_hook(log, "lib2")})
        assert manager.install(["app"]) == 0
        assert _installed(manager) == ["app-1.0.tpkg", "lib-2.0.tpkg"]
        assert log.read_text().splitlines() == ["lib2 install", "app install"]

    def test_installed_dependency_reused(self, manager, make_package) -> None:
        make_package("lib", "1.0")
        manager.install(["lib"])
        make_package("lib", "2.0")
        make_package("app", "1.0", dependencies=[{"name": "lib"}])
        manager.install(["app"])
        assert _installed(manager) == ["app-1.0.tpkg", "lib-1.0.tpkg"]

    def test_platform_specific_build_preferred(self, config, make_package) -> None:
        make_package("foo", "1.0")
        make_package("foo", "1.0", operatingsystem=["RedHat-5"])
        manager = TransactionManager(config, adapter=PlatformAdapter(PlatformInfo("RedHat-5", "x86_64")))
        manager.install(["foo"])
        assert _installed(manager) == ["foo-1.0-redhat5.tpkg"]


class TestPlanningFailures:
    """Failures before the apply phase leave nothing installed."""

    def test_unknown_package(self, manager) -> None:
        with pytest.raises(UnsatisfiableError) as excinfo:
            manager.install(["nosuch"])
        assert any("nosuch" in p for p in excinfo.value.problems)
        assert _installed(manager) == []

    def test_all_unsatisfiable_requests_listed(self, manager) -> None:
        with pytest.raises(UnsatisfiableError) as excinfo:
            manager.install(["one", "two"])
        text = str(excinfo.value)
        assert "one" in text and "two" in text

    def test_missing_dependency_explained(self, manager, make_package) -> None:
        make_package("app", "1.0", dependencies=[{"name": "ghost"}])
        with pytest.raises(UnsatisfiableError) as excinfo:
            manager.install(["app"])
        assert any("depends on ghost" in p for p in excinfo.value.problems)
        assert _installed(manager) == []

    def test_wrong_platform_explained(self, manager, make_package) -> None:
        make_package("foo", "1.0", operatingsystem=["Solaris"])
        with pytest.raises(UnsatisfiableError):
            manager.install(["foo"])

    def test_native_dependency_without_support(self, manager, make_package) -> None:
        make_package("app", "1.0", dependencies=[{"name": "openssl", "native": True}])
        with pytest.raises(UnsatisfiableError):
            manager.install(["app"])

    def test_malformed_request(self, manager) -> None:
        with pytest.raises(RequestError):
            manager.install([">=1.0"])

    def test_lock_held(self, manager, make_package, monkeypatch, config) -> None:
        make_package("foo", "1.0")
        config.lock_dir.mkdir(parents=True)
        (config.lock_dir / "pid").write_text("4242\n")
        monkeypatch.setattr(lock_module, "process_running", lambda pid: True)
        with pytest.raises(LockHeldError):
            manager.install(["foo"])
        assert _installed(manager) == []

    def test_lock_force(self, config, platform, make_package, monkeypatch) -> None:
        make_package("foo", "1.0")
        config.lock_dir.mkdir(parents=True)
        (config.lock_dir / "pid").write_text("4242\n")
        monkeypatch.setattr(lock_module, "process_running", lambda pid: True)
        manager = TransactionManager(config.with_options(lock_force=True), adapter=PlatformAdapter(platform))
        assert manager.install(["foo"]) == 0


class TestHooks:
    def test_action_variable(self, manager, make_package, tmp_path: Path) -> None:
        log = tmp_path / "hooks.log"
        make_package("foo", "1.0", hooks={
            "preinstall": _log_hook(log, "pre"),
            "postinstall": _log_hook(log, "post"),
        })
        manager.install(["foo"])
        assert log.read_text().splitlines() == ["pre install", "post install"]

    def test_preinstall_failure_aborts(self, manager, make_package, config) -> None:
        make_package("foo", "1.0", contents={"bin/foo": "x\n"}, hooks={"preinstall": "exit 3\n"})
        with pytest.raises(HookFailureError, match="exit value 3"):
            manager.install(["foo"])
        assert _installed(manager) == []
        assert not (config.base_dir / "bin" / "foo").exists()

    def test_preinstall_failure_forced(self, config, platform, make_package) -> None:
        make_package("foo", "1.0", hooks={"preinstall": "exit 3\n"})
        manager = TransactionManager(config.with_options(force=True), adapter=PlatformAdapter(platform))
        assert manager.install(["foo"]) == 0
        assert _installed(manager) == ["foo-1.0.tpkg"]

    def test_postinstall_failure_status(self, manager, make_package) -> None:
        make_package("foo", "1.0", hooks={"postinstall": "exit 1\n"})
        assert manager.install(["foo"]) == POSTINSTALL_ERR
        assert _installed(manager) == ["foo-1.0.tpkg"]

    def test_init_script_link_failure_status(self, config, platform, make_package) -> None:
        class NoInitAdapter(PlatformAdapter):
            def link_artifacts(self, metadata) -> bool:
                return not metadata.init_scripts

        make_package(
            "svc", "1.0",
            contents={"/etc/init.d/svc": "#!/bin/sh\n"},
            files={"files": [{"path": "/etc/init.d/svc", "init": {}}]},
        )
        manager = TransactionManager(config, adapter=NoInitAdapter(platform))
        assert manager.install(["svc"]) == INITSCRIPT_ERR
        assert _installed(manager) == ["svc-1.0.tpkg"]


class TestConfigFiles:
    def test_plain_file_overwritten(self, manager, make_package, config) -> None:
        existing = config.file_system_root / "etc" / "foo.conf"
        existing.parent.mkdir(parents=True)
        existing.write_text("local=1\n")
        make_package("foo", "1.0", contents={"/etc/foo.conf": "packaged=1\n"})
        manager.install(["foo"])
        assert existing.read_text() == "packaged=1\n"

    def test_declared_config_gets_pkgnew(self, manager, make_package, config) -> None:
        existing = config.file_system_root / "etc" / "bar.conf"
        existing.parent.mkdir(parents=True)
        existing.write_text("local=1\n")
        make_package(
            "bar", "1.0",
            contents={"/etc/bar.conf": "packaged=1\n"},
            files={"files": [{"path": "/etc/bar.conf", "config": True}]},
        )
        manager.install(["bar"])
        assert existing.read_text() == "local=1\n"
        assert (existing.parent / "bar.conf.pkgnew").read_text() == "packaged=1\n"


class TestPermissions:
    def test_declared_perms_applied(self, manager, make_package, config) -> None:
        make_package(
            "tool", "1.0",
            contents={"bin/tool": "#!/bin/sh\n"},
            files={"files": [{"path": "bin/tool", "posix": {"perms": "0750"}}]},
        )
        manager.install(["tool"])
        mode = os.stat(config.base_dir / "bin" / "tool").st_mode & 0o777
        assert mode == 0o750


class TestPromptsAndReports:
    def test_declined_plan(self, config, platform, make_package) -> None:
        make_package("foo", "1.0")
        questions: list[str] = []

        def decline(question: str) -> bool:
            questions.append(question)
            return False

        manager = TransactionManager(
            config.with_options(prompt=True), adapter=PlatformAdapter(platform), confirm=decline
        )
        assert manager.install(["foo"]) == GENERIC_ERR
        assert "foo-1.0.tpkg" in questions[0]
        assert _installed(manager) == []

    def test_report_sent(self, config, platform, make_package) -> None:
        make_package("foo", "1.0")
        posted: list[httpx.Request] = []

        def collect(request: httpx.Request) -> httpx.Response:
            posted.append(request)
            return httpx.Response(200)

        client = httpx.Client(transport=httpx.MockTransport(collect))
        manager = TransactionManager(
            config.with_options(report_server="https://collector.example.com"),
            adapter=PlatformAdapter(platform),
            http_client=client,
        )
        assert manager.install(["foo"]) == 0
        [request] = posted
        assert str(request.url) == "https://collector.example.com/process_update"
        assert b"foo-1.0.tpkg" in request.content

    def test_conflicting_package_rejected(self, manager, make_package) -> None:
        make_package("old", "1.0")
        manager.install(["old"])
        make_package("new", "1.0", conflicts=[{"name": "old"}])
        with pytest.raises(ConflictError):
            manager.install(["new"])
        assert _installed(manager) == ["old-1.0.tpkg"]


class TestFailureIsolation:
    """A failing preinstall stops its own package and its dependents only."""

    def test_independent_package_still_installed(self, manager, make_package) -> None:
        make_package("aaa", "1.0")
        make_package("zzz", "1.0", hooks={"preinstall": "exit 3\n"})
        with pytest.raises(HookFailureError, match="exit value 3"):
            manager.install(["aaa", "zzz"])
        assert _installed(manager) == ["aaa-1.0.tpkg"]
        assert any("aaa-1.0.tpkg was installed by" in line for line in manager.history())
        assert not any("zzz" in line for line in manager.history())

    def test_dependent_of_failed_package_skipped(self, manager, make_package) -> None:
        make_package("lib", "1.0", hooks={"preinstall": "exit 3\n"})
        make_package("app", "1.0", dependencies=[{"name": "lib"}])
        make_package("tool", "1.0")
        with pytest.raises(HookFailureError):
            manager.install(["app", "tool"])
        assert _installed(manager) == ["tool-1.0.tpkg"]

    def test_report_sent_after_failure(self, config, platform, make_package) -> None:
        make_package("aaa", "1.0")
        make_package("zzz", "1.0", hooks={"preinstall": "exit 3\n"})
        posted: list[httpx.Request] = []

        def collect(request: httpx.Request) -> httpx.Response:
            posted.append(request)
            return httpx.Response(200)

        manager = TransactionManager(
            config.with_options(report_server="https://collector.example.com"),
            adapter=PlatformAdapter(platform),
            http_client=httpx.Client(transport=httpx.MockTransport(collect)),
        )
        with pytest.raises(HookFailureError):
            manager.install(["aaa", "zzz"])
        [request] = posted
        assert b"aaa-1.0.tpkg" in request.content
