"""Tests for PlatformInfo and the generic PlatformAdapter."""

from __future__ import annotations

import pytest

from pkgward.core.dependency.models import Metadata, native_candidate
from pkgward.core.platform import NativePackageError, PlatformAdapter, PlatformInfo


class TestPlatformInfo:
    def test_detect_fills_both_fields(self) -> None:
        info = PlatformInfo.detect()
        assert info.os
        assert info.arch

    def test_adapter_defaults_to_host(self) -> None:
        assert PlatformAdapter().info == PlatformInfo.detect()


class TestGenericAdapter:
    def test_no_native_packages(self, platform: PlatformInfo) -> None:
        assert PlatformAdapter(platform).list_native("openssl") == []

    def test_native_install_refused(self, platform: PlatformInfo) -> None:
        candidate = native_candidate("openssl", "0.9.8", package_version="2")
        with pytest.raises(NativePackageError, match="openssl-0.9.8-2"):
            PlatformAdapter(platform).install_native(candidate)
        with pytest.raises(NativePackageError, match="RedHat-5"):
            PlatformAdapter(platform).upgrade_native(candidate)

    def test_install_string_without_package_version(self, platform: PlatformInfo) -> None:
        candidate = native_candidate("zlib", "1.2")
        assert PlatformAdapter(platform).native_install_string(candidate) == "zlib-1.2"

    def test_artifacts_only_warn(self, platform: PlatformInfo, caplog) -> None:
        meta = Metadata(name="svc", version="1.0", init_scripts=("/etc/init.d/svc",), crontabs=("/etc/cron.d/svc",))
        assert PlatformAdapter(platform).link_artifacts(meta) is True
        assert "No init script support for OS RedHat-5" in caplog.text
        assert "No crontab support" in caplog.text
