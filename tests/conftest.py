"""Shared fixtures for pkgward tests."""

from __future__ import annotations

import itertools
from pathlib import Path
from typing import Any, Callable

import pytest
import yaml

from pkgward.archive.build import build_package
from pkgward.config import TransactionConfig
from pkgward.core.platform import PlatformAdapter, PlatformInfo
from pkgward.transaction.manager import TransactionManager


@pytest.fixture
def platform() -> PlatformInfo:
    """A fixed host platform, independent of the machine running the tests."""
    return PlatformInfo(os="RedHat-5", arch="x86_64")


@pytest.fixture
def repo_dir(tmp_path: Path) -> Path:
    """Create an empty package directory used as the default source."""
    repo = tmp_path / "repo"
    repo.mkdir()
    return repo


@pytest.fixture
def make_package(tmp_path: Path, repo_dir: Path) -> Callable[..., Path]:
    """Factory building a ``.tpkg`` file into the repository directory.

    ``contents`` maps package paths to file contents: absolute paths go under
    ``root/``, relative ones under ``reloc/``. ``hooks`` maps hook names
    to shell script bodies. Any other keyword lands in ``pkg.yml``.
    """
    counter = itertools.count()

    def _make(
        name: str,
        version: str = "1.0",
        contents: dict[str, str] | None = None,
        hooks: dict[str, str] | None = None,
        outdir: Path | None = None,
        **metadata: Any,
    ) -> Path:
        src = tmp_path / "build" / f"{name}-{next(counter)}"
        src.mkdir(parents=True)
        doc = {"name": name, "version": version}
        doc.update(metadata)
        (src / "pkg.yml").write_text(yaml.safe_dump(doc))
        for path, content in (contents or {}).items():
            if path.startswith("/"):
                target = src / "root" / path.lstrip("/")
            else:
                target = src / "reloc" / path
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_text(content)
        for hook, body in (hooks or {}).items():
            script = src / hook
            script.write_text("#!/bin/sh\n" + body)
            script.chmod(0o755)
        return build_package(src, outdir or repo_dir)

    return _make


@pytest.fixture
def config(tmp_path: Path, repo_dir: Path) -> TransactionConfig:
    """Configuration rooted in a temporary file system, never prompting."""
    root = tmp_path / "fsroot"
    root.mkdir()
    return TransactionConfig(
        file_system_root=root,
        sources=(str(repo_dir),),
        prompt=False,
    )


@pytest.fixture
def manager(config: TransactionConfig, platform: PlatformInfo) -> TransactionManager:
    """A transaction manager over the temporary configuration."""
    return TransactionManager(config, adapter=PlatformAdapter(platform))
