"""Shared fixtures for CLI tests."""

from __future__ import annotations

from pathlib import Path

import pytest
from click.testing import CliRunner


@pytest.fixture
def runner() -> CliRunner:
    """Create a Click CliRunner for invoking commands."""
    return CliRunner()


@pytest.fixture
def fsroot(tmp_path: Path) -> Path:
    root = tmp_path / "fsroot"
    root.mkdir()
    return root


@pytest.fixture
def global_args(fsroot: Path, repo_dir: Path) -> list[str]:
    """Global options pointing pkgward at the temporary root and repository."""
    return ["--root", str(fsroot), "--source", str(repo_dir), "--no-prompt"]
