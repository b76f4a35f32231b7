"""Explicit configuration for one package manager instance.

Behavioural switches live on a ``TransactionConfig`` handed to the
``TransactionManager``; nothing is read from process-wide state.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from pathlib import Path

from pkgward.core.dependency.resolver import DEFAULT_MAX_SOLUTIONS_CHECKED

DEFAULT_BASE = "opt/pkgward"
DEFAULT_REPORT_TIMEOUT: float = 10.0


@dataclass(frozen=True)
class TransactionConfig:
    """Paths and switches for install, upgrade and remove.

    Attributes:
        file_system_root: Prefix for absolute package paths; ``/`` in
            production, a temporary directory in tests.
        base: Destination of relocatable files. Relative values are taken
            relative to ``file_system_root``.
        sources: Package directories and repository URLs.
        force: Turn hook and external failures into warnings.
        force_replace: Remove conflicting packages instead of failing.
        lock_force: Remove an existing repository lock.
        prompt: Ask before applying changes and on file conflicts.
        report_server: URL receiving install/remove reports, if any.
        report_timeout: Seconds to wait for the report server.
        max_solutions_checked: Resolver combination budget.
    """

    file_system_root: Path = Path("/")
    base: Path = Path(DEFAULT_BASE)
    sources: tuple[str, ...] = ()
    force: bool = False
    force_replace: bool = False
    lock_force: bool = False
    prompt: bool = True
    report_server: str | None = None
    report_timeout: float = DEFAULT_REPORT_TIMEOUT
    max_solutions_checked: int = DEFAULT_MAX_SOLUTIONS_CHECKED

    @property
    def base_dir(self) -> Path:
        """Absolute destination directory for relocatable files."""
        base = Path(self.base)
        if base.is_absolute():
            return Path(self.file_system_root) / base.relative_to("/")
        return Path(self.file_system_root) / base

    @property
    def state_dir(self) -> Path:
        return self.base_dir / "var" / "pkgward"

    @property
    def installed_dir(self) -> Path:
        return self.state_dir / "installed"

    @property
    def metadata_dir(self) -> Path:
        return self.state_dir / "metadata"

    @property
    def lock_dir(self) -> Path:
        return self.state_dir / "lock"

    @property
    def log_dir(self) -> Path:
        return self.state_dir / "log"

    @property
    def tmp_dir(self) -> Path:
        return self.state_dir / "tmp"

    @property
    def externals_dir(self) -> Path:
        return self.state_dir / "externals"

    def root_path(self, path: str) -> Path:
        """Installed location of a package file path.

        Absolute package paths land under ``file_system_root``; relative
        ones under ``base_dir``.
        """
        if path.startswith("/"):
            return Path(self.file_system_root) / path.lstrip("/")
        return self.base_dir / path

    def with_options(self, **changes) -> TransactionConfig:
        return replace(self, **changes)
