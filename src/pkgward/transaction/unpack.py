"""Applying one package to the file system.

``PackageInstaller.install`` unpacks a package file into a scratch
directory and then:

1. runs ``preinstall``;
2. runs the package's externals (minus any the caller skips);
3. copies ``root/`` under the file system root and ``reloc/`` under the
   base directory, keeping an existing config file and writing the
   packaged copy beside it as ``<path>.pkgnew``;
4. applies declared permissions and ownership (best effort);
5. links init scripts and crontabs through the platform adapter;
6. runs ``postinstall``;
7. records the package and its file manifest in the installed store.
"""

from __future__ import annotations

import logging
import os
import shutil
import tempfile
from pathlib import Path
from typing import Iterable

from pkgward import INITSCRIPT_ERR, POSTINSTALL_ERR
from pkgward.archive.tar import TarArchive
from pkgward.config import TransactionConfig
from pkgward.core.dependency.models import External, FileSpec, Metadata
from pkgward.core.platform import PlatformAdapter
from pkgward.store.installed import InstalledStore, ManifestEntry, file_sha256
from pkgward.transaction.hooks import HookRunner
from pkgward.transaction.privilege import apply_ownership, apply_permissions

logger = logging.getLogger(__name__)

CONFIG_NEW_SUFFIX = ".pkgnew"


def _walk(top: Path) -> list[tuple[str, Path]]:
    """(package-relative path, source path) pairs under *top*, parents first."""
    entries = []
    for dirpath, dirnames, filenames in os.walk(top):
        dirnames.sort()
        base = Path(dirpath)
        for name in dirnames + sorted(filenames):
            source = base / name
            entries.append((source.relative_to(top).as_posix(), source))
    entries.sort(key=lambda item: item[0])
    return entries


class PackageInstaller:
    """Copies a package's payload into place and records it."""

    def __init__(
        self,
        config: TransactionConfig,
        store: InstalledStore,
        hooks: HookRunner,
        adapter: PlatformAdapter,
    ) -> None:
        self.config = config
        self.store = store
        self.hooks = hooks
        self.adapter = adapter

    def _copy_tree(
        self,
        top: Path,
        absolute: bool,
        specs: dict[str, FileSpec],
        config_files: set[str],
        manifest: list[ManifestEntry],
    ) -> None:
        for rel, source in _walk(top):
            pkg_path = "/" + rel if absolute else rel
            dest = self.config.root_path(pkg_path)
            spec = specs.get(pkg_path)

            if source.is_dir() and not source.is_symlink():
                if not dest.exists():
                    dest.mkdir(parents=True)
                    manifest.append(ManifestEntry(path=str(dest), directory=True))
                if spec:
                    apply_permissions(dest, spec.perms)
                    apply_ownership(dest, spec.owner, spec.group)
                continue

            dest.parent.mkdir(parents=True, exist_ok=True)
            is_config = pkg_path in config_files
            target = dest
            if is_config and dest.exists():
                target = dest.with_name(dest.name + CONFIG_NEW_SUFFIX)
                logger.warning("Keeping existing config file %s, new version saved as %s", dest, target)
            if target.is_symlink() or target.exists():
                target.unlink()
            shutil.copy2(source, target, follow_symlinks=False)
            if spec and not target.is_symlink():
                apply_permissions(target, spec.perms)
                apply_ownership(target, spec.owner, spec.group)
            checksum = None if target.is_symlink() else file_sha256(target)
            manifest.append(ManifestEntry(path=str(dest), sha256=checksum, config=is_config))

    def install(
        self,
        metadata: Metadata,
        package_file: Path,
        action: str = "install",
        skip_externals: Iterable[External] = (),
    ) -> int:
        """Install *package_file*; return 0, ``INITSCRIPT_ERR`` or ``POSTINSTALL_ERR``.

        Raises:
            HookFailureError: If ``preinstall`` or an external fails and
                ``force`` is not set.
            ArchiveError: If the package cannot be unpacked.
        """
        status = 0
        skip = set(skip_externals)
        self.config.tmp_dir.mkdir(parents=True, exist_ok=True)
        workdir = Path(tempfile.mkdtemp(prefix="install-", dir=self.config.tmp_dir))
        try:
            pkgdir = TarArchive(package_file).unpack(workdir)
            self.hooks.pre("preinstall", pkgdir, metadata.filename, action)

            for external in metadata.externals:
                if external in skip:
                    logger.debug("Skipping unchanged external %s for %s", external.name, metadata.filename)
                    continue
                self.hooks.external(external, metadata.filename, "install")

            specs = {spec.path: spec for spec in metadata.files}
            config_files = set(metadata.config_files)
            manifest: list[ManifestEntry] = []
            for subdir, absolute in (("root", True), ("reloc", False)):
                if (pkgdir / subdir).is_dir():
                    self._copy_tree(pkgdir / subdir, absolute, specs, config_files, manifest)

            if not self.adapter.link_artifacts(metadata):
                status = INITSCRIPT_ERR

            if not self.hooks.post("postinstall", pkgdir, metadata.filename, action):
                status = POSTINSTALL_ERR

            self.store.record(metadata, package_file, manifest)
            logger.info("Installed %s", metadata.filename)
        finally:
            shutil.rmtree(workdir, ignore_errors=True)
        return status
