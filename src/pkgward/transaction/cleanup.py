"""Removing one installed package from the file system.

Removal is best effort: a file that cannot be deleted is logged as a
``PartialCleanupError`` warning and the rest of the package is still
removed. Config files changed since installation are kept.
"""

from __future__ import annotations

import errno
import logging
import shutil
import tempfile
from pathlib import Path
from typing import Iterable

from pkgward import POSTREMOVE_ERR
from pkgward.archive.tar import TarArchive
from pkgward.config import TransactionConfig
from pkgward.core.dependency.models import Candidate, External
from pkgward.core.platform import PlatformAdapter
from pkgward.exceptions import ArchiveError, PartialCleanupError
from pkgward.store.installed import InstalledStore, ManifestEntry, file_sha256
from pkgward.transaction.hooks import HookRunner

logger = logging.getLogger(__name__)


def modified_config_files(manifest: list[ManifestEntry]) -> set[str]:
    """Config files whose content no longer matches the manifest checksum."""
    modified = set()
    for entry in manifest:
        if not entry.config or entry.sha256 is None:
            continue
        path = Path(entry.path)
        if path.is_file() and file_sha256(path) != entry.sha256:
            modified.add(entry.path)
    return modified


def _warn_partial(path: str, exc: OSError) -> None:
    logger.warning("%s", PartialCleanupError(f"Failed to remove {path}: {exc}"))


def delete_files(manifest: list[ManifestEntry], keep: set[str]) -> list[str]:
    """Delete manifest entries in reverse path order; return paths left behind.

    Children sort after their parents, so walking in reverse empties a
    directory before its own removal is attempted. A directory that is
    still not empty is left in place.
    """
    left: list[str] = []
    for entry in sorted(manifest, key=lambda e: e.path, reverse=True):
        if entry.path in keep:
            left.append(entry.path)
            continue
        path = Path(entry.path)
        try:
            if entry.directory and not path.is_symlink():
                path.rmdir()
            else:
                path.unlink()
        except FileNotFoundError as exc:
            _warn_partial(entry.path, exc)
        except OSError as exc:
            if entry.directory and exc.errno in (errno.ENOTEMPTY, errno.EEXIST):
                logger.debug("Leaving non-empty directory %s", entry.path)
            else:
                _warn_partial(entry.path, exc)
            left.append(entry.path)
    return left


class PackageRemover:
    """Runs removal hooks and deletes an installed package's files."""

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

    def remove(
        self,
        candidate: Candidate,
        action: str = "remove",
        skip_externals: Iterable[External] = (),
    ) -> int:
        """Remove one installed package; return 0 or ``POSTREMOVE_ERR``.

        Raises:
            HookFailureError: If ``preremove`` or an external fails and
                ``force`` is not set.
        """
        metadata = candidate.metadata
        filename = metadata.filename
        status = 0
        skip = set(skip_externals)
        self.config.tmp_dir.mkdir(parents=True, exist_ok=True)
        workdir = Path(tempfile.mkdtemp(prefix="remove-", dir=self.config.tmp_dir))
        try:
            pkgdir = None
            try:
                pkgdir = TarArchive(self.store.installed_dir / filename).unpack(workdir)
            except ArchiveError as exc:
                logger.warning("Cannot unpack stored copy of %s, skipping its hooks: %s", filename, exc)

            if pkgdir is not None:
                self.hooks.pre("preremove", pkgdir, filename, action)

            self.adapter.unlink_artifacts(metadata)

            for external in metadata.externals:
                if external in skip:
                    continue
                self.hooks.external(external, filename, "remove")

            manifest = self.store.file_manifest(filename)
            keep = modified_config_files(manifest)
            for path in sorted(keep):
                logger.warning("Keeping modified config file %s", path)
            delete_files(manifest, keep)

            if pkgdir is not None and not self.hooks.post("postremove", pkgdir, filename, action):
                status = POSTREMOVE_ERR

            self.store.forget(filename)
            logger.info("Removed %s", filename)
        finally:
            shutil.rmtree(workdir, ignore_errors=True)
        return status
