"""Persisted state of installed packages.

Layout under the state directory::

    installed/<filename>.tpkg        stored copy of each installed package
    metadata/<stem>/pkg.yml          cached metadata, keyed by filename stem
    metadata/<stem>/files.yml        manifest of installed files
    log/changes.log                  "<time> <file> was installed|removed by <user>"

Manifests answer which files a package installed, which package owns a
file, and whether installed files still match their recorded checksums.

Cached metadata is revalidated against the ``pkg.yml`` modification time,
so edits made by another run are picked up. A missing cache entry is
rebuilt from the stored package copy.
"""

from __future__ import annotations

import getpass
import hashlib
import logging
import os
import shutil
from dataclasses import asdict, dataclass
from datetime import datetime
from pathlib import Path
from typing import Iterable

import yaml

from pkgward.archive.tar import TarArchive
from pkgward.core.dependency.matcher import matches
from pkgward.core.dependency.models import (
    PACKAGE_SUFFIX,
    Candidate,
    Kind,
    Metadata,
    Requirement,
    installed_candidate,
)
from pkgward.core.metadata import METADATA_FILENAME, dump_metadata, read_metadata_file
from pkgward.core.platform import PlatformInfo
from pkgward.exceptions import ArchiveError

logger = logging.getLogger(__name__)

MANIFEST_FILENAME = "files.yml"
CHANGES_LOG = "changes.log"


@dataclass(frozen=True)
class ManifestEntry:
    """One installed file or directory.

    Attributes:
        path: Absolute installed path.
        sha256: Content checksum at install time; None for directories.
        config: True for configuration files.
        directory: True for directories.
    """

    path: str
    sha256: str | None = None
    config: bool = False
    directory: bool = False


@dataclass(frozen=True)
class FileProblem:
    """An installed file that no longer matches its manifest entry."""

    path: str
    problem: str

    def __str__(self) -> str:
        return f"{self.path}: {self.problem}"


def file_sha256(path: Path) -> str:
    digest = hashlib.sha256()
    with path.open("rb") as fh:
        for chunk in iter(lambda: fh.read(65536), b""):
            digest.update(chunk)
    return digest.hexdigest()


def current_user() -> str:
    try:
        return getpass.getuser()
    except (KeyError, OSError):
        return str(os.getuid())


def _stem(filename: str) -> str:
    if filename.endswith(PACKAGE_SUFFIX):
        return filename[: -len(PACKAGE_SUFFIX)]
    return filename


class InstalledStore:
    """Installed packages, their manifests and the change log.

    Args:
        installed_dir: Directory of stored package copies.
        metadata_dir: Directory of per-package metadata caches.
        log_dir: Directory holding ``changes.log``.
        platform: Host platform, used when matching requirements.
    """

    def __init__(
        self,
        installed_dir: Path,
        metadata_dir: Path,
        log_dir: Path,
        platform: PlatformInfo,
    ) -> None:
        self.installed_dir = Path(installed_dir)
        self.metadata_dir = Path(metadata_dir)
        self.log_dir = Path(log_dir)
        self.platform = platform
        self._cache: dict[str, tuple[float, Metadata]] = {}

    # -- Metadata -----------------------------------------------------------

    def _metadata_for(self, filename: str) -> Metadata:
        meta_file = self.metadata_dir / _stem(filename) / METADATA_FILENAME
        if not meta_file.is_file():
            logger.debug("Rebuilding metadata cache for %s", filename)
            metadata = TarArchive(self.installed_dir / filename).extract_metadata()
            meta_file.parent.mkdir(parents=True, exist_ok=True)
            meta_file.write_text(dump_metadata(metadata), encoding="utf-8")
        mtime = meta_file.stat().st_mtime
        cached = self._cache.get(filename)
        if cached and cached[0] == mtime:
            return cached[1]
        metadata = read_metadata_file(meta_file, filename=filename)
        self._cache[filename] = (mtime, metadata)
        return metadata

    def installed_filenames(self) -> list[str]:
        if not self.installed_dir.is_dir():
            return []
        return sorted(p.name for p in self.installed_dir.iterdir() if p.is_file())

    def installed_metadata(self) -> list[Metadata]:
        result = []
        for filename in self.installed_filenames():
            try:
                result.append(self._metadata_for(filename))
            except (ArchiveError, OSError) as exc:
                logger.warning("Skipping unreadable installed package %s: %s", filename, exc)
        return result

    def installed_candidates(self, name: str | None = None, prefer: bool = True) -> list[Candidate]:
        """Installed packages as candidates, optionally limited to *name*."""
        return [
            installed_candidate(meta, prefer=prefer)
            for meta in self.installed_metadata()
            if name is None or meta.name == name
        ]

    def installed_meeting(self, requirement: Requirement) -> list[Candidate]:
        return [
            c for c in self.installed_candidates(requirement.name)
            if matches(c, requirement, self.platform)
        ]

    def is_installed(self, filename: str) -> bool:
        return (self.installed_dir / filename).is_file()

    def requirements_for_installed(self, name: str | None = None) -> list[Requirement]:
        """Requirements pinning installed packages to at least their version."""
        return [
            Requirement(
                name=meta.name,
                minimum_version=meta.version,
                minimum_package_version=meta.package_version,
            )
            for meta in self.installed_metadata()
            if name is None or meta.name == name
        ]

    # -- Dependency relationships ------------------------------------------

    def dependency_map(self) -> dict[str, list[Candidate]]:
        """Installed filename -> installed candidates that depend on it."""
        mapping: dict[str, list[Candidate]] = {}
        for candidate in self.installed_candidates():
            depended_on: dict[str, Candidate] = {}
            for req in candidate.metadata.dependencies:
                if req.kind is Kind.NATIVE:
                    continue
                for provider in self.installed_meeting(req):
                    depended_on[provider.filename] = provider
            for filename in depended_on:
                mapping.setdefault(filename, []).append(candidate)
        return mapping

    def dependents(self, filenames: Iterable[str]) -> list[Candidate]:
        """Every installed package depending, transitively, on *filenames*."""
        mapping = self.dependency_map()
        found: dict[str, Candidate] = {}
        to_check = list(filenames)
        while to_check:
            for dependent in mapping.get(to_check.pop(), []):
                if dependent.filename not in found:
                    found[dependent.filename] = dependent
                    to_check.append(dependent.filename)
        return list(found.values())

    def prerequisites(self, filenames: Iterable[str]) -> list[Candidate]:
        """Every installed package *filenames* depend on, transitively."""
        by_filename = {c.filename: c for c in self.installed_candidates()}
        found: dict[str, Candidate] = {}
        to_check = [by_filename[f] for f in filenames if f in by_filename]
        while to_check:
            candidate = to_check.pop()
            for req in candidate.metadata.dependencies:
                if req.kind is Kind.NATIVE:
                    continue
                for provider in self.installed_meeting(req):
                    if provider.filename not in found:
                        found[provider.filename] = provider
                        to_check.append(provider)
        return list(found.values())

    # -- File manifests -----------------------------------------------------

    def file_manifest(self, filename: str) -> list[ManifestEntry]:
        manifest = self.metadata_dir / _stem(filename) / MANIFEST_FILENAME
        if not manifest.is_file():
            return []
        data = yaml.safe_load(manifest.read_text(encoding="utf-8")) or []
        return [ManifestEntry(**entry) for entry in data]

    def files_by_package(self) -> dict[str, list[ManifestEntry]]:
        return {f: self.file_manifest(f) for f in self.installed_filenames()}

    def owner_of(self, path: str | Path) -> list[str]:
        """Installed packages whose manifest lists *path*."""
        target = os.path.normpath(os.path.abspath(path))
        return [
            filename
            for filename, entries in self.files_by_package().items()
            if any(os.path.normpath(e.path) == target for e in entries)
        ]

    def verify(self, filename: str) -> list[FileProblem]:
        """Compare *filename*'s installed files with its manifest.

        Files are reported missing when gone and modified when their
        checksum differs, config files included. Directories are only
        checked for presence.
        """
        manifest = self.metadata_dir / _stem(filename) / MANIFEST_FILENAME
        if not manifest.is_file():
            return [FileProblem(str(manifest), "no file manifest recorded")]
        problems: list[FileProblem] = []
        for entry in self.file_manifest(filename):
            path = Path(entry.path)
            if entry.directory:
                if not path.is_dir():
                    problems.append(FileProblem(entry.path, "missing"))
            elif not (path.is_file() or path.is_symlink()):
                problems.append(FileProblem(entry.path, "missing"))
            elif entry.sha256 and file_sha256(path) != entry.sha256:
                problems.append(FileProblem(entry.path, "modified"))
        return problems

    # -- Recording ----------------------------------------------------------

    def record(self, metadata: Metadata, package_file: Path, files: list[ManifestEntry]) -> None:
        """Store an installed package's copy, metadata and manifest."""
        self.installed_dir.mkdir(parents=True, exist_ok=True)
        target = self.installed_dir / metadata.filename
        if Path(package_file).resolve() != target.resolve():
            shutil.copy2(package_file, target)
        meta_dir = self.metadata_dir / _stem(metadata.filename)
        meta_dir.mkdir(parents=True, exist_ok=True)
        (meta_dir / METADATA_FILENAME).write_text(dump_metadata(metadata), encoding="utf-8")
        (meta_dir / MANIFEST_FILENAME).write_text(
            yaml.safe_dump([asdict(entry) for entry in files], sort_keys=False),
            encoding="utf-8",
        )
        self._cache.pop(metadata.filename, None)

    def forget(self, filename: str) -> None:
        """Delete a package's stored copy and cached state."""
        (self.installed_dir / filename).unlink(missing_ok=True)
        shutil.rmtree(self.metadata_dir / _stem(filename), ignore_errors=True)
        self._cache.pop(filename, None)

    # -- Change log ---------------------------------------------------------

    def log_changes(self, installed: Iterable[str] = (), removed: Iterable[str] = ()) -> None:
        user = current_user()
        now = datetime.now().astimezone().strftime("%Y-%m-%d %H:%M:%S %z")
        lines = [f"{now} {f} was removed by {user}\n" for f in removed]
        lines += [f"{now} {f} was installed by {user}\n" for f in installed]
        if not lines:
            return
        self.log_dir.mkdir(parents=True, exist_ok=True)
        with (self.log_dir / CHANGES_LOG).open("a", encoding="utf-8") as fh:
            fh.writelines(lines)

    def history(self) -> list[str]:
        log = self.log_dir / CHANGES_LOG
        if not log.is_file():
            return []
        return log.read_text(encoding="utf-8").splitlines()
