"""Reading ``.tpkg`` package files.

A package file is an uncompressed tar holding one top-level directory
named after the package filename stem::

    foo-1.0-1/
        checksum.yml        {algorithm: sha256, digest: <hex of payload>}
        payload.tar.gz

The gzip'd payload holds a single ``pkg/`` directory::

    pkg/
        pkg.yml             package metadata
        root/               files installed relative to the file system root
        reloc/              files installed relative to the base directory
        preinstall  postinstall  preremove  postremove   (optional hooks)

The checksum covers the payload bytes, so a truncated or altered payload
is detected before anything is extracted.
"""

from __future__ import annotations

import hashlib
import logging
import tarfile
from dataclasses import dataclass, field
from pathlib import Path, PurePosixPath
from typing import IO

import yaml

from pkgward.core.dependency.models import Metadata
from pkgward.core.metadata import METADATA_FILENAME, load_metadata
from pkgward.exceptions import ArchiveError

logger = logging.getLogger(__name__)

CHECKSUM_FILENAME = "checksum.yml"
PAYLOAD_FILENAME = "payload.tar.gz"
PAYLOAD_TOPDIR = "pkg"
HOOK_NAMES = ("preinstall", "postinstall", "preremove", "postremove")


@dataclass
class PackageFiles:
    """Files shipped by a package.

    Attributes:
        root: Absolute paths (``/etc/foo.conf``) installed under the file
            system root.
        reloc: Relative paths (``bin/foo``) installed under the base.
    """

    root: list[str] = field(default_factory=list)
    reloc: list[str] = field(default_factory=list)

    def all_paths(self) -> list[str]:
        return self.root + self.reloc


def sha256_of(stream: IO[bytes]) -> str:
    digest = hashlib.sha256()
    for chunk in iter(lambda: stream.read(65536), b""):
        digest.update(chunk)
    return digest.hexdigest()


class TarArchive:
    """Read-only view of one package file.

    Args:
        path: Path to the ``.tpkg`` file.

    Raises:
        ArchiveError: From every method, if the file is not a readable
            package.
    """

    def __init__(self, path: Path) -> None:
        self.path = Path(path)

    # -- Layout helpers -----------------------------------------------------

    def _open(self) -> tarfile.TarFile:
        try:
            return tarfile.open(self.path, mode="r:")
        except (OSError, tarfile.TarError) as exc:
            raise ArchiveError(f"Cannot read package {self.path}: {exc}") from exc

    def topdir(self) -> str:
        """Name of the single top-level directory in the package."""
        with self._open() as outer:
            names = {PurePosixPath(n).parts[0] for n in outer.getnames() if n}
        if len(names) != 1:
            raise ArchiveError(f"Package {self.path} must contain exactly one top-level directory")
        return names.pop()

    def _member(self, outer: tarfile.TarFile, name: str) -> IO[bytes]:
        topdir = PurePosixPath(outer.getnames()[0]).parts[0]
        try:
            stream = outer.extractfile(f"{topdir}/{name}")
        except KeyError:
            stream = None
        if stream is None:
            raise ArchiveError(f"Package {self.path} has no {name}")
        return stream

    def _payload(self, outer: tarfile.TarFile) -> tarfile.TarFile:
        try:
            return tarfile.open(fileobj=self._member(outer, PAYLOAD_FILENAME), mode="r:gz")
        except tarfile.TarError as exc:
            raise ArchiveError(f"Corrupt payload in {self.path}: {exc}") from exc

    # -- Archive service ----------------------------------------------------

    def verify_checksum(self) -> bool:
        """Return True if the payload matches the recorded checksum."""
        with self._open() as outer:
            try:
                recorded = yaml.safe_load(self._member(outer, CHECKSUM_FILENAME).read())
            except yaml.YAMLError as exc:
                raise ArchiveError(f"Malformed checksum in {self.path}: {exc}") from exc
            if not isinstance(recorded, dict) or recorded.get("algorithm") != "sha256":
                raise ArchiveError(f"Unsupported checksum in {self.path}")
            actual = sha256_of(self._member(outer, PAYLOAD_FILENAME))
        if actual != recorded.get("digest"):
            logger.debug("Checksum mismatch for %s: %s != %s", self.path, actual, recorded.get("digest"))
            return False
        return True

    def extract_metadata(self) -> Metadata:
        """Read ``pkg.yml`` without extracting anything to disk."""
        with self._open() as outer, self._payload(outer) as payload:
            try:
                stream = payload.extractfile(f"{PAYLOAD_TOPDIR}/{METADATA_FILENAME}")
            except KeyError:
                stream = None
            if stream is None:
                raise ArchiveError(f"Package {self.path} has no {METADATA_FILENAME}")
            text = stream.read().decode("utf-8")
        return load_metadata(text, filename=self.path.name)

    def list_files(self) -> PackageFiles:
        """List the files and directories under ``root/`` and ``reloc/``."""
        files = PackageFiles()
        with self._open() as outer, self._payload(outer) as payload:
            for member in payload.getmembers():
                parts = PurePosixPath(member.name).parts
                if len(parts) < 3 or parts[0] != PAYLOAD_TOPDIR:
                    continue
                rest = "/".join(parts[2:])
                if parts[1] == "root":
                    files.root.append("/" + rest)
                elif parts[1] == "reloc":
                    files.reloc.append(rest)
        return files

    def unpack(self, workdir: Path) -> Path:
        """Verify and extract the payload; return the unpacked ``pkg`` dir.

        Raises:
            ArchiveError: On checksum mismatch or extraction failure.
        """
        if not self.verify_checksum():
            raise ArchiveError(f"Checksum mismatch for {self.path}, package is corrupt")
        workdir.mkdir(parents=True, exist_ok=True)
        with self._open() as outer, self._payload(outer) as payload:
            try:
                payload.extractall(workdir, filter="data")
            except (OSError, tarfile.TarError) as exc:
                raise ArchiveError(f"Failed to unpack {self.path}: {exc}") from exc
        return workdir / PAYLOAD_TOPDIR
