"""Building ``.tpkg`` files from a package source directory.

The source directory holds ``pkg.yml`` plus optional ``root/``,
``reloc/`` and hook scripts, the same layout the payload's ``pkg/``
directory has.
"""

from __future__ import annotations

import io
import logging
import tarfile
import tempfile
from pathlib import Path

import yaml

from pkgward.archive.tar import (
    CHECKSUM_FILENAME,
    HOOK_NAMES,
    PAYLOAD_FILENAME,
    PAYLOAD_TOPDIR,
    sha256_of,
)
from pkgward.core.dependency.models import PACKAGE_SUFFIX
from pkgward.core.metadata import METADATA_FILENAME, read_metadata_file
from pkgward.core.version import Version
from pkgward.exceptions import ArchiveError

logger = logging.getLogger(__name__)


def _add_bytes(tar: tarfile.TarFile, name: str, data: bytes) -> None:
    info = tarfile.TarInfo(name)
    info.size = len(data)
    info.mode = 0o644
    tar.addfile(info, io.BytesIO(data))


def build_package(srcdir: Path, outdir: Path) -> Path:
    """Build a package from *srcdir* into *outdir*.

    Args:
        srcdir: Directory containing ``pkg.yml``.
        outdir: Destination directory for the ``.tpkg`` file.

    Returns:
        Path of the written package file.

    Raises:
        ArchiveError: If ``pkg.yml`` is missing or invalid, or a package
            with the same filename already exists in *outdir*.
    """
    srcdir = Path(srcdir)
    meta_path = srcdir / METADATA_FILENAME
    if not meta_path.is_file():
        raise ArchiveError(f"No {METADATA_FILENAME} in {srcdir}")
    metadata = read_metadata_file(meta_path)
    if not Version(metadata.version).looks_valid:
        logger.warning("Version %r of %s does not start with a digit", metadata.version, metadata.name)

    stem = metadata.generate_package_filename()
    outdir = Path(outdir)
    outdir.mkdir(parents=True, exist_ok=True)
    target = outdir / f"{stem}{PACKAGE_SUFFIX}"
    if target.exists():
        raise ArchiveError(f"Package file {target} already exists")

    with tempfile.TemporaryDirectory(prefix="pkgward-build-") as tmp:
        payload_path = Path(tmp) / PAYLOAD_FILENAME
        with tarfile.open(payload_path, mode="w:gz") as payload:
            payload.add(meta_path, arcname=f"{PAYLOAD_TOPDIR}/{METADATA_FILENAME}")
            for subdir in ("root", "reloc"):
                if (srcdir / subdir).is_dir():
                    payload.add(srcdir / subdir, arcname=f"{PAYLOAD_TOPDIR}/{subdir}")
            for hook in HOOK_NAMES:
                if (srcdir / hook).is_file():
                    payload.add(srcdir / hook, arcname=f"{PAYLOAD_TOPDIR}/{hook}")

        with payload_path.open("rb") as stream:
            digest = sha256_of(stream)
        checksum = yaml.safe_dump({"algorithm": "sha256", "digest": digest}).encode()

        with tarfile.open(target, mode="w:") as outer:
            _add_bytes(outer, f"{stem}/{CHECKSUM_FILENAME}", checksum)
            outer.add(payload_path, arcname=f"{stem}/{PAYLOAD_FILENAME}")

    logger.info("Built %s", target)
    return target
