"""Package file reading and building.

- ``tar``: ``TarArchive`` reads metadata, checksums and file lists from a
  ``.tpkg`` file and unpacks its payload.
- ``build``: ``build_package`` writes a ``.tpkg`` file from a source tree.
"""

from pkgward.archive.build import build_package
from pkgward.archive.tar import HOOK_NAMES, PackageFiles, TarArchive

__all__ = [
    "HOOK_NAMES",
    "PackageFiles",
    "TarArchive",
    "build_package",
]
