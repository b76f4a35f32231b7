"""Local directory of package files."""

from __future__ import annotations

import logging
from pathlib import Path

import yaml

from pkgward.archive.tar import TarArchive
from pkgward.core.dependency.models import PACKAGE_SUFFIX, Candidate, Origin
from pkgward.core.metadata import metadata_to_dict
from pkgward.exceptions import ArchiveError
from pkgward.sources.base import INDEX_FILENAME, PackageSource

logger = logging.getLogger(__name__)


class DirectorySource(PackageSource):
    """Packages found by scanning a directory for ``*.tpkg`` files.

    Unreadable files are skipped with a warning rather than failing the
    whole source.
    """

    def __init__(self, path: Path) -> None:
        super().__init__(str(path))
        self.path = Path(path)

    def list_all(self) -> list[Candidate]:
        if not self.path.is_dir():
            logger.warning("Package directory %s does not exist", self.path)
            return []
        candidates = []
        for pkg in sorted(self.path.glob(f"*{PACKAGE_SUFFIX}")):
            try:
                metadata = TarArchive(pkg).extract_metadata()
            except ArchiveError as exc:
                logger.warning("Skipping %s: %s", pkg, exc)
                continue
            candidates.append(Candidate(metadata=metadata, origin=Origin.AVAILABLE, source=self.location))
        logger.debug("Found %d packages in %s", len(candidates), self.path)
        return candidates

    def fetch(self, candidate: Candidate, dest_dir: Path) -> Path:
        path = self.path / candidate.filename
        if not path.is_file():
            raise ArchiveError(f"Package {candidate.filename} is no longer in {self.path}")
        return path

    def write_index(self) -> Path:
        """Write the ``metadata.yml`` index an HTTP source serves.

        Every document is one package's metadata plus its ``filename``.
        """
        documents = []
        for candidate in self.list_all():
            doc = metadata_to_dict(candidate.metadata)
            doc["filename"] = candidate.filename
            documents.append(doc)
        index = self.path / INDEX_FILENAME
        index.write_text(yaml.safe_dump_all(documents, sort_keys=False), encoding="utf-8")
        logger.info("Wrote index of %d packages to %s", len(documents), index)
        return index
