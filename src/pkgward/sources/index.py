"""Requirement-keyed candidate lookup across all sources.

``CandidateIndex`` is the candidate provider the resolver queries. For a
managed requirement it returns matching packages from every configured
source plus matching installed packages; for a native requirement it
asks the platform adapter. Results are cached per requirement value
(requirements are frozen, so they hash by content) until ``invalidate``
is called, which the transaction manager does whenever installed state
or the sources change.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Iterable

import httpx

from pkgward.archive.tar import TarArchive
from pkgward.core.dependency.matcher import filter_matching
from pkgward.core.dependency.models import PACKAGE_SUFFIX, Candidate, Kind, Origin, Requirement
from pkgward.core.platform import PlatformAdapter
from pkgward.core.requests import is_url, valid_package_filename
from pkgward.exceptions import ArchiveError, RequestError
from pkgward.sources.base import PackageSource
from pkgward.sources.directory import DirectorySource
from pkgward.sources.http import HttpSource
from pkgward.store.installed import InstalledStore

logger = logging.getLogger(__name__)


def source_for_location(location: str, client: httpx.Client | None = None) -> PackageSource:
    """Build a source from a directory path or an http(s) URL."""
    if is_url(location):
        return HttpSource(location, client=client)
    return DirectorySource(Path(location))


class CandidateIndex:
    """Candidate provider over sources, installed packages and native ones.

    Args:
        sources: Package sources, in configuration order.
        store: Installed package store.
        adapter: Platform adapter for native packages.
        client: Optional ``httpx.Client`` for URL requests.
    """

    def __init__(
        self,
        sources: Iterable[PackageSource],
        store: InstalledStore,
        adapter: PlatformAdapter,
        client: httpx.Client | None = None,
    ) -> None:
        self.sources = list(sources)
        self.store = store
        self.adapter = adapter
        self._client = client
        self._cache: dict[Requirement, list[Candidate]] = {}

    def invalidate(self) -> None:
        """Drop cached lookups, including each source's listing."""
        self._cache.clear()
        for source in self.sources:
            source.invalidate()

    def available(self, name: str) -> list[Candidate]:
        """Available (not installed) managed candidates named *name*."""
        result: list[Candidate] = []
        for source in self.sources:
            result.extend(source.list_candidates(name))
        return result

    def candidates_for(self, requirement: Requirement) -> list[Candidate]:
        cached = self._cache.get(requirement)
        if cached is not None:
            return list(cached)
        platform = self.store.platform
        if requirement.kind is Kind.NATIVE:
            found = filter_matching(self.adapter.list_native(requirement.name), requirement, platform)
        else:
            found = filter_matching(self.available(requirement.name), requirement, platform)
            found += self.store.installed_meeting(requirement)
        self._cache[requirement] = found
        return list(found)

    def has_candidates(self, requirement: Requirement) -> bool:
        return bool(self.candidates_for(requirement))

    # -- Package files ------------------------------------------------------

    def candidate_from_location(self, request: str, dest_dir: Path) -> Candidate:
        """Pin a candidate to a package file path or URL.

        Raises:
            RequestError: For dotfile package names.
            ArchiveError: If the file cannot be downloaded or read.
        """
        if is_url(request):
            base = request.rsplit("/", 1)[0]
            path = HttpSource(base, client=self._client).download(request, dest_dir)
        else:
            if not valid_package_filename(request):
                raise RequestError(f"Invalid package filename {request}")
            path = Path(request).resolve()
            if path.suffix != PACKAGE_SUFFIX:
                logger.warning(
                    "Attempting to use %s, which might not be a valid package file", path
                )
        metadata = TarArchive(path).extract_metadata()
        return Candidate(metadata=metadata, origin=Origin.AVAILABLE, source=str(path))

    def fetch(self, candidate: Candidate, dest_dir: Path) -> Path:
        """Local path of *candidate*'s package file, downloading if needed."""
        if candidate.origin is Origin.CURRENTLY_INSTALLED:
            return self.store.installed_dir / candidate.filename
        if os.path.isfile(candidate.source):
            return Path(candidate.source)
        for source in self.sources:
            if source.location == candidate.source:
                return source.fetch(candidate, dest_dir)
        raise ArchiveError(f"No source provides {candidate.filename} (from {candidate.source!r})")
