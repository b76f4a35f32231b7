"""Remote package repository served over HTTP.

The repository publishes ``metadata.yml``, a multi-document YAML index
with one package metadata document (plus ``filename``) per package, next
to the package files themselves.
"""

from __future__ import annotations

import logging
from pathlib import Path

import httpx
import yaml

from pkgward.archive.tar import TarArchive
from pkgward.core.dependency.models import Candidate, Origin
from pkgward.core.metadata import metadata_from_dict
from pkgward.exceptions import ArchiveError
from pkgward.sources.base import INDEX_FILENAME, PackageSource

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT: float = 30.0

USER_AGENT: str = "pkgward/0.1"


def _new_client(timeout: float) -> httpx.Client:
    return httpx.Client(
        timeout=timeout,
        headers={"User-Agent": USER_AGENT},
        follow_redirects=True,
    )


class HttpSource(PackageSource):
    """Packages listed in a remote ``metadata.yml`` index.

    Args:
        url: Repository base URL.
        client: Optional preconfigured ``httpx.Client``.
        timeout: Request timeout in seconds when no client is given.
    """

    def __init__(
        self,
        url: str,
        client: httpx.Client | None = None,
        timeout: float = DEFAULT_TIMEOUT,
    ) -> None:
        super().__init__(url if url.endswith("/") else url + "/")
        self._client = client or _new_client(timeout)

    def _url(self, name: str) -> str:
        return self.location + name

    def list_all(self) -> list[Candidate]:
        """Fetch and parse the index; an unreachable source lists nothing."""
        url = self._url(INDEX_FILENAME)
        try:
            resp = self._client.get(url)
            resp.raise_for_status()
        except httpx.TimeoutException:
            logger.warning("Timeout fetching %s", url)
            return []
        except httpx.HTTPStatusError as exc:
            logger.warning("HTTP %d from %s", exc.response.status_code, url)
            return []
        except httpx.RequestError as exc:
            logger.warning("Request error for %s: %s", url, exc)
            return []

        candidates = []
        try:
            documents = list(yaml.safe_load_all(resp.text))
        except yaml.YAMLError as exc:
            logger.warning("Malformed index at %s: %s", url, exc)
            return []
        for doc in documents:
            if not doc:
                continue
            filename = doc.pop("filename", None)
            try:
                metadata = metadata_from_dict(doc, filename=filename)
            except ArchiveError as exc:
                logger.warning("Skipping index entry in %s: %s", url, exc)
                continue
            candidates.append(Candidate(metadata=metadata, origin=Origin.AVAILABLE, source=self.location))
        logger.debug("Found %d packages at %s", len(candidates), self.location)
        return candidates

    def download(self, url: str, dest_dir: Path) -> Path:
        """Download *url* into *dest_dir* and verify its checksum.

        Raises:
            ArchiveError: On HTTP failure or a corrupt download.
        """
        dest_dir.mkdir(parents=True, exist_ok=True)
        target = dest_dir / url.rstrip("/").rsplit("/", 1)[-1]
        try:
            with self._client.stream("GET", url) as resp:
                resp.raise_for_status()
                with target.open("wb") as fh:
                    for chunk in resp.iter_bytes():
                        fh.write(chunk)
        except httpx.HTTPError as exc:
            target.unlink(missing_ok=True)
            raise ArchiveError(f"Download of {url} failed: {exc}") from exc
        if not TarArchive(target).verify_checksum():
            target.unlink(missing_ok=True)
            raise ArchiveError(f"Downloaded package {url} failed checksum verification")
        return target

    def fetch(self, candidate: Candidate, dest_dir: Path) -> Path:
        return self.download(self._url(candidate.filename), dest_dir)
