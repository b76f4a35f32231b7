"""Abstract base for package sources."""

from __future__ import annotations

from abc import ABC, abstractmethod
from pathlib import Path

from pkgward.core.dependency.models import Candidate

INDEX_FILENAME = "metadata.yml"


class PackageSource(ABC):
    """A place packages are available from.

    Subclasses implement ``list_all`` and ``fetch``; ``list_candidates``
    filters by name and is served from a per-instance cache.
    """

    def __init__(self, location: str) -> None:
        self.location = location
        self._candidates: list[Candidate] | None = None

    @abstractmethod
    def list_all(self) -> list[Candidate]:
        """Every package the source offers."""

    @abstractmethod
    def fetch(self, candidate: Candidate, dest_dir: Path) -> Path:
        """Make *candidate*'s package file available locally and return its path."""

    def list_candidates(self, name: str) -> list[Candidate]:
        if self._candidates is None:
            self._candidates = self.list_all()
        return [c for c in self._candidates if c.name == name]

    def invalidate(self) -> None:
        self._candidates = None

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.location!r})"
