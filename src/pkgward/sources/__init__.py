"""Where candidate packages come from.

- ``directory``: a local directory of package files.
- ``http``: a remote repository with a ``metadata.yml`` index.
- ``index``: ``CandidateIndex``, the cached, requirement-keyed provider
  the resolver queries.
"""

from pkgward.sources.base import INDEX_FILENAME, PackageSource
from pkgward.sources.directory import DirectorySource
from pkgward.sources.http import HttpSource
from pkgward.sources.index import CandidateIndex, source_for_location

__all__ = [
    "INDEX_FILENAME",
    "PackageSource",
    "DirectorySource",
    "HttpSource",
    "CandidateIndex",
    "source_for_location",
]
