"""Requirement matching, candidate ranking and dependency resolution.

All public names are re-exported here, so callers can write
``from pkgward.core.dependency import X`` without knowing which submodule
defines it.

Terminology
-----------
- **Requirement**: a constraint on the candidate filling a (kind, name)
  slot, where kind is managed or native.
- **Candidate**: one package build from a particular origin (installed,
  available from a source, native installed, native available).
- **Pool**: candidates per slot, narrowed by every requirement on it.
- **Depth**: a candidate's index in its ranked pool entry; 0 is best.
"""

from pkgward.core.dependency.matcher import (
    any_matches,
    filter_matching,
    matches,
)
from pkgward.core.dependency.models import (
    PACKAGE_SUFFIX,
    Candidate,
    External,
    FileSpec,
    Kind,
    Metadata,
    Origin,
    Requirement,
    installed_candidate,
    native_candidate,
)
from pkgward.core.dependency.ranking import (
    NO_PACKAGE,
    best_candidate,
    compare_candidates,
    rank_pool,
    sort_candidates,
)
from pkgward.core.dependency.resolver import (
    DEFAULT_MAX_SOLUTIONS_CHECKED,
    CandidatePool,
    CandidateProvider,
    DependencyResolver,
    Resolution,
    iter_combinations_at_depth,
    iter_depth_frontier,
)

__all__ = [
    "PACKAGE_SUFFIX",
    "Candidate",
    "External",
    "FileSpec",
    "Kind",
    "Metadata",
    "Origin",
    "Requirement",
    "installed_candidate",
    "native_candidate",
    "matches",
    "any_matches",
    "filter_matching",
    "NO_PACKAGE",
    "compare_candidates",
    "sort_candidates",
    "best_candidate",
    "rank_pool",
    "DEFAULT_MAX_SOLUTIONS_CHECKED",
    "CandidatePool",
    "CandidateProvider",
    "DependencyResolver",
    "Resolution",
    "iter_combinations_at_depth",
    "iter_depth_frontier",
]
