"""Candidate ranking: a total order of desirability.

The comparator prefers, in order:

1. Package name, ascending (groups candidates of one name together).
2. Installed candidates carrying ``prefer=True``.
3. Higher version.
4. Higher package version (a missing package version reads as ``0``).
5. Fewer declared operating systems, where an empty list counts as a
   large sentinel: a package tuned for a few platforms beats a generic
   one.
6. Fewer declared architectures, same sentinel rule.
7. Installed candidates regardless of ``prefer``, as a final tiebreaker
   favouring minimal churn.

``rank_pool`` additionally prepends the ``NO_PACKAGE`` sentinel when the
best candidate is not an installed one. Only installed candidates may sit
at depth 0, so the search prefers solutions that leave the most installed
packages alone.
"""

from __future__ import annotations

from functools import cmp_to_key
from typing import Iterable, Optional

from pkgward.core.dependency.models import Candidate
from pkgward.core.version import Version

# Sort weight for an empty platform list.
_GENERIC_PLATFORM_WEIGHT = 1000

NO_PACKAGE = None

RankedPool = list[Optional[Candidate]]


def _preferred_installed(candidate: Candidate) -> int:
    return 1 if candidate.origin.is_installed and candidate.prefer else 0


def _installed(candidate: Candidate) -> int:
    return 1 if candidate.origin.is_installed else 0


def _platform_weight(declared: tuple[str, ...]) -> int:
    return len(declared) or _GENERIC_PLATFORM_WEIGHT


def _cmp(a, b) -> int:
    return (a > b) - (a < b)


def compare_candidates(a: Candidate, b: Candidate) -> int:
    """Three-way comparison; negative means *a* is more desirable."""
    ma, mb = a.metadata, b.metadata
    for result in (
        _cmp(ma.name, mb.name),
        _cmp(_preferred_installed(b), _preferred_installed(a)),
        _cmp(Version(mb.version), Version(ma.version)),
        _cmp(Version(mb.package_version or 0), Version(ma.package_version or 0)),
        _cmp(_platform_weight(ma.operatingsystem), _platform_weight(mb.operatingsystem)),
        _cmp(_platform_weight(ma.architecture), _platform_weight(mb.architecture)),
        _cmp(_installed(b), _installed(a)),
    ):
        if result:
            return result
    return 0


candidate_sort_key = cmp_to_key(compare_candidates)


def sort_candidates(candidates: Iterable[Candidate]) -> list[Candidate]:
    """Return *candidates* ordered most desirable first."""
    return sorted(candidates, key=candidate_sort_key)


def best_candidate(candidates: Iterable[Candidate]) -> Candidate | None:
    """Return the single most desirable candidate, or None if empty."""
    ordered = sort_candidates(candidates)
    return ordered[0] if ordered else None


def rank_pool(candidates: Iterable[Candidate]) -> RankedPool:
    """Sort a pool entry and apply the ``NO_PACKAGE`` depth-0 rule."""
    ranked: RankedPool = list(sort_candidates(candidates))
    if ranked and not ranked[0].origin.is_installed:
        ranked.insert(0, NO_PACKAGE)
    return ranked
