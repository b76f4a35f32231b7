"""Preference-ordered, depth-bounded dependency resolution.

The resolver picks exactly one candidate per required (kind, name) slot.
It is not a general solver: it enumerates combinations of candidates in
order of increasing total preference depth and accepts the first
combination whose transitive dependencies check out.

Search outline
--------------
1. Every requirement narrows its pool entry: a missing entry is populated
   from the candidate provider, an existing one is filtered. An empty entry
   fails resolution before any combination is examined.
2. Every entry is ranked (``rank_pool``). The index of a candidate in its
   ranked entry is its *depth*; 0 is most preferred.
3. Slots split into *core* (managed slots named by the user) and
   *non-core* (managed dependencies, then native ones).
4. Core combinations are enumerated by increasing total depth, and for
   each one the non-core combinations the same way. Only index tuples that
   sum to exactly the current depth are produced, so each combination is
   visited once and more preferred combinations come first.
5. Each complete combination goes to the solution checker. The first one
   accepted is returned.

The checker collects the dependencies declared by the chosen candidates.
A dependency on a slot already in the pool must be satisfied by the
candidate chosen for that slot, otherwise the combination is rejected. A
dependency on a new slot triggers a recursive resolution with the
augmented requirement list, carrying the running count of combinations
checked. Choices made at outer levels are not revisited by that
recursion, so a deep transitive dependency can make the search settle on
a locally-first solution rather than a globally better one.

Every checked combination counts against a budget
(``DEFAULT_MAX_SOLUTIONS_CHECKED``); exceeding it raises
``SearchExhaustedError`` rather than returning a best-effort answer.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator, Mapping, Sequence
from dataclasses import dataclass, field
from typing import Iterable, Optional, Protocol

from pkgward.core.dependency.matcher import filter_matching, matches
from pkgward.core.dependency.models import Candidate, Kind, Requirement
from pkgward.core.dependency.ranking import RankedPool, rank_pool
from pkgward.core.platform import PlatformInfo
from pkgward.exceptions import SearchExhaustedError

logger = logging.getLogger(__name__)

DEFAULT_MAX_SOLUTIONS_CHECKED = 10000

Slot = tuple[Kind, str]


# ---------------------------------------------------------------------------
# CandidatePool: copy-on-write mapping of slot -> candidates
# ---------------------------------------------------------------------------


class CandidatePool(Mapping):
    """Candidates per (kind, name) slot, in insertion order.

    A pool is never mutated once built: ``with_entry`` returns a new pool,
    so a recursive resolution cannot disturb the caller's entries.
    """

    def __init__(self, entries: Mapping[Slot, Iterable[Candidate]] | None = None) -> None:
        self._entries: dict[Slot, tuple[Candidate, ...]] = {
            slot: tuple(cands) for slot, cands in (entries or {}).items()
        }

    @classmethod
    def from_names(
        cls,
        managed: Mapping[str, Iterable[Candidate]] | None = None,
        native: Mapping[str, Iterable[Candidate]] | None = None,
    ) -> CandidatePool:
        entries: dict[Slot, Iterable[Candidate]] = {}
        for name, cands in (managed or {}).items():
            entries[(Kind.MANAGED, name)] = cands
        for name, cands in (native or {}).items():
            entries[(Kind.NATIVE, name)] = cands
        return cls(entries)

    def __getitem__(self, slot: Slot) -> tuple[Candidate, ...]:
        return self._entries[slot]

    def __iter__(self) -> Iterator[Slot]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def with_entry(self, slot: Slot, candidates: Iterable[Candidate]) -> CandidatePool:
        """Return a new pool with *slot* set to *candidates*."""
        new = CandidatePool()
        new._entries = dict(self._entries)
        new._entries[slot] = tuple(candidates)
        return new

    def __repr__(self) -> str:
        inner = ", ".join(f"{k.value}:{n}={len(c)}" for (k, n), c in self._entries.items())
        return f"CandidatePool({inner})"


# ---------------------------------------------------------------------------
# Depth-ordered combination enumeration
# ---------------------------------------------------------------------------


def iter_combinations_at_depth(sizes: Sequence[int], depth: int) -> Iterator[tuple[int, ...]]:
    """Yield index tuples, one index per pool, whose indices sum to *depth*.

    Index ``i`` ranges over ``range(sizes[i])``. Tuples come out in
    lexicographic order.
    """
    if not sizes:
        if depth == 0:
            yield ()
        return
    head, rest = sizes[0], sizes[1:]
    rest_capacity = sum(size - 1 for size in rest)
    low = max(0, depth - rest_capacity)
    high = min(depth, head - 1)
    for index in range(low, high + 1):
        for tail in iter_combinations_at_depth(rest, depth - index):
            yield (index,) + tail


def iter_depth_frontier(sizes: Sequence[int]) -> Iterator[tuple[int, ...]]:
    """Yield every index tuple over *sizes* by non-decreasing total depth."""
    total_depth = sum(size - 1 for size in sizes)
    for depth in range(total_depth + 1):
        yield from iter_combinations_at_depth(sizes, depth)


def _choose(pools: Sequence[RankedPool], indices: tuple[int, ...]) -> list[Candidate] | None:
    chosen = [pools[i][index] for i, index in enumerate(indices)]
    if any(c is None for c in chosen):
        return None
    return chosen


# ---------------------------------------------------------------------------
# Resolution result
# ---------------------------------------------------------------------------


@dataclass
class Resolution:
    """Result of dependency resolution.

    Attributes:
        solution: One candidate per required slot, or None on failure.
        checked: Number of candidate combinations examined.
        unsatisfied: The requirement that emptied its pool entry, when
            resolution failed before enumeration.
    """

    solution: Optional[list[Candidate]] = None
    checked: int = 0
    unsatisfied: list[Requirement] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return self.solution is not None


class CandidateProvider(Protocol):
    """Source of candidates for requirements that have no pool entry yet."""

    def candidates_for(self, requirement: Requirement) -> list[Candidate]:
        ...


# ---------------------------------------------------------------------------
# DependencyResolver
# ---------------------------------------------------------------------------


class DependencyResolver:
    """Depth-ordered, first-success dependency resolver.

    Args:
        provider: Queried for candidates when a requirement names a slot
            absent from the pool.
        platform: Host platform used by the requirement matcher.
        max_solutions_checked: Combination budget.
    """

    def __init__(
        self,
        provider: CandidateProvider,
        platform: PlatformInfo,
        max_solutions_checked: int = DEFAULT_MAX_SOLUTIONS_CHECKED,
    ) -> None:
        self._provider = provider
        self._platform = platform
        self._max_checked = max_solutions_checked

    def resolve(
        self,
        requirements: Iterable[Requirement],
        pool: CandidatePool | None = None,
        core_names: Iterable[str] = (),
    ) -> Resolution:
        """Find the most preferred consistent assignment.

        Args:
            requirements: Top-level requirements.
            pool: Pre-seeded candidates; slots absent here are populated
                from the provider.
            core_names: Package names the user asked for directly. Only
                managed slots are treated as core; native slots named
                here are ignored.

        Returns:
            A ``Resolution``; ``solution`` is None when nothing works.

        Raises:
            SearchExhaustedError: If more combinations than the budget
                allows were checked.
        """
        result = self._resolve(
            tuple(requirements), pool or CandidatePool(), frozenset(core_names), 0
        )
        if result.success:
            logger.debug("Resolution picked: %s", ", ".join(str(c) for c in result.solution))
        else:
            logger.debug("Checked %d possible solutions, none worked", result.checked)
        return result

    def _populate(
        self, requirements: tuple[Requirement, ...], pool: CandidatePool
    ) -> tuple[CandidatePool, Requirement | None]:
        for req in requirements:
            existing = pool.get(req.slot)
            if existing is None:
                logger.debug("Initializing candidates for %s", req.describe())
                candidates = self._provider.candidates_for(req)
            else:
                logger.debug("Filtering candidates for %s", req.describe())
                candidates = filter_matching(existing, req, self._platform)
            pool = pool.with_entry(req.slot, candidates)
            if not candidates:
                logger.debug("No candidates match %s", req.describe())
                return pool, req
        return pool, None

    def _combinations(
        self, pool: CandidatePool, core_names: frozenset[str]
    ) -> Iterator[list[Candidate]]:
        ranked = {slot: rank_pool(cands) for slot, cands in pool.items()}
        core = [ranked[s] for s in ranked if s[0] is Kind.MANAGED and s[1] in core_names]
        noncore = [ranked[s] for s in ranked if s[0] is Kind.MANAGED and s[1] not in core_names]
        noncore += [ranked[s] for s in ranked if s[0] is Kind.NATIVE]

        core_sizes = [len(p) for p in core]
        noncore_sizes = [len(p) for p in noncore]
        for core_indices in iter_depth_frontier(core_sizes):
            core_choice = _choose(core, core_indices)
            if core_choice is None:
                continue
            if not noncore:
                yield core_choice
                continue
            for noncore_indices in iter_depth_frontier(noncore_sizes):
                noncore_choice = _choose(noncore, noncore_indices)
                if noncore_choice is not None:
                    yield core_choice + noncore_choice

    def _resolve(
        self,
        requirements: tuple[Requirement, ...],
        pool: CandidatePool,
        core_names: frozenset[str],
        checked: int,
    ) -> Resolution:
        pool, unsatisfied = self._populate(requirements, pool)
        if unsatisfied is not None:
            return Resolution(checked=checked, unsatisfied=[unsatisfied])

        for combination in self._combinations(pool, core_names):
            result = self._check(combination, requirements, pool, core_names, checked)
            if result.success:
                return result
            checked = result.checked
        return Resolution(checked=checked)

    def _check(
        self,
        combination: list[Candidate],
        requirements: tuple[Requirement, ...],
        pool: CandidatePool,
        core_names: frozenset[str],
        checked: int,
    ) -> Resolution:
        checked += 1
        if checked > self._max_checked:
            raise SearchExhaustedError(self._max_checked)
        logger.debug("Checking %s", ", ".join(str(c) for c in combination))

        known = set(requirements)
        new_requirements: list[Requirement] = []
        for candidate in combination:
            for dep in candidate.metadata.dependencies:
                if dep not in known and dep not in new_requirements:
                    new_requirements.append(dep)

        needs_candidates: list[Requirement] = []
        for req in new_requirements:
            if req.slot in pool:
                chosen = next((c for c in combination if c.slot == req.slot), None)
                if chosen is None or not matches(chosen, req, self._platform):
                    logger.debug("Combination fails %s", req.describe())
                    return Resolution(checked=checked)
            else:
                needs_candidates.append(req)

        if not needs_candidates:
            return Resolution(solution=list(combination), checked=checked)

        logger.debug(
            "New requirements need candidates: %s",
            ", ".join(r.describe() for r in needs_candidates),
        )
        result = self._resolve(
            requirements + tuple(needs_candidates), pool, core_names, checked
        )
        # An unsatisfiable sub-requirement only rejects this combination.
        return Resolution(solution=result.solution, checked=result.checked)
