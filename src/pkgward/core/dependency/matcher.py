"""Requirement matching: does a candidate satisfy a requirement?

``matches`` is a pure function of the candidate, the requirement and the
host platform. Rejection reasons are logged at DEBUG level so that
``--debug`` runs show why a candidate was filtered out.

Rules, in order (any failure rejects):

1. A native requirement needs a native-installed or native-available
   candidate.
2. An exact-filename requirement compares the filename and nothing else.
3. A managed requirement rejects native candidates.
4. Names must be equal.
5. ``allowed_versions`` must glob-match ``version[-package_version]``.
6. Version bounds: minimum / maximum inclusive, greater-than / less-than
   strict.
7. Package-version bounds apply only on a side whose version bound the
   candidate met with equality.
8. Operating system and architecture: an empty declared list matches any
   host; otherwise an exact entry or a regular expression found in the
   host identifier matches.
"""

from __future__ import annotations

import logging
import re
from fnmatch import fnmatchcase
from typing import Iterable

from pkgward.core.dependency.models import Candidate, Kind, Requirement
from pkgward.core.platform import PlatformInfo
from pkgward.core.version import Version

logger = logging.getLogger(__name__)


def _platform_list_matches(declared: tuple[str, ...], current: str) -> bool:
    if not declared or current in declared:
        return True
    for entry in declared:
        try:
            if re.search(entry, current):
                return True
        except re.error:
            continue
    return False


def _fails(candidate: Candidate, reason: str) -> bool:
    logger.debug("%s fails %s", candidate, reason)
    return False


def matches(
    candidate: Candidate,
    requirement: Requirement,
    platform: PlatformInfo,
) -> bool:
    """Return True if *candidate* satisfies *requirement* on *platform*."""
    meta = candidate.metadata

    if requirement.kind is Kind.NATIVE and not candidate.origin.is_native:
        return _fails(candidate, "native requirement")
    if requirement.filename:
        if requirement.filename != meta.filename:
            return _fails(candidate, f"filename {requirement.filename}")
        return True
    if requirement.kind is Kind.MANAGED and candidate.origin.is_native:
        return _fails(candidate, "managed requirement")
    if meta.name != requirement.name:
        return _fails(candidate, f"name {requirement.name}")

    if requirement.allowed_versions:
        if not fnmatchcase(meta.version_string, requirement.allowed_versions):
            return _fails(candidate, f"allowed versions {requirement.allowed_versions}")

    version = Version(meta.version)
    pkg_version = Version(meta.package_version)
    same_min = same_max = False

    if requirement.minimum_version is not None:
        bound = Version(requirement.minimum_version)
        if version < bound:
            return _fails(candidate, f"minimum_version ({version} < {bound})")
        same_min = version == bound
    if requirement.version_greater_than is not None:
        bound = Version(requirement.version_greater_than)
        if version <= bound:
            return _fails(candidate, f"version_greater_than ({version} <= {bound})")
    if requirement.maximum_version is not None:
        bound = Version(requirement.maximum_version)
        if version > bound:
            return _fails(candidate, f"maximum_version ({version} > {bound})")
        same_max = version == bound
    if requirement.version_less_than is not None:
        bound = Version(requirement.version_less_than)
        if version >= bound:
            return _fails(candidate, f"version_less_than ({version} >= {bound})")

    if same_min:
        if requirement.minimum_package_version is not None:
            bound = Version(requirement.minimum_package_version)
            if pkg_version < bound:
                return _fails(candidate, f"minimum_package_version ({pkg_version} < {bound})")
        if requirement.package_version_greater_than is not None:
            bound = Version(requirement.package_version_greater_than)
            if pkg_version <= bound:
                return _fails(candidate, f"package_version_greater_than ({pkg_version} <= {bound})")
    if same_max:
        if requirement.maximum_package_version is not None:
            bound = Version(requirement.maximum_package_version)
            if pkg_version > bound:
                return _fails(candidate, f"maximum_package_version ({pkg_version} > {bound})")
        if requirement.package_version_less_than is not None:
            bound = Version(requirement.package_version_less_than)
            if pkg_version >= bound:
                return _fails(candidate, f"package_version_less_than ({pkg_version} >= {bound})")

    if not _platform_list_matches(meta.operatingsystem, platform.os):
        return _fails(candidate, "operatingsystem")
    if not _platform_list_matches(meta.architecture, platform.arch):
        return _fails(candidate, "architecture")

    logger.debug("%s matches %s", candidate, requirement.describe())
    return True


def any_matches(
    candidates: Iterable[Candidate],
    requirement: Requirement,
    platform: PlatformInfo,
) -> bool:
    """Return True if any of *candidates* satisfies *requirement*."""
    return any(matches(c, requirement, platform) for c in candidates)


def filter_matching(
    candidates: Iterable[Candidate],
    requirement: Requirement,
    platform: PlatformInfo,
) -> list[Candidate]:
    """Return the candidates satisfying *requirement*, order preserved."""
    return [c for c in candidates if matches(c, requirement, platform)]
