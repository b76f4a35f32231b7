"""Package-level and file-level conflict detection."""

from __future__ import annotations

import logging
import os
from typing import Iterable

from pkgward.core.dependency.matcher import matches
from pkgward.core.dependency.models import Candidate
from pkgward.core.platform import PlatformInfo
from pkgward.exceptions import ConflictError
from pkgward.store.installed import ManifestEntry

logger = logging.getLogger(__name__)


def _declares_conflict(pkg: Candidate, other: Candidate, platform: PlatformInfo) -> bool:
    return any(matches(other, conflict, platform) for conflict in pkg.metadata.conflicts)


def find_package_conflicts(
    installed: Iterable[Candidate],
    to_install: Iterable[Candidate],
    platform: PlatformInfo,
    replacing: Iterable[str] = (),
) -> list[Candidate]:
    """Return installed packages that conflict with *to_install*.

    Conflicts are checked in both directions: an installed package
    declaring a conflict with a new one, and a new package declaring a
    conflict with an installed one. Installed packages named in
    *replacing* are about to be removed and are not reported.

    Raises:
        ConflictError: If two packages in *to_install* conflict with each
            other; removing installed packages cannot fix that.
    """
    new = list(to_install)
    replacing = set(replacing)
    old = [c for c in installed if c.name not in replacing]

    clashes = [
        f"Package conflicts between {b.filename} and {a.filename}"
        for a in new
        for b in new
        if a is not b and _declares_conflict(a, b, platform)
    ]
    if clashes:
        raise ConflictError("Requested packages conflict with each other", clashes)

    conflicting: dict[str, Candidate] = {}
    for pkg in old:
        if any(_declares_conflict(pkg, n, platform) or _declares_conflict(n, pkg, platform) for n in new):
            conflicting[pkg.filename] = pkg
    if conflicting:
        logger.debug("Installed packages in conflict: %s", ", ".join(conflicting))
    return list(conflicting.values())


def find_file_conflicts(
    new_paths: Iterable[str],
    installed_files: dict[str, list[ManifestEntry]],
    skip_packages: Iterable[str] = (),
) -> dict[str, list[str]]:
    """Map installed package filename -> paths *new_paths* would overwrite.

    Directories never conflict. Packages in *skip_packages* (the old
    version during an upgrade) are ignored.
    """
    skip = set(skip_packages)
    wanted = {os.path.normpath(p) for p in new_paths}
    conflicts: dict[str, list[str]] = {}
    for pkgfile, entries in installed_files.items():
        if pkgfile in skip:
            continue
        clashing = sorted(
            e.path for e in entries
            if not e.directory and os.path.normpath(e.path) in wanted
        )
        if clashing:
            conflicts[pkgfile] = clashing
    return conflicts
