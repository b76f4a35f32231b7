"""Install, upgrade and remove, each as one lock-guarded transaction.

Every operation runs in two phases. The planning phase parses requests,
checks them, resolves dependencies, detects conflicts and fetches
package files; any failure there aborts before the file system is
touched. The apply phase then installs or removes packages one at a
time. A hook failure stops only its own package and the packages that
depend on it; the rest are still applied, the change log is written,
and the first failure is raised at the end.

Apply order for install and upgrade is a rotating queue: a package is
applied once every name it depends on has been handled in this run (or
was already installed and is not being replaced); otherwise it goes to
the back of the queue. A full rotation without progress raises
``TransactionError``.
"""

from __future__ import annotations

import logging
import os
import shutil
from collections import deque
from dataclasses import replace
from pathlib import Path
from typing import Callable, Iterable, Optional

import httpx

from pkgward import GENERIC_ERR
from pkgward.archive.tar import TarArchive
from pkgward.config import TransactionConfig
from pkgward.core.dependency.matcher import matches
from pkgward.core.dependency.models import Candidate, Kind, Origin, Requirement
from pkgward.core.dependency.resolver import CandidatePool, DependencyResolver
from pkgward.core.lock import RepositoryLock
from pkgward.core.platform import PlatformAdapter
from pkgward.core.requests import is_package_location, parse_request
from pkgward.exceptions import (
    ConflictError,
    HookFailureError,
    TransactionError,
    UnsatisfiableError,
)
from pkgward.reporting import send_update
from pkgward.sources.base import PackageSource
from pkgward.sources.index import CandidateIndex, source_for_location
from pkgward.store.installed import FileProblem, InstalledStore, ManifestEntry
from pkgward.transaction.cleanup import PackageRemover
from pkgward.transaction.conflicts import find_file_conflicts, find_package_conflicts
from pkgward.transaction.hooks import HookRunner
from pkgward.transaction.unpack import PackageInstaller

logger = logging.getLogger(__name__)

Confirm = Callable[[str], bool]


def _unique(items: Iterable) -> list:
    return list(dict.fromkeys(items))


def _unprefer(candidates: Iterable[Candidate]) -> list[Candidate]:
    """Drop the "keep me" preference from installed candidates."""
    return [
        replace(c, prefer=False) if c.origin is Origin.CURRENTLY_INSTALLED else c
        for c in candidates
    ]


def _first_failure(status: int, result: int) -> int:
    return status or result


class TransactionManager:
    """Entry point for install, upgrade and remove.

    Args:
        config: Paths and behavioural switches.
        adapter: Platform adapter; defaults to the generic one.
        sources: Package sources; defaults to ``config.sources``.
        confirm: Asked yes/no questions when ``config.prompt`` is set.
        http_client: Shared ``httpx.Client`` for sources and reports.
    """

    def __init__(
        self,
        config: TransactionConfig,
        adapter: PlatformAdapter | None = None,
        sources: Iterable[PackageSource] | None = None,
        confirm: Confirm | None = None,
        http_client: httpx.Client | None = None,
    ) -> None:
        self.config = config
        self.adapter = adapter or PlatformAdapter()
        self.platform = self.adapter.info
        self._confirm = confirm
        self._http = http_client
        if sources is None:
            sources = [source_for_location(s, client=http_client) for s in config.sources]
        self.store = InstalledStore(
            config.installed_dir, config.metadata_dir, config.log_dir, self.platform
        )
        self.index = CandidateIndex(sources, self.store, self.adapter, client=http_client)
        self.resolver = DependencyResolver(
            self.index, self.platform, max_solutions_checked=config.max_solutions_checked
        )
        self.lock = RepositoryLock(config.lock_dir, force=config.lock_force)
        self.hooks = HookRunner(config.externals_dir, force=config.force)
        self.installer = PackageInstaller(config, self.store, self.hooks, self.adapter)
        self.remover = PackageRemover(config, self.store, self.hooks, self.adapter)

    # -- Prompts ------------------------------------------------------------

    def _ask(self, question: str) -> Optional[bool]:
        """The user's answer, or None when not prompting."""
        if not self.config.prompt or self._confirm is None:
            return None
        return self._confirm(question)

    def _confirm_plan(
        self, packages: list[Candidate], verb: str, replaced: Iterable[Candidate] = ()
    ) -> bool:
        """Ask once about the whole plan; *replaced* are removed first."""
        sections = []
        for group, group_verb in ((list(replaced), "removed"), (packages, verb)):
            if group:
                listing = "\n".join(f"  {c}" for c in group)
                sections.append(f"The following packages will be {group_verb}:\n{listing}")
        if not sections:
            return True
        answer = self._ask("\n".join(sections) + "\nProceed?")
        return answer is not False

    # -- Planning -----------------------------------------------------------

    def _download_dir(self) -> Path:
        path = self.config.tmp_dir / "download"
        path.mkdir(parents=True, exist_ok=True)
        return path

    def _parse_requests(self, requests: Iterable[str]) -> tuple[list[Requirement], CandidatePool]:
        """Turn request strings into requirements and a seeded pool.

        File and URL requests pin their slot to exactly that package.
        """
        requirements: list[Requirement] = []
        pool = CandidatePool()
        for request in requests:
            if is_package_location(request):
                candidate = self.index.candidate_from_location(request, self._download_dir())
                req = Requirement(name=candidate.name)
                pool = pool.with_entry(req.slot, [candidate])
            else:
                req = parse_request(request)
                if req.slot not in pool:
                    pool = pool.with_entry(req.slot, self.index.candidates_for(req))
            requirements.append(req)
        return _unique(requirements), pool

    def _check_requests(self, requirements: list[Requirement], pool: CandidatePool) -> None:
        """Fail with every unsatisfiable request listed, not just the first."""
        problems: list[str] = []
        for req in requirements:
            candidates = pool.get(req.slot, ())
            if not candidates:
                problems.append(f"Unable to find any packages which satisfy {req.describe()}")
                continue
            possible: list[str] = []
            satisfied = False
            for candidate in candidates:
                if not matches(candidate, Requirement(name=candidate.name, kind=req.kind), self.platform):
                    possible.append(
                        f"Requested package {candidate} doesn't match this machine's OS or architecture"
                    )
                    continue
                good = True
                for dep in candidate.metadata.dependencies:
                    in_pool = any(matches(c, dep, self.platform) for cs in pool.values() for c in cs)
                    if not in_pool and not self.index.has_candidates(dep):
                        possible.append(
                            f"Requested package {candidate} depends on {dep.describe()}, "
                            "no packages that satisfy that dependency are available"
                        )
                        good = False
                satisfied = satisfied or good
            if not satisfied:
                problems.append(f"Unable to find any packages which satisfy {req.describe()}. Possible error(s):")
                problems.extend(f"  {p}" for p in possible)
        if problems:
            raise UnsatisfiableError("Unable to satisfy the request(s)", problems)

    def _resolve(
        self, requirements: list[Requirement], pool: CandidatePool, core: Iterable[str]
    ) -> list[Candidate]:
        result = self.resolver.resolve(requirements, pool, core)
        if not result.success:
            problems = [f"No candidates satisfy {r.describe()}" for r in result.unsatisfied]
            if not problems:
                problems = [f"Checked {result.checked} combinations, none satisfied every dependency"]
            raise UnsatisfiableError("Unable to resolve dependencies", problems)
        logger.debug("Resolved after checking %d combinations", result.checked)
        return result.solution

    def _package_conflicts(self, solution: list[Candidate], replacing: set[str]) -> list[Candidate]:
        """Installed packages to replace; raise unless ``force_replace`` is set."""
        new = [c for c in solution if c.kind is Kind.MANAGED and not c.origin.is_installed]
        conflicting = find_package_conflicts(
            self.store.installed_candidates(), new, self.platform, replacing
        )
        if conflicting and not self.config.force_replace:
            raise ConflictError(
                "The requested packages conflict with installed packages; remove them "
                "first or use force_replace",
                [c.filename for c in conflicting],
            )
        return conflicting

    def _replace_conflicting(self, conflicting: list[Candidate]) -> None:
        if not conflicting:
            return
        names = [c.filename for c in conflicting]
        logger.warning("Replacing conflicting packages: %s", ", ".join(names))
        self._remove_ordered(self._removal_order({c.filename: c for c in conflicting}))

    def _fetch(self, packages: list[Candidate]) -> dict[str, Path]:
        return {c.filename: self.index.fetch(c, self._download_dir()) for c in packages}

    def _handle_file_conflicts(self, files: dict[str, Path], replacing: set[str]) -> set[str]:
        """Return filenames to skip; raise when conflicts are not accepted."""
        installed_files = self.store.files_by_package()
        skip_owners = {
            c.filename for c in self.store.installed_candidates() if c.name in replacing
        }
        skipped: set[str] = set()
        problems: list[str] = []
        for filename, path in files.items():
            new_paths = [str(self.config.root_path(p)) for p in TarArchive(path).list_files().all_paths()]
            conflicts = find_file_conflicts(new_paths, installed_files, skip_owners)
            if not conflicts:
                continue
            lines = [f"{f} (owned by {owner})" for owner, fs in conflicts.items() for f in fs]
            if self.config.force_replace:
                logger.warning("%s will overwrite: %s", filename, ", ".join(lines))
                continue
            answer = self._ask(f"{filename} will overwrite:\n  " + "\n  ".join(lines) + "\nProceed?")
            if answer is None:
                problems.extend(f"{filename}: {line}" for line in lines)
            elif not answer:
                logger.warning("Skipping %s", filename)
                skipped.add(filename)
        if problems:
            raise ConflictError("Packages would overwrite files owned by installed packages", problems)
        return skipped

    # -- Apply --------------------------------------------------------------

    def _apply(
        self,
        solution: list[Candidate],
        files: dict[str, Path],
        skipped: set[str],
        upgrade: bool,
    ) -> int:
        action = "upgrade" if upgrade else "install"
        replacing = {c.name for c in solution if c.kind is Kind.MANAGED and not c.origin.is_installed}
        done = {c.name for c in self.store.installed_candidates()}
        if upgrade:
            done -= replacing
        pending = deque(solution)
        stalled = 0
        status = 0
        failed: set[str] = set()
        errors: list[HookFailureError] = []
        while pending:
            pkg = pending.popleft()
            needed = {dep.name for dep in pkg.metadata.dependencies}
            if needed & failed:
                logger.warning("Skipping %s, it depends on %s", pkg, ", ".join(sorted(needed & failed)))
                failed.add(pkg.name)
                stalled = 0
                continue
            if not needed <= done:
                pending.append(pkg)
                stalled += 1
                if stalled >= len(pending):
                    raise TransactionError(
                        "Cannot order packages for installation: "
                        + ", ".join(str(c) for c in pending)
                    )
                continue
            stalled = 0
            try:
                result = self._apply_one(pkg, files, skipped, action, upgrade)
            except HookFailureError as exc:
                logger.error("Failed to %s %s: %s", action, pkg, exc)
                errors.append(exc)
                failed.add(pkg.name)
                continue
            status = _first_failure(status, result)
            done.add(pkg.name)
        if errors:
            raise errors[0]
        return status

    def _apply_one(
        self,
        pkg: Candidate,
        files: dict[str, Path],
        skipped: set[str],
        action: str,
        upgrade: bool,
    ) -> int:
        if pkg.origin.is_installed:
            logger.debug("Skipping %s, already installed", pkg)
            return 0
        if pkg.origin is Origin.NATIVE_AVAILABLE:
            if upgrade:
                self.adapter.upgrade_native(pkg)
            else:
                self.adapter.install_native(pkg)
            self.index.invalidate()
            return 0
        if pkg.filename in skipped:
            return 0
        if not upgrade and self.store.is_installed(pkg.filename):
            logger.warning("Skipping %s, already installed", pkg.filename)
            return 0

        skip_externals = []
        if upgrade:
            olds = self.store.installed_candidates(pkg.name)
            if olds:
                skip_externals = [
                    e for e in pkg.metadata.externals
                    if all(e in old.metadata.externals for old in olds)
                ]
            for old in olds:
                self.remover.remove(old, action="upgrade", skip_externals=skip_externals)
            if not olds:
                action = "install"
        return self.installer.install(
            pkg.metadata, files[pkg.filename], action=action, skip_externals=skip_externals
        )

    def _finish(self, before: set[str]) -> None:
        after = set(self.store.installed_filenames())
        installed = sorted(after - before)
        removed = sorted(before - after)
        self.store.log_changes(installed=installed, removed=removed)
        if self.config.report_server and (installed or removed):
            send_update(
                self.config.report_server,
                installed=installed,
                removed=removed,
                currently_installed=sorted(after),
                timeout=self.config.report_timeout,
                client=self._http,
            )

    def _cleanup_downloads(self) -> None:
        shutil.rmtree(self.config.tmp_dir / "download", ignore_errors=True)
        self.index.invalidate()

    # -- Operations ---------------------------------------------------------

    def install(self, requests: Iterable[str]) -> int:
        """Install the requested packages and their dependencies.

        Returns:
            0, ``POSTINSTALL_ERR`` if a postinstall hook failed,
            ``INITSCRIPT_ERR`` if an init script could not be linked, or
            ``GENERIC_ERR`` if the user declined.

        Raises:
            PkgwardError: On any planning failure, before changes are made.
        """
        with self.lock:
            try:
                requirements, pool = self._parse_requests(requests)
                self._check_requests(requirements, pool)
                core = _unique(r.name for r in requirements)
                solution = self._resolve(requirements, pool, core)
                conflicting = self._package_conflicts(solution, replacing=set())
                new = [c for c in solution if not c.origin.is_installed]
                if not self._confirm_plan(new, "installed", conflicting):
                    return GENERIC_ERR
                files = self._fetch([c for c in new if c.kind is Kind.MANAGED])
                skipped = self._handle_file_conflicts(files, replacing=set())
                before = set(self.store.installed_filenames())
                try:
                    self._replace_conflicting(conflicting)
                    return self._apply(solution, files, skipped, upgrade=False)
                finally:
                    self._finish(before)
            finally:
                self._cleanup_downloads()

    def upgrade(self, requests: Iterable[str] | None = None, downgrade: bool = False) -> int:
        """Upgrade (or downgrade) the requested packages, or all of them.

        Installed candidates of the affected packages lose their
        preference, so they are only kept if nothing better exists.
        Unless downgrading, a requested package may not go below its
        installed version. Installed packages depending on a requested
        one join the resolution so their dependencies stay satisfied.
        """
        with self.lock:
            try:
                requests = list(requests or [])
                core: list[str] = []
                if requests:
                    requirements, pool = self._parse_requests(requests)
                    self._check_requests(requirements, pool)
                    extra: list[Requirement] = []
                    for req in requirements:
                        core.append(req.name)
                        if not downgrade:
                            extra.extend(self.store.requirements_for_installed(req.name))
                        pool = pool.with_entry(req.slot, _unprefer(pool[req.slot]))
                        for meta in self.store.installed_metadata():
                            if any(d.kind is Kind.MANAGED and d.name == req.name for d in meta.dependencies):
                                extra.append(
                                    Requirement(
                                        name=meta.name,
                                        minimum_version=meta.version,
                                        minimum_package_version=meta.package_version,
                                    )
                                )
                    requirements = _unique(requirements + extra)
                else:
                    requirements = self.store.requirements_for_installed()
                    pool = CandidatePool()
                    for req in requirements:
                        core.append(req.name)
                        if req.slot not in pool:
                            pool = pool.with_entry(req.slot, _unprefer(self.index.candidates_for(req)))

                solution = self._resolve(requirements, pool, _unique(core))
                new = [c for c in solution if not c.origin.is_installed]
                if not new:
                    logger.info("No updates available")
                    return 0
                replacing = {c.name for c in new if c.kind is Kind.MANAGED}
                conflicting = self._package_conflicts(solution, replacing)
                verb = "downgraded" if downgrade else "upgraded"
                if not self._confirm_plan(new, verb, conflicting):
                    return GENERIC_ERR
                files = self._fetch([c for c in new if c.kind is Kind.MANAGED])
                skipped = self._handle_file_conflicts(files, replacing)
                before = set(self.store.installed_filenames())
                try:
                    self._replace_conflicting(conflicting)
                    return self._apply(solution, files, skipped, upgrade=True)
                finally:
                    self._finish(before)
            finally:
                self._cleanup_downloads()

    def _installed_matching(self, requests: list[str]) -> dict[str, Candidate]:
        """Installed packages matching *requests*, or all of them when empty."""
        installed = self.store.installed_candidates()
        if not requests:
            return {c.filename: c for c in installed}
        targets: dict[str, Candidate] = {}
        for request in requests:
            req = parse_request(request)
            found = [
                c for c in installed
                if (c.filename == os.path.basename(req.filename) if req.filename
                    else matches(c, req, self.platform))
            ]
            if not found:
                logger.warning("No installed package matches %s", request)
            for c in found:
                targets[c.filename] = c
        return targets

    def _expand_prerequisites(self, targets: dict[str, Candidate]) -> dict[str, Candidate]:
        """Add prerequisites of *targets* no longer needed by anything else."""
        removal = dict(targets)
        removal.update({c.filename: c for c in self.store.prerequisites(targets)})
        mapping = self.store.dependency_map()
        changed = True
        while changed:
            changed = False
            for filename in list(removal):
                if filename in targets:
                    continue
                keepers = [d.filename for d in mapping.get(filename, []) if d.filename not in removal]
                if keepers:
                    logger.info("Keeping %s, still needed by %s", filename, ", ".join(keepers))
                    del removal[filename]
                    changed = True
        return removal

    def _check_removal(self, removal: dict[str, Candidate]) -> None:
        problems: list[str] = []
        for pkg in self.store.installed_candidates():
            if pkg.filename in removal:
                continue
            for dep in pkg.metadata.dependencies:
                if dep.kind is Kind.NATIVE:
                    continue
                providers = self.store.installed_meeting(dep)
                if providers and all(p.filename in removal for p in providers):
                    problems.append(f"{pkg.filename} depends on {dep.describe()}")
        if problems:
            raise UnsatisfiableError(
                "Removing the requested packages would break installed packages "
                "(use remove_all_dep to remove them too)",
                problems,
            )

    def _removal_order(self, removal: dict[str, Candidate]) -> list[Candidate]:
        """Dependents before the packages they depend on."""
        mapping = self.store.dependency_map()
        pending = deque(removal.values())
        ordered: list[Candidate] = []
        left = set(removal)
        stalled = 0
        while pending:
            pkg = pending.popleft()
            waiting = [d for d in mapping.get(pkg.filename, []) if d.filename in left and d.filename != pkg.filename]
            if waiting and stalled < len(pending) + 1:
                pending.append(pkg)
                stalled += 1
                continue
            stalled = 0
            ordered.append(pkg)
            left.discard(pkg.filename)
        return ordered

    def _remove_ordered(self, ordered: list[Candidate]) -> int:
        """Remove *ordered* in turn, keeping whatever a failed package needs."""
        mapping = self.store.dependency_map()
        kept: set[str] = set()
        errors: list[HookFailureError] = []
        status = 0
        for pkg in ordered:
            blocking = [d.filename for d in mapping.get(pkg.filename, []) if d.filename in kept]
            if blocking:
                logger.warning("Keeping %s, still needed by %s", pkg.filename, ", ".join(blocking))
                kept.add(pkg.filename)
                continue
            try:
                status = _first_failure(status, self.remover.remove(pkg, action="remove"))
            except HookFailureError as exc:
                logger.error("Failed to remove %s: %s", pkg.filename, exc)
                errors.append(exc)
                kept.add(pkg.filename)
        if errors:
            raise errors[0]
        return status

    def remove(
        self,
        requests: Iterable[str] | None = None,
        remove_all_dep: bool = False,
        remove_all_prereq: bool = False,
    ) -> int:
        """Remove installed packages by name, filename, or all of them.

        Returns:
            0, ``POSTREMOVE_ERR`` if a postremove hook failed, or
            ``GENERIC_ERR`` if the user declined.

        Raises:
            UnsatisfiableError: If removal would break another installed
                package and ``remove_all_dep`` is not set.
        """
        with self.lock:
            try:
                targets = self._installed_matching(list(requests or []))
                removal = dict(targets)
                if remove_all_prereq:
                    removal = self._expand_prerequisites(targets)
                if remove_all_dep:
                    for dep in self.store.dependents(list(removal)):
                        removal[dep.filename] = dep
                else:
                    self._check_removal(removal)
                if not removal:
                    logger.info("No packages to remove")
                    return 0
                ordered = self._removal_order(removal)
                if not self._confirm_plan(ordered, "removed"):
                    return GENERIC_ERR
                before = set(self.store.installed_filenames())
                try:
                    return self._remove_ordered(ordered)
                finally:
                    self._finish(before)
            finally:
                self.index.invalidate()

    # -- Queries ------------------------------------------------------------

    def installed(self) -> list[Candidate]:
        return self.store.installed_candidates()

    def history(self) -> list[str]:
        return self.store.history()

    def files(self, requests: Iterable[str] | None = None) -> dict[str, list[ManifestEntry]]:
        """Installed files of the matching packages, or of all of them."""
        return {f: self.store.file_manifest(f) for f in self._installed_matching(list(requests or []))}

    def owner(self, path: str | Path) -> list[str]:
        return self.store.owner_of(path)

    def verify(self, requests: Iterable[str] | None = None) -> dict[str, list[FileProblem]]:
        """Missing or modified files per matching installed package."""
        return {f: self.store.verify(f) for f in self._installed_matching(list(requests or []))}
