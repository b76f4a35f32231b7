"""Requirement, metadata and candidate types for dependency resolution.

These are pure data holders (frozen dataclasses) with no business logic
beyond small derived properties. Being frozen and built from tuples, every
value here is hashable; requirements double as cache keys and resolver
state is shared between recursion levels as is.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum

PACKAGE_SUFFIX = ".tpkg"


# ---------------------------------------------------------------------------
# Enumerations
# ---------------------------------------------------------------------------


class Kind(str, Enum):
    """Namespace a requirement or pool entry lives in."""

    MANAGED = "managed"
    NATIVE = "native"


class Origin(str, Enum):
    """Where a candidate comes from."""

    CURRENTLY_INSTALLED = "currently_installed"
    NATIVE_INSTALLED = "native_installed"
    NATIVE_AVAILABLE = "native_available"
    AVAILABLE = "available"

    @property
    def is_native(self) -> bool:
        return self in (Origin.NATIVE_INSTALLED, Origin.NATIVE_AVAILABLE)

    @property
    def is_installed(self) -> bool:
        return self in (Origin.CURRENTLY_INSTALLED, Origin.NATIVE_INSTALLED)


# ---------------------------------------------------------------------------
# Requirement
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Requirement:
    """A constraint on which candidate may fill a (kind, name) slot.

    Package-version bounds only apply on the side whose version bound the
    candidate meets with equality: ``minimum_package_version`` and
    ``package_version_greater_than`` are checked only when the candidate's
    version equals ``minimum_version``; ``maximum_package_version`` and
    ``package_version_less_than`` only when it equals ``maximum_version``.

    Attributes:
        name: Package name.
        kind: Managed or native namespace.
        filename: Exact package filename; when set every other field is
            ignored by the matcher.
        allowed_versions: Glob over ``"version[-package_version]"``.
    """

    name: str
    kind: Kind = Kind.MANAGED
    filename: str | None = None
    allowed_versions: str | None = None
    minimum_version: str | None = None
    maximum_version: str | None = None
    version_greater_than: str | None = None
    version_less_than: str | None = None
    minimum_package_version: str | None = None
    maximum_package_version: str | None = None
    package_version_greater_than: str | None = None
    package_version_less_than: str | None = None

    @property
    def slot(self) -> tuple[Kind, str]:
        return (self.kind, self.name)

    def describe(self) -> str:
        """Short human-readable form, e.g. ``foo (>=1.0, <=2.0)``."""
        if self.filename:
            return self.filename
        parts = []
        for label, value in (
            ("=~", self.allowed_versions),
            (">=", self.minimum_version),
            ("<=", self.maximum_version),
            (">", self.version_greater_than),
            ("<", self.version_less_than),
            ("pkg>=", self.minimum_package_version),
            ("pkg<=", self.maximum_package_version),
            ("pkg>", self.package_version_greater_than),
            ("pkg<", self.package_version_less_than),
        ):
            if value is not None:
                parts.append(f"{label}{value}")
        prefix = "native " if self.kind is Kind.NATIVE else ""
        if parts:
            return f"{prefix}{self.name} ({', '.join(parts)})"
        return f"{prefix}{self.name}"


# ---------------------------------------------------------------------------
# Package metadata
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class External:
    """A call-out to an external executable made on install and remove."""

    name: str
    data: str = ""


@dataclass(frozen=True)
class FileSpec:
    """Per-file metadata declared by a package.

    Paths beginning with ``/`` install under the file system root; all
    others are relocatable and install under the base directory.
    """

    path: str
    config: bool = False
    perms: int | None = None
    owner: str | None = None
    group: str | None = None


def _clean_for_filename(text: str) -> str:
    return re.sub(r"[^\w]", "", text.lower())


@dataclass(frozen=True)
class Metadata:
    """Declared metadata of one package build."""

    name: str
    version: str
    package_version: str | None = None
    description: str = ""
    maintainer: str = ""
    operatingsystem: tuple[str, ...] = ()
    architecture: tuple[str, ...] = ()
    dependencies: tuple[Requirement, ...] = ()
    conflicts: tuple[Requirement, ...] = ()
    externals: tuple[External, ...] = ()
    files: tuple[FileSpec, ...] = ()
    init_scripts: tuple[str, ...] = ()
    crontabs: tuple[str, ...] = ()
    explicit_filename: str | None = field(default=None, compare=False)

    @property
    def version_string(self) -> str:
        """``version`` or ``version-package_version``."""
        if self.package_version:
            return f"{self.version}-{self.package_version}"
        return self.version

    def generate_package_filename(self) -> str:
        """Package filename stem derived from name, versions and platforms.

        ``name-version[-package_version][-os][-arch]``. Several operating
        systems collapse to their shared OS name when only versions differ
        (``RedHat-4,RedHat-5`` -> ``redhat``) and to ``multios`` otherwise;
        several architectures become ``multiarch``.
        """
        stem = f"{self.name}-{self.version}"
        if self.package_version:
            stem += f"-{self.package_version}"
        if self.operatingsystem:
            if len(self.operatingsystem) == 1:
                stem += "-" + _clean_for_filename(self.operatingsystem[0])
            else:
                systems = [os_name.replace("CentOS", "RedHat") for os_name in self.operatingsystem]
                first_name = systems[0].split("-")[0]
                if all(s == systems[0] for s in systems):
                    stem += "-" + _clean_for_filename(systems[0])
                elif all(s.startswith(f"{first_name}-") for s in systems):
                    stem += "-" + _clean_for_filename(first_name)
                else:
                    stem += "-multios"
        if self.architecture:
            if len(self.architecture) == 1:
                stem += "-" + _clean_for_filename(self.architecture[0])
            else:
                stem += "-multiarch"
        return stem

    @property
    def filename(self) -> str:
        """Package filename, including the ``.tpkg`` suffix."""
        if self.explicit_filename:
            return self.explicit_filename
        return self.generate_package_filename() + PACKAGE_SUFFIX

    @property
    def config_files(self) -> tuple[str, ...]:
        return tuple(f.path for f in self.files if f.config)


# ---------------------------------------------------------------------------
# Candidate
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Candidate:
    """One installable package build from a particular origin.

    Attributes:
        metadata: The package's declared metadata.
        origin: Where the candidate comes from.
        source: Locator for ``Origin.AVAILABLE`` candidates: a package
            file, a package directory or a repository URL.
        prefer: "All else equal, keep this one." Only meaningful for
            installed origins.
    """

    metadata: Metadata
    origin: Origin = Origin.AVAILABLE
    source: str = ""
    prefer: bool = False

    @property
    def kind(self) -> Kind:
        return Kind.NATIVE if self.origin.is_native else Kind.MANAGED

    @property
    def name(self) -> str:
        return self.metadata.name

    @property
    def filename(self) -> str:
        return self.metadata.filename

    @property
    def slot(self) -> tuple[Kind, str]:
        return (self.kind, self.metadata.name)

    def __str__(self) -> str:
        if self.origin.is_native:
            return f"native {self.metadata.name}-{self.metadata.version_string}"
        return self.metadata.filename


def installed_candidate(metadata: Metadata, prefer: bool = True) -> Candidate:
    """Candidate for a currently-installed managed package."""
    return Candidate(metadata=metadata, origin=Origin.CURRENTLY_INSTALLED, prefer=prefer)


def native_candidate(
    name: str,
    version: str,
    package_version: str | None = None,
    installed: bool = False,
) -> Candidate:
    """Candidate for a native OS package; installed ones are preferred."""
    metadata = Metadata(name=name, version=version, package_version=package_version)
    origin = Origin.NATIVE_INSTALLED if installed else Origin.NATIVE_AVAILABLE
    return Candidate(metadata=metadata, origin=origin, prefer=installed)
