"""Conversion between ``pkg.yml`` documents and ``Metadata`` values.

A package's metadata is one YAML mapping::

    name: foo
    version: "1.0"
    package_version: "2"
    operatingsystem: [RedHat-5, CentOS-5]     # or "RedHat-5,CentOS-5"
    architecture: x86_64
    dependencies:
      - name: bar
        minimum_version: "1.0"
      - name: openssl
        native: true
    conflicts:
      - name: oldfoo
    externals:
      - name: users
        data: "foo:x:1000"
    files:
      file_defaults:
        posix: {owner: root, group: root, perms: "0644"}
      files:
        - path: /etc/foo.conf
          config: true
        - path: bin/foo
          posix: {perms: "0755"}
        - path: /etc/init.d/foo
          init: {}

Keys are plain strings; the parsed result is a single typed ``Metadata``.
Numeric scalars (``version: 1.0``) are read back as their text form.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

import yaml

from pkgward.core.dependency.models import (
    External,
    FileSpec,
    Kind,
    Metadata,
    Requirement,
)
from pkgward.exceptions import ArchiveError

logger = logging.getLogger(__name__)

METADATA_FILENAME = "pkg.yml"

_REQUIREMENT_FIELDS = (
    "filename",
    "allowed_versions",
    "minimum_version",
    "maximum_version",
    "version_greater_than",
    "version_less_than",
    "minimum_package_version",
    "maximum_package_version",
    "package_version_greater_than",
    "package_version_less_than",
)


def _text(value: Any) -> str | None:
    if value is None:
        return None
    return str(value)


def _string_list(value: Any) -> tuple[str, ...]:
    """Accept a list or a comma-separated string."""
    if value is None:
        return ()
    if isinstance(value, str):
        return tuple(part.strip() for part in value.split(",") if part.strip())
    return tuple(str(v) for v in value)


def _perms(value: Any) -> int | None:
    # Strings and four-digit ints (4755) are octal text; YAML already
    # reads a leading-zero scalar such as 0644 as octal.
    if value is None:
        return None
    if isinstance(value, str) or value >= 1000:
        return int(str(value), 8)
    return int(value)


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------


def requirement_from_dict(data: dict[str, Any]) -> Requirement:
    """Build a requirement from a dependency or conflict entry."""
    if not isinstance(data, dict) or not data.get("name"):
        raise ArchiveError(f"Dependency entry without a name: {data!r}")
    kind = Kind.NATIVE if data.get("native") or data.get("type") == "native" else Kind.MANAGED
    fields = {key: _text(data.get(key)) for key in _REQUIREMENT_FIELDS}
    return Requirement(name=str(data["name"]), kind=kind, **fields)


def _file_specs(files_section: Any) -> tuple[tuple[FileSpec, ...], tuple[str, ...], tuple[str, ...]]:
    if not files_section:
        return (), (), ()
    defaults = (files_section.get("file_defaults") or {}).get("posix") or {}
    specs: list[FileSpec] = []
    init_scripts: list[str] = []
    crontabs: list[str] = []
    for entry in files_section.get("files") or []:
        posix = entry.get("posix") or {}
        path = str(entry["path"])
        specs.append(
            FileSpec(
                path=path,
                config=bool(entry.get("config", False)),
                perms=_perms(posix.get("perms", defaults.get("perms"))),
                owner=_text(posix.get("owner", defaults.get("owner"))),
                group=_text(posix.get("group", defaults.get("group"))),
            )
        )
        if "init" in entry:
            init_scripts.append(path)
        if "crontab" in entry:
            crontabs.append(path)
    return tuple(specs), tuple(init_scripts), tuple(crontabs)


def metadata_from_dict(data: dict[str, Any], filename: str | None = None) -> Metadata:
    """Build ``Metadata`` from a parsed ``pkg.yml`` mapping.

    Args:
        data: The YAML mapping.
        filename: Actual package filename, when known; otherwise the
            filename is generated from the metadata.

    Raises:
        ArchiveError: If ``name`` or ``version`` is missing.
    """
    if not isinstance(data, dict):
        raise ArchiveError("Package metadata is not a mapping")
    for key in ("name", "version"):
        if data.get(key) in (None, ""):
            raise ArchiveError(f"Package metadata is missing required field {key!r}")

    files, init_scripts, crontabs = _file_specs(data.get("files"))
    return Metadata(
        name=str(data["name"]),
        version=str(data["version"]),
        package_version=_text(data.get("package_version")),
        description=str(data.get("description") or ""),
        maintainer=str(data.get("maintainer") or ""),
        operatingsystem=_string_list(data.get("operatingsystem")),
        architecture=_string_list(data.get("architecture")),
        dependencies=tuple(requirement_from_dict(d) for d in data.get("dependencies") or []),
        conflicts=tuple(requirement_from_dict(c) for c in data.get("conflicts") or []),
        externals=tuple(
            External(name=str(e["name"]), data=str(e.get("data") or ""))
            for e in data.get("externals") or []
        ),
        files=files,
        init_scripts=init_scripts,
        crontabs=crontabs,
        explicit_filename=filename,
    )


def load_metadata(text: str, filename: str | None = None) -> Metadata:
    """Parse ``pkg.yml`` text.

    Raises:
        ArchiveError: If the YAML is malformed or incomplete.
    """
    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise ArchiveError(f"Malformed package metadata: {exc}") from exc
    return metadata_from_dict(data, filename=filename)


def read_metadata_file(path: Path, filename: str | None = None) -> Metadata:
    return load_metadata(path.read_text(encoding="utf-8"), filename=filename)


# ---------------------------------------------------------------------------
# Serialization
# ---------------------------------------------------------------------------


def requirement_to_dict(req: Requirement) -> dict[str, Any]:
    data: dict[str, Any] = {"name": req.name}
    for key in _REQUIREMENT_FIELDS:
        value = getattr(req, key)
        if value is not None:
            data[key] = value
    if req.kind is Kind.NATIVE:
        data["native"] = True
    return data


def metadata_to_dict(meta: Metadata) -> dict[str, Any]:
    """Inverse of ``metadata_from_dict``; empty fields are omitted."""
    data: dict[str, Any] = {"name": meta.name, "version": meta.version}
    if meta.package_version:
        data["package_version"] = meta.package_version
    if meta.description:
        data["description"] = meta.description
    if meta.maintainer:
        data["maintainer"] = meta.maintainer
    if meta.operatingsystem:
        data["operatingsystem"] = list(meta.operatingsystem)
    if meta.architecture:
        data["architecture"] = list(meta.architecture)
    if meta.dependencies:
        data["dependencies"] = [requirement_to_dict(d) for d in meta.dependencies]
    if meta.conflicts:
        data["conflicts"] = [requirement_to_dict(c) for c in meta.conflicts]
    if meta.externals:
        data["externals"] = [{"name": e.name, "data": e.data} for e in meta.externals]
    if meta.files:
        entries = []
        for spec in meta.files:
            entry: dict[str, Any] = {"path": spec.path}
            if spec.config:
                entry["config"] = True
            posix = {
                key: value
                for key, value in (
                    ("owner", spec.owner),
                    ("group", spec.group),
                    ("perms", None if spec.perms is None else f"{spec.perms:04o}"),
                )
                if value is not None
            }
            if posix:
                entry["posix"] = posix
            if spec.path in meta.init_scripts:
                entry["init"] = {}
            if spec.path in meta.crontabs:
                entry["crontab"] = {}
            entries.append(entry)
        data["files"] = {"files": entries}
    return data


def dump_metadata(meta: Metadata) -> str:
    return yaml.safe_dump(metadata_to_dict(meta), sort_keys=False, default_flow_style=False)
