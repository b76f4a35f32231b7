"""Parsing of user package requests into requirements.

Accepted forms::

    foo                 any version
    foo=1.0             exactly version 1.0 (any package version)
    foo>=1.0  foo<2     open or closed version bounds
    foo=1.*             glob over "version[-package_version]"
    foo=1.0=2           version 1.0, package version 2
    foo>=1.0<3          version >= 1.0; package version < 3 when the
                        version is exactly 1.0
    foo-1.0-1.tpkg      one exact package file

Requests that name a file on disk or an http(s) URL are not parsed here;
``is_package_location`` tells the caller to treat them as package files.
"""

from __future__ import annotations

import os
import re

from pkgward.core.dependency.models import PACKAGE_SUFFIX, Requirement
from pkgward.exceptions import RequestError

# Longer operators first so ``>=`` never splits into ``>`` and ``=``.
_OPERATOR_RE = re.compile(r"(<=|>=|<|>|=)")
_VERSIONISH_RE = re.compile(r"^[\d.]")
_FILENAME_NAME_RE = re.compile(r"-\d")

_VERSION_FIELDS = {
    "<": ("version_less_than",),
    "<=": ("maximum_version",),
    "=": ("minimum_version", "maximum_version"),
    ">": ("version_greater_than",),
    ">=": ("minimum_version",),
}

_PACKAGE_VERSION_FIELDS = {
    "<": ("package_version_less_than",),
    "<=": ("maximum_package_version",),
    "=": ("minimum_package_version", "maximum_package_version"),
    ">": ("package_version_greater_than",),
    ">=": ("minimum_package_version",),
}


def is_url(request: str) -> bool:
    return request.startswith(("http://", "https://"))


def is_package_location(request: str) -> bool:
    """True if *request* names a package file on disk or a URL."""
    return is_url(request) or os.path.isfile(request)


def valid_package_filename(filename: str) -> bool:
    """Package files must not be dotfiles."""
    return not os.path.basename(filename).startswith(".")


def name_from_filename(filename: str) -> str:
    """Package name from a filename such as ``foo-bar-1.0-1.tpkg``."""
    return _FILENAME_NAME_RE.split(os.path.basename(filename))[0]


def parse_request(request: str) -> Requirement:
    """Parse a request string into a ``Requirement``.

    Raises:
        RequestError: If the request is empty or has no package name.
    """
    request = request.strip()
    if not request:
        raise RequestError("Empty package request")

    if request.endswith(PACKAGE_SUFFIX):
        return Requirement(name=name_from_filename(request), filename=request)

    parts = _OPERATOR_RE.split(request)
    fields: dict[str, str] = {}

    if len(parts) > 4 and _VERSIONISH_RE.match(parts[-3]) and _VERSIONISH_RE.match(parts[-1]):
        package_version = parts.pop()
        package_version_sign = parts.pop()
        version = parts.pop()
        version_sign = parts.pop()
        for name in _VERSION_FIELDS[version_sign]:
            fields[name] = version
        for name in _PACKAGE_VERSION_FIELDS[package_version_sign]:
            fields[name] = package_version
    elif len(parts) > 1 and _VERSIONISH_RE.match(parts[-1]):
        version = parts.pop()
        version_sign = parts.pop()
        if version_sign == "=" and "*" in version:
            fields["allowed_versions"] = version
        else:
            for name in _VERSION_FIELDS[version_sign]:
                fields[name] = version

    name = "".join(parts)
    if not name:
        raise RequestError(f"No package name in request {request!r}")
    return Requirement(name=name, **fields)


def parse_requests(requests: list[str]) -> list[Requirement]:
    """Parse several request strings, collecting every malformed one."""
    parsed: list[Requirement] = []
    bad: list[str] = []
    for request in requests:
        try:
            parsed.append(parse_request(request))
        except RequestError as exc:
            bad.append(str(exc))
    if bad:
        raise RequestError("; ".join(bad))
    return parsed
