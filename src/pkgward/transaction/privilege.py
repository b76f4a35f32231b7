"""Best-effort ownership and permission changes.

Unprivileged users routinely cannot chown files to the owners a package
declares. Such failures are warnings when not running as root and
``PrivilegeDeniedError`` when running as root, where they indicate a
real problem.
"""

from __future__ import annotations

import grp
import logging
import os
import pwd
from pathlib import Path

from pkgward.exceptions import PrivilegeDeniedError

logger = logging.getLogger(__name__)


def running_as_root() -> bool:
    return os.geteuid() == 0


def _denied(action: str, path: Path, exc: OSError) -> None:
    if running_as_root():
        raise PrivilegeDeniedError(f"Failed to {action} {path}: {exc}") from exc
    logger.warning("Failed to %s %s: %s", action, path, exc)


def _lookup_uid(owner: str | None) -> int:
    if owner is None:
        return -1
    if owner.isdigit():
        return int(owner)
    return pwd.getpwnam(owner).pw_uid


def _lookup_gid(group: str | None) -> int:
    if group is None:
        return -1
    if group.isdigit():
        return int(group)
    return grp.getgrnam(group).gr_gid


def apply_ownership(path: Path, owner: str | None, group: str | None) -> None:
    """chown *path*; unknown users or groups are warnings."""
    if owner is None and group is None:
        return
    try:
        uid, gid = _lookup_uid(owner), _lookup_gid(group)
    except KeyError as exc:
        logger.warning("Unknown owner or group for %s: %s", path, exc)
        return
    try:
        os.chown(path, uid, gid, follow_symlinks=False)
    except PermissionError as exc:
        _denied("change ownership of", path, exc)


def apply_permissions(path: Path, perms: int | None) -> None:
    if perms is None or path.is_symlink():
        return
    try:
        os.chmod(path, perms)
    except PermissionError as exc:
        _denied("change permissions of", path, exc)
