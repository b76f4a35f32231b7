"""Host platform identity and the platform adapter seam.

``PlatformInfo`` is the (operating system, architecture) pair that package
metadata is matched against. ``PlatformAdapter`` is the collaborator that
talks to the host's native package manager and links init scripts and
crontabs. The generic adapter shipped here has no native package support:
it lists no native packages and refuses to install them, and it only logs
when a package declares init scripts or crontabs.
"""

from __future__ import annotations

import logging
import platform as _platform
from dataclasses import dataclass

from pkgward.exceptions import PkgwardError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PlatformInfo:
    """The platform identifiers candidates are matched against.

    Attributes:
        os: Operating system identifier (e.g. ``"Linux"``, ``"RedHat-5"``).
        arch: Machine architecture (e.g. ``"x86_64"``).
    """

    os: str
    arch: str

    @classmethod
    def detect(cls) -> PlatformInfo:
        """Build a ``PlatformInfo`` for the running host."""
        return cls(os=_platform.system() or "unknown", arch=_platform.machine() or "unknown")


class NativePackageError(PkgwardError):
    """Raised when a native package operation is not supported."""


class PlatformAdapter:
    """Generic platform adapter with no native package manager support.

    Subclasses for a particular OS override the native package methods and
    the artifact linking hooks.
    """

    def __init__(self, info: PlatformInfo | None = None) -> None:
        self.info = info or PlatformInfo.detect()

    # -- Native packages ----------------------------------------------------

    def list_native(self, name: str) -> list:
        """Return installed and available native candidates for *name*."""
        return []

    def install_native(self, candidate) -> None:
        raise NativePackageError(
            f"No native package support for {self.info.os}, "
            f"cannot install {self.native_install_string(candidate)}"
        )

    def upgrade_native(self, candidate) -> None:
        raise NativePackageError(
            f"No native package support for {self.info.os}, "
            f"cannot upgrade {self.native_install_string(candidate)}"
        )

    def native_install_string(self, candidate) -> str:
        meta = candidate.metadata
        if meta.package_version:
            return f"{meta.name}-{meta.version}-{meta.package_version}"
        return f"{meta.name}-{meta.version}"

    # -- Init scripts and crontabs ------------------------------------------

    def link_artifacts(self, metadata) -> bool:
        """Link a package's init scripts and crontabs into place.

        Returns False if an init script could not be linked.
        """
        if metadata.init_scripts:
            logger.warning("No init script support for OS %s", self.info.os)
        if metadata.crontabs:
            logger.warning("No crontab support for OS %s", self.info.os)
        return True

    def unlink_artifacts(self, metadata) -> None:
        """Remove the links created by ``link_artifacts``."""
        if metadata.init_scripts or metadata.crontabs:
            logger.debug(
                "Nothing to unlink for %s on %s", metadata.name, self.info.os
            )
