"""Lifecycle hook scripts and externals.

Hooks (``preinstall``, ``postinstall``, ``preremove``, ``postremove``) run
with the unpacked package directory as working directory and
``PKGWARD_ACTION`` set to ``install``, ``upgrade`` or ``remove`` in their
environment. The environment is built per call.

Failure policy:

- ``preinstall`` / ``preremove`` and externals: ``HookFailureError``,
  downgraded to a warning when ``force`` is set.
- ``postinstall`` / ``postremove``: always a warning; the caller maps the
  failure to ``POSTINSTALL_ERR`` / ``POSTREMOVE_ERR``.
"""

from __future__ import annotations

import logging
import os
import subprocess
from pathlib import Path

from pkgward.core.dependency.models import External
from pkgward.exceptions import HookFailureError

logger = logging.getLogger(__name__)

ACTION_ENV_VAR = "PKGWARD_ACTION"


class HookRunner:
    """Runs package hooks and externals under one failure policy.

    Args:
        externals_dir: Directory holding external executables.
        force: Turn fatal hook failures into warnings.
    """

    def __init__(self, externals_dir: Path, force: bool = False) -> None:
        self.externals_dir = Path(externals_dir)
        self.force = force

    def _fail(self, message: str) -> None:
        if self.force:
            logger.warning(message)
        else:
            raise HookFailureError(message)

    def _run_script(self, workdir: Path, hook: str, package: str, action: str) -> int | None:
        """Run *hook* if present; return its exit status, or None if absent."""
        script = workdir / hook
        if not script.exists():
            return None
        if not os.access(script, os.X_OK):
            logger.warning("%s script for %s is not executable, execution will likely fail", hook, package)
        env = dict(os.environ)
        env[ACTION_ENV_VAR] = action
        logger.debug("Running %s for %s", hook, package)
        try:
            completed = subprocess.run([str(script)], cwd=workdir, env=env, check=False)
        except OSError as exc:
            logger.debug("Could not execute %s: %s", script, exc)
            return 126
        return completed.returncode

    def pre(self, hook: str, workdir: Path, package: str, action: str) -> None:
        """Run a pre-hook; failure is fatal unless forced."""
        status = self._run_script(workdir, hook, package, action)
        if status:
            self._fail(f"{hook} for {package} failed with exit value {status}")

    def post(self, hook: str, workdir: Path, package: str, action: str) -> bool:
        """Run a post-hook; return False (after warning) if it failed."""
        status = self._run_script(workdir, hook, package, action)
        if status:
            logger.warning("%s for %s failed with exit value %s", hook, package, status)
            return False
        return True

    def external(self, external: External, package: str, operation: str) -> None:
        """Run ``<externals_dir>/<name> <package> <operation>`` with data on stdin."""
        path = self.externals_dir / external.name
        if not (path.is_file() and os.access(path, os.X_OK)):
            self._fail(f"External {path} does not exist or is not executable")
            return
        try:
            completed = subprocess.run(
                [str(path), package, operation],
                input=external.data.encode(),
                check=False,
            )
        except OSError as exc:
            self._fail(f"External {external.name} {operation} for {package}: {exc}")
            return
        if completed.returncode:
            self._fail(
                f"External {external.name} {operation} for {package}: "
                f"exit value {completed.returncode}"
            )
