"""pkgward: dependency-resolving package manager for tar-based packages."""

from __future__ import annotations

__version__ = "0.1.0"
__license__ = "MIT"

# Status codes returned by install / upgrade / remove.
GENERIC_ERR = 1
POSTINSTALL_ERR = 2
POSTREMOVE_ERR = 3
INITSCRIPT_ERR = 4
