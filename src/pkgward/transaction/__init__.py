"""Applying resolved changes to the file system.

- ``manager``: ``TransactionManager`` with install, upgrade and remove.
- ``conflicts``: package-level and file-level conflict detection.
- ``hooks``: lifecycle scripts and externals.
- ``unpack`` / ``cleanup``: installing and removing a single package.
- ``privilege``: best-effort ownership and permission changes.
"""

from pkgward.transaction.manager import TransactionManager

__all__ = ["TransactionManager"]
