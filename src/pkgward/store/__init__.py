"""On-disk record of installed packages."""

from pkgward.store.installed import InstalledStore, ManifestEntry, file_sha256

__all__ = ["InstalledStore", "ManifestEntry", "file_sha256"]
