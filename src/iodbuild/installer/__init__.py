"""Installer acquisition (local files and cached downloads)."""

from iodbuild.installer.acquirer import (
    InstallerAcquirer,
    cache_path_for,
    download_file,
    is_remote,
)

__all__ = ["InstallerAcquirer", "cache_path_for", "download_file", "is_remote"]
