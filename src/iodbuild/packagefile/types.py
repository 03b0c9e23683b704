"""Archive contract types."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Any, Protocol

if TYPE_CHECKING:
    from iodbuild.keys.types import KeyPair


@dataclass(frozen=True)
class ArchiveHeader:
    """Fixed header of a package archive."""

    version: int
    package_data_length: int
    signature_length: int
    installer_length: int = 0
    installer_offset: int | None = None


@dataclass(frozen=True)
class ArchiveInfo:
    """An archive parsed back into its parts."""

    header: ArchiveHeader
    package_data: dict[str, Any]
    package_data_json: str
    signature: bytes
    path: Path


class PackageArchive(Protocol):
    """Capability used by the build pipeline to write and read package archives."""

    def create(
        self,
        package_data: Mapping[str, Any],
        installer_path: Path | None,
        key_pair: KeyPair,
        output_path: Path,
    ) -> Path:
        """Write a signed archive and return its path."""
        ...

    def read(self, archive_path: Path) -> ArchiveInfo:
        """Parse an archive back into header, package data and signature."""
        ...
