"""Index aggregator: reads back built archives into local index entries."""

from __future__ import annotations

import base64
import os
from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Any

from iodbuild.errors import ArchiveError

if TYPE_CHECKING:
    from iodbuild.manifest.types import BuildTask
    from iodbuild.packagefile.types import ArchiveInfo, PackageArchive


@dataclass(frozen=True)
class LocalIndexEntry:
    """One package row of the local index."""

    name: str
    package_file: str
    package_data: str
    package_data_signature: str
    installer: str | None = None
    offset: int | None = None

    @property
    def has_embedded_installer(self) -> bool:
        return self.installer is not None

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "name": self.name,
            "packageFile": self.package_file,
            "packageData": self.package_data,
            "packageDataSignature": self.package_data_signature,
        }
        if self.installer is not None:
            payload["installer"] = self.installer
            payload["offset"] = self.offset
        return payload


def index_entry(info: ArchiveInfo, output_dir: Path) -> LocalIndexEntry:
    """Build an index entry from a parsed archive; paths are relative to ``output_dir``."""
    package_file = Path(os.path.relpath(info.path, output_dir)).as_posix()
    embedded = bool(info.header.installer_length)
    return LocalIndexEntry(
        name=info.package_data["name"],
        package_file=package_file,
        package_data=info.package_data_json,
        package_data_signature=base64.b64encode(info.signature).decode("ascii"),
        installer=package_file if embedded else None,
        offset=info.header.installer_offset if embedded else None,
    )


def aggregate(
    tasks: Sequence[BuildTask],
    archive: PackageArchive,
    output_dir: Path,
) -> dict[str, LocalIndexEntry]:
    """Read each produced archive back and index it by package name.

    Archives are re-read rather than trusting in-memory data, so the index
    reflects what was actually written. A later task with the same name
    replaces an earlier one.

    Raises:
        ArchiveError: If an archive cannot be read or does not match its task
    """
    entries: dict[str, LocalIndexEntry] = {}
    for task in tasks:
        if task.produced_archive_path is None:
            raise ArchiveError(f"Package '{task.name}' has no archive to index", context={"package": task.name})
        try:
            info = archive.read(task.produced_archive_path)
        except Exception as e:
            raise ArchiveError(
                f"Unable to read package file {task.produced_archive_path}: {e}",
                context={"package": task.name, "build_definition": str(task.definition.path)},
            ) from e

        if info.package_data.get("name") != task.name:
            raise ArchiveError(
                f"Package file {task.produced_archive_path} holds package "
                f"'{info.package_data.get('name')}', expected '{task.name}'",
                context={"package": task.name},
            )
        entries[task.name] = index_entry(info, output_dir)
    return entries
