"""Build task types."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Any

ARCHIVE_EXTENSION = ".morphic-package"
PACKAGES_SUBDIR = "packages"


@dataclass(frozen=True)
class BuildDefinition:
    """Parsed build definition file (``build.json`` / ``build.json5``)."""

    path: Path
    package_data: str
    installer: str | None = None
    category: str | None = None
    name: str | None = None

    @classmethod
    def from_dict(cls, path: Path, data: Mapping[str, Any]) -> BuildDefinition:
        category = data.get("category") or None
        return cls(
            path=path,
            package_data=data["packageData"],
            installer=data.get("installer") or None,
            category=category,
            name=data.get("name") or None,
        )


@dataclass
class BuildTask:
    """One package to build.

    ``package_data`` is deep-frozen at load time. ``resolved_installer_path`` and
    ``produced_archive_path`` are filled in by the pipeline.
    """

    name: str
    source_dir: Path
    definition: BuildDefinition
    package_data_path: Path
    package_data: Mapping[str, Any]
    output_path: Path
    resolved_installer_path: Path | None = None
    produced_archive_path: Path | None = None

    @property
    def installer_ref(self) -> str | None:
        return self.definition.installer

    @property
    def category(self) -> str | None:
        return self.definition.category


def archive_output_path(output_dir: Path, name: str, category: str | None = None) -> Path:
    """Deterministic archive destination for a package."""
    base = output_dir / PACKAGES_SUBDIR
    if category:
        base = base / category
    return base / f"{name}{ARCHIVE_EXTENSION}"
