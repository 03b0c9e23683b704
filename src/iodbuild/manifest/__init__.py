"""Build definition discovery and loading."""

from iodbuild.manifest.resolver import (
    discover_build_files,
    load_build_task,
    resolve_build_files,
    resolve_tasks,
)
from iodbuild.manifest.types import ARCHIVE_EXTENSION, BuildDefinition, BuildTask

__all__ = [
    "ARCHIVE_EXTENSION",
    "BuildDefinition",
    "BuildTask",
    "discover_build_files",
    "load_build_task",
    "resolve_build_files",
    "resolve_tasks",
]
