"""Sequential build pipeline."""

from __future__ import annotations

import threading
from collections.abc import Sequence
from enum import Enum
from typing import TYPE_CHECKING

from iodbuild.errors import ArchiveError, IodBuildError
from iodbuild.ui import Reporter

if TYPE_CHECKING:
    from iodbuild.installer.acquirer import InstallerAcquirer
    from iodbuild.keys.types import KeyPair
    from iodbuild.manifest.types import BuildTask
    from iodbuild.packagefile.types import PackageArchive


class PipelineState(str, Enum):
    """Lifecycle of one build run."""

    IDLE = "idle"
    RUNNING = "running"
    COMPLETED = "completed"
    ABORTED = "aborted"


class BuildPipeline:
    """Builds packages one at a time, stopping at the first failure.

    At most one package is in flight: the downloads cache and output directory
    are shared, so builds are serialised by ``_in_flight``.
    Archives written before a failure are left on disk.
    """

    def __init__(
        self,
        archive: PackageArchive,
        acquirer: InstallerAcquirer,
        key_pair: KeyPair,
        *,
        reporter: Reporter | None = None,
    ) -> None:
        self.archive = archive
        self.acquirer = acquirer
        self.key_pair = key_pair
        self.reporter = reporter or Reporter()
        self.state = PipelineState.IDLE
        self.completed: list[BuildTask] = []
        self._in_flight = threading.Lock()

    def build(self, task: BuildTask) -> None:
        """Acquire the installer and create the archive for a single task."""
        if not self._in_flight.acquire(blocking=False):
            raise RuntimeError("build already in progress")
        try:
            self.reporter.step(f"Building package '{task.name}'")
            task.resolved_installer_path = self.acquirer.resolve(task)

            task.output_path.parent.mkdir(parents=True, exist_ok=True)
            try:
                produced = self.archive.create(
                    task.package_data,
                    task.resolved_installer_path,
                    self.key_pair,
                    task.output_path,
                )
            except Exception as e:
                raise ArchiveError(
                    f"Failed building package '{task.name}': {e}",
                    context={
                        "package": task.name,
                        "build_definition": str(task.definition.path),
                        "installer": str(task.resolved_installer_path),
                    },
                ) from e

            task.produced_archive_path = produced or task.output_path
            self.reporter.success(f"Built package '{task.name}': {task.produced_archive_path}")
        finally:
            self._in_flight.release()

    def run(self, tasks: Sequence[BuildTask]) -> list[BuildTask]:
        """Build every task in order and return them once all have archives.

        Raises:
            IodBuildError: The first failure; the pipeline is left ``ABORTED``
        """
        if self.state is not PipelineState.IDLE:
            raise RuntimeError(f"pipeline already used (state: {self.state.value})")

        self.state = PipelineState.RUNNING
        for task in tasks:
            try:
                self.build(task)
            except IodBuildError:
                self.state = PipelineState.ABORTED
                raise
            except OSError as e:
                self.state = PipelineState.ABORTED
                raise ArchiveError(
                    f"Failed building package '{task.name}': {e}",
                    context={"package": task.name, "build_definition": str(task.definition.path)},
                ) from e
            self.completed.append(task)

        self.state = PipelineState.COMPLETED
        return list(self.completed)
