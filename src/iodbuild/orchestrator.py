"""Top-level build and keygen runs."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

from iodbuild.errors import ConfigurationError
from iodbuild.index import LocalIndexEntry, aggregate, write_index
from iodbuild.installer import InstallerAcquirer
from iodbuild.keys import GeneratedKeys, ensure_key_pair, generate_key_pair
from iodbuild.manifest import BuildTask, resolve_tasks
from iodbuild.packagefile import MorphicPackageFile
from iodbuild.pipeline import BuildPipeline
from iodbuild.ui import Reporter

if TYPE_CHECKING:
    import requests

    from iodbuild.config import BuildConfig
    from iodbuild.packagefile.types import PackageArchive


@dataclass(frozen=True)
class BuildRunResult:
    """Outcome of a completed build run."""

    tasks: list[BuildTask]
    entries: dict[str, LocalIndexEntry]
    index_path: Path


def run_build(
    config: BuildConfig,
    *,
    archive: PackageArchive | None = None,
    session: requests.Session | None = None,
    reporter: Reporter | None = None,
) -> BuildRunResult:
    """Build every selected package, then write the local index.

    Nothing is indexed unless every package builds; archives from earlier
    packages stay on disk when a later one fails.

    Raises:
        IodBuildError: On the first configuration, resolution, download or archive failure
    """
    reporter = reporter or Reporter(quiet=config.quiet)
    archive = archive or MorphicPackageFile()

    key_pair = ensure_key_pair(config, reporter)
    tasks = resolve_tasks(config, reporter)

    try:
        config.output.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise ConfigurationError(
            f"Cannot create output directory {config.output}: {e}",
            context={"output": str(config.output)},
        ) from e
    acquirer = InstallerAcquirer(config.downloads, session=session, reporter=reporter)
    pipeline = BuildPipeline(archive, acquirer, key_pair, reporter=reporter)
    completed = pipeline.run(tasks)

    entries = aggregate(completed, archive, config.output)
    index_path = write_index(config.output, entries)
    reporter.success(f"Wrote package index for {len(entries)} packages: {index_path}")
    return BuildRunResult(tasks=completed, entries=entries, index_path=index_path)


def run_keygen(config: BuildConfig, *, reporter: Reporter | None = None) -> GeneratedKeys:
    """Generate the signing key pair at the configured paths."""
    return generate_key_pair(config, reporter or Reporter(quiet=config.quiet))
