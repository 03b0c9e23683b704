"""Manifest resolver: selects build definitions and loads them into build tasks."""

from __future__ import annotations

import glob
import os
from pathlib import Path
from typing import TYPE_CHECKING, Any

from iodbuild.errors import ConfigurationError, ResolutionError
from iodbuild.manifest.types import BuildDefinition, BuildTask, archive_output_path
from iodbuild.schemas.validator import schema_errors
from iodbuild.ui import Reporter
from iodbuild.utils.jsonfiles import correct_json_file, find_file, freeze, load_json5

if TYPE_CHECKING:
    from iodbuild.config import BuildConfig

BUILD_FILE = "build.json"
IGNORE_MARKER = ".ignore"


def _is_ignored(path: Path) -> bool:
    return IGNORE_MARKER in str(path)


def _parse_document(path: Path, what: str) -> Any:
    try:
        return load_json5(path)
    except FileNotFoundError as e:
        raise ResolutionError(f"{what} not found: {path}", context={"file": str(path)}) from e
    except OSError as e:
        raise ResolutionError(f"Cannot read {what.lower()} {path}: {e}", context={"file": str(path)}) from e
    except ValueError as e:
        raise ResolutionError(f"Malformed {what.lower()} {path}: {e}", context={"file": str(path)}) from e


def build_file_in(directory: Path) -> Path:
    """Locate the build definition inside a package directory.

    ``build.json`` wins over ``build.json5`` when both exist.

    Raises:
        ResolutionError: If the directory holds neither variant
    """
    build_file = correct_json_file(directory / BUILD_FILE)
    if not build_file.is_file():
        raise ResolutionError(
            f"No build definition (build.json or build.json5) in {directory}",
            context={"directory": str(directory)},
        )
    return build_file


def discover_build_files(source_root: Path) -> list[Path]:
    """Recursively collect the build definition of every package directory under ``source_root``."""
    if not source_root.is_dir():
        raise ConfigurationError(f"Package source directory not found: {source_root}")

    found: list[Path] = []
    for root, dirs, files in os.walk(source_root):
        dirs[:] = sorted(d for d in dirs if IGNORE_MARKER not in d)
        names = set(files)
        if BUILD_FILE in names or f"{BUILD_FILE}5" in names:
            found.append(build_file_in(Path(root)))
    return found


def expand_package_list(list_file: Path) -> list[Path]:
    """Expand the ``build`` globs of a package-list manifest into build definition files.

    Globs are relative to the list file's directory. Matches containing ``.ignore``
    are dropped; matched directories are searched for their build definition.
    """
    document = _parse_document(list_file, "Package list")
    patterns = document.get("build") if isinstance(document, dict) else None
    if not isinstance(patterns, list) or not all(isinstance(p, str) for p in patterns):
        raise ResolutionError(
            f"Package list {list_file} must contain a 'build' list of glob patterns",
            context={"file": str(list_file)},
        )

    base_dir = list_file.parent
    build_files: list[Path] = []
    for pattern in patterns:
        matches = sorted(glob.glob(pattern, root_dir=base_dir, recursive=True))
        for match in matches:
            path = (base_dir / match).resolve()
            if _is_ignored(path):
                continue
            build_files.append(build_file_in(path) if path.is_dir() else path)
    return build_files


def _selector_files(selector: str, source_root: Path) -> list[Path]:
    """Resolve one explicit ``--packages`` selector to build definition files."""
    if os.sep in selector or "/" in selector:
        target = Path(selector).expanduser().resolve()
    else:
        target = source_root / selector

    corrected = correct_json_file(target)
    if corrected.is_file():
        if corrected.name in (BUILD_FILE, f"{BUILD_FILE}5"):
            return [corrected]
        return expand_package_list(corrected)

    if not target.is_dir():
        raise ResolutionError(
            f"Package '{selector}' not found (looked for {target})",
            context={"selector": selector},
        )
    return [build_file_in(target)]


def resolve_build_files(config: BuildConfig, reporter: Reporter | None = None) -> list[Path]:
    """Select build definition files according to the run configuration.

    Order of precedence: ``--all`` discovery, explicit ``--packages`` selectors,
    an explicit package list, then the default package list under the source root.
    """
    reporter = reporter or Reporter(quiet=config.quiet)

    if config.all:
        reporter.step(f"Discovering packages under {config.source}")
        return discover_build_files(config.source)

    if config.packages:
        files: list[Path] = []
        for selector in config.packages:
            files.extend(_selector_files(selector, config.source))
        return files

    if config.package_list is not None:
        list_file = correct_json_file(config.package_list)
        if not list_file.is_file():
            raise ConfigurationError(f"Package list not found: {config.package_list}")
    else:
        list_file = find_file(correct_json_file(config.default_package_list))
        if list_file is None:
            return []

    reporter.step(f"Using package list {list_file}")
    return expand_package_list(list_file)


def load_build_task(build_file: Path, output_dir: Path) -> BuildTask:
    """Load one build definition and its package-data document.

    Raises:
        ResolutionError: If either document is missing, malformed or invalid
    """
    raw_definition = _parse_document(build_file, "Build definition")
    errors = schema_errors(raw_definition, "build_definition")
    if errors:
        raise ResolutionError(
            f"Invalid build definition {build_file}: " + "; ".join(errors),
            context={"file": str(build_file)},
        )
    definition = BuildDefinition.from_dict(build_file, raw_definition)
    source_dir = build_file.parent

    package_data_path = correct_json_file((source_dir / definition.package_data).resolve())
    raw_package_data = _parse_document(package_data_path, "Package data file")
    errors = schema_errors(raw_package_data, "package_data")
    if errors:
        raise ResolutionError(
            f"Package data file does not contain a valid 'name' field: {package_data_path}: "
            + "; ".join(errors),
            context={"file": str(package_data_path), "build_definition": str(build_file)},
        )

    package_data = freeze(raw_package_data)
    name = package_data["name"]
    return BuildTask(
        name=name,
        source_dir=source_dir,
        definition=definition,
        package_data_path=package_data_path,
        package_data=package_data,
        output_path=archive_output_path(output_dir, name, definition.category),
    )


def resolve_tasks(config: BuildConfig, reporter: Reporter | None = None) -> list[BuildTask]:
    """Resolve the ordered list of build tasks for a run.

    Any invalid definition aborts resolution; a partial list is never returned.

    Raises:
        ConfigurationError: If no packages are selected
        ResolutionError: If any definition fails to load
    """
    reporter = reporter or Reporter(quiet=config.quiet)
    build_files = resolve_build_files(config, reporter)

    reporter.step(f"Found {len(build_files)} packages to build")
    if not build_files:
        raise ConfigurationError("No packages specified.")

    tasks: list[BuildTask] = []
    seen: dict[str, Path] = {}
    for build_file in build_files:
        reporter.step(f"Loading {build_file}")
        task = load_build_task(build_file, config.output)
        if task.name in seen:
            reporter.warn(
                f"Package '{task.name}' is defined by both {seen[task.name]} and {build_file}; "
                "the later definition wins"
            )
        seen[task.name] = build_file
        tasks.append(task)
    return tasks
