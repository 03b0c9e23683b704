"""Build run configuration.

Configuration is resolved once at startup and handed to every component.
Precedence (lowest first): built-in defaults, YAML config file, command-line flags.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any

import yaml

from iodbuild.errors import ConfigurationError

IODBUILD_CONFIG_ENV = "IODBUILD_CONFIG"
DEFAULT_CONFIG_FILENAME = "iodbuild.yaml"

DEFAULT_SOURCE = "./packageSource"
DEFAULT_OUTPUT = "./output"
DEFAULT_DOWNLOADS = "./download-cache"
DEFAULT_KEY = "~/.gpii/iod-package-key"
DEFAULT_PACKAGE_LIST = "package-list.json5"

PUBLIC_KEY_SUFFIX = ".pub"


@dataclass(frozen=True)
class BuildConfig:
    """Immutable settings for one build or keygen invocation."""

    source: Path
    output: Path
    downloads: Path
    key: Path
    pubkey: Path
    packages: tuple[str, ...] = ()
    package_list: Path | None = None
    all: bool = False
    force: bool = False
    keygen: bool = False
    keypass: str | None = None
    quiet: bool = False
    key_size: int = field(default=4096, repr=False)

    @property
    def default_package_list(self) -> Path:
        """Package-list manifest looked up when no explicit selection is given."""
        return self.source / DEFAULT_PACKAGE_LIST


def parse_package_selectors(value: str | list[str] | tuple[str, ...] | None) -> tuple[str, ...]:
    """Split comma-separated package selectors, dropping blanks."""
    if value is None:
        return ()
    items = [value] if isinstance(value, str) else list(value)
    selectors: list[str] = []
    for item in items:
        for part in str(item).split(","):
            part = part.strip()
            if part:
                selectors.append(part)
    return tuple(selectors)


def _resolve_path(value: str | Path, *, base: Path) -> Path:
    path = Path(value).expanduser()
    if not path.is_absolute():
        path = base / path
    return path.resolve()


def _resolve_selector(selector: str, *, base: Path) -> str:
    # bare names are looked up under the source root later
    if os.sep in selector or "/" in selector:
        return str(_resolve_path(selector, base=base))
    return selector


def load_config_file(path: Path) -> dict[str, Any]:
    """Load option overrides from a YAML config file.

    Raises:
        ConfigurationError: If the file is unreadable, malformed, or has unknown keys
    """
    try:
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except OSError as e:
        raise ConfigurationError(f"Cannot read config file {path}: {e}") from e
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Malformed YAML config at {path}: {e}") from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigurationError(f"Config file {path} must contain a mapping of options")

    known = {f.name for f in fields(BuildConfig)} - {"key_size"}
    unknown = sorted(str(key) for key in data if key not in known)
    if unknown:
        raise ConfigurationError(
            f"Unknown option(s) in config file {path}: {', '.join(unknown)}",
            context={"allowed": ", ".join(sorted(known))},
        )
    return data


def locate_config_file(explicit: Path | None = None, *, cwd: Path | None = None) -> Path | None:
    """Find the config file: explicit path, then ``$IODBUILD_CONFIG``, then ``./iodbuild.yaml``."""
    if explicit is not None:
        if not explicit.exists():
            raise ConfigurationError(f"Config file not found: {explicit}")
        return explicit

    env_path = os.getenv(IODBUILD_CONFIG_ENV, "").strip()
    if env_path:
        path = Path(env_path).expanduser()
        if not path.exists():
            raise ConfigurationError(f"Config file named by {IODBUILD_CONFIG_ENV} not found: {path}")
        return path

    candidate = (cwd or Path.cwd()) / DEFAULT_CONFIG_FILENAME
    return candidate if candidate.exists() else None


def build_config(
    overrides: dict[str, Any] | None = None,
    *,
    config_file: Path | None = None,
    cwd: Path | None = None,
) -> BuildConfig:
    """Merge defaults, the config file and explicit overrides into a ``BuildConfig``.

    ``overrides`` holds command-line values; entries that are ``None`` are treated
    as not given. Relative paths, including path-like package selectors, are
    resolved against ``cwd``.
    """
    base = (cwd or Path.cwd()).resolve()
    options: dict[str, Any] = {
        "source": DEFAULT_SOURCE,
        "output": DEFAULT_OUTPUT,
        "downloads": DEFAULT_DOWNLOADS,
        "key": DEFAULT_KEY,
        "pubkey": None,
        "packages": None,
        "package_list": None,
        "all": False,
        "force": False,
        "keygen": False,
        "keypass": None,
        "quiet": False,
    }

    file_path = locate_config_file(config_file, cwd=base)
    if file_path is not None:
        options.update(load_config_file(file_path))

    for key, value in (overrides or {}).items():
        if value is not None:
            options[key] = value

    key = _resolve_path(options["key"], base=base)
    pubkey_value = options.get("pubkey")
    pubkey = (
        _resolve_path(pubkey_value, base=base)
        if pubkey_value
        else key.with_name(key.name + PUBLIC_KEY_SUFFIX)
    )
    package_list = options.get("package_list")

    keypass = options.get("keypass")
    return BuildConfig(
        source=_resolve_path(options["source"], base=base),
        output=_resolve_path(options["output"], base=base),
        downloads=_resolve_path(options["downloads"], base=base),
        key=key,
        pubkey=pubkey,
        packages=tuple(
            _resolve_selector(s, base=base) for s in parse_package_selectors(options.get("packages"))
        ),
        package_list=_resolve_path(package_list, base=base) if package_list else None,
        all=bool(options.get("all")),
        force=bool(options.get("force")),
        keygen=bool(options.get("keygen")),
        keypass=None if keypass is None else str(keypass),
        quiet=bool(options.get("quiet")),
    )
