"""JSON / JSON5 file helpers for build definitions and package data."""

from __future__ import annotations

from collections.abc import Mapping
from pathlib import Path
from types import MappingProxyType
from typing import Any

import json5

JSON_SUFFIX = ".json"
JSON5_SUFFIX = ".json5"


def correct_json_file(path: Path | str) -> Path:
    """Return ``path`` with its ``.json``/``.json5`` extension swapped when only the other one exists.

    If the requested file exists, or neither variant exists, the original path is returned.
    """
    requested = Path(path)
    if requested.exists():
        return requested

    name = requested.name
    if name.endswith(JSON_SUFFIX):
        swapped = requested.with_name(name + "5")
    elif name.endswith(JSON5_SUFFIX):
        swapped = requested.with_name(name[:-1])
    else:
        return requested

    if swapped.exists():
        return swapped
    return requested


def find_file(*candidates: Path | str | None) -> Path | None:
    """Return the first candidate path that exists."""
    for candidate in candidates:
        if candidate is None:
            continue
        path = Path(candidate)
        if path.exists():
            return path
    return None


def load_json5(path: Path) -> Any:
    """Parse a JSON or JSON5 document.

    Raises:
        OSError: If the file cannot be read
        ValueError: If the text is not valid JSON5
    """
    text = path.read_text(encoding="utf-8")
    return json5.loads(text)


def freeze(value: Any) -> Any:
    """Deep-freeze a parsed JSON value: mappings become read-only proxies, lists become tuples."""
    if isinstance(value, Mapping):
        return MappingProxyType({key: freeze(item) for key, item in value.items()})
    if isinstance(value, (list, tuple)):
        return tuple(freeze(item) for item in value)
    return value


def thaw(value: Any) -> Any:
    """Return a plain, mutable ``dict``/``list`` copy of a frozen value."""
    if isinstance(value, Mapping):
        return {key: thaw(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [thaw(item) for item in value]
    return value
