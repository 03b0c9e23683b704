"""Schema validation for build inputs, using schemas from package data."""

from __future__ import annotations

import json
from functools import cache
from importlib.resources import files
from typing import Any

from jsonschema.validators import Draft202012Validator

SCHEMA_SUFFIX = ".schema.json"


@cache
def load_schema(schema_name: str) -> dict[str, Any]:
    """Load a schema by name (without the ``.schema.json`` suffix).

    Raises:
        KeyError: If no such schema ships with the package
    """
    resource = files("iodbuild.schemas") / f"{schema_name}{SCHEMA_SUFFIX}"
    if not resource.is_file():
        raise KeyError(f"Schema not found in package data: {schema_name}")
    return json.loads(resource.read_text(encoding="utf-8"))


def schema_errors(data: Any, schema_name: str) -> list[str]:
    """Return human-readable validation errors for ``data`` (empty when valid)."""
    validator = Draft202012Validator(load_schema(schema_name))
    errors = sorted(validator.iter_errors(data), key=lambda e: [str(p) for p in e.path])
    return [
        f"{'.'.join(str(p) for p in e.path)}: {e.message}" if e.path else e.message
        for e in errors
    ]
