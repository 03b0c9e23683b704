"""Writes the local package index file."""

from __future__ import annotations

from collections.abc import Mapping
from datetime import UTC, datetime
from pathlib import Path
from typing import TYPE_CHECKING

import json5

from iodbuild.errors import ArchiveError

if TYPE_CHECKING:
    from iodbuild.index.aggregator import LocalIndexEntry

INDEX_FILENAME = ".morphic-packages"


def get_timestamp() -> str:
    """Return wallclock timestamp for the index header."""
    return datetime.now(UTC).isoformat()


def render_index(entries: Mapping[str, LocalIndexEntry], generated_at: str | None = None) -> str:
    """Render the index as a JSON5 document preceded by a timestamp comment."""
    stamp = generated_at or get_timestamp()
    body = json5.dumps(
        {"packages": {name: entry.to_dict() for name, entry in entries.items()}},
        indent=2,
    )
    return f"/* Morphic Install on Demand package info ({stamp}) */\n{body}\n"


def write_index(
    output_dir: Path,
    entries: Mapping[str, LocalIndexEntry],
    *,
    generated_at: str | None = None,
) -> Path:
    """Write ``.morphic-packages`` into ``output_dir`` and return its path.

    Raises:
        ArchiveError: If the index file cannot be written
    """
    index_path = output_dir / INDEX_FILENAME
    try:
        output_dir.mkdir(parents=True, exist_ok=True)
        index_path.write_text(render_index(entries, generated_at), encoding="utf-8")
    except OSError as e:
        raise ArchiveError(
            f"Cannot write package index {index_path}: {e}",
            context={"index": str(index_path)},
        ) from e
    return index_path
