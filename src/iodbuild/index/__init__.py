"""Local package index aggregation and output."""

from iodbuild.index.aggregator import LocalIndexEntry, aggregate, index_entry
from iodbuild.index.writer import INDEX_FILENAME, render_index, write_index

__all__ = [
    "INDEX_FILENAME",
    "LocalIndexEntry",
    "aggregate",
    "index_entry",
    "render_index",
    "write_index",
]
