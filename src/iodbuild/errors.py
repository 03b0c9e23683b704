"""Error taxonomy for package build runs.

Every failure in a run is fatal. Components raise one of these and the CLI
decides how the process terminates.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any


class IodBuildError(RuntimeError):
    """Base error for a failed build or keygen run."""

    def __init__(self, message: str, context: Mapping[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.context: dict[str, Any] = dict(context or {})

    def context_lines(self) -> list[str]:
        """Render context entries as sorted ``key: value`` lines."""
        return [f"{key}: {self.context[key]}" for key in sorted(self.context)]


class ConfigurationError(IodBuildError):
    """Raised for bad options, missing or clashing key files and empty package selections."""


class ResolutionError(IodBuildError):
    """Raised when a build definition or package-data document cannot be loaded or is invalid."""


class AcquisitionError(IodBuildError):
    """Raised when an installer download fails."""


class ArchiveError(IodBuildError):
    """Raised when the archive library fails to create or read a package file."""
