"""iodbuild - Install on Demand package builder."""

__version__ = "0.3.0"
