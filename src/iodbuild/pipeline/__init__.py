"""Sequential package build pipeline."""

from iodbuild.pipeline.builder import BuildPipeline, PipelineState

__all__ = ["BuildPipeline", "PipelineState"]
