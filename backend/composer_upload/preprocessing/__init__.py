"""Preprocessing stages run on file content before transfer."""
from .base import PipelineContext, PreprocessingStage, PreprocessorSpec
from .checksum import ChecksumStage
from .pipeline import PipelineEvent, PreprocessingPipeline, build_pipeline

__all__ = [
    "PipelineContext",
    "PreprocessingStage",
    "PreprocessorSpec",
    "ChecksumStage",
    "PipelineEvent",
    "PreprocessingPipeline",
    "build_pipeline",
]
