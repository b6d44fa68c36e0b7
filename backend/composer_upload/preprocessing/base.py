"""PreprocessingStage abstract interface.

A stage transforms or measures a file before it is transferred (recompress an
image, strip metadata, compute a digest, ...). Stages are declared with a
PreprocessorSpec so their options can be resolved from the session context
when the pipeline is built.

Usage:
    from composer_upload.preprocessing import PreprocessorSpec, build_pipeline

    spec = PreprocessorSpec(
        MyStage,
        lambda ctx: {"quality": 0.8 if ctx.is_mobile_device else 0.9},
    )
    pipeline = build_pipeline([spec], context)
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Type

from ..files import UploadContext, UploadFile


@dataclass
class PipelineContext:
    """Inputs available to option resolvers.

    Attributes:
        upload_context: Who uploads, and into what kind of composer.
        capabilities: Platform capability flags reported by the host.
        is_mobile_device: Whether the host runs on a mobile device.
    """
    upload_context: UploadContext = field(default_factory=UploadContext)
    capabilities: Dict[str, Any] = field(default_factory=dict)
    is_mobile_device: bool = False


class PreprocessingStage(ABC):
    """Abstract base class for preprocessing stages.

    Methods:
        applies_to: Whether the stage has work to do for a file.
        process: Transform or measure the file (may replace file.data).
        reset: Drop any per-session state.
    """

    id: str = "stage"

    def __init__(self, **options: Any) -> None:
        self.options = options

    def applies_to(self, file: UploadFile) -> bool:
        return True

    @abstractmethod
    async def process(self, file: UploadFile) -> None:
        """Process one file.

        Raises:
            Exception: Any failure marks the file as failed; its siblings
                continue.
        """
        pass

    def reset(self) -> None:
        pass


@dataclass
class PreprocessorSpec:
    """A stage class plus the function that resolves its options."""
    stage_class: Type[PreprocessingStage]
    options_resolver: Callable[[PipelineContext], Dict[str, Any]] = field(
        default=lambda context: {}
    )

    def build(self, context: PipelineContext) -> PreprocessingStage:
        return self.stage_class(**(self.options_resolver(context) or {}))
