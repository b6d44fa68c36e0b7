"""Preprocessing pipeline run between "batch started" and the transfer.

Stages run in configuration order for each file; files of a run are processed
concurrently. The digest stage is appended last by build_pipeline().

Notifications (PipelineEvent):
    - PROGRESS(file, stage): a stage started working on a file
    - FILE_COMPLETE(file, stage): that stage finished the file
    - ALL_COMPLETE(): every file registered with add_need_processing() has
      been through every stage

Counters survive across overlapping bursts and only return to zero after an
ALL_COMPLETE or an explicit reset().
"""
import asyncio
import logging
from enum import Enum
from typing import Iterable, List, Optional, Sequence

from ..events import NotificationChannel
from ..files import UploadFile
from .base import PipelineContext, PreprocessingStage, PreprocessorSpec
from .checksum import ChecksumStage

logger = logging.getLogger(__name__)


class PipelineEvent(str, Enum):
    PROGRESS = "preprocess-progress"
    FILE_COMPLETE = "preprocess-complete"
    ALL_COMPLETE = "preprocess-all-complete"


class PreprocessingPipeline:
    """Ordered chain of preprocessing stages."""

    def __init__(self, stages: Iterable[PreprocessingStage]) -> None:
        self.stages: List[PreprocessingStage] = list(stages)
        self.events: NotificationChannel[PipelineEvent] = NotificationChannel("pipeline")
        self.need_processing = 0
        self._completed = [0] * len(self.stages)

    def add_need_processing(self, count: int) -> None:
        self.need_processing += count

    @property
    def completed(self) -> List[int]:
        return list(self._completed)

    def reset(self) -> None:
        self.need_processing = 0
        self._completed = [0] * len(self.stages)
        for stage in self.stages:
            stage.reset()

    async def run(self, files: Sequence[UploadFile]) -> None:
        """Run every stage over the given files.

        A stage failure is stored in ``file.meta["error"]``; the remaining
        stages are skipped for that file only.
        """
        if not files:
            return
        await asyncio.gather(*(self._process_file(file) for file in files))

    async def _process_file(self, file: UploadFile) -> None:
        for index, stage in enumerate(self.stages):
            if file.meta.get("error") is not None or not stage.applies_to(file):
                self._mark_complete(index, file, stage, notify=False)
                continue

            self.events.emit(PipelineEvent.PROGRESS, file, stage)
            try:
                await stage.process(file)
            except Exception as exc:
                logger.exception(f"Preprocessing stage {stage.id} failed for {file.name}")
                file.meta["error"] = exc
            self._mark_complete(index, file, stage, notify=True)

    def _mark_complete(self, index: int, file: UploadFile, stage: PreprocessingStage, notify: bool) -> None:
        self._completed[index] += 1
        if notify:
            self.events.emit(PipelineEvent.FILE_COMPLETE, file, stage)

        if self.need_processing > 0 and all(done >= self.need_processing for done in self._completed):
            logger.info(f"Preprocessing complete for {self.need_processing} file(s)")
            self.need_processing = 0
            self._completed = [0] * len(self.stages)
            self.events.emit(PipelineEvent.ALL_COMPLETE)


def build_pipeline(
    specs: Sequence[PreprocessorSpec],
    context: Optional[PipelineContext] = None,
    *,
    checksum_algorithm: str = "sha1",
) -> PreprocessingPipeline:
    """Instantiate the configured stages and append the digest stage last."""
    context = context or PipelineContext()
    stages = [spec.build(context) for spec in specs]
    checksum = PreprocessorSpec(
        ChecksumStage,
        lambda ctx: {"algorithm": checksum_algorithm, "capabilities": ctx.capabilities},
    )
    stages.append(checksum.build(context))
    return PreprocessingPipeline(stages)
