"""Auto-grid heuristic for bursts of image uploads.

When a burst brings in at least MIN_IMAGES_TO_AUTO_GRID images, the uploading
placeholders of exactly those images are wrapped in a [grid]...[/grid] block:

    [grid]
    [Uploading: a.png…]()
    [Uploading: b.png…]()
    [Uploading: c.png…]()
    [/grid]

Rules:
    1. Placeholders already inside a grid block are skipped.
    2. Every tracked image must be found, otherwise nothing is wrapped
       (no partial groups).
    3. The tracker is cleared after every attempt, successful or not; a burst
       is never retried.
"""
import logging
from typing import List

from ..files import is_image
from .buffer import DocumentBuffer
from .locator import LocatedSpan, SpanLocator

logger = logging.getLogger(__name__)

MIN_IMAGES_TO_AUTO_GRID = 3

GRID_OPEN = "[grid]"
GRID_CLOSE = "[/grid]"
GRID_PRESET = "grid_surround"


class AutoGridHeuristic:
    """Tracks consecutive image uploads and groups them into a grid."""

    def __init__(
        self,
        locator: SpanLocator,
        *,
        enabled: bool = True,
        threshold: int = MIN_IMAGES_TO_AUTO_GRID,
    ) -> None:
        self.locator = locator
        self.enabled = enabled
        self.threshold = threshold
        self.tracked: List[str] = []

    def track(self, file_name: str) -> bool:
        if not is_image(file_name):
            return False
        self.tracked.append(file_name)
        return True

    def should_group(self) -> bool:
        return self.enabled and len(self.tracked) >= self.threshold

    def reset(self) -> None:
        self.tracked.clear()

    def group(self, buffer: DocumentBuffer) -> bool:
        """Try once to wrap the tracked images; always clears the tracker.

        Returns:
            True if a surround request was issued.
        """
        text = buffer.text
        wanted = set(self.tracked)
        grids = self.locator.find_grid_blocks(text)
        found: List[LocatedSpan] = []

        for span in self.locator.find_uploading_images(text):
            if any(start <= span.start and span.end <= end for start, end in grids):
                continue
            if span.file_name in wanted:
                found.append(span)
                wanted.discard(span.file_name)
                if not wanted:
                    break

        grouped = False
        if found and len(found) == len(self.tracked):
            buffer.select(found[0].start, found[-1].end)
            buffer.apply_surround(GRID_OPEN, GRID_CLOSE, GRID_PRESET, {"use_block_mode": True})
            grouped = True
            logger.info(f"Grouped {len(found)} image uploads into a grid")
        else:
            logger.debug(
                f"Auto-grid skipped: matched {len(found)} of {len(self.tracked)} tracked images"
            )

        self.tracked.clear()
        return grouped
