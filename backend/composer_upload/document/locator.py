"""Span locator: every placeholder pattern in one place.

Placeholders are plain markdown links with an empty target, e.g.

    [Uploading: photo.jpg…]()
    [Processing: photo.jpg…]()

The locator builds those spans and finds them again in free-form text, so the
synchronizer and the auto-grid heuristic never hand-roll regexes and the
matching strategy can be tested on its own.
"""
import re
from dataclasses import dataclass
from typing import List, Optional, Tuple

ELLIPSIS = "…"

GRID_BLOCK_PATTERN = re.compile(r"\[grid\][\s\S]*?\[/grid\]")


@dataclass(frozen=True)
class LocatedSpan:
    """A placeholder found in the document."""
    file_name: str
    start: int
    end: int
    text: str


class SpanLocator:
    """Builds and finds placeholder spans for one set of labels."""

    def __init__(self, uploading_label: str = "Uploading", processing_label: str = "Processing") -> None:
        self.uploading_label = uploading_label
        self.processing_label = processing_label
        self._image_pattern = re.compile(
            r"\[" + re.escape(uploading_label) + r": ([^\]]+?\.\w+)" + ELLIPSIS + r"\]\(\)"
        )

    def uploading_span(self, file_name: str) -> str:
        return f"[{self.uploading_label}: {file_name}{ELLIPSIS}]()"

    def processing_span(self, file_name: str) -> str:
        return f"[{self.processing_label}: {file_name}{ELLIPSIS}]()"

    def _same_name_pattern(self, file_name: str) -> re.Pattern:
        return re.compile(
            r"\["
            + re.escape(self.uploading_label)
            + ": "
            + re.escape(file_name)
            + r"(?:\((\d+)\))?"
            + ELLIPSIS
            + r"\]\(\)"
        )

    def next_order_number(self, text: str, file_name: str) -> Optional[int]:
        """Return the order suffix a new span for *file_name* needs.

        None when no uploading span for that name exists; otherwise one more
        than the highest suffix found (a bare span counts as 0).
        """
        numbers = [
            int(match.group(1) or 0)
            for match in self._same_name_pattern(file_name).finditer(text)
        ]
        if not numbers:
            return None
        return max(numbers) + 1

    def find_uploading_images(self, text: str) -> List[LocatedSpan]:
        """All uploading spans whose label ends in a file extension, in document order."""
        return [
            LocatedSpan(file_name=match.group(1), start=match.start(), end=match.end(), text=match.group(0))
            for match in self._image_pattern.finditer(text)
        ]

    @staticmethod
    def find_grid_blocks(text: str) -> List[Tuple[int, int]]:
        return [(match.start(), match.end()) for match in GRID_BLOCK_PATTERN.finditer(text)]

    @staticmethod
    def ellipsis_variants(span: str) -> List[str]:
        """The span plus the forms a host widget may have rewritten it into.

        Some text inputs apply user-defined replacements to programmatic input,
        most commonly "..." -> "…"; the reverse happens on copy/paste round trips.
        """
        variants = [span]
        for candidate in (span.replace("...", ELLIPSIS), span.replace(ELLIPSIS, "...")):
            if candidate not in variants:
                variants.append(candidate)
        return variants
